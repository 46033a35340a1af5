# records.py
"""
Modelo de registros de pacotes e algoritmo de diff.

- PackageRecord: identidade + metadados de um pacote (lockfile ou descritor instalado)
- RecordSet: dict nome -> PackageRecord
- Action: INSTALL / REMOVE (ausência de entrada = nada a fazer)
- diff(current, desired): diff de três vias entre estado instalado e desejado
- filter_actions(...): políticas pós-diff (clean, biblioteca alvo, ignorados)
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

# Fontes tratadas como "repositório" (comparação só por Package + Version)
REPOSITORY_SOURCES = ("repository", "cran")

REMOTE_PREFIX = "Remote"

# Remotes: fontes declaradas para dependências ("github::dono/B", "local::/caminho/B")
REMOTES_FIELD = "Remotes"
REMOTE_TYPES = {
    "github": "GitHub",
    "gitlab": "GitLab",
    "bitbucket": "Bitbucket",
    "git": "Git",
    "local": "Local",
    "url": "URL",
    "cran": "Repository",
    "repository": "Repository",
}


class Action(str, Enum):
    INSTALL = "install"
    REMOVE = "remove"


@dataclass(frozen=True)
class PackageRecord:
    """
    Registro imutável de um pacote:
      package: nome (chave única dentro de um RecordSet)
      version: versão declarada (None quando desconhecida)
      source: "Repository", "GitHub", "Local", ...
      repository: nome do repositório (para fontes de repositório)
      remotes: campos Remote* (RemoteHost, RemoteRepo, RemoteSha, ...)
      requirements: dependências declaradas ("B", "B>=1.0", "B (>= 1.0)")
      os_type / runtime: restrições de plataforma usadas no preflight
      declared_remotes: entradas Remotes (fonte exigida para cada dependência)
    """
    package: str
    version: Optional[str] = None
    source: str = "Repository"
    repository: Optional[str] = None
    remotes: Dict[str, str] = field(default_factory=dict)
    requirements: List[str] = field(default_factory=list)
    os_type: Optional[str] = None
    runtime: Optional[str] = None
    declared_remotes: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name_hint: Optional[str] = None) -> "PackageRecord":
        """Converte o mapeamento cru (lockfile/descritor) em PackageRecord."""
        name = data.get("Package") or name_hint
        if not name:
            raise ValueError("Registro sem campo 'Package'")
        version = data.get("Version")
        requirements = data.get("Requirements") or []
        if isinstance(requirements, str):
            requirements = [r.strip() for r in requirements.split(",") if r.strip()]
        remotes = {
            str(k): str(v) for k, v in data.items()
            if str(k).startswith(REMOTE_PREFIX) and k != REMOTES_FIELD and v is not None
        }
        declared = data.get(REMOTES_FIELD) or []
        if isinstance(declared, str):
            declared = [r.strip() for r in declared.split(",") if r.strip()]
        return cls(
            package=str(name),
            version=str(version) if version is not None else None,
            source=str(data.get("Source") or ""),
            repository=data.get("Repository"),
            remotes=remotes,
            requirements=[str(r) for r in requirements],
            os_type=data.get("OS_type"),
            runtime=data.get("Runtime"),
            declared_remotes=[str(r) for r in declared],
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"Package": self.package, "Version": self.version, "Source": self.source}
        if self.repository:
            out["Repository"] = self.repository
        if self.requirements:
            out["Requirements"] = list(self.requirements)
        if self.os_type:
            out["OS_type"] = self.os_type
        if self.runtime:
            out["Runtime"] = self.runtime
        if self.declared_remotes:
            out[REMOTES_FIELD] = list(self.declared_remotes)
        out.update(self.remotes)
        return out

    def dependency_sources(self) -> Dict[str, str]:
        """Mapa dependência -> fonte, a partir do campo Remotes."""
        sources = {}
        for entry in self.declared_remotes:
            kind, sep, target = entry.partition("::")
            if not sep:
                kind, target = "github", entry
            target = target.split("@")[0].split("#")[0].rstrip("/")
            name = os.path.basename(target)
            if name.endswith(".tar.gz"):
                name = name[:-len(".tar.gz")].split("_")[0]
            if name:
                sources[name] = REMOTE_TYPES.get(kind.strip().lower(), kind.strip())
        return sources

    def is_repository(self) -> bool:
        return self.source.lower() in REPOSITORY_SOURCES

    def source_kind(self) -> str:
        return "repository" if self.is_repository() else self.source.lower()

    def label(self) -> str:
        return f"{self.package} [{self.version or '*'}]"


RecordSet = Dict[str, PackageRecord]
DiffResult = Dict[str, Action]


def identity_fields(record: PackageRecord, remote_keys: Iterable[str] = ()) -> Dict[str, Optional[str]]:
    """Campos que definem a identidade de um registro segundo sua fonte."""
    fields: Dict[str, Optional[str]] = {"Package": record.package, "Version": record.version}
    if not record.is_repository():
        for key in sorted(set(record.remotes) | set(remote_keys)):
            fields[key] = record.remotes.get(key)
    return fields


def records_equal(a: PackageRecord, b: PackageRecord) -> bool:
    """
    Igualdade dependente da fonte:
      - repositório: (Package, Version)
      - demais: (Package, Version) + todos os campos Remote* de ambos os lados
    Fontes de tipos diferentes nunca são iguais.
    """
    if a.source_kind() != b.source_kind():
        return False
    if a.is_repository():
        return (a.package, a.version) == (b.package, b.version)
    keys = set(a.remotes) | set(b.remotes)
    return identity_fields(a, keys) == identity_fields(b, keys)


def diff(current: RecordSet, desired: RecordSet) -> DiffResult:
    """
    Compara estado instalado (current) com o desejado (desired).

    Somente em desired -> INSTALL; somente em current -> REMOVE;
    em ambos e diferentes -> INSTALL; iguais -> sem entrada.
    Ordem das chaves: alfabética (determinística).
    """
    actions: DiffResult = {}
    for name in sorted(set(current) | set(desired)):
        old = current.get(name)
        new = desired.get(name)
        if old is None:
            actions[name] = Action.INSTALL
        elif new is None:
            actions[name] = Action.REMOVE
        elif not records_equal(new, old):
            actions[name] = Action.INSTALL
    return actions


def filter_actions(actions: DiffResult,
                   clean: bool = False,
                   library_root: Optional[str] = None,
                   locate: Optional[Callable[[str], Optional[str]]] = None,
                   ignored: Iterable[str] = ()) -> DiffResult:
    """
    Aplica as políticas sobre o diff bruto:
      - sem clean, nenhum REMOVE sobrevive
      - REMOVE só para pacotes instalados diretamente na biblioteca alvo
      - pacotes ignorados não recebem nenhuma ação
    """
    ignored = {str(i) for i in ignored}
    root = os.path.abspath(library_root) if library_root else None
    out: DiffResult = {}
    for name, action in actions.items():
        if name in ignored:
            continue
        if action is Action.REMOVE:
            if not clean:
                continue
            location = locate(name) if locate else None
            if not location or root is None:
                continue
            if os.path.dirname(os.path.abspath(location)) != root:
                continue
        out[name] = action
    return out


def split_actions(actions: DiffResult) -> tuple[List[str], List[str]]:
    """Particiona em (remoções, instalações), preservando a ordem."""
    removes = [n for n, a in actions.items() if a is Action.REMOVE]
    installs = [n for n, a in actions.items() if a is not Action.REMOVE]
    return removes, installs


__all__ = [
    "Action", "PackageRecord", "RecordSet", "DiffResult",
    "identity_fields", "records_equal", "diff", "filter_actions", "split_actions",
]
