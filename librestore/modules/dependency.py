#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/dependency.py - Resolver de dependências da restauração

Funcionalidades principais:
- Parsing de especificadores de versão com 'packaging'
- Modelo PackageRequirement ("B", "B>=1.0", "B (>= 1.0)")
- Resolução iterativa guiada pela fila da sessão (memo evita reprocessar e ciclos)
- Atalho por instalação local idêntica (DescriptorMatcher), exceto em rebuild
- Derivação de registros para dependências fora do lockfile (modo recursive)
- Agregação de requisitos por dependente e detecção de conflitos
- Ordenação topológica final (ordem de instalação)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from packaging.version import Version, InvalidVersion
from packaging.specifiers import SpecifierSet, InvalidSpecifier

from librestore.modules import log
from librestore.modules.matcher import DescriptorMatcher
from librestore.modules.records import Action, PackageRecord, RecordSet
from librestore.modules.session import RequirementEntry, ResolutionSession
from librestore.modules.snapshot import locate_package

logger = log.get_logger("dependency")

# ---------------------------------------------------------------------
# Helpers de versão e spec parsing
# ---------------------------------------------------------------------

def parse_version(v: Optional[str]):
    """Tenta parsear versão com packaging, fallback para string."""
    if not v:
        return None
    try:
        return Version(v)
    except InvalidVersion:
        return v


def parse_specifier(spec: str) -> Optional[SpecifierSet]:
    """Retorna um SpecifierSet, ou None se vazio/inválido."""
    spec = (spec or "").strip()
    if not spec:
        return None
    try:
        return SpecifierSet(spec)
    except InvalidSpecifier:
        logger.warning("Especificador de versão inválido ignorado: %s", spec)
        return None


def spec_matches_version(spec: Optional[SpecifierSet], version: Optional[str]) -> bool:
    """Testa se version satisfaz spec."""
    if spec is None:
        return True
    if version is None:
        return False
    parsed = parse_version(version)
    if isinstance(parsed, Version):
        return spec.contains(parsed, prereleases=True)
    # versão fora do PEP 440: só pinos exatos podem ser avaliados
    return all(s.version == version for s in spec if s.operator in ("==", "==="))


def exact_pins(spec: Optional[SpecifierSet]) -> List[str]:
    if spec is None:
        return []
    return [s.version for s in spec if s.operator in ("==", "===") and "*" not in s.version]


def ranges_disjoint(specs: Sequence[Optional[SpecifierSet]]) -> bool:
    """
    True quando os limites inferior e superior combinados não deixam nenhuma
    versão possível (ex.: ">=2.0" com "<1.0"). Versões fora do PEP 440 são ignoradas.
    """
    lower: Optional[Tuple[Version, bool]] = None   # (versão, inclusivo)
    upper: Optional[Tuple[Version, bool]] = None
    for spec in specs:
        for s in spec or ():
            try:
                bound = Version(s.version)
            except InvalidVersion:
                continue
            if s.operator in (">=", ">"):
                inclusive = s.operator == ">="
                if lower is None or bound > lower[0] or (bound == lower[0] and not inclusive):
                    lower = (bound, inclusive)
            elif s.operator in ("<=", "<"):
                inclusive = s.operator == "<="
                if upper is None or bound < upper[0] or (bound == upper[0] and not inclusive):
                    upper = (bound, inclusive)
    if lower is None or upper is None:
        return False
    if lower[0] != upper[0]:
        return lower[0] > upper[0]
    return not (lower[1] and upper[1])

# ---------------------------------------------------------------------
# Modelos
# ---------------------------------------------------------------------

@dataclass
class PackageRequirement:
    """
    Expressa uma dependência: nome e specifier opcional.
    Ex: name="B", raw="B (>= 1.2)", specifier=SpecifierSet(">=1.2")
    """
    name: str
    raw: str = ""
    specifier: Optional[SpecifierSet] = None

    @classmethod
    def from_string(cls, s: str) -> "PackageRequirement":
        """Cria um PackageRequirement a partir de 'name>=1.2,<2.0' ou 'name (>= 1.2)'."""
        s = (s or "").strip()
        if not s:
            raise ValueError("Empty requirement string")
        # nome: alfanuméricos, traço, underscore e ponto
        name = ""
        spec = ""
        for i, ch in enumerate(s):
            if ch.isalnum() or ch in "-_.":
                name += ch
            else:
                spec = s[i:]
                break
        if not name:
            raise ValueError(f"Requirement sem nome: {s!r}")
        spec = spec.strip().strip("()").replace(" ", "")
        return cls(name=name, raw=s, specifier=parse_specifier(spec))

    def constraint(self) -> str:
        return str(self.specifier) if self.specifier is not None else ""


class ConflictingRequirementError(Exception):
    """Requisitos agregados para um pacote são incompatíveis entre dependentes."""

    def __init__(self, package: str, entries: Sequence[RequirementEntry]):
        self.package = package
        self.entries = list(entries)
        parts = [
            f"{e.contributed_by} exige {package}{e.constraint or ' (qualquer versão)'}"
            + (f" de {e.source}" if e.source else "")
            for e in self.entries
        ]
        super().__init__(f"Requisitos conflitantes para {package}: " + "; ".join(parts))


class DependencySource(Protocol):
    def dependencies(self, record: PackageRecord) -> List[str]:
        ...


class DeclaredDependencies:
    """Usa as dependências declaradas no próprio registro."""

    def dependencies(self, record: PackageRecord) -> List[str]:
        return list(record.requirements)


@dataclass
class ResolveResult:
    records: RecordSet = field(default_factory=dict)      # a instalar, ordem de descoberta
    satisfied: Dict[str, str] = field(default_factory=dict)  # nome -> instalação local
    unresolved: List[str] = field(default_factory=list)
    conflicts: Dict[str, ConflictingRequirementError] = field(default_factory=dict)

# ---------------------------------------------------------------------
# Conflitos e derivação
# ---------------------------------------------------------------------

def find_conflict(name: str, entries: Sequence[RequirementEntry],
                  record: Optional[PackageRecord] = None) -> Optional[ConflictingRequirementError]:
    """
    Conflito = dependentes distintos cujas restrições nenhuma versão candidata
    (pinos exatos declarados + versão do registro) satisfaz ao mesmo tempo,
    faixas sem interseção quando não há candidata,
    ou que exigem fontes diferentes.
    """
    if len({e.contributed_by for e in entries}) < 2:
        return None

    sources = {e.source.lower() for e in entries if e.source}
    if len(sources) > 1:
        return ConflictingRequirementError(name, entries)

    specs = [parse_specifier(e.constraint) for e in entries]
    candidates: List[str] = []
    for spec in specs:
        for pin in exact_pins(spec):
            if pin not in candidates:
                candidates.append(pin)
    if record is not None and record.version and record.version not in candidates:
        candidates.append(record.version)
    if not candidates:
        # sem versão concreta: basta que as faixas se cruzem
        return ConflictingRequirementError(name, entries) if ranges_disjoint(specs) else None

    for version in candidates:
        if all(spec_matches_version(spec, version) for spec in specs):
            return None
    return ConflictingRequirementError(name, entries)


def derive_record(name: str, entries: Sequence[RequirementEntry]) -> PackageRecord:
    """Registro mínimo para dependência ausente do lockfile, a partir dos requisitos."""
    version = None
    source = "Repository"
    for e in entries:
        pins = exact_pins(parse_specifier(e.constraint))
        if pins and version is None:
            version = pins[0]
        if e.source:
            source = e.source
    return PackageRecord(package=name, version=version, source=source)


def requirement_names(record: PackageRecord) -> List[str]:
    names = []
    for raw in record.requirements:
        try:
            names.append(PackageRequirement.from_string(raw).name)
        except ValueError:
            continue
    return names

# ---------------------------------------------------------------------
# DependencyResolver
# ---------------------------------------------------------------------

class DependencyResolver:
    """
    Expande um conjunto inicial de nomes no fecho transitivo de registros a instalar.

    A fila e o memo pertencem à sessão; este loop é o único que os altera.
    Resultados acumulam entre chamadas dentro da mesma sessão.
    """

    def __init__(self, session: ResolutionSession,
                 matcher: Optional[DescriptorMatcher] = None,
                 search_paths: Sequence[str] = (),
                 dependencies: Optional[DependencySource] = None):
        self.session = session
        self.matcher = matcher or DescriptorMatcher()
        self.search_paths = list(search_paths)
        self.dependencies = dependencies or DeclaredDependencies()
        self.result = ResolveResult()

    def resolve(self, names: Iterable[str]) -> ResolveResult:
        for name in names:
            self.session.enqueue(name)

        while True:
            name = self.session.pop()
            if name is None:
                break
            if self.session.is_processed(name):
                continue
            self.session.mark_processed(name)
            self._process(name)

        self._check_conflicts()
        return self.result

    def _process(self, name: str) -> None:
        session = self.session
        record = self._record_for(name)
        if record is None:
            path = locate_package(name, self.search_paths)
            if path:
                logger.debug("%s ausente do lockfile, mas já instalado em %s", name, path)
                self.result.satisfied[name] = path
            else:
                logger.warning("Sem registro para %s (ausente do lockfile e das bibliotecas); não será instalado", name)
                self.result.unresolved.append(name)
            return

        retrieve = True
        if not session.must_rebuild(name):
            path = self.matcher.find(record, self.search_paths, session)
            if path:
                logger.debug("%s já satisfeito em %s", record.label(), path)
                self.result.satisfied[name] = path
                retrieve = False

        decided = session.handler.decide(name, Action.INSTALL if retrieve else None)
        if decided is Action.INSTALL:
            self.result.records[name] = record

        enqueue = decided is Action.INSTALL or session.recursive
        sources = record.dependency_sources()
        for raw in self.dependencies.dependencies(record):
            try:
                req = PackageRequirement.from_string(raw)
            except ValueError as e:
                logger.warning("Dependência inválida em %s: %s", record.package, e)
                continue
            if req.name == name:
                continue
            # requisito registrado mesmo que a fila não avance por aqui
            session.add_requirement(req.name, req.constraint(), contributed_by=name,
                                    source=sources.get(req.name))
            if enqueue:
                session.enqueue(req.name)

    def _record_for(self, name: str) -> Optional[PackageRecord]:
        record = self.session.records.get(name)
        if record is not None:
            return record
        if not self.session.recursive:
            return None
        entries = self.session.get_requirements(name)
        logger.debug("Derivando registro para %s a partir de %d requisito(s)", name, len(entries))
        return derive_record(name, entries)

    def _check_conflicts(self) -> None:
        for name in self.session.required_names():
            if name in self.result.conflicts:
                continue
            record = self.result.records.get(name) or self.session.records.get(name)
            err = find_conflict(name, self.session.get_requirements(name), record)
            if err is not None:
                logger.error("%s", err)
                self.result.conflicts[name] = err


def install_order(records: RecordSet) -> List[str]:
    """
    Retorna ordem topológica de instalação (dependências primeiro). Usa Kahn com
    dependências restritas ao conjunto; membros de ciclos vão ao final, ordenados.
    """
    deps_map: Dict[str, set] = {}
    for name, record in records.items():
        deps_map[name] = {d for d in requirement_names(record) if d in records and d != name}

    indeg = {name: len(deps) for name, deps in deps_map.items()}
    q = [name for name in records if indeg[name] == 0]
    order: List[str] = []
    while q:
        n = q.pop(0)
        order.append(n)
        for m, deps in deps_map.items():
            if n in deps:
                deps.remove(n)
                indeg[m] -= 1
                if indeg[m] == 0:
                    q.append(m)
    if len(order) != len(records):
        remaining = sorted(name for name in records if name not in order)
        order.extend(remaining)
    return order


__all__ = [
    "PackageRequirement",
    "ConflictingRequirementError",
    "DependencyResolver",
    "DeclaredDependencies",
    "ResolveResult",
    "find_conflict",
    "ranges_disjoint",
    "derive_record",
    "install_order",
    "requirement_names",
    "parse_specifier",
    "spec_matches_version",
]
