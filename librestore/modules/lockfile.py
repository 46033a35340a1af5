# lockfile.py
"""
Leitura do lockfile (manifesto) da restauração.

Formato (JSON ou YAML, pela extensão):

    Runtime:
      Version: "4.3.1"
      Repositories:
        - {Name: CRAN, URL: "https://cran.example.org"}
    Packages:
      A: {Package: A, Version: "1.0", Source: Repository, Repository: CRAN,
          Requirements: ["B (>= 0.5)"]}
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from librestore.modules import config, log, utils
from librestore.modules.records import PackageRecord, RecordSet

logger = log.get_logger("lockfile")


class ManifestReadError(Exception):
    """Lockfile ausente, ilegível ou malformado"""
    pass


@dataclass
class Manifest:
    records: RecordSet = field(default_factory=dict)
    repositories: Dict[str, str] = field(default_factory=dict)
    runtime_version: Optional[str] = None
    path: Optional[str] = None


def _load(path: str) -> Any:
    if not os.path.isfile(path):
        raise ManifestReadError(f"Lockfile não encontrado: {path}")
    try:
        if path.endswith((".yml", ".yaml")):
            return utils.load_yaml(path)
        return utils.load_json(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ManifestReadError(f"Falha ao ler lockfile {path}: {e}") from e


def _parse_repositories(raw: Any) -> Dict[str, str]:
    if not raw:
        return {}
    if isinstance(raw, Mapping):
        return {str(k): str(v) for k, v in raw.items()}
    if isinstance(raw, list):
        repos = {}
        for entry in raw:
            if not isinstance(entry, Mapping) or "URL" not in entry:
                raise ManifestReadError(f"Repositório malformado no lockfile: {entry!r}")
            repos[str(entry.get("Name") or entry["URL"])] = str(entry["URL"])
        return repos
    raise ManifestReadError("Campo Repositories deve ser lista ou mapeamento")


def parse_manifest(data: Any, path: Optional[str] = None) -> Manifest:
    if not isinstance(data, Mapping):
        raise ManifestReadError("Lockfile deve ser um mapeamento")
    runtime = data.get("Runtime") or {}
    if not isinstance(runtime, Mapping):
        raise ManifestReadError("Campo Runtime deve ser um mapeamento")
    packages = data.get("Packages") or {}
    if not isinstance(packages, Mapping):
        raise ManifestReadError("Campo Packages deve ser um mapeamento")

    records: RecordSet = {}
    for name, entry in packages.items():
        if not isinstance(entry, Mapping):
            raise ManifestReadError(f"Registro de {name} deve ser um mapeamento")
        if entry.get("Package") not in (None, name):
            raise ManifestReadError(f"Registro {name} declara Package={entry.get('Package')}")
        try:
            records[str(name)] = PackageRecord.from_dict(dict(entry), name_hint=str(name))
        except ValueError as e:
            raise ManifestReadError(f"Registro inválido para {name}: {e}") from e

    version = runtime.get("Version")
    return Manifest(
        records=records,
        repositories=_parse_repositories(runtime.get("Repositories")),
        runtime_version=str(version) if version is not None else None,
        path=path,
    )


def read_lockfile(source: Union[str, Mapping, Manifest]) -> Manifest:
    """Aceita caminho, valor em memória (dict) ou Manifest já lido."""
    if isinstance(source, Manifest):
        return source
    if isinstance(source, str):
        logger.debug("Lendo lockfile %s", source)
        return parse_manifest(_load(source), path=source)
    return parse_manifest(source)


def lockfile_path(project: str) -> str:
    return os.path.join(project, config.get("lockfile_name"))


def apply_overrides(manifest: Manifest, overrides: Optional[Mapping[str, Mapping]] = None) -> Manifest:
    """Mescla campos de override (config 'overrides') nos registros do lockfile."""
    overrides = overrides if overrides is not None else (config.get("overrides") or {})
    if not overrides:
        return manifest
    records = dict(manifest.records)
    for name, fields in overrides.items():
        base = records[name].to_dict() if name in records else {"Package": name}
        merged = {**base, **dict(fields), "Package": name}
        records[name] = PackageRecord.from_dict(merged)
        logger.info("Override aplicado a %s", name)
    return replace(manifest, records=records)


def resolve_repos(repos: Optional[Mapping[str, str]], manifest: Manifest) -> Dict[str, str]:
    """Precedência: parâmetro > config repos_override > lockfile."""
    chosen = repos or config.get("repos_override") or manifest.repositories
    return {str(k): str(v) for k, v in (chosen or {}).items()}
