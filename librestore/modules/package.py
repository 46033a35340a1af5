# package.py
"""
Instalação e remoção de pacotes na biblioteca alvo.

Recursos:
- ArtifactInstaller: instalador padrão (cache local de artefatos ou download)
- Extração em diretório de staging dentro da biblioteca e troca atômica
- Gravação do descritor quando o artefato não traz um
- Remoção de pacotes apenas da biblioteca do projeto
"""

from __future__ import annotations
import glob
import os
import shutil
import tarfile
import tempfile
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

import requests
from packaging.version import Version

from librestore.modules import config, log, utils
from librestore.modules.dependency import parse_version
from librestore.modules.descriptor import DescriptorReader, descriptor_path, write_descriptor
from librestore.modules.records import PackageRecord

logger = log.get_logger("package")


class InstallFailure(Exception):
    def __init__(self, package: str, reason: str, cascade: bool = False):
        self.package = package
        self.reason = reason
        self.cascade = cascade
        super().__init__(f"{package}: {reason}")


@dataclass
class InstallStatus:
    package: str
    installed: bool
    record: Optional[PackageRecord] = None
    path: Optional[str] = None
    reason: Optional[str] = None


class Installer(Protocol):
    def install(self, records: Sequence[PackageRecord], target_library: str) -> Dict[str, InstallStatus]:
        ...


# Helpers ---------------------------------------------------------------
def artifact_name(name: str, version: str) -> str:
    return f"{name}_{version}.tar.gz"


def _cached_versions(name: str) -> List[str]:
    pattern = utils.get_cache_path("packages", artifact_name(name, "*"))
    return sorted(glob.glob(pattern))


def _version_key(version: str):
    parsed = parse_version(version)
    return (1, parsed) if isinstance(parsed, Version) else (0, version)


def _package_root(staging: str, name: str) -> str:
    """Diretório do pacote dentro do artefato extraído."""
    candidate = os.path.join(staging, name)
    if os.path.isdir(candidate):
        return candidate
    entries = [e for e in os.listdir(staging) if not e.startswith(".")]
    if len(entries) == 1 and os.path.isdir(os.path.join(staging, entries[0])):
        return os.path.join(staging, entries[0])
    raise InstallFailure(name, "artefato não contém o diretório do pacote")


# Core API ---------------------------------------------------------------
class ArtifactInstaller:
    """
    Materializa registros na biblioteca alvo:
      <cache_dir>/packages/<nome>_<versão>.tar.gz, baixado de
      <repo>/src/contrib/<nome>_<versão>.tar.gz quando ausente
      (ou de RemoteUrl para fontes remotas).
    """

    def __init__(self, repos: Optional[Mapping[str, str]] = None, reader: Optional[DescriptorReader] = None):
        self.repos = dict(repos or {})
        self.reader = reader or DescriptorReader()
        config.ensure_dirs()

    def install(self, records: Sequence[PackageRecord], target_library: str) -> Dict[str, InstallStatus]:
        results: Dict[str, InstallStatus] = {}
        for record in records:
            name = record.package
            logger.info("Instalando %s ...", record.label())
            try:
                path = self._install_one(record, target_library)
            except InstallFailure as e:
                logger.error("Falha ao instalar %s: %s", name, e.reason)
                results[name] = InstallStatus(name, False, reason=e.reason)
                continue
            except (OSError, ValueError, tarfile.TarError, requests.RequestException) as e:
                logger.error("Falha ao instalar %s: %s", name, e)
                results[name] = InstallStatus(name, False, reason=str(e))
                continue

            installed = self.reader.read(path).record() or record
            logger.info("\tOK (instalado em %s)", path)
            results[name] = InstallStatus(name, True, record=installed, path=path)
        return results

    def _artifact_for(self, record: PackageRecord) -> str:
        name = record.package
        if not record.version:
            cached = _cached_versions(name)
            if not cached:
                raise InstallFailure(name, "versão desconhecida e nenhum artefato em cache")
            # maior versão disponível em cache
            return max(cached, key=lambda p: _version_key(os.path.basename(p)[len(name) + 1:-len(".tar.gz")]))

        dest = utils.get_cache_path("packages", artifact_name(name, record.version))
        if os.path.isfile(dest):
            return dest
        return utils.download(self._url_for(record), dest, expected_sha256=record.remotes.get("RemoteSha256"))

    def _url_for(self, record: PackageRecord) -> str:
        if record.remotes.get("RemoteUrl"):
            return record.remotes["RemoteUrl"]
        if not record.is_repository():
            raise InstallFailure(record.package, f"fonte {record.source} sem RemoteUrl")
        base = self.repos.get(record.repository or "") or next(iter(self.repos.values()), None)
        if not base:
            raise InstallFailure(record.package, "nenhum repositório configurado")
        return f"{base.rstrip('/')}/src/contrib/{artifact_name(record.package, record.version)}"

    def _install_one(self, record: PackageRecord, library: str) -> str:
        name = record.package
        artifact = self._artifact_for(record)
        utils.ensure_dir(library)
        staging = tempfile.mkdtemp(prefix=f".{name}-", dir=library)
        dest = os.path.join(library, name)
        try:
            utils.extract_tarball(artifact, staging)
            src = _package_root(staging, name)
            if os.path.lexists(dest):
                utils.rm(dest)
            os.replace(src, dest)
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        if not os.path.isfile(descriptor_path(dest)):
            write_descriptor(dest, record)
        return dest


def remove_package(library: str, name: str, version: Optional[str] = None) -> bool:
    """Remove <library>/<name> (árvore inteira se diretório)."""
    logger.info("Removendo %s [%s] ...", name, version or "?")
    path = os.path.join(library, name)
    if not os.path.lexists(path):
        logger.warning("\t%s não encontrado em %s", name, library)
        return False
    utils.rm(path)
    logger.info("\tOK (removido da biblioteca)")
    return True
