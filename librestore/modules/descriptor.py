# descriptor.py
"""
Leitura e escrita do descritor de um pacote instalado.

Convenção: <biblioteca>/<pacote>/<pacote>.meta (YAML) com ao menos
Package e Version. A leitura nunca propaga erro: devolve DescriptorResult.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from librestore.modules import log
from librestore.modules.records import PackageRecord

logger = log.get_logger("descriptor")

REQUIRED_FIELDS = ["Package", "Version"]
DEFAULT_SOURCE = "Repository"


class DescriptorReadError(Exception):
    """Erro ao carregar ou validar um descritor"""
    pass


@dataclass
class DescriptorResult:
    ok: bool
    fields: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def record(self) -> Optional[PackageRecord]:
        if not self.ok:
            return None
        fields = dict(self.fields)
        # descritor mínimo (Package + Version) vem de repositório
        if not fields.get("Source"):
            fields["Source"] = DEFAULT_SOURCE
        return PackageRecord.from_dict(fields)


def descriptor_path(pkg_dir: str) -> str:
    name = os.path.basename(os.path.normpath(pkg_dir))
    return os.path.join(pkg_dir, f"{name}.meta")


def _parse(path: str) -> Dict[str, Any]:
    if not os.path.isfile(path):
        raise DescriptorReadError(f"Descritor não encontrado: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise DescriptorReadError(f"Descritor ilegível {path}: {e}") from e
    if not isinstance(data, dict):
        raise DescriptorReadError(f"Descritor malformado (não é um mapeamento): {path}")
    for key in REQUIRED_FIELDS:
        if data.get(key) in (None, ""):
            raise DescriptorReadError(f"Campo obrigatório '{key}' ausente em {path}")
    return data


class DescriptorReader:
    """Lê o descritor de um diretório de pacote."""

    def read(self, pkg_dir: str) -> DescriptorResult:
        try:
            return DescriptorResult(ok=True, fields=_parse(descriptor_path(pkg_dir)))
        except DescriptorReadError as e:
            logger.debug("%s", e)
            return DescriptorResult(ok=False, error=str(e))


def write_descriptor(pkg_dir: str, record: PackageRecord) -> str:
    """Grava o descritor de um pacote instalado a partir do registro."""
    path = descriptor_path(pkg_dir)
    os.makedirs(pkg_dir, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(record.to_dict(), f, sort_keys=False, allow_unicode=True)
    return path


__all__ = ["DescriptorReader", "DescriptorResult", "DescriptorReadError", "descriptor_path", "write_descriptor"]
