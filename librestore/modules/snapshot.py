"""Estado instalado das bibliotecas (lado "current" do diff)."""

from __future__ import annotations
import os
from typing import Optional, Protocol, Sequence

from librestore.modules import log
from librestore.modules.descriptor import DescriptorReader
from librestore.modules.records import RecordSet

logger = log.get_logger("snapshot")


class SnapshotProducer(Protocol):
    def snapshot(self, library_paths: Sequence[str]) -> RecordSet:
        ...


class LibrarySnapshot:
    """Varre as bibliotecas em ordem; o primeiro descritor legível de cada pacote vence."""

    def __init__(self, reader: Optional[DescriptorReader] = None):
        self.reader = reader or DescriptorReader()

    def snapshot(self, library_paths: Sequence[str]) -> RecordSet:
        records: RecordSet = {}
        for library in library_paths:
            if not os.path.isdir(library):
                continue
            for name in sorted(os.listdir(library)):
                if name.startswith(".") or name in records or not os.path.isdir(os.path.join(library, name)):
                    continue
                result = self.reader.read(os.path.join(library, name))
                if not result.ok:
                    logger.debug("Ignorando %s em %s: %s", name, library, result.error)
                    continue
                records[name] = result.record()
        return records


def locate_package(name: str, library_paths: Sequence[str]) -> Optional[str]:
    """Caminho do pacote instalado na primeira biblioteca que o contém."""
    for library in library_paths:
        path = os.path.join(library, name)
        if os.path.isdir(path):
            return os.path.abspath(path)
    return None
