"""Localiza instalações existentes que já satisfazem um registro."""

from __future__ import annotations
import os
from typing import Optional, Sequence, TYPE_CHECKING

from librestore.modules import log
from librestore.modules.descriptor import DescriptorReader
from librestore.modules.records import PackageRecord, records_equal

if TYPE_CHECKING:
    from librestore.modules.session import ResolutionSession

logger = log.get_logger("matcher")


class DescriptorMatcher:

    def __init__(self, reader: Optional[DescriptorReader] = None):
        self.reader = reader or DescriptorReader()

    def find(self, record: PackageRecord, search_paths: Sequence[str],
             session: Optional["ResolutionSession"] = None) -> Optional[str]:
        """
        Retorna o caminho absoluto da primeira instalação idêntica ao registro,
        percorrendo search_paths em ordem de prioridade, ou None.
        Pacotes pedidos explicitamente na sessão nunca casam.
        """
        if session is not None and session.is_explicit(record.package):
            logger.debug("%s pedido explicitamente; ignorando instalações locais", record.package)
            return None

        for library in search_paths:
            path = self._find_in(record, library)
            if path:
                return path
        return None

    def _find_in(self, record: PackageRecord, library: str) -> Optional[str]:
        path = os.path.join(library, record.package)
        if not os.path.isdir(path):
            return None

        result = self.reader.read(path)
        if not result.ok:
            return None

        # sem fonte declarada não há como comparar
        if not record.source:
            return None

        try:
            current = result.record()
        except ValueError:
            return None

        if records_equal(record, current):
            logger.debug("%s satisfeito por %s", record.label(), path)
            return os.path.abspath(path)
        return None
