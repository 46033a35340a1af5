# session.py
"""
Sessão de resolução: estado mutável de uma única restauração.

- fila de pendências, conjunto memo de pacotes processados
- requisitos agregados por pacote (quem exigiu o quê)
- configuração da sessão: pacotes explícitos, rebuild, recursive, handler
- SessionSlot: dono da sessão ativa (apenas uma viva por vez)
"""

from __future__ import annotations
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, Iterator, List, Optional, Protocol, Set, Union

from librestore.modules import log
from librestore.modules.records import Action, RecordSet

logger = log.get_logger("session")

REBUILD_ALL = "*"


class SessionError(Exception):
    pass


class ActionHandler(Protocol):
    def decide(self, package: str, proposed: Optional[Action]) -> Optional[Action]:
        ...


class DefaultHandler:
    """Mantém a ação proposta."""

    def decide(self, package: str, proposed: Optional[Action]) -> Optional[Action]:
        return proposed


@dataclass(frozen=True)
class RequirementEntry:
    constraint: str
    contributed_by: str
    source: Optional[str] = None


class ResolutionSession:

    def __init__(self,
                 project: Optional[str] = None,
                 records: Optional[RecordSet] = None,
                 packages: Iterable[str] = (),
                 rebuild: Union[bool, Iterable[str], None] = None,
                 recursive: bool = True,
                 handler: Optional[ActionHandler] = None):
        self.project = project
        self.records: RecordSet = dict(records or {})
        self.packages: Set[str] = set(packages)
        if rebuild is True:
            self.rebuild: Set[str] = {REBUILD_ALL}
        else:
            self.rebuild = set(rebuild or ())
        self.recursive = recursive
        self.handler: ActionHandler = handler or DefaultHandler()

        self._processed: Set[str] = set()
        self._queue: Deque[str] = deque()
        self._queued: Set[str] = set()
        self._requirements: Dict[str, List[RequirementEntry]] = {}
        self.active = True

    # ----------------------
    # memo
    # ----------------------
    def is_processed(self, name: str) -> bool:
        return name in self._processed

    def mark_processed(self, name: str) -> None:
        self._check_active()
        if name in self._processed:
            raise SessionError(f"Pacote {name} já processado nesta sessão")
        self._processed.add(name)

    # ----------------------
    # fila
    # ----------------------
    def enqueue(self, name: str) -> bool:
        """Enfileira um pacote ainda não processado; retorna False se ignorado."""
        self._check_active()
        if name in self._processed or name in self._queued:
            return False
        self._queue.append(name)
        self._queued.add(name)
        return True

    def pop(self) -> Optional[str]:
        self._check_active()
        if not self._queue:
            return None
        name = self._queue.popleft()
        self._queued.discard(name)
        return name

    def pending(self) -> List[str]:
        return list(self._queue)

    # ----------------------
    # requisitos
    # ----------------------
    def add_requirement(self, name: str, constraint: str, contributed_by: str,
                        source: Optional[str] = None) -> None:
        self._check_active()
        entry = RequirementEntry(constraint=constraint, contributed_by=contributed_by, source=source)
        self._requirements.setdefault(name, []).append(entry)

    def get_requirements(self, name: str) -> List[RequirementEntry]:
        return list(self._requirements.get(name, []))

    def required_names(self) -> List[str]:
        return list(self._requirements)

    # ----------------------
    # configuração
    # ----------------------
    def is_explicit(self, name: str) -> bool:
        return name in self.packages

    def must_rebuild(self, name: str) -> bool:
        return REBUILD_ALL in self.rebuild or name in self.rebuild

    # ----------------------
    # ciclo de vida
    # ----------------------
    def end(self) -> None:
        if not self.active:
            raise SessionError("Sessão já encerrada")
        self.active = False
        self._queue.clear()
        self._queued.clear()
        self._processed.clear()
        self._requirements.clear()

    def _check_active(self) -> None:
        if not self.active:
            raise SessionError("Sessão de restauração encerrada")


class SessionSlot:
    """Guarda a única sessão viva de quem a possui (ex.: RestoreEngine)."""

    def __init__(self):
        self.current: Optional[ResolutionSession] = None

    def begin(self, project=None, records=None, packages=(), rebuild=None,
              recursive: bool = True, handler: Optional[ActionHandler] = None) -> ResolutionSession:
        if self.current is not None and self.current.active:
            logger.warning("Sessão anterior ainda ativa; substituindo")
            self.current.end()
        self.current = ResolutionSession(project, records, packages, rebuild, recursive, handler)
        return self.current

    def end(self) -> None:
        if self.current is None:
            raise SessionError("Nenhuma sessão ativa")
        session, self.current = self.current, None
        session.end()

    @contextmanager
    def scope(self, **kwargs) -> Iterator[ResolutionSession]:
        session = self.begin(**kwargs)
        try:
            yield session
        finally:
            if self.current is session:
                self.end()


__all__ = [
    "ResolutionSession", "SessionSlot", "SessionError", "RequirementEntry",
    "ActionHandler", "DefaultHandler", "REBUILD_ALL",
]
