# preflight.py
"""
Verificações antes de qualquer mutação e portão de confirmação.

preflight(): valida se as ações são viáveis (biblioteca gravável, registros
completos, restrições de plataforma/runtime). Rejeição -> PreflightRejected.
confirm(): pede autorização ao usuário quando a execução é interativa.
"""

from __future__ import annotations
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from librestore.modules import log, utils
from librestore.modules.dependency import parse_specifier, spec_matches_version
from librestore.modules.records import Action, DiffResult, RecordSet

logger = log.get_logger("preflight")


class PreflightRejected(Exception):
    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        super().__init__("Pré-verificação falhou: " + "; ".join(self.issues))


class UserAborted(Exception):
    pass


def host_os_type() -> str:
    return "windows" if sys.platform.startswith("win") else "unix"


@dataclass
class PreflightContext:
    project: Optional[str]
    library: str
    runtime_version: Optional[str] = None
    os_type: str = field(default_factory=host_os_type)


def preflight(actions: DiffResult, records: RecordSet, context: PreflightContext) -> List[str]:
    """Retorna a lista de problemas encontrados (vazia = aceito)."""
    issues: List[str] = []

    if not utils.is_writable_dir(context.library):
        issues.append(f"biblioteca {context.library} não aceita escrita")

    for name, action in actions.items():
        if action is Action.REMOVE:
            continue
        record = records.get(name)
        if record is None:
            continue
        if not record.version:
            issues.append(f"{name}: versão ausente no lockfile")
        if not record.source:
            issues.append(f"{name}: fonte ausente no lockfile")
        if record.os_type and record.os_type.lower() != context.os_type:
            issues.append(f"{name}: requer OS_type {record.os_type} (host: {context.os_type})")
        if record.runtime and context.runtime_version:
            spec = parse_specifier(record.runtime.strip().strip("()").replace(" ", ""))
            if spec is not None and not spec_matches_version(spec, context.runtime_version):
                issues.append(f"{name}: requer runtime {record.runtime} (atual: {context.runtime_version})")

    for issue in issues:
        logger.error("Pré-verificação: %s", issue)
    return issues


def check_preflight(actions: DiffResult, records: RecordSet, context: PreflightContext) -> None:
    issues = preflight(actions, records, context)
    if issues:
        raise PreflightRejected(issues)


class Prompter(Protocol):
    def ask(self, message: str) -> bool:
        ...


class ConsolePrompter:
    """Pergunta no terminal; qualquer resposta diferente de 'y'/'s' nega."""

    def ask(self, message: str) -> bool:
        try:
            answer = input(f"{message} [y/N]: ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes", "s", "sim")


def confirm(actions: DiffResult, interactive: bool, prompter: Optional[Prompter] = None) -> bool:
    """True para prosseguir; False quando a confirmação foi pedida e negada."""
    if not interactive:
        return True
    prompter = prompter or ConsolePrompter()
    return prompter.ask(f"Deseja prosseguir com {len(actions)} ação(ões)?")


def require_confirmation(actions: DiffResult, interactive: bool, prompter: Optional[Prompter] = None) -> None:
    if not confirm(actions, interactive, prompter):
        raise UserAborted("Operação abortada.")
