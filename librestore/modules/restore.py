# restore.py
"""
Restauração de um projeto a partir do lockfile.

Fluxo principal (RestoreEngine.restore):
 1) carregar lockfile (+ overrides) e resolver repositórios
 2) snapshot das bibliotecas e diff contra o lockfile
 3) filtros: clean, somente biblioteca alvo, pacotes ignorados
 4) pré-verificação e confirmação (nenhuma mutação antes deste ponto)
 5) remoções, resolução de dependências, instalações (falhas isoladas por pacote)
 6) detecção de reparos na árvore de dependências e notificação pós-instalação

Resultados possíveis: SYNCHRONIZED (nada a fazer), ABORTED (sem mutação),
INSTALLED (com eventuais falhas/reparos) ou exceção (ManifestReadError,
PreflightRejected).
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from librestore.modules import config, log, utils
from librestore.modules.dependency import (
    ConflictingRequirementError,
    DependencyResolver,
    DependencySource,
    ResolveResult,
    install_order,
    requirement_names,
)
from librestore.modules.lockfile import (
    Manifest,
    apply_overrides,
    lockfile_path,
    read_lockfile,
    resolve_repos,
)
from librestore.modules.matcher import DescriptorMatcher
from librestore.modules.package import ArtifactInstaller, InstallFailure, Installer, remove_package
from librestore.modules.preflight import PreflightContext, Prompter, check_preflight, confirm as confirm_actions
from librestore.modules.records import (
    Action,
    DiffResult,
    RecordSet,
    diff,
    filter_actions,
    split_actions,
)
from librestore.modules.session import ActionHandler, SessionSlot
from librestore.modules.snapshot import LibrarySnapshot, SnapshotProducer, locate_package

logger = log.get_logger("restore")


class RestoreStatus(str, Enum):
    SYNCHRONIZED = "synchronized"
    ABORTED = "aborted"
    INSTALLED = "installed"


@dataclass
class RestoreOutcome:
    status: RestoreStatus
    actions: DiffResult = field(default_factory=dict)
    records: RecordSet = field(default_factory=dict)
    removed: List[str] = field(default_factory=list)
    failures: Dict[str, InstallFailure] = field(default_factory=dict)
    conflicts: Dict[str, ConflictingRequirementError] = field(default_factory=dict)
    repairs: RecordSet = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "actions": {k: v.value for k, v in self.actions.items()},
            "installed": {k: r.version for k, r in self.records.items()},
            "removed": list(self.removed),
            "failures": {k: {"reason": f.reason, "cascade": f.cascade} for k, f in self.failures.items()},
            "conflicts": {k: str(e) for k, e in self.conflicts.items()},
            "repairs": {k: r.version for k, r in self.repairs.items()},
            "unresolved": list(self.unresolved),
        }


@dataclass
class RestorePlan:
    project: str
    library: List[str]
    manifest: Manifest
    current: RecordSet
    actions: DiffResult
    repos: Dict[str, str]


class PostInstallHook(Protocol):
    def notify(self, packages: List[str]) -> None:
        ...


class LoggingPostInstall:
    def notify(self, packages: List[str]) -> None:
        if packages:
            logger.info("Pacotes instalados: %s", ", ".join(packages))


def default_library_paths(project: str) -> List[str]:
    paths = config.get_list("library_paths")
    return [os.path.expanduser(p) for p in paths] or [os.path.join(project, "library")]


def detect_repairs(intended: RecordSet, installed: RecordSet) -> RecordSet:
    """Pacotes instalados que divergem do lockfile (novos ou alterados)."""
    changes = diff(intended, installed)
    drift = {name: installed[name] for name, action in changes.items() if action is not Action.REMOVE}
    if drift:
        lines = "\n".join(f"\t- {rec.label()}" for rec in drift.values())
        logger.warning(
            "A árvore de dependências foi reparada durante a instalação:\n%s\n"
            "Atualize o lockfile para capturar essas dependências.", lines)
    return drift


class RestoreEngine:
    """Dono da sessão de resolução e dos colaboradores de uma restauração."""

    def __init__(self,
                 installer: Optional[Installer] = None,
                 snapshot: Optional[SnapshotProducer] = None,
                 matcher: Optional[DescriptorMatcher] = None,
                 prompter: Optional[Prompter] = None,
                 post_install: Optional[PostInstallHook] = None,
                 handler: Optional[ActionHandler] = None,
                 dependencies: Optional[DependencySource] = None):
        self.installer = installer
        self.snapshot = snapshot or LibrarySnapshot()
        self.matcher = matcher or DescriptorMatcher()
        self.prompter = prompter
        self.post_install = post_install or LoggingPostInstall()
        self.handler = handler
        self.dependencies = dependencies
        self.slot = SessionSlot()

    # ----------------------
    # planejamento (sem mutação)
    # ----------------------
    def plan(self,
             project: Optional[str] = None,
             library: Union[str, Sequence[str], None] = None,
             lockfile=None,
             repos: Optional[Mapping[str, str]] = None,
             clean: bool = False,
             ignored: Iterable[str] = ()) -> RestorePlan:
        project = os.path.abspath(project or os.getcwd())
        if isinstance(library, str):
            library = [library]
        library = [os.path.abspath(p) for p in (library or default_library_paths(project))]

        manifest = read_lockfile(lockfile if lockfile is not None else lockfile_path(project))
        manifest = apply_overrides(manifest)
        repos = resolve_repos(repos, manifest)

        current = self.snapshot.snapshot(library)
        actions = diff(current, manifest.records)
        ignored = list(ignored) + config.get_list("ignored_packages")
        actions = filter_actions(
            actions,
            clean=clean,
            library_root=library[0],
            locate=lambda name: locate_package(name, library),
            ignored=ignored,
        )
        return RestorePlan(project, library, manifest, current, actions, repos)

    # ----------------------
    # restauração
    # ----------------------
    def restore(self,
                project: Optional[str] = None,
                library: Union[str, Sequence[str], None] = None,
                lockfile=None,
                repos: Optional[Mapping[str, str]] = None,
                clean: bool = False,
                confirm: bool = False,
                rebuild=None,
                ignored: Iterable[str] = (),
                recursive: Optional[bool] = None,
                verbose: Optional[bool] = None) -> RestoreOutcome:
        plan = self.plan(project, library, lockfile, repos, clean, ignored)
        utils.ensure_dir(plan.library[0])

        if not plan.actions:
            name = "biblioteca" if library is not None else "projeto"
            logger.info("* O %s já está sincronizado com o lockfile.", name)
            return RestoreOutcome(RestoreStatus.SYNCHRONIZED)

        context = PreflightContext(
            project=plan.project,
            library=plan.library[0],
            runtime_version=config.get("runtime_version") or plan.manifest.runtime_version,
        )
        check_preflight(plan.actions, plan.manifest.records, context)

        if verbose is None:
            verbose = bool(config.get("verbose"))
        if confirm or verbose:
            self.report_actions(plan.actions, plan.current, plan.manifest.records)

        if not confirm_actions(plan.actions, confirm, self.prompter):
            logger.info("* Operação abortada.")
            return RestoreOutcome(RestoreStatus.ABORTED, actions=plan.actions)

        if recursive is None:
            recursive = bool(config.get("recursive"))
        return self.run_actions(plan, rebuild=rebuild, recursive=recursive)

    def run_actions(self, plan: RestorePlan, rebuild=None, recursive: bool = True) -> RestoreOutcome:
        removes, installs = split_actions(plan.actions)
        target = plan.library[0]
        installer = self.installer or ArtifactInstaller(repos=plan.repos)

        with self.slot.scope(project=plan.project,
                             records=plan.manifest.records,
                             packages=list(plan.actions),
                             rebuild=rebuild,
                             recursive=recursive,
                             handler=self.handler) as session:
            # primeiro as remoções, só na biblioteca do projeto
            removed = []
            for name in removes:
                record = plan.current.get(name)
                if remove_package(target, name, record.version if record else None):
                    removed.append(name)

            resolver = DependencyResolver(session, self.matcher, plan.library, self.dependencies)
            result = resolver.resolve(installs)
            installed, failures = self._install(result, installer, target)

            repairs = detect_repairs(plan.manifest.records, installed)
            self.post_install.notify(list(installed))

        return RestoreOutcome(
            RestoreStatus.INSTALLED,
            actions=plan.actions,
            records=installed,
            removed=removed,
            failures=failures,
            conflicts=dict(result.conflicts),
            repairs=repairs,
            unresolved=list(result.unresolved),
        )

    def _install(self, result: ResolveResult, installer: Installer,
                 target: str) -> Tuple[RecordSet, Dict[str, InstallFailure]]:
        failures: Dict[str, InstallFailure] = {}
        for name, err in result.conflicts.items():
            if name in result.records:
                failures[name] = InstallFailure(name, str(err))

        installed: RecordSet = {}
        for name in install_order(result.records):
            if name in failures:
                continue
            record = result.records[name]
            blocked = [dep for dep in requirement_names(record) if dep in failures]
            if blocked:
                reason = f"dependência falhou: {', '.join(blocked)}"
                logger.error("Pulando %s: %s", name, reason)
                failures[name] = InstallFailure(name, reason, cascade=True)
                continue

            status = installer.install([record], target).get(name)
            if status is None or not status.installed:
                reason = status.reason if status is not None and status.reason else "falha desconhecida"
                failures[name] = InstallFailure(name, reason)
                continue
            installed[name] = status.record or record

        if failures:
            logger.error("%d pacote(s) não foram instalados: %s", len(failures), ", ".join(failures))
        return installed, failures

    def report_actions(self, actions: DiffResult, current: RecordSet, intended: RecordSet) -> None:
        lines = []
        for name, action in actions.items():
            old = current.get(name)
            new = intended.get(name)
            lhs = old.version if old else "*"
            rhs = "(remover)" if action is Action.REMOVE else (new.version if new else "*")
            lines.append(f"\t- {name}: [{lhs} -> {rhs}]")
        logger.info("Os seguintes pacotes serão atualizados:\n%s", "\n".join(lines))


def restore(**kwargs) -> RestoreOutcome:
    """Atalho: RestoreEngine().restore(...) com colaboradores padrão."""
    return RestoreEngine().restore(**kwargs)


__all__ = [
    "RestoreEngine", "RestoreOutcome", "RestorePlan", "RestoreStatus",
    "PostInstallHook", "LoggingPostInstall", "detect_repairs", "restore",
]
