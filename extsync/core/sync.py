"""Extension synchronization pipeline.

This module contains the ExtensionSynchronizer which converges the installed
extensions towards a desired list. It diffs the two, then runs three stages
strictly in order:

1. add: download, install
2. update: download, uninstall the installed version, install
3. remove: uninstall

Extensions are processed one at a time. A failure only fails that extension;
every stage always reports which extensions succeeded and which failed.
Finally the obsolete ledger is brought in line with what succeeded.
"""

import logging
from collections.abc import Callable, Iterable
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Protocol

from extsync.config.schemas import ExtensionRecord, SyncConfig
from extsync.core.diff import DiffResult, ExtensionDiffer
from extsync.core.installer import ExtensionInstaller
from extsync.core.inventory import LocalInventory
from extsync.core.obsolete import LedgerUpdate, ObsoleteLedgerManager
from extsync.registry.base import RegistryClient
from extsync.registry.factory import create_registry_client
from extsync.utils.filesystem import release_temp_file

logger = logging.getLogger("extsync.sync")


class ProgressReporter(Protocol):
    """Receives progress of a sync run."""

    def show_step(self, message: str, current: int, total: int) -> None: ...

    def clear(self) -> None: ...


@dataclass
class SyncOutcome:
    """Result of one pipeline stage."""

    succeeded: list[ExtensionRecord] = field(default_factory=list)
    failed: list[ExtensionRecord] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def error_for(self, extension: ExtensionRecord) -> str | None:
        """Get the error message recorded for a failed extension."""
        return self.errors.get(extension.key)


@dataclass
class SyncResult:
    """Result of a whole sync run."""

    added: SyncOutcome = field(default_factory=SyncOutcome)
    updated: SyncOutcome = field(default_factory=SyncOutcome)
    removed: SyncOutcome = field(default_factory=SyncOutcome)
    ledger: LedgerUpdate | None = None

    @property
    def success_count(self) -> int:
        return len(self.added.succeeded) + len(self.updated.succeeded) + len(self.removed.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.added.failed) + len(self.updated.failed) + len(self.removed.failed)

    @property
    def all_successful(self) -> bool:
        return self.failure_count == 0


class _Progress:
    """Step counter shared by all stages of one run."""

    def __init__(self, total: int, reporter: ProgressReporter | None):
        self.total = total
        self.current = 0
        self._reporter = reporter

    def advance(self) -> None:
        self.current += 1

    def report(self, message: str) -> None:
        if self._reporter is not None:
            self._reporter.show_step(message, self.current, self.total)

    def clear(self) -> None:
        if self._reporter is not None:
            self._reporter.clear()


StageStep = Callable[[ExtensionRecord, _Progress, ExitStack], None]


class ExtensionSynchronizer:
    """Converges installed extensions towards a desired list.

    All collaborators are injected; use from_config() to build the standard
    set from an extsync.yaml configuration.
    """

    def __init__(
        self,
        inventory: LocalInventory,
        registry: RegistryClient,
        installer: ExtensionInstaller | None = None,
        ledger: ObsoleteLedgerManager | None = None,
        auto_update: bool = False,
        excluded_patterns: Iterable[str] = (),
        reporter: ProgressReporter | None = None,
    ):
        """Initialize the synchronizer.

        Args:
            inventory: Installed extensions
            registry: Registry used for latest-version queries and downloads
            installer: Installer (defaults to one bound to ``inventory``)
            ledger: Obsolete ledger to reconcile after each run
            auto_update: Whether desired versions are bumped to the latest
            excluded_patterns: Glob patterns of extensions never removed
            reporter: Receives progress when a run asks for it
        """
        self.inventory = inventory
        self.registry = registry
        self.installer = installer or ExtensionInstaller(inventory)
        self.ledger = ledger
        self.auto_update = auto_update
        self.excluded_patterns = list(excluded_patterns)
        self.reporter = reporter
        self._differ = ExtensionDiffer(inventory, registry, auto_update=auto_update)

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        reporter: ProgressReporter | None = None,
    ) -> "ExtensionSynchronizer":
        """Build a synchronizer from sync configuration.

        Args:
            config: Parsed sync configuration
            reporter: Optional progress reporter

        Returns:
            A ready-to-use ExtensionSynchronizer
        """
        ledger = ObsoleteLedgerManager(config.obsolete_path)
        inventory = LocalInventory(config.extensions_dir, ledger)
        registry = create_registry_client(config.registry, proxy=config.proxy, timeout=config.timeout)
        return cls(
            inventory,
            registry,
            ledger=ledger,
            auto_update=config.auto_update_extensions,
            excluded_patterns=config.excluded_extensions,
            reporter=reporter,
        )

    def compute_diff(self, desired: Iterable[ExtensionRecord]) -> DiffResult:
        """Classify the desired extensions against the installed ones."""
        return self._differ.compute_diff(desired, self.excluded_patterns)

    def sync(self, desired: Iterable[ExtensionRecord], show_progress: bool = False) -> SyncResult:
        """Add, update and remove extensions until the desired list is installed.

        Args:
            desired: Extensions that should end up installed
            show_progress: Whether to send progress to the reporter

        Returns:
            SyncResult with per-stage outcomes
        """
        diff = self.compute_diff(desired)
        progress = _Progress(diff.total, self.reporter if show_progress else None)

        logger.info("Starting sync of %d extension(s)", diff.total)
        result = SyncResult()
        result.added = self._run_stage("add", diff.added, self._add_extension, progress)
        result.updated = self._run_stage("update", diff.updated, self._update_extension, progress)
        result.removed = self._run_stage("remove", diff.removed, self._remove_extension, progress)
        progress.clear()

        if self.ledger is not None:
            result.ledger = self.ledger.reconcile(
                added=result.added.succeeded,
                updated=result.updated.succeeded,
                removed=result.removed.succeeded,
            )

        logger.info(
            "Sync complete: %d succeeded, %d failed",
            result.success_count,
            result.failure_count,
        )
        return result

    def _run_stage(
        self,
        action: str,
        extensions: list[ExtensionRecord],
        step: StageStep,
        progress: _Progress,
    ) -> SyncOutcome:
        """Run one stage over its extensions, one at a time."""
        outcome = SyncOutcome()
        if extensions:
            logger.info("Stage %s: %d extension(s)", action, len(extensions))

        for ext in extensions:
            progress.advance()
            try:
                with ExitStack() as stack:
                    step(ext, progress, stack)
            except Exception as e:
                logger.error("Failed to %s %s: %s", action, ext.id, e)
                logger.debug("Failure details for %s", ext.id, exc_info=True)
                outcome.failed.append(ext)
                outcome.errors[ext.key] = str(e)
            else:
                outcome.succeeded.append(ext)
        return outcome

    def _download(self, extension: ExtensionRecord, stack: ExitStack) -> ExtensionRecord:
        """Download an archive, scheduling its deletion when the item finishes."""
        downloaded = self.registry.fetch(extension)
        stack.callback(self._release_archive, downloaded)
        return downloaded

    @staticmethod
    def _release_archive(extension: ExtensionRecord) -> None:
        if extension.archive_path is not None:
            release_temp_file(extension.archive_path)
            extension.archive_path = None

    def _add_extension(self, ext: ExtensionRecord, progress: _Progress, stack: ExitStack) -> None:
        progress.report(f"Downloading extension: {ext.id}")
        downloaded = self._download(ext, stack)

        progress.report(f"Installing extension: {ext.id}")
        self.installer.install(downloaded, self.inventory.default_install_path(downloaded))

    def _update_extension(self, ext: ExtensionRecord, progress: _Progress, stack: ExitStack) -> None:
        progress.report(f"Downloading extension: {ext.id}")
        downloaded = self._download(ext, stack)

        progress.report(f"Removing outdated extension: {ext.id}")
        self.installer.uninstall(downloaded)

        progress.report(f"Installing extension: {ext.id}")
        self.installer.install(downloaded, self.inventory.default_install_path(downloaded))

    def _remove_extension(self, ext: ExtensionRecord, progress: _Progress, stack: ExitStack) -> None:
        progress.report(f"Uninstalling extension: {ext.id}")
        self.installer.uninstall(ext)
