"""Diff engine: classify desired and installed extensions.

Each desired extension is either added (not installed), updated (installed
at another version) or reserved (installed at the same version). Installed
extensions that are not desired, and don't match an exclusion pattern, are
removed.

With auto-update enabled, desired versions are first replaced by the
registry's latest version wherever the registry knows one.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from extsync.config.schemas import ExtensionRecord
from extsync.core.inventory import LocalInventory
from extsync.registry.base import ExtensionMeta, RegistryClient, RegistryError

logger = logging.getLogger(__name__)


@dataclass
class DiffResult:
    """Extensions to add, update and remove, plus those left as they are."""

    added: list[ExtensionRecord] = field(default_factory=list)
    updated: list[ExtensionRecord] = field(default_factory=list)
    removed: list[ExtensionRecord] = field(default_factory=list)
    reserved: list[ExtensionRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of extensions that need work."""
        return len(self.added) + len(self.updated) + len(self.removed)

    @property
    def is_empty(self) -> bool:
        return self.total == 0


class ExtensionDiffer:
    """Computes the DiffResult between a desired list and the local inventory."""

    def __init__(
        self,
        inventory: LocalInventory,
        registry: RegistryClient | None = None,
        auto_update: bool = False,
    ):
        """Initialize the differ.

        Args:
            inventory: Source of installed extensions
            registry: Registry queried for latest versions when auto-updating
            auto_update: Whether desired versions are bumped to the latest
        """
        self._inventory = inventory
        self._registry = registry
        self._auto_update = auto_update

    def _query_latest(self, extensions: Sequence[ExtensionRecord]) -> dict[str, ExtensionMeta]:
        """Fetch latest-version metadata, keyed by lowercased id.

        Registry failures are logged and yield no metadata.
        """
        if not self._auto_update or self._registry is None or not extensions:
            return {}

        try:
            found = self._registry.query_latest([ext.id for ext in extensions])
        except RegistryError as e:
            logger.warning("Could not query latest versions, keeping desired versions: %s", e)
            return {}
        return {key.lower(): meta for key, meta in found.items()}

    def compute_diff(
        self,
        desired: Iterable[ExtensionRecord],
        excluded_patterns: Iterable[str] = (),
    ) -> DiffResult:
        """Classify extensions into added, updated, removed and reserved.

        Desired records may be modified in place: auto-update overwrites their
        ``version`` and ``download_url``. Duplicate ids collapse into one entry,
        the last occurrence winning.

        Args:
            desired: Extensions that should end up installed
            excluded_patterns: Glob patterns protecting installed extensions
                from removal (they are still updated when desired)

        Returns:
            The classified DiffResult
        """
        unique: dict[str, ExtensionRecord] = {}
        for ext in desired:
            unique[ext.key] = ext
        wanted = list(unique.values())

        latest = self._query_latest(wanted)
        installed = {ext.key: ext for ext in self._inventory.list_installed()}

        result = DiffResult()
        for ext in wanted:
            meta = latest.get(ext.key)
            if meta is not None and meta.version and meta.download_url:
                if meta.version != ext.version:
                    logger.debug("Auto-update %s: %s -> %s", ext.id, ext.version, meta.version)
                ext.version = meta.version
                ext.download_url = meta.download_url

            local = installed.get(ext.key)
            if local is None:
                result.added.append(ext)
            elif local.version == ext.version:
                result.reserved.append(ext)
            else:
                result.updated.append(ext)

        for ext in self._inventory.list_installed(excluded_patterns):
            if ext.key not in unique:
                result.removed.append(ext)

        logger.info(
            "Diff: %d to add, %d to update, %d to remove, %d unchanged",
            len(result.added),
            len(result.updated),
            len(result.removed),
            len(result.reserved),
        )
        return result
