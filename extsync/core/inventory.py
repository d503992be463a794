"""Local inventory of installed extensions."""

import logging
from collections.abc import Iterable
from pathlib import Path

from extsync.config.parser import ConfigError, load_extension_manifest
from extsync.config.schemas import ExtensionRecord
from extsync.core.obsolete import ObsoleteLedgerManager
from extsync.utils.matching import matches_any
from extsync.utils.version import version_key

logger = logging.getLogger(__name__)


class LocalInventory:
    """Reads the extensions installed in an extensions directory.

    Every subdirectory holding a valid ``package.json`` is an installed
    extension, except built-ins and directories the obsolete ledger flags
    for removal. When several directories hold the same extension, the
    highest version is reported; find_all_by_id() returns every copy.

    The directory is re-read on every call; nothing is cached.
    """

    def __init__(self, extensions_dir: Path, ledger: ObsoleteLedgerManager | None = None):
        """Initialize the inventory.

        Args:
            extensions_dir: Directory holding one subdirectory per extension
            ledger: Obsolete ledger used to hide extensions pending removal
        """
        self._extensions_dir = extensions_dir
        self._ledger = ledger

    @property
    def extensions_dir(self) -> Path:
        """Get the extensions directory."""
        return self._extensions_dir

    def _scan_all(self) -> dict[str, list[ExtensionRecord]]:
        """Read every installed extension directory, grouped by lowercased id.

        Each group is ordered highest version first.
        """
        if not self._extensions_dir.is_dir():
            logger.debug("Extensions directory %s does not exist", self._extensions_dir)
            return {}

        obsolete = self._ledger.obsolete_directories() if self._ledger else set()
        installed: dict[str, list[ExtensionRecord]] = {}

        for child in sorted(self._extensions_dir.iterdir()):
            if not child.is_dir() or child.name.startswith("."):
                continue
            if child.name in obsolete:
                logger.debug("Skipping %s (flagged obsolete)", child.name)
                continue

            try:
                manifest = load_extension_manifest(child)
            except ConfigError as e:
                logger.debug("Skipping %s: %s", child.name, e)
                continue

            if manifest.is_builtin:
                continue

            record = ExtensionRecord(
                publisher=manifest.publisher,
                name=manifest.name,
                version=manifest.version,
                install_path=child,
            )
            installed.setdefault(record.key, []).append(record)

        for records in installed.values():
            records.sort(key=lambda r: version_key(r.version), reverse=True)
        return installed

    def _scan(self) -> dict[str, ExtensionRecord]:
        """Read installed extensions, keyed by lowercased id (highest version wins)."""
        return {key: records[0] for key, records in self._scan_all().items()}

    def list_installed(self, excluded_patterns: Iterable[str] = ()) -> list[ExtensionRecord]:
        """List installed extensions.

        Args:
            excluded_patterns: Glob patterns of ids to leave out (case-insensitive)

        Returns:
            Installed extensions, sorted by directory name
        """
        patterns = list(excluded_patterns)
        return [ext for ext in self._scan().values() if not matches_any(ext.id, patterns)]

    def find_by_id(self, extension_id: str) -> ExtensionRecord | None:
        """Find an installed extension by id (case-insensitive)."""
        return self._scan().get(extension_id.lower())

    def find_all_by_id(self, extension_id: str) -> list[ExtensionRecord]:
        """Find every installed copy of an extension, highest version first."""
        return self._scan_all().get(extension_id.lower(), [])

    def default_install_path(self, extension: ExtensionRecord) -> Path:
        """Get the directory an extension version installs into."""
        return self._extensions_dir / extension.directory_name

    def resolve_install_path(self, extension: ExtensionRecord) -> Path:
        """Get the actual directory of an installed extension.

        Prefers the directory the extension is installed in, which may differ
        from its computed default; falls back to the default.
        """
        installed = self.find_by_id(extension.id)
        if installed is not None and installed.install_path is not None:
            return installed.install_path
        return self.default_install_path(extension)
