"""Extension package installation and removal.

An extension archive (VSIX) is a zip file whose payload sits in a single
top-level ``extension/`` directory. Installing extracts the archive into a
temporary directory, empties the target install directory, then copies the
payload into it. This is not crash-atomic: an interrupted copy leaves a
partially filled directory, which the next sync replaces.
"""

import logging
import tempfile
import zipfile
from pathlib import Path

from extsync.config.schemas import ExtensionRecord
from extsync.core.inventory import LocalInventory
from extsync.errors import ExtractError, StateError, UninstallError
from extsync.utils.filesystem import copy_directory_contents, empty_directory, extract_zip, remove_directory

logger = logging.getLogger("extsync.installer")

PAYLOAD_DIRECTORY = "extension"


class ExtensionInstaller:
    """Installs extension archives into, and removes them from, the inventory's directory."""

    def __init__(self, inventory: LocalInventory):
        """Initialize the installer.

        Args:
            inventory: Inventory used to locate installed extensions
        """
        self.inventory = inventory

    def install(self, extension: ExtensionRecord, target_dir: Path | None = None) -> ExtensionRecord:
        """Extract a downloaded archive into an install directory.

        Args:
            extension: Extension with ``archive_path`` set
            target_dir: Install directory (defaults to the extension's
                default directory in the inventory)

        Returns:
            The installed extension

        Raises:
            StateError: If the extension has not been downloaded
            ExtractError: If the archive is corrupt or can't be copied into place
        """
        if extension.archive_path is None:
            raise StateError(
                f"Cannot install {extension.id}: no archive downloaded",
                extension_id=extension.id,
            )

        if target_dir is None:
            target_dir = self.inventory.default_install_path(extension)

        logger.info("Installing %s into %s", extension, target_dir)
        with tempfile.TemporaryDirectory(
            prefix="extsync_", suffix=f".{extension.id}", ignore_cleanup_errors=True
        ) as tmp:
            try:
                extract_zip(extension.archive_path, Path(tmp))
            except (zipfile.BadZipFile, ValueError, OSError) as e:
                raise ExtractError(
                    f"Failed to extract {extension.id}: {e}",
                    extension_id=extension.id,
                ) from e

            payload = Path(tmp) / PAYLOAD_DIRECTORY
            if not payload.is_dir():
                raise ExtractError(
                    f"Failed to extract {extension.id}: archive has no "
                    f"'{PAYLOAD_DIRECTORY}' directory",
                    extension_id=extension.id,
                )

            try:
                empty_directory(target_dir)
                copy_directory_contents(payload, target_dir)
            except OSError as e:
                raise ExtractError(
                    f"Failed to install {extension.id} into {target_dir}: {e}",
                    extension_id=extension.id,
                ) from e

        extension.install_path = target_dir
        logger.debug("Installed %s", extension)
        return extension

    def uninstall(self, extension: ExtensionRecord) -> ExtensionRecord:
        """Remove an extension's install directory.

        Older copies of the extension left in other directories are removed
        too. Removing an extension that isn't there succeeds.

        Args:
            extension: Extension to remove

        Returns:
            The removed extension

        Raises:
            UninstallError: If the directory can't be removed
        """
        path = self.inventory.resolve_install_path(extension)
        paths = [path]
        for copy in self.inventory.find_all_by_id(extension.id):
            if copy.install_path is not None and copy.install_path not in paths:
                paths.append(copy.install_path)

        logger.info("Uninstalling %s from %s", extension.id, path)
        for target in paths:
            try:
                if not remove_directory(target):
                    logger.debug("%s was not installed at %s", extension.id, target)
            except OSError as e:
                raise UninstallError(
                    f"Failed to uninstall {extension.id}: {e}",
                    extension_id=extension.id,
                    path=str(target),
                ) from e
            if target != path:
                logger.debug("Removed older copy of %s at %s", extension.id, target)
        return extension
