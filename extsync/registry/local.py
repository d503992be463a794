"""Local file system registry client."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from extsync.config.schemas import ExtensionRecord
from extsync.errors import DownloadError
from extsync.registry.base import ExtensionMeta, RegistryClient, RegistryError
from extsync.registry.common import parse_vsix_filename
from extsync.utils.filesystem import create_temp_file, release_temp_file
from extsync.utils.version import find_latest_version

logger = logging.getLogger(__name__)


def file_url_to_path(url: str) -> Path:
    """Parse a file URL (``file:///abs``, ``file:rel``) or bare path to a Path."""
    if url.startswith("file://"):
        parsed = urlparse(url)
        return Path(url2pathname(unquote(parsed.path)))
    elif url.startswith("file:"):
        return Path(url[5:]).resolve()
    return Path(url).resolve()


class LocalRegistryClient(RegistryClient):
    """Registry client for a directory of VSIX archives.

    Archives must be named ``publisher.name-version.vsix``; the highest
    version present for an id is its latest version. Useful for offline
    mirrors of the gallery.

    URL format:
    - file:///path/to/mirror (absolute path)
    - file:../relative/path (relative path)
    """

    def __init__(self, url: str):
        """Initialize the local registry client.

        Args:
            url: Local file URL (file:// or file:) or plain path
        """
        self._url = url
        self._path = file_url_to_path(url)

        logger.info("Initializing local registry client for %s", self._path)

    @property
    def protocol(self) -> str:
        return "file"

    @property
    def path(self) -> Path:
        """Get the local directory this client points to."""
        return self._path

    def _scan(self) -> dict[str, dict[str, Path]]:
        """Index the archives in the registry directory.

        Returns:
            Mapping of lowercased id to {version: archive path}

        Raises:
            RegistryError: If the directory doesn't exist
        """
        if not self._path.is_dir():
            raise RegistryError(f"Registry directory not found: {self._path}", url=self._url)

        index: dict[str, dict[str, Path]] = {}
        for archive in sorted(self._path.iterdir()):
            if not archive.is_file():
                continue
            info = parse_vsix_filename(archive.name)
            if info is None:
                logger.debug("Skipping unrecognized file %s", archive.name)
                continue
            index.setdefault(info["id"].lower(), {})[info["version"]] = archive
        return index

    def query_latest(self, extension_ids: Iterable[str]) -> dict[str, ExtensionMeta]:
        """Look up the highest version available for each extension."""
        try:
            index = self._scan()
        except RegistryError as e:
            logger.warning("Extension query failed: %s", e)
            return {}

        result: dict[str, ExtensionMeta] = {}
        for ext_id in extension_ids:
            versions = index.get(ext_id.lower())
            if not versions:
                continue
            latest = find_latest_version(list(versions))
            if latest is None:
                continue
            result[ext_id.lower()] = ExtensionMeta(
                id=ext_id,
                version=latest,
                download_url=versions[latest].resolve().as_uri(),
            )
        return result

    def _find_archive(self, extension: ExtensionRecord) -> Path:
        """Locate the archive for an exact extension version.

        Raises:
            DownloadError: If no archive matches
        """
        if extension.download_url:
            return file_url_to_path(extension.download_url)

        try:
            index = self._scan()
        except RegistryError as e:
            raise DownloadError(str(e), extension_id=extension.id) from e

        archive = index.get(extension.key, {}).get(extension.version)
        if archive is None:
            raise DownloadError(
                f"No archive for {extension} in {self._path}",
                extension_id=extension.id,
            )
        extension.download_url = archive.resolve().as_uri()
        return archive

    def fetch(self, extension: ExtensionRecord) -> ExtensionRecord:
        """Copy an extension archive into a process-scoped temp file."""
        source = self._find_archive(extension)

        try:
            archive = create_temp_file(suffix=f".{extension.id}.zip")
        except OSError as e:
            raise DownloadError(
                f"Cannot create temporary file for {extension.id}: {e}",
                extension_id=extension.id,
            ) from e

        logger.info("Copying %s from %s", extension, source)
        try:
            shutil.copyfile(source, archive)
        except OSError as e:
            release_temp_file(archive)
            raise DownloadError(
                f"Failed to copy {extension.id} from {source}: {e}",
                extension_id=extension.id,
                url=extension.download_url,
            ) from e

        extension.archive_path = archive
        return extension
