"""Abstract base class for registry clients."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

from extsync.config.schemas import ExtensionRecord


@dataclass
class ExtensionMeta:
    """Latest-version metadata for an extension in a registry."""

    id: str
    version: str | None
    download_url: str | None = None


class RegistryError(Exception):
    """Error querying a registry."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class RegistryClient(ABC):
    """Abstract base class for registry clients.

    Registry clients answer latest-version queries and download extension
    archives from a source (the Marketplace gallery, a local directory, etc.).
    """

    @property
    @abstractmethod
    def protocol(self) -> str:
        """Get the protocol this client handles (e.g., "file", "https")."""
        ...

    @abstractmethod
    def query_latest(self, extension_ids: Iterable[str]) -> dict[str, ExtensionMeta]:
        """Look up the latest version of each extension.

        Partial results are valid: ids the registry does not know, or whose
        lookup failed, are simply absent from the result.

        Args:
            extension_ids: Publisher-qualified extension ids

        Returns:
            Mapping of lowercased extension id to its metadata
        """
        ...

    @abstractmethod
    def fetch(self, extension: ExtensionRecord) -> ExtensionRecord:
        """Download an extension archive to a process-scoped temp file.

        Args:
            extension: Extension to download; ``download_url`` may be filled in

        Returns:
            The same record with ``archive_path`` set

        Raises:
            DownloadError: If the transfer fails or the temp file can't be created
        """
        ...
