"""Registry client factory."""

import logging
from urllib.parse import urlparse

from extsync.registry.base import RegistryClient
from extsync.registry.local import LocalRegistryClient

logger = logging.getLogger(__name__)


class UnsupportedProtocolError(Exception):
    """Error when a registry URL uses an unsupported protocol."""

    def __init__(self, protocol: str, url: str):
        self.protocol = protocol
        self.url = url
        super().__init__(f"Unsupported registry protocol: {protocol} (in {url})")


def create_registry_client(
    url: str,
    proxy: str | None = None,
    timeout: int | None = None,
) -> RegistryClient:
    """Create a registry client for the given URL.

    Args:
        url: Registry URL (https:// gallery, file:// VSIX directory, or plain path)
        proxy: Optional upstream proxy for network registries
        timeout: Optional request timeout in seconds for network registries

    Returns:
        Appropriate RegistryClient instance

    Raises:
        UnsupportedProtocolError: If the protocol is not supported
    """
    logger.debug("Creating registry client for URL: %s", url)

    if url.startswith("file:"):
        logger.info("Creating local registry client for %s", url)
        return LocalRegistryClient(url)

    parsed = urlparse(url)
    protocol = parsed.scheme.lower()

    # Single-letter schemes are Windows drive letters
    if protocol == "" or len(protocol) == 1:
        logger.info("Creating local registry client for %s", url)
        return LocalRegistryClient(url)
    elif protocol in ("http", "https"):
        from extsync.registry.gallery import GalleryRegistryClient

        logger.info("Creating gallery registry client for %s", url)
        return GalleryRegistryClient(url, proxy=proxy, timeout=timeout)
    else:
        raise UnsupportedProtocolError(protocol, url)
