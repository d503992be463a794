"""Marketplace gallery registry client."""

from __future__ import annotations

import http.client
import json
import logging
import shutil
import ssl
from collections.abc import Iterable
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import HTTPSHandler, OpenerDirector, ProxyHandler, Request, build_opener

from extsync.config.schemas import DEFAULT_GALLERY_URL, ExtensionRecord
from extsync.errors import DownloadError
from extsync.registry.base import ExtensionMeta, RegistryClient, RegistryError
from extsync.registry.common import build_fallback_download_url, dict_items, get_vsix_download_url
from extsync.utils.filesystem import create_temp_file, release_temp_file

logger = logging.getLogger(__name__)


class FilterType:
    """Gallery query criteria types."""

    EXTENSION_NAME = 7
    TARGET = 8


class QueryFlags:
    """Gallery query flags."""

    INCLUDE_VERSIONS = 0x1
    INCLUDE_FILES = 0x2
    INCLUDE_ASSET_URI = 0x80
    INCLUDE_LATEST_VERSION_ONLY = 0x200


class GalleryRegistryClient(RegistryClient):
    """Registry client for a Marketplace-compatible extension gallery.

    Latest-version lookups go through the gallery's ``extensionquery``
    endpoint, in batches. Archives are downloaded from the URL the query
    returned or, failing that, from the publisher's direct asset endpoint.

    All requests honour an optional upstream HTTP/HTTPS proxy.
    """

    DEFAULT_TIMEOUT = 30  # seconds
    BATCH_SIZE = 50
    QUERY_API_VERSION = "3.0-preview.1"
    TARGET = "Microsoft.VisualStudio.Code"

    def __init__(
        self,
        url: str = DEFAULT_GALLERY_URL,
        proxy: str | None = None,
        timeout: int | None = None,
    ):
        """Initialize the gallery client.

        Args:
            url: Gallery API base URL (ending in ``/_apis/public/gallery/``)
            proxy: Optional upstream proxy URL for all transfers
            timeout: Request timeout in seconds (default: 30)
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise RegistryError(
                f"Invalid URL scheme: {parsed.scheme} (expected http or https)",
                url=url,
            )

        self._url = url.rstrip("/") + "/"
        self._proxy = proxy
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        self._opener = self._build_opener(proxy)

        logger.info("Initializing gallery client for %s (proxy=%s)", self._url, proxy or "none")

    @staticmethod
    def _build_opener(proxy: str | None) -> OpenerDirector:
        handlers: list[Any] = [HTTPSHandler(context=ssl.create_default_context())]
        if proxy:
            handlers.append(ProxyHandler({"http": proxy, "https": proxy}))
        else:
            # An empty mapping disables proxies picked up from the environment
            handlers.append(ProxyHandler({}))
        return build_opener(*handlers)

    @property
    def protocol(self) -> str:
        return "https"

    @property
    def base_url(self) -> str:
        """Get the gallery API base URL."""
        return self._url

    @property
    def proxy(self) -> str | None:
        """Get the configured proxy, if any."""
        return self._proxy

    def _make_request(self, request: Request) -> bytes:
        """Send a request and return the whole response body.

        Raises:
            RegistryError: If the request fails
        """
        url = request.full_url
        logger.debug("Making %s request to %s", request.get_method(), url)
        try:
            with self._opener.open(request, timeout=self._timeout) as response:
                result: bytes = response.read()
                logger.debug("Request successful, received %d bytes", len(result))
                return result
        except HTTPError as e:
            raise RegistryError(
                f"HTTP {e.code}: {e.reason} for {url}", url=url, status_code=e.code
            ) from e
        except URLError as e:
            raise RegistryError(f"Failed to connect to {url}: {e.reason}", url=url) from e
        except TimeoutError as e:
            raise RegistryError(f"Request timed out for {url}", url=url) from e
        except (http.client.HTTPException, OSError) as e:
            raise RegistryError(f"Request failed for {url}: {e}", url=url) from e

    def _query_batch(self, extension_ids: list[str]) -> dict[str, Any]:
        """Run one ``extensionquery`` request.

        Raises:
            RegistryError: If the request fails or the response is not JSON
        """
        criteria: list[dict[str, Any]] = [{"filterType": FilterType.TARGET, "value": self.TARGET}]
        criteria.extend(
            {"filterType": FilterType.EXTENSION_NAME, "value": ext_id} for ext_id in extension_ids
        )
        body = {
            "filters": [
                {
                    "criteria": criteria,
                    "pageNumber": 1,
                    "pageSize": len(extension_ids),
                }
            ],
            "flags": (
                QueryFlags.INCLUDE_VERSIONS
                | QueryFlags.INCLUDE_FILES
                | QueryFlags.INCLUDE_ASSET_URI
                | QueryFlags.INCLUDE_LATEST_VERSION_ONLY
            ),
        }

        query_url = f"{self._url}extensionquery"
        request = Request(
            query_url,
            data=json.dumps(body).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Accept": f"application/json;api-version={self.QUERY_API_VERSION}",
            },
        )
        content = self._make_request(request)
        try:
            data: dict[str, Any] = json.loads(content.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RegistryError(f"Invalid JSON from extension query: {e}", url=query_url) from e
        if not isinstance(data, dict):
            raise RegistryError(
                "Unexpected extension query response: not a JSON object", url=query_url
            )
        return data

    @staticmethod
    def _parse_query_result(data: dict[str, Any]) -> dict[str, ExtensionMeta]:
        """Turn an ``extensionquery`` response into metadata keyed by lowercased id.

        Nodes that don't have the expected shape are skipped.
        """
        found: dict[str, ExtensionMeta] = {}
        for result in dict_items(data.get("results")):
            for extension in dict_items(result.get("extensions")):
                publisher = extension.get("publisher")
                if isinstance(publisher, dict):
                    publisher = publisher.get("publisherName")
                name = extension.get("extensionName")
                if not isinstance(publisher, str) or not isinstance(name, str):
                    continue
                if not (publisher and name):
                    continue

                ext_id = f"{publisher}.{name}"
                versions = dict_items(extension.get("versions"))
                if not versions:
                    found[ext_id.lower()] = ExtensionMeta(id=ext_id, version=None)
                    continue

                latest = versions[0]
                version = latest.get("version")
                found[ext_id.lower()] = ExtensionMeta(
                    id=ext_id,
                    version=version if isinstance(version, str) else None,
                    download_url=get_vsix_download_url(latest),
                )
        return found

    def query_latest(self, extension_ids: Iterable[str]) -> dict[str, ExtensionMeta]:
        """Query the gallery for the latest version of each extension.

        A failing batch is logged and skipped; the remaining batches still
        contribute their results.
        """
        ids = list(dict.fromkeys(ext_id.lower() for ext_id in extension_ids))
        result: dict[str, ExtensionMeta] = {}
        if not ids:
            return result

        logger.info("Querying gallery for %d extension(s)", len(ids))
        for start in range(0, len(ids), self.BATCH_SIZE):
            batch = ids[start : start + self.BATCH_SIZE]
            try:
                data = self._query_batch(batch)
            except RegistryError as e:
                logger.warning("Extension query failed for %d extension(s): %s", len(batch), e)
                continue
            result.update(self._parse_query_result(data))

        logger.debug("Gallery returned metadata for %d extension(s)", len(result))
        return result

    def fetch(self, extension: ExtensionRecord) -> ExtensionRecord:
        """Download an extension's VSIX package from the gallery."""
        if not extension.download_url:
            extension.download_url = build_fallback_download_url(
                extension.publisher, extension.name, extension.version
            )
            logger.debug("No download URL for %s, using %s", extension.id, extension.download_url)

        url = extension.download_url
        try:
            archive = create_temp_file(suffix=f".{extension.id}.zip")
        except OSError as e:
            raise DownloadError(
                f"Cannot create temporary file for {extension.id}: {e}",
                extension_id=extension.id,
                url=url,
            ) from e

        logger.info("Downloading %s from %s", extension, url)
        try:
            with self._opener.open(Request(url), timeout=self._timeout) as response:
                with open(archive, "wb") as f:
                    shutil.copyfileobj(response, f)
        except HTTPError as e:
            release_temp_file(archive)
            raise DownloadError(
                f"HTTP {e.code}: {e.reason} downloading {extension.id}",
                extension_id=extension.id,
                url=url,
            ) from e
        except (URLError, http.client.HTTPException, OSError) as e:
            release_temp_file(archive)
            reason = e.reason if isinstance(e, URLError) else e
            raise DownloadError(
                f"Failed to download {extension.id} from {url}: {reason}",
                extension_id=extension.id,
                url=url,
            ) from e

        extension.archive_path = archive
        logger.debug("Downloaded %s to %s", extension.id, archive)
        return extension
