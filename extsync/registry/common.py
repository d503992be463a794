"""Shared helpers for registry clients.

This module provides:
- Marketplace gallery URL construction
- Download URL extraction from gallery query results
- Archive filename parsing for local registries
"""

import re
from typing import Any

VSIX_ASSET_TYPE = "Microsoft.VisualStudio.Services.VSIXPackage"
VSIX_SUFFIX = ".vsix"


def dict_items(value: Any) -> list[dict[str, Any]]:
    """Get the object items of a JSON array, or nothing if it isn't an array."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def build_fallback_download_url(publisher: str, name: str, version: str) -> str:
    """Build the direct asset URL of an extension version.

    Used when the gallery query did not provide a download URL.

    Args:
        publisher: Publisher name
        name: Extension name (without publisher)
        version: Exact version

    Returns:
        Download URL for the VSIX package
    """
    return (
        f"https://{publisher}.gallery.vsassets.io/_apis/public/gallery/"
        f"publisher/{publisher}/extension/{name}/{version}/"
        f"assetbyname/{VSIX_ASSET_TYPE}"
    )


def get_vsix_download_url(version_meta: dict[str, Any]) -> str | None:
    """Find the VSIX download URL in a gallery version entry.

    Args:
        version_meta: One item of an extension's ``versions`` array

    Returns:
        The package URL, or None if the entry has no usable asset
    """
    for file_meta in dict_items(version_meta.get("files")):
        source = file_meta.get("source")
        if file_meta.get("assetType") == VSIX_ASSET_TYPE and isinstance(source, str) and source:
            return source

    asset_uri = version_meta.get("assetUri") or version_meta.get("fallbackAssetUri")
    if isinstance(asset_uri, str) and asset_uri:
        return f"{asset_uri.rstrip('/')}/{VSIX_ASSET_TYPE}"
    return None


def parse_vsix_filename(filename: str) -> dict[str, str] | None:
    """Parse extension id and version from a ``publisher.name-version.vsix`` filename.

    Args:
        filename: The archive filename (not full path)

    Returns:
        Dict with 'id' and 'version' keys, or None if the name doesn't match
    """
    if not filename.lower().endswith(VSIX_SUFFIX):
        return None
    basename = filename[: -len(VSIX_SUFFIX)]

    match = re.match(r"^(?P<id>[^.]+\..+?)-v?(?P<version>\d+\.\d+\.\d+.*)$", basename)
    if not match:
        return None
    return {"id": match.group("id"), "version": match.group("version")}
