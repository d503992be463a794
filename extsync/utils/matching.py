"""Case-insensitive matching of extension ids against glob patterns."""

from collections.abc import Iterable
from fnmatch import fnmatchcase


def matches_pattern(extension_id: str, pattern: str) -> bool:
    """Check if an extension id matches a glob pattern, ignoring case.

    Args:
        extension_id: Full publisher-qualified id (e.g., "ms-python.python")
        pattern: Glob pattern (``*``, ``?`` and ``[seq]`` are supported)

    Returns:
        True if the whole id matches
    """
    return fnmatchcase(extension_id.lower(), pattern.strip().lower())


def matches_any(extension_id: str, patterns: Iterable[str]) -> bool:
    """Check if an extension id matches any of the given glob patterns."""
    return any(matches_pattern(extension_id, p) for p in patterns if p.strip())
