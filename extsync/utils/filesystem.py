"""Filesystem utilities for extsync."""

import atexit
import os
import shutil
import tempfile
import zipfile
from pathlib import Path

# Temp files handed out by create_temp_file and not yet released
_live_temp_files: set[Path] = set()


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def remove_directory(path: Path) -> bool:
    """Remove a directory and its contents.

    Args:
        path: Directory path to remove

    Returns:
        True if the directory was removed, False if it didn't exist
    """
    if not path.exists() and not path.is_symlink():
        return False
    if path.is_symlink() or path.is_file():
        path.unlink()
    else:
        shutil.rmtree(path)
    return True


def empty_directory(path: Path) -> Path:
    """Make sure a directory exists and contains nothing.

    Args:
        path: Directory to empty

    Returns:
        The directory path
    """
    if path.is_dir() and not path.is_symlink():
        for child in path.iterdir():
            remove_directory(child)
    else:
        remove_directory(path)
        ensure_directory(path)
    return path


def copy_directory_contents(src: Path, dest: Path) -> Path:
    """Copy everything inside ``src`` into ``dest``.

    Args:
        src: Source directory
        dest: Destination directory (created if missing)

    Returns:
        The destination directory
    """
    shutil.copytree(src, dest, dirs_exist_ok=True)
    return dest


def extract_zip(archive_path: Path, dest_dir: Path) -> Path:
    """Extract a zip archive to a destination directory.

    Args:
        archive_path: Path to the archive
        dest_dir: Destination directory

    Returns:
        The destination directory

    Raises:
        zipfile.BadZipFile: If the archive is corrupt
        ValueError: If the archive contains unsafe paths
    """
    dest_dir.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(archive_path) as archive:
        # Security: prevent path traversal
        for member in archive.namelist():
            member_path = Path(member)
            if member_path.is_absolute() or ".." in member_path.parts:
                raise ValueError(f"Unsafe path in archive: {member}")
        archive.extractall(dest_dir)

    return dest_dir


def create_temp_file(suffix: str = "") -> Path:
    """Create an empty, uniquely named temporary file.

    The file is deleted at interpreter exit unless released earlier with
    release_temp_file().

    Args:
        suffix: Filename suffix

    Returns:
        Path to the new file
    """
    fd, name = tempfile.mkstemp(suffix=suffix, prefix="extsync_")
    os.close(fd)
    path = Path(name)
    _live_temp_files.add(path)
    return path


def release_temp_file(path: Path) -> None:
    """Delete a temporary file created by create_temp_file()."""
    _live_temp_files.discard(path)
    path.unlink(missing_ok=True)


@atexit.register
def _cleanup_temp_files() -> None:
    for path in list(_live_temp_files):
        try:
            release_temp_file(path)
        except OSError:
            pass
