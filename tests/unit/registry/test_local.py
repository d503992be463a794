"""Tests for extsync.registry.local module."""

from pathlib import Path

import pytest

from extsync.errors import DownloadError
from extsync.registry.local import LocalRegistryClient, file_url_to_path
from extsync.utils.filesystem import release_temp_file


class TestFileUrlToPath:
    """Tests for file_url_to_path function."""

    def test_absolute_file_url(self):
        """Parses file:///abs URLs."""
        assert file_url_to_path("file:///srv/mirror") == Path("/srv/mirror")

    def test_relative_file_url(self, temp_dir: Path, monkeypatch):
        """Resolves file:rel against the working directory."""
        monkeypatch.chdir(temp_dir)

        assert file_url_to_path("file:mirror") == (temp_dir / "mirror").resolve()

    def test_plain_path(self, temp_dir: Path):
        """Accepts plain paths."""
        assert file_url_to_path(str(temp_dir)) == temp_dir.resolve()


class TestLocalRegistryClient:
    """Tests for LocalRegistryClient."""

    def test_protocol_and_path(self, vsix_dir: Path):
        """Exposes the file protocol and its directory."""
        client = LocalRegistryClient(f"file://{vsix_dir}")

        assert client.protocol == "file"
        assert client.path == vsix_dir

    def test_query_latest_picks_highest_version(self, local_registry, make_vsix):
        """The highest archived version is the latest."""
        make_vsix("pub.ext", "1.2.0")
        make_vsix("pub.ext", "1.10.0")
        make_vsix("pub.ext", "1.9.3")

        result = local_registry.query_latest(["Pub.Ext"])

        assert set(result) == {"pub.ext"}
        assert result["pub.ext"].version == "1.10.0"
        assert result["pub.ext"].download_url.endswith("pub.ext-1.10.0.vsix")

    def test_query_latest_skips_unknown(self, local_registry, make_vsix):
        """Ids with no archive are left out."""
        make_vsix("pub.ext", "1.0.0")

        assert local_registry.query_latest(["other.ext"]) == {}

    def test_query_latest_ignores_other_files(self, local_registry, vsix_dir: Path):
        """Files that aren't named like archives are ignored."""
        (vsix_dir / "README.txt").write_text("hello")
        (vsix_dir / "pub.ext-1.0.0.vsix").mkdir()

        assert local_registry.query_latest(["pub.ext"]) == {}

    def test_query_latest_missing_directory(self, temp_dir: Path):
        """A missing directory yields no metadata."""
        client = LocalRegistryClient(f"file://{temp_dir / 'nope'}")

        assert client.query_latest(["pub.ext"]) == {}

    def test_fetch_by_version(self, local_registry, make_vsix, ext):
        """Copies the matching archive into a temp file."""
        source = make_vsix("pub.ext", "1.0.0")
        record = ext("pub.ext", "1.0.0")

        result = local_registry.fetch(record)

        try:
            assert result.archive_path is not None
            assert result.archive_path != source
            assert result.archive_path.read_bytes() == source.read_bytes()
            assert result.download_url == source.resolve().as_uri()
        finally:
            release_temp_file(result.archive_path)

    def test_fetch_by_download_url(self, local_registry, make_vsix, ext):
        """A known download URL is used as is."""
        source = make_vsix("pub.ext", "2.0.0")
        record = ext("pub.ext", "1.0.0", download_url=source.resolve().as_uri())

        result = local_registry.fetch(record)

        try:
            assert result.archive_path.read_bytes() == source.read_bytes()
        finally:
            release_temp_file(result.archive_path)

    def test_fetch_missing_version(self, local_registry, make_vsix, ext):
        """Raises DownloadError when no archive has the version."""
        make_vsix("pub.ext", "1.0.0")

        with pytest.raises(DownloadError, match="No archive for pub.ext@2.0.0"):
            local_registry.fetch(ext("pub.ext", "2.0.0"))

    def test_fetch_missing_file(self, local_registry, vsix_dir: Path, ext):
        """Raises DownloadError when the download URL points nowhere."""
        record = ext("pub.ext", "1.0.0", download_url=(vsix_dir / "gone.vsix").as_uri())

        with pytest.raises(DownloadError, match="Failed to copy pub.ext"):
            local_registry.fetch(record)

        assert record.archive_path is None

    def test_fetch_missing_directory(self, temp_dir: Path, ext):
        """Raises DownloadError when the registry directory is gone."""
        client = LocalRegistryClient(f"file://{temp_dir / 'nope'}")

        with pytest.raises(DownloadError, match="Registry directory not found"):
            client.fetch(ext("pub.ext", "1.0.0"))
