"""Integration tests for CLI commands."""

import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from extsync.cli.main import app


@pytest.fixture
def runner():
    """Get a CLI test runner."""
    return CliRunner()


@pytest.fixture
def desired_file(temp_dir: Path):
    """Factory writing a desired extension list."""

    def _write(*extensions: tuple[str, str]) -> Path:
        path = temp_dir / "desired.json"
        path.write_text(json.dumps([{"id": i, "version": v} for i, v in extensions]))
        return path

    return _write


@pytest.fixture
def local_args(extensions_dir: Path, vsix_dir: Path) -> list[str]:
    """Options pointing the CLI at the test directories."""
    return [
        "--extensions-dir",
        str(extensions_dir),
        "--registry",
        f"file://{vsix_dir}",
        "--no-auto-update",
    ]


class TestVersionCommand:
    """Tests for 'extsync version' command."""

    def test_version_shows_version(self, runner: CliRunner):
        """Version command shows version."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "extsync 0.1.0" in result.output


class TestListCommand:
    """Tests for 'extsync list' command."""

    def test_list_empty(self, runner: CliRunner, extensions_dir: Path):
        """Reports when nothing is installed."""
        result = runner.invoke(app, ["list", "-d", str(extensions_dir)])

        assert result.exit_code == 0
        assert "No extensions installed" in result.output

    def test_list_shows_extensions(
        self, runner: CliRunner, extensions_dir: Path, install_extension
    ):
        """Shows installed extensions in a table."""
        install_extension("pub.a", "1.0.0")
        install_extension("vscode.git", "1.0.0", builtin=True)

        result = runner.invoke(app, ["list", "-d", str(extensions_dir)])

        assert result.exit_code == 0
        assert "Installed Extensions" in result.output
        assert "pub.a" in result.output
        assert "vscode.git" not in result.output

    def test_list_excludes(self, runner: CliRunner, extensions_dir: Path, install_extension):
        """Excluded extensions are not listed."""
        install_extension("pub.a", "1.0.0")

        result = runner.invoke(app, ["list", "-d", str(extensions_dir), "-x", "pub.*"])

        assert result.exit_code == 0
        assert "No extensions installed" in result.output

    def test_list_output_file(
        self, runner: CliRunner, extensions_dir: Path, install_extension, temp_dir: Path
    ):
        """Writes a desired list that round-trips through sync."""
        install_extension("pub.a", "1.0.0")
        output = temp_dir / "out.json"

        result = runner.invoke(app, ["list", "-d", str(extensions_dir), "-o", str(output)])

        assert result.exit_code == 0
        assert "Wrote 1 extension(s)" in result.output
        data = json.loads(output.read_text())
        assert data == [{"id": "pub.a", "name": "a", "publisher": "pub", "version": "1.0.0"}]


class TestDiffCommand:
    """Tests for 'extsync diff' command."""

    def test_diff_up_to_date(
        self, runner: CliRunner, local_args, install_extension, desired_file
    ):
        """Reports when nothing would change."""
        install_extension("pub.a", "1.0.0")
        path = desired_file(("pub.a", "1.0.0"))

        result = runner.invoke(app, ["diff", str(path), *local_args])

        assert result.exit_code == 0
        assert "Extensions are up to date" in result.output

    def test_diff_shows_changes(
        self, runner: CliRunner, local_args, install_extension, desired_file, extensions_dir
    ):
        """Lists pending changes without applying them."""
        install_extension("pub.a", "1.0.0")
        install_extension("pub.b", "1.0.0")
        path = desired_file(("pub.a", "2.0.0"), ("pub.c", "1.0.0"))

        result = runner.invoke(app, ["diff", str(path), *local_args])

        assert result.exit_code == 0
        assert "Pending Changes" in result.output
        assert "add" in result.output
        assert "update" in result.output
        assert "remove" in result.output
        assert "3 change(s), 0 unchanged" in result.output
        assert (extensions_dir / "pub.b-1.0.0").exists()

    def test_diff_invalid_list(self, runner: CliRunner, local_args, temp_dir: Path):
        """Invalid desired lists are reported."""
        path = temp_dir / "desired.json"
        path.write_text(json.dumps({"id": "pub.a"}))

        result = runner.invoke(app, ["diff", str(path), *local_args])

        assert result.exit_code == 1
        assert "must be a JSON array" in result.output

    def test_diff_missing_list(self, runner: CliRunner, local_args, temp_dir: Path):
        """A missing desired list is reported."""
        result = runner.invoke(app, ["diff", str(temp_dir / "nope.json"), *local_args])

        assert result.exit_code == 1
        assert "File not found" in result.output


class TestSyncCommand:
    """Tests for 'extsync sync' command."""

    def test_sync_installs(
        self, runner: CliRunner, local_args, make_vsix, desired_file, extensions_dir
    ):
        """Installs the desired extensions."""
        make_vsix("pub.a", "1.0.0")
        path = desired_file(("pub.a", "1.0.0"))

        result = runner.invoke(app, ["sync", str(path), "--no-progress", *local_args])

        assert result.exit_code == 0
        assert "Added pub.a@1.0.0" in result.output
        assert (extensions_dir / "pub.a-1.0.0" / "package.json").is_file()

    def test_sync_with_progress(self, runner: CliRunner, local_args, make_vsix, desired_file):
        """The progress display doesn't get in the way."""
        make_vsix("pub.a", "1.0.0")
        path = desired_file(("pub.a", "1.0.0"))

        result = runner.invoke(app, ["sync", str(path), *local_args])

        assert result.exit_code == 0
        assert "Added pub.a@1.0.0" in result.output

    def test_sync_up_to_date(
        self, runner: CliRunner, local_args, install_extension, desired_file
    ):
        """Reports when nothing needs doing."""
        install_extension("pub.a", "1.0.0")
        path = desired_file(("pub.a", "1.0.0"))

        result = runner.invoke(app, ["sync", str(path), "--no-progress", *local_args])

        assert result.exit_code == 0
        assert "Extensions are up to date" in result.output

    def test_sync_failure_exits_nonzero(
        self, runner: CliRunner, local_args, make_vsix, desired_file, extensions_dir
    ):
        """Failures are listed and the exit status is 1."""
        make_vsix("pub.a", "1.0.0")
        path = desired_file(("pub.a", "1.0.0"), ("pub.missing", "1.0.0"))

        result = runner.invoke(app, ["sync", str(path), "--no-progress", *local_args])

        assert result.exit_code == 1
        assert "Added pub.a@1.0.0" in result.output
        assert "Failed to add pub.missing" in result.output
        assert "1 succeeded, 1 failed" in result.output
        assert (extensions_dir / "pub.a-1.0.0").exists()

    def test_sync_exclude_option(
        self, runner: CliRunner, local_args, install_extension, desired_file, extensions_dir
    ):
        """Excluded extensions are not removed."""
        install_extension("pub.keep", "1.0.0")
        path = desired_file()

        result = runner.invoke(
            app, ["sync", str(path), "--no-progress", "-x", "pub.keep", *local_args]
        )

        assert result.exit_code == 0
        assert (extensions_dir / "pub.keep-1.0.0").exists()

    def test_sync_uses_config_file(
        self, runner: CliRunner, temp_dir: Path, extensions_dir, vsix_dir, make_vsix, desired_file
    ):
        """Settings are read from the config file."""
        config = temp_dir / "extsync.yaml"
        config.write_text(
            yaml.safe_dump(
                {
                    "extensions_dir": str(extensions_dir),
                    "registry": f"file://{vsix_dir}",
                    "auto_update_extensions": True,
                }
            )
        )
        make_vsix("pub.a", "1.0.0")
        make_vsix("pub.a", "1.1.0")
        path = desired_file(("pub.a", "1.0.0"))

        result = runner.invoke(app, ["sync", str(path), "--no-progress", "-c", str(config)])

        assert result.exit_code == 0
        assert "Added pub.a@1.1.0" in result.output
        assert (extensions_dir / "pub.a-1.1.0").exists()

    def test_sync_invalid_config(self, runner: CliRunner, temp_dir: Path, desired_file):
        """Invalid configuration is reported."""
        config = temp_dir / "extsync.yaml"
        config.write_text("timeout: -1\n")
        path = desired_file()

        result = runner.invoke(app, ["sync", str(path), "-c", str(config)])

        assert result.exit_code == 1
        assert "Invalid sync config" in result.output

    def test_sync_unsupported_registry(
        self, runner: CliRunner, extensions_dir: Path, desired_file
    ):
        """Unsupported registry URLs are reported."""
        path = desired_file()

        result = runner.invoke(
            app,
            ["sync", str(path), "-d", str(extensions_dir), "-r", "s3://bucket/ext"],
        )

        assert result.exit_code == 1
        assert "Unsupported registry protocol" in result.output
