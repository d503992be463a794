"""Shared fixtures for extsync tests."""

import json
import shutil
import tempfile
import zipfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from extsync.config.schemas import ExtensionRecord
from extsync.core.inventory import LocalInventory
from extsync.core.obsolete import ObsoleteLedgerManager
from extsync.registry.local import LocalRegistryClient


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory."""
    path = Path(tempfile.mkdtemp(prefix="extsync_test_"))
    yield path
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture
def extensions_dir(temp_dir: Path) -> Path:
    """Create an empty extensions directory."""
    path = temp_dir / "extensions"
    path.mkdir()
    return path


@pytest.fixture
def vsix_dir(temp_dir: Path) -> Path:
    """Create an empty directory for VSIX archives."""
    path = temp_dir / "vsix"
    path.mkdir()
    return path


@pytest.fixture
def install_extension(extensions_dir: Path) -> Callable[..., Path]:
    """Factory that installs a fake extension into the extensions directory."""

    def _install(
        ext_id: str,
        version: str,
        builtin: bool = False,
        directory_name: str | None = None,
    ) -> Path:
        publisher, name = ext_id.split(".", 1)
        ext_dir = extensions_dir / (directory_name or f"{ext_id}-{version}")
        ext_dir.mkdir(parents=True, exist_ok=True)
        manifest = {"name": name, "publisher": publisher, "version": version}
        if builtin:
            manifest["isBuiltin"] = True
        (ext_dir / "package.json").write_text(json.dumps(manifest))
        return ext_dir

    return _install


@pytest.fixture
def make_vsix(vsix_dir: Path) -> Callable[..., Path]:
    """Factory that builds a VSIX archive named ``publisher.name-version.vsix``."""

    def _make(
        ext_id: str,
        version: str,
        files: dict[str, str] | None = None,
        payload_dir: str = "extension",
    ) -> Path:
        publisher, name = ext_id.split(".", 1)
        archive = vsix_dir / f"{ext_id}-{version}.vsix"
        manifest = {"name": name, "publisher": publisher, "version": version}
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("extension.vsixmanifest", "<PackageManifest/>")
            zf.writestr(f"{payload_dir}/package.json", json.dumps(manifest))
            for rel_path, content in (files or {}).items():
                zf.writestr(f"{payload_dir}/{rel_path}", content)
        return archive

    return _make


@pytest.fixture
def ledger(extensions_dir: Path) -> ObsoleteLedgerManager:
    """Ledger manager for the extensions directory."""
    return ObsoleteLedgerManager(extensions_dir / ".obsolete")


@pytest.fixture
def inventory(extensions_dir: Path, ledger: ObsoleteLedgerManager) -> LocalInventory:
    """Inventory over the extensions directory."""
    return LocalInventory(extensions_dir, ledger)


@pytest.fixture
def local_registry(vsix_dir: Path) -> LocalRegistryClient:
    """Registry client over the VSIX directory."""
    return LocalRegistryClient(f"file://{vsix_dir}")


def record(ext_id: str, version: str, **kwargs: object) -> ExtensionRecord:
    """Build an ExtensionRecord from an id and version."""
    return ExtensionRecord(id=ext_id, version=version, **kwargs)


@pytest.fixture
def ext() -> Callable[..., ExtensionRecord]:
    """Factory for ExtensionRecord instances."""
    return record
