"""Pydantic schemas for extsync data and configuration files.

This module defines the data models for:
- extsync.yaml (sync configuration)
- the desired extension list (JSON array of extension records)
- package.json (installed extension manifest)
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_GALLERY_URL = "https://marketplace.visualstudio.com/_apis/public/gallery/"
OBSOLETE_FILENAME = ".obsolete"


# =============================================================================
# Extension Records
# =============================================================================


class ExtensionRecord(BaseModel):
    """Identity and version of one extension.

    Records come either from the desired list or from the local inventory.
    The acquisition steps attach ``download_url`` and ``archive_path`` in place.

    - id: publisher-qualified identifier, compared case-insensitively
    - download_url: registry download location (JSON key ``downloadURL``)
    - archive_path: local archive after download (never serialized)
    - install_path: directory of an installed extension (never serialized)
    """

    id: str = ""
    name: str = ""
    publisher: str = ""
    version: str
    download_url: str | None = Field(default=None, alias="downloadURL")
    archive_path: Path | None = Field(default=None, exclude=True)
    install_path: Path | None = Field(default=None, exclude=True)

    model_config = {"populate_by_name": True}

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Reject empty versions."""
        v = v.strip()
        if not v:
            raise ValueError("Extension version cannot be empty")
        return v

    @model_validator(mode="after")
    def fill_identity(self) -> "ExtensionRecord":
        """Derive id from publisher/name, or publisher/name from id."""
        if not self.id:
            if not self.publisher or not self.name:
                raise ValueError("Extension needs an 'id' or both 'publisher' and 'name'")
            self.id = f"{self.publisher}.{self.name}"
        elif not self.publisher or not self.name:
            publisher, sep, name = self.id.partition(".")
            if not sep or not publisher or not name:
                raise ValueError(f"Extension id must be publisher-qualified: {self.id}")
            self.publisher = self.publisher or publisher
            self.name = self.name or name
        return self

    @property
    def key(self) -> str:
        """Case-insensitive lookup key for this extension's id."""
        return self.id.lower()

    @property
    def directory_name(self) -> str:
        """Install directory name (``publisher.name-version``)."""
        return f"{self.publisher}.{self.name}-{self.version}"

    def __str__(self) -> str:
        return f"{self.id}@{self.version}"


class ExtensionManifest(BaseModel):
    """The subset of an installed extension's package.json that extsync reads."""

    name: str
    publisher: str
    version: str
    is_builtin: bool = Field(default=False, alias="isBuiltin")

    model_config = {"populate_by_name": True}


# =============================================================================
# Sync Configuration (extsync.yaml)
# =============================================================================


class SyncConfig(BaseModel):
    """Sync configuration (extsync.yaml) schema."""

    extensions_dir: Path = Field(default_factory=lambda: Path.home() / ".vscode" / "extensions")
    obsolete_file: Path | None = None
    auto_update_extensions: bool = True
    excluded_extensions: list[str] = Field(default_factory=list)
    registry: str = DEFAULT_GALLERY_URL
    proxy: str | None = None
    timeout: int = 30

    @field_validator("extensions_dir", "obsolete_file")
    @classmethod
    def expand_user(cls, v: Path | None) -> Path | None:
        """Expand ``~`` in configured paths."""
        return v.expanduser() if v is not None else None

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Timeouts must be positive."""
        if v <= 0:
            raise ValueError("timeout must be a positive number of seconds")
        return v

    @property
    def obsolete_path(self) -> Path:
        """Location of the obsolete ledger."""
        if self.obsolete_file is not None:
            return self.obsolete_file
        return self.extensions_dir / OBSOLETE_FILENAME
