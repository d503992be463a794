"""Obsolete ledger management.

The host editor keeps a ``.obsolete`` JSON file next to its extensions,
mapping extension directory names to ``true`` for extensions it should
finish removing on its next start. extsync keeps that file consistent with
what a sync run did, but only when the host already maintains one.

Updating the ledger is best effort: failures are logged and reported in the
returned LedgerUpdate, never raised. A failed update can leave stale entries
behind, which at worst delays the host's cleanup.
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from extsync.config.parser import save_json
from extsync.config.schemas import ExtensionRecord

logger = logging.getLogger(__name__)

LedgerStatus = Literal["skipped", "written", "deleted", "failed"]


@dataclass
class LedgerUpdate:
    """Result of reconciling the obsolete ledger."""

    status: LedgerStatus
    entries: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class ObsoleteLedgerManager:
    """Reads and updates the host's obsolete-extension ledger."""

    def __init__(self, path: Path):
        """Initialize the ledger manager.

        Args:
            path: Location of the ledger file
        """
        self._path = path

    @property
    def path(self) -> Path:
        """Get the ledger file path."""
        return self._path

    def load(self) -> dict[str, Any] | None:
        """Read the ledger.

        Returns:
            The ledger entries, or None if the file is missing or unreadable
        """
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable obsolete ledger %s: %s", self._path, e)
            return None

        if not isinstance(data, dict):
            logger.warning("Ignoring obsolete ledger %s: not a JSON object", self._path)
            return None
        return data

    def obsolete_directories(self) -> set[str]:
        """Get the directory names currently flagged for removal."""
        ledger = self.load() or {}
        return {name for name, flagged in ledger.items() if flagged is True}

    def reconcile(
        self,
        added: Iterable[ExtensionRecord] = (),
        updated: Iterable[ExtensionRecord] = (),
        removed: Iterable[ExtensionRecord] = (),
    ) -> LedgerUpdate:
        """Merge the outcome of a sync run into the ledger.

        Added and updated extensions are no longer obsolete; removed ones are.
        Nothing happens if no ledger exists yet.

        Args:
            added: Extensions that were installed
            updated: Extensions that were reinstalled at a new version
            removed: Extensions that were uninstalled

        Returns:
            LedgerUpdate describing what was done
        """
        ledger = self.load()
        if ledger is None:
            logger.debug("No obsolete ledger at %s, skipping", self._path)
            return LedgerUpdate(status="skipped")

        for ext in [*added, *updated]:
            ledger.pop(ext.directory_name, None)

        for ext in removed:
            ledger[ext.directory_name] = True

        try:
            if ledger:
                save_json(self._path, ledger, indent=None)
                logger.info("Updated obsolete ledger with %d entries", len(ledger))
                return LedgerUpdate(status="written", entries=ledger)

            self._path.unlink(missing_ok=True)
            logger.info("Deleted empty obsolete ledger %s", self._path)
            return LedgerUpdate(status="deleted")
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to update obsolete ledger %s: %s", self._path, e)
            return LedgerUpdate(status="failed", entries=ledger, error=str(e))
