"""PersistenceGateway — whole-document load/save with backup-before-overwrite.

Backends persist the full document in one write (never incrementally) and
recover from an unreadable store by backing it up and starting fresh.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from weektally.models.document import new_document
from weektally.models.errors import PersistenceError

logger = logging.getLogger(__name__)


def backup_timestamp() -> str:
    """Filesystem/key safe UTC timestamp, e.g. 2024-03-04T10-15-00-123456Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


@dataclass
class LoadResult:
    document: dict[str, Any]
    fresh: bool = False                 # nothing stored yet
    recovered: bool = False             # stored data was unreadable and got replaced
    error: Optional[str] = None
    backup_location: Optional[str] = None

    @property
    def backup_failed(self) -> bool:
        """The unreadable data could not be preserved anywhere."""
        return self.recovered and self.backup_location is None


class PersistenceGateway(ABC):
    @abstractmethod
    def load(self) -> LoadResult:
        """Read the document. Unreadable data is backed up, never fatal.

        Raises PersistenceError only when the backend itself is unreachable.
        """

    @abstractmethod
    def save(self, document: dict[str, Any]) -> None:
        """Replace the stored document. Raises PersistenceError."""

    @abstractmethod
    def backup(self, label: str = "backup") -> str:
        """Copy the stored document aside and return where it went."""

    @abstractmethod
    def describe(self) -> str:
        ...


class MemoryGateway(PersistenceGateway):
    """Process-local store. Also the fallback when the real backend is lost."""

    def __init__(self, document: Optional[dict[str, Any]] = None):
        self._document = copy.deepcopy(document) if document is not None else None
        self._backups: dict[str, dict[str, Any]] = {}

    def load(self) -> LoadResult:
        if self._document is None:
            return LoadResult(document=new_document(), fresh=True)
        return LoadResult(document=copy.deepcopy(self._document))

    def save(self, document: dict[str, Any]) -> None:
        self._document = copy.deepcopy(document)

    def backup(self, label: str = "backup") -> str:
        if self._document is None:
            raise PersistenceError("nothing to back up: no document saved yet")
        name = f"memory:{label}-{backup_timestamp()}"
        self._backups[name] = copy.deepcopy(self._document)
        logger.info("In-memory backup created: %s", name)
        return name

    def describe(self) -> str:
        return "memory"
