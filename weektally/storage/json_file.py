"""JSON file backend.

Saves go to a temp file in the target directory and are swapped in with
os.replace, so a reader sees either the old file or the new one.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional

from weektally.models.document import merge_with_defaults, new_document
from weektally.models.errors import PersistenceError
from weektally.storage.gateway import LoadResult, PersistenceGateway, backup_timestamp

logger = logging.getLogger(__name__)


class JsonFileGateway(PersistenceGateway):
    def __init__(self, path: str | os.PathLike[str], backup_dir: Optional[str | os.PathLike[str]] = None):
        self.path = Path(path)
        self.backup_dir = Path(backup_dir) if backup_dir is not None else self.path.parent / "backups"

    def describe(self) -> str:
        return f"json:{self.path}"

    def load(self) -> LoadResult:
        if not self.path.exists():
            logger.info("No data file at %s, starting fresh", self.path)
            return LoadResult(document=new_document(), fresh=True)

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"top-level JSON value is {type(data).__name__}, expected object")
        except (OSError, ValueError) as exc:
            logger.error("Failed to load %s: %s", self.path, exc)
            location = self._preserve_corrupt()
            return LoadResult(
                document=new_document(),
                recovered=True,
                error=str(exc),
                backup_location=location,
            )

        logger.info("Loaded data file %s", self.path)
        return LoadResult(document=merge_with_defaults(data))

    def save(self, document: dict[str, Any]) -> None:
        payload = json.dumps(document, indent=2, ensure_ascii=False)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise PersistenceError(f"failed to save {self.path}: {exc}") from exc
        logger.debug("Saved %s (%d bytes)", self.path, len(payload))

    def backup(self, label: str = "backup") -> str:
        if not self.path.exists():
            raise PersistenceError(f"nothing to back up: {self.path} does not exist")
        try:
            return str(self._copy_to_backup(label))
        except OSError as exc:
            raise PersistenceError(f"backup of {self.path} failed: {exc}") from exc

    def _copy_to_backup(self, label: str) -> Path:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        target = self.backup_dir / f"{label}-{backup_timestamp()}.json"
        shutil.copy2(self.path, target)
        logger.info("Backup created: %s", target)
        return target

    def _preserve_corrupt(self) -> Optional[str]:
        """Best-effort copy of an unreadable file. Returns None if it failed."""
        try:
            return str(self._copy_to_backup("backup"))
        except OSError as exc:
            logger.error("Could not back up unreadable file %s: %s", self.path, exc)
            return None
