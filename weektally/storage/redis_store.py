"""Redis backend — the whole document as one JSON string.

A single SET swaps the document atomically. Backups are timestamped copies
under `<namespace>:backup:` and are listed newest first by `list_backups`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis

from weektally.config.settings import REDIS_NAMESPACE, REDIS_URL
from weektally.models.document import merge_with_defaults, new_document
from weektally.models.errors import PersistenceError
from weektally.storage.gateway import LoadResult, PersistenceGateway, backup_timestamp

logger = logging.getLogger(__name__)


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


class RedisGateway(PersistenceGateway):
    def __init__(self, r: Optional[redis.Redis] = None, namespace: str = REDIS_NAMESPACE):
        self.r = r if r is not None else _get_redis()
        self.namespace = namespace

    @property
    def document_key(self) -> str:
        return f"{self.namespace}:document"

    def describe(self) -> str:
        return f"redis:{self.document_key}"

    def load(self) -> LoadResult:
        try:
            raw = self.r.get(self.document_key)
        except redis.RedisError as exc:
            raise PersistenceError(f"redis unavailable: {exc}") from exc

        if raw is None:
            logger.info("No document at %s, starting fresh", self.document_key)
            return LoadResult(document=new_document(), fresh=True)

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError(f"top-level JSON value is {type(data).__name__}, expected object")
        except ValueError as exc:
            logger.error("Stored document at %s is unreadable: %s", self.document_key, exc)
            location = self._preserve_corrupt(raw)
            return LoadResult(
                document=new_document(),
                recovered=True,
                error=str(exc),
                backup_location=location,
            )

        return LoadResult(document=merge_with_defaults(data))

    def save(self, document: dict[str, Any]) -> None:
        payload = json.dumps(document, ensure_ascii=False)
        try:
            self.r.set(self.document_key, payload)
        except redis.RedisError as exc:
            raise PersistenceError(f"failed to save {self.document_key}: {exc}") from exc

    def backup(self, label: str = "backup") -> str:
        try:
            raw = self.r.get(self.document_key)
            if raw is None:
                raise PersistenceError(f"nothing to back up: {self.document_key} is empty")
            key = f"{self.namespace}:{label}:{backup_timestamp()}"
            self.r.set(key, raw)
        except redis.RedisError as exc:
            raise PersistenceError(f"backup of {self.document_key} failed: {exc}") from exc
        logger.info("Backup created: %s", key)
        return key

    def list_backups(self) -> list[str]:
        keys = self.r.scan_iter(f"{self.namespace}:backup:*")
        decoded = [k.decode() if isinstance(k, bytes) else k for k in keys]
        return sorted(decoded, reverse=True)

    def _preserve_corrupt(self, raw) -> Optional[str]:
        key = f"{self.namespace}:backup:{backup_timestamp()}"
        try:
            self.r.set(key, raw)
        except redis.RedisError as exc:
            logger.error("Could not back up unreadable document: %s", exc)
            return None
        logger.info("Unreadable document copied to %s", key)
        return key
