"""TrackerService — the consumer API over store, weeks, ranks and storage.

One instance owns one SlotStore and one persistence backend. Every public
method holds the service lock for its whole run and returns a Result;
engine errors become `Result.error`, anything else propagates.

Write path for a day mutation:

    SlotStore mutation -> on_change(day)
        -> WeekAggregator.recompute_for_date(day)
        -> RankingEngine.recompute_ranks(all weeks)
        -> gateway.save(whole document)
"""

from __future__ import annotations

import calendar
import functools
import json
import logging
import re
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional

from weektally.config.settings import (
    BACKUP_DIR,
    DATA_DIR,
    DATA_FILE,
    DEFAULT_RANKING_LIMIT,
    DEFAULT_RECENT_DAYS,
    DOCUMENT_VERSION,
    STORAGE_BACKEND,
)
from weektally.data_pipeline.csv_codec import CSVCodec, CSVExport, ImportResult
from weektally.engine.migrator import MigrationReport, SchemaMigrator
from weektally.engine.ranking import RankingEngine
from weektally.engine.slot_store import SlotStore
from weektally.engine.week_aggregator import WeekAggregator
from weektally.models.bucket import BucketId
from weektally.models.document import default_settings, new_document, setting_text, utc_now_iso
from weektally.models.errors import NotFoundError, PersistenceError, ValidationError, WeektallyError
from weektally.models.records import DailyRecord, WeeklyRecord, format_minutes, parse_iso_date
from weektally.models.result import Result, fail, ok
from weektally.storage.gateway import LoadResult, MemoryGateway, PersistenceGateway

logger = logging.getLogger(__name__)

PIN_RE = re.compile(r"^\d{4}$")
ALARM_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_BOOLEAN_SETTINGS = ("silent_mode", "backup_enabled")


@dataclass
class WeekStats:
    current_week: WeeklyRecord
    rank: int
    ranked_weeks: int
    total_weeks: int
    average_minutes: int
    average_hours: str
    best_week: Optional[WeeklyRecord]

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_week": self.current_week.to_frontend(ranked_weeks=self.ranked_weeks),
            "rank": self.rank,
            "ranked_weeks": self.ranked_weeks,
            "total_weeks": self.total_weeks,
            "average_minutes": self.average_minutes,
            "average_hours": self.average_hours,
            "best_week": self.best_week.to_frontend() if self.best_week else None,
        }


def _as_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_iso_date(value)


def validate_setting(name: str, value: Any) -> str:
    """Check a setting value and return its stored text form."""
    text = setting_text(value).strip()
    if name == "app_pin":
        if not PIN_RE.match(text):
            raise ValidationError("app_pin must be exactly 4 digits")
    elif name == "alarm_times":
        times = [t.strip() for t in text.split(",") if t.strip()]
        bad = [t for t in times if not ALARM_TIME_RE.match(t)]
        if bad:
            raise ValidationError(f"alarm_times entries must be HH:MM, got {', '.join(bad)}")
        text = ",".join(times)
    elif name in _BOOLEAN_SETTINGS:
        if text.lower() not in ("true", "false"):
            raise ValidationError(f"{name} must be 'true' or 'false'")
        text = text.lower()
    return text


def _consumer(method):
    """Run under the service lock and wrap the outcome in a Result."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            try:
                return ok(method(self, *args, **kwargs))
            except WeektallyError as exc:
                logger.debug("%s failed: %s: %s", method.__name__, type(exc).__name__, exc)
                return fail(exc)

    return wrapper


class TrackerService:
    def __init__(
        self,
        gateway: PersistenceGateway,
        clock: Callable[[], datetime] = datetime.now,
        migrator: Optional[SchemaMigrator] = None,
    ):
        self._lock = threading.RLock()
        self._clock = clock
        self.gateway = gateway
        self.migrator = migrator or SchemaMigrator()
        self.store = SlotStore(on_change=self._on_day_changed)
        self.aggregator = WeekAggregator(self.store)
        self.ranking = RankingEngine()
        self.codec = CSVCodec(self.store, self.aggregator, self.ranking)
        self.settings: dict[str, str] = default_settings()
        self.metadata: dict[str, Any] = new_document()["metadata"]
        self.degraded_reason: Optional[str] = None
        self.last_load: Optional[LoadResult] = None
        self.last_migration: Optional[MigrationReport] = None
        with self._lock:
            self._load()

    # ── Lifecycle ────────────────────────────────────────────────────────

    def _load(self) -> None:
        try:
            loaded = self.gateway.load()
        except PersistenceError as exc:
            self._degrade(str(exc))
            loaded = self.gateway.load()

        if loaded.backup_failed:
            self._degrade(f"stored data unreadable ({loaded.error}) and could not be backed up")

        self.last_load = loaded
        report = self._apply_document(loaded.document)
        self.last_migration = report

        if loaded.recovered:
            logger.warning("Started with a fresh store; unreadable data kept at %s", loaded.backup_location)
        if loaded.recovered or report.changed:
            try:
                self._persist()
            except PersistenceError as exc:
                self._degrade(f"could not save loaded data: {exc}")
                self._persist()

    def _degrade(self, reason: str) -> None:
        """Switch to an in-memory store. Reported once, never retried."""
        if self.degraded_reason is not None:
            return
        self.degraded_reason = reason
        logger.warning("Persistence unavailable (%s): %s. Running in memory only; changes will not be saved.",
                       self.gateway.describe(), reason)
        self.gateway = MemoryGateway()

    def _apply_document(self, document: dict[str, Any]) -> MigrationReport:
        report = self.migrator.normalize_document(document)

        records = []
        for key, data in document["dailyData"].items():
            if not isinstance(data, dict):
                logger.warning("Skipping stored day %s: record is %s", key, type(data).__name__)
                continue
            try:
                records.append(DailyRecord.from_dict(key, data))
            except ValidationError as exc:
                logger.warning("Skipping stored day %s: %s", key, exc)

        self.store.load(records)
        self._rebuild_weeks()
        self.settings = {**default_settings(), **document.get("settings", {})}
        self.metadata = dict(document.get("metadata") or self.metadata)
        logger.info("Loaded %d day(s), %d week(s) from %s",
                    len(self.store), len(self.aggregator.all_weeks()), self.gateway.describe())
        return report

    def _rebuild_weeks(self) -> None:
        self.aggregator.recompute_all()
        self.ranking.recompute_ranks(self.aggregator.all_weeks())

    def _on_day_changed(self, day: date) -> None:
        self.aggregator.recompute_for_date(day)
        self.ranking.recompute_ranks(self.aggregator.all_weeks())
        self._persist()

    def to_document(self) -> dict[str, Any]:
        metadata = {**self.metadata, "version": DOCUMENT_VERSION, "lastModified": utc_now_iso()}
        return {
            "metadata": metadata,
            "dailyData": {r.key: r.to_dict() for r in self.store.all_records()},
            "weeklyData": [w.to_dict() for w in self.aggregator.all_weeks()],
            "settings": dict(self.settings),
        }

    def _persist(self) -> None:
        document = self.to_document()
        self.gateway.save(document)
        self.metadata = document["metadata"]

    def today(self) -> date:
        return self._clock().date()

    # ── Daily records ────────────────────────────────────────────────────

    @_consumer
    def get_today(self) -> DailyRecord:
        return self.store.get_or_create(self.today())

    @_consumer
    def add_minutes(self, bucket: BucketId | str, minutes: int, day: Optional[date | str] = None) -> DailyRecord:
        return self.store.add_minutes(_as_date(day) if day else self.today(), bucket, minutes)

    @_consumer
    def set_minutes(self, bucket: BucketId | str, minutes: int, day: Optional[date | str] = None) -> DailyRecord:
        return self.store.set_minutes(_as_date(day) if day else self.today(), bucket, minutes)

    @_consumer
    def set_notes(self, text: Optional[str], day: Optional[date | str] = None) -> DailyRecord:
        return self.store.set_notes(_as_date(day) if day else self.today(), text)

    @_consumer
    def get_day(self, day: date | str) -> DailyRecord:
        target = _as_date(day)
        record = self.store.get(target)
        if record is None:
            raise NotFoundError(f"no data for {target.isoformat()}")
        return record

    @_consumer
    def current_slot(self) -> BucketId:
        return BucketId.for_hour(self._clock().hour)

    @_consumer
    def hourly_breakdown(self, day: Optional[date | str] = None) -> list[dict[str, Any]]:
        """Non-zero buckets of a day (today by default), in bucket order."""
        record = self.store.get(_as_date(day) if day else self.today())
        if record is None:
            return []
        return [
            {
                "bucket": bucket.value,
                "label": bucket.label,
                "minutes": minutes,
                "hours": format_minutes(minutes),
            }
            for bucket, minutes in record.bucket_minutes.items()
            if minutes > 0
        ]

    @_consumer
    def recent_days(self, days: int = DEFAULT_RECENT_DAYS) -> list[dict[str, Any]]:
        """One row per day, newest first; days without data read as zero."""
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise ValidationError(f"days must be a positive integer, got {days!r}")
        today = self.today()
        rows = []
        for offset in range(days):
            day = today - timedelta(days=offset)
            record = self.store.get(day) or DailyRecord(day=day)
            rows.append(record.to_frontend())
        return rows

    @_consumer
    def month_summary(self, year: int, month: int) -> dict[str, Any]:
        if not 1 <= month <= 12:
            raise ValidationError(f"month must be 1-12, got {month}")
        if not 1 <= year <= 9999:
            raise ValidationError(f"year out of range: {year}")
        last = calendar.monthrange(year, month)[1]
        days = [r for r in self.store.records_between(date(year, month, 1), date(year, month, last))
                if r.total_minutes > 0]

        summary: dict[str, Any] = {
            "year": year,
            "month": month,
            "total_days": len(days),
            "total_minutes": sum(r.total_minutes for r in days),
            "avg_minutes": 0,
            "best_day": None,
            "worst_day": None,
        }
        if days:
            summary["avg_minutes"] = round(summary["total_minutes"] / len(days))
            best = max(days, key=lambda r: r.total_minutes)
            worst = min(days, key=lambda r: r.total_minutes)
            summary["best_day"] = {"date": best.key, "total_minutes": best.total_minutes}
            summary["worst_day"] = {"date": worst.key, "total_minutes": worst.total_minutes}
        summary["total_hours"] = format_minutes(summary["total_minutes"])
        return summary

    @_consumer
    def data_statistics(self) -> dict[str, Any]:
        records = self.store.all_records()
        total = sum(r.total_minutes for r in records)
        return {
            "total_days": len(records),
            "days_with_data": sum(1 for r in records if r.total_minutes > 0),
            "total_minutes": total,
            "total_hours": format_minutes(total),
            "ranked_weeks": len(RankingEngine.ranked(self.aggregator.all_weeks())),
            "first_date": records[0].key if records else None,
            "last_date": records[-1].key if records else None,
        }

    # ── Weeks & ranking ──────────────────────────────────────────────────

    @_consumer
    def get_week(self, day: Optional[date | str] = None) -> WeeklyRecord:
        return self.aggregator.get_for_date(_as_date(day) if day else self.today())

    @_consumer
    def get_ranked_weeks(self, limit: Optional[int] = DEFAULT_RANKING_LIMIT) -> list[WeeklyRecord]:
        return RankingEngine.ranked(self.aggregator.all_weeks(), limit)

    @_consumer
    def get_week_stats(self) -> WeekStats:
        weeks = self.aggregator.all_weeks()
        with_data = [w for w in weeks if w.total_minutes > 0]
        current = self.aggregator.get_for_date(self.today())
        rank, ranked_count = RankingEngine.rank_of(current, weeks)

        average = round(sum(w.total_minutes for w in with_data) / len(with_data)) if with_data else 0
        top = RankingEngine.ranked(weeks, limit=1)
        return WeekStats(
            current_week=current,
            rank=rank,
            ranked_weeks=ranked_count,
            total_weeks=len(with_data),
            average_minutes=average,
            average_hours=format_minutes(average),
            best_week=top[0] if top else None,
        )

    # ── Import / export ──────────────────────────────────────────────────

    @_consumer
    def export_csv(self) -> CSVExport:
        return self.codec.export()

    @_consumer
    def import_csv(self, text: str) -> ImportResult:
        if not isinstance(text, str):
            raise ValidationError("CSV payload must be text")
        result = self.codec.import_daily(text)
        if result.imported_count:
            self._persist()
        return result

    @_consumer
    def export_json(self) -> str:
        return json.dumps(self.to_document(), indent=2, ensure_ascii=False)

    @_consumer
    def import_json(self, text: str) -> dict[str, Any]:
        """Merge a full document export: days by date, settings by name."""
        try:
            incoming = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"invalid JSON document: {exc}") from exc
        if not isinstance(incoming, dict) or not isinstance(incoming.get("dailyData"), dict):
            raise ValidationError("JSON document must be an object with a 'dailyData' mapping")
        settings = incoming.get("settings")
        if settings is not None and not isinstance(settings, dict):
            raise ValidationError("JSON document 'settings' must be an object")

        report = self.migrator.normalize(incoming["dailyData"])
        imported, skipped = 0, []
        for key, data in incoming["dailyData"].items():
            try:
                if not isinstance(data, dict):
                    raise ValidationError(f"{key}: record is not an object")
                self.store.replace(DailyRecord.from_dict(key, data))
                imported += 1
            except ValidationError as exc:
                skipped.append(str(exc))
                logger.warning("JSON import skipped %s", exc)

        settings_updated = 0
        for name, value in (settings or {}).items():
            try:
                self.settings[name] = validate_setting(name, value)
                settings_updated += 1
            except ValidationError as exc:
                skipped.append(str(exc))
                logger.warning("JSON import skipped setting %s: %s", name, exc)

        self._rebuild_weeks()
        self._persist()
        logger.info("JSON import: %d day(s), %d setting(s), %s", imported, settings_updated, report.summary())
        return {"imported_days": imported, "settings_updated": settings_updated, "errors": skipped}

    # ── Settings ─────────────────────────────────────────────────────────

    @_consumer
    def get_setting(self, name: str) -> str:
        if name not in self.settings:
            raise NotFoundError(f"unknown setting {name!r}")
        return self.settings[name]

    @_consumer
    def set_setting(self, name: str, value: Any) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("setting name must be non-empty text")
        text = validate_setting(name, value)
        self.settings[name] = text
        self._persist()
        logger.info("Setting %s updated", name)
        return text

    @_consumer
    def validate_pin(self, pin: str) -> bool:
        return isinstance(pin, str) and pin == self.settings.get("app_pin")

    # ── Storage ──────────────────────────────────────────────────────────

    @_consumer
    def backup(self) -> str:
        self._persist()
        return self.gateway.backup("backup")

    @_consumer
    def migrate(self) -> MigrationReport:
        """Rebuild weeks and ranks and write the normalized document back.

        Normalization itself ran at load time; its report is returned.
        """
        self._rebuild_weeks()
        self._persist()
        return self.last_migration or MigrationReport()

    @_consumer
    def status(self) -> dict[str, Any]:
        return {
            "backend": self.gateway.describe(),
            "degraded": self.degraded_reason is not None,
            "degraded_reason": self.degraded_reason,
            "recovered": bool(self.last_load and self.last_load.recovered),
            "recovery_backup": self.last_load.backup_location if self.last_load else None,
            "days": len(self.store),
            "weeks": len(self.aggregator.all_weeks()),
            "last_modified": self.metadata.get("lastModified"),
        }


def build_gateway(backend: str = STORAGE_BACKEND) -> PersistenceGateway:
    if backend == "memory":
        return MemoryGateway()
    if backend == "redis":
        from weektally.storage.redis_store import RedisGateway
        return RedisGateway()
    if backend == "json":
        from weektally.storage.json_file import JsonFileGateway
        return JsonFileGateway(DATA_DIR / DATA_FILE, BACKUP_DIR)
    raise ValidationError(f"unknown storage backend {backend!r} (expected json, redis or memory)")


def build_service(backend: str = STORAGE_BACKEND, clock: Callable[[], datetime] = datetime.now) -> TrackerService:
    return TrackerService(build_gateway(backend), clock=clock)
