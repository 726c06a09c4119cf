"""Shared test fixtures for the weektally test suite."""

import pytest
import fakeredis
from datetime import date, datetime

from weektally.engine.ranking import RankingEngine
from weektally.engine.slot_store import SlotStore
from weektally.engine.week_aggregator import WeekAggregator
from weektally.services.tracker import TrackerService
from weektally.storage.gateway import MemoryGateway
from weektally.storage.json_file import JsonFileGateway


# ── Redis ────────────────────────────────────────────────────────────────

@pytest.fixture
def r():
    """Fresh fakeredis instance per test (decode_responses=True like production)."""
    return fakeredis.FakeRedis(decode_responses=True)


# ── Time Freezing ───────────────────────────────────────────────────────

@pytest.fixture
def frozen_now():
    """Fixed 'now': Wednesday 2024-03-06 07:30, ISO week 2024-W10 (Mar 4 - Mar 10)."""
    return datetime(2024, 3, 6, 7, 30, 0)


@pytest.fixture
def clock(frozen_now):
    return lambda: frozen_now


# ── Engine ──────────────────────────────────────────────────────────────

@pytest.fixture
def store():
    return SlotStore()


@pytest.fixture
def aggregator(store):
    return WeekAggregator(store)


@pytest.fixture
def ranking():
    return RankingEngine()


@pytest.fixture
def wired(store, aggregator, ranking):
    """Store whose mutations roll up into weeks and ranks, like the service."""

    def on_change(day: date):
        aggregator.recompute_for_date(day)
        ranking.recompute_ranks(aggregator.all_weeks())

    store.on_change = on_change
    return store, aggregator, ranking


# ── Service ─────────────────────────────────────────────────────────────

@pytest.fixture
def service(clock):
    """TrackerService over an in-memory backend with a frozen clock."""
    return TrackerService(MemoryGateway(), clock=clock)


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "productivity-data.json"


@pytest.fixture
def json_gateway(data_file, tmp_path):
    return JsonFileGateway(data_file, tmp_path / "backups")


@pytest.fixture
def file_service(json_gateway, clock):
    return TrackerService(json_gateway, clock=clock)
