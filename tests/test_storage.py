"""Tests for the persistence backends: JSON file, Redis (fakeredis) and memory."""

import json
import os
import pytest
import redis
from unittest.mock import patch

from weektally.models.document import new_document
from weektally.models.errors import PersistenceError
from weektally.storage.gateway import MemoryGateway
from weektally.storage.json_file import JsonFileGateway
from weektally.storage.redis_store import RedisGateway


def _document_with_day():
    doc = new_document()
    doc["dailyData"]["2024-03-04"] = {"dayName": "Monday", "slots": {"5-6am": 30}, "totalMinutes": 30, "notes": ""}
    return doc


# ═══════════════════════════════════════════════════════════════════════════
# JsonFileGateway
# ═══════════════════════════════════════════════════════════════════════════


class TestJsonFileGateway:
    def test_missing_file_is_fresh(self, json_gateway):
        loaded = json_gateway.load()
        assert loaded.fresh
        assert not loaded.recovered
        assert loaded.document["dailyData"] == {}

    def test_save_then_load(self, json_gateway, data_file):
        json_gateway.save(_document_with_day())
        assert data_file.exists()
        loaded = json_gateway.load()
        assert loaded.document["dailyData"]["2024-03-04"]["totalMinutes"] == 30
        assert not loaded.fresh

    def test_save_leaves_no_temp_files(self, json_gateway, data_file):
        json_gateway.save(new_document())
        json_gateway.save(_document_with_day())
        assert [p.name for p in data_file.parent.iterdir() if p.is_file()] == [data_file.name]

    def test_corrupt_file_backed_up_and_reset(self, json_gateway, data_file, tmp_path):
        data_file.write_text("{not json", encoding="utf-8")
        loaded = json_gateway.load()

        assert loaded.recovered
        assert not loaded.backup_failed
        assert loaded.document["dailyData"] == {}
        backups = list((tmp_path / "backups").iterdir())
        assert len(backups) == 1
        assert backups[0].name.startswith("backup-")
        assert backups[0].read_text(encoding="utf-8") == "{not json"

    def test_non_object_json_treated_as_corrupt(self, json_gateway, data_file):
        data_file.write_text("[1, 2]", encoding="utf-8")
        assert json_gateway.load().recovered

    def test_corrupt_file_with_failing_backup(self, json_gateway, data_file):
        data_file.write_text("{not json", encoding="utf-8")
        with patch("weektally.storage.json_file.shutil.copy2", side_effect=OSError("disk full")):
            loaded = json_gateway.load()
        assert loaded.recovered
        assert loaded.backup_failed

    def test_save_failure_raises_persistence_error(self, json_gateway):
        with patch("weektally.storage.json_file.os.replace", side_effect=OSError("read-only")):
            with pytest.raises(PersistenceError):
                json_gateway.save(new_document())

    def test_explicit_backup(self, json_gateway, tmp_path):
        json_gateway.save(_document_with_day())
        location = json_gateway.backup()
        assert os.path.exists(location)
        with open(location, encoding="utf-8") as f:
            assert json.load(f)["dailyData"]["2024-03-04"]["totalMinutes"] == 30

    def test_backup_without_file_raises(self, json_gateway):
        with pytest.raises(PersistenceError):
            json_gateway.backup()

    def test_older_file_gets_default_sections(self, json_gateway, data_file):
        data_file.write_text(json.dumps({"dailyData": {}}), encoding="utf-8")
        loaded = json_gateway.load()
        assert loaded.document["settings"]["app_pin"] == "1234"
        assert loaded.document["metadata"]["version"] == "2.0"


# ═══════════════════════════════════════════════════════════════════════════
# RedisGateway
# ═══════════════════════════════════════════════════════════════════════════


class TestRedisGateway:
    def test_missing_key_is_fresh(self, r):
        assert RedisGateway(r, namespace="t").load().fresh

    def test_save_then_load(self, r):
        gateway = RedisGateway(r, namespace="t")
        gateway.save(_document_with_day())
        assert r.exists("t:document")
        assert gateway.load().document["dailyData"]["2024-03-04"]["slots"]["5-6am"] == 30

    def test_corrupt_value_backed_up(self, r):
        r.set("t:document", "garbage")
        gateway = RedisGateway(r, namespace="t")
        loaded = gateway.load()
        assert loaded.recovered
        assert loaded.backup_location.startswith("t:backup:")
        assert r.get(loaded.backup_location) == "garbage"
        assert gateway.list_backups() == [loaded.backup_location]

    def test_backup_copies_live_document(self, r):
        gateway = RedisGateway(r, namespace="t")
        gateway.save(_document_with_day())
        key = gateway.backup()
        assert json.loads(r.get(key))["dailyData"]["2024-03-04"]["totalMinutes"] == 30

    def test_unreachable_redis_raises_persistence_error(self, r):
        gateway = RedisGateway(r, namespace="t")
        with patch.object(r, "get", side_effect=redis.ConnectionError("refused")):
            with pytest.raises(PersistenceError):
                gateway.load()

    def test_save_error_raises_persistence_error(self, r):
        gateway = RedisGateway(r, namespace="t")
        with patch.object(r, "set", side_effect=redis.ConnectionError("refused")):
            with pytest.raises(PersistenceError):
                gateway.save(new_document())


# ═══════════════════════════════════════════════════════════════════════════
# MemoryGateway
# ═══════════════════════════════════════════════════════════════════════════


class TestMemoryGateway:
    def test_round_trip_is_a_copy(self):
        gateway = MemoryGateway()
        doc = _document_with_day()
        gateway.save(doc)
        doc["dailyData"].clear()
        assert "2024-03-04" in gateway.load().document["dailyData"]

    def test_backup(self):
        gateway = MemoryGateway()
        with pytest.raises(PersistenceError):
            gateway.backup()
        gateway.save(new_document())
        assert gateway.backup().startswith("memory:backup-")
