"""Persisted document form shared by every storage backend.

    {"metadata":   {"version", "created", "lastModified"},
     "dailyData":  {"YYYY-MM-DD": {"dayName", "slots", "totalMinutes", "notes"}},
     "weeklyData": [{"weekNumber", "year", "dateRange", "totalMinutes",
                     "totalHours", "daysWithData", "rank"}],
     "settings":   {name: value}}
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

from weektally.config.settings import DEFAULT_ALARM_TIMES, DEFAULT_APP_PIN, DOCUMENT_VERSION


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_settings() -> dict[str, str]:
    return {
        "app_pin": DEFAULT_APP_PIN,
        "alarm_times": DEFAULT_ALARM_TIMES,
        "silent_mode": "false",
        "alarm_sound": "default",
        "backup_enabled": "true",
    }


def new_document() -> dict[str, Any]:
    now = utc_now_iso()
    return {
        "metadata": {"version": DOCUMENT_VERSION, "created": now, "lastModified": now},
        "dailyData": {},
        "weeklyData": [],
        "settings": default_settings(),
    }


def merge_with_defaults(loaded: dict[str, Any]) -> dict[str, Any]:
    """Fill sections an older file lacks; loaded values win."""
    document = new_document()
    metadata = loaded.get("metadata")
    if isinstance(metadata, dict):
        document["metadata"].update(metadata)
    if isinstance(loaded.get("dailyData"), dict):
        document["dailyData"] = copy.deepcopy(loaded["dailyData"])
    if isinstance(loaded.get("weeklyData"), list):
        document["weeklyData"] = copy.deepcopy(loaded["weeklyData"])
    settings = loaded.get("settings")
    if isinstance(settings, dict):
        # The JSON backend once stored the PIN as "appPin" and alarms as a list
        if "appPin" in settings and "app_pin" not in settings:
            settings = {**settings, "app_pin": settings["appPin"]}
        for name, value in settings.items():
            if name in ("appPin", "alarmTimes"):
                continue
            document["settings"][name] = setting_text(value)
        if isinstance(settings.get("alarmTimes"), list) and "alarm_times" not in settings:
            document["settings"]["alarm_times"] = ",".join(str(t) for t in settings["alarmTimes"])
    return document


def setting_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return "" if value is None else str(value)
