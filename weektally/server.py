"""FastAPI server exposing the tracker to a frontend.

Endpoints are plain `def` so FastAPI runs them in its thread pool; the
service lock serializes them. Errors leave as {"error": type, "detail": msg}.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from weektally.config.settings import (
    DEFAULT_RANKING_LIMIT,
    DEFAULT_RECENT_DAYS,
    LOG_FORMAT,
    LOG_LEVEL,
    SERVER_HOST,
    SERVER_PORT,
)
from weektally.models.errors import NotFoundError, PersistenceError, ValidationError, WeektallyError
from weektally.services.tracker import TrackerService, build_service

logger = logging.getLogger(__name__)

app = FastAPI(title="weektally", description="Daily time-slot tracking with ranked ISO weeks")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Shared State ─────────────────────────────────────────────────────────

_service: Optional[TrackerService] = None

ERROR_STATUS = {
    ValidationError: 422,
    NotFoundError: 404,
    PersistenceError: 503,
}


def _get_service() -> TrackerService:
    global _service
    if _service is None:
        _service = build_service()
        logger.info("Tracker service started on %s", _service.gateway.describe())
    return _service


def _status_for(error: Exception) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


@app.exception_handler(WeektallyError)
async def _weektally_error_handler(request: Request, exc: WeektallyError):
    status = _status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})


# ── Health ───────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    status = _get_service().status().unwrap()
    return {"status": "degraded" if status["degraded"] else "ok", **status}


# ── Today ────────────────────────────────────────────────────────────────

class MinutesRequest(BaseModel):
    bucket: str
    minutes: int
    mode: Literal["add", "set"] = "add"


class NotesRequest(BaseModel):
    notes: str = ""


@app.get("/api/today")
def get_today():
    return _get_service().get_today().unwrap().to_frontend()


@app.post("/api/today/minutes")
def record_minutes(req: MinutesRequest):
    service = _get_service()
    if req.mode == "set":
        result = service.set_minutes(req.bucket, req.minutes)
    else:
        result = service.add_minutes(req.bucket, req.minutes)
    return result.unwrap().to_frontend()


@app.put("/api/today/notes")
def set_notes(req: NotesRequest):
    return _get_service().set_notes(req.notes).unwrap().to_frontend()


@app.get("/api/slot/current")
def current_slot():
    bucket = _get_service().current_slot().unwrap()
    return {"bucket": bucket.value, "label": bucket.label}


# ── Days & History ───────────────────────────────────────────────────────

@app.get("/api/days/{day}")
def get_day(day: str):
    return _get_service().get_day(day).unwrap().to_frontend()


@app.get("/api/days/{day}/breakdown")
def day_breakdown(day: str):
    return {"date": day, "buckets": _get_service().hourly_breakdown(day).unwrap()}


@app.get("/api/history/recent")
def recent_days(days: int = Query(DEFAULT_RECENT_DAYS, ge=1, le=366)):
    return {"days": _get_service().recent_days(days).unwrap()}


@app.get("/api/history/month/{year}/{month}")
def month_summary(year: int, month: int):
    return _get_service().month_summary(year, month).unwrap()


@app.get("/api/stats")
def data_statistics():
    return _get_service().data_statistics().unwrap()


# ── Weeks ────────────────────────────────────────────────────────────────
# /ranked and /stats are declared before /{day} so they are not read as dates

@app.get("/api/weeks/ranked")
def ranked_weeks(limit: int = Query(DEFAULT_RANKING_LIMIT)):
    weeks = _get_service().get_ranked_weeks(limit).unwrap()
    return {"weeks": [w.to_frontend() for w in weeks]}


@app.get("/api/weeks/stats")
def week_stats():
    return _get_service().get_week_stats().unwrap().to_dict()


@app.get("/api/weeks/{day}")
def get_week(day: str):
    service = _get_service()
    week = service.get_week(day).unwrap()
    stats = service.get_week_stats().unwrap()
    return week.to_frontend(ranked_weeks=stats.ranked_weeks)


# ── Import / Export ──────────────────────────────────────────────────────

class CSVImportRequest(BaseModel):
    text: str


class JSONImportRequest(BaseModel):
    document: str


@app.get("/api/export/csv")
def export_csv():
    export = _get_service().export_csv().unwrap()
    return {"daily": export.daily, "weekly": export.weekly}


@app.post("/api/import/csv")
def import_csv(req: CSVImportRequest):
    return _get_service().import_csv(req.text).unwrap().to_dict()


@app.get("/api/export/json")
def export_json():
    return {"document": _get_service().export_json().unwrap()}


@app.post("/api/import/json")
def import_json(req: JSONImportRequest):
    return _get_service().import_json(req.document).unwrap()


@app.post("/api/backup")
def backup():
    return {"location": _get_service().backup().unwrap()}


# ── Settings & PIN ───────────────────────────────────────────────────────

class SettingRequest(BaseModel):
    value: str


class PinRequest(BaseModel):
    pin: str


@app.get("/api/settings/{name}")
def get_setting(name: str):
    return {"name": name, "value": _get_service().get_setting(name).unwrap()}


@app.put("/api/settings/{name}")
def set_setting(name: str, req: SettingRequest):
    return {"name": name, "value": _get_service().set_setting(name, req.value).unwrap()}


@app.post("/api/pin/validate")
def validate_pin(req: PinRequest):
    return {"valid": _get_service().validate_pin(req.pin).unwrap()}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
