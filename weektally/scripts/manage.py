"""Maintenance commands for the tracker store.

Run: python -m weektally.scripts.manage <command> [options]

    export  --out DIR     write daily/weekly CSV files
    import  FILE          import a daily CSV file
    migrate               normalize legacy bucket keys, rebuild weeks, save
    stats                 print totals and the current week's rank
    backup                copy the stored document aside
    serve                 run the HTTP server
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from weektally.config.settings import EXPORT_DIR, LOG_FORMAT, LOG_LEVEL, SERVER_HOST, SERVER_PORT, STORAGE_BACKEND
from weektally.models.result import Result
from weektally.services.tracker import TrackerService, build_service

logger = logging.getLogger("manage")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage the weektally store.")
    parser.add_argument(
        "--backend",
        choices=("json", "redis", "memory"),
        default=STORAGE_BACKEND,
        help="Storage backend (default: STORAGE_BACKEND from the environment).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Write daily and weekly CSV files.")
    export.add_argument("--out", type=Path, default=EXPORT_DIR, help="Target directory.")

    imp = sub.add_parser("import", help="Import a daily CSV file.")
    imp.add_argument("file", type=Path)

    sub.add_parser("migrate", help="Normalize stored data and save it back.")
    sub.add_parser("stats", help="Print totals and ranking summary.")
    sub.add_parser("backup", help="Back up the stored document.")

    serve = sub.add_parser("serve", help="Run the HTTP server.")
    serve.add_argument("--host", default=SERVER_HOST)
    serve.add_argument("--port", type=int, default=SERVER_PORT)
    return parser.parse_args(argv)


def _check(result: Result):
    """Unwrap or exit with the error message."""
    if not result.is_ok:
        raise SystemExit(f"error: {result.error_type}: {result.error}")
    return result.value


def cmd_export(service: TrackerService, out: Path) -> list[Path]:
    export = _check(service.export_csv())
    out.mkdir(parents=True, exist_ok=True)
    stamp = service.today().isoformat()
    written = []
    for name, text in (("daily", export.daily), ("weekly", export.weekly)):
        path = out / f"productivity-{name}-{stamp}.csv"
        path.write_text(text, encoding="utf-8")
        written.append(path)
        logger.info("Wrote %s", path)
    return written


def cmd_import(service: TrackerService, file: Path) -> dict:
    try:
        text = file.read_text(encoding="utf-8")
    except OSError as exc:
        raise SystemExit(f"error: cannot read {file}: {exc}")
    result = _check(service.import_csv(text))
    for line in result.errors:
        print(f"  skipped {line}")
    print(f"Imported {result.imported_count} of {result.total_rows} row(s), {result.error_count} error(s)")
    return result.to_dict()


def cmd_stats(service: TrackerService) -> dict:
    stats = _check(service.data_statistics())
    week = _check(service.get_week_stats())
    summary = {**stats, "week": week.to_dict()}
    print(json.dumps(summary, indent=2))
    return summary


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt="%H:%M:%S")

    if args.command == "serve":
        import uvicorn

        uvicorn.run("weektally.server:app", host=args.host, port=args.port)
        return 0

    service = build_service(args.backend, clock=datetime.now)
    status = _check(service.status())
    if status["degraded"]:
        print(f"warning: running in memory only: {status['degraded_reason']}", file=sys.stderr)

    if args.command == "export":
        for path in cmd_export(service, args.out):
            print(path)
    elif args.command == "import":
        cmd_import(service, args.file)
    elif args.command == "migrate":
        report = _check(service.migrate())
        print(f"Migration: {report.summary()}")
    elif args.command == "stats":
        cmd_stats(service)
    elif args.command == "backup":
        print(_check(service.backup()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
