"""Application-wide configuration loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Storage ──────────────────────────────────────────────────────────────

# Directory holding the persisted document, backups and CSV exports
DATA_DIR: Path = Path(
    os.getenv("WEEKTALLY_DATA_DIR", str(Path.home() / ".weektally"))
)
DATA_FILE: str = os.getenv("WEEKTALLY_DATA_FILE", "productivity-data.json")
BACKUP_DIR: Path = Path(os.getenv("WEEKTALLY_BACKUP_DIR", str(DATA_DIR / "backups")))
EXPORT_DIR: Path = Path(os.getenv("WEEKTALLY_EXPORT_DIR", str(DATA_DIR / "exports")))

# json | redis | memory
STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "json").lower()

# Redis (only used when STORAGE_BACKEND=redis)
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
REDIS_NAMESPACE: str = os.getenv("REDIS_NAMESPACE", "weektally")

# Version tag written into the document metadata
DOCUMENT_VERSION: str = "2.0"

# ── Ranking / Reporting ──────────────────────────────────────────────────

DEFAULT_RANKING_LIMIT: int = int(os.getenv("DEFAULT_RANKING_LIMIT", "10"))
DEFAULT_RECENT_DAYS: int = int(os.getenv("DEFAULT_RECENT_DAYS", "7"))

# ── Settings defaults (consumed by the PIN / alarm collaborators) ────────

DEFAULT_APP_PIN: str = os.getenv("DEFAULT_APP_PIN", "1234")
DEFAULT_ALARM_TIMES: str = os.getenv(
    "DEFAULT_ALARM_TIMES",
    ",".join(f"{h:02d}:59" for h in range(3, 23)),  # 03:59 .. 22:59
)

# ── Server Configuration ─────────────────────────────────────────────────

SERVER_HOST: str = os.getenv("SERVER_HOST", "127.0.0.1")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = "%(asctime)s  %(levelname)-7s  %(name)-22s  %(message)s"
