"""
Configuration for the Tour Statistics engine.

Centralizes paths, API endpoints, cache TTLs, logging setup and
startup validation.
"""

import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

# ── Paths ─────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
LOG_DIR = BASE_DIR / "logs"

# ── APIs ──────────────────────────────────────────────────
PHISHNET_BASE_URL = "https://api.phish.net/v5"
PHISHIN_BASE_URL = "https://phish.in/api/v2"
PHISHNET_API_KEY = os.getenv("PHISHNET_API_KEY")
PHISH_ARTIST_ID = 1

REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))     # seconds per HTTP call
SUBFETCH_TIMEOUT = float(os.getenv("SUBFETCH_TIMEOUT", "30"))   # seconds per builder sub-fetch
MAX_WORKERS = 5

# ── Rate limiting ────────────────────────────────────────
GAP_FETCH_DELAY = float(os.getenv("GAP_FETCH_DELAY", "0.1"))    # seconds between song gap calls

# ── Leaderboards ─────────────────────────────────────────
RESULT_LIMIT = int(os.getenv("RESULT_LIMIT", "3"))

# ── Cache TTLs (seconds) ─────────────────────────────────
TTL_ENHANCED_SETLIST = 30 * 60
TTL_CURRENT_TOUR_STATS = 60 * 60
TTL_SHOWS_FOR_YEAR = 60 * 60
TTL_SONG_GAPS = 6 * 60 * 60
TTL_AUDIO_SHOW = 30 * 60
TTL_CURRENT_TOUR_NAME = 24 * 60 * 60

# ── Tours ────────────────────────────────────────────────
# Phish.in style names -> Phish.net style names
TOUR_NAME_ALIASES: Dict[str, str] = {
    "Summer Tour 2025": "2025 Summer Tour",
    "Early Summer Tour 2025": "2025 Early Summer Tour",
    "Fall Tour 2025": "2025 Fall Tour",
    "Summer Tour 2024": "2024 Summer Tour",
    "Fall Tour 2024": "2024 Fall Tour",
    "Winter Tour 2025": "2025 Winter Tour",
}

TOUR_SCHEDULE_FILE = Path(os.getenv("TOUR_SCHEDULE_FILE", str(DATA_DIR / "tour_schedules.json")))

# ── Logging ───────────────────────────────────────────────
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "false").lower() == "true"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024   # 10 MB
LOG_FILE_BACKUP_COUNT = 5


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure root logger with console output and optional file rotation.

    Set LOG_TO_FILE=true in .env to write logs/tourstats.log as well,
    rotated at 10 MB with 5 backups kept.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if LOG_TO_FILE:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            LOG_DIR / "tourstats.log",
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
    )


def validate_config(api_key: Optional[str] = None) -> None:
    """
    Check that everything the engine needs at startup is present.

    Raises ConfigurationError so a server fails at boot rather than
    on its first request.
    """
    from .errors import ConfigurationError

    errors: List[str] = []

    if not (api_key or PHISHNET_API_KEY):
        errors.append("PHISHNET_API_KEY is not set (pass api_key or add it to .env)")

    if RESULT_LIMIT < 1:
        errors.append(f"RESULT_LIMIT must be >= 1, got {RESULT_LIMIT}")

    if not TOUR_SCHEDULE_FILE.exists():
        logging.getLogger(__name__).info(
            "No tour schedule file at %s - tour totals will count played shows only",
            TOUR_SCHEDULE_FILE,
        )

    if errors:
        raise ConfigurationError(
            "Configuration errors:\n  • " + "\n  • ".join(errors)
        )


def load_tour_schedules(path: Optional[Path] = None) -> Dict[str, List[str]]:
    """
    Load published tour schedules: {tour name: [YYYY-MM-DD, ...]}.

    The file may also use {tour name: {"shows": [...]}}. A missing file
    yields an empty table.
    """
    path = Path(path) if path is not None else TOUR_SCHEDULE_FILE
    if not path.exists():
        return {}

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    schedules: Dict[str, List[str]] = {}
    for tour_name, value in raw.items():
        dates = value.get("shows", []) if isinstance(value, dict) else value
        schedules[tour_name] = sorted(str(d) for d in dates)

    logging.getLogger(__name__).info("Loaded schedules for %d tours from %s", len(schedules), path)
    return schedules
