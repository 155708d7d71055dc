# cardprice/config/settings.py

"""Central configuration for the cardprice pipeline."""

import os
from datetime import timezone
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_path(name: str) -> Path | None:
    """Return the env var *name* as a Path, or None when unset/blank."""
    raw = os.getenv(name, "").strip()
    return Path(raw) if raw else None


class Settings:
    """Central configuration for the cardprice pipeline."""

    # --- Store ---
    DB_PATH: Path | None = _env_path("CARDPRICE_DB_PATH")

    # --- Dates / currency ---
    REFERENCE_TIMEZONE: timezone = timezone.utc
    DEFAULT_CURRENCY: str = "USD"

    # --- Daily price resolver ---
    DAILY_CONFIDENCE: int = 70          # Baseline score, rank-only model
    DAILY_METHOD: str = "priority_best_of_day"

    # --- Sale-comp rollup ---
    ROLLUP_WINDOW_DAYS: int = 180
    CONFIDENCE_THRESHOLDS: list[tuple[int, str]] = [
        (10, "A"),
        (5, "B"),
        (2, "C"),
    ]
    LOWEST_CONFIDENCE: str = "D"

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("CARDPRICE_LOG_LEVEL", "").strip().upper() or "WARNING"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"
