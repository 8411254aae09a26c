"""Configuration management from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

from caremind.utils.constants import (
    DEFAULT_LATE_TOLERANCE_MINUTES,
    DEFAULT_LOW_STOCK_THRESHOLD,
    DEFAULT_TIMEZONE,
)
from caremind.utils.time_utils import is_valid_timezone

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    # Database
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./data/caremind.db"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Scheduling
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", DEFAULT_TIMEZONE)
    RESET_SWEEP_INTERVAL: int = int(os.getenv("RESET_SWEEP_INTERVAL", "300"))
    MONITOR_INTERVAL: int = int(os.getenv("MONITOR_INTERVAL", "300"))
    LATE_TOLERANCE_MINUTES: int = int(
        os.getenv("LATE_TOLERANCE_MINUTES", str(DEFAULT_LATE_TOLERANCE_MINUTES))
    )
    LOW_STOCK_THRESHOLD: int = int(
        os.getenv("LOW_STOCK_THRESHOLD", str(DEFAULT_LOW_STOCK_THRESHOLD))
    )

    @classmethod
    def validate(cls, require_token: bool = True) -> None:
        """Validate configuration."""
        if require_token and not cls.TELEGRAM_BOT_TOKEN:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

        if not is_valid_timezone(cls.DEFAULT_TIMEZONE):
            raise ValueError(f"DEFAULT_TIMEZONE '{cls.DEFAULT_TIMEZONE}' is not a known timezone")

        if cls.RESET_SWEEP_INTERVAL <= 0 or cls.MONITOR_INTERVAL <= 0:
            raise ValueError("Job intervals must be positive")

        if cls.LATE_TOLERANCE_MINUTES < 0:
            raise ValueError("LATE_TOLERANCE_MINUTES must not be negative")

        # Ensure database directory exists
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
