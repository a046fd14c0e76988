from __future__ import annotations

from dataclasses import dataclass
import os
import sys
from typing import Literal

from loguru import logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"]
_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"}

DEFAULT_DATABASE_URL = "sqlite:///sharetrack.db"


@dataclass(frozen=True, slots=True)
class SharetrackConfig:
    """Settings loaded at process startup."""

    database_url: str = DEFAULT_DATABASE_URL
    log_level: LogLevel = "INFO"


def load_config_from_env() -> SharetrackConfig:
    """Load config from env and validate it."""
    database_url = os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL).strip()
    if not database_url:
        raise ValueError("DATABASE_URL must not be empty")

    log_level = os.environ.get("SHARETRACK_LOG_LEVEL", "INFO").strip().upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(
            "SHARETRACK_LOG_LEVEL must be one of: " + ", ".join(sorted(_LOG_LEVELS))
        )

    return SharetrackConfig(
        database_url=database_url,
        log_level=log_level,  # type: ignore[arg-type]
    )


def configure_logging(level: LogLevel) -> None:
    """Send loguru output to stderr at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} [{level}] {name}: {message}",
        level=level,
    )
