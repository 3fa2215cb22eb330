"""Runtime configuration and logging setup."""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class Settings(BaseModel):
    """Process-wide settings, read once from the environment."""

    # Shared secret gating every admin operation (compared by exact equality)
    admin_secret: str = "ucd_247"
    database_url: str = "sqlite://classroom.db"
    # Random bytes per class handle; the handle is their hex form
    handle_bytes: int = Field(default=4, ge=1)
    # Seconds after which a verified admin session counts as expired
    session_timeout: int = 720
    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build :class:`Settings` from ``CLASSROOM_*`` environment variables."""
    defaults = Settings()
    return Settings(
        admin_secret=os.getenv("CLASSROOM_ADMIN_SECRET", defaults.admin_secret),
        database_url=os.getenv("CLASSROOM_DB_URL", defaults.database_url),
        handle_bytes=int(os.getenv("CLASSROOM_HANDLE_BYTES", defaults.handle_bytes)),
        session_timeout=int(os.getenv("CLASSROOM_SESSION_TIMEOUT", defaults.session_timeout)),
        log_level=os.getenv("CLASSROOM_LOG_LEVEL", defaults.log_level),
        cors_origins=_env_list("CLASSROOM_CORS_ORIGINS", "*"),
    )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Configure basic logging for the server and return its package logger."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    return logging.getLogger("classroom")


__all__ = ["Settings", "get_settings", "configure_logging", "LOG_FORMAT"]
