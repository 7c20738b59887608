# backend/app/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/outletops.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///outletops.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Wall-clock rules (shift names, calendar day) use the outlet timezone,
    # falling back to this one.
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Asia/Jakarta")
    MORNING_SHIFT_CUTOFF_HOUR = int(os.environ.get("MORNING_SHIFT_CUTOFF_HOUR", "15"))
    DEFAULT_SHIFT_START = os.environ.get("DEFAULT_SHIFT_START", "08:00")
    DEFAULT_SHIFT_END = os.environ.get("DEFAULT_SHIFT_END", "18:00")

    # Remote event store (durability stage). Empty URL disables dispatch.
    REMOTE_SYNC_URL = os.environ.get("REMOTE_SYNC_URL", "")
    REMOTE_SYNC_TOKEN = os.environ.get("REMOTE_SYNC_TOKEN", "")
    SYNC_TIMEOUT_SECONDS = float(os.environ.get("SYNC_TIMEOUT_SECONDS", "10"))
    SYNC_IN_BACKGROUND = _env_bool("SYNC_IN_BACKGROUND", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
