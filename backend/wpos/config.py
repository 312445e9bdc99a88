# backend/wpos/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _is_sqlite(uri: str) -> bool:
    return uri.startswith("sqlite")


def build_engine_options(uri: str, *, max_open: int, max_idle: int, max_lifetime: int, max_idle_time: int) -> dict:
    """
    Translate the connection pool settings into SQLAlchemy engine options.

    SQLite uses a single-connection pool, so pool sizing is skipped there.
    """
    if _is_sqlite(uri):
        return {}

    options: dict = {"pool_pre_ping": True}
    if max_idle > 0:
        options["pool_size"] = max_idle
    if max_open > 0:
        options["max_overflow"] = max(max_open - max(max_idle, 0), 0)

    # Pool recycle is the tighter of the two connection age limits
    limits = [v for v in (max_lifetime, max_idle_time) if v > 0]
    if limits:
        options["pool_recycle"] = min(limits)
    return options


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///wpos.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    DB_MAX_OPEN_CONNS = _env_int("DB_MAX_OPEN_CONNS", 25)
    DB_MAX_IDLE_CONNS = _env_int("DB_MAX_IDLE_CONNS", 10)
    DB_CONN_MAX_LIFETIME = _env_int("DB_CONN_MAX_LIFETIME", 300)
    DB_CONN_MAX_IDLE_TIME = _env_int("DB_CONN_MAX_IDLE_TIME", 60)

    SQLALCHEMY_ENGINE_OPTIONS = build_engine_options(
        SQLALCHEMY_DATABASE_URI,
        max_open=DB_MAX_OPEN_CONNS,
        max_idle=DB_MAX_IDLE_CONNS,
        max_lifetime=DB_CONN_MAX_LIFETIME,
        max_idle_time=DB_CONN_MAX_IDLE_TIME,
    )

    PORT = _env_int("PORT", 8080)
    OUTLET_DEFAULT_TIMEZONE = os.environ.get("OUTLET_DEFAULT_TIMEZONE", "UTC")
    REQUEST_TIMEOUT_SECONDS = _env_int("REQUEST_TIMEOUT_SECONDS", 30)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
