# config/settings.py
"""
Runtime settings, read once from the environment (and .env via python-dotenv).

Nothing here is a module-level singleton: main.create_app() calls
load_settings() and passes the result down to whatever needs it.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_QUOTE_BASE_URL = "https://query1.finance.yahoo.com/v8/finance/chart"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str

    # ─── DB pool (ignored for SQLite) ──────────────────────────────
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800
    db_create_all: bool = True

    # ─── Quote source ──────────────────────────────────────────────
    quote_base_url: str = DEFAULT_QUOTE_BASE_URL
    quote_timeout_sec: float = 5.0
    quote_max_concurrency: int = 8

    # ─── FX rates ──────────────────────────────────────────────────
    fallback_inr_rate: float = 87.0
    fallback_sgd_rate: float = 1.36
    rates_cache_ttl_sec: int = 300

    # ─── Background tasks ──────────────────────────────────────────
    price_refresh_interval_sec: int = 0
    keepalive_url: Optional[str] = None
    keepalive_interval_sec: int = 600
    keepalive_initial_delay_sec: int = 60

    # ─── Auth ──────────────────────────────────────────────────────
    jwt_secret_key: str = "change-me-in-prod"
    access_token_expire_minutes: int = 1440

    cors_origins: List[str] = field(default_factory=lambda: ["*"])


def load_settings() -> Settings:
    load_dotenv()

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set in the environment")

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    return Settings(
        database_url=database_url,
        db_pool_size=_env_int("DB_POOL_SIZE", 5),
        db_max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
        db_pool_timeout=_env_int("DB_POOL_TIMEOUT", 30),
        db_pool_recycle=_env_int("DB_POOL_RECYCLE", 1800),
        db_create_all=_env_bool("DB_CREATE_ALL", True),
        quote_base_url=os.getenv("QUOTE_BASE_URL", DEFAULT_QUOTE_BASE_URL).rstrip("/"),
        quote_timeout_sec=_env_float("QUOTE_TIMEOUT_SEC", 5.0),
        quote_max_concurrency=_env_int("QUOTE_MAX_CONCURRENCY", 8),
        fallback_inr_rate=_env_float("FALLBACK_INR_RATE", 87.0),
        fallback_sgd_rate=_env_float("FALLBACK_SGD_RATE", 1.36),
        rates_cache_ttl_sec=_env_int("RATES_CACHE_TTL_SEC", 300),
        price_refresh_interval_sec=_env_int("PRICE_REFRESH_INTERVAL_SEC", 0),
        keepalive_url=os.getenv("KEEPALIVE_URL") or None,
        keepalive_interval_sec=_env_int("KEEPALIVE_INTERVAL_SEC", 600),
        keepalive_initial_delay_sec=_env_int("KEEPALIVE_INITIAL_DELAY_SEC", 60),
        jwt_secret_key=os.getenv("JWT_SECRET_KEY", "change-me-in-prod"),
        access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 1440),
        cors_origins=origins or ["*"],
    )
