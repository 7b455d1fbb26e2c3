"""Application configuration for KioskHub."""

from __future__ import annotations

import json
import os
from datetime import timedelta
from typing import Dict, Type

from dotenv import load_dotenv
from sqlalchemy.engine.url import make_url

load_dotenv()

DEFAULT_TIER_CODE_LIMITS = {"FREE": 1, "BRONZE": 3, "GOLD": 10, "PRO": 50}


def _engine_options_from_uri(uri: str) -> dict:
    url = make_url(uri)
    # Always keep pool_pre_ping, vary connect_args by dialect.
    if url.get_backend_name() == "sqlite":
        return {
            "pool_pre_ping": True,
            "connect_args": {"timeout": 30},
        }
    if url.get_backend_name() in {"postgresql", "postgres"}:
        timeout = int(os.environ.get("DB_CONNECT_TIMEOUT_SECONDS", "10"))
        return {"pool_pre_ping": True, "connect_args": {"connect_timeout": timeout}}
    return {"pool_pre_ping": True}


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def _tier_limits_from_env() -> Dict[str, int]:
    raw = os.environ.get("KIOSK_TIER_CODE_LIMITS")
    if not raw:
        return dict(DEFAULT_TIER_CODE_LIMITS)
    return {str(tier).upper(): int(limit) for tier, limit in json.loads(raw).items()}


class BaseConfig:
    """Base configuration loaded for all environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///instance/kioskhub.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options_from_uri(SQLALCHEMY_DATABASE_URI)

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=int(os.environ.get("JWT_ACCESS_MINUTES", "30")))

    RATELIMIT_DEFAULT = "200/hour"
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "memory://")
    RATELIMIT_ENABLED = _flag("RATELIMIT_ENABLED", "true")

    # Kiosk codes: short activation window, long-lived sessions.
    KIOSK_CODE_EXPIRES_MINUTES = int(os.environ.get("KIOSK_CODE_EXPIRES_MINUTES", "10"))
    KIOSK_SESSION_DURATION_DAYS = int(os.environ.get("KIOSK_SESSION_DURATION_DAYS", "90"))
    KIOSK_CODE_WORD_COUNT = int(os.environ.get("KIOSK_CODE_WORD_COUNT", "2"))
    KIOSK_VALIDATE_RATE_LIMIT = os.environ.get("KIOSK_VALIDATE_RATE_LIMIT", "10 per minute")
    KIOSK_INACTIVITY_TIMEOUT_MS = int(os.environ.get("KIOSK_INACTIVITY_TIMEOUT_MS", "60000"))

    # Completions
    KIOSK_UNDO_WINDOW_MINUTES = int(os.environ.get("KIOSK_UNDO_WINDOW_MINUTES", "5"))

    # Billing collaborator defaults (tier -> simultaneous live kiosk codes)
    KIOSK_TIER_CODE_LIMITS = _tier_limits_from_env()
    KIOSK_DEFAULT_TIER = os.environ.get("KIOSK_DEFAULT_TIER", "FREE").upper()


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENV = "development"


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite://")
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options_from_uri(SQLALCHEMY_DATABASE_URI)
    RATELIMIT_ENABLED = False
    JWT_SECRET_KEY = "testing-secret-key-with-enough-length-for-hs256"


class ProductionConfig(BaseConfig):
    ENV = "production"


config_by_name: Dict[str, Type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    # CI pipelines set APP_ENV=ci; map to testing defaults.
    "ci": TestingConfig,
}
