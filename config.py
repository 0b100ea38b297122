"""Application configuration module."""

import os
from datetime import timedelta


def _split_env(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


class Config:
    """Base configuration for the Flask application."""

    # Core
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        hours=int(os.getenv("JWT_ACCESS_TOKEN_HOURS", "6"))
    )
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///app.db")
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # CORS
    _raw_origins = os.getenv("ORIGINS", "*")
    if _raw_origins.strip() == "*":
        CORS_ORIGINS = "*"
    else:
        CORS_ORIGINS = [o.strip() for o in _raw_origins.split(",") if o.strip()]

    # Rate limiting
    RATE_LIMIT = os.getenv("RATE_LIMIT", "60 per minute")
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_KEY_PREFIX = os.getenv("RATELIMIT_KEY_PREFIX", "")

    # Subscription gate
    SUBSCRIPTION_MANAGER_ROLES = _split_env("SUBSCRIPTION_MANAGER_ROLES", "developer")
    SUBSCRIPTION_EXEMPT_ROLES = _split_env(
        "SUBSCRIPTION_EXEMPT_ROLES", "developer,student"
    )

    # Lifecycle controller (client side)
    SUBSCRIPTION_API_URL = os.getenv("SUBSCRIPTION_API_URL", "http://localhost:5000")
    SUBSCRIPTION_POLL_INTERVAL = int(os.getenv("SUBSCRIPTION_POLL_INTERVAL", "300"))
    SUBSCRIPTION_EXPIRE_RETRIES = int(os.getenv("SUBSCRIPTION_EXPIRE_RETRIES", "2"))
