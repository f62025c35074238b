"""Configuration objects for the Smart Therapy backend."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Type

basedir = Path(__file__).resolve().parent


def _csv(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


class Config:
    """Base configuration shared by all environments."""

    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-session-key")
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "dev-secret-key")
    JWT_TOKEN_LOCATION: list[str] = ["headers", "cookies"]
    JWT_COOKIE_CSRF_PROTECT: bool = os.getenv("JWT_COOKIE_CSRF_PROTECT", "1") == "1"
    BCRYPT_LOG_ROUNDS: int = int(os.getenv("BCRYPT_LOG_ROUNDS", "13"))
    SUBSCRIPTION_TIERS: tuple[str, ...] = _csv("SUBSCRIPTION_TIERS", "alpha,beta,gamma")
    BILLING_CYCLES: tuple[str, ...] = _csv("BILLING_CYCLES", "monthly,yearly")
    PAYMENT_METHODS: tuple[str, ...] = _csv(
        "PAYMENT_METHODS", "credit_card,bank_transfer,e_wallet,virtual_account"
    )
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "IDR")


class DevelopmentConfig(Config):
    """Configuration suitable for local development."""

    _db_path = basedir / "dev.db"
    SQLALCHEMY_DATABASE_URI = os.getenv("DEV_DATABASE_URL", f"sqlite:///{_db_path}")
    DEBUG = True


class TestingConfig(Config):
    """In-memory database and cheap hashing for the test suite."""

    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key"
    SECRET_KEY = "test-session-key"
    BCRYPT_LOG_ROUNDS = 4
    JWT_COOKIE_CSRF_PROTECT = False
    TESTING = True
    DEBUG = False


class ProductionConfig(Config):
    """Configuration tailored for production deployments."""

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///smart_therapy.db")
    DEBUG = False


CONFIG_MAP: Dict[str, Type[Config]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config(name: str | None) -> Type[Config]:
    """Retrieve the configuration class matching the supplied name."""

    if not name:
        return DevelopmentConfig
    return CONFIG_MAP.get(name.lower(), DevelopmentConfig)
