"""
Stepwise configuration classes for the Flask app factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name]())
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'stepwise_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Random per-process key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _normalize_db_url(raw: str) -> str:
    # Heroku-style postgres:// is rejected by SQLAlchemy 2.0
    return raw.replace("postgres://", "postgresql://", 1)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    LOG_LEVEL = os.getenv("LOG_LEVEL")

    # Content engine
    COUNTER_SYNC_MODE = os.getenv("COUNTER_SYNC_MODE", "atomic")
    SLUG_MAX_ATTEMPTS = int(os.getenv("SLUG_MAX_ATTEMPTS", "10"))
    MAX_TAGS_PER_PROJECT = int(os.getenv("MAX_TAGS_PER_PROJECT", "10"))
    COMMENT_MAX_LENGTH = int(os.getenv("COMMENT_MAX_LENGTH", "2000"))

    # Trusts a plain X-Actor-Id header as identity; never enable in production
    ACTOR_HEADER_ENABLED = _env_bool("ACTOR_HEADER_ENABLED")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _normalize_db_url(_raw_db_url) if _raw_db_url else _SQLITE_DEV
    ACTOR_HEADER_ENABLED = _env_bool("ACTOR_HEADER_ENABLED", "true")


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret"
    COUNTER_SYNC_MODE = "atomic"
    SLUG_MAX_ATTEMPTS = 10
    ACTOR_HEADER_ENABLED = True


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _normalize_db_url(_raw_db_url) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production
    ACTOR_HEADER_ENABLED = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
