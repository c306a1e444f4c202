"""Application configuration helpers."""

import os

from dotenv import load_dotenv

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DOTENV_PATH = os.path.join(_BASE_DIR, ".env")

if os.path.exists(_DOTENV_PATH):
    load_dotenv(_DOTENV_PATH)


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or invalid."""


def _int_setting(name, default):
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer.") from None
    if value <= 0:
        raise ConfigError(f"{name} must be a positive integer.")
    return value


SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "school_portal_session")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DEFAULT_PAGE_SIZE = _int_setting("DEFAULT_PAGE_SIZE", 10)
MAX_PAGE_SIZE = _int_setting("MAX_PAGE_SIZE", 100)

if DEFAULT_PAGE_SIZE > MAX_PAGE_SIZE:
    raise ConfigError("DEFAULT_PAGE_SIZE cannot exceed MAX_PAGE_SIZE.")


_MONGO_URI_CACHE = None
_DB_NAME_CACHE = None


def get_mongo_uri():
    """Return the MongoDB connection string from the environment."""

    global _MONGO_URI_CACHE

    if _MONGO_URI_CACHE:
        return _MONGO_URI_CACHE

    uri = os.getenv("MONGODB_URI")
    if not uri:
        raise ConfigError("MONGODB_URI is not set. Define it in backend/.env.")

    _MONGO_URI_CACHE = uri
    return uri


def get_db_name():
    """Return the database name from MONGODB_DB or the path of MONGODB_URI."""

    global _DB_NAME_CACHE

    if _DB_NAME_CACHE:
        return _DB_NAME_CACHE

    db_name = os.getenv("MONGODB_DB")
    if db_name:
        _DB_NAME_CACHE = db_name
        return db_name

    uri = get_mongo_uri()
    main = uri.split("?", 1)[0].rstrip("/")
    after_scheme = main.split("://", 1)[1] if "://" in main else main

    candidate = after_scheme.split("/", 1)[1] if "/" in after_scheme else ""
    if not candidate:
        raise ConfigError(
            "Database name not found. Provide it via MONGODB_URI or MONGODB_DB."
        )

    _DB_NAME_CACHE = candidate
    return candidate


__all__ = [
    "ConfigError",
    "DEFAULT_PAGE_SIZE",
    "LOG_LEVEL",
    "MAX_PAGE_SIZE",
    "SECRET_KEY",
    "SESSION_COOKIE_NAME",
    "get_db_name",
    "get_mongo_uri",
]
