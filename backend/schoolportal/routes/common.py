"""Response helpers shared by the API blueprints."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Dict, TypeVar, cast

from flask import jsonify
from pymongo.errors import PyMongoError

from ..config import ConfigError
from ..listing.errors import ListQueryError, ScopeViolationError

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])


def json_error(message: str, status: int, details: Dict[str, Any] | None = None):
    payload: Dict[str, Any] = {"error": message}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def validation_error(errors: Dict[str, str]):
    details = {k: v for k, v in errors.items() if k != "_global"}
    message = errors.get("_global", "Validation failed.")
    return json_error(message, 400, details if details else None)


def handle_config_error(exc: ConfigError):
    logger.exception("Missing configuration for MongoDB")
    return json_error(str(exc), 500)


def handle_db_error(action: str, exc: PyMongoError):
    logger.exception("%s due to MongoDB error", action)
    return json_error("Database unavailable. Please try again later.", 503)


def handle_list_error(action: str, exc: ListQueryError):
    if isinstance(exc, ScopeViolationError):
        logger.error("%s: scope violation: %s", action, exc.message)
    elif exc.status_code >= 500:
        logger.warning("%s: %s", action, exc.message)
    else:
        logger.info("%s: rejected request: %s", action, exc.message)
    return jsonify(exc.to_dict()), exc.status_code


def store_guard(action: str) -> Callable[[_F], _F]:
    """Translate configuration, list query and driver errors into JSON."""

    def decorator(func: _F) -> _F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            try:
                return func(*args, **kwargs)
            except ConfigError as exc:
                return handle_config_error(exc)
            except ListQueryError as exc:
                return handle_list_error(action, exc)
            except PyMongoError as exc:
                return handle_db_error(action, exc)

        return cast(_F, wrapper)

    return decorator


__all__ = [
    "handle_config_error",
    "handle_db_error",
    "handle_list_error",
    "json_error",
    "store_guard",
    "validation_error",
]
