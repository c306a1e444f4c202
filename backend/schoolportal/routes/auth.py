"""Session identity endpoints and role guards."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, TypeVar, cast

from flask import Blueprint, g, jsonify, request, session
from werkzeug.security import check_password_hash

from ..db import get_users_store
from ..listing.filters import Condition, FilterSpec, Scope
from ..records import serialize_user
from ..validation import clean_string
from .common import json_error, store_guard

auth_bp = Blueprint("auth", __name__)

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])


def current_user_id() -> str | None:
    return session.get("user_id")


def current_role() -> str | None:
    return session.get("role")


def require_role(*roles: str) -> Callable[[_F], _F]:
    """Ensure the session belongs to a user with one of ``roles``."""

    def decorator(func: _F) -> _F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            user_id = current_user_id()
            if not user_id:
                return jsonify({"error": "unauthorized"}), 401
            if current_role() not in roles:
                return jsonify({"error": "forbidden"}), 403
            g.user_id = user_id
            g.role = current_role()
            return func(*args, **kwargs)

        return cast(_F, wrapper)

    return decorator


def load_user(user_id: str):
    return get_users_store().get(user_id)


def user_names(user_ids: Iterable[str]) -> Dict[str, str]:
    """Map user ids to display names."""

    ids = tuple(sorted({user_id for user_id in user_ids if user_id}))
    if not ids:
        return {}
    spec = FilterSpec(Scope.everything()).narrowed(Condition("_id", "in", ids))
    return {
        str(user["_id"]): user.get("name")
        for user in get_users_store().iter_documents(spec, ("name",))
    }


def parent_owns_child(parent_id: str, child_id: str) -> bool:
    """True when ``child_id`` is listed among the parent's children."""

    parent = load_user(parent_id)
    if not parent or parent.get("role") != "parent":
        return False
    return child_id in {str(child) for child in parent.get("children") or []}


@auth_bp.post("/api/login")
@store_guard("Failed to log in")
def login():
    payload = request.get_json(silent=True) or {}
    email = clean_string(payload.get("email")).lower()
    password = str(payload.get("password", ""))

    if not email or not password:
        return json_error("Email and password are required.", 400)

    user = get_users_store().find_one(FilterSpec(Scope.owned_by("email", email)))

    if user and check_password_hash(user.get("password_hash", ""), password):
        session.clear()
        session["user_id"] = str(user["_id"])
        session["role"] = user.get("role")
        session.permanent = False
        logger.info("User %s logged in as %s", session["user_id"], session["role"])
        return jsonify({"ok": True, "user": serialize_user(user)}), 200

    session.pop("user_id", None)
    session.pop("role", None)
    return jsonify({"error": "invalid_credentials"}), 401


@auth_bp.post("/api/logout")
def logout():
    session.clear()
    return jsonify({"ok": True})


@auth_bp.get("/api/me")
@store_guard("Failed to load current user")
def me():
    user_id = current_user_id()
    if not user_id:
        return jsonify({"authenticated": False})
    user = load_user(user_id)
    if not user:
        session.clear()
        return jsonify({"authenticated": False})
    return jsonify({"authenticated": True, "user": serialize_user(user)})


__all__ = [
    "auth_bp",
    "current_role",
    "current_user_id",
    "load_user",
    "parent_owns_child",
    "require_role",
    "user_names",
]
