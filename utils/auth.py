"""Helpers for resolving the user behind a JWT."""

from __future__ import annotations

from flask_jwt_extended import get_jwt_identity

from models.user import User
from services.errors import AuthenticationError


def get_current_user() -> User | None:
    try:
        identity = get_jwt_identity()
    except RuntimeError:
        return None
    if identity is None:
        return None
    try:
        user_id = int(identity)
    except (TypeError, ValueError):
        return None
    return User.query.get(user_id)


def require_user() -> User:
    """Return the authenticated, active user or raise a 401."""

    user = get_current_user()
    if user is None or not user.is_active:
        raise AuthenticationError()
    return user
