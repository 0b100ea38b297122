"""Authentication blueprint providing login and identity endpoints."""

from __future__ import annotations
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import create_access_token, jwt_required
from werkzeug.exceptions import BadRequest, Unauthorized
from sqlalchemy import func

from models.user import User
from services.access_guard import enforce_subscription_access
from services.errors import AuthorizationError
from utils.auth import require_user
from utils.request_validation import parse_json_request

from routes.subscription import get_store

auth_bp = Blueprint("auth", __name__)


def _normalize_username(raw_username: str | None) -> str:
    """Normalize a username by stripping whitespace and lowering case."""
    return (raw_username or "").strip().lower()


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple:
    """Authenticate a user, apply the subscription gate, and return a JWT."""
    payload = parse_json_request(request, required_keys=("username", "password"))
    username = _normalize_username(payload.get("username"))
    password = (payload.get("password") or "").strip()

    if not username or not password:
        raise BadRequest("Username and password are required.")

    # Case-insensitive lookup
    user = User.query.filter(func.lower(User.username) == username).first()
    if user is None or not user.check_password(password):
        raise Unauthorized("Invalid username or password.")

    if not user.is_active:
        code = "student_account_deactivated" if user.role == "student" else "account_deactivated"
        raise AuthorizationError("This account has been deactivated.", code=code)

    enforce_subscription_access(
        user,
        get_store(),
        current_app.config.get("SUBSCRIPTION_EXEMPT_ROLES", ("developer", "student")),
    )

    token = create_access_token(identity=str(user.id), additional_claims={"role": user.role})
    current_app.logger.info("User %s logged in", user.username)
    return (
        jsonify(
            {
                "success": True,
                "access_token": token,
                "role": user.role,
                "user": user.to_dict(),
            }
        ),
        HTTPStatus.OK,
    )


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    """Return the authenticated user."""
    return jsonify(require_user().to_dict())
