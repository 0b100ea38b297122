"""Subscription blueprint: read, create, cancel and expire the subscription."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from services.subscription_store import SubscriptionStore
from utils.auth import require_user
from utils.request_validation import parse_bool_field, parse_json_request

subscription_bp = Blueprint("subscription", __name__)


def get_store() -> SubscriptionStore:
    """Build a store bound to the current request's session."""

    return SubscriptionStore(
        manager_roles=current_app.config.get("SUBSCRIPTION_MANAGER_ROLES", ("developer",))
    )


@subscription_bp.route("", methods=["GET"])
@jwt_required()
def get_subscription():
    """Return the subscription; any authenticated user may read it."""

    require_user()
    record = get_store().get()
    return jsonify(record.to_dict())


@subscription_bp.route("", methods=["POST"])
@jwt_required()
def create_subscription():
    """Start a subscription. Developers only."""

    user = require_user()
    data = parse_json_request(request)

    overwrite = parse_bool_field(data, "overwrite")

    record = get_store().create(
        user,
        data.get("subscription_duration"),
        data.get("duration_type"),
        data.get("cost"),
        note=data.get("note"),
        overwrite=overwrite,
    )
    return jsonify({"success": True, "subscription": record.to_dict()}), HTTPStatus.CREATED


@subscription_bp.route("", methods=["PUT"])
@jwt_required()
def cancel_subscription():
    """Cancel the subscription. Developers only."""

    user = require_user()
    get_store().cancel(user)
    return jsonify({"success": True})


@subscription_bp.route("", methods=["PATCH"])
@jwt_required()
def expire_subscription():
    """Expire a subscription whose deadline has passed.

    Called by open sessions when their countdown reaches zero; repeated
    calls are harmless.
    """

    require_user()
    record, expired = get_store().expire()
    message = "Subscription expired" if expired else "No active subscription to expire"
    return jsonify({"success": True, "message": message, "subscription": record.to_dict()})
