"""Subscription services: store, login guard, API client, lifecycle controller."""

from .access_guard import enforce_subscription_access
from .errors import (
    AccessDenied,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    SubscriptionError,
    SubscriptionNotExpired,
    TransientError,
    ValidationError,
)
from .subscription_store import SubscriptionStore

__all__ = [
    "AccessDenied",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "SubscriptionError",
    "SubscriptionNotExpired",
    "SubscriptionStore",
    "TransientError",
    "ValidationError",
    "enforce_subscription_access",
]
