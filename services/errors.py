"""Error taxonomy shared by the subscription store, API client, and controller."""

from __future__ import annotations


class SubscriptionError(Exception):
    """Base class for subscription and access errors."""

    status_code = 500
    code = "subscription_error"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        self.message = message or (self.__doc__ or self.code).strip()
        super().__init__(self.message)
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class ValidationError(SubscriptionError):
    """The request payload is missing or malformed."""

    status_code = 400
    code = "validation_error"


class SubscriptionNotExpired(ValidationError):
    """Subscription has not expired yet."""

    code = "subscription_not_expired"


class AuthenticationError(SubscriptionError):
    """Please log in to access this resource."""

    status_code = 401
    code = "unauthorized"


class AuthorizationError(SubscriptionError):
    """This resource is only accessible to subscription managers."""

    status_code = 403
    code = "forbidden"


class AccessDenied(AuthorizationError):
    """Access unavailable: subscription expired. Please contact the developer to renew."""

    code = "subscription_inactive"


class ConflictError(SubscriptionError):
    """There is already a subscription and it's not expired yet."""

    status_code = 409
    code = "ACTIVE_SUBSCRIPTION_EXISTS"


class TransientError(SubscriptionError):
    """The subscription service could not be reached."""

    status_code = 503
    code = "unavailable"
