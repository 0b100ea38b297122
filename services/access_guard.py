"""Login-time enforcement of the subscription gate."""

from __future__ import annotations

import logging
from typing import Iterable

from models.user import User

from .errors import AccessDenied
from .subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

SUBSCRIPTION_EXPIRED = "subscription_expired"
SUBSCRIPTION_INACTIVE = "subscription_inactive"


def enforce_subscription_access(
    user: User,
    store: SubscriptionStore,
    exempt_roles: Iterable[str] = ("developer", "student"),
) -> None:
    """Reject ``user`` if no subscription is in force and their role is not exempt.

    The expiration check runs against the server clock on every call and
    clears a run-out record in place, so a login never depends on a client
    having expired it first.
    """

    just_expired = store.expire_if_due()
    record = store.get()
    if record.has_active_subscription(store.now()):
        return
    if user.role in tuple(exempt_roles):
        return

    code = SUBSCRIPTION_EXPIRED if just_expired else SUBSCRIPTION_INACTIVE
    logger.info("Login refused for %s (%s): %s", user.username, user.role, code)
    raise AccessDenied(code=code)
