"""Subscription model gating back-office access."""

from datetime import datetime
from decimal import Decimal

from . import db


SUBSCRIPTION_ID = 1

CLEARED_FIELDS = {
    "active": False,
    "subscription_duration": None,
    "date_of_subscription": None,
    "date_of_expiration": None,
    "cost": None,
    "note": None,
}


class Subscription(db.Model):
    """The single subscription record for the whole installation.

    The row is created empty on first access and is only ever cleared in
    place, never deleted.
    """

    __tablename__ = "subscription"

    id = db.Column(db.Integer, primary_key=True, default=SUBSCRIPTION_ID)
    active = db.Column(
        db.Boolean,
        nullable=False,
        default=False,
        server_default=db.text("false"),
    )
    subscription_duration = db.Column(db.String(64), nullable=True)
    date_of_subscription = db.Column(db.DateTime, nullable=True)
    date_of_expiration = db.Column(db.DateTime, nullable=True)
    cost = db.Column(db.Numeric(10, 2), nullable=True)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def has_active_subscription(self, now: datetime) -> bool:
        """Return True if the subscription is in force at ``now``.

        The stored ``active`` flag alone is not enough: a record whose
        expiration has passed is inactive even before it is cleared.
        """

        if not self.active or self.date_of_expiration is None:
            return False
        return now < self.date_of_expiration

    def is_due(self, now: datetime) -> bool:
        """Return True if the record still claims to be active but has run out."""

        return bool(self.active) and not self.has_active_subscription(now)

    def to_dict(self) -> dict:
        """Serialize the subscription to a dictionary."""

        cost = float(self.cost) if isinstance(self.cost, Decimal) else self.cost
        return {
            "active": bool(self.active),
            "subscription_duration": self.subscription_duration,
            "date_of_subscription": self.date_of_subscription.isoformat()
            if self.date_of_subscription
            else None,
            "date_of_expiration": self.date_of_expiration.isoformat()
            if self.date_of_expiration
            else None,
            "cost": cost,
            "note": self.note,
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Subscription active={self.active} until={self.date_of_expiration}>"
