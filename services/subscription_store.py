"""Persistence and lifecycle rules for the subscription record."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable

from dateutil.relativedelta import relativedelta
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from models import db
from models.subscription import CLEARED_FIELDS, SUBSCRIPTION_ID, Subscription
from models.user import User
from utils.clock import utcnow

from .errors import AuthorizationError, ConflictError, SubscriptionNotExpired, ValidationError

logger = logging.getLogger(__name__)

# duration_type -> (label unit, relativedelta keyword)
DURATION_UNITS = {
    "yearly": ("Year", "years"),
    "monthly": ("Month", "months"),
    "daily": ("Day", "days"),
    "hourly": ("Hour", "hours"),
    "minutely": ("Minute", "minutes"),
}


def parse_duration(raw_duration, duration_type) -> tuple[int, str]:
    """Return the validated ``(amount, duration_type)`` pair."""

    if isinstance(raw_duration, bool):
        raise ValidationError("subscription_duration must be a positive integer")
    if isinstance(raw_duration, str):
        raw_duration = raw_duration.strip()
        if not raw_duration.isdigit():
            raise ValidationError("subscription_duration must be a positive integer")
        raw_duration = int(raw_duration)
    if not isinstance(raw_duration, int) or raw_duration <= 0:
        raise ValidationError("subscription_duration must be a positive integer")

    unit = (duration_type or "").strip().lower() if isinstance(duration_type, str) else ""
    if unit not in DURATION_UNITS:
        raise ValidationError(
            "duration_type must be one of: {}".format(", ".join(DURATION_UNITS))
        )
    return raw_duration, unit


def parse_cost(raw_cost) -> Decimal:
    """Return the cost as a non-negative Decimal."""

    if raw_cost is None or raw_cost == "" or isinstance(raw_cost, bool):
        raise ValidationError("Subscription duration and cost are required")
    try:
        cost = Decimal(str(raw_cost).strip())
    except (InvalidOperation, TypeError):
        raise ValidationError("cost must be numeric") from None
    if not cost.is_finite():
        raise ValidationError("cost must be numeric")
    if cost < 0:
        raise ValidationError("cost must not be negative")
    return cost


def duration_label(amount: int, duration_type: str) -> str:
    """Human readable label, e.g. ``1 Day`` or ``3 Months``."""

    unit = DURATION_UNITS[duration_type][0]
    return f"{amount} {unit}{'s' if amount > 1 else ''}"


def duration_delta(amount: int, duration_type: str) -> relativedelta:
    return relativedelta(**{DURATION_UNITS[duration_type][1]: amount})


def _clean_note(note) -> str | None:
    if note is None:
        return None
    note = str(note).strip()
    return note or None


class SubscriptionStore:
    """Owns the single subscription row.

    Every mutation is one conditional UPDATE so that check-and-write happens
    inside the database rather than as a read followed by a write.
    """

    def __init__(
        self,
        session=None,
        *,
        clock=None,
        manager_roles: Iterable[str] = ("developer",),
    ):
        self.session = session or db.session
        self._clock = clock
        self.manager_roles = tuple(manager_roles)

    def now(self):
        return (self._clock or utcnow)()

    def _load(self) -> Subscription:
        record = self.session.get(Subscription, SUBSCRIPTION_ID)
        if record is None:
            record = Subscription(id=SUBSCRIPTION_ID, **CLEARED_FIELDS)
            self.session.add(record)
            try:
                self.session.commit()
            except IntegrityError:
                # Another request inserted the row first.
                self.session.rollback()
                record = self.session.get(Subscription, SUBSCRIPTION_ID)
            else:
                logger.info("Initialized empty subscription record")
        return record

    def _due_criteria(self, now):
        return (
            Subscription.active.is_(True),
            or_(
                Subscription.date_of_expiration.is_(None),
                Subscription.date_of_expiration <= now,
            ),
        )

    def _clear_where(self, *criteria) -> bool:
        result = self.session.execute(
            update(Subscription)
            .where(Subscription.id == SUBSCRIPTION_ID, *criteria)
            .values(**CLEARED_FIELDS, updated_at=self.now())
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount > 0

    def _require_manager(self, actor: User | None) -> None:
        if actor is None or actor.role not in self.manager_roles:
            raise AuthorizationError(
                "This resource is only accessible to users with the developer role"
            )

    def get(self) -> Subscription:
        """Return the current record, clearing it first if it has run out."""

        self.expire_if_due()
        return self._load()

    def expire_if_due(self) -> bool:
        """Clear the record if its expiration has passed.

        Returns True only for the call that performed the clear.
        """

        record = self._load()
        now = self.now()
        if not record.is_due(now):
            return False
        cleared = self._clear_where(*self._due_criteria(now))
        if cleared:
            logger.info("Subscription expiration reached, deactivated at %s", now)
        return cleared

    def create(
        self,
        actor: User | None,
        duration,
        duration_type,
        cost,
        note=None,
        overwrite: bool = False,
    ) -> Subscription:
        """Start a new subscription, optionally replacing a live one."""

        self._require_manager(actor)
        amount, unit = parse_duration(duration, duration_type)
        cost_value = parse_cost(cost)

        self._load()
        now = self.now()
        statement = update(Subscription).where(Subscription.id == SUBSCRIPTION_ID)
        if not overwrite:
            statement = statement.where(
                or_(
                    Subscription.active.is_(False),
                    Subscription.date_of_expiration.is_(None),
                    Subscription.date_of_expiration <= now,
                )
            )
        result = self.session.execute(
            statement.values(
                active=True,
                subscription_duration=duration_label(amount, unit),
                date_of_subscription=now,
                date_of_expiration=now + duration_delta(amount, unit),
                cost=cost_value,
                note=_clean_note(note),
                updated_at=now,
            ).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise ConflictError()
        self.session.commit()

        record = self._load()
        logger.info(
            "Subscription created by %s: %s until %s (overwrite=%s)",
            actor.username,
            record.subscription_duration,
            record.date_of_expiration,
            bool(overwrite),
        )
        return record

    def cancel(self, actor: User | None) -> Subscription:
        """Clear the record unconditionally. Managers only."""

        self._require_manager(actor)
        self._load()
        self._clear_where()
        logger.info("Subscription cancelled by %s", actor.username)
        return self._load()

    def reset(self) -> Subscription:
        """Clear the record without an actor check, for maintenance commands."""

        self._load()
        self._clear_where()
        return self._load()

    def expire(self) -> tuple[Subscription, bool]:
        """Clear a record whose expiration has passed.

        Returns ``(record, expired)``. Calling it on an inactive record is a
        no-op; calling it before the deadline raises
        :class:`SubscriptionNotExpired`.
        """

        record = self._load()
        now = self.now()
        if not record.active:
            return record, False
        if record.has_active_subscription(now):
            raise SubscriptionNotExpired()
        expired = self._clear_where(*self._due_criteria(now))
        if expired:
            logger.info("Subscription expired on request at %s", now)
        return self._load(), expired
