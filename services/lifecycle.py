"""Client-side subscription lifecycle: live countdown and best-effort expiry.

The controller keeps a local copy of the subscription record, counts down to
its expiration once per second, and asks the server to expire the record when
the countdown reaches zero. It is a convenience for open sessions only: the
login guard on the server enforces the gate whether or not a controller runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Mapping

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler

from utils.clock import parse_timestamp, utcnow

from .errors import (
    AuthenticationError,
    AuthorizationError,
    SubscriptionError,
    SubscriptionNotExpired,
    ValidationError,
)

logger = logging.getLogger(__name__)

TICK_JOB_ID = "subscription-tick"
POLL_JOB_ID = "subscription-poll"
REFRESH_JOB_ID = "subscription-refresh"


@dataclass(frozen=True)
class Countdown:
    days: int
    hours: int
    minutes: int
    seconds: int

    def __str__(self) -> str:
        return f"{self.days:02d}:{self.hours:02d}:{self.minutes:02d}:{self.seconds:02d}"


def countdown(remaining: timedelta) -> Countdown | None:
    """Split ``remaining`` into display units, or None once nothing is left.

    A unit that reads zero while a larger unit is still non-zero borrows one
    from it (hours from days, then minutes from hours, then seconds from
    minutes), so exactly one day left shows as ``00:23:59:60``.
    """

    total = int(remaining.total_seconds())
    if total <= 0:
        return None

    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if hours == 0 and days > 0:
        days -= 1
        hours = 24
    if minutes == 0 and hours > 0:
        hours -= 1
        minutes = 60
    if seconds == 0 and minutes > 0:
        minutes -= 1
        seconds = 60

    return Countdown(days, hours, minutes, seconds)


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Immutable local copy of the record as last fetched."""

    active: bool = False
    subscription_duration: str | None = None
    date_of_subscription: datetime | None = None
    expires_at: datetime | None = None
    cost: float | None = None
    note: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping) -> "SubscriptionSnapshot":
        return cls(
            active=bool(payload.get("active")),
            subscription_duration=payload.get("subscription_duration"),
            date_of_subscription=parse_timestamp(payload.get("date_of_subscription")),
            expires_at=parse_timestamp(payload.get("date_of_expiration")),
            cost=payload.get("cost"),
            note=payload.get("note"),
        )

    @property
    def expiration_key(self) -> str | None:
        return self.expires_at.isoformat() if self.expires_at else None

    def is_live(self, now: datetime) -> bool:
        return self.active and self.expires_at is not None and now < self.expires_at


@dataclass
class ExpiryGuard:
    """Tracks the expire attempts made for one expiration instant."""

    key: str | None = None
    attempts: int = 0
    handled: bool = False

    def track(self, key: str | None) -> None:
        if key != self.key:
            self.key = key
            self.attempts = 0
            self.handled = False


class SubscriptionLifecycleController:
    """Polls the subscription, runs the countdown, and expires it on zero."""

    def __init__(
        self,
        client,
        *,
        clock=None,
        scheduler=None,
        poll_interval: int = 300,
        max_retries: int = 2,
    ):
        self.client = client
        self._clock = clock or utcnow
        # One worker thread: poll, tick and expire never run concurrently.
        self.scheduler = scheduler or BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(1)},
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self.poll_interval = poll_interval
        self.max_retries = max_retries

        self.snapshot = SubscriptionSnapshot()
        self.time_remaining: Countdown | None = None
        self.guard = ExpiryGuard()
        self._started = False
        self._closed = False

    @classmethod
    def from_config(cls, config: Mapping, client, **kwargs) -> "SubscriptionLifecycleController":
        return cls(
            client,
            poll_interval=int(config.get("SUBSCRIPTION_POLL_INTERVAL", 300)),
            max_retries=int(config.get("SUBSCRIPTION_EXPIRE_RETRIES", 2)),
            **kwargs,
        )

    @property
    def has_active_subscription(self) -> bool:
        return self.snapshot.is_live(self._clock())

    @property
    def is_ticking(self) -> bool:
        return self._started and self.scheduler.get_job(TICK_JOB_ID) is not None

    def start(self) -> None:
        if self._closed:
            raise RuntimeError("Controller has been stopped")
        self._started = True
        self.scheduler.add_job(
            self.refresh,
            "interval",
            seconds=self.poll_interval,
            id=POLL_JOB_ID,
            replace_existing=True,
        )
        # Initial fetch runs on the worker thread like every other job.
        self.scheduler.add_job(self.refresh, id=REFRESH_JOB_ID, replace_existing=True)
        if not self.scheduler.running:
            self.scheduler.start()
        logger.debug("Subscription lifecycle controller started")

    def stop(self) -> None:
        """Stop all jobs. Results of calls still in flight are discarded."""

        self._closed = True
        if self._started:
            for job_id in (TICK_JOB_ID, POLL_JOB_ID, REFRESH_JOB_ID):
                if self.scheduler.get_job(job_id) is not None:
                    self.scheduler.remove_job(job_id)
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._started = False
        logger.debug("Subscription lifecycle controller stopped")

    def refresh(self) -> SubscriptionSnapshot:
        """Fetch the record and recompute the countdown."""

        if self._closed:
            return self.snapshot
        try:
            payload = self.client.get()
        except SubscriptionError as exc:
            logger.warning("Error fetching subscription: %s", exc)
            return self.snapshot
        if self._closed:
            return self.snapshot

        self.snapshot = SubscriptionSnapshot.from_payload(payload)
        self.tick()
        return self.snapshot

    def tick(self) -> None:
        if self._closed:
            return

        snapshot = self.snapshot
        if not snapshot.active or snapshot.expires_at is None:
            self.time_remaining = None
            self._set_ticking(False)
            return

        now = self._clock()
        if now < snapshot.expires_at:
            # Under a second left still reads as None; keep ticking until the deadline.
            self.time_remaining = countdown(snapshot.expires_at - now)
            self._set_ticking(True)
            return

        self.time_remaining = None
        self._expire(snapshot.expiration_key)

    def _expire(self, key: str | None) -> None:
        guard = self.guard
        guard.track(key)
        if guard.handled:
            self._set_ticking(False)
            return

        guard.attempts += 1
        try:
            self.client.expire()
        except SubscriptionNotExpired as exc:
            # Server clock is behind ours; retry on a later tick.
            self._retry_or_give_up(key, exc)
            return
        except (ValidationError, AuthenticationError, AuthorizationError) as exc:
            # Refused or no valid session: nothing to retry.
            logger.info("Expire request for %s handled by server: %s", key, exc)
        except SubscriptionError as exc:
            self._retry_or_give_up(key, exc)
            return

        if self._closed:
            return
        guard.handled = True
        self._set_ticking(False)
        self.refresh()

    def _retry_or_give_up(self, key: str | None, exc: SubscriptionError) -> None:
        if self._closed:
            return
        guard = self.guard
        if guard.attempts > self.max_retries:
            guard.handled = True
            self._set_ticking(False)
            logger.error(
                "Error expiring subscription %s, giving up after %d attempts: %s",
                key,
                guard.attempts,
                exc,
            )
        else:
            self._set_ticking(True)
            logger.warning("Error expiring subscription %s, will retry: %s", key, exc)

    def _set_ticking(self, enabled: bool) -> None:
        if not self._started or self._closed:
            return
        job = self.scheduler.get_job(TICK_JOB_ID)
        if enabled and job is None:
            self.scheduler.add_job(
                self.tick,
                "interval",
                seconds=1,
                id=TICK_JOB_ID,
                replace_existing=True,
            )
        elif not enabled and job is not None:
            self.scheduler.remove_job(TICK_JOB_ID)
