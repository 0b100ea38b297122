"""Tests for the HTTP client and the controller running against the real app."""

from __future__ import annotations

import pytest
import requests

from services.api_client import SubscriptionApiClient
from services.errors import (
    AccessDenied,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    SubscriptionError,
    SubscriptionNotExpired,
    TransientError,
    ValidationError,
)
from models.subscription import Subscription
from services.lifecycle import SubscriptionLifecycleController

BASE_URL = "http://testserver"


class _StubResponse:
    def __init__(self, status_code: int, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class _StubSession:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.response


class FlaskSession:
    """Sends requests-style calls through a Flask test client."""

    def __init__(self, client):
        self.client = client

    def request(self, method, url, json=None, headers=None, timeout=None):
        path = url[len(BASE_URL):]
        resp = self.client.open(path, method=method, json=json, headers=headers)
        return _StubResponse(resp.status_code, resp.get_json(silent=True))


class CountingFlaskSession(FlaskSession):
    def __init__(self, client):
        super().__init__(client)
        self.methods = []

    def request(self, method, url, **kwargs):
        self.methods.append(method)
        return super().request(method, url, **kwargs)


@pytest.mark.parametrize(
    "status_code, body, error_cls, code",
    [
        (400, {"error": "validation_error", "detail": "bad"}, ValidationError, "validation_error"),
        (400, {"error": "subscription_not_expired", "detail": "not yet"}, SubscriptionNotExpired, "subscription_not_expired"),
        (401, {"error": "unauthorized", "detail": "Missing token"}, AuthenticationError, "unauthorized"),
        (403, {"error": "forbidden", "detail": "no"}, AuthorizationError, "forbidden"),
        (409, {"error": "ACTIVE_SUBSCRIPTION_EXISTS"}, ConflictError, "ACTIVE_SUBSCRIPTION_EXISTS"),
        (502, None, TransientError, "unavailable"),
        (418, {"error": "teapot"}, SubscriptionError, "subscription_error"),
    ],
)
def test_error_statuses_map_to_domain_errors(status_code, body, error_cls, code):
    client = SubscriptionApiClient(
        BASE_URL, session=_StubSession(_StubResponse(status_code, body))
    )

    with pytest.raises(error_cls) as excinfo:
        client.expire()

    assert type(excinfo.value) is error_cls
    assert excinfo.value.code == code


def test_network_errors_are_transient():
    session = _StubSession(error=requests.ConnectionError("refused"))
    client = SubscriptionApiClient(BASE_URL, session=session)

    with pytest.raises(TransientError):
        client.get()


def test_requests_carry_token_and_payload():
    session = _StubSession(_StubResponse(201, {"success": True}))
    client = SubscriptionApiClient(BASE_URL + "/", token="abc", session=session)

    client.create(2, "monthly", "99.5", note="renewal")

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == f"{BASE_URL}/subscription"
    assert call["headers"] == {"Authorization": "Bearer abc"}
    assert call["json"] == {
        "subscription_duration": 2,
        "duration_type": "monthly",
        "cost": "99.5",
        "overwrite": False,
        "note": "renewal",
    }


def test_login_keeps_token(client, make_user):
    make_user("dev", role="developer", password="DevPass123")
    api = SubscriptionApiClient(BASE_URL, session=FlaskSession(client))

    payload = api.login("dev", "DevPass123")

    assert api.token == payload["access_token"]
    assert api.get()["active"] is False


def test_login_refused_by_subscription_gate(client, make_user):
    make_user("assistant1", role="assistant", password="Pass123")
    api = SubscriptionApiClient(BASE_URL, session=FlaskSession(client))

    with pytest.raises(AuthorizationError) as excinfo:
        api.login("assistant1", "Pass123")

    assert excinfo.value.code == "subscription_inactive"
    assert not isinstance(excinfo.value, AccessDenied)


def test_controller_expires_subscription_through_the_api(client, clock, make_user):
    make_user("dev", role="developer", password="DevPass123")
    make_user("assistant1", role="assistant", password="Pass123")

    developer = SubscriptionApiClient(BASE_URL, session=FlaskSession(client))
    developer.login("dev", "DevPass123")
    created = developer.create(1, "daily", 50)
    assert created["subscription"]["subscription_duration"] == "1 Day"

    with pytest.raises(ConflictError):
        developer.create(1, "daily", 50)

    assistant = SubscriptionApiClient(BASE_URL, session=FlaskSession(client))
    assistant.login("assistant1", "Pass123")
    controller = SubscriptionLifecycleController(assistant, clock=clock, scheduler=object())

    controller.refresh()
    assert controller.has_active_subscription is True
    assert str(controller.time_remaining) == "00:23:59:60"

    clock.advance(days=1)
    controller.tick()
    controller.tick()

    assert controller.snapshot.active is False
    assert controller.guard.handled is True
    assert assistant.get() == {
        "active": False,
        "subscription_duration": None,
        "date_of_subscription": None,
        "date_of_expiration": None,
        "cost": None,
        "note": None,
    }


def test_tick_just_before_deadline_waits_then_expires(app, client, clock, make_user):
    make_user("dev", role="developer", password="DevPass123")
    make_user("assistant1", role="assistant", password="Pass123")

    developer = SubscriptionApiClient(BASE_URL, session=FlaskSession(client))
    developer.login("dev", "DevPass123")
    developer.create(1, "daily", 50)

    session = CountingFlaskSession(client)
    assistant = SubscriptionApiClient(BASE_URL, session=session)
    assistant.login("assistant1", "Pass123")
    controller = SubscriptionLifecycleController(assistant, clock=clock, scheduler=object())
    controller.refresh()

    clock.advance(days=1, seconds=-0.5)
    controller.tick()

    assert controller.time_remaining is None
    assert "PATCH" not in session.methods
    assert controller.guard.handled is False

    clock.advance(seconds=2)
    for _ in range(5):
        controller.tick()

    assert session.methods.count("PATCH") == 1
    assert controller.snapshot.active is False
    with app.app_context():
        assert Subscription.query.one().active is False
