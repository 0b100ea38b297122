"""Shared pytest fixtures for the application tests."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient
from flask_jwt_extended import create_access_token

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from models.user import User  # noqa: E402


class _BaseTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = "test-secret-key-that-is-long-enough-for-hs256"
    RATE_LIMIT = "1000 per minute"
    SUBSCRIPTION_API_URL = "http://testserver"


class FakeClock:
    """Callable clock returning a controllable naive UTC time."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2025, 1, 15, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def app() -> Flask:
    """Create a Flask application instance for tests."""

    application = create_app(_BaseTestConfig)

    with application.app_context():
        db.create_all()

    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Return a test client for the Flask app."""

    return app.test_client()


@pytest.fixture()
def clock(monkeypatch) -> FakeClock:
    """Freeze the server-side clock used by the subscription store."""

    fake = FakeClock()
    monkeypatch.setattr("services.subscription_store.utcnow", fake)
    return fake


@pytest.fixture()
def make_user(app: Flask):
    """Factory persisting a user and returning its id."""

    def _make_user(
        username: str,
        role: str = "assistant",
        password: str = "Passw0rd!",
        *,
        active: bool = True,
    ) -> int:
        with app.app_context():
            user = User(username=username, role=role, is_active=active)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make_user


@pytest.fixture()
def auth_headers(app: Flask):
    """Return Authorization headers carrying a token for ``user_id``."""

    def _auth_headers(user_id: int) -> dict[str, str]:
        with app.app_context():
            token = create_access_token(identity=str(user_id))
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
