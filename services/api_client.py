"""HTTP client for the subscription endpoints."""

from __future__ import annotations

import logging

import requests

from .errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    SubscriptionError,
    SubscriptionNotExpired,
    TransientError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthorizationError,
    409: ConflictError,
}

# Wire codes that select a narrower error class than the status alone.
_CODE_ERRORS = {
    SubscriptionNotExpired.code: SubscriptionNotExpired,
}


class SubscriptionApiClient:
    """Thin wrapper over ``requests`` mapping HTTP failures to domain errors."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        session: requests.Session | None = None,
        timeout: float | None = 10,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransientError(str(exc)) from exc

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if 200 <= resp.status_code < 300:
            return body

        message = body.get("detail") or body.get("message") or body.get("error")
        error_cls = _STATUS_ERRORS.get(resp.status_code)
        if error_cls is not None:
            error_cls = _CODE_ERRORS.get(body.get("error"), error_cls)
            raise error_cls(message, code=body.get("error"))
        if resp.status_code >= 500:
            raise TransientError(message or f"HTTP {resp.status_code}")
        raise SubscriptionError(message or f"HTTP {resp.status_code}")

    def login(self, username: str, password: str) -> dict:
        """Authenticate and keep the returned access token for later calls."""

        payload = self._request(
            "POST", "/auth/login", {"username": username, "password": password}
        )
        self.token = payload.get("access_token")
        return payload

    def get(self) -> dict:
        return self._request("GET", "/subscription")

    def create(
        self,
        subscription_duration: int,
        duration_type: str,
        cost,
        note: str | None = None,
        overwrite: bool = False,
    ) -> dict:
        payload = {
            "subscription_duration": subscription_duration,
            "duration_type": duration_type,
            "cost": cost,
            "overwrite": overwrite,
        }
        if note is not None:
            payload["note"] = note
        return self._request("POST", "/subscription", payload)

    def cancel(self) -> dict:
        return self._request("PUT", "/subscription")

    def expire(self) -> dict:
        return self._request("PATCH", "/subscription")
