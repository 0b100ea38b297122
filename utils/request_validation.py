"""Utilities for validating incoming Flask requests."""

from __future__ import annotations

from typing import Iterable

from flask import Request
from werkzeug.exceptions import BadRequest

_TRUE_VALUES = {"1", "true", "yes", "y"}
_FALSE_VALUES = {"0", "false", "no", "n"}


def parse_json_request(
    req: Request,
    *,
    required_keys: Iterable[str] | None = None,
    allow_empty: bool = False,
) -> dict:
    """Return the parsed JSON object body or raise a 400 error.

    ``required_keys`` are checked for presence only; ``0`` and ``False`` count
    as present so numeric fields such as a zero cost pass through.
    """

    if not req.is_json:
        raise BadRequest("Request content type must be application/json.")

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request JSON body is required.")
    if not isinstance(data, dict):
        raise BadRequest("Request JSON payload must be an object.")
    if not data and not allow_empty:
        raise BadRequest("Request JSON body must not be empty.")

    if required_keys:
        missing = sorted(key for key in required_keys if data.get(key) in (None, ""))
        if missing:
            raise BadRequest("Missing required fields: {}.".format(", ".join(missing)))

    return data


def parse_bool_field(data: dict, key: str, default: bool = False) -> bool:
    """Read a boolean flag from a JSON body, accepting common string forms."""

    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise BadRequest(f"{key} must be boolean.")
