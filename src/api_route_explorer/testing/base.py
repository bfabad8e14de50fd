"""Test request/result models.

A TestRequest is validated on construction, so anything that reaches the
executor is already safe to send.
"""

import json
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, field_validator
from pydantic import ValidationError as PydanticValidationError

from api_route_explorer.errors import ValidationError
from api_route_explorer.registry.base import HTTP_METHODS

MIN_TIMEOUT = 1
MAX_TIMEOUT = 300


class TestRequest(BaseModel):
    """One outbound HTTP call to issue against a route."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = {}
    body: str = ""
    timeout_seconds: int = 30

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("URL is required")
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("Invalid URL format")
        return v

    @field_validator("method")
    @classmethod
    def _check_method(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in HTTP_METHODS:
            raise ValueError("Invalid HTTP method")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def _check_timeout(cls, v: int) -> int:
        if not MIN_TIMEOUT <= v <= MAX_TIMEOUT:
            raise ValueError(f"Timeout must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} seconds")
        return v

    @classmethod
    def from_payload(cls, payload: dict, default_timeout: int = 30) -> "TestRequest":
        """Build a request from a loosely typed command payload.

        Headers may be a mapping or a list of ``"Name: value"`` strings;
        entries with an empty name or value are dropped. A mapping or list
        body is serialized as JSON.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request payload must be a mapping")

        body = payload.get("body")
        if body is None:
            body = ""
        elif not isinstance(body, str):
            body = json.dumps(body)

        timeout = payload.get("timeout", payload.get("timeout_seconds"))
        data = {
            "url": payload.get("url") or "",
            "method": payload.get("method") or "GET",
            "headers": parse_headers(payload.get("headers")),
            "body": body,
            "timeout_seconds": default_timeout if timeout is None else timeout,
        }
        try:
            return cls(**data)
        except PydanticValidationError as e:
            raise ValidationError(first_error_message(e)) from None


class TestResult(BaseModel):
    """Outcome of one test execution. ``status_code`` 0 means no response."""

    success: bool
    status_code: int
    response_time_ms: int
    response_body: Any = None
    response_headers: dict[str, str] = {}
    error_message: str | None = None


def parse_headers(raw) -> dict[str, str]:
    headers: dict[str, str] = {}
    if isinstance(raw, dict):
        items = raw.items()
    elif isinstance(raw, (list, tuple)):
        items = [h.split(":", 1) for h in raw if isinstance(h, str) and ":" in h]
    else:
        items = []

    for key, value in items:
        key = str(key).strip()
        value = "" if value is None else str(value).strip()
        if key and value:
            headers[key] = value
    return headers


def first_error_message(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    cause = err.get("ctx", {}).get("error")
    if isinstance(cause, ValueError):
        return str(cause)
    field = ".".join(str(p) for p in err.get("loc", ()))
    return f"{field}: {err.get('msg', 'invalid value')}"
