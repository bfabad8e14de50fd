"""Example values for parameters, and sample test requests built from them."""

import json
from datetime import datetime
from typing import Any, Callable
from urllib.parse import urlencode

from .base import BODY_METHODS, Route

Clock = Callable[[], datetime]

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}
AUTH_PLACEHOLDER = "Bearer YOUR_TOKEN_HERE"

SIMPLE_TYPES = ("string", "integer", "number", "boolean")

# Checked in order; the first substring found in the lowercased name wins.
NAME_HEURISTICS: list[tuple[str, Callable[[datetime], Any]]] = [
    ("id", lambda now: 123),
    ("slug", lambda now: "example-slug"),
    ("email", lambda now: "user@example.com"),
    ("url", lambda now: "https://example.com"),
    ("date", lambda now: now.strftime("%Y-%m-%d")),
    ("time", lambda now: now.strftime("%H:%M:%S")),
    ("status", lambda now: "publish"),
    ("type", lambda now: "post"),
    ("password", lambda now: "password123"),
    ("token", lambda now: "token123"),
]

TYPE_DEFAULTS: dict[str, Any] = {
    "integer": 123,
    "number": 123.45,
    "boolean": True,
}


def example_value(name: str, param_type: str = "string", clock: Clock | None = None) -> Any:
    """Return a representative value for a parameter.

    Name heuristics take priority over the declared type, so ``post_id``
    is always ``123`` even when declared as a string.
    """
    lowered = (name or "").lower()
    for needle, make in NAME_HEURISTICS:
        if needle in lowered:
            return make((clock or datetime.now)())

    if param_type == "array":
        return ["item1", "item2"]
    if param_type == "object":
        return {"key": "value"}
    return TYPE_DEFAULTS.get(param_type, "example_value")


def sample_requests(route: Route, clock: Clock | None = None) -> dict[str, dict]:
    """Build one ready-to-send test request per method of ``route``.

    Required parameters go into a JSON body for POST/PUT/PATCH, optional
    scalar parameters into the query string. Private methods get an
    Authorization placeholder header.
    """
    samples = {}
    for verb, method in route.methods.items():
        headers = dict(DEFAULT_HEADERS)
        if not method.is_public:
            headers["Authorization"] = AUTH_PLACEHOLDER

        query = {
            p.name: _query_value(example_value(p.name, p.type, clock))
            for p in method.optional_parameters
            if p.type in SIMPLE_TYPES
        }
        url = route.example_url
        if query:
            url = f"{url}?{urlencode(query)}"

        body = ""
        if verb in BODY_METHODS:
            payload = {p.name: example_value(p.name, p.type, clock) for p in method.required_parameters}
            body = json.dumps(payload, indent=4)

        samples[verb] = {
            "url": url,
            "method": verb,
            "headers": headers,
            "body": body,
            "parameters": query,
        }
    return samples


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value
