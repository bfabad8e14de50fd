"""Route registry providers.

A provider returns the raw registry as ``{pattern: raw_entry}``. Three dump
shapes are understood and coerced into that native form:

- native: ``{"/wp/v2/posts": {"methods": {"GET": {...}}}}``
- WordPress REST index: ``{"routes": {"/wp/v2/posts": {"endpoints": [...]}}}``
- Flask rule listing: ``{"routes": [{"rule": "/api/x/<int:id>", "methods": [...]}]}``
"""

import json
import logging
import re
import time
from pathlib import Path
from typing import Callable

import httpx
import yaml

from api_route_explorer.errors import RegistryError

logger = logging.getLogger(__name__)

# Index dumps do not expose permission predicates; this marker keeps such
# methods private.
UNRESOLVED_PERMISSION = "<unresolved>"

FLASK_RULE_RE = re.compile(r"<(?:[^:<>]+:)?([A-Za-z_]\w*)>")


class RouteRegistryProvider:
    """Source of raw route entries. Called fresh on every catalog load."""

    def get_routes(self) -> dict[str, dict]:
        raise NotImplementedError


class StaticRegistryProvider(RouteRegistryProvider):
    """Serves an in-memory registry."""

    def __init__(self, routes: dict):
        self.routes = routes

    def get_routes(self) -> dict[str, dict]:
        return coerce_registry(self.routes)


class FileRegistryProvider(RouteRegistryProvider):
    """Reads a YAML or JSON registry dump from disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def get_routes(self) -> dict[str, dict]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise RegistryError(f"Cannot read route registry {self.path}: {e.strerror}") from e
        return coerce_registry(_load_document(text))


class UrlRegistryProvider(RouteRegistryProvider):
    """Fetches a JSON registry dump from a running application."""

    def __init__(self, url: str, timeout: float = 30.0, headers: dict[str, str] | None = None):
        self.url = url
        self.timeout = timeout
        self.headers = headers or {}

    def get_routes(self) -> dict[str, dict]:
        try:
            resp = httpx.get(self.url, timeout=self.timeout, headers=self.headers, follow_redirects=True)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise RegistryError(f"Cannot fetch route registry from {self.url}: {e}") from e
        except ValueError as e:
            raise RegistryError(f"Route registry at {self.url} is not valid JSON") from e
        return coerce_registry(data)


class CachedRegistryProvider(RouteRegistryProvider):
    """Keeps the last registry read for ``ttl_seconds``.

    The cache belongs to this wrapper instance only; a ttl of 0 disables it.
    """

    def __init__(self, inner: RouteRegistryProvider, ttl_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._cached: dict[str, dict] | None = None
        self._expires_at = 0.0

    def get_routes(self) -> dict[str, dict]:
        if self.ttl_seconds <= 0:
            return self.inner.get_routes()
        now = self.clock()
        if self._cached is None or now >= self._expires_at:
            logger.debug("Route registry cache miss, reloading")
            self._cached = self.inner.get_routes()
            self._expires_at = now + self.ttl_seconds
        return self._cached

    def invalidate(self) -> None:
        self._cached = None


def open_provider(source: str | Path, timeout: float = 30.0) -> RouteRegistryProvider:
    """Pick a provider for a file path or an http(s) URL."""
    text = str(source)
    if text.startswith(("http://", "https://")):
        return UrlRegistryProvider(text, timeout=timeout)
    return FileRegistryProvider(Path(text))


def coerce_registry(data) -> dict[str, dict]:
    """Convert any supported dump shape into ``{pattern: raw_entry}``."""
    if not isinstance(data, dict):
        raise RegistryError("Route registry must be a mapping")

    routes = data.get("routes")
    if isinstance(routes, dict):
        return {pattern: _from_index_entry(entry) for pattern, entry in routes.items()}
    if isinstance(routes, list):
        return _from_rule_listing(routes)
    return {str(pattern): entry for pattern, entry in data.items()}


def _from_index_entry(entry) -> dict:
    if not isinstance(entry, dict):
        return {}
    if isinstance(entry.get("methods"), dict):
        return entry

    methods: dict[str, dict] = {}
    for endpoint in entry.get("endpoints") or []:
        if not isinstance(endpoint, dict):
            continue
        for verb in endpoint.get("methods") or []:
            methods[str(verb).upper()] = {
                "permission_callback": UNRESOLVED_PERMISSION,
                "args": endpoint.get("args") or {},
            }
    if not methods:
        for verb in entry.get("methods") or []:
            methods[str(verb).upper()] = {"permission_callback": UNRESOLVED_PERMISSION}

    coerced = {"methods": methods}
    if entry.get("description"):
        coerced["description"] = entry["description"]
    return coerced


def _from_rule_listing(rules: list) -> dict[str, dict]:
    registry: dict[str, dict] = {}
    for rule in rules:
        if not isinstance(rule, dict) or not rule.get("rule"):
            continue
        pattern = FLASK_RULE_RE.sub(r"{\1}", rule["rule"])
        entry = registry.setdefault(pattern, {"methods": {}})
        for verb in rule.get("methods") or []:
            entry["methods"][str(verb).upper()] = {
                "callback": rule.get("endpoint"),
                "permission_callback": UNRESOLVED_PERMISSION,
            }
    return registry


def _load_document(text: str):
    # Try YAML first, then JSON for documents YAML rejects (e.g. tab indentation).
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        pass
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError) as e:
        raise RegistryError("Route registry is neither valid YAML nor JSON") from e
