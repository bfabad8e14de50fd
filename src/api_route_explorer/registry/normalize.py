"""Route normalizer. Converts one raw registry entry into a Route."""

import logging
import re

from api_route_explorer.errors import ValidationError

from .base import HTTP_METHODS, MethodDescriptor, Permission, Route
from .examples import Clock, example_value
from .params import extract_parameters, substitute_placeholders

logger = logging.getLogger(__name__)

UNKNOWN_NAMESPACE = "unknown"


def namespace_of(pattern: str) -> str:
    """First two non-empty path segments, or ``"unknown"``."""
    parts = [p for p in pattern.strip("/").split("/") if p]
    if len(parts) >= 2:
        return f"{parts[0]}/{parts[1]}"
    return UNKNOWN_NAMESPACE


class RouteNormalizer:
    """Builds canonical Route values from raw registry entries.

    A raw entry looks like::

        {
            "description": "...",
            "methods": {
                "GET": {"callback": "...", "permission_callback": "__return_true", "args": {...}},
            },
        }

    Missing or malformed pieces degrade to empty values instead of errors,
    so one bad entry never breaks a whole catalog load.
    """

    def __init__(self, base_url: str = "", clock: Clock | None = None):
        self.base_url = base_url
        self.clock = clock

    def normalize(self, pattern: str, raw_entry: dict | None) -> Route:
        if not pattern:
            raise ValidationError("Route pattern must not be empty")
        entry = raw_entry if isinstance(raw_entry, dict) else {}

        namespace = namespace_of(pattern)
        path_parameters = extract_parameters(pattern)
        path_names = {p.name for p in path_parameters}

        methods: dict[str, MethodDescriptor] = {}
        raw_methods = entry.get("methods")
        if isinstance(raw_methods, dict):
            for verb, method_data in raw_methods.items():
                verb = str(verb).upper()
                if verb not in HTTP_METHODS:
                    logger.warning("Skipping unsupported method %s on %s", verb, pattern)
                    continue
                methods[verb] = self._normalize_method(pattern, verb, method_data, path_names)
        elif raw_methods is not None:
            logger.warning("Route %s has a non-mapping methods entry, treating it as empty", pattern)

        return Route(
            pattern=pattern,
            namespace=namespace,
            methods=methods,
            path_parameters=path_parameters,
            description=str(entry.get("description") or ""),
            example_url=self.example_url(pattern, namespace, path_parameters),
        )

    def _normalize_method(self, pattern: str, verb: str, method_data, path_names: set[str]) -> MethodDescriptor:
        data = method_data if isinstance(method_data, dict) else {}
        params = extract_parameters(pattern, data.get("args"))
        callback = data.get("callback")
        return MethodDescriptor(
            http_method=verb,
            permission=Permission.from_raw(data.get("permission_callback")),
            callback=str(callback) if callback is not None else None,
            parameters=[p for p in params if p.name not in path_names],
        )

    def example_url(self, pattern: str, namespace: str, path_parameters) -> str:
        path = re.sub(r"/{2,}", "/", pattern).lstrip("/")
        if namespace != UNKNOWN_NAMESPACE and not (path == namespace or path.startswith(namespace + "/")):
            path = f"{namespace}/{path}"

        values = {p.name: example_value(p.name, p.type, self.clock) for p in path_parameters}
        path = substitute_placeholders(path, values)
        return f"{self.base_url.rstrip('/')}/{path}"
