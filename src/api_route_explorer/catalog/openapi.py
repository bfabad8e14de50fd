"""OpenAPI 3.0 projection of a route catalog."""

import re

from pydantic import BaseModel

from api_route_explorer.registry.base import BODY_METHODS, MethodDescriptor, Route
from api_route_explorer.registry.params import to_brace_syntax

from .catalog import RouteCatalog

OPENAPI_VERSION = "3.0.0"
DOCUMENT_VERSION = "1.0.0"

BASE_RESPONSES = {
    "200": {"description": "Successful response"},
    "400": {"description": "Bad Request"},
    "401": {"description": "Unauthorized"},
    "403": {"description": "Forbidden"},
    "404": {"description": "Not Found"},
    "500": {"description": "Internal Server Error"},
}

METHOD_RESPONSES = {
    "POST": {"201": {"description": "Created"}},
    "PUT": {"200": {"description": "Updated successfully"}},
    "PATCH": {"200": {"description": "Updated successfully"}},
    "DELETE": {"204": {"description": "Deleted successfully"}},
}

SECURITY_SCHEMES = {
    "bearerAuth": {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }
}


class SiteInfo(BaseModel):
    """Host site metadata used for the document's info and servers blocks."""

    name: str = ""
    description: str = ""
    url: str = ""
    base_url: str = ""


def build_openapi(catalog: RouteCatalog, site: SiteInfo) -> dict:
    """Project every route and method of the catalog into an OpenAPI document."""
    doc = {
        "openapi": OPENAPI_VERSION,
        "info": {
            "title": f"{site.name} API".strip(),
            "description": site.description,
            "version": DOCUMENT_VERSION,
            "contact": {"name": site.name, "url": site.url},
        },
        "servers": [{"url": site.base_url, "description": "REST API server"}],
        "paths": {},
        "components": {"securitySchemes": dict(SECURITY_SCHEMES)},
    }

    for route in catalog:
        path = openapi_path(route.pattern)
        operations = doc["paths"].setdefault(path, {})
        for verb, method in route.methods.items():
            operations[verb.lower()] = build_operation(route, method)

    return doc


def openapi_path(pattern: str) -> str:
    """``wp/v2/posts/(?P<id>[^/]+)`` -> ``wp/v2/posts/{id}``."""
    return to_brace_syntax(pattern)


def build_operation(route: Route, method: MethodDescriptor) -> dict:
    verb = method.http_method
    path = openapi_path(route.pattern)
    last_segment = path.rstrip("/").split("/")[-1]

    operation = {
        "summary": f"{verb.capitalize()} {last_segment}",
        "description": f"Execute {verb} request to {route.pattern}",
        "operationId": _operation_id(verb, path),
        "parameters": [
            {
                "name": p.name,
                "in": "query",
                "required": p.required,
                "schema": {"type": p.type},
                "description": p.description,
            }
            for p in method.parameters
        ],
        "responses": {**BASE_RESPONSES, **METHOD_RESPONSES.get(verb, {})},
        "tags": [route.namespace],
    }

    if verb in BODY_METHODS:
        operation["requestBody"] = _request_body(method)

    if not method.is_public:
        operation["security"] = [{"bearerAuth": []}]

    return operation


def _request_body(method: MethodDescriptor) -> dict:
    properties = {}
    for p in method.parameters:
        schema: dict = {"type": p.type}
        if p.description:
            schema["description"] = p.description
        if p.default is not None:
            schema["default"] = p.default
        properties[p.name] = schema

    schema = {"type": "object", "properties": properties}
    required = [p.name for p in method.required_parameters]
    if required:
        schema["required"] = required

    return {
        "required": True,
        "content": {"application/json": {"schema": schema}},
    }


def _operation_id(verb: str, path: str) -> str:
    clean = re.sub(r"[^a-zA-Z0-9]", "_", path).strip("_")
    return f"{verb.lower()}_{clean}"
