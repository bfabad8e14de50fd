"""Unified route models.

Every registry shape (native dumps, WordPress REST indexes, Flask rule
listings) is normalized into these models before anything else looks at it.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, computed_field

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD")
BODY_METHODS = ("POST", "PUT", "PATCH")
PARAM_TYPES = ("string", "integer", "number", "boolean", "array", "object")

# Permission predicate that grants access unconditionally.
ALWAYS_ALLOW = "__return_true"
ALWAYS_DENY = "__return_false"


class RouteParameter(BaseModel):
    """A single path, query or body parameter."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "string"  # string / integer / number / boolean / array / object
    required: bool = True
    default: Any = None
    description: str = ""
    enum: list | None = None
    minimum: float | None = None
    maximum: float | None = None
    min_length: int | None = None
    max_length: int | None = None


class PermissionKind(str, Enum):
    ALWAYS_ALLOW = "always_allow"
    ALWAYS_DENY = "always_deny"
    CUSTOM = "custom"


class Permission(BaseModel):
    """Permission predicate of one method.

    Custom predicates are opaque: they cannot be evaluated without the host,
    so they are never considered public.
    """

    model_config = ConfigDict(frozen=True)

    kind: PermissionKind
    ref: str | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> "Permission":
        if raw is None or raw is True or raw == ALWAYS_ALLOW:
            return cls(kind=PermissionKind.ALWAYS_ALLOW)
        if raw is False or raw == ALWAYS_DENY:
            return cls(kind=PermissionKind.ALWAYS_DENY)
        return cls(kind=PermissionKind.CUSTOM, ref=str(raw))

    @property
    def is_public(self) -> bool:
        return self.kind is PermissionKind.ALWAYS_ALLOW


class MethodDescriptor(BaseModel):
    """One HTTP method registered on a route."""

    model_config = ConfigDict(frozen=True)

    http_method: str  # GET / POST / PUT / PATCH / DELETE / OPTIONS / HEAD
    permission: Permission
    callback: str | None = None
    parameters: list[RouteParameter] = []

    @computed_field
    @property
    def is_public(self) -> bool:
        return self.permission.is_public

    @property
    def required_parameters(self) -> list[RouteParameter]:
        return [p for p in self.parameters if p.required]

    @property
    def optional_parameters(self) -> list[RouteParameter]:
        return [p for p in self.parameters if not p.required]


class Route(BaseModel):
    """A registered URL pattern with its methods and derived metadata."""

    model_config = ConfigDict(frozen=True)

    pattern: str
    namespace: str = "unknown"
    methods: dict[str, MethodDescriptor] = {}
    path_parameters: list[RouteParameter] = []
    description: str = ""
    example_url: str = ""

    @computed_field
    @property
    def is_public(self) -> bool:
        return any(m.is_public for m in self.methods.values())

    def has_method(self, method: str) -> bool:
        return method.upper() in self.methods

    def summary(self) -> dict:
        """Compact JSON-ready view used by route listings."""
        return {
            "pattern": self.pattern,
            "namespace": self.namespace,
            "methods": list(self.methods),
            "is_public": self.is_public,
            "description": self.description,
            "example_url": self.example_url,
        }
