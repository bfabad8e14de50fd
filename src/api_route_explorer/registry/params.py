"""Path placeholder extraction and argument schema parsing."""

import functools
import logging
import re
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .base import PARAM_TYPES, RouteParameter

logger = logging.getLogger(__name__)

# {name}, {name:converter} or (?P<name>...) with one level of nested groups.
PLACEHOLDER_RE = re.compile(
    r"\{(?P<brace>[A-Za-z_]\w*)(?::[^{}/]*)?\}"
    r"|\(\?P<(?P<group>[A-Za-z_]\w*)>(?:[^()]|\([^()]*\))*\)"
)

CONSTRAINT_KEYS = {
    "enum": "enum",
    "minimum": "minimum",
    "maximum": "maximum",
    "minLength": "min_length",
    "maxLength": "max_length",
    "min_length": "min_length",
    "max_length": "max_length",
}


def placeholder_names(pattern: str) -> list[str]:
    """Return placeholder names in first-seen order, without duplicates."""
    names: list[str] = []
    for match in PLACEHOLDER_RE.finditer(pattern or ""):
        name = match.group("brace") or match.group("group")
        if name not in names:
            names.append(name)
    return names


def substitute_placeholders(pattern: str, values: dict[str, Any]) -> str:
    """Replace every placeholder whose name is in ``values``."""

    def _replace(match: re.Match) -> str:
        name = match.group("brace") or match.group("group")
        if name not in values:
            return match.group(0)
        return _to_path_value(values[name])

    return PLACEHOLDER_RE.sub(_replace, pattern)


def to_brace_syntax(pattern: str) -> str:
    """Rewrite every placeholder as ``{name}``."""
    return PLACEHOLDER_RE.sub(lambda m: "{%s}" % (m.group("brace") or m.group("group")), pattern)


def extract_parameters(pattern: str, schema: dict | None = None) -> list[RouteParameter]:
    """Merge the pattern's placeholders with a declared argument schema.

    Path placeholders come first, typed from the schema when it declares
    them and string/required otherwise. Schema-only parameters follow in
    schema order.
    """
    schema = schema if isinstance(schema, dict) else {}
    params: list[RouteParameter] = []

    path_names = placeholder_names(pattern)
    for name in path_names:
        config = schema.get(name)
        if isinstance(config, dict):
            params.append(parse_schema_entry(name, config, required_default=True))
        else:
            params.append(RouteParameter(name=name))

    for name, config in schema.items():
        if name in path_names:
            continue
        if not isinstance(config, dict):
            logger.debug("Skipping argument %r with non-mapping schema", name)
            continue
        params.append(parse_schema_entry(str(name), config))

    return params


def parse_schema_entry(name: str, config: dict, required_default: bool = False) -> RouteParameter:
    """Build a RouteParameter from one argument schema entry."""
    constraints = {}
    for key, field in CONSTRAINT_KEYS.items():
        if config.get(key) is None:
            continue
        try:
            constraints[field] = _constraint_adapter(field).validate_python(config[key])
        except PydanticValidationError:
            logger.debug("Dropping invalid %s=%r on argument %r", key, config[key], name)

    return RouteParameter(
        name=name,
        type=_normalize_type(config.get("type")),
        required=bool(config.get("required", required_default)),
        default=config.get("default"),
        description=str(config.get("description") or ""),
        **constraints,
    )


@functools.lru_cache(maxsize=None)
def _constraint_adapter(field: str) -> TypeAdapter:
    return TypeAdapter(RouteParameter.model_fields[field].annotation)


def _normalize_type(raw: Any) -> str:
    # WordPress allows a list of types, e.g. ["integer", "null"].
    candidates = raw if isinstance(raw, list) else [raw]
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.lower() in PARAM_TYPES:
            return candidate.lower()
    return "string"


def _to_path_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
