# toolbox/server/backends/tools/parameters.py
"""
Parameter definitions

A SQL tool declares two kinds of parameters:

1. Standard parameters (``parameters``)
   - bound positionally to ``?`` placeholders by the driver
   - the driver does all escaping and typing

2. Template parameters (``templateParameters``)
   - substituted into the statement text before it reaches the driver
   - written as ``{{.name}}`` (or ``{{array .name}}`` for arrays)
   - used for structural SQL (table names, column lists)

Config example:
```json
{
  "statement": "SELECT * FROM {{.table}} WHERE id = ?",
  "templateParameters": [
    {"name": "table", "type": "string", "description": "table to read"}
  ],
  "parameters": [
    {"name": "id", "type": "integer", "description": "row id"}
  ]
}
```

Template values are NOT escaped by the driver. The substitution policy in
``render_template_value`` only lets identifiers, numbers and booleans through;
anything the policy accepts ends up verbatim in the SQL text.
"""

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Type

from ..errors import (
    ParameterDefinitionError,
    ParameterValidationError,
    TemplateResolutionError,
    ToolboxError,
)
from .manifest import McpToolsSchema, ParameterManifest


# ============================================================================
# Parameter definitions
# ============================================================================

@dataclass(frozen=True)
class AuthService:
    """Claim that supplies a parameter value instead of the request body."""
    name: str
    field: str


class Parameter(ABC):
    """Base class of all parameter definitions."""

    type_name: str = ""
    json_type: str = ""

    def __init__(
        self,
        name: str,
        description: str = "",
        required: bool = True,
        default: Any = None,
        auth_services: Sequence[AuthService] = (),
    ):
        self.name = name
        self.description = description
        self.required = required
        self.default = default
        self.auth_services = tuple(auth_services)

    @abstractmethod
    def parse(self, value: Any) -> Any:
        """Validate a raw value and return its typed form. Raises ValueError."""

    def is_required(self) -> bool:
        return self.required and self.default is None

    def manifest(self) -> ParameterManifest:
        return ParameterManifest(
            name=self.name,
            type=self.type_name,
            required=self.is_required(),
            description=self.description,
            auth_sources=tuple(a.name for a in self.auth_services),
        )

    def mcp_schema(self) -> Dict[str, Any]:
        return {"type": self.json_type, "description": self.description}

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"


class StringParameter(Parameter):
    type_name = "string"
    json_type = "string"

    def parse(self, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError(f"{value!r} is not a string")
        # lone surrogates from JSON escapes cannot be stored as TEXT
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ValueError(f"{value!r} is not valid UTF-8 text") from exc
        return value


# SQLite INTEGER is a signed 64-bit value
INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1


class IntParameter(Parameter):
    type_name = "integer"
    json_type = "integer"

    def parse(self, value: Any) -> int:
        # bool is a subclass of int
        if isinstance(value, bool):
            raise ValueError(f"{value!r} is not an integer")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if not isinstance(value, int):
            raise ValueError(f"{value!r} is not an integer")
        if not INT_MIN <= value <= INT_MAX:
            raise ValueError(f"{value} is outside the 64-bit integer range")
        return value


class FloatParameter(Parameter):
    type_name = "float"
    json_type = "number"

    def parse(self, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{value!r} is not a float")
        return float(value)


class BooleanParameter(Parameter):
    type_name = "boolean"
    json_type = "boolean"

    def parse(self, value: Any) -> bool:
        if not isinstance(value, bool):
            raise ValueError(f"{value!r} is not a boolean")
        return value


class ArrayParameter(Parameter):
    type_name = "array"
    json_type = "array"

    def __init__(self, name: str, items: Parameter, **kwargs):
        super().__init__(name, **kwargs)
        self.items = items

    def parse(self, value: Any) -> List[Any]:
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"{value!r} is not an array")
        parsed = []
        for index, item in enumerate(value):
            try:
                parsed.append(self.items.parse(item))
            except ValueError as exc:
                raise ValueError(f"item {index}: {exc}") from exc
        return parsed

    def manifest(self) -> ParameterManifest:
        base = super().manifest()
        return ParameterManifest(
            name=base.name,
            type=base.type,
            required=base.required,
            description=base.description,
            auth_sources=base.auth_sources,
            items=self.items.manifest(),
        )

    def mcp_schema(self) -> Dict[str, Any]:
        schema = super().mcp_schema()
        schema["items"] = self.items.mcp_schema()
        return schema


PARAMETER_TYPES = {
    cls.type_name: cls
    for cls in (StringParameter, IntParameter, FloatParameter, BooleanParameter, ArrayParameter)
}

# Parameters are kept as tuples so a built tool cannot be mutated afterwards
Parameters = Tuple[Parameter, ...]


# ============================================================================
# Decoding
# ============================================================================

def parse_parameter(data: Mapping[str, Any], is_item: bool = False) -> Parameter:
    """Build one parameter definition from its config dict."""
    if not isinstance(data, Mapping):
        raise ParameterDefinitionError(f"parameter definition must be an object, got {data!r}")

    name = data.get("name", "")
    if not name and not is_item:
        raise ParameterDefinitionError(f"parameter definition is missing 'name': {dict(data)!r}")
    if not isinstance(name, str):
        raise ParameterDefinitionError(f"parameter name must be a string, got {name!r}")

    type_name = data.get("type")
    if not type_name:
        raise ParameterDefinitionError(f"parameter {name!r} is missing 'type'")
    cls = PARAMETER_TYPES.get(type_name) if isinstance(type_name, str) else None
    if cls is None:
        raise ParameterDefinitionError(
            f"parameter {name!r} has unknown type {type_name!r}; "
            f"must be one of {sorted(PARAMETER_TYPES)}"
        )

    auth_entries = data.get("authServices") or data.get("authSources") or []
    if not isinstance(auth_entries, list):
        raise ParameterDefinitionError(f"parameter {name!r}: 'authServices' must be a list")
    auth_services = []
    for entry in auth_entries:
        if not isinstance(entry, Mapping) or not entry.get("name") or not entry.get("field"):
            raise ParameterDefinitionError(
                f"parameter {name!r}: authServices entries need 'name' and 'field'"
            )
        auth_services.append(AuthService(name=entry["name"], field=entry["field"]))

    required = data.get("required", True)
    if not isinstance(required, bool):
        raise ParameterDefinitionError(f"parameter {name!r}: 'required' must be a boolean")
    description = data.get("description", "")
    if not isinstance(description, str):
        raise ParameterDefinitionError(f"parameter {name!r}: 'description' must be a string")

    kwargs = dict(
        description=description,
        required=required,
        default=data.get("default"),
        auth_services=auth_services,
    )

    if cls is ArrayParameter:
        items = data.get("items")
        if items is None:
            raise ParameterDefinitionError(f"array parameter {name!r} is missing 'items'")
        item = parse_parameter(items, is_item=True)
        if isinstance(item, ArrayParameter):
            raise ParameterDefinitionError(f"array parameter {name!r} cannot nest arrays")
        param = ArrayParameter(name, items=item, **kwargs)
    else:
        param = cls(name, **kwargs)

    if param.default is not None:
        try:
            param.parse(param.default)
        except ValueError as exc:
            raise ParameterDefinitionError(f"parameter {name!r} has an invalid default: {exc}") from exc
    return param


def parse_parameters(data: Optional[Sequence[Mapping[str, Any]]]) -> Parameters:
    """Build a parameter set; names must be unique inside the set."""
    if data is None:
        return ()
    if not isinstance(data, list):
        raise ParameterDefinitionError(f"parameter definitions must be a list, got {data!r}")
    params = tuple(parse_parameter(entry) for entry in data)
    seen = set()
    for param in params:
        if param.name in seen:
            raise ParameterDefinitionError(f"parameter name {param.name!r} is declared more than once")
        seen.add(param.name)
    return params


# ============================================================================
# Values
# ============================================================================

@dataclass(frozen=True)
class ParamValue:
    name: str
    value: Any


class ParamValues:
    """Ordered, validated values of one invocation."""

    def __init__(self, values: Sequence[ParamValue] = ()):
        self._values = tuple(values)

    def as_list(self) -> List[Any]:
        """Positional view, in declaration order."""
        return [p.value for p in self._values]

    def as_map(self) -> Dict[str, Any]:
        """Name keyed view."""
        return {p.name: p.value for p in self._values}

    def __iter__(self) -> Iterator[ParamValue]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self):
        return f"ParamValues({list(self._values)!r})"


_MISSING = object()


def _extract(param: Parameter, data: Mapping[str, Any]) -> Any:
    """Return the typed value, the default, ``None`` for optional, or ``_MISSING``."""
    value = data.get(param.name)
    if value is None:
        if param.default is not None:
            return param.parse(param.default)
        return None if not param.required else _MISSING
    return param.parse(value)


def _collect(
    params: Parameters,
    data: Mapping[str, Any],
    error_cls: Type[ToolboxError],
    label: str,
) -> ParamValues:
    values = []
    for param in params:
        try:
            value = _extract(param, data)
        except ValueError as exc:
            raise error_cls(
                f'{label} "{param.name}" is invalid: {exc}',
                data={"parameter": param.name},
            ) from exc
        if value is _MISSING:
            raise error_cls(
                f'{label} "{param.name}" is required',
                data={"parameter": param.name},
            )
        values.append(ParamValue(param.name, value))
    return ParamValues(values)


def get_params(params: Parameters, data: Mapping[str, Any]) -> ParamValues:
    """Validate the standard parameters of one call."""
    return _collect(params, data, ParameterValidationError, "parameter")


def apply_auth_claims(
    params: Parameters,
    data: Mapping[str, Any],
    claims_map: Optional[Mapping[str, Mapping[str, Any]]],
) -> Dict[str, Any]:
    """
    Overlay values of auth-bound parameters with the caller's verified claims.

    Whatever the body says for such a parameter is discarded.
    """
    resolved = dict(data)
    claims_map = claims_map or {}
    for param in params:
        if not param.auth_services:
            continue
        for service in param.auth_services:
            claims = claims_map.get(service.name)
            if claims is not None and service.field in claims:
                resolved[param.name] = claims[service.field]
                break
        else:
            raise ParameterValidationError(
                f'parameter "{param.name}": missing or invalid authentication header',
                data={"parameter": param.name, "auth_services": [a.name for a in param.auth_services]},
            )
    return resolved


# ============================================================================
# Template resolution
# ============================================================================

# Any {{ ... }} action
_ACTION_RE = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
# {{.name}} or {{array .name}}
_MARKER_RE = re.compile(r"^\s*(?:(array)\s+)?\.([A-Za-z_][A-Za-z0-9_]*)\s*$")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(?:\.[A-Za-z_][A-Za-z0-9_$]*)*$")


def render_template_value(name: str, value: Any) -> str:
    """
    Render one template value as SQL text.

    - bool -> TRUE / FALSE
    - int / float -> str(value)
    - str -> must be an identifier, optionally dot-qualified ("main.users")
    - list -> each element rendered with the rules above, joined by ", "
    """
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise TemplateResolutionError(f'template parameter "{name}" is not a finite number')
        return repr(value)
    if isinstance(value, str):
        if not _IDENTIFIER_RE.match(value):
            raise TemplateResolutionError(
                f'template parameter "{name}" value {value!r} is not a valid SQL identifier',
                data={"parameter": name},
            )
        return value
    if isinstance(value, (list, tuple)):
        if not value:
            raise TemplateResolutionError(f'template parameter "{name}" is an empty array')
        rendered = []
        for item in value:
            if isinstance(item, (list, tuple)):
                raise TemplateResolutionError(f'template parameter "{name}" cannot contain nested arrays')
            rendered.append(render_template_value(name, item))
        return ", ".join(rendered)
    raise TemplateResolutionError(f'template parameter "{name}" has unsupported value {value!r}')


def resolve_template_params(
    template_params: Parameters,
    statement: str,
    data: Mapping[str, Any],
) -> str:
    """Substitute every template marker of ``statement``; returns the final SQL text."""
    declared = {param.name: param for param in template_params}

    values = _collect(template_params, data, TemplateResolutionError, "template parameter").as_map()

    def substitute(match: "re.Match") -> str:
        marker = _MARKER_RE.match(match.group(1))
        if marker is None:
            raise TemplateResolutionError(f"unsupported template expression {match.group(0)!r}")
        is_array, name = marker.group(1), marker.group(2)
        if name not in declared:
            raise TemplateResolutionError(
                f'template marker "{match.group(0)}" has no matching template parameter',
                data={"parameter": name},
            )
        value = values[name]
        if value is None:
            raise TemplateResolutionError(
                f'template parameter "{name}" has no value',
                data={"parameter": name},
            )
        if is_array and not isinstance(value, (list, tuple)):
            raise TemplateResolutionError(f'template parameter "{name}" is not an array')
        return render_template_value(name, value)

    return _ACTION_RE.sub(substitute, statement)


# ============================================================================
# Manifests
# ============================================================================

def process_parameters(
    template_params: Parameters,
    params: Parameters,
) -> Tuple[Parameters, Tuple[ParameterManifest, ...], McpToolsSchema]:
    """
    Combine both parameter sets for manifests.

    Returns (all_params, manifest entries, MCP input schema); template
    parameters come first, each set in declaration order.
    """
    all_params = tuple(template_params) + tuple(params)
    manifests = tuple(p.manifest() for p in all_params)
    schema = McpToolsSchema(
        properties=tuple((p.name, p.mcp_schema()) for p in all_params),
        required=tuple(p.name for p in all_params if p.is_required()),
    )
    return all_params, manifests, schema


def is_authorized(auth_required: Sequence[str], verified_auth_services: Sequence[str]) -> bool:
    """A tool with no requirement is open; otherwise any verified required service suffices."""
    if not auth_required:
        return True
    verified = set(verified_auth_services or ())
    return any(service in verified for service in auth_required)
