# toolbox/server/backends/tools/manifest.py
"""
Manifest value objects.

Two read-only projections of a tool's parameter definitions:

- ``Manifest``: human oriented listing served by ``/api/v1/tool/{tool_name}``
- ``McpManifest``: JSON-schema oriented listing served to MCP clients

Both are built once when the tool is initialized and never mutated.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ParameterManifest:
    name: str
    type: str
    required: bool
    description: str
    auth_sources: Tuple[str, ...] = ()
    items: Optional["ParameterManifest"] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "description": self.description,
            "authSources": list(self.auth_sources),
        }
        if self.items is not None:
            data["items"] = self.items.to_dict()
        return data


@dataclass(frozen=True)
class Manifest:
    description: str
    parameters: Tuple[ParameterManifest, ...] = ()
    auth_required: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "parameters": [p.to_dict() for p in self.parameters],
            "authRequired": list(self.auth_required),
        }


@dataclass(frozen=True)
class McpToolsSchema:
    """``inputSchema`` of an MCP tool; property order follows declaration order."""
    properties: Tuple[Tuple[str, Dict[str, Any]], ...] = ()
    required: Tuple[str, ...] = ()
    type: str = "object"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "properties": {name: dict(schema) for name, schema in self.properties},
            "required": list(self.required),
        }


@dataclass(frozen=True)
class McpManifest:
    name: str
    description: str
    input_schema: McpToolsSchema = field(default_factory=McpToolsSchema)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema.to_dict(),
        }


def toolset_manifest(manifests: Dict[str, Manifest], version: str) -> Dict[str, Any]:
    return {
        "serverVersion": version,
        "tools": {name: m.to_dict() for name, m in manifests.items()},
    }


def mcp_tools_list(manifests: List[McpManifest]) -> Dict[str, Any]:
    return {"tools": [m.to_dict() for m in manifests]}
