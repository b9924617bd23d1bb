# toolbox/server/backends/tools/__init__.py
"""
Tool kinds

A tool kind is a pair of classes:

- a ``ToolConfig`` decoded from one entry of the ``tools`` config section
- a ``BaseTool`` returned by ``ToolConfig.initialize(sources)``

Kinds are made available to the config loader through an explicit
``KindRegistry`` (see ``toolbox.server.backends.registry``).

Config example:
```json
{
  "tools": {
    "user_by_id": {
      "kind": "sqlite-sql",
      "source": "app-db",
      "description": "Look up a user by id",
      "statement": "SELECT id, name FROM users WHERE id = ?",
      "parameters": [
        {"name": "id", "type": "integer", "description": "user id"}
      ]
    }
  }
}
```
"""

from .base_tool import BaseTool, ToolConfig
from .context import CallContext
from .manifest import Manifest, McpManifest
from .parameters import (
    ParamValues,
    Parameters,
    get_params,
    is_authorized,
    parse_parameters,
    process_parameters,
    resolve_template_params,
)
from .sqlite_sql import KIND as SQLITE_SQL_KIND, SQLiteSQLConfig, SQLiteSQLTool

__all__ = [
    "BaseTool",
    "ToolConfig",
    "CallContext",
    "Manifest",
    "McpManifest",
    "ParamValues",
    "Parameters",
    "get_params",
    "is_authorized",
    "parse_parameters",
    "process_parameters",
    "resolve_template_params",
    "SQLITE_SQL_KIND",
    "SQLiteSQLConfig",
    "SQLiteSQLTool",
]
