# toolbox/server/backends/__init__.py
"""
Backends module

Two building blocks:

1. Sources (stateful, heavyweight)
   - own database connections
   - lifecycle: warmup -> shutdown
   - location: backends/sources/

2. Tools (stateless once built)
   - built from config against a source
   - location: backends/tools/

Directory layout:
```
backends/
├── __init__.py          # exports
├── base.py              # Source base class
├── errors.py            # error hierarchy
├── error_codes.py       # ErrorCode
├── registry.py          # KindRegistry, default kinds
├── response_builder.py  # standard responses
│
├── sources/
│   └── sqlite.py        # SQLiteSource, SQLitePool
│
└── tools/
    ├── base_tool.py     # ToolConfig, BaseTool
    ├── context.py       # CallContext
    ├── manifest.py      # Manifest, McpManifest
    ├── parameters.py    # parameter definitions, template resolution
    └── sqlite_sql.py    # sqlite-sql tool
```
"""

from .base import Source, SourceConfig
from .registry import KindRegistry, default_source_kinds, default_tool_kinds

__all__ = [
    "Source",
    "SourceConfig",
    "KindRegistry",
    "default_source_kinds",
    "default_tool_kinds",
]
