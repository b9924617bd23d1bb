# toolbox/server/backends/registry.py
"""
Kind registries

Maps the ``kind`` string of a config entry to the factory that decodes it.
There are two registries, one for sources and one for tools; both are plain
objects owned by the composition root (``ConfigLoader``). Nothing registers
itself on import.

Usage:
```python
from toolbox.server.backends.registry import KindRegistry

tool_kinds = KindRegistry("tool")
tool_kinds.register("sqlite-sql", SQLiteSQLConfig.from_dict)

factory = tool_kinds.get("sqlite-sql")
config = factory("list_users", {"kind": "sqlite-sql", ...})
```
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .errors import DuplicateKindError

logger = logging.getLogger("ToolKinds")


class KindRegistry:
    def __init__(self, label: str):
        self.label = label
        self._factories: Dict[str, Callable[..., Any]] = {}

    def register(self, kind: str, factory: Callable[..., Any]) -> Callable[..., Any]:
        """
        Register a factory for ``kind``.

        Raises:
            DuplicateKindError: if the kind is already registered
        """
        if kind in self._factories:
            raise DuplicateKindError(f"{self.label} kind {kind!r} already registered")
        self._factories[kind] = factory
        logger.debug(f"Registered {self.label} kind: {kind}")
        return factory

    def get(self, kind: str) -> Optional[Callable[..., Any]]:
        return self._factories.get(kind)

    def kinds(self) -> List[str]:
        return list(self._factories.keys())

    def __contains__(self, kind: str) -> bool:
        return kind in self._factories

    def __len__(self) -> int:
        return len(self._factories)


def default_source_kinds() -> KindRegistry:
    """Registry with every built-in source kind."""
    from .sources import SQLiteSource

    registry = KindRegistry("source")
    registry.register(SQLiteSource.kind, SQLiteSource)
    return registry


def default_tool_kinds() -> KindRegistry:
    """Registry with every built-in tool kind."""
    from .tools.sqlite_sql import KIND, SQLiteSQLConfig

    registry = KindRegistry("tool")
    registry.register(KIND, SQLiteSQLConfig.from_dict)
    return registry
