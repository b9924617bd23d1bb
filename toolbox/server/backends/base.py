# toolbox/server/backends/base.py
"""
Source base class

A Source wraps a heavyweight data backend (a database file, a connection
pool) and owns its whole lifecycle:

- warmup(): called when the server starts; open and verify connections
- shutdown(): called when the server stops; release everything

Tools never own a source. They borrow the handle a source exposes and keep
using it until the source is shut down together with the server.

Usage:

```python
from toolbox.server.backends import Source, SourceConfig

class MySource(Source):
    kind = "my-db"

    async def warmup(self):
        self.pool = await create_pool(self.config.options["dsn"])

    async def shutdown(self):
        await self.pool.close()

    def my_db(self):
        return self.pool
```
"""

from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Dict


# ============================================================================
# Config
# ============================================================================

@dataclass
class SourceConfig:
    """
    Source configuration

    Attributes:
        name: Name tools use to reference the source
        kind: Source kind (e.g. "sqlite")
        options: Kind specific options, as written in the config file
        description: Free text description
    """
    name: str
    kind: str
    options: Dict[str, Any] = field(default_factory=dict)
    description: str = ""


# ============================================================================
# Source base class
# ============================================================================

class Source(ABC):
    """
    Source base class

    Class attributes:
        kind: Source kind, matched against the "kind" field of the config
        description: Source description
    """

    kind: str = "base"
    description: str = "Base Source"

    def __init__(self, config: SourceConfig):
        self.config = config
        self.name = config.name

    async def warmup(self):
        """Open and verify connections (optional override)."""
        pass

    async def shutdown(self):
        """Release every resource held by the source (optional override)."""
        pass

    def get_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "description": self.config.description or self.description,
        }
