# toolbox/server/__init__.py
"""
Toolbox Server module

Starts the toolbox from a config file.

Layout:
```
server/
├── __init__.py          # exports
├── app.py               # ToolboxServer
├── routes.py            # HTTP routes (REST + MCP)
├── config_loader.py     # config loader
└── backends/            # sources and tool kinds
    ├── base.py              # Source base class
    ├── registry.py          # kind registries
    ├── sources/sqlite.py    # SQLite source
    └── tools/sqlite_sql.py  # sqlite-sql tool
```

Start:
```python
from toolbox.server import create_server_from_config

server = create_server_from_config("config.json", host="0.0.0.0", port=5000)
server.run()
```

Command line:
```bash
python -m toolbox server --config config.json --port 5000
```
"""

from .app import ToolboxServer
from .config_loader import (
    ConfigLoader,
    ServerConfig,
    ToolboxConfig,
    create_server_from_config,
    get_default_config,
    load_config,
)

__all__ = [
    "ToolboxServer",
    "ConfigLoader",
    "ServerConfig",
    "ToolboxConfig",
    "create_server_from_config",
    "get_default_config",
    "load_config",
]
