# toolbox/__init__.py
"""
Toolbox - SQL statement tools served over HTTP and MCP

A tool is one parameterized SQL statement bound to a named database source.
Tools are declared in a JSON config, built once when the server starts and
invoked with a JSON object of parameters; rows come back as ordered records.

Modules:
- protocol.py: endpoints, headers and JSON-RPC models
- server/: ToolboxServer, routes, config loader, sources and tool kinds

Usage:
    python -m toolbox server --config toolbox/configs/example.json
"""

from .protocol import HTTPEndpoints, HTTPHeaders
from .server import ToolboxServer, create_server_from_config

__version__ = "0.1.0"

__all__ = [
    "HTTPEndpoints",
    "HTTPHeaders",
    "ToolboxServer",
    "create_server_from_config",
    "__version__",
]
