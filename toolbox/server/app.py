# toolbox/server/app.py
"""
Toolbox Server - FastAPI application

The server is a container and a dispatcher:
- holds Source instances (and their lifecycle)
- holds built tools by name
- dispatches invocations to the tool

Usage:

1. From a config file:
```python
from toolbox.server.config_loader import create_server_from_config

server = create_server_from_config("toolbox/configs/example.json")
server.run()
```

2. By hand:
```python
from toolbox.server import ToolboxServer
from toolbox.server.backends import SourceConfig
from toolbox.server.backends.sources import SQLiteSource
from toolbox.server.backends.tools import SQLiteSQLConfig

source = SQLiteSource(SourceConfig(name="app-db", kind="sqlite", options={"database": "app.db"}))
tool = SQLiteSQLConfig.from_dict("count_users", {
    "kind": "sqlite-sql",
    "source": "app-db",
    "description": "Count users",
    "statement": "SELECT COUNT(*) AS n FROM users",
}).initialize({"app-db": source})

server = ToolboxServer(port=5000)
server.add_source(source)
server.register_tool("count_users", tool)
server.run()
```
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Any, Optional, List, Mapping, Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .backends.base import Source
from .backends.error_codes import ErrorCode
from .backends.errors import ConfigValidationError
from .backends.response_builder import ResponseMeta, build_error_response
from .backends.tools.base_tool import BaseTool
from .backends.tools.manifest import Manifest, McpManifest, toolset_manifest
from .routes import register_routes

logger = logging.getLogger("ToolboxServer")


class ToolboxServer:
    """
    Toolbox Server

    Responsibilities:
    1. hold sources; warm them up on startup, shut them down on exit
    2. hold tools by name
    3. dispatch invocations and wrap unknown tool names in a standard response
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8080,
        title: str = "Toolbox SQL Service",
        description: str = "SQL statement tools over HTTP and MCP",
        version: str = "0.1.0",
        enable_cors: bool = True,
        allowed_origins: Optional[List[str]] = None,
    ):
        self.host = host
        self.port = port
        self.title = title
        self.description = description
        self.version = version
        self.enable_cors = enable_cors
        self.allowed_origins = allowed_origins or ["*"]

        self._sources: Dict[str, Source] = {}
        self._tools: Dict[str, BaseTool] = {}
        self._ready = False

        self._app: Optional[FastAPI] = None

    # ========================================================================
    # Sources
    # ========================================================================

    def add_source(self, source: Source):
        if source.name in self._sources:
            raise ConfigValidationError(f"source {source.name!r} already added")
        self._sources[source.name] = source
        logger.debug(f"Added source: {source.name} ({source.kind})")

    def get_source(self, name: str) -> Optional[Source]:
        return self._sources.get(name)

    def list_sources(self) -> List[Dict[str, Any]]:
        return [source.get_info() for source in self._sources.values()]

    async def warmup_sources(self):
        for name, source in self._sources.items():
            logger.info(f"Warming up source: {name}")
            await source.warmup()
        self._ready = True

    async def shutdown_sources(self):
        self._ready = False
        for name, source in self._sources.items():
            try:
                await source.shutdown()
            except Exception as e:
                logger.error(f"Failed to shutdown {name}: {e}")

    @property
    def ready(self) -> bool:
        return self._ready

    # ========================================================================
    # Tools
    # ========================================================================

    def register_tool(self, name: str, tool: BaseTool):
        """
        Register a built tool

        Raises:
            ConfigValidationError: a tool with the same name already exists
        """
        if name in self._tools:
            raise ConfigValidationError(f"tool {name!r} already registered")
        self._tools[name] = tool
        logger.debug(f"Registered tool: {name} ({tool.kind})")

    def get_tool(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def list_tools(self) -> List[str]:
        return list(self._tools.keys())

    def toolset(self) -> Dict[str, Any]:
        manifests: Dict[str, Manifest] = {name: tool.manifest() for name, tool in self._tools.items()}
        return toolset_manifest(manifests, self.version)

    def mcp_tools(self) -> List[McpManifest]:
        return [tool.mcp_manifest() for tool in self._tools.values()]

    async def invoke(
        self,
        name: str,
        params: Mapping[str, Any],
        *,
        verified_auth_services: Sequence[str] = (),
        claims: Optional[Mapping[str, Mapping[str, Any]]] = None,
        timeout: Optional[float] = None,
        trace_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Invoke a tool by name

        Returns:
            Standard response (see response_builder)
        """
        tool = self._tools.get(name)
        if tool is None:
            return build_error_response(
                ErrorCode.TOOL_NOT_FOUND,
                f"tool {name!r} not found",
                ResponseMeta(tool=name, session_id=session_id, trace_id=trace_id),
                stage="dispatch",
                extra={"available_tools": self.list_tools()},
            )
        return await tool(
            params,
            verified_auth_services=verified_auth_services,
            claims=claims,
            timeout=timeout,
            trace_id=trace_id,
            session_id=session_id,
        )

    # ========================================================================
    # FastAPI application
    # ========================================================================

    def create_app(self) -> FastAPI:
        """Create the FastAPI application"""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            logger.info("Toolbox Server starting...")
            await self.warmup_sources()
            logger.info(f"Server ready: {len(self._sources)} sources, {len(self._tools)} tools")

            yield

            logger.info("Toolbox Server shutting down...")
            await self.shutdown_sources()

        app = FastAPI(
            title=self.title,
            description=self.description,
            version=self.version,
            lifespan=lifespan
        )

        if self.enable_cors:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=self.allowed_origins,
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            )

        register_routes(app, self)

        self._app = app
        return app

    def run(self, **kwargs):
        """Start the server"""
        import uvicorn

        app = self.create_app()
        logger.info(f"Starting Toolbox Server on {self.host}:{self.port}")
        uvicorn.run(app, host=self.host, port=self.port, **kwargs)
