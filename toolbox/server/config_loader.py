# toolbox/server/config_loader.py
"""
Config loader

Loads sources and tools from a JSON config file.
Supports environment variable expansion (${VAR} or ${VAR:-default}); a
``.env`` file next to the config is loaded first.

Usage:
```python
from toolbox.server.config_loader import ConfigLoader, load_config

# 1: parse only
config = load_config("config.json")

# 2: loader
loader = ConfigLoader()
loader.load("config.json")
server = loader.create_server()
server.run()

# 3: one call
from toolbox.server.config_loader import create_server_from_config
server = create_server_from_config("config.json")
server.run()
```
"""

import os
import re
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .backends.base import Source, SourceConfig
from .backends.errors import ConfigValidationError, ToolboxError
from .backends.registry import KindRegistry, default_source_kinds, default_tool_kinds
from .backends.tools.base_tool import BaseTool

logger = logging.getLogger("ConfigLoader")


# ============================================================================
# Environment Variable Processing
# ============================================================================

_ENV_PATTERN = re.compile(r'\$\{([^}:]+)(?::-([^}]*))?\}')


def expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables.

    Formats:
    - ${VAR} - variable must be set; left untouched otherwise
    - ${VAR:-default} - variable with a default

    Args:
        value: Any value (only strings are rewritten)

    Returns:
        Expanded value
    """
    if isinstance(value, str):
        def replace(match):
            var_name = match.group(1)
            default_value = match.group(2)
            env_value = os.environ.get(var_name)

            if env_value is not None:
                return env_value
            elif default_value is not None:
                return default_value
            else:
                logger.warning(f"Environment variable '{var_name}' not set and no default provided")
                return match.group(0)

        return _ENV_PATTERN.sub(replace, value)

    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]

    return value


# ============================================================================
# Configuration Data Classes
# ============================================================================

@dataclass
class ServerConfig:
    """
    Server configuration

    host and port come from the CLI (--host/--port), not from the file.
    """
    title: str = "Toolbox SQL Service"
    description: str = ""
    version: str = "0.1.0"
    log_level: str = "INFO"
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class ToolboxConfig:
    """Complete configuration"""
    server: ServerConfig = field(default_factory=ServerConfig)
    sources: Dict[str, SourceConfig] = field(default_factory=dict)
    tools: Dict[str, Dict[str, Any]] = field(default_factory=dict)


# ============================================================================
# Config Loader
# ============================================================================

class ConfigLoader:
    """
    Config loader

    Load flow:
    1. read and parse the config file
    2. expand environment variables
    3. build every source through the source kind registry
    4. decode every tool through the tool kind registry and bind it
       to the sources (``ToolConfig.initialize``)
    5. hand sources and tools to a ToolboxServer

    A tool that fails to build is skipped and recorded in ``failed_tools``;
    with ``strict=True`` the first failure is raised instead.
    """

    def __init__(
        self,
        source_kinds: Optional[KindRegistry] = None,
        tool_kinds: Optional[KindRegistry] = None,
    ):
        self.source_kinds = source_kinds if source_kinds is not None else default_source_kinds()
        self.tool_kinds = tool_kinds if tool_kinds is not None else default_tool_kinds()
        self.config: Optional[ToolboxConfig] = None
        self.raw_config: Dict[str, Any] = {}
        self.failed_tools: Dict[str, str] = {}

    def load(self, config_path: str) -> ToolboxConfig:
        """
        Load a config file

        Args:
            config_path: path of the JSON config

        Returns:
            Parsed config
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        env_file = path.parent / ".env"
        if env_file.exists():
            load_dotenv(env_file, override=False)
            logger.debug(f"Loaded environment from {env_file}")

        with open(path, 'r', encoding='utf-8') as f:
            try:
                self.raw_config = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigValidationError(f"invalid JSON in {config_path}: {e}") from e

        self.config = self._parse_config(expand_env_vars(self.raw_config))

        logger.info(f"Loaded config from {config_path}")
        logger.info(f"   - Server: {self.config.server.title}")
        logger.info(f"   - Sources: {list(self.config.sources.keys())}")
        logger.info(f"   - Tools: {list(self.config.tools.keys())}")

        return self.config

    def load_from_dict(self, config_dict: Dict[str, Any]) -> ToolboxConfig:
        """Load config from a dict"""
        self.raw_config = config_dict
        self.config = self._parse_config(expand_env_vars(config_dict))
        return self.config

    def _parse_config(self, data: Dict[str, Any]) -> ToolboxConfig:
        if not isinstance(data, dict):
            raise ConfigValidationError("config root must be a JSON object")

        server_data = data.get("server", {})
        server = ServerConfig(
            title=server_data.get("title", "Toolbox SQL Service"),
            description=server_data.get("description", ""),
            version=server_data.get("version", "0.1.0"),
            log_level=server_data.get("log_level", "INFO"),
            allowed_origins=server_data.get("allowed_origins", ["*"]),
        )

        sources: Dict[str, SourceConfig] = {}
        for name, src_data in data.get("sources", {}).items():
            # skip comment keys
            if name.startswith("_"):
                continue
            if not isinstance(src_data, dict) or not src_data.get("kind"):
                raise ConfigValidationError(f"source {name!r}: 'kind' is required")
            options = {k: v for k, v in src_data.items() if k not in ("kind", "description")}
            sources[name] = SourceConfig(
                name=name,
                kind=src_data["kind"],
                options=options,
                description=src_data.get("description", ""),
            )

        tools: Dict[str, Dict[str, Any]] = {}
        for name, tool_data in data.get("tools", {}).items():
            if name.startswith("_"):
                continue
            if not isinstance(tool_data, dict):
                raise ConfigValidationError(f"tool {name!r}: entry must be an object")
            tools[name] = tool_data

        return ToolboxConfig(server=server, sources=sources, tools=tools)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def build_sources(self) -> Dict[str, Source]:
        """
        Instantiate every configured source.

        Raises:
            ConfigValidationError: unknown source kind or invalid options
        """
        if not self.config:
            raise RuntimeError("No config loaded. Call load() first.")

        sources: Dict[str, Source] = {}
        for name, src_config in self.config.sources.items():
            factory = self.source_kinds.get(src_config.kind)
            if factory is None:
                raise ConfigValidationError(
                    f"source {name!r}: unknown kind {src_config.kind!r}, expected one of {self.source_kinds.kinds()}"
                )
            sources[name] = factory(src_config)
            logger.info(f"Built source: {name} ({src_config.kind})")
        return sources

    def build_tools(self, sources: Dict[str, Source], strict: bool = False) -> Dict[str, BaseTool]:
        """
        Decode and initialize every configured tool against ``sources``.

        Args:
            sources: Built sources, by name
            strict: Raise on the first tool that fails instead of skipping it

        Returns:
            Ready tools, by name
        """
        if not self.config:
            raise RuntimeError("No config loaded. Call load() first.")

        self.failed_tools = {}
        tools: Dict[str, BaseTool] = {}
        for name, tool_data in self.config.tools.items():
            try:
                kind = tool_data.get("kind")
                factory = self.tool_kinds.get(kind) if isinstance(kind, str) else None
                if factory is None:
                    raise ConfigValidationError(
                        f"tool {name!r}: unknown kind {kind!r}, expected one of {self.tool_kinds.kinds()}"
                    )
                tool_config = factory(name, tool_data)
                tools[name] = tool_config.initialize(sources)
                logger.info(f"Built tool: {name} ({kind})")
            except ToolboxError as e:
                if strict:
                    raise
                self.failed_tools[name] = e.message
                logger.error(f"Failed to build tool '{name}': {e.message}")

        if self.failed_tools:
            logger.warning(f"{len(self.failed_tools)} tool(s) skipped: {list(self.failed_tools.keys())}")
        return tools

    def create_server(self, host: str = "0.0.0.0", port: int = 8080, strict: bool = False):
        """
        Create a server from the loaded config

        Args:
            host: bind address
            port: port
            strict: fail when any tool cannot be built

        Returns:
            Configured ToolboxServer
        """
        if not self.config:
            raise RuntimeError("No config loaded. Call load() first.")

        # deferred to avoid a circular import
        from .app import ToolboxServer

        server = ToolboxServer(
            host=host,
            port=port,
            title=self.config.server.title,
            description=self.config.server.description,
            version=self.config.server.version,
            allowed_origins=self.config.server.allowed_origins,
        )

        sources = self.build_sources()
        for source in sources.values():
            server.add_source(source)

        for name, tool in self.build_tools(sources, strict=strict).items():
            server.register_tool(name, tool)

        return server


# ============================================================================
# Convenience Functions
# ============================================================================

def load_config(config_path: str) -> ToolboxConfig:
    """
    Load a config file

    Args:
        config_path: path of the JSON config

    Returns:
        Parsed config
    """
    loader = ConfigLoader()
    return loader.load(config_path)


def create_server_from_config(
    config_path: str,
    host: str = "0.0.0.0",
    port: int = 8080,
    strict: bool = False,
):
    """
    Create a server from a config file

    Example:
        ```python
        server = create_server_from_config("config.json", host="0.0.0.0", port=5000)
        server.run()
        ```
    """
    loader = ConfigLoader()
    loader.load(config_path)
    return loader.create_server(host=host, port=port, strict=strict)


def get_default_config() -> Dict[str, Any]:
    """
    Default config template

    host/port are given on the command line.
    """
    return {
        "server": {
            "title": "Toolbox SQL Service",
            "log_level": "INFO"
        },
        "sources": {
            "_comment": "name -> {kind, database, readOnly, poolSize, timeout}"
        },
        "tools": {
            "_comment": "name -> {kind, source, description, statement, parameters, templateParameters, authRequired}"
        }
    }
