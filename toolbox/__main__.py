# toolbox/__main__.py
"""
Toolbox command line entry

Usage:

1. Start the server:
    python -m toolbox server                          # bundled example config
    python -m toolbox server --config path/to/config.json
    python -m toolbox server --port 5000
    python -m toolbox server --config example --show  # print parsed config

2. Validate a config (builds every source and tool without serving):
    python -m toolbox validate --config path/to/config.json
    python -m toolbox validate --config example --strict --exit-on-error
"""

import os
import sys
import argparse
import logging


TOOLBOX_DIR = os.path.dirname(os.path.abspath(__file__))

CONFIG_PROFILES = {
    "example": os.path.join(TOOLBOX_DIR, "configs/example.json"),
}


def resolve_config_path(config: str) -> str:
    config_path = CONFIG_PROFILES.get(config, config)
    if not os.path.exists(config_path):
        print(f"Config file not found: {config_path}")
        print(f"\nAvailable profiles: {list(CONFIG_PROFILES.keys())}")
        sys.exit(1)
    return config_path


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# ============================================================================
# Validate command
# ============================================================================

def cmd_validate(args):
    """Validate a config file"""
    from toolbox.server.backends.errors import ToolboxError
    from toolbox.server.config_loader import ConfigLoader

    config_path = resolve_config_path(args.config)
    loader = ConfigLoader()
    try:
        config = loader.load(config_path)
        setup_logging(config.server.log_level)
        sources = loader.build_sources()
        tools = loader.build_tools(sources, strict=False)
    except ToolboxError as e:
        print(f"Invalid configuration: {e.message}")
        sys.exit(1)

    print(f"\nConfig:  {config_path}")
    print(f"Sources: {list(sources.keys())}")
    print(f"Tools:   {list(tools.keys())}")
    for name, reason in loader.failed_tools.items():
        print(f"  FAILED {name}: {reason}")

    if not loader.failed_tools:
        print("\nConfiguration is valid")
        return

    if not args.strict:
        print(f"\n{len(loader.failed_tools)} tool(s) would be skipped")
        return

    print("\nConfiguration is invalid")
    if args.exit_on_error:
        sys.exit(1)


# ============================================================================
# Server command
# ============================================================================

def cmd_server(args):
    """Start the server"""
    from toolbox.server.config_loader import ConfigLoader

    config_path = resolve_config_path(args.config)

    loader = ConfigLoader()
    config = loader.load(config_path)
    setup_logging(config.server.log_level)

    if args.show:
        print("\n" + "=" * 60)
        print("Toolbox Server Configuration")
        print("=" * 60)
        print(f"\nTitle:     {config.server.title}")
        print(f"Config:    {config_path}")
        print(f"Log Level: {config.server.log_level}")

        print(f"\nSources ({len(config.sources)}):")
        for name, src in config.sources.items():
            print(f"   {name} [{src.kind}]: {src.description or src.options.get('database')}")

        print(f"\nTools ({len(config.tools)}):")
        for name, tool in config.tools.items():
            print(f"   {name} [{tool.get('kind')}] -> {tool.get('source')}")

        print("\n" + "=" * 60)
        return

    if args.validate:
        loader.build_tools(loader.build_sources(), strict=True)
        print(f"Configuration is valid: {config_path}")
        return

    host = args.host
    port = args.port

    server = loader.create_server(host=host, port=port, strict=args.strict)

    print("\n" + "=" * 60)
    print("Toolbox Server Starting")
    print("=" * 60)
    print(f"\n   URL:     http://{host}:{port}")
    print(f"   Config:  {config_path}")
    print(f"   Tools:   {server.list_tools()}")
    print(f"\n   Health:  http://{host}:{port}/health")
    print(f"   Docs:    http://{host}:{port}/docs")
    print("\n" + "=" * 60)

    server.run()


# ============================================================================
# Main
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m toolbox",
        description="Toolbox - SQL statement tools over HTTP and MCP"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    server_parser = subparsers.add_parser(
        "server",
        help="Start the Toolbox HTTP server",
        description="Start the Toolbox HTTP server with the given configuration"
    )
    server_parser.add_argument(
        "--config", "-c",
        default="example",
        help="Config profile (example) or path to config file (default: example)"
    )
    server_parser.add_argument(
        "--host", "-H",
        default="0.0.0.0",
        help="Server bind address (default: 0.0.0.0)"
    )
    server_parser.add_argument(
        "--port", "-p",
        type=int,
        default=5000,
        help="Server port (default: 5000)"
    )
    server_parser.add_argument(
        "--validate",
        action="store_true",
        help="Only validate config, don't start server"
    )
    server_parser.add_argument(
        "--show",
        action="store_true",
        help="Show parsed configuration"
    )
    server_parser.add_argument(
        "--strict", "-s",
        action="store_true",
        help="Refuse to start when any tool fails to build"
    )
    server_parser.set_defaults(func=cmd_server)

    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a configuration file",
        description="Build every source and tool of a config without starting the server"
    )
    validate_parser.add_argument(
        "--config", "-c",
        required=True,
        help="Config profile (example) or path to config file"
    )
    validate_parser.add_argument(
        "--strict", "-s",
        action="store_true",
        help="Strict mode: a skipped tool makes the config invalid"
    )
    validate_parser.add_argument(
        "--exit-on-error",
        action="store_true",
        help="Exit with non-zero code if validation fails (for CI/CD)"
    )
    validate_parser.set_defaults(func=cmd_validate)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    args.func(args)


if __name__ == "__main__":
    main()
