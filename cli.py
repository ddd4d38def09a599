"""CLI entry point for mcp-oauth-proxy."""
import argparse
import json
import sys

import uvicorn

from config import load_settings

VERSION = "1.0.0"


def cmd_start(args):
    """Run the proxy in the foreground."""
    settings = load_settings()
    host = args.host or settings.host
    port = args.port or settings.port
    print(f"Starting MCP OAuth proxy on {host}:{port} (identity: {settings.identity_strategy})")
    if not settings.is_valid():
        print("  WARNING: UPSTREAM_CLIENT_ID / upstream endpoints are not configured", file=sys.stderr)
    uvicorn.run("main:app", host=host, port=port, log_level=settings.log_level.lower())


def cmd_config(args):
    """Print the effective configuration (secrets masked)."""
    print(json.dumps(load_settings().describe(), indent=2))


def cmd_version(args):
    print(f"mcp-oauth-proxy v{VERSION}")


COMMANDS = {
    "start": cmd_start,
    "config": cmd_config,
    "version": cmd_version,
}


def main(argv=None):
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        prog="mcp-oauth-proxy",
        description="OAuth 2.0 authorization-server proxy for MCP clients",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  start     Start the proxy (default)
  config    Show effective configuration
  version   Show version

Examples:
  mcp-oauth-proxy start --port 8766
  mcp-oauth-proxy config
"""
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="start",
        choices=sorted(COMMANDS),
        help="Command to run (default: start)"
    )
    parser.add_argument("--host", default=None, help="Bind address (default: MCP_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: MCP_PORT)")

    args = parser.parse_args(argv)
    COMMANDS[args.command](args)


if __name__ == "__main__":
    main()
