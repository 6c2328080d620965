"""
MCP Relay CLI: runs the relay on stdio.

Usage:
    mcp-relay [--server-url URL] [--cache-dir DIR] [--log-level LEVEL]
              [--log-file PATH] [--no-refresh]
    python -m mcp_relay.cli --help

stdout carries the MCP protocol; logs go to stderr or to --log-file.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from pydantic import ValidationError

from mcp_relay.core.config import RelayConfig
from mcp_relay.relay import McpRelay
from mcp_relay.version import __version__

logger = logging.getLogger("McpRelay.cli")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-relay",
        description="Relay a stdio MCP client to an HTTP tool service.",
    )
    parser.add_argument("--server-url", help="Tool service base URL (default: MCP_RELAY_SERVER_URL or auto-detected)")
    parser.add_argument("--cache-dir", help="Directory for the tool-list cache (default: ~/.mcp-relay-cache)")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")
    parser.add_argument("--log-file", help="Append logs to this file instead of stderr")
    parser.add_argument(
        "--no-refresh",
        action="store_true",
        help="Disable the background tool-list refresh loop",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(args: argparse.Namespace) -> RelayConfig:
    return RelayConfig.from_env(
        server_url=args.server_url,
        cache_dir=args.cache_dir,
        log_level=args.log_level,
        log_file=args.log_file,
        refresh_enabled=False if args.no_refresh else None,
    )


def configure_logging(config: RelayConfig) -> None:
    """Route all relay logging away from stdout."""
    if config.log_file:
        logging.basicConfig(
            level=config.log_level,
            format=LOG_FORMAT,
            filename=config.log_file,
            filemode="a",
        )
    else:
        logging.basicConfig(level=config.log_level, format=LOG_FORMAT, stream=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args)
    except ValidationError as e:
        print(f"Fatal error: invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(config)
    try:
        McpRelay(config).run(sys.stdin.buffer)
    except Exception as e:
        logger.error("Fatal error: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
