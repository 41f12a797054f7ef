"""
Command-line entry point.

Usage:
    mcp-toolset --endpoint https://api.example.com/toolset/manifest --api-key KEY
    python -m mcp_toolset --endpoint ... --api-key ... --verbose

Both values fall back to MCP_TOOLSET_ENDPOINT / MCP_TOOLSET_API_KEY, which
may also come from a .env file. Logs go to stderr; stdout carries the
protocol.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

from mcp_toolset.errors import ToolsetError
from mcp_toolset.hooks import logging_hooks
from mcp_toolset.server import RemoteToolsetServer

logger = logging.getLogger(__name__)

ENDPOINT_ENV = "MCP_TOOLSET_ENDPOINT"
API_KEY_ENV = "MCP_TOOLSET_API_KEY"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-toolset",
        description="Serve a remote HTTP toolset to an MCP client over stdio.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Environment:
  {ENDPOINT_ENV}   default for --endpoint
  {API_KEY_ENV}    default for --api-key
        """,
    )
    parser.add_argument("--endpoint", type=str, default=os.environ.get(ENDPOINT_ENV, ""),
                        help="The toolset manifest endpoint URL")
    parser.add_argument("--api-key", type=str, default=os.environ.get(API_KEY_ENV, ""),
                        help="The API key for authentication")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.endpoint or not args.api_key:
        print("Error: Both endpoint URL and API key are required", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    try:
        server = RemoteToolsetServer.create(args.endpoint, args.api_key, hooks=logging_hooks())
    except ToolsetError as e:
        logger.error(f"Failed to create MCP toolset server: {e}")
        return 1

    try:
        server.start()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
