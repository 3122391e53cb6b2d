"""MCP Server for WordPress to GitHub sync using stdio transport.

Exposes the sync runner as tools so an agent, or a webhook relay, can
trigger a pass and inspect the configured endpoints.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..logger import setup_logging
from ..runner import SyncRuntime
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("wp-github-sync")

# Global runtime instance (initialized in lifespan)
_runtime: SyncRuntime | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(
    runtime: SyncRuntime, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test GitHub connectivity."""
    try:
        login = await run_sync(runtime.github.validate_connection)
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"WordPress GitHub Sync connected to GitHub as {login}.",
                )
            ]
        )
    except Exception as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"GitHub connection failed: {e}. Check GITHUB_TOKEN.",
                )
            ],
            isError=True,
        )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test GitHub connectivity and return the authenticated user",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_runtime() -> SyncRuntime:
    """Get the global SyncRuntime instance.

    Raises:
        RuntimeError: If the runtime is not initialized
    """
    if _runtime is None:
        raise RuntimeError(
            "SyncRuntime not initialized. Server lifespan not started."
        )
    return _runtime


def set_runtime(runtime: SyncRuntime | None) -> None:
    global _runtime
    _runtime = runtime


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    runtime = get_runtime()
    try:
        return await get_registry().call_tool(name, arguments, runtime)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Args:
        config_overrides: Optional dict with config values to override
            (github_token, debug, log_file, read_only)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    read_only = overrides.pop("read_only", False)

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(
        mode="mcp", debug=overrides.get("debug", False), log_file=log_file
    )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if read_only:
        print(
            f"Read-only mode ({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )

    set_registry(registry)

    # set_runtime() is called here rather than in the lifespan so that
    # running this file as __main__ updates this module's global
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_runtime(ctx["runtime"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="wp-github-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_runtime(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="WordPress GitHub Sync MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .wp_github_sync/config.yml)
  wp-github-sync-mcp

  # Expose only read-only tools
  wp-github-sync-mcp --read-only

  # Custom log file location
  wp-github-sync-mcp --log-file /var/log/wp-github-sync.log

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument(
        "--github-token",
        help="Override GitHub token (visible in process list -- prefer GITHUB_TOKEN env var)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Debug logging; process endpoints flagged enabled_local",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only expose tools that never write to GitHub",
    )
    parser.add_argument(
        "--log-file",
        default="/tmp/wp-github-sync.log",
        help="Log file path (default: /tmp/wp-github-sync.log)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"wp-github-sync-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides: dict = {"log_file": args.log_file}
    if args.github_token:
        config_overrides["github_token"] = args.github_token
    if args.debug:
        config_overrides["debug"] = True
    if args.read_only:
        config_overrides["read_only"] = True

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
