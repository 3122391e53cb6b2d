"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..config_loader import discover_config_files
from ..core.async_utils import run_sync
from ..core.errors import ConfigError
from ..runner import SyncRuntime, build_runtime, load_settings

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, SyncRuntime]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env, the YAML config and credentials
      (CLI > env vars > .env > YAML > defaults)
    - Build the runtime (clients, request limiter, fingerprint cache)
    - Validate the GitHub token; fail fast if it is rejected

    Args:
        config_overrides: Optional dict with config values from CLI
            (github_token, debug).

    Yields:
        Dict with 'runtime' key containing the initialized SyncRuntime

    Raises:
        RuntimeError: If configuration is invalid or GitHub rejects the token.
    """
    logger.info("MCP server starting...")
    _stderr_print("WordPress GitHub Sync MCP Server starting...")

    try:
        config, unified = load_settings(config_overrides)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Ensure GITHUB_TOKEN, GITHUB_NAME, GITHUB_EMAIL are set."
        )
        raise RuntimeError(
            f"Configuration error: {e}. Ensure GITHUB_TOKEN, GITHUB_NAME, GITHUB_EMAIL are set."
        ) from e

    config_files = discover_config_files()
    source_desc = (
        f"config file: {config_files[0]}"
        if config_files
        else "environment variables"
    )
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    _stderr_print(f"  Endpoints configured: {len(unified.endpoints)}")

    logger.info("Validating GitHub token...")
    _stderr_print("  Validating GitHub token...")
    try:
        runtime = build_runtime(config, unified)
        login = await run_sync(runtime.github.validate_connection)
        logger.info("Authenticated to GitHub as %s", login)
        _stderr_print(f"  Authenticated to GitHub as {login}")
        _stderr_print(
            f"  Parallel requests: {config.max_parallel_requests}"
        )
        _stderr_print(
            "Server ready. Waiting for MCP client connection..."
        )
    except Exception as e:
        logger.error("Failed to connect to GitHub: %s", e)
        _stderr_print("ERROR: GitHub connection failed.")
        _stderr_print(f"  {e}")
        _stderr_print("  Check GITHUB_TOKEN.")
        raise RuntimeError(
            f"GitHub connection failed: {e}. Check GITHUB_TOKEN."
        ) from e

    yield {"runtime": runtime}

    logger.info("MCP server shutting down")
    _stderr_print("WordPress GitHub Sync MCP Server shutting down.")
