"""ToolSpec and ToolRegistry for read-only tool filtering.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, a read-only
  flag, and an async handler with standardized signature
  (runtime, args) -> CallToolResult.
- ToolRegistry: Drops write tools at construction time when the server
  runs read-only, then provides list_tools() and call_tool() dispatch
  with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types
import requests

from ...core.errors import SyncError
from ...runner import SyncRuntime

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable definition of a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        handler: Async handler with signature (runtime, args) -> CallToolResult.
        read_only: True if the tool never writes to GitHub.
    """

    tool: types.Tool
    handler: Callable[[SyncRuntime, dict], Awaitable[types.CallToolResult]]
    read_only: bool = True


class ToolRegistry:
    """Registry of ToolSpecs.

    With ``read_only=True`` only specs flagged read-only are registered.
    """

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if not read_only or spec.read_only:
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        runtime: SyncRuntime,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_sync_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(runtime, args)
        except (SyncError, requests.RequestException) as e:
            logger.warning("Sync failure in %s: %s", name, e)
            return translate_sync_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return translate_sync_error(e)
