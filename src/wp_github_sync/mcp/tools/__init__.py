"""MCP tool handlers for WordPress sync.

This package wraps the sync runner with async handlers and structured
error responses.
"""

from .errors import build_error_response, translate_sync_error
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS

ALL_SPECS: list[ToolSpec] = list(SYNC_SPECS)

__all__ = [
    "ALL_SPECS",
    "SYNC_SPECS",
    "ToolRegistry",
    "ToolSpec",
    "build_error_response",
    "translate_sync_error",
]
