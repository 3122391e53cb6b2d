"""Tests for ToolSpec and ToolRegistry.

Covers:
- ToolSpec creation and immutability
- ToolRegistry read-only filtering
- ToolRegistry list_tools, tool_count, call_tool
- Error translation in call_tool
"""

import asyncio
import unittest
from unittest.mock import MagicMock

import mcp.types as types
import requests

from wp_github_sync.core.errors import PermissionDeniedError
from wp_github_sync.mcp.tools.registry import ToolRegistry, ToolSpec


def _make_spec(name: str, read_only: bool = True, handler=None) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if handler is None:

        async def handler(runtime, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        handler=handler,
        read_only=read_only,
    )


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestToolSpec(unittest.TestCase):
    """Test ToolSpec dataclass."""

    def test_defaults_to_read_only(self):
        spec = _make_spec("status")
        self.assertTrue(spec.read_only)

    def test_frozen(self):
        spec = _make_spec("status")
        with self.assertRaises(AttributeError):
            spec.read_only = False


class TestToolRegistry(unittest.TestCase):
    """Test ToolRegistry class."""

    def setUp(self):
        self.specs = [
            _make_spec("ping"),
            _make_spec("wordpress_sync", read_only=False),
            _make_spec("wordpress_sync_status"),
        ]

    def test_all_tools_registered(self):
        registry = ToolRegistry(self.specs)
        self.assertEqual(registry.tool_count(), 3)
        self.assertEqual(
            [t.name for t in registry.list_tools()],
            ["ping", "wordpress_sync", "wordpress_sync_status"],
        )

    def test_read_only_drops_write_tools(self):
        registry = ToolRegistry(self.specs, read_only=True)
        names = [t.name for t in registry.list_tools()]
        self.assertNotIn("wordpress_sync", names)
        self.assertEqual(registry.tool_count(), 2)

    def test_call_tool_dispatches(self):
        registry = ToolRegistry(self.specs)
        result = asyncio.run(registry.call_tool("ping", None, MagicMock()))
        self.assertEqual(_text(result), "ok:ping")

    def test_call_unknown_tool_raises(self):
        registry = ToolRegistry(self.specs)
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("nope", {}, MagicMock()))

    def test_call_filtered_tool_raises(self):
        registry = ToolRegistry(self.specs, read_only=True)
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("wordpress_sync", {}, MagicMock()))

    def test_handler_receives_empty_args_for_none(self):
        seen = {}

        async def handler(runtime, args):
            seen["args"] = args
            return types.CallToolResult(content=[])

        registry = ToolRegistry([_make_spec("t", handler=handler)])
        asyncio.run(registry.call_tool("t", None, MagicMock()))
        self.assertEqual(seen["args"], {})


class TestCallToolErrors(unittest.TestCase):
    """Handler failures become structured error responses."""

    def _call(self, exc: Exception) -> types.CallToolResult:
        async def handler(runtime, args):
            raise exc

        registry = ToolRegistry([_make_spec("t", handler=handler)])
        return asyncio.run(registry.call_tool("t", {}, MagicMock()))

    def test_sync_error(self):
        result = self._call(PermissionDeniedError("org/repo"))
        self.assertTrue(result.isError)
        self.assertIn("permission_denied", _text(result))

    def test_request_exception(self):
        result = self._call(requests.ConnectionError("refused"))
        self.assertIn("server_error", _text(result))

    def test_value_error(self):
        result = self._call(ValueError("Unknown endpoint(s): ['x']"))
        self.assertIn("validation_error", _text(result))
        self.assertIn("Unknown endpoint", _text(result))

    def test_unexpected_error(self):
        result = self._call(KeyError("boom"))
        self.assertTrue(result.isError)
        self.assertIn("server_error", _text(result))
