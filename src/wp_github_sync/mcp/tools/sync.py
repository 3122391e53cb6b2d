"""MCP tool handlers for WordPress sync.

Defines two tools:

- ``wordpress_sync`` -- run a sync pass for the selected endpoints.  With
  ``source`` set it behaves like the webhook trigger: the notification is
  announced on Slack and the pass waits for WordPress to settle.
- ``wordpress_sync_status`` -- configured endpoints and cached fingerprints.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...runner import SyncRuntime, process_endpoints, select_endpoints
from ...sync.reporter import format_endpoint_report, report_to_json
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


WORDPRESS_SYNC_TOOL = types.Tool(
    name="wordpress_sync",
    description=(
        "Mirror WordPress posts, pages, media and API responses into the "
        "configured GitHub repositories. Only changed files are committed."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "endpoints": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Endpoint names to sync (default: all enabled)",
            },
            "source": {
                "type": "string",
                "description": (
                    "Webhook user agent; only endpoints whose WordPress URL "
                    "it contains are synced"
                ),
            },
            "slug": {
                "type": "string",
                "description": "Slug of the changed WordPress object (webhook)",
            },
            "event": {
                "type": "string",
                "description": "WordPress event that fired the webhook",
            },
        },
        "required": [],
    },
)

WORDPRESS_SYNC_STATUS_TOOL = types.Tool(
    name="wordpress_sync_status",
    description=(
        "List configured endpoints, which ones are active, and the "
        "upstream fingerprints cached by this server."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
    inputSchema={"type": "object", "properties": {}, "required": []},
)


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_wordpress_sync(
    runtime: SyncRuntime, args: dict[str, Any]
) -> types.CallToolResult:
    names = args.get("endpoints")
    if names is not None and (
        not isinstance(names, list)
        or not all(isinstance(n, str) for n in names)
    ):
        raise ValueError("endpoints must be a list of endpoint names")

    if names:
        known = {e.name for e in runtime.settings.endpoints}
        unknown = sorted(set(names) - known)
        if unknown:
            raise ValueError(
                f"Unknown endpoint(s): {unknown}. Available: {sorted(known)}"
            )

    reports = await process_endpoints(
        runtime,
        names=names,
        source=args.get("source"),
        trigger="wordpress_sync",
        slug=args.get("slug"),
        event=args.get("event"),
    )

    if reports:
        text = "\n\n".join(format_endpoint_report(r) for r in reports)
    else:
        text = "No changes."

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={"reports": [report_to_json(r) for r in reports]},
    )


async def _handle_wordpress_sync_status(
    runtime: SyncRuntime, args: dict[str, Any]
) -> types.CallToolResult:
    endpoints = runtime.settings.endpoints
    active = {
        e.name for e in select_endpoints(endpoints, debug=runtime.debug)
    }

    lines = [f"Endpoints ({len(active)} of {len(endpoints)} active):"]
    rows = []
    for endpoint in endpoints:
        target = endpoint.github_target
        rows.append(
            {
                "name": endpoint.name,
                "active": endpoint.name in active,
                "wordpress_url": endpoint.wordpress_source.url,
                "target": f"{target.full_name}@{target.branch}",
                "commit_only": endpoint.commit_only,
            }
        )
        marker = "*" if endpoint.name in active else " "
        lines.append(
            f"  {marker} {endpoint.name}: {endpoint.wordpress_source.url} "
            f"-> {target.full_name}@{target.branch}"
        )

    cache = runtime.cache.snapshot()
    lines.append(f"Cached fingerprints: {len(cache)}")

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={
            "debug": runtime.debug,
            "endpoints": rows,
            "cache": cache,
        },
    )


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=WORDPRESS_SYNC_TOOL,
        handler=_handle_wordpress_sync,
        read_only=False,
    ),
    ToolSpec(
        tool=WORDPRESS_SYNC_STATUS_TOOL,
        handler=_handle_wordpress_sync_status,
    ),
]
