"""Error response builders for MCP tool handlers.

Sync failures are translated into structured responses with a corrective
action so an agent can tell a configuration problem from a transient one.
"""

import mcp.types as types
import requests

from ...core.errors import (
    BinarySyncError,
    ConfigError,
    OversizedEntryError,
    PermissionDeniedError,
    RemoteAPIError,
    SyncError,
    UpstreamDataError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied,
            validation_error, upstream_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take

    Returns:
        CallToolResult with isError=True
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_sync_error(error: Exception) -> types.CallToolResult:
    """Translate a sync failure into a structured error response."""
    match error:
        case PermissionDeniedError():
            return build_error_response(
                "permission_denied",
                str(error),
                "Grant the GitHub token push access to the target repository.",
            )
        case ConfigError():
            return build_error_response(
                "validation_error",
                str(error),
                "Fix the local config.yml or the repository's endpoint config, then retry.",
            )
        case RemoteAPIError() if error.is_not_found:
            return build_error_response(
                "not_found",
                str(error),
                "Check the endpoint's owner, repo, branch and config_path.",
            )
        case RemoteAPIError() if error.is_transient:
            return build_error_response(
                "server_error",
                str(error),
                "The remote service is unavailable or rate limited; retry later.",
            )
        case UpstreamDataError() | BinarySyncError():
            return build_error_response(
                "upstream_error",
                str(error),
                "Check the WordPress site for malformed or missing content.",
            )
        case OversizedEntryError():
            return build_error_response(
                "validation_error",
                str(error),
                "Exclude the oversized property with ExcludeProperties.",
            )
        case requests.RequestException():
            return build_error_response(
                "server_error",
                str(error),
                "Check network connectivity to WordPress and GitHub, then retry.",
            )
        case SyncError():
            return build_error_response(
                "server_error", str(error), "Retry later."
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Check the server log for details.",
            )
