"""Exception hierarchy for wordpress-github-sync.

All errors raised by the sync core derive from ``SyncError`` so callers
(the runner, the CLI, MCP tool handlers) can catch application errors in
one place and report them.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for all wordpress-github-sync errors."""


class ConfigError(SyncError):
    """Raised when local or remote endpoint configuration is invalid."""


class RemoteAPIError(SyncError):
    """Raised when a WordPress, GitHub or Slack request fails.

    Attributes:
        status: HTTP status code (``None`` for connection-level failures).
        url: Requested URL.
        body: Response body excerpt, if any.
    """

    def __init__(
        self, status: int | None, url: str, body: str | None = None
    ) -> None:
        message = f"HTTP {status} from {url}"
        if body:
            message += f": {body[:300]}"
        super().__init__(message)
        self.status = status
        self.url = url
        self.body = body

    @property
    def is_transient(self) -> bool:
        """True for rate limiting and server-side failures."""
        return self.status is None or self.status == 429 or self.status >= 500

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class PermissionDeniedError(SyncError):
    """Raised when the GitHub token has no push access to the target repo."""

    def __init__(self, repo: str) -> None:
        super().__init__(f"App user has no write permissions for {repo}")
        self.repo = repo


class OversizedEntryError(SyncError):
    """Raised when a single tree entry exceeds the tree payload ceiling."""

    def __init__(self, path: str, size: int, limit: int) -> None:
        super().__init__(
            f"Tree entry '{path}' serializes to {size} bytes, "
            f"above the {limit} byte request limit"
        )
        self.path = path
        self.size = size
        self.limit = limit


class UpstreamDataError(SyncError):
    """Raised when WordPress returns data that cannot be mirrored."""


class BinarySyncError(SyncError):
    """Raised when a media binary cannot be downloaded or placed in the tree."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Binary sync failed for {url}: {reason}")
        self.url = url
        self.reason = reason
