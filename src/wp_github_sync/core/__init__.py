"""HTTP clients and shared plumbing used by the CLI and the MCP server."""

from .async_utils import RequestLimiter, run_sync
from .github_client import GitHubClient, GitHubRepo
from .slack_client import SlackClient
from .wordpress_client import WordPressClient

__all__ = [
    "GitHubClient",
    "GitHubRepo",
    "RequestLimiter",
    "SlackClient",
    "WordPressClient",
    "run_sync",
]
