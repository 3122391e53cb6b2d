"""Runtime credentials and process settings.

Reads GitHub and Slack credentials from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_TOKEN: GitHub token with contents/pull-request access (required)
    GITHUB_NAME: Committer name (required)
    GITHUB_EMAIL: Committer email (required)
    SLACKBOT_TOKEN: Slack bot token (optional, notifications disabled if unset)
    WP_SYNC_DEBUG: Debug mode, uses ``enabled_local`` endpoints (optional, default: false)
    WP_SYNC_MAX_PARALLEL_REQUESTS: Max parallel remote requests (optional, default: 5)
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class Config:
    github_token: str
    committer_name: str
    committer_email: str
    slack_token: str | None = None
    github_api_url: str = "https://api.github.com"
    debug: bool = False
    max_parallel_requests: int = 5

    @property
    def committer(self) -> dict[str, str]:
        return {"name": self.committer_name, "email": self.committer_email}


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL is malformed or credentials are empty.
    """
    config.github_api_url = config.github_api_url.strip()

    if not config.github_api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid GitHub API URL '{config.github_api_url}': must start with http:// or https://"
        )
    config.github_api_url = config.github_api_url.removesuffix("/")

    if not config.github_token.strip():
        raise ValueError(
            "GitHub token cannot be empty. Set GITHUB_TOKEN environment variable."
        )

    if "@" not in config.committer_email:
        raise ValueError(
            f"Invalid committer email '{config.committer_email}'. Set GITHUB_EMAIL environment variable."
        )

    if not config.slack_token:
        logger.info("SLACKBOT_TOKEN not set: Slack notifications disabled")


def load_config(
    github_token: str | None = None,
    committer_name: str | None = None,
    committer_email: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        github_token: Override GitHub token.
        committer_name: Override committer name.
        committer_email: Override committer email.
        debug: Debug mode (CLI flag).
        yaml_fallbacks: Dict of values from the YAML ``github`` section,
            plus ``slack_token`` and ``max_parallel_requests`` when set.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a required value is missing after checking all sources.
    """
    fb = yaml_fallbacks or {}

    token = github_token or os.getenv("GITHUB_TOKEN") or fb.get("token")
    if not token:
        raise ValueError(
            "GitHub token not found. Set GITHUB_TOKEN environment variable, "
            "pass --github-token, or add 'github.token' to config.yml."
        )

    name = (
        committer_name
        or os.getenv("GITHUB_NAME")
        or fb.get("committer_name")
    )
    if not name:
        raise ValueError(
            "Committer name not found. Set GITHUB_NAME environment variable "
            "or add 'github.committer_name' to config.yml."
        )

    email = (
        committer_email
        or os.getenv("GITHUB_EMAIL")
        or fb.get("committer_email")
    )
    if not email:
        raise ValueError(
            "Committer email not found. Set GITHUB_EMAIL environment variable "
            "or add 'github.committer_email' to config.yml."
        )

    slack_token = os.getenv("SLACKBOT_TOKEN") or fb.get("slack_token")

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("WP_SYNC_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    max_parallel_raw = os.getenv("WP_SYNC_MAX_PARALLEL_REQUESTS")
    if max_parallel_raw is not None:
        try:
            final_max_parallel = int(max_parallel_raw)
        except ValueError:
            raise ValueError(
                f"Invalid WP_SYNC_MAX_PARALLEL_REQUESTS '{max_parallel_raw}': must be a number between 1 and 50"
            ) from None
        if not (1 <= final_max_parallel <= 50):
            raise ValueError(
                f"Invalid WP_SYNC_MAX_PARALLEL_REQUESTS '{max_parallel_raw}': must be a number between 1 and 50"
            )
    elif "max_parallel_requests" in fb:
        final_max_parallel = int(fb["max_parallel_requests"])
    else:
        final_max_parallel = 5

    config = Config(
        github_token=token.strip(),
        committer_name=name.strip(),
        committer_email=email.strip(),
        slack_token=slack_token.strip() if slack_token else None,
        github_api_url=fb.get("api_url") or "https://api.github.com",
        debug=final_debug,
        max_parallel_requests=final_max_parallel,
    )

    validate_config(config)

    return config
