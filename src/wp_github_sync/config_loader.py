"""
Config file discovery and loading for wp_github_sync.

The local config is YAML.  Values may reference the environment with
``${VAR}`` / ``${VAR:-default}``, and the endpoint list can be kept in a
separate file, either YAML or an ``endpoints.json`` registry::

    # .wp_github_sync/config.yml
    endpoints: !include endpoints.json

Usage:
    from wp_github_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "WP_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".wp_github_sync"

# Relative to CWD, then HOME; first match wins after WP_SYNC_CONFIG.
_SEARCH_PATHS = (
    ("cwd", Path(PROJECT_CONFIG_DIR, "config.yml")),
    ("cwd", Path(PROJECT_CONFIG_DIR, "config.yaml")),
    ("home", Path(".config", "wp_github_sync", "config.yml")),
)

_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` with environment values.

    An unset or empty VAR yields *default* when given, else ``""``.
    A ``${`` without a closing brace is left as is.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m.group(1)) or m.group(2) or "", value
    )


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with ``!include``; the global SafeLoader stays untouched.

    ``chain`` holds the files being loaded, outermost first.
    """

    def __init__(self, stream, chain: tuple[Path, ...]):
        super().__init__(stream)
        self.chain = chain

    def include(self, node: yaml.ScalarNode) -> Any:
        current = self.chain[-1]
        target = (current.parent / self.construct_scalar(node)).resolve()
        if target in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, target))
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.exists():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {current})"
            )
        return _load_yaml_with_includes(target, chain=self.chain)


ConfigLoader.add_constructor("!include", ConfigLoader.include)


def _load_yaml_with_includes(
    path: Path, *, chain: tuple[Path, ...] = ()
) -> Any:
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh, (*chain, path))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    ``WP_SYNC_CONFIG`` (an explicit path) comes first, then
    ``.wp_github_sync/config.yml`` and ``config.yaml`` in CWD, then
    ``~/.config/wp_github_sync/config.yml``.
    """
    roots = {"cwd": Path.cwd(), "home": Path.home()}
    candidates = [roots[root] / rel for root, rel in _SEARCH_PATHS]

    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.insert(0, Path(explicit).expanduser().resolve())

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# wordpress-github-sync configuration
#
# Credentials can also be set via environment variables (or a .env file):
#   GITHUB_TOKEN, GITHUB_NAME, GITHUB_EMAIL, SLACKBOT_TOKEN
#
# github:
#   token: ${GITHUB_TOKEN}
#   committer_name: WordPress Sync Bot
#   committer_email: sync-bot@example.com
#
# slack:
#   debug_channel: C0123456789
#   webhook_channel: C0123456789
#
# sync:
#   max_parallel_requests: 5
#   webhook_settle_seconds: 10
#   retry_count: 3
#   retry_delay: 2.0
#
# endpoints:
#   - name: example-site
#     enabled: true
#     enabled_local: false
#     commit_only: true
#     reporting_channel_slack: C0123456789
#     wordpress_source:
#       url: https://wordpress.example.com
#       tags_exclude: [staging]
#     github_target:
#       owner: example-org
#       repo: example-site-content
#       branch: main
#       config_path: wordpress-to-github.config.json
#
# or keep the endpoint list in its own file:
# endpoints: !include endpoints.json
#
# Logging is set with LOG_LEVEL / LOG_FILE or --debug / --log-file.
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter file if none exists.

    Args:
        target: Explicit path to create.  Defaults to
            ``CWD / .wp_github_sync / config.yml``.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Using existing config %s", existing[0])
        return existing[0]

    config_path = target or Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Wrote starter config %s", config_path)
    return config_path


def load_hierarchical_config() -> dict[str, Any]:
    """Load every discovered config file into one dict.

    A section (top-level key) from a higher-precedence file replaces the
    whole section from a lower one.  ``${VAR}`` references are expanded
    once all files are merged.  No config files means ``{}``.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Loading config %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: top level is %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged.update(data)

    return _interpolate_recursive(merged)
