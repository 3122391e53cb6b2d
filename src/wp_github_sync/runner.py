"""Endpoint processing shared by the CLI and the MCP server.

Selects the endpoints a trigger applies to, syncs them one at a time and
posts Slack summaries.  A timer trigger processes every enabled endpoint;
a webhook trigger passes the caller's user agent as *source* and only
endpoints whose WordPress URL appears in it are processed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import yaml
from dotenv import load_dotenv

from .config import Config, load_config
from .config_loader import load_hierarchical_config
from .config_schema import (
    EndpointConfig,
    UnifiedConfig,
    build_config,
    yaml_fallbacks,
)
from .core.async_utils import RequestLimiter, run_sync
from .core.errors import ConfigError
from .core.github_client import GitHubClient
from .core.slack_client import SlackClient
from .sync.cache import SyncCache
from .sync.engine import SyncEngine
from .sync.models import EndpointReport
from .sync.reporter import slack_commit_reply, slack_headline

logger = logging.getLogger(__name__)


@dataclass
class SyncRuntime:
    """Long-lived objects for one process: clients, limiter and cache."""

    config: Config
    settings: UnifiedConfig
    github: GitHubClient
    slack: SlackClient
    limiter: RequestLimiter
    cache: SyncCache = field(default_factory=SyncCache)

    @property
    def debug(self) -> bool:
        return self.config.debug

    def engine(self) -> SyncEngine:
        return SyncEngine(
            github=self.github,
            cache=self.cache,
            limiter=self.limiter,
            settings=self.settings.sync,
            committer=self.config.committer,
        )


def load_settings(
    overrides: dict[str, Any] | None = None,
) -> tuple[Config, UnifiedConfig]:
    """Resolve credentials and the local config file.

    Precedence: CLI overrides > env vars (``.env`` loaded first) > YAML >
    defaults.

    Raises:
        ConfigError: If the config file or credentials are invalid.
    """
    load_dotenv()
    overrides = overrides or {}
    try:
        unified = build_config(load_hierarchical_config())
        config = load_config(
            github_token=overrides.get("github_token"),
            committer_name=overrides.get("committer_name"),
            committer_email=overrides.get("committer_email"),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks(unified),
        )
    except (ValueError, yaml.YAMLError, OSError) as e:
        raise ConfigError(str(e)) from e
    return config, unified


def build_runtime(config: Config, settings: UnifiedConfig) -> SyncRuntime:
    retries = settings.sync.retry_count
    delay = settings.sync.retry_delay
    return SyncRuntime(
        config=config,
        settings=settings,
        github=GitHubClient(config, retries=retries, delay=delay),
        slack=SlackClient(config.slack_token, retries=retries, delay=delay),
        limiter=RequestLimiter(config.max_parallel_requests),
    )


def select_endpoints(
    endpoints: list[EndpointConfig],
    names: list[str] | None = None,
    source: str | None = None,
    debug: bool = False,
) -> list[EndpointConfig]:
    """Pick the endpoints a trigger should process.

    Args:
        endpoints: All configured endpoints.
        names: Only these endpoint names, when given.
        source: Webhook user agent; keeps endpoints whose WordPress URL
            it contains.
        debug: Use ``enabled_local`` instead of ``enabled``.  Ignored for
            webhook selections, which always go by ``enabled``.
    """
    use_local = debug and source is None
    selected = []
    for endpoint in endpoints:
        enabled = endpoint.enabled_local if use_local else endpoint.enabled
        if not enabled:
            continue
        if names and endpoint.name not in names:
            continue
        if source is not None and endpoint.wordpress_source.url not in source:
            continue
        selected.append(endpoint)
    return selected


async def notify_slack(
    slack: SlackClient, endpoint: EndpointConfig, report: EndpointReport
) -> None:
    """Post a headline and one threaded reply per commit."""
    channel = endpoint.reporting_channel_slack
    if not channel or not report.has_changes:
        return
    post = await run_sync(slack.chat_post, channel, slack_headline(report))
    thread_ts = (post or {}).get("ts")
    if not thread_ts:
        return
    for commit in report.commits:
        await run_sync(
            slack.reply_post, channel, thread_ts, slack_commit_reply(commit)
        )


def webhook_channel(runtime: SyncRuntime) -> str | None:
    slack = runtime.settings.slack
    return slack.webhook_channel or slack.debug_channel


async def announce_webhook(
    runtime: SyncRuntime,
    work: list[EndpointConfig],
    source: str,
    slug: str | None = None,
    event: str | None = None,
) -> str | None:
    """Start the Slack thread for a webhook notification.

    The thread names the matched endpoints, or reports that none matched
    and gets a ``no_entry`` reaction.

    Returns:
        The thread ``ts``, or ``None`` when nothing was posted.
    """
    channel = webhook_channel(runtime)
    if not channel:
        return None
    text = "Notification received - {} - {}".format(
        slug or "(slug)", event or "(Trigger)"
    )
    post = await run_sync(runtime.slack.chat_post, channel, text)
    thread_ts = (post or {}).get("ts")
    if not thread_ts:
        return None

    if work:
        await run_sync(
            runtime.slack.reply_post,
            channel,
            thread_ts,
            f"{len(work)} matching endpoint(s) found "
            f"...{', '.join(ep.name for ep in work)}",
        )
    else:
        await run_sync(
            runtime.slack.reply_post,
            channel,
            thread_ts,
            f"No endpoints found for...{source}",
        )
        await run_sync(
            runtime.slack.reaction_add, channel, thread_ts, "no_entry"
        )
    return thread_ts


async def process_endpoints(
    runtime: SyncRuntime,
    names: list[str] | None = None,
    source: str | None = None,
    trigger: str = "wp-github-sync",
    slug: str | None = None,
    event: str | None = None,
) -> list[EndpointReport]:
    """Sync the selected endpoints strictly one after another.

    With *source* set the call is a webhook notification: it is announced
    on Slack (*slug* and *event* describe what changed in WordPress) and
    the pass starts after ``sync.webhook_settle_seconds``.

    The first error stops processing and propagates.  Outside debug mode
    it is reported to the Slack debug channel first.

    Returns:
        Reports of the endpoints that produced one.
    """
    work = select_endpoints(
        runtime.settings.endpoints, names, source, runtime.debug
    )
    if work:
        logger.info("Using %d endpoint(s)", len(work))
    elif source is not None:
        logger.warning("No endpoints match webhook source %r", source)
    else:
        logger.warning(
            "No endpoints selected. For debug mode set at least one "
            "'enabled_local' to true."
        )

    reports: list[EndpointReport] = []
    try:
        thread_ts = None
        if source is not None:
            thread_ts = await announce_webhook(
                runtime, work, source, slug, event
            )
            if not work:
                return reports
            settle = runtime.settings.sync.webhook_settle_seconds
            if settle:
                logger.info("Waiting %.0fs for WordPress to settle", settle)
                await asyncio.sleep(settle)

        engine = runtime.engine()
        for endpoint in work:
            logger.info("*** Checking endpoint for %s ***", endpoint.name)
            report = await engine.sync_endpoint(endpoint)
            if report is None:
                continue
            reports.append(report)
            await notify_slack(runtime.slack, endpoint, report)

        if thread_ts:
            await run_sync(
                runtime.slack.reply_post,
                webhook_channel(runtime),
                thread_ts,
                "Done.",
            )
    except Exception as e:
        if runtime.debug:
            raise
        logger.exception("Error running %s", trigger)
        channel = runtime.settings.slack.debug_channel
        if channel:
            await run_sync(
                runtime.slack.report_error,
                channel,
                f"Error running {trigger}",
                e,
                {"endpoints": [ep.name for ep in work], "source": source},
            )
        raise
    return reports
