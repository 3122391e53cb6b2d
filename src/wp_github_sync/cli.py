"""Command line entry point.

Subcommands:
    run     Sync the enabled endpoints once (timer or webhook trigger).
    watch   Sync repeatedly on a fixed interval.
    status  Show the configured endpoints and check GitHub access.
    init    Write a starter config file.
"""

import argparse
import asyncio
import json
import logging
import sys

import requests

from . import __version__
from .config_loader import discover_config_files, ensure_config
from .core.async_utils import run_sync
from .core.errors import SyncError
from .logger import setup_logging
from .runner import (
    SyncRuntime,
    build_runtime,
    load_settings,
    process_endpoints,
    select_endpoints,
)
from .sync.reporter import format_endpoint_report, report_to_json

logger = logging.getLogger(__name__)


def _runtime(args: argparse.Namespace) -> SyncRuntime:
    overrides = {"debug": args.debug}
    if args.github_token:
        overrides["github_token"] = args.github_token
    config, unified = load_settings(overrides)
    return build_runtime(config, unified)


async def _cmd_run(args: argparse.Namespace) -> int:
    runtime = _runtime(args)
    reports = await process_endpoints(
        runtime,
        names=args.endpoint,
        source=args.source,
        trigger="run",
        slug=args.slug,
        event=args.event,
    )
    if args.json:
        print(json.dumps([report_to_json(r) for r in reports], indent=2))
    elif reports:
        print("\n\n".join(format_endpoint_report(r) for r in reports))
    else:
        print("No changes.")
    return 0


async def _cmd_watch(args: argparse.Namespace) -> int:
    runtime = _runtime(args)
    logger.info("Watching endpoints every %ds", args.interval)
    while True:
        try:
            reports = await process_endpoints(
                runtime, names=args.endpoint, trigger="watch"
            )
            for report in reports:
                logger.info(
                    "%s: %d commit(s)",
                    report.endpoint_name,
                    len(report.commits),
                )
        except (SyncError, requests.RequestException) as e:
            # the next tick retries
            logger.error("Sync pass failed: %s", e)
        await asyncio.sleep(args.interval)


async def _cmd_status(args: argparse.Namespace) -> int:
    runtime = _runtime(args)
    files = discover_config_files()
    print(f"Config file: {files[0] if files else '(none)'}")
    print(f"Debug mode: {runtime.debug}")
    print(f"Slack notifications: {'on' if runtime.slack.enabled else 'off'}")

    login = await run_sync(runtime.github.validate_connection)
    print(f"GitHub user: {login}")

    selected = {
        e.name
        for e in select_endpoints(
            runtime.settings.endpoints, debug=runtime.debug
        )
    }
    print(f"Endpoints ({len(selected)} of {len(runtime.settings.endpoints)} active):")
    for endpoint in runtime.settings.endpoints:
        marker = "*" if endpoint.name in selected else " "
        target = endpoint.github_target
        print(
            f"  {marker} {endpoint.name}: {endpoint.wordpress_source.url} -> "
            f"{target.full_name}@{target.branch}"
        )
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    path = ensure_config()
    print(f"Config file: {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wp-github-sync",
        description="Mirror WordPress content into GitHub repositories",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"wp-github-sync version {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Debug logging; process endpoints flagged enabled_local",
    )
    parser.add_argument(
        "--github-token",
        help="Override GitHub token (prefer the GITHUB_TOKEN env var)",
    )
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format (default: text)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Sync endpoints once")
    run_p.add_argument(
        "--endpoint",
        action="append",
        metavar="NAME",
        help="Only sync this endpoint (repeatable)",
    )
    run_p.add_argument(
        "--source",
        metavar="AGENT",
        help="Webhook user agent; selects endpoints whose site URL it contains",
    )
    run_p.add_argument(
        "--slug", help="Slug of the changed WordPress object (with --source)"
    )
    run_p.add_argument(
        "--event", help="WordPress event behind the webhook (with --source)"
    )
    run_p.add_argument(
        "--json", action="store_true", help="Print reports as JSON"
    )

    watch_p = sub.add_parser("watch", help="Sync on a fixed interval")
    watch_p.add_argument(
        "--interval",
        type=int,
        default=300,
        help="Seconds between passes (default: 300)",
    )
    watch_p.add_argument("--endpoint", action="append", metavar="NAME")

    sub.add_parser("status", help="Show configuration and GitHub access")
    sub.add_parser("init", help="Write a starter config file")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )

    try:
        if args.command == "init":
            return _cmd_init(args)
        handler = {
            "run": _cmd_run,
            "watch": _cmd_watch,
            "status": _cmd_status,
        }[args.command]
        return asyncio.run(handler(args))
    except (SyncError, requests.RequestException) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
