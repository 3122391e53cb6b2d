"""Sync report formatting functions.

- ``format_endpoint_report`` -- human-readable summary for the CLI.
- ``slack_headline`` / ``slack_commit_reply`` -- Slack notification text.
- ``report_to_json`` -- structured dict for ``--json`` and MCP output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CommitReport, EndpointReport

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_endpoint_report(report: EndpointReport) -> str:
    """Format an endpoint report as multi-line text."""
    lines = [f"Sync report for '{report.endpoint_name}'"]
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    if not report.commits:
        lines.append("No changes.")
        return "\n".join(lines)

    lines.append(
        f"{len(report.commits)} commit(s), {report.file_count} file(s) changed"
    )
    lines.append("")
    for commit in report.commits:
        lines.append(f"{commit.commit.message}")
        lines.append(f"  {commit.commit.url}")
        if commit.pull_request:
            lines.append(f"  PR #{commit.pull_request.number}: {commit.pull_request.url}")
        for f in commit.files:
            lines.append(f"  {f.status:<9} {f.filename}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Slack
# ------------------------------------------------------------------


def slack_headline(report: EndpointReport) -> str:
    return f"{report.endpoint_name} - _{', '.join(report.changed_names())}_"


def slack_commit_reply(commit: CommitReport) -> str:
    """Link to the commit followed by one bullet per changed file name."""
    lines = [f"<{commit.commit.url}|{commit.commit.message}>"]
    lines.extend(
        f"• {f.status} - _{f.filename.split('/')[-1]}_" for f in commit.files
    )
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: EndpointReport) -> dict:
    """Convert an endpoint report to a dict for JSON serialisation."""
    commits = []
    for c in report.commits:
        entry: dict = {
            "sha": c.commit.sha,
            "url": c.commit.url,
            "message": c.commit.message,
            "files": [f.model_dump() for f in c.files],
        }
        if c.pull_request:
            entry["pull_request"] = c.pull_request.model_dump()
        commits.append(entry)

    return {
        "endpoint_name": report.endpoint_name,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "commits": len(report.commits),
            "files": report.file_count,
        },
        "commits": commits,
    }
