"""Commit/compare/publish engine.

Turns a change set into at most one commit on the target branch:

1. **No-op** -- an empty change set makes no remote calls.
2. **Tree building** -- the change set is chunked and each chunk becomes a
   tree based on the previous one (the first on the branch tip's tree).
3. **Committing** -- one commit whose parent is the branch tip.
4. **Comparing** -- the commit is compared with the tip; if GitHub
   reports no changed files the commit is abandoned.
5. **Publishing** -- either fast-forward the branch (direct mode) or
   create a new branch and open a pull request against the base.
"""

from __future__ import annotations

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from ..core.async_utils import RequestLimiter
from .chunker import DEFAULT_MAX_BYTES, chunk_changes
from .models import CommitReport, TreeEntry

logger = logging.getLogger(__name__)

BRANCH_TIMEZONE = ZoneInfo("America/Los_Angeles")
SHORT_SHA_LENGTH = 7


def pull_request_branch_name(
    title: str, commit_sha: str, now: datetime | None = None
) -> str:
    """``{title}-{HH-MM-SS}-{short sha}``, Pacific time, spaces as underscores.

    Same-titled publishes of different commits never share a branch.
    """
    moment = (now or datetime.now(BRANCH_TIMEZONE)).astimezone(BRANCH_TIMEZONE)
    name = f"{title}-{moment:%H-%M-%S}-{commit_sha[:SHORT_SHA_LENGTH]}"
    return name.replace(" ", "_")


class CommitPublisher:
    """Publishes change sets to one branch of one repository.

    Args:
        repo: GitHub repository client.
        limiter: Shared request limiter.
        branch: Base branch.
        committer: ``{"name": ..., "email": ...}`` for commits.
        commit_only: Fast-forward *branch* directly instead of opening a
            pull request.
        chunk_max_bytes: Upper bound of one tree creation payload.
    """

    def __init__(
        self,
        repo,
        limiter: RequestLimiter,
        branch: str,
        committer: dict[str, str],
        commit_only: bool = True,
        chunk_max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        self.repo = repo
        self.limiter = limiter
        self.branch = branch
        self.committer = committer
        self.commit_only = commit_only
        self.chunk_max_bytes = chunk_max_bytes

    async def publish(
        self, changes: list[TreeEntry], title: str
    ) -> CommitReport | None:
        """Commit *changes* with *title* as the message.

        Returns:
            The commit report, or ``None`` when nothing changed.
        """
        if not changes:
            return None

        parts = chunk_changes(changes, self.chunk_max_bytes)

        base_sha = await self.limiter.run(
            self.repo.get_branch_sha, self.branch
        )
        tree_sha = await self.limiter.run(
            self.repo.get_commit_tree_sha, base_sha
        )

        applied = 0
        for part in parts:
            applied += len(part)
            logger.info(
                "Creating tree for %s - %d/%d items",
                title,
                applied,
                len(changes),
            )
            tree_sha = await self.limiter.run(
                self.repo.create_tree, part, tree_sha
            )

        commit = await self.limiter.run(
            self.repo.create_commit,
            title,
            tree_sha,
            [base_sha],
            self.committer,
        )

        files = await self.limiter.run(self.repo.compare, base_sha, commit.sha)
        if not files:
            logger.info("No changes for %s", title)
            return None
        logger.info("%d changes for %s", len(files), title)

        if self.commit_only:
            await self.limiter.run(self.repo.update_ref, self.branch, commit.sha)
            logger.info("Commit created - %s", commit.url)
            return CommitReport(commit=commit, files=files)

        head = pull_request_branch_name(title, commit.sha)
        await self.limiter.run(self.repo.create_ref, head, commit.sha)
        pull_request = await self.limiter.run(
            self.repo.create_pull_request, title, head, self.branch
        )
        logger.info("PR created - %s", pull_request.url)
        return CommitReport(
            commit=commit, files=files, pull_request=pull_request
        )
