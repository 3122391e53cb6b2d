"""Tree differ.

Compares a ``DesiredStateMap`` with the files currently in the target
folder and produces the minimal list of tree entries to send:

- a desired value whose predicted blob SHA equals the existing file's SHA
  is skipped;
- a ``None`` (tombstone) deletes the file if it exists, and is otherwise a
  no-op;
- a ``BINARY_PLACEHOLDER`` is passed through as a pending placeholder for
  the binary reconciler;
- with ``prune=True``, existing files the desired state does not mention
  are deleted.

Paths are compared exactly (case-sensitive).
"""

from __future__ import annotations

import logging

from ..core.async_utils import RequestLimiter
from .hashing import predict_blob_sha, serialize_content
from .models import BINARY_PLACEHOLDER, DesiredStateMap, TreeEntry

logger = logging.getLogger(__name__)


def join_path(output_path: str, key: str) -> str:
    return f"{output_path}/{key}" if output_path else key


def compute_changes(
    desired: DesiredStateMap,
    snapshot: list[TreeEntry],
    output_path: str,
    prune: bool = True,
) -> list[TreeEntry]:
    """Return the tree entries needed to turn *snapshot* into *desired*.

    Args:
        desired: Relative path -> content, tombstone or placeholder.
        snapshot: Existing files, with paths relative to *output_path*.
        output_path: Folder the desired paths live under (``""`` for root).
        prune: Delete existing files not referenced by *desired*.

    Returns:
        Entries with repository-relative paths: desired-order
        creates/updates/deletes/placeholders, followed by prune deletes in
        snapshot order.
    """
    existing = {entry.path: entry.sha for entry in snapshot}
    referenced: set[str] = set()
    changes: list[TreeEntry] = []

    for key, value in desired.items():
        referenced.add(key)
        path = join_path(output_path, key)

        if value is None:
            if key in existing:
                changes.append(TreeEntry(path=path))
            continue

        if value is BINARY_PLACEHOLDER:
            changes.append(TreeEntry(path=path, placeholder=True))
            continue

        content = serialize_content(value)
        if existing.get(key) == predict_blob_sha(content):
            continue
        changes.append(TreeEntry(path=path, content=content))

    if prune:
        for entry in snapshot:
            if entry.path not in referenced:
                changes.append(
                    TreeEntry(path=join_path(output_path, entry.path))
                )

    return changes


class TreeDiffer:
    """Fetches the remote snapshot of a folder and diffs against it.

    Args:
        repo: GitHub repository client (``list_files``).
        limiter: Shared request limiter.
        branch: Branch whose tip is read.
    """

    def __init__(self, repo, limiter: RequestLimiter, branch: str) -> None:
        self._repo = repo
        self._limiter = limiter
        self._branch = branch

    async def diff(
        self,
        desired: DesiredStateMap,
        output_path: str,
        prune: bool = True,
    ) -> list[TreeEntry]:
        snapshot = await self._limiter.run(
            self._repo.list_files, self._branch, output_path
        )
        changes = compute_changes(desired, snapshot, output_path, prune)
        logger.info(
            "Diffed %d desired file(s) against %d existing under '%s': "
            "%d change(s)",
            len(desired),
            len(snapshot),
            output_path or "/",
            len(changes),
        )
        return changes
