"""Pydantic models for the tree-sync engine.

Defines the data contracts shared by the differ, chunker, reconciler and
publisher:

- ``TreeEntry``: one file node of a Git tree (existing or pending).
- ``BINARY_PLACEHOLDER``: desired-state marker for a media binary.
- ``BlobLookup``: result of a blob existence check.
- ``Fingerprint``: cheap "has anything changed upstream" marker.
- ``CommitInfo``, ``CompareFile``, ``PullRequestInfo``, ``CommitReport``:
  outcome of publishing one content class.
- ``EndpointReport``: aggregate of all commit reports for one endpoint.

All models are frozen (immutable); the reconciler returns new entries
instead of patching them in place.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

FILE_MODE = "100644"
BLOB_TYPE = "blob"


class BinaryPlaceholder:
    """Desired-state marker for a binary file that must be kept.

    The bytes are not known when the desired state is built; the binary
    reconciler resolves the placeholder to a blob SHA when the referencing
    metadata changed, and leftover placeholders are dropped.
    """

    _instance: BinaryPlaceholder | None = None

    def __new__(cls) -> BinaryPlaceholder:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "BINARY_PLACEHOLDER"


BINARY_PLACEHOLDER = BinaryPlaceholder()

# Relative path -> str | JSON-serializable object | None (tombstone)
# | BINARY_PLACEHOLDER.  Insertion order is preserved.
DesiredStateMap = dict[str, Any]


class TreeEntry(BaseModel):
    """A regular-file node of a Git tree.

    As part of a remote snapshot, ``sha`` is set.  As part of a change set:

    * create/update -- ``content`` set, ``sha`` unset;
    * binary reference -- ``sha`` set, ``content`` unset;
    * delete -- neither set;
    * placeholder -- ``placeholder`` is True, awaiting the reconciler.

    Attributes:
        path: Slash-separated path relative to the repository root (or to
            the listed folder for snapshots).
        mode: Always ``100644``.
        type: Always ``blob``.
        content: Text content to write.
        sha: Blob SHA.
        placeholder: True for an unresolved binary placeholder.
    """

    path: str
    mode: str = FILE_MODE
    type: str = BLOB_TYPE
    content: str | None = None
    sha: str | None = None
    placeholder: bool = False

    model_config = {"frozen": True}

    @property
    def is_delete(self) -> bool:
        return (
            self.content is None
            and self.sha is None
            and not self.placeholder
        )

    def to_api(self) -> dict[str, Any]:
        """Return the Git Data API ``tree`` item for this entry.

        A delete is expressed as ``"sha": null``.
        """
        if self.placeholder:
            raise ValueError(
                f"Unresolved binary placeholder cannot be sent: {self.path}"
            )
        item: dict[str, Any] = {
            "path": self.path,
            "mode": self.mode,
            "type": self.type,
        }
        if self.content is not None:
            item["content"] = self.content
        else:
            item["sha"] = self.sha
        return item


class BlobLookup(str, Enum):
    """Outcome of checking whether a blob exists in the repository."""

    FOUND = "found"
    NOT_FOUND = "not_found"


class Fingerprint(BaseModel):
    """Upstream change marker for one content class.

    Attributes:
        kind: Content class key (``posts``, ``apiResponse:<dest>`` ...).
        modified: Most recent ``modified`` timestamp, for WordPress types.
        count: Total row count, for WordPress types.
        digest: Content hash, for API mirrors.
    """

    kind: str
    modified: str | None = None
    count: int = 0
    digest: str | None = None

    model_config = {"frozen": True}


class CommitInfo(BaseModel):
    sha: str
    url: str
    message: str

    model_config = {"frozen": True}


class CompareFile(BaseModel):
    filename: str
    status: str

    model_config = {"frozen": True}


class PullRequestInfo(BaseModel):
    url: str
    number: int
    head_ref: str

    model_config = {"frozen": True}


class CommitReport(BaseModel):
    """Result of publishing one content class.

    Attributes:
        commit: The created commit.
        files: Files changed relative to the base branch tip.
        pull_request: Set when the commit was proposed as a pull request.
    """

    commit: CommitInfo
    files: list[CompareFile] = []
    pull_request: PullRequestInfo | None = None

    model_config = {"frozen": True}


class EndpointReport(BaseModel):
    """Aggregate result of one endpoint sync pass.

    Attributes:
        endpoint_name: Name of the endpoint from the local config.
        commits: One report per content class that changed.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass completed.
    """

    endpoint_name: str
    commits: list[CommitReport] = Field(default_factory=list)
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def has_changes(self) -> bool:
        return bool(self.commits)

    @property
    def file_count(self) -> int:
        return sum(len(c.files) for c in self.commits)

    def changed_names(self) -> list[str]:
        """Unique file stems touched by all commits, in first-seen order."""
        names: dict[str, None] = {}
        for commit in self.commits:
            for f in commit.files:
                names[f.filename.split("/")[-1].split(".")[0]] = None
        return list(names)
