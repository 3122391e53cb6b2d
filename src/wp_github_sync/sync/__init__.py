"""WordPress to GitHub tree sync.

Architecture
------------
Each pass builds the *desired state* of every mirrored folder from the
WordPress API, diffs it against the files on the target branch using
predicted Git blob SHAs, and commits only what differs.  Binary media are
carried as placeholders and only downloaded when their metadata changed.

Modules:

- ``engine``     -- ``SyncEngine``: one pass for one endpoint.
- ``builder``    -- desired-state maps for posts, pages, media, API mirrors.
- ``differ``     -- ``compute_changes`` / ``TreeDiffer``.
- ``chunker``    -- splits change sets under the tree payload limit.
- ``publisher``  -- ``CommitPublisher``: tree, commit, compare, ref or PR.
- ``reconciler`` -- ``BinaryReconciler``: resolves media placeholders.
- ``cache``      -- ``SyncCache``: upstream fingerprint cache.
- ``hashing``    -- Git blob SHA prediction and stable serialization.
- ``models`` / ``rows`` -- data contracts.
- ``reporter``   -- text, Slack and JSON report formatting.

The engine is imported from ``wp_github_sync.sync.engine`` directly.
"""

from .cache import SyncCache
from .hashing import predict_blob_sha, serialize_content
from .models import (
    BINARY_PLACEHOLDER,
    BlobLookup,
    CommitInfo,
    CommitReport,
    CompareFile,
    EndpointReport,
    Fingerprint,
    PullRequestInfo,
    TreeEntry,
)
from .reporter import (
    format_endpoint_report,
    report_to_json,
    slack_commit_reply,
    slack_headline,
)

__all__ = [
    "BINARY_PLACEHOLDER",
    "BlobLookup",
    "CommitInfo",
    "CommitReport",
    "CompareFile",
    "EndpointReport",
    "Fingerprint",
    "PullRequestInfo",
    "SyncCache",
    "TreeEntry",
    "format_endpoint_report",
    "predict_blob_sha",
    "report_to_json",
    "serialize_content",
    "slack_commit_reply",
    "slack_headline",
]
