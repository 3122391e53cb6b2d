"""Shared pytest fixtures for wordpress-github-sync tests."""

from __future__ import annotations

import itertools
from unittest.mock import MagicMock

import pytest

from wp_github_sync.config import Config
from wp_github_sync.config_schema import GitHubTarget
from wp_github_sync.core.async_utils import RequestLimiter
from wp_github_sync.core.errors import RemoteAPIError
from wp_github_sync.sync.builder import BuildContext
from wp_github_sync.sync.hashing import predict_blob_sha
from wp_github_sync.sync.models import (
    BlobLookup,
    CommitInfo,
    CompareFile,
    Fingerprint,
    PullRequestInfo,
    TreeEntry,
)


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require live WordPress and GitHub access",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring live remote services"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


SITE_URL = "https://wp.example.com"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeGitHubRepo:
    """In-memory stand-in for ``GitHubRepo``.

    ``files`` maps folder -> list of TreeEntry snapshots (paths relative
    to the folder).  Folders not in ``files`` are listed from ``tree``, the
    branch state (path -> blob SHA) that ``update_ref`` applies committed
    trees to.  Every call is appended to ``calls`` as ``(method, args)``.
    """

    def __init__(self, files=None, blobs=None, compare_files=None):
        self.files: dict[str, list[TreeEntry]] = files or {}
        self.blobs: set[str] = set(blobs or [])
        self.compare_files = compare_files
        self.remote_config: dict | None = None
        self.push = True
        self.calls: list[tuple[str, tuple]] = []
        self.trees: list[list[TreeEntry]] = []
        self.tree: dict[str, str] = {}
        self._tree_parts: dict[str, tuple[str, list[TreeEntry]]] = {}
        self._commit_trees: dict[str, str] = {}
        self._ids = itertools.count(1)

    def _record(self, name, *args):
        self.calls.append((name, args))

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def get_json_file(self, path, ref):
        self._record("get_json_file", path, ref)
        if self.remote_config is None:
            raise RemoteAPIError(404, path)
        return self.remote_config

    def can_push(self):
        self._record("can_push")
        return self.push

    def get_branch_sha(self, branch):
        self._record("get_branch_sha", branch)
        return "base-sha"

    def get_commit_tree_sha(self, commit_sha):
        self._record("get_commit_tree_sha", commit_sha)
        return "base-tree"

    def list_files(self, branch, path):
        self._record("list_files", branch, path)
        if path in self.files:
            return list(self.files[path])
        prefix = f"{path}/" if path else ""
        return [
            TreeEntry(path=p[len(prefix):], sha=sha)
            for p, sha in self.tree.items()
            if p.startswith(prefix) and (path or "/" not in p)
        ]

    def blob_exists(self, sha):
        self._record("blob_exists", sha)
        return BlobLookup.FOUND if sha in self.blobs else BlobLookup.NOT_FOUND

    def create_blob(self, data):
        self._record("create_blob", data)
        sha = predict_blob_sha(data)
        self.blobs.add(sha)
        return sha

    def create_tree(self, entries, base_tree):
        self._record("create_tree", entries, base_tree)
        self.trees.append(list(entries))
        tree_sha = f"tree-{next(self._ids)}"
        self._tree_parts[tree_sha] = (base_tree, list(entries))
        return tree_sha

    def create_commit(self, message, tree, parents, committer):
        self._record("create_commit", message, tree, parents, committer)
        sha = f"commit-{next(self._ids)}"
        self._commit_trees[sha] = tree
        return CommitInfo(
            sha=sha,
            url=f"https://github.com/org/repo/commit/{sha}",
            message=message,
        )

    def compare(self, base, head):
        self._record("compare", base, head)
        if self.compare_files is not None:
            return list(self.compare_files)
        changed = self.trees[-1] if self.trees else []
        return [
            CompareFile(
                filename=e.path,
                status="removed" if e.is_delete else "modified",
            )
            for e in changed
        ]

    def update_ref(self, branch, sha):
        self._record("update_ref", branch, sha)
        chain = []
        tree_sha = self._commit_trees.get(sha)
        while tree_sha in self._tree_parts:
            tree_sha, entries = self._tree_parts[tree_sha]
            chain.append(entries)
        for entries in reversed(chain):
            for entry in entries:
                if entry.is_delete:
                    self.tree.pop(entry.path, None)
                else:
                    self.tree[entry.path] = entry.sha or predict_blob_sha(
                        entry.content
                    )

    def create_ref(self, branch, sha):
        self._record("create_ref", branch, sha)

    def create_pull_request(self, title, head, base):
        self._record("create_pull_request", title, head, base)
        return PullRequestInfo(
            url="https://github.com/org/repo/pull/7", number=7, head_ref=head
        )


class FakeWordPress:
    """In-memory stand-in for ``WordPressClient``."""

    def __init__(self, site_url=SITE_URL, **kwargs):
        self.site_url = site_url
        self.api_url = site_url + "/wp-json/wp/v2/"
        self.kwargs = kwargs
        self.rows: dict[str, list[dict]] = {"posts": [], "pages": [], "media": []}
        self.dictionaries: dict[str, dict[int, str]] = {
            "categories": {},
            "tags": {},
            "users": {},
        }
        self.json_sources: dict[str, object] = {}
        self.binaries: dict[str, bytes] = {}
        self.site_info: dict = {"name": "Example", "url": site_url}
        self.modified = "2024-01-01T00:00:00"
        self.downloads: list[str] = []
        self.paged_calls: list[str] = []

    def get_paged(self, object_type):
        self.paged_calls.append(object_type)
        return [dict(r) for r in self.rows[object_type]]

    def get_fingerprint(self, object_type):
        return Fingerprint(
            kind=object_type,
            modified=self.modified,
            count=len(self.rows.get(object_type, [])),
        )

    def fetch_dictionary(self, name):
        return dict(self.dictionaries[name])

    def get_json(self, source):
        return self.json_sources[source]

    def get_site_info(self, url):
        return dict(self.site_info)

    def download(self, url):
        self.downloads.append(url)
        if url not in self.binaries:
            raise RemoteAPIError(404, url)
        return self.binaries[url]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        github_token="ghp_test",
        committer_name="Sync Bot",
        committer_email="bot@example.com",
    )


@pytest.fixture
def target():
    return GitHubTarget(owner="org", repo="site-content", branch="main")


@pytest.fixture
def build_ctx(target):
    """BuildContext with a small set of lookups."""
    return BuildContext(
        site_url=SITE_URL,
        target=target,
        users={1: "Ada"},
        categories={3: "News"},
        tags={5: "featured", 6: "staging"},
    )


@pytest.fixture
def limiter():
    return RequestLimiter(4)


@pytest.fixture
def fake_repo():
    return FakeGitHubRepo()


@pytest.fixture
def fake_wordpress():
    return FakeWordPress()


@pytest.fixture
def mock_response():
    """Factory fixture for creating requests.Response mocks."""

    def _create_response(
        status_code=200, json_data=None, headers=None, content=b""
    ):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = json_data
        response.headers = headers or {}
        response.content = content
        response.text = "" if json_data is None else str(json_data)
        return response

    return _create_response
