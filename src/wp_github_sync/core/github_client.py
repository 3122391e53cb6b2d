import base64
import json
import logging
import threading
from typing import Any
from urllib.parse import quote

import requests

from ..config import Config
from ..sync.models import (
    BlobLookup,
    CommitInfo,
    CompareFile,
    PullRequestInfo,
    TreeEntry,
)
from .errors import RemoteAPIError
from .retry import DEFAULT_DELAY, DEFAULT_RETRIES, retry_call

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubClient:
    """Authenticated GitHub REST client.

    Sessions are thread-local because calls are dispatched from worker
    threads by the async engine.
    """

    def __init__(
        self,
        config: Config,
        retries: int = DEFAULT_RETRIES,
        delay: float = DEFAULT_DELAY,
    ):
        self.config = config
        self.retries = retries
        self.delay = delay
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.github_token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            }
        )
        return session

    def _send(
        self, method: str, url: str, **kwargs: Any
    ) -> requests.Response:
        response = self._get_session().request(
            method, url, timeout=(10, 60), **kwargs
        )
        if response.status_code >= 400:
            raise RemoteAPIError(response.status_code, url, response.text)
        return response

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send a request to ``{api_url}{path}`` with retries.

        Raises:
            RemoteAPIError: For any status >= 400 once retries are spent.
        """
        url = f"{self.config.github_api_url}{path}"
        logger.debug("GitHub %s %s", method, url)
        return retry_call(
            self._send,
            method,
            url,
            retries=self.retries,
            delay=self.delay,
            **kwargs,
        )

    def repo(self, owner: str, name: str) -> "GitHubRepo":
        return GitHubRepo(self, owner, name)

    def validate_connection(self) -> str:
        """Check the token by fetching the authenticated user.

        Returns:
            The login of the token's user.
        """
        return self.request("GET", "/user").json()["login"]


class GitHubRepo:
    """Git Data API operations on one repository."""

    def __init__(self, client: GitHubClient, owner: str, name: str):
        self.client = client
        self.owner = owner
        self.name = name

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def _path(self, suffix: str) -> str:
        return f"/repos/{self.owner}/{self.name}{quote(suffix, safe='/?=&.')}"

    def _get(self, suffix: str, **kwargs: Any) -> Any:
        return self.client.request("GET", self._path(suffix), **kwargs).json()

    def _post(self, suffix: str, payload: dict) -> Any:
        return self.client.request(
            "POST", self._path(suffix), json=payload
        ).json()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_json_file(self, path: str, ref: str) -> Any:
        """Read and parse a JSON file from *ref*."""
        data = self._get(f"/contents/{path}?ref={ref}")
        raw = base64.b64decode(data.get("content") or "")
        return json.loads(raw.decode("utf-8"))

    def can_push(self) -> bool:
        data = self._get("")
        return bool((data.get("permissions") or {}).get("push"))

    def get_branch_sha(self, branch: str) -> str:
        return self._get(f"/git/ref/heads/{branch}")["object"]["sha"]

    def get_commit_tree_sha(self, commit_sha: str) -> str:
        return self._get(f"/git/commits/{commit_sha}")["tree"]["sha"]

    def list_files(self, branch: str, path: str) -> list[TreeEntry]:
        """List the regular files under *path* on *branch*.

        Paths are relative to *path*.  A folder is listed recursively; the
        repository root (``path == ""``) lists only its top-level files.
        A folder that does not exist yet yields an empty list.
        """
        if path:
            parent = "/".join(path.split("/")[:-1])
            contents = f"/contents/{parent}" if parent else "/contents/"
            try:
                listing = self._get(f"{contents}?ref={branch}")
            except RemoteAPIError as e:
                if e.is_not_found:
                    return []
                raise
            folder = next(
                (
                    item
                    for item in listing
                    if item.get("path") == path and item.get("type") == "dir"
                ),
                None,
            )
            if folder is None:
                return []
            data = self._get(f"/git/trees/{folder['sha']}?recursive=1")
        else:
            data = self._get(f"/git/trees/{branch}")

        if data.get("truncated"):
            logger.warning(
                "Tree listing for %s:%s was truncated by GitHub",
                self.full_name,
                path or "/",
            )

        return [
            TreeEntry(path=item["path"], mode=item["mode"], sha=item["sha"])
            for item in data.get("tree", [])
            if item.get("type") == "blob"
        ]

    def blob_exists(self, sha: str) -> BlobLookup:
        try:
            self.client.request("HEAD", self._path(f"/git/blobs/{sha}"))
        except RemoteAPIError as e:
            if e.is_not_found:
                return BlobLookup.NOT_FOUND
            raise
        return BlobLookup.FOUND

    def compare(self, base: str, head: str) -> list[CompareFile]:
        data = self._get(f"/compare/{base}...{head}")
        return [
            CompareFile(filename=f["filename"], status=f["status"])
            for f in data.get("files", [])
        ]

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def create_blob(self, data: bytes) -> str:
        result = self._post(
            "/git/blobs",
            {
                "content": base64.b64encode(data).decode("ascii"),
                "encoding": "base64",
            },
        )
        return result["sha"]

    def create_tree(self, entries: list[TreeEntry], base_tree: str) -> str:
        result = self._post(
            "/git/trees",
            {"tree": [e.to_api() for e in entries], "base_tree": base_tree},
        )
        return result["sha"]

    def create_commit(
        self,
        message: str,
        tree: str,
        parents: list[str],
        committer: dict[str, str],
    ) -> CommitInfo:
        result = self._post(
            "/git/commits",
            {
                "message": message,
                "tree": tree,
                "parents": parents,
                "author": committer,
                "committer": committer,
            },
        )
        return CommitInfo(
            sha=result["sha"],
            url=result.get("html_url") or result.get("url", ""),
            message=result.get("message", message),
        )

    def update_ref(self, branch: str, sha: str) -> None:
        """Fast-forward *branch* to *sha* (never forced)."""
        self.client.request(
            "PATCH",
            self._path(f"/git/refs/heads/{branch}"),
            json={"sha": sha, "force": False},
        )

    def create_ref(self, branch: str, sha: str) -> None:
        self._post("/git/refs", {"ref": f"refs/heads/{branch}", "sha": sha})

    def create_pull_request(
        self, title: str, head: str, base: str
    ) -> PullRequestInfo:
        result = self._post(
            "/pulls", {"title": title, "head": head, "base": base}
        )
        return PullRequestInfo(
            url=result["html_url"],
            number=result["number"],
            head_ref=result.get("head", {}).get("ref", head),
        )
