"""Binary reconciler.

Media binaries are represented in the desired state by placeholders,
because downloading every image on every pass would be far too slow.
When an asset's metadata JSON is part of a change set, its binaries are
downloaded, addressed, uploaded if GitHub does not have them yet, and the
matching placeholders are swapped for blob SHAs.  All other placeholders
are dropped, which leaves those files untouched in the commit.
"""

from __future__ import annotations

import json
import logging

import requests

from ..core.async_utils import RequestLimiter
from ..core.errors import BinarySyncError, RemoteAPIError
from .builder import path_from_media_source_url
from .differ import join_path
from .hashing import predict_blob_sha
from .models import BlobLookup, TreeEntry

logger = logging.getLogger(__name__)


def referenced_binary_urls(changes: list[TreeEntry]) -> list[str]:
    """WordPress URLs of every binary behind the changed media JSON files.

    Size variants come first, then the original upload; duplicates are
    dropped.
    """
    urls: dict[str, None] = {}
    for entry in changes:
        if entry.content is None or not entry.path.endswith(".json"):
            continue
        try:
            asset = json.loads(entry.content).get("data") or {}
        except (ValueError, AttributeError):
            continue
        for size in asset.get("sizes") or []:
            if size.get("wordpress_url"):
                urls[size["wordpress_url"]] = None
        if asset.get("wordpress_url"):
            urls[asset["wordpress_url"]] = None
        else:
            logger.debug("No wordpress_url in %s", entry.path)
    return list(urls)


class BinaryReconciler:
    """Resolves binary placeholders for changed media.

    Args:
        repo: GitHub repository client (``blob_exists``, ``create_blob``).
        wordpress: WordPress client (``download``).
        limiter: Shared request limiter bounding downloads and uploads.
    """

    def __init__(self, repo, wordpress, limiter: RequestLimiter) -> None:
        self.repo = repo
        self.wordpress = wordpress
        self.limiter = limiter

    async def _sync_binary(self, url: str) -> str:
        try:
            data = await self.limiter.run(self.wordpress.download, url)
        except (RemoteAPIError, requests.RequestException) as e:
            raise BinarySyncError(url, str(e)) from e

        sha = predict_blob_sha(data)
        lookup = await self.limiter.run(self.repo.blob_exists, sha)
        if lookup is BlobLookup.NOT_FOUND:
            logger.debug("Uploading %d bytes for %s", len(data), url)
            sha = await self.limiter.run(self.repo.create_blob, data)
        return sha

    async def reconcile(
        self, changes: list[TreeEntry], media_path: str
    ) -> list[TreeEntry]:
        """Return a new change list with placeholders resolved or removed.

        Raises:
            BinarySyncError: If a referenced binary has no placeholder in
                *changes* or cannot be downloaded.
        """
        placeholders = {e.path for e in changes if e.placeholder}

        targets: dict[str, str] = {}
        for url in referenced_binary_urls(changes):
            path = join_path(media_path, path_from_media_source_url(url))
            if path not in placeholders:
                raise BinarySyncError(
                    url, f"no pending placeholder for {path}"
                )
            targets[url] = path

        if targets:
            logger.info("Syncing %d media binaries", len(targets))
        shas = await self.limiter.gather(
            [self._sync_binary(url) for url in targets]
        )
        resolved = dict(zip(targets.values(), shas))

        result: list[TreeEntry] = []
        for entry in changes:
            if not entry.placeholder:
                result.append(entry)
            elif entry.path in resolved:
                result.append(
                    TreeEntry(
                        path=entry.path,
                        mode=entry.mode,
                        sha=resolved[entry.path],
                    )
                )
        return result
