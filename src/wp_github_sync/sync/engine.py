"""Endpoint sync orchestration.

``SyncEngine.sync_endpoint`` runs one pass for one endpoint:

1. Read the repository's endpoint config; stop if it is disabled.
2. Fetch the configured API mirror responses.
3. Compare upstream fingerprints with the cache; stop if none changed.
4. Check push permission on the target repository.
5. Fetch the category/tag/user lookups and the media/post/page rows.
6. Publish, in order: general file, media, posts, pages, API mirrors.
   Each class is diffed against the branch tip and committed on its own.

Any failure drops the endpoint's cached fingerprints, so the next pass
does the work again, and then propagates to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError

from ..config_schema import EndpointConfig, RemoteEndpointConfig, SyncSettings
from ..core.async_utils import RequestLimiter
from ..core.errors import ConfigError, PermissionDeniedError
from ..core.github_client import GitHubClient, GitHubRepo
from ..core.wordpress_client import WordPressClient
from .builder import (
    BuildContext,
    build_api_request_maps,
    build_general_file_map,
    build_media_map,
    build_page_map,
    build_post_map,
    general_file_url,
    remove_excluded_properties,
)
from .cache import CacheRoot, SyncCache
from .differ import TreeDiffer
from .hashing import content_digest
from .models import CommitReport, EndpointReport, Fingerprint
from .publisher import CommitPublisher
from .reconciler import BinaryReconciler
from .rows import ApiRequestResult, MediaRow, PageRow, PostRow, parse_rows

logger = logging.getLogger(__name__)

TITLE_POSTS = "Wordpress Posts Update"
TITLE_PAGES = "Wordpress Pages Update"
TITLE_MEDIA = "Wordpress Media Update"
TITLE_API_REQUESTS = "Wordpress API Requests Update"
TITLE_GENERAL = "Wordpress General File Update"

FINGERPRINT_TYPES = ("media", "posts", "pages")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def api_requests_title(update_count: int, folder: str) -> str:
    label = folder.split("/")[-1] or "root"
    noun = "update" if update_count == 1 else "updates"
    return f"{TITLE_API_REQUESTS} ({update_count} {noun} to {label})"


class SyncEngine:
    """Mirror WordPress endpoints into GitHub.

    Args:
        github: Authenticated GitHub client.
        cache: Fingerprint cache shared across passes.
        limiter: Request limiter shared by every remote call.
        settings: Engine tuning (chunk size, retries).
        committer: ``{"name": ..., "email": ...}`` used on commits.
        wordpress_factory: Builds a WordPress client for a site URL.
    """

    def __init__(
        self,
        github: GitHubClient,
        cache: SyncCache,
        limiter: RequestLimiter,
        settings: SyncSettings,
        committer: dict[str, str],
        wordpress_factory: Callable[..., WordPressClient] = WordPressClient,
    ) -> None:
        self.github = github
        self.cache = cache
        self.limiter = limiter
        self.settings = settings
        self.committer = committer
        self.wordpress_factory = wordpress_factory

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def sync_endpoint(
        self, endpoint: EndpointConfig
    ) -> EndpointReport | None:
        """Run one sync pass for *endpoint*.

        Returns:
            The report of the commits made, or ``None`` when the remote
            config is disabled or nothing changed upstream.

        Raises:
            PermissionDeniedError: The token cannot push to the target.
            SyncError: Any other failure; cached fingerprints of the
                endpoint are dropped first.
        """
        started_at = _now()
        target = endpoint.github_target
        repo = self.github.repo(target.owner, target.repo)
        wordpress = self.wordpress_factory(
            endpoint.wordpress_source.url,
            retries=self.settings.retry_count,
            delay=self.settings.retry_delay,
        )
        cache_root: CacheRoot = (
            target.owner,
            target.repo,
            target.branch,
            wordpress.api_url,
        )

        try:
            commits = await self._sync(endpoint, repo, wordpress, cache_root)
        except Exception:
            dropped = self.cache.invalidate(cache_root)
            logger.debug(
                "Dropped %d cached fingerprints for %s", dropped, endpoint.name
            )
            raise

        if commits is None:
            return None
        return EndpointReport(
            endpoint_name=endpoint.name,
            commits=commits,
            started_at=started_at,
            completed_at=_now(),
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def load_remote_config(
        self, repo: GitHubRepo, endpoint: EndpointConfig
    ) -> RemoteEndpointConfig:
        target = endpoint.github_target
        raw = await self.limiter.run(
            repo.get_json_file, target.config_path, target.branch
        )
        data = raw.get("data") if isinstance(raw, dict) else None
        if not isinstance(data, dict):
            raise ConfigError(
                f"{target.full_name}:{target.config_path} has no 'data' object"
            )
        try:
            return RemoteEndpointConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(
                f"Invalid endpoint config in {target.full_name}: {e}"
            ) from e

    async def _fetch_api_request(
        self, wordpress: WordPressClient, request
    ) -> ApiRequestResult:
        data: Any = await self.limiter.run(wordpress.get_json, request.source)
        if isinstance(data, dict):
            remove_excluded_properties(data, request.exclude_properties)
        elif isinstance(data, list):
            for item in data:
                if isinstance(item, dict):
                    remove_excluded_properties(item, request.exclude_properties)
        return ApiRequestResult(
            destination=request.destination,
            data=data,
            digest=content_digest(data),
        )

    async def _fingerprints_unchanged(
        self,
        wordpress: WordPressClient,
        cache_root: CacheRoot,
        api_results: list[ApiRequestResult],
    ) -> bool:
        fingerprints = await self.limiter.gather(
            [
                self.limiter.run(wordpress.get_fingerprint, kind)
                for kind in FINGERPRINT_TYPES
            ]
        )
        fingerprints += [
            Fingerprint(
                kind=f"apiResponse:{result.destination}",
                digest=result.digest,
            )
            for result in api_results
        ]
        # every key is updated, no short-circuit
        matches = [
            self.cache.check_and_update((*cache_root, fp.kind), fp)
            for fp in fingerprints
        ]
        return all(matches)

    async def _sync(
        self,
        endpoint: EndpointConfig,
        repo: GitHubRepo,
        wordpress: WordPressClient,
        cache_root: CacheRoot,
    ) -> list[CommitReport] | None:
        target = endpoint.github_target
        remote = await self.load_remote_config(repo, endpoint)
        if remote.disabled:
            logger.info("Remote config is disabled for %s", endpoint.name)
            return None

        api_results = await self.limiter.gather(
            [
                self._fetch_api_request(wordpress, request)
                for request in remote.api_requests
            ]
        )

        if await self._fingerprints_unchanged(
            wordpress, cache_root, api_results
        ):
            logger.info("Cache match for %s, nothing to do", endpoint.name)
            return None

        if not await self.limiter.run(repo.can_push):
            raise PermissionDeniedError(target.full_name)

        names = ["categories", "tags"]
        if not remote.hide_author_name:
            names.append("users")
        lookups = dict(
            zip(
                names,
                await self.limiter.gather(
                    [
                        self.limiter.run(wordpress.fetch_dictionary, n)
                        for n in names
                    ]
                ),
            )
        )

        ctx = BuildContext(
            site_url=wordpress.site_url,
            target=target,
            exclude_properties=list(remote.exclude_properties),
            tags_exclude=list(endpoint.wordpress_source.tags_exclude),
            users=lookups.get("users"),
            categories=lookups["categories"],
            tags=lookups["tags"],
        )

        media_rows = await self._rows(wordpress, "media", MediaRow, remote.media_path)
        post_rows = await self._rows(wordpress, "posts", PostRow, remote.post_path)
        page_rows = await self._rows(wordpress, "pages", PageRow, remote.page_path)

        differ = TreeDiffer(repo, self.limiter, target.branch)
        publisher = CommitPublisher(
            repo,
            self.limiter,
            target.branch,
            self.committer,
            commit_only=endpoint.commit_only,
            chunk_max_bytes=self.settings.chunk_max_bytes,
        )
        commits: list[CommitReport] = []

        async def publish(changes, title: str) -> None:
            report = await publisher.publish(changes, title)
            if report is not None:
                commits.append(report)

        if remote.general_file_path:
            site_info = await self.limiter.run(
                wordpress.get_site_info, general_file_url(wordpress.site_url)
            )
            folder, desired = build_general_file_map(
                site_info, ctx, remote.general_file_path
            )
            changes = await differ.diff(desired, folder, prune=False)
            await publish(changes, TITLE_GENERAL)

        media_map = None
        if remote.media_path and media_rows is not None:
            media_map = build_media_map(media_rows, ctx)
            changes = await differ.diff(media_map, remote.media_path)
            reconciler = BinaryReconciler(repo, wordpress, self.limiter)
            changes = await reconciler.reconcile(changes, remote.media_path)
            await publish(changes, f"{TITLE_MEDIA} ({len(changes)} updates)")

        for path, rows, build, title in (
            (remote.post_path, post_rows, build_post_map, TITLE_POSTS),
            (remote.page_path, page_rows, build_page_map, TITLE_PAGES),
        ):
            if not path or rows is None:
                continue
            desired = build(rows, ctx, media_map)
            changes = await differ.diff(desired, path)
            html_count = sum(1 for c in changes if c.path.endswith(".html"))
            await publish(changes, f"{title} ({html_count} updates)")

        for folder, desired in build_api_request_maps(api_results).items():
            changes = await differ.diff(desired, folder, prune=False)
            await publish(changes, api_requests_title(len(changes), folder))

        logger.info(
            "Endpoint %s synced: %d commit(s)", endpoint.name, len(commits)
        )
        return commits

    async def _rows(self, wordpress: WordPressClient, kind: str, model, path):
        if not path:
            return None
        raw = await self.limiter.run(wordpress.get_paged, kind)
        return parse_rows(model, raw, kind)
