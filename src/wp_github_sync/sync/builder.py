"""Desired-state builder.

Turns normalized WordPress rows into ``DesiredStateMap`` objects: ordered
mappings from a path (relative to a content class's output folder) to the
content that file should hold.

Per content class:

1. **Posts / pages** -- ``{slug}.json`` (row wrapped in a ``meta`` block)
   and ``{slug}.html`` (cleaned body).  Rows tagged with an excluded tag
   map both files to ``None`` so an existing copy is deleted.
2. **Media** -- ``{upload path with .json extension}`` plus a
   ``BINARY_PLACEHOLDER`` for the original upload and every size variant.
3. **API mirrors** -- one JSON file per configured request, grouped by the
   parent folder of its destination.
4. **General file** -- a single site description document.

Everything here is pure; the engine fetches the inputs.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from ..config_schema import GitHubTarget
from ..core.errors import UpstreamDataError
from .models import BINARY_PLACEHOLDER, DesiredStateMap
from .rows import ApiRequestResult, MediaRow, PageRow, PostRow

API_PATH = "/wp-json/wp/v2/"
UPLOADS_MARKER = "/wp-content/uploads/"
GENERAL_FILE_FIELDS = (
    "description,gmt_offset,name,namespaces,timezone_string,home,url"
)

FIELD_REFERENCE = {
    "posts": "https://developer.wordpress.org/rest-api/reference/posts/",
    "pages": "https://developer.wordpress.org/rest-api/reference/pages/",
    "media": "https://developer.wordpress.org/rest-api/reference/media/",
}

_EXTENSION = re.compile(r"\.[^./]+$")


@dataclass(frozen=True)
class BuildContext:
    """Everything the builder needs besides the rows themselves.

    Attributes:
        site_url: WordPress site root, without trailing slash.
        target: Repository the files are written to.
        exclude_properties: Top-level fields removed from every JSON file.
        tags_exclude: Tag names that turn a post/page into a tombstone.
        users: Author id -> name, or ``None`` when author names are hidden.
        categories: Category id -> name.
        tags: Tag id -> name.
    """

    site_url: str
    target: GitHubTarget
    exclude_properties: list[str] = field(default_factory=list)
    tags_exclude: list[str] = field(default_factory=list)
    users: dict[int, str] | None = None
    categories: dict[int, str] = field(default_factory=dict)
    tags: dict[int, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def path_from_media_source_url(source_url: str) -> str:
    """Return the part of an upload URL after ``/wp-content/uploads/``.

    >>> path_from_media_source_url("https://x.org/wp-content/uploads/2020/07/a.jpg")
    '2020/07/a.jpg'
    """
    _, sep, rest = source_url.partition(UPLOADS_MARKER)
    if not sep or not rest:
        raise UpstreamDataError(
            f"Media URL is not under {UPLOADS_MARKER}: {source_url}"
        )
    return rest


def media_metadata_path(path: str) -> str:
    """Path of the JSON file describing the upload at *path*.

    The file extension is swapped for ``.json``; uploads without one (or
    already ending in ``.json``) get ``.json`` appended so the metadata
    never lands on the binary itself.
    """
    json_path = _EXTENSION.sub(".json", path)
    if json_path == path:
        json_path = path + ".json"
    return json_path


def ensure_starts_with(start: str, value: str) -> str:
    """Prefix *value* with *start* unless it already begins with it."""
    return value if value.startswith(start) else start + value


def remove_excluded_properties(
    data: dict[str, Any], exclude: list[str] | None
) -> None:
    for name in exclude or []:
        data.pop(name, None)


def cleanup_content(html: str) -> str:
    """Collapse triple newlines and drop one leading newline."""
    html = html.replace("\n\n\n", "\n")
    return html[1:] if html.startswith("\n") else html


def split_destination(destination: str) -> tuple[str, str]:
    """Split ``a/b/c.json`` into ``("a/b", "c.json")``; root folder is ``""``."""
    parts = destination.split("/")
    return "/".join(parts[:-1]), parts[-1]


def common_meta(
    site_url: str, target: GitHubTarget, api_url: str | None = None
) -> dict[str, Any]:
    return {
        "api_version": "v2",
        "api_url": api_url or site_url + API_PATH,
        "process": {
            "source_data": site_url,
            "deployment_target": (
                f"https://github.com/{target.owner}/{target.repo}"
                f"/tree/{target.branch}"
            ),
        },
        "refresh_frequency": "as needed",
    }


def wrap_in_file_meta(
    ctx: BuildContext,
    field_reference: str,
    data: dict[str, Any],
    object_url: str | None = None,
) -> dict[str, Any]:
    """Wrap a row in the ``{"meta": ..., "data": ...}`` file envelope."""
    meta: dict[str, Any] = {
        "created_date": data.get("date_gmt"),
        "updated_date": data.get("modified_gmt"),
        "field_reference": field_reference,
    }
    if object_url:
        meta["api_object_url"] = object_url
    meta.update(common_meta(ctx.site_url, ctx.target))
    return {"meta": meta, "data": data}


def add_media_section(
    media_map: DesiredStateMap | None,
    data: dict[str, Any],
    html: str,
) -> None:
    """Attach the media sizes a post/page uses.

    A size is listed when its URL appears in the body or its asset is the
    row's featured media.  Does nothing when media is not mirrored, and
    leaves no ``media`` key when nothing matched.
    """
    if media_map is None:
        return

    media: list[dict[str, Any]] = []
    for value in media_map.values():
        if not isinstance(value, dict):
            continue
        asset = value.get("data")
        if not isinstance(asset, dict) or not asset.get("sizes"):
            continue
        featured = data.get("featured_media") == asset.get("id")
        for size in asset["sizes"]:
            source_url_match = size.get("source_url", "") in html
            if featured or source_url_match:
                media.append(
                    {
                        "id": asset.get("id"),
                        **size,
                        "source_url_match": source_url_match,
                        "featured": featured,
                    }
                )

    if media:
        data["media"] = media


def _map_names(ids: list[int], dictionary: dict[int, str]) -> list[Any]:
    return [dictionary.get(i) for i in ids]


def _author(author: Any, users: dict[int, str] | None) -> Any:
    if users is None:
        return author
    return users.get(author)


def row_to_output(row: PostRow, ctx: BuildContext) -> dict[str, Any]:
    """Copy a post/page row, resolving author, categories and tags to names."""
    data = row.to_dict()
    data["author"] = _author(row.author, ctx.users)
    data["wordpress_url"] = row.link
    if row.categories is not None:
        data["categories"] = _map_names(row.categories, ctx.categories)
    if row.tags is not None:
        data["tags"] = _map_names(row.tags, ctx.tags)
    return data


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _build_document_map(
    rows: list[PostRow],
    ctx: BuildContext,
    field_reference: str,
    media_map: DesiredStateMap | None,
) -> DesiredStateMap:
    desired: DesiredStateMap = {}
    excluded_tags = set(ctx.tags_exclude)

    for row in rows:
        data = row_to_output(row, ctx)
        html = cleanup_content(row.content)
        add_media_section(media_map, data, html)
        remove_excluded_properties(data, ctx.exclude_properties)

        tags = data.get("tags")
        ignored = isinstance(tags, list) and bool(excluded_tags & set(tags))

        desired[f"{row.slug}.json"] = (
            None
            if ignored
            else wrap_in_file_meta(ctx, field_reference, data, row.object_url)
        )
        desired[f"{row.slug}.html"] = None if ignored else html

    return desired


def build_post_map(
    rows: list[PostRow],
    ctx: BuildContext,
    media_map: DesiredStateMap | None = None,
) -> DesiredStateMap:
    """Desired state of the posts folder.

    Args:
        rows: Post rows, in upstream order.
        ctx: Build context.
        media_map: The media desired state when media is mirrored, used
            to attach each post's ``media`` section.
    """
    return _build_document_map(
        rows, ctx, FIELD_REFERENCE["posts"], media_map
    )


def build_page_map(
    rows: list[PageRow],
    ctx: BuildContext,
    media_map: DesiredStateMap | None = None,
) -> DesiredStateMap:
    """Desired state of the pages folder.  Same layout as posts."""
    return _build_document_map(
        rows, ctx, FIELD_REFERENCE["pages"], media_map
    )


def build_media_map(rows: list[MediaRow], ctx: BuildContext) -> DesiredStateMap:
    """Desired state of the media folder.

    Each asset yields its metadata JSON plus one binary placeholder per
    physical file.  ``sizes`` are ordered widest first.
    """
    desired: DesiredStateMap = {}

    for row in rows:
        data = row.to_dict()
        data["author"] = _author(row.author, ctx.users)
        data["wordpress_url"] = ensure_starts_with(ctx.site_url, row.source_url)
        remove_excluded_properties(data, ctx.exclude_properties)

        sizes = [
            {
                "type": name,
                "path": path_from_media_source_url(size.source_url),
                "wordpress_url": ensure_starts_with(
                    ctx.site_url, size.source_url
                ),
                **size.model_dump(exclude_none=True),
            }
            for name, size in row.sizes.items()
        ]
        if sizes:
            sizes.sort(key=lambda s: s.get("width") or 0, reverse=True)
            data["sizes"] = sizes
            for size in sizes:
                desired[size["path"]] = BINARY_PLACEHOLDER

        path = path_from_media_source_url(row.source_url)
        data["path"] = path
        desired[path] = BINARY_PLACEHOLDER
        desired[media_metadata_path(path)] = wrap_in_file_meta(
            ctx, FIELD_REFERENCE["media"], data, row.object_url
        )

    return desired


def build_api_request_maps(
    results: list[ApiRequestResult],
) -> dict[str, DesiredStateMap]:
    """Group API mirror responses by destination folder.

    Returns:
        Folder (``""`` for the repository root) -> desired state of the
        files in that folder, in configuration order.
    """
    by_folder: dict[str, DesiredStateMap] = {}
    for result in results:
        folder, name = split_destination(result.destination)
        by_folder.setdefault(folder, {})[name] = json.dumps(
            result.data, indent=2, ensure_ascii=False
        )
    return by_folder


def general_file_url(site_url: str) -> str:
    return f"{site_url}/wp-json?_fields={GENERAL_FILE_FIELDS}"


def build_general_file_map(
    site_info: dict[str, Any],
    ctx: BuildContext,
    destination: str,
) -> tuple[str, DesiredStateMap]:
    """Desired state of the general site description file.

    Returns:
        ``(folder, desired)`` where *desired* holds the single file.
    """
    data = {k: v for k, v in site_info.items() if k != "_links"}
    folder, name = split_destination(destination)
    document = {
        "meta": common_meta(
            ctx.site_url, ctx.target, general_file_url(ctx.site_url)
        ),
        "data": data,
    }
    return folder, {name: document}
