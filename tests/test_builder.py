"""Tests for sync/builder.py and sync/rows.py -- desired-state construction.

Covers:
- Post/page maps: file pairs, meta envelope, lookups, excluded tags
- Media maps: placeholders per physical file, sizes ordering
- Media sections attached to posts
- API mirror grouping and the general site file
- Row parsing and URL helpers
"""

from __future__ import annotations

import json
from dataclasses import replace

import pytest

from wp_github_sync.core.errors import UpstreamDataError
from wp_github_sync.sync.builder import (
    build_api_request_maps,
    build_general_file_map,
    build_media_map,
    build_page_map,
    build_post_map,
    cleanup_content,
    ensure_starts_with,
    general_file_url,
    media_metadata_path,
    path_from_media_source_url,
    split_destination,
)
from wp_github_sync.sync.models import BINARY_PLACEHOLDER
from wp_github_sync.sync.rows import (
    ApiRequestResult,
    MediaRow,
    PageRow,
    PostRow,
    parse_rows,
)

SITE = "https://wp.example.com"
UPLOADS = SITE + "/wp-content/uploads/"


def _post(**overrides) -> PostRow:
    raw = {
        "id": 10,
        "slug": "hello",
        "author": 1,
        "date_gmt": "2024-01-01T00:00:00",
        "modified_gmt": "2024-01-02T00:00:00",
        "content": "\n<p>Hi</p>\n\n\n<p>there</p>",
        "link": SITE + "/hello/",
        "categories": [3],
        "tags": [5],
        "_links": {"self": [{"href": SITE + "/wp-json/wp/v2/posts/10"}]},
    }
    raw.update(overrides)
    return PostRow.model_validate(raw)


def _media(**overrides) -> MediaRow:
    raw = {
        "id": 20,
        "slug": "photo",
        "author": 1,
        "source_url": UPLOADS + "2020/07/photo.jpg",
        "media_details": {
            "sizes": {
                "thumbnail": {
                    "source_url": UPLOADS + "2020/07/photo-150x150.jpg",
                    "width": 150,
                    "height": 150,
                    "file": "photo-150x150.jpg",
                },
                "large": {
                    "source_url": UPLOADS + "2020/07/photo-1024x768.jpg",
                    "width": 1024,
                    "height": 768,
                },
            }
        },
    }
    raw.update(overrides)
    return MediaRow.model_validate(raw)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_path_from_media_source_url(self):
        assert (
            path_from_media_source_url(UPLOADS + "2020/07/a.jpg")
            == "2020/07/a.jpg"
        )

    def test_path_outside_uploads_raises(self):
        with pytest.raises(UpstreamDataError):
            path_from_media_source_url(SITE + "/images/a.jpg")

    def test_path_with_nothing_after_marker_raises(self):
        with pytest.raises(UpstreamDataError):
            path_from_media_source_url(UPLOADS)

    def test_ensure_starts_with(self):
        assert ensure_starts_with(SITE, "/a.jpg") == SITE + "/a.jpg"
        assert ensure_starts_with(SITE, SITE + "/a.jpg") == SITE + "/a.jpg"

    def test_cleanup_content(self):
        assert cleanup_content("\na\n\n\nb") == "a\nb"
        assert cleanup_content("a\n\nb") == "a\n\nb"

    def test_split_destination(self):
        assert split_destination("a/b/c.json") == ("a/b", "c.json")
        assert split_destination("c.json") == ("", "c.json")

    def test_general_file_url(self):
        assert general_file_url(SITE).startswith(SITE + "/wp-json?_fields=")

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("2020/07/photo.jpg", "2020/07/photo.json"),
            ("2020/07/LICENSE", "2020/07/LICENSE.json"),
            ("v1.2/README", "v1.2/README.json"),
            ("2020/07/data.json", "2020/07/data.json.json"),
        ],
    )
    def test_media_metadata_path(self, path, expected):
        assert media_metadata_path(path) == expected


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


class TestRows:
    def test_extra_fields_kept(self):
        row = _post(excerpt="short")
        assert row.to_dict()["excerpt"] == "short"

    def test_links_dumped_under_original_name(self):
        assert "_links" in _post().to_dict()

    def test_object_url(self):
        assert _post().object_url == SITE + "/wp-json/wp/v2/posts/10"
        assert _post(_links=None).object_url is None

    def test_parse_rows_reports_malformed_row(self):
        with pytest.raises(UpstreamDataError, match="posts row at index 1"):
            parse_rows(PostRow, [{"id": 1, "slug": "a"}, {"slug": "b"}], "posts")

    def test_media_sizes_ignore_non_dict(self):
        assert _media(media_details={"sizes": []}).sizes == {}

    def test_media_size_without_source_url_rejected(self):
        raw = {
            "id": 20,
            "slug": "photo",
            "source_url": UPLOADS + "2020/07/photo.jpg",
            "media_details": {"sizes": {"thumb": {"width": 10}}},
        }
        with pytest.raises(UpstreamDataError, match="size 'thumb'"):
            parse_rows(MediaRow, [raw], "media")


# ---------------------------------------------------------------------------
# Posts and pages
# ---------------------------------------------------------------------------


class TestBuildPostMap:
    """Tests for build_post_map() / build_page_map()."""

    def test_json_and_html_per_row(self, build_ctx):
        desired = build_post_map([_post()], build_ctx)
        assert list(desired) == ["hello.json", "hello.html"]
        assert desired["hello.html"] == "<p>Hi</p>\n<p>there</p>"

    def test_meta_envelope(self, build_ctx):
        meta = build_post_map([_post()], build_ctx)["hello.json"]["meta"]
        assert meta["created_date"] == "2024-01-01T00:00:00"
        assert meta["updated_date"] == "2024-01-02T00:00:00"
        assert meta["field_reference"].endswith("/reference/posts/")
        assert meta["api_object_url"] == SITE + "/wp-json/wp/v2/posts/10"
        assert meta["api_version"] == "v2"
        assert meta["api_url"] == SITE + "/wp-json/wp/v2/"
        assert meta["process"] == {
            "source_data": SITE,
            "deployment_target": "https://github.com/org/site-content/tree/main",
        }

    def test_lookups_resolved_to_names(self, build_ctx):
        data = build_post_map([_post()], build_ctx)["hello.json"]["data"]
        assert data["author"] == "Ada"
        assert data["categories"] == ["News"]
        assert data["tags"] == ["featured"]
        assert data["wordpress_url"] == SITE + "/hello/"

    def test_hidden_author_keeps_id(self, build_ctx):
        ctx = replace(build_ctx, users=None)
        data = build_post_map([_post()], ctx)["hello.json"]["data"]
        assert data["author"] == 1

    def test_excluded_tag_produces_tombstones(self, build_ctx):
        ctx = replace(build_ctx, tags_exclude=["staging"])
        desired = build_post_map([_post(tags=[5, 6]), _post(id=11, slug="ok")], ctx)
        assert desired["hello.json"] is None
        assert desired["hello.html"] is None
        assert desired["ok.json"] is not None

    def test_excluded_properties_removed(self, build_ctx):
        ctx = replace(build_ctx, exclude_properties=["content", "_links"])
        data = build_post_map([_post()], ctx)["hello.json"]["data"]
        assert "content" not in data
        assert "_links" not in data

    def test_pages_use_page_reference(self, build_ctx):
        row = PageRow.model_validate({"id": 2, "slug": "about", "content": "x"})
        desired = build_page_map([row], build_ctx)
        assert desired["about.json"]["meta"]["field_reference"].endswith(
            "/reference/pages/"
        )
        assert "api_object_url" not in desired["about.json"]["meta"]

    def test_media_section_for_featured_image(self, build_ctx):
        media_map = build_media_map([_media()], build_ctx)
        data = build_post_map([_post(featured_media=20)], build_ctx, media_map)[
            "hello.json"
        ]["data"]
        assert [m["type"] for m in data["media"]] == ["large", "thumbnail"]
        assert all(m["featured"] for m in data["media"])
        assert all(m["id"] == 20 for m in data["media"])

    def test_media_section_for_embedded_size(self, build_ctx):
        media_map = build_media_map([_media()], build_ctx)
        body = f'<img src="{UPLOADS}2020/07/photo-150x150.jpg">'
        data = build_post_map([_post(content=body)], build_ctx, media_map)[
            "hello.json"
        ]["data"]
        assert len(data["media"]) == 1
        assert data["media"][0]["type"] == "thumbnail"
        assert data["media"][0]["source_url_match"] is True
        assert data["media"][0]["featured"] is False

    def test_no_media_section_without_matches(self, build_ctx):
        media_map = build_media_map([_media()], build_ctx)
        data = build_post_map([_post()], build_ctx, media_map)["hello.json"]["data"]
        assert "media" not in data


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------


class TestBuildMediaMap:
    """Tests for build_media_map()."""

    def test_placeholders_and_json(self, build_ctx):
        desired = build_media_map([_media()], build_ctx)
        assert list(desired) == [
            "2020/07/photo-1024x768.jpg",
            "2020/07/photo-150x150.jpg",
            "2020/07/photo.jpg",
            "2020/07/photo.json",
        ]
        assert all(
            desired[p] is BINARY_PLACEHOLDER for p in list(desired)[:3]
        )

    def test_sizes_widest_first(self, build_ctx):
        data = build_media_map([_media()], build_ctx)["2020/07/photo.json"]["data"]
        assert [s["width"] for s in data["sizes"]] == [1024, 150]
        assert data["sizes"][1] == {
            "type": "thumbnail",
            "path": "2020/07/photo-150x150.jpg",
            "wordpress_url": UPLOADS + "2020/07/photo-150x150.jpg",
            "source_url": UPLOADS + "2020/07/photo-150x150.jpg",
            "width": 150,
            "height": 150,
            "file": "photo-150x150.jpg",
        }

    def test_asset_fields(self, build_ctx):
        data = build_media_map([_media()], build_ctx)["2020/07/photo.json"]["data"]
        assert data["path"] == "2020/07/photo.jpg"
        assert data["wordpress_url"] == UPLOADS + "2020/07/photo.jpg"
        assert data["author"] == "Ada"

    def test_relative_source_url_made_absolute(self, build_ctx):
        row = _media(
            source_url="/wp-content/uploads/2021/01/doc.pdf", media_details={}
        )
        desired = build_media_map([row], build_ctx)
        assert list(desired) == ["2021/01/doc.pdf", "2021/01/doc.json"]
        data = desired["2021/01/doc.json"]["data"]
        assert data["wordpress_url"] == UPLOADS + "2021/01/doc.pdf"
        assert "sizes" not in data

    def test_upload_without_extension_keeps_binary(self, build_ctx):
        row = _media(source_url=UPLOADS + "2020/07/LICENSE", media_details={})
        desired = build_media_map([row], build_ctx)
        assert list(desired) == ["2020/07/LICENSE", "2020/07/LICENSE.json"]
        assert desired["2020/07/LICENSE"] is BINARY_PLACEHOLDER
        data = desired["2020/07/LICENSE.json"]["data"]
        assert data["path"] == "2020/07/LICENSE"


# ---------------------------------------------------------------------------
# API mirrors and general file
# ---------------------------------------------------------------------------


class TestApiRequestMaps:
    def test_grouped_by_folder(self):
        results = [
            ApiRequestResult(destination="wp/menus.json", data={"a": 1}, digest="1"),
            ApiRequestResult(destination="site.json", data=["é"], digest="2"),
            ApiRequestResult(destination="wp/tax.json", data={}, digest="3"),
        ]
        maps = build_api_request_maps(results)
        assert list(maps) == ["wp", ""]
        assert list(maps["wp"]) == ["menus.json", "tax.json"]
        assert maps["wp"]["menus.json"] == '{\n  "a": 1\n}'
        assert maps[""]["site.json"] == '[\n  "é"\n]'


class TestGeneralFile:
    def test_general_file_document(self, build_ctx):
        info = {"name": "Example", "url": SITE, "_links": {"x": []}}
        folder, desired = build_general_file_map(
            info, build_ctx, "wordpress/general/general-file.json"
        )
        assert folder == "wordpress/general"
        document = desired["general-file.json"]
        assert document["data"] == {"name": "Example", "url": SITE}
        assert document["meta"]["api_url"] == general_file_url(SITE)
        json.dumps(document)
