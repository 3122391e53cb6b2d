"""Upstream row records.

WordPress rows are mostly copied through to the mirrored JSON files, so
these models only pin down the fields the builder reads; every other
field is kept (``extra="allow"``) and written back out after the
declared ones, in upstream order.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from ..core.errors import UpstreamDataError

_ROW_CONFIG = ConfigDict(extra="allow", populate_by_name=True)

RowT = TypeVar("RowT", bound="WordPressRow")


class WordPressRow(BaseModel):
    """Fields common to every WordPress object the mirror writes."""

    id: int
    slug: str
    author: Any = None
    date_gmt: str | None = None
    modified_gmt: str | None = None
    links: dict[str, Any] | None = Field(default=None, alias="_links")

    model_config = _ROW_CONFIG

    @property
    def object_url(self) -> str | None:
        """``_links.self[0].href`` when WordPress supplied it."""
        try:
            return self.links["self"][0]["href"]  # type: ignore[index]
        except (TypeError, KeyError, IndexError):
            return None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class PostRow(WordPressRow):
    content: str = ""
    link: str | None = None
    categories: list[int] | None = None
    tags: list[int] | None = None
    featured_media: int | None = None


class PageRow(PostRow):
    """Pages share the post shape; categories/tags are usually absent."""


class MediaSize(BaseModel):
    source_url: str
    width: int | None = None
    height: int | None = None

    model_config = _ROW_CONFIG


class MediaRow(WordPressRow):
    source_url: str
    media_details: dict[str, Any] = Field(default_factory=dict)

    @field_validator("media_details")
    @classmethod
    def _check_sizes(cls, value: dict[str, Any]) -> dict[str, Any]:
        sizes = value.get("sizes")
        if not isinstance(sizes, dict):
            return value
        for name, size in sizes.items():
            try:
                MediaSize.model_validate(size)
            except ValidationError as e:
                raise ValueError(
                    f"size {name!r}: {e.errors()[0]['msg']}"
                ) from None
        return value

    @property
    def sizes(self) -> dict[str, MediaSize]:
        """Size variants keyed by size name (``thumbnail``, ``large`` ...)."""
        raw = self.media_details.get("sizes") or {}
        if not isinstance(raw, dict):
            return {}
        return {
            name: MediaSize.model_validate(size) for name, size in raw.items()
        }


class ApiRequestResult(BaseModel):
    """One fetched API mirror response."""

    destination: str
    data: Any
    digest: str

    model_config = {"frozen": True}


def parse_rows(model: type[RowT], raw_rows: list[Any], kind: str) -> list[RowT]:
    """Validate raw WordPress rows into *model* records.

    Raises:
        UpstreamDataError: If any row is malformed.
    """
    rows: list[RowT] = []
    for index, raw in enumerate(raw_rows):
        try:
            rows.append(model.model_validate(raw))
        except ValidationError as e:
            raise UpstreamDataError(
                f"Malformed {kind} row at index {index}: {e.errors()[0]['msg']}"
            ) from e
    return rows
