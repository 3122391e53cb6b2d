"""Payload chunker.

GitHub rejects tree creation requests whose body is too large.  A change
set is split by repeated bisection until every part serializes below the
limit; parts are then applied one after another, each tree based on the
previous one.
"""

from __future__ import annotations

import json
import logging

from ..core.errors import OversizedEntryError
from .models import TreeEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 9_000_000


def payload_size(entries: list[TreeEntry]) -> int:
    """Byte length of the JSON ``tree`` array for *entries*."""
    return len(
        json.dumps([e.to_api() for e in entries]).encode("utf-8")
    )


def chunk_changes(
    changes: list[TreeEntry], max_bytes: int = DEFAULT_MAX_BYTES
) -> list[list[TreeEntry]]:
    """Split *changes* into ordered parts that each fit in *max_bytes*.

    Concatenating the parts yields *changes* unchanged.

    Raises:
        OversizedEntryError: If a single entry alone exceeds *max_bytes*.
    """
    if not changes:
        return []

    parts: list[list[TreeEntry]] = [list(changes)]
    index = 0
    while index < len(parts):
        part = parts[index]
        size = payload_size(part)
        if size <= max_bytes:
            index += 1
            continue
        if len(part) == 1:
            raise OversizedEntryError(part[0].path, size, max_bytes)
        half = (len(part) + 1) // 2
        parts[index : index + 1] = [part[:half], part[half:]]

    if len(parts) > 1:
        logger.info(
            "Split %d tree entries into %d payloads", len(changes), len(parts)
        )
    return parts
