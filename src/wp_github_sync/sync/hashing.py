"""Git blob addressing.

GitHub identifies a file's content by the SHA-1 of
``b"blob <byte length>\\0" + bytes``.  Predicting that SHA locally lets the
differ skip unchanged files and the reconciler skip uploading binaries
the repository already has, without any network call.

The JSON rendering used for every structured file must be stable, or
every file would look changed on every pass.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def predict_blob_sha(content: str | bytes) -> str:
    """Return the Git blob SHA for *content*.

    ``str`` content is encoded as UTF-8 first.
    """
    raw = content.encode("utf-8") if isinstance(content, str) else content
    header = f"blob {len(raw)}\0".encode("ascii")
    return hashlib.sha1(header + raw).hexdigest()


def serialize_content(value: Any) -> str:
    """Render a desired-state value as file text.

    Strings are written as is; anything else becomes 2-space indented JSON
    with keys in insertion order and non-ASCII characters kept literal.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False)


def content_digest(value: Any) -> str:
    """SHA-256 of the serialized value, used as an API mirror fingerprint."""
    return hashlib.sha256(
        serialize_content(value).encode("utf-8")
    ).hexdigest()
