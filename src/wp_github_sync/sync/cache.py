"""Fingerprint cache.

Remembers, per endpoint and content class, the last upstream fingerprint
seen, so a pass where nothing changed upstream can stop before touching
GitHub.  The cache is in memory and owned by the caller (one per process)
rather than being module state.
"""

from __future__ import annotations

import threading

from .models import Fingerprint

CacheRoot = tuple[str, str, str, str]
CacheKey = tuple[str, str, str, str, str]


class SyncCache:
    """In-memory fingerprint store keyed by
    ``(owner, repo, branch, api_url, class_key)``."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Fingerprint] = {}
        self._lock = threading.Lock()

    def check_and_update(self, key: CacheKey, fingerprint: Fingerprint) -> bool:
        """Store *fingerprint* and report whether it equals the previous one.

        A key seen for the first time is never a match.
        """
        with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = fingerprint
        return previous == fingerprint

    def invalidate(self, root: CacheRoot) -> int:
        """Forget every entry under *root*; returns how many were dropped."""
        with self._lock:
            stale = [k for k in self._entries if k[: len(root)] == root]
            for k in stale:
                del self._entries[k]
        return len(stale)

    def snapshot(self) -> dict[str, dict]:
        """Readable copy of the cache for status output."""
        with self._lock:
            items = list(self._entries.items())
        return {
            "|".join(key): fingerprint.model_dump(exclude_none=True)
            for key, fingerprint in items
        }

    def __len__(self) -> int:
        return len(self._entries)
