import logging
import random
import threading
from typing import Any
from urllib.parse import urljoin

import requests

from ..sync.models import Fingerprint
from .errors import RemoteAPIError, UpstreamDataError
from .retry import DEFAULT_DELAY, DEFAULT_RETRIES, retry_call

logger = logging.getLogger(__name__)

API_PATH = "/wp-json/wp/v2/"
PAGE_SIZE = 100


def flatten_rendered(row: dict[str, Any]) -> dict[str, Any]:
    """Replace ``{"rendered": value}`` fields with ``value`` (in place).

    A falsy ``rendered`` other than ``""`` (``None``, ``false``, ``0``)
    leaves the object as it is.
    """
    for key, value in row.items():
        if not isinstance(value, dict):
            continue
        rendered = value.get("rendered")
        if rendered or rendered == "":
            row[key] = rendered
    return row


def _cache_bust(url: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}cachebust={random.random()}"


class WordPressClient:
    """Read-only client for one WordPress site's REST API.

    Every GET carries a random ``cachebust`` parameter so CDN caches in
    front of WordPress never serve stale listings.
    """

    def __init__(
        self,
        site_url: str,
        retries: int = DEFAULT_RETRIES,
        delay: float = DEFAULT_DELAY,
    ):
        self.site_url = site_url.rstrip("/")
        self.api_url = self.site_url + API_PATH
        self.retries = retries
        self.delay = delay
        self._thread_local = threading.local()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = requests.Session()
        return self._thread_local.session

    def _send(self, url: str) -> requests.Response:
        response = self._get_session().get(url, timeout=(10, 120))
        if response.status_code >= 400:
            raise RemoteAPIError(response.status_code, url, response.text)
        return response

    def _get(self, url: str) -> requests.Response:
        url = _cache_bust(url)
        logger.debug("WordPress GET %s", url)
        return retry_call(
            self._send, url, retries=self.retries, delay=self.delay
        )

    def _get_paged_query(self, query: str) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        total_pages = 1
        page = 1
        while page <= total_pages:
            response = self._get(f"{query}&page={page}")
            total_pages = int(response.headers.get("X-WP-TotalPages") or 1)
            batch = response.json()
            if not isinstance(batch, list):
                raise UpstreamDataError(
                    f"Expected a list from {query}, got {type(batch).__name__}"
                )
            rows.extend(batch)
            page += 1
        return rows

    def get_paged(self, object_type: str) -> list[dict[str, Any]]:
        """Fetch every row of *object_type* (``posts``, ``pages``, ``media``).

        Rows are ordered by slug and have ``rendered`` fields flattened.
        """
        query = (
            f"{self.api_url}{object_type}"
            f"?per_page={PAGE_SIZE}&orderby=slug&order=asc"
        )
        logger.info("Querying WordPress API - %s", query)
        return [flatten_rendered(row) for row in self._get_paged_query(query)]

    def get_fingerprint(self, object_type: str) -> Fingerprint:
        """Most recent ``modified`` timestamp and total count of a type.

        A failed or empty listing yields an empty fingerprint instead of
        an error.
        """
        url = (
            f"{self.api_url}{object_type}"
            "?per_page=1&orderby=modified&order=desc&_fields=modified"
        )
        try:
            response = self._get(url)
            rows = response.json()
        except (RemoteAPIError, ValueError) as e:
            logger.warning("Fingerprint query failed for %s: %s", url, e)
            return Fingerprint(kind=object_type)

        if not isinstance(rows, list) or not rows:
            return Fingerprint(kind=object_type)
        return Fingerprint(
            kind=object_type,
            modified=rows[0].get("modified"),
            count=int(response.headers.get("X-WP-Total") or 0),
        )

    def fetch_dictionary(self, name: str) -> dict[int, str]:
        """Fetch an id -> name lookup (``categories``, ``tags``, ``users``)."""
        query = (
            f"{self.api_url}{name}?context=embed&hide_empty=true"
            f"&per_page={PAGE_SIZE}&_fields=id,name"
        )
        return {
            row["id"]: row["name"] for row in self._get_paged_query(query)
        }

    def resolve_url(self, source: str) -> str:
        """Absolute URLs pass through; others are relative to the site root."""
        if source.startswith(("http://", "https://")):
            return source
        return urljoin(self.site_url + "/", source.lstrip("/"))

    def get_json(self, source: str) -> Any:
        return self._get(self.resolve_url(source)).json()

    def get_site_info(self, url: str) -> dict[str, Any]:
        """Fetch the site description document, without ``_links``."""
        data = self._get(url).json()
        if not isinstance(data, dict):
            raise UpstreamDataError(f"Unexpected site description from {url}")
        data.pop("_links", None)
        return data

    def download(self, url: str) -> bytes:
        """Download a media binary (no cache-busting, served as a file)."""
        logger.debug("Downloading %s", url)
        return retry_call(
            self._send, url, retries=self.retries, delay=self.delay
        ).content
