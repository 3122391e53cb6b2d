"""Fixed-delay retry for transient HTTP failures.

WordPress, GitHub and Slack calls are retried a small, fixed number of
times when the failure is transient (connection errors, timeouts, rate
limiting, 5xx).  Definitive client errors (other 4xx) fail immediately.
"""

import logging
import time
from typing import Callable, TypeVar

import requests

from .errors import RemoteAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3
DEFAULT_DELAY = 2.0


def retry_call(
    func: Callable[..., T],
    *args,
    retries: int = DEFAULT_RETRIES,
    delay: float = DEFAULT_DELAY,
    **kwargs,
) -> T:
    """Call *func*, retrying transient failures with a fixed delay.

    Args:
        func: The function to execute.
        *args: Positional arguments for *func*.
        retries: Number of retries after the first attempt.
        delay: Seconds to wait between attempts.
        **kwargs: Keyword arguments for *func*.

    Returns:
        The return value of *func*.

    Raises:
        The last exception once retries are exhausted, or the first
        non-transient exception immediately.
    """
    for attempt in range(retries + 1):
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            if not is_transient_error(exc) or attempt >= retries:
                raise
            logger.warning(
                "Transient failure (%s), retrying in %.1fs (%d/%d)",
                exc,
                delay,
                attempt + 1,
                retries,
            )
            time.sleep(delay)

    raise AssertionError("unreachable")


def is_transient_error(exc: BaseException) -> bool:
    """Return True if *exc* is worth retrying."""
    if isinstance(exc, RemoteAPIError):
        return exc.is_transient
    return isinstance(
        exc, (requests.ConnectionError, requests.Timeout)
    )
