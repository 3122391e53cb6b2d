"""Async utilities for bridging the synchronous HTTP clients to the async engine."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


class RequestLimiter:
    """Bounds the number of remote calls in flight at once.

    One limiter is created per process run and handed to every component
    that talks to WordPress or GitHub, so the bound applies across binary
    downloads, blob uploads and dictionary fetches alike.

    Args:
        max_parallel: Maximum concurrent calls (>= 1).
    """

    def __init__(self, max_parallel: int = 5) -> None:
        if max_parallel < 1:
            raise ValueError("max_parallel must be at least 1")
        self.max_parallel = max_parallel
        self._semaphore = asyncio.Semaphore(max_parallel)
        logger.debug(
            "Request limiter initialized: max_parallel=%d", max_parallel
        )

    async def run(
        self, func: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        """Run a synchronous function in a thread, bounded by the semaphore."""
        async with self._semaphore:
            return await asyncio.to_thread(func, *args, **kwargs)

    async def gather(
        self,
        coros: Sequence[Coroutine[Any, Any, T]],
    ) -> list[T]:
        """Run coroutines concurrently and wait for all of them.

        Each coroutine should use ``run`` internally.  Results come back in
        input order; the first failure propagates.
        """
        return list(await asyncio.gather(*coros))
