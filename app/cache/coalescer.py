"""
Request coalescing to prevent duplicate upstream fetches.

When multiple concurrent coroutines ask for the same key, only one
fetch runs and every caller shares its result (or its error).
"""
import asyncio
import time
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightRequest:
    """Tracks an in-progress fetch."""
    task: "asyncio.Future[Any]"
    started_at: float = field(default_factory=time.time)
    waiter_count: int = 0


class RequestCoalescer:
    """
    Ensures concurrent requests for the same cache key share one fetch.

    Pattern:
    - First request for a key starts the fetch as a task
    - Subsequent requests for the same key await that task
    - When the task settles, the key is released and every caller
      receives the same result or exception
    - No lock needed: check-then-insert runs without yielding to the loop

    Usage:
        coalescer = RequestCoalescer()
        result = await coalescer.get_or_fetch(
            cache_key="feed-home-42",
            fetch_fn=lambda: load_feed(42),
        )
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize the coalescer.

        Args:
            timeout: Max seconds a caller waits for the shared fetch (None = no limit)
        """
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._timeout = timeout

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Either join an existing in-flight fetch or start a new one.

        Args:
            cache_key: Unique key for this request
            fetch_fn: Zero-argument coroutine function to call if we need to fetch

        Returns:
            The fetched data (shared among all concurrent callers)

        Raises:
            asyncio.TimeoutError: If waiting for the fetch exceeds the timeout
            Exception: Any error from fetch_fn is propagated to every caller
        """
        in_flight = self._in_flight.get(cache_key)

        if in_flight is not None:
            in_flight.waiter_count += 1
            logger.debug(
                f"Coalescing request for {cache_key} "
                f"(waiters: {in_flight.waiter_count})"
            )
        else:
            logger.debug(f"Initiating fetch for {cache_key}")
            task = asyncio.ensure_future(fetch_fn())
            in_flight = InFlightRequest(task=task)
            self._in_flight[cache_key] = in_flight
            task.add_done_callback(lambda done: self._release(cache_key, done))

        # Shield so a cancelled caller never cancels the shared fetch
        waiter = asyncio.shield(in_flight.task)
        if self._timeout is None:
            return await waiter
        try:
            return await asyncio.wait_for(waiter, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error(f"Timeout waiting for coalesced request: {cache_key}")
            raise

    def _release(self, cache_key: str, task: "asyncio.Future[Any]") -> None:
        """Drop the in-flight entry once its fetch settles."""
        current = self._in_flight.get(cache_key)
        if current is not None and current.task is task:
            del self._in_flight[cache_key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Fetch failed for {cache_key}: {task.exception()!r}")

    def is_in_flight(self, cache_key: str) -> bool:
        return cache_key in self._in_flight

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
        }
