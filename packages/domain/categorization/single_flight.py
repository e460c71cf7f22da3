"""
Single-flight memo for classifier results

Concurrent requests for the same key share one in-flight computation: the
first caller runs it, later callers await the same future. Successful
non-None results are kept in a bounded LRU; failures and None are not
memoized, so the next request tries again. Cancelling the first caller
hands None to the others instead of cancelling them.
"""
import asyncio
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class SingleFlightCache(Generic[T]):
    """
    Usage:
        cache = SingleFlightCache(max_entries=5000)
        verdict = await cache.get_or_compute(key, lambda: classifier.classify(name))
    """

    def __init__(self, max_entries: int = 5000):
        self.max_entries = max_entries
        self._lock = asyncio.Lock()
        self._results: "OrderedDict[str, T]" = OrderedDict()
        self._in_flight: Dict[str, "asyncio.Future[Optional[T]]"] = {}

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Optional[T]]],
    ) -> Optional[T]:
        """
        Return the memoized value for key, or compute it exactly once.

        Args:
            key: Memo key (categorizer lookup key)
            compute: Zero-arg coroutine factory producing the value

        Returns:
            Computed or memoized value (None is passed through, never stored;
            waiters also get None when the owner is cancelled)

        Raises:
            Whatever compute raised, to the owner and every waiter
        """
        async with self._lock:
            if key in self._results:
                self._results.move_to_end(key)
                return self._results[key]

            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = asyncio.get_running_loop().create_future()
                self._in_flight[key] = future

        if not owner:
            logger.debug("single_flight_wait", key=key)
            return await asyncio.shield(future)

        try:
            value = await compute()
        except asyncio.CancelledError:
            # Only the owner was cancelled; waiters see a miss and fall through
            self._in_flight.pop(key, None)
            if not future.done():
                future.set_result(None)
            logger.debug("single_flight_owner_cancelled", key=key)
            raise
        except Exception as e:
            async with self._lock:
                self._in_flight.pop(key, None)
            future.set_exception(e)
            # Waiters re-raise on their own; mark retrieved for the no-waiter case
            future.exception()
            raise

        async with self._lock:
            self._in_flight.pop(key, None)
            if value is not None:
                self._results[key] = value
                self._results.move_to_end(key)
                while len(self._results) > self.max_entries:
                    self._results.popitem(last=False)
        future.set_result(value)
        return value

    @property
    def size(self) -> int:
        return len(self._results)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def clear(self) -> None:
        self._results.clear()
