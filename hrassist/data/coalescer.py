"""
Request Coalescer

Collapses concurrent "fetch record by id" calls for one collection that land
inside a short window into a single upstream load, then fans each record
back out to its waiting callers.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..common.errors import BatchFetchError

logger = logging.getLogger("hrassist.data.coalescer")


@dataclass
class CoalescerStats:
    """Counters for one coalescer"""
    requests: int = 0
    flushes: int = 0
    batched_requests: int = 0  # requests served by a flush they did not trigger


class RequestCoalescer:
    """
    Batches get-by-id lookups for one record collection.

    Behavior:
    - The first request in an idle window schedules exactly one flush
    - Requests for the same id before the flush share one future
    - Requests for different ids in the same window join the same flush
    - On loader failure every caller in the flush gets the same BatchFetchError
    """

    def __init__(
        self,
        record_kind: str,
        loader: Callable[[], Awaitable[List[Any]]],
        window: float = 0.05,
    ):
        """
        Initialize coalescer.

        Args:
            record_kind: Collection name, used in errors and logs
            loader: Coroutine function returning the full collection
            window: Batching window in seconds
        """
        self.record_kind = record_kind
        self._loader = loader
        self._window = window
        self._pending: Dict[str, asyncio.Future] = {}
        self._flush_scheduled = False
        self._window_requests = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._flush_tasks = set()
        self._stats = CoalescerStats()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def stats(self) -> CoalescerStats:
        return CoalescerStats(
            requests=self._stats.requests,
            flushes=self._stats.flushes,
            batched_requests=self._stats.batched_requests,
        )

    async def request(self, record_id: str) -> Optional[Any]:
        """
        Fetch one record by id through the next batch flush.

        Returns:
            The matching record, or None if the collection has no such id

        Raises:
            BatchFetchError: if the batch load failed
        """
        self._stats.requests += 1
        self._window_requests += 1
        future = self._pending.get(record_id)
        if future is None:
            loop = asyncio.get_running_loop()
            future = loop.create_future()
            self._pending[record_id] = future
            if not self._flush_scheduled:
                self._flush_scheduled = True
                self._timer = loop.call_later(self._window, self._start_flush)

        # Shield so one cancelled caller cannot cancel the shared future
        return await asyncio.shield(future)

    def _start_flush(self) -> None:
        task = asyncio.ensure_future(self._flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def _flush(self) -> None:
        batch = self._pending
        served = self._window_requests
        self._pending = {}
        self._window_requests = 0
        self._flush_scheduled = False
        self._timer = None

        if not batch:
            return

        ids = list(batch)
        self._stats.flushes += 1
        self._stats.batched_requests += served - 1
        logger.debug("Flushing %d %s request(s)", len(ids), self.record_kind)

        try:
            records = await self._loader()
        except Exception as e:
            logger.warning("Batch fetch of %s failed for %s: %s", self.record_kind, ids, e)
            error = BatchFetchError(
                f"Batch fetch of {self.record_kind} failed",
                record_kind=self.record_kind,
                ids=ids,
            )
            error.__cause__ = e
            for future in batch.values():
                if not future.done():
                    future.set_exception(error)
            return

        by_id = {record.id: record for record in records}
        for record_id, future in batch.items():
            if not future.done():
                future.set_result(by_id.get(record_id))

    async def close(self) -> None:
        """Flush anything still pending and wait for in-flight flushes"""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            await self._flush()
        if self._flush_tasks:
            await asyncio.gather(*self._flush_tasks, return_exceptions=True)
