"""Recompute scheduler — coalesces buffer mutations into bounded rebuilds."""

import asyncio
import logging
import time
from typing import Callable, Optional

from logtree.buffer import EntryBuffer
from logtree.hierarchy import DEFAULT_STRATEGY, Strategy, build
from logtree.metrics import Metrics
from logtree.models import Forest

logger = logging.getLogger(__name__)


class RecomputeScheduler:
    """Rebuild the forest once the buffer settles, or after ``max_delay``.

    After the first pending mutation the scheduler sleeps one tick at a time.
    It rebuilds when a whole tick passed with no new mutation, or when
    ``max_delay`` seconds have elapsed since that first mutation, so sustained
    ingestion still produces a rebuild at least every ``max_delay``. At most
    one rebuild happens per tick.

    The forest is swapped by a single attribute assignment; readers see either
    the previous forest or the new one.
    """

    def __init__(
        self,
        buffer: EntryBuffer,
        strategy=DEFAULT_STRATEGY,
        tick_interval: float = 0.05,
        max_delay: float = 0.5,
        metrics: Optional[Metrics] = None,
    ):
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        if max_delay < tick_interval:
            raise ValueError("max_delay must be at least one tick")

        self._buffer = buffer
        self._strategy = Strategy.parse(strategy)
        self._tick_interval = tick_interval
        self._max_delay = max_delay
        self._metrics = metrics or Metrics()
        self._forest = Forest()
        # An empty buffer counts as already built; pre-filled ones build on run().
        self._built_version = buffer.version if len(buffer) == 0 else -1
        self._listeners: list[Callable[[Forest], None]] = []
        self._pending: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stopped = False
        self._unsubscribe = buffer.subscribe(self.notify)

    @property
    def forest(self) -> Forest:
        return self._forest

    @property
    def strategy(self) -> Strategy:
        return self._strategy

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    @property
    def pending(self) -> bool:
        return self._pending is not None and self._pending.is_set()

    def add_listener(self, callback: Callable[[Forest], None]):
        """Call *callback(forest)* after every rebuild."""
        self._listeners.append(callback)

    def notify(self):
        """Mark the buffer dirty. Safe to call from any thread."""
        if self._pending is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._pending.set()
        else:
            self.notify_threadsafe()

    def notify_threadsafe(self):
        """Mark the buffer dirty from a thread other than the loop's."""
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._set_pending)

    def _set_pending(self):
        if self._pending is not None:
            self._pending.set()

    def rebuild(self) -> Forest:
        """Rebuild immediately from the latest snapshot and publish the result."""
        version = self._buffer.version
        snapshot = self._buffer.snapshot()
        t0 = time.perf_counter()
        forest = build(snapshot, self._strategy)
        elapsed_ms = (time.perf_counter() - t0) * 1000

        self._forest = forest
        self._built_version = version
        self._metrics.record_rebuild(elapsed_ms)
        logger.debug(
            "Rebuilt forest: %d entries, %d roots, %.2fms (%s)",
            len(snapshot), len(forest), elapsed_ms, self._strategy.value,
        )

        for callback in list(self._listeners):
            try:
                callback(forest)
            except Exception:
                logger.exception("Rebuild listener failed")
        return forest

    def set_strategy(self, strategy) -> Forest:
        """Switch strategy and rebuild right away."""
        self._strategy = Strategy.parse(strategy)
        logger.info("Hierarchy strategy set to %s", self._strategy.value)
        return self.rebuild()

    async def run(self):
        """Coalescing loop; returns once stop() is called."""
        self._loop = asyncio.get_running_loop()
        self._pending = asyncio.Event()
        if self._buffer.version != self._built_version:
            self._pending.set()

        try:
            while not self._stopped:
                await self._pending.wait()
                if self._stopped:
                    break

                first_seen = time.monotonic()
                version = self._buffer.version
                while True:
                    await asyncio.sleep(self._tick_interval)
                    if self._stopped:
                        return
                    current = self._buffer.version
                    if current == version:
                        break
                    if time.monotonic() - first_seen >= self._max_delay:
                        logger.debug("Max delay reached, rebuilding under load")
                        break
                    version = current

                self._pending.clear()
                self.rebuild()
        finally:
            self._pending = None
            self._loop = None

    def stop(self):
        """Stop the loop at its next wake-up and detach from the buffer."""
        self._stopped = True
        self._unsubscribe()
        if self._pending is not None:
            self._pending.set()
