"""Append-only entry buffer shared by the ingestor and the scheduler."""

import collections
import logging
import threading
from typing import Callable, Optional

from logtree.models import Entry

logger = logging.getLogger(__name__)


class EntryBuffer:
    """Thread-safe, id-deduplicated buffer backed by a (optionally bounded) deque.

    Appends happen in arrival order. When ``max_entries`` is set the oldest
    entries are evicted first, and their ids may be accepted again later.
    Every successful append bumps ``version`` and notifies subscribers.
    """

    def __init__(self, max_entries: Optional[int] = None):
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive or None")
        self._entries: collections.deque[Entry] = collections.deque(maxlen=max_entries)
        self._ids: set[str] = set()
        self._lock = threading.Lock()
        self._version = 0
        self._total_count = 0
        self._evicted = 0
        self._subscribers: list[Callable[[], None]] = []

    @property
    def max_entries(self) -> Optional[int]:
        return self._entries.maxlen

    def append(self, entry: Entry) -> bool:
        """Add an entry. Returns False when an entry with the same id is held."""
        with self._lock:
            if entry.id in self._ids:
                return False
            if self._entries.maxlen is not None and len(self._entries) == self._entries.maxlen:
                evicted = self._entries.popleft()
                self._ids.discard(evicted.id)
                self._evicted += 1
            self._entries.append(entry)
            self._ids.add(entry.id)
            self._version += 1
            self._total_count += 1
            subscribers = list(self._subscribers)

        for callback in subscribers:
            callback()
        return True

    def snapshot(self) -> tuple[Entry, ...]:
        """Return a consistent, immutable copy of the buffered entries."""
        with self._lock:
            return tuple(self._entries)

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a mutation callback; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def clear(self):
        """Drop every entry. Counts as a mutation."""
        with self._lock:
            self._entries.clear()
            self._ids.clear()
            self._version += 1
            subscribers = list(self._subscribers)
        logger.info("Entry buffer cleared")
        for callback in subscribers:
            callback()

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    @property
    def total_count(self) -> int:
        """Number of entries ever accepted."""
        with self._lock:
            return self._total_count

    @property
    def evicted_count(self) -> int:
        with self._lock:
            return self._evicted

    def __contains__(self, entry_id) -> bool:
        with self._lock:
            return entry_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
