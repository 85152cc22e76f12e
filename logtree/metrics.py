"""Thread-safe counters for ingestion and rebuild activity."""

import threading


class Metrics:
    """Counters shared by the ingestor, the scheduler and the dashboard."""

    COUNTERS = ("received", "decoded", "dropped", "duplicates", "reconnects", "rebuilds")

    def __init__(self):
        self._lock = threading.Lock()
        self._counts = {name: 0 for name in self.COUNTERS}
        self._last_rebuild_ms = 0.0

    def increment(self, name: str, amount: int = 1):
        with self._lock:
            self._counts[name] = self._counts.get(name, 0) + amount

    def record_rebuild(self, duration_ms: float):
        """Count a rebuild and remember how long it took."""
        with self._lock:
            self._counts["rebuilds"] += 1
            self._last_rebuild_ms = duration_ms

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts.get(name, 0)

    def snapshot(self) -> dict:
        with self._lock:
            snap = dict(self._counts)
            snap["last_rebuild_ms"] = round(self._last_rebuild_ms, 3)
            return snap

    def reset(self):
        with self._lock:
            self._counts = {name: 0 for name in self.COUNTERS}
            self._last_rebuild_ms = 0.0
