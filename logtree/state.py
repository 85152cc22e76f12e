"""Selection and expansion state, keyed by entry id so it survives rebuilds."""

import threading
from typing import Callable, Optional

from logtree.models import Entry, Forest

ForestSource = Callable[[], Forest]

# Nodes shallower than this are expanded until toggled.
DEFAULT_EXPANDED_DEPTH = 2


class SelectionState:
    """At most one selected entry id, resolved against the latest forest."""

    def __init__(self, forest_source: ForestSource):
        self._forest_source = forest_source
        self._selected_id: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def selected_id(self) -> Optional[str]:
        with self._lock:
            return self._selected_id

    def select(self, entry_id: str):
        with self._lock:
            self._selected_id = entry_id

    def clear(self):
        with self._lock:
            self._selected_id = None

    def selected(self) -> Optional[Entry]:
        """The selected entry as it appears in the current forest, or None."""
        entry_id = self.selected_id
        if entry_id is None:
            return None
        node = self._forest_source().get(entry_id)
        return node.entry if node is not None else None


class ExpansionState:
    """Explicit expand/collapse flags; unset ids fall back to ``depth < 2``."""

    def __init__(self, forest_source: Optional[ForestSource] = None):
        self._forest_source = forest_source
        self._expanded: dict[str, bool] = {}
        self._lock = threading.Lock()

    @staticmethod
    def default(depth: int) -> bool:
        return depth < DEFAULT_EXPANDED_DEPTH

    def is_expanded(self, entry_id: str, depth: int) -> bool:
        with self._lock:
            stored = self._expanded.get(entry_id)
        return self.default(depth) if stored is None else stored

    def set(self, entry_id: str, expanded: bool):
        with self._lock:
            self._expanded[entry_id] = bool(expanded)

    def toggle(self, entry_id: str, depth: Optional[int] = None) -> bool:
        """Flip the flag for *entry_id* and return the new value.

        Without a stored flag the flip starts from the default for *depth*;
        when *depth* is not given it is looked up in the latest forest (ids
        not in the forest are treated as roots).
        """
        if depth is None:
            depth = self._lookup_depth(entry_id)
        with self._lock:
            current = self._expanded.get(entry_id)
            if current is None:
                current = self.default(depth)
            self._expanded[entry_id] = not current
            return not current

    def explicit(self) -> dict[str, bool]:
        """Copy of the explicitly stored flags."""
        with self._lock:
            return dict(self._expanded)

    def reset(self):
        with self._lock:
            self._expanded.clear()

    def _lookup_depth(self, entry_id: str) -> int:
        if self._forest_source is None:
            return 0
        depth = self._forest_source().depth(entry_id)
        return 0 if depth is None else depth
