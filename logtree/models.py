"""Entry, Node and Forest — the data shapes shared by every component."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Optional


class Level(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Entry:
    id: str
    level: Level
    timestamp: datetime
    message: str = ""
    parent_id: Optional[str] = None
    correlation_key: Optional[str] = None
    meta: Mapping[str, object] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Read-only view so a decoded entry cannot change under the builder.
        if not isinstance(self.meta, MappingProxyType):
            object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "correlation_key": self.correlation_key,
            "level": self.level.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "meta": dict(self.meta),
        }


@dataclass(eq=False)
class Node:
    """An entry and the children it owns. Trees may be arbitrarily deep, so
    nothing here recurses; compare whole forests with ``Forest.__eq__``."""

    entry: Entry
    children: list["Node"] = field(default_factory=list, repr=False)

    @property
    def id(self) -> str:
        return self.entry.id

    def __repr__(self) -> str:
        return f"Node(id={self.entry.id!r}, children={len(self.children)})"

    def to_dict(self) -> dict:
        root = self.entry.to_dict()
        root["children"] = []
        stack = [(self, root)]
        while stack:
            node, data = stack.pop()
            for child in node.children:
                child_data = child.entry.to_dict()
                child_data["children"] = []
                data["children"].append(child_data)
                stack.append((child, child_data))
        return root


def walk(roots) -> Iterator[tuple[Node, int]]:
    """Yield (node, depth) pairs in pre-order without recursion."""
    stack = [(node, 0) for node in reversed(roots)]
    while stack:
        node, depth = stack.pop()
        yield node, depth
        for child in reversed(node.children):
            stack.append((child, depth + 1))


class Forest:
    """Ordered root nodes plus an id index, frozen once constructed."""

    def __init__(self, roots=()):
        self._roots = tuple(roots)
        self._index: dict[str, tuple[Node, int]] = {}
        for node, depth in walk(self._roots):
            self._index.setdefault(node.id, (node, depth))

    @property
    def roots(self) -> tuple[Node, ...]:
        return self._roots

    @property
    def size(self) -> int:
        """Total number of nodes at every depth."""
        return len(self._index)

    def get(self, entry_id: str) -> Optional[Node]:
        found = self._index.get(entry_id)
        return found[0] if found else None

    def depth(self, entry_id: str) -> Optional[int]:
        found = self._index.get(entry_id)
        return found[1] if found else None

    def walk(self) -> Iterator[tuple[Node, int]]:
        return walk(self._roots)

    def to_list(self) -> list[dict]:
        return [root.to_dict() for root in self._roots]

    def __contains__(self, entry_id) -> bool:
        return entry_id in self._index

    def __iter__(self):
        return iter(self._roots)

    def __len__(self) -> int:
        return len(self._roots)

    def __getitem__(self, i) -> Node:
        return self._roots[i]

    def _shape(self) -> list[tuple[Entry, int, int]]:
        # Pre-order (entry, depth, child count) pins down the whole structure.
        return [(node.entry, depth, len(node.children)) for node, depth in self.walk()]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Forest):
            return NotImplemented
        return len(self._roots) == len(other._roots) and self._shape() == other._shape()

    def __repr__(self) -> str:
        return f"Forest(roots={len(self._roots)}, nodes={self.size})"
