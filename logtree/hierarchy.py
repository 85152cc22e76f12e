"""Hierarchy builder: turn a flat snapshot of entries into an ordered Forest.

Two strategies are available:

- ``Strategy.BUCKET``: group by correlation key; within a group, sort by
  (timestamp, id); the first entry is the root and the others its direct
  children. Entries without a key are singleton groups.
- ``Strategy.PARENT``: attach each entry under the node named by its
  ``parent_id``. Unresolved parents and entries sitting on a parent cycle
  become roots.

Both are pure: no I/O, no state kept between calls, and identical input
gives an equal Forest. Roots appear in order of first occurrence in the
snapshot. Duplicate ids keep their first occurrence only.
"""

import logging
from enum import Enum
from typing import Iterable, Sequence

from logtree.models import Entry, Forest, Node

logger = logging.getLogger(__name__)


class Strategy(Enum):
    BUCKET = "bucket"
    PARENT = "parent"

    @classmethod
    def parse(cls, name) -> "Strategy":
        if isinstance(name, Strategy):
            return name
        key = str(name).strip().lower().replace("-", "_")
        aliases = {
            "bucket": cls.BUCKET,
            "bucket_by_key": cls.BUCKET,
            "parent": cls.PARENT,
            "parent_pointer": cls.PARENT,
        }
        if key not in aliases:
            raise ValueError(f"unknown hierarchy strategy: {name!r}")
        return aliases[key]


DEFAULT_STRATEGY = Strategy.PARENT


def build(entries: Sequence[Entry], strategy=DEFAULT_STRATEGY) -> Forest:
    """Build a Forest from *entries* using *strategy*."""
    strategy = Strategy.parse(strategy)
    unique = _first_occurrences(entries)
    if strategy is Strategy.BUCKET:
        roots = _build_buckets(unique)
    else:
        roots = _build_parent_tree(unique)
    return Forest(roots)


def _first_occurrences(entries: Iterable[Entry]) -> list[Entry]:
    seen = set()
    unique = []
    for entry in entries:
        if entry.id in seen:
            logger.debug("Ignoring duplicate entry id %s", entry.id)
            continue
        seen.add(entry.id)
        unique.append(entry)
    return unique


def _sort_key(entry: Entry):
    return entry.timestamp, entry.id


def _build_buckets(entries: list[Entry]) -> list[Node]:
    groups: dict[str, list[Entry]] = {}
    ordered: list[list[Entry]] = []

    for entry in entries:
        key = entry.correlation_key
        if not key:
            ordered.append([entry])
            continue
        group = groups.get(key)
        if group is None:
            group = groups[key] = []
            ordered.append(group)
        group.append(entry)

    roots = []
    for group in ordered:
        group.sort(key=_sort_key)
        root = Node(group[0])
        root.children = [Node(entry) for entry in group[1:]]
        roots.append(root)
    return roots


def _build_parent_tree(entries: list[Entry]) -> list[Node]:
    nodes = {entry.id: Node(entry) for entry in entries}
    cyclic = _cycle_members(entries, nodes)

    roots = []
    for entry in entries:
        node = nodes[entry.id]
        parent = nodes.get(entry.parent_id) if entry.parent_id else None
        if parent is None or entry.id in cyclic:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


def _cycle_members(entries: list[Entry], nodes: dict[str, Node]) -> set[str]:
    """Return the ids that lie on a parent cycle (self-parenting included).

    Each entry has at most one parent, so following parent links from every
    entry once, colouring as we go, finds every cycle in linear time.
    """
    parent_of = {
        entry.id: entry.parent_id
        for entry in entries
        if entry.parent_id and entry.parent_id in nodes
    }

    state: dict[str, int] = {}  # 1 = on current path, 2 = finished
    cyclic: set[str] = set()

    for entry in entries:
        if entry.id in state:
            continue
        path = []
        position: dict[str, int] = {}
        current = entry.id
        while current is not None and current not in state:
            state[current] = 1
            position[current] = len(path)
            path.append(current)
            current = parent_of.get(current)

        if current is not None and state.get(current) == 1:
            loop = path[position[current]:]
            cyclic.update(loop)
            logger.debug("Parent cycle detected: %s", " -> ".join(loop))

        for item in path:
            state[item] = 2

    return cyclic
