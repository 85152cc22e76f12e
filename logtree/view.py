"""Flatten a forest into visible rows and render them for a terminal."""

from dataclasses import dataclass
from typing import Callable, Optional

from logtree.formatter import FormattedEntry, TemplateFormatter, safe_format
from logtree.models import Entry, Forest, Level
from logtree.state import ExpansionState

# ANSI colour per level, matching the web viewer's legend
COLORS = {
    Level.DEBUG: "\033[35m",  # purple
    Level.INFO: "\033[32m",   # green
    Level.WARN: "\033[33m",   # yellow
    Level.ERROR: "\033[31m",  # red
}
RESET = "\033[0m"
REVERSE = "\033[7m"

INDENT = "  "


@dataclass(frozen=True)
class Row:
    entry: Entry
    depth: int
    has_children: bool
    expanded: bool
    title: str
    subtitle: str
    selected: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.entry.id,
            "level": self.entry.level.value,
            "timestamp": self.entry.timestamp.isoformat(),
            "depth": self.depth,
            "has_children": self.has_children,
            "expanded": self.expanded,
            "title": self.title,
            "subtitle": self.subtitle,
            "selected": self.selected,
        }


def visible_rows(
    forest: Forest,
    expansion: ExpansionState,
    formatter: Optional[Callable[[Entry], object]] = None,
    selected_id: Optional[str] = None,
) -> list[Row]:
    """Pre-order rows, skipping the descendants of collapsed nodes."""
    formatter = formatter or TemplateFormatter()
    rows = []
    stack = [(node, 0) for node in reversed(forest.roots)]
    while stack:
        node, depth = stack.pop()
        has_children = bool(node.children)
        expanded = expansion.is_expanded(node.id, depth)
        text: FormattedEntry = safe_format(formatter, node.entry)
        rows.append(Row(
            entry=node.entry,
            depth=depth,
            has_children=has_children,
            expanded=expanded,
            title=text.title,
            subtitle=text.subtitle,
            selected=node.id == selected_id,
        ))
        if has_children and expanded:
            for child in reversed(node.children):
                stack.append((child, depth + 1))
    return rows


def render_row(row: Row, color: bool = True) -> str:
    if row.has_children:
        marker = "v" if row.expanded else ">"
    else:
        marker = " "
    level = row.entry.level.value
    if color:
        level = f"{COLORS[row.entry.level]}{level:<5}{RESET}"
    else:
        level = f"{level:<5}"

    line = f"{INDENT * row.depth}{marker} [{level}] {row.title}"
    if row.subtitle:
        line += f"  ({row.subtitle})"
    if row.selected:
        line = f"{REVERSE}{line}{RESET}" if color else f"* {line}"
    return line


def render_rows(rows: list[Row], color: bool = True) -> list[str]:
    return [render_row(row, color=color) for row in rows]


def describe(entry: Optional[Entry]) -> list[str]:
    """Detail lines for the selected entry."""
    if entry is None:
        return ["Select a log entry to view details"]
    lines = [
        entry.message,
        f"Level: {entry.level.value}",
        f"Timestamp: {entry.timestamp.isoformat()}",
    ]
    if entry.parent_id:
        lines.append(f"Parent: {entry.parent_id}")
    if entry.correlation_key:
        lines.append(f"Correlation: {entry.correlation_key}")
    for key, value in entry.meta.items():
        lines.append(f"{key}: {value}")
    return lines


def legend(color: bool = True) -> str:
    parts = []
    for level in Level:
        if color:
            parts.append(f"{COLORS[level]}#{RESET} {level.value}")
        else:
            parts.append(level.value)
    return "  ".join(parts)
