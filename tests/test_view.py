"""Tests for logtree/view.py"""

from datetime import datetime, timezone

from logtree.formatter import TemplateFormatter
from logtree.hierarchy import Strategy, build
from logtree.models import Entry, Level
from logtree.state import ExpansionState
from logtree.view import COLORS, RESET, describe, legend, render_row, visible_rows


def _entry(entry_id, parent=None, level=Level.INFO, msg=None, meta=None) -> Entry:
    return Entry(
        id=entry_id,
        level=level,
        timestamp=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        message=msg if msg is not None else f"msg {entry_id}",
        parent_id=parent,
        meta=meta or {},
    )


def _chain_forest():
    # r -> c -> g -> gg, plus a sibling root s
    entries = [
        _entry("r"),
        _entry("c", parent="r"),
        _entry("g", parent="c"),
        _entry("gg", parent="g"),
        _entry("s"),
    ]
    return build(entries, Strategy.PARENT)


class TestVisibleRows:
    def test_default_expansion_stops_at_depth_two(self):
        rows = visible_rows(_chain_forest(), ExpansionState())
        assert [(row.entry.id, row.depth) for row in rows] == [
            ("r", 0), ("c", 1), ("g", 2), ("s", 0),
        ]
        assert rows[2].has_children is True
        assert rows[2].expanded is False

    def test_collapsed_root_hides_subtree(self):
        expansion = ExpansionState()
        expansion.set("r", False)
        rows = visible_rows(_chain_forest(), expansion)
        assert [row.entry.id for row in rows] == ["r", "s"]

    def test_expanding_deep_node(self):
        expansion = ExpansionState()
        expansion.set("g", True)
        rows = visible_rows(_chain_forest(), expansion)
        assert [row.entry.id for row in rows] == ["r", "c", "g", "gg", "s"]

    def test_selected_flag(self):
        rows = visible_rows(_chain_forest(), ExpansionState(), selected_id="c")
        assert [row.entry.id for row in rows if row.selected] == ["c"]

    def test_formatter_applied_with_fallback(self):
        forest = build([_entry("a", meta={"pkg": "db", "fn": "Get"}), _entry("b")], Strategy.PARENT)
        rows = visible_rows(forest, ExpansionState(), TemplateFormatter())
        assert (rows[0].title, rows[0].subtitle) == ("msg a", "db.Get")
        assert (rows[1].title, rows[1].subtitle) == ("msg b", "")

    def test_broken_formatter_does_not_break_rows(self):
        def broken(_entry):
            raise RuntimeError("boom")

        rows = visible_rows(_chain_forest(), ExpansionState(), broken)
        assert rows[0].title == "msg r"


class TestRenderRow:
    def test_plain(self):
        rows = visible_rows(_chain_forest(), ExpansionState())
        assert render_row(rows[0], color=False) == "v [INFO ] msg r"
        assert render_row(rows[2], color=False) == "    > [INFO ] msg g"
        assert render_row(rows[3], color=False) == "  [INFO ] msg s"

    def test_subtitle_and_selection(self):
        forest = build([_entry("a", meta={"pkg": "db", "fn": "Get"})], Strategy.PARENT)
        row = visible_rows(forest, ExpansionState(), selected_id="a")[0]
        assert render_row(row, color=False) == "*   [INFO ] msg a  (db.Get)"

    def test_level_colour(self):
        forest = build([_entry("e", level=Level.ERROR)], Strategy.PARENT)
        row = visible_rows(forest, ExpansionState())[0]
        line = render_row(row)
        assert f"{COLORS[Level.ERROR]}ERROR{RESET}" in line


class TestDescribe:
    def test_nothing_selected(self):
        assert describe(None) == ["Select a log entry to view details"]

    def test_details(self):
        entry = _entry("a", parent="p", msg="hello", meta={"pkg": "db"})
        lines = describe(entry)
        assert lines[0] == "hello"
        assert "Level: INFO" in lines
        assert "Timestamp: 2024-06-01T12:00:00+00:00" in lines
        assert "Parent: p" in lines
        assert "pkg: db" in lines


class TestLegend:
    def test_lists_every_level(self):
        assert legend(color=False) == "DEBUG  INFO  WARN  ERROR"
