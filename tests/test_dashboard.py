"""Tests for logtree/dashboard.py"""

from datetime import datetime, timezone

import pytest

from logtree.config import Config
from logtree.dashboard import create_dashboard_app
from logtree.models import Entry, Level
from logtree.viewer import LogViewer


def _entry(entry_id, parent=None, meta=None) -> Entry:
    return Entry(
        id=entry_id,
        level=Level.WARN,
        timestamp=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        message=f"msg {entry_id}",
        parent_id=parent,
        meta=meta or {},
    )


@pytest.fixture
def viewer():
    viewer = LogViewer(Config(environ={}))
    for entry in (
        _entry("r", meta={"pkg": "api", "fn": "Serve"}),
        _entry("c", parent="r"),
        _entry("g", parent="c"),
        _entry("gg", parent="g"),
    ):
        viewer.buffer.append(entry)
    viewer.scheduler.rebuild()
    return viewer


@pytest.fixture
def client(viewer):
    app = create_dashboard_app(viewer)
    app.config["TESTING"] = True
    return app.test_client()


class TestReadEndpoints:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok", "connection": "idle"}

    def test_stats(self, client):
        data = client.get("/stats").get_json()
        assert data["buffered"] == 4
        assert data["roots"] == 1
        assert data["rebuilds"] == 1
        assert data["strategy"] == "parent"

    def test_forest_rows(self, client):
        data = client.get("/forest").get_json()
        assert [row["id"] for row in data["rows"]] == ["r", "c", "g"]
        assert data["rows"][0]["subtitle"] == "api.Serve"
        assert data["count"] == 3
        assert data["selected"] is None

    def test_forest_tree(self, client):
        data = client.get("/forest?tree=1").get_json()
        root = data["roots"][0]
        assert root["id"] == "r"
        assert root["children"][0]["children"][0]["children"][0]["id"] == "gg"

    def test_entry(self, client):
        data = client.get("/entries/g").get_json()
        assert data["message"] == "msg g"
        assert data["depth"] == 2
        assert "Parent: c" in data["details"]

    def test_unknown_entry(self, client):
        resp = client.get("/entries/nope")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "not found"}


class TestSelectionEndpoints:
    def test_select_and_read_back(self, client):
        data = client.post("/select/c").get_json()
        assert data == {"selected_id": "c", "present": True}
        selected = client.get("/selected").get_json()
        assert selected["entry"]["id"] == "c"

    def test_select_absent_entry(self, client):
        assert client.post("/select/later").get_json()["present"] is False
        assert client.get("/selected").get_json() == {"selected_id": "later", "entry": None}

    def test_selection_survives_rebuild(self, client, viewer):
        client.post("/select/c")
        for i in range(10):
            viewer.buffer.append(_entry(f"n{i}", parent="r"))
        viewer.scheduler.rebuild()
        assert client.get("/selected").get_json()["entry"]["id"] == "c"

    def test_clear(self, client):
        client.post("/select/c")
        assert client.delete("/select").get_json() == {"selected_id": None}
        assert client.get("/selected").get_json()["selected_id"] is None


class TestToggleEndpoint:
    def test_toggle_deep_node_expands(self, client):
        assert client.post("/toggle/g").get_json() == {"id": "g", "expanded": True}
        rows = client.get("/forest").get_json()["rows"]
        assert [row["id"] for row in rows] == ["r", "c", "g", "gg"]

    def test_toggle_root_collapses(self, client):
        assert client.post("/toggle/r").get_json()["expanded"] is False
        assert [row["id"] for row in client.get("/forest").get_json()["rows"]] == ["r"]
