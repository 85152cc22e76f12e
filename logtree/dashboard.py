"""Flask JSON dashboard over a running viewer session."""

from flask import Flask, abort, jsonify, request

from logtree.view import describe


def create_dashboard_app(viewer) -> Flask:
    app = Flask(__name__)

    @app.route("/health")
    def health():
        return jsonify(status="ok", connection=viewer.connection_state.value)

    @app.route("/stats")
    def stats():
        return jsonify(viewer.stats())

    @app.route("/forest")
    def forest():
        if request.args.get("tree") in ("1", "true", "yes"):
            return jsonify(roots=viewer.forest.to_list())
        rows = [row.to_dict() for row in viewer.rows()]
        return jsonify(rows=rows, count=len(rows), selected=viewer.selection.selected_id)

    @app.route("/entries/<entry_id>")
    def entry(entry_id):
        found = viewer.entry(entry_id)
        if found is None:
            abort(404)
        data = found.to_dict()
        data["depth"] = viewer.forest.depth(entry_id)
        data["details"] = describe(found)
        return jsonify(data)

    @app.route("/selected")
    def selected():
        found = viewer.selection.selected()
        return jsonify(
            selected_id=viewer.selection.selected_id,
            entry=found.to_dict() if found is not None else None,
        )

    @app.route("/select/<entry_id>", methods=["POST"])
    def select(entry_id):
        viewer.selection.select(entry_id)
        return jsonify(selected_id=entry_id, present=entry_id in viewer.forest)

    @app.route("/select", methods=["DELETE"])
    def clear_selection():
        viewer.selection.clear()
        return jsonify(selected_id=None)

    @app.route("/toggle/<entry_id>", methods=["POST"])
    def toggle(entry_id):
        expanded = viewer.expansion.toggle(entry_id)
        return jsonify(id=entry_id, expanded=expanded)

    @app.errorhandler(404)
    def not_found(_exc):
        return jsonify(error="not found"), 404

    return app


def run_dashboard(app: Flask, host: str, port: int):
    """Run the Flask app (intended for use in a daemon thread)."""
    app.run(host=host, port=port, use_reloader=False)
