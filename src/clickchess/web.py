"""
Flask app for playing in the browser.

Endpoints:
- GET  /                                 -> board page (static/index.html)
- GET  /health                           -> liveness plus evaluator readiness
- POST /api/sessions                     -> start a game {human_plays?, fen?}
- GET  /api/sessions/<id>                -> current view
- POST /api/sessions/<id>/click          -> {square}
- POST /api/sessions/<id>/promotion      -> {piece} (null dismisses the modal)
- POST /api/sessions/<id>/new-game       -> reset to the starting position
- GET  /api/sessions/<id>/events         -> Server-Sent Events stream of rendered views

Sessions run on a single EventLoopThread; handlers only hand work over to it.
"""
from __future__ import annotations

import json
import logging
import queue
from pathlib import Path
from typing import Optional

from flask import Flask, Response, jsonify, request, send_from_directory

from .config import SETTINGS, Settings
from .evaluation import Evaluator, build_evaluator
from .registry import SessionRegistry
from .runtime import EventLoopThread

log = logging.getLogger("web")

STATIC_DIR = Path(__file__).resolve().parent / "static"
KEEPALIVE_S = 15.0

_DEFAULT = object()


def create_app(settings: Settings | None = None, evaluator: Optional[Evaluator] | object = _DEFAULT, runtime: EventLoopThread | None = None) -> Flask:
    settings = settings or SETTINGS
    runtime = (runtime or EventLoopThread()).start()
    if evaluator is _DEFAULT:
        evaluator = build_evaluator(settings)
    registry = SessionRegistry(settings, evaluator)
    if evaluator is not None:
        runtime.submit(registry.start_evaluator())

    app = Flask(__name__, static_folder=str(STATIC_DIR), static_url_path="/static")
    app.extensions["clickchess"] = {"registry": registry, "runtime": runtime, "settings": settings}

    def _cleanup_stale_sessions() -> None:
        for session in registry.remove_stale():
            runtime.submit(session.close())

    def _bad_request(message: str):
        return jsonify({"error": "bad_request", "message": message}), 400

    def _session_action(session_id: str, action: str, *args):
        """Run a session method on the loop; maps unknown ids to 404 and ValueError to 400."""
        _cleanup_stale_sessions()
        session = registry.get(session_id)
        if session is None:
            return jsonify({"error": "not found"}), 404
        try:
            return jsonify(runtime.call(getattr(session, action), *args))
        except ValueError as e:
            return _bad_request(str(e))

    @app.route("/")
    def index():
        return send_from_directory(str(STATIC_DIR), "index.html")

    @app.route("/health")
    def health():
        return jsonify({
            "ok": True,
            "evaluator": evaluator.name if evaluator is not None else None,
            "evaluator_ready": bool(evaluator is not None and evaluator.ready),
        })

    @app.route("/api/sessions", methods=["POST"])
    def create_session():
        _cleanup_stale_sessions()
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return _bad_request("body must be a JSON object")
        for key in ("human_plays", "fen"):
            if data.get(key) is not None and not isinstance(data[key], str):
                return _bad_request(f"{key} must be a string")
        try:
            session = runtime.call(registry.create, data.get("human_plays"), data.get("fen"))
        except ValueError as e:
            return _bad_request(str(e))
        return jsonify(runtime.call(session.view)), 201

    @app.route("/api/sessions/<session_id>", methods=["GET"])
    def get_session(session_id: str):
        return _session_action(session_id, "view")

    @app.route("/api/sessions/<session_id>/click", methods=["POST"])
    def click(session_id: str):
        data = request.get_json(silent=True) or {}
        square = data.get("square") if isinstance(data, dict) else None
        if not square:
            return _bad_request("square is required")
        return _session_action(session_id, "click", square)

    @app.route("/api/sessions/<session_id>/promotion", methods=["POST"])
    def promotion(session_id: str):
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict) or "piece" not in data:
            return _bad_request("piece is required (null dismisses)")
        if data["piece"] is None:
            return _session_action(session_id, "dismiss_promotion")
        return _session_action(session_id, "choose_promotion", data["piece"])

    @app.route("/api/sessions/<session_id>/new-game", methods=["POST"])
    def new_game(session_id: str):
        return _session_action(session_id, "new_game")

    @app.route("/api/sessions/<session_id>/events")
    def events(session_id: str):
        """Server-Sent Events stream; one `view` event per re-render."""
        session = registry.get(session_id)
        if session is None:
            return jsonify({"error": "not found"}), 404
        q: "queue.Queue[dict]" = queue.Queue()
        listener = q.put_nowait
        runtime.call(session.subscribe, listener)
        initial = runtime.call(session.view)

        def event_stream():
            try:
                yield f"event: view\ndata: {json.dumps(initial)}\n\n"
                while True:
                    try:
                        view = q.get(timeout=KEEPALIVE_S)
                    except queue.Empty:
                        yield "event: keepalive\n\n"
                        continue
                    yield f"event: view\ndata: {json.dumps(view)}\n\n"
            finally:
                runtime.call(session.unsubscribe, listener)

        return Response(event_stream(), mimetype="text/event-stream")

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        # The board must always reflect the live position
        response.headers["Cache-Control"] = "no-store, max-age=0"
        return response

    @app.route("/api/<path:path>", methods=["OPTIONS"])
    def cors_preflight(path: str):
        return app.make_response(("", 204))

    return app
