"""
Run the clickchess web UI.

Usage: python server.py [--host 0.0.0.0] [--port 8000] [--evaluator none|engine|llm] [--human-plays white|black]
Settings come from settings.yml / environment (see src/clickchess/config.py); CLI flags override them.
"""
from __future__ import annotations

import argparse
import dataclasses
import logging

try:
    import chess  # noqa: F401  rules engine; nothing works without it
except ModuleNotFoundError as e:
    raise SystemExit(f"Failed to load python-chess (rules engine): {e}. Install it with 'pip install chess'.")

from clickchess.config import EVALUATOR_KINDS, SETTINGS
from clickchess.web import create_app


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--evaluator", choices=EVALUATOR_KINDS, default=None, help="Opponent move source (overrides settings)")
    ap.add_argument("--human-plays", choices=["white", "black"], default=None, help="Default side for new sessions")
    ap.add_argument("--log-level", default="INFO", help="Python logging level (e.g., INFO, DEBUG)")
    ap.add_argument("--debug", action="store_true", help="Flask debug mode")
    args = ap.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    overrides = {}
    if args.evaluator:
        overrides["evaluator"] = args.evaluator
    if args.human_plays:
        overrides["human_color"] = args.human_plays
    settings = dataclasses.replace(SETTINGS, **overrides)

    app = create_app(settings)
    logging.getLogger("server").info("Serving on http://%s:%d (evaluator=%s)", args.host, args.port, settings.evaluator)
    # Reloader would start a second event loop thread and evaluator
    app.run(host=args.host, port=args.port, debug=args.debug, use_reloader=False, threaded=True)
