"""
clickchess package.

Components:
- referee: python-chess wrapper; the only place rules are consulted
- selection/promotion/status/board_view: click handling, promotion gate, status line and board rendering
- opponent/evaluation: opponent moves from an optional evaluator with a random-move fallback
- session/registry/runtime: per-game state on a single asyncio loop
- web: Flask app serving the board page, JSON API and SSE stream
"""
# Package exports are intentionally minimal; import modules directly as needed.
