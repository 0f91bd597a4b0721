"""
Stockfish-backed evaluator.

- Resolves engine binary path from: explicit parameter, STOCKFISH_PATH setting/env, or system PATH.
- start(): launches the engine asynchronously (python-chess asyncio engine API).
- evaluate(): analyses to a fixed depth or movetime; returns the human side's win
  expectation from the engine's WDL model and the first move of the principal variation.
- close(): terminates the engine process.
"""
from __future__ import annotations

import logging
import os
import shutil

import chess
import chess.engine

from .evaluation import Evaluation, EvaluationError

log = logging.getLogger("engine_evaluator")


def resolve_engine_path(engine_path: str | None = None) -> str:
    """Find the engine binary; RuntimeError with guidance if it cannot be found."""
    candidate = engine_path or "stockfish"
    resolved = shutil.which(candidate) or (candidate if os.path.isfile(candidate) else None)
    if not resolved:
        auto = shutil.which("stockfish")
        if auto:
            return auto
        raise RuntimeError(
            f"Stockfish engine not found (candidate='{candidate}'). Install via 'brew install stockfish' on macOS, "
            "or set environment variable STOCKFISH_PATH to the binary path."
        )
    return resolved


class EngineEvaluator:
    name = "engine"

    def __init__(self, human_color: chess.Color = chess.WHITE, depth: int = 12, movetime_ms: int | None = None, engine_path: str | None = None):
        self.human_color = human_color
        self.depth = depth
        self.movetime_ms = movetime_ms
        self.engine_path = engine_path
        self.engine: chess.engine.UciProtocol | None = None
        self.ready = False

    def _limit(self) -> chess.engine.Limit:
        if self.movetime_ms:
            return chess.engine.Limit(time=self.movetime_ms / 1000)
        return chess.engine.Limit(depth=self.depth)

    async def start(self) -> None:
        path = resolve_engine_path(self.engine_path)
        try:
            _transport, self.engine = await chess.engine.popen_uci(path)
        except FileNotFoundError as e:
            raise RuntimeError(f"Failed launching engine at '{path}': {e}") from e
        self.ready = True
        log.info("Engine ready: %s (%s)", self.engine.id.get("name", path), path)

    async def evaluate(self, fen: str) -> Evaluation:
        if self.engine is None:
            raise EvaluationError("engine not started")
        board = chess.Board(fen=fen)
        info = await self.engine.analyse(board, self._limit())
        score = info.get("score")
        if score is None:
            raise EvaluationError("engine returned no score")
        prob = score.pov(self.human_color).wdl(model="sf", ply=board.ply()).expectation()
        pv = info.get("pv") or []
        best_move = pv[0].uci() if pv else None
        return Evaluation(prob=prob, best_move=best_move)

    async def close(self) -> None:
        self.ready = False
        if self.engine is not None:
            await self.engine.quit()
            self.engine = None
