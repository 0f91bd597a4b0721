"""
Evaluation collaborator contract.

An evaluator is an optional capability: given a position (FEN) it returns the
probability that the human side wins and a recommended move in coordinate
notation. The opponent mover treats a missing, not-ready or failing evaluator
the same way: it falls back to a random legal move.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

import chess

from .config import Settings


class EvaluationError(RuntimeError):
    """Raised when an evaluator reply cannot be used (malformed payload, bad probability)."""


@dataclass(frozen=True)
class Evaluation:
    prob: float
    best_move: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: object) -> "Evaluation":
        """Validate a {prob, best_move} mapping as produced by remote evaluators."""
        if not isinstance(payload, dict):
            raise EvaluationError(f"evaluation payload must be an object, got {type(payload).__name__}")
        prob = payload.get("prob")
        if isinstance(prob, bool) or not isinstance(prob, (int, float)):
            raise EvaluationError(f"prob must be a number, got {prob!r}")
        prob = float(prob)
        if not math.isfinite(prob) or not 0.0 <= prob <= 1.0:
            raise EvaluationError(f"prob must be within [0, 1], got {prob!r}")
        best_move = payload.get("best_move")
        if best_move is not None and not isinstance(best_move, str):
            raise EvaluationError(f"best_move must be a string, got {best_move!r}")
        return cls(prob=prob, best_move=best_move)


def coerce_evaluation(result: object) -> Evaluation:
    """Re-validate whatever an evaluator handed back (Evaluation or plain mapping)."""
    if isinstance(result, Evaluation):
        result = {"prob": result.prob, "best_move": result.best_move}
    return Evaluation.from_payload(result)


class Evaluator(Protocol):
    name: str
    ready: bool

    async def start(self) -> None: ...

    async def evaluate(self, fen: str) -> Evaluation: ...

    async def close(self) -> None: ...


class FunctionEvaluator:
    """Adapts a bare `async def fn(fen) -> {prob, best_move}` into an Evaluator."""

    def __init__(self, fn: Callable[[str], Awaitable[object]], name: str = "function"):
        self._fn = fn
        self.name = name
        self.ready = False

    async def start(self) -> None:
        self.ready = True

    async def evaluate(self, fen: str) -> Evaluation:
        return coerce_evaluation(await self._fn(fen))

    async def close(self) -> None:
        self.ready = False


def build_evaluator(settings: Settings) -> Optional[Evaluator]:
    """Instantiate the evaluator named by settings.evaluator ('none' -> None)."""
    human_color = chess.WHITE if settings.human_color == "white" else chess.BLACK
    if settings.evaluator == "engine":
        from .engine_evaluator import EngineEvaluator
        return EngineEvaluator(
            human_color=human_color,
            depth=settings.engine_depth,
            movetime_ms=settings.engine_movetime_ms,
            engine_path=settings.stockfish_path or None,
        )
    if settings.evaluator == "llm":
        from .llm_evaluator import LLMEvaluator
        return LLMEvaluator(
            model=settings.llm_model,
            human_color=human_color,
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            timeout_s=settings.eval_timeout_s,
        )
    return None
