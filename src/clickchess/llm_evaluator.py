"""
LLM evaluator over an OpenAI-compatible chat endpoint (Vercel AI Gateway by default; base URL configurable).

The model is asked for a JSON object {"prob": <white win probability>, "best_move": "<uci>"}.
The reply is validated like any other evaluation payload; anything unusable raises
EvaluationError so the opponent mover falls back to a random move.
"""
from __future__ import annotations

import json
import logging
from typing import List, Dict

import chess
from openai import AsyncOpenAI

from .evaluation import Evaluation, EvaluationError

log = logging.getLogger("llm_evaluator")

SYSTEM = (
    "You are a strong chess engine. Given a position in FEN, estimate the probability that White wins "
    "and pick the best move for the side to move. Reply with JSON only: "
    '{"prob": <number between 0 and 1>, "best_move": "<move in UCI, e.g. e2e4 or e7e8q>"}'
)


def _strip_code_fence(text: str) -> str:
    """Remove simple ``` fences if present."""
    text = text.strip()
    if text.startswith("```") and text.endswith("```"):
        inner = text.split("\n", 1)
        if len(inner) == 2:
            return inner[1].rsplit("\n", 1)[0].strip()
    return text


def _extract_text(rsp) -> str:
    if not getattr(rsp, "choices", None):
        return ""
    content = getattr(rsp.choices[0].message, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            if isinstance(c, dict):
                if c.get("type") == "text" and isinstance(c.get("text"), str):
                    parts.append(c["text"])
                continue
            t = getattr(c, "text", None)
            if isinstance(t, str):
                parts.append(t)
        return "\n".join(parts)
    return ""


def build_messages(fen: str) -> List[Dict[str, str]]:
    board = chess.Board(fen=fen)
    side = "White" if board.turn == chess.WHITE else "Black"
    return [
        {"role": "system", "content": SYSTEM},
        {"role": "user", "content": f"Position (FEN): {fen}\nSide to move: {side}"},
    ]


def parse_reply(text: str, human_color: chess.Color) -> Evaluation:
    """Decode the model's JSON reply and re-express prob from the human side's perspective."""
    body = _strip_code_fence(text)
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise EvaluationError(f"reply is not JSON: {body[:80]!r}") from e
    ev = Evaluation.from_payload(payload)
    if human_color == chess.BLACK:
        ev = Evaluation(prob=1.0 - ev.prob, best_move=ev.best_move)
    return ev


class LLMEvaluator:
    name = "llm"

    def __init__(self, model: str, human_color: chess.Color = chess.WHITE, api_key: str = "", base_url: str = "", timeout_s: float = 10.0, client: AsyncOpenAI | None = None):
        self.model = model
        self.human_color = human_color
        self.timeout_s = timeout_s
        self._api_key = api_key
        self._base_url = base_url
        self._client = client
        self.ready = False

    async def start(self) -> None:
        if not self.model:
            raise RuntimeError("LLM evaluator needs a model; set CLICKCHESS_LLM_MODEL in settings.yml or the environment.")
        if self._client is None:
            # No retries: a failed request degrades to the random fallback instead
            self._client = AsyncOpenAI(api_key=self._api_key or None, base_url=self._base_url or None, max_retries=0)
        self.ready = True
        log.info("LLM evaluator ready: model=%s", self.model)

    async def evaluate(self, fen: str) -> Evaluation:
        if self._client is None:
            raise EvaluationError("LLM evaluator not started")
        rsp = await self._client.chat.completions.create(
            model=self.model,
            messages=build_messages(fen),
            timeout=self.timeout_s,
        )
        text = _extract_text(rsp)
        if not text:
            raise EvaluationError("empty reply from model")
        return parse_reply(text, self.human_color)

    async def close(self) -> None:
        self.ready = False
        if self._client is not None:
            await self._client.close()
            self._client = None
