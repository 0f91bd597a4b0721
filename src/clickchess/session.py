"""
One human-vs-opponent game.

- GameSession owns the Referee plus all per-game UI state (selection, pending promotion,
  last opponent move, side panels) and the generation counter used to drop stale evaluations.
- Every method runs on the session's asyncio loop; the only suspension point is the
  evaluator request inside opponent_cycle().
- Listeners receive the freshly rendered view after every visible change.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
import uuid
from typing import Callable, Optional

import chess

from .board_view import render_board
from .evaluation import Evaluator, coerce_evaluation
from .opponent import RandomOpponent, apply_recommended
from .promotion import PROMOTION_CHOICES, PendingPromotion, normalize_choice, should_prompt_promotion
from .referee import Referee, color_name, parse_square
from .selection import Selection, owns_piece
from .status import HUMAN_LABEL, Displays, leading_label, probability_pair, update_status

log = logging.getLogger("session")

Listener = Callable[[dict], None]


class GameSession:
    def __init__(
        self,
        session_id: str | None = None,
        *,
        human_color: chess.Color = chess.WHITE,
        opponent_name: str = "Mahmoud",
        evaluator: Optional[Evaluator] = None,
        opponent_delay_s: float = 0.45,
        new_game_delay_s: float = 0.3,
        eval_timeout_s: float = 10.0,
        starting_fen: str | None = None,
        rng: random.Random | None = None,
    ):
        self.id = session_id or f"game_{int(time.time())}_{uuid.uuid4().hex[:6]}"
        self.human_color = human_color
        self.opponent_name = opponent_name
        self.evaluator = evaluator
        self.opponent_delay_s = opponent_delay_s
        self.new_game_delay_s = new_game_delay_s
        self.eval_timeout_s = eval_timeout_s
        self.referee = Referee(starting_fen)
        self.selection = Selection()
        self.pending_promotion: PendingPromotion | None = None
        self.last_opponent_move: str | None = None
        self.displays = Displays()
        self.generation = 0
        self.status = update_status(self.referee, human_color, opponent_name, self.displays)
        self.updated_at = time.time()
        self._random = RandomOpponent(rng)
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []

    # ---------------- Queries -----------------
    @property
    def human_to_move(self) -> bool:
        return self.referee.turn == self.human_color

    @property
    def game_over(self) -> bool:
        return self.referee.is_game_over()

    def _opponent_to_move(self) -> bool:
        return not self.human_to_move and not self.game_over

    def _evaluator_available(self) -> bool:
        return self.evaluator is not None and bool(getattr(self.evaluator, "ready", False))

    # ---------------- Listeners -----------------
    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self) -> dict:
        self.updated_at = time.time()
        view = self.view()
        for listener in list(self._listeners):
            listener(view)
        return view

    def _refresh(self) -> dict:
        self.status = update_status(self.referee, self.human_color, self.opponent_name, self.displays)
        return self._publish()

    # ---------------- Lifecycle -----------------
    def start(self) -> dict:
        """Render the opening position and run the first evaluation cycle right away."""
        view = self._refresh()
        self.schedule_opponent_cycle(0)
        return view

    def new_game(self) -> dict:
        self.generation += 1
        self.referee.reset()
        self.selection.clear()
        self.pending_promotion = None
        self.last_opponent_move = None
        self.displays = Displays()
        log.info("Session %s: new game (generation %d)", self.id, self.generation)
        view = self._refresh()
        self.schedule_opponent_cycle(self.new_game_delay_s)
        return view

    def on_evaluator_ready(self) -> None:
        self.schedule_opponent_cycle(0)

    async def drain(self) -> None:
        """Wait until every scheduled opponent cycle has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._listeners.clear()

    # ---------------- Human input -----------------
    def click(self, square: str) -> dict:
        square = self._square_name(square)
        if self.game_over or not self.human_to_move or self.pending_promotion is not None:
            return self.view()

        own_piece = owns_piece(self.referee, square, self.human_color)
        if not self.selection.active:
            if not own_piece:
                return self.view()
            self.selection.select(self.referee, square)
            return self._publish()

        if own_piece and square != self.selection.source:
            self.selection.select(self.referee, square)
            return self._publish()

        source = self.selection.source
        if square in self.selection.targets() and should_prompt_promotion(self.referee, source, square, self.human_color):
            self.selection.clear()
            self.pending_promotion = PendingPromotion(source, square, self.human_color)
            return self._publish()

        if not self.referee.submit(source, square):
            if own_piece:
                self.selection.select(self.referee, square)
            else:
                self.selection.clear()
            return self._publish()

        self.selection.clear()
        return self._after_human_move()

    def choose_promotion(self, piece: str) -> dict:
        letter = normalize_choice(piece)
        pending = self.pending_promotion
        if pending is None:
            return self.view()
        self.pending_promotion = None
        if self.referee.submit(pending.source, pending.destination, letter):
            return self._after_human_move()
        log.warning("Session %s: pending promotion %s%s%s rejected", self.id, pending.source, pending.destination, letter)
        return self._refresh()

    def dismiss_promotion(self) -> dict:
        if self.pending_promotion is None:
            return self.view()
        self.pending_promotion = None
        return self._refresh()

    def _after_human_move(self) -> dict:
        view = self._refresh()
        if not self.game_over:
            self.schedule_opponent_cycle(self.opponent_delay_s)
        return view

    @staticmethod
    def _square_name(square: str) -> str:
        return chess.square_name(parse_square(square))

    # ---------------- Opponent turn -----------------
    def schedule_opponent_cycle(self, delay: float) -> None:
        task = asyncio.get_running_loop().create_task(self._delayed_cycle(delay, self.generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _delayed_cycle(self, delay: float, generation: int) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            await self.opponent_cycle(generation)
        except Exception:
            log.exception("Session %s: opponent cycle failed", self.id)

    async def opponent_cycle(self, generation: int | None = None) -> None:
        """Evaluate the position, then (on the opponent's turn) play the recommended or a random move."""
        if generation is not None and generation != self.generation:
            log.debug("Session %s: skipping cycle scheduled for generation %d", self.id, generation)
            return
        if self.game_over:
            return
        generation = self.generation
        fen = self.referee.fen()
        self.displays.calculating()
        self._publish()

        evaluation = None
        if self._evaluator_available():
            try:
                result = await asyncio.wait_for(self.evaluator.evaluate(fen), self.eval_timeout_s or None)
                evaluation = coerce_evaluation(result)
            except Exception as e:
                log.warning("Session %s: evaluation via %s failed (%s: %s); using a random move", self.id, self.evaluator.name, type(e).__name__, e)
            if generation != self.generation or fen != self.referee.fen():
                log.info("Session %s: discarding stale evaluation for %s", self.id, fen)
                return

        moved = None
        if evaluation is not None:
            human_pct, opponent_pct = probability_pair(evaluation.prob)
            self.displays.human_probability = f"{human_pct}%"
            self.displays.opponent_probability = f"{opponent_pct}%"
            self.displays.who_is_winning = leading_label(human_pct, self.opponent_name)
            if self._opponent_to_move():
                moved = apply_recommended(self.referee, evaluation.best_move)

        if moved is None and self._opponent_to_move():
            moved = self._random.play(self.referee)
            if moved:
                log.debug("Session %s: random fallback played %s", self.id, moved)

        if moved:
            self.last_opponent_move = moved
            log.info("Session %s: opponent played %s", self.id, moved)
        self._refresh()

    # ---------------- Rendering -----------------
    def view(self) -> dict:
        opponent_color = not self.human_color
        pending = self.pending_promotion
        return {
            "session_id": self.id,
            "generation": self.generation,
            "fen": self.referee.fen(),
            "turn": color_name(self.referee.turn),
            "human_color": color_name(self.human_color),
            "board": render_board(self.referee, bottom=self.human_color, highlights=self.selection.highlights()),
            "selected": self.selection.source,
            "status": self.status,
            "who_is_winning": self.displays.who_is_winning,
            "panels": {
                "human": {
                    "name": HUMAN_LABEL,
                    "color": color_name(self.human_color),
                    "probability": self.displays.human_probability,
                    "active": self.displays.human_active,
                },
                "opponent": {
                    "name": self.opponent_name,
                    "color": color_name(opponent_color),
                    "probability": self.displays.opponent_probability,
                    "active": self.displays.opponent_active,
                },
            },
            "promotion": {
                "open": pending is not None,
                "color": color_name(pending.color) if pending else None,
                "pending": pending.to_dict() if pending else None,
                "choices": PROMOTION_CHOICES,
            },
            "game_over": self.game_over,
            "last_opponent_move": self.last_opponent_move,
        }
