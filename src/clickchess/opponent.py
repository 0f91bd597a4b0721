"""
Opponent move selection.

- parse_coordinate_move(): 'e7e5' / 'a2a1q' -> CoordinateMove, None for anything shorter than 4 chars.
- apply_recommended(): plays an evaluator's recommendation, retrying a rejected promotion as a queen.
- RandomOpponent: uniformly random legal move; promotions always become queens.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

import chess

from .referee import Referee

log = logging.getLogger("opponent")


@dataclass(frozen=True)
class CoordinateMove:
    source: str
    destination: str
    promotion: Optional[str] = None

    def uci(self) -> str:
        return f"{self.source}{self.destination}{self.promotion or ''}"


def parse_coordinate_move(text: object) -> Optional[CoordinateMove]:
    if not isinstance(text, str):
        return None
    s = text.strip().lower()
    if len(s) < 4:
        return None
    promotion = s[4] if len(s) >= 5 else None
    return CoordinateMove(source=s[0:2], destination=s[2:4], promotion=promotion)


def apply_recommended(referee: Referee, recommended: object) -> Optional[str]:
    """Try to play the recommended move; returns the coordinate string actually played or None."""
    mv = parse_coordinate_move(recommended)
    if mv is None:
        return None
    if referee.submit(mv.source, mv.destination, mv.promotion):
        return mv.uci()
    if mv.promotion:
        alt = CoordinateMove(mv.source, mv.destination, "q")
        if referee.submit(alt.source, alt.destination, alt.promotion):
            return alt.uci()
    log.info("Recommended move %r rejected", recommended)
    return None


class RandomOpponent:
    """Simple opponent that picks a uniformly random legal move.
    Used whenever no evaluator recommendation could be applied.
    """
    name: str = "Random"

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def choose(self, referee: Referee) -> chess.Move:
        legal = referee.legal_moves()
        return self.rng.choice(legal) if legal else chess.Move.null()

    def play(self, referee: Referee) -> Optional[str]:
        """Choose and apply a move on the referee; returns its coordinate string or None if no move exists."""
        mv = self.choose(referee)
        if not mv:
            return None
        promotion = "q" if mv.promotion else None
        src = chess.square_name(mv.from_square)
        dst = chess.square_name(mv.to_square)
        if not referee.submit(src, dst, promotion):
            return None
        return f"{src}{dst}{promotion or ''}"
