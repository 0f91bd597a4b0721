"""
Promotion gate.

A pawn move onto the far rank is not submitted straight away: it is parked as a
PendingPromotion until the player picks a piece in the promotion modal.
"""
from __future__ import annotations

from dataclasses import dataclass

import chess

from .referee import PROMOTION_LETTERS, Referee, color_name

PROMOTION_CHOICES = [
    {"piece": "q", "name": "queen"},
    {"piece": "r", "name": "rook"},
    {"piece": "b", "name": "bishop"},
    {"piece": "n", "name": "knight"},
]


@dataclass(frozen=True)
class PendingPromotion:
    source: str
    destination: str
    color: chess.Color

    def to_dict(self) -> dict:
        return {"from": self.source, "to": self.destination, "color": color_name(self.color)}


def should_prompt_promotion(referee: Referee, source: str, destination: str, color: chess.Color) -> bool:
    """True when `source` holds a `color` pawn and `destination` is that side's last rank."""
    piece = referee.piece_at(source)
    if piece is None or piece.piece_type != chess.PAWN or piece.color != color:
        return False
    rank = destination[1]
    return (color == chess.WHITE and rank == "8") or (color == chess.BLACK and rank == "1")


def normalize_choice(piece: str) -> str:
    letter = str(piece).strip().lower()
    names = {c["name"]: c["piece"] for c in PROMOTION_CHOICES}
    letter = names.get(letter, letter)
    if letter not in PROMOTION_LETTERS:
        raise ValueError(f"promotion piece must be one of {', '.join(PROMOTION_LETTERS)}, got {piece!r}")
    return letter
