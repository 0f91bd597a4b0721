"""Click selection state for the human side: one source square and its legal targets."""
from __future__ import annotations

from dataclasses import dataclass, field

import chess

from .board_view import highlight_map
from .referee import Destination, Referee


@dataclass
class Selection:
    source: str | None = None
    destinations: list[Destination] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return self.source is not None

    def select(self, referee: Referee, square: str) -> None:
        # Always queried fresh; legality is never cached across positions
        self.source = square
        self.destinations = referee.legal_destinations(square)

    def clear(self) -> None:
        self.source = None
        self.destinations = []

    def targets(self) -> set[str]:
        return {d.square for d in self.destinations}

    def highlights(self) -> dict[str, str]:
        return highlight_map(self.source, self.destinations)


def owns_piece(referee: Referee, square: str, color: chess.Color) -> bool:
    piece = referee.piece_at(square)
    return piece is not None and piece.color == color
