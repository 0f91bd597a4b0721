"""
Referee: the single source of truth for legality and game state.

- Owns a python-chess Board and applies moves submitted as {source, destination, promotion}.
- Exposes per-square piece snapshots, legal destinations with capture/castle/promotion flags,
  and the terminal-state predicates the status line is built from.

Nothing outside this module inspects chess rules; callers only ask questions.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import chess

PROMOTION_LETTERS = ("q", "r", "b", "n")


def parse_square(name: str) -> chess.Square:
    """Return the square index for an algebraic name like 'e4'; ValueError if unknown."""
    try:
        return chess.parse_square(str(name).strip().lower())
    except ValueError:
        raise ValueError(f"unknown square {name!r}") from None


def color_name(color: chess.Color) -> str:
    return "white" if color == chess.WHITE else "black"


def color_from_name(name: str) -> chess.Color:
    name = str(name).strip().lower()
    if name not in ("white", "black"):
        raise ValueError(f"color must be 'white' or 'black', got {name!r}")
    return chess.WHITE if name == "white" else chess.BLACK


@dataclass(frozen=True)
class Destination:
    """One legal target square for a selected piece."""
    square: str
    capture: bool = False
    castle: bool = False
    promotion: bool = False


class Referee:
    """Plain chess referee around a python-chess Board."""

    def __init__(self, starting_fen: str | None = None):
        # chess.Board raises ValueError on a malformed FEN
        self.board = chess.Board(fen=starting_fen) if starting_fen else chess.Board()
        self.starting_fen = self.board.fen()

    # ---------------- Snapshots -----------------
    @property
    def turn(self) -> chess.Color:
        return self.board.turn

    def fen(self) -> str:
        return self.board.fen()

    def piece_at(self, square: str) -> Optional[chess.Piece]:
        return self.board.piece_at(parse_square(square))

    def piece_map(self) -> dict[str, chess.Piece]:
        return {chess.square_name(sq): pc for sq, pc in self.board.piece_map().items()}

    def legal_destinations(self, source: str) -> list[Destination]:
        """Legal targets for the piece on `source`, one entry per destination square."""
        src = parse_square(source)
        seen: dict[str, Destination] = {}
        for mv in self.board.legal_moves:
            if mv.from_square != src:
                continue
            name = chess.square_name(mv.to_square)
            if name in seen:
                # Under-promotions share the destination of the queen promotion
                continue
            seen[name] = Destination(
                square=name,
                capture=self.board.is_capture(mv),
                castle=self.board.is_castling(mv),
                promotion=mv.promotion is not None,
            )
        return list(seen.values())

    def legal_moves(self) -> list[chess.Move]:
        return list(self.board.legal_moves)

    # ---------------- Move Application -----------------
    def submit(self, source: str, destination: str, promotion: str | None = None) -> bool:
        """Apply a move if legal. Returns False (and leaves the position untouched) otherwise."""
        try:
            src = parse_square(source)
            dst = parse_square(destination)
        except ValueError:
            return False
        piece_type = None
        if promotion:
            letter = promotion.lower()
            if letter not in PROMOTION_LETTERS:
                return False
            piece_type = chess.Piece.from_symbol(letter).piece_type
        mv = chess.Move(src, dst, promotion=piece_type)
        if mv not in self.board.legal_moves:
            return False
        self.board.push(mv)
        return True

    def reset(self) -> None:
        self.board = chess.Board(fen=self.starting_fen)

    # ---------------- Predicates -----------------
    def is_check(self) -> bool:
        return self.board.is_check()

    def is_checkmate(self) -> bool:
        return self.board.is_checkmate()

    def is_stalemate(self) -> bool:
        return self.board.is_stalemate()

    def is_threefold_repetition(self) -> bool:
        return self.board.is_repetition(3)

    def is_insufficient_material(self) -> bool:
        return self.board.is_insufficient_material()

    def is_other_draw(self) -> bool:
        return self.board.is_fifty_moves() or self.board.is_seventyfive_moves()

    def is_game_over(self) -> bool:
        return (
            self.is_checkmate()
            or self.is_stalemate()
            or self.is_threefold_repetition()
            or self.is_insufficient_material()
            or self.is_other_draw()
        )
