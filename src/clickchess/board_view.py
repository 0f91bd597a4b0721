"""Board rendering: turns a Referee snapshot plus highlights into a serializable 8x8 grid."""
from __future__ import annotations

from typing import Iterable

import chess

from .referee import Destination, Referee

FILES = "abcdefgh"

GLYPHS = {
    "wp": "♙", "wr": "♖", "wn": "♘", "wb": "♗", "wq": "♕", "wk": "♔",
    "bp": "♟", "br": "♜", "bn": "♞", "bb": "♝", "bq": "♛", "bk": "♚",
}


def piece_code(piece: chess.Piece) -> str:
    """'wp', 'bk', ... as used by the board stylesheet."""
    return ("w" if piece.color == chess.WHITE else "b") + piece.symbol().lower()


def piece_to_glyph(code: str) -> str:
    return GLYPHS.get(code, "?")


def highlight_map(source: str | None, destinations: Iterable[Destination]) -> dict[str, str]:
    """Map square -> highlight class for a selection."""
    marks: dict[str, str] = {}
    if source is None:
        return marks
    marks[source] = "sel"
    for dest in destinations:
        if dest.castle:
            marks[dest.square] = "castle"
        else:
            marks[dest.square] = "capture" if dest.capture else "move"
    return marks


def square_order(bottom: chess.Color) -> list[list[str]]:
    """Rows of square names, top row first, with `bottom` side's back rank at the bottom."""
    ranks = range(8, 0, -1) if bottom == chess.WHITE else range(1, 9)
    files = FILES if bottom == chess.WHITE else FILES[::-1]
    return [[f"{f}{r}" for f in files] for r in ranks]


def render_board(referee: Referee, bottom: chess.Color = chess.WHITE, highlights: dict[str, str] | None = None) -> list[list[dict]]:
    highlights = highlights or {}
    pieces = referee.piece_map()
    rows = []
    for row in square_order(bottom):
        cells = []
        for name in row:
            f = FILES.index(name[0])
            r = int(name[1])
            piece = pieces.get(name)
            code = piece_code(piece) if piece else None
            cells.append({
                "square": name,
                # a8 is a light square
                "shade": "light" if (r + f) % 2 == 0 else "dark",
                "piece": code,
                "glyph": piece_to_glyph(code) if code else "",
                "highlight": highlights.get(name),
            })
        rows.append(cells)
    return rows


def render_text(rows: list[list[dict]]) -> str:
    """Plain text board for terminals; selected square in brackets, targets marked with '*'."""
    lines = []
    for row in rows:
        rank = row[0]["square"][1]
        parts = []
        for cell in row:
            glyph = cell["glyph"] or "·"
            mark = cell["highlight"]
            if mark == "sel":
                parts.append(f"[{glyph}]")
            elif mark:
                parts.append(f"*{glyph} ")
            else:
                parts.append(f" {glyph} ")
        lines.append(f"{rank} " + "".join(parts))
    files = "".join(f" {cell['square'][0]} " for cell in rows[0])
    lines.append("  " + files)
    return "\n".join(lines)
