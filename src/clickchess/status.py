"""
Status line and side panels.

Derives the human-readable status text, the win/draw label and the panel
indicators from the referee's terminal-state predicates. Probabilities are only
written here on game over (cleared to N/A); otherwise the opponent mover owns them.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

import chess

from .referee import Referee

HUMAN_LABEL = "You"
NOT_APPLICABLE = "N/A"
CALCULATING = "Calculating…"
UNSET = "--"
BALANCED = "Balanced"


@dataclass
class Displays:
    human_probability: str = UNSET
    opponent_probability: str = UNSET
    who_is_winning: str = ""
    human_active: bool = False
    opponent_active: bool = False

    def calculating(self) -> None:
        self.human_probability = CALCULATING
        self.opponent_probability = CALCULATING


def probability_pair(prob: float) -> tuple[int, int]:
    """Rounded (human, opponent) percentages summing to 100; halves round up."""
    human = int(math.floor(prob * 100 + 0.5))
    return human, 100 - human


def leading_label(human_pct: int, opponent_name: str) -> str:
    if human_pct == 50:
        return BALANCED
    return HUMAN_LABEL if human_pct > 50 else opponent_name


def terminal_status(referee: Referee, human_color: chess.Color, opponent_name: str) -> tuple[str, str] | None:
    """(status text, who-is-winning label) for a finished game, else None.

    Precedence: checkmate, stalemate, threefold repetition, insufficient material,
    other draw rule, unspecified game over.
    """
    if not referee.is_game_over():
        return None
    if referee.is_checkmate():
        # The side to move is the side that got mated
        winner = opponent_name if referee.turn == human_color else HUMAN_LABEL
        return f"Checkmate. {winner} won!", f"{winner} won!"
    if referee.is_stalemate():
        return "Stalemate. Draw!", "Draw!"
    if referee.is_threefold_repetition():
        return "Threefold repetition. Draw!", "Draw!"
    if referee.is_insufficient_material():
        return "Insufficient material. Draw!", "Draw!"
    if referee.is_other_draw():
        return "50-move rule. Draw!", "Draw!"
    return "Game Over.", "Game Over"


def update_status(referee: Referee, human_color: chess.Color, opponent_name: str, displays: Displays) -> str:
    """Recompute the status line and panel flags in place; returns the status text."""
    human_to_move = referee.turn == human_color
    finished = terminal_status(referee, human_color, opponent_name)
    if finished is not None:
        status, label = finished
        displays.who_is_winning = label
        displays.human_probability = NOT_APPLICABLE
        displays.opponent_probability = NOT_APPLICABLE
        displays.human_active = False
        displays.opponent_active = False
        return status

    status = f"{HUMAN_LABEL if human_to_move else opponent_name} to move."
    if referee.is_check():
        status += " You are in check!" if human_to_move else f" {opponent_name} is in check!"
    displays.human_active = human_to_move
    displays.opponent_active = not human_to_move
    return status
