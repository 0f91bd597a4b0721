"""
Play one game in the terminal against the opponent mover.

Type square names the way you would click them (e.g. 'e2' then 'e4'), a piece letter
(q/r/b/n) when asked to promote, 'cancel' to close the promotion prompt, 'new' for a
new game and 'quit' to leave.
"""
import argparse
import asyncio
import dataclasses
import logging

try:
    import chess
except ModuleNotFoundError as e:
    raise SystemExit(f"Failed to load python-chess (rules engine): {e}. Install it with 'pip install chess'.")

from clickchess.board_view import render_text
from clickchess.config import EVALUATOR_KINDS, SETTINGS
from clickchess.evaluation import build_evaluator
from clickchess.session import GameSession

log = logging.getLogger("play_one")


def print_view(view: dict) -> None:
    human = view["panels"]["human"]
    opponent = view["panels"]["opponent"]
    print()
    print(render_text(view["board"]))
    print(f"{human['name']}: {human['probability']}   {opponent['name']}: {opponent['probability']}   Leading: {view['who_is_winning']}")
    if view["last_opponent_move"]:
        print(f"Last opponent move: {view['last_opponent_move']}")
    print(view["status"])


async def play(session: GameSession) -> None:
    evaluator = session.evaluator
    if evaluator is not None:
        try:
            await evaluator.start()
        except Exception as e:
            log.warning("Evaluator %s unavailable (%s); opponent will play random moves", evaluator.name, e)
    session.start()
    await session.drain()
    print_view(session.view())
    try:
        while True:
            prompt = "Promote to (q/r/b/n, cancel): " if session.pending_promotion else "Square: "
            raw = (await asyncio.to_thread(input, prompt)).strip().lower()
            if not raw:
                continue
            if raw in ("quit", "exit"):
                break
            try:
                if raw == "new":
                    session.new_game()
                elif session.pending_promotion is not None:
                    if raw == "cancel":
                        session.dismiss_promotion()
                    else:
                        session.choose_promotion(raw)
                else:
                    session.click(raw)
            except ValueError as e:
                print(e)
                continue
            await session.drain()
            print_view(session.view())
    finally:
        await session.close()
        if evaluator is not None and evaluator.ready:
            await evaluator.close()


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--evaluator", choices=EVALUATOR_KINDS, default=None, help="Opponent move source (overrides settings)")
    ap.add_argument("--human-plays", choices=["white", "black"], default=None)
    ap.add_argument("--fen", default=None, help="Optional starting position")
    ap.add_argument("--log-level", default="WARNING", help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    overrides = {}
    if args.evaluator:
        overrides["evaluator"] = args.evaluator
    if args.human_plays:
        overrides["human_color"] = args.human_plays
    settings = dataclasses.replace(SETTINGS, **overrides)

    session = GameSession(
        human_color=chess.WHITE if settings.human_color == "white" else chess.BLACK,
        opponent_name=settings.opponent_name,
        evaluator=build_evaluator(settings),
        opponent_delay_s=settings.opponent_delay_s,
        new_game_delay_s=settings.new_game_delay_s,
        eval_timeout_s=settings.eval_timeout_s,
        starting_fen=args.fen,
    )
    try:
        asyncio.run(play(session))
    except (KeyboardInterrupt, EOFError):
        pass
