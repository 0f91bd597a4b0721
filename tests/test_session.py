import asyncio
import random
import unittest

import chess

from clickchess.evaluation import FunctionEvaluator
from clickchess.session import GameSession
from clickchess.status import CALCULATING, NOT_APPLICABLE

PROMOTION_FEN = "8/4P3/8/8/8/k7/8/4K3 w - - 0 1"


def _scripted(replies, prob=0.5):
    """Evaluator that recommends `replies` in order whenever black is to move."""
    replies = list(replies)

    async def fn(fen):
        board = chess.Board(fen)
        if board.turn == chess.BLACK and replies:
            return {"prob": prob, "best_move": replies.pop(0)}
        return {"prob": prob, "best_move": None}

    return FunctionEvaluator(fn, name="scripted")


class SessionTestCase(unittest.IsolatedAsyncioTestCase):
    async def make_session(self, evaluator=None, **kw):
        if evaluator is not None:
            await evaluator.start()
        kw.setdefault("opponent_delay_s", 0)
        kw.setdefault("new_game_delay_s", 0)
        session = GameSession(evaluator=evaluator, rng=random.Random(1), **kw)
        self.addAsyncCleanup(session.close)
        session.start()
        await session.drain()
        return session

    def assertExclusive(self, session):
        self.assertFalse(session.selection.active and session.pending_promotion is not None)

    async def play(self, session, *squares):
        for sq in squares:
            session.click(sq)
            self.assertExclusive(session)
        await session.drain()


class SelectionTests(SessionTestCase):
    async def test_select_and_highlight(self):
        s = await self.make_session()
        view = s.click("e2")
        self.assertEqual(view["selected"], "e2")
        cells = {c["square"]: c for row in view["board"] for c in row}
        self.assertEqual(cells["e2"]["highlight"], "sel")
        self.assertEqual(cells["e3"]["highlight"], "move")
        self.assertEqual(cells["e4"]["highlight"], "move")
        self.assertIsNone(cells["d3"]["highlight"])

    async def test_clicks_on_empty_or_enemy_cells_do_nothing_without_selection(self):
        s = await self.make_session()
        self.assertIsNone(s.click("e4")["selected"])
        self.assertIsNone(s.click("e7")["selected"])

    async def test_reselect_own_piece(self):
        s = await self.make_session()
        s.click("e2")
        self.assertEqual(s.click("g1")["selected"], "g1")
        self.assertEqual(s.click("g1")["selected"], "g1")

    async def test_click_outside_legal_set_never_mutates(self):
        s = await self.make_session()
        fen = s.referee.fen()
        s.click("e2")
        view = s.click("e5")
        self.assertIsNone(view["selected"])
        self.assertEqual(s.referee.fen(), fen)
        await s.drain()
        self.assertEqual(s.referee.fen(), fen)

    async def test_legal_move_then_random_reply(self):
        s = await self.make_session()
        s.click("e2")
        view = s.click("e4")
        self.assertEqual(view["status"], "Mahmoud to move.")
        self.assertEqual(view["board"][4][4]["piece"], "wp")
        self.assertTrue(view["panels"]["opponent"]["active"])
        self.assertFalse(view["panels"]["human"]["active"])
        await s.drain()
        self.assertEqual(s.referee.turn, chess.WHITE)
        self.assertEqual(s.status, "You to move.")
        self.assertEqual(len(s.referee.board.move_stack), 2)
        self.assertEqual(s.last_opponent_move, s.referee.board.peek().uci())

    async def test_clicks_ignored_on_opponent_turn(self):
        s = await self.make_session(opponent_delay_s=60)
        await self.play(s, "e2")
        s.click("e4")
        fen = s.referee.fen()
        view = s.click("e7")
        self.assertIsNone(view["selected"])
        self.assertEqual(s.referee.fen(), fen)

    async def test_unknown_square(self):
        s = await self.make_session()
        with self.assertRaises(ValueError):
            s.click("z9")


class PromotionTests(SessionTestCase):
    async def test_promotion_routes_through_modal(self):
        s = await self.make_session(starting_fen=PROMOTION_FEN)
        fen = s.referee.fen()
        s.click("e7")
        view = s.click("e8")
        self.assertExclusive(s)
        self.assertTrue(view["promotion"]["open"])
        self.assertEqual(view["promotion"]["pending"], {"from": "e7", "to": "e8", "color": "white"})
        self.assertEqual([c["piece"] for c in view["promotion"]["choices"]], ["q", "r", "b", "n"])
        self.assertIsNone(view["selected"])
        self.assertEqual(s.referee.fen(), fen)

        # Board clicks wait for the modal
        s.click("e1")
        self.assertIsNone(s.selection.source)

        view = s.choose_promotion("rook")
        self.assertFalse(view["promotion"]["open"])
        self.assertEqual(s.referee.piece_at("e8"), chess.Piece(chess.ROOK, chess.WHITE))
        await s.drain()
        self.assertEqual(s.referee.turn, chess.WHITE)

    async def test_dismiss_discards_pending_move(self):
        s = await self.make_session(starting_fen=PROMOTION_FEN)
        fen = s.referee.fen()
        await self.play(s, "e7", "e8")
        view = s.dismiss_promotion()
        self.assertFalse(view["promotion"]["open"])
        self.assertIsNone(s.pending_promotion)
        self.assertEqual(s.referee.fen(), fen)
        self.assertEqual(s.click("e7")["selected"], "e7")

    async def test_illegal_last_rank_target_skips_modal(self):
        s = await self.make_session(starting_fen=PROMOTION_FEN)
        s.click("e7")
        view = s.click("d8")
        self.assertFalse(view["promotion"]["open"])
        self.assertIsNone(view["selected"])

    async def test_bad_choice(self):
        s = await self.make_session(starting_fen=PROMOTION_FEN)
        await self.play(s, "e7", "e8")
        with self.assertRaises(ValueError):
            s.choose_promotion("king")
        self.assertIsNotNone(s.pending_promotion)


class OpponentCycleTests(SessionTestCase):
    async def test_balanced_evaluation(self):
        s = await self.make_session(_scripted(["e7e5"], prob=0.5))
        self.assertEqual(s.displays.who_is_winning, "Balanced")
        await self.play(s, "e2", "e4")
        self.assertEqual(s.last_opponent_move, "e7e5")
        view = s.view()
        self.assertEqual(view["panels"]["human"]["probability"], "50%")
        self.assertEqual(view["panels"]["opponent"]["probability"], "50%")
        self.assertEqual(view["who_is_winning"], "Balanced")

    async def test_leading_labels(self):
        s = await self.make_session(_scripted([], prob=0.637))
        self.assertEqual((s.displays.human_probability, s.displays.opponent_probability), ("64%", "36%"))
        self.assertEqual(s.displays.who_is_winning, "You")
        s = await self.make_session(_scripted([], prob=0.2), opponent_name="Deep Blue")
        self.assertEqual(s.displays.who_is_winning, "Deep Blue")

    async def test_failing_evaluator_falls_back_to_random(self):
        async def broken(fen):
            raise ConnectionError("evaluation service down")

        s = await self.make_session(FunctionEvaluator(broken))
        with self.assertLogs("session", level="WARNING"):
            await self.play(s, "e2", "e4")
        self.assertEqual(s.referee.turn, chess.WHITE)
        self.assertIsNotNone(s.last_opponent_move)
        self.assertEqual(s.displays.human_probability, CALCULATING)

    async def test_malformed_reply_falls_back_to_random(self):
        async def malformed(fen):
            return {"prob": "likely", "best_move": "e7e5"}

        s = await self.make_session(FunctionEvaluator(malformed))
        await self.play(s, "e2", "e4")
        self.assertEqual(s.referee.turn, chess.WHITE)

    async def test_inapplicable_move_falls_back_to_random(self):
        s = await self.make_session(_scripted(["e2e4"]))
        await self.play(s, "d2", "d4")
        self.assertEqual(s.referee.turn, chess.WHITE)
        self.assertNotEqual(s.last_opponent_move, "e2e4")

    async def test_timeout_falls_back_to_random(self):
        async def slow(fen):
            await asyncio.sleep(5)

        s = await self.make_session(FunctionEvaluator(slow), eval_timeout_s=0.01)
        await self.play(s, "e2", "e4")
        self.assertEqual(s.referee.turn, chess.WHITE)

    async def test_promotion_letter_retried_as_queen(self):
        s = await self.make_session(_scripted(["a2a1x"]), starting_fen="4k3/8/8/8/8/8/p7/4K3 b - - 0 1")
        self.assertEqual(s.last_opponent_move, "a2a1q")
        self.assertEqual(s.referee.piece_at("a1"), chess.Piece(chess.QUEEN, chess.BLACK))

    async def test_opponent_moves_first_when_human_plays_black(self):
        s = await self.make_session(human_color=chess.BLACK)
        self.assertEqual(s.referee.turn, chess.BLACK)
        self.assertEqual(s.status, "You to move.")
        self.assertEqual(s.view()["board"][0][0]["square"], "h1")

    async def test_readiness_signal_triggers_a_cycle(self):
        ev = FunctionEvaluator(lambda fen: asyncio.sleep(0, {"prob": 0.75, "best_move": None}))
        s = GameSession(evaluator=ev, opponent_delay_s=0, new_game_delay_s=0)
        self.addAsyncCleanup(s.close)
        s.start()
        await s.drain()
        self.assertEqual(s.displays.human_probability, CALCULATING)
        await ev.start()
        s.on_evaluator_ready()
        await s.drain()
        self.assertEqual(s.displays.human_probability, "75%")

    async def test_stale_evaluation_is_discarded_after_new_game(self):
        entered = asyncio.Event()
        release = asyncio.Event()
        calls = []

        async def gated(fen):
            calls.append(fen)
            prob = 0.1 if len(calls) == 1 else 0.9
            entered.set()
            await release.wait()
            return {"prob": prob, "best_move": "e7e5"}

        ev = FunctionEvaluator(gated)
        await ev.start()
        s = GameSession(evaluator=ev, opponent_delay_s=0, new_game_delay_s=0)
        self.addAsyncCleanup(s.close)
        s.click("e2")
        s.click("e4")
        await entered.wait()
        with self.assertLogs("session", level="INFO") as logs:
            s.new_game()
            release.set()
            await s.drain()
        self.assertTrue(any("stale" in line for line in logs.output))
        self.assertEqual(len(calls), 2)
        self.assertEqual(s.referee.fen(), chess.STARTING_FEN)
        self.assertIsNone(s.last_opponent_move)
        self.assertEqual(s.displays.human_probability, "90%")


class GameOverTests(SessionTestCase):
    async def test_fools_mate(self):
        s = await self.make_session(_scripted(["e7e5", "d8h4"]))
        await self.play(s, "f2", "f3")
        await self.play(s, "g2", "g4")
        view = s.view()
        self.assertTrue(view["game_over"])
        self.assertEqual(view["status"], "Checkmate. Mahmoud won!")
        self.assertEqual(view["who_is_winning"], "Mahmoud won!")
        self.assertEqual(view["panels"]["human"]["probability"], NOT_APPLICABLE)
        self.assertEqual(view["panels"]["opponent"]["probability"], NOT_APPLICABLE)
        self.assertFalse(view["panels"]["human"]["active"])
        self.assertFalse(view["panels"]["opponent"]["active"])

        fen = s.referee.fen()
        self.assertIsNone(s.click("a2")["selected"])
        await s.drain()
        self.assertEqual(s.referee.fen(), fen)

        # Terminal positions make the opponent cycle a no-op
        await s.opponent_cycle()
        self.assertEqual(s.displays.human_probability, NOT_APPLICABLE)

    async def test_new_game_resets_everything(self):
        s = await self.make_session()
        await self.play(s, "e2", "e4")
        s.click("d2")
        view = s.new_game()
        self.assertEqual(view["generation"], 1)
        self.assertEqual(view["fen"], chess.STARTING_FEN)
        self.assertIsNone(view["selected"])
        self.assertIsNone(view["last_opponent_move"])
        self.assertFalse(view["promotion"]["open"])
        self.assertEqual(view["status"], "You to move.")
        await s.drain()
        self.assertEqual(s.referee.fen(), chess.STARTING_FEN)

    async def test_listeners_receive_views(self):
        s = await self.make_session()
        seen = []
        s.subscribe(seen.append)
        s.click("e2")
        self.assertEqual(seen[-1]["selected"], "e2")
        s.unsubscribe(seen.append)
        s.click("d2")
        self.assertEqual(seen[-1]["selected"], "e2")


if __name__ == "__main__":
    unittest.main()
