"""Live game sessions keyed by id, with idle expiry and the evaluator readiness hook."""
from __future__ import annotations

import logging
import threading
import time
from typing import Dict, List, Optional

from .config import Settings
from .evaluation import Evaluator
from .referee import color_from_name
from .session import GameSession

log = logging.getLogger("registry")


class SessionRegistry:
    def __init__(self, settings: Settings, evaluator: Optional[Evaluator] = None):
        self.settings = settings
        self.evaluator = evaluator
        self._sessions: Dict[str, GameSession] = {}
        self._lock = threading.Lock()

    def create(self, human_plays: str | None = None, fen: str | None = None) -> GameSession:
        """Build and start a session. Must run on the event loop (it schedules the first cycle)."""
        human_color = color_from_name(human_plays or self.settings.human_color)
        session = GameSession(
            human_color=human_color,
            opponent_name=self.settings.opponent_name,
            evaluator=self.evaluator,
            opponent_delay_s=self.settings.opponent_delay_s,
            new_game_delay_s=self.settings.new_game_delay_s,
            eval_timeout_s=self.settings.eval_timeout_s,
            starting_fen=fen or None,
        )
        with self._lock:
            self._sessions[session.id] = session
        session.start()
        log.info("Created session %s (human plays %s)", session.id, human_plays or self.settings.human_color)
        return session

    def get(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def sessions(self) -> List[GameSession]:
        with self._lock:
            return list(self._sessions.values())

    def remove_stale(self, max_age_s: int | None = None) -> List[GameSession]:
        """Drop sessions idle for longer than the TTL; returns them so the caller can close them."""
        max_age_s = self.settings.session_ttl_s if max_age_s is None else max_age_s
        now = time.time()
        with self._lock:
            expired = [sid for sid, sess in self._sessions.items() if now - sess.updated_at > max_age_s]
            removed = [self._sessions.pop(sid) for sid in expired]
        if removed:
            log.info("Dropped %d idle session(s)", len(removed))
        return removed

    async def start_evaluator(self) -> None:
        """Start the evaluator once; when it is ready every live session gets one cycle."""
        if self.evaluator is None:
            return
        try:
            await self.evaluator.start()
        except Exception as e:
            log.warning("Evaluator %s unavailable (%s); opponent will play random moves", self.evaluator.name, e)
            return
        for session in self.sessions():
            session.on_evaluator_ready()

    async def close(self) -> None:
        for session in self.sessions():
            await session.close()
        if self.evaluator is not None and getattr(self.evaluator, "ready", False):
            await self.evaluator.close()
