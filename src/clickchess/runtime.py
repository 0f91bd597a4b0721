"""
EventLoopThread: one asyncio loop on a daemon thread.

Sessions live on this loop; request threads hand work over with call()/submit()
so session state is only ever mutated from the loop thread.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable

log = logging.getLogger("runtime")


class EventLoopThread:
    def __init__(self, name: str = "clickchess-loop", call_timeout_s: float = 30.0):
        self.loop = asyncio.new_event_loop()
        self.call_timeout_s = call_timeout_s
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> "EventLoopThread":
        if not self.running:
            self._thread.start()
        return self

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def submit(self, coro: Awaitable[Any]) -> concurrent.futures.Future:
        """Schedule a coroutine on the loop without waiting for it."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Awaitable[Any], timeout: float | None = None) -> Any:
        return self.submit(coro).result(timeout or self.call_timeout_s)

    def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a plain function on the loop thread and return its result (exceptions propagate)."""
        async def _invoke():
            return fn(*args)
        return self.run(_invoke())

    def stop(self, timeout: float = 5.0) -> None:
        if not self.running:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout)
        log.debug("Event loop stopped")
