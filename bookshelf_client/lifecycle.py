from __future__ import annotations

import asyncio
from concurrent.futures import Future
from enum import Enum
import logging
import threading
from typing import Any

from bookshelf_client.session import SessionManager

logger = logging.getLogger(__name__)


class AppLifecycle(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


class ForegroundRevalidator:
    """Re-checks the session whenever the application comes back to the foreground.

    ``on_lifecycle_change`` may be called from the event loop itself or, when a
    loop was given, from any other thread (a GUI main loop for instance).
    Revalidations are fire-and-forget; overlapping ones are allowed and the
    last to finish decides the state.
    """

    def __init__(
        self,
        session: SessionManager,
        loop: asyncio.AbstractEventLoop | None = None,
        initial_state: AppLifecycle = AppLifecycle.ACTIVE,
    ):
        self._session = session
        self._loop = loop
        self._current = initial_state
        self._state_lock = threading.Lock()
        self._pending: set[Any] = set()

    @property
    def current_state(self) -> AppLifecycle:
        return self._current

    def on_lifecycle_change(self, new_state: AppLifecycle) -> bool:
        """Record the new lifecycle state; returns True if a revalidation was scheduled."""
        with self._state_lock:
            previous = self._current
            self._current = new_state

        if new_state is not AppLifecycle.ACTIVE or previous is AppLifecycle.ACTIVE:
            return False

        logger.debug("App returned to foreground (%s -> active), revalidating session", previous.value)
        self._schedule()
        return True

    async def wait_pending(self) -> None:
        """Wait for revalidations scheduled on the current loop."""
        tasks = [task for task in self._pending if isinstance(task, asyncio.Future)]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _schedule(self) -> None:
        running_loop = _running_loop()
        if self._loop is None and running_loop is None:
            raise RuntimeError("ForegroundRevalidator needs a running loop or an explicit loop")
        if self._loop is None or self._loop is running_loop:
            task = asyncio.ensure_future(self._session.revalidate())
        else:
            task = asyncio.run_coroutine_threadsafe(self._session.revalidate(), self._loop)
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Future[None] | Future[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Foreground revalidation failed: %s", error)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
