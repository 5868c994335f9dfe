"""Periodic tick driver for the attendance session.

Runs as an asyncio task while the session is working and is cancelled the
moment it stops, so no tick loop outlives the state that needs it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class SessionTicker:
    """Calls ``on_tick`` every ``interval`` seconds until stopped."""

    def __init__(self, on_tick: Callable[[], object], interval: float | None = None) -> None:
        if interval is None:
            from opano.config import settings
            interval = settings.ATTENDANCE_TICK_SECONDS

        self._on_tick = on_tick
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start ticking on the running loop. Returns False if there is none."""
        self.stop()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; attendance ticks are caller-driven")
            return False
        self._task = loop.create_task(self._run())
        return True

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._on_tick()
            except Exception:
                logger.exception("Attendance tick failed")
