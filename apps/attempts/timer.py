"""Background once-per-second ticker for a timed attempt."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from .attempt import Attempt

LOGGER = logging.getLogger(__name__)


class AttemptTimer:
    """Drives ``Attempt.tick`` from an asyncio task until stopped or terminal."""

    def __init__(self, attempt: Attempt, *, interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.attempt = attempt
        self.interval = interval
        self._task: asyncio.Task[None] | None = None
        attempt.add_terminal_listener(self._on_terminal)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.attempt.timed or self.attempt.terminal:
            return
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"attempt-timer-{self.attempt.attempt_id}")

    async def _run(self) -> None:
        while not self.attempt.terminal:
            await asyncio.sleep(self.interval)
            self.attempt.tick()
        LOGGER.debug("Attempt timer finished", extra={"attempt_id": self.attempt.attempt_id})

    def _on_terminal(self, _attempt: Attempt) -> None:
        task = self._task
        if task is None or task.done():
            return
        # Ending from inside our own tick: the loop exits on its own.
        with contextlib.suppress(RuntimeError):
            if asyncio.current_task() is task:
                return
        task.cancel()

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


__all__ = ["AttemptTimer"]
