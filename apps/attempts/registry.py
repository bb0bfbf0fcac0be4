"""In-process store of live attempts, one per session.

Finished attempts leave the live map as soon as they turn terminal; only
their final state is kept, in a bounded archive, so results stay readable.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict

from .attempt import Attempt, AttemptState

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_FINISHED = 256


class AttemptRegistry:
    def __init__(self, *, max_finished: int = DEFAULT_MAX_FINISHED) -> None:
        self._by_id: Dict[str, Attempt] = {}
        self._by_session: Dict[str, str] = {}
        self._finished: "OrderedDict[str, AttemptState]" = OrderedDict()
        self._max_finished = max_finished

    def add(self, attempt: Attempt, *, session_id: str | None = None) -> Attempt:
        """Register ``attempt``; a session's previous attempt is dropped."""
        self.sweep()
        if session_id is not None:
            previous = self._by_session.get(session_id)
            if previous is not None and previous != attempt.attempt_id:
                self._by_id.pop(previous, None)
                LOGGER.info(
                    "Replacing live attempt for session",
                    extra={"session_id": session_id, "previous": previous, "attempt_id": attempt.attempt_id},
                )
            self._by_session[session_id] = attempt.attempt_id
        self._by_id[attempt.attempt_id] = attempt
        attempt.add_terminal_listener(self._retire)
        if attempt.terminal:
            self._retire(attempt)
        return attempt

    def get(self, attempt_id: str) -> Attempt:
        try:
            return self._by_id[attempt_id]
        except KeyError:
            raise KeyError(f"Unknown attempt: {attempt_id}") from None

    def final_state(self, attempt_id: str) -> AttemptState | None:
        return self._finished.get(attempt_id)

    def for_session(self, session_id: str) -> Attempt | None:
        attempt_id = self._by_session.get(session_id)
        return self._by_id.get(attempt_id) if attempt_id else None

    def sweep(self) -> int:
        """Expire live attempts whose deadline has passed; returns how many retired."""
        before = len(self._by_id)
        for attempt in list(self._by_id.values()):
            attempt.sync_clock()
        return before - len(self._by_id)

    def discard(self, attempt_id: str) -> None:
        self._by_id.pop(attempt_id, None)
        for session_id, live_id in list(self._by_session.items()):
            if live_id == attempt_id:
                del self._by_session[session_id]

    def _retire(self, attempt: Attempt) -> None:
        if self._by_id.get(attempt.attempt_id) is not attempt:
            return
        self.discard(attempt.attempt_id)
        self._finished[attempt.attempt_id] = attempt.current_state()
        while len(self._finished) > self._max_finished:
            self._finished.popitem(last=False)
        LOGGER.info(
            "Retired finished attempt",
            extra={"attempt_id": attempt.attempt_id, "reason": attempt.terminal_reason},
        )

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, attempt_id: object) -> bool:
        return attempt_id in self._by_id


__all__ = ["AttemptRegistry", "DEFAULT_MAX_FINISHED"]
