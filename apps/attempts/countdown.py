"""Deadline-backed countdown for timed attempts."""

from __future__ import annotations

import math
import time
from typing import Callable


class Countdown:
    """Whole-second countdown that can never outlive its monotonic deadline.

    ``tick`` is the once-per-second notification from a periodic timer. Each
    tick takes one second off, clamped to what the deadline says is left, so
    a lagging event loop catches up instead of drifting.
    """

    def __init__(self, seconds: int, *, clock: Callable[[], float] = time.monotonic) -> None:
        if seconds < 0:
            raise ValueError("countdown seconds must be >= 0")
        self._clock = clock
        self._deadline = clock() + seconds
        self._remaining = int(seconds)

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def expired(self) -> bool:
        return self._remaining <= 0

    @property
    def deadline(self) -> float:
        return self._deadline

    def _by_deadline(self) -> int:
        return max(0, math.ceil(self._deadline - self._clock()))

    def tick(self) -> int:
        if self._remaining > 0:
            self._remaining = max(0, min(self._remaining - 1, self._by_deadline()))
        return self._remaining

    def sync(self) -> int:
        """Re-read the clock without consuming a tick."""
        if self._remaining > 0:
            self._remaining = min(self._remaining, self._by_deadline())
        return self._remaining

    def expire(self) -> None:
        self._remaining = 0


def format_remaining(seconds: int | None) -> str:
    if seconds is None:
        return "untimed"
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


__all__ = ["Countdown", "format_remaining"]
