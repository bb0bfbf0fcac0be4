"""Timed assessment attempts."""
from .attempt import Attempt, AttemptState, AttemptStatus, AttemptSummary, SubmitOutcome
from .countdown import Countdown, format_remaining
from .registry import AttemptRegistry
from .timer import AttemptTimer

__all__ = [
    "Attempt",
    "AttemptRegistry",
    "AttemptState",
    "AttemptStatus",
    "AttemptSummary",
    "AttemptTimer",
    "Countdown",
    "SubmitOutcome",
    "format_remaining",
]
