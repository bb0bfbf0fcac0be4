"""Timed, multi-question assessment attempt."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Literal, Protocol, Sequence

from pydantic import BaseModel, Field

from codeassess.core.errors import AttemptClosed, SubmissionInProgress
from codeassess.core.journal import SubmissionRecorder
from codeassess.core.models import Question, Submission, TestCase

from apps.judge.grading import GradeReport, score_for

from .countdown import Countdown

LOGGER = logging.getLogger(__name__)

PASS_ACCURACY = 70.0

TerminalReason = Literal["completed", "timeout"]


class Grader(Protocol):
    async def grade(self, code: str, language: str, test_cases: Sequence[TestCase]) -> GradeReport: ...


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    TERMINAL = "terminal"


class AttemptSummary(BaseModel):
    """Results view shown once an attempt is over."""

    total_questions: int
    answered: int
    correct: int
    incorrect: int
    unanswered: int
    accuracy: int = Field(..., description="Percent correct among answered questions.")
    overall_score: int = Field(..., description="Percent correct among all questions; unanswered count as wrong.")
    passed_threshold: bool
    reason: TerminalReason | None = None


class AttemptState(BaseModel):
    attempt_id: str
    assessment_id: str
    user_id: str | None = None
    status: AttemptStatus
    index: int
    total_questions: int
    current_question_id: str
    remaining_seconds: int | None = None
    submitting: bool = False
    results: Dict[str, bool] = Field(default_factory=dict)
    summary: AttemptSummary | None = None


@dataclass(slots=True)
class SubmitOutcome:
    applied: bool
    question_id: str
    index: int
    report: GradeReport
    submission: Submission
    persistence_error: str | None = None


class Attempt:
    """One candidate's pass through an ordered list of questions.

    Exactly one submit may be in flight. Results that come back for a
    question the attempt has since left (or after it turned terminal) are
    dropped rather than applied.
    """

    def __init__(
        self,
        assessment_id: str,
        questions: Sequence[Question],
        *,
        grader: Grader,
        time_limit_minutes: float | None = None,
        user_id: str | None = None,
        recorder: SubmissionRecorder | None = None,
        attempt_id: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not questions:
            raise ValueError("An attempt needs at least one question")
        if time_limit_minutes is not None and time_limit_minutes <= 0:
            raise ValueError("time_limit_minutes must be positive when set")
        self.attempt_id = attempt_id or uuid.uuid4().hex
        self.assessment_id = assessment_id
        self.user_id = user_id
        self.questions: List[Question] = list(questions)
        self._grader = grader
        self._recorder = recorder
        self._index = 0
        self._results: Dict[str, bool] = {}
        self._submissions: Dict[str, Submission] = {}
        self._terminal_reason: TerminalReason | None = None
        self._in_flight = False
        self._terminal_listeners: List[Callable[["Attempt"], None]] = []
        self._countdown = (
            Countdown(int(round(time_limit_minutes * 60)), clock=clock) if time_limit_minutes is not None else None
        )

    @classmethod
    def start(
        cls,
        assessment_id: str,
        questions: Sequence[Question],
        time_limit_minutes: float | None = None,
        **kwargs,
    ) -> "Attempt":
        attempt = cls(assessment_id, questions, time_limit_minutes=time_limit_minutes, **kwargs)
        LOGGER.info(
            "Attempt started",
            extra={
                "attempt_id": attempt.attempt_id,
                "assessment_id": assessment_id,
                "questions": len(attempt.questions),
                "time_limit_minutes": time_limit_minutes,
            },
        )
        return attempt

    # ------------------------------------------------------------------

    @property
    def index(self) -> int:
        return self._index

    @property
    def last_index(self) -> int:
        return len(self.questions) - 1

    @property
    def terminal(self) -> bool:
        return self._terminal_reason is not None

    @property
    def terminal_reason(self) -> TerminalReason | None:
        return self._terminal_reason

    @property
    def timed(self) -> bool:
        return self._countdown is not None

    @property
    def remaining_seconds(self) -> int | None:
        return self._countdown.remaining if self._countdown is not None else None

    @property
    def submitting(self) -> bool:
        return self._in_flight

    @property
    def current_question(self) -> Question:
        return self.questions[self._index]

    @property
    def results(self) -> Dict[str, bool]:
        return dict(self._results)

    @property
    def submissions(self) -> Dict[str, Submission]:
        return dict(self._submissions)

    def add_terminal_listener(self, callback: Callable[["Attempt"], None]) -> None:
        self._terminal_listeners.append(callback)

    # ------------------------------------------------------------------

    async def submit(self, code: str) -> SubmitOutcome:
        self.sync_clock()
        if self.terminal:
            raise AttemptClosed(f"Attempt {self.attempt_id} is closed ({self._terminal_reason})")
        if self._in_flight:
            raise SubmissionInProgress(f"Attempt {self.attempt_id} already has a submission being graded")

        question = self.current_question
        issued_index = self._index
        self._in_flight = True
        try:
            report = await self._grader.grade(code, question.language, question.test_cases)
        finally:
            self._in_flight = False

        submission = report.to_submission(question.id, code, question.language)
        persistence_error = self._record(submission)

        self.sync_clock()
        if self.terminal or self._index != issued_index:
            LOGGER.info(
                "Discarding stale grading result",
                extra={
                    "attempt_id": self.attempt_id,
                    "question_id": question.id,
                    "issued_index": issued_index,
                    "current_index": self._index,
                    "terminal": self.terminal,
                },
            )
            return SubmitOutcome(
                applied=False,
                question_id=question.id,
                index=issued_index,
                report=report,
                submission=submission,
                persistence_error=persistence_error,
            )

        # Most recent submission per question wins.
        self._results[question.id] = submission.is_correct
        self._submissions[question.id] = submission
        if issued_index >= self.last_index:
            self._finish("completed")
        else:
            self._index = issued_index + 1
        return SubmitOutcome(
            applied=True,
            question_id=question.id,
            index=issued_index,
            report=report,
            submission=submission,
            persistence_error=persistence_error,
        )

    def tick(self) -> int | None:
        """One-second timer notification; expires the attempt at zero."""
        if self._countdown is None:
            return None
        if self.terminal:
            return self._countdown.remaining
        remaining = self._countdown.tick()
        if remaining <= 0:
            self._finish("timeout")
        return remaining

    def sync_clock(self) -> int | None:
        """Apply elapsed wall time without waiting for a tick."""
        if self._countdown is None or self.terminal:
            return self.remaining_seconds
        remaining = self._countdown.sync()
        if remaining <= 0:
            self._finish("timeout")
        return remaining

    def navigate(self, delta: int) -> int:
        self.sync_clock()
        if self.terminal:
            raise AttemptClosed(f"Attempt {self.attempt_id} is closed ({self._terminal_reason})")
        self._index = max(0, min(self.last_index, self._index + int(delta)))
        return self._index

    # ------------------------------------------------------------------

    def summary(self) -> AttemptSummary:
        total = len(self.questions)
        answered = len(self._results)
        correct = sum(1 for value in self._results.values() if value)
        accuracy = score_for(correct, answered)
        return AttemptSummary(
            total_questions=total,
            answered=answered,
            correct=correct,
            incorrect=answered - correct,
            unanswered=total - answered,
            accuracy=accuracy,
            overall_score=score_for(correct, total),
            passed_threshold=bool(answered) and (correct * 100) >= PASS_ACCURACY * answered,
            reason=self._terminal_reason,
        )

    def current_state(self) -> AttemptState:
        self.sync_clock()
        return AttemptState(
            attempt_id=self.attempt_id,
            assessment_id=self.assessment_id,
            user_id=self.user_id,
            status=AttemptStatus.TERMINAL if self.terminal else AttemptStatus.IN_PROGRESS,
            index=self._index,
            total_questions=len(self.questions),
            current_question_id=self.current_question.id,
            remaining_seconds=self.remaining_seconds,
            submitting=self._in_flight,
            results=dict(self._results),
            summary=self.summary() if self.terminal else None,
        )

    # ------------------------------------------------------------------

    def _record(self, submission: Submission) -> str | None:
        if self._recorder is None:
            return None
        try:
            self._recorder.record(submission, attempt_id=self.attempt_id, user_id=self.user_id)
        except Exception as exc:  # noqa: BLE001 - persistence is best effort
            LOGGER.exception(
                "Failed to record submission",
                extra={"attempt_id": self.attempt_id, "question_id": submission.question_id},
            )
            return f"{type(exc).__name__}: {exc}"
        return None

    def _finish(self, reason: TerminalReason) -> None:
        if self.terminal:
            return
        self._terminal_reason = reason
        if self._countdown is not None and reason == "timeout":
            self._countdown.expire()
        LOGGER.info(
            "Attempt finished",
            extra={"attempt_id": self.attempt_id, "reason": reason, "answered": len(self._results)},
        )
        for callback in list(self._terminal_listeners):
            callback(self)


__all__ = [
    "Attempt",
    "AttemptState",
    "AttemptStatus",
    "AttemptSummary",
    "Grader",
    "SubmitOutcome",
]
