"""Strict exact-match grading of a submission against a question's test cases."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence

from codeassess.core.errors import GradingInconclusive
from codeassess.core.models import Submission, SubmissionStatus, TestCase

from .broker import ExecutionResult

LOGGER = logging.getLogger(__name__)

ALL_PASSED = "All test cases passed!"
NO_TEST_CASES = "No test cases defined for this question."


class Executor(Protocol):
    async def execute(self, source: str, language: str, *, stdin: str | None = None) -> ExecutionResult: ...


def score_for(passed: int, total: int) -> int:
    """Percentage of passed cases, rounded half-up; 0 when there are no cases."""

    if total <= 0:
        return 0
    passed = max(0, min(passed, total))
    return (200 * passed + total) // (2 * total)


def outputs_match(actual: str, expected: str) -> bool:
    return actual.strip() == expected.strip()


def passed_summary(passed: int, total: int) -> str:
    return f"{passed} of {total} test cases passed."


@dataclass(slots=True)
class CaseOutcome:
    index: int
    input: str
    expected: str
    actual: str
    passed: bool
    exit_code: int
    duration_ms: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "input": self.input,
            "expected": self.expected,
            "actual": self.actual,
            "passed": self.passed,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
        }


@dataclass(slots=True)
class GradeReport:
    """Aggregate verdict for one grading run."""

    is_correct: bool
    score: int
    passed: int
    total: int
    output: str
    status: SubmissionStatus = "completed"
    cases: List[CaseOutcome] = field(default_factory=list)

    def to_submission(self, question_id: str, code: str, language: str) -> Submission:
        return Submission(
            question_id=question_id,
            code=code,
            language=language,
            is_correct=self.is_correct,
            score=self.score,
            passed=self.passed,
            total=self.total,
            output=self.output,
            status=self.status,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "is_correct": self.is_correct,
            "score": self.score,
            "passed": self.passed,
            "total": self.total,
            "output": self.output,
            "status": self.status,
            "cases": [case.as_dict() for case in self.cases],
        }


class GradingEngine:
    """Runs each test case through the broker and compares trimmed stdout."""

    def __init__(self, executor: Executor) -> None:
        self.executor = executor

    async def grade(self, code: str, language: str, test_cases: Sequence[TestCase]) -> GradeReport:
        cases = sorted(test_cases, key=lambda case: case.order)
        total = len(cases)
        if total == 0:
            return GradeReport(
                is_correct=False,
                score=0,
                passed=0,
                total=0,
                output=NO_TEST_CASES,
                status="no_test_cases",
            )

        outcomes: List[CaseOutcome] = []
        try:
            for index, case in enumerate(cases):
                result = await self.executor.execute(code, language, stdin=case.input)
                if result.degraded:
                    raise GradingInconclusive(result.message, case_index=index)
                outcomes.append(
                    CaseOutcome(
                        index=index,
                        input=case.input,
                        expected=case.expected_output,
                        actual=result.output,
                        passed=outputs_match(result.output, case.expected_output),
                        exit_code=result.exit_code,
                        duration_ms=result.duration_ms,
                    )
                )
        except GradingInconclusive as exc:
            LOGGER.warning(
                "Grading inconclusive at case %s: %s",
                exc.case_index,
                exc,
                extra={"language": language, "total": total},
            )
            return GradeReport(
                is_correct=False,
                score=0,
                passed=0,
                total=total,
                output=f"{passed_summary(0, total)} {exc}",
                status="inconclusive",
                cases=outcomes,
            )

        passed = sum(1 for outcome in outcomes if outcome.passed)
        is_correct = passed == total
        report = GradeReport(
            is_correct=is_correct,
            score=score_for(passed, total),
            passed=passed,
            total=total,
            output=ALL_PASSED if is_correct else passed_summary(passed, total),
            cases=outcomes,
        )
        LOGGER.info(
            "Graded submission",
            extra={"language": language, "passed": passed, "total": total, "score": report.score},
        )
        return report


__all__ = [
    "ALL_PASSED",
    "CaseOutcome",
    "Executor",
    "GradeReport",
    "GradingEngine",
    "NO_TEST_CASES",
    "outputs_match",
    "passed_summary",
    "score_for",
]
