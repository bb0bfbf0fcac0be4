"""Domain records that flow between the broker, grading engine and attempts."""

from __future__ import annotations

from typing import Any, List, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

SubmissionStatus = Literal["completed", "inconclusive", "no_test_cases"]


class TestCase(BaseModel):
    """One stdin/expected-stdout pair. Both sides are opaque strings."""

    __test__ = False  # keep pytest from collecting this as a test class

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    input: str = ""
    expected_output: str = Field(
        default="",
        validation_alias=AliasChoices("expected_output", "expectedOutput"),
    )
    order: int = Field(default=0, description="Explicit sort key within the owning question.")

    @field_validator("input", "expected_output", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        return value


class Question(BaseModel):
    """Read-only question snapshot used while solving."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str = ""
    description: str = ""
    starter_code: str = Field(default="", validation_alias=AliasChoices("starter_code", "starterCode"))
    language: str
    test_cases: List[TestCase] = Field(
        default_factory=list,
        validation_alias=AliasChoices("test_cases", "testCases"),
    )

    def ordered_test_cases(self) -> List[TestCase]:
        return sorted(self.test_cases, key=lambda case: case.order)

    def example_cases(self, limit: int = 2) -> List[TestCase]:
        """Cases shown to the candidate alongside the description."""
        return self.ordered_test_cases()[:limit]


class Submission(BaseModel):
    """Immutable grading outcome; one per submit action."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    code: str
    language: str
    is_correct: bool
    score: int = Field(..., ge=0, le=100)
    passed: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    output: str = ""
    status: SubmissionStatus = "completed"


__all__ = ["Question", "Submission", "SubmissionStatus", "TestCase"]
