"""Error taxonomy shared by the broker, grading engine, generator and attempts."""

from __future__ import annotations


class CodeAssessError(RuntimeError):
    """Base class for every error raised by the grading pipeline."""


class UnsupportedLanguage(CodeAssessError, ValueError):
    """Raised when a language name does not resolve through the registry."""

    def __init__(self, language: str) -> None:
        self.language = language
        super().__init__(f"Unsupported language: {language}")


class BackendUnavailable(CodeAssessError):
    """Remote execution or generation service was unreachable or returned non-2xx."""

    def __init__(self, service: str, detail: str | None = None, *, status_code: int | None = None) -> None:
        self.service = service
        self.detail = detail
        self.status_code = status_code
        message = f"{service} unavailable"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class MalformedBackendResponse(CodeAssessError):
    """Generation backend replied with something that is not the expected JSON object."""


class GradingInconclusive(CodeAssessError):
    """A test case could not be executed, as opposed to producing a wrong answer."""

    def __init__(self, message: str, *, case_index: int | None = None) -> None:
        self.case_index = case_index
        super().__init__(message)


class AttemptClosed(CodeAssessError):
    """Operation attempted on an attempt that already reached its terminal state."""


class SubmissionInProgress(CodeAssessError):
    """A second submit was issued while the previous one is still being graded."""


__all__ = [
    "AttemptClosed",
    "BackendUnavailable",
    "CodeAssessError",
    "GradingInconclusive",
    "MalformedBackendResponse",
    "SubmissionInProgress",
    "UnsupportedLanguage",
]
