"""
Foundational registry, configuration and record types for codeassess.

These modules carry no web or HTTP dependencies so the broker, grading
engine and attempt runtime can all build on them.
"""

from .config import ExecutorConfig, GeneratorConfig, JournalConfig, JudgeConfig, load_judge_config
from .errors import (
    AttemptClosed,
    BackendUnavailable,
    CodeAssessError,
    GradingInconclusive,
    MalformedBackendResponse,
    SubmissionInProgress,
    UnsupportedLanguage,
)
from .journal import SubmissionEvent, SubmissionJournal, SubmissionRecorder
from .languages import LanguageSpec, resolve_language, starter_template, supported_languages
from .models import Question, Submission, TestCase

__all__ = [
    "AttemptClosed",
    "BackendUnavailable",
    "CodeAssessError",
    "ExecutorConfig",
    "GeneratorConfig",
    "GradingInconclusive",
    "JournalConfig",
    "JudgeConfig",
    "LanguageSpec",
    "MalformedBackendResponse",
    "Question",
    "Submission",
    "SubmissionEvent",
    "SubmissionInProgress",
    "SubmissionJournal",
    "SubmissionRecorder",
    "TestCase",
    "UnsupportedLanguage",
    "load_judge_config",
    "resolve_language",
    "starter_template",
    "supported_languages",
]
