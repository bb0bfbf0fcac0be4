"""Remote execution and grading."""
from .broker import ExecutionBroker, ExecutionResult, normalize_piston_response
from .grading import CaseOutcome, GradeReport, GradingEngine, score_for
from .piston_client import (
    COMPILE_TIMEOUT_MS,
    MEMORY_LIMIT_BYTES,
    RUN_TIMEOUT_MS,
    PistonClient,
    PistonConfig,
)

__all__ = [
    "COMPILE_TIMEOUT_MS",
    "CaseOutcome",
    "ExecutionBroker",
    "ExecutionResult",
    "GradeReport",
    "GradingEngine",
    "MEMORY_LIMIT_BYTES",
    "PistonClient",
    "PistonConfig",
    "RUN_TIMEOUT_MS",
    "normalize_piston_response",
    "score_for",
]
