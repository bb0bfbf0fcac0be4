"""Execution broker: one remote run per call, normalized into ExecutionResult."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Mapping

from codeassess.core.config import ExecutorConfig
from codeassess.core.errors import BackendUnavailable, UnsupportedLanguage
from codeassess.core.languages import resolve_language

from .piston_client import PistonClient, PistonConfig

LOGGER = logging.getLogger(__name__)

ErrorKind = Literal["unsupported_language", "backend_unavailable"]

UNAVAILABLE_ERROR = "Code execution service unavailable"
UNAVAILABLE_OUTPUT = "The code execution service is currently unavailable. Please try again later."
NO_OUTPUT = "No output"


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Normalized outcome of a single execute call."""

    output: str
    stderr: str
    exit_code: int
    duration_ms: int
    language: str | None = None
    version: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def degraded(self) -> bool:
        return self.error_kind is not None

    @property
    def succeeded(self) -> bool:
        return not self.degraded and self.exit_code == 0

    @property
    def display_output(self) -> str:
        if self.output or self.degraded:
            return self.output
        return NO_OUTPUT

    @property
    def message(self) -> str:
        """Text a UI should show for this run."""
        if self.error and self.output:
            return f"{self.error}. {self.output}"
        return self.error or self.display_output

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "output": self.display_output,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
            "executionTime": self.duration_ms,
            "language": self.language,
            "version": self.version,
        }
        if self.error:
            payload["error"] = self.error
            payload["errorKind"] = self.error_kind
        return payload


def _first_text(phases: tuple[Any, ...], key: str) -> str | None:
    for phase in phases:
        if isinstance(phase, Mapping):
            value = phase.get(key)
            if value:
                return str(value)
    return None


def _first_code(phases: tuple[Any, ...]) -> int:
    for phase in phases:
        if isinstance(phase, Mapping):
            value = phase.get("code")
            if value is None:
                continue
            try:
                return int(value)
            except (TypeError, ValueError):
                continue
    return -1


def normalize_piston_response(
    body: Mapping[str, Any],
    *,
    duration_ms: int,
    language: str | None,
    version: str | None,
) -> ExecutionResult:
    """Prefer run-phase fields, fall back to compile-phase ones (compile errors).

    ``output`` is the program's real trimmed stdout and may be empty; the
    "No output" placeholder only appears in ``display_output``.
    """

    phases = (body.get("run"), body.get("compile"))
    output = _first_text(phases, "output") or ""
    stderr = _first_text(phases, "stderr") or ""
    return ExecutionResult(
        output=output.strip(),
        stderr=stderr.strip(),
        exit_code=_first_code(phases),
        duration_ms=duration_ms,
        language=language,
        version=version,
    )


class ExecutionBroker:
    """Stateless front door to the remote execution backend.

    ``execute`` never raises for language or transport problems: it returns a
    degraded ExecutionResult instead, so callers only ever see one shape.
    """

    def __init__(
        self,
        client: PistonClient | None = None,
        *,
        config: ExecutorConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if client is None:
            cfg = config or ExecutorConfig()
            client = PistonClient(PistonConfig(base_url=cfg.resolved_api_base()), timeout=cfg.http_timeout_s)
        self._client = client
        self._clock = clock

    async def execute(self, source: str, language: str, *, stdin: str | None = None) -> ExecutionResult:
        try:
            spec = resolve_language(language)
        except UnsupportedLanguage as exc:
            LOGGER.warning("Rejected execution for unsupported language", extra={"language": language})
            return ExecutionResult(
                output="",
                stderr="",
                exit_code=-1,
                duration_ms=0,
                language=language,
                error=str(exc),
                error_kind="unsupported_language",
            )

        started = self._clock()
        try:
            body = await self._client.execute(spec.backend_id, spec.backend_version, source or "", stdin=stdin)
        except BackendUnavailable as exc:
            duration_ms = self._elapsed_ms(started)
            LOGGER.warning(
                "Execution backend unavailable: %s",
                exc,
                extra={"language": spec.backend_id, "duration_ms": duration_ms},
            )
            return ExecutionResult(
                output=UNAVAILABLE_OUTPUT,
                stderr="",
                exit_code=-1,
                duration_ms=duration_ms,
                language=spec.backend_id,
                version=spec.backend_version,
                error=UNAVAILABLE_ERROR,
                error_kind="backend_unavailable",
            )

        duration_ms = self._elapsed_ms(started)
        result = normalize_piston_response(
            body,
            duration_ms=duration_ms,
            language=spec.backend_id,
            version=spec.backend_version,
        )
        LOGGER.debug(
            "Execution finished",
            extra={"language": spec.backend_id, "exit_code": result.exit_code, "duration_ms": duration_ms},
        )
        return result

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int(round((self._clock() - started) * 1000)))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ExecutionBroker":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = [
    "ExecutionBroker",
    "ExecutionResult",
    "NO_OUTPUT",
    "UNAVAILABLE_ERROR",
    "UNAVAILABLE_OUTPUT",
    "normalize_piston_response",
]
