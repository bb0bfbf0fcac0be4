from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Sequence

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from codeassess.core.config import ExecutorConfig, JudgeConfig, load_judge_config
from codeassess.core.errors import AttemptClosed, SubmissionInProgress, UnsupportedLanguage
from codeassess.core.journal import SubmissionJournal, SubmissionRecorder
from codeassess.core.languages import LanguageSpec, resolve_language, starter_template, supported_languages
from codeassess.core.models import Question, TestCase

from apps.attempts import Attempt, AttemptRegistry, AttemptState
from apps.attempts.attempt import Grader
from apps.authoring import GeneratedQuestion, QuestionGenerator
from apps.judge import ExecutionBroker, GradeReport, GradingEngine

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = REPO_ROOT / "config" / "judge.yaml"


class ServiceSettings(BaseModel):
    """Runtime configuration for the grading service."""

    repo_root: Path = Field(default=REPO_ROOT)
    config_path: Path | None = Field(default=None)
    judge: JudgeConfig = Field(default_factory=JudgeConfig)


@lru_cache
def get_settings() -> ServiceSettings:
    load_dotenv(REPO_ROOT / ".env")
    raw_path = os.getenv("CODEASSESS_CONFIG")
    config_path = Path(raw_path).expanduser().resolve() if raw_path else DEFAULT_CONFIG_PATH
    if config_path.exists():
        judge = load_judge_config(config_path, base_dir=REPO_ROOT)
    else:
        judge = JudgeConfig()
    return ServiceSettings(config_path=config_path if config_path.exists() else None, judge=judge)


@lru_cache
def get_registry() -> AttemptRegistry:
    return AttemptRegistry()


def get_recorder(settings: ServiceSettings = Depends(get_settings)) -> SubmissionRecorder:
    path = settings.judge.journal.path
    if not path.is_absolute():
        path = settings.repo_root / path
    return SubmissionJournal(path)


async def get_broker(settings: ServiceSettings = Depends(get_settings)) -> AsyncIterator[ExecutionBroker]:
    broker = ExecutionBroker(config=settings.judge.executor)
    try:
        yield broker
    finally:
        await broker.aclose()


class ScopedGrader:
    """Grades with a broker opened for the duration of one grading run.

    Attempts outlive the request that created them, so they cannot hold on
    to a request-scoped broker.
    """

    def __init__(self, config: ExecutorConfig) -> None:
        self.config = config

    async def grade(self, code: str, language: str, test_cases: Sequence[TestCase]) -> GradeReport:
        async with ExecutionBroker(config=self.config) as broker:
            return await GradingEngine(broker).grade(code, language, test_cases)


def get_grader(settings: ServiceSettings = Depends(get_settings)) -> Grader:
    return ScopedGrader(settings.judge.executor)


async def get_generator(settings: ServiceSettings = Depends(get_settings)) -> AsyncIterator[QuestionGenerator]:
    generator = QuestionGenerator(config=settings.judge.generator)
    try:
        yield generator
    finally:
        await generator.aclose()


class HealthResponse(BaseModel):
    status: str
    languages: int
    live_attempts: int


class LanguageItem(BaseModel):
    name: str
    backend_id: str
    backend_version: str
    starter_code: str

    @classmethod
    def from_spec(cls, spec: LanguageSpec) -> "LanguageItem":
        return cls(
            name=spec.name,
            backend_id=spec.backend_id,
            backend_version=spec.backend_version,
            starter_code=starter_template(spec.name),
        )


class ExecuteRequest(BaseModel):
    code: str | None = None
    language: str | None = None
    stdin: str | None = None


class GradeRequest(BaseModel):
    code: str
    language: str
    test_cases: List[TestCase] = Field(default_factory=list)


class GenerateRequest(BaseModel):
    difficulty: str = "medium"
    language: str = "JavaScript"
    reference: str = "LeetCode"


class StartAttemptRequest(BaseModel):
    assessment_id: str
    questions: List[Question] = Field(..., min_length=1)
    time_limit_minutes: float | None = Field(default=None, gt=0)
    user_id: str | None = None


class SubmitRequest(BaseModel):
    code: str


class NavigateRequest(BaseModel):
    delta: int


class SubmitResponse(BaseModel):
    applied: bool
    question_id: str
    index: int
    report: Dict[str, Any]
    persistence_error: str | None = None
    state: AttemptState


app = FastAPI(title="CodeAssess Grading API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
async def health(registry: AttemptRegistry = Depends(get_registry)) -> HealthResponse:
    registry.sweep()
    return HealthResponse(status="ok", languages=len(supported_languages()), live_attempts=len(registry))


@app.get("/languages", response_model=List[LanguageItem])
def list_languages() -> List[LanguageItem]:
    return [LanguageItem.from_spec(spec) for spec in supported_languages()]


@app.get("/languages/{name}", response_model=LanguageItem)
def get_language(name: str) -> LanguageItem:
    try:
        spec = resolve_language(name)
    except UnsupportedLanguage as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return LanguageItem.from_spec(spec)


@app.post("/execute")
async def execute(payload: ExecuteRequest, broker: ExecutionBroker = Depends(get_broker)) -> Dict[str, Any]:
    if not payload.code or not payload.language:
        raise HTTPException(status_code=400, detail="Code and language are required")
    result = await broker.execute(payload.code, payload.language, stdin=payload.stdin)
    if result.error_kind == "unsupported_language":
        raise HTTPException(status_code=400, detail=result.error)
    return result.as_dict()


@app.post("/grade")
async def grade(payload: GradeRequest, grader: Grader = Depends(get_grader)) -> Dict[str, Any]:
    report = await grader.grade(payload.code, payload.language, payload.test_cases)
    return report.as_dict()


@app.post("/questions/generate")
async def generate_question(
    payload: GenerateRequest,
    generator: QuestionGenerator = Depends(get_generator),
) -> Dict[str, Any]:
    question: GeneratedQuestion = await generator.generate(payload.difficulty, payload.language, payload.reference)
    return {"question": question.as_payload()}


@app.post("/attempts", response_model=AttemptState, status_code=201)
async def start_attempt(
    payload: StartAttemptRequest,
    x_session_id: str | None = Header(default=None),
    registry: AttemptRegistry = Depends(get_registry),
    grader: Grader = Depends(get_grader),
    recorder: SubmissionRecorder = Depends(get_recorder),
) -> AttemptState:
    attempt = Attempt.start(
        payload.assessment_id,
        payload.questions,
        payload.time_limit_minutes,
        grader=grader,
        user_id=payload.user_id,
        recorder=recorder,
    )
    registry.add(attempt, session_id=x_session_id)
    return attempt.current_state()


@app.get("/attempts/{attempt_id}", response_model=AttemptState)
async def get_attempt(attempt_id: str, registry: AttemptRegistry = Depends(get_registry)) -> AttemptState:
    final = registry.final_state(attempt_id)
    if final is not None:
        return final
    return _load_attempt(registry, attempt_id).current_state()


@app.post("/attempts/{attempt_id}/submit", response_model=SubmitResponse)
async def submit_attempt(
    attempt_id: str,
    payload: SubmitRequest,
    registry: AttemptRegistry = Depends(get_registry),
) -> SubmitResponse:
    attempt = _load_attempt(registry, attempt_id)
    try:
        outcome = await attempt.submit(payload.code)
    except (AttemptClosed, SubmissionInProgress) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SubmitResponse(
        applied=outcome.applied,
        question_id=outcome.question_id,
        index=outcome.index,
        report=outcome.report.as_dict(),
        persistence_error=outcome.persistence_error,
        state=attempt.current_state(),
    )


@app.post("/attempts/{attempt_id}/navigate", response_model=AttemptState)
async def navigate_attempt(
    attempt_id: str,
    payload: NavigateRequest,
    registry: AttemptRegistry = Depends(get_registry),
) -> AttemptState:
    attempt = _load_attempt(registry, attempt_id)
    try:
        attempt.navigate(payload.delta)
    except AttemptClosed as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return attempt.current_state()


@app.post("/attempts/{attempt_id}/tick", response_model=AttemptState)
async def tick_attempt(attempt_id: str, registry: AttemptRegistry = Depends(get_registry)) -> AttemptState:
    final = registry.final_state(attempt_id)
    if final is not None:
        return final
    attempt = _load_attempt(registry, attempt_id)
    attempt.tick()
    return attempt.current_state()


def _load_attempt(registry: AttemptRegistry, attempt_id: str) -> Attempt:
    """Live attempt by id; 409 once it has finished, 404 when never seen."""
    try:
        return registry.get(attempt_id)
    except KeyError as exc:
        final = registry.final_state(attempt_id)
        if final is not None:
            reason = final.summary.reason if final.summary else None
            raise HTTPException(status_code=409, detail=f"Attempt {attempt_id} is closed ({reason})") from exc
        raise HTTPException(status_code=404, detail=f"Attempt {attempt_id} not found") from exc
