"""
Typed configuration for the codeassess service.

The executor policy ceilings (timeouts, memory) are deliberately absent from
these models: they are constants in ``apps.judge.piston_client`` and cannot be
overridden from YAML or by callers.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

DEFAULT_EXECUTOR_API_BASE = "https://emkc.org/api/v2/piston"
DEFAULT_GENERATOR_API_BASE = "https://ai.gateway.lovable.dev/v1"
EXECUTOR_API_BASE_ENV = "CODEASSESS_EXECUTOR_API_BASE"
GENERATOR_API_KEY_ENV = "CODEASSESS_GENERATOR_API_KEY"
GENERATOR_API_BASE_ENV = "CODEASSESS_GENERATOR_API_BASE"


class ExecutorConfig(BaseModel):
    """Connection info for the remote code execution backend (Piston API)."""

    model_config = ConfigDict(extra="ignore")

    api_base: str = Field(default=DEFAULT_EXECUTOR_API_BASE)
    api_base_env: str | None = Field(default=EXECUTOR_API_BASE_ENV)
    http_timeout_s: float = Field(
        default=30.0,
        gt=10.0,
        description="Transport timeout; must exceed the 10s run ceiling enforced by the backend.",
    )

    @field_validator("api_base", mode="before")
    @classmethod
    def strip_base(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    def resolved_api_base(self) -> str:
        if self.api_base_env and (value := os.getenv(self.api_base_env)):
            return value.strip().rstrip("/")
        return self.api_base


class GeneratorConfig(BaseModel):
    """Chat-completions backend used to draft new questions."""

    model_config = ConfigDict(extra="allow")

    model: str = "google/gemini-2.5-flash"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    api_base: str | None = None
    api_base_env: str | None = GENERATOR_API_BASE_ENV
    api_key_env: str | None = None
    http_timeout_s: float = Field(default=60.0, gt=0.0)

    def resolve_api_key(self) -> str | None:
        preferred_envs = []
        if self.api_key_env:
            preferred_envs.append(self.api_key_env)
        preferred_envs.append(GENERATOR_API_KEY_ENV)
        preferred_envs.append("OPENAI_API_KEY")
        for env_var in preferred_envs:
            if env_var and (value := os.getenv(env_var)):
                return value
        return None

    def resolve_api_base(self) -> str:
        if self.api_base:
            return self.api_base.rstrip("/")
        if self.api_base_env and (value := os.getenv(self.api_base_env)):
            return value.strip().rstrip("/")
        return DEFAULT_GENERATOR_API_BASE


class JournalConfig(BaseModel):
    """Where submission outcomes are appended when no external store is wired in."""

    path: Path = Field(default=Path("outputs/submissions.jsonl"))

    @field_validator("path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser()


class JudgeConfig(BaseModel):
    """Top-level configuration for the execution + grading service."""

    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    journal: JournalConfig = Field(default_factory=JournalConfig)


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def _absolutize_journal_path(data: Dict[str, Any], base_dir: Path) -> None:
    journal = data.get("journal")
    if isinstance(journal, dict) and journal.get("path"):
        path = Path(journal["path"]).expanduser()
        if not path.is_absolute():
            path = base_dir / path
        journal["path"] = str(path.resolve())


def load_judge_config(path: Path, *, base_dir: Path | None = None) -> JudgeConfig:
    """Load the service config; relative journal paths resolve against ``base_dir``."""
    path = path.expanduser().resolve()
    try:
        data = read_yaml_file(path)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}") from exc
    _absolutize_journal_path(data, base_dir=(base_dir or path.parent).resolve())
    try:
        return JudgeConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid judge config in {path}") from exc


__all__ = [
    "ExecutorConfig",
    "GeneratorConfig",
    "JournalConfig",
    "JudgeConfig",
    "load_judge_config",
    "read_yaml_file",
]
