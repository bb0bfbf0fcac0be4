"""Draft coding questions with a chat model, falling back to canned templates."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from codeassess.core.config import GeneratorConfig
from codeassess.core.errors import BackendUnavailable, MalformedBackendResponse
from codeassess.core.languages import starter_template
from codeassess.core.models import TestCase

from .chat_client import ChatCompletionsClient, ChatConfig

LOGGER = logging.getLogger(__name__)

QuestionSource = Literal["model", "template"]

PROMPT_TEMPLATE = (
    "Generate a coding problem for a {difficulty} difficulty level in {language}, "
    "inspired by {reference} style problems.\n\n"
    "Return ONLY valid JSON (no markdown, no code blocks) with this exact structure:\n"
    "{{\n"
    '  "title": "problem title",\n'
    '  "description": "detailed problem description with examples",\n'
    '  "starter_code": "starter code template in {language}",\n'
    '  "language": "{language}",\n'
    '  "test_cases": [\n'
    '    {{"input": "example input", "expectedOutput": "expected output"}},\n'
    '    {{"input": "example input 2", "expectedOutput": "expected output 2"}}\n'
    "  ]\n"
    "}}"
)

FALLBACK_QUESTIONS: Dict[str, Dict[str, Any]] = {
    "easy": {
        "title": "Sum of Array Elements",
        "description": (
            "Given an array of integers, return the sum of all elements.\n\n"
            "Example:\nInput: [1, 2, 3, 4, 5]\nOutput: 15\n\n"
            "Constraints:\n- 1 <= arr.length <= 1000\n- -1000 <= arr[i] <= 1000"
        ),
        "test_cases": [
            {"input": "[1, 2, 3, 4, 5]", "expected_output": "15"},
            {"input": "[10, -5, 3]", "expected_output": "8"},
        ],
    },
    "medium": {
        "title": "Two Sum",
        "description": (
            "Given an array of integers nums and an integer target, return indices of the two numbers "
            "such that they add up to target.\n\n"
            "You may assume that each input would have exactly one solution.\n\n"
            "Example:\nInput: nums = [2,7,11,15], target = 9\nOutput: [0,1]\n"
            "Explanation: Because nums[0] + nums[1] == 9, we return [0, 1]."
        ),
        "test_cases": [
            {"input": "[2,7,11,15], 9", "expected_output": "[0,1]"},
            {"input": "[3,2,4], 6", "expected_output": "[1,2]"},
        ],
    },
    "hard": {
        "title": "Merge Intervals",
        "description": (
            "Given an array of intervals where intervals[i] = [starti, endi], merge all overlapping intervals.\n\n"
            "Return an array of the non-overlapping intervals that cover all the intervals in the input.\n\n"
            "Example:\nInput: [[1,3],[2,6],[8,10],[15,18]]\nOutput: [[1,6],[8,10],[15,18]]"
        ),
        "test_cases": [
            {"input": "[[1,3],[2,6],[8,10],[15,18]]", "expected_output": "[[1,6],[8,10],[15,18]]"},
            {"input": "[[1,4],[4,5]]", "expected_output": "[[1,5]]"},
        ],
    },
}
DEFAULT_DIFFICULTY = "medium"


class GeneratedQuestion(BaseModel):
    """Draft question handed back to authoring; not yet an assessment question."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    starter_code: str = Field(default="", validation_alias=AliasChoices("starter_code", "starterCode"))
    language: str
    test_cases: List[TestCase] = Field(
        ..., min_length=1, validation_alias=AliasChoices("test_cases", "testCases")
    )
    source: QuestionSource = "model"

    def as_payload(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "starter_code": self.starter_code,
            "language": self.language,
            "test_cases": [
                {"input": case.input, "expectedOutput": case.expected_output} for case in self.test_cases
            ],
            "source": self.source,
        }


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the first balanced ``{...}`` block in ``text``.

    Braces inside JSON strings are ignored, so code in ``starter_code`` does
    not end the object early. Raises MalformedBackendResponse when no object
    can be parsed.
    """

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for position in range(start, len(text)):
            char = text[position]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    candidate = text[start : position + 1]
                    try:
                        parsed = json.loads(candidate)
                    except json.JSONDecodeError:
                        break
                    if isinstance(parsed, dict):
                        return parsed
                    break
        start = text.find("{", start + 1)
    raise MalformedBackendResponse("No JSON object found in model reply")


def build_prompt(difficulty: str, language: str, reference: str) -> str:
    return PROMPT_TEMPLATE.format(difficulty=difficulty, language=language, reference=reference)


def fallback_question(difficulty: str, language: str) -> GeneratedQuestion:
    template = FALLBACK_QUESTIONS.get((difficulty or "").strip().lower(), FALLBACK_QUESTIONS[DEFAULT_DIFFICULTY])
    return GeneratedQuestion(
        title=template["title"],
        description=template["description"],
        starter_code=starter_template(language),
        language=language,
        test_cases=[TestCase(order=index, **case) for index, case in enumerate(template["test_cases"])],
        source="template",
    )


class QuestionGenerator:
    """Model-backed question drafts with a deterministic fallback.

    ``generate`` never raises for backend problems; without an API key the
    model is not consulted at all.
    """

    def __init__(
        self,
        client: ChatCompletionsClient | None = None,
        *,
        config: GeneratorConfig | None = None,
    ) -> None:
        if client is None:
            cfg = config or GeneratorConfig()
            api_key = cfg.resolve_api_key()
            if api_key:
                client = ChatCompletionsClient(
                    ChatConfig(
                        base_url=cfg.resolve_api_base(),
                        api_key=api_key,
                        model=cfg.model,
                        temperature=cfg.temperature,
                    ),
                    timeout=cfg.http_timeout_s,
                )
        self._client = client

    @property
    def model_enabled(self) -> bool:
        return self._client is not None

    async def generate(self, difficulty: str, language: str, reference: str) -> GeneratedQuestion:
        if self._client is not None:
            try:
                return await self._from_model(difficulty, language, reference)
            except (BackendUnavailable, MalformedBackendResponse) as exc:
                LOGGER.warning(
                    "Question generation fell back to template: %s",
                    exc,
                    extra={"difficulty": difficulty, "language": language},
                )
        return fallback_question(difficulty, language)

    async def _from_model(self, difficulty: str, language: str, reference: str) -> GeneratedQuestion:
        content = await self._client.complete(build_prompt(difficulty, language, reference))
        payload = extract_json_object(content)
        payload.setdefault("language", language)
        cases = payload.get("test_cases", payload.get("testCases"))
        if isinstance(cases, list):
            payload["test_cases"] = [
                {**case, "order": index} if isinstance(case, dict) else case for index, case in enumerate(cases)
            ]
            payload.pop("testCases", None)
        try:
            question = GeneratedQuestion.model_validate({**payload, "source": "model"})
        except ValidationError as exc:
            raise MalformedBackendResponse(f"Model reply is missing required fields: {exc.error_count()} error(s)") from exc
        if not question.starter_code.strip():
            question = question.model_copy(update={"starter_code": starter_template(language)})
        LOGGER.info(
            "Generated question from model",
            extra={"difficulty": difficulty, "language": language, "cases": len(question.test_cases)},
        )
        return question

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


__all__ = [
    "FALLBACK_QUESTIONS",
    "GeneratedQuestion",
    "QuestionGenerator",
    "build_prompt",
    "extract_json_object",
    "fallback_question",
]
