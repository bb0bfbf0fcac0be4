import json

import anyio
import httpx
import pytest

from apps.authoring.chat_client import ChatCompletionsClient, ChatConfig
from apps.authoring.question_generator import (
    FALLBACK_QUESTIONS,
    QuestionGenerator,
    build_prompt,
    extract_json_object,
    fallback_question,
)
from codeassess.core.config import GeneratorConfig
from codeassess.core.errors import MalformedBackendResponse

BASE_URL = "https://ai.gateway.test/v1"


def _chat_reply(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _generator(handler) -> QuestionGenerator:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    client = ChatCompletionsClient(ChatConfig(base_url=BASE_URL, api_key="lovable-key"), client=http_client)
    return QuestionGenerator(client)


MODEL_QUESTION = {
    "title": "Reverse Words",
    "description": "Reverse the order of words.",
    "starter_code": "def solution(s):\n    pass",
    "language": "Python",
    "test_cases": [
        {"input": "a b", "expectedOutput": "b a"},
        {"input": "x", "expectedOutput": "x"},
    ],
}


def test_generate_uses_model_reply() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["authorization"] = request.headers.get("authorization")
        captured["payload"] = json.loads(request.content)
        return httpx.Response(200, json=_chat_reply("Sure! " + json.dumps(MODEL_QUESTION) + "\nGood luck."))

    question = anyio.run(_generator(handler).generate, "easy", "Python", "LeetCode")

    assert question.source == "model"
    assert question.title == "Reverse Words"
    assert [case.expected_output for case in question.test_cases] == ["b a", "x"]
    assert [case.order for case in question.test_cases] == [0, 1]
    assert str(captured["url"]).endswith("/v1/chat/completions")
    assert captured["authorization"] == "Bearer lovable-key"
    payload = captured["payload"]
    assert payload["model"] == "google/gemini-2.5-flash"
    assert payload["temperature"] == 0.7
    assert payload["messages"][0]["role"] == "user"
    assert "easy difficulty level in Python" in payload["messages"][0]["content"]
    assert "LeetCode style problems" in payload["messages"][0]["content"]


def test_generate_falls_back_on_backend_error() -> None:
    question = anyio.run(_generator(lambda request: httpx.Response(500)).generate, "hard", "Java", "Codeforces")
    assert question.source == "template"
    assert question.title == "Merge Intervals"
    assert "public class Solution" in question.starter_code
    assert question.language == "Java"


def test_generate_falls_back_on_unparseable_reply() -> None:
    handler = lambda request: httpx.Response(200, json=_chat_reply("I cannot help with that."))
    question = anyio.run(_generator(handler).generate, "easy", "Python", "LeetCode")
    assert question.source == "template"
    assert question.title == "Sum of Array Elements"


def test_generate_falls_back_when_fields_missing() -> None:
    handler = lambda request: httpx.Response(200, json=_chat_reply('{"title": "Only a title"}'))
    question = anyio.run(_generator(handler).generate, "medium", "Go", "HackerRank")
    assert question.source == "template"
    assert question.title == "Two Sum"


def test_generate_falls_back_on_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("down", request=request)

    question = anyio.run(_generator(handler).generate, "medium", "Python", "LeetCode")
    assert question.source == "template"


def test_generator_without_api_key_skips_model(monkeypatch: pytest.MonkeyPatch) -> None:
    for env in ("CODEASSESS_GENERATOR_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(env, raising=False)
    generator = QuestionGenerator(config=GeneratorConfig())
    assert not generator.model_enabled
    question = anyio.run(generator.generate, "easy", "C++", "LeetCode")
    assert question.source == "template"
    assert "#include <iostream>" in question.starter_code


@pytest.mark.parametrize(
    "difficulty, title",
    [("easy", "Sum of Array Elements"), ("medium", "Two Sum"), ("hard", "Merge Intervals"), ("legendary", "Two Sum")],
)
def test_fallback_question_by_difficulty(difficulty: str, title: str) -> None:
    question = fallback_question(difficulty, "JavaScript")
    assert question.title == title
    assert question.starter_code.startswith("function solution(input)")
    assert len(question.test_cases) == 2


def test_fallback_easy_cases_match_template() -> None:
    cases = fallback_question("easy", "Python").test_cases
    assert [(case.input, case.expected_output) for case in cases] == [("[1, 2, 3, 4, 5]", "15"), ("[10, -5, 3]", "8")]
    assert set(FALLBACK_QUESTIONS) == {"easy", "medium", "hard"}


def test_extract_json_object_ignores_braces_inside_strings() -> None:
    text = 'Here you go:\n{"title": "T", "starter_code": "int main() { return 0; }"} trailing {junk}'
    assert extract_json_object(text) == {"title": "T", "starter_code": "int main() { return 0; }"}


def test_extract_json_object_skips_invalid_leading_block() -> None:
    text = "{not json} then {\"ok\": true}"
    assert extract_json_object(text) == {"ok": True}


def test_extract_json_object_raises_without_object() -> None:
    with pytest.raises(MalformedBackendResponse):
        extract_json_object("no braces here")


def test_build_prompt_mentions_required_fields() -> None:
    prompt = build_prompt("hard", "Rust", "Codeforces")
    for field in ("title", "description", "starter_code", "language", "test_cases", "expectedOutput"):
        assert field in prompt
    assert '"language": "Rust"' in prompt


def test_as_payload_uses_wire_keys() -> None:
    payload = fallback_question("medium", "Python").as_payload()
    assert payload["test_cases"][0] == {"input": "[2,7,11,15], 9", "expectedOutput": "[0,1]"}
    assert payload["source"] == "template"
