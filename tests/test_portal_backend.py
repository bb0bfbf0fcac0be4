from __future__ import annotations

import inspect
import json
import threading
from pathlib import Path
from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from apps.authoring import ChatCompletionsClient, ChatConfig, QuestionGenerator
from apps.judge import ExecutionBroker, GradingEngine, PistonClient, PistonConfig
from apps.attempts import AttemptRegistry
import apps.portal_backend.main as portal_main
from apps.portal_backend.main import (
    ScopedGrader,
    ServiceSettings,
    app,
    get_broker,
    get_generator,
    get_grader,
    get_recorder,
    get_registry,
    get_settings,
)
from codeassess.core.config import JudgeConfig
from codeassess.core.journal import SubmissionJournal

PISTON_URL = "https://piston.test/api/v2/piston"


def _piston_handler(request: httpx.Request) -> httpx.Response:
    payload = json.loads(request.content)
    stdin = payload.get("stdin")
    source = payload["files"][0]["content"]
    if source == "outage":
        return httpx.Response(503)
    if source == "print(sum(eval(input())))" and stdin == "[1,2,3]":
        return httpx.Response(200, json={"run": {"output": "6\n", "stderr": "", "code": 0}})
    if source == "print(sum(eval(input())))" and stdin == "[4,5]":
        return httpx.Response(200, json={"run": {"output": "9\n", "stderr": "", "code": 0}})
    return httpx.Response(200, json={"run": {"output": f"echo:{source}\n", "stderr": "", "code": 0}})


def _broker() -> ExecutionBroker:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(_piston_handler), base_url=PISTON_URL)
    return ExecutionBroker(PistonClient(PistonConfig(base_url=PISTON_URL), client=http_client))


@pytest.fixture()
def journal(tmp_path: Path) -> SubmissionJournal:
    return SubmissionJournal(tmp_path / "submissions.jsonl")


@pytest.fixture()
def client(tmp_path: Path, journal: SubmissionJournal) -> Iterator[TestClient]:
    settings = ServiceSettings(repo_root=tmp_path, judge=JudgeConfig())
    registry = AttemptRegistry()

    async def _broker_override():
        yield _broker()

    async def _generator_override():
        yield QuestionGenerator(
            ChatCompletionsClient(
                ChatConfig(base_url="https://ai.test/v1", api_key="key"),
                client=httpx.AsyncClient(
                    transport=httpx.MockTransport(lambda request: httpx.Response(502)),
                    base_url="https://ai.test/v1",
                ),
            )
        )

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_recorder] = lambda: journal
    app.dependency_overrides[get_broker] = _broker_override
    app.dependency_overrides[get_grader] = lambda: GradingEngine(_broker())
    app.dependency_overrides[get_generator] = _generator_override
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def _question(question_id: str, expected: str = "6", given: str = "[1,2,3]") -> dict:
    return {
        "id": question_id,
        "title": "Sum",
        "language": "python",
        "testCases": [{"input": given, "expectedOutput": expected}],
    }


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "languages": 8, "live_attempts": 0}


def test_languages_listing(client: TestClient) -> None:
    response = client.get("/languages")
    assert response.status_code == 200
    names = [item["name"] for item in response.json()]
    assert "c++" in names and "cpp" not in names
    python = next(item for item in response.json() if item["name"] == "python")
    assert python["backend_version"] == "3.10.0"
    assert python["starter_code"].startswith("def solution")


def test_language_lookup(client: TestClient) -> None:
    assert client.get("/languages/CPP").json()["backend_id"] == "c++"
    missing = client.get("/languages/cobol")
    assert missing.status_code == 404
    assert "cobol" in missing.json()["detail"]


def test_execute_returns_wire_shape(client: TestClient) -> None:
    response = client.post("/execute", json={"code": "print('hi')", "language": "Python"})
    assert response.status_code == 200
    body = response.json()
    assert body["output"] == "echo:print('hi')"
    assert body["exitCode"] == 0
    assert body["language"] == "python"
    assert body["version"] == "3.10.0"
    assert "executionTime" in body
    assert "error" not in body


@pytest.mark.parametrize("payload", [{"language": "python"}, {"code": "x"}, {"code": "", "language": "python"}])
def test_execute_requires_code_and_language(client: TestClient, payload: dict) -> None:
    response = client.post("/execute", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == "Code and language are required"


def test_execute_rejects_unsupported_language(client: TestClient) -> None:
    response = client.post("/execute", json={"code": "x", "language": "cobol"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Unsupported language: cobol"


def test_execute_outage_is_degraded_not_an_error(client: TestClient) -> None:
    response = client.post("/execute", json={"code": "outage", "language": "python"})
    assert response.status_code == 200
    body = response.json()
    assert body["error"] == "Code execution service unavailable"
    assert body["output"] == "The code execution service is currently unavailable. Please try again later."
    assert body["exitCode"] == -1


def test_grade_endpoint(client: TestClient) -> None:
    response = client.post(
        "/grade",
        json={
            "code": "print(sum(eval(input())))",
            "language": "python",
            "test_cases": [
                {"input": "[1,2,3]", "expectedOutput": "6"},
                {"input": "[4,5]", "expectedOutput": "10"},
            ],
        },
    )
    body = response.json()
    assert response.status_code == 200
    assert body["passed"] == 1
    assert body["total"] == 2
    assert body["score"] == 50
    assert body["is_correct"] is False
    assert body["output"] == "1 of 2 test cases passed."


def test_generate_question_falls_back(client: TestClient) -> None:
    response = client.post(
        "/questions/generate",
        json={"difficulty": "easy", "language": "Python", "reference": "LeetCode"},
    )
    assert response.status_code == 200
    question = response.json()["question"]
    assert question["title"] == "Sum of Array Elements"
    assert question["source"] == "template"
    assert question["starter_code"].startswith("def solution")


def test_attempt_flow(client: TestClient, journal: SubmissionJournal) -> None:
    started = client.post(
        "/attempts",
        json={
            "assessment_id": "assessment-1",
            "questions": [_question("q1"), _question("q2", expected="10", given="[4,5]")],
            "time_limit_minutes": 30,
            "user_id": "student-7",
        },
        headers={"X-Session-Id": "browser-1"},
    )
    assert started.status_code == 201
    state = started.json()
    attempt_id = state["attempt_id"]
    assert state["status"] == "in_progress"
    assert state["remaining_seconds"] == 1800

    first = client.post(f"/attempts/{attempt_id}/submit", json={"code": "print(sum(eval(input())))"})
    assert first.status_code == 200
    first_body = first.json()
    assert first_body["applied"] is True
    assert first_body["report"]["is_correct"] is True
    assert first_body["state"]["index"] == 1

    ticked = client.post(f"/attempts/{attempt_id}/tick").json()
    assert ticked["remaining_seconds"] <= 1799

    second = client.post(f"/attempts/{attempt_id}/submit", json={"code": "print(sum(eval(input())))"}).json()
    assert second["report"]["is_correct"] is False
    assert second["state"]["status"] == "terminal"
    summary = second["state"]["summary"]
    assert summary["correct"] == 1
    assert summary["incorrect"] == 1
    assert summary["accuracy"] == 50
    assert summary["passed_threshold"] is False

    closed = client.post(f"/attempts/{attempt_id}/submit", json={"code": "x"})
    assert closed.status_code == 409
    assert client.post(f"/attempts/{attempt_id}/navigate", json={"delta": -1}).status_code == 409

    fetched = client.get(f"/attempts/{attempt_id}").json()
    assert fetched["results"] == {"q1": True, "q2": False}

    events = journal.read()
    assert [event.submission.question_id for event in events] == ["q1", "q2"]
    assert {event.user_id for event in events} == {"student-7"}


def test_attempt_navigation_clamps(client: TestClient) -> None:
    attempt_id = client.post(
        "/attempts",
        json={"assessment_id": "a", "questions": [_question("q1"), _question("q2")]},
    ).json()["attempt_id"]
    assert client.post(f"/attempts/{attempt_id}/navigate", json={"delta": 5}).json()["index"] == 1
    assert client.post(f"/attempts/{attempt_id}/navigate", json={"delta": -9}).json()["index"] == 0
    untimed = client.post(f"/attempts/{attempt_id}/tick").json()
    assert untimed["remaining_seconds"] is None


def test_attempt_requires_questions(client: TestClient) -> None:
    response = client.post("/attempts", json={"assessment_id": "a", "questions": []})
    assert response.status_code == 422


def test_unknown_attempt_is_404(client: TestClient) -> None:
    assert client.get("/attempts/missing").status_code == 404
    assert client.post("/attempts/missing/submit", json={"code": "x"}).status_code == 404


def test_finished_attempts_leave_the_live_set(client: TestClient) -> None:
    attempt_ids = []
    for _ in range(5):
        attempt_id = client.post("/attempts", json={"assessment_id": "a", "questions": [_question("q1")]}).json()[
            "attempt_id"
        ]
        client.post(f"/attempts/{attempt_id}/submit", json={"code": "print(sum(eval(input())))"})
        attempt_ids.append(attempt_id)

    assert client.get("/health").json()["live_attempts"] == 0
    final = client.get(f"/attempts/{attempt_ids[0]}").json()
    assert final["status"] == "terminal"
    assert final["results"] == {"q1": True}
    assert client.post(f"/attempts/{attempt_ids[0]}/tick").json()["status"] == "terminal"


def test_attempt_routes_run_on_the_event_loop(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    for route in app.routes:
        if getattr(route, "path", "").startswith("/attempts"):
            assert inspect.iscoroutinefunction(route.endpoint), route.path

    threads: dict[str, str] = {}
    original_navigate = portal_main.Attempt.navigate

    def recording_navigate(self, delta: int) -> int:
        threads["navigate"] = threading.current_thread().name
        return original_navigate(self, delta)

    monkeypatch.setattr(portal_main.Attempt, "navigate", recording_navigate)
    attempt_id = client.post(
        "/attempts", json={"assessment_id": "a", "questions": [_question("q1"), _question("q2")]}
    ).json()["attempt_id"]
    client.post(f"/attempts/{attempt_id}/navigate", json={"delta": 1})

    assert "navigate" in threads
    assert "AnyIO worker thread" not in threads["navigate"]


def test_production_grader_opens_a_broker_per_run(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    opened: list[ExecutionBroker] = []

    def scoped_broker(*, config) -> ExecutionBroker:
        assert config.api_base == JudgeConfig().executor.api_base
        broker = _broker()
        opened.append(broker)
        return broker

    monkeypatch.setattr(portal_main, "ExecutionBroker", scoped_broker)
    app.dependency_overrides.pop(get_grader)

    graded = client.post(
        "/grade",
        json={
            "code": "print(sum(eval(input())))",
            "language": "python",
            "test_cases": [{"input": "[1,2,3]", "expectedOutput": "6"}],
        },
    ).json()
    assert graded["is_correct"] is True

    attempt_id = client.post("/attempts", json={"assessment_id": "a", "questions": [_question("q1")]}).json()[
        "attempt_id"
    ]
    submitted = client.post(f"/attempts/{attempt_id}/submit", json={"code": "print(sum(eval(input())))"}).json()
    assert submitted["report"]["is_correct"] is True

    assert len(opened) == 2
    assert opened[0] is not opened[1]
    assert isinstance(get_grader(ServiceSettings(judge=JudgeConfig())), ScopedGrader)
