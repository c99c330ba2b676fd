"""API tests using FastAPI's TestClient with an injected runtime."""

import json
import threading

import pytest
from fastapi.testclient import TestClient

from conftest import VALID_HTML, FakeBackend
from lessonforge.agent.builder import HELP_MESSAGE
from lessonforge.api.dependencies import build_runtime
from lessonforge.api.main import create_app
from lessonforge.config import Settings
from lessonforge.workflows.registry import WorkflowTemplateRegistry

CONCEPTS = [
    {
        "title": f"Game {i}",
        "description": "A fractions game.",
        "learning_objectives": ["Compare fractions"],
    }
    for i in range(3)
]


@pytest.fixture
def runtime():
    backend = FakeBackend(
        {"game-builder": VALID_HTML, "game-ideation": json.dumps(CONCEPTS)}
    )
    return build_runtime(
        Settings(max_retries=1), backend=backend, templates=WorkflowTemplateRegistry()
    )


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as test_client:
        yield test_client


def _wait_for(workflow_id):
    for thread in threading.enumerate():
        if thread.name.endswith(workflow_id):
            thread.join(timeout=10)


def _create_html_game(client, request="Fraction pizza game"):
    response = client.post("/v1/workflows", json={"template_key": "html-game", "params": {"request": request}})
    assert response.status_code == 201
    return response.json()["workflow_id"]


class TestServiceEndpoints:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["service"] == "LessonForge API"
        assert body["endpoints"]["workflows"] == "/v1/workflows"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body == {
            "status": "healthy",
            "skills_loaded": 7,
            "templates_loaded": 4,
            "workflows_tracked": 0,
            "llm_configured": True,
        }


class TestSkillRoutes:
    def test_list_skills(self, client):
        skills = client.get("/v1/skills").json()
        assert len(skills) == 7
        assert {"id", "name", "triggers"} <= set(skills[0])

    def test_detect(self, client):
        body = client.post("/v1/skills/detect", json={"request": "brainstorm math game ideas"}).json()
        assert body["results"][0]["skill_id"] == "game-ideation"
        assert body["best_skill"] == "game-ideation"
        assert body["chain"][0] == "game-ideation"

    def test_detect_threshold_override(self, client):
        body = client.post(
            "/v1/skills/detect",
            json={"request": "check accessibility", "auto_select_threshold": 100},
        ).json()
        assert body["results"][0]["skill_id"] == "accessibility-validator"
        assert body["best_skill"] is None

    def test_detect_requires_request(self, client):
        assert client.post("/v1/skills/detect", json={"request": ""}).status_code == 422


class TestWorkflowRoutes:
    def test_list_templates(self, client):
        keys = {t["template_key"] for t in client.get("/v1/workflows/templates").json()}
        assert keys == {"html-game", "react-game", "validation-only", "curriculum-package"}

    def test_create_and_inspect(self, client):
        workflow_id = _create_html_game(client)

        workflow = client.get(f"/v1/workflows/{workflow_id}").json()
        assert workflow["status"] == "pending"
        assert workflow["type"] == "html-game"
        assert len(workflow["steps"]) == 3

        progress = client.get(f"/v1/workflows/{workflow_id}/progress").json()
        assert progress["current_activity"] == "Idle"
        assert progress["total_steps"] == 3

        events = client.get(f"/v1/workflows/{workflow_id}/events").json()
        assert [e["type"] for e in events] == ["started"]

    def test_create_requires_exactly_one_source(self, client):
        assert client.post("/v1/workflows", json={}).status_code == 400
        both = {"template_key": "html-game", "steps": [{"skill_id": "game-builder"}]}
        assert client.post("/v1/workflows", json=both).status_code == 400

    def test_create_errors(self, client):
        missing = client.post("/v1/workflows", json={"template_key": "nope"})
        assert missing.status_code == 404

        no_params = client.post("/v1/workflows", json={"template_key": "html-game"})
        assert no_params.status_code == 400
        assert "request" in no_params.json()["detail"]

    def test_execute_runs_in_background(self, client):
        workflow_id = _create_html_game(client)

        response = client.post(f"/v1/workflows/{workflow_id}/execute")
        assert response.status_code == 202
        _wait_for(workflow_id)

        workflow = client.get(f"/v1/workflows/{workflow_id}").json()
        assert workflow["status"] == "completed"
        assert workflow["results"]["2"]["score"] == 100
        assert workflow["results"]["3"]["category"] == "math"

        progress = client.get(f"/v1/workflows/{workflow_id}/progress").json()
        assert progress["percent_complete"] == 100.0

        events = [e["type"] for e in client.get(f"/v1/workflows/{workflow_id}/events").json()]
        assert events[0] == "started"
        assert events[-1] == "completed"

        again = client.post(f"/v1/workflows/{workflow_id}/execute")
        assert again.status_code == 409

    def test_custom_steps_with_immediate_execution(self, client):
        response = client.post(
            "/v1/workflows",
            json={
                "name": "Check markup",
                "type": "validation",
                "steps": [{"skill_id": "accessibility-validator", "input": {"html": VALID_HTML}}],
                "execute": True,
            },
        )
        assert response.status_code == 201
        workflow_id = response.json()["workflow_id"]
        _wait_for(workflow_id)

        workflow = client.get(f"/v1/workflows/{workflow_id}").json()
        assert workflow["status"] == "completed"
        assert workflow["name"] == "Check markup"

    def test_unknown_workflow_is_404(self, client):
        for path in ("", "/progress", "/events"):
            assert client.get(f"/v1/workflows/wf-missing{path}").status_code == 404
        for action in ("execute", "pause", "resume", "cancel"):
            assert client.post(f"/v1/workflows/wf-missing/{action}").status_code == 404

    def test_control_conflicts(self, client):
        workflow_id = _create_html_game(client)

        assert client.post(f"/v1/workflows/{workflow_id}/pause").status_code == 409
        assert client.post(f"/v1/workflows/{workflow_id}/resume").status_code == 409

        cancelled = client.post(f"/v1/workflows/{workflow_id}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "failed"
        assert client.post(f"/v1/workflows/{workflow_id}/cancel").status_code == 409
        assert client.post(f"/v1/workflows/{workflow_id}/execute").status_code == 409

    def test_list_filter_and_clear(self, client, runtime):
        done_id = _create_html_game(client)
        pending_id = _create_html_game(client, "Another game")
        runtime.orchestrator.execute_workflow(done_id)

        completed = client.get("/v1/workflows", params={"status": "completed"}).json()
        assert [w["id"] for w in completed] == [done_id]
        assert len(client.get("/v1/workflows").json()) == 2
        assert client.get("/v1/workflows", params={"status": "bogus"}).status_code == 422

        assert client.delete("/v1/workflows/completed").json() == {"cleared": 1}
        assert [w["id"] for w in client.get("/v1/workflows").json()] == [pending_id]


class TestAgentRoutes:
    def test_chat_and_conversation(self, client):
        response = client.post(
            "/v1/agent/chat",
            json={"message": "brainstorm math game ideas for grade 3", "conversation_id": "c1"},
        )
        body = response.json()

        assert response.status_code == 200
        assert body["skills_used"] == ["game-ideation"]
        assert len(body["output"]["concepts"]) == 3
        assert body["conversation_id"] == "c1"

        conversation = client.get("/v1/agent/conversations/c1").json()
        assert [m["role"] for m in conversation["messages"]] == ["user", "assistant"]
        assert conversation["skill_outputs"] == ["game-ideation"]

        assert client.delete("/v1/agent/conversations/c1").status_code == 200
        assert client.delete("/v1/agent/conversations/c1").status_code == 404

    def test_chat_help_for_unknown_requests(self, client):
        body = client.post("/v1/agent/chat", json={"message": "hello there"}).json()
        assert body["response"] == HELP_MESSAGE

    def test_chat_validation(self, client):
        assert client.post("/v1/agent/chat", json={"message": ""}).status_code == 422

    def test_unknown_conversation_is_empty(self, client):
        body = client.get("/v1/agent/conversations/nobody").json()
        assert body == {"conversation_id": "nobody", "messages": [], "skill_outputs": []}
