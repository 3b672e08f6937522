"""Tests for API endpoints."""

import json

import pytest
from fastapi.testclient import TestClient

from tinypenguin.api.endpoints import get_task_manager
from tinypenguin.clients.inference import get_inference_client
from tinypenguin.errors import TransportError
from tinypenguin.main import app
from tinypenguin.models.chat import ChatMessage, ChatResponse, Choice
from tinypenguin.services.interaction_log import InteractionLog, get_interaction_log
from tinypenguin.services.task import TaskManager
from tinypenguin.tools.edit_files import FileEditor
from tinypenguin.tools.registry import ToolsRegistry
from tinypenguin.tools.run_commands import CommandRunner

client = TestClient(app)


class StubClient:
    """Inference client with a canned answer or failure."""

    def __init__(self, content: str = "", error: Exception | None = None, reachable: bool = True):
        self.content = content
        self.error = error
        self.reachable = reachable

    def chat(self, request):
        if self.error:
            raise self.error
        return ChatResponse(choices=[Choice(message=ChatMessage(role="assistant", content=self.content))])

    def check_connection(self) -> bool:
        return self.reachable

    def close(self):
        pass


@pytest.fixture
def use_model(tmp_path):
    """Route task requests to a stub model answering with the given content."""

    def install(**kwargs):
        manager = TaskManager(
            client=StubClient(**kwargs),
            tools_registry=ToolsRegistry(CommandRunner(default_timeout=10), FileEditor()),
            interaction_log=InteractionLog(tmp_path / "tool_calls.log"),
            model="qwen2.5-coder:3b",
        )
        app.dependency_overrides[get_task_manager] = lambda: manager
        return manager

    yield install
    app.dependency_overrides.clear()


def read_events(response) -> list[dict]:
    """Decode an NDJSON response body."""
    return [json.loads(line) for line in response.text.splitlines() if line]


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    @pytest.fixture(autouse=True)
    def stub_endpoint(self):
        """Answer reachability without a real endpoint."""
        app.dependency_overrides[get_inference_client] = lambda: StubClient(reachable=False)
        yield
        app.dependency_overrides.clear()

    def test_health_check_returns_200(self):
        """Test that health check returns 200 status."""
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_check_response_structure(self):
        """Test that health check returns expected JSON structure."""
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert data["endpoint_reachable"] is False
        assert "timestamp" in data

    def test_health_check_content_type(self):
        """Test that health check returns JSON content type."""
        response = client.get("/health")
        assert response.headers["content-type"] == "application/json"


class TestTaskEndpoint:
    """Tests for the task streaming endpoint."""

    def test_streams_answer(self, use_model):
        """Test a plain text answer streamed as events."""
        use_model(content="Use `useradd` to add a user.")
        response = client.post("/tasks", json={"query": "How do I add a user?"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")

        events = read_events(response)
        assert [e["type"] for e in events] == ["started", "answer", "completed"]
        assert events[1]["message"] == "Use `useradd` to add a user."

    def test_events_share_task_id(self, use_model):
        """Test that every event carries the same generated task id."""
        use_model(content="hello")
        events = read_events(client.post("/tasks", json={"query": "hi"}))

        task_ids = {e["task_id"] for e in events}
        assert len(task_ids) == 1
        assert len(task_ids.pop()) > 0

    def test_denied_suggestion(self, use_model):
        """Test that a dangerous suggestion is streamed as denied."""
        use_model(content='```json\n{"command": "rm -rf /"}\n```')
        events = read_events(client.post("/tasks", json={"query": "Free disk space"}))

        suggestion = next(e for e in events if e["type"] == "suggestion")
        assert suggestion["command"] == "rm -rf /"
        assert suggestion["result"]["status"] == "denied"

    def test_transport_error_event(self, use_model):
        """Test that an unreachable model ends the stream with an error event."""
        use_model(error=TransportError("failed to execute request to http://localhost:11434/v1/chat/completions"))
        events = read_events(client.post("/tasks", json={"query": "Check users"}))

        assert [e["type"] for e in events] == ["started", "error"]
        assert events[1]["message"].startswith("Failed to get response from model:")

    def test_shared_dependencies(self, tmp_path):
        """Test the default wiring of client, registry and log."""
        app.dependency_overrides[get_inference_client] = lambda: StubClient(content="All good.")
        app.dependency_overrides[get_interaction_log] = lambda: InteractionLog(tmp_path / "tool_calls.log")
        try:
            events = read_events(client.post("/tasks", json={"query": "Check users"}))
        finally:
            app.dependency_overrides.clear()

        assert [e["type"] for e in events] == ["started", "answer", "completed"]

    def test_missing_query(self, use_model):
        """Test that a request without a query is rejected."""
        use_model()
        response = client.post("/tasks", json={})
        assert response.status_code == 422


class TestTaskManagementEndpoints:
    """Tests for cancel and list."""

    def test_cancel_acknowledged(self):
        """Test that cancellation is acknowledged."""
        response = client.post("/tasks/abc123/cancel")
        assert response.status_code == 200
        assert response.json() == {"success": True, "task_id": "abc123"}

    def test_list_is_empty(self):
        """Test that no tasks are listed."""
        response = client.get("/tasks")
        assert response.status_code == 200
        assert response.json() == {"tasks": [], "next_page_token": ""}
