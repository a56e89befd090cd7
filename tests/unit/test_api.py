"""
Unit tests for the scenario API.

Tests endpoints through the FastAPI TestClient and the handlers directly,
with the generator running over the mock provider.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from api.deps import Settings
from api.generation_queue import SingleFlightQueue
from api.handlers import (
    CANCELLED_HINT,
    TIMEOUT_HINT,
    handle_cancel_generation,
    handle_generate_scenario,
    handle_validate_scenario,
)
from api.main import create_app
from api.middleware.rate_limit import reset_limiter
from llm_service.providers.mock_provider import MockProvider
from scenario_engine import ScenarioGenerator, SchemaCache

PROMPT = "Insurance claims triage during a regional flood"


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Reset recorded hits before and after each test."""
    reset_limiter()
    yield
    reset_limiter()


@pytest.fixture
def settings() -> Settings:
    """Settings with a short generation timeout."""
    settings = Settings()
    settings.generation_timeout_seconds = 5.0
    return settings


@pytest.fixture
def make_client(dry_run_config, settings, tmp_path):
    """Build a client around a generator over the given provider."""
    def _make(provider=None) -> TestClient:
        generator = ScenarioGenerator.from_config(dry_run_config, provider=provider or MockProvider())
        app = create_app(
            generator=generator,
            settings=settings,
            schema_cache=SchemaCache(tmp_path / "absent.schema.json"),
        )
        return TestClient(app)
    return _make


@pytest.fixture
def client(make_client):
    """Client over a well-behaved mock provider."""
    with make_client() as test_client:
        yield test_client


# ============================================================================
# Generation Endpoint
# ============================================================================

class TestGenerateScenario:
    """POST /generate-scenario"""

    def test_generates_complete_scenario(self, client):
        """Test a valid prompt yields a merged, validated scenario."""
        response = client.post("/generate-scenario", json={"prompt": PROMPT, "requestId": "req-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["warnings"] == []
        assert data["scenario"]["title"] == "Scenario Title"
        assert len(data["scenario"]["events"]) == 42

        meta = data["meta"]
        assert meta["requestId"] == "req-1"
        assert meta["eventCount"] == 42
        assert meta["agentCount"] == 9
        assert meta["envelopeCount"] == 3
        assert meta["boundaryCount"] == 4
        assert meta["feedbackLoopsComplete"] is True
        assert meta["unfilledPlaceholders"] == 0
        assert meta["model"] == "mock-model"
        assert meta["cost"] >= 0

    def test_request_id_generated_when_absent(self, client):
        """Test a request id is assigned."""
        response = client.post("/generate-scenario", json={"prompt": PROMPT})

        assert response.status_code == 200
        assert response.json()["meta"]["requestId"]

    @pytest.mark.parametrize("body", [{}, {"prompt": None}, {"prompt": "short"}, {"prompt": "         x"}])
    def test_prompt_too_short(self, client, body):
        """Test missing and short prompts are rejected."""
        response = client.post("/generate-scenario", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "Prompt must be at least 10 characters"

    def test_prompt_too_long(self, client):
        """Test prompts over the maximum are rejected."""
        response = client.post("/generate-scenario", json={"prompt": "x" * 1001})

        assert response.status_code == 400
        assert response.json()["error"] == "Prompt too long (max 1000 characters)"

    def test_truncated_generation(self, make_client):
        """Test a cut-off response becomes a 500 with a hint."""
        with make_client(MockProvider(truncate=True)) as client:
            response = client.post("/generate-scenario", json={"prompt": PROMPT})

        assert response.status_code == 500
        body = response.json()
        assert body["error"].startswith("Scenario generation failed: Response truncated")
        assert body["hint"]
        assert "duration" in body

    def test_structural_violation(self, make_client):
        """Test a response without the required arrays becomes a 500."""
        with make_client(MockProvider(fixed_response='{"envelopes": [], "fleets": []}')) as client:
            response = client.post("/generate-scenario", json={"prompt": PROMPT})

        assert response.status_code == 500
        assert "must include scenario.events array" in response.json()["error"]

    def test_timeout(self, make_client, settings):
        """Test a slow generation becomes a 504."""
        settings.generation_timeout_seconds = 0.05
        with make_client(MockProvider(latency_seconds=0.5)) as client:
            response = client.post("/generate-scenario", json={"prompt": PROMPT})

        assert response.status_code == 504
        body = response.json()
        assert body["error"] == "Generation timeout (0.05s limit)"
        assert body["hint"] == TIMEOUT_HINT

    def test_rate_limited(self, client):
        """Test the hourly generation limit per client."""
        for _ in range(20):
            assert client.post("/generate-scenario", json={"prompt": "short"}).status_code == 400

        response = client.post("/generate-scenario", json={"prompt": PROMPT})
        assert response.status_code == 429
        assert "Retry-After" in response.headers


class TestCancelGeneration:
    """POST /generate-scenario/{request_id}/cancel"""

    def test_unknown_request(self, client):
        """Test cancelling nothing is a 404."""
        response = client.post("/generate-scenario/nope/cancel")

        assert response.status_code == 404
        assert "nope" in response.json()["error"]


# ============================================================================
# Validation, Schema and Health
# ============================================================================

class TestValidateScenario:
    """POST /validate-scenario"""

    def test_valid_scenario(self, client, merged_scenario):
        """Test a generated scenario validates cleanly."""
        response = client.post("/validate-scenario", json={"scenario": merged_scenario})

        assert response.status_code == 200
        data = response.json()
        assert data == {"valid": True, "errors": [], "warnings": [], "scenario": None}

    def test_reconcile_first(self, client, skeleton):
        """Test reconciliation fixes stale envelope state and returns it."""
        raw = client.post("/validate-scenario", json={"scenario": skeleton.scenario}).json()
        assert raw["valid"] is False

        data = client.post("/validate-scenario", json={"scenario": skeleton.scenario, "reconcile": True}).json()
        assert data["valid"] is True
        assert data["scenario"]["envelopes"][0]["envelope_version"] == 3

    def test_reports_errors(self, client, merged_scenario):
        """Test errors are listed."""
        merged_scenario["envelopes"][1]["endHour"] = 80

        data = client.post("/validate-scenario", json={"scenario": merged_scenario}).json()
        assert data["valid"] is False
        assert "Envelope ENV-002 has invalid time window 0-80 for durationHours=72" in data["errors"]

    def test_body_must_be_object(self, client):
        """Test request schema validation."""
        assert client.post("/validate-scenario", json={"scenario": []}).status_code == 422

    def test_non_string_ids_reported(self, client, merged_scenario):
        """Test list-valued ids come back as errors, not a server error."""
        merged_scenario["events"][5]["envelopeId"] = ["ENV-001"]

        response = client.post("/validate-scenario", json={"scenario": merged_scenario})
        assert response.status_code == 200
        assert response.json()["valid"] is False

    def test_wire_format_checked(self, client, merged_scenario):
        """Test a scenario passing every rule must still fit the typed model."""
        merged_scenario["envelopes"][0]["name"] = 7

        data = client.post("/validate-scenario", json={"scenario": merged_scenario}).json()
        assert data["valid"] is False
        assert any(e.startswith("envelopes.0.name: ") for e in data["errors"])

    def test_closed_loops_flag(self, client, merged_scenario):
        """Test the closed-loop checks run on request."""
        data = client.post(
            "/validate-scenario", json={"scenario": merged_scenario, "closedLoops": True}
        ).json()

        assert data["valid"] is True
        assert len(data["warnings"]) == 3


class TestSchemaAndHealth:
    """GET /schema and GET /health"""

    def test_schema(self, client):
        """Test the model-generated schema is served."""
        response = client.get("/schema")

        assert response.status_code == 200
        assert "events" in response.json()["properties"]

    def test_health(self, client):
        """Test health reports mode and queue state."""
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["mode"] == "dry_run"
        assert data["queue"] == {"running": None, "pending": 0, "completed": 0, "cancelled": 0}

    def test_root(self, client):
        """Test the root endpoint links to docs."""
        assert client.get("/").json()["docs"] == "/docs"


# ============================================================================
# Handlers
# ============================================================================

class TestHandlers:
    """Handlers called without HTTP."""

    @pytest.mark.asyncio
    async def test_cancel_running_generation(self, dry_run_config, settings):
        """Test cancelling an in-flight generation yields a 409."""
        generator = ScenarioGenerator.from_config(dry_run_config, provider=MockProvider(latency_seconds=1.0))
        queue = SingleFlightQueue()

        pending = asyncio.ensure_future(
            handle_generate_scenario(PROMPT, "req-9", generator, queue, settings)
        )
        await asyncio.sleep(0.05)

        cancelled = handle_cancel_generation("req-9", queue)
        assert cancelled.status_code == 200
        assert cancelled.payload == {"requestId": "req-9", "cancelled": True}

        result = await pending
        assert result.status_code == 409
        assert result.payload["hint"] == CANCELLED_HINT

    @pytest.mark.asyncio
    async def test_superseded_generation(self, dry_run_config, settings):
        """Test a second request with the same id supersedes the first."""
        generator = ScenarioGenerator.from_config(dry_run_config, provider=MockProvider(latency_seconds=0.1))
        queue = SingleFlightQueue()

        first = asyncio.ensure_future(handle_generate_scenario(PROMPT, "same", generator, queue, settings))
        await asyncio.sleep(0.01)
        second = await handle_generate_scenario(PROMPT, "same", generator, queue, settings)

        assert (await first).status_code == 409
        assert second.status_code == 200

    def test_validate_non_object(self):
        """Test the validate handler rejects non-objects."""
        result = handle_validate_scenario(["not", "a", "scenario"])

        assert result.status_code == 400
        assert result.payload == {"error": "scenario must be a JSON object"}

    def test_validate_does_not_mutate_input(self, skeleton):
        """Test reconciliation works on a copy."""
        handle_validate_scenario(skeleton.scenario, reconcile=True)
        assert skeleton.scenario["envelopes"][0]["envelope_version"] == 1

    @pytest.mark.parametrize("field,value", [
        ("type", ["signal"]),
        ("envelopeId", ["ENV-001"]),
        ("agentId", {"id": "agent-001"}),
    ])
    def test_validate_non_string_event_fields(self, merged_scenario, field, value):
        """Test the validate handler reports unhashable ids as errors."""
        merged_scenario["events"][4][field] = value

        result = handle_validate_scenario(merged_scenario)
        assert result.status_code == 200
        assert result.payload["valid"] is False
        assert f"Event signal:1 has non-string {field}" in result.payload["errors"]

    @pytest.mark.asyncio
    async def test_queue_wait_not_counted_against_timeout(self, dry_run_config, settings):
        """Test a request queued behind another is timed from when it starts."""
        settings.generation_timeout_seconds = 0.3
        generator = ScenarioGenerator.from_config(dry_run_config, provider=MockProvider(latency_seconds=0.2))
        queue = SingleFlightQueue()

        first = asyncio.ensure_future(handle_generate_scenario(PROMPT, "first", generator, queue, settings))
        await asyncio.sleep(0.01)
        second = await handle_generate_scenario(PROMPT, "second", generator, queue, settings)

        assert (await first).status_code == 200
        assert second.status_code == 200
        assert queue.completed_count == 2
