"""
Request handlers for the scenario API.

Each handler takes plain values and returns a HandlerResult; routes only
adapt between HTTP and these functions, so handlers are tested directly.
"""

import copy
import json
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from scenario_engine import (
    GenerationCancelled,
    GenerationTimeout,
    ScenarioEngineError,
    ScenarioGenerator,
    ScenarioValidationError,
    SchemaCache,
    reconcile_envelope_state,
    validate_scenario,
)
from scenario_engine.schemas import EventType
from scenario_engine.validation import typed_scenario

from .deps import Settings
from .generation_queue import SingleFlightQueue, run_with_timeout

logger = logging.getLogger(__name__)

TIMEOUT_HINT = "Generation took too long. Try a simpler prompt."
CANCELLED_HINT = "The request was cancelled or superseded by a newer request."
FAILURE_HINT = "Check that the generation backend is reachable and the prompt is clear."


@dataclass
class HandlerResult:
    status_code: int
    payload: Dict[str, Any]


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _error(status_code: int, message: str, start: float, hint: Optional[str] = None) -> HandlerResult:
    payload: Dict[str, Any] = {"error": message, "duration": _elapsed_ms(start)}
    if hint:
        payload["hint"] = hint
    return HandlerResult(status_code, payload)


def check_prompt(prompt: Optional[str], settings: Settings) -> Optional[str]:
    """Return a problem description, or None for an acceptable prompt."""
    if not isinstance(prompt, str) or len(prompt.strip()) < settings.prompt_min_length:
        return f"Prompt must be at least {settings.prompt_min_length} characters"
    if len(prompt) > settings.prompt_max_length:
        return f"Prompt too long (max {settings.prompt_max_length} characters)"
    return None


async def handle_generate_scenario(
    prompt: Optional[str],
    request_id: Optional[str],
    generator: ScenarioGenerator,
    queue: SingleFlightQueue,
    settings: Settings,
) -> HandlerResult:
    """Generate a scenario through the single-flight queue with a timeout."""
    start = time.monotonic()

    problem = check_prompt(prompt, settings)
    if problem:
        return _error(400, problem, start)

    request_id = request_id or uuid.uuid4().hex
    logger.info(f"[{request_id}] Generating scenario from prompt: {prompt[:50]!r}")

    try:
        # Only the running generation is timed, not the wait in the queue
        result = await queue.submit(
            request_id,
            lambda: run_with_timeout(generator.generate(prompt), settings.generation_timeout_seconds),
        )
    except GenerationTimeout as e:
        logger.warning(f"[{request_id}] {e}")
        return _error(504, str(e), start, TIMEOUT_HINT)
    except GenerationCancelled as e:
        logger.info(f"[{request_id}] {e}")
        return _error(409, str(e), start, CANCELLED_HINT)
    except ScenarioValidationError as e:
        logger.error(f"[{request_id}] {len(e.violations)} validation errors")
        return _error(500, f"Scenario generation failed: {e.summary()}", start, FAILURE_HINT)
    except ScenarioEngineError as e:
        logger.error(f"[{request_id}] Scenario generation error: {e}")
        return _error(500, f"Scenario generation failed: {e}", start, FAILURE_HINT)

    scenario = result.scenario
    typed = result.typed
    meta = result.metadata
    duration = _elapsed_ms(start)
    logger.info(
        f"[{request_id}] Scenario generated in {duration}ms: {scenario.get('id')}, "
        f"{len(result.validation_warnings)} warnings | {meta.summary_line()}"
    )

    return HandlerResult(200, {
        "scenario": scenario,
        "warnings": result.validation_warnings,
        "meta": {
            "requestId": request_id,
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "duration": duration,
            "eventCount": len(typed.events),
            "agentCount": len(typed.agents()),
            "envelopeCount": len(typed.envelopes),
            "boundaryCount": len(typed.events_of_type(EventType.BOUNDARY_INTERACTION)),
            "feedbackLoopsComplete": not result.validation_warnings,
            "unfilledPlaceholders": len(result.unfilled_placeholders),
            "model": meta.model,
            "tokensIn": meta.tokens_in,
            "tokensOut": meta.tokens_out,
            "cost": meta.cost,
        },
    })


def handle_cancel_generation(request_id: str, queue: SingleFlightQueue) -> HandlerResult:
    """Cancel a queued or running generation."""
    if not queue.cancel(request_id):
        return HandlerResult(404, {"error": f"No queued or running generation with requestId {request_id}"})
    logger.info(f"[{request_id}] Generation cancelled by client")
    return HandlerResult(200, {"requestId": request_id, "cancelled": True})


def handle_validate_scenario(scenario: Any, reconcile: bool = False, closed_loops: bool = False) -> HandlerResult:
    """
    Validate a caller-supplied scenario, optionally reconciling it first.

    A scenario that passes every rule must also fit the typed wire format,
    the same acceptance bar a generated scenario meets.
    """
    if not isinstance(scenario, dict):
        return HandlerResult(400, {"error": "scenario must be a JSON object"})

    scenario = copy.deepcopy(scenario)
    if reconcile:
        reconcile_envelope_state(scenario)

    report = validate_scenario(scenario, closed_loops=closed_loops)
    if report.ok:
        try:
            typed_scenario(scenario)
        except ScenarioValidationError as e:
            report.violations.extend(e.violations)

    return HandlerResult(200, {
        "valid": report.ok,
        "errors": report.errors,
        "warnings": report.warnings,
        "scenario": scenario if reconcile else None,
    })


def handle_get_schema(schema_cache: SchemaCache) -> HandlerResult:
    """Return the memoized scenario JSON Schema."""
    try:
        return HandlerResult(200, schema_cache.load())
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load scenario schema: {e}")
        return HandlerResult(500, {"error": f"Failed to load scenario schema: {e}"})
