"""
Scenario API routes.

Thin adapters: parse the HTTP request, call a handler, turn its
HandlerResult into a JSON response.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from scenario_engine import ScenarioGenerator, SchemaCache

from ..deps import Settings, get_app_settings, get_generator, get_queue, get_schema_cache
from ..generation_queue import SingleFlightQueue
from ..handlers import (
    HandlerResult,
    handle_cancel_generation,
    handle_generate_scenario,
    handle_get_schema,
    handle_validate_scenario,
)
from ..middleware.rate_limit import limit_generation
from ..models import (
    ErrorResponse,
    GenerateScenarioRequest,
    GenerateScenarioResponse,
    ValidateScenarioRequest,
    ValidateScenarioResponse,
)


router = APIRouter(tags=["scenarios"])


def to_response(result: HandlerResult) -> JSONResponse:
    """Convert a handler result to a JSON response."""
    return JSONResponse(status_code=result.status_code, content=result.payload)


@router.post(
    "/generate-scenario",
    response_model=GenerateScenarioResponse,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
@limit_generation()
async def generate_scenario(
    request: Request,
    body: GenerateScenarioRequest,
    generator: ScenarioGenerator = Depends(get_generator),
    queue: SingleFlightQueue = Depends(get_queue),
    settings: Settings = Depends(get_app_settings),
):
    """
    Generate a decision-envelope scenario from a free-text prompt.

    Generations run one at a time; a request reusing a pending requestId
    supersedes the earlier one.
    """
    result = await handle_generate_scenario(body.prompt, body.request_id, generator, queue, settings)
    return to_response(result)


@router.post("/generate-scenario/{request_id}/cancel", responses={404: {"model": ErrorResponse}})
async def cancel_generation(request_id: str, queue: SingleFlightQueue = Depends(get_queue)):
    """Cancel a queued or running generation."""
    return to_response(handle_cancel_generation(request_id, queue))


@router.post("/validate-scenario", response_model=ValidateScenarioResponse)
async def validate_scenario(body: ValidateScenarioRequest):
    """Validate a scenario, optionally deriving envelope state from revisions first."""
    return to_response(handle_validate_scenario(body.scenario, body.reconcile, body.closed_loops))


@router.get("/schema")
async def get_schema(schema_cache: SchemaCache = Depends(get_schema_cache)):
    """JSON Schema of the scenario wire format."""
    return to_response(handle_get_schema(schema_cache))
