"""
Pydantic models for API request/response schemas.

Defines the data transfer objects for the scenario API. Prompt bounds are
checked by the handlers, not here, so a bad prompt is a 400 rather than a 422.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Generation Models
# ============================================================================

class GenerateScenarioRequest(BaseModel):
    """Request model for scenario generation."""
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = Field(
        None,
        description="Free-text description of the scenario to generate"
    )
    request_id: Optional[str] = Field(
        None,
        alias="requestId",
        description="Client-chosen id used to cancel or supersede the request"
    )


class GenerationMeta(BaseModel):
    """Summary attached to a generated scenario."""
    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(..., alias="requestId")
    generated_at: str = Field(..., alias="generatedAt")
    duration: int = Field(..., description="Request duration in milliseconds")
    event_count: int = Field(..., alias="eventCount")
    agent_count: int = Field(..., alias="agentCount")
    envelope_count: int = Field(..., alias="envelopeCount")
    boundary_count: int = Field(..., alias="boundaryCount")
    feedback_loops_complete: bool = Field(..., alias="feedbackLoopsComplete")
    unfilled_placeholders: int = Field(0, alias="unfilledPlaceholders")
    model: str
    tokens_in: int = Field(..., alias="tokensIn")
    tokens_out: int = Field(..., alias="tokensOut")
    cost: float


class GenerateScenarioResponse(BaseModel):
    """Response model for a generated scenario."""
    scenario: Dict[str, Any]
    warnings: List[str] = Field(default_factory=list)
    meta: GenerationMeta


# ============================================================================
# Validation Models
# ============================================================================

class ValidateScenarioRequest(BaseModel):
    """Request model for validating a caller-supplied scenario."""
    model_config = ConfigDict(populate_by_name=True)

    scenario: Dict[str, Any]
    reconcile: bool = Field(
        False,
        description="Derive envelope state from revisions before validating"
    )
    closed_loops: bool = Field(
        False,
        alias="closedLoops",
        description="Also run the closed-loop authoring checks"
    )


class ValidateScenarioResponse(BaseModel):
    """Validation findings."""
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    scenario: Optional[Dict[str, Any]] = None


# ============================================================================
# System Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: datetime
    mode: str
    rate_limiting: bool
    queue: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error response body."""
    error: str
    hint: Optional[str] = None
    duration: Optional[int] = Field(None, description="Milliseconds spent before failing")
