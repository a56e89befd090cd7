# schemas.py - Pydantic models for the decision-envelope scenario wire format
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Hours keep their JSON number type (18 stays 18, 18.5 stays 18.5)
Hour = Union[int, float]


class EventType(str, Enum):
    ENVELOPE_PROMOTED = "envelope_promoted"
    ENVELOPE_DEPRECATED = "envelope_deprecated"
    SIGNAL = "signal"
    DECISION = "decision"
    BOUNDARY_INTERACTION = "boundary_interaction"
    REVISION = "revision"
    EMBEDDING = "embedding"
    RETRIEVAL = "retrieval"


class BoundaryKind(str, Enum):
    ESCALATED = "escalated"
    OVERRIDDEN = "overridden"


class DecisionStatus(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    DEFERRED = "deferred"


BOUNDARY_KINDS = frozenset(kind.value for kind in BoundaryKind)
AGENT_ACTOR_ROLE = "agent"
HISTORICAL_SOURCE = "historical"


class WireModel(BaseModel):
    """Base for wire-format models: camelCase aliases, extra keys kept"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Envelope(WireModel):
    envelope_id: str = Field(alias="envelopeId")
    name: Optional[str] = None
    domain: Optional[str] = None
    owner_role: Optional[str] = Field(default=None, alias="ownerRole")
    created_hour: Hour = Field(alias="createdHour")
    end_hour: Hour = Field(alias="endHour")
    envelope_version: int = 1
    assumptions: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)


class Agent(WireModel):
    agent_id: str = Field(alias="agentId")
    name: Optional[str] = None
    role: Optional[str] = None
    envelope_ids: List[str] = Field(default_factory=list, alias="envelopeIds")


class Fleet(WireModel):
    steward_role: Optional[str] = Field(default=None, alias="stewardRole")
    agents: List[Agent] = Field(default_factory=list)


class EventBase(WireModel):
    """Fields shared by every event kind"""
    event_id: str = Field(alias="eventId")
    hour: Hour
    envelope_id: Optional[str] = Field(default=None, alias="envelopeId")
    actor_role: Optional[str] = Field(default=None, alias="actorRole")
    actor_name: Optional[str] = Field(default=None, alias="actorName")
    summary: Optional[str] = None


class EnvelopeLifecycleEvent(EventBase):
    type: Literal["envelope_promoted", "envelope_deprecated"]
    envelope_version: Optional[int] = None


class SignalEvent(EventBase):
    type: Literal["signal"]
    signal_type: Optional[str] = Field(default=None, alias="signalType")
    signal_key: Optional[str] = Field(default=None, alias="signalKey")
    severity: Optional[str] = None
    source: Optional[str] = None


class DecisionEvent(EventBase):
    type: Literal["decision"]
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    status: DecisionStatus
    resolves_event_id: Optional[str] = Field(default=None, alias="resolvesEventId")


class BoundaryInteractionEvent(EventBase):
    type: Literal["boundary_interaction"]
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    boundary_kind: BoundaryKind
    boundary_reason: Optional[str] = None


class RevisionEvent(EventBase):
    type: Literal["revision"]
    envelope_version: int
    revision_id: str
    resolves_event_id: Optional[str] = Field(default=None, alias="resolvesEventId")
    next_assumptions: List[str] = Field(alias="nextAssumptions")
    next_constraints: List[str] = Field(alias="nextConstraints")


class EmbeddingEvent(EventBase):
    type: Literal["embedding"]
    embedding_id: str = Field(alias="embeddingId")
    embedding_type: str = Field(alias="embeddingType")
    source_event_id: Optional[str] = Field(default=None, alias="sourceEventId")
    semantic_context: Optional[str] = Field(default=None, alias="semanticContext")
    semantic_vector: List[float] = Field(default_factory=list, alias="semanticVector")
    chunk_text: Optional[str] = Field(default=None, alias="chunkText")


class RetrievalEvent(EventBase):
    type: Literal["retrieval"]
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    query_text: Optional[str] = Field(default=None, alias="queryText")
    retrieved_embeddings: List[str] = Field(default_factory=list, alias="retrievedEmbeddings")
    relevance_scores: List[float] = Field(default_factory=list, alias="relevanceScores")

    @field_validator("relevance_scores")
    @classmethod
    def scores_in_unit_range(cls, scores: List[float]) -> List[float]:
        for score in scores:
            if score < 0 or score > 1:
                raise ValueError(f"relevance score {score} outside [0, 1]")
        return scores


Event = Annotated[
    Union[
        EnvelopeLifecycleEvent,
        SignalEvent,
        DecisionEvent,
        BoundaryInteractionEvent,
        RevisionEvent,
        EmbeddingEvent,
        RetrievalEvent,
    ],
    Field(discriminator="type"),
]


class Scenario(WireModel):
    """A complete decision-envelope scenario"""
    schema_version: int = Field(alias="schemaVersion")
    id: str
    title: str
    domain: Optional[str] = None
    duration_hours: Hour = Field(alias="durationHours")
    envelopes: List[Envelope]
    fleets: List[Fleet]
    events: List[Event]

    def agents(self) -> List[Agent]:
        return [agent for fleet in self.fleets for agent in fleet.agents]

    def events_of_type(self, event_type: EventType) -> List[Any]:
        return [event for event in self.events if event.type == event_type.value]


def scenario_json_schema() -> Dict[str, Any]:
    """JSON Schema of the scenario wire format, generated from the models"""
    schema = Scenario.model_json_schema(by_alias=True)
    schema.setdefault("$schema", "https://json-schema.org/draft/2020-12/schema")
    return schema
