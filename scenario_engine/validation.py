# ============================================================================
# scenario_engine/validation.py - Scenario invariant checks with rule registry
# ============================================================================
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set
import json

from pydantic import ValidationError as ModelValidationError

from scenario_engine.errors import ScenarioValidationError
from scenario_engine.reconciler import latest_revisions
from scenario_engine.schemas import (
    AGENT_ACTOR_ROLE,
    BOUNDARY_KINDS,
    HISTORICAL_SOURCE,
    EventType,
    Scenario,
)

RECOMMENDED_EVENTS = (40, 50)
RECOMMENDED_AGENTS = (9, 15)
RECOMMENDED_ENVELOPES = (3, 5)
REQUIRED_FIELDS = ("schemaVersion", "id", "title", "durationHours", "envelopes", "fleets", "events")
FEEDBACK_EVENT_TYPES = (EventType.REVISION.value, EventType.BOUNDARY_INTERACTION.value)
EVENT_ID_FIELDS = ("eventId", "type", "envelopeId", "agentId", "resolvesEventId", "sourceEventId", "embeddingId")
BOUNDARY_RETRIEVAL_WINDOW_HOURS = 0.5

# Rule groups: core rules run on every validation, closed-loop rules are
# the stricter authoring checks for hand-written scenario files
CORE_RULES = "core"
CLOSED_LOOP_RULES = "closed_loop"


class Severity(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"


@dataclass(frozen=True)
class Violation:
    rule: str
    severity: Severity
    message: str


@dataclass
class ValidationReport:
    """All findings of one validation run"""
    violations: List[Violation] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return [v.message for v in self.violations if v.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[str]:
        return [v.message for v in self.violations if v.severity == Severity.WARNING]

    @property
    def ok(self) -> bool:
        return not any(v.severity == Severity.ERROR for v in self.violations)

    def raise_for_errors(self) -> None:
        if not self.ok:
            raise ScenarioValidationError(
                [v for v in self.violations if v.severity == Severity.ERROR],
                warnings=self.warnings,
            )

    def to_dict(self) -> Dict[str, List[str]]:
        return {"errors": self.errors, "warnings": self.warnings}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _dicts(items: Any) -> List[Dict[str, Any]]:
    return [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []


def _id(value: Any) -> Optional[str]:
    """A usable identifier is a non-empty string; anything else is None"""
    return value if isinstance(value, str) and value else None


@dataclass
class ScenarioIndex:
    """Lookups shared by the validation rules"""
    events: List[Dict[str, Any]]
    envelopes: List[Dict[str, Any]]
    envelopes_by_id: Dict[str, Dict[str, Any]]
    agent_scopes: Dict[str, Set[str]]
    agent_count: int
    events_by_type: Dict[str, List[Dict[str, Any]]]
    embeddings_by_id: Dict[str, Dict[str, Any]]
    event_ids: Set[str]

    @classmethod
    def build(cls, scenario: Dict[str, Any]) -> "ScenarioIndex":
        events = _dicts(scenario.get("events"))
        envelopes = _dicts(scenario.get("envelopes"))

        agent_scopes: Dict[str, Set[str]] = {}
        agent_count = 0
        for fleet in _dicts(scenario.get("fleets")):
            agents = fleet.get("agents") if isinstance(fleet.get("agents"), list) else []
            agent_count += len(agents)
            for agent in _dicts(agents):
                agent_id = _id(agent.get("agentId"))
                if agent_id is None:
                    continue
                scope = agent.get("envelopeIds") if isinstance(agent.get("envelopeIds"), list) else []
                agent_scopes[agent_id] = {env_id for env_id in scope if isinstance(env_id, str)}

        events_by_type: Dict[str, List[Dict[str, Any]]] = {}
        for event in events:
            if isinstance(event.get("type"), str):
                events_by_type.setdefault(event["type"], []).append(event)

        embeddings_by_id = {
            _id(emb.get("embeddingId")): emb
            for emb in events_by_type.get(EventType.EMBEDDING.value, [])
            if _id(emb.get("embeddingId"))
        }

        return cls(
            events=events,
            envelopes=envelopes,
            envelopes_by_id={
                _id(env.get("envelopeId")): env for env in envelopes if _id(env.get("envelopeId"))
            },
            agent_scopes=agent_scopes,
            agent_count=agent_count,
            events_by_type=events_by_type,
            embeddings_by_id=embeddings_by_id,
            event_ids={_id(e.get("eventId")) for e in events if _id(e.get("eventId"))},
        )

    def embedded_sources(self) -> Set[tuple]:
        """(sourceEventId, embeddingType) pairs of every embedding"""
        return {
            (_id(emb.get("sourceEventId")), _id(emb.get("embeddingType")))
            for emb in self.of_type(EventType.EMBEDDING)
        }

    def of_type(self, event_type: EventType) -> List[Dict[str, Any]]:
        return self.events_by_type.get(event_type.value, [])


Rule = Callable[[Dict[str, Any], ScenarioIndex], Iterable[str]]


class ScenarioValidator:
    """Scenario validator with plugin registry"""
    _registry: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def register(cls, name: str, severity: str = "ERROR", group: str = CORE_RULES):
        def decorator(func: Rule):
            cls._registry[name] = {"func": func, "severity": Severity(severity), "group": group}
            return func
        return decorator

    def __init__(
        self,
        rules: Optional[Dict[str, Dict[str, Any]]] = None,
        groups: Iterable[str] = (CORE_RULES,),
    ):
        if rules is None:
            groups = set(groups)
            rules = {name: rule for name, rule in self._registry.items() if rule["group"] in groups}
        self.rules = dict(rules)

    def validate(self, scenario: Dict[str, Any]) -> ValidationReport:
        """
        Run every rule over a merged scenario.

        Only the structural precondition short-circuits: without envelopes,
        events and durationHours no other rule can run meaningfully.
        """
        report = ValidationReport()

        for message in missing_required_fields(scenario):
            report.violations.append(Violation("required_fields", Severity.ERROR, message))

        if not all(_present(scenario.get(key)) for key in ("envelopes", "events", "durationHours")):
            report.violations.append(Violation(
                "required_fields", Severity.ERROR, "Scenario missing envelopes/events/durationHours"
            ))
            return report

        index = ScenarioIndex.build(scenario)
        for name, rule in self.rules.items():
            for message in rule["func"](scenario, index):
                report.violations.append(Violation(name, rule["severity"], message))
        return report


def _present(value: Any) -> bool:
    return value is not None and value != "" and value is not False


def missing_required_fields(scenario: Dict[str, Any]) -> List[str]:
    return [f"Missing required field: {key}" for key in REQUIRED_FIELDS if not _present(scenario.get(key))]


def validate_scenario(scenario: Dict[str, Any], closed_loops: bool = False) -> ValidationReport:
    """
    Validate a scenario against the registered rules.

    Args:
        scenario: Merged scenario dict
        closed_loops: Also run the closed-loop authoring checks
    """
    groups = (CORE_RULES, CLOSED_LOOP_RULES) if closed_loops else (CORE_RULES,)
    return ScenarioValidator(groups=groups).validate(scenario)


def typed_scenario(scenario: Dict[str, Any]) -> Scenario:
    """
    Parse a scenario that passed the rules into the typed model.

    Raises:
        ScenarioValidationError: If the wire format does not fit the models
    """
    try:
        return Scenario.model_validate(scenario)
    except ModelValidationError as e:
        violations = []
        for err in e.errors():
            location = ".".join(str(part) for part in err["loc"])
            violations.append(Violation("wire_format", Severity.ERROR, f"{location}: {err['msg']}"))
        raise ScenarioValidationError(violations) from e


# ----------------------------------------------------------------------------
# Error rules
# ----------------------------------------------------------------------------

@ScenarioValidator.register("identifier_types", "ERROR")
def validate_identifier_types(scenario, index):
    """Ids and id references must be strings; other rules skip the rest"""
    for position, env in enumerate(index.envelopes):
        if env.get("envelopeId") is not None and not isinstance(env["envelopeId"], str):
            yield f"Envelope #{position} has non-string envelopeId"

    for fleet in _dicts(scenario.get("fleets")):
        for agent in _dicts(fleet.get("agents")):
            agent_id = agent.get("agentId")
            if agent_id is not None and not isinstance(agent_id, str):
                yield f"Agent in fleet {fleet.get('stewardRole')} has non-string agentId"
                continue
            scope = agent.get("envelopeIds")
            if isinstance(scope, list) and not all(isinstance(env_id, str) for env_id in scope):
                yield f"Agent {agent_id} has non-string envelopeIds entry"

    for position, event in enumerate(index.events):
        label = _id(event.get("eventId")) or f"#{position}"
        for key in EVENT_ID_FIELDS:
            if event.get(key) is not None and not isinstance(event[key], str):
                yield f"Event {label} has non-string {key}"
        referenced = event.get("retrievedEmbeddings")
        if isinstance(referenced, list) and not all(isinstance(emb_id, str) for emb_id in referenced):
            yield f"Event {label} has non-string retrievedEmbeddings entry"


@ScenarioValidator.register("unique_envelope_ids", "ERROR")
def validate_unique_envelope_ids(scenario, index):
    """One envelope object per envelopeId"""
    ids = [_id(env.get("envelopeId")) for env in index.envelopes if _id(env.get("envelopeId"))]
    if len(set(ids)) != len(ids):
        yield ("Duplicate envelopeId entries found in scenario.envelopes "
               "(generator requires one envelope object per envelopeId)")


@ScenarioValidator.register("envelope_windows", "ERROR")
def validate_envelope_windows(scenario, index):
    """0 <= createdHour < endHour <= durationHours"""
    duration = scenario.get("durationHours")
    if not _is_number(duration):
        yield f"durationHours must be a number, got {duration!r}"
    for env in index.envelopes:
        created, end = env.get("createdHour"), env.get("endHour")
        if not _is_number(created) or not _is_number(end):
            yield f"Envelope {env.get('envelopeId')} missing createdHour/endHour"
            continue
        if created < 0 or (_is_number(duration) and end > duration) or created >= end:
            yield (f"Envelope {env.get('envelopeId')} has invalid time window {created}-{end} "
                   f"for durationHours={duration}")


@ScenarioValidator.register("event_envelope_windows", "ERROR")
def validate_event_envelope_windows(scenario, index):
    """Non-historical events must fall inside their envelope's window"""
    for event in index.events:
        hour = event.get("hour")
        env_id = _id(event.get("envelopeId"))
        if env_id is None or not _is_number(hour):
            continue
        # Negative hours are pre-existing memory
        if hour < 0:
            continue
        env = index.envelopes_by_id.get(env_id)
        if env is None:
            yield f"Event at hour {hour} references unknown envelopeId {env_id}"
            continue
        created, end = env.get("createdHour"), env.get("endHour")
        if not _is_number(created) or not _is_number(end):
            continue
        if hour < created or hour > end:
            yield (f"Event at hour {hour} for {env_id} occurs outside "
                   f"envelope window {created}-{end}")


@ScenarioValidator.register("agent_scope", "ERROR")
def validate_agent_scope(scenario, index):
    """Agent-attributed events must name a known agent acting inside its scope"""
    for event in index.events:
        hour = event.get("hour")
        if not _is_number(hour):
            continue
        agent_id = event.get("agentId")
        if not (event.get("actorRole") == AGENT_ACTOR_ROLE or agent_id):
            continue
        if not agent_id:
            yield f"Agent event at hour {hour} is missing agentId"
            continue
        if not isinstance(agent_id, str):
            continue
        allowed = index.agent_scopes.get(agent_id)
        if allowed is None:
            yield f"Event at hour {hour} references unknown agentId {agent_id}"
            continue
        target = _id(event.get("envelopeId"))
        if target and target not in allowed:
            yield (f"Agent {agent_id} used outside scope: event at hour {hour} targets "
                   f"{target}, allowed: {', '.join(sorted(allowed))}")


@ScenarioValidator.register("envelope_state", "ERROR")
def validate_envelope_state(scenario, index):
    """Envelope version/assumptions/constraints equal the latest revision's"""
    latest = latest_revisions(scenario)
    for env_id, env in index.envelopes_by_id.items():
        revision = latest.get(env_id)
        if revision is None:
            continue
        rev_label = revision.get("eventId") or revision.get("revision_id") or "unknown"

        if env.get("envelope_version") is None or revision.get("envelope_version") is None:
            yield f"Envelope {env_id} or its latest revision is missing envelope_version"
        elif env["envelope_version"] != revision["envelope_version"]:
            yield (f"Envelope {env_id} envelope_version ({env['envelope_version']}) does not match "
                   f"latest revision ({revision['envelope_version']})")

        for env_key, rev_key in (("assumptions", "nextAssumptions"), ("constraints", "nextConstraints")):
            expected = revision.get(rev_key)
            if isinstance(expected, list) and _canonical(env.get(env_key) or []) != _canonical(expected):
                yield f"Envelope {env_id} {env_key} do not match latest revision.{rev_key} (rev {rev_label})"


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True)


@ScenarioValidator.register("boundary_kind", "ERROR")
def validate_boundary_kind(scenario, index):
    for boundary in index.of_type(EventType.BOUNDARY_INTERACTION):
        if not boundary.get("eventId"):
            yield "boundary_interaction missing eventId"
            continue
        kind = boundary.get("boundary_kind")
        if not kind:
            yield f"Boundary {boundary['eventId']} missing boundary_kind"
        elif not isinstance(kind, str) or kind not in BOUNDARY_KINDS:
            yield f"Boundary {boundary['eventId']} has invalid boundary_kind: {kind}"


def _resolvers(index: ScenarioIndex, event_type: EventType) -> Dict[str, List[Dict[str, Any]]]:
    resolvers: Dict[str, List[Dict[str, Any]]] = {}
    for event in index.of_type(event_type):
        resolved = _id(event.get("resolvesEventId"))
        if resolved:
            resolvers.setdefault(resolved, []).append(event)
    return resolvers


@ScenarioValidator.register("boundary_resolution", "ERROR")
def validate_boundary_resolution(scenario, index):
    """Each boundary needs a resolving decision and exactly one resolving revision"""
    decisions = _resolvers(index, EventType.DECISION)
    revisions = _resolvers(index, EventType.REVISION)
    for boundary in index.of_type(EventType.BOUNDARY_INTERACTION):
        boundary_id = _id(boundary.get("eventId"))
        if not boundary_id:
            continue
        if not decisions.get(boundary_id):
            yield f"Boundary {boundary_id} has no resolving decision (decision.resolvesEventId)"
        resolving = revisions.get(boundary_id, [])
        if not resolving:
            yield f"Boundary {boundary_id} has no resolving revision (revision.resolvesEventId)"
        elif len(resolving) > 1:
            yield (f"Boundary {boundary_id} is resolved by {len(resolving)} revisions "
                   f"(expected exactly one)")


@ScenarioValidator.register("revision_completeness", "ERROR")
def validate_revision_completeness(scenario, index):
    for revision in index.of_type(EventType.REVISION):
        label = revision.get("eventId") or "(no eventId)"
        if revision.get("envelope_version") is None:
            yield f"Revision {label} missing envelope_version"
        if not revision.get("revision_id"):
            yield f"Revision {label} missing revision_id"
        if not isinstance(revision.get("nextAssumptions"), list):
            yield f"Revision {label} missing nextAssumptions array"
        if not isinstance(revision.get("nextConstraints"), list):
            yield f"Revision {label} missing nextConstraints array"


# ----------------------------------------------------------------------------
# Warning rules
# ----------------------------------------------------------------------------

@ScenarioValidator.register("recommended_counts", "WARNING")
def validate_recommended_counts(scenario, index):
    counts = (
        ("Event", len(index.events), RECOMMENDED_EVENTS),
        ("Agent", index.agent_count, RECOMMENDED_AGENTS),
        ("Envelope", len(index.envelopes), RECOMMENDED_ENVELOPES),
    )
    for label, count, (low, high) in counts:
        if count < low or count > high:
            yield f"{label} count {count} outside recommended range {low}-{high}"


@ScenarioValidator.register("feedback_embeddings", "WARNING")
def validate_feedback_embeddings(scenario, index):
    """Every revision and boundary interaction should have its own embedding"""
    embedded = index.embedded_sources()
    for event in index.events:
        if event.get("type") not in FEEDBACK_EVENT_TYPES:
            continue
        if (_id(event.get("eventId")), event["type"]) not in embedded:
            yield f"Missing embedding: {event['type']} {event.get('eventId')} has no corresponding embedding"


@ScenarioValidator.register("chronological_order", "WARNING")
def validate_chronological_order(scenario, index):
    """Reported once, at the first out-of-order event"""
    hours = [event.get("hour") for event in index.events]
    for i in range(1, len(hours)):
        if _is_number(hours[i]) and _is_number(hours[i - 1]) and hours[i] < hours[i - 1]:
            yield f"Chronological error: event {i} (hour {hours[i]}) before event {i - 1} (hour {hours[i - 1]})"
            return


@ScenarioValidator.register("resolution_ordering", "WARNING")
def validate_resolution_ordering(scenario, index):
    decisions = _resolvers(index, EventType.DECISION)
    revisions = _resolvers(index, EventType.REVISION)
    for boundary in index.of_type(EventType.BOUNDARY_INTERACTION):
        boundary_id, b_hour = _id(boundary.get("eventId")), boundary.get("hour")
        if not boundary_id or not _is_number(b_hour):
            continue
        for label, resolvers in (("decision", decisions), ("revision", revisions)):
            for event in resolvers.get(boundary_id, []):
                if _is_number(event.get("hour")) and event["hour"] < b_hour:
                    yield (f"Boundary {boundary_id} resolved by {label} occurring before boundary "
                           f"({label} at {event['hour']}, boundary at {b_hour})")


@ScenarioValidator.register("retrieval_causality", "WARNING")
def validate_retrieval_causality(scenario, index):
    """Retrievals may only reference strictly earlier embeddings"""
    for retrieval in index.of_type(EventType.RETRIEVAL):
        hour = retrieval.get("hour")
        referenced = retrieval.get("retrievedEmbeddings")
        for emb_id in referenced if isinstance(referenced, list) else []:
            if not isinstance(emb_id, str):
                continue
            embedding = index.embeddings_by_id.get(emb_id)
            if embedding is None:
                yield f"Retrieval at hour {hour} references non-existent embedding {emb_id}"
                continue
            emb_hour = embedding.get("hour")
            if _is_number(emb_hour) and _is_number(hour) and emb_hour >= hour:
                yield (f"Time paradox: retrieval at hour {hour} references future embedding "
                       f"{emb_id} at hour {emb_hour}")


@ScenarioValidator.register("embedding_vectors", "WARNING")
def validate_embedding_vectors(scenario, index):
    for emb in index.of_type(EventType.EMBEDDING):
        vector = emb.get("semanticVector")
        if not isinstance(vector, list):
            vector = emb.get("vector")
        if not isinstance(vector, list):
            continue
        if len(vector) != 2:
            yield f"Embedding {emb.get('embeddingId')} has invalid vector length (expected 2, got {len(vector)})"
        for idx, coord in enumerate(vector):
            if not _is_number(coord) or coord < 0 or coord > 1:
                yield f"Embedding {emb.get('embeddingId')} vector[{idx}] out of range [0,1]: {coord}"


@ScenarioValidator.register("embedding_sources", "WARNING")
def validate_embedding_sources(scenario, index):
    for emb in index.of_type(EventType.EMBEDDING):
        source = emb.get("sourceEventId")
        if isinstance(source, str) and source and source != HISTORICAL_SOURCE and source not in index.event_ids:
            yield f"Embedding {emb.get('embeddingId')} references unknown source event {source}"


@ScenarioValidator.register("historical_baseline", "WARNING")
def validate_historical_baseline(scenario, index):
    """Agents should start with pre-existing memory"""
    for emb in index.of_type(EventType.EMBEDDING):
        if emb.get("sourceEventId") == HISTORICAL_SOURCE:
            return
        if _is_number(emb.get("hour")) and emb["hour"] < 0:
            return
    yield ("Scenario lacks historical baseline embeddings (hour < 0 or sourceEventId "
           f"'{HISTORICAL_SOURCE}'); agents start with blank memory")


@ScenarioValidator.register("steward_decision_embeddings", "WARNING")
def validate_steward_decision_embeddings(scenario, index):
    """A steward decision resolving a boundary should be stored as a decision embedding"""
    embedded = index.embedded_sources()
    for decision in index.of_type(EventType.DECISION):
        if decision.get("actorRole") == AGENT_ACTOR_ROLE or not _id(decision.get("resolvesEventId")):
            continue
        decision_id = _id(decision.get("eventId"))
        if decision_id is None or (decision_id, EventType.DECISION.value) not in embedded:
            yield (f"Steward decision at hour {decision.get('hour')} ({decision_id}) resolving "
                   f"{decision['resolvesEventId']} has no decision embedding")


# ----------------------------------------------------------------------------
# Closed-loop authoring rules
# ----------------------------------------------------------------------------

@ScenarioValidator.register("boundary_retrieval", "WARNING", group=CLOSED_LOOP_RULES)
def validate_boundary_retrieval(scenario, index):
    """The acting agent should consult memory shortly before hitting a boundary"""
    retrievals = index.of_type(EventType.RETRIEVAL)
    for boundary in index.of_type(EventType.BOUNDARY_INTERACTION):
        hour, actor = boundary.get("hour"), boundary.get("actorName")
        if not _is_number(hour):
            continue
        recent = any(
            r.get("actorName") == actor
            and _is_number(r.get("hour"))
            and 0 < hour - r["hour"] <= BOUNDARY_RETRIEVAL_WINDOW_HOURS
            for r in retrievals
        )
        if not recent:
            yield (f"Boundary {boundary.get('eventId')} at hour {hour} by {actor} lacks a retrieval "
                   f"within {BOUNDARY_RETRIEVAL_WINDOW_HOURS:g}h before it")
