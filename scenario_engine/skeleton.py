# ============================================================================
# scenario_engine/skeleton.py - Deterministic scenario template
# ============================================================================
"""
Skeleton builder.

The skeleton fixes every structural fact of a generated scenario: counts,
IDs, hours, types and cross-references. Free-text fields hold ALL-CAPS
sentinel tokens that the generator is asked to replace. Every token the
builder emits is recorded, so the merge engine can tell a sentinel from
a generated value that merely looks like one.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set
import time

SCHEMA_VERSION = 2
DURATION_HOURS = 72
ENVELOPE_COUNT = 3
FLEET_COUNT = 3
AGENTS_PER_FLEET = 3

# Envelope scope of each agent, fleet by fleet
AGENT_SCOPES = [
    [["ENV-001", "ENV-002"], ["ENV-001"], ["ENV-002", "ENV-003"]],
    [["ENV-002", "ENV-003"], ["ENV-003"], ["ENV-001", "ENV-003"]],
    [["ENV-001"], ["ENV-002", "ENV-003"], ["ENV-003"]],
]


@dataclass(frozen=True)
class Skeleton:
    """A scenario template plus the set of sentinel tokens it contains"""
    scenario: Dict[str, Any]
    placeholders: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def scenario_id(self) -> str:
        return self.scenario["id"]

    def is_placeholder(self, value: Any) -> bool:
        return isinstance(value, str) and value in self.placeholders


class _TokenRegistry:
    """Hands out sentinel tokens and remembers every one"""

    def __init__(self):
        self.tokens: Set[str] = set()

    def __call__(self, token: str) -> str:
        self.tokens.add(token)
        return token

    def many(self, *tokens: str) -> List[str]:
        return [self(token) for token in tokens]


def envelope_id(n: int) -> str:
    return f"ENV-{n:03d}"


def agent_id(n: int) -> str:
    return f"agent-{n:03d}"


def build_skeleton(clock: Optional[Callable[[], float]] = None) -> Skeleton:
    """
    Build the fixed-topology scenario template.

    Args:
        clock: Returns the current time in seconds; used for the scenario id

    Returns:
        Skeleton with 3 envelopes, 3 fleets of 3 agents and 42 events
    """
    clock = clock or time.time
    ph = _TokenRegistry()

    envelopes = [_envelope(ph, n) for n in range(1, ENVELOPE_COUNT + 1)]
    fleets = [
        {
            "stewardRole": ph(f"STEWARD_ROLE_{f + 1}"),
            "agents": [
                {
                    "agentId": agent_id(f * AGENTS_PER_FLEET + a + 1),
                    "name": ph(f"AGENT_NAME_{f * AGENTS_PER_FLEET + a + 1}"),
                    "role": ph(f"AGENT_ROLE_{f * AGENTS_PER_FLEET + a + 1}"),
                    "envelopeIds": list(AGENT_SCOPES[f][a]),
                }
                for a in range(AGENTS_PER_FLEET)
            ],
        }
        for f in range(FLEET_COUNT)
    ]

    scenario = {
        "schemaVersion": SCHEMA_VERSION,
        "id": f"generated-scenario-{int(clock() * 1000)}",
        "title": ph("SCENARIO_TITLE"),
        "domain": ph("DOMAIN_NAME"),
        "durationHours": DURATION_HOURS,
        "envelopes": envelopes,
        "fleets": fleets,
        "events": _events(ph),
    }
    return Skeleton(scenario=scenario, placeholders=frozenset(ph.tokens))


def _envelope(ph: _TokenRegistry, n: int) -> Dict[str, Any]:
    return {
        "envelopeId": envelope_id(n),
        "name": ph(f"ENVELOPE_NAME_{n}"),
        "domain": ph("DOMAIN_NAME"),
        "ownerRole": ph(f"STEWARD_ROLE_{n}"),
        "createdHour": 0,
        "endHour": DURATION_HOURS,
        "envelope_version": 1,
        "assumptions": ph.many(f"ASSUMPTION_{2 * n - 1}", f"ASSUMPTION_{2 * n}"),
        "constraints": ph.many(f"CONSTRAINT_{2 * n - 1}", f"CONSTRAINT_{2 * n}"),
    }


def _steward(ph: _TokenRegistry, n: int) -> Dict[str, str]:
    return {"actorRole": ph(f"STEWARD_ROLE_{n}"), "actorName": ph(f"STEWARD_NAME_{n}")}


def _agent_actor(agent: str) -> Dict[str, str]:
    return {"actorRole": "agent", "actorName": agent, "agentId": agent}


def _embedding(ph, hour, emb_id, embedding_type, source, env, context_n, vector, steward=None):
    event = {
        "hour": hour,
        "type": "embedding",
        "eventId": emb_id,
        "embeddingId": emb_id,
        "embeddingType": embedding_type,
        "sourceEventId": source,
        "envelopeId": envelope_id(env),
    }
    if steward:
        event.update(_steward(ph, steward))
    event.update({
        "semanticContext": ph(f"CONTEXT_{context_n}"),
        "semanticVector": list(vector),
        "chunkText": ph(f"SUMMARY_{context_n}"),
    })
    return event


def _lifecycle(ph, hour, kind, n, env, version):
    verb = "open" if kind == "envelope_promoted" else "close"
    return {
        "hour": hour,
        "type": kind,
        "eventId": f"envelope-{verb}:{n}",
        "envelopeId": envelope_id(env),
        "envelope_version": version,
        **_steward(ph, env),
        "summary": ph(f"ENVELOPE_{verb.upper()}_SUMMARY_{n}"),
    }


def _signal(ph, hour, n, env):
    return {
        "hour": hour,
        "type": "signal",
        "eventId": f"signal:{n}",
        "envelopeId": envelope_id(env),
        "signalType": ph(f"SIGNAL_TYPE_{n}"),
        "signalKey": ph(f"SIGNAL_KEY_{n}"),
        "severity": ph(f"SIGNAL_SEVERITY_{n}"),
        "source": ph(f"SIGNAL_SOURCE_{n}"),
        "summary": ph(f"SIGNAL_SUMMARY_{n}"),
    }


def _agent_decision(ph, hour, n, agent, env):
    return {
        "hour": hour,
        "type": "decision",
        "eventId": f"decision:{n}",
        **_agent_actor(agent),
        "envelopeId": envelope_id(env),
        "status": "allowed",
        "summary": ph(f"DECISION_SUMMARY_{n}"),
    }


def _retrieval(ph, hour, n, agent, embeddings, scores):
    return {
        "hour": hour,
        "type": "retrieval",
        "eventId": f"retrieval:{n}",
        **_agent_actor(agent),
        "queryText": ph(f"QUERY_{n}"),
        "retrievedEmbeddings": list(embeddings),
        "relevanceScores": list(scores),
        "summary": ph(f"RETRIEVAL_SUMMARY_{n}"),
    }


def _escalation_cycle(ph, cycle) -> List[Dict[str, Any]]:
    """boundary -> embedding -> steward decision -> embedding -> revision -> embedding"""
    n = cycle["n"]
    env = cycle["env"]
    hour = cycle["hour"]
    decision_hour, revision_hour = cycle["decision_hour"], cycle["revision_hour"]
    boundary_id = f"boundary:{n}"
    decision_id = f"decision:{cycle['decision_n']}"
    revision_id = f"revision:{n}"
    first_emb = 3 * (n - 1) + 1
    context = 3 * n + 1
    next_items = cycle["next_items"]

    return [
        {
            "hour": hour,
            "type": "boundary_interaction",
            "eventId": boundary_id,
            **_agent_actor(cycle["agent"]),
            "envelopeId": envelope_id(env),
            "boundary_kind": cycle["kind"],
            "boundary_reason": ph(f"REASON_{n}"),
            "summary": ph(f"BOUNDARY_SUMMARY_{n}"),
        },
        _embedding(ph, hour + 0.5, f"EMB-{first_emb:03d}", "boundary_interaction",
                   boundary_id, env, context, cycle["vectors"][0]),
        {
            "hour": decision_hour,
            "type": "decision",
            "eventId": decision_id,
            **_steward(ph, env),
            "envelopeId": envelope_id(env),
            "status": cycle["status"],
            "resolvesEventId": boundary_id,
            "summary": ph(f"STEWARD_DECISION_{n}"),
        },
        _embedding(ph, decision_hour + 0.5, f"EMB-{first_emb + 1:03d}", "decision",
                   decision_id, env, context + 1, cycle["vectors"][1], steward=env),
        {
            "hour": revision_hour,
            "type": "revision",
            "eventId": revision_id,
            "envelopeId": envelope_id(env),
            "envelope_version": cycle["version"],
            "revision_id": f"rev-{n}",
            "resolvesEventId": boundary_id,
            **_steward(ph, env),
            "nextAssumptions": ph.many(*[f"NEW_ASSUMPTION_{i}" for i in next_items]),
            "nextConstraints": ph.many(*[f"NEW_CONSTRAINT_{i}" for i in next_items]),
            "summary": ph(f"REVISION_SUMMARY_{n}"),
        },
        _embedding(ph, revision_hour + 0.5, f"EMB-{first_emb + 2:03d}", "revision",
                   revision_id, env, context + 2, cycle["vectors"][2], steward=env),
    ]


_CYCLES = [
    {"n": 1, "env": 1, "agent": agent_id(7), "hour": 18, "kind": "escalated",
     "decision_n": 3, "decision_hour": 20, "status": "allowed", "revision_hour": 22,
     "version": 2, "next_items": [1], "vectors": [(0.75, 0.70), (0.65, 0.60), (0.35, 0.65)]},
    {"n": 2, "env": 2, "agent": agent_id(3), "hour": 31, "kind": "escalated",
     "decision_n": 4, "decision_hour": 33, "status": "denied", "revision_hour": 35,
     "version": 2, "next_items": [3], "vectors": [(0.80, 0.75), (0.68, 0.62), (0.30, 0.68)]},
    {"n": 3, "env": 3, "agent": agent_id(5), "hour": 40, "kind": "escalated",
     "decision_n": 5, "decision_hour": 42, "status": "allowed", "revision_hour": 44,
     "version": 2, "next_items": [5], "vectors": [(0.82, 0.78), (0.70, 0.65), (0.32, 0.72)]},
    {"n": 4, "env": 1, "agent": agent_id(6), "hour": 48, "kind": "overridden",
     "decision_n": 6, "decision_hour": 50, "status": "deferred", "revision_hour": 52,
     "version": 3, "next_items": [7, 8], "vectors": [(0.85, 0.55), (0.60, 0.50), (0.40, 0.60)]},
]


def _events(ph: _TokenRegistry) -> List[Dict[str, Any]]:
    cycles = [_escalation_cycle(ph, cycle) for cycle in _CYCLES]
    return [
        # Historical baseline memory
        _embedding(ph, -48, "EMB-BASE-001", "revision", "historical", 1, 1, (0.25, 0.30)),
        _embedding(ph, -24, "EMB-BASE-002", "revision", "historical", 2, 2, (0.70, 0.25)),
        _embedding(ph, -12, "EMB-BASE-003", "decision", "historical", 3, 3, (0.60, 0.40)),
        _lifecycle(ph, 0, "envelope_promoted", 1, 1, 1),
        _signal(ph, 2, 1, 1),
        _lifecycle(ph, 8, "envelope_promoted", 2, 2, 1),
        _agent_decision(ph, 12, 1, agent_id(1), 1),
        _agent_decision(ph, 14, 2, agent_id(2), 1),
        _lifecycle(ph, 16, "envelope_promoted", 3, 3, 1),
        _signal(ph, 17, 2, 1),
        *cycles[0],
        _retrieval(ph, 30, 1, agent_id(3), ["EMB-BASE-001", "EMB-001", "EMB-003"],
                   [0.85, 0.92, 0.78]),
        *cycles[1],
        _signal(ph, 38, 3, 2),
        _retrieval(ph, 39.5, 2, agent_id(5), ["EMB-BASE-002", "EMB-BASE-003", "EMB-004", "EMB-006"],
                   [0.88, 0.85, 0.91, 0.83]),
        *cycles[2],
        _retrieval(ph, 47, 3, agent_id(6), ["EMB-002", "EMB-003", "EMB-008"],
                   [0.81, 0.87, 0.74]),
        *cycles[3],
        _signal(ph, 54, 4, 3),
        # Staggered closures carry each envelope's final version
        _lifecycle(ph, 60, "envelope_deprecated", 1, 1, 3),
        _lifecycle(ph, 66, "envelope_deprecated", 2, 2, 2),
        _lifecycle(ph, 72, "envelope_deprecated", 3, 3, 2),
    ]
