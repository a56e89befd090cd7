"""
Prompt Compiler - Instruction payload for the scenario generator

Serializes the skeleton together with the structural rules the generator
must respect. The rules are best effort: merge, reconcile and validation
re-check everything the generator returns.
"""

from string import Template
from typing import Any, Dict, Optional, Union
import json
import re

from llm_service.security_filter import SecurityFilter
from scenario_engine.skeleton import Skeleton


MAX_LENGTHS = {
    "titles": 60,
    "names": 30,
    "roles": 40,
    "summaries": 100,
}
DEFAULT_MAX_LENGTH = 80

SCENARIO_PROMPT_TEMPLATE = Template("""You are a JSON generator. Output ONLY valid JSON. No markdown or explanations.

ABSOLUTE RULES (NON-NEGOTIABLE):
- Output must be a single JSON object.
- Do NOT add, remove, reorder, or rename any keys.
- Do NOT add or remove envelopes, fleets, agents, or events.
- Do NOT change any eventId, envelopeId, agentId, hour, type, or resolvesEventId.
- ONLY replace ALL_CAPS placeholder strings with real values.

REQUEST: $request

Replace ALL_CAPS placeholders. Be CONCISE (<=${default_max} chars per string).

$skeleton

ENVELOPE MODEL (CRITICAL):
- Exactly ONE envelope object per envelopeId (no duplicates in scenario.envelopes).
- Each envelope is active for the full scenario: createdHour near start and endHour = durationHours.
- DO NOT create separate envelope entries for later versions. Revision events evolve the envelope.

REVISION MODEL (CRITICAL):
- Every revision MUST include: envelopeId, envelope_version (integer), revision_id (string), nextAssumptions (array), nextConstraints (array).
- nextAssumptions/nextConstraints are the full updated lists (not deltas).

ENVELOPE STATE (CRITICAL):
- The envelope objects in scenario.envelopes must reflect the LATEST state:
  - envelope.envelope_version equals the latest version after revisions.
  - envelope.assumptions matches the latest revision.nextAssumptions.
  - envelope.constraints matches the latest revision.nextConstraints.

WINDOW CONSISTENCY (CRITICAL):
- For events at hour >= 0: every event with an envelopeId occurs within that envelope's createdHour..endHour.
- Historical baseline events (hour < 0) may reference envelopes as pre-existing memory.

AGENT SCOPE (CRITICAL):
- If an event has agentId (or actorRole 'agent'), its envelopeId MUST be one of that agent's envelopeIds from fleets[].agents[].
- Do NOT invent new agentIds.

BOUNDARY COMPLETENESS (CRITICAL):
- Every boundary_interaction keeps its boundary_kind ("escalated" or "overridden").
- Every boundary_interaction is resolved by a steward decision and by a revision with resolvesEventId = that boundary eventId.

AGENT NAMING: Agents are software. Name them after their function or domain object
(e.g. "Claims Validator", "Risk Scorer", "Fraud Detector"), NOT people names.

STEWARD ROLES: ${steward_rules}
Use IDENTICAL text for each steward role wherever its placeholder appears.

MAX LENGTHS: titles<=${titles}, names<=${names}, roles<=${roles}, summaries<=${summaries}.

Output JSON only.""")


def compact_json(scenario: Dict[str, Any]) -> str:
    """Single-line JSON with no padding"""
    return json.dumps(scenario, separators=(",", ":"), ensure_ascii=False)


def _steward_rules(scenario: Dict[str, Any]) -> str:
    roles = [fleet.get("stewardRole") for fleet in scenario.get("fleets", []) if isinstance(fleet, dict)]
    if not roles:
        return "none."
    pairs = [
        f"fleets[{i}].stewardRole and envelopes[{i}].ownerRole both use {role}"
        for i, role in enumerate(roles)
    ]
    return f"{', '.join(roles)} MUST be DISTINCT names; " + "; ".join(pairs) + "."


def compile_prompt(
    user_prompt: str,
    skeleton: Union[Skeleton, Dict[str, Any]],
    security_filter: Optional[SecurityFilter] = None,
) -> str:
    """
    Build the generator instruction for a user prompt.

    Args:
        user_prompt: Free-text scenario request
        skeleton: Skeleton whose placeholders the generator should fill
        security_filter: Bleaching applied to the user prompt

    Returns:
        Complete instruction string
    """
    scenario = skeleton.scenario if isinstance(skeleton, Skeleton) else skeleton
    security_filter = security_filter or SecurityFilter()

    # The request stays on one line so it can never pass for the skeleton line
    request = re.sub(r"\s+", " ", security_filter.bleach_input(user_prompt or "")).strip()

    return SCENARIO_PROMPT_TEMPLATE.substitute(
        request=request,
        skeleton=compact_json(scenario),
        steward_rules=_steward_rules(scenario),
        default_max=DEFAULT_MAX_LENGTH,
        **MAX_LENGTHS,
    )
