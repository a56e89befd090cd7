# ============================================================================
# scenario_engine/reconciler.py - Envelope state derived from the revision log
# ============================================================================
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)


def _hour_key(event: Dict[str, Any]) -> float:
    hour = event.get("hour")
    return hour if isinstance(hour, (int, float)) and not isinstance(hour, bool) else 0


def latest_revisions(scenario: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Map envelopeId -> chronologically last revision event touching it"""
    events = scenario.get("events") if isinstance(scenario.get("events"), list) else []

    by_envelope: Dict[str, List[Dict[str, Any]]] = {}
    for event in events:
        if not isinstance(event, dict) or event.get("type") != "revision":
            continue
        env_id = event.get("envelopeId")
        if not isinstance(env_id, str) or not env_id:
            continue
        by_envelope.setdefault(env_id, []).append(event)

    # sorted() is stable, so equal hours keep log order and the later entry wins
    return {
        env_id: sorted(revisions, key=_hour_key)[-1]
        for env_id, revisions in by_envelope.items()
    }


def reconcile_envelope_state(scenario: Dict[str, Any]) -> Dict[str, Any]:
    """
    Overwrite each envelope's version, assumptions and constraints with the
    values of its latest revision. Envelopes without revisions are untouched.

    Mutates and returns `scenario`.
    """
    envelopes = scenario.get("envelopes") if isinstance(scenario.get("envelopes"), list) else []
    latest = latest_revisions(scenario)

    for envelope in envelopes:
        if not isinstance(envelope, dict):
            continue
        env_id = envelope.get("envelopeId")
        revision = latest.get(env_id) if isinstance(env_id, str) else None
        if revision is None:
            continue

        if revision.get("envelope_version") is not None:
            envelope["envelope_version"] = revision["envelope_version"]
        if isinstance(revision.get("nextAssumptions"), list):
            envelope["assumptions"] = list(revision["nextAssumptions"])
        if isinstance(revision.get("nextConstraints"), list):
            envelope["constraints"] = list(revision["nextConstraints"])

        logger.debug(
            f"Envelope {envelope.get('envelopeId')} reconciled to v{envelope.get('envelope_version')} "
            f"from {revision.get('eventId')}"
        )

    return scenario
