# ============================================================================
# scenario_engine/merge.py - Structural guard and placeholder merge engine
# ============================================================================
"""
Merging generated content back into the skeleton.

The skeleton is authoritative for shape: the merge walks the skeleton, never
the candidate, so the result always has the skeleton's keys, array lengths
and immutable values. Only placeholder positions accept candidate values.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import logging
import re

from scenario_engine.errors import StructuralViolation
from scenario_engine.skeleton import Skeleton

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r'^[A-Z0-9_]+$')
REQUIRED_COLLECTIONS = ("envelopes", "fleets", "events")

Placeholders = Optional[Iterable[str]]


def is_placeholder(value: Any, placeholders: Placeholders = None) -> bool:
    """
    Check whether a skeleton value is a sentinel awaiting generated content.

    With a registry, membership decides; otherwise the ALL-CAPS wire
    convention applies.
    """
    if not isinstance(value, str):
        return False
    if placeholders is not None:
        return value in placeholders
    return bool(PLACEHOLDER_PATTERN.match(value))


def ensure_candidate_shape(candidate: Any) -> Dict[str, Any]:
    """
    Reject a parsed response whose top-level shape cannot be merged.

    Raises:
        StructuralViolation: If candidate is not an object holding
            envelopes, fleets and events arrays
    """
    if not isinstance(candidate, dict):
        raise StructuralViolation("Generated scenario is not an object")
    for key in REQUIRED_COLLECTIONS:
        if not isinstance(candidate.get(key), list):
            raise StructuralViolation(f"Generated scenario must include scenario.{key} array")
    return candidate


def merge_by_placeholder(skeleton_value: Any, candidate_value: Any, placeholders: Placeholders = None) -> Any:
    """Recursively merge candidate into skeleton, keeping skeleton shape"""
    if is_placeholder(skeleton_value, placeholders):
        if isinstance(candidate_value, str) and candidate_value.strip():
            return candidate_value
        return skeleton_value

    if isinstance(skeleton_value, list):
        items = candidate_value if isinstance(candidate_value, list) else []
        return [
            merge_by_placeholder(value, items[idx] if idx < len(items) else None, placeholders)
            for idx, value in enumerate(skeleton_value)
        ]

    if isinstance(skeleton_value, dict):
        mapping = candidate_value if isinstance(candidate_value, dict) else {}
        return {
            key: merge_by_placeholder(value, mapping.get(key), placeholders)
            for key, value in skeleton_value.items()
        }

    # Numbers, booleans, None and real strings are immutable
    return skeleton_value


def _index_by(items: Any, key: str) -> Dict[Any, Any]:
    if not isinstance(items, list):
        return {}
    indexed = {}
    for item in items:
        # Skeleton ids are strings, so other id values can never match
        if isinstance(item, dict) and isinstance(item.get(key), str):
            indexed.setdefault(item[key], item)
    return indexed


def merge_scenario(
    skeleton: Union[Skeleton, Dict[str, Any]],
    candidate: Any,
    placeholders: Placeholders = None,
) -> Dict[str, Any]:
    """
    Merge a generated scenario into the skeleton.

    Envelopes are matched by envelopeId, fleets by position with agents by
    agentId, and events by eventId, so a reordered candidate array cannot
    shift content onto the wrong element.

    Args:
        skeleton: Skeleton (its placeholder registry is used) or plain dict
        candidate: Parsed generator output
        placeholders: Explicit registry, overriding the skeleton's

    Returns:
        New scenario dict with the skeleton's exact shape
    """
    if isinstance(skeleton, Skeleton):
        if placeholders is None:
            placeholders = skeleton.placeholders
        skeleton = skeleton.scenario

    if not isinstance(candidate, dict):
        return merge_by_placeholder(skeleton, {}, placeholders)

    merged = merge_by_placeholder(skeleton, candidate, placeholders)

    if isinstance(skeleton.get("envelopes"), list):
        by_id = _index_by(candidate.get("envelopes"), "envelopeId")
        merged["envelopes"] = [
            merge_by_placeholder(env, by_id.get(env.get("envelopeId"), {}), placeholders)
            for env in skeleton["envelopes"]
        ]

    if isinstance(skeleton.get("fleets"), list):
        candidate_fleets = candidate.get("fleets") if isinstance(candidate.get("fleets"), list) else []
        fleets = []
        for idx, fleet in enumerate(skeleton["fleets"]):
            candidate_fleet = candidate_fleets[idx] if idx < len(candidate_fleets) else {}
            if not isinstance(candidate_fleet, dict):
                candidate_fleet = {}
            out = merge_by_placeholder(fleet, candidate_fleet, placeholders)
            if isinstance(fleet.get("agents"), list):
                agents_by_id = _index_by(candidate_fleet.get("agents"), "agentId")
                out["agents"] = [
                    merge_by_placeholder(agent, agents_by_id.get(agent.get("agentId"), {}), placeholders)
                    for agent in fleet["agents"]
                ]
            fleets.append(out)
        merged["fleets"] = fleets

    if isinstance(skeleton.get("events"), list):
        by_id = _index_by(candidate.get("events"), "eventId")
        merged["events"] = [
            merge_by_placeholder(event, by_id.get(event.get("eventId"), {}), placeholders)
            for event in skeleton["events"]
        ]

    return merged


def find_unfilled_placeholders(
    merged: Any,
    placeholders: Placeholders = None,
    path: str = "$",
) -> List[Tuple[str, str]]:
    """
    List (json_path, token) pairs whose value is still a sentinel.

    Args:
        merged: Merged scenario (or any sub-tree)
        placeholders: Token registry; falls back to the ALL-CAPS pattern
        path: JSON path prefix of `merged`
    """
    found: List[Tuple[str, str]] = []
    if is_placeholder(merged, placeholders):
        found.append((path, merged))
    elif isinstance(merged, list):
        for idx, item in enumerate(merged):
            found.extend(find_unfilled_placeholders(item, placeholders, f"{path}[{idx}]"))
    elif isinstance(merged, dict):
        for key, value in merged.items():
            found.extend(find_unfilled_placeholders(value, placeholders, f"{path}.{key}"))
    return found
