"""
Scenario Engine - Decision-envelope scenario synthesis and validation

The generator fills placeholder text only; structure comes from the
skeleton, envelope state from the revision log, and every result passes
the validator before it is returned.
"""

from scenario_engine.errors import (
    ScenarioEngineError,
    StructuralViolation,
    ContractViolation,
    ParseError,
    TruncatedOutput,
    MalformedOutput,
    ScenarioValidationError,
    GenerationFailed,
    GenerationTimeout,
    GenerationCancelled,
)
from scenario_engine.skeleton import Skeleton, build_skeleton
from scenario_engine.prompt_compiler import compile_prompt
from scenario_engine.merge import (
    is_placeholder,
    ensure_candidate_shape,
    merge_by_placeholder,
    merge_scenario,
    find_unfilled_placeholders,
)
from scenario_engine.reconciler import reconcile_envelope_state
from scenario_engine.validation import (
    ScenarioValidator,
    Severity,
    Violation,
    ValidationReport,
    typed_scenario,
    validate_scenario,
)
from scenario_engine.metadata import GenerationMetadata, compute_cost
from scenario_engine.schema_cache import SchemaCache
from scenario_engine.pipeline import ScenarioGenerator, ScenarioResult, generate_scenario

__all__ = [
    "ScenarioEngineError",
    "StructuralViolation",
    "ContractViolation",
    "ParseError",
    "TruncatedOutput",
    "MalformedOutput",
    "ScenarioValidationError",
    "GenerationFailed",
    "GenerationTimeout",
    "GenerationCancelled",
    "Skeleton",
    "build_skeleton",
    "compile_prompt",
    "is_placeholder",
    "ensure_candidate_shape",
    "merge_by_placeholder",
    "merge_scenario",
    "find_unfilled_placeholders",
    "reconcile_envelope_state",
    "ScenarioValidator",
    "Severity",
    "Violation",
    "ValidationReport",
    "validate_scenario",
    "typed_scenario",
    "GenerationMetadata",
    "compute_cost",
    "SchemaCache",
    "ScenarioGenerator",
    "ScenarioResult",
    "generate_scenario",
]
