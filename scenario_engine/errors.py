# ============================================================================
# scenario_engine/errors.py - Exception taxonomy for scenario generation
# ============================================================================
"""
Every failure the pipeline can raise derives from ScenarioEngineError.

The gateway's response parser raises its own ParseError family; the
pipeline re-raises those as the engine subclasses below, which are both
ScenarioEngineErrors and gateway ParseErrors, so either except clause works.
"""

from typing import List, Optional, TYPE_CHECKING

from llm_service import response_parser

if TYPE_CHECKING:
    from scenario_engine.validation import Violation


DEFAULT_SUMMARY_LIMIT = 8


class ScenarioEngineError(Exception):
    """Base class for scenario engine failures"""


class StructuralViolation(ScenarioEngineError):
    """Generated response lacks the top-level collections the merge needs"""


ContractViolation = StructuralViolation


class ParseError(ScenarioEngineError, response_parser.ParseError):
    """Generator output could not be decoded"""


class TruncatedOutput(ParseError, response_parser.TruncatedOutput):
    """The generator stopped before completing its response"""


class MalformedOutput(ParseError, response_parser.MalformedOutput):
    """The generator response is not valid JSON"""


def as_engine_error(error: response_parser.ParseError) -> ParseError:
    """Re-type a gateway parse failure, keeping its diagnostics"""
    if isinstance(error, ParseError):
        return error
    if isinstance(error, response_parser.TruncatedOutput):
        cls = TruncatedOutput
    elif isinstance(error, response_parser.MalformedOutput):
        cls = MalformedOutput
    else:
        cls = ParseError
    return cls(str(error), length=error.length, tail=error.tail, finish_reason=error.finish_reason)


class ScenarioValidationError(ScenarioEngineError):
    """
    One or more hard invariant violations in a merged scenario.

    Carries the full list of error records; the bounded text form is built
    by summary() when the error is presented.
    """

    def __init__(self, violations: List["Violation"], warnings: Optional[List[str]] = None):
        self.violations = list(violations)
        self.warnings = list(warnings or [])
        super().__init__(self.summary())

    @property
    def errors(self) -> List[str]:
        return [v.message for v in self.violations]

    def summary(self, limit: int = DEFAULT_SUMMARY_LIMIT) -> str:
        """Format the first `limit` errors plus a count of the rest"""
        lines = [f"- {message}" for message in self.errors[:limit]]
        remaining = len(self.violations) - limit
        if remaining > 0:
            lines.append(f"- ...and {remaining} more")
        return "Generated scenario failed validation:\n" + "\n".join(lines)


class GenerationFailed(ScenarioEngineError):
    """The generation gateway reported an unsuccessful call"""


class GenerationTimeout(ScenarioEngineError):
    """Generation did not finish within the wall-clock limit"""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Generation timeout ({timeout_seconds:g}s limit)")


class GenerationCancelled(ScenarioEngineError):
    """A queued or running generation was cancelled or superseded"""


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
]
