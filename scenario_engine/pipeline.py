# ============================================================================
# scenario_engine/pipeline.py - Prompt to validated scenario
# ============================================================================
"""
Scenario generation pipeline.

skeleton -> prompt -> gateway -> parse -> structural guard -> merge ->
reconcile -> validate. Either a scenario that passed every hard check is
returned, or an exception is raised; nothing is retried here.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple
import logging
import time

from llm_service.config import LLMServiceConfig, PricingConfig
from llm_service.provider import GenerationProvider, GenerationResponse
from llm_service.service import GenerationService
from llm_service.response_parser import ParseError as GatewayParseError, ResponseParser
from llm_service.security_filter import SecurityFilter
from scenario_engine.errors import GenerationFailed, as_engine_error
from scenario_engine.merge import ensure_candidate_shape, find_unfilled_placeholders, merge_scenario
from scenario_engine.metadata import GenerationMetadata
from scenario_engine.prompt_compiler import compile_prompt
from scenario_engine.reconciler import reconcile_envelope_state
from scenario_engine.skeleton import build_skeleton
from scenario_engine.schemas import Scenario
from scenario_engine.validation import ScenarioValidator, typed_scenario

logger = logging.getLogger(__name__)


class Gateway(Protocol):
    """Anything that turns a prompt into a GenerationResponse"""

    async def generate(self, prompt: str) -> GenerationResponse:
        ...


@dataclass
class ScenarioResult:
    scenario: Dict[str, Any]
    validation_warnings: List[str]
    metadata: GenerationMetadata
    unfilled_placeholders: List[Tuple[str, str]] = field(default_factory=list)
    typed: Optional[Scenario] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario,
            "validationWarnings": list(self.validation_warnings),
            "metadata": self.metadata.to_dict(),
        }


class ScenarioGenerator:
    """
    Generates decision-envelope scenarios from free-text prompts.

    The generator is only trusted with cosmetic text: topology comes from
    the skeleton and derived envelope state from the revision log.
    """

    def __init__(
        self,
        gateway: Gateway,
        pricing: Optional[PricingConfig] = None,
        parser: Optional[ResponseParser] = None,
        validator: Optional[ScenarioValidator] = None,
        security_filter: Optional[SecurityFilter] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.gateway = gateway
        self.pricing = pricing or PricingConfig()
        self.parser = parser or ResponseParser()
        self.validator = validator or ScenarioValidator()
        self.security_filter = security_filter or SecurityFilter()
        self.clock = clock or time.time

    @classmethod
    def from_config(cls, config: LLMServiceConfig, provider: Optional[GenerationProvider] = None) -> "ScenarioGenerator":
        """Wire a generator to a GenerationService built from configuration"""
        return cls(
            GenerationService(config, provider=provider),
            pricing=config.pricing,
            security_filter=SecurityFilter.from_config(config.security),
        )

    async def generate(self, prompt: str) -> ScenarioResult:
        """
        Generate and validate a scenario.

        Raises:
            GenerationFailed: The gateway reported an unsuccessful call
            TruncatedOutput: The generator hit its output limit
            MalformedOutput: The response is not valid JSON
            StructuralViolation: The response lacks envelopes/fleets/events
            ScenarioValidationError: The merged scenario breaks a hard invariant
                or does not fit the typed wire-format model
        """
        start = time.monotonic()
        skeleton = build_skeleton(self.clock)
        instruction = compile_prompt(prompt, skeleton, self.security_filter)
        logger.info(f"Generating {skeleton.scenario_id} from prompt: {prompt[:50]!r}")

        response = await self.gateway.generate(instruction)
        if not response.success:
            raise GenerationFailed(f"Generation call failed: {response.error or 'unknown error'}")

        try:
            candidate = self.parser.parse_generation(response.text, response.finish_reason)
        except GatewayParseError as e:
            logger.error(
                f"Unparseable generation (length: {e.length}, finish: {e.finish_reason}); "
                f"last chars: {e.tail!r}"
            )
            raise as_engine_error(e) from e

        ensure_candidate_shape(candidate)
        scenario = merge_scenario(skeleton, candidate)
        reconcile_envelope_state(scenario)

        report = self.validator.validate(scenario)
        if not report.ok:
            logger.warning(
                f"{skeleton.scenario_id} failed validation with {len(report.errors)} errors "
                f"and {len(report.warnings)} warnings"
            )
        report.raise_for_errors()
        typed = typed_scenario(scenario)

        unfilled = find_unfilled_placeholders(scenario, skeleton.placeholders)
        if unfilled:
            logger.warning(
                f"{skeleton.scenario_id} has {len(unfilled)} unfilled placeholders, "
                f"first at {unfilled[0][0]}"
            )

        metadata = GenerationMetadata.build(
            model=response.model,
            tokens_in=response.tokens_in,
            tokens_out=response.tokens_out,
            duration_seconds=round(time.monotonic() - start, 3),
            pricing=self.pricing,
            finish_reason=response.finish_reason,
        )
        logger.info(f"Generated {skeleton.scenario_id}: {metadata.summary_line()}")

        return ScenarioResult(
            scenario=scenario,
            validation_warnings=report.warnings,
            metadata=metadata,
            unfilled_placeholders=unfilled,
            typed=typed,
        )


async def generate_scenario(
    prompt: str,
    gateway: Gateway,
    pricing: Optional[PricingConfig] = None,
) -> Dict[str, Any]:
    """Generate a scenario and return {scenario, validationWarnings, metadata}"""
    result = await ScenarioGenerator(gateway, pricing=pricing).generate(prompt)
    return result.to_dict()
