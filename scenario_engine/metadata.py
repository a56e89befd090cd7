# ============================================================================
# scenario_engine/metadata.py - Token cost and generation metadata
# ============================================================================
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from llm_service.config import PricingConfig

COST_DECIMALS = 6


def compute_cost(tokens_in: int, tokens_out: int, pricing: Optional[PricingConfig] = None) -> float:
    """USD cost of a call at per-million-token input/output prices"""
    pricing = pricing or PricingConfig()
    cost = (
        tokens_in * pricing.input_per_million / 1_000_000
        + tokens_out * pricing.output_per_million / 1_000_000
    )
    return round(cost, COST_DECIMALS)


@dataclass
class GenerationMetadata:
    model: str
    tokens_in: int
    tokens_out: int
    cost: float
    duration: float
    generated_at: str
    finish_reason: Optional[str] = None

    @classmethod
    def build(
        cls,
        model: str,
        tokens_in: int,
        tokens_out: int,
        duration_seconds: float,
        pricing: Optional[PricingConfig] = None,
        finish_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "GenerationMetadata":
        now = now or datetime.now(timezone.utc)
        return cls(
            model=model,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost=compute_cost(tokens_in, tokens_out, pricing),
            duration=duration_seconds,
            generated_at=now.isoformat(),
            finish_reason=finish_reason,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "tokensIn": self.tokens_in,
            "tokensOut": self.tokens_out,
            "cost": self.cost,
            "duration": self.duration,
            "generatedAt": self.generated_at,
            "finishReason": self.finish_reason,
        }

    def summary_line(self) -> str:
        return (
            f"Model: {self.model} | Cost: ${self.cost:.6f} | "
            f"Tokens: {self.tokens_in} in / {self.tokens_out} out | Duration: {self.duration:.2f}s"
        )
