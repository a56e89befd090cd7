"""
Call Logging - JSONL records of generation calls with metadata tracking

Writes one line per generator call and keeps cumulative token statistics.
"""

from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
import json
import logging
import uuid


@dataclass
class CallMetadata:
    """Metadata for a generation call"""
    timestamp: str
    call_id: str
    call_type: str
    model: str
    parameters: Dict[str, Any]
    tokens_in: int
    tokens_out: int
    finish_reason: Optional[str]
    latency_ms: float
    success: bool
    error: Optional[str] = None

    # Debug payloads (optional, controlled by log level)
    prompt: Optional[str] = None
    response: Optional[str] = None


class CallLogger:
    """
    Logs generation calls with configurable detail levels.

    Log Levels:
    - metadata: Model, tokens, finish reason, latency, success only
    - prompts: Add the compiled prompt (truncated)
    - responses: Add the generator response (truncated)
    - full: Complete payloads (no truncation)
    """

    def __init__(
        self,
        log_directory: Optional[str] = "logs/generation_calls",
        log_level: str = "metadata",
        truncate_prompts_chars: int = 500,
        truncate_responses_chars: int = 1000,
    ):
        """
        Initialize logger.

        Args:
            log_directory: Directory for JSONL files, or None to skip file output
            log_level: One of: metadata, prompts, responses, full
            truncate_prompts_chars: Max chars for prompt truncation
            truncate_responses_chars: Max chars for response truncation
        """
        self.log_directory = Path(log_directory) if log_directory else None
        self.log_level = log_level
        self.truncate_prompts_chars = truncate_prompts_chars
        self.truncate_responses_chars = truncate_responses_chars

        if self.log_directory is not None:
            self.log_directory.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger("llm_service")

        self.call_count = 0
        self.total_tokens_in = 0
        self.total_tokens_out = 0

    def log_call(
        self,
        call_type: str,
        model: str,
        parameters: Dict[str, Any],
        tokens_in: int,
        tokens_out: int,
        finish_reason: Optional[str],
        latency_ms: float,
        success: bool,
        error: Optional[str] = None,
        prompt: Optional[str] = None,
        response: Optional[str] = None,
    ) -> CallMetadata:
        """
        Log a generation call with metadata and optional debug payloads.

        Returns:
            The metadata record that was written
        """
        metadata = CallMetadata(
            timestamp=datetime.now().isoformat(),
            call_id=f"gen_{uuid.uuid4().hex[:12]}",
            call_type=call_type,
            model=model,
            parameters=parameters,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
            success=success,
            error=error,
        )

        if self.log_level in ["prompts", "responses", "full"]:
            metadata.prompt = self._truncate(prompt, self.truncate_prompts_chars)

        if self.log_level in ["responses", "full"]:
            metadata.response = self._truncate(response, self.truncate_responses_chars)

        if self.log_directory is not None:
            self._write_jsonl(metadata)

        self.call_count += 1
        self.total_tokens_in += tokens_in
        self.total_tokens_out += tokens_out

        status = "✅" if success else "❌"
        self.logger.info(
            f"{status} {call_type} | {model} | "
            f"{tokens_in} in / {tokens_out} out | "
            f"finish={finish_reason} | {latency_ms:.0f}ms"
        )
        return metadata

    def get_statistics(self) -> Dict[str, Any]:
        """Get cumulative logging statistics"""
        return {
            "total_calls": self.call_count,
            "total_tokens_in": self.total_tokens_in,
            "total_tokens_out": self.total_tokens_out,
        }

    def _truncate(self, text: Optional[str], max_chars: int) -> Optional[str]:
        """Truncate text to max characters"""
        if not text or self.log_level == "full":
            return text

        if len(text) <= max_chars:
            return text

        return text[:max_chars] + "... [truncated]"

    def _write_jsonl(self, metadata: CallMetadata) -> None:
        """Write metadata to the daily JSONL log file"""
        date_str = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_directory / f"generation_calls_{date_str}.jsonl"

        try:
            with open(log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(asdict(metadata), default=str) + '\n')
        except OSError as e:
            self.logger.error(f"Failed to write log file: {e}")
