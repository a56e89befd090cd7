# ============================================================================
# cli.py - Hydra CLI for scenario generation and validation
# ============================================================================
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict

import hydra
from hydra.utils import to_absolute_path
from dotenv import load_dotenv
from omegaconf import DictConfig

from api.generation_queue import run_with_timeout
from llm_service import LLMServiceConfig, ServiceMode
from scenario_engine import (
    ScenarioEngineError,
    ScenarioGenerator,
    ScenarioValidationError,
    SchemaCache,
    build_skeleton,
    compile_prompt,
    reconcile_envelope_state,
    validate_scenario,
)

load_dotenv()


@hydra.main(version_base=None, config_path="conf", config_name="config")
def main(cfg: DictConfig) -> None:
    """Main entry point with Hydra configuration"""

    if cfg.mode == "generate":
        run_generate(cfg)
    elif cfg.mode == "skeleton":
        run_skeleton(cfg)
    elif cfg.mode == "validate":
        run_validate(cfg)
    elif cfg.mode == "schema":
        run_schema(cfg)
    elif cfg.mode == "serve":
        run_serve(cfg)
    else:
        print(f"Unknown mode: {cfg.mode}")
        sys.exit(2)


def _write_or_print(data: Dict[str, Any], output: Any) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output:
        path = Path(to_absolute_path(str(output)))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text + "\n", encoding="utf-8")
        print(f"Wrote {path}")
    else:
        print(text)


def run_generate(cfg: DictConfig):
    """Generate one scenario from cfg.prompt"""
    if not cfg.prompt:
        print("Provide a prompt: python cli.py mode=generate prompt=\"...\"")
        sys.exit(2)

    config = LLMServiceConfig.from_hydra_config(cfg)
    generator = ScenarioGenerator.from_config(config)

    # Add cost warning for real API calls
    if config.mode == ServiceMode.PRODUCTION:
        print("\n" + "=" * 60)
        print("REAL LLM MODE ACTIVE - API calls will incur costs")
        print(f"API: {config.base_url} | Model: {config.defaults.model}")
        print("=" * 60 + "\n")

    async def _generate():
        try:
            return await run_with_timeout(
                generator.generate(cfg.prompt),
                config.performance.timeout_seconds,
            )
        finally:
            await generator.gateway.aclose()

    try:
        result = asyncio.run(_generate())
    except ScenarioValidationError as e:
        print(e.summary())
        sys.exit(1)
    except ScenarioEngineError as e:
        print(f"Scenario generation failed: {e}")
        sys.exit(1)

    print(f"Generated {result.scenario['id']}: {len(result.scenario['events'])} events, "
          f"{len(result.validation_warnings)} warnings")
    print(result.metadata.summary_line())
    for warning in result.validation_warnings:
        print(f"  ⚠ {warning}")
    if result.unfilled_placeholders:
        print(f"  {len(result.unfilled_placeholders)} placeholders left unfilled")

    _write_or_print(result.to_dict(), cfg.output)


def run_skeleton(cfg: DictConfig):
    """Print the skeleton, or the full compiled prompt with show_prompt=true"""
    skeleton = build_skeleton()
    if cfg.show_prompt:
        print(compile_prompt(cfg.prompt or "Example scenario request", skeleton))
        return
    _write_or_print(skeleton.scenario, cfg.output)
    print(f"{len(skeleton.placeholders)} distinct placeholder tokens", file=sys.stderr)


def run_validate(cfg: DictConfig):
    """Validate a scenario JSON file"""
    if not cfg.input:
        print("Provide a scenario file: python cli.py mode=validate input=scenario.json")
        sys.exit(2)

    data = json.loads(Path(to_absolute_path(cfg.input)).read_text(encoding="utf-8"))
    # Accept either a bare scenario or a generation result
    scenario = data.get("scenario", data) if isinstance(data, dict) else data
    if not isinstance(scenario, dict):
        print(f"{cfg.input} does not contain a scenario object")
        sys.exit(1)

    if cfg.reconcile:
        reconcile_envelope_state(scenario)

    report = validate_scenario(scenario, closed_loops=bool(cfg.closed_loops))
    for error in report.errors:
        print(f"❌ {error}")
    for warning in report.warnings:
        print(f"⚠ {warning}")
    print(f"{len(report.errors)} errors, {len(report.warnings)} warnings")

    if cfg.reconcile and cfg.output:
        _write_or_print(scenario, cfg.output)
    if not report.ok:
        sys.exit(1)


def run_schema(cfg: DictConfig):
    """Print the scenario JSON Schema"""
    cache = SchemaCache(to_absolute_path(cfg.schema.path))
    _write_or_print(cache.load(), cfg.output)


def run_serve(cfg: DictConfig):
    """Run the HTTP API"""
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=cfg.server.host,
        port=int(cfg.server.port),
        reload=bool(cfg.server.reload),
    )


if __name__ == "__main__":
    main()
