"""
spec-forge — Main Entry Point

Run the pipeline directly (CLI):
    python -m spec_forge stories.yaml
    python -m spec_forge stories.json --output result.json
    python -m spec_forge stories.yaml --mock

Or import and run programmatically:
    from spec_forge.main import run
    result = run("path/to/stories.yaml")
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from spec_forge.config import get_settings
from spec_forge.errors import InputError
from spec_forge.models.schemas import PipelineResult
from spec_forge.orchestration.graph import run_pipeline_sync
from spec_forge.services.story_reader import read_source_requirements
from spec_forge.utils.logger import setup_logging


def run(file_path: str, output: Optional[str] = None, mock: bool = False) -> PipelineResult:
    """Run the full pipeline on *file_path* and return the result."""
    settings = get_settings()
    if mock:
        settings = settings.model_copy(update={"mock_mode": True})
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info(f"  {settings.app_name.upper()}")
    mode = "MOCK" if settings.mock_mode else f"LLM ({settings.llm_model})"
    logger.info(f"  Mode: {mode} | Started: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 60)

    sources = read_source_requirements(file_path, default_language=settings.language)
    result = run_pipeline_sync(sources, settings=settings)

    _print_summary(result)

    if output:
        Path(output).write_text(result.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Result written to {output}")

    return result


def _print_summary(result: PipelineResult) -> None:
    """Log a human-readable summary of the pipeline result."""
    logger = logging.getLogger(__name__)
    summary = result.matrix.summary
    succeeded = len(result.outcomes) - len(result.failed_outcomes)

    logger.info("-" * 60)
    logger.info("  PIPELINE RESULT SUMMARY")
    logger.info("-" * 60)
    logger.info(f"  Final Status:   {result.status.value}")
    logger.info(f"  Specifications: {len(result.specifications)}")
    logger.info(f"  Requirements:   {summary.total_requirements}")
    logger.info(f"  Features:       {len(result.features)}")
    logger.info(f"  Completeness:   {result.overall_completeness_percent:.1f}%")
    logger.info(f"  Coverage:       {summary.coverage_percent:.1f}%")
    logger.info(f"  Gaps:           {', '.join(summary.gaps) or 'none'}")
    logger.info(f"  Dangling refs:  {len(summary.dangling_references)}")
    logger.info(f"  Backward cov.:  {summary.backward_coverage_percent:.1f}%")
    logger.info(f"  Orphan tests:   {len(summary.orphan_scenarios)}")
    logger.info(f"  Quality score:  {result.quality.overall_score:.1f}")
    logger.info(f"  Issues:         {len(result.issues)}")
    logger.info(f"  Stage items:    {succeeded} succeeded, {len(result.failed_outcomes)} not")
    for outcome in result.failed_outcomes:
        logger.info(
            f"    {outcome.stage} | {outcome.source_requirement_id} | "
            f"{outcome.status.value} | {outcome.error_kind} {outcome.message}"
        )
    for note in result.matrix.compliance_notes:
        logger.info(f"  {note.standard} {note.section}: {note.status.value} ({note.details})")
    logger.info("-" * 60)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="spec_forge",
        description="Refine user stories into a specification, tests and a traceability matrix.",
    )
    parser.add_argument("input", help="stories file (.json, .yaml or .yml)")
    parser.add_argument("--output", "-o", help="write the PipelineResult JSON to this file")
    parser.add_argument("--mock", action="store_true", help="use the built-in mock model")
    args = parser.parse_args(argv)

    try:
        result = run(args.input, output=args.output, mock=args.mock)
    except InputError as exc:
        logging.getLogger(__name__).error(f"Input error: {exc.details}")
        return 2
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
