"""
LangGraph state machine — four-stage requirements pipeline.

    refine → generate_tests → validate → trace → END

All nodes delegate to agent.process(state), which returns the fields the
agent owns; LangGraph merges them (list reducers on the append-only
fields, see models/state.py).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from langgraph.graph import END, StateGraph

from spec_forge.agents import (
    RefinementAgent,
    TestGenerationAgent,
    TraceabilityAgent,
    ValidationAgent,
)
from spec_forge.config import Settings, get_settings
from spec_forge.models.enums import PipelineStatus
from spec_forge.models.schemas import PipelineResult, SourceRequirement
from spec_forge.models.state import PipelineState
from spec_forge.services.llm_service import LLMService, get_llm_service
from spec_forge.services.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


# ── Build the graph ──────────────────────────────────────

def build_graph(
    llm: LLMService,
    settings: Settings,
    policy: Optional[RetryPolicy] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
):
    """
    Construct and compile the pipeline.
    One RetryPolicy is shared by both model-backed stages.
    """
    policy = policy or RetryPolicy.from_settings(settings)

    refine = RefinementAgent(llm, policy, settings, should_cancel)
    generate_tests = TestGenerationAgent(llm, policy, settings, should_cancel)
    validate = ValidationAgent(settings)
    trace = TraceabilityAgent(settings)

    graph = StateGraph(PipelineState)

    graph.add_node("refine", refine.process)
    graph.add_node("generate_tests", generate_tests.process)
    graph.add_node("validate", validate.process)
    graph.add_node("trace", trace.process)

    graph.set_entry_point("refine")
    graph.add_edge("refine", "generate_tests")
    graph.add_edge("generate_tests", "validate")
    graph.add_edge("validate", "trace")
    graph.add_edge("trace", END)

    return graph.compile()


# ── Convenience runners ──────────────────────────────────

async def run_pipeline(
    source_requirements: list[SourceRequirement],
    llm: Optional[LLMService] = None,
    settings: Optional[Settings] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
    policy: Optional[RetryPolicy] = None,
) -> PipelineResult:
    """Run the graph end-to-end and fold the final state into a PipelineResult."""
    settings = settings or get_settings()
    llm = llm or get_llm_service(settings)
    compiled = build_graph(llm, settings, policy, should_cancel)

    logger.info("═" * 60)
    logger.info(f"  PIPELINE STARTING — {len(source_requirements)} source requirement(s)")
    logger.info("═" * 60)

    final = await compiled.ainvoke(
        {"source_requirements": source_requirements, "status": PipelineStatus.REFINING}
    )
    state = PipelineState(**final)
    result = _to_result(state, settings)

    logger.info("═" * 60)
    logger.info(
        f"  PIPELINE FINISHED — status: {result.status.value}, "
        f"coverage {result.matrix.summary.coverage_percent:.1f}%, exit code {result.exit_code}"
    )
    logger.info("═" * 60)
    return result


def run_pipeline_sync(
    source_requirements: list[SourceRequirement],
    llm: Optional[LLMService] = None,
    settings: Optional[Settings] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> PipelineResult:
    return asyncio.run(run_pipeline(source_requirements, llm, settings, should_cancel))


def _to_result(state: PipelineState, settings: Settings) -> PipelineResult:
    coverage_failed = state.matrix.summary.coverage_percent < settings.min_coverage_percent
    transport_failed = any(o.transport_failure for o in state.outcomes)

    return PipelineResult(
        status=state.status,
        specifications=state.specifications,
        features=state.features,
        validation_reports=state.validation_reports,
        matrix=state.matrix,
        quality=state.quality,
        outcomes=state.outcomes,
        issues=state.issues,
        overall_completeness_percent=state.overall_completeness_percent,
        exit_code=1 if coverage_failed or transport_failed else 0,
    )
