"""
TRACE — Traceability Agent
Responsibility: build the single traceability matrix over every
                FunctionalRequirement and every Feature of the run, plus
                the ISO 25023 quality metrics.
"""

from __future__ import annotations

import logging
from typing import Any

from spec_forge.agents.base_agent import BaseAgent
from spec_forge.models.enums import AgentName, IssueType, PipelineStatus
from spec_forge.models.schemas import ValidationIssue
from spec_forge.models.state import PipelineState
from spec_forge.services.traceability_service import (
    build_traceability_matrix,
    compute_quality_metrics,
)

logger = logging.getLogger(__name__)


class TraceabilityAgent(BaseAgent):
    name = AgentName.TRACEABILITY

    async def _real_process(self, state: PipelineState) -> dict[str, Any]:
        requirements = [fr for spec in state.specifications for fr in spec.functional_requirements]
        matrix = build_traceability_matrix(
            requirements,
            state.features,
            profile=self.settings.compliance_profile(),
        )

        quality = compute_quality_metrics(state.specifications, state.features)

        issues = list(matrix.issues)
        coverage = matrix.summary.coverage_percent
        threshold = self.settings.min_coverage_percent
        if coverage < threshold:
            logger.warning(f"[TRACE] Coverage {coverage:.1f}% is below {threshold:.1f}%")
            issues.append(
                ValidationIssue(
                    issue_type=IssueType.COMPLETENESS_BELOW,
                    requirement_ids=list(matrix.summary.gaps),
                    description=f"Test coverage {coverage:.1f}% is below the {threshold:.1f}% threshold",
                    severity="error",
                )
            )

        status = PipelineStatus.COMPLETED
        if state.source_requirements and not state.specifications:
            status = PipelineStatus.FAILED

        return {"matrix": matrix, "quality": quality, "issues": issues, "status": status}
