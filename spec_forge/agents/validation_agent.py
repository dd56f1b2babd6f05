"""
VALIDATE — Validation Agent
Responsibility: run the ISO 29148 validator over every Specification and
                the Gherkin structure rules over every Feature.

Pure, model-free stage.  Findings travel as issues; nothing here fails
the run.
"""

from __future__ import annotations

import logging
from typing import Any

from spec_forge.agents.base_agent import BaseAgent
from spec_forge.models.enums import AgentName, PipelineStatus
from spec_forge.models.schemas import ValidationIssue, ValidationReport
from spec_forge.models.state import PipelineState
from spec_forge.rules import RequirementValidator, check_feature_structure, get_lexical_rules

logger = logging.getLogger(__name__)


class ValidationAgent(BaseAgent):
    name = AgentName.VALIDATION

    async def _real_process(self, state: PipelineState) -> dict[str, Any]:
        settings = self.settings
        known_sources = [s.id for s in state.source_requirements]
        min_completeness = settings.min_completeness_percent or None

        reports: list[ValidationReport] = []
        issues: list[ValidationIssue] = []

        for spec in state.specifications:
            validator = RequirementValidator(
                rules=get_lexical_rules(spec.language),
                profile=settings.compliance_profile(),
                id_prefix=settings.requirement_id_prefix,
                max_clarifications=settings.max_clarifications,
            )
            report = validator.validate(
                spec,
                min_completeness=min_completeness,
                known_sources=known_sources or None,
            )
            reports.append(report)
            issues.extend(report.issues)

        for feature in state.features:
            issues.extend(check_feature_structure(feature))

        checks = [check for report in reports for check in report.checks]
        overall = 0.0
        if checks:
            overall = round(sum(1 for c in checks if c.passed_all) * 100.0 / len(checks), 1)

        logger.info(
            f"[VALIDATE] {len(checks)} FR(s) across {len(reports)} specification(s) — "
            f"overall completeness {overall:.1f}%, {len(issues)} issue(s)"
        )

        return {
            "validation_reports": reports,
            "overall_completeness_percent": overall,
            "issues": issues,
            "status": PipelineStatus.TRACING,
        }
