"""
LangGraph shared state — the object that flows through every node.

Design rules:
  1. Each field is "owned" by one agent (see comments).
  2. Agents READ any field but return updates only for their owned fields.
  3. Domain values inside are frozen snapshots; a node replaces them,
     never mutates them.
"""

from __future__ import annotations

from operator import add
from typing import Annotated

from pydantic import BaseModel, Field

from .enums import PipelineStatus
from .schemas import (
    AuditEntry,
    Feature,
    QualityMetrics,
    RequirementOutcome,
    SourceRequirement,
    Specification,
    TraceabilityMatrix,
    ValidationIssue,
    ValidationReport,
)


class PipelineState(BaseModel):
    """The shared graph state passed through every LangGraph node."""

    # ── Pipeline control ─────────────────────────────────
    status: PipelineStatus = PipelineStatus.RECEIVED
    current_agent: str = ""
    error_message: str = ""

    # ── Input (owner: caller) ────────────────────────────
    source_requirements: list[SourceRequirement] = Field(default_factory=list)

    # ── Refinement (owner: REFINE) ───────────────────────
    specifications: list[Specification] = Field(default_factory=list)

    # ── Test generation (owner: TESTGEN) ─────────────────
    features: list[Feature] = Field(default_factory=list)

    # ── Validation (owner: VALIDATE) ─────────────────────
    validation_reports: list[ValidationReport] = Field(default_factory=list)
    overall_completeness_percent: float = 0.0

    # ── Traceability (owner: TRACE) ──────────────────────
    matrix: TraceabilityMatrix = Field(default_factory=TraceabilityMatrix)
    quality: QualityMetrics = Field(default_factory=QualityMetrics)

    # ── Append-only (every agent) ────────────────────────
    outcomes: Annotated[list[RequirementOutcome], add] = Field(default_factory=list)
    issues: Annotated[list[ValidationIssue], add] = Field(default_factory=list)
    audit_trail: Annotated[list[AuditEntry], add] = Field(default_factory=list)

    # ── Helper ───────────────────────────────────────────

    def audit(self, agent: str, action: str, details: str = "") -> AuditEntry:
        """Build the next audit entry; the caller returns it as an update."""
        return AuditEntry(
            agent=agent,
            action=action,
            details=details,
            state_version=len(self.audit_trail) + 1,
        )
