"""
Data schemas for every artifact the pipeline produces.

Each stage produces a fresh, frozen snapshot consumed by the next:
  SourceRequirement → Specification (+ FunctionalRequirement)
                    → Feature / Scenario
                    → ValidationReport + TraceabilityMatrix
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from spec_forge.errors import OutputSchemaMismatch

from .coercion import (
    parse_category,
    parse_priority,
    parse_quality_characteristic,
    parse_risk_level,
    parse_verification_method,
)
from .enums import (
    ComplianceDomain,
    ComplianceStatus,
    CoverageTechnique,
    IssueType,
    Language,
    OutcomeStatus,
    PipelineStatus,
    Priority,
    QualityCharacteristic,
    RequirementCategory,
    RiskLevel,
    ScenarioType,
    StepKeyword,
    TestLevel,
    TraceabilityStatus,
    VerificationMethod,
    WellFormednessCriterion,
)

_FROZEN = ConfigDict(frozen=True)

# Source value for requirements that come from outside the input stories
# (a regulation, a stakeholder interview...). "EXTERNAL" or "EXTERNAL:<origin>".
EXTERNAL_ORIGIN = "EXTERNAL"


# ── Compliance profile ───────────────────────────────────

# Accepted safety levels per regulatory domain, without their prefixes.
SAFETY_LEVELS: dict[ComplianceDomain, tuple[str, ...]] = {
    ComplianceDomain.GENERAL: (),
    ComplianceDomain.AVIATION: ("A", "B", "C", "D", "E"),  # DAL
    ComplianceDomain.MEDICAL: ("A", "B", "C"),  # software class
    ComplianceDomain.AUTOMOTIVE: ("A", "B", "C", "D"),  # ASIL
    ComplianceDomain.RAILWAY: ("0", "1", "2", "3", "4"),  # SSIL
    ComplianceDomain.SAFETY: ("1", "2", "3", "4"),  # SIL
}

_LEVEL_PREFIXES = ("DAL", "SW", "CLASS", "ASIL", "SSIL", "SIL")


class ComplianceProfile(BaseModel):
    """Regulatory profile selecting which quality tags and risk tiers are valid."""
    model_config = _FROZEN

    domain: ComplianceDomain = ComplianceDomain.GENERAL
    safety_level: Optional[str] = None
    require_rationale: bool = False
    quality_characteristics: tuple[QualityCharacteristic, ...] = tuple(QualityCharacteristic)
    risk_levels: tuple[RiskLevel, ...] = tuple(RiskLevel)

    @field_validator("safety_level")
    @classmethod
    def _normalize_level(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        level = value.strip().upper()
        for prefix in _LEVEL_PREFIXES:
            if level.startswith(prefix):
                level = level[len(prefix):].lstrip("-_ ")
                break
        return level

    @model_validator(mode="after")
    def _check_level(self) -> ComplianceProfile:
        allowed = SAFETY_LEVELS[self.domain]
        if self.safety_level is not None and self.safety_level not in allowed:
            raise ValueError(
                f"Safety level '{self.safety_level}' is not valid for domain "
                f"'{self.domain.value}' (expected one of {list(allowed)})"
            )
        return self

    @property
    def is_safety_critical(self) -> bool:
        """Safety-critical domains require a risk tier on every requirement."""
        return self.domain != ComplianceDomain.GENERAL


# ── Source requirements (input) ──────────────────────────


class SourceRequirement(BaseModel):
    """A unit of stakeholder intent, as read from the input file."""
    model_config = _FROZEN

    id: str
    title: str
    actor: str = ""
    action: str = ""
    benefit: str = ""
    priority: Optional[Priority] = None
    acceptance_notes: list[str] = Field(default_factory=list)
    language: Language = Language.FR
    tags: list[str] = Field(default_factory=list)
    stakeholder: Optional[str] = None

    def to_standard_format(self) -> str:
        if self.language == Language.EN:
            return f"As a {self.actor}, I want {self.action} so that {self.benefit}."
        return f"En tant que {self.actor}, je veux {self.action} afin de {self.benefit}."


# ── Specification (refinement output) ────────────────────


class FunctionalRequirement(BaseModel):
    """
    A normatively-worded requirement derived from a SourceRequirement.

    Direct construction is permissive so that externally supplied records
    can still be audited by the validator.  Records coming from the model
    go through `from_payload`, which enforces the cross-field invariants.
    """
    model_config = _FROZEN

    id: str
    statement: str
    priority: Priority = Priority.P2
    category: RequirementCategory = RequirementCategory.FUNCTIONAL
    testable: bool = True
    rationale: str = ""
    source: str = ""
    verification_method: VerificationMethod = VerificationMethod.TEST
    risk_level: Optional[RiskLevel] = None
    quality_characteristic: Optional[QualityCharacteristic] = None

    @classmethod
    def from_payload(
        cls,
        payload: dict[str, Any],
        *,
        requirement_id: str,
        default_source: str,
    ) -> FunctionalRequirement:
        """
        Smart constructor used at the model-ingestion boundary.

        Raises OutputSchemaMismatch (retryable) when the record is
        structurally unusable or breaks a cross-field invariant:
          - risk_level is mandatory for P1 requirements
          - quality_characteristic is present iff category is NON_FUNCTIONAL
        """
        statement = str(payload.get("statement") or "").strip()
        if not statement:
            raise OutputSchemaMismatch(f"{requirement_id}: missing statement")

        priority = parse_priority(payload.get("priority", "P2"))
        category = parse_category(payload.get("category", "FUNCTIONAL"))
        risk = parse_risk_level(payload.get("risk_level"))
        quality = parse_quality_characteristic(payload.get("quality_characteristic"))

        if priority == Priority.P1 and risk is None:
            raise OutputSchemaMismatch(f"{requirement_id}: P1 requirement without risk_level")
        if category == RequirementCategory.NON_FUNCTIONAL and quality is None:
            raise OutputSchemaMismatch(
                f"{requirement_id}: non-functional requirement without quality_characteristic"
            )
        if category != RequirementCategory.NON_FUNCTIONAL and quality is not None:
            raise OutputSchemaMismatch(
                f"{requirement_id}: quality_characteristic set on a {category.value} requirement"
            )

        return cls(
            id=requirement_id,
            statement=statement,
            priority=priority,
            category=category,
            testable=_as_bool(payload.get("testable", True)),
            rationale=str(payload.get("rationale") or "").strip(),
            source=str(payload.get("source") or "").strip() or default_source,
            verification_method=parse_verification_method(
                payload.get("verification_method") or "TEST"
            ),
            risk_level=risk,
            quality_characteristic=quality,
        )


class AcceptanceScenario(BaseModel):
    model_config = _FROZEN

    given: str = ""
    when: str = ""
    then: str = ""


class UserScenario(BaseModel):
    model_config = _FROZEN

    id: str
    title: str = ""
    priority: Priority = Priority.P2
    description: str = ""
    why_priority: str = ""
    independent_test: str = ""
    acceptance_scenarios: list[AcceptanceScenario] = Field(default_factory=list)
    source_requirement_id: str = ""


class KeyEntity(BaseModel):
    model_config = _FROZEN

    name: str
    description: str = ""
    attributes: list[str] = Field(default_factory=list)
    relationships: list[str] = Field(default_factory=list)


class EdgeCase(BaseModel):
    model_config = _FROZEN

    description: str
    related_scenario: Optional[str] = None
    severity: Priority = Priority.P2


class SuccessCriterion(BaseModel):
    model_config = _FROZEN

    id: str
    description: str = ""
    measurable_metric: str = ""


class Clarification(BaseModel):
    model_config = _FROZEN

    question: str
    context: str = ""
    suggested_options: list[str] = Field(default_factory=list)
    impact: str = ""
    resolved: bool = False
    answer: Optional[str] = None


class Specification(BaseModel):
    """Refined specification for one SourceRequirement."""
    model_config = _FROZEN

    title: str
    source_requirement_ids: list[str] = Field(default_factory=list)
    language: Language = Language.FR
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_scenarios: list[UserScenario] = Field(default_factory=list)
    functional_requirements: list[FunctionalRequirement] = Field(default_factory=list)
    key_entities: list[KeyEntity] = Field(default_factory=list)
    edge_cases: list[EdgeCase] = Field(default_factory=list)
    success_criteria: list[SuccessCriterion] = Field(default_factory=list)
    clarifications: list[Clarification] = Field(default_factory=list)
    compliance_profile: ComplianceProfile = Field(default_factory=ComplianceProfile)

    def requirement_ids(self) -> list[str]:
        return [fr.id for fr in self.functional_requirements]

    def has_unresolved_clarifications(self) -> bool:
        return any(not c.resolved for c in self.clarifications)


# ── Test scenarios (generation output) ───────────────────


class Step(BaseModel):
    model_config = _FROZEN

    keyword: StepKeyword
    text: str
    doc_string: Optional[str] = None
    data_table: Optional[list[list[str]]] = None


class Examples(BaseModel):
    model_config = _FROZEN

    headers: list[str]
    rows: list[list[str]] = Field(default_factory=list)


class Scenario(BaseModel):
    model_config = _FROZEN

    name: str
    scenario_type: ScenarioType = ScenarioType.HAPPY_PATH
    steps: list[Step] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    verification_of: list[str] = Field(min_length=1)
    coverage_technique: Optional[CoverageTechnique] = None
    examples: Optional[Examples] = None


class Feature(BaseModel):
    """Scenarios derived from one SourceRequirement."""
    model_config = _FROZEN

    name: str
    description: str = ""
    source_requirement_id: str = ""
    tags: list[str] = Field(default_factory=list)
    background: list[Step] = Field(default_factory=list)
    scenarios: list[Scenario] = Field(default_factory=list)
    test_level: TestLevel = TestLevel.ACCEPTANCE

    @computed_field  # type: ignore[prop-decorator]
    @property
    def covered_requirements(self) -> list[str]:
        covered: list[str] = []
        for scenario in self.scenarios:
            for requirement_id in scenario.verification_of:
                if requirement_id not in covered:
                    covered.append(requirement_id)
        return covered


# ── Validation ───────────────────────────────────────────


class ValidationIssue(BaseModel):
    """Structured, non-fatal diagnostic attached to the run report."""
    model_config = _FROZEN

    issue_type: IssueType
    requirement_ids: list[str] = Field(default_factory=list)
    description: str
    severity: str = "warning"  # "warning" | "error" | "info"


class RequirementCheck(BaseModel):
    """Pass/fail status of one FunctionalRequirement for each criterion."""
    model_config = _FROZEN

    requirement_id: str
    criteria: dict[WellFormednessCriterion, bool]
    issues: list[str] = Field(default_factory=list)

    @property
    def passed_all(self) -> bool:
        return all(self.criteria.values())

    @property
    def failed_criteria(self) -> list[WellFormednessCriterion]:
        return [c for c, ok in self.criteria.items() if not ok]


class ChecklistItem(BaseModel):
    model_config = _FROZEN

    description: str
    passed: bool
    category: str


class ValidationReport(BaseModel):
    model_config = _FROZEN

    specification_title: str = ""
    checks: list[RequirementCheck] = Field(default_factory=list)
    criterion_pass_rates: dict[WellFormednessCriterion, float] = Field(default_factory=dict)
    completeness_percent: float = 0.0
    checklist: list[ChecklistItem] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)

    def check_for(self, requirement_id: str) -> Optional[RequirementCheck]:
        for check in self.checks:
            if check.requirement_id == requirement_id:
                return check
        return None


# ── Traceability ─────────────────────────────────────────


class TraceabilityEntry(BaseModel):
    """One row of the matrix, one per FunctionalRequirement."""
    model_config = _FROZEN

    requirement_id: str
    statement: str
    priority: Priority
    risk_level: Optional[RiskLevel] = None
    source_requirement_id: str = ""
    verification_method: VerificationMethod = VerificationMethod.TEST
    covering_features: list[str] = Field(default_factory=list)
    covering_scenarios: list[str] = Field(default_factory=list)
    coverage_techniques: list[CoverageTechnique] = Field(default_factory=list)
    status: TraceabilityStatus = TraceabilityStatus.NOT_COVERED
    is_gap: bool = True


class DanglingReference(BaseModel):
    model_config = _FROZEN

    feature: str
    scenario: str
    requirement_id: str


class TraceabilitySummary(BaseModel):
    model_config = _FROZEN

    total_requirements: int = 0
    covered: int = 0
    partially_covered: int = 0
    not_covered: int = 0
    coverage_percent: float = 100.0
    gaps: list[str] = Field(default_factory=list)
    dangling_references: list[DanglingReference] = Field(default_factory=list)
    coverage_by_priority: dict[str, float] = Field(default_factory=dict)
    coverage_by_risk: dict[str, float] = Field(default_factory=dict)
    total_scenarios: int = 0
    backward_coverage_percent: float = 100.0
    orphan_scenarios: list[str] = Field(default_factory=list)


class ComplianceNote(BaseModel):
    model_config = _FROZEN

    standard: str
    section: str
    status: ComplianceStatus
    details: str = ""


class QualityMetrics(BaseModel):
    """
    ISO/IEC 25023 product-quality measures over one run.

    Percentages are 0-100; test_adequacy_ratio is scenarios per requirement.
    overall_score weights completeness 30, stability 15, adequacy 20
    (3 scenarios per requirement counts as full), P1 coverage 25, NFR 10.
    """
    model_config = _FROZEN

    functional_completeness_percent: float = 100.0
    requirement_stability_percent: float = 100.0
    test_adequacy_ratio: float = 0.0
    p1_coverage_percent: float = 100.0
    nfr_coverage_percent: float = 0.0
    overall_score: float = 0.0


class TraceabilityMatrix(BaseModel):
    """Derived, read-only view, always rebuilt from scratch."""
    model_config = _FROZEN

    entries: list[TraceabilityEntry] = Field(default_factory=list)
    summary: TraceabilitySummary = Field(default_factory=TraceabilitySummary)
    compliance_notes: list[ComplianceNote] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)

    def entry(self, requirement_id: str) -> Optional[TraceabilityEntry]:
        for entry in self.entries:
            if entry.requirement_id == requirement_id:
                return entry
        return None


# ── Run results ──────────────────────────────────────────


class RequirementOutcome(BaseModel):
    """What happened to one SourceRequirement during a stage."""
    model_config = _FROZEN

    source_requirement_id: str
    stage: str
    status: OutcomeStatus
    attempts: int = 0
    error_kind: str = ""
    message: str = ""
    transport_failure: bool = False


class AuditEntry(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    agent: str
    action: str
    details: str = ""
    state_version: int = 0


class PipelineResult(BaseModel):
    status: PipelineStatus = PipelineStatus.COMPLETED
    specifications: list[Specification] = Field(default_factory=list)
    features: list[Feature] = Field(default_factory=list)
    validation_reports: list[ValidationReport] = Field(default_factory=list)
    matrix: TraceabilityMatrix = Field(default_factory=TraceabilityMatrix)
    quality: QualityMetrics = Field(default_factory=QualityMetrics)
    outcomes: list[RequirementOutcome] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)
    overall_completeness_percent: float = 0.0
    exit_code: int = 0

    @property
    def failed_outcomes(self) -> list[RequirementOutcome]:
        return [o for o in self.outcomes if o.status != OutcomeStatus.SUCCEEDED]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "no", "non", "0", "")
    return bool(value)
