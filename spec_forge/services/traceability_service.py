"""
Traceability Builder — bidirectional requirement ↔ scenario matrix.

Forward: every FunctionalRequirement gets one entry listing the scenarios
that verify it.  Backward: every scenario reference that names no known
requirement is reported as a dangling reference, and every scenario linked
to no known requirement counts against backward coverage as an orphan.

`compute_quality_metrics()` derives the ISO/IEC 25023 scores from the same
specifications and features.

The matrix is a derived view; it is rebuilt from scratch on every call and
its ordering depends only on input order, so identical inputs serialize
to identical JSON.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from spec_forge.models.enums import (
    ComplianceDomain,
    ComplianceStatus,
    CoverageTechnique,
    IssueType,
    Priority,
    QualityCharacteristic,
    RequirementCategory,
    RiskLevel,
    TraceabilityStatus,
)
from spec_forge.models.schemas import (
    ComplianceNote,
    ComplianceProfile,
    DanglingReference,
    Feature,
    FunctionalRequirement,
    QualityMetrics,
    Specification,
    TraceabilityEntry,
    TraceabilityMatrix,
    TraceabilitySummary,
    ValidationIssue,
)

logger = logging.getLogger(__name__)

# P1 requirements need at least this many verifying scenarios to be COVERED.
P1_MIN_SCENARIOS = 2

# Scenarios per requirement that count as full test adequacy in the quality score.
ADEQUATE_SCENARIOS_PER_REQUIREMENT = 3

# Per-domain (standard, section, coverage needed for COMPLIANT, status below it)
_DOMAIN_RULES: dict[ComplianceDomain, tuple[str, str, float, ComplianceStatus]] = {
    ComplianceDomain.AVIATION: (
        "DO-178C", "Objectives", 100.0, ComplianceStatus.NON_COMPLIANT,
    ),
    ComplianceDomain.MEDICAL: (
        "IEC 62304", "Software safety classification", 90.0,
        ComplianceStatus.PARTIALLY_COMPLIANT,
    ),
    ComplianceDomain.AUTOMOTIVE: (
        "ISO 26262", "Part 6 - Software development", 95.0,
        ComplianceStatus.PARTIALLY_COMPLIANT,
    ),
    ComplianceDomain.RAILWAY: (
        "EN 50716", "Software requirements", 100.0, ComplianceStatus.NON_COMPLIANT,
    ),
    ComplianceDomain.SAFETY: (
        "IEC 61508", "Part 3 - Software requirements", 95.0,
        ComplianceStatus.PARTIALLY_COMPLIANT,
    ),
}

_LEVEL_LABELS = {
    ComplianceDomain.AVIATION: "DAL",
    ComplianceDomain.MEDICAL: "Class",
    ComplianceDomain.AUTOMOTIVE: "ASIL",
    ComplianceDomain.RAILWAY: "SSIL",
    ComplianceDomain.SAFETY: "SIL",
}


def build_traceability_matrix(
    requirements: Iterable[FunctionalRequirement],
    features: Iterable[Feature],
    profile: Optional[ComplianceProfile] = None,
) -> TraceabilityMatrix:
    """Build the full matrix for *requirements* against *features*."""
    requirements = list(requirements)
    features = list(features)
    profile = profile or ComplianceProfile()
    known_ids = {fr.id for fr in requirements}

    entries = [_build_entry(fr, features) for fr in requirements]
    dangling = _dangling_references(features, known_ids)
    orphans = _orphan_scenarios(features, known_ids)
    total_scenarios = sum(len(f.scenarios) for f in features)

    total = len(entries)
    with_scenarios = sum(1 for e in entries if e.covering_scenarios)
    coverage = _coverage(with_scenarios, total)
    gaps = [e.requirement_id for e in entries if e.is_gap]

    summary = TraceabilitySummary(
        total_requirements=total,
        covered=sum(1 for e in entries if e.status == TraceabilityStatus.COVERED),
        partially_covered=sum(
            1 for e in entries if e.status == TraceabilityStatus.PARTIALLY_COVERED
        ),
        not_covered=sum(1 for e in entries if e.status == TraceabilityStatus.NOT_COVERED),
        coverage_percent=coverage,
        gaps=gaps,
        dangling_references=dangling,
        coverage_by_priority=_coverage_by(entries, list(Priority), "priority"),
        coverage_by_risk=_coverage_by(entries, list(RiskLevel), "risk_level"),
        total_scenarios=total_scenarios,
        backward_coverage_percent=_coverage(total_scenarios - len(orphans), total_scenarios),
        orphan_scenarios=orphans,
    )

    issues: list[ValidationIssue] = []
    for entry in entries:
        if entry.is_gap:
            issues.append(
                ValidationIssue(
                    issue_type=IssueType.TRACEABILITY_GAP,
                    requirement_ids=[entry.requirement_id],
                    description=f"{entry.requirement_id} is not verified by any scenario",
                )
            )
    for ref in dangling:
        issues.append(
            ValidationIssue(
                issue_type=IssueType.DANGLING_REFERENCE,
                requirement_ids=[ref.requirement_id],
                description=(
                    f"Scenario '{ref.scenario}' in feature '{ref.feature}' "
                    f"references unknown requirement {ref.requirement_id}"
                ),
            )
        )

    logger.info(
        f"[TRACE] {total} requirement(s), coverage {coverage:.1f}%, "
        f"{len(gaps)} gap(s), {len(dangling)} dangling reference(s), "
        f"{len(orphans)} orphan scenario(s)"
    )

    return TraceabilityMatrix(
        entries=entries,
        summary=summary,
        compliance_notes=build_compliance_notes(coverage, profile),
        issues=issues,
    )


def build_compliance_notes(coverage: float, profile: ComplianceProfile) -> list[ComplianceNote]:
    """ISO 29148 traceability note plus one note for the regulatory domain."""
    if coverage >= 100.0:
        trace_status = ComplianceStatus.COMPLIANT
    elif coverage >= 80.0:
        trace_status = ComplianceStatus.PARTIALLY_COMPLIANT
    else:
        trace_status = ComplianceStatus.NON_COMPLIANT

    notes = [
        ComplianceNote(
            standard="ISO/IEC/IEEE 29148:2018",
            section="6.6 - Traceability",
            status=trace_status,
            details=f"Forward coverage: {coverage:.1f}%",
        )
    ]

    rule = _DOMAIN_RULES.get(profile.domain)
    if rule is not None:
        standard, section, required, below = rule
        level = ""
        if profile.safety_level:
            level = f"{_LEVEL_LABELS[profile.domain]} {profile.safety_level}, "
        notes.append(
            ComplianceNote(
                standard=standard,
                section=section,
                status=ComplianceStatus.COMPLIANT if coverage >= required else below,
                details=f"{level}coverage {coverage:.1f}% (required {required:.0f}%)",
            )
        )
    return notes


def compute_quality_metrics(
    specifications: Iterable[Specification],
    features: Iterable[Feature],
) -> QualityMetrics:
    """ISO/IEC 25023 measures for the requirements of *specifications*."""
    specifications = list(specifications)
    features = list(features)
    requirements = [fr for spec in specifications for fr in spec.functional_requirements]
    total = len(requirements)

    verified = {
        requirement_id
        for feature in features
        for scenario in feature.scenarios
        for requirement_id in scenario.verification_of
    }
    covered = sum(1 for fr in requirements if fr.id in verified)
    p1 = [fr for fr in requirements if fr.priority == Priority.P1]
    p1_covered = sum(1 for fr in p1 if fr.id in verified)

    unresolved = sum(
        1 for spec in specifications for c in spec.clarifications if not c.resolved
    )
    stability = 100.0 if total == 0 else round(100.0 * (1.0 - min(unresolved / total, 1.0)), 1)

    scenarios = sum(len(f.scenarios) for f in features)
    adequacy = 0.0 if total == 0 else round(scenarios / total, 2)

    characteristics = {
        fr.quality_characteristic
        for fr in requirements
        if fr.category == RequirementCategory.NON_FUNCTIONAL and fr.quality_characteristic
    }
    nfr = round(len(characteristics) * 100.0 / len(QualityCharacteristic), 1)

    completeness = _coverage(covered, total)
    p1_coverage = _coverage(p1_covered, len(p1))
    overall = (
        completeness * 0.30
        + stability * 0.15
        + min(adequacy / ADEQUATE_SCENARIOS_PER_REQUIREMENT, 1.0) * 100.0 * 0.20
        + p1_coverage * 0.25
        + nfr * 0.10
    )

    metrics = QualityMetrics(
        functional_completeness_percent=completeness,
        requirement_stability_percent=stability,
        test_adequacy_ratio=adequacy,
        p1_coverage_percent=p1_coverage,
        nfr_coverage_percent=nfr,
        overall_score=round(overall, 1),
    )
    logger.info(
        f"[TRACE] Quality score {metrics.overall_score:.1f} "
        f"(adequacy {adequacy:.2f} scenario(s)/FR, NFR coverage {nfr:.1f}%)"
    )
    return metrics


# ── Internals ────────────────────────────────────────────


def _build_entry(fr: FunctionalRequirement, features: list[Feature]) -> TraceabilityEntry:
    covering_features: list[str] = []
    covering_scenarios: list[str] = []
    techniques: list[CoverageTechnique] = []

    for feature in features:
        for scenario in feature.scenarios:
            if fr.id not in scenario.verification_of:
                continue
            if feature.name not in covering_features:
                covering_features.append(feature.name)
            covering_scenarios.append(scenario.name)
            technique = scenario.coverage_technique
            if technique is not None and technique not in techniques:
                techniques.append(technique)

    if not covering_scenarios:
        status = TraceabilityStatus.NOT_COVERED
    elif fr.priority == Priority.P1 and len(covering_scenarios) < P1_MIN_SCENARIOS:
        status = TraceabilityStatus.PARTIALLY_COVERED
    else:
        status = TraceabilityStatus.COVERED

    return TraceabilityEntry(
        requirement_id=fr.id,
        statement=fr.statement,
        priority=fr.priority,
        risk_level=fr.risk_level,
        source_requirement_id=fr.source,
        verification_method=fr.verification_method,
        covering_features=covering_features,
        covering_scenarios=covering_scenarios,
        coverage_techniques=techniques,
        status=status,
        is_gap=not covering_scenarios,
    )


def _dangling_references(features: list[Feature], known_ids: set[str]) -> list[DanglingReference]:
    dangling: list[DanglingReference] = []
    for feature in features:
        for scenario in feature.scenarios:
            for requirement_id in scenario.verification_of:
                if requirement_id in known_ids:
                    continue
                ref = DanglingReference(
                    feature=feature.name,
                    scenario=scenario.name,
                    requirement_id=requirement_id,
                )
                if ref not in dangling:
                    dangling.append(ref)
    return dangling


def _orphan_scenarios(features: list[Feature], known_ids: set[str]) -> list[str]:
    """Scenarios linked to no known requirement, by reference or by @FR tag."""
    orphans: list[str] = []
    for feature in features:
        for scenario in feature.scenarios:
            tags = {tag.lstrip("@") for tag in scenario.tags}
            if known_ids.intersection(scenario.verification_of) or known_ids & tags:
                continue
            orphans.append(f"{feature.name} / {scenario.name}")
    return orphans


def _coverage_by(entries: list[TraceabilityEntry], keys: list, attribute: str) -> dict[str, float]:
    """Coverage per tier, for the tiers that actually occur."""
    result: dict[str, float] = {}
    for key in keys:
        group = [e for e in entries if getattr(e, attribute) == key]
        if group:
            covered = sum(1 for e in group if e.covering_scenarios)
            result[key.value] = _coverage(covered, len(group))
    return result


def _coverage(covered: int, total: int) -> float:
    if total == 0:
        return 100.0
    return round(covered * 100.0 / total, 1)
