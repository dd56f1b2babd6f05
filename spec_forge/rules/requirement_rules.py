"""
Requirement Validator — ISO/IEC/IEEE 29148 well-formedness checks.

Runs the nine per-requirement criteria over a Specification, aggregates
pass rates and completeness, and computes the specification checklist.
Never raises on content problems and never mutates its input: everything
it finds is returned as data on the ValidationReport.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Iterable, Optional

from spec_forge.models.enums import (
    IssueType,
    Priority,
    RequirementCategory,
    VerificationMethod,
    WellFormednessCriterion as C,
)
from spec_forge.models.schemas import (
    EXTERNAL_ORIGIN,
    ChecklistItem,
    ComplianceProfile,
    FunctionalRequirement,
    RequirementCheck,
    Specification,
    ValidationIssue,
    ValidationReport,
)

from .lexicon import LexicalRules, normalize_text

logger = logging.getLogger(__name__)

_SOURCE_SEPARATORS = re.compile(r"[,;\s]+")


def is_external_origin(source: str) -> bool:
    """'EXTERNAL' or 'EXTERNAL:<origin>' with a non-empty origin."""
    value = source.strip()
    if value.upper() == EXTERNAL_ORIGIN:
        return True
    head, sep, origin = value.partition(":")
    return bool(sep) and head.strip().upper() == EXTERNAL_ORIGIN and bool(origin.strip())


class RequirementValidator:
    """Stateless checker; build once per language/profile and reuse."""

    def __init__(
        self,
        rules: LexicalRules,
        profile: Optional[ComplianceProfile] = None,
        id_prefix: str = "FR",
        max_clarifications: int = 3,
    ) -> None:
        self.rules = rules
        self.profile = profile or ComplianceProfile()
        self.max_clarifications = max_clarifications
        self._id_pattern = re.compile(rf"^{re.escape(id_prefix)}-\d{{3,}}$")

    # ── Public API ───────────────────────────────────────

    def validate(
        self,
        spec: Specification,
        min_completeness: Optional[float] = None,
        known_sources: Optional[Iterable[str]] = None,
    ) -> ValidationReport:
        """
        Check every FR of *spec*.

        *known_sources* defaults to the source_requirement_ids of *spec*;
        *min_completeness* (percent) adds a COMPLETENESS_BELOW issue when
        *spec* falls short of it.
        """
        requirements = spec.functional_requirements
        known = set(known_sources) if known_sources is not None else set(spec.source_requirement_ids)
        duplicates = self._duplicate_ids(requirements)

        checks = [self.check_requirement(fr, known, fr.id in duplicates) for fr in requirements]

        pass_rates = {
            criterion: _percent(sum(1 for ch in checks if ch.criteria[criterion]), len(checks))
            for criterion in C
        }
        completeness = _percent(sum(1 for ch in checks if ch.passed_all), len(checks))

        issues: list[ValidationIssue] = []
        for check in checks:
            if check.passed_all:
                continue
            failed = ", ".join(c.value for c in check.failed_criteria)
            issues.append(
                ValidationIssue(
                    issue_type=IssueType.CRITERIA_FAILED,
                    requirement_ids=[check.requirement_id],
                    description=f"{check.requirement_id} fails {failed}: {'; '.join(check.issues)}",
                )
            )

        if min_completeness is not None and completeness < min_completeness:
            issues.append(
                ValidationIssue(
                    issue_type=IssueType.COMPLETENESS_BELOW,
                    requirement_ids=[ch.requirement_id for ch in checks if not ch.passed_all],
                    description=(
                        f"Completeness {completeness:.1f}% is below the "
                        f"{min_completeness:.1f}% threshold"
                    ),
                    severity="error",
                )
            )

        logger.info(
            f"[VALIDATE] '{spec.title}': {len(checks)} FR(s), "
            f"completeness {completeness:.1f}%, {len(issues)} issue(s)"
        )

        return ValidationReport(
            specification_title=spec.title,
            checks=checks,
            criterion_pass_rates=pass_rates,
            completeness_percent=completeness,
            checklist=self.checklist(spec),
            issues=issues,
        )

    def check_requirement(
        self,
        fr: FunctionalRequirement,
        known_sources: set[str],
        duplicated: bool = False,
    ) -> RequirementCheck:
        """Evaluate the nine criteria for a single requirement."""
        issues: list[str] = []
        results: dict[C, bool] = {}

        # 1. Necessary
        results[C.NECESSARY] = not duplicated
        if duplicated:
            issues.append("near-duplicate of another requirement")

        # 2. Unambiguous
        vague = self.rules.find_ambiguous(fr.statement)
        results[C.UNAMBIGUOUS] = not vague
        if vague:
            issues.append(f"vague term(s): {', '.join(vague)}")

        # 3. Complete
        missing = self._missing_fields(fr)
        results[C.COMPLETE] = not missing
        issues.extend(missing)

        # 4. Singular
        compound = (
            self.rules.count_normative(fr.statement) >= 2
            and self.rules.has_conjunction(fr.statement)
        )
        results[C.SINGULAR] = not compound
        if compound:
            issues.append("several requirements joined in one statement")

        # 5. Feasible: no structural signal exists for it
        results[C.FEASIBLE] = True

        # 6. Verifiable
        verifiable = fr.testable and isinstance(fr.verification_method, VerificationMethod)
        results[C.VERIFIABLE] = verifiable
        if not verifiable:
            issues.append("not testable or no verification method")

        # 7. Correct
        normative = self.rules.count_normative(fr.statement) > 0
        results[C.CORRECT] = normative
        if not normative:
            keywords = "/".join(kw.upper() for kw in self.rules.normative_keywords)
            issues.append(f"no normative keyword ({keywords})")

        # 8. Conforming
        conforming = bool(self._id_pattern.match(fr.id)) and bool(fr.statement.strip())
        results[C.CONFORMING] = conforming
        if not conforming:
            issues.append(f"id '{fr.id}' does not follow the {self._id_pattern.pattern} pattern")

        # 9. Traceable
        traceable = self._is_traceable(fr.source, known_sources)
        results[C.TRACEABLE] = traceable
        if not traceable:
            issues.append(f"source '{fr.source}' does not resolve to a known requirement")

        return RequirementCheck(requirement_id=fr.id, criteria=results, issues=issues)

    def checklist(self, spec: Specification) -> list[ChecklistItem]:
        """Specification-level quality checklist."""
        frs = spec.functional_requirements
        ids = [fr.id for fr in frs]
        unresolved = sum(1 for c in spec.clarifications if not c.resolved)
        normalized = [normalize_text(fr.statement) for fr in frs]
        nfrs = [fr for fr in frs if fr.category == RequirementCategory.NON_FUNCTIONAL]

        return [
            ChecklistItem(
                description="At least one user scenario is defined",
                passed=bool(spec.user_scenarios),
                category="Completeness",
            ),
            ChecklistItem(
                description="Functional requirements are defined",
                passed=bool(frs),
                category="Completeness",
            ),
            ChecklistItem(
                description="Measurable success criteria are defined",
                passed=bool(spec.success_criteria),
                category="Completeness",
            ),
            ChecklistItem(
                description="Every user scenario has acceptance scenarios",
                passed=all(us.acceptance_scenarios for us in spec.user_scenarios),
                category="Completeness",
            ),
            ChecklistItem(
                description=f"Fewer than {self.max_clarifications} unresolved clarifications",
                passed=unresolved == 0 or unresolved < self.max_clarifications,
                category="Clarity",
            ),
            ChecklistItem(
                description="Every requirement is testable",
                passed=all(fr.testable for fr in frs),
                category="Testability",
            ),
            ChecklistItem(
                description="Edge cases are identified",
                passed=bool(spec.edge_cases),
                category="Completeness",
            ),
            ChecklistItem(
                description="ISO 29148: requirement ids are unique",
                passed=len(set(ids)) == len(ids),
                category="Conformity",
            ),
            ChecklistItem(
                description="ISO 29148: normative wording in every requirement",
                passed=all(self.rules.count_normative(fr.statement) for fr in frs),
                category="Conformity",
            ),
            ChecklistItem(
                description="ISO 29148: no vague terms in requirements",
                passed=not any(self.rules.find_ambiguous(fr.statement) for fr in frs),
                category="Clarity",
            ),
            ChecklistItem(
                description="ISO 29148: every P1 requirement has a risk level",
                passed=all(fr.risk_level for fr in frs if fr.priority == Priority.P1),
                category="Conformity",
            ),
            ChecklistItem(
                description="ISO 25010: every NFR has a quality characteristic",
                passed=all(fr.quality_characteristic for fr in nfrs),
                category="Conformity",
            ),
            ChecklistItem(
                description="No near-duplicate requirement statements",
                passed=len(set(normalized)) == len(normalized),
                category="Clarity",
            ),
        ]

    # ── Internals ────────────────────────────────────────

    @staticmethod
    def _duplicate_ids(requirements: list[FunctionalRequirement]) -> set[str]:
        counts = Counter(normalize_text(fr.statement) for fr in requirements)
        return {
            fr.id
            for fr in requirements
            if normalize_text(fr.statement) and counts[normalize_text(fr.statement)] > 1
        }

    def _missing_fields(self, fr: FunctionalRequirement) -> list[str]:
        profile = self.profile
        missing: list[str] = []

        for name in ("id", "statement", "source"):
            if not getattr(fr, name).strip():
                missing.append(f"missing {name}")
        if profile.require_rationale and not fr.rationale.strip():
            missing.append("missing rationale")

        if fr.risk_level is None:
            if fr.priority == Priority.P1:
                missing.append("P1 requirement without risk level")
            elif profile.is_safety_critical:
                missing.append(f"risk level required in the {profile.domain.value} domain")
        elif fr.risk_level not in profile.risk_levels:
            missing.append(f"risk level {fr.risk_level.value} not allowed by the profile")

        if fr.category == RequirementCategory.NON_FUNCTIONAL:
            if fr.quality_characteristic is None:
                missing.append("non-functional requirement without quality characteristic")
            elif fr.quality_characteristic not in profile.quality_characteristics:
                missing.append(
                    f"quality characteristic {fr.quality_characteristic.value} "
                    f"not allowed by the profile"
                )
        elif fr.quality_characteristic is not None:
            missing.append(f"quality characteristic set on a {fr.category.value} requirement")

        return missing

    @staticmethod
    def _is_traceable(source: str, known_sources: set[str]) -> bool:
        value = source.strip()
        if not value:
            return False
        if value in known_sources or is_external_origin(value):
            return True
        return any(token in known_sources for token in _SOURCE_SEPARATORS.split(value) if token)


def _percent(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(part * 100.0 / total, 1)
