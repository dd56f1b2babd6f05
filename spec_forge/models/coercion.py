"""
Tolerant parsers turning model-produced strings into the closed enums.

The model writes "MUST", "haute", "Non-functional", "Boundary Value
Analysis"... these helpers fold them onto a single enum member, falling
back to a documented default when nothing matches.
"""

from __future__ import annotations

import re
from typing import Optional

from .enums import (
    CoverageTechnique,
    Language,
    Priority,
    QualityCharacteristic,
    RequirementCategory,
    RiskLevel,
    ScenarioType,
    StepKeyword,
    TestLevel,
    VerificationMethod,
)


def _key(value: object) -> str:
    """Upper-case, separators collapsed to '_'."""
    return re.sub(r"[\s\-/]+", "_", str(value).strip()).upper()


def parse_priority(value: object) -> Priority:
    key = _key(value)
    if key in ("P1", "MUST", "HIGH", "HAUTE", "CRITICAL", "CRITIQUE"):
        return Priority.P1
    if key in ("P2", "SHOULD", "MEDIUM", "MOYENNE"):
        return Priority.P2
    return Priority.P3


def parse_language(value: object) -> Language:
    key = _key(value)
    if key in ("EN", "ENGLISH", "ANGLAIS"):
        return Language.EN
    return Language.FR


def parse_category(value: object) -> RequirementCategory:
    key = _key(value)
    if key in ("NON_FUNCTIONAL", "NONFUNCTIONAL", "NFR", "NON_FONCTIONNELLE"):
        return RequirementCategory.NON_FUNCTIONAL
    if key in ("CONSTRAINT", "CONTRAINTE"):
        return RequirementCategory.CONSTRAINT
    return RequirementCategory.FUNCTIONAL


def parse_verification_method(value: object) -> VerificationMethod:
    key = _key(value)
    for method in VerificationMethod:
        if key == method.value or key.startswith(method.value[:4]):
            return method
    return VerificationMethod.TEST


def parse_risk_level(value: object) -> Optional[RiskLevel]:
    if value is None or not str(value).strip():
        return None
    key = _key(value)
    aliases = {
        "HIGH": RiskLevel.HIGH, "HAUT": RiskLevel.HIGH, "ELEVE": RiskLevel.HIGH,
        "MEDIUM": RiskLevel.MEDIUM, "MOYEN": RiskLevel.MEDIUM,
        "LOW": RiskLevel.LOW, "BAS": RiskLevel.LOW, "FAIBLE": RiskLevel.LOW,
    }
    return aliases.get(key)


def parse_quality_characteristic(value: object) -> Optional[QualityCharacteristic]:
    if value is None or not str(value).strip():
        return None
    key = _key(value)
    aliases = {
        "PERFORMANCE": QualityCharacteristic.PERFORMANCE_EFFICIENCY,
        "USABILITY": QualityCharacteristic.INTERACTION_CAPABILITY,
        "PORTABILITY": QualityCharacteristic.FLEXIBILITY,
    }
    if key in aliases:
        return aliases[key]
    try:
        return QualityCharacteristic(key)
    except ValueError:
        return None


def parse_step_keyword(value: object) -> StepKeyword:
    key = _key(value)
    aliases = {
        "GIVEN": StepKeyword.GIVEN, "SOIT": StepKeyword.GIVEN, "ETANT_DONNE": StepKeyword.GIVEN,
        "WHEN": StepKeyword.WHEN, "QUAND": StepKeyword.WHEN, "LORSQUE": StepKeyword.WHEN,
        "THEN": StepKeyword.THEN, "ALORS": StepKeyword.THEN,
        "BUT": StepKeyword.BUT, "MAIS": StepKeyword.BUT,
    }
    return aliases.get(key, StepKeyword.AND)


def parse_scenario_type(value: object) -> ScenarioType:
    key = _key(value)
    if "EDGE" in key:
        return ScenarioType.EDGE_CASE
    if "ERROR" in key or "ERREUR" in key:
        return ScenarioType.ERROR
    if "BOUNDARY" in key or "LIMIT" in key:
        return ScenarioType.BOUNDARY
    return ScenarioType.HAPPY_PATH


def parse_test_level(value: object) -> TestLevel:
    key = _key(value).lower()
    try:
        return TestLevel(key)
    except ValueError:
        return TestLevel.ACCEPTANCE


def parse_coverage_technique(value: object) -> Optional[CoverageTechnique]:
    if value is None or not str(value).strip():
        return None
    key = _key(value)
    for technique in CoverageTechnique:
        if key in (technique.value, technique.name):
            return technique
    return None
