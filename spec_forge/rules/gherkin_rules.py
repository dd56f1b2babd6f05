"""
Gherkin structure rules — structural lint of generated Features.

Findings are GHERKIN_SYNTAX issues; none of them stops the pipeline.
"""

from __future__ import annotations

import re

from spec_forge.models.enums import IssueType, StepKeyword
from spec_forge.models.schemas import Feature, Scenario, ValidationIssue

_PLACEHOLDER = re.compile(r"<[^<>\s][^<>]*>")


def check_feature_structure(feature: Feature) -> list[ValidationIssue]:
    """Return one issue per structural problem found in *feature*."""
    issues: list[ValidationIssue] = []

    if not feature.scenarios:
        issues.append(_issue(feature, None, "feature has no scenario"))

    for scenario in feature.scenarios:
        for problem in _scenario_problems(scenario):
            issues.append(_issue(feature, scenario, problem))

    return issues


def _scenario_problems(scenario: Scenario) -> list[str]:
    steps = scenario.steps
    if not steps:
        return ["scenario has no steps"]

    problems: list[str] = []
    first = steps[0].keyword
    if first in (StepKeyword.AND, StepKeyword.BUT):
        problems.append(f"first step uses '{first.value}'")
    elif first == StepKeyword.THEN:
        problems.append("first step is 'Then'; expected 'Given' or 'When'")

    if not any(step.keyword == StepKeyword.THEN for step in steps):
        problems.append("no 'Then' step")

    for index, step in enumerate(steps, start=1):
        if not step.text.strip():
            problems.append(f"step {index} has empty text")

    uses_placeholders = any(_PLACEHOLDER.search(step.text) for step in steps)
    if scenario.examples is None:
        if uses_placeholders:
            problems.append("placeholders used without an Examples table")
    else:
        width = len(scenario.examples.headers)
        for row_index, row in enumerate(scenario.examples.rows, start=1):
            if len(row) != width:
                problems.append(
                    f"examples row {row_index} has {len(row)} cells, header has {width}"
                )

    return problems


def _issue(feature: Feature, scenario: Scenario | None, problem: str) -> ValidationIssue:
    where = feature.name if scenario is None else f"{feature.name} / {scenario.name}"
    return ValidationIssue(
        issue_type=IssueType.GHERKIN_SYNTAX,
        requirement_ids=list(scenario.verification_of) if scenario else [],
        description=f"{where}: {problem}",
        severity="warning",
    )
