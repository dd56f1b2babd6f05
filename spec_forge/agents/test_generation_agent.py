"""
TESTGEN — Test Generation Agent
Responsibility: derive Gherkin Features/Scenarios from each Specification,
                each scenario naming the FunctionalRequirements it verifies.

Same hardening as REFINE: one model call per specification under the
shared RetryPolicy, per-item failures recorded and the loop continues.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from spec_forge.agents.base_agent import BaseAgent
from spec_forge.config import Settings
from spec_forge.errors import OutputSchemaMismatch, PipelineCancelled, SpecForgeError, TransportError
from spec_forge.models.coercion import (
    parse_coverage_technique,
    parse_scenario_type,
    parse_step_keyword,
    parse_test_level,
)
from spec_forge.models.enums import AgentName, OutcomeStatus, PipelineStatus
from spec_forge.models.schemas import (
    Examples,
    Feature,
    RequirementOutcome,
    Scenario,
    Specification,
    Step,
)
from spec_forge.models.state import PipelineState
from spec_forge.services.llm_service import LLMService, llm_json_call
from spec_forge.services.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"
_SYSTEM_PROMPT_PATH = _PROMPT_DIR / "test_generation_system.txt"
_PROMPT_PATH = _PROMPT_DIR / "test_generation_prompt.txt"


class TestGenerationAgent(BaseAgent):
    __test__ = False  # not a pytest class

    name = AgentName.TEST_GENERATION

    def __init__(
        self,
        llm: LLMService,
        policy: RetryPolicy,
        settings: Optional[Settings] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> None:
        super().__init__(settings, should_cancel)
        self.llm = llm
        self.policy = policy
        prefix = re.escape(self.settings.requirement_id_prefix)
        self._tag_pattern = re.compile(rf"^@?({prefix}-\d{{3,}})$")

    async def _real_process(self, state: PipelineState) -> dict[str, Any]:
        specs = state.specifications
        logger.info(f"[TESTGEN] Generating scenarios for {len(specs)} specification(s)")

        system_prompt = _SYSTEM_PROMPT_PATH.read_text(encoding="utf-8")
        template = _PROMPT_PATH.read_text(encoding="utf-8")

        features: list[Feature] = []
        outcomes: list[RequirementOutcome] = []

        for index, spec in enumerate(specs):
            item_id = _item_id(spec)
            if self.cancelled():
                outcomes.extend(self._cancelled(s) for s in specs[index:])
                logger.warning(f"[TESTGEN] Cancelled — {len(specs) - index} item(s) skipped")
                break

            calls = 0

            async def attempt(spec=spec) -> list[Feature]:
                nonlocal calls
                calls += 1
                payload = await llm_json_call(self.llm, system_prompt, _render(template, spec))
                return self.build_features(payload, spec)

            try:
                generated = await self.policy.run(
                    attempt, label=f"testgen {item_id}", should_cancel=self.should_cancel
                )
            except PipelineCancelled:
                outcomes.extend(self._cancelled(s) for s in specs[index:])
                logger.warning(f"[TESTGEN] Cancelled while generating for {item_id}")
                break
            except SpecForgeError as exc:
                logger.error(f"[TESTGEN] {item_id} failed: {type(exc).__name__}: {exc.details}")
                outcomes.append(
                    RequirementOutcome(
                        source_requirement_id=item_id,
                        stage=self.name.value,
                        status=OutcomeStatus.FAILED,
                        attempts=calls,
                        error_kind=type(exc).__name__,
                        message=exc.details,
                        transport_failure=isinstance(exc, TransportError),
                    )
                )
                continue

            features.extend(generated)
            outcomes.append(
                RequirementOutcome(
                    source_requirement_id=item_id,
                    stage=self.name.value,
                    status=OutcomeStatus.SUCCEEDED,
                    attempts=calls,
                )
            )
            scenario_count = sum(len(f.scenarios) for f in generated)
            logger.info(
                f"[TESTGEN] {item_id} → {len(generated)} feature(s), "
                f"{scenario_count} scenario(s) in {calls} attempt(s)"
            )

        return {
            "features": features,
            "outcomes": outcomes,
            "status": PipelineStatus.VALIDATING,
        }

    # ── Payload → Features ───────────────────────────────

    def build_features(self, payload: dict[str, Any], spec: Specification) -> list[Feature]:
        """
        Build Features from a decoded model reply.

        A scenario without `verification_of` falls back to its @FR-NNN
        tags; with neither it is dropped.  Unknown ids are kept so that
        the traceability pass can report them.
        """
        raw_features = payload.get("features")
        if raw_features is None and "scenarios" in payload:
            raw_features = [payload]
        if not isinstance(raw_features, list) or not raw_features:
            raise OutputSchemaMismatch("Reply has no 'features' list")

        item_id = _item_id(spec)
        try:
            return [self._feature(raw, item_id) for raw in raw_features]
        except (ValidationError, TypeError, AttributeError) as exc:
            raise OutputSchemaMismatch(f"Invalid feature structure: {exc}") from exc

    def _feature(self, raw: dict[str, Any], item_id: str) -> Feature:
        scenarios: list[Scenario] = []
        for raw_scenario in raw.get("scenarios") or []:
            scenario = self._scenario(raw_scenario)
            if scenario is None:
                logger.warning(
                    f"[TESTGEN] {item_id}: dropped scenario "
                    f"'{raw_scenario.get('name', '?')}' (verifies no requirement)"
                )
                continue
            scenarios.append(scenario)

        return Feature(
            name=str(raw.get("name") or item_id),
            description=str(raw.get("description") or ""),
            source_requirement_id=item_id,
            tags=[str(t) for t in raw.get("tags") or []],
            background=[_step(s) for s in raw.get("background") or []],
            scenarios=scenarios,
            test_level=parse_test_level(raw.get("test_level") or "acceptance"),
        )

    def _scenario(self, raw: dict[str, Any]) -> Optional[Scenario]:
        tags = [str(t) for t in raw.get("tags") or []]
        verification_of = [str(v).strip() for v in raw.get("verification_of") or [] if str(v).strip()]
        if not verification_of:
            for tag in tags:
                match = self._tag_pattern.match(tag.strip())
                if match and match.group(1) not in verification_of:
                    verification_of.append(match.group(1))
        if not verification_of:
            return None

        examples = raw.get("examples")
        return Scenario(
            name=str(raw.get("name") or "Unnamed scenario"),
            scenario_type=parse_scenario_type(raw.get("scenario_type") or "happy_path"),
            steps=[_step(s) for s in raw.get("steps") or []],
            tags=tags,
            verification_of=verification_of,
            coverage_technique=parse_coverage_technique(raw.get("coverage_technique")),
            examples=Examples(
                headers=[str(h) for h in examples.get("headers") or []],
                rows=[[str(c) for c in row] for row in examples.get("rows") or []],
            ) if examples else None,
        )

    def _cancelled(self, spec: Specification) -> RequirementOutcome:
        return RequirementOutcome(
            source_requirement_id=_item_id(spec),
            stage=self.name.value,
            status=OutcomeStatus.CANCELLED,
        )


def _step(raw: dict[str, Any]) -> Step:
    return Step(
        keyword=parse_step_keyword(raw.get("keyword", "")),
        text=str(raw.get("text") or ""),
        doc_string=raw.get("doc_string"),
        data_table=raw.get("data_table"),
    )


def _render(template: str, spec: Specification) -> str:
    lines = []
    for fr in spec.functional_requirements:
        risk = f", risk {fr.risk_level.value}" if fr.risk_level else ""
        lines.append(
            f"- {fr.id} [{fr.priority.value}{risk}, {fr.verification_method.value}]: {fr.statement}"
        )
    return template.format(
        language=spec.language.value,
        title=spec.title,
        source_id=_item_id(spec),
        requirements="\n".join(lines),
    )


def _item_id(spec: Specification) -> str:
    return spec.source_requirement_ids[0] if spec.source_requirement_ids else spec.title
