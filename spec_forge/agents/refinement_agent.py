"""
REFINE — Refinement Agent
Responsibility: turn each SourceRequirement into a Specification with
                normatively-worded, sequentially numbered FunctionalRequirements.

One model call per source requirement, hardened by the shared RetryPolicy:
truncated, unparseable or schema-invalid replies are retried; transport
failures and specs without any requirement fail that item only.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator

from spec_forge.agents.base_agent import BaseAgent
from spec_forge.config import Settings
from spec_forge.errors import (
    IncompleteSpec,
    OutputSchemaMismatch,
    PipelineCancelled,
    SpecForgeError,
    TransportError,
)
from spec_forge.models.coercion import parse_priority
from spec_forge.models.enums import AgentName, OutcomeStatus, PipelineStatus
from spec_forge.models.schemas import (
    AcceptanceScenario,
    Clarification,
    EdgeCase,
    FunctionalRequirement,
    KeyEntity,
    RequirementOutcome,
    SourceRequirement,
    Specification,
    SuccessCriterion,
    UserScenario,
)
from spec_forge.models.state import PipelineState
from spec_forge.services.llm_service import LLMService, llm_json_call
from spec_forge.services.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"
_SYSTEM_PROMPT_PATH = _PROMPT_DIR / "refine_system.txt"
_PROMPT_PATH = _PROMPT_DIR / "refine_prompt.txt"


class RefinementPayload(BaseModel):
    """Loose shape of the model's reply; items are checked one by one."""

    title: str = ""
    user_scenarios: list[dict[str, Any]] = []
    functional_requirements: list[dict[str, Any]] = []
    key_entities: list[dict[str, Any]] = []
    edge_cases: list[dict[str, Any]] = []
    success_criteria: list[dict[str, Any]] = []
    clarifications: list[dict[str, Any]] = []

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return "" if info.field_name == "title" else []
        return value


class RefinementAgent(BaseAgent):
    name = AgentName.REFINEMENT

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

    async def _real_process(self, state: PipelineState) -> dict[str, Any]:
        sources = state.source_requirements
        logger.info(f"[REFINE] Refining {len(sources)} source requirement(s)")

        system_prompt = _SYSTEM_PROMPT_PATH.read_text(encoding="utf-8").format(
            max_clarifications=self.settings.max_clarifications,
        )
        template = _PROMPT_PATH.read_text(encoding="utf-8")

        specifications: list[Specification] = []
        outcomes: list[RequirementOutcome] = []
        next_number = 1

        for index, source in enumerate(sources):
            if self.cancelled():
                outcomes.extend(_cancelled(s.id) for s in sources[index:])
                logger.warning(f"[REFINE] Cancelled — {len(sources) - index} item(s) skipped")
                break

            calls = 0

            async def attempt(source=source) -> Specification:
                nonlocal calls
                calls += 1
                payload = await llm_json_call(
                    self.llm, system_prompt, self._render(template, source)
                )
                return self.build_specification(payload, source, next_number)

            try:
                spec = await self.policy.run(
                    attempt, label=f"refine {source.id}", should_cancel=self.should_cancel
                )
            except PipelineCancelled:
                outcomes.extend(_cancelled(s.id) for s in sources[index:])
                logger.warning(f"[REFINE] Cancelled while refining {source.id}")
                break
            except SpecForgeError as exc:
                logger.error(f"[REFINE] {source.id} failed: {type(exc).__name__}: {exc.details}")
                outcomes.append(
                    RequirementOutcome(
                        source_requirement_id=source.id,
                        stage=self.name.value,
                        status=OutcomeStatus.FAILED,
                        attempts=calls,
                        error_kind=type(exc).__name__,
                        message=exc.details,
                        transport_failure=isinstance(exc, TransportError),
                    )
                )
                continue

            next_number += len(spec.functional_requirements)
            specifications.append(spec)
            outcomes.append(
                RequirementOutcome(
                    source_requirement_id=source.id,
                    stage=self.name.value,
                    status=OutcomeStatus.SUCCEEDED,
                    attempts=calls,
                )
            )
            for fr in spec.functional_requirements:
                logger.debug(
                    f"[REFINE]   {fr.id} | {fr.priority.value} | {fr.category.value} | "
                    f"{fr.statement[:60]}"
                )
            logger.info(
                f"[REFINE] {source.id} → {len(spec.functional_requirements)} FR(s) "
                f"in {calls} attempt(s)"
            )

        return {
            "specifications": specifications,
            "outcomes": outcomes,
            "status": PipelineStatus.GENERATING_TESTS,
        }

    # ── Prompt ───────────────────────────────────────────

    def _render(self, template: str, source: SourceRequirement) -> str:
        notes = "\n".join(f"- {n}" for n in source.acceptance_notes) or "- (none)"
        return template.format(
            language=source.language.value,
            compliance_domain=self.settings.compliance_domain.value,
            source_id=source.id,
            title=source.title,
            story=source.to_standard_format(),
            priority=source.priority.value if source.priority else "unspecified",
            acceptance_notes=notes,
        )

    # ── Payload → Specification ──────────────────────────

    def build_specification(
        self,
        payload: dict[str, Any],
        source: SourceRequirement,
        first_number: int,
    ) -> Specification:
        """
        Build the Specification for *source* from a decoded model reply.

        FR ids are assigned from *first_number* on, whatever ids the model
        proposed.  Structural problems raise OutputSchemaMismatch; a reply
        without any requirement raises IncompleteSpec.
        """
        try:
            data = RefinementPayload.model_validate(payload)
        except ValidationError as exc:
            raise OutputSchemaMismatch(f"Unexpected refinement structure: {exc}") from exc

        if not data.functional_requirements:
            raise IncompleteSpec(["functional_requirements"])

        prefix = self.settings.requirement_id_prefix
        requirements = [
            FunctionalRequirement.from_payload(
                item,
                requirement_id=f"{prefix}-{first_number + offset:03d}",
                default_source=source.id,
            )
            for offset, item in enumerate(data.functional_requirements)
        ]

        clarifications = data.clarifications
        limit = self.settings.max_clarifications
        if len(clarifications) > limit:
            logger.warning(
                f"[REFINE] {source.id}: {len(clarifications)} clarifications, "
                f"keeping the first {limit}"
            )
            clarifications = clarifications[:limit]

        try:
            return Specification(
                title=data.title.strip() or source.title,
                source_requirement_ids=[source.id],
                language=source.language,
                user_scenarios=[
                    _user_scenario(item, source, n)
                    for n, item in enumerate(data.user_scenarios, start=1)
                ],
                functional_requirements=requirements,
                key_entities=[KeyEntity(**item) for item in data.key_entities],
                edge_cases=[
                    EdgeCase(
                        description=str(item.get("description", "")),
                        related_scenario=item.get("related_scenario"),
                        severity=parse_priority(item.get("severity", "P2")),
                    )
                    for item in data.edge_cases
                ],
                success_criteria=[
                    SuccessCriterion(
                        id=str(item.get("id") or f"SC-{n:03d}"),
                        description=str(item.get("description", "")),
                        measurable_metric=str(item.get("measurable_metric") or ""),
                    )
                    for n, item in enumerate(data.success_criteria, start=1)
                ],
                clarifications=[Clarification(**item) for item in clarifications],
                compliance_profile=self.settings.compliance_profile(),
            )
        except (ValidationError, TypeError) as exc:
            raise OutputSchemaMismatch(f"Invalid specification section: {exc}") from exc


def _user_scenario(item: dict[str, Any], source: SourceRequirement, n: int) -> UserScenario:
    return UserScenario(
        id=str(item.get("id") or f"{source.id}-S{n}"),
        title=str(item.get("title") or ""),
        priority=parse_priority(item.get("priority", "P2")),
        description=str(item.get("description") or ""),
        why_priority=str(item.get("why_priority") or ""),
        independent_test=str(item.get("independent_test") or ""),
        acceptance_scenarios=[AcceptanceScenario(**a) for a in item.get("acceptance_scenarios") or []],
        source_requirement_id=source.id,
    )


def _cancelled(source_id: str) -> RequirementOutcome:
    return RequirementOutcome(
        source_requirement_id=source_id,
        stage=AgentName.REFINEMENT.value,
        status=OutcomeStatus.CANCELLED,
    )
