"""
Base agent class that every pipeline agent inherits.

Design:
  - `process()` is the LangGraph node function.
  - `_real_process()` is the single abstract method; override in each agent.
    It reads the state and returns a dict with the fields it owns.
  - Per-item failures are recorded as RequirementOutcome values by the
    agents themselves; anything reaching `process()` is a real bug and
    is logged and re-raised.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Union

from spec_forge.config import Settings, get_settings
from spec_forge.models.enums import AgentName, OutcomeStatus
from spec_forge.models.state import PipelineState

logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    """Abstract base for all pipeline agents."""

    name: AgentName  # set in each subclass

    def __init__(
        self,
        settings: Optional[Settings] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.should_cancel = should_cancel

    # ── Public entry point (called by LangGraph node) ────

    async def process(self, state: Union[PipelineState, dict[str, Any]]) -> dict[str, Any]:
        """Run the agent and return the state update LangGraph merges."""
        t0 = time.perf_counter()
        separator = "═" * 70
        logger.info(separator)
        logger.info(f"▶ [{self.name.value}] STARTING")

        graph_state = state if isinstance(state, PipelineState) else PipelineState(**state)
        _log_state_summary("INPUT STATE", graph_state)

        try:
            updates = await self._real_process(graph_state)
        except Exception as exc:
            elapsed = time.perf_counter() - t0
            logger.exception(f"✘ [{self.name.value}] FAILED after {elapsed:.3f}s: {exc}")
            logger.info(separator)
            raise

        elapsed = time.perf_counter() - t0
        failed = [o for o in updates.get("outcomes", []) if o.status != OutcomeStatus.SUCCEEDED]
        details = f"{len(failed)} item(s) not processed" if failed else ""

        updates["current_agent"] = self.name.value
        updates["audit_trail"] = [graph_state.audit(self.name.value, "completed", details)]

        logger.info(f"✔ [{self.name.value}] COMPLETED in {elapsed:.3f}s")
        logger.info(separator)
        return updates

    def cancelled(self) -> bool:
        return self.should_cancel is not None and self.should_cancel()

    # ── Subclass hook ────────────────────────────────────

    @abstractmethod
    async def _real_process(self, state: PipelineState) -> dict[str, Any]:
        """Must be overridden by each agent."""
        ...


# ── Debug helpers (module-level) ─────────────────────────

def _log_state_summary(label: str, state: PipelineState) -> None:
    """Log field names with list sizes."""
    lines = [f"  ┌─ {label}"]
    for key, val in state:
        if isinstance(val, list):
            lines.append(f"  │  {key}: list({len(val)} items)")
        elif val in (None, ""):
            lines.append(f"  │  {key}: <empty>")
        else:
            lines.append(f"  │  {key}: {type(val).__name__}")
    logger.debug("\n".join(lines) + "\n  └─")
