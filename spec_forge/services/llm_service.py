"""
LLM Service — the model collaborator boundary.

Agents depend only on the `LLMService` protocol:
  - GroqLLMService  → Groq Cloud chat model through langchain-groq
  - MockLLMService  → canned replies, used by tests and mock mode
  - get_llm_service() picks one from settings
  - llm_json_call()  → one call whose reply must hold a JSON object

Whatever goes wrong on the wire surfaces as a TransportError subclass;
the text itself is returned untouched (hardening happens downstream).
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Callable, Optional, Protocol, Union

import groq
from pydantic import BaseModel

from spec_forge.config import Settings, get_settings
from spec_forge.errors import ConnectionFailed, ModelNotFound, OutputTruncated, TransportError
from spec_forge.services.output_extractor import extract_json_object

logger = logging.getLogger(__name__)


class LLMResponse(BaseModel):
    content: str
    tokens_used: int = 0
    finish_reason: str = "stop"

    @property
    def truncated(self) -> bool:
        """The model stopped because it hit its output budget."""
        return self.finish_reason == "length"


class LLMService(Protocol):
    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        ...


# ── Groq ─────────────────────────────────────────────────


class GroqLLMService:
    """Groq-hosted chat model; the client is created on first use."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._client = None

    def _get_client(self):
        if self._client is not None:
            return self._client

        if not self.settings.groq_api_key:
            raise TransportError("GROQ_API_KEY is not set in environment / .env file")

        from langchain_groq import ChatGroq

        self._client = ChatGroq(
            api_key=self.settings.groq_api_key,
            model=self.settings.llm_model,
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_tokens,
            timeout=self.settings.llm_timeout_seconds,
            max_retries=0,  # retries belong to RetryPolicy
        )
        logger.info(f"Initialized Groq LLM: {self.settings.llm_model}")
        return self._client

    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        from langchain_core.messages import HumanMessage, SystemMessage

        client = self._get_client()
        logger.debug(
            f"[LLM] Prompt length: {len(system_prompt) + len(user_prompt)} chars | "
            f"model={self.settings.llm_model}"
        )

        t0 = time.perf_counter()
        try:
            response = await client.ainvoke(
                [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
            )
        except groq.APIConnectionError as exc:  # includes APITimeoutError
            raise ConnectionFailed(f"Cannot reach Groq: {exc}") from exc
        except groq.NotFoundError as exc:
            raise ModelNotFound(f"Model '{self.settings.llm_model}' not found: {exc}") from exc
        except groq.APIError as exc:
            raise TransportError(f"Groq API error: {exc}") from exc
        elapsed = time.perf_counter() - t0

        content = response.content if isinstance(response.content, str) else str(response.content)
        meta = getattr(response, "response_metadata", {}) or {}
        finish_reason = meta.get("finish_reason") or "stop"
        usage = getattr(response, "usage_metadata", None) or {}
        tokens = usage.get("total_tokens") or (meta.get("token_usage") or {}).get("total_tokens", 0)

        logger.info(
            f"[LLM] Response received in {elapsed:.2f}s | "
            f"{len(content)} chars | finish_reason={finish_reason} | tokens={tokens}"
        )
        logger.debug(f"[LLM] Full response:\n{content}")
        return LLMResponse(content=content, tokens_used=tokens or 0, finish_reason=finish_reason)


# ── Structured calls ─────────────────────────────────


async def llm_json_call(llm: LLMService, system_prompt: str, user_prompt: str) -> dict:
    """
    One model call whose text must contain a JSON object.

    Raises OutputTruncated when the model ran out of tokens (even if the
    text happens to parse) and the extractor errors otherwise.  Meant to
    be wrapped in RetryPolicy.run().
    """
    response = await llm.generate(system_prompt, user_prompt)
    if response.truncated:
        raise OutputTruncated(
            f"Model stopped at its token limit after {len(response.content)} chars"
        )
    return extract_json_object(response.content)


# ── Mock ─────────────────────────────────────────────────

MockReply = Union[str, LLMResponse, Exception]
Responder = Callable[[str, str], MockReply]


class MockLLMService:
    """
    Replays *replies* in order (strings, LLMResponse objects or exceptions
    to raise).  Once they run out, *responder* is asked instead.
    """

    def __init__(
        self,
        replies: Optional[list[MockReply]] = None,
        responder: Optional[Responder] = None,
    ) -> None:
        self._replies = list(replies or [])
        self._responder = responder
        self.calls = 0
        self.prompts: list[tuple[str, str]] = []

    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        self.calls += 1
        self.prompts.append((system_prompt, user_prompt))

        if self._replies:
            reply = self._replies.pop(0)
        elif self._responder is not None:
            reply = self._responder(system_prompt, user_prompt)
        else:
            raise TransportError(f"MockLLMService has no reply for call #{self.calls}")

        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, LLMResponse):
            return reply
        return LLMResponse(content=reply, tokens_used=len(reply) // 4)


_SOURCE_ID = re.compile(r"Source requirement id:\s*(\S+)")
_FR_ID = re.compile(r"\bFR-\d{3,}\b")


def demo_responder(system_prompt: str, user_prompt: str) -> str:
    """Deterministic stand-in model used in mock mode."""
    if "test scenarios" in system_prompt.lower():
        ids = list(dict.fromkeys(_FR_ID.findall(user_prompt))) or ["FR-001"]
        scenarios = [
            {
                "name": f"Verify {fr_id}",
                "scenario_type": "happy_path",
                "verification_of": [fr_id],
                "coverage_technique": "EP",
                "steps": [
                    {"keyword": "Given", "text": "the system is available"},
                    {"keyword": "When", "text": f"the behaviour of {fr_id} is exercised"},
                    {"keyword": "Then", "text": "the expected result is observed"},
                ],
            }
            for fr_id in ids
        ]
        return json.dumps({"features": [{"name": "Demo feature", "scenarios": scenarios}]})

    match = _SOURCE_ID.search(user_prompt)
    source_id = match.group(1) if match else "US-001"
    return json.dumps(
        {
            "title": f"Specification for {source_id}",
            "user_scenarios": [
                {
                    "id": source_id,
                    "title": "Main flow",
                    "priority": "P2",
                    "acceptance_scenarios": [
                        {"given": "a user", "when": "the user acts", "then": "the system responds"}
                    ],
                }
            ],
            "functional_requirements": [
                {
                    "statement": "The system MUST record the request.",
                    "priority": "P2",
                    "category": "FUNCTIONAL",
                    "verification_method": "TEST",
                    "source": source_id,
                }
            ],
            "success_criteria": [{"id": "SC-001", "description": "Requests are recorded"}],
            "edge_cases": [{"description": "Empty request"}],
        }
    )


def get_llm_service(settings: Optional[Settings] = None) -> LLMService:
    """Return the mock service in mock mode, the Groq service otherwise."""
    settings = settings or get_settings()
    if settings.mock_mode:
        logger.info("[LLM] Mock mode — using MockLLMService")
        return MockLLMService(responder=demo_responder)
    return GroqLLMService(settings)
