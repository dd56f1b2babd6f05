"""Services — model boundary, output hardening, traceability, input."""

from spec_forge.services.llm_service import (
    GroqLLMService,
    LLMResponse,
    LLMService,
    MockLLMService,
    get_llm_service,
)
from spec_forge.services.output_extractor import extract_json_object
from spec_forge.services.retry_policy import RetryPolicy
from spec_forge.services.story_reader import read_source_requirements
from spec_forge.services.traceability_service import (
    build_traceability_matrix,
    compute_quality_metrics,
)

__all__ = [
    "GroqLLMService",
    "LLMResponse",
    "LLMService",
    "MockLLMService",
    "RetryPolicy",
    "build_traceability_matrix",
    "compute_quality_metrics",
    "extract_json_object",
    "get_llm_service",
    "read_source_requirements",
]
