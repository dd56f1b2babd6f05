from .base_agent import BaseAgent
from .refinement_agent import RefinementAgent
from .test_generation_agent import TestGenerationAgent
from .validation_agent import ValidationAgent
from .traceability_agent import TraceabilityAgent

__all__ = [
    "BaseAgent",
    "RefinementAgent",
    "TestGenerationAgent",
    "ValidationAgent",
    "TraceabilityAgent",
]
