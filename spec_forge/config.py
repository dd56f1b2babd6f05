"""
Application configuration using Pydantic Settings.
All environment-specific values are centralized here.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from spec_forge.models.enums import (
    ComplianceDomain,
    Language,
    QualityCharacteristic,
    RiskLevel,
)
from spec_forge.models.schemas import ComplianceProfile


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── App ──────────────────────────────────────────────
    app_name: str = "spec-forge"
    mock_mode: bool = False  # When True, the model is replaced by MockLLMService

    # ── LLM ──────────────────────────────────────────────
    groq_api_key: str = ""
    llm_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 8192
    llm_timeout_seconds: float = 120.0

    # ── Retry policy ─────────────────────────────────────
    max_retry_attempts: int = Field(default=3, ge=1)
    backoff_base_seconds: float = Field(default=2.0, ge=0.0)
    backoff_cap_seconds: float = Field(default=30.0, ge=0.0)

    # ── Thresholds ───────────────────────────────────────
    min_coverage_percent: float = Field(default=80.0, ge=0.0, le=100.0)
    min_completeness_percent: float = Field(default=0.0, ge=0.0, le=100.0)  # 0 = report only
    max_clarifications: int = Field(default=3, ge=0)

    # ── Requirements ─────────────────────────────────────
    language: Language = Language.FR
    requirement_id_prefix: str = "FR"

    # ── Compliance ───────────────────────────────────────
    compliance_domain: ComplianceDomain = ComplianceDomain.GENERAL
    safety_level: Optional[str] = None  # DAL A-E, SW class A-C, ASIL A-D, SSIL 0-4, SIL 1-4
    require_rationale: bool = False
    allowed_quality_characteristics: list[QualityCharacteristic] = Field(
        default_factory=lambda: list(QualityCharacteristic)
    )
    allowed_risk_levels: list[RiskLevel] = Field(default_factory=lambda: list(RiskLevel))

    # ── Logging ──────────────────────────────────────────
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def compliance_profile(self) -> ComplianceProfile:
        """Immutable profile handed to the validator and the matrix builder."""
        return ComplianceProfile(
            domain=self.compliance_domain,
            safety_level=self.safety_level,
            require_rationale=self.require_rationale,
            quality_characteristics=tuple(self.allowed_quality_characteristics),
            risk_levels=tuple(self.allowed_risk_levels),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings (singleton)."""
    return Settings()
