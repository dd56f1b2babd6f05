"""
Tests: settings, compliance profile and the story reader.

Run with:
    pytest spec_forge/tests/test_config.py -v
"""

import json

import pytest
from pydantic import ValidationError

from spec_forge.config import Settings
from spec_forge.errors import InvalidSourceFormat, NoSourceRequirements, SourceFileNotFound
from spec_forge.models.enums import ComplianceDomain, Language, Priority, RiskLevel
from spec_forge.models.schemas import ComplianceProfile
from spec_forge.services.llm_service import GroqLLMService, MockLLMService, get_llm_service
from spec_forge.services.retry_policy import RetryPolicy
from spec_forge.services.story_reader import parse_source_requirements, read_source_requirements


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.max_retry_attempts == 3
        assert settings.backoff_base_seconds == 2.0
        assert settings.backoff_cap_seconds == 30.0
        assert settings.min_coverage_percent == 80.0
        assert settings.max_clarifications == 3
        assert settings.language == Language.FR

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MAX_RETRY_ATTEMPTS", "5")
        monkeypatch.setenv("COMPLIANCE_DOMAIN", "railway")
        monkeypatch.setenv("SAFETY_LEVEL", "SSIL 4")
        monkeypatch.setenv("ALLOWED_RISK_LEVELS", '["HIGH", "MEDIUM"]')
        settings = Settings(_env_file=None)
        profile = settings.compliance_profile()
        assert settings.max_retry_attempts == 5
        assert profile.domain == ComplianceDomain.RAILWAY
        assert profile.safety_level == "4"
        assert profile.risk_levels == (RiskLevel.HIGH, RiskLevel.MEDIUM)

    def test_retry_policy_from_settings(self):
        policy = RetryPolicy.from_settings(Settings(_env_file=None, max_retry_attempts=4))
        assert policy.max_attempts == 4
        assert policy.delay_for(1) == 2.0

    def test_llm_service_selection(self):
        assert isinstance(get_llm_service(Settings(_env_file=None, mock_mode=True)), MockLLMService)
        assert isinstance(get_llm_service(Settings(_env_file=None, mock_mode=False)), GroqLLMService)


class TestComplianceProfile:
    @pytest.mark.parametrize(
        "domain,level,expected",
        [
            (ComplianceDomain.AVIATION, "DAL-B", "B"),
            (ComplianceDomain.MEDICAL, "Class C", "C"),
            (ComplianceDomain.AUTOMOTIVE, "asil d", "D"),
            (ComplianceDomain.SAFETY, "SIL3", "3"),
        ],
    )
    def test_levels_are_normalized(self, domain, level, expected):
        assert ComplianceProfile(domain=domain, safety_level=level).safety_level == expected

    @pytest.mark.parametrize(
        "domain,level",
        [
            (ComplianceDomain.AVIATION, "F"),
            (ComplianceDomain.SAFETY, "SIL 0"),
            (ComplianceDomain.GENERAL, "A"),
        ],
    )
    def test_invalid_levels_are_rejected(self, domain, level):
        with pytest.raises(ValidationError):
            ComplianceProfile(domain=domain, safety_level=level)

    def test_profile_is_frozen(self):
        profile = ComplianceProfile()
        with pytest.raises(ValidationError):
            profile.require_rationale = True


class TestStoryReader:
    def test_json_with_stories_key(self, tmp_path):
        path = tmp_path / "stories.json"
        path.write_text(json.dumps({
            "language": "en",
            "stories": [
                {"id": "US-001", "title": "Pay", "as_a": "customer", "i_want": "to pay",
                 "so_that": "I get my order", "priority": "must", "acceptance_criteria": "paid once"},
                {"title": "Refund", "actor": "clerk", "action": "refund", "benefit": "keep customers",
                 "language": "fr"},
            ],
        }), encoding="utf-8")

        first, second = read_source_requirements(path)
        assert first.priority == Priority.P1
        assert first.acceptance_notes == ["paid once"]
        assert first.to_standard_format() == "As a customer, I want to pay so that I get my order."
        assert second.id == "US-002"
        assert second.language == Language.FR

    def test_yaml_bare_list(self, tmp_path):
        path = tmp_path / "stories.yml"
        path.write_text("- id: A\n  title: One\n- id: B\n  title: Two\n", encoding="utf-8")
        assert [s.id for s in read_source_requirements(path)] == ["A", "B"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceFileNotFound):
            read_source_requirements(tmp_path / "missing.json")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "stories.pdf"
        path.write_text("x", encoding="utf-8")
        with pytest.raises(InvalidSourceFormat):
            read_source_requirements(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "stories.yaml"
        path.write_text("stories: [unclosed", encoding="utf-8")
        with pytest.raises(InvalidSourceFormat):
            read_source_requirements(path)

    def test_empty_input(self):
        with pytest.raises(NoSourceRequirements):
            parse_source_requirements({"stories": []})

    def test_duplicate_id_keeps_first_story(self):
        stories = parse_source_requirements([{"id": "A", "title": "x"}, {"id": "A", "title": "y"}])
        assert [(s.id, s.title) for s in stories] == [("A", "x")]

    def test_malformed_story_is_skipped_not_fatal(self, caplog):
        stories = parse_source_requirements(
            [
                {"id": "US-001", "title": "ok"},
                "garbage",
                {"id": "US-002", "title": "bad", "stakeholder": ["a", "b"]},
                {"id": "US-003", "title": "ok"},
            ]
        )
        assert [s.id for s in stories] == ["US-001", "US-003"]
        assert "Story #2 is not a mapping" in caplog.text
        assert "US-002" in caplog.text

    def test_only_malformed_stories_is_rejected(self):
        with pytest.raises(InvalidSourceFormat, match="No valid story"):
            parse_source_requirements(["garbage", 42])

    def test_scalar_tags_and_notes(self):
        [story] = parse_source_requirements([{"id": "A", "title": "x", "tags": 5, "acceptance_criteria": "paid"}])
        assert story.tags == ["5"]
        assert story.acceptance_notes == ["paid"]
