"""
Rules — deterministic checks applied to model output.

    from spec_forge.rules import RequirementValidator, get_lexical_rules
"""

from .gherkin_rules import check_feature_structure
from .lexicon import LexicalRules, get_lexical_rules, normalize_text
from .requirement_rules import RequirementValidator, is_external_origin

__all__ = [
    "LexicalRules",
    "RequirementValidator",
    "check_feature_structure",
    "get_lexical_rules",
    "is_external_origin",
    "normalize_text",
]
