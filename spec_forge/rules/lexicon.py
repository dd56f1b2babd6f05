"""
Lexical rule sets used by the requirement validator.

One immutable `LexicalRules` value per language, built once and passed
explicitly to whoever needs it.  All matching happens on normalized text
(see `normalize_text`), so "Peut-être", "peut etre" and "PEUT-ETRE" are
the same phrase.
"""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from spec_forge.models.enums import Language

_NON_WORD = re.compile(r"[^0-9a-z;]+")


def normalize_text(text: str, keep_semicolons: bool = False) -> str:
    """Lower-case, strip accents, collapse punctuation and whitespace."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    ascii_text = "".join(c for c in decomposed if not unicodedata.combining(c)).lower()
    if not keep_semicolons:
        ascii_text = ascii_text.replace(";", " ")
    return " ".join(_NON_WORD.sub(" ", ascii_text).replace(";", " ; ").split())


def contains_phrase(normalized_text: str, phrase: str) -> bool:
    """Whole-word / whole-phrase match; "some" does not match "something"."""
    return f" {normalize_text(phrase)} " in f" {normalized_text} "


def count_phrase(normalized_text: str, phrase: str) -> int:
    tokens = normalized_text.split()
    needle = normalize_text(phrase).split()
    if not needle:
        return 0
    width = len(needle)
    return sum(1 for i in range(len(tokens) - width + 1) if tokens[i:i + width] == needle)


class LexicalRules(BaseModel):
    """Vocabulary driving the Unambiguous, Singular and Correct criteria."""
    model_config = ConfigDict(frozen=True)

    language: Language
    ambiguous_terms: tuple[str, ...]
    normative_keywords: tuple[str, ...]
    conjunctions: tuple[str, ...]

    def find_ambiguous(self, text: str) -> list[str]:
        normalized = normalize_text(text)
        return [term for term in self.ambiguous_terms if contains_phrase(normalized, term)]

    def count_normative(self, text: str) -> int:
        normalized = normalize_text(text)
        return sum(count_phrase(normalized, kw) for kw in self.normative_keywords)

    def has_conjunction(self, text: str) -> bool:
        normalized = normalize_text(text, keep_semicolons=True)
        for conjunction in self.conjunctions:
            if conjunction == ";":
                if ";" in normalized:
                    return True
            elif contains_phrase(normalized, conjunction):
                return True
        return False


# ── Vocabularies ─────────────────────────────────────────

_FRENCH_AMBIGUOUS = (
    "environ",
    "quelques",
    "peut-être",
    "certains",
    "parfois",
    "souvent",
    "approximativement",
    "plusieurs",
    "etc",
    "adéquat",
    "si possible",
    "si nécessaire",
    "au besoin",
    "convivial",
    "rapidement",
)

_ENGLISH_AMBIGUOUS = (
    "approximately",
    "some",
    "maybe",
    "sometimes",
    "usually",
    "often",
    "few",
    "several",
    "many",
    "etc",
    "adequate",
    "as appropriate",
    "if possible",
    "as needed",
    "user-friendly",
    "quickly",
)

_FRENCH_NORMATIVE = ("doit", "doivent", "devrait", "devraient", "pourrait", "pourraient")
_ENGLISH_NORMATIVE = ("must", "shall", "should", "could", "will")


@lru_cache()
def get_lexical_rules(language: Language = Language.FR) -> LexicalRules:
    """Return the (cached, immutable) rule set for *language*."""
    if language == Language.EN:
        return LexicalRules(
            language=Language.EN,
            ambiguous_terms=_ENGLISH_AMBIGUOUS,
            normative_keywords=_ENGLISH_NORMATIVE,
            conjunctions=("and", "or", ";"),
        )
    return LexicalRules(
        language=Language.FR,
        ambiguous_terms=_FRENCH_AMBIGUOUS,
        normative_keywords=_FRENCH_NORMATIVE,
        conjunctions=("et", "ou", ";"),
    )
