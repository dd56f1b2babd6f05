"""
Story reader — loads SourceRequirements from a JSON or YAML file.

Accepted shapes:
    {"language": "fr", "stories": [ {...}, ... ]}
    [ {...}, ... ]

Malformed stories are skipped with a warning; the input is rejected only
when no valid story remains.

Per-story keys: id, title, actor (as_a), action (i_want), benefit (so_that),
priority, acceptance_notes (acceptance_criteria), tags, stakeholder, language.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from spec_forge.errors import InvalidSourceFormat, NoSourceRequirements, SourceFileNotFound
from spec_forge.models.coercion import parse_language, parse_priority
from spec_forge.models.enums import Language
from spec_forge.models.schemas import SourceRequirement

logger = logging.getLogger(__name__)

_ALIASES = {
    "as_a": "actor",
    "en_tant_que": "actor",
    "i_want": "action",
    "je_veux": "action",
    "so_that": "benefit",
    "afin_de": "benefit",
    "acceptance_criteria": "acceptance_notes",
    "criteres_acceptation": "acceptance_notes",
}


def read_source_requirements(
    path: str | Path,
    default_language: Optional[Language] = None,
) -> list[SourceRequirement]:
    """Parse *path* into SourceRequirements, in file order."""
    path = Path(path)
    if not path.is_file():
        raise SourceFileNotFound(str(path))

    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            data = json.loads(text)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            raise InvalidSourceFormat(f"Unsupported input format '{suffix}' for {path.name}")
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise InvalidSourceFormat(f"Cannot parse {path.name}: {exc}") from exc

    requirements = parse_source_requirements(data, default_language)
    logger.info(f"Loaded {len(requirements)} source requirement(s) from {path.name}")
    return requirements


def parse_source_requirements(
    data: Any,
    default_language: Optional[Language] = None,
) -> list[SourceRequirement]:
    """Turn already-decoded JSON/YAML data into SourceRequirements."""
    language = default_language or Language.FR
    if isinstance(data, dict):
        if "language" in data:
            language = parse_language(data["language"])
        items = data.get("stories", data.get("requirements"))
    else:
        items = data

    if not isinstance(items, list):
        raise InvalidSourceFormat("Expected a list of stories (or a 'stories' key)")
    if not items:
        raise NoSourceRequirements()

    requirements: list[SourceRequirement] = []
    skipped: list[str] = []
    seen: set[str] = set()
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            skipped.append(f"Story #{index} is not a mapping")
            continue

        fields = {_ALIASES.get(key, key): value for key, value in item.items()}
        story_id = str(fields.get("id") or f"US-{index:03d}").strip()
        if story_id in seen:
            skipped.append(f"Duplicate story id '{story_id}' (story #{index})")
            continue

        notes = fields.get("acceptance_notes") or []
        if not isinstance(notes, list):
            notes = [notes]
        tags = fields.get("tags") or []
        if not isinstance(tags, list):
            tags = [tags]

        try:
            requirement = SourceRequirement(
                id=story_id,
                title=str(fields.get("title") or fields.get("action") or story_id).strip(),
                actor=str(fields.get("actor") or "").strip(),
                action=str(fields.get("action") or "").strip(),
                benefit=str(fields.get("benefit") or "").strip(),
                priority=parse_priority(fields["priority"]) if fields.get("priority") else None,
                acceptance_notes=[str(n) for n in notes],
                language=parse_language(fields["language"]) if fields.get("language") else language,
                tags=[str(t) for t in tags],
                stakeholder=fields.get("stakeholder"),
            )
        except ValidationError as exc:
            skipped.append(f"Story '{story_id}' is invalid: {exc.error_count()} error(s)")
            continue

        seen.add(story_id)
        requirements.append(requirement)

    for reason in skipped:
        logger.warning(f"[INPUT] Skipped: {reason}")
    if not requirements:
        raise InvalidSourceFormat(f"No valid story in input ({'; '.join(skipped)})")
    return requirements
