"""Deterministic phrase rules applied on top of oracle decisions.

A glossary maps phrases to sections (``terms``) and to statuses
(``status_hints``). When a phrase occurs in an item's description, the rule
wins over whatever the oracle said. If several phrases match, the longest
one is used; equal lengths fall back to the order in the file.

Example glossary file::

    terms:
      - phrase: "ci pipeline"
        section: "Platform > Infra"
    status_hints:
      - phrase: "awaiting qa"
        status: "in testing"
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, MutableMapping, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from report_merge.errors import ConfigurationError
from report_merge.models import (
    ClassificationDecision,
    SectionOption,
    WorkItem,
    normalize_status,
)

logger = logging.getLogger(__name__)

GLOSSARY_CONFIDENCE = 0.99


def normalize_phrase(text: str) -> str:
    return text.strip().lower()


class GlossaryTerm(BaseModel):
    model_config = ConfigDict(extra="ignore")

    phrase: str = ""
    section: str = ""

    @field_validator("phrase", "section", mode="before")
    def _coerce_text(cls, value: object) -> str:
        return str(value or "")


class GlossaryStatusHint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    phrase: str = ""
    status: str = ""

    @field_validator("phrase", "status", mode="before")
    def _coerce_text(cls, value: object) -> str:
        return str(value or "")


class Glossary(BaseModel):
    """Phrase to section and phrase to status rules."""

    model_config = ConfigDict(extra="ignore")

    terms: list[GlossaryTerm] = Field(default_factory=list)
    status_hints: list[GlossaryStatusHint] = Field(default_factory=list)

    @field_validator("terms", "status_hints", mode="before")
    def _none_is_empty(cls, value: object) -> object:
        return value if value is not None else []

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Glossary":
        """Load a glossary file.

        Raises:
            ConfigurationError: If the file cannot be read or is not a valid glossary
        """
        glossary_path = Path(path)
        try:
            raw = glossary_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"read glossary {glossary_path}: {exc}") from exc
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"parse glossary yaml {glossary_path}: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"glossary {glossary_path} must be a mapping")
        try:
            glossary = cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid glossary {glossary_path}: {exc}") from exc
        logger.info(
            "Loaded glossary %s: %d terms, %d status hints",
            glossary_path,
            len(glossary.terms),
            len(glossary.status_hints),
        )
        return glossary


def resolve_section_map(
    glossary: Glossary, options: Sequence[SectionOption]
) -> list[tuple[str, str]]:
    """Resolve glossary terms to ``(phrase, section id)`` pairs for this build.

    A term's section may name an option id, a full label ("Cat > Sub") or
    either side of a label. Ids take precedence over labels; when several
    options share a label part, the first option wins. Terms that resolve to
    nothing are dropped.
    """
    by_id: dict[str, str] = {}
    by_label: dict[str, str] = {}
    for option in options:
        by_id[normalize_phrase(option.id)] = option.id
        by_label.setdefault(normalize_phrase(option.label), option.id)
        parts = option.label.split(">")
        if len(parts) == 2:
            for part in parts:
                by_label.setdefault(normalize_phrase(part), option.id)

    resolved: list[tuple[str, str]] = []
    for term in glossary.terms:
        phrase = normalize_phrase(term.phrase)
        if not phrase:
            continue
        target = normalize_phrase(term.section)
        section_id = by_id.get(target) or by_label.get(target)
        if section_id is None:
            logger.warning("Glossary term %r names unknown section %r", term.phrase, term.section)
            continue
        resolved.append((phrase, section_id))
    return resolved


def _longest_match(description: str, phrases: Iterable[tuple[str, str]]) -> str | None:
    best: tuple[str, str] | None = None
    for phrase, value in phrases:
        if phrase in description and (best is None or len(phrase) > len(best[0])):
            best = (phrase, value)
    return best[1] if best is not None else None


def apply_glossary_overrides(
    items: Sequence[WorkItem],
    decisions: MutableMapping[int, ClassificationDecision],
    glossary: Glossary | None,
    section_map: Sequence[tuple[str, str]],
) -> int:
    """Force glossary sections and statuses onto matching items.

    Items with no decision yet get one. Returns how many items were changed.
    """
    if glossary is None:
        return 0
    hints = [
        (normalize_phrase(hint.phrase), normalize_status(hint.status))
        for hint in glossary.status_hints
        if normalize_phrase(hint.phrase)
    ]

    changed = 0
    for item in items:
        description = normalize_phrase(item.description)
        section_id = _longest_match(description, section_map)
        status = _longest_match(description, hints)
        if section_id is None and status is None:
            continue

        decision = decisions.get(item.id, ClassificationDecision())
        update: dict[str, object] = {}
        if section_id is not None:
            update["section_id"] = section_id
            update["confidence"] = max(decision.confidence, GLOSSARY_CONFIDENCE)
        if status is not None:
            update["normalized_status"] = status
        decisions[item.id] = decision.model_copy(update=update)
        logger.debug("Glossary override for item %d: %s", item.id, update)
        changed += 1
    return changed
