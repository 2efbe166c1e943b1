"""Classification results and token accounting."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

from .enums import normalize_status
from .work_item import normalize_ticket_ids


class ClassificationDecision(BaseModel):
    """Where the oracle thinks one incoming item belongs.

    ``confidence`` is the oracle's self-reported reliability in [0, 1]. Values
    outside that range (or non-numeric ones) are untrusted and stored as 0.0,
    so the merge engine will never act on them.
    """

    model_config = ConfigDict(extra="ignore")

    section_id: str = ""
    normalized_status: str = ""
    ticket_ids: str = ""
    duplicate_of: str = ""
    confidence: float = 0.0

    @field_validator("section_id", "duplicate_of", mode="before")
    def _strip_strings(cls, value: object) -> str:
        return str(value or "").strip()

    @field_validator("normalized_status", mode="before")
    def _normalise_status(cls, value: object) -> str:
        return normalize_status(value)

    @field_validator("ticket_ids", mode="before")
    def _normalise_tickets(cls, value: object) -> str:
        return normalize_ticket_ids(value)

    @field_validator("confidence", mode="before")
    def _bound_confidence(cls, value: Any) -> float:
        if isinstance(value, bool) or value is None:
            return 0.0
        try:
            val = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(val) or val < 0.0 or val > 1.0:
            return 0.0
        return val


class ClassifiedItem(ClassificationDecision):
    """One entry of the classifier's JSON response."""

    id: int

    def to_decision(self) -> ClassificationDecision:
        return ClassificationDecision(
            section_id=self.section_id,
            normalized_status=self.normalized_status,
            ticket_ids=self.ticket_ids,
            duplicate_of=self.duplicate_of,
            confidence=self.confidence,
        )


class CriticFlag(BaseModel):
    """An item the critic believes is in the wrong section."""

    model_config = ConfigDict(extra="ignore")

    id: int
    suggested_section_id: str = ""
    reason: str = ""

    @field_validator("suggested_section_id", "reason", mode="before")
    def _strip_strings(cls, value: object) -> str:
        return str(value or "").strip()


class RetroSuggestion(BaseModel):
    """A recurring correction pattern worth turning into a rule."""

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    reasoning: str = ""
    action: Literal["glossary_term", "guide_update"]
    phrase: str = ""
    section: str = ""
    guide_text: str = ""


@dataclass
class LLMUsage:
    """Token counters reported by the oracle, summed across calls."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, other: "LLMUsage | None") -> None:
        if other is None:
            return
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_creation_input_tokens += other.cache_creation_input_tokens
        self.cache_read_input_tokens += other.cache_read_input_tokens


@dataclass(frozen=True)
class ExistingItemContext:
    """A carried-over item the oracle may point at via ``duplicate_of``.

    ``key`` is the ephemeral ``K<n>`` label shown to the oracle; the
    ``category``/``subsection``/``index`` triple locates the item in the
    cloned template for the current build.
    """

    key: str
    section_id: str
    description: str
    status: str
    category: int
    subsection: int
    index: int
