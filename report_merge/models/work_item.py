"""Input records handed to the report builder by its callers.

These are the plain-data boundary of the package: incoming work items,
historical classified items used as few-shot examples, and corrections made
by people to earlier classifications.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import normalize_status


def normalize_ticket_ids(value: Any) -> str:
    """Collapse the ticket id shapes an LLM or caller may send into "a,b,c".

    Accepts a string, a list of strings, or a mixed list with numbers.
    Numbers are rendered without decimals; anything else is dropped.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return f"{value:.0f}"
    if isinstance(value, (list, tuple)):
        out: list[str] = []
        for entry in value:
            if isinstance(entry, str):
                entry = entry.strip()
                if entry:
                    out.append(entry)
            elif isinstance(entry, (int, float)) and not isinstance(entry, bool):
                out.append(f"{entry:.0f}")
        return ",".join(out)
    return ""


class WorkItem(BaseModel):
    """A newly reported unit of work for the current period."""

    model_config = ConfigDict(extra="ignore")

    id: int
    description: str
    author: str = ""
    status: str = ""
    ticket_ids: str = ""
    reported_at: datetime | None = None

    @field_validator("description", "author", mode="before")
    def _strip_strings(cls, value: object) -> str:
        return str(value or "").strip()

    @field_validator("status", mode="before")
    def _normalise_status(cls, value: object) -> str:
        return normalize_status(value)

    @field_validator("ticket_ids", mode="before")
    def _normalise_tickets(cls, value: object) -> str:
        return normalize_ticket_ids(value)


class HistoricalExample(BaseModel):
    """A previously classified item, used to pick few-shot examples."""

    description: str
    section_id: str
    section_label: str = ""

    @field_validator("description", "section_id", "section_label", mode="before")
    def _strip_strings(cls, value: object) -> str:
        return str(value or "").strip()


class CorrectionRecord(BaseModel):
    """A human correction of an earlier section assignment."""

    model_config = ConfigDict(extra="ignore")

    description: str
    original_section_id: str = ""
    original_label: str = ""
    corrected_section_id: str
    corrected_label: str = ""
    corrected_by: str = ""
    corrected_at: datetime | None = Field(default=None)

    @field_validator(
        "description",
        "original_section_id",
        "original_label",
        "corrected_section_id",
        "corrected_label",
        "corrected_by",
        mode="before",
    )
    def _strip_strings(cls, value: object) -> str:
        return str(value or "").strip()

    def original_display(self) -> str:
        if self.original_label:
            return f"{self.original_section_id} ({self.original_label})"
        return self.original_section_id

    def corrected_display(self) -> str:
        if self.corrected_label:
            return f"{self.corrected_section_id} ({self.corrected_label})"
        return self.corrected_section_id
