"""Public model exports for the project.

Keep the :mod:`report_merge` namespace clean: tests and other modules should
import ``from report_merge.models import WorkItem, ReportTemplate``.
"""

from __future__ import annotations

from .decision import (
    ClassificationDecision,
    ClassifiedItem,
    CriticFlag,
    ExistingItemContext,
    LLMUsage,
    RetroSuggestion,
)
from .enums import WorkStatus, is_known_status, normalize_status, status_bucket
from .report import (
    UNDETERMINED_CATEGORY,
    ReportTemplate,
    SectionOption,
    TemplateCategory,
    TemplateItem,
    TemplateSubsection,
    section_options,
)
from .work_item import CorrectionRecord, HistoricalExample, WorkItem, normalize_ticket_ids

__all__ = [
    "ClassificationDecision",
    "ClassifiedItem",
    "CorrectionRecord",
    "CriticFlag",
    "ExistingItemContext",
    "HistoricalExample",
    "LLMUsage",
    "ReportTemplate",
    "RetroSuggestion",
    "SectionOption",
    "TemplateCategory",
    "TemplateItem",
    "TemplateSubsection",
    "UNDETERMINED_CATEGORY",
    "WorkItem",
    "WorkStatus",
    "is_known_status",
    "normalize_status",
    "normalize_ticket_ids",
    "section_options",
    "status_bucket",
]
