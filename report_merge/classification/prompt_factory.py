"""Build prompts for the section classifier, the critic and the retrospective.

Each builder turns batch-specific data into a pystache context and renders
the matching system/user template pair from ``prompt/promptFiles``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Sequence

from report_merge.config import DEFAULT_EXAMPLE_MAX_CHARS, MAX_GUIDANCE_CHARS
from report_merge.models import (
    ClassificationDecision,
    CorrectionRecord,
    ExistingItemContext,
    HistoricalExample,
    SectionOption,
    WorkItem,
)
from report_merge.prompt.render_prompt import render_prompts
from report_merge.retrieval import TfidfIndex

from .batcher import Batch
from .oracle import OracleContext

logger = logging.getLogger(__name__)

CORRECTION_DESCRIPTION_MAX_CHARS = 120
RETRO_DESCRIPTION_MAX_CHARS = 150
MAX_RETRO_SUGGESTIONS = 5

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def truncate_text(text: str, max_chars: int) -> str:
    """Trim ``text`` to ``max_chars`` characters, marking the cut with ``...``."""

    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def load_template_guidance(path: str | Path | None) -> str:
    """Read the optional classification guide, capped at MAX_GUIDANCE_CHARS.

    A missing or unreadable file is not fatal; the classifier simply runs
    without guidance.
    """
    if path is None or not str(path).strip():
        return ""
    guide_path = Path(path)
    try:
        content = guide_path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        logger.warning("Could not read template guidance %s: %s", guide_path, exc)
        return ""
    if len(content) > MAX_GUIDANCE_CHARS:
        content = content[:MAX_GUIDANCE_CHARS] + "\n...[truncated]"
    return content


def recent_corrections(
    corrections: Sequence[CorrectionRecord], limit: int
) -> list[CorrectionRecord]:
    """Most recent corrections first (undated ones last), at most ``limit``."""

    if limit <= 0:
        return []

    def _sort_key(record: CorrectionRecord) -> datetime:
        stamp = record.corrected_at
        if stamp is None:
            return _OLDEST
        if stamp.tzinfo is None:
            return stamp.replace(tzinfo=timezone.utc)
        return stamp

    ordered = sorted(corrections, key=_sort_key, reverse=True)
    return [
        record.model_copy(
            update={
                "description": truncate_text(
                    record.description, CORRECTION_DESCRIPTION_MAX_CHARS
                )
            }
        )
        for record in ordered[:limit]
    ]


def select_examples(
    batch: Batch,
    existing: Sequence[ExistingItemContext],
    index: TfidfIndex | None,
    example_count: int,
) -> list[HistoricalExample]:
    """Pick the few-shot examples shown alongside one batch.

    Prefers the historical items most similar to the batch. When there is no
    history (or nothing in it is similar) the first carried-over items stand
    in as examples.
    """
    if example_count <= 0:
        return []
    examples: list[HistoricalExample] = []
    if index is not None and len(index) > 0:
        examples = index.top_k_for_batch(batch.queries, example_count)
    if examples:
        return examples
    return [
        HistoricalExample(description=item.description, section_id=item.section_id)
        for item in existing[:example_count]
    ]


def _sections_context(options: Sequence[SectionOption]) -> list[dict[str, str]]:
    return [{"id": opt.id, "label": opt.label} for opt in options]


def _corrections_context(
    corrections: Sequence[CorrectionRecord], max_chars: int | None = None
) -> list[dict[str, str]]:
    return [
        {
            "description": (
                truncate_text(record.description, max_chars)
                if max_chars is not None
                else record.description
            ),
            "original": record.original_display(),
            "corrected": record.corrected_display(),
        }
        for record in corrections
    ]


def build_classifier_prompts(
    batch: Batch,
    context: OracleContext,
    examples: Sequence[HistoricalExample],
    example_max_chars: int = DEFAULT_EXAMPLE_MAX_CHARS,
) -> tuple[str, str]:
    """Render the (system, user) prompt pair for one classification batch."""

    corrections = _corrections_context(context.corrections)
    template_context = {
        "sections": _sections_context(context.options),
        "has_guidance": bool(context.guidance.strip()),
        "guidance": context.guidance,
        "has_corrections": bool(corrections),
        "corrections": corrections,
        "examples": [
            {
                "section_id": example.section_id,
                "description": truncate_text(example.description, example_max_chars),
            }
            for example in examples
        ],
        "existing": [
            {
                "key": item.key,
                "section_id": item.section_id,
                "status": item.status,
                "description": item.description,
            }
            for item in context.existing
        ],
        "items": [
            {"id": item.id, "description": item.description, "status": item.status}
            for item in batch.items
        ],
    }
    return render_prompts(
        "system_section_classifier.md",
        "user_section_classifier.md",
        template_context,
    )


def build_critic_prompts(
    items: Sequence[WorkItem],
    decisions: Mapping[int, ClassificationDecision],
    options: Sequence[SectionOption],
) -> tuple[str, str]:
    """Render the critic prompts: every item with its current section."""

    rows = []
    for item in items:
        decision = decisions.get(item.id, ClassificationDecision())
        rows.append(
            {
                "id": item.id,
                "section_id": decision.section_id,
                "status": decision.normalized_status or item.status,
                "description": item.description,
            }
        )
    return render_prompts(
        "system_critic.md",
        "user_critic.md",
        {"sections": _sections_context(options), "items": rows},
    )


def build_retrospective_prompts(
    corrections: Sequence[CorrectionRecord],
    options: Sequence[SectionOption],
    max_suggestions: int = MAX_RETRO_SUGGESTIONS,
) -> tuple[str, str]:
    return render_prompts(
        "system_retrospective.md",
        "user_retrospective.md",
        {
            "sections": _sections_context(options),
            "max_suggestions": max_suggestions,
            "corrections": _corrections_context(corrections, RETRO_DESCRIPTION_MAX_CHARS),
        },
    )
