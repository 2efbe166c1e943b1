"""Fold incoming work items into a parsed report template.

All functions here mutate the template they are given; callers pass a clone
of the prior report so the parsed original stays untouched.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Sequence

from report_merge.models import (
    UNDETERMINED_CATEGORY,
    ClassificationDecision,
    ExistingItemContext,
    ReportTemplate,
    SectionOption,
    TemplateCategory,
    TemplateItem,
    TemplateSubsection,
    WorkItem,
    is_known_status,
    normalize_status,
    status_bucket,
)

logger = logging.getLogger(__name__)

UNDETERMINED_SECTION_ID = "UND"

_DUPLICATE_KEY_RE = re.compile(r"^K(\d+)$")


@dataclass
class MergeSummary:
    placed: int = 0
    duplicates: int = 0
    undetermined: int = 0
    updated: int = 0


def trim_done_items(template: ReportTemplate) -> int:
    """Drop carried-over items whose status is done. Returns how many went."""

    removed = 0
    for cat in template.categories:
        for sub in cat.subsections:
            kept = [item for item in sub.items if status_bucket(item.status) != 0]
            removed += len(sub.items) - len(kept)
            sub.items = kept
    return removed


def build_existing_context(
    template: ReportTemplate, options: Sequence[SectionOption]
) -> list[ExistingItemContext]:
    """Label every remaining item ``K1``, ``K2``, ... in document order."""

    option_by_pos = {(opt.category, opt.subsection): opt.id for opt in options}
    existing: list[ExistingItemContext] = []
    for ci, cat in enumerate(template.categories):
        for si, sub in enumerate(cat.subsections):
            section_id = option_by_pos.get((ci, si))
            if section_id is None:
                continue
            for ii, item in enumerate(sub.items):
                existing.append(
                    ExistingItemContext(
                        key=f"K{len(existing) + 1}",
                        section_id=section_id,
                        description=item.description,
                        status=item.status,
                        category=ci,
                        subsection=si,
                        index=ii,
                    )
                )
    return existing


def resolve_duplicate_key(
    key: str, existing: Sequence[ExistingItemContext]
) -> ExistingItemContext | None:
    """Find the existing item a ``duplicate_of`` key points at, if any."""

    match = _DUPLICATE_KEY_RE.match(key.strip())
    if match is None:
        return None
    position = int(match.group(1)) - 1
    if not 0 <= position < len(existing):
        return None
    target = existing[position]
    return target if target.key == key.strip() else None


def ensure_undetermined_section(template: ReportTemplate) -> TemplateSubsection:
    """Return the first subsection of the Undetermined category, creating it if needed."""

    for cat in template.categories:
        if cat.is_marker:
            continue
        if cat.name.strip().lower() == UNDETERMINED_CATEGORY.lower():
            if not cat.subsections:
                cat.subsections.append(TemplateSubsection())
            return cat.subsections[0]

    sub = TemplateSubsection()
    template.categories.append(TemplateCategory(name=UNDETERMINED_CATEGORY, subsections=[sub]))
    return sub


def merge_existing_item(existing: TemplateItem, incoming: TemplateItem) -> None:
    """Update ``existing`` in place with the incoming item's details.

    Status, tickets and description always come from the incoming item; the
    author is only filled in when the existing item has none.
    """
    existing.status = incoming.status
    existing.ticket_ids = incoming.ticket_ids
    existing.description = incoming.description
    if not existing.author.strip():
        existing.author = incoming.author


def choose_status(incoming_status: str, oracle_status: str, trusted: bool) -> str:
    if trusted and is_known_status(oracle_status):
        return normalize_status(oracle_status)
    return normalize_status(incoming_status)


def _find_by_identity(items: Sequence[TemplateItem], key: str) -> TemplateItem | None:
    for item in items:
        if item.identity_key == key:
            return item
    return None


def _place(sub: TemplateSubsection, new_item: TemplateItem) -> bool:
    """Append ``new_item`` or merge it into an equal one. True when appended."""

    same = _find_by_identity(sub.items, new_item.identity_key)
    if same is not None:
        merge_existing_item(same, new_item)
        return False
    sub.items.append(new_item)
    return True


def _drop_identity_twins(sub: TemplateSubsection, keep: TemplateItem) -> list[TemplateItem]:
    """Remove items other than ``keep`` that now share its identity key."""

    dropped = [
        item for item in sub.items if item is not keep and item.identity_key == keep.identity_key
    ]
    if not dropped:
        return dropped
    sub.items = [item for item in sub.items if not any(item is twin for twin in dropped)]
    for twin in dropped:
        if not keep.author.strip():
            keep.author = twin.author
    logger.debug("Folded %d item(s) into %r", len(dropped), keep.description)
    return dropped


def merge_incoming_items(
    template: ReportTemplate,
    items: Sequence[WorkItem],
    options: Sequence[SectionOption],
    decisions: Mapping[int, ClassificationDecision],
    existing: Sequence[ExistingItemContext],
    confidence_threshold: float,
) -> MergeSummary:
    """Place each incoming item into ``template``.

    A decision is trusted when its confidence reaches the threshold. Trusted
    decisions may merge the item into an existing one (``duplicate_of``) or
    place it in a section; everything else lands in Undetermined.
    """
    option_by_id = {opt.id: opt for opt in options}
    targets = {
        ctx.key: template.categories[ctx.category].subsections[ctx.subsection].items[ctx.index]
        for ctx in existing
    }
    undetermined = ensure_undetermined_section(template)
    summary = MergeSummary()

    for item in items:
        decision = decisions.get(item.id)
        trusted = decision is not None and decision.confidence >= confidence_threshold

        tickets = item.ticket_ids.strip()
        if trusted and decision.ticket_ids.strip():
            tickets = decision.ticket_ids.strip()
        new_item = TemplateItem(
            author=item.author.strip(),
            description=item.description.strip(),
            ticket_ids=tickets,
            status=choose_status(
                item.status, decision.normalized_status if decision else "", trusted
            ),
            reported_at=item.reported_at,
            is_new=True,
        )

        if trusted and decision.duplicate_of:
            ctx = resolve_duplicate_key(decision.duplicate_of, existing)
            if ctx is not None:
                target = targets[ctx.key]
                merge_existing_item(target, new_item)
                sub = template.categories[ctx.category].subsections[ctx.subsection]
                for dropped in _drop_identity_twins(sub, target):
                    for key, obj in targets.items():
                        if obj is dropped:
                            targets[key] = target
                summary.duplicates += 1
                continue

        section_id = UNDETERMINED_SECTION_ID
        if trusted and decision.section_id:
            section_id = decision.section_id
        option = option_by_id.get(section_id)
        if option is None:
            appended = _place(undetermined, new_item)
            summary.undetermined += 1
        else:
            sub = template.categories[option.category].subsections[option.subsection]
            appended = _place(sub, new_item)
            summary.placed += 1
        if not appended:
            summary.updated += 1

    logger.info(
        "Merged %d items: placed=%d duplicates=%d undetermined=%d updated=%d",
        len(items),
        summary.placed,
        summary.duplicates,
        summary.undetermined,
        summary.updated,
    )
    return summary


def _timestamp(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _reorder_key(item: TemplateItem) -> tuple[int, int, float]:
    if item.reported_at is None:
        return (status_bucket(item.status), 0, 0.0)
    return (status_bucket(item.status), 1, _timestamp(item.reported_at))


def reorder_items(items: Sequence[TemplateItem]) -> list[TemplateItem]:
    """Stable sort: done, in testing, in progress, then anything else.

    Within a status, carried-over items (no timestamp) come first, then new
    items oldest first.
    """
    return sorted(items, key=_reorder_key)


def reorder_template_items(template: ReportTemplate) -> None:
    for cat in template.categories:
        for sub in cat.subsections:
            sub.items = reorder_items(sub.items)


__all__ = [
    "MergeSummary",
    "UNDETERMINED_SECTION_ID",
    "build_existing_context",
    "choose_status",
    "ensure_undetermined_section",
    "merge_existing_item",
    "merge_incoming_items",
    "reorder_items",
    "reorder_template_items",
    "resolve_duplicate_key",
    "trim_done_items",
]
