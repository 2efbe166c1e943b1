"""Merge incoming work into the prior report and build both views."""

from .builder import BuildResult, ReportBuilder
from .engine import (
    MergeSummary,
    build_existing_context,
    choose_status,
    ensure_undetermined_section,
    merge_existing_item,
    merge_incoming_items,
    reorder_items,
    reorder_template_items,
    resolve_duplicate_key,
    trim_done_items,
)

__all__ = [
    "BuildResult",
    "MergeSummary",
    "ReportBuilder",
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
