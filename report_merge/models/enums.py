"""Enumerations shared by the report model and the classifier.

The status values match the wording used in rendered reports and in the
classifier prompt (`normalized_status`), so they are safe to serialise as-is.
"""

from __future__ import annotations

from enum import Enum


class WorkStatus(str, Enum):
    """Known work item statuses, in report order."""

    DONE = "done"
    IN_TESTING = "in testing"
    IN_PROGRESS = "in progress"

    @classmethod
    def all_values(cls) -> list[str]:
        return [m.value for m in cls]


# Aliases accepted on input, keyed by their lowercased form.
_STATUS_ALIASES = {
    "done": WorkStatus.DONE,
    "in testing": WorkStatus.IN_TESTING,
    "in test": WorkStatus.IN_TESTING,
    "in progress": WorkStatus.IN_PROGRESS,
}

_BUCKETS = {
    WorkStatus.DONE.value: 0,
    WorkStatus.IN_TESTING.value: 1,
    WorkStatus.IN_PROGRESS.value: 2,
}

OTHER_BUCKET = 3


def normalize_status(status: object) -> str:
    """Map a free-form status onto a known value, or return it trimmed."""

    text = str(status or "").strip()
    known = _STATUS_ALIASES.get(text.lower())
    if known is not None:
        return known.value
    return text


def is_known_status(status: object) -> bool:
    return normalize_status(status) in _BUCKETS


def status_bucket(status: object) -> int:
    """Sort bucket used when reordering items: done, testing, progress, other."""

    return _BUCKETS.get(normalize_status(status), OTHER_BUCKET)
