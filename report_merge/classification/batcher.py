"""Chunk incoming work items into fixed-size classification batches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from report_merge.models import WorkItem


@dataclass
class Batch:
    """Represents a single batch of work items.

    Attributes:
        index: Zero-based batch index; also the batch's result slot
        items: Work items in this batch, in input order
    """

    index: int
    items: list[WorkItem]

    @property
    def queries(self) -> list[str]:
        """Descriptions used to retrieve similar historical examples."""
        return [item.description for item in self.items]


def iter_batches(items: Sequence[WorkItem], batch_size: int) -> Iterable[Batch]:
    """Yield consecutive batches of at most ``batch_size`` items.

    Raises:
        ValueError: If ``batch_size`` is smaller than 1
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    for batch_idx, start_idx in enumerate(range(0, len(items), batch_size)):
        yield Batch(index=batch_idx, items=list(items[start_idx : start_idx + batch_size]))
