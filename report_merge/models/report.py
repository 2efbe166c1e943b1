"""In-memory structure of a weekly report.

A report is a list of categories (``#### Name`` headings), each holding
subsections (``- **Name**`` bullets) that in turn hold work items. The
structure only lives for one build; it is produced by the template parser,
mutated by the merge engine and turned back into text by the renderer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

UNDETERMINED_CATEGORY = "Undetermined"


@dataclass
class TemplateItem:
    """A single work item line.

    Attributes:
        author: Display name of the person who reported the work (may be empty)
        description: Free text description of the work
        ticket_ids: Comma separated ticket identifiers (may be empty)
        status: Normalised status (see :func:`normalize_status`)
        reported_at: When the item was reported; ``None`` for carried-over items
        is_new: True when the item was added during the current build
    """

    author: str = ""
    description: str = ""
    ticket_ids: str = ""
    status: str = ""
    reported_at: datetime | None = None
    is_new: bool = False

    @property
    def identity_key(self) -> str:
        """Key used to deduplicate items inside one subsection."""
        return self.description.strip().lower()


@dataclass
class TemplateSubsection:
    name: str = ""
    header_line: str = ""
    items: list[TemplateItem] = field(default_factory=list)


@dataclass
class TemplateCategory:
    name: str = ""
    subsections: list[TemplateSubsection] = field(default_factory=list)
    # Preserved mid-report heading (e.g. "### Product Beta"); such categories
    # never hold subsections.
    marker_line: str = ""

    @property
    def is_marker(self) -> bool:
        return bool(self.marker_line.strip())

    def has_items(self) -> bool:
        return any(sub.items for sub in self.subsections)


@dataclass
class ReportTemplate:
    prefix_lines: list[str] = field(default_factory=list)
    categories: list[TemplateCategory] = field(default_factory=list)

    def clone(self) -> "ReportTemplate":
        """Return a copy whose item lists can be mutated independently."""
        return ReportTemplate(
            prefix_lines=list(self.prefix_lines),
            categories=[
                TemplateCategory(
                    name=cat.name,
                    marker_line=cat.marker_line,
                    subsections=[
                        TemplateSubsection(
                            name=sub.name,
                            header_line=sub.header_line,
                            items=[replace(item) for item in sub.items],
                        )
                        for sub in cat.subsections
                    ],
                )
                for cat in self.categories
            ],
        )

    def named_categories(self) -> list[TemplateCategory]:
        return [cat for cat in self.categories if not cat.is_marker]

    def item_count(self) -> int:
        return sum(len(sub.items) for cat in self.categories for sub in cat.subsections)

    @classmethod
    def first_ever(cls) -> "ReportTemplate":
        """Template used when there is no earlier report to build on."""
        return cls(
            categories=[
                TemplateCategory(
                    name=UNDETERMINED_CATEGORY,
                    subsections=[TemplateSubsection()],
                )
            ]
        )


@dataclass(frozen=True)
class SectionOption:
    """A classifiable (category, subsection) position.

    Ids look like ``S0_2`` and are only stable within one build.
    """

    id: str
    category: int
    subsection: int
    label: str


def section_options(template: ReportTemplate) -> list[SectionOption]:
    """Enumerate every subsection of the template as a section option."""

    options: list[SectionOption] = []
    for ci, cat in enumerate(template.categories):
        for si, sub in enumerate(cat.subsections):
            label = cat.name
            if sub.name.strip():
                label = f"{cat.name} > {sub.name}"
            options.append(
                SectionOption(
                    id=f"S{ci}_{si}",
                    category=ci,
                    subsection=si,
                    label=label,
                )
            )
    return options
