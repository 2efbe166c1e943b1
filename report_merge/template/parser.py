"""Tolerant, line-oriented parser for weekly report Markdown.

Each line is first classified on its own (:func:`classify_line`), then a small
state machine folds the classified lines into a :class:`ReportTemplate`:

    ### Product Alpha            <- prefix (before the first category)

    #### Top Focus               <- category
    - **Feature A**              <- subsection header
      - **Pat One** - Fix X (done)   <- item (bold lead followed by "- ")
    ### Product Beta             <- marker category (top heading mid-report)

Anything the parser does not recognise inside a category is dropped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from report_merge.models import (
    ReportTemplate,
    TemplateCategory,
    TemplateItem,
    TemplateSubsection,
    normalize_status,
)

CATEGORY_HEADING_RE = re.compile(r"^\s*####\s+(.+?)\s*$")
TOP_HEADING_RE = re.compile(r"^\s*###\s+(.+?)\s*$")
BOLD_LEAD_RE = re.compile(r"^\s*-\s+\*\*(.+?)\*\*(.*)$")
BULLET_RE = re.compile(r"^\s*-\s+(.+?)\s*$")

STATUS_SUFFIX_RE = re.compile(r"\(([^)]+)\)\s*$")
TICKET_PREFIX_RE = re.compile(r"^\[([^\]]+)\]\s+")
AUTHOR_PREFIX_RE = re.compile(r"^\*\*(.+?)\*\*\s*-\s*")

# Leading description text that would otherwise read as item grammar: "**"
# looks like a subsection header or author, "[" like a ticket prefix.
_DESCRIPTION_ESCAPES = (("**", r"\*\*"), ("[", r"\["))


class LineKind(str, Enum):
    BLANK = "blank"
    TOP_HEADING = "top_heading"
    CATEGORY_HEADING = "category_heading"
    SUBSECTION_HEADER = "subsection_header"
    ITEM = "item"
    OTHER = "other"


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineKind
    text: str = ""


def classify_line(line: str, *, after_first_category: bool) -> ClassifiedLine:
    """Decide what a single report line is.

    ``after_first_category`` is True once any ``####`` heading has been seen.
    From then on every ``###`` heading is a marker, including one that directly
    follows another marker; before the first category they are ordinary prefix
    text.

    A ``- **Name**`` bullet is a subsection header unless the text after the
    bold part starts with ``-``, in which case it is an author-prefixed item
    (``- **Pat One** - Fix X (done)``).
    """
    if not line.strip():
        return ClassifiedLine(LineKind.BLANK)

    if after_first_category:
        m = TOP_HEADING_RE.match(line)
        if m:
            return ClassifiedLine(LineKind.TOP_HEADING, m.group(1).strip())

    m = CATEGORY_HEADING_RE.match(line)
    if m:
        return ClassifiedLine(LineKind.CATEGORY_HEADING, m.group(1).strip())

    m = BOLD_LEAD_RE.match(line)
    if m and not m.group(2).strip().startswith("-"):
        return ClassifiedLine(LineKind.SUBSECTION_HEADER, m.group(1).strip())

    m = BULLET_RE.match(line)
    if m:
        return ClassifiedLine(LineKind.ITEM, m.group(1))

    return ClassifiedLine(LineKind.OTHER, line)


def parse_item(text: str) -> TemplateItem:
    """Split an item bullet into author, tickets, description and status.

    Grammar (every part optional)::

        **Author** - [123,456] Description text (status)
    """
    text = text.strip()
    author = ""
    m = AUTHOR_PREFIX_RE.match(text)
    if m:
        author = m.group(1).strip()
        text = text[m.end():].strip()

    status = ""
    m = STATUS_SUFFIX_RE.search(text)
    if m:
        status = normalize_status(m.group(1))
        text = text[: m.start()].strip()

    ticket_ids = ""
    m = TICKET_PREFIX_RE.match(text)
    if m:
        ticket_ids = m.group(1).strip()
        text = text[m.end():].strip()

    text = unescape_description(text)

    return TemplateItem(
        author=author,
        description=text,
        ticket_ids=ticket_ids,
        status=status,
    )


def parse_template(content: str) -> ReportTemplate:
    """Parse report Markdown into a :class:`ReportTemplate`."""

    template = ReportTemplate()
    current_cat: TemplateCategory | None = None
    current_sub: TemplateSubsection | None = None
    seen_first_category = False

    for line in content.split("\n"):
        if not seen_first_category:
            template.prefix_lines.append(line)

        classified = classify_line(line, after_first_category=seen_first_category)
        kind = classified.kind

        if kind is LineKind.BLANK:
            continue

        if kind is LineKind.TOP_HEADING:
            template.categories.append(
                TemplateCategory(marker_line=f"### {classified.text}")
            )
            current_cat = None
            current_sub = None
            continue

        if kind is LineKind.CATEGORY_HEADING:
            if not seen_first_category:
                # The heading itself was appended to the prefix above.
                template.prefix_lines.pop()
                seen_first_category = True
            current_cat = TemplateCategory(name=classified.text)
            template.categories.append(current_cat)
            current_sub = None
            continue

        if current_cat is None:
            continue

        if kind is LineKind.SUBSECTION_HEADER:
            current_sub = TemplateSubsection(
                name=classified.text,
                header_line=line.strip(),
            )
            current_cat.subsections.append(current_sub)
            continue

        if kind is LineKind.ITEM:
            if current_sub is None:
                current_sub = TemplateSubsection()
                current_cat.subsections.append(current_sub)
            current_sub.items.append(parse_item(classified.text))

    return template


def strip_team_title(template: ReportTemplate, team_name: str) -> None:
    """Drop ``### <team> YYYYMMDD`` title lines from the prefix in place."""

    if not template.prefix_lines or not team_name.strip():
        return
    template.prefix_lines = [
        line for line in template.prefix_lines if not _is_team_title_line(line, team_name)
    ]


def _is_team_title_line(line: str, team_name: str) -> bool:
    line = line.strip()
    if not line.startswith("### "):
        return False
    parts = line[4:].split()
    if len(parts) < 2:
        return False
    date_part = parts[-1]
    if len(date_part) != 8 or not date_part.isascii() or not date_part.isdigit():
        return False
    return " ".join(parts[:-1]).strip().lower() == team_name.strip().lower()


def escape_description(description: str) -> str:
    """Escape a leading ``**`` or ``[`` so the rendered line parses back as-is."""

    for raw, escaped in _DESCRIPTION_ESCAPES:
        if description.startswith(raw):
            return escaped + description[len(raw):]
    return description


def unescape_description(description: str) -> str:
    for raw, escaped in _DESCRIPTION_ESCAPES:
        if description.startswith(escaped):
            return raw + description[len(escaped):]
    return description
