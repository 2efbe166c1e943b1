"""Render a :class:`ReportTemplate` back to Markdown.

Two views are produced from the same structure:

* the *team* view lists the author on every item line;
* the *boss* view drops authors from item lines and lists them once, in
  parentheses, on the category heading.

Both views are stable under a parse/render round trip.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable

from report_merge.models import (
    ReportTemplate,
    TemplateCategory,
    TemplateItem,
    normalize_status,
)

from .parser import escape_description

CategoryHeadingFn = Callable[[TemplateCategory], str]
ItemFormatter = Callable[[TemplateItem], str]

_NAME_ALIAS_RE = re.compile(r"\([^)]*\)|（[^）]*）")
_STATUS_WORDS = ("in progress", "in testing", "in test", "done", "qa")


def render_markdown(
    template: ReportTemplate,
    category_heading: CategoryHeadingFn,
    format_item: ItemFormatter,
) -> str:
    """Render categories, subsections and items.

    Categories and subsections without items are left out. Prefix lines and
    marker headings are emitted as they were parsed.
    """
    parts: list[str] = []
    prefix = "\n".join(template.prefix_lines).strip()
    if prefix:
        parts.append(prefix + "\n\n")

    for cat in template.categories:
        if cat.is_marker:
            parts.append(cat.marker_line.strip() + "\n\n")
            continue
        if not cat.has_items():
            continue
        parts.append(f"#### {category_heading(cat)}\n\n")
        for sub in cat.subsections:
            if not sub.items:
                continue
            header = sub.header_line.strip()
            bullet = "- "
            if header:
                parts.append(header + "\n")
                bullet = "  - "
            for item in sub.items:
                parts.append(bullet + format_item(item) + "\n")
            parts.append("\n")

    return "".join(parts).strip() + "\n"


def render_team_markdown(template: ReportTemplate) -> str:
    return render_markdown(template, lambda cat: cat.name, format_team_item)


def render_boss_markdown(template: ReportTemplate) -> str:
    return render_markdown(
        template,
        lambda cat: merge_category_heading_authors(cat.name, category_authors(cat)),
        format_boss_item,
    )


def format_team_item(item: TemplateItem) -> str:
    author = synthesize_name(item.author)
    body = format_boss_item(item)
    if not author:
        return body
    return f"**{author}** - {body}"


def format_boss_item(item: TemplateItem) -> str:
    status = normalize_status(item.status) or "done"
    ticket_prefix = ""
    if item.ticket_ids.strip():
        ticket_prefix = f"[{item.ticket_ids.strip()}] "
    return f"{ticket_prefix}{synthesize_description(item.description)} ({status})"


def synthesize_name(name: str) -> str:
    """Title-case a display name and drop parenthesised aliases."""

    name = _NAME_ALIAS_RE.sub(" ", name.strip())
    return " ".join(_capitalize_first_letter(part) for part in name.lower().split())


def synthesize_description(description: str) -> str:
    """Put a description on one line, capitalised and safe to parse back."""

    text = _capitalize_first_letter(" ".join(description.split()))
    return escape_description(text)


def _capitalize_first_letter(text: str) -> str:
    for i, ch in enumerate(text):
        if ch.isalpha():
            return text[:i] + ch.upper() + text[i + 1 :]
    return text


def category_authors(cat: TemplateCategory) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for sub in cat.subsections:
        for item in sub.items:
            author = synthesize_name(item.author)
            if not author or author in seen:
                continue
            seen.add(author)
            out.append(author)
    return out


def merge_category_heading_authors(category_name: str, generated_authors: list[str]) -> str:
    """Return ``Base (A, B, ...)`` combining new and already listed authors.

    Authors already present in trailing parenthesised groups of the heading
    are kept after the generated ones; equivalent names collapse to the
    longer spelling.
    """
    base, existing = split_category_name_and_authors(category_name)
    merged = merge_authors(generated_authors, existing)
    if not merged:
        return base.strip()
    return f"{base.strip()} ({', '.join(merged)})"


def split_category_name_and_authors(category_name: str) -> tuple[str, list[str]]:
    text = category_name.strip()
    groups: list[list[str]] = []
    while True:
        popped = _pop_trailing_paren_group(text)
        if popped is None:
            break
        base, inside = popped
        inside = inside.strip()
        if not inside or not _looks_like_author_group(inside):
            break
        names = [synthesize_name(p) for p in inside.split(",")]
        names = [n for n in names if n]
        if names:
            groups.insert(0, names)
        text = base.strip()
    existing = [name for group in groups for name in group]
    return text, existing


def _pop_trailing_paren_group(text: str) -> tuple[str, str] | None:
    text = text.strip()
    if not text or text[-1] != ")":
        return None
    end = len(text) - 1
    depth = 0
    start = -1
    for i in range(end, -1, -1):
        if text[i] == ")":
            depth += 1
        elif text[i] == "(":
            depth -= 1
            if depth == 0:
                start = i
                break
    if start < 0 or start >= end:
        return None
    return text[:start].strip(), text[start + 1 : end]


def _looks_like_author_group(group: str) -> bool:
    lower = group.strip().lower()
    if not lower:
        return False
    return not any(word in lower for word in _STATUS_WORDS)


def merge_authors(primary: Iterable[str], secondary: Iterable[str]) -> list[str]:
    out: list[str] = []

    def add(name: str) -> None:
        name = synthesize_name(name)
        if not name:
            return
        for i, existing in enumerate(out):
            if person_name_equivalent(existing, name):
                if len(name.split()) > len(existing.split()):
                    out[i] = name
                return
        out.append(name)

    for name in primary:
        add(name)
    for name in secondary:
        add(name)
    return out


def person_name_equivalent(a: str, b: str) -> bool:
    """True when one name's tokens are a subset of the other's."""

    ta = _name_tokens(a)
    tb = _name_tokens(b)
    if not ta or not tb:
        return False
    return ta <= tb or tb <= ta


def _name_tokens(text: str) -> set[str]:
    cleaned = "".join(ch if ch.isalnum() else " " for ch in text.lower())
    return set(cleaned.split())
