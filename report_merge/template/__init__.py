"""Parse and render weekly report Markdown."""

from .parser import LineKind, classify_line, parse_item, parse_template, strip_team_title
from .renderer import (
    format_boss_item,
    format_team_item,
    merge_category_heading_authors,
    render_boss_markdown,
    render_markdown,
    render_team_markdown,
    synthesize_name,
)

__all__ = [
    "LineKind",
    "classify_line",
    "format_boss_item",
    "format_team_item",
    "merge_category_heading_authors",
    "parse_item",
    "parse_template",
    "render_boss_markdown",
    "render_markdown",
    "render_team_markdown",
    "strip_team_title",
    "synthesize_name",
]
