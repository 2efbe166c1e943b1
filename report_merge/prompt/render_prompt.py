"""Render prompt templates in report_merge/prompt/promptFiles using pystache.

Templates come in system/user pairs. Each pair can pull in shared partials
(for example the list of section options); partial files may be wrapped in
code fences, which are stripped before use.

Usage:
    python -m report_merge.prompt.render_prompt [system_template] [user_template] [context.json]

If no arguments are given, it renders the section classifier pair with an
empty context and prints both prompts to stdout.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pystache

PROMPTS_DIR = Path(__file__).parent / "promptFiles"

# Map of template to required partials
TEMPLATE_PARTIALS: dict[str, list[str]] = {
    "system_section_classifier.md": ["section_list"],
    "user_section_classifier.md": [],
    "system_critic.md": ["section_list"],
    "user_critic.md": [],
    "system_retrospective.md": ["section_list"],
    "user_retrospective.md": [],
}


def _read_prompt(name: str) -> str:
    p = PROMPTS_DIR / name
    if not p.exists():
        raise FileNotFoundError(f"Prompt file not found: {p}")
    return p.read_text(encoding="utf-8")


def _strip_code_fences(s: str) -> str:
    """Strip a single leading and trailing code-fence block if present."""
    lines = s.splitlines()
    if not lines:
        return s
    if lines[0].lstrip().startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].lstrip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def _load_partials(template_names: tuple[str, ...]) -> dict[str, str]:
    partial_names: set[str] = set()
    for name in template_names:
        partial_names.update(TEMPLATE_PARTIALS.get(name, []))
    return {
        partial_name: _strip_code_fences(_read_prompt(f"{partial_name}.md"))
        for partial_name in sorted(partial_names)
    }


def render_prompts(
    system_template: str = "system_section_classifier.md",
    user_template: str = "user_section_classifier.md",
    context: dict | None = None,
) -> tuple[str, str]:
    """Render a system and user prompt pair from two separate templates.

    Returns:
        (system_prompt, user_prompt)
    """
    renderer = pystache.Renderer(partials=_load_partials((system_template, user_template)))

    rendered_system = renderer.render(_read_prompt(system_template), context or {})
    rendered_user = renderer.render(_read_prompt(user_template), context or {})
    return rendered_system.strip(), rendered_user.strip()


def _load_context(path: str) -> dict:
    return json.loads(Path(path).read_text(encoding="utf-8"))


if __name__ == "__main__":
    system_tpl = sys.argv[1] if len(sys.argv) > 1 else "system_section_classifier.md"
    user_tpl = sys.argv[2] if len(sys.argv) > 2 else "user_section_classifier.md"
    ctx = _load_context(sys.argv[3]) if len(sys.argv) > 3 else None
    system_prompt, user_prompt = render_prompts(system_tpl, user_tpl, ctx)
    print(system_prompt)
    print()
    print(user_prompt)
