"""Command line interface for rendering and building weekly reports.

Examples:
    python -m report_merge render last_week.md --view boss
    python -m report_merge build --prior last_week.md --items items.json
    python -m report_merge build --prior last_week.md --items items.json \\
        --oracle my_team.oracles:classifier --glossary glossary.yaml
    python -m report_merge retro --prior last_week.md --corrections corrections.json \\
        --oracle my_team.oracles:classifier
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from dotenv import load_dotenv
from pydantic import BaseModel

from .classification import Glossary, Oracle, analyze_corrections
from .config import MergeConfiguration
from .errors import OracleError, ReportMergeError
from .merge import BuildResult, ReportBuilder
from .models import CorrectionRecord, HistoricalExample, WorkItem, section_options
from .template import parse_template, render_boss_markdown, render_team_markdown

logger = logging.getLogger(__name__)

VIEWS = ("team", "boss", "both")


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--dotenv",
        type=Path,
        help="Path to a .env file with LLM_* settings (default: ./.env if present)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="report_merge",
        description="Merge newly reported work items into last period's report.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    render = subparsers.add_parser("render", help="Re-render an existing report")
    render.add_argument("report", type=Path, help="Report Markdown file")
    render.add_argument("--view", choices=VIEWS, default="team", help="View to print")
    _add_common_args(render)

    build = subparsers.add_parser("build", help="Merge work items into the prior report")
    build.add_argument("--items", type=Path, required=True, help="JSON list of work items")
    build.add_argument(
        "--prior",
        type=Path,
        help="Prior report Markdown (omit for the first-ever report)",
    )
    build.add_argument("--examples", type=Path, help="JSON list of historical examples")
    build.add_argument("--corrections", type=Path, help="JSON list of correction records")
    build.add_argument(
        "--glossary",
        type=Path,
        help="Glossary YAML (overrides LLM_GLOSSARY_PATH)",
    )
    build.add_argument(
        "--oracle",
        help="Oracle callable as module:attribute; without it nothing is classified",
    )
    build.add_argument("--view", choices=VIEWS, default="both", help="View(s) to print")
    _add_common_args(build)

    retro = subparsers.add_parser(
        "retro", help="Suggest glossary terms or guide rules from past corrections"
    )
    retro.add_argument("--prior", type=Path, required=True, help="Report defining the sections")
    retro.add_argument("--corrections", type=Path, required=True, help="JSON correction records")
    retro.add_argument("--oracle", required=True, help="Oracle callable as module:attribute")
    _add_common_args(retro)

    return parser


def load_oracle(spec: str) -> Oracle:
    """Import ``module:attribute`` and return it as an oracle callable."""

    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Oracle must be given as module:attribute, got {spec!r}")
    module = importlib.import_module(module_name)
    oracle = getattr(module, attr)
    if not callable(oracle):
        raise ValueError(f"{spec} is not callable")
    return oracle


def _load_records(path: Path | None, model: type[BaseModel]) -> list[Any]:
    if path is None:
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list")
    return [model.model_validate(entry) for entry in data]


def _print_views(team: str, boss: str, view: str) -> None:
    if view in ("team", "both"):
        print(team)
    if view == "both":
        print()
    if view in ("boss", "both"):
        print(boss)


def _run_render(args: argparse.Namespace) -> int:
    template = parse_template(args.report.read_text(encoding="utf-8"))
    _print_views(render_team_markdown(template), render_boss_markdown(template), args.view)
    return 0


def _log_result(result: BuildResult) -> None:
    logger.info(
        "Build finished: %d decisions, input_tokens=%d output_tokens=%d",
        len(result.decisions),
        result.usage.input_tokens,
        result.usage.output_tokens,
    )
    if result.critic_error is not None:
        print(f"Warning: critic pass failed: {result.critic_error}", file=sys.stderr)


def _run_build(args: argparse.Namespace) -> int:
    config = MergeConfiguration.from_env(args.dotenv)
    glossary = Glossary.from_yaml(args.glossary) if args.glossary else None
    oracle = load_oracle(args.oracle) if args.oracle else None

    builder = ReportBuilder(oracle, config, glossary=glossary)
    prior = args.prior.read_text(encoding="utf-8") if args.prior else None
    result = builder.build(
        prior,
        _load_records(args.items, WorkItem),
        examples=_load_records(args.examples, HistoricalExample),
        corrections=_load_records(args.corrections, CorrectionRecord),
    )
    _log_result(result)
    _print_views(result.team_report, result.boss_report, args.view)
    return 0


def _run_retro(args: argparse.Namespace) -> int:
    # Oracle modules may read their own credentials from .env.
    load_dotenv(dotenv_path=args.dotenv)
    template = parse_template(args.prior.read_text(encoding="utf-8"))
    suggestions, usage = analyze_corrections(
        load_oracle(args.oracle),
        _load_records(args.corrections, CorrectionRecord),
        section_options(template),
    )
    logger.info(
        "Retrospective used input_tokens=%d output_tokens=%d",
        usage.input_tokens,
        usage.output_tokens,
    )
    print(json.dumps([s.model_dump() for s in suggestions], indent=2))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handlers = {"render": _run_render, "build": _run_build, "retro": _run_retro}
    try:
        return handlers[args.command](args)
    except OracleError as exc:
        print(
            f"Error: {exc} (input_tokens={exc.usage.input_tokens} "
            f"output_tokens={exc.usage.output_tokens})",
            file=sys.stderr,
        )
        return 1
    except (ReportMergeError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
