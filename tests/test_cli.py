"""Tests for the report_merge command line interface."""

from __future__ import annotations

import json
import sys
import types
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from report_merge.classification import OracleReply, OracleRequest
from report_merge.cli import build_parser, load_oracle, main
from report_merge.models import LLMUsage

PRIOR = """#### Ops

- **Kit Vale** - Pager rota (in progress)
- **Kit Vale** - Old migration (done)
"""


def _ops_oracle(request: OracleRequest) -> OracleReply:
    if request.purpose == "retrospective":
        payload = [
            {
                "title": "Backups",
                "reasoning": "corrected twice",
                "action": "glossary_term",
                "phrase": "backup",
                "section": "S0_0",
            }
        ]
    else:
        payload = [
            {"id": item.id, "section_id": "S0_0", "normalized_status": "", "confidence": 0.9}
            for item in request.items
        ]
    return OracleReply(text=json.dumps(payload), usage=LLMUsage(input_tokens=3))


def _failing_oracle(request: OracleRequest) -> OracleReply:
    raise RuntimeError("service down")


@pytest.fixture
def oracle_module(monkeypatch: pytest.MonkeyPatch) -> str:
    module = types.ModuleType("stub_oracles")
    module.ops = _ops_oracle
    module.failing = _failing_oracle
    module.not_callable = 42
    monkeypatch.setitem(sys.modules, "stub_oracles", module)
    return "stub_oracles"


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in ("TEAM_NAME", "LLM_GLOSSARY_PATH", "LLM_GUIDE_PATH", "LLM_CRITIC_ENABLED"):
        monkeypatch.setenv(name, "x")
        monkeypatch.delenv(name)
    (tmp_path / "prior.md").write_text(PRIOR, encoding="utf-8")
    (tmp_path / "items.json").write_text(
        json.dumps(
            [
                {"id": 1, "description": "rotate backups", "author": "Ro Ng", "status": "in progress"},
            ]
        ),
        encoding="utf-8",
    )
    (tmp_path / "corrections.json").write_text(
        json.dumps(
            [
                {
                    "description": "Backup restore",
                    "original_section_id": "UND",
                    "corrected_section_id": "S0_0",
                }
            ]
        ),
        encoding="utf-8",
    )
    return tmp_path


def _common(workspace: Path) -> list[str]:
    return ["--dotenv", str(workspace / "none.env")]


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_render_boss_view(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["render", str(workspace / "prior.md"), "--view", "boss"])

    out = capsys.readouterr().out
    assert code == 0
    assert "#### Ops (Kit Vale)" in out
    assert "- Pager rota (in progress)" in out
    assert "- Old migration (done)" in out


def test_build_without_oracle_uses_undetermined(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = main(
        [
            "build",
            "--prior",
            str(workspace / "prior.md"),
            "--items",
            str(workspace / "items.json"),
            "--view",
            "team",
            *_common(workspace),
        ]
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "Old migration" not in out
    assert "#### Undetermined\n\n- **Ro Ng** - Rotate backups (in progress)" in out


def test_build_with_oracle(
    workspace: Path, oracle_module: str, capsys: pytest.CaptureFixture[str]
) -> None:
    code = main(
        [
            "build",
            "--prior",
            str(workspace / "prior.md"),
            "--items",
            str(workspace / "items.json"),
            "--oracle",
            f"{oracle_module}:ops",
            *_common(workspace),
        ]
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "- **Ro Ng** - Rotate backups (in progress)" in out
    assert "#### Ops (Kit Vale, Ro Ng)" in out
    assert "Undetermined" not in out


def test_build_first_ever_without_prior(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = main(["build", "--items", str(workspace / "items.json"), "--view", "team", *_common(workspace)])

    assert code == 0
    assert capsys.readouterr().out.startswith("#### Undetermined\n")


def test_oracle_failure_reports_usage(
    workspace: Path, oracle_module: str, capsys: pytest.CaptureFixture[str]
) -> None:
    code = main(
        [
            "build",
            "--prior",
            str(workspace / "prior.md"),
            "--items",
            str(workspace / "items.json"),
            "--oracle",
            f"{oracle_module}:failing",
            *_common(workspace),
        ]
    )

    err = capsys.readouterr().err
    assert code == 1
    assert "service down" in err
    assert "input_tokens=0" in err


@pytest.mark.parametrize("spec", ["no_colon", "stub_oracles:not_callable", ":attr"])
def test_bad_oracle_spec_fails(
    workspace: Path, oracle_module: str, spec: str, capsys: pytest.CaptureFixture[str]
) -> None:
    code = main(
        [
            "build",
            "--prior",
            str(workspace / "prior.md"),
            "--items",
            str(workspace / "items.json"),
            "--oracle",
            spec,
            *_common(workspace),
        ]
    )

    assert code == 1
    assert "Error:" in capsys.readouterr().err


def test_items_must_be_a_list(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workspace / "items.json").write_text('{"id": 1}', encoding="utf-8")

    code = main(["build", "--items", str(workspace / "items.json"), *_common(workspace)])

    assert code == 1
    assert "must contain a JSON list" in capsys.readouterr().err


def test_prior_without_categories_fails(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workspace / "prior.md").write_text("nothing here\n", encoding="utf-8")

    code = main(
        [
            "build",
            "--prior",
            str(workspace / "prior.md"),
            "--items",
            str(workspace / "items.json"),
            *_common(workspace),
        ]
    )

    assert code == 1
    assert "no '#### Category' headings" in capsys.readouterr().err


def test_retro_prints_suggestions(
    workspace: Path, oracle_module: str, capsys: pytest.CaptureFixture[str]
) -> None:
    code = main(
        [
            "retro",
            "--prior",
            str(workspace / "prior.md"),
            "--corrections",
            str(workspace / "corrections.json"),
            "--oracle",
            f"{oracle_module}:ops",
            *_common(workspace),
        ]
    )

    suggestions = json.loads(capsys.readouterr().out)
    assert code == 0
    assert suggestions[0]["action"] == "glossary_term"
    assert suggestions[0]["phrase"] == "backup"


def test_load_oracle(oracle_module: str) -> None:
    assert load_oracle(f"{oracle_module}:ops") is _ops_oracle
