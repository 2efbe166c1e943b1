"""End-to-end tests for ReportBuilder."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from report_merge.classification import Glossary, OracleReply, OracleRequest
from report_merge.config import MergeConfiguration
from report_merge.errors import ConfigurationError, OracleError, StructuralError
from report_merge.merge import ReportBuilder
from report_merge.models import HistoricalExample, LLMUsage, WorkItem
from report_merge.template import parse_template, render_boss_markdown, render_team_markdown

PRIOR_REPORT = """### TEAMX 20260202

### Product Alpha

#### Top Focus

- **Feature A**
  - **Pat One** - [123] Existing ongoing item (in progress)
  - **Pat Two** - Shipped thing (done)

### Product Beta

#### Release and Support

- **Support Cases**
  - **Pat Two** - Existing support item (in progress)
"""

EXPECTED_TEAM = """### Product Alpha

#### Top Focus

- **Feature A**
  - **Pat One** - [123] Existing ongoing item (in progress)

### Product Beta

#### Release and Support

- **Support Cases**
  - **Pat Two** - Existing support item (in progress)
  - **Sam Lee** - Customer support ticket triage (in progress)

#### Undetermined

- **Pat One** - Random thing (done)
"""

EXPECTED_BOSS = """### Product Alpha

#### Top Focus (Pat One)

- **Feature A**
  - [123] Existing ongoing item (in progress)

### Product Beta

#### Release and Support (Pat Two, Sam Lee)

- **Support Cases**
  - Existing support item (in progress)
  - Customer support ticket triage (in progress)

#### Undetermined (Pat One)

- Random thing (done)
"""


def _items() -> list[WorkItem]:
    return [
        WorkItem(
            id=1,
            description="customer support ticket triage",
            author="sam lee (Sammy)",
            status="in progress",
            reported_at=datetime(2026, 2, 3, 10, 0, tzinfo=timezone.utc),
        ),
        WorkItem(id=2, description="Random thing", author="Pat One", status="done"),
    ]


class _StubOracle:
    """Answers classify calls from a fixed routing table.

    Critic calls get ``critic_reply`` verbatim.
    """

    def __init__(
        self,
        routes: dict[int, tuple[str, float]] | None = None,
        *,
        critic_reply: str = "[]",
        fail_classify: bool = False,
    ) -> None:
        self.routes = routes or {1: ("S2_0", 0.9), 2: ("UND", 0.95)}
        self.critic_reply = critic_reply
        self.fail_classify = fail_classify
        self.requests: list[OracleRequest] = []

    def __call__(self, request: OracleRequest) -> OracleReply:
        self.requests.append(request)
        usage = LLMUsage(input_tokens=10, output_tokens=4)
        if request.purpose == "critic":
            return OracleReply(text=self.critic_reply, usage=usage)
        if self.fail_classify:
            raise RuntimeError("upstream unavailable")
        payload = []
        for item in request.items:
            section_id, confidence = self.routes.get(item.id, ("UND", 0.0))
            payload.append(
                {
                    "id": item.id,
                    "section_id": section_id,
                    "normalized_status": item.status,
                    "ticket_ids": [],
                    "duplicate_of": "",
                    "confidence": confidence,
                }
            )
        return OracleReply(text=json.dumps(payload), usage=usage)

    def purposes(self) -> list[str]:
        return [r.purpose for r in self.requests]


def _config(**kwargs) -> MergeConfiguration:
    return MergeConfiguration(team_name="TEAMX", **kwargs)


def test_build_places_items_and_renders_both_views() -> None:
    oracle = _StubOracle()
    builder = ReportBuilder(oracle, _config())

    result = builder.build(PRIOR_REPORT, _items())

    assert result.team_report == EXPECTED_TEAM
    assert result.boss_report == EXPECTED_BOSS
    assert result.first_ever is False
    assert result.critic_error is None
    assert [o.id for o in result.options] == ["S0_0", "S2_0"]
    assert result.decisions[1].section_id == "S2_0"
    assert result.usage.input_tokens == 10
    assert oracle.purposes() == ["classify"]


def test_build_does_not_mutate_between_calls() -> None:
    builder = ReportBuilder(_StubOracle(), _config())

    first = builder.build(PRIOR_REPORT, _items())
    second = builder.build(PRIOR_REPORT, _items())

    assert first.team_report == second.team_report


def test_first_ever_report_puts_everything_in_undetermined() -> None:
    oracle = _StubOracle()
    builder = ReportBuilder(oracle, _config())

    result = builder.build(None, [WorkItem(id=1, description="set up repo", status="in progress")])

    assert result.first_ever is True
    assert oracle.requests == []
    assert result.team_report == "#### Undetermined\n\n- Set up repo (in progress)\n"


@pytest.mark.parametrize("prior", ["", "just some notes\n- a bullet\n", "### Title only\n"])
def test_prior_without_categories_is_a_structural_error(prior: str) -> None:
    builder = ReportBuilder(_StubOracle(), _config())

    with pytest.raises(StructuralError):
        builder.build(prior, _items())


def test_oracle_failure_aborts_build_with_usage() -> None:
    builder = ReportBuilder(_StubOracle(fail_classify=True), _config())

    with pytest.raises(OracleError) as exc_info:
        builder.build(PRIOR_REPORT, _items())

    assert exc_info.value.batch_index == 0
    assert "upstream unavailable" in str(exc_info.value)


def test_low_confidence_items_go_to_undetermined() -> None:
    oracle = _StubOracle({1: ("S2_0", 0.4), 2: ("S0_0", 0.69)})
    builder = ReportBuilder(oracle, _config())

    result = builder.build(PRIOR_REPORT, _items())

    und = result.template.categories[-1]
    assert und.name == "Undetermined"
    assert [i.description for i in und.subsections[0].items] == [
        "Random thing",
        "customer support ticket triage",
    ]


def test_critic_moves_flagged_item() -> None:
    reply = json.dumps([{"id": 1, "suggested_section_id": "S0_0", "reason": "feature work"}])
    oracle = _StubOracle(critic_reply=reply)
    builder = ReportBuilder(oracle, _config(critic_enabled=True))

    result = builder.build(PRIOR_REPORT, _items())

    assert oracle.purposes() == ["classify", "critic"]
    assert result.decisions[1].section_id == "S0_0"
    assert result.usage.input_tokens == 20
    feature_a = result.template.categories[0].subsections[0]
    assert [i.description for i in feature_a.items] == [
        "Existing ongoing item",
        "customer support ticket triage",
    ]


def test_critic_failure_is_reported_but_not_fatal() -> None:
    oracle = _StubOracle(critic_reply="I could not review these.")
    builder = ReportBuilder(oracle, _config(critic_enabled=True))

    result = builder.build(PRIOR_REPORT, _items())

    assert result.critic_error is not None
    assert result.team_report == EXPECTED_TEAM
    assert result.usage.input_tokens == 20


def test_separate_critic_oracle_is_used() -> None:
    classifier = _StubOracle()
    critic = _StubOracle()
    builder = ReportBuilder(classifier, _config(critic_enabled=True), critic_oracle=critic)

    builder.build(PRIOR_REPORT, _items())

    assert classifier.purposes() == ["classify"]
    assert critic.purposes() == ["critic"]


def test_done_items_are_pruned_and_empty_categories_vanish() -> None:
    prior = (
        "#### Finished\n\n"
        "- **Pat One** - Old release (done)\n\n"
        "#### Ops\n\n"
        "- **Kit Vale** - Pager rota (in progress)\n"
    )
    builder = ReportBuilder(None, MergeConfiguration())

    result = builder.build(prior, [])

    assert result.team_report == "#### Ops\n\n- **Kit Vale** - Pager rota (in progress)\n"
    assert "Undetermined" not in result.team_report




def test_rendered_reports_parse_back_unchanged() -> None:
    prior = (
        "### Product Alpha\n\n"
        "#### Top Focus\n\n"
        "- **Feature A**\n"
        "  - **Pat One** - Existing ongoing item (in progress)\n\n"
        "### Product Beta\n\n"
        "#### Beta Work\n\n"
        "- **Pat Two** - Shipped thing (done)\n\n"
        "### Product Gamma\n\n"
        "#### Gamma Work\n\n"
        "- **Pat Two** - Gamma item (in progress)\n"
    )
    items = [
        WorkItem(id=1, description="**Urgent** hotfix for login", status="in progress"),
        WorkItem(id=2, description="[WIP] rollout plan", author="Pat One", status="in progress"),
        WorkItem(id=3, description="finish\n  migration docs", author="Pat One", status="in testing"),
    ]
    oracle = _StubOracle({1: ("S0_0", 0.9), 2: ("S4_0", 0.9), 3: ("S0_0", 0.9)})
    builder = ReportBuilder(oracle, _config())

    result = builder.build(prior, items)

    team = result.team_report
    assert "### Product Beta\n\n### Product Gamma\n\n#### Gamma Work" in team
    assert "  - \\*\\*Urgent** hotfix for login (in progress)\n" in team
    assert "- **Pat One** - \\[WIP] rollout plan (in progress)\n" in team
    assert "  - **Pat One** - Finish migration docs (in testing)\n" in team
    assert render_team_markdown(parse_template(team)) == team
    assert render_boss_markdown(parse_template(result.boss_report)) == result.boss_report

    reparsed = parse_template(team)
    descriptions = [
        item.description
        for cat in reparsed.categories
        for sub in cat.subsections
        for item in sub.items
    ]
    assert reparsed.item_count() == 5
    assert "**Urgent** hotfix for login" in descriptions
    assert "[WIP] rollout plan" in descriptions
    assert [cat.marker_line for cat in reparsed.categories if cat.is_marker] == [
        "### Product Beta",
        "### Product Gamma",
    ]


def test_glossary_applies_without_oracle() -> None:
    glossary = Glossary.model_validate(
        {"terms": [{"phrase": "support ticket", "section": "Release and Support > Support Cases"}]}
    )
    builder = ReportBuilder(None, _config(), glossary=glossary)

    result = builder.build(PRIOR_REPORT, _items())

    assert result.decisions[1].section_id == "S2_0"
    assert 2 not in result.decisions
    assert result.usage.total_tokens == 0
    assert result.team_report == EXPECTED_TEAM


def test_glossary_is_loaded_from_config_path(tmp_path: Path) -> None:
    path = tmp_path / "glossary.yaml"
    path.write_text(
        "terms:\n  - phrase: random thing\n    section: Top Focus > Feature A\n",
        encoding="utf-8",
    )
    builder = ReportBuilder(None, _config(glossary_path=path))

    result = builder.build(PRIOR_REPORT, _items())

    assert result.decisions[2].section_id == "S0_0"


def test_examples_reach_the_oracle() -> None:
    oracle = _StubOracle()
    builder = ReportBuilder(oracle, _config())
    examples = [HistoricalExample(description="support ticket backlog review", section_id="S2_0")]

    builder.build(PRIOR_REPORT, _items(), examples=examples)

    assert "support ticket backlog review" in oracle.requests[0].user_prompt


def test_guidance_is_loaded_from_guide_path(tmp_path: Path) -> None:
    guide = tmp_path / "guide.md"
    guide.write_text("Support tickets belong to Support Cases.", encoding="utf-8")
    oracle = _StubOracle()
    builder = ReportBuilder(oracle, _config(guide_path=guide))

    builder.build(PRIOR_REPORT, _items())

    assert "Support tickets belong to Support Cases." in oracle.requests[0].system_prompt


def test_invalid_config_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        ReportBuilder(None, MergeConfiguration(confidence_threshold=1.5))
