from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from report_merge.classification import OracleReply, OracleRequest, apply_critic_flags, run_critic
from report_merge.errors import CriticError
from report_merge.llm import LLMProviderError
from report_merge.models import ClassificationDecision, CriticFlag, LLMUsage, SectionOption, WorkItem

OPTIONS = [
    SectionOption(id="S0_0", category=0, subsection=0, label="Ops"),
    SectionOption(id="S1_0", category=1, subsection=0, label="Dev > Backend"),
]

ITEMS = [
    WorkItem(id=1, description="Restore database backup", status="done"),
    WorkItem(id=2, description="Add pagination to API"),
]


class _ReplyOracle:
    def __init__(self, text: str, usage: LLMUsage | None = None) -> None:
        self.text = text
        self.usage = usage or LLMUsage(input_tokens=4, output_tokens=2)
        self.requests: list[OracleRequest] = []

    def __call__(self, request: OracleRequest) -> OracleReply:
        self.requests.append(request)
        return OracleReply(text=self.text, usage=self.usage)


class _FailingOracle:
    def __call__(self, request: OracleRequest) -> OracleReply:
        raise LLMProviderError("timeout", usage=LLMUsage(input_tokens=9))


def _decisions() -> dict[int, ClassificationDecision]:
    return {
        1: ClassificationDecision(section_id="S1_0", normalized_status="done", confidence=0.8),
        2: ClassificationDecision(section_id="S1_0", confidence=0.9),
    }


def test_run_critic_returns_flags_and_usage() -> None:
    oracle = _ReplyOracle(
        json.dumps([{"id": 1, "reason": "backups are ops work", "suggested_section_id": "S0_0"}])
    )

    flags, usage = run_critic(oracle, ITEMS, _decisions(), OPTIONS)

    assert flags == [CriticFlag(id=1, reason="backups are ops work", suggested_section_id="S0_0")]
    assert usage.input_tokens == 4
    request = oracle.requests[0]
    assert request.purpose == "critic"
    assert "ID:1 | section: S1_0 | status: done | desc: Restore database backup" in request.user_prompt
    assert "- S0_0: Ops" in request.system_prompt
    assert request.decisions is not None and set(request.decisions) == {1, 2}


def test_transport_failure_becomes_critic_error() -> None:
    with pytest.raises(CriticError) as exc_info:
        run_critic(_FailingOracle(), ITEMS, _decisions(), OPTIONS)

    assert exc_info.value.usage.input_tokens == 9


def test_parse_failure_keeps_reply_usage() -> None:
    oracle = _ReplyOracle("all good!", usage=LLMUsage(input_tokens=6, output_tokens=1))

    with pytest.raises(CriticError) as exc_info:
        run_critic(oracle, ITEMS, _decisions(), OPTIONS)

    assert exc_info.value.usage.input_tokens == 6
    assert exc_info.value.usage.output_tokens == 1


def test_apply_critic_flags_only_changes_section() -> None:
    decisions = _decisions()
    flags = [
        CriticFlag(id=1, suggested_section_id="S0_0", reason="ops"),
        CriticFlag(id=2, suggested_section_id="S9_9", reason="unknown section"),
        CriticFlag(id=3, suggested_section_id="S0_0", reason="unknown item"),
        CriticFlag(id=2, suggested_section_id="", reason="no suggestion"),
    ]

    moved = apply_critic_flags(decisions, flags, OPTIONS)

    assert moved == 1
    assert decisions[1].section_id == "S0_0"
    assert decisions[1].confidence == pytest.approx(0.8)
    assert decisions[1].normalized_status == "done"
    assert decisions[2].section_id == "S1_0"
    assert 3 not in decisions
