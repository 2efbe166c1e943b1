"""Optional second oracle pass that reviews section assignments."""

from __future__ import annotations

import logging
from typing import MutableMapping, Sequence

from report_merge.errors import CriticError
from report_merge.llm import LLMParseError
from report_merge.models import (
    ClassificationDecision,
    CriticFlag,
    LLMUsage,
    SectionOption,
    WorkItem,
)

from .oracle import PURPOSE_CRITIC, Oracle, OracleRequest, usage_from_error
from .prompt_factory import build_critic_prompts
from .response_parser import parse_critic_response

logger = logging.getLogger(__name__)


def run_critic(
    oracle: Oracle,
    items: Sequence[WorkItem],
    decisions: MutableMapping[int, ClassificationDecision],
    options: Sequence[SectionOption],
) -> tuple[list[CriticFlag], LLMUsage]:
    """Ask the oracle to flag misclassified items.

    Raises:
        CriticError: If the call or its reply fails. The error carries any
            usage already spent.
    """
    system_prompt, user_prompt = build_critic_prompts(items, decisions, options)
    request = OracleRequest(
        purpose=PURPOSE_CRITIC,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        items=list(items),
        decisions=dict(decisions),
    )
    logger.info("Running critic over %d decisions", len(decisions))

    try:
        reply = oracle(request)
    except Exception as exc:
        raise CriticError(f"critic call failed: {exc}", usage=usage_from_error(exc)) from exc

    try:
        flags = parse_critic_response(reply.text, usage=reply.usage)
    except LLMParseError as exc:
        raise CriticError(f"critic reply could not be parsed: {exc}", usage=reply.usage) from exc
    return flags, reply.usage


def apply_critic_flags(
    decisions: MutableMapping[int, ClassificationDecision],
    flags: Sequence[CriticFlag],
    options: Sequence[SectionOption],
) -> int:
    """Move flagged items to the suggested section.

    Only the section changes; confidence, status and tickets are kept. Flags
    naming an unknown section or an item without a decision are ignored.
    Returns the number of decisions changed.
    """
    valid = {option.id for option in options}
    moved = 0
    for flag in flags:
        suggested = flag.suggested_section_id
        if not suggested or suggested not in valid:
            continue
        decision = decisions.get(flag.id)
        if decision is None:
            continue
        logger.info(
            "Critic reclassified item=%d from=%s to=%s reason=%r",
            flag.id,
            decision.section_id,
            suggested,
            flag.reason,
        )
        decisions[flag.id] = decision.model_copy(update={"section_id": suggested})
        moved += 1
    return moved
