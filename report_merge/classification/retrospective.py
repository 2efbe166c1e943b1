"""Look for recurring correction patterns worth turning into rules."""

from __future__ import annotations

import logging
from typing import Sequence

from report_merge.errors import OracleError
from report_merge.llm import LLMParseError
from report_merge.models import CorrectionRecord, LLMUsage, RetroSuggestion, SectionOption

from .oracle import PURPOSE_RETROSPECTIVE, Oracle, OracleRequest, usage_from_error
from .prompt_factory import MAX_RETRO_SUGGESTIONS, build_retrospective_prompts
from .response_parser import parse_retrospective_response

logger = logging.getLogger(__name__)


def analyze_corrections(
    oracle: Oracle,
    corrections: Sequence[CorrectionRecord],
    options: Sequence[SectionOption],
    max_suggestions: int = MAX_RETRO_SUGGESTIONS,
) -> tuple[list[RetroSuggestion], LLMUsage]:
    """Suggest glossary terms or guide rules from past corrections.

    Returns no suggestions (and no usage) when there are no corrections.
    At most ``max_suggestions`` are returned even if the oracle sends more.

    Raises:
        OracleError: If the oracle call fails or its reply cannot be parsed
    """
    if not corrections:
        return [], LLMUsage()

    system_prompt, user_prompt = build_retrospective_prompts(
        corrections, options, max_suggestions
    )
    request = OracleRequest(
        purpose=PURPOSE_RETROSPECTIVE,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
    )
    try:
        reply = oracle(request)
    except Exception as exc:
        raise OracleError(
            f"retrospective call failed: {exc}", usage=usage_from_error(exc)
        ) from exc

    try:
        suggestions = parse_retrospective_response(reply.text, usage=reply.usage)
    except LLMParseError as exc:
        raise OracleError(
            f"retrospective reply could not be parsed: {exc}", usage=reply.usage
        ) from exc

    logger.info(
        "Retrospective over %d corrections produced %d suggestions",
        len(corrections),
        len(suggestions),
    )
    return suggestions[:max_suggestions], reply.usage
