"""Turn oracle reply text into validated decision models."""

from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel, ValidationError

from report_merge.llm import LLMParseError, parse_json_response
from report_merge.models import (
    ClassificationDecision,
    ClassifiedItem,
    CriticFlag,
    LLMUsage,
    RetroSuggestion,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse_array(
    text: str, model: type[ModelT], *, usage: LLMUsage | None = None
) -> list[ModelT]:
    try:
        data = parse_json_response(text)
    except ValueError as exc:
        raise LLMParseError(
            f"Could not extract JSON from response: {exc}", response_text=text, usage=usage
        ) from exc

    if not isinstance(data, list):
        raise LLMParseError(
            f"Expected a top-level JSON array, got {type(data).__name__}",
            response_text=text,
            usage=usage,
        )

    parsed: list[ModelT] = []
    for position, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise LLMParseError(
                f"Entry {position} is not a JSON object", response_text=text, usage=usage
            )
        try:
            parsed.append(model.model_validate(entry))
        except ValidationError as exc:
            raise LLMParseError(
                f"Entry {position} failed validation: {exc}", response_text=text, usage=usage
            ) from exc
    return parsed


def parse_section_response(
    text: str, *, usage: LLMUsage | None = None
) -> dict[int, ClassificationDecision]:
    """Parse a classifier reply into decisions keyed by work item id.

    Later entries for the same id replace earlier ones. Ids that do not
    belong to the batch are kept; the merge engine ignores them.
    """
    return {
        entry.id: entry.to_decision()
        for entry in _parse_array(text, ClassifiedItem, usage=usage)
    }


def parse_critic_response(text: str, *, usage: LLMUsage | None = None) -> list[CriticFlag]:
    return _parse_array(text, CriticFlag, usage=usage)


def parse_retrospective_response(
    text: str, *, usage: LLMUsage | None = None
) -> list[RetroSuggestion]:
    return _parse_array(text, RetroSuggestion, usage=usage)
