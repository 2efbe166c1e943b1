"""Call contract between the classifier and the external oracle.

The package never talks to a model itself. Callers hand in an *oracle*: any
callable taking an :class:`OracleRequest` and returning an
:class:`OracleReply`. Requests carry both the rendered prompts (for
LLM-backed oracles) and the structured batch and context they were rendered
from (for rule-based oracles and tests).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Sequence

from report_merge.llm.service import LLMService
from report_merge.models import (
    ClassificationDecision,
    CorrectionRecord,
    ExistingItemContext,
    HistoricalExample,
    LLMUsage,
    SectionOption,
    WorkItem,
)

PURPOSE_CLASSIFY = "classify"
PURPOSE_CRITIC = "critic"
PURPOSE_RETROSPECTIVE = "retrospective"


@dataclass(frozen=True)
class OracleContext:
    """Build-wide context shared by every classification batch."""

    options: Sequence[SectionOption]
    existing: Sequence[ExistingItemContext] = ()
    corrections: Sequence[CorrectionRecord] = ()
    guidance: str = ""


@dataclass(frozen=True)
class OracleRequest:
    purpose: str
    system_prompt: str
    user_prompt: str
    batch_index: int = 0
    items: Sequence[WorkItem] = ()
    context: OracleContext | None = None
    examples: Sequence[HistoricalExample] = ()
    # Current decisions, only set for critic requests.
    decisions: Mapping[int, ClassificationDecision] | None = None


@dataclass
class OracleReply:
    text: str
    usage: LLMUsage = field(default_factory=LLMUsage)


Oracle = Callable[[OracleRequest], OracleReply]


class LLMOracle:
    """Adapt an :class:`LLMService` provider chain to the oracle contract."""

    def __init__(self, service: LLMService) -> None:
        self._service = service

    def __call__(self, request: OracleRequest) -> OracleReply:
        response = self._service.generate(request.system_prompt, request.user_prompt)
        return OracleReply(text=response.text, usage=response.usage)


def usage_from_error(exc: BaseException) -> LLMUsage | None:
    """Return token usage attached to a failed oracle call, if any."""

    usage = getattr(exc, "usage", None)
    return usage if isinstance(usage, LLMUsage) else None
