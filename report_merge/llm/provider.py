"""Provider contract used behind :class:`~report_merge.llm.service.LLMService`.

A provider turns one rendered system/user prompt pair into raw reply text.
Concrete providers (hosted model SDKs) live with the caller; this package only
defines what they must look like and how they signal failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol

from report_merge.models import LLMUsage

# Called after every provider attempt with (provider name, outcome, error).
ProviderReporter = Callable[[str, "ProviderStatus", Exception | None], None]

MAX_ERROR_REPLY_CHARS = 512


class ProviderStatus(str, Enum):
    """Outcome of a single provider attempt."""

    SUCCESS = "success"
    QUOTA = "quota"
    FAILURE = "failure"


class LLMProviderError(Exception):
    """A provider could not produce a reply.

    ``usage`` is set when the provider had already spent tokens, so the cost
    of a failed classification batch can still be accounted for.
    """

    def __init__(self, message: str, *, usage: LLMUsage | None = None) -> None:
        super().__init__(message)
        self.usage = usage


class LLMQuotaError(LLMProviderError):
    """Quota or rate limit exhausted; the service moves on to the next provider."""


class LLMParseError(LLMProviderError):
    """A reply arrived but did not have the expected JSON shape.

    The raw reply is kept on ``response_text`` and shown (shortened) in the
    message, which is usually the only clue to what the model sent.
    """

    def __init__(
        self,
        message: str,
        *,
        response_text: str | None = None,
        usage: LLMUsage | None = None,
    ) -> None:
        super().__init__(message, usage=usage)
        self.response_text = response_text

    def __str__(self) -> str:
        message = super().__str__()
        if self.response_text is None:
            return message
        reply = self.response_text
        if len(reply) > MAX_ERROR_REPLY_CHARS:
            reply = f"{reply[:MAX_ERROR_REPLY_CHARS]}... [{len(self.response_text)} chars]"
        return f"{message}\nreply: {reply}"


@dataclass
class LLMResponse:
    text: str
    usage: LLMUsage = field(default_factory=LLMUsage)


class LLMProvider(Protocol):
    """Anything with a ``name`` and a ``generate`` method."""

    name: str

    def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        """Return the model's reply to one prompt pair.

        Raises:
            LLMQuotaError: When the provider is out of quota
            LLMProviderError: For any other failure
        """
        ...
