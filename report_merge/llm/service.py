"""Failover across a priority-ordered list of LLM providers."""

from __future__ import annotations

import logging
from typing import Sequence

from report_merge.models import LLMUsage

from .provider import (
    LLMProvider,
    LLMProviderError,
    LLMQuotaError,
    LLMResponse,
    ProviderReporter,
    ProviderStatus,
)

logger = logging.getLogger(__name__)


class LLMService:
    """Send each prompt to the first provider that still has quota.

    A quota error moves on to the next provider; any other provider error is
    final. Tokens spent by providers that were skipped are added to the usage
    of the reply, or of the error that ends the request.
    """

    def __init__(
        self,
        providers: Sequence[LLMProvider],
        *,
        reporter: ProviderReporter | None = None,
    ) -> None:
        if not providers:
            raise ValueError("LLMService needs at least one provider")
        self._providers = list(providers)
        self._reporter = reporter

    def provider_order(self) -> list[str]:
        return [p.name for p in self._providers]

    def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        spent = LLMUsage()
        quota_error: LLMQuotaError | None = None

        for provider in self._providers:
            try:
                response = provider.generate(system_prompt, user_prompt)
            except LLMQuotaError as exc:
                logger.warning("Provider %s out of quota, trying next: %s", provider.name, exc)
                spent.add(exc.usage)
                quota_error = exc
                self._notify(provider.name, ProviderStatus.QUOTA, exc)
                continue
            except LLMProviderError as exc:
                logger.error("Provider %s failed: %s", provider.name, exc)
                spent.add(exc.usage)
                exc.usage = spent
                self._notify(provider.name, ProviderStatus.FAILURE, exc)
                raise

            response.usage.add(spent)
            self._notify(provider.name, ProviderStatus.SUCCESS, None)
            return response

        raise LLMQuotaError(
            f"All providers exceeded quota ({', '.join(self.provider_order())})",
            usage=spent,
        ) from quota_error

    def _notify(
        self, provider_name: str, status: ProviderStatus, error: Exception | None
    ) -> None:
        if self._reporter is not None:
            self._reporter(provider_name, status, error)
