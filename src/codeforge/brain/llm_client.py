"""
brain/llm_client.py — Model-invocation collaborator

Everything that talks to a model goes through one call:

    response = await client.generate(messages, config, tools)

The code agent makes it once per turn with the sandbox tools attached; the
post-processor makes it twice per run without tools.

ResilientLLMClient puts a RetryPolicy, built from the `llm.retry` section of
config.yaml, in front of an ordered provider chain (`llm.default_provider`
followed by `llm.fallback_providers`). Transient failures are retried on the
same provider; when its attempts are used up the next provider in the chain
gets the same request. Failures a retry cannot fix propagate at once.
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from codeforge.brain.types import LLMConfig, LLMResponse, Message, ToolSchema
from codeforge.observability.logger import get_logger

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────


class LLMError(Exception):
    """A model call failed after the provider SDK error was normalised."""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class LLMConnectionError(LLMError):
    """Network failure, timeout, 5xx, or rejected credentials."""


class LLMRateLimitError(LLMError):
    """Quota or rate limit hit; retry_after is honoured when the provider sends it."""

    def __init__(self, message: str, provider: str = "", retry_after: Optional[float] = None):
        super().__init__(message, provider)
        self.retry_after = retry_after


class LLMContextError(LLMError):
    """The transcript no longer fits the model's context window."""


class LLMInvalidRequestError(LLMError):
    """The provider rejected the request as malformed."""


# retried on the same provider
TRANSIENT_ERRORS = (LLMConnectionError, LLMRateLimitError)
# another provider would reject the same transcript too
FATAL_ERRORS = (LLMContextError, LLMInvalidRequestError)


# ─────────────────────────────────────────────────────────────────────────────
# Client contract
# ─────────────────────────────────────────────────────────────────────────────


class BaseLLMClient(ABC):
    """One provider. Subclasses map SDK errors onto the LLMError family."""

    provider: str = ""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key
        self.base_url = base_url

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
        tools: Optional[list[ToolSchema]] = None,
    ) -> LLMResponse:
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


# ─────────────────────────────────────────────────────────────────────────────
# Retry policy
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    @classmethod
    def from_config(cls, retry) -> "RetryPolicy":
        """Build from the settings' `llm.retry` section."""
        return cls(
            max_attempts=max(1, retry.max_attempts),
            base_delay=retry.base_delay,
            max_delay=retry.max_delay,
        )

    def backoff(self, failed_attempts: int, error: LLMError) -> float:
        """Seconds to wait after `failed_attempts` consecutive transient failures."""
        retry_after = getattr(error, "retry_after", None)
        if retry_after:
            return min(retry_after, self.max_delay)
        exponential = self.base_delay * (2 ** (failed_attempts - 1))
        return min(exponential + random.uniform(0, 0.5), self.max_delay)


# ─────────────────────────────────────────────────────────────────────────────
# Provider chain
# ─────────────────────────────────────────────────────────────────────────────


class ResilientLLMClient(BaseLLMClient):
    """
    Retry + failover over an ordered chain of provider clients.

        client = ResilientLLMClient(
            [gemini, openai],
            RetryPolicy.from_config(settings.llm.retry),
        )
    """

    def __init__(self, chain: Sequence[BaseLLMClient], policy: Optional[RetryPolicy] = None):
        super().__init__()
        if not chain:
            raise ValueError("ResilientLLMClient needs at least one provider client")
        self.chain: tuple[BaseLLMClient, ...] = tuple(chain)
        self.policy = policy or RetryPolicy()

    @property
    def primary(self) -> BaseLLMClient:
        return self.chain[0]

    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
        tools: Optional[list[ToolSchema]] = None,
    ) -> LLMResponse:
        failures: list[str] = []
        for position, client in enumerate(self.chain):
            if failures:
                log.warning("llm.failing_over", to_client=repr(client), after=failures[-1])
            try:
                return await self._with_retries(client, messages, config, tools)
            except FATAL_ERRORS:
                raise
            except LLMError as e:
                failures.append(f"{client!r}: {e}")
                log.error(
                    "llm.provider_exhausted",
                    client=repr(client),
                    error=str(e),
                    error_type=type(e).__name__,
                    remaining=len(self.chain) - position - 1,
                )
        raise LLMError(
            f"All LLM clients failed. {'; '.join(failures)}",
            provider="all",
        )

    async def _with_retries(
        self,
        client: BaseLLMClient,
        messages: list[Message],
        config: LLMConfig,
        tools: Optional[list[ToolSchema]],
    ) -> LLMResponse:
        failed = 0
        while True:
            try:
                return await client.generate(messages=messages, config=config, tools=tools)
            except TRANSIENT_ERRORS as e:
                failed += 1
                if failed >= self.policy.max_attempts:
                    raise
                delay = self.policy.backoff(failed, e)
                log.warning(
                    "llm.retrying",
                    client=repr(client),
                    attempt=failed + 1,
                    max_attempts=self.policy.max_attempts,
                    delay_s=round(delay, 2),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)

    def __repr__(self) -> str:
        return f"<ResilientLLMClient chain={[repr(c) for c in self.chain]}>"
