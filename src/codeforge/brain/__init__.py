"""
brain/__init__.py — codeforge LLM Brain

LLMClientFactory turns the `llm` settings section into one client: the
default provider first, then every fallback provider that has a key, all
behind a RetryPolicy built from `llm.retry`.
"""

from __future__ import annotations

from typing import Optional

from codeforge.brain.llm_client import (
    BaseLLMClient,
    ResilientLLMClient,
    RetryPolicy,
    LLMConnectionError,
    LLMContextError,
    LLMError,
    LLMInvalidRequestError,
    LLMRateLimitError,
)
from codeforge.brain.types import (
    FinishReason,
    LLMConfig,
    LLMResponse,
    Message,
    OtherOutput,
    OutputSegment,
    Provider,
    Role,
    TextOutput,
    TextPartsOutput,
    TokenUsage,
    ToolCall,
    ToolResult,
    ToolSchema,
)
from codeforge.observability.logger import get_logger

log = get_logger(__name__)

__all__ = [
    "LLMClientFactory",
    "BaseLLMClient",
    "ResilientLLMClient",
    "RetryPolicy",
    "LLMError",
    "LLMConnectionError",
    "LLMRateLimitError",
    "LLMContextError",
    "LLMInvalidRequestError",
    "Message",
    "LLMConfig",
    "LLMResponse",
    "OutputSegment",
    "TextOutput",
    "TextPartsOutput",
    "OtherOutput",
    "ToolCall",
    "ToolResult",
    "ToolSchema",
    "TokenUsage",
    "Role",
    "Provider",
    "FinishReason",
]


class LLMClientFactory:

    @staticmethod
    def create(
        provider: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> BaseLLMClient:
        provider = provider.lower().strip()
        if provider not in ("gemini", "openai", "anthropic"):
            raise ValueError(
                f"Unknown LLM provider: '{provider}'. Valid options: gemini, openai, anthropic"
            )
        if not api_key:
            raise LLMConnectionError(f"{provider.upper()}_API_KEY is required", provider=provider)

        if provider == "gemini":
            from codeforge.brain.gemini_client import GeminiClient
            return GeminiClient(api_key=api_key)
        if provider == "openai":
            from codeforge.brain.openai_client import OpenAIClient
            return OpenAIClient(api_key=api_key, base_url=base_url)
        from codeforge.brain.anthropic_client import AnthropicClient
        return AnthropicClient(api_key=api_key, base_url=base_url)

    @staticmethod
    def from_settings(settings) -> ResilientLLMClient:
        """
        A fallback provider without a key is skipped with a warning;
        validate_all() has already reported it at startup.
        """
        primary = settings.default_llm_provider
        chain: list[BaseLLMClient] = [
            LLMClientFactory.create(primary, api_key=settings.api_key_for(primary))
        ]
        for name in settings.llm.fallback_providers:
            if name == primary:
                continue
            try:
                chain.append(LLMClientFactory.create(name, api_key=settings.api_key_for(name)))
            except LLMConnectionError as e:
                log.warning("llm.fallback_skipped", provider=name, reason=str(e))

        policy = RetryPolicy.from_config(settings.llm.retry)
        log.debug(
            "llm.chain_built",
            providers=[c.provider for c in chain],
            max_attempts=policy.max_attempts,
        )
        return ResilientLLMClient(chain, policy)
