"""
brain/anthropic_client.py — Anthropic Claude client

Claude answers with a list of content blocks. Text blocks between tool_use
blocks are grouped into one output segment, the same way the Gemini client
groups text parts.
"""

from __future__ import annotations

from typing import Optional

import anthropic
from anthropic import AsyncAnthropic

from codeforge.brain.llm_client import (
    BaseLLMClient,
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
    Provider,
    Role,
    TokenUsage,
    ToolCall,
    ToolSchema,
    flatten_text,
    text_segment,
)
from codeforge.observability.logger import get_logger

log = get_logger(__name__)

_STOP_REASONS = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "tool_use": FinishReason.TOOL_CALLS,
    "max_tokens": FinishReason.LENGTH,
    "refusal": FinishReason.ERROR,
}


class AnthropicClient(BaseLLMClient):
    provider = "anthropic"

    def __init__(self, api_key: str, base_url: Optional[str] = None):
        super().__init__(api_key=api_key, base_url=base_url)
        self._client = AsyncAnthropic(api_key=api_key, base_url=base_url)

    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
        tools: Optional[list[ToolSchema]] = None,
    ) -> LLMResponse:
        system, turns = _to_turns(messages)
        request: dict = {
            "model": config.model,
            "messages": turns,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
            "timeout": config.timeout_seconds,
        }
        if system:
            request["system"] = system
        if tools:
            request["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]

        log.debug("anthropic.generate.start", model=config.model, turns=len(turns))
        try:
            reply = await self._client.messages.create(**request)
        except anthropic.RateLimitError as e:
            raise LLMRateLimitError(str(e), provider="anthropic") from e
        except anthropic.BadRequestError as e:
            if "prompt is too long" in str(e).lower() or "context" in str(e).lower():
                raise LLMContextError(str(e), provider="anthropic") from e
            raise LLMInvalidRequestError(str(e), provider="anthropic") from e
        except (anthropic.AuthenticationError, anthropic.APIConnectionError) as e:
            raise LLMConnectionError(str(e), provider="anthropic") from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise LLMConnectionError(str(e), provider="anthropic", status_code=e.status_code) from e
            raise LLMError(str(e), provider="anthropic", status_code=e.status_code) from e

        result = _to_response(reply)
        log.debug(
            "anthropic.generate.complete",
            model=result.model,
            finish_reason=result.finish_reason,
            tool_calls=len(result.tool_calls),
        )
        return result


def _to_turns(messages: list[Message]) -> tuple[str, list[dict]]:
    system_parts: list[str] = []
    turns: list[dict] = []

    for msg in messages:
        if msg.role == Role.SYSTEM:
            system_parts.append(msg.content or "")
        elif msg.role == Role.USER:
            turns.append({"role": "user", "content": msg.content or ""})
        elif msg.role == Role.ASSISTANT:
            blocks: list[dict] = [{"type": "text", "text": msg.content}] if msg.content else []
            blocks += [
                {"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments}
                for call in msg.tool_calls or []
            ]
            if blocks:
                turns.append({"role": "assistant", "content": blocks})
        elif msg.tool_result:
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_result.tool_call_id,
                "content": msg.tool_result.content,
                "is_error": msg.tool_result.is_error,
            }
            # consecutive tool results share one user turn
            if turns and turns[-1]["role"] == "user" and isinstance(turns[-1]["content"], list):
                turns[-1]["content"].append(block)
            else:
                turns.append({"role": "user", "content": [block]})

    return "\n\n".join(system_parts), turns


def _to_response(reply) -> LLMResponse:
    output = []
    tool_calls: list[ToolCall] = []
    pending_text: list[str] = []

    for block in reply.content:
        if block.type == "text":
            pending_text.append(block.text)
        elif block.type == "tool_use":
            if pending_text:
                output.append(text_segment(pending_text))
                pending_text = []
            tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=dict(block.input or {})))
            output.append(OtherOutput(type="tool_call"))
    if pending_text:
        output.append(text_segment(pending_text))

    return LLMResponse(
        content=flatten_text(output),
        output=output,
        tool_calls=tool_calls,
        finish_reason=_STOP_REASONS.get(reply.stop_reason or "end_turn", FinishReason.STOP),
        usage=TokenUsage(
            input_tokens=reply.usage.input_tokens,
            output_tokens=reply.usage.output_tokens,
        ),
        model=reply.model,
        provider=Provider.ANTHROPIC,
    )
