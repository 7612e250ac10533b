"""
brain/openai_client.py — OpenAI chat-completions client

Used as a fallback provider. Works against any OpenAI-compatible endpoint
when `base_url` is given.

A chat completion carries at most one text block followed by tool calls, so
the output segments are always [TextOutput?, OtherOutput*].
"""

from __future__ import annotations

import json
from typing import Optional

import openai
from openai import AsyncOpenAI

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
    TextOutput,
    TokenUsage,
    ToolCall,
    ToolSchema,
)
from codeforge.observability.logger import get_logger

log = get_logger(__name__)

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "tool_calls": FinishReason.TOOL_CALLS,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.ERROR,
}


class OpenAIClient(BaseLLMClient):
    provider = "openai"

    def __init__(self, api_key: str, base_url: Optional[str] = None):
        super().__init__(api_key=api_key, base_url=base_url)
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
        tools: Optional[list[ToolSchema]] = None,
    ) -> LLMResponse:
        request: dict = {
            "model": config.model,
            "messages": [_to_chat_message(m) for m in messages if m.role != Role.TOOL or m.tool_result],
            "temperature": config.temperature,
            "top_p": config.top_p,
            "max_tokens": config.max_tokens,
            "timeout": config.timeout_seconds,
        }
        if tools:
            request["tools"] = [_to_function(t) for t in tools]
            request["tool_choice"] = "auto"

        log.debug("openai.generate.start", model=config.model, messages=len(request["messages"]))
        try:
            completion = await self._client.chat.completions.create(**request)
        except openai.RateLimitError as e:
            raise LLMRateLimitError(str(e), provider="openai") from e
        except openai.BadRequestError as e:
            if "context" in str(e).lower() or "too long" in str(e).lower():
                raise LLMContextError(str(e), provider="openai") from e
            raise LLMInvalidRequestError(str(e), provider="openai") from e
        except (openai.AuthenticationError, openai.APIConnectionError) as e:
            raise LLMConnectionError(str(e), provider="openai") from e
        except openai.APIStatusError as e:
            if e.status_code >= 500:
                raise LLMConnectionError(str(e), provider="openai", status_code=e.status_code) from e
            raise LLMError(str(e), provider="openai", status_code=e.status_code) from e

        result = _to_response(completion)
        log.debug(
            "openai.generate.complete",
            model=result.model,
            finish_reason=result.finish_reason,
            tool_calls=len(result.tool_calls),
        )
        return result


def _to_chat_message(msg: Message) -> dict:
    if msg.role == Role.TOOL:
        return {
            "role": "tool",
            "tool_call_id": msg.tool_result.tool_call_id,
            "content": msg.tool_result.content,
        }
    if msg.role == Role.ASSISTANT and msg.tool_calls:
        return {
            "role": "assistant",
            "content": msg.content or None,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in msg.tool_calls
            ],
        }
    return {"role": msg.role.value, "content": msg.content or ""}


def _to_function(tool: ToolSchema) -> dict:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


def _to_response(completion) -> LLMResponse:
    if not completion.choices:
        return LLMResponse(finish_reason=FinishReason.ERROR, model=completion.model, provider=Provider.OPENAI)

    choice = completion.choices[0]
    reply = choice.message
    output = [TextOutput(text=reply.content)] if reply.content else []

    tool_calls: list[ToolCall] = []
    for call in reply.tool_calls or []:
        try:
            arguments = json.loads(call.function.arguments or "{}")
        except json.JSONDecodeError:
            arguments = {"_raw": call.function.arguments}
        tool_calls.append(ToolCall(id=call.id, name=call.function.name, arguments=arguments))
        output.append(OtherOutput(type="tool_call"))

    usage = completion.usage
    return LLMResponse(
        content=reply.content or None,
        output=output,
        tool_calls=tool_calls,
        finish_reason=_FINISH_REASONS.get(choice.finish_reason or "stop", FinishReason.STOP),
        usage=TokenUsage(
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        ),
        model=completion.model,
        provider=Provider.OPENAI,
    )
