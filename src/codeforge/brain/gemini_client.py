"""
brain/gemini_client.py — Google Gemini client (default provider)

Built on the `google-genai` SDK. Request and response translation lives in
module-level functions so it can be exercised without a live client:

    _to_contents(messages)        -> (system_instruction, [Content])
    _to_tool(tools)               -> Tool with one FunctionDeclaration per tool
    _to_response(response, model) -> LLMResponse

Text parts between function calls are grouped into one output segment, so
"Hel" + "lo" comes back as TextPartsOutput(["Hel", "lo"]).
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from google import genai
from google.genai import types as genai_types

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

_JSON_TYPES = {
    "string": genai_types.Type.STRING,
    "integer": genai_types.Type.INTEGER,
    "number": genai_types.Type.NUMBER,
    "boolean": genai_types.Type.BOOLEAN,
    "array": genai_types.Type.ARRAY,
    "object": genai_types.Type.OBJECT,
}

# first matching needle wins
_ERROR_RULES: list[tuple[tuple[str, ...], type[LLMError]]] = [
    (("429", "resource_exhausted", "quota", "rate limit"), LLMRateLimitError),
    (("too long", "context window", "exceeds the maximum number of tokens"), LLMContextError),
    (("401", "403", "api key", "permission_denied"), LLMConnectionError),
    (("500", "503", "unavailable", "deadline", "timed out"), LLMConnectionError),
    (("400", "invalid_argument"), LLMInvalidRequestError),
]


class GeminiClient(BaseLLMClient):
    provider = "gemini"

    def __init__(self, api_key: str):
        super().__init__(api_key=api_key)
        self._client = genai.Client(api_key=api_key)

    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
        tools: Optional[list[ToolSchema]] = None,
    ) -> LLMResponse:
        system_instruction, contents = _to_contents(messages)
        log.debug(
            "gemini.generate.start",
            model=config.model,
            contents=len(contents),
            tools=len(tools or []),
        )

        request_config = genai_types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=config.temperature,
            top_p=config.top_p,
            max_output_tokens=config.max_tokens,
            tools=[_to_tool(tools)] if tools else None,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=config.model,
                contents=contents,
                config=request_config,
            )
        except Exception as e:
            raise _normalise_error(e) from e

        result = _to_response(response, config.model)
        log.debug(
            "gemini.generate.complete",
            model=config.model,
            finish_reason=result.finish_reason,
            segments=len(result.output),
            tool_calls=len(result.tool_calls),
        )
        return result


# ─────────────────────────────────────────────────────────────────────────────
# Request translation
# ─────────────────────────────────────────────────────────────────────────────


def _to_contents(messages: list[Message]) -> tuple[Optional[str], list[genai_types.Content]]:
    """
    System messages are joined into the system instruction. Consecutive tool
    results are sent back together in one user Content. Turns that carry
    nothing (no text, no calls) are dropped; Gemini rejects empty Contents.
    """
    system_parts: list[str] = []
    contents: list[genai_types.Content] = []

    for msg in messages:
        if msg.role == Role.SYSTEM:
            if msg.content:
                system_parts.append(msg.content)
            continue

        parts = _message_parts(msg)
        if not parts:
            continue
        role = "model" if msg.role == Role.ASSISTANT else "user"

        if msg.role == Role.TOOL and contents and _is_tool_reply(contents[-1]):
            contents[-1].parts.extend(parts)
        else:
            contents.append(genai_types.Content(role=role, parts=parts))

    return ("\n\n".join(system_parts) or None), contents


def _message_parts(msg: Message) -> list[genai_types.Part]:
    if msg.role == Role.TOOL:
        if msg.tool_result is None:
            return []
        return [genai_types.Part.from_function_response(
            name=msg.tool_result.name,
            response={"result": msg.tool_result.content},
        )]

    parts = []
    if msg.content:
        parts.append(genai_types.Part.from_text(text=msg.content))
    if msg.role == Role.ASSISTANT:
        for call in msg.tool_calls or []:
            parts.append(genai_types.Part.from_function_call(name=call.name, args=call.arguments))
    elif not parts:
        # an empty user turn still has to occupy its slot
        parts.append(genai_types.Part.from_text(text=""))
    return parts


def _is_tool_reply(content: genai_types.Content) -> bool:
    return content.role == "user" and bool(content.parts) and all(
        p.function_response is not None for p in content.parts
    )


def _to_tool(tools: list[ToolSchema]) -> genai_types.Tool:
    return genai_types.Tool(function_declarations=[
        genai_types.FunctionDeclaration(
            name=t.name,
            description=t.description,
            parameters=_to_schema(t.parameters),
        )
        for t in tools
    ])


def _to_schema(definition: dict[str, Any]) -> genai_types.Schema:
    """JSON-schema fragment to Gemini Schema, recursing into objects and arrays."""
    json_type = definition.get("type", "string")
    fields: dict[str, Any] = {"type": _JSON_TYPES.get(json_type, genai_types.Type.STRING)}
    if definition.get("description"):
        fields["description"] = definition["description"]
    if json_type == "object":
        fields["properties"] = {
            name: _to_schema(sub) for name, sub in definition.get("properties", {}).items()
        }
        if definition.get("required"):
            fields["required"] = list(definition["required"])
    elif json_type == "array":
        fields["items"] = _to_schema(definition.get("items", {"type": "string"}))
    return genai_types.Schema(**fields)


# ─────────────────────────────────────────────────────────────────────────────
# Response translation
# ─────────────────────────────────────────────────────────────────────────────


def _to_response(response, model: str) -> LLMResponse:
    usage = _usage(response)
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        feedback = getattr(response, "prompt_feedback", None)
        log.warning("gemini.no_candidates", model=model, prompt_feedback=str(feedback) if feedback else None)
        return LLMResponse(
            output=[],
            finish_reason=FinishReason.ERROR,
            usage=usage,
            model=model,
            provider=Provider.GEMINI,
        )

    candidate = candidates[0]
    output = []
    tool_calls: list[ToolCall] = []
    pending_text: list[str] = []

    content = getattr(candidate, "content", None)
    for part in (getattr(content, "parts", None) or []):
        if getattr(part, "text", None):
            pending_text.append(part.text)
            continue
        call = getattr(part, "function_call", None)
        if call is None:
            continue
        if pending_text:
            output.append(text_segment(pending_text))
            pending_text = []
        tool_calls.append(ToolCall(
            id=getattr(call, "id", None) or str(uuid.uuid4()),
            name=call.name,
            arguments=dict(call.args or {}),
        ))
        output.append(OtherOutput(type="tool_call"))
    if pending_text:
        output.append(text_segment(pending_text))

    return LLMResponse(
        content=flatten_text(output),
        output=output,
        tool_calls=tool_calls,
        finish_reason=_finish_reason(candidate, tool_calls),
        usage=usage,
        model=model,
        provider=Provider.GEMINI,
    )


def _finish_reason(candidate, tool_calls: list[ToolCall]) -> FinishReason:
    if tool_calls:
        return FinishReason.TOOL_CALLS
    reason = str(getattr(candidate, "finish_reason", "") or "").upper()
    if "MAX_TOKENS" in reason:
        return FinishReason.LENGTH
    if any(blocked in reason for blocked in ("SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED")):
        return FinishReason.ERROR
    return FinishReason.STOP


def _usage(response) -> TokenUsage:
    meta = getattr(response, "usage_metadata", None)
    if meta is None:
        return TokenUsage()
    return TokenUsage(
        input_tokens=getattr(meta, "prompt_token_count", 0) or 0,
        output_tokens=getattr(meta, "candidates_token_count", 0) or 0,
    )


def _normalise_error(exc: Exception) -> LLMError:
    message = str(exc)
    lowered = message.lower()
    for needles, error_cls in _ERROR_RULES:
        if any(needle in lowered for needle in needles):
            return error_cls(message, provider="gemini")
    return LLMError(message, provider="gemini")
