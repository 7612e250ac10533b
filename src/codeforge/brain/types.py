"""
brain/types.py — Messages, tool schemas and model output

The agent and the post-processor only ever see these types; each provider
client translates to and from its SDK's shapes.

A model reply is an ordered list of output segments:

    TextOutput       one text string
    TextPartsOutput  several text fragments that belong together
    OtherOutput      anything that is not text (a tool call, typically)

Segments are discriminated by `kind`, so a journaled LLMResponse validates
back into the right segment classes.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Provider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class FinishReason(str, Enum):
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    ERROR = "error"             # blocked or empty reply


# ── Tool calling ─────────────────────────────────────────────────────────────


class ToolCall(BaseModel):
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    tool_call_id: str
    name: str
    content: str
    is_error: bool = False


class ToolSchema(BaseModel):
    """What the model is told about a tool; parameters is a JSON schema."""
    name: str
    description: str
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )


# ── Output segments ──────────────────────────────────────────────────────────


class TextOutput(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class TextPartsOutput(BaseModel):
    kind: Literal["text_parts"] = "text_parts"
    parts: list[str] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(self.parts)


class OtherOutput(BaseModel):
    kind: Literal["other"] = "other"
    type: str = "tool_call"


OutputSegment = Annotated[
    Union[TextOutput, TextPartsOutput, OtherOutput],
    Field(discriminator="kind"),
]


def text_segment(parts: list[str]) -> Union[TextOutput, TextPartsOutput]:
    if len(parts) == 1:
        return TextOutput(text=parts[0])
    return TextPartsOutput(parts=parts)


def flatten_text(output: Sequence[OutputSegment]) -> Optional[str]:
    """All text in the reply, concatenated; None when there is none."""
    text = "".join(seg.text for seg in output if seg.kind != "other")
    return text or None


# ── Transcript ───────────────────────────────────────────────────────────────


class Message(BaseModel):
    """
    One transcript entry. Assistant turns may carry tool_calls; each tool
    result travels back as its own TOOL message.
    """
    role: Role
    content: Optional[str] = None
    tool_calls: Optional[list[ToolCall]] = None
    tool_result: Optional[ToolResult] = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=Role.ASSISTANT, content=content)

    @classmethod
    def tool_response(cls, result: ToolResult) -> "Message":
        return cls(role=Role.TOOL, tool_result=result, content=result.content)


# ── Request / response ───────────────────────────────────────────────────────


class LLMConfig(BaseModel):
    """Per-call model settings, built once per workflow from the llm section."""
    model: str
    temperature: float = 0.1
    max_tokens: int = 8192
    top_p: float = 1.0
    timeout_seconds: float = 120.0


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class LLMResponse(BaseModel):
    """
    `output` keeps every segment in provider order; `content` is the
    flattened text replayed into the transcript on the next turn.
    """
    content: Optional[str] = None
    output: list[OutputSegment] = Field(default_factory=list)
    tool_calls: list[ToolCall] = Field(default_factory=list)
    finish_reason: FinishReason = FinishReason.STOP
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str = ""
    provider: Provider = Provider.GEMINI
