"""
tools/types.py — Tool System Data Models

Shared types used across the tool registry, tool bus and the sandbox tools.

Tool handlers never raise across the agent boundary. A handler that wants to
report a failure returns ToolOutcome.failure(text); the bus turns it into an
error ToolResult whose text is still delivered to the agent as ordinary tool
output.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# ─────────────────────────────────────────────────────────────────────────────
# Tool registration metadata
# ─────────────────────────────────────────────────────────────────────────────


class ToolSchema(BaseModel):
    """
    Full metadata for a registered tool.
    Stored in ToolRegistry and translated for the LLM brain.
    """
    name: str
    description: str
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )
    category: str = "sandbox"
    enabled: bool = True

    def to_llm_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Handler outcome
# ─────────────────────────────────────────────────────────────────────────────


class ToolOutcome(BaseModel):
    """Ok(text) | Failure(text) returned by a tool handler."""
    text: str
    ok: bool = True

    @classmethod
    def success(cls, text: str) -> "ToolOutcome":
        return cls(text=text, ok=True)

    @classmethod
    def failure(cls, text: str) -> "ToolOutcome":
        return cls(text=text, ok=False)


# ─────────────────────────────────────────────────────────────────────────────
# Runtime tool call / result types
# ─────────────────────────────────────────────────────────────────────────────


class ToolCall(BaseModel):
    """A tool invocation from the LLM, before execution."""
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """The result of a tool call after execution."""
    tool_call_id: str
    name: str
    content: str                        # JSON string or plain text
    is_error: bool = False
    duration_ms: float = 0.0

    @classmethod
    def success(
        cls,
        tool_call_id: str,
        name: str,
        content: str,
        duration_ms: float = 0.0,
    ) -> "ToolResult":
        return cls(
            tool_call_id=tool_call_id,
            name=name,
            content=content,
            is_error=False,
            duration_ms=duration_ms,
        )

    @classmethod
    def error(
        cls,
        tool_call_id: str,
        name: str,
        error_message: str,
        duration_ms: float = 0.0,
    ) -> "ToolResult":
        return cls(
            tool_call_id=tool_call_id,
            name=name,
            content=f"Error: {error_message}",
            is_error=True,
            duration_ms=duration_ms,
        )

    @classmethod
    def failed(
        cls,
        tool_call_id: str,
        name: str,
        content: str,
        duration_ms: float = 0.0,
    ) -> "ToolResult":
        """A handler-reported failure; the text reaches the agent verbatim."""
        return cls(
            tool_call_id=tool_call_id,
            name=name,
            content=content,
            is_error=True,
            duration_ms=duration_ms,
        )
