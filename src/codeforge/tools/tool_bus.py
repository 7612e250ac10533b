"""
tools/tool_bus.py — Tool Bus

The central dispatcher that sits between the reasoning agent and tool
execution. Every tool call from the LLM is routed through here.

Flow:
  LLM tool_call → ToolBus.dispatch()
    → Registry lookup (is tool registered?)
    → Parameter validation (JSON schema)
    → Handler execution (async, with timeout)
    → ToolResult (success or error)
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Optional

from codeforge.observability.logger import get_logger
from codeforge.tools.tool_registry import ToolRegistry
from codeforge.tools.types import ToolCall, ToolOutcome, ToolResult

log = get_logger(__name__)

# Max output size fed back to LLM; longer results are truncated
MAX_RESULT_CHARS = 20_000

# Default tool execution timeout
DEFAULT_TIMEOUT_SECONDS = 300.0


class ToolBus:
    """
    Routes tool calls from the LLM to their handlers.

    Usage:
        bus = ToolBus(registry)
        result = await bus.dispatch(tool_call)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_result_chars: int = MAX_RESULT_CHARS,
    ):
        self.registry = registry
        self.timeout_seconds = timeout_seconds
        self.max_result_chars = max_result_chars

    async def dispatch(self, tool_call: ToolCall) -> ToolResult:
        """
        Dispatch a tool call through the full pipeline.

        Returns:
            ToolResult (always — never raises, errors are captured in result).
        """
        start_ms = time.monotonic() * 1000

        log.info("tool_bus.dispatch", tool=tool_call.name, tool_call_id=tool_call.id)

        # ── Step 1: Registry lookup ───────────────────────────────────────────
        schema = self.registry.get_schema(tool_call.name)
        handler = self.registry.get_handler(tool_call.name)
        if schema is None or handler is None or not schema.enabled:
            return ToolResult.error(
                tool_call.id,
                tool_call.name,
                f"Unknown tool '{tool_call.name}'. Available tools: "
                f"{self.registry.list_names()}",
            )

        # ── Step 2: Parameter validation ──────────────────────────────────────
        validation_error = _validate_args(tool_call.arguments, schema.parameters)
        if validation_error:
            log.warning("tool_bus.invalid_args", tool=tool_call.name, error=validation_error)
            return ToolResult.error(
                tool_call.id,
                tool_call.name,
                f"Invalid parameters: {validation_error}",
            )

        # ── Step 3: Execute with timeout ──────────────────────────────────────
        try:
            raw_result = await asyncio.wait_for(
                handler(**tool_call.arguments),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            duration_ms = time.monotonic() * 1000 - start_ms
            log.error(
                "tool_bus.timeout",
                tool=tool_call.name,
                timeout_seconds=self.timeout_seconds,
                duration_ms=duration_ms,
            )
            return ToolResult.error(
                tool_call.id,
                tool_call.name,
                f"Tool '{tool_call.name}' timed out after {self.timeout_seconds}s",
                duration_ms=duration_ms,
            )
        except Exception as e:
            duration_ms = time.monotonic() * 1000 - start_ms
            log.error(
                "tool_bus.execution_error",
                tool=tool_call.name,
                error=str(e),
                duration_ms=duration_ms,
                exc_info=True,
            )
            return ToolResult.error(
                tool_call.id,
                tool_call.name,
                f"Tool execution failed: {type(e).__name__}: {e}",
                duration_ms=duration_ms,
            )

        # ── Step 4: Normalise and truncate result ─────────────────────────────
        duration_ms = time.monotonic() * 1000 - start_ms
        is_error = isinstance(raw_result, ToolOutcome) and not raw_result.ok
        content = _truncate(_normalise_result(raw_result), self.max_result_chars)

        if is_error:
            log.warning(
                "tool_bus.tool_failure",
                tool=tool_call.name,
                tool_call_id=tool_call.id,
                duration_ms=round(duration_ms, 1),
            )
            return ToolResult.failed(tool_call.id, tool_call.name, content, duration_ms)

        log.info(
            "tool_bus.success",
            tool=tool_call.name,
            tool_call_id=tool_call.id,
            duration_ms=round(duration_ms, 1),
            result_chars=len(content),
        )
        return ToolResult.success(
            tool_call_id=tool_call.id,
            name=tool_call.name,
            content=content,
            duration_ms=duration_ms,
        )


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

_JSON_TYPE_MAP: dict[str, type | tuple] = {
    "string":  str,
    "integer": int,
    "number":  (int, float),
    "boolean": bool,
    "array":   list,
    "object":  dict,
}


def _validate_args(arguments: dict, schema: dict) -> Optional[str]:
    """
    Validate tool arguments against the JSON schema.
    Returns an error string if invalid, None if valid.

    Checks required-field presence and the declared primitive type of every
    provided top-level argument. Unknown fields are accepted.
    """
    required = schema.get("required", [])
    properties = schema.get("properties", {})

    for field in required:
        if field not in arguments:
            return f"Missing required field: '{field}'"

    for field, value in arguments.items():
        json_type = (properties.get(field) or {}).get("type")
        expected = _JSON_TYPE_MAP.get(json_type) if json_type else None
        if expected is None:
            continue
        # bool is a subclass of int
        if json_type in ("integer", "number") and isinstance(value, bool):
            return f"Field '{field}': expected {json_type}, got boolean"
        if not isinstance(value, expected):
            return f"Field '{field}': expected {json_type}, got {type(value).__name__}"

    return None


def _normalise_result(result) -> str:
    """Convert any tool return value to a string."""
    if result is None:
        return "Done."
    if isinstance(result, ToolOutcome):
        return result.text
    if isinstance(result, str):
        return result
    if isinstance(result, (dict, list)):
        try:
            return json.dumps(result, indent=2, default=str)
        except (TypeError, ValueError):
            return str(result)
    return str(result)


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return (
        text[:max_chars]
        + f"\n\n[Output truncated — {len(text) - max_chars} chars omitted. "
        f"Total: {len(text)} chars]"
    )
