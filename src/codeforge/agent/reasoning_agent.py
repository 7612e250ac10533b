"""
agent/reasoning_agent.py — Reasoning Agent

A single LLM-bound actor: fixed system instruction, a tool registry, and a
termination marker. One call to run() is one agent turn:

    1. One model call over the system prompt + running transcript
    2. Every requested tool call dispatched through the ToolBus, one at a
       time, in the order the model asked for them
    3. Termination detection over the response's output segments

The agent never writes shared state for termination. It reports the
summary text on AgentTurn.termination and the orchestration loop decides
what to do with it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from codeforge.agent.state import RunStateView
from codeforge.brain.llm_client import BaseLLMClient
from codeforge.brain.types import (
    LLMConfig,
    LLMResponse,
    Message,
    OutputSegment,
    Role,
    TextOutput,
    TextPartsOutput,
    ToolCall as BrainToolCall,
    ToolResult as BrainToolResult,
    ToolSchema as BrainToolSchema,
)
from codeforge.durable.steps import InlineStepRunner, StepRunner
from codeforge.observability.logger import get_logger
from codeforge.tools.tool_bus import ToolBus
from codeforge.tools.tool_registry import ToolRegistry
from codeforge.tools.types import ToolCall

log = get_logger(__name__)

DEFAULT_TERMINATION_MARKER = "<task_summary>"


def last_text_content(output: Sequence[OutputSegment]) -> Optional[str]:
    """Text of the most recent textual segment, parts joined with no separator."""
    for segment in reversed(output):
        if isinstance(segment, TextOutput):
            return segment.text
        if isinstance(segment, TextPartsOutput):
            return "".join(segment.parts)
    return None


def detect_termination(output: Sequence[OutputSegment], marker: str) -> Optional[str]:
    """Return the full last text if it contains the marker, else None."""
    text = last_text_content(output)
    if text and marker in text:
        return text
    return None


@dataclass
class AgentTurn:
    response: LLMResponse
    tool_calls: list[BrainToolCall] = field(default_factory=list)
    tool_results: list[BrainToolResult] = field(default_factory=list)
    termination: Optional[str] = None

    @property
    def text(self) -> Optional[str]:
        return last_text_content(self.response.output)

    def messages(self) -> list[Message]:
        """
        Transcript entries for this turn: the assistant message, then tool
        results. A reply with neither text nor tool calls adds nothing.
        """
        out: list[Message] = []
        if self.response.content or self.tool_calls:
            out.append(Message(
                role=Role.ASSISTANT,
                content=self.response.content,
                tool_calls=self.tool_calls or None,
            ))
        out.extend(Message.tool_response(r) for r in self.tool_results)
        return out


class ReasoningAgent:

    def __init__(
        self,
        name: str,
        system_prompt: str,
        llm_client: BaseLLMClient,
        llm_config: LLMConfig,
        tool_bus: ToolBus,
        tool_registry: ToolRegistry,
        termination_marker: str = DEFAULT_TERMINATION_MARKER,
        steps: Optional[StepRunner] = None,
    ):
        self.name = name
        self.system_prompt = system_prompt
        self.termination_marker = termination_marker
        self._llm = llm_client
        self._config = llm_config
        self._bus = tool_bus
        self._registry = tool_registry
        self._steps = steps or InlineStepRunner()

    def tool_schemas(self) -> list[BrainToolSchema]:
        return [
            BrainToolSchema(name=s.name, description=s.description, parameters=s.parameters)
            for s in self._registry.list_schemas(enabled_only=True)
        ]

    async def run(self, transcript: Sequence[Message], state_view: RunStateView) -> AgentTurn:
        messages = [Message.system(self.system_prompt), *transcript]
        tools = self.tool_schemas()

        log.debug(
            "agent.inference",
            agent=self.name,
            msg_count=len(messages),
            files=len(state_view.files),
        )
        response: LLMResponse = await self._steps.run(
            f"{self.name}-inference",
            lambda: self._llm.generate(messages=messages, config=self._config, tools=tools or None),
        )

        results: list[BrainToolResult] = []
        for btc in response.tool_calls:
            result = await self._bus.dispatch(
                ToolCall(id=btc.id, name=btc.name, arguments=btc.arguments)
            )
            results.append(BrainToolResult(
                tool_call_id=btc.id,
                name=btc.name,
                content=result.content,
                is_error=result.is_error,
            ))

        termination = detect_termination(response.output, self.termination_marker)
        log.info(
            "agent.turn_done",
            agent=self.name,
            tool_calls=len(response.tool_calls),
            tool_errors=sum(1 for r in results if r.is_error),
            terminated=termination is not None,
        )
        return AgentTurn(
            response=response,
            tool_calls=list(response.tool_calls),
            tool_results=results,
            termination=termination,
        )

    def __repr__(self) -> str:
        return f"<ReasoningAgent name={self.name!r}>"
