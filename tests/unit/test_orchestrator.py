"""
tests/unit/test_orchestrator.py — OrchestrationLoop Unit Tests

Covers:
  - summary from the agent stops the loop (DONE_SUMMARY)
  - iteration cap stops the loop with exactly max_iterations turns
  - router returning None stops the loop (DONE_ROUTER)
  - router returning a non-agent raises RouterError
  - a turn with neither tools nor summary is followed by a continue nudge
  - the prompt is not appended twice when history already ends with it

Run with:
    pytest tests/unit/test_orchestrator.py -v
"""

from __future__ import annotations

import pytest

from codeforge.agent.orchestrator import CONTINUE_NUDGE, OrchestrationLoop
from codeforge.agent.reasoning_agent import ReasoningAgent
from codeforge.agent.router import LoopStatus, RouterContext, summary_router
from codeforge.agent.state import SharedRunState
from codeforge.brain.types import (
    FinishReason,
    LLMResponse,
    Message,
    OtherOutput,
    Role,
    TextOutput,
    ToolCall,
)
from codeforge.exceptions import RouterError
from codeforge.tools.tool_bus import ToolBus
from codeforge.tools.tool_registry import ToolRegistry
from codeforge.tools.types import ToolOutcome


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def _text(text: str) -> LLMResponse:
    return LLMResponse(content=text, output=[TextOutput(text=text)])


def _write(path: str, content: str) -> LLMResponse:
    return LLMResponse(
        output=[OtherOutput(type="tool_call")],
        tool_calls=[ToolCall(
            id=f"w-{path}",
            name="write",
            arguments={"path": path, "content": content},
        )],
        finish_reason=FinishReason.TOOL_CALLS,
    )


def _make_agent(llm, llm_config, state: SharedRunState) -> ReasoningAgent:
    registry = ToolRegistry()

    @registry.register(name="write", description="write a file")
    async def write(path: str, content: str) -> ToolOutcome:
        state.merge_files({path: content})
        return ToolOutcome.success(f"wrote {path}")

    return ReasoningAgent(
        name="code-agent",
        system_prompt="sys",
        llm_client=llm,
        llm_config=llm_config,
        tool_bus=ToolBus(registry),
        tool_registry=registry,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Loop termination
# ─────────────────────────────────────────────────────────────────────────────


class TestLoopTermination:
    @pytest.mark.asyncio
    async def test_stops_on_summary(self, scripted_llm, llm_config):
        state = SharedRunState()
        llm = scripted_llm([
            _write("README.md", "# Hi"),
            _text("<task_summary>Added README</task_summary>"),
        ])
        agent = _make_agent(llm, llm_config, state)

        result = await OrchestrationLoop(summary_router(agent)).run("add a readme", state)

        assert result.status == LoopStatus.DONE_SUMMARY
        assert result.iterations == 2
        assert result.final_state.summary == "<task_summary>Added README</task_summary>"
        assert dict(result.final_state.files) == {"README.md": "# Hi"}
        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_iteration_cap_is_exact(self, scripted_llm, llm_config):
        state = SharedRunState()
        llm = scripted_llm(default=_write("a.txt", "x"))
        agent = _make_agent(llm, llm_config, state)

        result = await OrchestrationLoop(summary_router(agent), max_iterations=3).run("go", state)

        assert result.status == LoopStatus.DONE_MAX_ITER
        assert result.iterations == 3
        assert len(llm.calls) == 3
        assert result.final_state.summary == ""

    @pytest.mark.asyncio
    async def test_router_none_stops_without_summary(self, scripted_llm, llm_config):
        state = SharedRunState()
        llm = scripted_llm(default=_write("a.txt", "x"))
        agent = _make_agent(llm, llm_config, state)

        def one_shot(ctx: RouterContext):
            return agent if ctx.iteration == 0 else None

        result = await OrchestrationLoop(one_shot).run("go", state)

        assert result.status == LoopStatus.DONE_ROUTER
        assert result.iterations == 1

    @pytest.mark.asyncio
    async def test_router_returning_non_agent_raises(self):
        with pytest.raises(RouterError):
            await OrchestrationLoop(lambda ctx: "not-an-agent").run("go", SharedRunState())

    @pytest.mark.asyncio
    async def test_existing_summary_means_no_turns(self, scripted_llm, llm_config):
        state = SharedRunState(summary="already done")
        llm = scripted_llm([])
        agent = _make_agent(llm, llm_config, state)

        result = await OrchestrationLoop(summary_router(agent)).run("go", state)

        assert result.status == LoopStatus.DONE_SUMMARY
        assert result.iterations == 0
        assert llm.calls == []

    def test_max_iterations_must_be_positive(self):
        with pytest.raises(ValueError):
            OrchestrationLoop(lambda ctx: None, max_iterations=0)


# ─────────────────────────────────────────────────────────────────────────────
# Transcript handling
# ─────────────────────────────────────────────────────────────────────────────


class TestTranscript:
    @pytest.mark.asyncio
    async def test_plain_text_turn_gets_continue_nudge(self, scripted_llm, llm_config):
        state = SharedRunState()
        llm = scripted_llm([
            _text("thinking about it"),
            _text("<task_summary>done</task_summary>"),
        ])
        agent = _make_agent(llm, llm_config, state)

        result = await OrchestrationLoop(summary_router(agent)).run("go", state)

        second_call = llm.calls[1]["messages"]
        assert second_call[-1].role == Role.USER
        assert second_call[-1].content == CONTINUE_NUDGE
        assert result.status == LoopStatus.DONE_SUMMARY

    @pytest.mark.asyncio
    async def test_history_precedes_prompt(self, scripted_llm, llm_config):
        state = SharedRunState()
        llm = scripted_llm([_text("<task_summary>ok</task_summary>")])
        agent = _make_agent(llm, llm_config, state)
        history = [Message.user("make a page"), Message.assistant("Here you go")]

        await OrchestrationLoop(summary_router(agent)).run("now add a footer", state, history=history)

        contents = [m.content for m in llm.calls[0]["messages"][1:]]
        assert contents == ["make a page", "Here you go", "now add a footer"]

    @pytest.mark.asyncio
    async def test_prompt_already_last_in_history_not_duplicated(self, scripted_llm, llm_config):
        state = SharedRunState()
        llm = scripted_llm([_text("<task_summary>ok</task_summary>")])
        agent = _make_agent(llm, llm_config, state)
        history = [Message.user("add a readme")]

        await OrchestrationLoop(summary_router(agent)).run("add a readme", state, history=history)

        contents = [m.content for m in llm.calls[0]["messages"][1:]]
        assert contents == ["add a readme"]

    @pytest.mark.asyncio
    async def test_tool_results_reach_next_turn(self, scripted_llm, llm_config):
        state = SharedRunState()
        llm = scripted_llm([
            _write("a.txt", "1"),
            _text("<task_summary>ok</task_summary>"),
        ])
        agent = _make_agent(llm, llm_config, state)

        await OrchestrationLoop(summary_router(agent)).run("go", state)

        last = llm.calls[1]["messages"][-1]
        assert last.role == Role.TOOL
        assert last.tool_result.content == "wrote a.txt"
