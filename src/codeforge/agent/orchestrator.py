"""
agent/orchestrator.py — Orchestration Loop

Drives the agent ↔ tools loop for one run.

Before every would-be agent turn:
    1. summary set               → DONE_SUMMARY, no more turns
    2. iteration cap reached     → DONE_MAX_ITER
    3. otherwise ask the router for an agent, run one turn, count it

One turn is one model call plus its tool calls, executed sequentially, so
state changes made by a tool are visible to the next tool and to the router.
When a turn carries the termination marker the loop writes it into
SharedRunState.summary; nothing else writes the summary.

LLM errors that survive retries and sandbox acquisition failures are not
caught here.

Usage:
    loop = OrchestrationLoop(summary_router(agent), max_iterations=10)
    result = await loop.run("add a readme", state, history=previous_messages)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Sequence

from codeforge.agent.reasoning_agent import ReasoningAgent
from codeforge.agent.router import LoopStatus, Router, RouterContext
from codeforge.agent.state import RunStateView, SharedRunState
from codeforge.brain.types import Message, Role
from codeforge.exceptions import RouterError
from codeforge.observability.logger import get_logger

log = get_logger(__name__)

# Max agent turns per run
_MAX_ITER = 10

# Sent after a turn with neither tool calls nor the marker
CONTINUE_NUDGE = (
    "Continue working on the task. When it is fully done, reply with the "
    "summary block."
)


@dataclass
class RunResult:
    final_state: RunStateView
    status: LoopStatus
    iterations: int
    transcript: list[Message] = field(default_factory=list)


class OrchestrationLoop:

    def __init__(self, router: Router, max_iterations: int = _MAX_ITER):
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self._router = router
        self._max_iter = max_iterations

    async def run(
        self,
        prompt: str,
        state: SharedRunState,
        history: Sequence[Message] = (),
    ) -> RunResult:
        transcript: list[Message] = list(history)
        # the web layer may already have stored the request as the newest turn
        last = transcript[-1] if transcript else None
        if last is None or last.role != Role.USER or last.content != prompt:
            transcript.append(Message.user(prompt))

        iteration = 0
        last_agent = None
        t0 = time.monotonic()
        log.info("orchestrator.run_start", max_iterations=self._max_iter, history=len(history))

        while True:
            view = state.view()
            if view.summary:
                status = LoopStatus.DONE_SUMMARY
                break
            if iteration >= self._max_iter:
                status = LoopStatus.DONE_MAX_ITER
                log.warning("orchestrator.max_iter_reached", iterations=iteration)
                break

            agent = self._router(RouterContext(state=view, iteration=iteration, last_agent=last_agent))
            if agent is None:
                status = LoopStatus.DONE_ROUTER
                break
            if not isinstance(agent, ReasoningAgent):
                raise RouterError(
                    f"Router returned {type(agent).__name__}, expected ReasoningAgent or None"
                )

            turn = await agent.run(transcript, view)
            transcript.extend(turn.messages())

            if turn.termination is not None:
                state.set_summary(turn.termination)
            elif not turn.tool_calls:
                transcript.append(Message.user(CONTINUE_NUDGE))

            iteration += 1
            last_agent = agent
            log.info(
                "orchestrator.turn_done",
                iteration=iteration,
                agent=agent.name,
                tool_calls=len(turn.tool_calls),
                files=len(state.files),
                summary_set=state.is_complete,
            )

        final = state.view()
        log.info(
            "orchestrator.run_done",
            status=status.value,
            iterations=iteration,
            files=len(final.files),
            duration_ms=round((time.monotonic() - t0) * 1000, 1),
        )
        return RunResult(final_state=final, status=status, iterations=iteration, transcript=transcript)
