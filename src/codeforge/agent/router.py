"""
agent/router.py — Loop status and routing policy

A router is evaluated once per loop iteration. It sees a read-only view of
the run state and returns the agent to run next, or None to stop.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from codeforge.agent.state import RunStateView

if TYPE_CHECKING:
    from codeforge.agent.reasoning_agent import ReasoningAgent


class LoopStatus(str, Enum):
    RUNNING = "running"
    DONE_SUMMARY = "done_summary"       # agent emitted the termination marker
    DONE_MAX_ITER = "done_max_iter"     # iteration cap reached
    DONE_ROUTER = "done_router"         # router returned no agent without a summary


@dataclass(frozen=True)
class RouterContext:
    state: RunStateView
    iteration: int
    last_agent: Optional["ReasoningAgent"] = None


Router = Callable[[RouterContext], Optional["ReasoningAgent"]]


def summary_router(agent: "ReasoningAgent") -> Router:
    """Keep running `agent` until a summary has been recorded."""

    def route(ctx: RouterContext) -> Optional["ReasoningAgent"]:
        if ctx.state.summary:
            return None
        return agent

    return route
