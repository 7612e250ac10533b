"""
agent/ — codeforge Agent Core

Public API:
    from codeforge.agent import OrchestrationLoop, ReasoningAgent, SharedRunState
    from codeforge.agent.workflow import CodeAgentWorkflow, TriggerEvent

Component overview:
    SharedRunState      Per-run files + summary; routers see a frozen view
    ConversationLoader  Recent project messages → oldest-first turns
    ReasoningAgent      One model call + sequential tool dispatch per turn
    OrchestrationLoop   Router-driven loop bounded by an iteration cap
    PostProcessor       Fragment title + user reply from the final summary
    OutcomePersister    Error message or result message + fragment
    CodeAgentWorkflow   The trigger handler tying the steps together
"""

from codeforge.agent.state import RunStateView, SharedRunState
from codeforge.agent.conversation import ConversationLoader, ConversationTurn, to_messages
from codeforge.agent.reasoning_agent import (
    AgentTurn,
    ReasoningAgent,
    detect_termination,
    last_text_content,
)
from codeforge.agent.router import LoopStatus, RouterContext, summary_router
from codeforge.agent.orchestrator import OrchestrationLoop, RunResult
from codeforge.agent.post_processor import PostProcessor, PostProcessResult, extract_text
from codeforge.agent.outcome import (
    ERROR_MESSAGE,
    Outcome,
    OutcomeKind,
    OutcomePersister,
    classify_outcome,
)

__all__ = [
    "SharedRunState",
    "RunStateView",
    "ConversationLoader",
    "ConversationTurn",
    "to_messages",
    "ReasoningAgent",
    "AgentTurn",
    "detect_termination",
    "last_text_content",
    "LoopStatus",
    "RouterContext",
    "summary_router",
    "OrchestrationLoop",
    "RunResult",
    "PostProcessor",
    "PostProcessResult",
    "extract_text",
    "Outcome",
    "OutcomeKind",
    "OutcomePersister",
    "classify_outcome",
    "ERROR_MESSAGE",
]
