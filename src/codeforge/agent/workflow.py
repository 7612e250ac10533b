"""
agent/workflow.py — Code agent workflow (trigger handler)

Handles one "code-agent/run" trigger end to end. Steps, in order:

    get-sandbox-id          create a sandbox from the template
    get-previous-messages   load recent conversation for the project
    <loop>                  code agent ↔ sandbox tools until summary or cap
    <post-processing>       title + reply, only when a summary exists
    get-sandbox-url         preview URL, fetched for errors too
    save-result             persist the error message or result + fragment

Infrastructure failures (sandbox creation, LLM errors after retries, store
errors) propagate out of run().
"""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from codeforge.agent.conversation import ConversationLoader, to_messages
from codeforge.agent.orchestrator import OrchestrationLoop
from codeforge.agent.outcome import Outcome, OutcomePersister, classify_outcome
from codeforge.agent.post_processor import (
    RESPONSE_FALLBACK,
    TITLE_FALLBACK,
    PostProcessor,
)
from codeforge.agent.prompts import CODE_AGENT_PROMPT
from codeforge.agent.reasoning_agent import DEFAULT_TERMINATION_MARKER, ReasoningAgent
from codeforge.agent.router import summary_router
from codeforge.agent.state import SharedRunState
from codeforge.brain.llm_client import BaseLLMClient
from codeforge.brain.types import LLMConfig
from codeforge.durable.steps import InlineStepRunner, StepRunner
from codeforge.memory.store import MessageStore
from codeforge.observability.logger import bind_run, clear_run, get_logger
from codeforge.sandbox.base import SandboxProvider, preview_url
from codeforge.tools.sandbox_tools import build_sandbox_tools
from codeforge.tools.tool_bus import DEFAULT_TIMEOUT_SECONDS, MAX_RESULT_CHARS, ToolBus

log = get_logger(__name__)

EVENT_NAME = "code-agent/run"


class TriggerEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias="projectId", min_length=1)
    value: str = Field(..., min_length=1)


class CodeAgentWorkflow:

    def __init__(
        self,
        llm_client: BaseLLMClient,
        llm_config: LLMConfig,
        sandbox_provider: SandboxProvider,
        store: MessageStore,
        agent_name: str = "code-agent",
        system_prompt: str = CODE_AGENT_PROMPT,
        max_iterations: int = 10,
        history_limit: int = 5,
        termination_marker: str = DEFAULT_TERMINATION_MARKER,
        sandbox_template: str = "v0-nextjs-build-new",
        preview_port: int = 3000,
        tool_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_result_chars: int = MAX_RESULT_CHARS,
    ):
        self._llm = llm_client
        self._config = llm_config
        self._sandbox = sandbox_provider
        self._store = store
        self._agent_name = agent_name
        self._system_prompt = system_prompt
        self._max_iter = max_iterations
        self._termination_marker = termination_marker
        self._template = sandbox_template
        self._preview_port = preview_port
        self._tool_timeout = tool_timeout_seconds
        self._max_result_chars = max_result_chars
        self._history = ConversationLoader(store, limit=history_limit)
        self._persister = OutcomePersister(store)

    async def run(self, event: TriggerEvent, steps: Optional[StepRunner] = None) -> Outcome:
        steps = steps or InlineStepRunner()
        run_id = str(uuid.uuid4())
        bind_run(run_id, event.project_id)
        log.info("workflow.run_start", event_name=EVENT_NAME, request=event.value[:120])

        try:
            sandbox_id: str = await steps.run(
                "get-sandbox-id", lambda: self._sandbox.create(self._template)
            )
            history = await steps.run(
                "get-previous-messages", lambda: self._history.load(event.project_id)
            )

            state = SharedRunState()
            registry = build_sandbox_tools(
                self._sandbox, sandbox_id, state, steps, command_timeout=self._tool_timeout
            )
            agent = ReasoningAgent(
                name=self._agent_name,
                system_prompt=self._system_prompt,
                llm_client=self._llm,
                llm_config=self._config,
                tool_bus=ToolBus(
                    registry,
                    timeout_seconds=self._tool_timeout,
                    max_result_chars=self._max_result_chars,
                ),
                tool_registry=registry,
                termination_marker=self._termination_marker,
                steps=steps,
            )
            loop = OrchestrationLoop(summary_router(agent), max_iterations=self._max_iter)
            result = await loop.run(event.value, state, history=to_messages(history))
            final = result.final_state

            title, response = TITLE_FALLBACK, RESPONSE_FALLBACK
            if final.summary:
                post = await PostProcessor(self._llm, self._config, steps=steps).run(final.summary)
                title, response = post.title, post.response

            kind = classify_outcome(final)

            async def _sandbox_url() -> str:
                async with self._sandbox.connect(sandbox_id) as session:
                    return preview_url(session, self._preview_port)

            sandbox_url: str = await steps.run("get-sandbox-url", _sandbox_url)

            await steps.run(
                "save-result",
                lambda: self._persister.persist(
                    project_id=event.project_id,
                    kind=kind,
                    sandbox_url=sandbox_url,
                    title=title,
                    response=response,
                    files=final.files,
                ),
            )

            log.info(
                "workflow.run_done",
                outcome=kind.value,
                loop_status=result.status.value,
                iterations=result.iterations,
                files=len(final.files),
            )
            return Outcome(
                url=sandbox_url,
                title=title,
                summary=final.summary,
                files=dict(final.files),
                kind=kind,
            )
        finally:
            clear_run()

    @classmethod
    def from_settings(
        cls,
        settings,
        llm_client: BaseLLMClient,
        sandbox_provider: SandboxProvider,
        store: MessageStore,
    ) -> "CodeAgentWorkflow":
        """Create a workflow from the codeforge Settings object."""
        llm_config = LLMConfig(
            model=settings.default_llm_model,
            temperature=settings.llm.temperature,
            max_tokens=settings.llm.max_tokens,
        )
        return cls(
            llm_client=llm_client,
            llm_config=llm_config,
            sandbox_provider=sandbox_provider,
            store=store,
            agent_name=settings.agent.name,
            max_iterations=settings.agent.max_iterations,
            history_limit=settings.agent.history_limit,
            termination_marker=settings.agent.termination_marker,
            sandbox_template=settings.sandbox.template,
            preview_port=settings.sandbox.preview_port,
            tool_timeout_seconds=settings.sandbox.tool_timeout_seconds,
            max_result_chars=settings.sandbox.max_result_chars,
        )
