"""
agent/post_processor.py — Title and reply generation

Two single-shot, tool-less model calls over the final summary: a short
fragment title and a friendly reply for the user. Both use extract_text(),
so non-textual output degrades to a placeholder instead of failing the run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from codeforge.agent.prompts import FRAGMENT_TITLE_PROMPT, RESPONSE_PROMPT
from codeforge.brain.llm_client import BaseLLMClient
from codeforge.brain.types import (
    LLMConfig,
    LLMResponse,
    Message,
    OutputSegment,
    TextOutput,
    TextPartsOutput,
)
from codeforge.durable.steps import InlineStepRunner, StepRunner
from codeforge.observability.logger import get_logger

log = get_logger(__name__)

TITLE_FALLBACK = "Fragment"
RESPONSE_FALLBACK = "Here you go"


def extract_text(output: Sequence[OutputSegment], fallback: str) -> str:
    """
    Text of the first output segment.

    TextOutput → its text, TextPartsOutput → parts joined with no separator,
    OtherOutput or no output at all → fallback.
    """
    if not output:
        return fallback
    first = output[0]
    if isinstance(first, TextOutput):
        return first.text
    if isinstance(first, TextPartsOutput):
        return "".join(first.parts)
    return fallback


@dataclass(frozen=True)
class PostProcessResult:
    title: str
    response: str


class PostProcessor:

    def __init__(
        self,
        llm_client: BaseLLMClient,
        llm_config: LLMConfig,
        steps: Optional[StepRunner] = None,
        title_prompt: str = FRAGMENT_TITLE_PROMPT,
        response_prompt: str = RESPONSE_PROMPT,
    ):
        self._llm = llm_client
        self._config = llm_config
        self._steps = steps or InlineStepRunner()
        self._title_prompt = title_prompt
        self._response_prompt = response_prompt

    async def _single_shot(self, step_id: str, system_prompt: str, summary: str) -> LLMResponse:
        messages = [Message.system(system_prompt), Message.user(summary)]
        return await self._steps.run(
            step_id,
            lambda: self._llm.generate(messages=messages, config=self._config, tools=None),
        )

    async def generate_title(self, summary: str) -> str:
        response = await self._single_shot("fragment-title-generator", self._title_prompt, summary)
        return extract_text(response.output, TITLE_FALLBACK)

    async def generate_response(self, summary: str) -> str:
        response = await self._single_shot("response-generator", self._response_prompt, summary)
        return extract_text(response.output, RESPONSE_FALLBACK)

    async def run(self, summary: str) -> PostProcessResult:
        title = await self.generate_title(summary)
        reply = await self.generate_response(summary)
        log.info("post_processor.done", title=title[:80], response_chars=len(reply))
        return PostProcessResult(title=title, response=reply)
