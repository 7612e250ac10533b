"""
tests/unit/test_post_processor.py — Title / reply generation

Run with:
    pytest tests/unit/test_post_processor.py -v
"""

from __future__ import annotations

import pytest

from codeforge.agent.post_processor import (
    RESPONSE_FALLBACK,
    TITLE_FALLBACK,
    PostProcessor,
    extract_text,
)
from codeforge.brain.types import LLMResponse, OtherOutput, Role, TextOutput, TextPartsOutput
from codeforge.durable.steps import InlineStepRunner


class TestExtractText:
    def test_single_text(self):
        assert extract_text([TextOutput(text="Hi")], "fb") == "Hi"

    def test_parts_joined_without_separator(self):
        assert extract_text([TextPartsOutput(parts=["Hel", "lo"])], "fb") == "Hello"

    def test_tool_call_gives_fallback(self):
        assert extract_text([OtherOutput(type="tool_call")], "fb") == "fb"

    def test_empty_output_gives_fallback(self):
        assert extract_text([], "fb") == "fb"

    def test_only_first_segment_is_used(self):
        output = [OtherOutput(), TextOutput(text="later text")]
        assert extract_text(output, "fb") == "fb"


class TestPostProcessor:
    @pytest.mark.asyncio
    async def test_generates_title_then_response(self, scripted_llm, llm_config):
        llm = scripted_llm([
            LLMResponse(output=[TextOutput(text="Landing Page")]),
            LLMResponse(output=[TextPartsOutput(parts=["I built ", "a landing page."])]),
        ])
        steps = InlineStepRunner()
        post = PostProcessor(llm, llm_config, steps=steps, title_prompt="T", response_prompt="R")

        result = await post.run("<task_summary>landing page</task_summary>")

        assert result.title == "Landing Page"
        assert result.response == "I built a landing page."
        assert list(steps.journal) == ["fragment-title-generator#0", "response-generator#0"]

    @pytest.mark.asyncio
    async def test_calls_are_single_shot_without_tools(self, scripted_llm, llm_config):
        llm = scripted_llm(default=LLMResponse(output=[TextOutput(text="x")]))
        post = PostProcessor(llm, llm_config, title_prompt="TITLE", response_prompt="REPLY")

        await post.run("the summary")

        title_call, reply_call = llm.calls
        assert title_call["tools"] is None
        assert [m.role for m in title_call["messages"]] == [Role.SYSTEM, Role.USER]
        assert title_call["messages"][0].content == "TITLE"
        assert title_call["messages"][1].content == "the summary"
        assert reply_call["messages"][0].content == "REPLY"

    @pytest.mark.asyncio
    async def test_non_text_output_uses_placeholders(self, scripted_llm, llm_config):
        llm = scripted_llm(default=LLMResponse(output=[OtherOutput(type="tool_call")]))
        result = await PostProcessor(llm, llm_config).run("summary")
        assert result.title == TITLE_FALLBACK
        assert result.response == RESPONSE_FALLBACK

    @pytest.mark.asyncio
    async def test_gemini_reply_without_candidates_uses_placeholders(self, llm_config):
        from types import SimpleNamespace
        from unittest.mock import AsyncMock, MagicMock

        from codeforge.brain.gemini_client import GeminiClient

        gemini = GeminiClient(api_key="k")
        gemini._client = MagicMock()
        gemini._client.aio.models.generate_content = AsyncMock(
            return_value=SimpleNamespace(candidates=[], usage_metadata=None)
        )

        result = await PostProcessor(gemini, llm_config).run("summary")

        assert result.title == "Fragment"
        assert result.response == "Here you go"
        assert gemini._client.aio.models.generate_content.await_count == 2
