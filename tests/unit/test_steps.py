"""
tests/unit/test_steps.py — InlineStepRunner memoisation and replay

Run with:
    pytest tests/unit/test_steps.py -v
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from codeforge.durable.steps import InlineStepRunner


class TestInlineStepRunner:
    @pytest.mark.asyncio
    async def test_result_is_returned_and_journaled(self):
        steps = InlineStepRunner()
        fn = AsyncMock(return_value="sbx-1")

        result = await steps.run("get-sandbox-id", fn)

        assert result == "sbx-1"
        assert steps.journal == {"get-sandbox-id#0": "sbx-1"}
        fn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_repeated_step_ids_get_separate_keys(self):
        steps = InlineStepRunner()
        await steps.run("code-agent-inference", AsyncMock(return_value=1))
        await steps.run("code-agent-inference", AsyncMock(return_value=2))
        assert steps.journal == {"code-agent-inference#0": 1, "code-agent-inference#1": 2}

    @pytest.mark.asyncio
    async def test_replay_skips_completed_steps(self):
        first = InlineStepRunner()
        await first.run("get-sandbox-id", AsyncMock(return_value="sbx-1"))
        await first.run("terminal", AsyncMock(return_value="ok"))

        replay = InlineStepRunner(journal=dict(first.journal))
        create = AsyncMock(return_value="sbx-2")
        assert await replay.run("get-sandbox-id", create) == "sbx-1"
        create.assert_not_awaited()

        # third step was never journaled, so it runs
        fresh = AsyncMock(return_value="new")
        assert await replay.run("terminal", AsyncMock()) == "ok"
        assert await replay.run("terminal", fresh) == "new"
        fresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_replayed_values_are_copies(self):
        steps = InlineStepRunner()
        files = await steps.run("create-or-update-files", AsyncMock(return_value={"a": "1"}))
        files["a"] = "mutated"

        replay = InlineStepRunner(journal=steps.journal)
        assert await replay.run("create-or-update-files", AsyncMock()) == {"a": "1"}

    @pytest.mark.asyncio
    async def test_failed_step_is_not_journaled(self):
        steps = InlineStepRunner()
        with pytest.raises(RuntimeError):
            await steps.run("save-result", AsyncMock(side_effect=RuntimeError("db down")))
        assert steps.journal == {}
