"""
Shared test doubles: an in-memory sandbox provider and a scripted LLM
client. Exposed as fixtures so test modules don't import from conftest.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import pytest

from codeforge.brain.llm_client import BaseLLMClient
from codeforge.brain.types import LLMConfig, LLMResponse, Message, ToolSchema
from codeforge.exceptions import SandboxCommandError, SandboxUnavailableError
from codeforge.memory.store import MessageStore
from codeforge.sandbox.base import CommandResult, SandboxProvider, SandboxSession


# ─────────────────────────────────────────────────────────────────────────────
# Fake sandbox
# ─────────────────────────────────────────────────────────────────────────────


class FakeSandboxSession(SandboxSession):

    def __init__(self, provider: "FakeSandboxProvider", sandbox_id: str):
        self._provider = provider
        self.sandbox_id = sandbox_id

    async def run_command(self, command, on_stdout=None, on_stderr=None, timeout=None):
        self._provider.commands_run.append(command)
        result = self._provider.command_results.get(
            command, CommandResult(stdout=f"ran: {command}\n")
        )
        if on_stdout and result.stdout:
            on_stdout(result.stdout)
        if on_stderr and result.stderr:
            on_stderr(result.stderr)
        if result.exit_code != 0:
            raise SandboxCommandError(
                command=command,
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    async def write_file(self, path, content):
        if path in self._provider.fail_writes:
            raise OSError(f"disk error writing {path}")
        self._provider.files[path] = content

    async def read_file(self, path):
        if path not in self._provider.files:
            raise FileNotFoundError(path)
        return self._provider.files[path]

    def get_host(self, port):
        return f"{port}-{self.sandbox_id}.e2b.app"


class FakeSandboxProvider(SandboxProvider):

    def __init__(self):
        self.files: dict[str, str] = {}
        self.command_results: dict[str, CommandResult] = {}
        self.commands_run: list[str] = []
        self.fail_writes: set[str] = set()
        self.created: list[str] = []
        self.templates: list[str] = []
        self.connect_count = 0
        self.fail_create = False

    async def create(self, template):
        if self.fail_create:
            raise SandboxUnavailableError(None, "quota exceeded")
        sandbox_id = f"sbx-{len(self.created) + 1}"
        self.created.append(sandbox_id)
        self.templates.append(template)
        return sandbox_id

    @asynccontextmanager
    async def connect(self, sandbox_id):
        if sandbox_id not in self.created:
            raise SandboxUnavailableError(sandbox_id)
        self.connect_count += 1
        yield FakeSandboxSession(self, sandbox_id)


# ─────────────────────────────────────────────────────────────────────────────
# Scripted LLM
# ─────────────────────────────────────────────────────────────────────────────


class ScriptedLLMClient(BaseLLMClient):
    """
    Returns queued responses in order. When the queue runs dry the
    `default` response is returned, or an AssertionError is raised.
    """

    def __init__(self, responses=None, default: Optional[LLMResponse] = None):
        super().__init__()
        self.responses: list[LLMResponse] = list(responses or [])
        self.default = default
        self.calls: list[dict] = []

    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
        tools: Optional[list[ToolSchema]] = None,
    ) -> LLMResponse:
        self.calls.append({"messages": list(messages), "config": config, "tools": tools})
        if self.responses:
            return self.responses.pop(0)
        if self.default is not None:
            return self.default
        raise AssertionError("ScriptedLLMClient ran out of responses")


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def fake_sandbox():
    return FakeSandboxProvider()


@pytest.fixture
def scripted_llm():
    """Factory: scripted_llm([resp, ...], default=None) → ScriptedLLMClient."""
    def _make(responses=None, default=None):
        return ScriptedLLMClient(responses, default=default)
    return _make


@pytest.fixture
def llm_config():
    return LLMConfig(model="test-model")


@pytest.fixture
async def store(tmp_path):
    s = MessageStore(str(tmp_path / "codeforge.db"))
    await s.init()
    yield s
    await s.close()
