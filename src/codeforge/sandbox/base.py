"""
sandbox/base.py — Sandbox collaborator contract

A sandbox is an isolated execution environment with a shell and a
filesystem, addressed by a session id. A run creates one sandbox and then
reconnects to it by id for every tool call.

    provider = E2BSandboxProvider(api_key=...)
    sandbox_id = await provider.create("v0-nextjs-build-new")

    async with provider.connect(sandbox_id) as session:
        result = await session.run_command("npm run build")
        await session.write_file("app/page.tsx", source)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Callable, Optional

from pydantic import BaseModel

OutputCallback = Callable[[str], None]


class CommandResult(BaseModel):
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


class SandboxSession(ABC):
    """One connection to a running sandbox."""

    sandbox_id: str

    @abstractmethod
    async def run_command(
        self,
        command: str,
        on_stdout: Optional[OutputCallback] = None,
        on_stderr: Optional[OutputCallback] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """
        Run a shell command, streaming output chunks to the callbacks.

        Raises SandboxCommandError on non-zero exit.
        """
        ...

    @abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        ...

    @abstractmethod
    async def read_file(self, path: str) -> str:
        ...

    @abstractmethod
    def get_host(self, port: int) -> str:
        """Externally reachable hostname for a port inside the sandbox."""
        ...


class SandboxProvider(ABC):

    @abstractmethod
    async def create(self, template: str) -> str:
        """Start a sandbox from a template and return its id."""
        ...

    @abstractmethod
    def connect(self, sandbox_id: str) -> AbstractAsyncContextManager[SandboxSession]:
        """
        Async context manager yielding a session for an existing sandbox.

        Raises SandboxUnavailableError when the sandbox cannot be reached.
        """
        ...


def preview_url(session: SandboxSession, port: int = 3000) -> str:
    return f"https://{session.get_host(port)}"
