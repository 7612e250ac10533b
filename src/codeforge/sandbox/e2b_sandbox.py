"""
sandbox/e2b_sandbox.py — E2B sandbox provider

Concrete SandboxProvider over the e2b-code-interpreter SDK. Sandboxes are
created once per run from a template and reconnected to by id for every
tool call. Connecting does not kill the sandbox on exit: the preview URL
must stay reachable after the run finishes.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from e2b import CommandExitException, SandboxException
from e2b_code_interpreter import AsyncSandbox

from codeforge.exceptions import SandboxCommandError, SandboxUnavailableError
from codeforge.observability.logger import get_logger
from codeforge.sandbox.base import (
    CommandResult,
    OutputCallback,
    SandboxProvider,
    SandboxSession,
)

log = get_logger(__name__)


class E2BSandboxSession(SandboxSession):

    def __init__(self, sandbox: AsyncSandbox):
        self._sandbox = sandbox
        self.sandbox_id = sandbox.sandbox_id

    async def run_command(
        self,
        command: str,
        on_stdout: Optional[OutputCallback] = None,
        on_stderr: Optional[OutputCallback] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            result = await self._sandbox.commands.run(
                command,
                on_stdout=(lambda data: on_stdout(str(data))) if on_stdout else None,
                on_stderr=(lambda data: on_stderr(str(data))) if on_stderr else None,
                **kwargs,
            )
        except CommandExitException as e:
            raise SandboxCommandError(
                command=command,
                exit_code=e.exit_code,
                stdout=e.stdout,
                stderr=e.stderr,
                message=e.error or "",
            ) from e
        return CommandResult(
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
        )

    async def write_file(self, path: str, content: str) -> None:
        await self._sandbox.files.write(path, content)

    async def read_file(self, path: str) -> str:
        return await self._sandbox.files.read(path)

    def get_host(self, port: int) -> str:
        return self._sandbox.get_host(port)


class E2BSandboxProvider(SandboxProvider):

    def __init__(self, api_key: Optional[str] = None, timeout_seconds: Optional[int] = None):
        self._api_key = api_key
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(cls, settings) -> "E2BSandboxProvider":
        """Sandboxes live for `sandbox.lifetime_seconds`, so the preview URL outlasts the run."""
        return cls(api_key=settings.e2b_api_key, timeout_seconds=settings.sandbox.lifetime_seconds)

    def _options(self) -> dict:
        opts: dict = {}
        if self._api_key:
            opts["api_key"] = self._api_key
        return opts

    async def create(self, template: str) -> str:
        opts = self._options()
        if self._timeout:
            opts["timeout"] = self._timeout
        try:
            sandbox = await AsyncSandbox.create(template=template, **opts)
        except SandboxException as e:
            raise SandboxUnavailableError(
                None, f"Could not create sandbox from template '{template}': {e}"
            ) from e
        log.info("sandbox.created", sandbox_id=sandbox.sandbox_id, template=template)
        return sandbox.sandbox_id

    @asynccontextmanager
    async def connect(self, sandbox_id: str) -> AsyncIterator[SandboxSession]:
        try:
            sandbox = await AsyncSandbox.connect(sandbox_id, **self._options())
        except SandboxException as e:
            raise SandboxUnavailableError(sandbox_id, str(e)) from e
        log.debug("sandbox.connected", sandbox_id=sandbox_id)
        yield E2BSandboxSession(sandbox)
