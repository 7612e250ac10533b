"""
tools/sandbox_tools.py — The agent's sandbox tool set

Three tools bound to one sandbox and one run's SharedRunState:

  terminal                run a shell command, streaming stdout/stderr into buffers
  create_or_update_files  write files to the sandbox and merge them into state.files
  read_files              read files back as a JSON list of {path, content}

Every handler reconnects to the sandbox by id and runs its sandbox work
inside a durable step. Failures come back as ToolOutcome.failure text so the
agent can read them and adapt; nothing raises across the tool boundary.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Optional

from codeforge.agent.state import SharedRunState
from codeforge.durable.steps import StepRunner
from codeforge.exceptions import SandboxCommandError
from codeforge.observability.logger import get_logger
from codeforge.sandbox.base import SandboxProvider
from codeforge.tools.tool_registry import ToolRegistry
from codeforge.tools.types import ToolOutcome

log = get_logger(__name__)

TERMINAL_PARAMS = {
    "type": "object",
    "properties": {
        "command": {"type": "string", "description": "Shell command to run"},
    },
    "required": ["command"],
}

WRITE_FILES_PARAMS = {
    "type": "object",
    "properties": {
        "files": {
            "type": "array",
            "description": "Files to create or overwrite",
            "items": {
                "type": "object",
                "properties": {
                    "path": {"type": "string"},
                    "content": {"type": "string"},
                },
                "required": ["path", "content"],
            },
        },
    },
    "required": ["files"],
}

READ_FILES_PARAMS = {
    "type": "object",
    "properties": {
        "files": {
            "type": "array",
            "description": "Paths of the files to read",
            "items": {"type": "string"},
        },
    },
    "required": ["files"],
}


def build_sandbox_tools(
    provider: SandboxProvider,
    sandbox_id: str,
    state: SharedRunState,
    steps: StepRunner,
    registry: Optional[ToolRegistry] = None,
    command_timeout: Optional[float] = None,
) -> ToolRegistry:
    registry = registry if registry is not None else ToolRegistry()

    @registry.register(
        name="terminal",
        description="Use the terminal to run commands",
        parameters=TERMINAL_PARAMS,
    )
    async def terminal(command: str) -> ToolOutcome:
        async def _run() -> ToolOutcome:
            buffers = {"stdout": "", "stderr": ""}

            def on_stdout(data: str) -> None:
                buffers["stdout"] += data

            def on_stderr(data: str) -> None:
                buffers["stderr"] += data

            try:
                async with provider.connect(sandbox_id) as session:
                    result = await session.run_command(
                        command,
                        on_stdout=on_stdout,
                        on_stderr=on_stderr,
                        timeout=command_timeout,
                    )
                return ToolOutcome.success(result.stdout)
            except Exception as e:
                # a provider that does not stream still reports the output on the error
                if isinstance(e, SandboxCommandError):
                    buffers["stdout"] = buffers["stdout"] or e.stdout
                    buffers["stderr"] = buffers["stderr"] or e.stderr
                log.warning("sandbox_tools.command_failed", command=command[:200], error=str(e))
                return ToolOutcome.failure(
                    f"Command failed: {e} \n stdout: {buffers['stdout']}\n stderr: {buffers['stderr']}"
                )

        return await steps.run("terminal", _run)

    @registry.register(
        name="create_or_update_files",
        description="Create or update files in the sandbox",
        parameters=WRITE_FILES_PARAMS,
    )
    async def create_or_update_files(files: list) -> ToolOutcome:
        async def _write() -> dict[str, str] | str:
            updated = dict(state.files)
            written: list[str] = []
            try:
                async with provider.connect(sandbox_id) as session:
                    for file in files:
                        await session.write_file(file["path"], file["content"])
                        updated[file["path"]] = file["content"]
                        written.append(file["path"])
                return updated
            except Exception as e:
                if written:
                    # these reached the sandbox but will not be recorded in state.files
                    log.warning(
                        "sandbox_tools.partial_write",
                        written=written,
                        requested=len(files),
                        error=str(e),
                    )
                return f"Error: {e}"

        result = await steps.run("create-or-update-files", _write)
        if isinstance(result, Mapping):
            state.merge_files(result)
            paths = [f["path"] for f in files]
            return ToolOutcome.success(f"Updated {len(paths)} file(s): {', '.join(paths)}")
        return ToolOutcome.failure(str(result))

    @registry.register(
        name="read_files",
        description="Read files in the sandbox",
        parameters=READ_FILES_PARAMS,
    )
    async def read_files(files: list) -> ToolOutcome:
        async def _read() -> ToolOutcome:
            try:
                contents = []
                async with provider.connect(sandbox_id) as session:
                    for path in files:
                        contents.append({"path": path, "content": await session.read_file(path)})
                return ToolOutcome.success(json.dumps(contents))
            except Exception as e:
                log.warning("sandbox_tools.read_failed", files=files, error=str(e))
                return ToolOutcome.failure(f"Error: {e}")

        return await steps.run("read-files", _read)

    return registry
