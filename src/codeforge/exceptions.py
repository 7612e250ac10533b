"""
exceptions.py — codeforge Unified Error Hierarchy

All codeforge-specific exceptions live here. Import from here, not from
individual modules:
    from codeforge.exceptions import SandboxUnavailableError, StoreNotInitializedError

Only infrastructure failures travel as exceptions. Tool failures are
returned to the agent as text and never appear in this hierarchy.

Hierarchy:
    CodeForgeError
    ├── AgentError
    │   └── RouterError
    ├── SandboxError
    │   ├── SandboxUnavailableError
    │   └── SandboxCommandError
    ├── StoreError
    │   └── StoreNotInitializedError
    └── LLMError  (re-exported from brain for convenience)
        ├── LLMConnectionError
        ├── LLMRateLimitError
        ├── LLMContextError
        └── LLMInvalidRequestError
"""

from __future__ import annotations

from typing import Optional

from codeforge.brain.llm_client import (  # noqa: F401  re-export
    LLMConnectionError,
    LLMContextError,
    LLMError,
    LLMInvalidRequestError,
    LLMRateLimitError,
)


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class CodeForgeError(Exception):
    """Base class for all codeforge exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Agent layer
# ─────────────────────────────────────────────────────────────────────────────

class AgentError(CodeForgeError):
    """Base for agent orchestration errors."""


class RouterError(AgentError):
    """The router returned something that is not a runnable agent."""


# ─────────────────────────────────────────────────────────────────────────────
# Sandbox layer
# ─────────────────────────────────────────────────────────────────────────────

class SandboxError(CodeForgeError):
    """Base for sandbox collaborator errors."""


class SandboxUnavailableError(SandboxError):
    """Sandbox could not be created or connected to."""

    def __init__(self, sandbox_id: Optional[str], message: str = "") -> None:
        self.sandbox_id = sandbox_id
        super().__init__(message or f"Sandbox '{sandbox_id}' is unavailable.")


class SandboxCommandError(SandboxError):
    """A sandbox command exited with a non-zero status."""

    def __init__(
        self,
        command: str,
        exit_code: int,
        stdout: str = "",
        stderr: str = "",
        message: str = "",
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message or f"Command exited with code {exit_code}")


# ─────────────────────────────────────────────────────────────────────────────
# Persistence layer
# ─────────────────────────────────────────────────────────────────────────────

class StoreError(CodeForgeError):
    """Base for message store errors."""


class StoreNotInitializedError(StoreError):
    """MessageStore.init() has not been called before first use."""


__all__ = [
    "CodeForgeError",
    # Agent
    "AgentError",
    "RouterError",
    # Sandbox
    "SandboxError",
    "SandboxUnavailableError",
    "SandboxCommandError",
    # Store
    "StoreError",
    "StoreNotInitializedError",
    # LLM (re-exported)
    "LLMError",
    "LLMConnectionError",
    "LLMRateLimitError",
    "LLMContextError",
    "LLMInvalidRequestError",
]
