from codeforge.sandbox.base import (
    CommandResult,
    SandboxProvider,
    SandboxSession,
    preview_url,
)

__all__ = ["CommandResult", "SandboxProvider", "SandboxSession", "preview_url"]
