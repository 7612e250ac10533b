"""
durable/steps.py — Durable step boundary

Named units of work are wrapped in steps so that a re-executed run can
replay completed steps from a journal instead of repeating their side
effects (creating a sandbox, writing files, saving a message).

The retry/backoff engine is out of scope here. InlineStepRunner executes
steps in-process and keeps the journal in a plain dict, which callers may
persist and hand back on the next attempt.

Usage:
    steps = InlineStepRunner()
    sandbox_id = await steps.run("get-sandbox-id", lambda: provider.create(template))
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Awaitable, Callable, Optional, TypeVar

from codeforge.observability.logger import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class StepRunner(ABC):

    @abstractmethod
    async def run(self, step_id: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Execute fn once under step_id and return its result."""
        ...


class InlineStepRunner(StepRunner):
    """
    Runs steps immediately and memoises their results.

    The same step_id may be used several times in one run (one inference
    step per loop iteration, for instance). Each occurrence gets its own
    journal key, "<step_id>#<n>", so replay matches steps by position.
    A step that raises is not journaled and will run again on replay.
    """

    def __init__(self, journal: Optional[dict[str, Any]] = None):
        self.journal: dict[str, Any] = journal if journal is not None else {}
        self._occurrences: defaultdict[str, int] = defaultdict(int)

    async def run(self, step_id: str, fn: Callable[[], Awaitable[T]]) -> T:
        n = self._occurrences[step_id]
        self._occurrences[step_id] += 1
        key = f"{step_id}#{n}"

        if key in self.journal:
            log.debug("step.replayed", step=key)
            return copy.deepcopy(self.journal[key])

        log.debug("step.start", step=key)
        result = await fn()
        self.journal[key] = copy.deepcopy(result)
        log.debug("step.done", step=key)
        return result
