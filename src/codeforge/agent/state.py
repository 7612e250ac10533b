"""
agent/state.py — Shared run state

One SharedRunState exists per run. Tool handlers hold the mutable object;
the router only ever sees a frozen RunStateView taken between turns.

Fields have a single writer each:
  - files    merged by the file-writing tool
  - summary  written by the orchestration loop when the agent signals completion
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class RunStateView:
    summary: str = ""
    files: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_complete(self) -> bool:
        return bool(self.summary)


class SharedRunState:

    def __init__(self, files: Optional[Mapping[str, str]] = None, summary: str = ""):
        self._files: dict[str, str] = dict(files or {})
        self._summary = summary

    @property
    def files(self) -> Mapping[str, str]:
        return MappingProxyType(self._files)

    @property
    def summary(self) -> str:
        return self._summary

    @property
    def is_complete(self) -> bool:
        return bool(self._summary)

    def merge_files(self, updated: Mapping[str, str]) -> None:
        """Overwrite by path; paths not in `updated` are kept."""
        self._files.update(updated)

    def set_summary(self, text: str) -> None:
        # empty text never clears a summary already set
        if text:
            self._summary = text

    def view(self) -> RunStateView:
        return RunStateView(
            summary=self._summary,
            files=MappingProxyType(dict(self._files)),
        )

    def __repr__(self) -> str:
        return f"<SharedRunState files={len(self._files)} complete={self.is_complete}>"
