"""
tools/tool_registry.py — Tool Registry

Maps tool names to their schemas and async handlers. The sandbox tools are
bound to one sandbox id and one run's state, so a registry is built per run
rather than shared as a module-level singleton.

Usage:
    registry = ToolRegistry()

    @registry.register(
        name="read_files",
        description="Read files from the sandbox",
        parameters={...},
    )
    async def read_files(files: list[str]) -> ToolOutcome:
        ...

    schema = registry.get_schema("read_files")
    handler = registry.get_handler("read_files")
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Optional

from codeforge.observability.logger import get_logger
from codeforge.tools.types import ToolSchema

log = get_logger(__name__)


class ToolRegistry:
    """
    Registry that maps tool names to their schemas and async handlers.

    Thread-safe for reads (dict lookups). Not designed for concurrent writes.
    """

    def __init__(self):
        self._schemas: dict[str, ToolSchema] = {}
        self._handlers: dict[str, Callable] = {}

    def register(
        self,
        name: str,
        description: str,
        category: str = "sandbox",
        parameters: Optional[dict[str, Any]] = None,
        enabled: bool = True,
    ) -> Callable:
        """Decorator to register an async tool handler."""
        def decorator(fn: Callable) -> Callable:
            schema = ToolSchema(
                name=name,
                description=description,
                category=category,
                parameters=parameters or {
                    "type": "object",
                    "properties": {},
                    "required": [],
                },
                enabled=enabled,
            )
            self.register_tool(schema, fn)

            @functools.wraps(fn)
            async def wrapper(*args, **kwargs):
                return await fn(*args, **kwargs)

            return wrapper

        return decorator

    def register_tool(self, schema: ToolSchema, handler: Callable) -> None:
        """Programmatic registration (alternative to decorator)."""
        self._schemas[schema.name] = schema
        self._handlers[schema.name] = handler
        log.debug("tool.registered", tool=schema.name, category=schema.category)

    def get_schema(self, name: str) -> Optional[ToolSchema]:
        return self._schemas.get(name)

    def get_handler(self, name: str) -> Optional[Callable]:
        return self._handlers.get(name)

    def is_registered(self, name: str) -> bool:
        return name in self._schemas

    def list_schemas(self, enabled_only: bool = True) -> list[ToolSchema]:
        schemas = list(self._schemas.values())
        if enabled_only:
            schemas = [s for s in schemas if s.enabled]
        return schemas

    def list_names(self, enabled_only: bool = True) -> list[str]:
        return [s.name for s in self.list_schemas(enabled_only)]

    def enable(self, name: str) -> None:
        if name in self._schemas:
            self._schemas[name].enabled = True

    def disable(self, name: str) -> None:
        if name in self._schemas:
            self._schemas[name].enabled = False

    def __len__(self) -> int:
        return len(self._schemas)

    def __repr__(self) -> str:
        return f"<ToolRegistry tools={list(self._schemas.keys())}>"
