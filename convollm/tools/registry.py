"""
Tool registry: name -> executable handler.

Built once at startup and shared read-only by every request.
"""

from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType

from convollm.tools.base import Tool, ToolFunction, ToolSchema

# Handlers have the same shape as plain tool functions
ToolHandler = ToolFunction


class ToolRegistry:
    """
    Immutable collection of tools, keyed by name.

    Args:
        tools: Tools to register. Names must be unique.

    Raises:
        ValueError: If two tools share a name
    """

    def __init__(self, tools: Iterable[Tool] = ()):
        by_name: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in by_name:
                raise ValueError(f"Duplicate tool name: {tool.name!r}")
            by_name[tool.name] = tool
        self._tools = MappingProxyType(by_name)

    def lookup(self, name: str) -> ToolHandler | None:
        """Return the handler for ``name``, or None if no such tool is registered."""
        tool = self._tools.get(name)
        return tool.run if tool is not None else None

    def schemas(self) -> list[ToolSchema]:
        """Schemas of all registered tools, in registration order."""
        return [tool.schema() for tool in self._tools.values()]

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
