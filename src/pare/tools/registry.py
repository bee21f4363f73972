"""
registry.py - Host tool registry seam

The lazy manager and ``discover-tools`` only talk to a ``ToolRegistry``.
``FastMCPToolRegistry`` is the production implementation over
``mcp.server.fastmcp.FastMCP``; tests pass a MagicMock with the same shape.

Each server owns exactly one registry object. There is no process-wide
registry.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from mcp.server.fastmcp import FastMCP

from ..config.logging import get_logger

logger = get_logger("pare.tools.registry")

ToolHandler = Callable[..., Any]


@runtime_checkable
class ToolRegistry(Protocol):
    """What a tool registration callable may use."""

    def add_tool(self, fn: ToolHandler, name: str, description: str) -> None: ...

    def tool_names(self) -> list[str]: ...

    def send_tool_list_changed(self) -> Optional[Awaitable[None]]: ...


class FastMCPToolRegistry:
    """ToolRegistry backed by a FastMCP server."""

    def __init__(self, mcp: FastMCP):
        self.mcp = mcp
        self._names: list[str] = []

    def add_tool(self, fn: ToolHandler, name: str, description: str) -> None:
        if name in self._names:
            logger.debug("registry.duplicate", tool=name)
            return
        self.mcp.add_tool(fn, name=name, description=description)
        self._names.append(name)

    def tool_names(self) -> list[str]:
        return list(self._names)

    async def send_tool_list_changed(self) -> None:
        """Notify the connected client, if a request is in flight."""
        try:
            session = self.mcp.get_context().session
        except (LookupError, ValueError):
            # No active request (e.g. during startup); nothing to notify.
            logger.debug("registry.notify_skipped", reason="no active session")
            return
        await session.send_tool_list_changed()
        logger.info("registry.tool_list_changed", tools=len(self._names))


__all__ = ["FastMCPToolRegistry", "ToolHandler", "ToolRegistry"]
