"""
server.py - Tool server assembly

create_server builds one FastMCP server for an adapter:

1. drop tools filtered out by PARE_TOOLS / PARE_PROFILE / PARE_{SERVER}_TOOLS
2. register core tools immediately
3. defer the rest when lazy mode is on (PARE_LAZY=true)
4. add ``discover-tools`` when anything was deferred

Usage:
    server = create_server("git", "1.2.0", "Structured git tools.", descriptors)
    server.run()  # stdio
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal, Optional

from mcp.server.fastmcp import FastMCP

from .config.logging import configure_logging, get_logger
from .tools.discover import register_discover_tool
from .tools.filter import is_lazy_enabled, should_register_tool
from .tools.lazy import LazyToolManager
from .tools.notifier import ToolListChangedNotifier
from .tools.profiles import is_core_tool_for_server
from .tools.registry import FastMCPToolRegistry
from .types import ToolDescriptor

logger = get_logger("pare.server")


@dataclass
class ToolServer:
    """A FastMCP server together with its registry and lazy manager."""

    name: str
    version: str
    mcp: FastMCP
    registry: FastMCPToolRegistry
    manager: LazyToolManager
    lazy: bool

    def run(self, transport: Literal["stdio", "sse", "streamable-http"] = "stdio") -> None:
        logger.info("server.start", server=self.name, version=self.version, transport=transport)
        self.mcp.run(transport=transport)


def create_server(
    name: str,
    version: str,
    instructions: str,
    descriptors: Iterable[ToolDescriptor],
    *,
    server_name: Optional[str] = None,
    lazy: Optional[bool] = None,
    notify_debounce_seconds: float = 0.0,
) -> ToolServer:
    """Build a tool server for ``descriptors``.

    Args:
        name: Server name announced to the host.
        version: Server version announced to the host.
        instructions: Instructions announced to the host.
        descriptors: Every tool the adapter offers.
        server_name: Key used for filters and core-tool lookup; defaults to ``name``.
        lazy: Force lazy mode on/off; defaults to ``is_lazy_enabled()``.
        notify_debounce_seconds: Coalesce tool-list notifications within this window.
    """
    configure_logging()
    server_name = server_name or name
    lazy = is_lazy_enabled() if lazy is None else lazy

    mcp = FastMCP(name, instructions=instructions)
    mcp._mcp_server.version = version
    registry = FastMCPToolRegistry(mcp)
    notify = (
        ToolListChangedNotifier(registry, notify_debounce_seconds)
        if notify_debounce_seconds > 0
        else None
    )
    manager = LazyToolManager(registry, notify=notify)

    skipped = 0
    for descriptor in descriptors:
        if not should_register_tool(server_name, descriptor.name):
            skipped += 1
            continue
        core = descriptor.is_core or is_core_tool_for_server(server_name, descriptor.name)
        if lazy and not core:
            manager.register_lazy(descriptor)
        else:
            manager.register_core(descriptor)

    if manager.has_deferred_tools():
        register_discover_tool(registry, manager, server_name)

    logger.info(
        "server.created",
        server=server_name,
        lazy=lazy,
        visible=len(manager.visible_tools()),
        deferred=len(manager.list_lazy()),
        filtered=skipped,
    )
    return ToolServer(
        name=name,
        version=version,
        mcp=mcp,
        registry=registry,
        manager=manager,
        lazy=lazy,
    )


__all__ = ["ToolServer", "create_server"]
