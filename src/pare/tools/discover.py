"""
discover.py - The ``discover-tools`` meta-tool

Lists deferred tools and loads the ones the model asks for. Registered only
when the server actually has deferred tools.
"""

from __future__ import annotations

from typing import Annotated, Optional

from mcp.types import CallToolResult
from pydantic import Field

from ..output import dual_output
from ..policy.limits import INPUT_LIMITS, ShortStr
from .lazy import LOAD_ALL, DiscoveryResult, LazyToolManager
from .registry import ToolRegistry

DISCOVER_TOOL_NAME = "discover-tools"


def format_discovery(result: DiscoveryResult) -> str:
    lines: list[str] = []
    if result.loaded:
        lines.append(f"Loaded {len(result.loaded)} tool(s): {', '.join(result.loaded)}")
    if result.available:
        lines.append(
            f"{result.total_available} additional tool(s) available. "
            f'Call {DISCOVER_TOOL_NAME} with load=["name", ...] (or ["{LOAD_ALL}"]) to enable them:'
        )
        lines.extend(f"  - {tool.name}: {tool.description}" for tool in result.available)
    else:
        lines.append("All tools are loaded.")
    return "\n".join(lines)


def register_discover_tool(
    registry: ToolRegistry,
    manager: LazyToolManager,
    server_name: str,
) -> None:
    """Attach ``discover-tools`` for ``server_name`` to ``registry``."""

    async def discover_tools(
        load: Annotated[
            Optional[list[ShortStr]],
            Field(
                description=f'Tool names to load, or ["{LOAD_ALL}"]. Omit to just list deferred tools.',
                max_length=INPUT_LIMITS.ARRAY_MAX,
            ),
        ] = None,
    ) -> CallToolResult:
        result = await manager.discover(load or [])
        return dual_output(result, format_discovery).to_call_tool_result()

    registry.add_tool(
        discover_tools,
        name=DISCOVER_TOOL_NAME,
        description=(
            f"Discover and load additional {server_name} tools that are not loaded by default. "
            f"Call without arguments to list them."
        ),
    )


__all__ = ["DISCOVER_TOOL_NAME", "format_discovery", "register_discover_tool"]
