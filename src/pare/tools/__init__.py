"""
pare.tools - Tool visibility: filters, profiles, lazy loading and discovery.
"""

from .discover import DISCOVER_TOOL_NAME, register_discover_tool
from .filter import is_lazy_enabled, should_register_tool
from .lazy import DiscoveryResult, LazyToolManager, ToolState
from .notifier import ToolListChangedNotifier
from .profiles import CORE_TOOLS, PROFILES, is_core_tool_for_server, reset_profile_cache, resolve_profile
from .registry import FastMCPToolRegistry, ToolRegistry

__all__ = [
    "CORE_TOOLS",
    "DISCOVER_TOOL_NAME",
    "PROFILES",
    "DiscoveryResult",
    "FastMCPToolRegistry",
    "LazyToolManager",
    "ToolListChangedNotifier",
    "ToolRegistry",
    "ToolState",
    "is_core_tool_for_server",
    "is_lazy_enabled",
    "register_discover_tool",
    "reset_profile_cache",
    "resolve_profile",
    "should_register_tool",
]
