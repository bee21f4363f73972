"""
filter.py - Which tools exist in this deployment, and whether they defer

Precedence for ``should_register_tool``:

1. ``PARE_TOOLS=git:status,npm:install``  explicit ``server:tool`` list
2. ``PARE_PROFILE=minimal``               preset profile
3. ``PARE_{SERVER}_TOOLS=status,log``     per-server tool list
4. nothing set                            every tool is registered

An empty list disables everything it covers.
"""

from __future__ import annotations

import os

from ..policy.config import server_env_key
from .profiles import resolve_profile


def _split(raw: str) -> set[str]:
    return {item.strip() for item in raw.split(",") if item.strip()}


def should_register_tool(server_name: str, tool_name: str) -> bool:
    qualified = f"{server_name}:{tool_name}"

    explicit = os.environ.get("PARE_TOOLS")
    if explicit is not None:
        return qualified in _split(explicit)

    profile = resolve_profile()
    if profile is not None:
        return qualified in profile

    per_server = os.environ.get(server_env_key(server_name, "TOOLS"))
    if per_server is not None:
        return tool_name in _split(per_server)

    return True


def is_lazy_enabled() -> bool:
    """``PARE_LAZY=true``, unless PARE_TOOLS or the ``full`` profile is set."""
    if os.environ.get("PARE_TOOLS") is not None:
        return False
    if os.environ.get("PARE_PROFILE", "").strip().lower() == "full":
        return False
    return os.environ.get("PARE_LAZY", "").strip().lower() == "true"


__all__ = ["is_lazy_enabled", "should_register_tool"]
