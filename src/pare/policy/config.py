"""
config.py - Opt-in hardening via environment variables

Every control follows the same precedence as tool filtering:

1. ``PARE_{SETTING}``          global, applies to all servers
2. ``PARE_{SERVER}_{SETTING}`` per-server override
3. unset                       permissive, no restriction

The global variable wins when both are set.

Controls:
    PARE_ALLOWED_COMMANDS / PARE_{SERVER}_ALLOWED_COMMANDS
        Comma-separated command names, e.g. ``node,python,make``.
    PARE_ALLOWED_ROOTS / PARE_{SERVER}_ALLOWED_ROOTS
        Comma-separated directories every path/cwd must live under.
    PARE_BUILD_STRICT_PATH
        ``true`` rejects path-qualified commands such as ``/tmp/evil/npm``.
"""

from __future__ import annotations

import os
from typing import Optional

from .guard import assert_allowed_command, assert_no_path_qualified_command


def server_env_key(server_name: str, setting: str) -> str:
    return f"PARE_{server_name.upper().replace('-', '_')}_{setting}"


def read_policy_var(server_name: str, setting: str) -> Optional[str]:
    value = os.environ.get(f"PARE_{setting}")
    if value is not None:
        return value
    return os.environ.get(server_env_key(server_name, setting))


def parse_list(raw: Optional[str]) -> Optional[tuple[str, ...]]:
    """Split a comma-separated value; None when unset or blank."""
    if raw is None or not raw.strip():
        return None
    items = [item.strip() for item in raw.split(",")]
    return tuple(dict.fromkeys(item for item in items if item))


def allowed_commands(server_name: str) -> Optional[frozenset[str]]:
    parsed = parse_list(read_policy_var(server_name, "ALLOWED_COMMANDS"))
    return frozenset(parsed) if parsed else None


def resolve_allowed_roots(policy_name: str) -> Optional[tuple[str, ...]]:
    return parse_list(read_policy_var(policy_name, "ALLOWED_ROOTS"))


def strict_path_enabled() -> bool:
    return os.environ.get("PARE_BUILD_STRICT_PATH", "").strip().lower() == "true"


def assert_allowed_by_policy(command: str, server_name: str) -> None:
    """Apply the ALLOWED_COMMANDS policy; no-op when it is not configured."""
    allowed = allowed_commands(server_name)
    if allowed is None:
        return
    assert_allowed_command(command, allowed)


def assert_strict_path(command: str) -> None:
    if strict_path_enabled():
        assert_no_path_qualified_command(command)


__all__ = [
    "allowed_commands",
    "assert_allowed_by_policy",
    "assert_strict_path",
    "parse_list",
    "read_policy_var",
    "resolve_allowed_roots",
    "server_env_key",
    "strict_path_enabled",
]
