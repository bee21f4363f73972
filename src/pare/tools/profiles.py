"""
profiles.py - Preset tool profiles and per-server core tools

``PARE_PROFILE`` selects a curated ``server:tool`` set tuned to a workflow.
``full`` (or unset) enables everything.

CORE_TOOLS lists the tools each server registers immediately even in lazy
mode; everything else is deferred until ``discover-tools`` loads it.
"""

from __future__ import annotations

import os
import threading
from typing import Optional

from ..config.logging import get_logger

logger = get_logger("pare.tools.profiles")

_GIT_DAILY = (
    "git:status",
    "git:log",
    "git:log-graph",
    "git:diff",
    "git:branch",
    "git:show",
    "git:add",
    "git:commit",
    "git:push",
    "git:pull",
    "git:checkout",
    "git:merge",
    "git:rebase",
    "git:stash",
    "git:stash-list",
    "git:reset",
    "git:restore",
)

_GITHUB_DAILY = (
    "github:pr-view",
    "github:pr-list",
    "github:pr-create",
    "github:pr-merge",
    "github:pr-checks",
    "github:issue-view",
    "github:issue-list",
    "github:issue-create",
    "github:run-view",
    "github:run-list",
)

PROFILES: dict[str, Optional[tuple[str, ...]]] = {
    "minimal": (
        "git:status",
        "git:log",
        "git:diff",
        "git:add",
        "git:commit",
        "git:push",
        "git:pull",
        "git:checkout",
        "git:branch",
        "test:run",
        "build:build",
        "build:tsc",
        "search:search",
        "search:find",
        "github:pr-view",
        "github:pr-list",
        "github:pr-create",
        "process:run",
    ),
    "web": (
        *_GIT_DAILY,
        "github:pr-view",
        "github:pr-list",
        "github:pr-create",
        "github:pr-merge",
        "github:pr-comment",
        "github:pr-review",
        "github:pr-update",
        "github:pr-checks",
        "github:pr-diff",
        "github:issue-view",
        "github:issue-list",
        "github:issue-create",
        "github:issue-close",
        "github:issue-comment",
        "github:run-view",
        "github:run-list",
        "npm:install",
        "npm:audit",
        "npm:outdated",
        "npm:list",
        "npm:run",
        "npm:test",
        "npm:info",
        "npm:search",
        "npm:nvm",
        "build:tsc",
        "build:build",
        "build:esbuild",
        "build:vite-build",
        "build:webpack",
        "build:turbo",
        "build:nx",
        "test:run",
        "test:coverage",
        "test:playwright",
        "lint:lint",
        "lint:format-check",
        "lint:prettier-format",
        "lint:biome-check",
        "lint:biome-format",
        "lint:oxlint",
        "lint:stylelint",
        "search:search",
        "search:find",
        "search:count",
        "search:jq",
        "http:get",
        "http:post",
        "http:request",
        "http:head",
        "process:run",
    ),
    "python": (
        *_GIT_DAILY,
        *_GITHUB_DAILY,
        "python:pip-install",
        "python:pip-list",
        "python:pip-show",
        "python:mypy",
        "python:ruff-check",
        "python:ruff-format",
        "python:pip-audit",
        "python:pytest",
        "python:uv-install",
        "python:uv-run",
        "python:black",
        "python:poetry",
        "python:pyenv",
        "python:conda",
        "test:run",
        "test:coverage",
        "search:search",
        "search:find",
        "search:count",
        "make:run",
        "make:list",
        "process:run",
    ),
    "devops": (
        "git:status",
        "git:log",
        "git:diff",
        "git:branch",
        "git:show",
        "git:add",
        "git:commit",
        "git:push",
        "git:pull",
        "git:checkout",
        "git:tag",
        "git:remote",
        "git:merge",
        "github:pr-view",
        "github:pr-list",
        "github:pr-create",
        "github:pr-merge",
        "github:pr-checks",
        "github:issue-view",
        "github:issue-list",
        "github:run-view",
        "github:run-list",
        "github:run-rerun",
        "github:release-create",
        "github:release-list",
        "docker:ps",
        "docker:build",
        "docker:logs",
        "docker:images",
        "docker:run",
        "docker:exec",
        "docker:compose-up",
        "docker:compose-down",
        "docker:pull",
        "docker:inspect",
        "docker:network-ls",
        "docker:volume-ls",
        "docker:compose-ps",
        "docker:compose-logs",
        "docker:compose-build",
        "docker:stats",
        "k8s:get",
        "k8s:describe",
        "k8s:logs",
        "k8s:apply",
        "k8s:helm",
        "security:trivy",
        "security:semgrep",
        "security:gitleaks",
        "make:run",
        "make:list",
        "lint:shellcheck",
        "lint:hadolint",
        "http:get",
        "http:post",
        "http:request",
        "http:head",
        "search:search",
        "search:find",
        "process:run",
    ),
    "rust": (
        *_GIT_DAILY,
        *_GITHUB_DAILY,
        "cargo:build",
        "cargo:test",
        "cargo:clippy",
        "cargo:run",
        "cargo:add",
        "cargo:remove",
        "cargo:fmt",
        "cargo:doc",
        "cargo:check",
        "cargo:update",
        "cargo:tree",
        "cargo:audit",
        "test:run",
        "test:coverage",
        "search:search",
        "search:find",
        "search:count",
        "process:run",
    ),
    "go": (
        *_GIT_DAILY,
        *_GITHUB_DAILY,
        "go:build",
        "go:test",
        "go:vet",
        "go:run",
        "go:mod-tidy",
        "go:fmt",
        "go:generate",
        "go:env",
        "go:list",
        "go:get",
        "go:golangci-lint",
        "test:run",
        "test:coverage",
        "search:search",
        "search:find",
        "search:count",
        "process:run",
    ),
    "full": None,
}

CORE_TOOLS: dict[str, tuple[str, ...]] = {
    "git": ("status", "log", "diff", "commit", "push", "pull", "checkout", "branch", "add"),
    "github": (
        "pr-view",
        "pr-list",
        "pr-create",
        "pr-checks",
        "issue-view",
        "issue-list",
        "issue-create",
    ),
    "npm": ("install", "run", "test", "audit", "list"),
    "docker": ("ps", "build", "logs", "images", "compose-up", "compose-down"),
    "build": ("tsc", "build"),
    "test": ("run", "coverage"),
    "lint": ("lint", "format-check", "prettier-format"),
    "search": ("search", "find", "count"),
    "cargo": ("build", "test", "clippy", "run", "check"),
    "go": ("build", "test", "vet", "run", "mod-tidy", "fmt"),
    "python": ("pip-install", "pip-list", "pytest", "ruff-check", "uv-run"),
    "k8s": ("get", "describe", "logs"),
    "http": ("get", "post", "request"),
    "security": ("trivy", "semgrep"),
    "make": ("run", "list"),
    "process": ("run",),
    "bun": ("run", "test", "build", "install"),
    "deno": ("run", "test", "fmt", "lint"),
    "dotnet": ("build", "test", "run"),
    "infra": ("plan", "validate", "init"),
    "jvm": ("gradle-build", "gradle-test", "maven-build", "maven-test"),
    "nix": ("build", "run", "develop"),
    "remote": ("ssh-run", "ssh-test"),
    "ruby": ("run", "check", "bundle-install", "bundle-exec"),
    "swift": ("build", "test", "run"),
    "db": ("psql-query", "psql-list-databases", "mysql-query", "mysql-list-databases"),
    "bazel": ("bazel",),
    "cmake": ("cmake",),
}


def is_core_tool_for_server(server_name: str, tool_name: str) -> bool:
    """Unknown servers treat every tool as core."""
    core = CORE_TOOLS.get(server_name)
    if core is None:
        return True
    return tool_name in core


_UNSET = object()
_profile_cache: object = _UNSET
_profile_lock = threading.Lock()


def resolve_profile() -> Optional[frozenset[str]]:
    """Allowed ``server:tool`` entries for ``PARE_PROFILE``, or None for no filtering.

    The environment is read once; ``reset_profile_cache()`` clears it for tests.
    """
    global _profile_cache
    with _profile_lock:
        if _profile_cache is not _UNSET:
            return _profile_cache  # type: ignore[return-value]

        raw = os.environ.get("PARE_PROFILE", "").strip()
        resolved: Optional[frozenset[str]] = None
        if raw:
            name = raw.lower()
            if name not in PROFILES:
                logger.warning(
                    "profile.unknown",
                    profile=raw,
                    valid=", ".join(PROFILES),
                    action="ignoring",
                )
            elif PROFILES[name] is not None:
                resolved = frozenset(PROFILES[name])
        _profile_cache = resolved
        return resolved


def reset_profile_cache() -> None:
    global _profile_cache
    with _profile_lock:
        _profile_cache = _UNSET


__all__ = [
    "CORE_TOOLS",
    "PROFILES",
    "is_core_tool_for_server",
    "reset_profile_cache",
    "resolve_profile",
]
