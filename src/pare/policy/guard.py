"""
guard.py - Input safety predicates

Every function here either returns None or raises PolicyViolation. They run
before any process is spawned, so a rejected value never reaches a command
line. Messages carry stable substrings that callers match on:

    assert_allowed_command            "is not allowed" ... "Allowed:"
    assert_no_path_qualified_command  "Path-qualified commands are not allowed"
    assert_no_flag_injection          'must not start with "-"'
    assert_allowed_root               "outside allowed roots"
    assert_safe_file_path             "path traversal"
                                      "outside the working directory"
                                      "symlink resolves to"
    assert_safe_volume_mount          "dangerous host path"
    assert_safe_url                   "URL must not be empty"
                                      "Unsafe URL scheme"
    assert_safe_header                "header injection"
    assert_valid_port_mapping         "Invalid port mapping"
"""

from __future__ import annotations

import ntpath
import os
import posixpath
import re
from collections.abc import Collection
from pathlib import Path
from typing import Optional

from ..config.logging import get_logger
from ..errors import PolicyViolation, ViolationKind

logger = get_logger("pare.policy")


def _violation(kind: ViolationKind, field: str, message: str) -> PolicyViolation:
    logger.warning("policy.violation", kind=kind.value, field=field)
    return PolicyViolation(kind, field, message)


# =============================================================================
# Commands
# =============================================================================

_SCRIPT_SUFFIX_RE = re.compile(r"\.(cmd|exe|bat|sh)$", re.IGNORECASE)


def command_basename(program: str) -> str:
    """``/usr/bin/node`` -> ``node``, ``C:\\tools\\npx.cmd`` -> ``npx``."""
    base = program.replace("\\", "/").rsplit("/", 1)[-1]
    return _SCRIPT_SUFFIX_RE.sub("", base)


def _is_path_qualified(program: str) -> bool:
    return "/" in program or "\\" in program


def assert_allowed_command(program: str, allowlist: Collection[str]) -> None:
    if _is_path_qualified(program):
        logger.warning(
            "policy.path_qualified_command",
            program=program,
            hint="prefer a bare command name resolved via PATH",
        )
    base = command_basename(program)
    if base in allowlist or program in allowlist:
        return
    raise _violation(
        ViolationKind.DISALLOWED_COMMAND,
        "command",
        f'Command "{program}" is not allowed. Allowed: {", ".join(sorted(allowlist))}',
    )


def assert_no_path_qualified_command(program: str) -> None:
    if _is_path_qualified(program):
        raise _violation(
            ViolationKind.PATH_QUALIFIED_COMMAND,
            "command",
            f"Path-qualified commands are not allowed. "
            f'Use a bare command name (e.g., "{command_basename(program)}" not "{program}") '
            f"that resolves via PATH.",
        )


# =============================================================================
# Arguments
# =============================================================================


def assert_no_flag_injection(value: str, field: str) -> None:
    """Reject positional values a CLI could read as an option."""
    if value.strip().startswith("-"):
        raise _violation(
            ViolationKind.FLAG_INJECTION,
            field,
            f'Invalid {field}: "{value}". Values must not start with "-" to prevent flag injection.',
        )


# =============================================================================
# Paths
# =============================================================================


def _is_within(path: Path, root: Path) -> bool:
    return path == root or path.is_relative_to(root)


def _assert_no_nul(raw: str, field: str) -> None:
    if "\0" in raw:
        raise _violation(
            ViolationKind.NUL_BYTE,
            field,
            f"Invalid {field}: path contains a NUL byte.",
        )


def assert_allowed_root(
    path: str | os.PathLike[str],
    policy_name: str,
    roots: Optional[Collection[str]] = None,
) -> None:
    """Require ``path`` to resolve under one of ``roots``.

    When ``roots`` is None they come from ``PARE_ALLOWED_ROOTS`` /
    ``PARE_{POLICY}_ALLOWED_ROOTS``. No configured roots means no restriction.
    """
    if roots is None:
        from .config import resolve_allowed_roots

        roots = resolve_allowed_roots(policy_name)
    if not roots:
        return

    _assert_no_nul(os.fspath(path), policy_name)
    target = Path(path).resolve()
    for root in roots:
        if _is_within(target, Path(root).resolve()):
            return

    raise _violation(
        ViolationKind.OUTSIDE_ROOT,
        policy_name,
        f'Path "{os.fspath(path)}" is outside allowed roots. Allowed roots: {", ".join(roots)}',
    )


def _has_traversal(path: str) -> bool:
    return ".." in re.split(r"[\\/]", path)


def assert_safe_file_path(
    path: str | os.PathLike[str],
    cwd: str | os.PathLike[str],
    field: str = "path",
) -> None:
    """Require ``path`` to stay inside ``cwd``.

    Existing targets are resolved through symlinks; paths that do not exist
    yet only get the traversal and absolute-path checks.
    """
    raw = os.fspath(path)
    _assert_no_nul(raw, field)
    if _has_traversal(raw):
        raise _violation(
            ViolationKind.PATH_TRAVERSAL,
            field,
            f'Invalid {field}: "{raw}" contains path traversal ("..").',
        )

    real_cwd = Path(cwd).resolve()
    candidate = Path(raw)
    if candidate.is_absolute():
        if not _is_within(candidate.resolve(), real_cwd):
            raise _violation(
                ViolationKind.OUTSIDE_ROOT,
                field,
                f'Invalid {field}: "{raw}" is outside the working directory "{os.fspath(cwd)}".',
            )
        target = candidate
    else:
        target = Path(cwd) / candidate

    if target.is_symlink() or target.exists():
        real_target = target.resolve()
        if not _is_within(real_target, real_cwd):
            raise _violation(
                ViolationKind.SYMLINK_ESCAPE,
                field,
                f'Invalid {field}: "{raw}" is a symlink; symlink resolves to "{real_target}", '
                f"which is outside the working directory.",
            )


# =============================================================================
# Container volume mounts
# =============================================================================

DANGEROUS_MOUNT_PATHS: tuple[str, ...] = (
    "/",
    "/etc",
    "/proc",
    "/sys",
    "/dev",
    "/root",
    "/var/run/docker.sock",
    "/run/docker.sock",
)

_DRIVE_PATH_RE = re.compile(r"^[A-Za-z]:(?:[\\/]|$)")
_DRIVE_ROOT_RE = re.compile(r"^[A-Za-z]:\\?$")


def _split_mount_host(value: str) -> str:
    if _DRIVE_PATH_RE.match(value):
        sep = value.find(":", 2)
        return value if sep == -1 else value[:sep]
    return value.split(":", 1)[0]


def _is_host_path(host: str) -> bool:
    return (
        host.startswith(("/", "./", "../", "~"))
        or host in (".", "..")
        or bool(_DRIVE_PATH_RE.match(host))
    )


def _dangerous_match(host: str) -> Optional[str]:
    if _DRIVE_PATH_RE.match(host):
        normalized = ntpath.normpath(host)
        return normalized if _DRIVE_ROOT_RE.match(normalized) else None

    normalized = posixpath.normpath(re.sub(r"^/+", "/", host))
    for dangerous in DANGEROUS_MOUNT_PATHS:
        if normalized == dangerous:
            return dangerous
        if dangerous != "/" and normalized.startswith(dangerous + "/"):
            return dangerous
    return None


def assert_safe_volume_mount(value: str, field: str = "volume") -> None:
    """Reject bind mounts of sensitive host paths. Named volumes always pass."""
    host = _split_mount_host(value.strip())
    if not _is_host_path(host):
        return
    matched = _dangerous_match(host)
    if matched is not None:
        raise _violation(
            ViolationKind.UNSAFE_VOLUME_MOUNT,
            field,
            f'Unsafe {field}: "{value}" mounts dangerous host path "{matched}".',
        )


# =============================================================================
# Network inputs
# =============================================================================


def assert_safe_url(url: str, field: str = "url") -> None:
    if not url or not url.strip():
        raise _violation(ViolationKind.UNSAFE_URL_SCHEME, field, "URL must not be empty.")
    lowered = url.strip().lower()
    if not lowered.startswith(("http://", "https://")):
        raise _violation(
            ViolationKind.UNSAFE_URL_SCHEME,
            field,
            f'Unsafe URL scheme in {field}: "{url}". Only http:// and https:// URLs are allowed.',
        )


_HEADER_BAD_CHARS = ("\r", "\n", "\0")


def assert_safe_header(key: str, value: str) -> None:
    if any(c in key or c in value for c in _HEADER_BAD_CHARS):
        raise _violation(
            ViolationKind.HEADER_INJECTION,
            "headers",
            f'Invalid header "{key.strip()}": header injection detected '
            f"(CR, LF and NUL characters are not allowed).",
        )


_PORT = r"\d{1,5}"
_PORT_RANGE = rf"{_PORT}(?:-{_PORT})?"
_PROTO = r"(?:/(?:tcp|udp|sctp))?"
_IP = r"(?:\d{1,3}(?:\.\d{1,3}){3}|\[[0-9A-Fa-f:.]+\])"
_PORT_MAPPING_RES = (
    re.compile(rf"^(?P<single>{_PORT_RANGE})$"),
    re.compile(rf"^(?P<host>{_PORT_RANGE}):(?P<container>{_PORT_RANGE}){_PROTO}$"),
    re.compile(rf"^{_IP}:(?P<host>{_PORT_RANGE}):(?P<container>{_PORT_RANGE}){_PROTO}$"),
)


def _valid_port_range(spec: str) -> bool:
    bounds = [int(p) for p in spec.split("-")]
    if any(p < 1 or p > 65535 for p in bounds):
        return False
    return len(bounds) == 1 or bounds[0] <= bounds[1]


def is_valid_port_mapping(value: str) -> bool:
    """``8080``, ``8080:80``, ``8080:80/udp``, ``127.0.0.1:8080:80/tcp``, ranges."""
    for pattern in _PORT_MAPPING_RES:
        match = pattern.match(value)
        if match:
            return all(_valid_port_range(part) for part in match.groupdict().values() if part)
    return False


def assert_valid_port_mapping(value: str, field: str = "ports") -> None:
    if not is_valid_port_mapping(value):
        raise _violation(
            ViolationKind.INVALID_PORT_MAPPING,
            field,
            f'Invalid port mapping in {field}: "{value}". Expected PORT, HOST:CONTAINER, '
            f"HOST:CONTAINER/PROTO or IP:HOST:CONTAINER[/PROTO] with ports 1-65535.",
        )


__all__ = [
    "DANGEROUS_MOUNT_PATHS",
    "assert_allowed_command",
    "assert_allowed_root",
    "assert_no_flag_injection",
    "assert_no_path_qualified_command",
    "assert_safe_file_path",
    "assert_safe_header",
    "assert_safe_url",
    "assert_safe_volume_mount",
    "assert_valid_port_mapping",
    "command_basename",
    "is_valid_port_mapping",
]
