"""
errors.py - Error Code System and tool error envelopes

Two layers live here:

1. The exception hierarchy raised by the core. Only conditions the caller
   cannot recover from are raised: policy violations (always before a process
   is spawned), spawn failures and, when explicitly requested, timeouts.

   Error Code Structure:
   - 1xxx: Validation errors
   - 2xxx: Security errors
   - 3xxx: Runtime errors

2. Structured error payloads (``ToolError``) that tools return as data when
   the command ran and failed. ``classify_error`` maps a failed RunResult to
   one of a fixed set of categories an agent can match on.

Usage:
    from pare.errors import classify_error, error_output

    result = await run("git", ["tag", name])
    if result.exit_code != 0:
        return error_output(classify_error(result, "git tag"))
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from .types import OrjsonModel, OutputEnvelope, RunResult


class ErrorCategory(str, Enum):
    """Error category classification."""

    VALIDATION = "VALIDATION"
    SECURITY = "SECURITY"
    RUNTIME = "RUNTIME"
    UNKNOWN = "UNKNOWN"


class ErrorCode(str, Enum):
    """Error codes raised by the execution core."""

    # Validation Errors (1xxx)
    INVALID_ARGUMENT = "1001"
    INPUT_TOO_LONG = "1002"
    FORMAT_ERROR = "1005"

    # Security Errors (2xxx)
    POLICY_VIOLATION = "2001"
    COMMAND_BLOCKED = "2002"
    PATH_ESCAPE = "2003"

    # Runtime Errors (3xxx)
    COMMAND_NOT_FOUND = "3001"
    PERMISSION_DENIED = "3002"
    COMMAND_TIMEOUT = "3003"
    SPAWN_FAILED = "3004"


_CATEGORY_BY_PREFIX = {
    "1": ErrorCategory.VALIDATION,
    "2": ErrorCategory.SECURITY,
    "3": ErrorCategory.RUNTIME,
}


def _infer_category_from_code(code: Optional[ErrorCode]) -> ErrorCategory:
    if code is None:
        return ErrorCategory.UNKNOWN
    return _CATEGORY_BY_PREFIX.get(code.value[0], ErrorCategory.UNKNOWN)


class PareError(Exception):
    """Base exception for the execution core.

    Attributes:
        message: Human-readable error description
        code: Error code from ErrorCode
        category: Error category, inferred from the code when not given
        details: Additional error context dictionary
    """

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        if category == ErrorCategory.UNKNOWN:
            category = _infer_category_from_code(code)
        self.category = category
        self.details = details or {}
        super().__init__(str(self))

    def __str__(self) -> str:
        code_str = self.code.value if self.code else "UNKNOWN"
        return f"[{code_str}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"code={self.code.value if self.code else None!r}, "
            f"category={self.category.value!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code.value if self.code else None,
            "category": self.category.value,
            "details": self.details,
        }


class ViolationKind(str, Enum):
    """Which guard rejected an input."""

    DISALLOWED_COMMAND = "DisallowedCommand"
    PATH_QUALIFIED_COMMAND = "PathQualifiedCommand"
    FLAG_INJECTION = "FlagInjection"
    PATH_TRAVERSAL = "PathTraversal"
    OUTSIDE_ROOT = "OutsideRoot"
    SYMLINK_ESCAPE = "SymlinkEscape"
    UNSAFE_VOLUME_MOUNT = "UnsafeVolumeMount"
    UNSAFE_URL_SCHEME = "UnsafeUrlScheme"
    HEADER_INJECTION = "HeaderInjection"
    INVALID_PORT_MAPPING = "InvalidPortMapping"
    INPUT_TOO_LONG = "InputTooLong"
    NUL_BYTE = "NulByte"


_CODE_BY_KIND = {
    ViolationKind.DISALLOWED_COMMAND: ErrorCode.COMMAND_BLOCKED,
    ViolationKind.PATH_QUALIFIED_COMMAND: ErrorCode.COMMAND_BLOCKED,
    ViolationKind.PATH_TRAVERSAL: ErrorCode.PATH_ESCAPE,
    ViolationKind.OUTSIDE_ROOT: ErrorCode.PATH_ESCAPE,
    ViolationKind.SYMLINK_ESCAPE: ErrorCode.PATH_ESCAPE,
    ViolationKind.INVALID_PORT_MAPPING: ErrorCode.FORMAT_ERROR,
    ViolationKind.NUL_BYTE: ErrorCode.FORMAT_ERROR,
    ViolationKind.INPUT_TOO_LONG: ErrorCode.INPUT_TOO_LONG,
}


class PolicyViolation(PareError):
    """Caller-supplied input was rejected before any process was spawned."""

    def __init__(self, kind: ViolationKind, field: str, message: str):
        self.kind = kind
        self.field = field
        super().__init__(
            message=message,
            code=_CODE_BY_KIND.get(kind, ErrorCode.POLICY_VIOLATION),
            details={"kind": kind.value, "field": field},
        )


class SpawnError(PareError):
    """The program could not be started at all."""

    def __init__(
        self,
        program: str,
        message: str,
        code: ErrorCode = ErrorCode.SPAWN_FAILED,
        details: Optional[dict[str, Any]] = None,
    ):
        self.program = program
        extra = {"program": program}
        if details:
            extra.update(details)
        super().__init__(message=message, code=code, details=extra)


class CommandNotFoundError(SpawnError):
    def __init__(self, program: str):
        super().__init__(
            program,
            f'Command not found: "{program}". Ensure it is installed and available in your PATH.',
            code=ErrorCode.COMMAND_NOT_FOUND,
        )


class CommandPermissionError(SpawnError):
    def __init__(self, program: str, reason: str = ""):
        message = f'Permission denied executing "{program}"'
        if reason:
            message = f"{message}: {reason}"
        super().__init__(program, message, code=ErrorCode.PERMISSION_DENIED)


class CommandTimeoutError(PareError):
    """Raised instead of returning a timed-out RunResult when requested."""

    def __init__(self, program: str, timeout_ms: int, signal_name: Optional[str] = None):
        self.program = program
        self.timeout_ms = timeout_ms
        self.signal_name = signal_name
        killed = f" and was killed ({signal_name})" if signal_name else ""
        super().__init__(
            message=f'Command "{program}" timed out after {timeout_ms}ms{killed}.',
            code=ErrorCode.COMMAND_TIMEOUT,
            details={"program": program, "timeout_ms": timeout_ms, "signal": signal_name},
        )


# =============================================================================
# Tool error envelopes
# =============================================================================


class ToolErrorCategory(str, Enum):
    COMMAND_NOT_FOUND = "command-not-found"
    PERMISSION_DENIED = "permission-denied"
    TIMEOUT = "timeout"
    INVALID_INPUT = "invalid-input"
    NOT_FOUND = "not-found"
    NETWORK_ERROR = "network-error"
    AUTHENTICATION_ERROR = "authentication-error"
    CONFLICT = "conflict"
    CONFIGURATION_ERROR = "configuration-error"
    ALREADY_EXISTS = "already-exists"
    COMMAND_FAILED = "command-failed"


class ToolError(OrjsonModel):
    """Structured error returned as a tool result (``isError: true``)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    is_error: Literal[True] = True
    category: ToolErrorCategory
    message: str
    command: str | None = None
    exit_code: int | None = None
    suggestion: str | None = None


def _contains_any(text: str, needles: tuple[str, ...]) -> bool:
    return any(n in text for n in needles)


_NOT_FOUND_CMD = (
    "command not found",
    "not recognized",
    "enoent",
    "no such file or directory",
)
_PERMISSION = (
    "permission denied",
    "eacces",
    "eperm",
    "access denied",
    "operation not permitted",
)
_NETWORK = (
    "connection refused",
    "econnrefused",
    "etimedout",
    "econnreset",
    "enetunreach",
    "could not resolve host",
    "network is unreachable",
    "dns resolution failed",
)
_AUTH = (
    "authentication",
    "authenticated",
    "credential",
    "unauthorized",
    "permission denied (publickey",
    "invalid credentials",
    "bad credentials",
    "login required",
)
_CONFLICT = ("conflict", "lock file", "locked")
_NOT_FOUND = ("not found", "does not exist", "no such", "unknown revision", "pathspec")
_ALREADY_EXISTS = ("already exists", "already exist")
_CONFIGURATION = (
    "missing config",
    "configuration error",
    "config file not found",
    "invalid configuration",
    "no configuration",
    ".eslintrc",
    "tsconfig",
    "could not read config",
)
_HTTP_AUTH_RE = re.compile(r" 40[13][ :]")
_HTTP_NOT_FOUND_RE = re.compile(r" 404[ :]")


def _classify_text(text: str, exit_code: int) -> ToolErrorCategory:
    # Ordered: specific patterns before generic ones.
    lower = text.lower()
    if exit_code == 124 or _contains_any(lower, ("timed out", "timeout")):
        return ToolErrorCategory.TIMEOUT
    if _contains_any(lower, _NOT_FOUND_CMD):
        return ToolErrorCategory.COMMAND_NOT_FOUND
    # "permission denied (publickey)" is an auth failure, not a permission one.
    if _contains_any(lower, _AUTH) or _HTTP_AUTH_RE.search(lower):
        return ToolErrorCategory.AUTHENTICATION_ERROR
    if _contains_any(lower, _PERMISSION):
        return ToolErrorCategory.PERMISSION_DENIED
    if _contains_any(lower, _NETWORK):
        return ToolErrorCategory.NETWORK_ERROR
    if _contains_any(lower, _ALREADY_EXISTS):
        return ToolErrorCategory.ALREADY_EXISTS
    if _contains_any(lower, _CONFIGURATION):
        return ToolErrorCategory.CONFIGURATION_ERROR
    if _contains_any(lower, _CONFLICT):
        return ToolErrorCategory.CONFLICT
    if _contains_any(lower, _NOT_FOUND) or _HTTP_NOT_FOUND_RE.search(lower):
        return ToolErrorCategory.NOT_FOUND
    return ToolErrorCategory.COMMAND_FAILED


_SUGGESTIONS = {
    ToolErrorCategory.COMMAND_NOT_FOUND: 'Ensure "{cmd}" is installed and available in your PATH.',
    ToolErrorCategory.PERMISSION_DENIED: "Check file/directory permissions or run with elevated privileges.",
    ToolErrorCategory.TIMEOUT: "The command took too long. Retry with a longer timeout or a smaller scope.",
    ToolErrorCategory.INVALID_INPUT: "Check the input parameters and try again.",
    ToolErrorCategory.NOT_FOUND: "Verify the resource (file, branch, ref, etc.) exists.",
    ToolErrorCategory.NETWORK_ERROR: "Check your network connection and try again.",
    ToolErrorCategory.AUTHENTICATION_ERROR: "Verify your credentials or tokens are valid and not expired.",
    ToolErrorCategory.CONFLICT: "Resolve the conflict or release the lock and retry.",
    ToolErrorCategory.CONFIGURATION_ERROR: "Check that all required config files exist and are valid.",
    ToolErrorCategory.ALREADY_EXISTS: "The resource already exists. Use a different name or remove it first.",
    ToolErrorCategory.COMMAND_FAILED: 'Inspect the error message from "{cmd}" for more details.',
}


def suggest_recovery(category: ToolErrorCategory, command: str = "") -> str:
    return _SUGGESTIONS[category].format(cmd=command)


def classify_error(result: RunResult, command: str) -> ToolError:
    """Classify a failed RunResult into a structured ToolError.

    Looks at stderr (stdout when stderr is empty) and the exit code; falls
    back to ``command-failed`` when no known pattern matches.
    """
    text = result.stderr or result.stdout
    category = _classify_text(text, result.exit_code)
    return ToolError(
        category=category,
        message=text.strip() or f"{command} failed with exit code {result.exit_code}",
        command=command,
        exit_code=result.exit_code,
        suggestion=suggest_recovery(category, command),
    )


def format_tool_error(error: ToolError) -> str:
    lines = [f"Error [{error.category.value}]: {error.message}"]
    if error.command:
        lines.append(f"Command: {error.command}")
    if error.exit_code is not None:
        lines.append(f"Exit code: {error.exit_code}")
    if error.suggestion:
        lines.append(f"Suggestion: {error.suggestion}")
    return "\n".join(lines)


def error_output(error: ToolError) -> OutputEnvelope:
    """Wrap a ToolError as an error envelope that a tool can return directly."""
    return OutputEnvelope(
        structured=error.model_dump(mode="json", by_alias=True, exclude_none=True),
        human_text=format_tool_error(error),
        is_error=True,
    )


def invalid_input_error(message: str) -> OutputEnvelope:
    return error_output(
        ToolError(
            category=ToolErrorCategory.INVALID_INPUT,
            message=message,
            suggestion=suggest_recovery(ToolErrorCategory.INVALID_INPUT),
        )
    )


def policy_error_output(violation: PolicyViolation) -> OutputEnvelope:
    """Render a PolicyViolation as an invalid-input envelope naming the field."""
    return invalid_input_error(f"{violation.field}: {violation.message}")


def spawn_error_output(error: SpawnError) -> OutputEnvelope:
    if isinstance(error, CommandNotFoundError):
        category = ToolErrorCategory.COMMAND_NOT_FOUND
    elif isinstance(error, CommandPermissionError):
        category = ToolErrorCategory.PERMISSION_DENIED
    else:
        category = ToolErrorCategory.COMMAND_FAILED
    return error_output(
        ToolError(
            category=category,
            message=error.message,
            command=error.program,
            suggestion=suggest_recovery(category, error.program),
        )
    )


__all__ = [
    "CommandNotFoundError",
    "CommandPermissionError",
    "CommandTimeoutError",
    "ErrorCategory",
    "ErrorCode",
    "PareError",
    "PolicyViolation",
    "SpawnError",
    "ToolError",
    "ToolErrorCategory",
    "ViolationKind",
    "classify_error",
    "error_output",
    "format_tool_error",
    "invalid_input_error",
    "policy_error_output",
    "spawn_error_output",
    "suggest_recovery",
]
