"""
pare - Shared execution core for agent tool servers.

    from pare import run, assert_no_flag_injection, compact_dual_output

- runner:  guarded process execution returning RunResult
- policy:  input safety predicates raising PolicyViolation
- output:  full/compact dual output shaping
- tools:   lazy tool loading and ``discover-tools``
"""

from .errors import (
    CommandNotFoundError,
    CommandPermissionError,
    CommandTimeoutError,
    PareError,
    PolicyViolation,
    SpawnError,
    ViolationKind,
    classify_error,
    error_output,
    invalid_input_error,
    policy_error_output,
)
from .output import compact_dual_output, dual_output, stripped_compact_dual_output, stripped_dual_output
from .policy import (
    assert_allowed_command,
    assert_allowed_root,
    assert_no_flag_injection,
    assert_no_path_qualified_command,
    assert_safe_file_path,
    assert_safe_header,
    assert_safe_url,
    assert_safe_volume_mount,
    assert_valid_port_mapping,
)
from .runner import run, run_request
from .types import KillSignal, OutputEncoding, OutputEnvelope, RunRequest, RunResult, ToolDescriptor

__version__ = "0.4.0"

__all__ = [
    "CommandNotFoundError",
    "CommandPermissionError",
    "CommandTimeoutError",
    "KillSignal",
    "OutputEncoding",
    "OutputEnvelope",
    "PareError",
    "PolicyViolation",
    "RunRequest",
    "RunResult",
    "SpawnError",
    "ToolDescriptor",
    "ViolationKind",
    "assert_allowed_command",
    "assert_allowed_root",
    "assert_no_flag_injection",
    "assert_no_path_qualified_command",
    "assert_safe_file_path",
    "assert_safe_header",
    "assert_safe_url",
    "assert_safe_volume_mount",
    "assert_valid_port_mapping",
    "classify_error",
    "compact_dual_output",
    "dual_output",
    "error_output",
    "invalid_input_error",
    "policy_error_output",
    "run",
    "run_request",
    "stripped_compact_dual_output",
    "stripped_dual_output",
]
