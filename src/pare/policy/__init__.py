"""
pare.policy - Safety checks that run before any command is spawned.
"""

from ..errors import PolicyViolation, ViolationKind
from .config import assert_allowed_by_policy, assert_strict_path, resolve_allowed_roots
from .guard import (
    DANGEROUS_MOUNT_PATHS,
    assert_allowed_command,
    assert_allowed_root,
    assert_no_flag_injection,
    assert_no_path_qualified_command,
    assert_safe_file_path,
    assert_safe_header,
    assert_safe_url,
    assert_safe_volume_mount,
    assert_valid_port_mapping,
    command_basename,
    is_valid_port_mapping,
)
from .limits import INPUT_LIMITS, assert_max_length

__all__ = [
    "DANGEROUS_MOUNT_PATHS",
    "INPUT_LIMITS",
    "PolicyViolation",
    "ViolationKind",
    "assert_allowed_by_policy",
    "assert_allowed_command",
    "assert_allowed_root",
    "assert_max_length",
    "assert_no_flag_injection",
    "assert_no_path_qualified_command",
    "assert_safe_file_path",
    "assert_safe_header",
    "assert_safe_url",
    "assert_safe_volume_mount",
    "assert_strict_path",
    "assert_valid_port_mapping",
    "command_basename",
    "is_valid_port_mapping",
    "resolve_allowed_roots",
]
