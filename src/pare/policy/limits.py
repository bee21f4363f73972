"""
limits.py - Size limits for caller-supplied input

Adapter schemas use the Annotated aliases so oversized values are rejected
by pydantic validation before any guard or command sees them.
"""

from __future__ import annotations

from collections.abc import Sized
from dataclasses import dataclass
from typing import Annotated

from pydantic import Field, StringConstraints

from ..errors import PolicyViolation, ViolationKind


@dataclass(frozen=True)
class InputLimits:
    STRING_MAX: int = 65_536
    ARRAY_MAX: int = 1_000
    PATH_MAX: int = 4_096
    MESSAGE_MAX: int = 72_000
    SHORT_STRING_MAX: int = 255


INPUT_LIMITS = InputLimits()

ShortStr = Annotated[str, StringConstraints(max_length=INPUT_LIMITS.SHORT_STRING_MAX)]
PathStr = Annotated[str, StringConstraints(max_length=INPUT_LIMITS.PATH_MAX)]
MessageStr = Annotated[str, StringConstraints(max_length=INPUT_LIMITS.MESSAGE_MAX)]
LongStr = Annotated[str, StringConstraints(max_length=INPUT_LIMITS.STRING_MAX)]
ArgList = Annotated[list[LongStr], Field(max_length=INPUT_LIMITS.ARRAY_MAX)]


def assert_max_length(value: Sized, limit: int, field: str) -> None:
    """Raise InputTooLong when ``value`` (string or sequence) exceeds ``limit``."""
    size = len(value)
    if size > limit:
        unit = "characters" if isinstance(value, (str, bytes)) else "items"
        raise PolicyViolation(
            ViolationKind.INPUT_TOO_LONG,
            field,
            f"{field} exceeds the maximum length of {limit} {unit} (got {size}).",
        )


__all__ = [
    "INPUT_LIMITS",
    "ArgList",
    "InputLimits",
    "LongStr",
    "MessageStr",
    "PathStr",
    "ShortStr",
    "assert_max_length",
]
