"""
output.py - Dual output shaping

Every tool returns an OutputEnvelope: structured data for agents plus a
human-readable rendition of the same data.

compact_dual_output compares the estimated token cost of the structured
payload against the raw CLI text the model would otherwise have read. When
the structured form costs more than ``raw * output.compact_multiplier``
tokens, the compact projection is returned instead. ``force_full`` always
wins.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Optional, TypeVar

import orjson
from pydantic import BaseModel

from .config.logging import get_logger
from .config.settings import get_setting
from .types import OutputEnvelope

logger = get_logger("pare.output")

T = TypeVar("T")
S = TypeVar("S")
C = TypeVar("C")


def to_jsonable(data: Any) -> Any:
    """Convert pydantic models (recursively) into plain JSON-compatible values."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(data, dict):
        return {k: to_jsonable(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [to_jsonable(v) for v in data]
    return data


def estimate_tokens(text: str, chars_per_token: Optional[int] = None) -> int:
    """Rough token estimate: ``ceil(len(text) / chars_per_token)``."""
    if chars_per_token is None:
        chars_per_token = int(get_setting("output.chars_per_token", 4))
    return math.ceil(len(text) / max(1, chars_per_token))


def should_compact(structured: Any, raw_text: str, multiplier: Optional[float] = None) -> bool:
    if multiplier is None:
        multiplier = float(get_setting("output.compact_multiplier", 1.0))
    structured_tokens = estimate_tokens(orjson.dumps(to_jsonable(structured)).decode())
    raw_tokens = estimate_tokens(raw_text)
    compact = structured_tokens > raw_tokens * multiplier
    if compact:
        logger.debug(
            "output.compact",
            structured_tokens=structured_tokens,
            raw_tokens=raw_tokens,
            multiplier=multiplier,
        )
    return compact


def dual_output(data: T, format_full: Callable[[T], str]) -> OutputEnvelope:
    return OutputEnvelope(structured=to_jsonable(data), human_text=format_full(data))


def compact_dual_output(
    data: T,
    raw_text: str,
    format_full: Callable[[T], str],
    to_compact: Callable[[T], C],
    format_compact: Callable[[C], str],
    force_full: bool = False,
) -> OutputEnvelope:
    """Full output, or the compact projection when the full form is too costly."""
    if force_full or not should_compact(data, raw_text):
        return dual_output(data, format_full)
    return dual_output(to_compact(data), format_compact)


def stripped_dual_output(
    data: T,
    format_full: Callable[[T], str],
    to_schema: Callable[[T], S],
) -> OutputEnvelope:
    """The formatter sees all of ``data``; the structured payload only its schema projection."""
    return OutputEnvelope(structured=to_jsonable(to_schema(data)), human_text=format_full(data))


def stripped_compact_dual_output(
    data: T,
    raw_text: str,
    format_full: Callable[[T], str],
    to_schema: Callable[[T], S],
    to_compact: Callable[[T], C],
    format_compact: Callable[[C], str],
    force_full: bool = False,
) -> OutputEnvelope:
    """Like compact_dual_output, measured on the schema projection rather than ``data``."""
    if force_full:
        return stripped_dual_output(data, format_full, to_schema)
    if should_compact(to_schema(data), raw_text):
        return dual_output(to_compact(data), format_compact)
    return stripped_dual_output(data, format_full, to_schema)


__all__ = [
    "compact_dual_output",
    "dual_output",
    "estimate_tokens",
    "should_compact",
    "stripped_compact_dual_output",
    "stripped_dual_output",
    "to_jsonable",
]
