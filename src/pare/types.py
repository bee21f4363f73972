"""
types.py - Value types shared by the runner, the shaper and the tool manager.

All types are frozen pydantic v2 models on top of ``OrjsonModel`` so they
serialize with orjson and camelCase aliases (``exitCode``, ``timedOut``,
``durationMillis``) exactly as hosts expect them on the wire.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

import orjson
from mcp.types import CallToolResult, TextContent
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config.settings import get_setting


class OrjsonModel(BaseModel):
    """Base model powered by orjson."""

    def model_dump_json_bytes(self, **kwargs) -> bytes:
        """Dump to JSON bytes using orjson."""
        return orjson.dumps(self.model_dump(mode="json", **kwargs))

    def model_dump_json_str(self, **kwargs) -> str:
        """Dump to JSON string using orjson."""
        return orjson.dumps(self.model_dump(mode="json", **kwargs)).decode()


class KillSignal(str, Enum):
    """Signals the runner may send to a process group on timeout."""

    SIGTERM = "SIGTERM"
    SIGKILL = "SIGKILL"
    SIGINT = "SIGINT"
    SIGHUP = "SIGHUP"
    SIGQUIT = "SIGQUIT"


class OutputEncoding(str, Enum):
    UTF8 = "utf-8"
    LATIN1 = "latin-1"
    ASCII = "ascii"


_WIRE_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
    arbitrary_types_allowed=True,
)


def _default_timeout_ms() -> int:
    return int(get_setting("runner.default_timeout_ms", 60_000))


class RunRequest(OrjsonModel):
    """One command invocation. Owned by the caller that builds it."""

    model_config = _WIRE_CONFIG

    program: str = Field(..., min_length=1, description="Program name or path")
    args: tuple[str, ...] = Field(default=(), description="Argument vector")
    cwd: str | None = Field(None, alias="workingDirectory")
    env: dict[str, str] | None = Field(None, alias="environment")
    inherit_env: bool = Field(True, description="Merge env over os.environ instead of replacing it")
    stdin: str | bytes | None = None
    timeout_ms: int = Field(default_factory=_default_timeout_ms, gt=0, alias="timeoutMillis")
    max_buffer_bytes: int | None = Field(None, gt=0)
    max_output_lines: int | None = Field(None, gt=0)
    kill_signal: KillSignal = KillSignal.SIGTERM
    use_shell: bool = False
    encoding: OutputEncoding = OutputEncoding.UTF8


class RunResult(OrjsonModel):
    """Outcome of one RunRequest.

    ``timed_out=True`` always comes with ``exit_code == 124``. Nonzero exits,
    timeouts and signal deaths are all reported here instead of raised.
    """

    model_config = _WIRE_CONFIG

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    signal: str | None = None
    truncated: bool | None = None
    stdout_truncated_lines: int | None = None
    stderr_truncated_lines: int | None = None
    user_cpu_time_ms: float | None = Field(None, alias="userCpuTimeMillis")
    system_cpu_time_ms: float | None = Field(None, alias="systemCpuTimeMillis")
    duration_ms: float = Field(0.0, alias="durationMillis")

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class ToolDescriptor(BaseModel):
    """A tool known to a server, registered now (core) or on discovery."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    is_core: bool = False
    register: Callable[[Any], Any] = Field(..., exclude=True, repr=False)


class OutputEnvelope(OrjsonModel):
    """Structured payload plus its human-readable rendition."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    structured: Any
    human_text: str
    is_error: bool = False

    def to_call_tool_result(self) -> CallToolResult:
        structured = self.structured
        if not isinstance(structured, dict):
            structured = {"result": structured}
        return CallToolResult(
            content=[TextContent(type="text", text=self.human_text)],
            structuredContent=structured,
            isError=self.is_error,
        )


__all__ = [
    "KillSignal",
    "OrjsonModel",
    "OutputEncoding",
    "OutputEnvelope",
    "RunRequest",
    "RunResult",
    "ToolDescriptor",
]
