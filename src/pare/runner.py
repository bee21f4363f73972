"""
runner.py - Guarded process execution

Spawns one child process per call and always returns a RunResult for
outcomes the caller can still report on (nonzero exit, timeout, signal
death, truncated output). Only spawn failures raise.

Execution model:
- Argument-vector spawn via ``asyncio.create_subprocess_exec``. Shell mode
  (``shell=True``) is an explicit, logged escape hatch.
- The child runs in its own session so a timeout can signal the whole
  process group, grandchildren included.
- stdout and stderr are drained concurrently into buffers that share one
  byte budget. Past the budget bytes are read and discarded so the child
  never blocks on a full pipe.
- On timeout the configured signal goes to the group; SIGKILL follows after
  ``runner.kill_grace_ms`` if the group is still alive.

Usage:
    from pare.runner import run

    result = await run("git", ["status", "--porcelain=v1"], cwd=repo, timeout_ms=30_000)
    if result.timed_out:
        ...
"""

from __future__ import annotations

import asyncio
import os
import re
import shlex
import signal
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional

try:
    import resource
except ImportError:  # Windows
    resource = None

from .config.logging import get_logger
from .config.settings import get_setting
from .errors import (
    CommandNotFoundError,
    CommandPermissionError,
    CommandTimeoutError,
    SpawnError,
)
from .sanitize import sanitize_error_output, strip_ansi
from .types import KillSignal, OutputEncoding, RunRequest, RunResult

logger = get_logger("pare.runner")

TIMEOUT_EXIT_CODE = 124
_IS_WINDOWS = os.name == "nt"


# =============================================================================
# cmd.exe argument escaping
# =============================================================================

_CMD_META_RE = re.compile(r"([&|<>])")


def escape_cmd_arg(arg: str) -> str:
    """Escape one argument for a cmd.exe command line.

    Arguments containing spaces, tabs or quotes are wrapped in double quotes
    (inner quotes doubled, newlines flattened to spaces). Other arguments get
    caret escapes for ``^ & | < > !``. ``%`` is always doubled so ``%VAR%``
    is never expanded.
    """
    escaped = arg.replace("%", "%%")

    if re.search(r"[ \t\"]", arg):
        escaped = re.sub(r"\r?\n", " ", escaped)
        escaped = escaped.replace('"', '""')
        return f'"{escaped}"'

    escaped = escaped.replace("^", "^^")
    escaped = _CMD_META_RE.sub(r"^\1", escaped)
    return escaped.replace("!", "^!")


def build_shell_command(program: str, args: Sequence[str]) -> str:
    """Join a shell-mode command line. ``program`` is passed through verbatim."""
    quote = escape_cmd_arg if _IS_WINDOWS else shlex.quote
    return " ".join([program, *(quote(a) for a in args)])


# =============================================================================
# Output capture
# =============================================================================


@dataclass
class _ByteBudget:
    """Byte allowance shared by the stdout and stderr readers."""

    remaining: int
    exhausted: bool = False

    def take(self, chunk: bytes) -> bytes:
        if self.remaining <= 0:
            self.exhausted = True
            return b""
        if len(chunk) <= self.remaining:
            self.remaining -= len(chunk)
            return chunk
        kept = chunk[: self.remaining]
        self.remaining = 0
        self.exhausted = True
        return kept


@dataclass
class _Capture:
    stdout: bytearray = field(default_factory=bytearray)
    stderr: bytearray = field(default_factory=bytearray)


async def _drain(
    stream: Optional[asyncio.StreamReader],
    sink: bytearray,
    budget: _ByteBudget,
    chunk_size: int,
) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            return
        sink.extend(budget.take(chunk))


async def _feed_stdin(proc: asyncio.subprocess.Process, data: bytes) -> None:
    if proc.stdin is None:
        return
    try:
        proc.stdin.write(data)
        await proc.stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # Child exited or closed stdin before reading everything.
        logger.debug("runner.stdin_closed", pid=proc.pid)
    finally:
        proc.stdin.close()


def _cap_lines(text: str, max_lines: Optional[int]) -> tuple[str, int]:
    """Keep the first ``max_lines`` lines; return the text and the dropped count."""
    if not max_lines:
        return text, 0
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    if len(lines) <= max_lines:
        return text, 0
    return "\n".join(lines[:max_lines]) + "\n", len(lines) - max_lines


# =============================================================================
# Process control
# =============================================================================


def _resolve_signal(kill_signal: KillSignal) -> signal.Signals:
    sig = getattr(signal, kill_signal.value, None)
    if sig is None:
        # Not available on this platform (e.g. SIGHUP on Windows).
        return signal.SIGTERM
    return sig


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    if _IS_WINDOWS:
        proc.send_signal(sig)
    else:
        os.killpg(proc.pid, sig)


async def _terminate(
    proc: asyncio.subprocess.Process,
    kill_signal: KillSignal,
    grace_seconds: float,
) -> Optional[str]:
    """Signal the process group, escalating to SIGKILL after the grace period.

    Returns the name of the signal that ended the process, or None when the
    process was already gone.
    """
    sig = _resolve_signal(kill_signal)
    try:
        _signal_group(proc, sig)
    except ProcessLookupError:
        await proc.wait()
        return None

    try:
        await asyncio.wait_for(proc.wait(), timeout=grace_seconds)
        return sig.name
    except asyncio.TimeoutError:
        pass

    kill = getattr(signal, "SIGKILL", signal.SIGTERM)
    logger.warning("runner.kill_escalated", pid=proc.pid, signal=kill.name)
    try:
        _signal_group(proc, kill)
    except ProcessLookupError:
        pass
    await proc.wait()
    return kill.name


def _children_cpu_times() -> Optional[tuple[float, float]]:
    if resource is None:
        return None
    usage = resource.getrusage(resource.RUSAGE_CHILDREN)
    return usage.ru_utime, usage.ru_stime


def _build_env(request: RunRequest) -> Optional[dict[str, str]]:
    if request.env is None:
        return None if request.inherit_env else {}
    if request.inherit_env:
        return {**os.environ, **request.env}
    return dict(request.env)


async def _spawn(request: RunRequest, env: Optional[dict[str, str]]) -> asyncio.subprocess.Process:
    stdin = asyncio.subprocess.PIPE if request.stdin is not None else asyncio.subprocess.DEVNULL
    common = dict(
        stdin=stdin,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=request.cwd,
        env=env,
        start_new_session=not _IS_WINDOWS,
    )
    if request.use_shell:
        command = build_shell_command(request.program, request.args)
        logger.warning("runner.shell_mode", program=request.program, command=command)
        return await asyncio.create_subprocess_shell(command, **common)
    return await asyncio.create_subprocess_exec(request.program, *request.args, **common)


def _spawn_error(request: RunRequest, exc: OSError) -> SpawnError:
    if isinstance(exc, FileNotFoundError):
        if request.cwd and exc.filename == request.cwd:
            return SpawnError(
                request.program,
                f'Working directory does not exist: "{request.cwd}"',
                details={"cwd": request.cwd},
            )
        return CommandNotFoundError(request.program)
    if isinstance(exc, PermissionError):
        return CommandPermissionError(request.program, exc.strerror or str(exc))
    if isinstance(exc, NotADirectoryError) and request.cwd:
        return SpawnError(
            request.program,
            f'Working directory is not a directory: "{request.cwd}"',
            details={"cwd": request.cwd},
        )
    return SpawnError(request.program, f'Failed to start "{request.program}": {exc}')


# =============================================================================
# Public API
# =============================================================================


async def run_request(request: RunRequest, *, raise_on_timeout: bool = False) -> RunResult:
    """Execute ``request`` and return its RunResult.

    Raises:
        CommandNotFoundError: the program does not exist.
        CommandPermissionError: the program is not executable.
        SpawnError: any other failure to start the process.
        CommandTimeoutError: only when ``raise_on_timeout`` is set.
    """
    max_bytes = request.max_buffer_bytes or int(get_setting("runner.max_buffer_bytes", 10 * 1024 * 1024))
    grace_seconds = int(get_setting("runner.kill_grace_ms", 2_000)) / 1000
    chunk_size = int(get_setting("runner.read_chunk_bytes", 64 * 1024))
    encoding = request.encoding.value

    env = _build_env(request)
    cpu_before = _children_cpu_times()
    started = time.monotonic()

    try:
        proc = await _spawn(request, env)
    except OSError as e:
        error = _spawn_error(request, e)
        logger.warning("runner.spawn_failed", program=request.program, error=error.message)
        raise error from e

    logger.debug(
        "runner.spawn",
        program=request.program,
        args=len(request.args),
        pid=proc.pid,
        cwd=request.cwd,
        timeout_ms=request.timeout_ms,
    )

    budget = _ByteBudget(remaining=max_bytes)
    capture = _Capture()
    tasks = [
        asyncio.create_task(_drain(proc.stdout, capture.stdout, budget, chunk_size)),
        asyncio.create_task(_drain(proc.stderr, capture.stderr, budget, chunk_size)),
    ]
    if request.stdin is not None:
        payload = request.stdin.encode(encoding) if isinstance(request.stdin, str) else request.stdin
        tasks.append(asyncio.create_task(_feed_stdin(proc, payload)))

    async def _communicate() -> int:
        await asyncio.gather(*tasks)
        return await proc.wait()

    timed_out = False
    killed_by: Optional[str] = None
    try:
        returncode = await asyncio.wait_for(_communicate(), timeout=request.timeout_ms / 1000)
    except asyncio.TimeoutError:
        timed_out = True
        logger.warning(
            "runner.timeout",
            program=request.program,
            pid=proc.pid,
            timeout_ms=request.timeout_ms,
            signal=request.kill_signal.value,
        )
        killed_by = await _terminate(proc, request.kill_signal, grace_seconds)
        returncode = TIMEOUT_EXIT_CODE
    except BaseException:
        # Cancelled or failed while waiting: the process group must not outlive the call.
        if proc.returncode is None:
            logger.warning("runner.abandoned", program=request.program, pid=proc.pid)
            try:
                _signal_group(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
            except ProcessLookupError:
                pass
            await proc.wait()
        raise
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    duration_ms = (time.monotonic() - started) * 1000
    cpu_after = _children_cpu_times()

    if timed_out and raise_on_timeout:
        raise CommandTimeoutError(request.program, request.timeout_ms, killed_by)

    exit_code = returncode
    signal_name = killed_by
    if not timed_out and returncode < 0:
        signum = -returncode
        exit_code = 128 + signum
        try:
            signal_name = signal.Signals(signum).name
        except ValueError:
            signal_name = f"SIG{signum}"

    stdout = strip_ansi(capture.stdout.decode(encoding, errors="replace"))
    stderr = sanitize_error_output(strip_ansi(capture.stderr.decode(encoding, errors="replace")))

    if request.use_shell and _IS_WINDOWS and "is not recognized" in stderr:
        # cmd.exe reports a missing program as a normal failure.
        raise CommandNotFoundError(request.program)

    stdout, stdout_dropped = _cap_lines(stdout, request.max_output_lines)
    stderr, stderr_dropped = _cap_lines(stderr, request.max_output_lines)

    if budget.exhausted:
        logger.info("runner.truncated", program=request.program, max_buffer_bytes=max_bytes)
    if stdout_dropped or stderr_dropped:
        logger.info(
            "runner.truncated",
            program=request.program,
            max_output_lines=request.max_output_lines,
            stdout_dropped=stdout_dropped,
            stderr_dropped=stderr_dropped,
        )

    user_ms = system_ms = None
    if cpu_before is not None and cpu_after is not None:
        user_ms = max(0.0, (cpu_after[0] - cpu_before[0]) * 1000)
        system_ms = max(0.0, (cpu_after[1] - cpu_before[1]) * 1000)

    result = RunResult(
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        timed_out=timed_out,
        signal=signal_name,
        truncated=True if budget.exhausted else None,
        stdout_truncated_lines=stdout_dropped or None,
        stderr_truncated_lines=stderr_dropped or None,
        user_cpu_time_ms=user_ms,
        system_cpu_time_ms=system_ms,
        duration_ms=duration_ms,
    )
    logger.debug(
        "runner.exit",
        program=request.program,
        exit_code=result.exit_code,
        timed_out=timed_out,
        duration_ms=round(duration_ms, 1),
    )
    return result


async def run(
    program: str,
    args: Sequence[str] = (),
    *,
    cwd: Optional[str | os.PathLike[str]] = None,
    timeout_ms: Optional[int] = None,
    env: Optional[Mapping[str, str]] = None,
    inherit_env: bool = True,
    stdin: Optional[str | bytes] = None,
    shell: bool = False,
    max_buffer_bytes: Optional[int] = None,
    max_output_lines: Optional[int] = None,
    kill_signal: KillSignal | str = KillSignal.SIGTERM,
    encoding: OutputEncoding | str = OutputEncoding.UTF8,
    raise_on_timeout: bool = False,
) -> RunResult:
    """Run ``program`` with ``args``; see ``run_request`` for the contract."""
    fields = dict(
        program=program,
        args=tuple(args),
        cwd=os.fspath(cwd) if cwd is not None else None,
        env=dict(env) if env is not None else None,
        inherit_env=inherit_env,
        stdin=stdin,
        max_buffer_bytes=max_buffer_bytes,
        max_output_lines=max_output_lines,
        kill_signal=KillSignal(kill_signal),
        use_shell=shell,
        encoding=OutputEncoding(encoding),
    )
    if timeout_ms is not None:
        fields["timeout_ms"] = timeout_ms
    return await run_request(RunRequest(**fields), raise_on_timeout=raise_on_timeout)


__all__ = [
    "TIMEOUT_EXIT_CODE",
    "build_shell_command",
    "escape_cmd_arg",
    "run",
    "run_request",
]
