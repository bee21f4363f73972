"""
sanitize.py - Output cleanup applied to every command result.

- strip_ansi: remove terminal escape sequences (colors, cursor movement,
  OSC hyperlinks) so parsers and models see plain text.
- sanitize_error_output: replace user home directories with ``~`` so error
  text returned to the model does not leak local user names. With
  ``PARE_SANITIZE_ALL_PATHS=true`` (or ``sanitize.all_paths`` in settings)
  every other absolute path is reduced to ``<redacted-path>/<basename>``.
"""

from __future__ import annotations

import os
import re

from .config.settings import get_setting

_ANSI_RE = re.compile(
    r"""
    \x1b\][^\x07\x1b]*(?:\x07|\x1b\\)      # OSC ... BEL / ST
    | \x1b\[[0-?]*[ -/]*[@-~]              # CSI sequences
    | \x1b[PX^_][^\x1b]*\x1b\\             # DCS / SOS / PM / APC
    | \x1b[@-Z\\-_]                         # two-byte escapes
    | \x9b[0-?]*[ -/]*[@-~]                 # 8-bit CSI
    """,
    re.VERBOSE,
)

_UNIX_HOME_RE = re.compile(r"(?<![\w.~/-])/(?:home|Users)/[^/\s]+/")
_UNIX_ROOT_HOME_RE = re.compile(r"(?<![\w.~/-])/root/")
_WINDOWS_HOME_RE = re.compile(r"(?<![\w])[A-Za-z]:\\Users\\[^\\\s]+\\")

_UNIX_ABS_PATH_RE = re.compile(r"(?<![\w.~/<>-])/(?:[^/\s:'\"]+/)+([^/\s:'\"]+)")
_WINDOWS_ABS_PATH_RE = re.compile(r"(?<![\w~])[A-Za-z]:\\(?:[^\\\s:*?\"<>|]+\\)*([^\\\s:*?\"<>|]+)")

REDACTED = "<redacted-path>"


def strip_ansi(text: str) -> str:
    if not text:
        return text
    return _ANSI_RE.sub("", text)


def sanitize_all_paths_enabled() -> bool:
    raw = os.environ.get("PARE_SANITIZE_ALL_PATHS")
    if raw is not None:
        return raw.strip().lower() == "true"
    return bool(get_setting("sanitize.all_paths", False))


def sanitize_error_output(text: str) -> str:
    """Replace home directories (and optionally all absolute paths)."""
    if not text:
        return text
    text = _UNIX_HOME_RE.sub("~/", text)
    text = _UNIX_ROOT_HOME_RE.sub("~/", text)
    text = _WINDOWS_HOME_RE.sub(lambda _m: "~\\", text)

    if sanitize_all_paths_enabled():
        text = _UNIX_ABS_PATH_RE.sub(lambda m: f"{REDACTED}/{m.group(1)}", text)
        text = _WINDOWS_ABS_PATH_RE.sub(lambda m: f"{REDACTED}\\{m.group(1)}", text)
    return text


__all__ = ["REDACTED", "sanitize_all_paths_enabled", "sanitize_error_output", "strip_ansi"]
