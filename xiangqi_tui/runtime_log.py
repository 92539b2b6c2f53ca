"""Append-only runtime log written to ``logs/runtime.log``."""

from __future__ import annotations

import functools
import os
import threading
from pathlib import Path
from typing import Callable

_LOG_DIR = Path("logs")
_LOG_FILE = "runtime.log"
_DEBUG_ENV = "XIANGQI_TUI_DEBUG"
_LOCK = threading.Lock()


def debug(message: str) -> None:
    """Write a debug line when debug logging is enabled."""
    if not debug_enabled():
        return
    _write_log("debug", message)


def debug_lazy(build: Callable[[], str]) -> None:
    """Build and write a debug line only when debug logging is enabled."""
    if not debug_enabled():
        return
    _write_log("debug", build())


@functools.lru_cache(maxsize=None)
def debug_enabled() -> bool:
    """True when ``XIANGQI_TUI_DEBUG`` is ``1`` or ``true`` (any case)."""
    value = os.environ.get(_DEBUG_ENV)
    if value is None:
        return False
    return value == "1" or value.lower() == "true"


def warn(message: str) -> None:
    """Write a warning line."""
    _write_log("warn", message)


def error(message: str) -> None:
    """Write an error line."""
    _write_log("error", message)


def _write_log(level: str, message: str) -> None:
    with _LOCK:
        try:
            _LOG_DIR.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass
        try:
            with open(_LOG_DIR / _LOG_FILE, "a", encoding="utf-8") as handle:
                handle.write(f"[{level}] {message}\n")
        except OSError:
            pass