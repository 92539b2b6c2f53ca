"""Engine child process: spawning, line-based stdin/stdout and shutdown."""

from __future__ import annotations

import os
import queue
import stat
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import IO, Optional, Union

from xiangqi_tui import runtime_log
from xiangqi_tui.engine.engine_path import has_non_ascii

_EOF = object()
_DRAIN_POLL_SECONDS = 0.12


class EngineDisconnected(Exception):
    """The engine's output stream has closed or the process is gone."""

    def __init__(self, child_status: str) -> None:
        super().__init__(f"engine disconnected, child_status={child_status}")
        self.child_status = child_status


class EngineSendError(Exception):
    """A command could not be written to the engine."""


def _is_executable(path: Path) -> bool:
    try:
        return bool(path.stat().st_mode & 0o111)
    except OSError:
        return False


def _make_executable(path: Path) -> bool:
    mode = path.stat().st_mode
    if mode & 0o111:
        return True
    path.chmod(stat.S_IMODE(mode) | 0o111)
    return _is_executable(path)


def _clear_macos_quarantine(path: Path) -> None:
    try:
        out = subprocess.run(
            ["xattr", "-d", "com.apple.quarantine", str(path)],
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        runtime_log.debug(
            f"[engine_spawn] auto_clear_quarantine_unavailable path={path} err={exc}"
        )
        return
    if out.returncode == 0:
        runtime_log.debug(f"[engine_spawn] auto_clear_quarantine_ok path={path}")
    else:
        runtime_log.debug(
            f"[engine_spawn] auto_clear_quarantine_skip path={path} "
            f"status={out.returncode} stderr={out.stderr.strip()}"
        )


def _read_stdout(stream: IO[str], lines: "queue.Queue[object]") -> None:
    try:
        for raw in stream:
            lines.put(raw.rstrip("\r\n"))
        runtime_log.debug("[engine_io] stdout_eof")
    except (OSError, ValueError) as exc:
        runtime_log.debug(f"[engine_io] stdout_read_err err={exc}")
    finally:
        lines.put(_EOF)


def _read_stderr(stream: IO[str]) -> None:
    try:
        for raw in stream:
            message = raw.strip()
            if message:
                runtime_log.debug(f"[engine_stderr] {message}")
        runtime_log.debug("[engine_io] stderr_eof")
    except (OSError, ValueError) as exc:
        runtime_log.debug(f"[engine_io] stderr_read_err err={exc}")


class EngineProcess:
    """A running engine with background readers for its stdout and stderr."""

    def __init__(self, popen: subprocess.Popen) -> None:
        self._popen = popen
        self._lines: "queue.Queue[object]" = queue.Queue()
        self._closed = False
        self._disconnected = False
        self._lock = threading.Lock()
        self._stdout_reader = threading.Thread(
            target=_read_stdout, args=(popen.stdout, self._lines), daemon=True
        )
        self._stderr_reader = threading.Thread(
            target=_read_stderr, args=(popen.stderr,), daemon=True
        )
        self._stdout_reader.start()
        self._stderr_reader.start()

    @classmethod
    def spawn(cls, path: Union[str, os.PathLike]) -> "EngineProcess":
        """Start the engine at ``path`` with piped stdio, in its own directory."""
        path_text = os.fspath(path)
        path_obj = Path(path_text)
        is_file = path_obj.is_file()
        parent = path_obj.parent
        runtime_log.debug(
            f"[engine_spawn] path={path_text} non_ascii={has_non_ascii(path_text)} "
            f"exists={path_obj.exists()} is_file={is_file} parent={parent}"
        )
        if not is_file:
            runtime_log.warn(
                f"[engine_spawn] abort reason=engine_path_not_file path={path_text}"
            )
            raise FileNotFoundError("引擎文件不存在，请检查路径或重新选择")
        if os.name != "nt":
            if sys.platform == "darwin":
                _clear_macos_quarantine(path_obj)
            executable = _is_executable(path_obj)
            if not executable:
                try:
                    executable = _make_executable(path_obj)
                    if executable:
                        runtime_log.debug(f"[engine_spawn] auto_chmod_ok path={path_text}")
                except OSError as exc:
                    runtime_log.warn(
                        f"[engine_spawn] auto_chmod_failed path={path_text} err={exc}"
                    )
            if not executable:
                runtime_log.warn(
                    f"[engine_spawn] abort reason=engine_not_executable path={path_text}"
                )
                raise PermissionError("引擎文件不可执行（缺少 +x 权限），请执行 chmod +x 后重试")

        cwd: Optional[str] = None
        if has_non_ascii(path_text):
            runtime_log.debug(
                "[engine_spawn] skip_current_dir reason=non_ascii_path "
                f"cwd_fallback=process_default path={path_text}"
            )
        else:
            cwd = str(parent)
        creationflags = subprocess.CREATE_NO_WINDOW if os.name == "nt" else 0
        try:
            popen = subprocess.Popen(
                [os.path.abspath(path_text)],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                creationflags=creationflags,
            )
        except OSError as exc:
            runtime_log.error(
                f"[engine_spawn] spawn_err path={path_text} cwd={parent} err={exc}"
            )
            raise
        return cls(popen)

    def __enter__(self) -> "EngineProcess":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.terminate()

    @property
    def running(self) -> bool:
        """False once the process has been terminated."""
        return not self._closed

    def send(self, cmd: str) -> None:
        """Write one command line; raise EngineSendError when that fails."""
        if self._closed:
            error = EngineSendError("engine not running")
        else:
            status = self._popen.poll()
            if status is not None:
                self.terminate()
                error = EngineSendError(f"engine exited before send, status={status}")
            else:
                try:
                    with self._lock:
                        stdin = self._popen.stdin
                        if stdin is None:
                            raise OSError("no stdin")
                        stdin.write(f"{cmd}\n")
                        stdin.flush()
                    return
                except (OSError, ValueError) as exc:
                    error = EngineSendError(str(exc))
        runtime_log.warn(f"[engine_io] send_cmd_failed cmd={cmd} err={error}")
        raise error

    def poll_line(self, timeout: float) -> Optional[str]:
        """Next output line, or None after ``timeout`` seconds without one.

        Raises EngineDisconnected once the output has closed; the process is
        then terminated.
        """
        if self._closed:
            raise EngineDisconnected("runtime_not_running")
        try:
            item = self._lines.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _EOF:
            self._disconnected = True
            status = self.exit_status()
            status_text = "unknown" if status is None else str(status)
            runtime_log.warn(
                "[engine_io] line_channel_disconnected; cleanup_runtime "
                f"child_status={status_text}"
            )
            self.terminate()
            raise EngineDisconnected(status_text)
        return str(item)

    def drain_until(self, token: str, timeout: float) -> bool:
        """Read lines until one contains ``token``; False on timeout or disconnect."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            try:
                line = self.poll_line(_DRAIN_POLL_SECONDS)
            except EngineDisconnected:
                return False
            if line is not None and token in line:
                return True
        return False

    def clear_queue(self) -> None:
        """Discard output lines already received, keeping any end-of-stream mark."""
        if self._closed:
            return
        while True:
            try:
                item = self._lines.get_nowait()
            except queue.Empty:
                return
            if item is _EOF:
                self._lines.put(_EOF)
                return

    def exit_status(self) -> Optional[int]:
        """Exit code of the process, or None while it still runs."""
        return self._popen.poll()

    def terminate(self) -> None:
        """Kill the process and wait for it and its readers; safe to repeat."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._popen.stdin is not None:
                self._popen.stdin.close()
        except (OSError, ValueError):
            pass
        try:
            self._popen.kill()
        except OSError:
            pass
        self._popen.wait()
        self._stdout_reader.join()
        self._stderr_reader.join()
        for stream in (self._popen.stdout, self._popen.stderr):
            try:
                if stream is not None:
                    stream.close()
            except (OSError, ValueError):
                pass