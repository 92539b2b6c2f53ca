"""Streaming analysis: a background ``go infinite`` plus one-shot AI searches."""

from __future__ import annotations

import copy
import dataclasses
import threading
import time
from typing import Callable, Generic, Optional, TypeVar

from xiangqi_tui import runtime_log
from xiangqi_tui.engine.analysis_store import EngineAnalysisStore
from xiangqi_tui.engine.analysis_types import EngineAnalyzeResult
from xiangqi_tui.engine.config import EngineConfig
from xiangqi_tui.engine.uci_engine import EngineConfigureRequest, UciUcciEngine

STREAM_JOIN_TIMEOUT = 2.0
_BLOCKING_EXTRA_TIMEOUT = 3.0
_JOIN_POLL_SECONDS = 0.01

T = TypeVar("T")


class _Task(Generic[T]):
    """A daemon thread that keeps the value its target returns."""

    def __init__(self, target: Callable[[], T]) -> None:
        self.result: Optional[T] = None

        def run() -> None:
            self.result = target()

        self._thread = threading.Thread(target=run, daemon=True)
        self._thread.start()

    @property
    def finished(self) -> bool:
        return not self._thread.is_alive()

    def join(self) -> None:
        self._thread.join()


class EngineStreamRuntime:
    """Owns one engine and the shared store that the UI reads every frame."""

    def __init__(self, engine: Optional[UciUcciEngine] = None) -> None:
        self._engine = engine if engine is not None else UciUcciEngine(None)
        self._engine_lock = threading.Lock()
        self._store = EngineAnalysisStore.empty_for_fen("")
        self._store_lock = threading.Lock()
        self._stop = threading.Event()
        self._join: Optional[_Task[None]] = None
        self._join_lock = threading.Lock()
        self._autoplay: Optional[_Task[EngineAnalyzeResult]] = None
        self._autoplay_lock = threading.Lock()
        self._autoplay_cancel = threading.Event()
        self._session_gen = 0
        self._session_lock = threading.Lock()
        self._active_fen = ""
        self._active_fen_lock = threading.Lock()

    # -- state ------------------------------------------------------------

    def _next_session(self) -> int:
        with self._session_lock:
            self._session_gen += 1
            return self._session_gen

    def _current_session(self) -> int:
        with self._session_lock:
            return self._session_gen

    def _set_active_fen(self, fen: str) -> None:
        with self._active_fen_lock:
            self._active_fen = fen

    def _infinite_thread_active(self) -> bool:
        """True while the infinite thread runs, including one that outlived a stop."""
        with self._join_lock:
            return self._join is not None and not self._join.finished

    def needs_process_release(self) -> bool:
        """True when no stream or AI search runs but the engine process is alive."""
        if self._infinite_thread_active() or self.is_autoplay_running():
            return False
        with self._engine_lock:
            return self._engine.has_child_process()

    def release_engine_process(self) -> None:
        """Terminate the engine process when nothing uses it."""
        if not self.needs_process_release():
            return
        self._stop_infinite_stream_blocking()
        self.stop_autoplay_blocking()
        with self._engine_lock:
            self._engine.terminate()

    def store_revision(self) -> int:
        with self._store_lock:
            return self._store.revision

    def clone_store(self) -> EngineAnalysisStore:
        """An independent copy of the shared analysis store."""
        with self._store_lock:
            return copy.deepcopy(self._store)

    def configure_engine(self, cfg: EngineConfig) -> None:
        """Apply ``cfg`` to the engine; ignored when no path is set."""
        path = cfg.path.strip()
        if not path:
            return
        with self._engine_lock:
            self._engine.configure(
                EngineConfigureRequest(
                    engine_path=path,
                    threads=cfg.threads,
                    hash_mb=cfg.hash_mb,
                    repetition_rule=cfg.variant,
                    draw_rule=cfg.rule,
                    skill_level=cfg.skill_level,
                    engine_protocol_preference=cfg.protocol.preference(),
                )
            )

    def is_running(self) -> bool:
        return self._infinite_thread_active()

    def active_fen(self) -> str:
        with self._active_fen_lock:
            return self._active_fen

    # -- infinite stream --------------------------------------------------

    def ensure_stream(self, fen: str, cfg: EngineConfig, want_stream: bool) -> None:
        """Start or restart streaming analysis when the position or config changes."""
        if not want_stream or not cfg.path.strip():
            if self._infinite_thread_active():
                self.stop_infinite_stream()
            return
        fen = fen.strip()
        if self._infinite_thread_active():
            if self.active_fen() == fen:
                return
            self._stop_infinite_stream_blocking()
        self.configure_engine(cfg)
        session = self._next_session()
        self._set_active_fen(fen)
        with self._store_lock:
            self._store.reset_for_stream(fen)
        self._stop.clear()
        multi_pv = max(cfg.multi_pv, 1)

        def session_live() -> bool:
            return self._current_session() == session

        def run() -> None:
            with self._engine_lock:
                self._engine.run_infinite_analysis(
                    fen, self._store, self._store_lock, self._stop, session_live, multi_pv
                )

        task = _Task(run)
        with self._join_lock:
            self._join = task

    def stop_infinite_stream(self) -> None:
        """Stop ``go infinite`` only; a running AI search is left alone."""
        self._stop_infinite_stream_inner(STREAM_JOIN_TIMEOUT)

    def _stop_infinite_stream_blocking(self) -> None:
        self._stop_infinite_stream_inner(STREAM_JOIN_TIMEOUT + _BLOCKING_EXTRA_TIMEOUT)

    def _stop_infinite_stream_inner(self, join_timeout: float) -> None:
        self._stop.set()
        self._next_session()
        deadline = time.monotonic() + join_timeout
        while True:
            with self._join_lock:
                task = self._join
                if task is None:
                    break
                if task.finished:
                    self._join = None
                    task.join()
                    continue
                if time.monotonic() >= deadline:
                    runtime_log.warn(
                        "[engine_stream] infinite join timed out; "
                        "stream stays inactive until thread exits"
                    )
                    break
            time.sleep(_JOIN_POLL_SECONDS)
        self._stop.clear()
        self._set_active_fen("")

    def stop_all(self) -> None:
        """Stop the stream and wait for any AI search to finish."""
        self._stop_infinite_stream_blocking()
        self.stop_autoplay_blocking()

    # -- one-shot AI search -----------------------------------------------

    def is_autoplay_running(self) -> bool:
        with self._autoplay_lock:
            return self._autoplay is not None and not self._autoplay.finished

    def spawn_autoplay_once(self, fen: str, cfg: EngineConfig) -> None:
        """Start one background ``go`` for the AI's move; progress goes to the store."""
        self.stop_infinite_stream()
        self.stop_autoplay()
        self._autoplay_cancel.clear()
        fen = fen.strip()
        with self._store_lock:
            self._store.reset_for_stream(fen)
        self.configure_engine(cfg)
        cfg = dataclasses.replace(cfg)

        def run() -> EngineAnalyzeResult:
            with self._engine_lock:
                depth, movetime_ms, search_nodes = cfg.analyze_go_args()
                return self._engine.analyze_autoplay_once(
                    fen,
                    depth,
                    movetime_ms,
                    search_nodes,
                    self._store,
                    self._store_lock,
                    self._autoplay_cancel,
                )

        task = _Task(run)
        with self._autoplay_lock:
            self._autoplay = task

    def poll_autoplay_done(self) -> Optional[EngineAnalyzeResult]:
        """The finished AI search's result, taken once; None while thinking or idle."""
        with self._autoplay_lock:
            task = self._autoplay
            if task is None or not task.finished:
                return None
            self._autoplay = None
        task.join()
        return task.result

    def stop_autoplay(self) -> None:
        """Cancel the AI search without waiting for it."""
        self._autoplay_cancel.set()
        with self._autoplay_lock:
            task, self._autoplay = self._autoplay, None
        if task is not None and task.finished:
            task.join()
        self._autoplay_cancel.clear()

    def stop_autoplay_blocking(self) -> None:
        """Cancel the AI search and wait for it to end."""
        self._autoplay_cancel.set()
        with self._autoplay_lock:
            task, self._autoplay = self._autoplay, None
        if task is not None:
            task.join()
        self._autoplay_cancel.clear()