"""Chinese-chess engine child process: configuration, handshake and analysis."""

from __future__ import annotations

import contextlib
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, ContextManager, Optional, Sequence, Union

from xiangqi_tui import runtime_log
from xiangqi_tui.engine.analysis_store import EngineAnalysisStore
from xiangqi_tui.engine.analysis_types import EngineAnalyzeResult
from xiangqi_tui.engine.engine_path import same_engine_path, sanitize_engine_path
from xiangqi_tui.engine.handshake import find_eval_file, write_protocol_cue
from xiangqi_tui.engine.handshake_plan import handshake_protocol_sequence
from xiangqi_tui.engine.infinite_line import (
    InfiniteLineOutcome,
    apply_infinite_stdout_line,
    patch_store_from_state,
)
from xiangqi_tui.engine.info_state import (
    EngineInfoState,
    apply_parsed_info_to_state,
    select_main_line_from_candidates,
)
from xiangqi_tui.engine.process import EngineDisconnected, EngineProcess, EngineSendError
from xiangqi_tui.engine.protocol import parse_uci_style_info_tokens, protocol_for_id
from xiangqi_tui.engine.ui_helpers import stub_result

INFINITE_STDOUT_POLL_SECONDS = 0.05
ANALYZE_POLL_SECONDS = 0.12
ANALYZE_DEADLINE_SECONDS = 30.0
INFINITE_STOP_GRACE_SECONDS = 3.0
HANDSHAKE_TIMEOUT_SECONDS = 3.0
READY_TIMEOUT_SECONDS = 4.0

_PROTOCOL_PREFERENCES = ("auto", "uci_only", "ucci_only", "prefer_ucci", "prefer_uci")


@dataclass
class EngineConfigureRequest:
    """Settings to apply to the engine; ``None`` leaves a setting unchanged."""

    engine_path: Optional[str] = None
    threads: Optional[int] = None
    hash_mb: Optional[int] = None
    repetition_rule: Optional[str] = None
    draw_rule: Optional[str] = None
    skill_level: Optional[int] = None
    engine_protocol_preference: Optional[str] = None
    engine_config_path: Optional[Union[str, os.PathLike]] = None
    protocol_detected_for_path: Optional[str] = None
    protocol_detected: Optional[str] = None


def _guard(lock: Optional[ContextManager]) -> ContextManager:
    return lock if lock is not None else contextlib.nullcontext()


class UciUcciEngine:
    """One engine child process speaking UCI or UCCI."""

    def __init__(self, default_path: Optional[str] = None) -> None:
        self.engine_path: Optional[str] = default_path
        self.threads = 8
        self.hash_mb = 512
        self.repetition_rule = "AsianRule"
        self.draw_rule = "None"
        self.skill_level = 20
        # auto (same as prefer_ucci) | prefer_ucci | prefer_uci | uci_only | ucci_only
        self.protocol_preference = "auto"
        self.last_protocol = ""
        self.engine_config_path: Optional[Union[str, os.PathLike]] = None
        self.handshake_protocol_hint: Optional[str] = None
        self._process: Optional[EngineProcess] = None

    # -- configuration and lifecycle -------------------------------------

    def configure(self, request: EngineConfigureRequest) -> None:
        """Apply settings and stop any running process so they take effect."""
        if request.engine_path is not None:
            self.engine_path = sanitize_engine_path(request.engine_path)
        self.engine_config_path = request.engine_config_path
        hint = None
        detected_path = request.protocol_detected_for_path
        detected = request.protocol_detected
        if (
            detected_path is not None
            and detected in ("uci", "ucci")
            and self.engine_path is not None
            and same_engine_path(self.engine_path, detected_path)
        ):
            hint = detected
        self.handshake_protocol_hint = hint
        if request.threads is not None:
            self.threads = max(request.threads, 1)
        if request.hash_mb is not None:
            self.hash_mb = max(request.hash_mb, 16)
        if request.repetition_rule:
            self.repetition_rule = request.repetition_rule
        if request.draw_rule:
            self.draw_rule = request.draw_rule
        if request.skill_level is not None:
            self.skill_level = min(max(request.skill_level, 0), 20)
        if request.engine_protocol_preference is not None:
            pref = request.engine_protocol_preference.strip().lower()
            if pref in _PROTOCOL_PREFERENCES:
                self.protocol_preference = pref
        self.terminate()

    def has_child_process(self) -> bool:
        """Whether an engine process is alive (busy or idle)."""
        return self._live_process() is not None

    def start(self) -> None:
        """Spawn and handshake the engine if it is not already running.

        Failures are logged and leave the engine without a process.
        """
        if self.has_child_process() or self.engine_path is None:
            return
        try:
            self._spawn_process()
        except (OSError, RuntimeError, EngineSendError) as exc:
            runtime_log.warn(f"[engine_spawn] start_failed err={exc}")

    def terminate(self) -> None:
        """Kill the engine process, if any."""
        process, self._process = self._process, None
        if process is not None:
            process.terminate()

    def _spawn_process(self) -> None:
        self.terminate()
        if self.engine_path is None:
            raise RuntimeError(
                "未设置引擎路径：请在设置中选择中国象棋引擎可执行文件（需支持 UCI 或 UCCI）"
            )
        self._process = EngineProcess.spawn(self.engine_path)
        try:
            self.handshake()
        except (RuntimeError, EngineSendError):
            self.terminate()
            raise

    # -- handshake --------------------------------------------------------

    def handshake(self) -> None:
        """Negotiate the protocol and send the initial options.

        Raises RuntimeError when no protocol answers or ``isready`` times out,
        and EngineSendError when a required option cannot be sent.
        """
        pref = self.protocol_preference
        hint = self.handshake_protocol_hint
        runtime_log.debug(f"[engine_handshake] start pref={pref} hint={hint!r}")
        matched: Optional[str] = None
        for attempt, proto_id in enumerate(handshake_protocol_sequence(pref, hint)):
            if attempt > 0:
                self._clear_queue()
            proto = protocol_for_id(proto_id)
            if self._try_send(proto.init_command) and self._drain_until(
                proto.handshake_done_token, HANDSHAKE_TIMEOUT_SECONDS
            ):
                matched = proto.protocol_id
                break
        if matched is None:
            self.terminate()
            runtime_log.warn("[engine_handshake] fail reason=no_protocol_matched")
            raise RuntimeError("引擎握手失败：请确认可执行文件为中国象棋引擎且支持 UCI 或 UCCI")
        runtime_log.debug(
            f"[engine_handshake] ok protocol={matched} path={self.engine_path!r}"
        )
        self.last_protocol = matched
        self._persist_protocol_cue(matched)
        self._send(f"setoption name Threads value {self.threads}")
        self._send(f"setoption name Hash value {self.hash_mb}")
        self._send(f"setoption name Repetition Rule value {self.repetition_rule}")
        self._send(f"setoption name Draw Rule value {self.draw_rule}")
        self._try_send(f"setoption name Skill Level value {self.skill_level}")
        if self.engine_path is not None:
            eval_file = find_eval_file(self.engine_path)
            if eval_file is not None:
                self._try_send(f"setoption name EvalFile value {eval_file}")
        self._send("isready")
        if not self._drain_until("readyok", READY_TIMEOUT_SECONDS):
            self.terminate()
            raise RuntimeError("isready timeout")

    def _persist_protocol_cue(self, proto_id: str) -> None:
        if proto_id not in ("uci", "ucci"):
            return
        if self.engine_config_path is None or not self.engine_path:
            return
        try:
            write_protocol_cue(self.engine_config_path, proto_id, self.engine_path)
        except OSError as exc:
            runtime_log.debug(f"[engine_handshake] persist_cue_failed err={exc}")

    # -- one-shot analysis ------------------------------------------------

    def analyze_autoplay_once(
        self,
        fen: str,
        depth: Optional[int] = None,
        movetime_ms: Optional[int] = None,
        search_nodes: Optional[int] = None,
        store: Optional[EngineAnalysisStore] = None,
        store_lock: Optional[ContextManager] = None,
        cancel: Optional[threading.Event] = None,
    ) -> EngineAnalyzeResult:
        """Run one single-PV ``go`` search; progress is patched into ``store``."""
        return self._analyze(
            fen,
            depth=depth,
            movetime_ms=movetime_ms,
            search_nodes=search_nodes,
            search_moves=None,
            multipv=1,
            store=store,
            store_lock=store_lock,
            cancel=cancel,
        )

    def _analyze(
        self,
        fen: str,
        *,
        depth: Optional[int],
        movetime_ms: Optional[int],
        search_nodes: Optional[int],
        search_moves: Optional[Sequence[str]],
        multipv: int,
        store: Optional[EngineAnalysisStore],
        store_lock: Optional[ContextManager],
        cancel: Optional[threading.Event],
    ) -> EngineAnalyzeResult:
        tag = "engine_analyze"
        if self.engine_path is None:
            return stub_result()
        if not self.has_child_process():
            self.start()
        if not self.has_child_process():
            return stub_result()
        self._try_send("stop")
        if not self._send_or_abort(f"setoption name MultiPV value {multipv}", tag, "set_multipv"):
            return stub_result()
        if not self._send_position(fen, tag):
            return stub_result()
        self._clear_queue()

        suffix = ""
        if search_moves is not None:
            moves = [m.strip() for m in search_moves if m.strip()]
            if moves:
                suffix = " searchmoves " + " ".join(moves)
        if movetime_ms is not None and movetime_ms > 0:
            go_cmd, stage = f"go movetime {movetime_ms}{suffix}", "go_movetime"
        elif search_nodes is not None and search_nodes > 0:
            go_cmd, stage = f"go nodes {search_nodes}{suffix}", "go_nodes"
        else:
            d = max(depth if depth is not None else 8, 1)
            go_cmd, stage = f"go depth {d}{suffix}", "go_depth"
        if not self._send_or_abort(go_cmd, tag, stage):
            return stub_result()

        state = EngineInfoState()

        def push_progress() -> None:
            if store is None:
                return
            with _guard(store_lock):
                patch_store_from_state(store, fen, state)

        deadline = time.monotonic() + ANALYZE_DEADLINE_SECONDS
        got_best = False
        while time.monotonic() < deadline and not got_best:
            if cancel is not None and cancel.is_set():
                self._try_send("stop")
                runtime_log.warn(f"[{tag}] cancelled_by_flag")
                break
            try:
                line = self._poll_line(ANALYZE_POLL_SECONDS)
            except EngineDisconnected as exc:
                runtime_log.warn(f"[{tag}] disconnected child_status={exc.child_status}")
                break
            if line is None:
                continue
            line = line.strip()
            if line.startswith("info "):
                parsed = parse_uci_style_info_tokens(line.split())
                if parsed is not None:
                    apply_parsed_info_to_state(parsed, state)
                    push_progress()
            elif line.startswith("bestmove"):
                tokens = line.split()
                if len(tokens) >= 2:
                    state.best_move = tokens[1]
                got_best = True
        if not got_best:
            self._try_send("stop")
            runtime_log.warn(f"[{tag}] bestmove_timeout_or_disconnected; fallback_result")

        candidates = list(state.cands_by_rank.values())
        score_cp: Optional[int] = None
        if candidates:
            (
                state.best_move,
                state.score,
                state.pv,
                state.depth_seen,
                state.mate,
            ) = select_main_line_from_candidates(
                candidates,
                state.best_move,
                state.score,
                state.pv,
                state.depth_seen,
                state.mate,
            )
            score_cp = candidates[0].score_cp
        push_progress()
        return EngineAnalyzeResult(
            best_move=state.best_move,
            score=state.score,
            score_cp=score_cp,
            pv=list(state.pv),
            depth=state.depth_seen,
            candidates=candidates,
            search_time_ms=state.search_time_ms,
            nps=state.nps,
            nodes=state.nodes,
            wdl=state.wdl,
            mate=state.mate,
        )

    # -- infinite analysis ------------------------------------------------

    def run_infinite_analysis(
        self,
        fen: str,
        store: EngineAnalysisStore,
        store_lock: Optional[ContextManager],
        stop: threading.Event,
        session_live: Callable[[], bool],
        multi_pv: int,
    ) -> None:
        """Run ``go infinite`` until ``stop`` is set or the session ends."""
        tag = "engine_infinite"
        mpv = min(max(multi_pv, 1), 5)
        if self.engine_path is None:
            self._store_stub(fen, store, store_lock)
            return
        if not self.has_child_process():
            self.start()
        if not self.has_child_process():
            self._store_stub(fen, store, store_lock)
            return
        if not session_live():
            return
        with _guard(store_lock):
            store.reset_for_stream(fen)

        stop_sent = False
        stop_at = time.monotonic()
        self._try_send("stop")
        if not self._send_or_abort(f"setoption name MultiPV value {mpv}", tag, "set_multipv"):
            return
        if not self._send_position(fen, tag):
            return
        self._clear_queue()
        if not self._send_or_abort("go infinite", tag, "go_infinite"):
            return

        state = EngineInfoState()
        got_best = False
        while not got_best:
            if stop.is_set() or not session_live():
                if not stop_sent:
                    self._try_send("stop")
                    stop_sent = True
                    stop_at = time.monotonic()
                elif time.monotonic() - stop_at > INFINITE_STOP_GRACE_SECONDS:
                    break
            try:
                line = self._poll_line(INFINITE_STDOUT_POLL_SECONDS)
            except EngineDisconnected as exc:
                runtime_log.warn(f"[{tag}] disconnected child_status={exc.child_status}")
                break
            if line is None:
                continue
            outcome = apply_infinite_stdout_line(line, fen, state)
            with _guard(store_lock):
                patch_store_from_state(store, fen, state)
                if outcome is InfiniteLineOutcome.GOT_BESTMOVE:
                    store.patch_best_move(state.best_move)
                    got_best = True
        if not got_best:
            if not stop_sent:
                self._try_send("stop")
            runtime_log.warn(f"[{tag}] bestmove_not_observed_before_exit")
        if session_live() and state.best_move and state.best_move != "stub_move":
            with _guard(store_lock):
                store.patch_best_move(state.best_move)

    @staticmethod
    def _store_stub(
        fen: str, store: EngineAnalysisStore, store_lock: Optional[ContextManager]
    ) -> None:
        with _guard(store_lock):
            store.fen = fen.strip()
            store.result = stub_result()

    # -- process I/O ------------------------------------------------------

    def _live_process(self) -> Optional[EngineProcess]:
        process = self._process
        if process is not None and not process.running:
            self._process = None
            return None
        return process

    def _send(self, cmd: str) -> None:
        process = self._live_process()
        if process is None:
            runtime_log.warn(f"[engine_io] send_cmd_failed cmd={cmd} err=engine not running")
            raise EngineSendError("engine not running")
        try:
            process.send(cmd)
        finally:
            self._live_process()

    def _try_send(self, cmd: str) -> bool:
        try:
            self._send(cmd)
        except EngineSendError:
            return False
        return True

    def _send_or_abort(self, cmd: str, tag: str, stage: str) -> bool:
        try:
            self._send(cmd)
        except EngineSendError as exc:
            runtime_log.warn(f"[{tag}] send_err stage={stage} err={exc}")
            self.terminate()
            return False
        return True

    def _send_position(self, fen: str, tag: str) -> bool:
        fen_text = fen.strip()
        if fen_text:
            return self._send_or_abort(f"position fen {fen_text}", tag, "position_fen")
        return self._send_or_abort("position startpos", tag, "position_startpos")

    def _poll_line(self, timeout: float) -> Optional[str]:
        process = self._live_process()
        if process is None:
            raise EngineDisconnected("runtime_not_running")
        try:
            return process.poll_line(timeout)
        except EngineDisconnected:
            self._process = None
            raise

    def _drain_until(self, token: str, timeout: float) -> bool:
        process = self._live_process()
        if process is None:
            return False
        found = process.drain_until(token, timeout)
        self._live_process()
        return found

    def _clear_queue(self) -> None:
        process = self._live_process()
        if process is not None:
            process.clear_queue()