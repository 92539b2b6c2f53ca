"""Engine scheduling for the UI: one engine, stream and AI search kept apart."""

from __future__ import annotations

from typing import Optional, Tuple

from xiangqi_tui.engine.analysis_store import EngineAnalysisStore
from xiangqi_tui.engine.analysis_types import EngineAnalyzeResult
from xiangqi_tui.engine.config import EngineConfig
from xiangqi_tui.engine.stream import EngineStreamRuntime


class EngineService:
    """Front for the engine stream runtime used by the application."""

    def __init__(self, stream: Optional[EngineStreamRuntime] = None) -> None:
        self._stream = stream if stream is not None else EngineStreamRuntime()

    def __repr__(self) -> str:
        return f"EngineService(streaming={self._stream.is_running()})"

    def ensure_stream(self, fen: str, cfg: EngineConfig, want_stream: bool) -> None:
        self._stream.ensure_stream(fen, cfg, want_stream)

    def stop_stream(self) -> None:
        """Stop ``go infinite`` only; an AI search keeps running."""
        self._stream.stop_infinite_stream()

    def stop_all(self) -> None:
        """Stop the stream and wait for the AI search (new game, stop, exit)."""
        self._stream.stop_all()

    def release_if_idle(self) -> None:
        """Terminate the engine process when no mode needs it."""
        if self._stream.needs_process_release():
            self._stream.release_engine_process()

    def current_store(self) -> EngineAnalysisStore:
        return self._stream.clone_store()

    def snapshot_if_newer(
        self, last_revision: int
    ) -> Optional[Tuple[EngineAnalysisStore, int]]:
        """The store and its revision, or None when the revision is unchanged."""
        revision = self._stream.store_revision()
        if revision == last_revision:
            return None
        return self._stream.clone_store(), revision

    def is_streaming(self) -> bool:
        return self._stream.is_running()

    def is_autoplay_running(self) -> bool:
        return self._stream.is_autoplay_running()

    def spawn_autoplay_once(self, fen: str, cfg: EngineConfig) -> None:
        """Start a background ``go``; progress shows up in ``current_store``."""
        self._stream.spawn_autoplay_once(fen, cfg)

    def poll_autoplay_done(self) -> Optional[EngineAnalyzeResult]:
        return self._stream.poll_autoplay_done()