"""Shared snapshot of a streaming engine analysis."""

from __future__ import annotations

from dataclasses import dataclass, field

from xiangqi_tui.engine.analysis_types import EngineAnalyzeResult
from xiangqi_tui.engine.info_state import (
    EngineInfoState,
    select_main_line_from_candidates,
)
from xiangqi_tui.engine.pv_ui import truncate_engine_pv_for_ui

_U64_MAX = 2**64 - 1


@dataclass
class EngineAnalysisStore:
    """Latest analysis for one position; ``revision`` grows on every patch."""

    fen: str = ""
    result: EngineAnalyzeResult = field(default_factory=EngineAnalyzeResult.stub)
    revision: int = 0

    @classmethod
    def empty_for_fen(cls, fen: str) -> "EngineAnalysisStore":
        """A fresh store for ``fen`` holding the stub result."""
        return cls(fen=fen.strip(), result=EngineAnalyzeResult.stub(), revision=0)

    def reset_for_stream(self, fen: str) -> None:
        """Drop the previous result and start over for ``fen``."""
        fresh = self.empty_for_fen(fen)
        self.fen = fresh.fen
        self.result = fresh.result
        self.revision = fresh.revision

    def patch_from_info_state(self, fen: str, state: EngineInfoState) -> None:
        """Replace the result with one built from the merged ``info`` state."""
        self.fen = fen.strip()
        self.result = analyze_result_from_info_state(state)
        self._bump_revision()

    def patch_best_move(self, best_move: str) -> None:
        """Record the engine's final ``bestmove``."""
        self.result.best_move = best_move
        self._bump_revision()

    def _bump_revision(self) -> None:
        self.revision = min(self.revision + 1, _U64_MAX)


def analyze_result_from_info_state(state: EngineInfoState) -> EngineAnalyzeResult:
    """Build an analysis result from the accumulated ``info`` state."""
    candidates = list(state.cands_by_rank.values())
    best_move, score, pv, depth, mate = select_main_line_from_candidates(
        candidates,
        state.best_move,
        state.score,
        state.pv,
        state.depth_seen,
        state.mate,
    )
    score_cp = candidates[0].score_cp if candidates else None
    return EngineAnalyzeResult(
        best_move=best_move,
        score=score,
        score_cp=score_cp,
        pv=truncate_engine_pv_for_ui(pv),
        depth=depth,
        candidates=candidates,
        search_time_ms=state.search_time_ms,
        nps=state.nps,
        nodes=state.nodes,
        wdl=state.wdl,
        mate=mate,
    )