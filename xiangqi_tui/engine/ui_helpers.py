"""Small formatting helpers for engine output."""

from __future__ import annotations

from typing import Optional, Tuple

from xiangqi_tui.engine.analysis_types import EngineAnalyzeResult


def move_human_from_fen(fen: str, uci: str) -> str:
    """Move text for display; coordinates are shown as given, trimmed."""
    return uci.strip()


def red_black_winrate_pct_from_wdl(
    fen: str, wdl: Optional[Tuple[int, int, int]]
) -> Tuple[Optional[float], Optional[float]]:
    """Red and black win percentages from a side-to-move WDL triple."""
    if wdl is None:
        return None, None
    w, d, l = (float(v) for v in wdl)
    total = w + d + l
    if total <= 0.0:
        return None, None
    stm_win = (w + d * 0.5) * 100.0 / total
    opp_win = 100.0 - stm_win
    if _side_to_move_is_red(fen):
        return stm_win, opp_win
    return opp_win, stm_win


def stub_result() -> EngineAnalyzeResult:
    return EngineAnalyzeResult.stub()


def _side_to_move_is_red(fen: str) -> bool:
    fields = fen.split()
    side = fields[1] if len(fields) > 1 else "r"
    return side in ("w", "W", "r", "R")