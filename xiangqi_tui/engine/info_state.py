"""Accumulated state of streamed ``info`` lines and main-line selection."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from xiangqi_tui.engine.analysis_types import EngineInfoCandidate
from xiangqi_tui.engine.protocol import ParsedInfo, candidate_from_parsed

_UCI_MOVE_RE = re.compile(r"[a-i][0-9][a-i][0-9]")


@dataclass
class EngineInfoState:
    """Running merge of an engine's ``info`` output for one search."""

    best_move: str = "stub_move"
    score: float = 0.0
    pv: list[str] = field(default_factory=list)
    depth_seen: Optional[int] = None
    # Kept in ascending rank order.
    cands_by_rank: dict[int, EngineInfoCandidate] = field(default_factory=dict)
    search_time_ms: Optional[int] = None
    nps: Optional[int] = None
    nodes: Optional[int] = None
    wdl: Optional[Tuple[int, int, int]] = None
    mate: Optional[int] = None


def apply_parsed_info_to_state(parsed: ParsedInfo, state: EngineInfoState) -> None:
    """Merge one parsed ``info`` line into ``state``."""
    if parsed.search_time_ms is not None:
        state.search_time_ms = parsed.search_time_ms
    if parsed.nps is not None:
        state.nps = parsed.nps
    if parsed.nodes is not None:
        state.nodes = parsed.nodes
    if parsed.wdl is not None:
        state.wdl = parsed.wdl
    if parsed.has_score:
        state.mate = parsed.mate
    state.score = parsed.cand_score
    if parsed.pv_tok:
        state.pv = list(parsed.pv_tok)
    state.depth_seen = parsed.depth

    rank = parsed.multipv
    previous = state.cands_by_rank.get(rank)
    state.cands_by_rank[rank] = candidate_from_parsed(parsed, state.best_move, previous)
    if previous is None:
        state.cands_by_rank = dict(sorted(state.cands_by_rank.items()))


def select_main_line_from_candidates(
    candidates: Sequence[EngineInfoCandidate],
    fallback_best_move: str,
    fallback_score: float,
    fallback_pv: Sequence[str],
    fallback_depth: Optional[int],
    fallback_mate: Optional[int],
) -> tuple[str, float, list[str], Optional[int], Optional[int]]:
    """Return (best move, score, pv, depth, mate) of the first candidate, else the fallbacks."""
    if candidates:
        first = candidates[0]
        return first.best_move, first.score, list(first.pv), first.depth, first.mate
    return fallback_best_move, fallback_score, list(fallback_pv), fallback_depth, fallback_mate


def uci_xiangqi_best_ready(s: str) -> bool:
    """True when ``s`` matches ``^[a-i][0-9][a-i][0-9]$``."""
    return _UCI_MOVE_RE.fullmatch(s) is not None