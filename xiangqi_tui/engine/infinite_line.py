"""Merging one line of ``go infinite`` output into the running state."""

from __future__ import annotations

import enum

from xiangqi_tui.engine.analysis_store import EngineAnalysisStore
from xiangqi_tui.engine.info_state import EngineInfoState, apply_parsed_info_to_state
from xiangqi_tui.engine.protocol import parse_uci_style_info_tokens


class InfiniteLineOutcome(enum.Enum):
    CONTINUE = "continue"
    GOT_BESTMOVE = "got_bestmove"


def apply_infinite_stdout_line(
    line: str, fen: str, state: EngineInfoState
) -> InfiniteLineOutcome:
    """Apply an ``info`` or ``bestmove`` line; report whether the search ended."""
    line = line.strip()
    if line.startswith("info "):
        parsed = parse_uci_style_info_tokens(line.split())
        if parsed is not None:
            apply_parsed_info_to_state(parsed, state)
        return InfiniteLineOutcome.CONTINUE
    if line.startswith("bestmove"):
        tokens = line.split()
        if len(tokens) >= 2:
            state.best_move = tokens[1]
        return InfiniteLineOutcome.GOT_BESTMOVE
    return InfiniteLineOutcome.CONTINUE


def patch_store_from_state(
    store: EngineAnalysisStore, fen: str, state: EngineInfoState
) -> None:
    store.patch_from_info_state(fen, state)