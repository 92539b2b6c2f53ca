"""In-memory engine analysis results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

Wdl = Tuple[int, int, int]


@dataclass
class EngineInfoCandidate:
    """One MultiPV line collected from ``info`` output."""

    rank: int = 0
    best_move: str = ""
    score: float = 0.0
    score_cp: Optional[int] = None
    mate: Optional[int] = None
    pv: list[str] = field(default_factory=list)
    depth: Optional[int] = None
    nodes: Optional[int] = None
    wdl: Optional[Wdl] = None


@dataclass
class EngineAnalyzeResult:
    """Final result of one ``go`` search, or the live state of a stream."""

    best_move: str = ""
    score: float = 0.0
    score_cp: Optional[int] = None
    pv: list[str] = field(default_factory=list)
    depth: Optional[int] = None
    candidates: list[EngineInfoCandidate] = field(default_factory=list)
    search_time_ms: Optional[int] = None
    nps: Optional[int] = None
    nodes: Optional[int] = None
    wdl: Optional[Wdl] = None
    mate: Optional[int] = None

    @classmethod
    def stub(cls) -> "EngineAnalyzeResult":
        """Placeholder result used before any engine output has arrived."""
        return cls(depth=0, search_time_ms=0, nps=0, nodes=0)