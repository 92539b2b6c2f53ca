"""Engine settings, search limits and the analysis panel snapshot."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

_I32_MAX = 2**31 - 1


class ProtocolChoice(enum.Enum):
    """Protocol the user selected for the engine."""

    UCI = "uci"
    UCCI = "ucci"

    def label(self) -> str:
        return self.value.upper()

    def preference(self) -> str:
        """Value passed to the engine as its protocol preference."""
        return f"{self.value}_only"


class EngineSearchLimit(enum.Enum):
    """How a single ``go`` search is limited."""

    MOVETIME = "movetime"
    DEPTH = "depth"
    NODES = "nodes"

    def label(self) -> str:
        return _LIMIT_LABELS[self]

    def config_key(self) -> str:
        return self.value

    @classmethod
    def from_config_key(cls, raw: str) -> "EngineSearchLimit":
        """Parse a config value; anything unknown means movetime."""
        key = raw.strip().lower()
        if key == "depth":
            return cls.DEPTH
        if key == "nodes":
            return cls.NODES
        return cls.MOVETIME

    def cycle(self, delta: int) -> "EngineSearchLimit":
        """Step ``delta`` places through the modes, wrapping around."""
        modes = list(EngineSearchLimit)
        return modes[(modes.index(self) + delta) % len(modes)]


_LIMIT_LABELS = {
    EngineSearchLimit.MOVETIME: "固定时间",
    EngineSearchLimit.DEPTH: "固定深度",
    EngineSearchLimit.NODES: "固定节点",
}


@dataclass
class EngineConfig:
    """User configuration of the analysis engine."""

    path: str = ""
    protocol: ProtocolChoice = ProtocolChoice.UCI
    threads: int = 4
    hash_mb: int = 512
    skill_level: int = 20
    multi_pv: int = 1
    search_limit: EngineSearchLimit = EngineSearchLimit.MOVETIME
    movetime_ms: int = 3000
    search_depth: int = 12
    search_nodes: int = 500_000
    variant: str = "AsianRule"
    rule: str = "None"

    def analyze_go_args(self) -> Tuple[Optional[int], Optional[int], Optional[int]]:
        """(depth, movetime_ms, nodes) for one search; exactly one is set."""
        if self.search_limit is EngineSearchLimit.DEPTH:
            return max(self.search_depth, 1), None, None
        if self.search_limit is EngineSearchLimit.NODES:
            nodes = max(self.search_nodes, 1_000)
            return None, None, nodes if nodes <= _I32_MAX else 500_000
        movetime = max(self.movetime_ms, 1)
        return None, movetime if movetime <= _I32_MAX else 3000, None


@dataclass
class AnalysisSnapshot:
    """Text shown in the analysis panel."""

    time_text: str = ""
    depth: int = 0
    nps: int = 0
    nodes: int = 0
    score_text: str = ""
    best_move: str = ""
    win_rate_text: str = ""
    pv: list[str] = field(default_factory=list)
    source: str = ""

    @classmethod
    def idle(cls) -> "AnalysisSnapshot":
        """Snapshot shown while nothing is being analysed."""
        return cls(
            time_text="--",
            score_text="--",
            best_move="--",
            win_rate_text="--",
            source="idle",
        )