"""UCI/UCCI protocol variants and shared parsing of ``info`` lines."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from xiangqi_tui.engine.analysis_types import EngineInfoCandidate

_SIGNED_RE = re.compile(r"[+-]?[0-9]+")
_UNSIGNED_RE = re.compile(r"\+?[0-9]+")
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1
_U64_MAX = 2**64 - 1


class EngineProtocol(enum.Enum):
    """Handshake variant used when talking to an engine process."""

    UCI = "uci"
    UCCI = "ucci"

    @property
    def init_command(self) -> str:
        return self.value

    @property
    def handshake_done_token(self) -> str:
        """Substring in engine output that marks a finished handshake."""
        return f"{self.value}ok"

    @property
    def protocol_id(self) -> str:
        return self.value


def protocol_for_id(protocol_id: str) -> EngineProtocol:
    """Return the protocol for ``uci`` or ``ucci``; raise ValueError otherwise."""
    try:
        return EngineProtocol(protocol_id)
    except ValueError:
        raise ValueError(f"unknown engine protocol: {protocol_id!r}") from None


@dataclass
class ParsedInfo:
    """One tokenised ``info`` line."""

    multipv: int = 1
    cand_score: float = 0.0
    cp_centipawns: Optional[int] = None
    has_score: bool = False
    mate: Optional[int] = None
    pv_tok: list[str] = field(default_factory=list)
    depth: Optional[int] = None
    search_time_ms: Optional[int] = None
    nps: Optional[int] = None
    nodes: Optional[int] = None
    wdl: Optional[Tuple[int, int, int]] = None


def _parse_i32(token: str) -> Optional[int]:
    if not _SIGNED_RE.fullmatch(token):
        return None
    value = int(token)
    return value if _I32_MIN <= value <= _I32_MAX else None


def _parse_u64(token: str) -> Optional[int]:
    if not _UNSIGNED_RE.fullmatch(token):
        return None
    value = int(token)
    return value if value <= _U64_MAX else None


def _parse_i32_loose(token: str) -> Optional[int]:
    text = token.strip()
    if not text:
        return None
    return _parse_i32(text.rstrip(",;"))


def _position(parts: Sequence[str], key: str) -> Optional[int]:
    try:
        return list(parts).index(key)
    except ValueError:
        return None


def _token_after(parts: Sequence[str], index: int, offset: int) -> Optional[str]:
    pos = index + offset
    return parts[pos] if pos < len(parts) else None


def uci_info_u64_after(parts: Sequence[str], key: str) -> Optional[int]:
    """Unsigned integer directly following ``key`` (e.g. ``time``, ``nps``)."""
    index = _position(parts, key)
    if index is None:
        return None
    token = _token_after(parts, index, 1)
    return None if token is None else _parse_u64(token)


def _parse_score(parts: Sequence[str], parsed: ParsedInfo) -> None:
    index = _position(parts, "score")
    if index is None:
        return
    kind = _token_after(parts, index, 1)
    if kind is None:
        return
    value_tok = _token_after(parts, index, 2)
    if kind in ("cp", "cp,"):
        cp = None if value_tok is None else _parse_i32_loose(value_tok)
        if cp is not None:
            parsed.cp_centipawns = cp
            parsed.cand_score = cp / 100.0
            parsed.has_score = True
    elif kind in ("mate", "mate,"):
        mate_in = None if value_tok is None else _parse_i32_loose(value_tok)
        if mate_in is not None:
            parsed.mate = mate_in
            if mate_in > 0:
                parsed.cand_score = 9999.0
            elif mate_in < 0:
                parsed.cand_score = -9999.0
            else:
                parsed.cand_score = 0.0
            parsed.has_score = True
    else:
        cp = _parse_i32_loose(kind)
        if cp is not None:
            parsed.cp_centipawns = cp
            parsed.cand_score = cp / 100.0
            parsed.has_score = True


def parse_uci_style_info_tokens(parts: Sequence[str]) -> Optional[ParsedInfo]:
    """Parse a whitespace-split line whose first token must be ``info``."""
    parts = list(parts)
    if not parts or parts[0] != "info":
        return None
    parsed = ParsedInfo(
        search_time_ms=uci_info_u64_after(parts, "time"),
        nps=uci_info_u64_after(parts, "nps"),
        nodes=uci_info_u64_after(parts, "nodes"),
    )

    index = _position(parts, "multipv")
    if index is not None:
        token = _token_after(parts, index, 1)
        if token is not None:
            value = _parse_i32(token)
            parsed.multipv = 1 if value is None else value

    _parse_score(parts, parsed)

    index = _position(parts, "pv")
    if index is not None:
        parsed.pv_tok = parts[index + 1 :]

    index = _position(parts, "depth")
    if index is not None:
        token = _token_after(parts, index, 1)
        if token is not None:
            parsed.depth = _parse_i32(token)

    index = _position(parts, "wdl")
    if index is not None:
        values = []
        for offset in (1, 2, 3):
            token = _token_after(parts, index, offset)
            values.append(None if token is None else _parse_u64(token))
        if all(v is not None for v in values):
            parsed.wdl = (values[0], values[1], values[2])

    return parsed


def _first_set(value, fallback):
    return value if value is not None else fallback


def candidate_from_parsed(
    parsed: ParsedInfo,
    best_move_fallback: str,
    previous: Optional[EngineInfoCandidate] = None,
) -> EngineInfoCandidate:
    """Merge a parsed ``info`` line into the previous candidate of the same rank."""
    prev_move = previous.best_move if previous is not None else best_move_fallback
    prev_score = previous.score if previous is not None else 0.0
    prev_pv = list(previous.pv) if previous is not None else []
    prev_depth = previous.depth if previous is not None else None
    prev_nodes = previous.nodes if previous is not None else None
    prev_wdl = previous.wdl if previous is not None else None
    prev_mate = previous.mate if previous is not None else None

    if parsed.has_score:
        mate = parsed.mate
    else:
        mate = _first_set(parsed.mate, prev_mate)

    return EngineInfoCandidate(
        rank=parsed.multipv,
        best_move=parsed.pv_tok[0] if parsed.pv_tok else prev_move,
        score=parsed.cand_score if parsed.has_score else prev_score,
        score_cp=parsed.cp_centipawns,
        mate=mate,
        pv=list(parsed.pv_tok) if parsed.pv_tok else prev_pv,
        depth=_first_set(parsed.depth, prev_depth),
        nodes=_first_set(parsed.nodes, prev_nodes),
        wdl=_first_set(parsed.wdl, prev_wdl),
    )