import pytest

from xiangqi_tui.engine.analysis_types import EngineInfoCandidate
from xiangqi_tui.engine.protocol import (
    EngineProtocol,
    candidate_from_parsed,
    parse_uci_style_info_tokens,
    protocol_for_id,
    uci_info_u64_after,
)


def test_parse_score_and_wdl_with_lowerbound():
    line = (
        "info depth 22 seldepth 34 multipv 1 score cp 6 lowerbound wdl 23 973 4 "
        "nodes 2024471 nps 1106873 hashfull 674 tbhits 0 time 1829 pv h2e2"
    )
    parsed = parse_uci_style_info_tokens(line.split())
    assert parsed is not None
    assert parsed.has_score
    assert abs(parsed.cand_score - 0.06) < 1e-9
    assert parsed.cp_centipawns == 6
    assert parsed.mate is None
    assert parsed.wdl == (23, 973, 4)
    assert parsed.pv_tok == ["h2e2"]


def test_candidate_merge_keeps_previous_when_new_line_has_no_score_or_pv():
    info = parse_uci_style_info_tokens(["info", "depth", "18"])
    prev = EngineInfoCandidate(
        rank=1,
        best_move="h2e2",
        score=0.06,
        mate=None,
        pv=["h2e2"],
        depth=22,
        nodes=1000,
        wdl=(23, 973, 4),
    )
    merged = candidate_from_parsed(info, "stub_move", prev)
    assert merged.best_move == "h2e2"
    assert abs(merged.score - 0.06) < 1e-9
    assert merged.pv == ["h2e2"]
    assert merged.mate is None


def test_candidate_merge_clears_old_mate_when_new_cp_score_arrives():
    info = parse_uci_style_info_tokens(["info", "depth", "19", "score", "cp", "12"])
    prev = EngineInfoCandidate(
        rank=1,
        best_move="h2e2",
        score=9999.0,
        mate=5,
        pv=["h2e2"],
        depth=22,
        nodes=1000,
        wdl=(23, 973, 4),
    )
    merged = candidate_from_parsed(info, "stub_move", prev)
    assert abs(merged.score - 0.12) < 1e-9
    assert merged.mate is None


def test_parse_mate_score_keeps_non_zero_score_signal():
    line = "info depth 20 multipv 1 score mate 3 wdl 1000 0 0 nodes 12345 pv h2e2"
    parsed = parse_uci_style_info_tokens(line.split())
    assert parsed.has_score
    assert parsed.cand_score == 9999.0
    assert parsed.mate == 3
    assert parsed.wdl == (1000, 0, 0)


def test_parse_spin_storm_style_score_without_cp_keyword():
    line = "info depth 12 score 156 time 1240 nodes 890234 nps 717931 pv h2i2 h7g7"
    parsed = parse_uci_style_info_tokens(line.split())
    assert parsed.has_score
    assert parsed.cp_centipawns == 156
    assert abs(parsed.cand_score - 1.56) < 1e-9
    assert parsed.depth == 12
    assert parsed.search_time_ms == 1240
    assert parsed.nodes == 890_234
    assert parsed.nps == 717_931
    assert parsed.pv_tok == ["h2i2", "h7g7"]


def test_non_info_line_is_rejected():
    assert parse_uci_style_info_tokens(["bestmove", "h2e2"]) is None
    assert parse_uci_style_info_tokens([]) is None


def test_negative_mate_and_loose_cp_token():
    parsed = parse_uci_style_info_tokens(["info", "score", "mate", "-2"])
    assert parsed.cand_score == -9999.0
    assert parsed.mate == -2
    parsed = parse_uci_style_info_tokens(["info", "score", "cp", "-35,"])
    assert parsed.cp_centipawns == -35


def test_missing_multipv_value_defaults_to_one():
    parsed = parse_uci_style_info_tokens(["info", "multipv", "x"])
    assert parsed.multipv == 1
    assert parsed.has_score is False


def test_incomplete_wdl_is_ignored():
    parsed = parse_uci_style_info_tokens(["info", "wdl", "1", "2"])
    assert parsed.wdl is None


def test_u64_after_key():
    parts = ["info", "time", "1829", "nps", "-5"]
    assert uci_info_u64_after(parts, "time") == 1829
    assert uci_info_u64_after(parts, "nps") is None
    assert uci_info_u64_after(parts, "nodes") is None


def test_candidate_without_previous_uses_fallback_move():
    info = parse_uci_style_info_tokens(["info", "depth", "3"])
    cand = candidate_from_parsed(info, "stub_move", None)
    assert cand.best_move == "stub_move"
    assert cand.rank == 1
    assert cand.pv == []
    assert cand.depth == 3


def test_protocol_variants():
    assert EngineProtocol.UCI.init_command == "uci"
    assert EngineProtocol.UCI.handshake_done_token == "uciok"
    assert EngineProtocol.UCCI.init_command == "ucci"
    assert EngineProtocol.UCCI.handshake_done_token == "ucciok"
    assert protocol_for_id("ucci") is EngineProtocol.UCCI
    assert protocol_for_id("uci").protocol_id == "uci"


def test_protocol_for_unknown_id_raises():
    with pytest.raises(ValueError):
        protocol_for_id("xboard")