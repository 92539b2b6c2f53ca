import sys
import threading

import pytest

from xiangqi_tui.engine.analysis_store import EngineAnalysisStore
from xiangqi_tui.engine.uci_engine import EngineConfigureRequest, UciUcciEngine

STARTPOS = "rnbakabnr/9/1c5c1/p1p1p1p1p/9/9/P1P1P1P1P/1C5C1/9/RNBAKABNR w - - 0 1"

FAKE_ENGINE = '''
import sys
log_path = sys.argv[1]
reply_ucci = sys.argv[2] == "1"
infinite = False
def out(text):
    sys.stdout.write(text + "\\n")
    sys.stdout.flush()
with open(log_path, "a", encoding="utf-8") as log:
    for line in sys.stdin:
        cmd = line.strip()
        log.write(cmd + "\\n")
        log.flush()
        if cmd == "uci":
            out("id name Fake")
            out("uciok")
        elif cmd == "ucci":
            if reply_ucci:
                out("ucciok")
        elif cmd == "isready":
            out("readyok")
        elif cmd == "go infinite":
            infinite = True
            out("info depth 5 score cp 10 pv h2e2 h9g7")
        elif cmd.startswith("go "):
            out("info depth 3 score cp 20 nodes 100 pv h2e2 h9g7")
            out("bestmove h2e2")
        elif cmd == "stop":
            if infinite:
                infinite = False
                out("bestmove h2e2")
'''


@pytest.fixture(autouse=True)
def _in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fake_engine(tmp_path):
    def make(reply_ucci=True):
        engine_dir = tmp_path / "eng"
        engine_dir.mkdir(exist_ok=True)
        script = engine_dir / "fake.py"
        script.write_text(FAKE_ENGINE, encoding="utf-8")
        log = engine_dir / "commands.log"
        wrapper = engine_dir / "engine.sh"
        flag = "1" if reply_ucci else "0"
        wrapper.write_text(
            f'#!/bin/sh\nexec "{sys.executable}" -u "{script}" "{log}" "{flag}"\n',
            encoding="utf-8",
        )
        wrapper.chmod(0o755)
        return str(wrapper), log

    return make


def commands(log):
    return log.read_text(encoding="utf-8").splitlines() if log.exists() else []


def started_engine(path, **settings):
    engine = UciUcciEngine()
    engine.configure(EngineConfigureRequest(engine_path=path, **settings))
    engine.start()
    return engine


def test_configure_clamps_and_sanitizes():
    engine = UciUcciEngine()
    engine.configure(
        EngineConfigureRequest(
            engine_path='  "/opt/eng/pikafish"  ',
            threads=0,
            hash_mb=1,
            skill_level=99,
            engine_protocol_preference="bogus",
        )
    )
    assert engine.engine_path == "/opt/eng/pikafish"
    assert engine.threads == 1
    assert engine.hash_mb == 16
    assert engine.skill_level == 20
    assert engine.protocol_preference == "auto"


def test_configure_keeps_rules_when_empty_and_normalizes_preference():
    engine = UciUcciEngine()
    engine.configure(
        EngineConfigureRequest(
            repetition_rule="", draw_rule="", engine_protocol_preference=" UCI_ONLY "
        )
    )
    assert engine.repetition_rule == "AsianRule"
    assert engine.draw_rule == "None"
    assert engine.protocol_preference == "uci_only"


def test_protocol_hint_requires_same_path():
    engine = UciUcciEngine()
    engine.configure(
        EngineConfigureRequest(
            engine_path="/opt/eng/a",
            protocol_detected_for_path="/opt/eng/a",
            protocol_detected="uci",
        )
    )
    assert engine.handshake_protocol_hint == "uci"
    engine.configure(
        EngineConfigureRequest(
            protocol_detected_for_path="/opt/eng/b", protocol_detected="uci"
        )
    )
    assert engine.handshake_protocol_hint is None


def test_analyze_without_path_returns_stub():
    engine = UciUcciEngine()
    result = engine.analyze_autoplay_once(STARTPOS, movetime_ms=100)
    assert result.best_move == ""
    assert result.depth == 0
    assert not engine.has_child_process()


def test_start_with_missing_file_leaves_no_process(tmp_path):
    engine = UciUcciEngine(str(tmp_path / "missing-engine"))
    engine.start()
    assert not engine.has_child_process()


def test_handshake_without_process_fails():
    engine = UciUcciEngine()
    with pytest.raises(RuntimeError, match="握手"):
        engine.handshake()
    assert not engine.has_child_process()


def test_auto_handshake_prefers_ucci(fake_engine):
    path, log = fake_engine(reply_ucci=True)
    engine = started_engine(path)
    try:
        assert engine.has_child_process()
        assert engine.last_protocol == "ucci"
    finally:
        engine.terminate()
    assert not engine.has_child_process()
    assert commands(log)[0] == "ucci"


def test_uci_only_handshake_sends_options(fake_engine):
    path, log = fake_engine(reply_ucci=False)
    engine = started_engine(path, engine_protocol_preference="uci_only", threads=2)
    engine.start()
    engine.terminate()
    sent = commands(log)
    assert engine.last_protocol == "uci"
    assert "ucci" not in sent
    assert "setoption name Threads value 2" in sent
    assert "setoption name Repetition Rule value AsianRule" in sent
    assert sent.count("isready") == 1


def test_handshake_writes_protocol_cue(fake_engine, tmp_path):
    path, _ = fake_engine()
    cfg = tmp_path / "engine.cfg"
    cfg.write_text("other=1\n", encoding="utf-8")
    engine = started_engine(path, engine_config_path=cfg)
    engine.terminate()
    lines = cfg.read_text(encoding="utf-8").splitlines()
    assert "other=1" in lines
    assert "engine_protocol_detected=ucci" in lines
    assert f"engine_protocol_detected_for_path={path}" in lines


def test_handshake_sends_eval_file(fake_engine, tmp_path):
    path, log = fake_engine()
    (tmp_path / "eng" / "pikafish.nnue").write_bytes(b"")
    engine = started_engine(path)
    running = engine.has_child_process()
    engine.terminate()
    assert running is True
    assert engine.has_child_process() is False
    eval_lines = [c for c in commands(log) if c.startswith("setoption name EvalFile value ")]
    assert len(eval_lines) == 1
    assert eval_lines[0].endswith("/pikafish.nnue")


def test_analyze_movetime_returns_bestmove_and_patches_store(fake_engine):
    path, log = fake_engine()
    engine = started_engine(path)
    store = EngineAnalysisStore.empty_for_fen(STARTPOS)
    lock = threading.Lock()
    result = engine.analyze_autoplay_once(
        STARTPOS, None, 500, None, store, lock, threading.Event()
    )
    engine.terminate()
    assert result.best_move == "h2e2"
    assert result.pv == ["h2e2", "h9g7"]
    assert result.score_cp == 20
    assert result.depth == 3
    assert store.result.best_move == "h2e2"
    assert store.revision >= 2
    sent = commands(log)
    assert "setoption name MultiPV value 1" in sent
    assert f"position fen {STARTPOS}" in sent
    assert "go movetime 500" in sent


def test_analyze_defaults_to_depth_8(fake_engine):
    path, log = fake_engine()
    engine = started_engine(path)
    result = engine.analyze_autoplay_once("   ")
    engine.terminate()
    assert result.best_move == "h2e2"
    assert result.depth == 3
    sent = commands(log)
    assert "position startpos" in sent
    assert "go depth 8" in sent


def test_analyze_nodes_limit(fake_engine):
    path, log = fake_engine()
    engine = started_engine(path)
    result = engine.analyze_autoplay_once(STARTPOS, depth=18, search_nodes=500_000)
    engine.terminate()
    assert result.best_move == "h2e2"
    assert result.nodes == 100
    assert "go nodes 500000" in commands(log)


def test_cancelled_analysis_keeps_stub_move(fake_engine):
    path, _ = fake_engine()
    engine = started_engine(path)
    cancel = threading.Event()
    cancel.set()
    result = engine.analyze_autoplay_once(STARTPOS, movetime_ms=500, cancel=cancel)
    engine.terminate()
    assert result.best_move == "stub_move"
    assert result.candidates == []


def test_infinite_without_path_stores_stub():
    engine = UciUcciEngine()
    store = EngineAnalysisStore.empty_for_fen("old")
    store.result.best_move = "h2e2"
    engine.run_infinite_analysis("  fen-b ", store, None, threading.Event(), lambda: True, 1)
    assert store.fen == "fen-b"
    assert store.result.best_move == ""


def test_infinite_stops_on_event_and_records_bestmove(fake_engine):
    path, log = fake_engine()
    engine = started_engine(path)
    store = EngineAnalysisStore.empty_for_fen("")
    stop = threading.Event()
    stop.set()
    engine.run_infinite_analysis(STARTPOS, store, threading.Lock(), stop, lambda: True, 9)
    engine.terminate()
    assert store.fen == STARTPOS
    assert store.result.best_move == "h2e2"
    assert store.result.pv == ["h2e2", "h9g7"]
    sent = commands(log)
    assert "setoption name MultiPV value 5" in sent
    assert sent.index("go infinite") < len(sent) - 1
    assert sent[-1] == "stop"


def test_infinite_skipped_when_session_dead(fake_engine):
    path, log = fake_engine()
    engine = started_engine(path)
    store = EngineAnalysisStore.empty_for_fen(STARTPOS)
    engine.run_infinite_analysis(STARTPOS, store, None, threading.Event(), lambda: False, 1)
    engine.terminate()
    assert store.revision == 0
    assert "go infinite" not in commands(log)