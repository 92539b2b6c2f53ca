# xiangqi_tui

The engine and input layer for a terminal xiangqi (Chinese chess) board.
It runs a UCI or UCCI engine as a child process, merges the engine's `info`
lines into a live analysis snapshot, and parses what the user types at the
prompt.

## Install

```
pip install .
pip install ".[test]"   # with pytest
```

The package has no dependencies outside the standard library.

## Modules

- `xiangqi_tui.engine.protocol`: `EngineProtocol` (`UCI` / `UCCI`, with their
  init command and handshake token), `protocol_for_id`,
  `parse_uci_style_info_tokens` for a split `info ...` line, and
  `candidate_from_parsed`, which merges a parsed line into the previous
  candidate of the same MultiPV rank.
- `xiangqi_tui.engine.info_state`: `EngineInfoState`, `apply_parsed_info_to_state`,
  `select_main_line_from_candidates` and `uci_xiangqi_best_ready`
  (checks a move against `[a-i][0-9][a-i][0-9]`).
- `xiangqi_tui.engine.analysis_types`: `EngineInfoCandidate` and `EngineAnalyzeResult`.
- `xiangqi_tui.engine.analysis_store`: `EngineAnalysisStore`, the shared
  snapshot a UI reads; its `revision` goes up on every patch.
- `xiangqi_tui.engine.pv_ui`: `truncate_engine_pv_for_ui` keeps at most 16 moves.
- `xiangqi_tui.engine.config`: `EngineConfig`, `EngineSearchLimit`
  (movetime / depth / nodes), `ProtocolChoice` and `AnalysisSnapshot`.
- `xiangqi_tui.engine.engine_path`, `xiangqi_tui.engine.handshake_plan`,
  `xiangqi_tui.engine.handshake`, `xiangqi_tui.engine.ui_helpers`,
  `xiangqi_tui.engine.infinite_line`: path comparison, protocol try order,
  protocol-cue files and NNUE lookup, win-rate from WDL, and single-line
  handling for `go infinite`.
- `xiangqi_tui.engine.process`: `EngineProcess`, a child process with
  line-based I/O; raises `EngineDisconnected` and `EngineSendError`.
- `xiangqi_tui.engine.uci_engine`: `UciUcciEngine` with `EngineConfigureRequest`.
  It spawns the engine, does the handshake (UCCI first, then UCI, unless a
  preference or a detected-protocol hint says otherwise), sends the options
  and runs one-off (`analyze_autoplay_once`) or infinite
  (`run_infinite_analysis`) searches.
- `xiangqi_tui.engine.stream`: `EngineStreamRuntime` runs `go infinite` and
  the AI's one-off search in background threads.
- `xiangqi_tui.service.engine`: `EngineService`, the front end's view of the
  runtime (`ensure_stream`, `snapshot_if_newer`, `spawn_autoplay_once`,
  `poll_autoplay_done`, `stop_all`, `release_if_idle`, ...).
- `xiangqi_tui.service.command`: `parse_command` reads coordinate moves such
  as `h2e2`, slash commands such as `/new` or `/undo` (`SlashCommand`) and
  `/pastefen <FEN>` (`PasteFen`); bad input raises a `CommandParseError`
  subclass (`EmptyInput`, `UnknownSlash`, `InvalidMove`, `InvalidPasteFen`).
- `xiangqi_tui.input`: `InputState`, a line editor with slash-command
  completion and command history.
- `xiangqi_tui.runtime_log`: appends lines to `logs/runtime.log`.

## Example

```python
from xiangqi_tui.engine.config import EngineConfig, EngineSearchLimit
from xiangqi_tui.engine.protocol import parse_uci_style_info_tokens
from xiangqi_tui.service.command import parse_command
from xiangqi_tui.service.engine import EngineService

move = parse_command("h2e2")
print(move.from_file, move.from_rank, move.to_file, move.to_rank)  # 7 2 4 2

info = parse_uci_style_info_tokens("info depth 12 score cp 30 pv h2e2 h7e7".split())
print(info.depth, info.cp_centipawns, info.pv_tok)  # 12 30 ['h2e2', 'h7e7']

cfg = EngineConfig(path="/opt/engines/pikafish", search_limit=EngineSearchLimit.DEPTH)
service = EngineService()
service.spawn_autoplay_once(
    "rnbakabnr/9/1c5c1/p1p1p1p1p/9/9/P1P1P1P1P/1C5C1/9/RNBAKABNR w - - 0 1", cfg
)
# later, once per frame:
result = service.poll_autoplay_done()  # None while the engine is thinking
```

## Logging

Set `XIANGQI_TUI_DEBUG=1` (or `true`) to write debug lines to
`logs/runtime.log`. Warnings and errors are always written there.

## What it does not do

The package has no terminal screen and no command to start one, no board
model or move-legality checks, and no opening book. It parses moves and
commands and drives the engine; drawing the board and applying moves is left
to the program that uses it.