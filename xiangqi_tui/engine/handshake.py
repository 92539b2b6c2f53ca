"""Handshake helpers: protocol cue persistence and NNUE eval file lookup."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional, Union

from xiangqi_tui import runtime_log
from xiangqi_tui.engine.engine_path import has_non_ascii

KEY_PROTOCOL = "engine_protocol_detected"
KEY_PROTOCOL_PATH = "engine_protocol_detected_for_path"
EVAL_FILE_NAMES = ("pikafish.nnue", "engine.nnue", "libpikafish.nnue.so")


def set_config_kv(lines: Iterable[str], key: str, value: str) -> list[str]:
    """Lines with ``key=value`` replacing the first ``key=`` line, or appended."""
    prefix = f"{key}="
    entry = f"{key}={value}"
    out = list(lines)
    index = next(
        (i for i, line in enumerate(out) if line.strip().startswith(prefix)), None
    )
    if index is None:
        out.append(entry)
    else:
        out[index] = entry
    return out


def write_protocol_cue(
    cfg_path: Union[str, os.PathLike], proto_id: str, engine_path: str
) -> None:
    """Record the detected protocol and its engine path in a ``key=value`` file."""
    path = Path(cfg_path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        content = ""
    lines = [line.removesuffix("\r") for line in content.split("\n")]
    lines = [line for line in lines if line.strip()]
    lines = set_config_kv(lines, KEY_PROTOCOL, proto_id)
    lines = set_config_kv(lines, KEY_PROTOCOL_PATH, engine_path)
    body = "\n".join(lines) + "\n" if lines else ""
    path.write_text(body, encoding="utf-8", newline="")


def _slashed(path: Path) -> str:
    return str(path).replace("\\", "/")


def _is_nnue(path: Path) -> bool:
    return path.suffix.lower() == ".nnue" or ".nnue.so" in path.name.lower()


def find_eval_file(engine_path: Union[str, os.PathLike]) -> Optional[str]:
    """NNUE file next to the engine to pass as ``EvalFile``, or None.

    Well-known names are preferred; otherwise the first ``*.nnue`` file by name.
    Paths with non-ASCII characters are skipped.
    """
    parent = Path(engine_path).parent
    for name in EVAL_FILE_NAMES:
        candidate = parent / name
        if candidate.is_file():
            text = _slashed(candidate)
            if has_non_ascii(text):
                runtime_log.debug(f"[engine_handshake] skip_evalfile_non_ascii path={text}")
                continue
            return text
    try:
        found = [p for p in parent.iterdir() if p.is_file() and _is_nnue(p)]
    except OSError:
        found = []
    if not found:
        return None
    text = _slashed(min(found, key=lambda p: p.name))
    if has_non_ascii(text):
        runtime_log.debug(f"[engine_handshake] skip_evalfile_non_ascii path={text}")
        return None
    return text