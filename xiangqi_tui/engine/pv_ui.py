"""Length limit for engine PV lines shown in the UI."""

from __future__ import annotations

from typing import Iterable

ENGINE_PV_UI_MAX_STEPS = 16


def truncate_engine_pv_for_ui(pv: Iterable[str]) -> list[str]:
    """Keep at most ``ENGINE_PV_UI_MAX_STEPS`` moves, skipping entries shorter than four bytes."""
    out: list[str] = []
    for move in pv:
        if len(out) >= ENGINE_PV_UI_MAX_STEPS:
            break
        if len(move.encode("utf-8")) >= 4:
            out.append(move)
    return out