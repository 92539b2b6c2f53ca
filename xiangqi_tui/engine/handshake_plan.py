"""Order in which protocols are tried during the engine handshake."""

from __future__ import annotations

from typing import Optional


def handshake_protocol_sequence(pref: str, hint: Optional[str] = None) -> list[str]:
    """Protocol ids (``uci`` / ``ucci``) to try, in order."""
    if pref == "uci_only":
        return ["uci"]
    if pref == "ucci_only":
        return ["ucci"]
    if pref == "prefer_uci":
        return ["ucci", "uci"] if hint == "ucci" else ["uci", "ucci"]
    return ["uci", "ucci"] if hint == "uci" else ["ucci", "uci"]