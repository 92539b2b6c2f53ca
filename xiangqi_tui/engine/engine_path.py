"""Normalising and comparing engine executable paths."""

from __future__ import annotations

import os
from typing import Optional

_WINDOWS = os.name == "nt"
_SEP = os.sep


def sanitize_engine_path(raw: str) -> Optional[str]:
    """Trim whitespace and one pair of surrounding quotes; None when empty."""
    s = raw.strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ('"', "'"):
        s = s[1:-1].strip()
    return s or None


def normalize_engine_path_for_compare(raw: str) -> Optional[str]:
    """Canonical form of a path for equality checks."""
    s = sanitize_engine_path(raw)
    if s is None:
        return None
    if _WINDOWS:
        return s.replace("/", "\\").lower().rstrip("\\")
    return s.rstrip(_SEP)


def same_engine_path(a: str, b: str) -> bool:
    """True when both paths are set and name the same engine."""
    x = normalize_engine_path_for_compare(a)
    y = normalize_engine_path_for_compare(b)
    return x is not None and y is not None and x == y


def has_non_ascii(s: str) -> bool:
    return not s.isascii()