"""
SAN helpers shared by the aligner, the tree indexer and moment decoding.

- normalize_san: comparison key (whitespace and the glyphs ? ! . removed).
- is_white_ply / parity_matches: color-parity rule (odd plies are White).
- clean_move_text: boundary cleanup of free-form move references ("14...Nf6", "0-0").
- leading_move_number: integer prefix of a move-number marker ("12." → 12).
"""
from __future__ import annotations

import re
from typing import Optional

CASTLE_ZERO = {"0-0": "O-O", "0-0-0": "O-O-O", "o-o": "O-O", "o-o-o": "O-O-O"}

_STRIP_RE = re.compile(r"[\s?!.]+")
_MOVE_NUMBER_PREFIX_RE = re.compile(r"^\s*\d+\s*\.+\s*")
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")


def normalize_san(san: Optional[str]) -> str:
    """Return the comparison key for a SAN string; empty string when unusable."""
    if not san:
        return ""
    return _STRIP_RE.sub("", san)


def is_white_ply(ply: int) -> bool:
    return ply % 2 == 1


def parity_matches(ply: int, color: Optional[str]) -> bool:
    """True when no color is stated or the stated color agrees with the ply parity."""
    if not color:
        return True
    return (color == "white") == is_white_ply(ply)


def group_for_ply(ply: int) -> int:
    """Move number (numbered pair) a ply belongs to."""
    return (ply + 1) // 2


def clean_move_text(text: Optional[str]) -> Optional[str]:
    """Drop a leading move number and repair zero-castling; None if nothing usable remains."""
    if text is None:
        return None
    token = _MOVE_NUMBER_PREFIX_RE.sub("", str(text)).strip()
    if not token:
        return None
    token = token.split()[0]
    stem = token.rstrip("+#?!")
    tail = token[len(stem):]
    if stem.lower() in CASTLE_ZERO:
        token = CASTLE_ZERO[stem.lower()] + tail
    return token if normalize_san(token) else None


def leading_move_number(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    m = _LEADING_INT_RE.match(text)
    return int(m.group(1)) if m else None


__all__ = [
    "normalize_san",
    "is_white_ply",
    "parity_matches",
    "group_for_ply",
    "clean_move_text",
    "leading_move_number",
]
