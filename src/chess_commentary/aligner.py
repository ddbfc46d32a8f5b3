"""
Annotation aligner: places untrusted moments onto plies of a move history.

Three ordered passes over the moments (input order, first match reserves the slot):
1) exact    - the stated ply holds the same normalized SAN with matching color parity.
2) fuzzy    - nearest matching free ply within ±tolerance (-1, +1, -2, +2, ...).
3) fallback - the stated ply itself if it exists and is still free, without a SAN check.
Moments left over end up in ``unresolved``. A filled slot is never overwritten.

Pure and deterministic; both realizations call ``align`` with their own tolerance.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .models import AlignedAnnotation, AlignmentResult, CanonicalHistory, CanonicalMove, Moment
from .notation import normalize_san, parity_matches

log = logging.getLogger("aligner")


def _matches(moment: Moment, key: str, move: Optional[CanonicalMove]) -> bool:
    if move is None or not key:
        return False
    return normalize_san(move.san) == key and parity_matches(move.ply, moment.color)


def _search_offsets(tolerance: int) -> Iterable[int]:
    for dist in range(1, tolerance + 1):
        yield -dist
        yield dist


def align(
    history: CanonicalHistory,
    moments: Sequence[Moment],
    tolerance: int,
    allow_uncorroborated_fallback: bool = True,
) -> AlignmentResult:
    """Map moments onto history plies; see module docstring for the pass order."""
    if tolerance < 0:
        raise ValueError("tolerance must be >= 0")

    slots: Dict[int, AlignedAnnotation] = {}
    keys = [normalize_san(m.move) for m in moments]
    pending: List[int] = list(range(len(moments)))

    # Pass 1: exact
    still: List[int] = []
    for idx in pending:
        m = moments[idx]
        if m.ply is not None and m.ply not in slots and _matches(m, keys[idx], history.move_at(m.ply)):
            slots[m.ply] = AlignedAnnotation(m.ply, m, "exact", 0)
        else:
            still.append(idx)
    pending = still

    # Pass 2: fuzzy
    still = []
    for idx in pending:
        m = moments[idx]
        placed = False
        if m.ply is not None and keys[idx]:
            for offset in _search_offsets(tolerance):
                ply = m.ply + offset
                if ply < 1 or ply in slots:
                    continue
                if _matches(m, keys[idx], history.move_at(ply)):
                    slots[ply] = AlignedAnnotation(ply, m, "fuzzy", offset)
                    log.debug("Fuzzy match for %s: ply %s -> %s (offset %+d)", m.move, m.ply, ply, offset)
                    placed = True
                    break
        if not placed:
            still.append(idx)
    pending = still

    # Pass 3: fallback
    unresolved: List[Moment] = []
    for idx in pending:
        m = moments[idx]
        if (
            allow_uncorroborated_fallback
            and m.ply is not None
            and m.ply not in slots
            and history.move_at(m.ply) is not None
        ):
            slots[m.ply] = AlignedAnnotation(m.ply, m, "fallback", 0)
        else:
            unresolved.append(m)

    if unresolved:
        log.info("%d of %d moments could not be aligned", len(unresolved), len(moments))
    return AlignmentResult(slots=dict(sorted(slots.items())), unresolved=tuple(unresolved))
