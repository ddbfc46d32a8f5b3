"""
Ply index reconstructed from a live move list.

The host tree does not expose ply numbers, so they are inferred from move-number
markers and white/black alternation. The result is advisory; the aligner's fuzzy
pass absorbs small misalignments.
"""
from __future__ import annotations

import logging
from typing import Dict, List

from .models import CanonicalHistory, CanonicalMove, color_for_ply
from .notation import leading_move_number
from .tree import NodeRef, TreeReader

log = logging.getLogger("indexer")

PlyTreeIndex = Dict[NodeRef, int]


def index_ply_tree(reader: TreeReader) -> PlyTreeIndex:
    """Map each main-line move node to its inferred ply.

    A marker whose leading integer differs from the current group starts a new group
    with White to move; repeating the current number (the host re-prints it after a
    comment) keeps the cursor. A third move without a new marker rolls into the next
    group.
    """
    index: PlyTreeIndex = {}
    group = 0
    slot = 0  # 0 = White next, 1 = Black next, 2 = pair complete
    for entry in reader.move_entries():
        number = leading_move_number(entry.number_text)
        if number is not None and number != group:
            group, slot = number, 0
        if entry.in_variation or entry.is_placeholder or entry.is_synthetic:
            continue
        if group == 0:
            group = 1
        if slot == 2:
            group, slot = group + 1, 0
        index[entry.node] = 2 * group - 1 + slot
        slot += 1
    log.debug("Indexed %d main-line move nodes", len(index))
    return index


def nodes_by_ply(index: PlyTreeIndex) -> Dict[int, NodeRef]:
    """Inverse lookup; the first node in document order wins on duplicates."""
    out: Dict[int, NodeRef] = {}
    for node, ply in index.items():
        out.setdefault(ply, node)
    return out


def pseudo_history(reader: TreeReader, index: PlyTreeIndex) -> CanonicalHistory:
    """History built from the tree itself, used as ground truth on the presentation side."""
    texts = {entry.node: entry.text for entry in reader.move_entries()}
    moves: List[CanonicalMove] = [
        CanonicalMove(ply, texts.get(node, ""), color_for_ply(ply))
        for ply, node in sorted(nodes_by_ply(index).items())
    ]
    return CanonicalHistory(tuple(moves))
