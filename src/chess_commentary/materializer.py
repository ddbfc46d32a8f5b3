"""
Materializes an alignment into the host's move list.

Phases, in order:
1) cleanup   - remove every node carrying our marker from a previous run.
2) placement - put each aligned annotation next to its move node, reusing an
               adjacent host holder only when it already carries a host comment
               and no annotation of ours.
3) fix-up    - after a White move that now carries a holder while its Black reply
               does not, add placeholder / number marker / placeholder so the host's
               numbered pair layout stays intact.

Only nodes carrying the synthetic marker are ever inserted or removed. Empty host
holders and variation-only holders are never filled, so cleanup never has to drop
a wrapper that placement used. A host wrapper that holds nothing but marked nodes
(left behind by some other writer) is dropped once it is empty again.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .indexer import PlyTreeIndex, nodes_by_ply
from .models import AlignmentResult, Moment
from .notation import group_for_ply, is_white_ply, normalize_san
from .tree import HostTree, NodeRef, TreeReader

log = logging.getLogger("materializer")


class HostTreeUnavailable(RuntimeError):
    """The move list root could not be found."""


@dataclass
class MaterializeReport:
    removed: int = 0
    placed: Dict[int, str] = field(default_factory=dict)  # ply -> annotation marker
    reused_holders: List[int] = field(default_factory=list)
    skipped_plies: List[int] = field(default_factory=list)
    placeholder_plies: List[int] = field(default_factory=list)
    fixup_cancelled: bool = False


def annotation_marker(ply: int, san: Optional[str]) -> str:
    return f"ply-{ply}-{normalize_san(san) or 'none'}"


def holder_marker(ply: int) -> str:
    return f"holder-{ply}"


def placeholder_markers(black_ply: int) -> tuple[str, str, str]:
    return (f"empty-{black_ply}-a", f"index-{black_ply}", f"empty-{black_ply}-b")


def comment_lines(moment: Moment, recommendation_label: str = "Better:") -> List[str]:
    """Text lines rendered for one moment: comment, then recommendation and reasoning."""
    payload = moment.commentary
    lines = [str(payload.get("comment") or "").strip()]
    recommendation = str(payload.get("recommendation") or "").strip()
    if recommendation:
        lines.append(f"{recommendation_label} {recommendation}")
        reasoning = str(payload.get("reasoning") or "").strip()
        if reasoning:
            lines.append(reasoning)
    return lines


def _has_marked(tree: TreeReader, node: NodeRef) -> bool:
    if tree.marker_of(node) is not None:
        return True
    return any(_has_marked(tree, child) for child in tree.children(node))


def _has_host_comment(tree: TreeReader, node: NodeRef) -> bool:
    return any(tree.is_comment(child) and tree.marker_of(child) is None for child in tree.children(node))


def _has_foreign_content(tree: TreeReader, node: NodeRef) -> bool:
    if tree.own_text(node):
        return True
    return any(tree.marker_of(child) is None for child in tree.children(node))


def cleanup(tree: HostTree) -> int:
    removed = 0
    for node in tree.marked_nodes():
        wrapper = tree.parent(node)
        drop_wrapper = (
            wrapper is not None
            and tree.is_holder(wrapper)
            and tree.marker_of(wrapper) is None
            and not _has_foreign_content(tree, wrapper)
        )
        tree.remove(node)
        removed += 1
        if drop_wrapper and not tree.children(wrapper) and not tree.own_text(wrapper):
            tree.remove_empty_wrapper(wrapper)
    return removed


def place(
    tree: HostTree,
    alignment: AlignmentResult,
    ply_index: PlyTreeIndex,
    report: MaterializeReport,
    recommendation_label: str = "Better:",
) -> Dict[int, NodeRef]:
    """Insert annotations; returns ply -> holder node for the placed ones."""
    targets = nodes_by_ply(ply_index)
    holders: Dict[int, NodeRef] = {}
    for ply, aligned in alignment.slots.items():
        move_node = targets.get(ply)
        if move_node is None:
            log.debug("No move node for ply %d; dropping annotation", ply)
            report.skipped_plies.append(ply)
            continue
        marker = annotation_marker(ply, aligned.moment.move)
        existing = tree.find_marker(marker)
        if existing is not None:
            holders[ply] = tree.parent(existing)
            report.placed[ply] = marker
            continue

        annotation = tree.create_annotation(marker, comment_lines(aligned.moment, recommendation_label))
        adjacent = tree.next_sibling(move_node)
        if adjacent is not None and tree.is_placeholder(adjacent) and tree.marker_of(adjacent) is None:
            # the host pads a commented White move with an empty Black slot before its holder
            adjacent = tree.next_sibling(adjacent)
        if (
            adjacent is not None
            and tree.is_holder(adjacent)
            and _has_host_comment(tree, adjacent)
            and not _has_marked(tree, adjacent)
        ):
            # host holder: our content goes after whatever the host put there
            tree.append_child(adjacent, annotation)
            holder = adjacent
            report.reused_holders.append(ply)
        else:
            holder = tree.create_holder(holder_marker(ply))
            tree.insert_after(move_node, holder)
            tree.append_child(holder, annotation)
        holders[ply] = holder
        report.placed[ply] = marker
    return holders


def fix_up(
    tree: HostTree,
    holders: Dict[int, NodeRef],
    ply_index: PlyTreeIndex,
    report: MaterializeReport,
) -> None:
    targets = nodes_by_ply(ply_index)
    for ply in sorted(holders):
        if not is_white_ply(ply):
            continue
        black_ply = ply + 1
        black_node = targets.get(black_ply)
        if black_ply in holders or black_node is None:
            continue
        after_black = tree.next_sibling(black_node)
        if after_black is not None and tree.is_holder(after_black) and _has_foreign_content(tree, after_black):
            continue
        anchor = holders[ply]
        following = tree.next_sibling(anchor)
        if following is not None and (tree.is_placeholder(following) or tree.is_number_marker(following)):
            # host layout, or our own triple, already there
            continue
        first_marker, number_marker, second_marker = placeholder_markers(black_ply)
        first = tree.create_placeholder(first_marker)
        tree.insert_after(anchor, first)
        number = tree.create_number_marker(number_marker, f"{group_for_ply(black_ply)}...")
        tree.insert_after(first, number)
        tree.insert_after(number, tree.create_placeholder(second_marker))
        report.placeholder_plies.append(black_ply)


def materialize(
    tree: HostTree,
    alignment: AlignmentResult,
    ply_index: PlyTreeIndex,
    recommendation_label: str = "Better:",
    cancel_event: Optional[threading.Event] = None,
) -> MaterializeReport:
    """Run cleanup, placement and fix-up against ``tree``.

    Raises HostTreeUnavailable when the move list root is missing. When
    ``cancel_event`` is set before the fix-up phase, the fix-up is skipped; a
    superseding run cleans up the partial state.
    """
    if tree.root() is None:
        raise HostTreeUnavailable("move list not found")
    report = MaterializeReport()
    report.removed = cleanup(tree)
    holders = place(tree, alignment, ply_index, report, recommendation_label)
    if cancel_event is not None and cancel_event.is_set():
        report.fixup_cancelled = True
        log.info("Structural fix-up cancelled by a newer request")
        return report
    fix_up(tree, holders, ply_index, report)
    log.debug(
        "Materialized %d annotations (%d reused holders, %d skipped, %d placeholder pairs)",
        len(report.placed), len(report.reused_holders), len(report.skipped_plies), len(report.placeholder_plies),
    )
    return report


__all__ = [
    "HostTreeUnavailable",
    "MaterializeReport",
    "materialize",
    "cleanup",
    "place",
    "fix_up",
    "comment_lines",
    "annotation_marker",
]
