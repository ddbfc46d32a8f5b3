import threading
import unittest
import xml.etree.ElementTree as ET

from chess_commentary.aligner import align
from chess_commentary.indexer import index_ply_tree, pseudo_history
from chess_commentary.materializer import (
    HostTreeUnavailable,
    annotation_marker,
    cleanup,
    comment_lines,
    materialize,
)
from chess_commentary.models import AlignedAnnotation, AlignmentResult, Moment
from chess_commentary.tree import ForeignNodeError, MoveListTree

from tests.move_list_fixtures import OPENING, build_move_list


def run(tree, moments, tolerance=1, **kwargs):
    index = index_ply_tree(tree)
    alignment = align(pseudo_history(tree, index), moments, tolerance)
    return materialize(tree, alignment, index, **kwargs)


def layout(tree):
    return [tree.marker_of(el) or f"{el.tag}:{tree.text_content(el)}" for el in tree.children(tree.root())]


class StructuralFixUpTests(unittest.TestCase):
    def test_white_annotation_gets_placeholder_triple(self):
        tree = MoveListTree.from_markup(build_move_list(["e4", "e5", "Nf3"]))
        report = run(tree, [Moment(ply=1, move="e4", commentary={"comment": "Controls the centre"})])
        self.assertEqual(
            layout(tree),
            ["index:1", "move:e4", "holder-1", "empty-2-a", "index-2", "empty-2-b", "move:e5", "index:2", "move:Nf3"],
        )
        self.assertEqual(tree.find_marker("index-2").text, "1...")
        self.assertTrue(tree.is_placeholder(tree.find_marker("empty-2-a")))
        self.assertTrue(tree.is_placeholder(tree.find_marker("empty-2-b")))
        self.assertEqual(report.placeholder_plies, [2])

    def test_annotation_content_sits_in_marked_holder(self):
        tree = MoveListTree.from_markup(build_move_list(["e4", "e5"]))
        run(tree, [Moment(ply=1, move="e4", commentary={"comment": "Controls the centre"})])
        annotation = tree.find_marker("ply-1-e4")
        self.assertEqual(annotation.text, "Controls the centre")
        self.assertIn("ai-comment", annotation.get("class"))
        self.assertIs(tree.parent(annotation), tree.find_marker("holder-1"))

    def test_no_triple_when_black_reply_is_annotated(self):
        tree = MoveListTree.from_markup(build_move_list(["e4", "e5", "Nf3"]))
        report = run(tree, [Moment(ply=1, move="e4"), Moment(ply=2, move="e5")])
        self.assertEqual(
            layout(tree),
            ["index:1", "move:e4", "holder-1", "move:e5", "holder-2", "index:2", "move:Nf3"],
        )
        self.assertEqual(report.placeholder_plies, [])

    def test_no_triple_for_black_annotation_or_last_white_move(self):
        tree = MoveListTree.from_markup(build_move_list(["e4", "e5", "Nf3"]))
        report = run(tree, [Moment(ply=2, move="e5"), Moment(ply=3, move="Nf3")])
        self.assertEqual(report.placeholder_plies, [])
        self.assertEqual(layout(tree)[-2:], ["move:Nf3", "holder-3"])

    def test_no_triple_when_black_reply_has_foreign_holder(self):
        tree = MoveListTree.from_markup(build_move_list(OPENING, comments={2: "Host on e5"}))
        report = run(tree, [Moment(ply=1, move="e4")])
        self.assertEqual(report.placeholder_plies, [])
        self.assertIsNone(tree.find_marker("index-2"))

    def test_cancelled_run_skips_fix_up(self):
        tree = MoveListTree.from_markup(build_move_list(["e4", "e5"]))
        cancel = threading.Event()
        cancel.set()
        report = run(tree, [Moment(ply=1, move="e4")], cancel_event=cancel)
        self.assertTrue(report.fixup_cancelled)
        self.assertIsNotNone(tree.find_marker("holder-1"))
        self.assertIsNone(tree.find_marker("index-2"))


class IdempotenceAndSafetyTests(unittest.TestCase):
    MOMENTS = [
        Moment(ply=1, move="e4", commentary={"comment": "Open game"}),
        Moment(ply=3, move="Nf3", commentary={"comment": "Develops", "recommendation": "Bc4"}),
        Moment(ply=6, move="a6", color="black", commentary={"comment": "Morphy defence"}),
    ]

    def markup(self):
        return build_move_list(OPENING, comments={3: "Host note"}, variations={5: ["Bc4", "Bc5"]})

    def test_second_run_leaves_identical_tree(self):
        tree = MoveListTree.from_markup(self.markup())
        run(tree, self.MOMENTS)
        once = tree.to_markup()
        run(tree, self.MOMENTS)
        self.assertEqual(tree.to_markup(), once)
        self.assertEqual(len(tree.marked_nodes()), len(set(tree.marker_of(n) for n in tree.marked_nodes())))

    def test_foreign_nodes_survive_repeated_runs(self):
        tree = MoveListTree.from_markup(self.markup())
        host = [(el, el.text, el.get("class")) for el in tree.document.iter()]
        run(tree, self.MOMENTS)
        run(tree, self.MOMENTS[:1])
        run(tree, [])
        present = set(tree.document.iter())
        for el, text, cls in host:
            self.assertIn(el, present)
            self.assertEqual(el.text, text)
            self.assertEqual(el.get("class"), cls)

    def test_empty_alignment_restores_host_markup(self):
        original = self.markup()
        tree = MoveListTree.from_markup(original)
        run(tree, self.MOMENTS)
        report = run(tree, [])
        self.assertGreater(report.removed, 0)
        self.assertEqual(tree.to_markup(), MoveListTree.from_markup(original).to_markup())

    def test_stale_annotations_are_replaced(self):
        tree = MoveListTree.from_markup(build_move_list(OPENING))
        run(tree, [Moment(ply=1, move="e4")])
        report = run(tree, [Moment(ply=3, move="Nf3")])
        self.assertEqual(report.removed, 4)
        for marker in ("ply-1-e4", "holder-1", "empty-2-a", "index-2", "empty-2-b"):
            self.assertIsNone(tree.find_marker(marker))
        self.assertIsNotNone(tree.find_marker("ply-3-Nf3"))
        self.assertEqual(tree.find_marker("index-4").text, "2...")


class HolderReuseTests(unittest.TestCase):
    def test_host_holder_is_reused_after_host_content(self):
        tree = MoveListTree.from_markup(build_move_list(OPENING, comments={3: "Host note"}))
        report = run(tree, [Moment(ply=3, move="Nf3", commentary={"comment": "Develops"})])
        self.assertEqual(report.reused_holders, [3])
        self.assertIsNone(tree.find_marker("holder-3"))
        annotation = tree.find_marker("ply-3-Nf3")
        holder = tree.parent(annotation)
        self.assertIsNone(tree.marker_of(holder))
        self.assertEqual([tree.text_content(c) for c in tree.children(holder)], ["Host note", "Develops"])
        # host layout already keeps the pair grid
        self.assertEqual(report.placeholder_plies, [])

    def assert_host_holder_untouched(self, markup):
        tree = MoveListTree.from_markup(markup)
        host_holder = [el for el in tree.children(tree.root()) if tree.is_holder(el)][0]
        host_children = tree.children(host_holder)
        report = run(tree, [Moment(ply=1, move="e4", commentary={"comment": "Centre"})])
        self.assertEqual(report.reused_holders, [])
        once = tree.to_markup()
        run(tree, [Moment(ply=1, move="e4", commentary={"comment": "Centre"})])
        self.assertEqual(tree.to_markup(), once)
        self.assertIn(host_holder, tree.children(tree.root()))
        self.assertIsNone(tree.marker_of(host_holder))
        self.assertEqual(tree.children(host_holder), host_children)
        self.assertIs(tree.parent(tree.find_marker("ply-1-e4")), tree.find_marker("holder-1"))

    def test_empty_host_holder_is_not_filled(self):
        self.assert_host_holder_untouched(
            '<div class="tview2"><index>1</index><move>e4</move><interrupt /><move>e5</move></div>'
        )

    def test_variation_only_host_holder_is_not_filled(self):
        self.assert_host_holder_untouched(
            '<div class="tview2"><index>1</index><move>e4</move>'
            "<interrupt><lines><line><move>d4</move></line></lines></interrupt>"
            "<move>e5</move></div>"
        )

    def test_cleanup_keeps_host_holder_with_foreign_content(self):
        tree = MoveListTree.from_markup(build_move_list(OPENING, comments={3: "Host note"}))
        run(tree, [Moment(ply=3, move="Nf3")])
        self.assertEqual(cleanup(tree), 1)
        holders = [el for el in tree.children(tree.root()) if tree.is_holder(el)]
        self.assertEqual(len(holders), 1)
        self.assertEqual(tree.text_content(holders[0]), "Host note")

    def test_cleanup_drops_wrapper_left_empty(self):
        markup = (
            '<div class="tview2"><index>1</index><move>e4</move>'
            '<interrupt><comment class="ai-comment" data-ai-id="ply-1-e4">old</comment></interrupt>'
            "<move>e5</move></div>"
        )
        tree = MoveListTree.from_markup(markup)
        self.assertEqual(cleanup(tree), 1)
        self.assertEqual(layout(tree), ["index:1", "move:e4", "move:e5"])

    def test_cleanup_keeps_wrapper_with_text(self):
        markup = (
            '<div class="tview2"><move>e4</move>'
            '<interrupt>host text<comment data-ai-id="ply-1-e4">old</comment></interrupt></div>'
        )
        tree = MoveListTree.from_markup(markup)
        cleanup(tree)
        self.assertEqual(layout(tree), ["move:e4", "interrupt:host text"])


class PlacementEdgeTests(unittest.TestCase):
    def test_slot_without_move_node_is_skipped(self):
        tree = MoveListTree.from_markup(build_move_list(OPENING))
        before = tree.to_markup()
        alignment = AlignmentResult(slots={9: AlignedAnnotation(9, Moment(ply=9, move="O-O"))})
        report = materialize(tree, alignment, index_ply_tree(tree))
        self.assertEqual(report.skipped_plies, [9])
        self.assertEqual(report.placed, {})
        self.assertEqual(tree.to_markup(), before)

    def test_missing_root_raises(self):
        tree = MoveListTree.from_markup('<div class="board"><move>e4</move></div>')
        with self.assertRaises(HostTreeUnavailable):
            materialize(tree, AlignmentResult(slots={}), {})

    def test_writer_refuses_foreign_nodes(self):
        tree = MoveListTree.from_markup(build_move_list(["e4", "e5"]))
        host_move = tree.children(tree.root())[1]
        with self.assertRaises(ForeignNodeError):
            tree.remove(host_move)
        with self.assertRaises(ForeignNodeError):
            tree.insert_after(host_move, ET.Element("interrupt"))

    def test_recommendation_lines(self):
        moment = Moment(
            ply=3,
            move="Nf3",
            commentary={"comment": "Slow", "recommendation": "Bc4", "reasoning": "Hits f7"},
        )
        self.assertEqual(comment_lines(moment), ["Slow", "Better: Bc4", "Hits f7"])
        self.assertEqual(comment_lines(moment, "Besser:")[1], "Besser: Bc4")
        tree = MoveListTree.from_markup(build_move_list(OPENING))
        run(tree, [moment], recommendation_label="Besser:")
        annotation = tree.find_marker("ply-3-Nf3")
        self.assertEqual([tree.text_content(c) for c in tree.children(annotation)], ["Besser: Bc4", "Hits f7"])

    def test_annotation_marker_uses_normalized_san(self):
        self.assertEqual(annotation_marker(5, "Bb5!?"), "ply-5-Bb5")
        self.assertEqual(annotation_marker(4, None), "ply-4-none")


if __name__ == "__main__":
    unittest.main()
