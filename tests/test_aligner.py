import unittest

from chess_commentary.aligner import align
from chess_commentary.models import CanonicalHistory, Moment
from chess_commentary.notation import normalize_san

FOUR = CanonicalHistory.from_sans(["e4", "e5", "Nf3", "Nc6"])


class AlignerScenarioTests(unittest.TestCase):
    def test_off_by_one_ply_is_pulled_back_by_fuzzy_pass(self):
        moment = Moment(ply=2, move="e4", color="white")
        result = align(FOUR, [moment], tolerance=1)
        self.assertEqual(list(result.slots), [1])
        slot = result.slots[1]
        self.assertIs(slot.moment, moment)
        self.assertEqual(slot.ply, 1)
        self.assertEqual(slot.pass_name, "fuzzy")
        self.assertEqual(slot.offset, -1)
        self.assertEqual(result.unresolved, ())

    def test_duplicate_moment_loses_the_slot(self):
        first = Moment(ply=1, move="e4", color="white", commentary={"id": "A"})
        second = Moment(ply=1, move="e4", color="white", commentary={"id": "B"})
        result = align(FOUR, [first, second], tolerance=1)
        self.assertEqual(list(result.slots), [1])
        self.assertIs(result.slots[1].moment, first)
        self.assertEqual(len(result.unresolved), 1)
        self.assertIs(result.unresolved[0], second)

    def test_out_of_range_ply_is_unresolved(self):
        moment = Moment(ply=5, move="Qh5")
        result = align(FOUR, [moment], tolerance=1)
        self.assertEqual(dict(result.slots), {})
        self.assertEqual(result.unresolved, (moment,))


class AlignerPassTests(unittest.TestCase):
    def test_annotation_glyphs_are_ignored(self):
        result = align(FOUR, [Moment(ply=3, move="Nf3!?", color="white")], tolerance=1)
        self.assertEqual(result.slots[3].pass_name, "exact")

    def test_normalize_san_strips_whitespace_and_glyphs(self):
        self.assertEqual(normalize_san(" Nf3!? "), "Nf3")
        self.assertEqual(normalize_san("e4."), "e4")
        self.assertEqual(normalize_san(None), "")

    def test_color_mismatch_falls_through_to_fallback(self):
        moment = Moment(ply=3, move="Nf3", color="black")
        lenient = align(FOUR, [moment], tolerance=1)
        self.assertEqual(lenient.slots[3].pass_name, "fallback")
        strict = align(FOUR, [moment], tolerance=1, allow_uncorroborated_fallback=False)
        self.assertEqual(dict(strict.slots), {})
        self.assertEqual(strict.unresolved, (moment,))

    def test_zero_tolerance_places_at_stated_ply_without_search(self):
        moment = Moment(ply=2, move="e4", color="white")
        result = align(FOUR, [moment], tolerance=0)
        self.assertEqual(list(result.slots), [2])
        self.assertEqual(result.slots[2].pass_name, "fallback")

    def test_negative_offset_is_tried_before_positive(self):
        history = CanonicalHistory.from_sans(["Nf3", "Nf6", "Ng1", "Ng8", "Nf3", "Nf6"])
        result = align(history, [Moment(ply=3, move="Nf3", color="white")], tolerance=2)
        self.assertEqual(list(result.slots), [1])
        self.assertEqual(result.slots[1].offset, -2)

    def test_taken_slot_pushes_later_moment_to_next_offset(self):
        history = CanonicalHistory.from_sans(["Nf3", "Nf6", "Ng1", "Ng8", "Nf3", "Nf6"])
        first = Moment(ply=3, move="Nf3", color="white", commentary={"id": 1})
        second = Moment(ply=3, move="Nf3", color="white", commentary={"id": 2})
        result = align(history, [first, second], tolerance=2)
        self.assertIs(result.slots[1].moment, first)
        self.assertIs(result.slots[5].moment, second)
        self.assertEqual(result.slots[5].offset, 2)

    def test_exact_match_wins_over_earlier_fuzzy_candidate(self):
        wrong = Moment(ply=2, move="e4", color="white", commentary={"id": "wrong"})
        exact = Moment(ply=1, move="e4", color="white", commentary={"id": "exact"})
        result = align(FOUR, [wrong, exact], tolerance=1)
        self.assertIs(result.slots[1].moment, exact)
        # the off-by-one moment can only fall back to its own (free) ply
        self.assertIs(result.slots[2].moment, wrong)
        self.assertEqual(result.slots[2].pass_name, "fallback")

    def test_moment_without_ply_is_unresolved(self):
        moment = Moment(move="e4", color="white")
        result = align(FOUR, [moment], tolerance=2)
        self.assertEqual(result.unresolved, (moment,))

    def test_moment_without_move_uses_fallback_only(self):
        moment = Moment(ply=4, commentary={"comment": "quiet move"})
        result = align(FOUR, [moment], tolerance=1)
        self.assertEqual(result.slots[4].pass_name, "fallback")

    def test_negative_tolerance_is_rejected(self):
        with self.assertRaises(ValueError):
            align(FOUR, [], tolerance=-1)


class AlignerPropertyTests(unittest.TestCase):
    MOMENT_SETS = [
        [Moment(ply=2, move="e4", color="white"), Moment(ply=4, move="Nc6")],
        [Moment(ply=1, move="e4"), Moment(ply=1, move="e4"), Moment(ply=1, move="e4")],
        [Moment(ply=9, move="Nf3"), Moment(ply=0), Moment(ply=3, move="e5", color="black")],
        [Moment(ply=p, move=s) for p, s in [(4, "e4"), (3, "e5"), (2, "Nf3"), (1, "Nc6")]],
    ]

    def test_alignment_is_deterministic(self):
        for moments in self.MOMENT_SETS:
            self.assertEqual(align(FOUR, moments, 1), align(FOUR, moments, 1))

    def test_slots_are_valid_plies_and_each_moment_is_accounted_for(self):
        for moments in self.MOMENT_SETS:
            for tolerance in (0, 1, 2):
                result = align(FOUR, moments, tolerance)
                for ply, slot in result.slots.items():
                    self.assertTrue(1 <= ply <= len(FOUR))
                    self.assertEqual(slot.ply, ply)
                self.assertEqual(len(result.slots) + len(result.unresolved), len(moments))

    def test_exact_matches_keep_their_ply_regardless_of_order(self):
        exact = Moment(ply=3, move="Nf3", color="white", commentary={"id": "x"})
        noise = [Moment(ply=4, move="Nf3", color="white"), Moment(ply=2, move="Nf3")]
        for moments in ([exact, *noise], [*noise, exact], [noise[0], exact, noise[1]]):
            result = align(FOUR, moments, 2)
            self.assertIs(result.slots[3].moment, exact)


if __name__ == "__main__":
    unittest.main()
