import unittest

from rotation_scheduler_constants import EMPTY, NUM_BLOCKS, RotationCategory
from rotation_scheduler_constraints import (
    build_rules,
    find_valid_block,
    fits,
    is_valid_placement,
    parse_category,
    scan_row,
)
from rotation_scheduler_types import EngineConfig, RotationSpec, ViolationKind


def _row(**labels) -> list:
    """Empty row with 0-indexed positions filled from ``b<idx>=label`` keywords."""
    row = [EMPTY] * NUM_BLOCKS
    for key, label in labels.items():
        row[int(key[1:])] = label
    return row


class AdjacencyPredicateTests(unittest.TestCase):
    def setUp(self):
        self.rules = build_rules([RotationSpec("Geriatrics")], EngineConfig())

    def test_night_next_to_night_is_rejected_on_both_sides(self):
        row = _row(b4="NF")
        self.assertFalse(fits(row, 5, "ICU Night", self.rules))
        self.assertFalse(fits(row, 3, "MON", self.rules))
        self.assertTrue(fits(row, 6, "NF", self.rules))

    def test_only_light_rotations_follow_a_night(self):
        row = _row(b4="NF")
        self.assertFalse(fits(row, 5, "Team A", self.rules))
        self.assertTrue(fits(row, 5, "Elective", self.rules))
        # Included non-mandatory rotations count as light.
        self.assertTrue(fits(row, 5, "Geriatrics", self.rules))

    def test_night_cannot_be_placed_before_a_heavy_rotation(self):
        row = _row(b6="Team A")
        self.assertFalse(fits(row, 5, "NF", self.rules))
        self.assertTrue(fits(row, 4, "NF", self.rules))

    def test_unit_day_next_to_unit_day_is_rejected(self):
        row = _row(b10="ICU Day")
        self.assertFalse(fits(row, 11, "CCU Day", self.rules))
        self.assertFalse(fits(row, 9, "ICU Day", self.rules))
        self.assertTrue(fits(row, 12, "CCU Day", self.rules))

    def test_three_identical_in_a_row_is_rejected(self):
        self.assertFalse(fits(_row(b0="MAR", b1="MAR"), 2, "MAR", self.rules))
        self.assertFalse(fits(_row(b3="MAR", b5="MAR"), 4, "MAR", self.rules))
        self.assertFalse(fits(_row(b7="MAR", b8="MAR"), 6, "MAR", self.rules))
        self.assertTrue(fits(_row(b0="MAR", b1="MAR"), 3, "MAR", self.rules))

    def test_filler_runs_are_allowed(self):
        self.assertTrue(fits(_row(b0="Elective", b1="Elective"), 2, "Elective", self.rules))

    def test_team_window_allows_at_most_two(self):
        row = _row(b0="Team A", b2="Team B")
        self.assertFalse(fits(row, 3, "Team A", self.rules))
        self.assertFalse(fits(row, 1, "Team B", self.rules))
        self.assertTrue(fits(row, 4, "Team A", self.rules))

    def test_valid_placement_requires_an_empty_slot(self):
        grid = {"Ada": _row(b0="MAR")}
        self.assertFalse(is_valid_placement(grid, "Ada", 0, "IMP", self.rules))
        self.assertTrue(is_valid_placement(grid, "Ada", 2, "IMP", self.rules))

    def test_find_valid_block_honours_accept(self):
        grid = {"Ada": _row(b0="MAR", b1="NF")}
        self.assertEqual(find_valid_block(grid, "Ada", "IMP", self.rules), 3)
        self.assertEqual(find_valid_block(grid, "Ada", "IMP", self.rules, accept=lambda b: b > 10), 11)
        self.assertIsNone(find_valid_block(grid, "Ada", "IMP", self.rules, accept=lambda b: False))

    def test_scan_row_reports_a_night_pair_once(self):
        hits = scan_row(_row(b4="NF", b5="NF"), self.rules)
        self.assertEqual([(rule.kind, start) for rule, start, _, _ in hits], [(ViolationKind.CONSECUTIVE_NIGHT, 4)])

    def test_scan_row_reports_heavy_rotation_after_night(self):
        hits = scan_row(_row(b4="NF", b5="Team A"), self.rules)
        self.assertEqual([(rule.kind, start, rotation) for rule, start, rotation, _ in hits], [
            (ViolationKind.INVALID_AFTER_NIGHT, 4, "Team A"),
        ])

    def test_category_overrides_extend_the_table(self):
        rules = build_rules([], EngineConfig(categories={"Cardio Night": ("night",)}))
        self.assertTrue(rules.is_night("Cardio Night"))
        self.assertTrue(rules.is_night("NF"))
        self.assertIn("Cardio Night", rules.rotations_in(RotationCategory.NIGHT))

    def test_filler_and_light_labels_follow_night(self):
        rules = build_rules([RotationSpec("NF", mandatory=True, required_per_block=1)], EngineConfig(filler_rotation="Research"))
        self.assertIn("Research", rules.allowed_after_night)
        self.assertIn("Elective", rules.allowed_after_night)
        self.assertNotIn("NF", rules.allowed_after_night)

    def test_parse_category_accepts_names_and_values(self):
        self.assertEqual(parse_category("Unit Day"), RotationCategory.UNIT_DAY)
        self.assertEqual(parse_category("night"), RotationCategory.NIGHT)
        with self.assertRaises(ValueError):
            parse_category("overnight")


if __name__ == "__main__":
    unittest.main()
