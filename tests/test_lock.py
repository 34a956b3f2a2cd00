import unittest

from rotation_scheduler import EngineConfig, Resident, RotationSpec, generate
from rotation_scheduler_constants import AMBULATORY, DEFAULT_AMBULATORY_CYCLE, VACATION
from rotation_scheduler_lock import ambulatory_blocks, ambulatory_group, lock_fixed_assignments
from rotation_scheduler_model import ScheduleState
from rotation_scheduler_types import ScheduleError

EXPECTED_AMBULATORY = {
    1: [6, 11, 16, 21],
    2: [2, 7, 12, 17, 22],
    3: [3, 8, 13, 18, 23],
    4: [4, 9, 14, 19, 24],
    5: [5, 10, 15, 20, 25],
}


class AmbulatoryCycleTests(unittest.TestCase):
    def test_cycle_is_anchored_at_block_two(self):
        self.assertIsNone(ambulatory_group(1, DEFAULT_AMBULATORY_CYCLE))
        self.assertEqual(ambulatory_group(2, DEFAULT_AMBULATORY_CYCLE), 2)
        self.assertEqual(ambulatory_group(6, DEFAULT_AMBULATORY_CYCLE), 1)
        self.assertEqual(ambulatory_group(7, DEFAULT_AMBULATORY_CYCLE), 2)
        self.assertEqual(ambulatory_group(25, DEFAULT_AMBULATORY_CYCLE), 5)
        self.assertIsNone(ambulatory_group(26, DEFAULT_AMBULATORY_CYCLE))

    def test_ambulatory_blocks_per_group(self):
        for group, blocks in EXPECTED_AMBULATORY.items():
            self.assertEqual(ambulatory_blocks(group, DEFAULT_AMBULATORY_CYCLE), blocks)

    def test_empty_cycle_disables_ambulatory(self):
        self.assertIsNone(ambulatory_group(2, ()))
        state = lock_fixed_assignments(ScheduleState.empty([Resident("Ada", 2, 1, 26)]), ())
        self.assertNotIn(AMBULATORY, state.grid["Ada"])
        self.assertEqual(state.count("Ada", VACATION), 2)


class LockerTests(unittest.TestCase):
    def test_fixed_assignments_only_schedule(self):
        residents = [
            Resident("G1", 1, 1, 26),
            Resident("G2", 2, 3, 14),
            Resident("G3", 3, 4, 9),
            Resident("G4", 4, 5, 20),
            Resident("G5", 5, 6, 11),
        ]
        specs = [RotationSpec(AMBULATORY), RotationSpec(VACATION)]
        grid, counts, violations = generate(residents, specs, EngineConfig(seed=3))

        self.assertEqual(violations, [])
        for resident in residents:
            row = grid[resident.name]
            self.assertEqual(row.count(VACATION), 2)
            self.assertEqual(row[resident.vacation1 - 1], VACATION)
            self.assertEqual(row[resident.vacation2 - 1], VACATION)
            actual = [idx + 1 for idx, label in enumerate(row) if label == AMBULATORY]
            self.assertEqual(actual, EXPECTED_AMBULATORY[resident.group])
            self.assertEqual(counts[resident.name][AMBULATORY], len(EXPECTED_AMBULATORY[resident.group]))

    def test_vacation_overwrites_ambulatory_in_place(self):
        state = lock_fixed_assignments(ScheduleState.empty([Resident("Ada", 2, 7, 1)]))
        row = state.grid["Ada"]
        self.assertEqual(row[6], VACATION)
        self.assertEqual(row[0], VACATION)
        self.assertNotEqual(row[7], VACATION)
        self.assertEqual([idx + 1 for idx, label in enumerate(row) if label == AMBULATORY], [2, 12, 17, 22])
        self.assertEqual(state.counts["Ada"], {VACATION: 2, AMBULATORY: 4})

    def test_locked_slots_cannot_be_cleared(self):
        state = lock_fixed_assignments(ScheduleState.empty([Resident("Ada", 2, 7, 1)]))
        with self.assertRaisesRegex(ScheduleError, "locked"):
            state.clear("Ada", 6)
        with self.assertRaisesRegex(ScheduleError, "already holds"):
            state.assign("Ada", 1, "NF")


if __name__ == "__main__":
    unittest.main()
