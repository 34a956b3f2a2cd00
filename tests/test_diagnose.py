import unittest

from rotation_scheduler import (
    EngineConfig,
    MinMax,
    Resident,
    RotationSpec,
    ScheduleInput,
    diagnose_counts,
    generate_schedule,
)


def _cohort() -> list:
    return [Resident(f"R{idx}", idx % 5 + 1, 1 + idx, 26 - idx) for idx in range(10)]


class DiagnoseTests(unittest.TestCase):
    def test_understaffed_block_is_named_in_the_core(self):
        schedule_input = ScheduleInput(
            residents=[Resident("Ada", 1, 1, 26)],
            rotation_specs=[RotationSpec("NF", MinMax(1, 3), mandatory=True, required_per_block=1)],
        )
        diagnostic = diagnose_counts(schedule_input, time_limit_seconds=5.0)
        self.assertEqual(diagnostic.status, "INFEASIBLE")
        ids = [conflict["id"] for conflict in diagnostic.conflicting_constraints]
        self.assertIn("per_block:NF", ids)
        self.assertEqual(len(ids), len(set(ids)))

    def test_staffable_cohort_is_feasible(self):
        schedule_input = ScheduleInput(
            residents=_cohort(),
            rotation_specs=[RotationSpec("NF", MinMax(1, 5), mandatory=True, required_per_block=1)],
        )
        diagnostic = diagnose_counts(schedule_input, time_limit_seconds=5.0)
        self.assertEqual(diagnostic.status, "FEASIBLE")
        self.assertEqual(diagnostic.conflicting_constraints, [])

    def test_generate_attaches_diagnostic_when_requested(self):
        schedule_input = ScheduleInput(
            residents=[Resident("Ada", 1, 1, 26)],
            rotation_specs=[RotationSpec("NF", MinMax(1, 3), mandatory=True, required_per_block=1)],
            engine=EngineConfig(seed=1, diagnose=True),
        )
        result = generate_schedule(schedule_input)
        self.assertTrue(result.violations)
        self.assertIsNotNone(result.diagnostic)
        self.assertEqual(result.diagnostic.status, "INFEASIBLE")

    def test_no_diagnostic_by_default(self):
        schedule_input = ScheduleInput(
            residents=[Resident("Ada", 1, 1, 26)],
            rotation_specs=[RotationSpec("NF", MinMax(1, 3), mandatory=True, required_per_block=1)],
            engine=EngineConfig(seed=1),
        )
        self.assertIsNone(generate_schedule(schedule_input).diagnostic)


if __name__ == "__main__":
    unittest.main()
