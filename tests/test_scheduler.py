import os
import tempfile
import unittest

import yaml

from rotation_scheduler import (
    EngineConfig,
    Exact,
    MinMax,
    Resident,
    RotationSpec,
    ScheduleInput,
    ViolationKind,
    counts_from_grid,
    generate,
    generate_schedule,
    load_schedule_input,
    run_pipeline,
)
from rotation_scheduler_constants import EMPTY, NUM_BLOCKS

ADJACENCY_KINDS = {
    ViolationKind.CONSECUTIVE_NIGHT,
    ViolationKind.INVALID_AFTER_NIGHT,
    ViolationKind.CONSECUTIVE_UNIT_DAY,
    ViolationKind.RUN_LENGTH,
    ViolationKind.TEAM_WINDOW,
}


def _cohort() -> list:
    return [Resident(f"R{idx}", idx % 5 + 1, 1 + idx, 26 - idx) for idx in range(10)]


def _pgy2_specs() -> list:
    return [
        RotationSpec("NF", MinMax(2, 5), mandatory=True, required_per_block=1),
        RotationSpec("ICU Day", MinMax(1, 5), mandatory=True, required_per_block=1),
        RotationSpec("ICU Night", Exact(1)),
        RotationSpec("CCU Day", MinMax(1, None)),
        RotationSpec("Team A", MinMax(0, 4)),
        RotationSpec("IMP", Exact(1)),
        RotationSpec("Elective"),
    ]


class SchedulerTests(unittest.TestCase):
    def test_single_resident_meets_minimum(self):
        residents = [Resident("Ada", 1, 1, 26)]
        specs = [RotationSpec("NF", MinMax(1, 3), mandatory=True, required_per_block=1)]
        grid, counts, violations = generate(residents, specs, EngineConfig(seed=7))
        self.assertNotIn(ViolationKind.UNMET_MIN, [v.kind for v in violations])
        self.assertGreaterEqual(counts["Ada"]["NF"], 1)
        self.assertLessEqual(counts["Ada"]["NF"], 3)
        self.assertEqual(len(grid["Ada"]), NUM_BLOCKS)

    def test_feasible_mandatory_rotation_is_fully_staffed(self):
        specs = [RotationSpec("Team A", MinMax(1, 4), mandatory=True, required_per_block=1)]
        grid, counts, violations = generate(_cohort(), specs, EngineConfig(seed=11))
        kinds = {v.kind for v in violations}
        for kind in (
            ViolationKind.UNMET_MIN,
            ViolationKind.EXCEEDED_MAX,
            ViolationKind.UNDERFILLED_BLOCK,
            ViolationKind.OVERFILLED_BLOCK,
        ):
            self.assertNotIn(kind, kinds)
        for block in range(NUM_BLOCKS):
            self.assertEqual(sum(1 for row in grid.values() if row[block] == "Team A"), 1)

    def test_generated_grids_have_no_adjacency_violations(self):
        for seed in (1, 2, 3):
            grid, _, violations = generate(_cohort(), _pgy2_specs(), EngineConfig(seed=seed))
            self.assertFalse(ADJACENCY_KINDS.intersection(v.kind for v in violations), seed)
            for row in grid.values():
                self.assertNotIn(EMPTY, row)

    def test_same_seed_same_schedule(self):
        first = generate(_cohort(), _pgy2_specs(), EngineConfig(seed=5))
        second = generate(_cohort(), _pgy2_specs(), EngineConfig(seed=5))
        self.assertEqual(first, second)

    def test_counts_match_grid(self):
        grid, counts, _ = generate(_cohort(), _pgy2_specs(), EngineConfig(seed=21))
        self.assertEqual(counts, counts_from_grid(grid))

    def test_input_is_not_mutated(self):
        residents = _cohort()
        specs = _pgy2_specs()
        generate(residents, specs, EngineConfig(seed=2))
        self.assertEqual(residents, _cohort())
        self.assertEqual(specs, _pgy2_specs())

    def test_best_of_several_candidates(self):
        schedule_input = ScheduleInput(
            residents=_cohort(), rotation_specs=_pgy2_specs(), engine=EngineConfig(seed=30, candidates=3)
        )
        result = generate_schedule(schedule_input)
        self.assertIn(result.seed, (30, 31, 32))
        self.assertGreaterEqual(result.candidates_evaluated, 1)
        self.assertLessEqual(result.candidates_evaluated, 3)
        single = run_pipeline(schedule_input, 30)
        self.assertLessEqual(len(result.violations), len(single.violations))

    def test_parallel_candidates_match_sequential_pick(self):
        engine = EngineConfig(seed=40, candidates=2, workers=2)
        schedule_input = ScheduleInput(residents=_cohort(), rotation_specs=_pgy2_specs(), engine=engine)
        result = generate_schedule(schedule_input)
        runs = [run_pipeline(schedule_input, seed) for seed in (40, 41)]
        best = min(range(2), key=lambda idx: (len(runs[idx].violations), idx))
        self.assertEqual(result.seed, 40 + best)
        self.assertEqual(result.grid, runs[best].grid)
        self.assertEqual(result.candidates_evaluated, 2)

    def test_parallel_run_past_time_budget_returns_a_finished_candidate(self):
        engine = EngineConfig(seed=50, candidates=4, workers=2, time_budget_seconds=0.0)
        schedule_input = ScheduleInput(residents=_cohort(), rotation_specs=_pgy2_specs(), engine=engine)
        result = generate_schedule(schedule_input)
        self.assertIn(result.seed, (50, 51, 52, 53))
        self.assertGreaterEqual(result.candidates_evaluated, 1)
        self.assertEqual(result.grid, run_pipeline(schedule_input, result.seed).grid)

    def test_unset_seed_is_reported(self):
        residents = [Resident("Ada", 1, 1, 26)]
        result = generate_schedule(ScheduleInput(residents=residents, rotation_specs=[]))
        self.assertIsInstance(result.seed, int)
        rerun = run_pipeline(ScheduleInput(residents=residents, rotation_specs=[]), result.seed)
        self.assertEqual(rerun.grid, result.grid)

    def test_generate_from_yaml_input(self):
        data = {
            "residents": [
                {"name": f"R{idx}", "group": idx % 5 + 1, "vacation1": 1 + idx, "vacation2": 26 - idx}
                for idx in range(10)
            ],
            "rotation_set": "PGY-3",
            "rotation_sets": {
                "PGY-3": [
                    {"name": "MON", "mandatory": True, "type": "minMax", "min": 1, "max": 5, "requiredPerBlock": 1},
                    {"name": "MOD", "type": "exact", "exact": 2},
                    {"name": "Palliative", "included": False, "type": "exact", "exact": 3},
                    {"name": "Elective"},
                ]
            },
            "engine": {"seed": 4, "bogus": 1},
        }
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "input.yml")
            with open(path, "w", encoding="utf-8") as handle:
                yaml.safe_dump(data, handle)
            schedule_input = load_schedule_input(path)
        result = generate_schedule(schedule_input)
        self.assertEqual(result.seed, 4)
        self.assertIn("Ignoring unknown engine setting: bogus", result.warnings)
        for name, row in result.grid.items():
            self.assertEqual(row.count("MOD"), 2, name)
            self.assertNotIn("Palliative", row)
        self.assertFalse(ADJACENCY_KINDS.intersection(v.kind for v in result.violations))


if __name__ == "__main__":
    unittest.main()
