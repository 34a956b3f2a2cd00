from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from ortools.sat.python import cp_model

from rotation_scheduler_constants import LOCKED_ROTATIONS, NUM_BLOCKS
from rotation_scheduler_constraints import build_rules
from rotation_scheduler_lock import lock_fixed_assignments
from rotation_scheduler_model import ScheduleState
from rotation_scheduler_types import Diagnostic, RotationSpec, ScheduleInput

logger = logging.getLogger(__name__)

SlotVars = Dict[Tuple[str, int, str], cp_model.IntVar]


def _core_indices(core: Sequence) -> List[int]:
    indices: List[int] = []
    for lit in core:
        if hasattr(lit, "Index"):
            idx = lit.Index()
        else:
            idx = abs(int(lit))
        indices.append(idx)
    return indices


def _fillable_specs(schedule_input: ScheduleInput) -> List[RotationSpec]:
    filler = schedule_input.engine.filler_rotation
    return [
        spec
        for spec in schedule_input.rotation_specs
        if spec.included and spec.name not in LOCKED_ROTATIONS and spec.name != filler
    ]


class _GatedModel:
    """CP-SAT model whose constraint groups each hang off one assumption literal."""

    def __init__(self) -> None:
        self.model = cp_model.CpModel()
        self.groups: Dict[int, Dict[str, str]] = {}
        self._gates: Dict[str, cp_model.IntVar] = {}

    def gate(self, group_id: str, label: str) -> cp_model.IntVar:
        if group_id not in self._gates:
            lit = self.model.NewBoolVar(f"a_{group_id}")
            self.model.AddAssumption(lit)
            self.groups[lit.Index()] = {"id": group_id, "label": label}
            self._gates[group_id] = lit
        return self._gates[group_id]

    def add_range(self, group_id: str, label: str, terms: List[cp_model.IntVar], low: int, high: int) -> None:
        if not terms:
            if low > 0:
                lit = self.gate(group_id, label)
                self.model.AddBoolOr([lit.Not()])
            return
        lit = self.gate(group_id, label)
        self.model.Add(sum(terms) >= low).OnlyEnforceIf(lit)
        self.model.Add(sum(terms) <= high).OnlyEnforceIf(lit)


def _build_model(schedule_input: ScheduleInput) -> _GatedModel:
    state = lock_fixed_assignments(
        ScheduleState.empty(schedule_input.residents), schedule_input.engine.ambulatory_cycle
    )
    specs = _fillable_specs(schedule_input)
    rules = build_rules(schedule_input.rotation_specs, schedule_input.engine)
    gm = _GatedModel()

    x: SlotVars = {}
    for resident in schedule_input.residents:
        for b in range(NUM_BLOCKS):
            if not state.is_empty(resident.name, b):
                continue
            slot = []
            for spec in specs:
                var = gm.model.NewBoolVar(f"x_{resident.name}_{b}_{spec.name}")
                x[(resident.name, b, spec.name)] = var
                slot.append(var)
            if slot:
                gm.model.Add(sum(slot) <= 1)

    for spec in specs:
        low, high = spec.bounds
        label = f"{spec.name} count per resident within {low}-{high}"
        for resident in schedule_input.residents:
            terms = [x[key] for key in ((resident.name, b, spec.name) for b in range(NUM_BLOCKS)) if key in x]
            gm.add_range(f"requirement:{spec.name}", label, terms, low, high)

        if spec.mandatory:
            need = spec.required_per_block
            label = f"{spec.name} staffed by exactly {need} per block"
            for b in range(NUM_BLOCKS):
                terms = [x[key] for key in ((r.name, b, spec.name) for r in schedule_input.residents) if key in x]
                gm.add_range(f"per_block:{spec.name}", label, terms, need, need)

    pairwise = [
        ("consecutive_night", "No consecutive night rotations", [s.name for s in specs if rules.is_night(s.name)]),
        (
            "consecutive_unit_day",
            "No consecutive unit day rotations",
            [s.name for s in specs if rules.is_unit_day(s.name)],
        ),
    ]
    for group_id, label, names in pairwise:
        if not names:
            continue
        lit = gm.gate(group_id, label)
        for resident in schedule_input.residents:
            for b in range(NUM_BLOCKS - 1):
                terms = [
                    x[key]
                    for key in ((resident.name, k, name) for k in (b, b + 1) for name in names)
                    if key in x
                ]
                if len(terms) > 1:
                    gm.model.Add(sum(terms) <= 1).OnlyEnforceIf(lit)
    return gm


def diagnose_counts(schedule_input: ScheduleInput, time_limit_seconds: float = 10.0) -> Diagnostic:
    """Tell an infeasible input apart from a heuristic miss.

    Only counts, block headcounts and the pairwise night and unit-day rules
    are modelled, so FEASIBLE does not promise a violation-free grid.
    """
    gm = _build_model(schedule_input)
    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = float(time_limit_seconds)
    # Assumption cores are only reported by the single-worker search.
    solver.parameters.num_workers = 1
    status = solver.Solve(gm.model)

    if status in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        logger.info("Count model is feasible; remaining violations come from the heuristic")
        return Diagnostic(status="FEASIBLE", conflicting_constraints=[])
    if status != cp_model.INFEASIBLE:
        logger.info("Count model undecided within %.1fs", time_limit_seconds)
        return Diagnostic(status="UNKNOWN", conflicting_constraints=[])

    seen: set = set()
    conflicts: List[Dict[str, str]] = []
    for idx in _core_indices(solver.SufficientAssumptionsForInfeasibility()):
        group = gm.groups.get(idx)
        if group and group["id"] not in seen:
            conflicts.append(dict(group))
            seen.add(group["id"])
    logger.info("Count model infeasible: %s", ", ".join(c["id"] for c in conflicts))
    return Diagnostic(status="INFEASIBLE", conflicting_constraints=conflicts)
