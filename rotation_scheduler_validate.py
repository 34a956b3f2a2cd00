from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from rotation_scheduler_constants import AMBULATORY, EMPTY, LOCKED_ROTATIONS, NUM_BLOCKS, VACATION
from rotation_scheduler_constraints import AdjacencyRules, build_rules, scan_row
from rotation_scheduler_lock import ambulatory_group
from rotation_scheduler_types import (
    EngineConfig,
    Exact,
    Resident,
    RotationSpec,
    ScheduleGrid,
    Violation,
    ViolationKind,
)


KIND_ORDER = {kind: idx for idx, kind in enumerate(ViolationKind)}


def _row_shape(grid: ScheduleGrid, residents: Sequence[Resident]) -> List[Violation]:
    out: List[Violation] = []
    for resident in residents:
        row = grid.get(resident.name)
        if row is None:
            out.append(Violation(ViolationKind.MALFORMED_ROW, f"No row for {resident.name}", resident=resident.name))
        elif not isinstance(row, (list, tuple)) or len(row) != NUM_BLOCKS:
            size = len(row) if isinstance(row, (list, tuple)) else 0
            out.append(
                Violation(
                    ViolationKind.MALFORMED_ROW,
                    f"Row for {resident.name} has {size} blocks, expected {NUM_BLOCKS}",
                    resident=resident.name,
                )
            )
    known = {resident.name for resident in residents}
    for name in grid:
        if name not in known:
            out.append(Violation(ViolationKind.MALFORMED_ROW, f"Row for unknown resident {name}", resident=name))
    return out


def _unknown_labels(name: str, row: Sequence[str], known: Iterable[str]) -> List[Violation]:
    known = set(known)
    return [
        Violation(
            ViolationKind.UNKNOWN_ROTATION,
            f"{label!r} in block {block + 1} is not a rotation of this set",
            resident=name,
            block=block + 1,
            rotation=str(label),
        )
        for block, label in enumerate(row)
        if label not in known
    ]


def _locked_blocks(resident: Resident, row: Sequence[str], cycle: Sequence[int]) -> List[Violation]:
    out: List[Violation] = []
    vacations = set(resident.vacation_blocks)
    for block in sorted(vacations):
        if row[block] != VACATION:
            out.append(
                Violation(
                    ViolationKind.VACATION_NOT_HONORED,
                    f"Block {block + 1} holds {row[block]} instead of {VACATION}",
                    resident=resident.name,
                    block=block + 1,
                    rotation=row[block],
                )
            )
    for block, label in enumerate(row):
        if block in vacations:
            continue
        expected = ambulatory_group(block + 1, cycle) == resident.group
        if expected and label != AMBULATORY:
            message = f"Block {block + 1} holds {label} but group {resident.group} is on {AMBULATORY}"
        elif not expected and label == AMBULATORY:
            message = f"{AMBULATORY} in block {block + 1} is outside group {resident.group}'s cycle"
        else:
            continue
        out.append(
            Violation(
                ViolationKind.AMBULATORY_MISMATCH, message, resident=resident.name, block=block + 1, rotation=label
            )
        )
    return out


def _adjacency(name: str, row: Sequence[str], rules: AdjacencyRules) -> List[Violation]:
    return [
        Violation(rule.kind, message, resident=name, block=start + 1, rotation=rotation)
        for rule, start, rotation, message in scan_row(row, rules)
    ]


def _requirements(name: str, row: Sequence[str], specs: Sequence[RotationSpec], filler: Optional[str]) -> List[Violation]:
    out: List[Violation] = []
    for spec in specs:
        if not spec.included or spec.name == filler:
            continue
        have = sum(1 for label in row if label == spec.name)
        low, high = spec.bounds
        exact = isinstance(spec.requirement, Exact)
        if have < low:
            kind = ViolationKind.UNMET_EXACT if exact else ViolationKind.UNMET_MIN
            message = f"{have} {spec.name} block(s), needs {'exactly' if exact else 'at least'} {low}"
        elif have > high:
            kind = ViolationKind.EXCEEDED_EXACT if exact else ViolationKind.EXCEEDED_MAX
            message = f"{have} {spec.name} block(s), allows {'exactly' if exact else 'at most'} {high}"
        else:
            continue
        out.append(Violation(kind, message, resident=name, rotation=spec.name))
    return out


def _block_headcounts(rows: Dict[str, Sequence[str]], specs: Sequence[RotationSpec]) -> List[Violation]:
    out: List[Violation] = []
    for spec in specs:
        if not (spec.included and spec.mandatory) or spec.name in LOCKED_ROTATIONS:
            continue
        for block in range(NUM_BLOCKS):
            have = sum(1 for row in rows.values() if row[block] == spec.name)
            if have < spec.required_per_block:
                kind, word = ViolationKind.UNDERFILLED_BLOCK, "short of"
            elif have > spec.required_per_block:
                kind, word = ViolationKind.OVERFILLED_BLOCK, "over"
            else:
                continue
            out.append(
                Violation(
                    kind,
                    f"Block {block + 1} has {have} on {spec.name}, {word} the {spec.required_per_block} required",
                    block=block + 1,
                    rotation=spec.name,
                )
            )
    return out


def validate_schedule(
    grid: ScheduleGrid,
    residents: Sequence[Resident],
    rotation_specs: Sequence[RotationSpec],
    config: Optional[EngineConfig] = None,
) -> List[Violation]:
    """Check a finished grid against every rule, using nothing but the grid.

    The grid is never modified. Malformed rows are reported and skipped by the
    per-row checks; block headcounts only cover well-formed rows.
    """
    config = config or EngineConfig()
    rules = build_rules(rotation_specs, config)
    known = {spec.name for spec in rotation_specs if spec.included} | {EMPTY, VACATION, AMBULATORY}
    if config.filler_rotation:
        known.add(config.filler_rotation)

    violations = _row_shape(grid, residents)
    rows: Dict[str, Sequence[str]] = {}
    for resident in residents:
        row = grid.get(resident.name)
        if not isinstance(row, (list, tuple)) or len(row) != NUM_BLOCKS:
            continue
        rows[resident.name] = row
        violations.extend(_unknown_labels(resident.name, row, known))
        violations.extend(_locked_blocks(resident, row, config.ambulatory_cycle))
        violations.extend(_adjacency(resident.name, row, rules))
        violations.extend(_requirements(resident.name, row, rotation_specs, config.filler_rotation))
    violations.extend(_block_headcounts(rows, rotation_specs))

    resident_order = {resident.name: idx for idx, resident in enumerate(residents)}

    def sort_key(violation: Violation):
        return (
            KIND_ORDER[violation.kind],
            resident_order.get(violation.resident, len(resident_order)) if violation.resident else -1,
            violation.resident or "",
            violation.block or 0,
            violation.rotation or "",
            violation.message,
        )

    return sorted(violations, key=sort_key)


def summarize_violations(violations: Sequence[Violation]) -> Dict[str, int]:
    summary: Dict[str, int] = {}
    for violation in violations:
        summary[violation.kind.value] = summary.get(violation.kind.value, 0) + 1
    return summary
