from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from io import StringIO
from typing import Dict, List

import yaml

from rotation_scheduler_constants import NUM_BLOCKS
from rotation_scheduler_model import counts_from_grid
from rotation_scheduler_types import RotationCounts, ScheduleError, ScheduleGrid, ScheduleResult

logger = logging.getLogger(__name__)


@dataclass
class LoadedSchedule:
    grid: ScheduleGrid
    counts: RotationCounts
    warnings: List[str] = field(default_factory=list)


def schedule_to_data(grid: ScheduleGrid, counts: RotationCounts) -> Dict[str, object]:
    return {
        "schedule": {name: list(row) for name, row in grid.items()},
        "rotation_counts": {name: dict(row_counts) for name, row_counts in counts.items()},
    }


def save_schedule(path: str, grid: ScheduleGrid, counts: RotationCounts) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(schedule_to_data(grid, counts), handle, sort_keys=False, allow_unicode=True)


def load_schedule(path: str) -> LoadedSchedule:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return load_schedule_from_data(data)


def load_schedule_from_data(data) -> LoadedSchedule:
    if not isinstance(data, dict):
        raise ScheduleError("Saved schedule must be a mapping.")
    raw = data.get("schedule")
    if not isinstance(raw, dict):
        raise ScheduleError("Saved schedule must include 'schedule' as a mapping of residents to blocks.")

    grid: ScheduleGrid = {}
    for name, row in raw.items():
        if not isinstance(row, list) or len(row) != NUM_BLOCKS:
            raise ScheduleError(f"Schedule row for {name} must be a list of {NUM_BLOCKS} labels.")
        grid[str(name)] = [str(label) for label in row]

    counts = counts_from_grid(grid)
    warnings: List[str] = []
    stored = data.get("rotation_counts", data.get("rotationCounts"))
    if stored is not None and stored != counts:
        message = "Stored rotation counts disagree with the schedule; recomputed from the grid."
        logger.warning(message)
        warnings.append(message)
    return LoadedSchedule(grid=grid, counts=counts, warnings=warnings)


def result_to_yaml(result: ScheduleResult) -> str:
    payload: Dict[str, object] = schedule_to_data(result.grid, result.counts)
    payload["seed"] = result.seed
    payload["candidates_evaluated"] = result.candidates_evaluated
    payload["violations"] = [violation.to_dict() for violation in result.violations]
    if result.warnings:
        payload["warnings"] = list(result.warnings)
    if result.diagnostic:
        payload["diagnostic"] = {
            "status": result.diagnostic.status,
            "conflicting_constraints": result.diagnostic.conflicting_constraints,
        }
    return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)


def result_to_csv(result: ScheduleResult) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["resident", "block", "rotation"])
    for resident, row in result.grid.items():
        for block, rotation in enumerate(row, start=1):
            writer.writerow([resident, block, rotation])
    return output.getvalue()
