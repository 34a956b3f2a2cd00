from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rotation_scheduler_constants import EMPTY, LOCKED_ROTATIONS, NUM_BLOCKS, block_label
from rotation_scheduler_constraints import AdjacencyRules, build_rules
from rotation_scheduler_types import (
    EngineConfig,
    Resident,
    RotationCounts,
    RotationSpec,
    ScheduleError,
    ScheduleGrid,
    ScheduleInput,
)

logger = logging.getLogger(__name__)


def counts_from_grid(grid: ScheduleGrid) -> RotationCounts:
    counts: RotationCounts = {}
    for name, row in grid.items():
        row_counts: Dict[str, int] = {}
        for label in row:
            if label != EMPTY:
                row_counts[label] = row_counts.get(label, 0) + 1
        counts[name] = row_counts
    return counts


@dataclass
class ScheduleState:
    """Grid plus per-resident counts, kept in step on every mutation."""

    residents: List[Resident]
    grid: ScheduleGrid
    counts: RotationCounts
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls, residents: List[Resident]) -> "ScheduleState":
        grid = {resident.name: [EMPTY] * NUM_BLOCKS for resident in residents}
        return cls(residents=list(residents), grid=grid, counts={r.name: {} for r in residents})

    @classmethod
    def from_grid(cls, residents: List[Resident], grid: ScheduleGrid) -> "ScheduleState":
        copied = {resident.name: list(grid[resident.name]) for resident in residents}
        return cls(residents=list(residents), grid=copied, counts=counts_from_grid(copied))

    def label(self, name: str, block: int) -> str:
        return self.grid[name][block]

    def is_empty(self, name: str, block: int) -> bool:
        return self.grid[name][block] == EMPTY

    def is_locked(self, name: str, block: int) -> bool:
        return self.grid[name][block] in LOCKED_ROTATIONS

    def count(self, name: str, rotation: str) -> int:
        return self.counts[name].get(rotation, 0)

    def headcount(self, block: int, rotation: str) -> int:
        return sum(1 for row in self.grid.values() if row[block] == rotation)

    def holders(self, block: int, rotation: str) -> List[str]:
        return [r.name for r in self.residents if self.grid[r.name][block] == rotation]

    def assign(self, name: str, block: int, rotation: str) -> None:
        current = self.grid[name][block]
        if current != EMPTY:
            raise ScheduleError(
                f"Block {block_label(block)} for {name} already holds {current}; cannot assign {rotation}."
            )
        self.grid[name][block] = rotation
        self._bump(name, rotation, 1)

    def clear(self, name: str, block: int) -> str:
        current = self.grid[name][block]
        if current in LOCKED_ROTATIONS:
            raise ScheduleError(f"Block {block_label(block)} for {name} is locked to {current}.")
        if current != EMPTY:
            self.grid[name][block] = EMPTY
            self._bump(name, current, -1)
        return current

    def lock(self, name: str, block: int, label: str) -> None:
        """Locker-only write; overwrites whatever the slot holds."""
        current = self.grid[name][block]
        if current != EMPTY:
            self._bump(name, current, -1)
        self.grid[name][block] = label
        self._bump(name, label, 1)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _bump(self, name: str, rotation: str, delta: int) -> None:
        row_counts = self.counts[name]
        value = row_counts.get(rotation, 0) + delta
        if value:
            row_counts[rotation] = value
        else:
            row_counts.pop(rotation, None)


@dataclass
class StageContext:
    specs: List[RotationSpec]
    config: EngineConfig
    rules: AdjacencyRules
    rng: random.Random

    @classmethod
    def build(cls, schedule_input: ScheduleInput, rng: random.Random) -> "StageContext":
        return cls(
            specs=list(schedule_input.rotation_specs),
            config=schedule_input.engine,
            rules=build_rules(schedule_input.rotation_specs, schedule_input.engine),
            rng=rng,
        )

    def mandatory_specs(self) -> List[RotationSpec]:
        return [
            spec
            for spec in self.specs
            if spec.included and spec.mandatory and spec.name not in LOCKED_ROTATIONS
        ]

    def spec(self, rotation: str) -> Optional[RotationSpec]:
        for spec in self.specs:
            if spec.name == rotation:
                return spec
        return None

    def block_target(self, rotation: str) -> Optional[int]:
        spec = self.spec(rotation)
        if spec is None or not spec.included or not spec.mandatory:
            return None
        return spec.required_per_block

    def shuffled(self, items) -> list:
        out = list(items)
        self.rng.shuffle(out)
        return out


def _coerce_int(value, default: int, *, min_value: Optional[int] = None, max_value: Optional[int] = None) -> int:
    try:
        out = int(value)
    except (TypeError, ValueError):
        out = int(default)
    if min_value is not None:
        out = max(int(min_value), out)
    if max_value is not None:
        out = min(int(max_value), out)
    return out
