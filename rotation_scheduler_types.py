from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from rotation_scheduler_constants import DEFAULT_AMBULATORY_CYCLE, ELECTIVE, NUM_BLOCKS


ScheduleGrid = Dict[str, List[str]]
RotationCounts = Dict[str, Dict[str, int]]


@dataclass(frozen=True)
class Resident:
    name: str
    group: int
    vacation1: int
    vacation2: int

    @property
    def vacation_blocks(self) -> Tuple[int, int]:
        """0-indexed grid positions of the two vacation blocks."""
        return self.vacation1 - 1, self.vacation2 - 1


@dataclass(frozen=True)
class MinMax:
    min: int = 0
    max: Optional[int] = None


@dataclass(frozen=True)
class Exact:
    count: int


RotationRequirement = Union[MinMax, Exact]


def requirement_bounds(requirement: RotationRequirement) -> Tuple[int, int]:
    if isinstance(requirement, Exact):
        return requirement.count, requirement.count
    high = NUM_BLOCKS if requirement.max is None else requirement.max
    return requirement.min, high


@dataclass(frozen=True)
class RotationSpec:
    name: str
    requirement: RotationRequirement = field(default_factory=MinMax)
    included: bool = True
    mandatory: bool = False
    required_per_block: int = 0

    @property
    def bounds(self) -> Tuple[int, int]:
        return requirement_bounds(self.requirement)


@dataclass(frozen=True)
class EngineConfig:
    seed: Optional[int] = None
    ambulatory_cycle: Tuple[int, ...] = tuple(DEFAULT_AMBULATORY_CYCLE)
    filler_rotation: Optional[str] = ELECTIVE
    mandatory_passes: int = 25
    reconcile_passes: int = 10
    repair_passes: int = 3
    balance_sweeps: int = 10
    balance_threshold: int = 2
    candidates: int = 1
    workers: int = 1
    time_budget_seconds: Optional[float] = None
    categories: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    diagnose: bool = False


@dataclass(frozen=True)
class ScheduleInput:
    residents: List[Resident]
    rotation_specs: List[RotationSpec]
    rotation_set: str = "Custom"
    engine: EngineConfig = field(default_factory=EngineConfig)
    warnings: Tuple[str, ...] = ()


class ViolationKind(Enum):
    MALFORMED_ROW = "MALFORMED_ROW"
    UNKNOWN_ROTATION = "UNKNOWN_ROTATION"
    VACATION_NOT_HONORED = "VACATION_NOT_HONORED"
    AMBULATORY_MISMATCH = "AMBULATORY_MISMATCH"
    CONSECUTIVE_NIGHT = "CONSECUTIVE_NIGHT"
    INVALID_AFTER_NIGHT = "INVALID_AFTER_NIGHT"
    CONSECUTIVE_UNIT_DAY = "CONSECUTIVE_UNIT_DAY"
    RUN_LENGTH = "RUN_LENGTH"
    TEAM_WINDOW = "TEAM_WINDOW"
    UNMET_MIN = "UNMET_MIN"
    EXCEEDED_MAX = "EXCEEDED_MAX"
    UNMET_EXACT = "UNMET_EXACT"
    EXCEEDED_EXACT = "EXCEEDED_EXACT"
    UNDERFILLED_BLOCK = "UNDERFILLED_BLOCK"
    OVERFILLED_BLOCK = "OVERFILLED_BLOCK"


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    message: str
    resident: Optional[str] = None
    block: Optional[int] = None  # 1-indexed
    rotation: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "resident": self.resident,
            "block": self.block,
            "rotation": self.rotation,
            "message": self.message,
        }


@dataclass
class Diagnostic:
    status: str
    conflicting_constraints: List[Dict[str, str]]


@dataclass
class ScheduleResult:
    grid: ScheduleGrid
    counts: RotationCounts
    violations: List[Violation]
    warnings: Tuple[str, ...] = ()
    seed: Optional[int] = None
    candidates_evaluated: int = 1
    diagnostic: Optional[Diagnostic] = None


class ScheduleError(Exception):
    pass


class InvalidInput(ScheduleError):
    pass
