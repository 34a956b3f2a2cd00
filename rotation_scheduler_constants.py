from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List


NUM_BLOCKS = 26

EMPTY = "-"
VACATION = "Vacation"
AMBULATORY = "Ambulatory"
ELECTIVE = "Elective"

# Labels written by the locker; no later stage may clear or overwrite them.
LOCKED_ROTATIONS = frozenset({VACATION, AMBULATORY})

AMBULATORY_GROUPS = [1, 2, 3, 4, 5]
# Cohort on ambulatory at block 2, 3, 4, 5, 6, then repeating.
DEFAULT_AMBULATORY_CYCLE = [2, 3, 4, 5, 1]
AMBULATORY_FIRST_BLOCK = 2
AMBULATORY_LAST_BLOCK = 25


class RotationCategory(Enum):
    NIGHT = "night"
    UNIT_DAY = "unit_day"
    TEAM = "team"
    FLOOR = "floor"


ROTATION_CATEGORIES: Dict[str, FrozenSet[RotationCategory]] = {
    "NF": frozenset({RotationCategory.NIGHT}),
    "ICU Night": frozenset({RotationCategory.NIGHT}),
    "CCU Night": frozenset({RotationCategory.NIGHT}),
    "MON": frozenset({RotationCategory.NIGHT}),
    "ICU Day": frozenset({RotationCategory.UNIT_DAY}),
    "CCU Day": frozenset({RotationCategory.UNIT_DAY}),
    "Team A": frozenset({RotationCategory.TEAM, RotationCategory.FLOOR}),
    "Team B": frozenset({RotationCategory.TEAM, RotationCategory.FLOOR}),
    "IMP": frozenset({RotationCategory.FLOOR}),
    "MAR": frozenset({RotationCategory.FLOOR}),
    "MOD": frozenset({RotationCategory.FLOOR}),
}

# Aggregate totals the balancer evens out across the cohort.
BALANCED_CATEGORIES: List[RotationCategory] = [
    RotationCategory.NIGHT,
    RotationCategory.UNIT_DAY,
    RotationCategory.FLOOR,
]


def block_label(block: int) -> int:
    """1-indexed block number for a 0-indexed grid position."""
    return block + 1
