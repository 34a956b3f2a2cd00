from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from rotation_scheduler_constants import (
    AMBULATORY,
    AMBULATORY_FIRST_BLOCK,
    AMBULATORY_LAST_BLOCK,
    DEFAULT_AMBULATORY_CYCLE,
    VACATION,
)
from rotation_scheduler_model import ScheduleState

logger = logging.getLogger(__name__)


def ambulatory_group(block_number: int, cycle: Sequence[int]) -> Optional[int]:
    """Cohort on ambulatory at a 1-indexed block, or None outside blocks 2-25."""
    if not cycle:
        return None
    if block_number < AMBULATORY_FIRST_BLOCK or block_number > AMBULATORY_LAST_BLOCK:
        return None
    return cycle[(block_number - AMBULATORY_FIRST_BLOCK) % len(cycle)]


def ambulatory_blocks(group: int, cycle: Sequence[int]) -> List[int]:
    """1-indexed blocks on which ``group`` is scheduled for ambulatory."""
    return [
        number
        for number in range(AMBULATORY_FIRST_BLOCK, AMBULATORY_LAST_BLOCK + 1)
        if ambulatory_group(number, cycle) == group
    ]


def lock_fixed_assignments(
    state: ScheduleState, cycle: Sequence[int] = DEFAULT_AMBULATORY_CYCLE
) -> ScheduleState:
    """Write the ambulatory cycle and both vacation blocks for every resident.

    Vacation wins outright over an ambulatory slot in the same block; it is
    never shifted to a neighbouring block.
    """
    placed = 0
    for number in range(AMBULATORY_FIRST_BLOCK, AMBULATORY_LAST_BLOCK + 1):
        group = ambulatory_group(number, cycle)
        if group is None:
            continue
        for resident in state.residents:
            if resident.group != group:
                continue
            if number in (resident.vacation1, resident.vacation2):
                continue
            state.lock(resident.name, number - 1, AMBULATORY)
            placed += 1

    for resident in state.residents:
        for block in resident.vacation_blocks:
            state.lock(resident.name, block, VACATION)

    logger.info("Locked %d ambulatory and %d vacation blocks", placed, 2 * len(state.residents))
    return state
