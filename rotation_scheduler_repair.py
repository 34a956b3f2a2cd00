from __future__ import annotations

import logging
from typing import List, Optional

from rotation_scheduler_constants import NUM_BLOCKS
from rotation_scheduler_constraints import RuleHit, find_valid_block, hits_ending_at, scan_row
from rotation_scheduler_model import ScheduleState, StageContext

logger = logging.getLogger(__name__)


def _relocate(state: ScheduleState, ctx: StageContext, name: str, rotation: str) -> Optional[int]:
    target = ctx.block_target(rotation)

    def below_target(block: int) -> bool:
        return target is None or state.headcount(block, rotation) < target

    return find_valid_block(state.grid, name, rotation, ctx.rules, accept=below_target)


def _victim(state: ScheduleState, name: str, block: int, hits: List[RuleHit]) -> Optional[int]:
    """Slot to clear for windows ending at ``block``: the block itself, or the
    latest earlier slot holding the offending rotation when the block is locked."""
    if not (state.is_empty(name, block) or state.is_locked(name, block)):
        return block
    for _, start, rotation, _ in hits:
        for b in range(block - 1, start - 1, -1):
            if state.label(name, b) == rotation and not state.is_locked(name, b):
                return b
    return None


def _repair_row(state: ScheduleState, ctx: StageContext, name: str) -> int:
    repaired = 0
    for block in range(NUM_BLOCKS):
        hits = hits_ending_at(state.grid[name], block, ctx.rules)
        if not hits:
            continue
        slot = _victim(state, name, block, hits)
        if slot is None:
            continue
        rotation = state.clear(name, slot)
        rule_ids = ", ".join(sorted({rule.id for rule, _, _, _ in hits}))
        new_block = _relocate(state, ctx, name, rotation)
        if new_block is None:
            state.warn(f"Dropped {rotation} for {name} at block {slot + 1} ({rule_ids}): no valid block to move it to")
        else:
            state.assign(name, new_block, rotation)
            logger.debug(
                "Moved %s for %s from block %d to %d (%s)", rotation, name, slot + 1, new_block + 1, rule_ids
            )
        repaired += 1
    return repaired


def enforce_adjacency(state: ScheduleState, ctx: StageContext) -> ScheduleState:
    """Clear and relocate every assignment that closes a broken adjacency window."""
    for passes in range(1, ctx.config.repair_passes + 1):
        repaired = sum(_repair_row(state, ctx, resident.name) for resident in state.residents)
        logger.info("Adjacency repair pass %d fixed %d slot(s)", passes, repaired)
        if not repaired:
            return state

    remaining = sum(len(scan_row(state.grid[r.name], ctx.rules)) for r in state.residents)
    if remaining:
        state.warn(f"{remaining} adjacency violation(s) left after {ctx.config.repair_passes} repair passes")
    return state
