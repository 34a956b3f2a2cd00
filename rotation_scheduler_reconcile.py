from __future__ import annotations

import logging
from typing import Iterable, List

from rotation_scheduler_constants import NUM_BLOCKS
from rotation_scheduler_constraints import is_valid_placement
from rotation_scheduler_model import ScheduleState, StageContext
from rotation_scheduler_types import RotationSpec

logger = logging.getLogger(__name__)


def _by_count(state: ScheduleState, ctx: StageContext, names: Iterable[str], rotation: str, highest_first: bool) -> List[str]:
    # Shuffle first so the stable sort breaks count ties at random.
    return sorted(ctx.shuffled(names), key=lambda name: state.count(name, rotation), reverse=highest_first)


def _fill_block(state: ScheduleState, ctx: StageContext, block: int, spec: RotationSpec) -> int:
    have = state.headcount(block, spec.name)
    if have >= spec.required_per_block:
        return 0
    _, high = spec.bounds
    added = 0
    for name in _by_count(state, ctx, (r.name for r in state.residents), spec.name, highest_first=False):
        if have >= spec.required_per_block:
            break
        if state.count(name, spec.name) >= high:
            continue
        if not is_valid_placement(state.grid, name, block, spec.name, ctx.rules):
            continue
        state.assign(name, block, spec.name)
        have += 1
        added += 1
        logger.debug("Added %s for %s at block %d", spec.name, name, block + 1)
    return added


def _trim_block(state: ScheduleState, ctx: StageContext, block: int, spec: RotationSpec) -> int:
    holders = state.holders(block, spec.name)
    excess = len(holders) - spec.required_per_block
    if excess <= 0:
        return 0
    for name in _by_count(state, ctx, holders, spec.name, highest_first=True)[:excess]:
        state.clear(name, block)
        logger.debug("Removed %s for %s at block %d", spec.name, name, block + 1)
    return excess


def _top_up_minimums(state: ScheduleState, ctx: StageContext, spec: RotationSpec) -> int:
    """Hand single occurrences from residents above the minimum to residents below it, block for block."""
    low, _ = spec.bounds
    moved = 0
    short = [r.name for r in state.residents if state.count(r.name, spec.name) < low]
    for name in ctx.shuffled(short):
        for block in ctx.shuffled(range(NUM_BLOCKS)):
            if state.count(name, spec.name) >= low:
                break
            if not is_valid_placement(state.grid, name, block, spec.name, ctx.rules):
                continue
            donors = [
                donor
                for donor in state.holders(block, spec.name)
                if state.count(donor, spec.name) > low
            ]
            if not donors:
                continue
            donor = _by_count(state, ctx, donors, spec.name, highest_first=True)[0]
            state.clear(donor, block)
            state.assign(name, block, spec.name)
            moved += 1
            logger.debug("Moved %s at block %d from %s to %s", spec.name, block + 1, donor, name)
    return moved


def reconcile_blocks(state: ScheduleState, ctx: StageContext) -> ScheduleState:
    specs = ctx.mandatory_specs()
    if not specs:
        return state

    budget = ctx.config.reconcile_passes
    for passes in range(1, budget + 1):
        changed = 0
        for block in range(NUM_BLOCKS):
            for spec in ctx.shuffled(specs):
                changed += _trim_block(state, ctx, block, spec)
                changed += _fill_block(state, ctx, block, spec)
        for spec in specs:
            changed += _top_up_minimums(state, ctx, spec)
        if not changed:
            logger.info("Block headcounts stable after %d pass(es)", passes)
            return state

    if budget:
        state.warn(f"Block reconciliation still changing after {budget} passes")
    return state
