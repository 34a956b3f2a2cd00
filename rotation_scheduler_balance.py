from __future__ import annotations

import logging
from typing import Dict, List

from rotation_scheduler_constants import BALANCED_CATEGORIES, EMPTY, NUM_BLOCKS, RotationCategory
from rotation_scheduler_constraints import fits
from rotation_scheduler_model import ScheduleState, StageContext

logger = logging.getLogger(__name__)


def category_totals(state: ScheduleState, rotations: List[str]) -> Dict[str, int]:
    return {r.name: sum(state.count(r.name, rotation) for rotation in rotations) for r in state.residents}


def _spread(totals: Dict[str, int]) -> float:
    if not totals:
        return 0.0
    mean = sum(totals.values()) / len(totals)
    return sum((value - mean) ** 2 for value in totals.values())


def _swap(state: ScheduleState, high: str, low: str, block: int, rotation: str, vacated: str) -> None:
    if vacated != EMPTY:
        state.clear(low, block)
    state.clear(high, block)
    state.assign(low, block, rotation)
    if vacated != EMPTY:
        state.assign(high, block, vacated)


def _try_move(state: ScheduleState, ctx: StageContext, high: str, low: str, rotations: List[str]) -> bool:
    filler = ctx.config.filler_rotation
    before = _spread(category_totals(state, rotations))
    for rotation in ctx.shuffled(rotations):
        spec = ctx.spec(rotation)
        low_bound, high_bound = spec.bounds if spec is not None else (0, NUM_BLOCKS)
        if state.count(high, rotation) - 1 < low_bound or state.count(low, rotation) + 1 > high_bound:
            continue
        for block in ctx.shuffled(range(NUM_BLOCKS)):
            if state.label(high, block) != rotation:
                continue
            vacated = state.label(low, block)
            if vacated != EMPTY and vacated != filler:
                continue
            if not fits(state.grid[low], block, rotation, ctx.rules):
                continue
            _swap(state, high, low, block, rotation, vacated)
            if _spread(category_totals(state, rotations)) < before:
                logger.debug("Moved %s at block %d from %s to %s", rotation, block + 1, high, low)
                return True
            _swap(state, low, high, block, rotation, vacated)
    return False


def _balance_category(state: ScheduleState, ctx: StageContext, category: RotationCategory) -> None:
    rotations = ctx.rules.rotations_in(category)
    if not any(category_totals(state, rotations).values()):
        return

    sweeps = ctx.config.balance_sweeps
    threshold = ctx.config.balance_threshold
    settled = False
    for sweep in range(1, sweeps + 1):
        moved = 0
        names = ctx.shuffled(r.name for r in state.residents)
        for i, first in enumerate(names):
            for second in names[i + 1 :]:
                totals = category_totals(state, rotations)
                if abs(totals[first] - totals[second]) <= threshold:
                    continue
                high, low = (first, second) if totals[first] > totals[second] else (second, first)
                if _try_move(state, ctx, high, low, rotations):
                    moved += 1
        if not moved:
            settled = True
            logger.info("%s totals settled after %d sweep(s)", category.value, sweep)
            break

    if sweeps and not settled:
        state.warn(f"Balancing {category.value} rotations still improving after {sweeps} sweeps")


def balance_categories(state: ScheduleState, ctx: StageContext) -> ScheduleState:
    """Pairwise hill climbing that evens out night, unit and floor totals across residents."""
    for category in BALANCED_CATEGORIES:
        _balance_category(state, ctx, category)
    return state
