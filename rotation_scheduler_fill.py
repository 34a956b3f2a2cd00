from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from rotation_scheduler_constants import LOCKED_ROTATIONS, NUM_BLOCKS
from rotation_scheduler_constraints import is_valid_placement
from rotation_scheduler_model import ScheduleState, StageContext
from rotation_scheduler_types import Exact, MinMax, RotationSpec

logger = logging.getLogger(__name__)


def _valid_blocks(state: ScheduleState, ctx: StageContext, name: str, rotation: str) -> List[int]:
    return [
        block
        for block in ctx.shuffled(range(NUM_BLOCKS))
        if is_valid_placement(state.grid, name, block, rotation, ctx.rules)
    ]


def _unmet_minimums(state: ScheduleState, specs: List[RotationSpec]) -> List[str]:
    unmet = []
    for resident in state.residents:
        for spec in specs:
            low, _ = spec.bounds
            have = state.count(resident.name, spec.name)
            if have < low:
                unmet.append(f"{resident.name} {spec.name} {have}/{low}")
    return unmet


def _pick_mandatory_block(
    state: ScheduleState, ctx: StageContext, name: str, spec: RotationSpec
) -> Optional[int]:
    candidates = _valid_blocks(state, ctx, name, spec.name)
    # Blocks still short of their headcount come first so the reconciler has less to undo.
    short = [b for b in candidates if state.headcount(b, spec.name) < spec.required_per_block]
    ordered = short or candidates
    return ordered[0] if ordered else None


def fill_mandatory_minimums(state: ScheduleState, ctx: StageContext) -> ScheduleState:
    specs = ctx.mandatory_specs()
    if not specs:
        return state

    budget = ctx.config.mandatory_passes
    passes = 0
    for passes in range(1, budget + 1):
        placed = 0
        for resident in ctx.shuffled(state.residents):
            for spec in ctx.shuffled(specs):
                if state.count(resident.name, spec.name) >= spec.bounds[0]:
                    continue
                block = _pick_mandatory_block(state, ctx, resident.name, spec)
                if block is None:
                    continue
                state.assign(resident.name, block, spec.name)
                placed += 1
                logger.debug("Placed %s for %s at block %d", spec.name, resident.name, block + 1)
        if not _unmet_minimums(state, specs):
            logger.info("Mandatory minimums met after %d pass(es)", passes)
            return state
        if not placed:
            break

    unmet = _unmet_minimums(state, specs)
    state.warn(
        f"Mandatory minimum fill stopped after {passes} of {budget} passes with "
        f"{len(unmet)} unmet minimum(s): {', '.join(unmet[:10])}"
    )
    return state


def _non_mandatory_targets(ctx: StageContext) -> List[Tuple[RotationSpec, int]]:
    targets: List[Tuple[RotationSpec, int]] = []
    for spec in ctx.specs:
        if not spec.included or spec.mandatory:
            continue
        if spec.name in LOCKED_ROTATIONS or spec.name == ctx.config.filler_rotation:
            continue
        requirement = spec.requirement
        if isinstance(requirement, Exact) and requirement.count > 0:
            targets.append((spec, requirement.count))
        elif isinstance(requirement, MinMax) and requirement.min > 0:
            targets.append((spec, requirement.min))
    return targets


def _pick_spread_block(state: ScheduleState, ctx: StageContext, name: str, rotation: str) -> Optional[int]:
    candidates = _valid_blocks(state, ctx, name, rotation)
    unused = [b for b in candidates if state.headcount(b, rotation) == 0]
    ordered = unused or candidates
    return ordered[0] if ordered else None


def fill_non_mandatory(state: ScheduleState, ctx: StageContext) -> ScheduleState:
    for spec, target in _non_mandatory_targets(ctx):
        for resident in ctx.shuffled(state.residents):
            need = target - state.count(resident.name, spec.name)
            while need > 0:
                block = _pick_spread_block(state, ctx, resident.name, spec.name)
                if block is None:
                    state.warn(
                        f"{resident.name} is {need} short of {target} {spec.name}: no valid empty block left"
                    )
                    break
                state.assign(resident.name, block, spec.name)
                need -= 1
    return fill_remaining(state, ctx)


def fill_remaining(state: ScheduleState, ctx: StageContext) -> ScheduleState:
    filler = ctx.config.filler_rotation
    if not filler:
        return state
    filled = 0
    for resident in state.residents:
        for block in range(NUM_BLOCKS):
            if state.is_empty(resident.name, block):
                state.assign(resident.name, block, filler)
                filled += 1
    logger.info("Filled %d empty block(s) with %s", filled, filler)
    return state
