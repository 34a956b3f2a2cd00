from __future__ import annotations

import logging
import random
import time
from concurrent import futures as cf
from typing import Callable, List, Optional, Sequence, Tuple

from rotation_scheduler_balance import balance_categories
from rotation_scheduler_diagnose import diagnose_counts
from rotation_scheduler_fill import fill_mandatory_minimums, fill_non_mandatory
from rotation_scheduler_lock import lock_fixed_assignments
from rotation_scheduler_model import ScheduleState, StageContext
from rotation_scheduler_parse import check_schedule_input
from rotation_scheduler_reconcile import reconcile_blocks
from rotation_scheduler_repair import enforce_adjacency
from rotation_scheduler_types import (
    EngineConfig,
    Resident,
    RotationCounts,
    RotationSpec,
    ScheduleGrid,
    ScheduleInput,
    ScheduleResult,
    Violation,
)
from rotation_scheduler_validate import validate_schedule

logger = logging.getLogger(__name__)

Stage = Callable[[ScheduleState, StageContext], ScheduleState]


def _lock_stage(state: ScheduleState, ctx: StageContext) -> ScheduleState:
    return lock_fixed_assignments(state, ctx.config.ambulatory_cycle)


STAGES: List[Tuple[str, Stage]] = [
    ("lock", _lock_stage),
    ("mandatory_fill", fill_mandatory_minimums),
    ("reconcile", reconcile_blocks),
    ("adjacency", enforce_adjacency),
    ("non_mandatory_fill", fill_non_mandatory),
    ("balance", balance_categories),
]


def run_pipeline(schedule_input: ScheduleInput, seed: int) -> ScheduleResult:
    """One full candidate: every stage in order, then validation."""
    ctx = StageContext.build(schedule_input, random.Random(seed))
    state = ScheduleState.empty(schedule_input.residents)
    for name, stage in STAGES:
        started = time.perf_counter()
        state = stage(state, ctx)
        logger.debug("Stage %s finished in %.3fs (seed %d)", name, time.perf_counter() - started, seed)

    violations = validate_schedule(
        state.grid, schedule_input.residents, schedule_input.rotation_specs, schedule_input.engine
    )
    return ScheduleResult(
        grid=state.grid,
        counts=state.counts,
        violations=violations,
        warnings=tuple(state.warnings),
        seed=seed,
    )


def _base_seed(engine: EngineConfig) -> int:
    if engine.seed is not None:
        return engine.seed
    return random.SystemRandom().randrange(2**31)


def _pick_best(results: Sequence[Tuple[int, ScheduleResult]]) -> Tuple[int, ScheduleResult]:
    return min(results, key=lambda item: (len(item[1].violations), item[0]))


def _over_budget(started: float, budget: Optional[float]) -> bool:
    return budget is not None and time.monotonic() - started >= budget


def _run_sequential(schedule_input: ScheduleInput, seeds: List[int]) -> List[Tuple[int, ScheduleResult]]:
    started = time.monotonic()
    budget = schedule_input.engine.time_budget_seconds
    results: List[Tuple[int, ScheduleResult]] = []
    for idx, seed in enumerate(seeds):
        if results and _over_budget(started, budget):
            logger.warning("Time budget reached after %d of %d candidates", len(results), len(seeds))
            break
        results.append((idx, run_pipeline(schedule_input, seed)))
        if not results[-1][1].violations:
            break
    return results


def _run_parallel(schedule_input: ScheduleInput, seeds: List[int]) -> List[Tuple[int, ScheduleResult]]:
    budget = schedule_input.engine.time_budget_seconds
    results: List[Tuple[int, ScheduleResult]] = []
    pool = cf.ProcessPoolExecutor(max_workers=schedule_input.engine.workers)
    timed_out = False
    try:
        futures = {pool.submit(run_pipeline, schedule_input, seed): idx for idx, seed in enumerate(seeds)}
        try:
            for future in cf.as_completed(futures, timeout=budget):
                results.append((futures[future], future.result()))
        except cf.TimeoutError:
            timed_out = True
            logger.warning("Time budget reached after %d of %d candidates", len(results), len(seeds))
        if not results:
            # Nothing finished inside the budget; wait for the first candidate.
            first = min(futures, key=futures.get)
            results.append((0, first.result()))
    finally:
        # Past the budget, candidates still running are abandoned rather than awaited.
        pool.shutdown(wait=not timed_out, cancel_futures=True)
    return results


def generate_schedule(schedule_input: ScheduleInput) -> ScheduleResult:
    """Validate the input, run the configured candidates and keep the best one.

    Raises InvalidInput before any stage runs. Everything else ends up in the
    result as violations or warnings.
    """
    check_schedule_input(schedule_input.residents, schedule_input.rotation_specs, schedule_input.engine)
    engine = schedule_input.engine
    base = _base_seed(engine)
    seeds = [base + idx for idx in range(engine.candidates)]

    if engine.workers > 1 and len(seeds) > 1:
        results = _run_parallel(schedule_input, seeds)
    else:
        results = _run_sequential(schedule_input, seeds)

    idx, best = _pick_best(results)
    logger.info(
        "Kept candidate %d (seed %d) with %d violation(s) out of %d evaluated",
        idx,
        best.seed,
        len(best.violations),
        len(results),
    )
    best.candidates_evaluated = len(results)
    best.warnings = tuple(schedule_input.warnings) + tuple(best.warnings)

    if engine.diagnose and best.violations:
        best.diagnostic = diagnose_counts(schedule_input)
    return best


def generate(
    residents: List[Resident],
    rotation_specs: List[RotationSpec],
    config: Optional[EngineConfig] = None,
) -> Tuple[ScheduleGrid, RotationCounts, List[Violation]]:
    schedule_input = ScheduleInput(
        residents=list(residents),
        rotation_specs=list(rotation_specs),
        engine=config or EngineConfig(),
    )
    result = generate_schedule(schedule_input)
    return result.grid, result.counts, result.violations
