from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import yaml

from rotation_config import DEFAULT_ENGINE, prepare_config
from rotation_scheduler_constants import AMBULATORY_GROUPS, LOCKED_ROTATIONS, NUM_BLOCKS
from rotation_scheduler_constraints import parse_category
from rotation_scheduler_model import _coerce_int
from rotation_scheduler_types import (
    EngineConfig,
    Exact,
    InvalidInput,
    MinMax,
    Resident,
    RotationRequirement,
    RotationSpec,
    ScheduleInput,
)

logger = logging.getLogger(__name__)


def _parse_int(value, what: str) -> int:
    # YAML may hand whole numbers back as floats (e.g. 2.0) or strings.
    if isinstance(value, bool):
        raise InvalidInput(f"{what} must be a whole number.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise InvalidInput(f"{what} must be a whole number.")


def _optional_int(value, what: str) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return _parse_int(value, what)


def _parse_residents(data: dict) -> List[Resident]:
    raw = data.get("residents")
    if not isinstance(raw, list):
        raise InvalidInput("Residents must be a list.")
    if not raw:
        raise InvalidInput("Input must include at least one resident.")

    residents = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise InvalidInput("Resident entries must be mappings.")
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput("Resident entries require a non-empty 'name'.")
        name = name.strip()
        residents.append(
            Resident(
                name=name,
                group=_parse_int(entry.get("group"), f"Group for {name}"),
                vacation1=_parse_int(entry.get("vacation1"), f"vacation1 for {name}"),
                vacation2=_parse_int(entry.get("vacation2"), f"vacation2 for {name}"),
            )
        )
    return residents


def _parse_requirement(entry: dict, name: str) -> RotationRequirement:
    kind = str(entry.get("type") or "minMax").strip().lower().replace("_", "")
    if kind == "exact":
        count = _optional_int(entry.get("exact"), f"Exact count for {name}")
        if count is None:
            raise InvalidInput(f"Rotation {name} is type exact but has no exact count.")
        return Exact(count)
    if kind != "minmax":
        raise InvalidInput(f"Unknown requirement type for {name}: {entry.get('type')}")
    low = _optional_int(entry.get("min"), f"Minimum for {name}")
    high = _optional_int(entry.get("max"), f"Maximum for {name}")
    return MinMax(min=0 if low is None else low, max=high)


def _parse_rotation(entry, set_name: str) -> RotationSpec:
    if not isinstance(entry, dict):
        raise InvalidInput(f"Rotation entries in {set_name} must be mappings.")
    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise InvalidInput(f"Rotation entries in {set_name} require a non-empty 'name'.")
    name = name.strip()
    mandatory = bool(entry.get("mandatory", False))
    raw_per_block = entry.get("required_per_block", entry.get("requiredPerBlock"))
    per_block = _optional_int(raw_per_block, f"Required per block for {name}")
    if mandatory and per_block is None:
        per_block = 1
    return RotationSpec(
        name=name,
        requirement=_parse_requirement(entry, name),
        included=bool(entry.get("included", True)),
        mandatory=mandatory,
        required_per_block=per_block if mandatory else 0,
    )


def _parse_rotation_specs(data: dict) -> Tuple[str, List[RotationSpec]]:
    sets = data.get("rotation_sets")
    if not isinstance(sets, dict):
        raise InvalidInput("rotation_sets must be a mapping of set names to rotation lists.")
    set_name = str(data.get("rotation_set"))
    if set_name not in sets:
        raise InvalidInput(f"Unknown rotation set: {set_name} (have {sorted(map(str, sets))})")
    entries = sets[set_name] or []
    if not isinstance(entries, list):
        raise InvalidInput(f"Rotation set {set_name} must be a list.")
    return set_name, [_parse_rotation(entry, set_name) for entry in entries]


def _parse_cycle(value) -> Tuple[int, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise InvalidInput("engine.ambulatory_cycle must be a list of groups.")
    cycle = tuple(_parse_int(item, "engine.ambulatory_cycle entries") for item in value)
    for group in cycle:
        if group not in AMBULATORY_GROUPS:
            raise InvalidInput(f"engine.ambulatory_cycle has unknown group {group}.")
    return cycle


def _parse_categories(value) -> dict:
    if not value:
        return {}
    if not isinstance(value, dict):
        raise InvalidInput("engine.categories must map rotation names to category lists.")
    out = {}
    for name, raw in value.items():
        items = [raw] if isinstance(raw, str) else raw
        if not isinstance(items, list):
            raise InvalidInput(f"engine.categories.{name} must be a list of categories.")
        try:
            for item in items:
                parse_category(item)
        except ValueError as exc:
            raise InvalidInput(f"engine.categories.{name}: {exc}") from exc
        out[str(name)] = tuple(str(item) for item in items)
    return out


def _parse_engine(data: dict) -> Tuple[EngineConfig, List[str]]:
    raw = data.get("engine") or {}
    if not isinstance(raw, dict):
        raise InvalidInput("engine must be a mapping when provided.")
    warnings = [f"Ignoring unknown engine setting: {key}" for key in raw if key not in DEFAULT_ENGINE]

    def number(key: str, min_value: int) -> int:
        return _coerce_int(raw.get(key), DEFAULT_ENGINE[key], min_value=min_value)

    seed = raw.get("seed")
    filler = raw.get("filler_rotation", DEFAULT_ENGINE["filler_rotation"])
    budget = raw.get("time_budget_seconds")
    try:
        budget = None if budget is None else max(0.0, float(budget))
    except (TypeError, ValueError) as exc:
        raise InvalidInput("engine.time_budget_seconds must be a number.") from exc

    engine = EngineConfig(
        seed=None if seed is None else _parse_int(seed, "engine.seed"),
        ambulatory_cycle=_parse_cycle(raw.get("ambulatory_cycle", DEFAULT_ENGINE["ambulatory_cycle"])),
        filler_rotation=(str(filler).strip() or None) if filler is not None else None,
        mandatory_passes=number("mandatory_passes", 0),
        reconcile_passes=number("reconcile_passes", 0),
        repair_passes=number("repair_passes", 0),
        balance_sweeps=number("balance_sweeps", 0),
        balance_threshold=number("balance_threshold", 0),
        candidates=number("candidates", 1),
        workers=number("workers", 1),
        time_budget_seconds=budget,
        categories=_parse_categories(raw.get("categories")),
        diagnose=bool(raw.get("diagnose", False)),
    )
    return engine, warnings


def check_schedule_input(
    residents: List[Resident], rotation_specs: List[RotationSpec], engine: Optional[EngineConfig] = None
) -> None:
    """Raise InvalidInput for anything the engine cannot even start on."""
    if not residents:
        raise InvalidInput("At least one resident is required.")

    seen = set()
    for resident in residents:
        if not resident.name or not resident.name.strip():
            raise InvalidInput("Resident names must be non-empty.")
        if resident.name in seen:
            raise InvalidInput(f"Duplicate resident name: {resident.name}")
        seen.add(resident.name)
        if resident.group not in AMBULATORY_GROUPS:
            raise InvalidInput(f"Group for {resident.name} must be one of {AMBULATORY_GROUPS}, got {resident.group}.")
        for field_name, value in (("vacation1", resident.vacation1), ("vacation2", resident.vacation2)):
            if not 1 <= value <= NUM_BLOCKS:
                raise InvalidInput(f"{field_name} for {resident.name} must be within 1-{NUM_BLOCKS}, got {value}.")
        if resident.vacation1 == resident.vacation2:
            raise InvalidInput(f"Vacation blocks for {resident.name} must differ, both are {resident.vacation1}.")

    names = set()
    for spec in rotation_specs:
        if spec.name in names:
            raise InvalidInput(f"Duplicate rotation in set: {spec.name}")
        names.add(spec.name)
        requirement = spec.requirement
        if isinstance(requirement, Exact):
            values = [requirement.count]
        else:
            values = [requirement.min] + ([] if requirement.max is None else [requirement.max])
        for value in values:
            if value < 0 or value > NUM_BLOCKS:
                raise InvalidInput(f"Requirement for {spec.name} must be within 0-{NUM_BLOCKS}, got {value}.")
        low, high = spec.bounds
        if low > high:
            raise InvalidInput(f"Minimum for {spec.name} ({low}) exceeds its maximum ({high}).")
        if spec.mandatory and spec.required_per_block < 1:
            raise InvalidInput(f"Required per block for mandatory {spec.name} must be at least 1.")

    demand = sum(
        spec.required_per_block
        for spec in rotation_specs
        if spec.included and spec.mandatory and spec.name not in LOCKED_ROTATIONS
    )
    if demand > len(residents):
        raise InvalidInput(
            f"Mandatory rotations need {demand} residents per block but only {len(residents)} are available."
        )

    if engine is not None:
        _check_engine(engine, rotation_specs)


def _check_engine(engine: EngineConfig, rotation_specs: List[RotationSpec]) -> None:
    for key in ("candidates", "workers"):
        if getattr(engine, key) < 1:
            raise InvalidInput(f"engine.{key} must be at least 1, got {getattr(engine, key)}.")
    for key in ("mandatory_passes", "reconcile_passes", "repair_passes", "balance_sweeps", "balance_threshold"):
        if getattr(engine, key) < 0:
            raise InvalidInput(f"engine.{key} must not be negative, got {getattr(engine, key)}.")
    if engine.time_budget_seconds is not None and engine.time_budget_seconds < 0:
        raise InvalidInput("engine.time_budget_seconds must not be negative.")
    for group in engine.ambulatory_cycle:
        if group not in AMBULATORY_GROUPS:
            raise InvalidInput(f"engine.ambulatory_cycle has unknown group {group}.")
    if engine.filler_rotation in {spec.name for spec in rotation_specs if spec.mandatory}:
        raise InvalidInput(f"Filler rotation {engine.filler_rotation} cannot be mandatory.")


def load_schedule_input(path: str) -> ScheduleInput:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return load_schedule_input_from_data(data)


def load_schedule_input_from_data(data: dict) -> ScheduleInput:
    if not isinstance(data, dict):
        raise InvalidInput("Input must be a mapping.")
    data, ok = prepare_config(data)
    if not ok:
        raise InvalidInput("Input must include at least one resident.")
    residents = _parse_residents(data)
    rotation_set, specs = _parse_rotation_specs(data)
    engine, warnings = _parse_engine(data)
    check_schedule_input(residents, specs, engine)
    for message in warnings:
        logger.warning(message)
    return ScheduleInput(
        residents=residents,
        rotation_specs=specs,
        rotation_set=rotation_set,
        engine=engine,
        warnings=tuple(warnings),
    )
