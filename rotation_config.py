from __future__ import annotations

import copy
from typing import Any, Tuple


CURRENT_SCHEMA_VERSION = 1

DEFAULT_ROTATION_SET = "PGY-1"

DEFAULT_ROTATION_NAMES = {
    "PGY-1": ["Geriatrics", "NF", "MAR", "Team A", "Team B", "CCU Day", "ICU Day", "ID", "ED", "Elective"],
    "PGY-2": ["ICU Night", "NF", "IMP", "ICU Day", "MAR", "CCU Night", "Team A", "CCU Day", "Team B", "Elective"],
    "PGY-3": ["MON", "ICU Night", "ICU Day", "MOD", "Elective", "Team A", "Team B", "Palliative"],
    "Custom": [],
}

DEFAULT_ENGINE = {
    "seed": None,
    "ambulatory_cycle": [2, 3, 4, 5, 1],
    "filler_rotation": "Elective",
    "mandatory_passes": 25,
    "reconcile_passes": 10,
    "repair_passes": 3,
    "balance_sweeps": 10,
    "balance_threshold": 2,
    "candidates": 1,
    "workers": 1,
    "time_budget_seconds": None,
    "categories": {},
    "diagnose": False,
}

# Top-level keys that are never rotation sets in a pre-versioned file.
_KNOWN_SECTIONS = {"schema_version", "residents", "rotation_set", "rotation_sets", "rotations", "engine"}


def default_rotation_entry(name: str) -> dict:
    return {
        "name": name,
        "included": True,
        "mandatory": False,
        "type": "minMax",
        "min": None,
        "max": None,
        "exact": None,
        "required_per_block": None,
    }


def default_rotation_sets() -> dict:
    return {
        set_name: [default_rotation_entry(name) for name in names]
        for set_name, names in DEFAULT_ROTATION_NAMES.items()
    }


def default_config() -> dict:
    return {
        "schema_version": CURRENT_SCHEMA_VERSION,
        "residents": [],
        "rotation_set": DEFAULT_ROTATION_SET,
        "rotation_sets": default_rotation_sets(),
        "engine": copy.deepcopy(DEFAULT_ENGINE),
    }


def _looks_like_rotation_set(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, dict) and "name" in item for item in value)


def _blank_to_none(entry: dict) -> dict:
    out = {}
    for key, value in entry.items():
        out[key] = None if isinstance(value, str) and not value.strip() else value
    if "requiredPerBlock" in out and "required_per_block" not in out:
        out["required_per_block"] = out.pop("requiredPerBlock")
    return out


def migrate_config(cfg: Any) -> dict:
    if not isinstance(cfg, dict):
        cfg = {}

    version_raw = cfg.get("schema_version", 0)
    try:
        version = int(version_raw)
    except (TypeError, ValueError):
        version = 0

    # If the file is from a newer schema than this code knows about, keep it as-is.
    if version > CURRENT_SCHEMA_VERSION:
        cfg["schema_version"] = version
        return cfg

    # v0 -> v1: rotation sets saved by the browser app were either a bare
    # {set name: [rotations]} mapping or lived under "rotations", with blank
    # strings for unset numbers and camelCase requiredPerBlock.
    if version < 1:
        sets = cfg.get("rotation_sets")
        if not isinstance(sets, dict):
            sets = {}
            if isinstance(cfg.get("rotations"), dict):
                sets.update(cfg.pop("rotations"))
            for key in [k for k in cfg if k not in _KNOWN_SECTIONS]:
                if _looks_like_rotation_set(cfg[key]):
                    sets[key] = cfg.pop(key)
            if sets:
                cfg["rotation_sets"] = sets
        if isinstance(cfg.get("rotation_sets"), dict):
            cfg["rotation_sets"] = {
                name: [_blank_to_none(item) if isinstance(item, dict) else item for item in entries]
                if isinstance(entries, list)
                else entries
                for name, entries in cfg["rotation_sets"].items()
            }

    cfg["schema_version"] = CURRENT_SCHEMA_VERSION
    return cfg


def _normalize_engine(value: Any) -> Any:
    engine = copy.deepcopy(DEFAULT_ENGINE)
    if value is None:
        return engine
    if not isinstance(value, dict):
        # Left for the parser to reject.
        return value
    for key, item in value.items():
        engine[str(key)] = item
    return engine


def normalize_config(cfg: Any) -> Tuple[dict, bool]:
    """Fill in defaults; ``ok`` is False when the config carries no residents."""
    cfg = migrate_config(copy.deepcopy(cfg))

    cfg.setdefault("residents", [])
    if cfg["residents"] is None:
        cfg["residents"] = []

    sets = cfg.get("rotation_sets")
    if sets is None:
        if _looks_like_rotation_set(cfg.get("rotations")):
            # A single inline set given as a plain list of rotations.
            cfg["rotation_sets"] = {"Custom": cfg.pop("rotations")}
            cfg.setdefault("rotation_set", "Custom")
        else:
            cfg["rotation_sets"] = default_rotation_sets()
    cfg.setdefault("rotation_set", DEFAULT_ROTATION_SET)
    cfg["engine"] = _normalize_engine(cfg.get("engine"))

    ok = isinstance(cfg["residents"], list) and bool(cfg["residents"])
    return cfg, ok


def prepare_config(cfg: Any) -> Tuple[dict, bool]:
    return normalize_config(cfg)
