from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys

import yaml

from rotation_scheduler_diagnose import diagnose_counts
from rotation_scheduler_model import counts_from_grid
from rotation_scheduler_output import (
    LoadedSchedule,
    load_schedule,
    load_schedule_from_data,
    result_to_csv,
    result_to_yaml,
    save_schedule,
)
from rotation_scheduler_parse import check_schedule_input, load_schedule_input, load_schedule_input_from_data
from rotation_scheduler_solve import generate, generate_schedule, run_pipeline
from rotation_scheduler_types import (
    Diagnostic,
    EngineConfig,
    Exact,
    InvalidInput,
    MinMax,
    Resident,
    RotationSpec,
    ScheduleError,
    ScheduleInput,
    ScheduleResult,
    Violation,
    ViolationKind,
)
from rotation_scheduler_validate import summarize_violations, validate_schedule

__all__ = [
    "Diagnostic",
    "EngineConfig",
    "Exact",
    "InvalidInput",
    "LoadedSchedule",
    "MinMax",
    "Resident",
    "RotationSpec",
    "ScheduleError",
    "ScheduleInput",
    "ScheduleResult",
    "Violation",
    "ViolationKind",
    "check_schedule_input",
    "counts_from_grid",
    "diagnose_counts",
    "generate",
    "generate_schedule",
    "load_schedule",
    "load_schedule_from_data",
    "load_schedule_input",
    "load_schedule_input_from_data",
    "result_to_csv",
    "result_to_yaml",
    "run_pipeline",
    "save_schedule",
    "summarize_violations",
    "validate_schedule",
]


def _with_overrides(schedule_input: ScheduleInput, args: argparse.Namespace) -> ScheduleInput:
    overrides = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.candidates is not None:
        overrides["candidates"] = max(1, args.candidates)
    if args.workers is not None:
        overrides["workers"] = max(1, args.workers)
    if args.diagnose:
        overrides["diagnose"] = True
    if not overrides:
        return schedule_input
    engine = dataclasses.replace(schedule_input.engine, **overrides)
    return dataclasses.replace(schedule_input, engine=engine)


def _validate_saved(schedule_input: ScheduleInput, path: str) -> str:
    loaded = load_schedule(path)
    violations = validate_schedule(
        loaded.grid, schedule_input.residents, schedule_input.rotation_specs, schedule_input.engine
    )
    payload = {
        "summary": summarize_violations(violations),
        "violations": [violation.to_dict() for violation in violations],
    }
    if loaded.warnings:
        payload["warnings"] = loaded.warnings
    return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)


def main() -> None:
    parser = argparse.ArgumentParser(description="Resident rotation scheduler for a 26-block year.")
    parser.add_argument(
        "input",
        nargs="?",
        default="rotation-scheduler.yml",
        help="Path to YAML input file (default: rotation-scheduler.yml).",
    )
    parser.add_argument("-o", "--output", help="Output YAML file path. Defaults to stdout.")
    parser.add_argument(
        "--csv-output",
        default="schedule-output.csv",
        help="CSV output path (default: schedule-output.csv).",
    )
    parser.add_argument("--save", help="Also save the grid and counts for reloading later.")
    parser.add_argument("--seed", type=int, help="Base random seed (overrides engine.seed).")
    parser.add_argument("--candidates", type=int, help="Number of independent candidates to run.")
    parser.add_argument("--workers", type=int, help="Worker processes for the candidates.")
    parser.add_argument(
        "--diagnose",
        action="store_true",
        help="Run the CP-SAT count diagnostic when violations remain.",
    )
    parser.add_argument("--validate", metavar="SCHEDULE", help="Validate a saved schedule instead of generating.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every move.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not os.path.exists(args.input):
        print(
            f"Input file not found: {args.input}\n"
            "Tip: pass a path explicitly (e.g., python rotation_scheduler.py path/to/file.yml).",
            file=sys.stderr,
        )
        raise SystemExit(2)

    try:
        schedule_input = _with_overrides(load_schedule_input(args.input), args)
        if args.validate:
            if not os.path.exists(args.validate):
                print(f"Schedule file not found: {args.validate}", file=sys.stderr)
                raise SystemExit(2)
            output = _validate_saved(schedule_input, args.validate)
            csv_text = None
        else:
            result = generate_schedule(schedule_input)
            output = result_to_yaml(result)
            csv_text = result_to_csv(result)
            if args.save:
                save_schedule(args.save, result.grid, result.counts)
    except ScheduleError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as handle:
            handle.write(output)
    else:
        print(output)

    if csv_text is not None:
        with open(args.csv_output, "w", encoding="utf-8", newline="") as handle:
            handle.write(csv_text)


if __name__ == "__main__":
    main()
