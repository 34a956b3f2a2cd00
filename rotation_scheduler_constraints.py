from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from rotation_scheduler_constants import (
    AMBULATORY,
    ELECTIVE,
    EMPTY,
    ROTATION_CATEGORIES,
    VACATION,
    RotationCategory,
)
from rotation_scheduler_types import EngineConfig, RotationSpec, ScheduleGrid, ViolationKind


RUN_WINDOW = 3
TEAM_WINDOW = 4
TEAM_LIMIT = 2


@dataclass(frozen=True)
class AdjacencyRules:
    categories: Dict[str, FrozenSet[RotationCategory]]
    allowed_after_night: FrozenSet[str]
    run_exempt: FrozenSet[str]

    def has(self, label: str, category: RotationCategory) -> bool:
        return category in self.categories.get(label, frozenset())

    def is_night(self, label: str) -> bool:
        return self.has(label, RotationCategory.NIGHT)

    def is_unit_day(self, label: str) -> bool:
        return self.has(label, RotationCategory.UNIT_DAY)

    def is_team(self, label: str) -> bool:
        return self.has(label, RotationCategory.TEAM)

    def rotations_in(self, category: RotationCategory) -> List[str]:
        return sorted(name for name, cats in self.categories.items() if category in cats)


# A check looks at the window row[start:start + span] and returns
# (rotation, message) when the window breaks the rule.
WindowCheck = Callable[[Sequence[str], int, AdjacencyRules], Optional[Tuple[str, str]]]


@dataclass(frozen=True)
class AdjacencyRule:
    id: str
    kind: ViolationKind
    label: str
    span: int
    check: WindowCheck


def _check_consecutive_night(row: Sequence[str], start: int, rules: AdjacencyRules):
    first, second = row[start], row[start + 1]
    if rules.is_night(first) and rules.is_night(second):
        return second, f"{first} in block {start + 1} is followed by night rotation {second} in block {start + 2}"
    return None


def _check_after_night(row: Sequence[str], start: int, rules: AdjacencyRules):
    first, second = row[start], row[start + 1]
    if not rules.is_night(first) or rules.is_night(second):
        return None
    if second not in rules.allowed_after_night:
        return second, f"{second} in block {start + 2} is not allowed after {first} in block {start + 1}"
    return None


def _check_consecutive_unit_day(row: Sequence[str], start: int, rules: AdjacencyRules):
    first, second = row[start], row[start + 1]
    if rules.is_unit_day(first) and rules.is_unit_day(second):
        return second, f"{first} in block {start + 1} is followed by unit rotation {second} in block {start + 2}"
    return None


def _check_run_length(row: Sequence[str], start: int, rules: AdjacencyRules):
    window = row[start : start + RUN_WINDOW]
    label = window[0]
    if label in rules.run_exempt:
        return None
    if all(item == label for item in window):
        return label, f"{label} runs {RUN_WINDOW} blocks in a row from block {start + 1}"
    return None


def _check_team_window(row: Sequence[str], start: int, rules: AdjacencyRules):
    teams = [label for label in row[start : start + TEAM_WINDOW] if rules.is_team(label)]
    if len(teams) > TEAM_LIMIT:
        return teams[-1], (
            f"{len(teams)} team rotations in blocks {start + 1}-{start + TEAM_WINDOW} (max {TEAM_LIMIT})"
        )
    return None


ADJACENCY_RULES: List[AdjacencyRule] = [
    AdjacencyRule(
        id="consecutive_night",
        kind=ViolationKind.CONSECUTIVE_NIGHT,
        label="No consecutive night rotations",
        span=2,
        check=_check_consecutive_night,
    ),
    AdjacencyRule(
        id="after_night",
        kind=ViolationKind.INVALID_AFTER_NIGHT,
        label="Only light rotations after a night rotation",
        span=2,
        check=_check_after_night,
    ),
    AdjacencyRule(
        id="consecutive_unit_day",
        kind=ViolationKind.CONSECUTIVE_UNIT_DAY,
        label="No consecutive unit day rotations",
        span=2,
        check=_check_consecutive_unit_day,
    ),
    AdjacencyRule(
        id="run_length",
        kind=ViolationKind.RUN_LENGTH,
        label="At most two identical rotations in a row",
        span=RUN_WINDOW,
        check=_check_run_length,
    ),
    AdjacencyRule(
        id="team_window",
        kind=ViolationKind.TEAM_WINDOW,
        label="At most two team rotations in any four blocks",
        span=TEAM_WINDOW,
        check=_check_team_window,
    ),
]

# (rule, 0-indexed window start, rotation, message)
RuleHit = Tuple[AdjacencyRule, int, str, str]


def _hits(row: Sequence[str], rules: AdjacencyRules, starts_for: Callable[[AdjacencyRule], Iterable[int]]) -> List[RuleHit]:
    hits: List[RuleHit] = []
    for rule in ADJACENCY_RULES:
        for start in starts_for(rule):
            found = rule.check(row, start, rules)
            if found is not None:
                rotation, message = found
                hits.append((rule, start, rotation, message))
    return hits


def scan_row(row: Sequence[str], rules: AdjacencyRules) -> List[RuleHit]:
    return _hits(row, rules, lambda rule: range(0, len(row) - rule.span + 1))


def hits_touching(row: Sequence[str], block: int, rules: AdjacencyRules) -> List[RuleHit]:
    def starts(rule: AdjacencyRule) -> Iterable[int]:
        return range(max(0, block - rule.span + 1), min(block, len(row) - rule.span) + 1)

    return _hits(row, rules, starts)


def hits_ending_at(row: Sequence[str], block: int, rules: AdjacencyRules) -> List[RuleHit]:
    def starts(rule: AdjacencyRule) -> Iterable[int]:
        start = block - rule.span + 1
        return [start] if start >= 0 else []

    return _hits(row, rules, starts)


def fits(row: Sequence[str], block: int, rotation: str, rules: AdjacencyRules) -> bool:
    """Whether the row stays clean with ``rotation`` at ``block``, whatever sits there now."""
    trial = list(row)
    trial[block] = rotation
    return not hits_touching(trial, block, rules)


def is_valid_placement(
    grid: ScheduleGrid, resident: str, block: int, rotation: str, rules: AdjacencyRules
) -> bool:
    row = grid[resident]
    if row[block] != EMPTY:
        return False
    return fits(row, block, rotation, rules)


def find_valid_block(
    grid: ScheduleGrid,
    resident: str,
    rotation: str,
    rules: AdjacencyRules,
    accept: Optional[Callable[[int], bool]] = None,
) -> Optional[int]:
    for block in range(len(grid[resident])):
        if not is_valid_placement(grid, resident, block, rotation, rules):
            continue
        if accept is not None and not accept(block):
            continue
        return block
    return None


def parse_category(value: str) -> RotationCategory:
    text = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    for category in RotationCategory:
        if text in (category.value, category.name.lower()):
            return category
    raise ValueError(f"Unknown rotation category: {value}")


def build_rules(specs: Iterable[RotationSpec], config: EngineConfig) -> AdjacencyRules:
    categories: Dict[str, FrozenSet[RotationCategory]] = dict(ROTATION_CATEGORIES)
    for name, raw in config.categories.items():
        categories[name] = frozenset(parse_category(item) for item in raw)

    allowed = {EMPTY, VACATION, AMBULATORY, ELECTIVE}
    run_exempt = {EMPTY, VACATION}
    if config.filler_rotation:
        allowed.add(config.filler_rotation)
        run_exempt.add(config.filler_rotation)
    allowed.update(spec.name for spec in specs if spec.included and not spec.mandatory)
    return AdjacencyRules(
        categories=categories,
        allowed_after_night=frozenset(allowed),
        run_exempt=frozenset(run_exempt),
    )
