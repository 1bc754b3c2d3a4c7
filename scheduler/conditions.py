import math
from bisect import bisect_left
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple
from schemas.conditions import (
    AndCondition,
    Condition,
    CountCondition,
    DaysSinceCondition,
    NotCondition,
    OrCondition,
    Target,
)
from schemas.history import Completion
from exceptions.custom_errors import InvalidConditionError

"""
Condition evaluation over a completion history snapshot.

`count` and `daysSince` leaves read completions matching a Target; `and`,
`or` and `not` combine them. Evaluation is pure: the same condition, date and
history always give the same answer.
"""


@dataclass(frozen=True)
class CompletionHistory:
    """
    Immutable, time-ordered snapshot of completions.

    `series_tags` maps each series id to its tags so tag targets can be
    resolved through the series that owns a completion.
    """

    completions: Tuple[Completion, ...] = ()
    """Completions sorted by `(startTime, id)`."""
    series_tags: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    """A dictionary mapping series ids to their tag sets."""

    @classmethod
    def build(
        cls,
        completions: Iterable[Completion] = (),
        series_tags: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> "CompletionHistory":
        ordered = tuple(sorted(completions, key=lambda c: (c.startTime, c.id)))
        tags = {sid: frozenset(t) for sid, t in (series_tags or {}).items()}
        return cls(ordered, tags)

    def before(self, day: date) -> "CompletionHistory":
        """Snapshot holding only completions that started strictly before `day`."""
        cut = bisect_left(
            [c.startTime for c in self.completions], datetime.combine(day, time.min)
        )
        return CompletionHistory(self.completions[:cut], self.series_tags)

    def matching(self, target: Target) -> Iterator[Completion]:
        for c in self.completions:
            if target.matches(c.seriesId, self.series_tags.get(c.seriesId, frozenset())):
                yield c

    def for_series(self, series_id: str) -> List[Completion]:
        return [c for c in self.completions if c.seriesId == series_id]

    def __len__(self) -> int:
        return len(self.completions)


def compare(value: float, comparison: str, threshold: int) -> bool:
    match comparison:
        case "<":
            return value < threshold
        case "<=":
            return value <= threshold
        case "=" | "==":
            return value == threshold
        case "!=":
            return value != threshold
        case ">=":
            return value >= threshold
        case ">":
            return value > threshold
        case _:
            raise InvalidConditionError(f"Unknown comparison operator '{comparison}'")


def count_in_window(target: Target, as_of: date, window_days: int, history: CompletionHistory) -> int:
    """Matching completions whose start date lies in `[as_of - window_days, as_of)`."""
    lo = as_of - timedelta(days=window_days)
    return sum(1 for c in history.matching(target) if lo <= c.startTime.date() < as_of)


def days_since(target: Target, as_of: date, history: CompletionHistory) -> float:
    """Whole days since the latest matching completion before `as_of`; inf when there is none."""
    last = None
    for c in history.matching(target):
        if c.startTime.date() < as_of:
            last = c
    if last is None:
        return math.inf
    return (as_of - last.startTime.date()).days


def evaluate(condition: Condition, as_of: date, history: CompletionHistory) -> bool:
    match condition:
        case CountCondition():
            n = count_in_window(condition.target, as_of, condition.windowDays, history)
            return compare(n, condition.comparison, condition.threshold)
        case DaysSinceCondition():
            n = days_since(condition.target, as_of, history)
            return compare(n, condition.comparison, condition.threshold)
        case AndCondition():
            return all(evaluate(c, as_of, history) for c in condition.conditions)
        case OrCondition():
            return any(evaluate(c, as_of, history) for c in condition.conditions)
        case NotCondition():
            return not evaluate(condition.condition, as_of, history)
        case _:
            raise InvalidConditionError(f"Unsupported condition node: {condition!r}")


def collect_condition_targets(condition: Condition) -> List[Target]:
    """Distinct targets read by the leaves of a condition tree, in first-seen order."""
    found: List[Target] = []
    stack = [condition]
    while stack:
        node = stack.pop()
        match node:
            case CountCondition() | DaysSinceCondition():
                if node.target not in found:
                    found.append(node.target)
            case AndCondition() | OrCondition():
                stack.extend(reversed(node.conditions))
            case NotCondition():
                stack.append(node.condition)
    return found


def resolve_condition(condition_id: str, table: Mapping[str, Condition]) -> Condition:
    try:
        return table[condition_id]
    except KeyError:
        raise InvalidConditionError(f"Unknown condition '{condition_id}'") from None


def condition_dependencies(table: Mapping[str, Condition]) -> Dict[str, List[str]]:
    """Describe, per condition id, which targets it reads (used for logging)."""
    return {
        cid: [t.describe() for t in collect_condition_targets(c)]
        for cid, c in sorted(table.items())
    }
