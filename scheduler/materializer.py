import hashlib
import random
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from statistics import mean
from typing import List, Mapping, Optional, Union
from core.model import Instance
from schemas.conditions import Condition
from schemas.history import Horizon, InstanceException
from schemas.series import Cycling, Series
from scheduler.conditions import CompletionHistory, evaluate, resolve_condition
from scheduler.recurrence import CandidateDate, expand
from utils.time_date import minute_of_day
from utils.logger import get_logger
from exceptions.custom_errors import DataGapError

logger = get_logger(__name__)


@dataclass(frozen=True)
class Skipped:
    """A candidate date whose pattern condition evaluated to false."""

    series_id: str
    title: str
    candidate_date: date
    condition_id: Optional[str]
    duration: int


@dataclass(frozen=True)
class Materialized:
    outcome: Union[Instance, Skipped, None]
    """None when an exception cancelled the occurrence."""
    next_index: Optional[int] = None
    """Cycling index to use for the following candidate; None without cycling."""


@dataclass
class SeriesMaterialization:
    series_id: str
    instances: List[Instance] = field(default_factory=list)
    skipped: List[Skipped] = field(default_factory=list)
    cancelled: List[date] = field(default_factory=list)
    next_index: Optional[int] = None


# == Duration ==
def adaptive_duration(series: Series, candidate: date, history: CompletionHistory) -> int:
    """
    Duration from recent completions of the same series.

    The sample is the `lastN` most recent completions, or those started in the
    `windowDays` before `candidate`. Result is mean × multiplier, rounded,
    clamped by minimum/maximum and never below one minute. An empty sample
    falls back to `fallback`.
    """
    cfg = series.adaptiveDuration
    if cfg is None:
        return series.duration

    past = [c for c in history.for_series(series.id) if c.startTime.date() < candidate]
    if cfg.mode == "lastN":
        sample = past[-cfg.value:]
    else:
        lo = candidate - timedelta(days=cfg.value)
        sample = [c for c in past if c.startTime.date() >= lo]

    if not sample:
        if cfg.fallback is None:
            raise DataGapError(
                f"Series '{series.id}' has no completion history and no fallback duration."
            )
        return cfg.fallback

    value = round(mean(c.actualDuration for c in sample) * cfg.multiplier)
    if cfg.minimum is not None:
        value = max(value, cfg.minimum)
    if cfg.maximum is not None:
        value = min(value, cfg.maximum)
    return max(1, value)


# == Cycling ==
def _random_next(series_id: str, day: date, index: int, size: int) -> int:
    seed = hashlib.sha256(f"{series_id}|{day.isoformat()}|{index}".encode()).hexdigest()
    rng = random.Random(int(seed[:16], 16))
    return rng.choice([i for i in range(size) if i != index])


def advance_cycle(cycling: Cycling, series_id: str, day: date, index: int) -> int:
    """Rotation index after one occurrence; `random` never repeats the current item."""
    size = len(cycling.items)
    if cycling.mode == "sequential":
        return (index + 1) % size
    if size == 1:
        return 0
    return _random_next(series_id, day, index, size)


# == Placement ==
def build_instance(
    series: Series, candidate: date, duration: int, cycling_item: Optional[str]
) -> Instance:
    default_minute = (
        minute_of_day(series.timeOfDay) if series.timeOfDay is not None else None
    )
    earliest = latest = candidate
    window = None
    pinned = series.fixed or series.locked

    if series.wiggle is not None and not pinned:
        earliest = candidate - timedelta(days=series.wiggle.daysBefore)
        latest = candidate + timedelta(days=series.wiggle.daysAfter)
        tw = series.wiggle.timeWindow
        if tw is not None:
            window = (minute_of_day(tw.earliest), minute_of_day(tw.latest))

    return Instance(
        series_id=series.id,
        title=series.title,
        candidate_date=candidate,
        duration=duration,
        earliest_date=earliest,
        latest_date=latest,
        window=window,
        default_minute=default_minute,
        cycling_item=cycling_item,
        tags=series.tags,
        pinned=pinned,
    )


def rescheduled_instance(instance: Instance, exception: InstanceException) -> Instance:
    """Pin an occurrence to the exception's `newTime`."""
    new_day = exception.newTime.date()
    return replace(
        instance,
        candidate_date=new_day,
        earliest_date=new_day,
        latest_date=new_day,
        window=None,
        default_minute=minute_of_day(exception.newTime.time()),
        pinned=True,
        rescheduled_from=instance.candidate_date,
    )


def materialize(
    series: Series,
    candidate: CandidateDate,
    history: CompletionHistory,
    condition_table: Mapping[str, Condition],
    cycle_index: Optional[int] = None,
    exception: Optional[InstanceException] = None,
) -> Materialized:
    """
    Turn one candidate date into an Instance or a Skipped marker.

    `cycle_index` is the rotation index going in (defaults to the series'
    `currentIndex`); the index coming out is returned in `next_index` and the
    series itself is never modified. A cancelled occurrence yields no outcome
    and leaves the rotation where it was.
    """
    cycling = series.cycling
    index = None
    if cycling is not None:
        index = cycling.currentIndex if cycle_index is None else cycle_index

    if exception is not None and exception.type == "cancelled":
        return Materialized(None, index)

    day = candidate.date
    prior = history.before(day)

    if candidate.condition_id is not None:
        condition = resolve_condition(candidate.condition_id, condition_table)
        if not evaluate(condition, day, prior):
            next_index = index
            if cycling is not None and cycling.gapLeap:
                next_index = advance_cycle(cycling, series.id, day, index)
            skipped = Skipped(
                series.id, series.title, day, candidate.condition_id, series.duration
            )
            return Materialized(skipped, next_index)

    duration = adaptive_duration(series, day, prior)

    item = None
    next_index = None
    if cycling is not None:
        item = cycling.items[index]
        next_index = advance_cycle(cycling, series.id, day, index)

    instance = build_instance(series, day, duration, item)
    if exception is not None:
        instance = rescheduled_instance(instance, exception)
    return Materialized(instance, next_index)


def materialize_series(
    series: Series,
    horizon: Horizon,
    history: CompletionHistory,
    condition_table: Mapping[str, Condition],
    exceptions: Optional[Mapping[date, InstanceException]] = None,
) -> SeriesMaterialization:
    """
    Materialize every candidate of one series, threading the cycling index through them.

    `exceptions` maps a candidate date to its cancellation or rescheduling.
    Occurrences rescheduled outside the horizon are dropped.
    """
    exceptions = exceptions or {}
    result = SeriesMaterialization(series.id)
    index = series.cycling.currentIndex if series.cycling is not None else None
    for candidate in expand(series, horizon.start, horizon.end):
        m = materialize(
            series, candidate, history, condition_table, index, exceptions.get(candidate.date)
        )
        index = m.next_index
        if m.outcome is None:
            result.cancelled.append(candidate.date)
        elif isinstance(m.outcome, Skipped):
            result.skipped.append(m.outcome)
        elif horizon.start <= m.outcome.candidate_date <= horizon.end:
            result.instances.append(m.outcome)
        else:
            logger.debug(
                f"Series '{series.id}': occurrence of {candidate.date} moved outside the horizon"
            )
    result.instances.sort(key=lambda inst: inst.candidate_date)
    result.next_index = index
    logger.debug(
        f"Series '{series.id}': {len(result.instances)} instances, {len(result.skipped)} gated, "
        f"{len(result.cancelled)} cancelled"
    )
    return result
