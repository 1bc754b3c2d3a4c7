import heapq
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional, Tuple
from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, MO, TU, WE, TH, FR, SA, SU, rrule
from schemas.series import (
    CustomPattern,
    DailyPattern,
    MonthlyPattern,
    Pattern,
    Series,
    WeeklyPattern,
)
from utils.time_date import weekday_index
from exceptions.custom_errors import InvalidPatternError

_WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)


@dataclass(frozen=True)
class CandidateDate:
    date: date
    condition_id: Optional[str] = None
    """`conditionId` of the first pattern (declaration order) that produced this date."""


def expansion_window(
    series: Series, horizon_start: date, horizon_end: date
) -> Optional[Tuple[date, date]]:
    """Horizon intersected with the series bounds; None when they do not overlap."""
    lo, hi = horizon_start, horizon_end
    if series.bounds is not None:
        lo = max(lo, series.bounds.startDate)
        if series.bounds.endDate is not None:
            hi = min(hi, series.bounds.endDate)
    if lo > hi:
        return None
    return lo, hi


def _dt(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _series_anchor(series: Series, horizon_start: date) -> date:
    return series.bounds.startDate if series.bounds is not None else horizon_start


def pattern_dates(
    pattern: Pattern, series: Series, lo: date, hi: date, horizon_start: date
) -> Iterator[date]:
    """Dates in `[lo, hi]` matching one pattern, ascending."""
    match pattern:
        case DailyPattern():
            rule = rrule(DAILY, dtstart=_dt(lo), until=_dt(hi))
        case WeeklyPattern():
            days = [_WEEKDAYS[weekday_index(d)] for d in pattern.daysOfWeek]
            if pattern.interval == 1:
                rule = rrule(WEEKLY, dtstart=_dt(lo), until=_dt(hi), byweekday=days)
            else:
                # every N weeks, counted from the Monday of the week the series starts
                anchor = _series_anchor(series, horizon_start)
                monday = anchor - timedelta(days=anchor.weekday())
                rule = rrule(
                    WEEKLY,
                    dtstart=_dt(monday),
                    until=_dt(hi),
                    interval=pattern.interval,
                    byweekday=days,
                    wkst=0,
                )
        case MonthlyPattern():
            yield from _monthly_dates(pattern, lo, hi)
            return
        case CustomPattern():
            anchor = pattern.anchorDate or _series_anchor(series, horizon_start)
            if anchor > hi:
                return
            first = anchor
            if anchor < lo:
                steps = -(-(lo - anchor).days // pattern.intervalDays)
                first = anchor + timedelta(days=steps * pattern.intervalDays)
            rule = rrule(
                DAILY, dtstart=_dt(first), until=_dt(hi), interval=pattern.intervalDays
            )
        case _:
            raise InvalidPatternError(f"Unsupported pattern for series '{series.id}': {pattern!r}")

    for dt in rule:
        d = dt.date()
        if d >= lo:
            yield d


def _monthly_dates(pattern: MonthlyPattern, lo: date, hi: date) -> Iterator[date]:
    month_start = _dt(lo.replace(day=1))
    if pattern.weekday is not None:
        wd = _WEEKDAYS[weekday_index(pattern.weekday)](pattern.nth)
        rule = rrule(MONTHLY, dtstart=month_start, until=_dt(hi), byweekday=wd)
    elif pattern.monthEnd == "skip":
        rule = rrule(MONTHLY, dtstart=month_start, until=_dt(hi), bymonthday=pattern.day)
    else:
        # relativedelta(day=n) clamps to the last day of shorter months
        months = rrule(MONTHLY, dtstart=month_start, until=_dt(hi), bymonthday=1)
        rule = (m + relativedelta(day=pattern.day) for m in months)
    for dt in rule:
        d = dt.date()
        if lo <= d <= hi:
            yield d


def expand(series: Series, horizon_start: date, horizon_end: date) -> Iterator[CandidateDate]:
    """
    Lazily expand every pattern of `series` within the horizon and its bounds.

    The result is the de-duplicated union of all patterns, ascending by date.
    A date produced by several patterns carries the conditionId of the first
    pattern that produced it.
    """
    window = expansion_window(series, horizon_start, horizon_end)
    if window is None:
        return
    lo, hi = window

    def tagged(idx: int) -> Iterator[Tuple[date, int]]:
        for d in pattern_dates(series.patterns[idx].pattern, series, lo, hi, horizon_start):
            yield d, idx

    streams = [tagged(idx) for idx in range(len(series.patterns))]
    last = None
    for d, idx in heapq.merge(*streams):
        if d == last:
            continue
        last = d
        yield CandidateDate(d, series.patterns[idx].conditionId)
