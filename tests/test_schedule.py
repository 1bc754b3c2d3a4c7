"""End-to-end scheduling tests.

Covers:
- chain links with and without wiggle room, including wobble bounds
- day-level, ordering and mustBeWithin constraints across every reachable instance
- no-overlap between timed instances
- cancelled and rescheduled occurrences
- conflict reports with the offending constraint ids
- value orders, determinism and parallel components
- cancellation and per-series issues
"""

import threading
from datetime import date, datetime, timedelta

import pytest

from exceptions.custom_errors import ScheduleTimeoutError, UnsatisfiableError
from scheduler import ScheduleOptions, build_schedule, schedule
from schemas.results import ConflictReport, Schedule


def _placed(result, series_id):
    return [i for i in result.instances if i.seriesId == series_id and not i.gated]


def _one_day(make_series, series_id, day, **overrides):
    return make_series(series_id, bounds={"startDate": day, "endDate": day}, **overrides)


def _windowed(make_series, series_id, day, earliest, latest, **overrides):
    options = {"timeOfDay": earliest, "wiggle": {"timeWindow": {"earliest": earliest, "latest": latest}}}
    options.update(overrides)
    return _one_day(make_series, series_id, day, **options)


def test_unconstrained_series_stay_on_candidate_dates(make_series, horizon):
    result = schedule([make_series("a")], horizon=horizon)
    assert isinstance(result, Schedule)
    assert [i.date for i in result.instances] == [date(2025, 1, d) for d in range(1, 6)]
    assert all(i.startTime is None for i in result.instances)


def test_link_keeps_child_at_target_distance(make_series, horizon):
    series = [make_series("a"), make_series("b", start="2025-01-03")]
    links = [{"parentSeriesId": "a", "childSeriesId": "b", "targetDistance": 2}]
    result = schedule(series, links=links, horizon=horizon)

    parents = {i.date for i in _placed(result, "a")}
    children = _placed(result, "b")
    assert [c.date for c in children] == [date(2025, 1, 3), date(2025, 1, 4), date(2025, 1, 5)]
    for c in children:
        assert date.fromordinal(c.date.toordinal() - 2) in parents


def test_link_moves_child_inside_wiggle(make_series, horizon):
    series = [
        _one_day(make_series, "a", "2025-01-01"),
        _one_day(make_series, "b", "2025-01-02", wiggle={"daysBefore": 1, "daysAfter": 3}),
    ]
    links = [{"id": "ab", "parentSeriesId": "a", "childSeriesId": "b", "targetDistance": 3}]
    result = schedule(series, links=links, horizon=horizon)
    (child,) = _placed(result, "b")
    assert child.date == date(2025, 1, 4)
    assert child.candidateDate == date(2025, 1, 2)


def test_must_be_on_same_day(make_series, horizon):
    series = [
        _one_day(make_series, "a", "2025-01-01", wiggle={"daysAfter": 3}),
        _one_day(make_series, "b", "2025-01-03", fixed=True),
    ]
    constraints = [
        {"id": "same", "type": "mustBeOnSameDay", "source": {"seriesId": "a"}, "dest": {"seriesId": "b"}}
    ]
    result = schedule(series, constraints=constraints, horizon=horizon)
    assert _placed(result, "a")[0].date == date(2025, 1, 3)


def test_cant_be_next_to(make_series, horizon):
    series = [
        _one_day(make_series, "a", "2025-01-01", wiggle={"daysAfter": 4}),
        _one_day(make_series, "b", "2025-01-02", fixed=True),
    ]
    constraints = [
        {"id": "apart", "type": "cantBeNextTo", "source": {"seriesId": "a"}, "dest": {"seriesId": "b"}}
    ]
    result = schedule(series, constraints=constraints, horizon=horizon)
    assert _placed(result, "a")[0].date == date(2025, 1, 2)


def test_must_be_before_uses_start_times(make_series, horizon):
    series = [
        _windowed(make_series, "a", "2025-01-01", "08:00", "12:00", timeOfDay="10:00"),
        _one_day(make_series, "b", "2025-01-01", timeOfDay="09:00", fixed=True),
    ]
    constraints = [
        {"id": "first", "type": "mustBeBefore", "source": {"seriesId": "a"}, "dest": {"seriesId": "b"}}
    ]
    result = schedule(series, constraints=constraints, horizon=horizon)
    (a,), (b,) = _placed(result, "a"), _placed(result, "b")
    assert a.startTime < b.startTime
    assert a.startTime == datetime(2025, 1, 1, 8, 0)


def test_must_be_within_feasible(make_series, horizon):
    series = [
        _windowed(make_series, "a", "2025-01-01", "08:00", "09:00"),
        _windowed(make_series, "b", "2025-01-01", "08:00", "13:00"),
    ]
    constraints = [
        {"id": "near", "type": "mustBeWithin", "source": {"seriesId": "a"}, "dest": {"seriesId": "b"}, "withinMinutes": 30}
    ]
    result = schedule(series, constraints=constraints, horizon=horizon)
    (a,), (b,) = _placed(result, "a"), _placed(result, "b")
    assert abs((a.startTime - b.startTime).total_seconds()) <= 30 * 60


@pytest.mark.parametrize("diagnose", [True, False])
def test_must_be_within_conflict_names_constraint(make_series, horizon, diagnose):
    series = [
        _windowed(make_series, "a", "2025-01-01", "08:00", "09:00"),
        _windowed(make_series, "b", "2025-01-01", "12:00", "13:00"),
    ]
    constraints = [
        {"id": "c1", "type": "mustBeWithin", "source": {"seriesId": "a"}, "dest": {"seriesId": "b"}, "withinMinutes": 30}
    ]
    result = schedule(
        series, constraints=constraints, horizon=horizon, options=ScheduleOptions(diagnose=diagnose)
    )
    assert isinstance(result, ConflictReport)
    assert result.status == "unsatisfiable"
    assert result.constraintIds == ["c1"]
    assert result.linkIds == []
    assert "c1" in result.cause

    with pytest.raises(UnsatisfiableError) as err:
        build_schedule(series, constraints=constraints, horizon=horizon)
    assert err.value.report.constraintIds == ["c1"]


def test_conflict_between_link_and_constraint(make_series, horizon):
    series = [
        _one_day(make_series, "a", "2025-01-01"),
        _one_day(make_series, "b", "2025-01-03", wiggle={"daysBefore": 2, "daysAfter": 2}),
        _one_day(make_series, "c", "2025-01-05"),
    ]
    links = [{"id": "ab", "parentSeriesId": "a", "childSeriesId": "b", "targetDistance": 2}]
    constraints = [
        {"id": "split", "type": "cantBeOnSameDay", "source": {"seriesId": "b"}, "dest": {"seriesId": "c"}},
        {"id": "adjacent", "type": "mustBeNextTo", "source": {"seriesId": "b"}, "dest": {"seriesId": "a"}},
    ]
    result = schedule(series, links=links, constraints=constraints, horizon=horizon)
    assert isinstance(result, ConflictReport)
    # dropping either the link or the adjacency makes the rest feasible
    assert len(result.linkIds) + len(result.constraintIds) == 1
    assert set(result.linkIds + result.constraintIds) <= {"ab", "adjacent"}


def test_value_orders(make_series, horizon):
    s = _one_day(make_series, "a", "2025-01-03", wiggle={"daysBefore": 2, "daysAfter": 2})
    earliest = schedule([s], horizon=horizon, options=ScheduleOptions(value_order="earliest"))
    ideal = schedule([s], horizon=horizon, options=ScheduleOptions(value_order="ideal"))
    assert earliest.instances[0].date == date(2025, 1, 1)
    assert ideal.instances[0].date == date(2025, 1, 3)


def test_same_inputs_give_same_schedule(make_series, horizon):
    series = [
        make_series("a", wiggle={"daysAfter": 1}, cycling={"items": ["x", "y"], "mode": "random"}),
        make_series("b", timeOfDay="09:00", wiggle={"timeWindow": {"earliest": "08:00", "latest": "10:00"}}),
    ]
    constraints = [
        {"id": "c", "type": "mustBeWithin", "source": {"seriesId": "a"}, "dest": {"seriesId": "b"}, "withinMinutes": 45}
    ]
    first = schedule(series, constraints=constraints, horizon=horizon)
    second = schedule(series, constraints=constraints, horizon=horizon)
    assert first.model_dump() == second.model_dump()


def test_parallel_components_match_serial(make_series, horizon):
    series = [
        make_series(x, bounds={"startDate": "2025-01-01", "endDate": "2025-01-04"}, wiggle={"daysAfter": 1})
        for x in "abcd"
    ]
    constraints = [
        {"id": "ab", "type": "cantBeOnSameDay", "source": {"seriesId": "a"}, "dest": {"seriesId": "b"}},
        {"id": "cd", "type": "cantBeOnSameDay", "source": {"seriesId": "c"}, "dest": {"seriesId": "d"}},
    ]
    serial = schedule(series, constraints=constraints, horizon=horizon, options=ScheduleOptions(max_workers=1))
    parallel = schedule(series, constraints=constraints, horizon=horizon, options=ScheduleOptions(max_workers=4))
    assert serial.model_dump() == parallel.model_dump()


def test_cancelled_search_reports_timeout(make_series, horizon):
    cancel = threading.Event()
    cancel.set()
    options = ScheduleOptions(cancel_event=cancel)
    result = schedule([make_series("a")], horizon=horizon, options=options)
    assert isinstance(result, ConflictReport)
    assert result.status == "timedOut"
    assert len(result.instances) == 5

    with pytest.raises(ScheduleTimeoutError):
        build_schedule([make_series("a")], horizon=horizon, options=options)


def test_empty_time_window_becomes_series_issue(make_series, horizon):
    series = [
        make_series("ok"),
        _windowed(make_series, "narrow", "2025-01-02", "08:01", "08:04"),
    ]
    result = schedule(series, horizon=horizon, options=ScheduleOptions(slot_minutes=5))
    assert isinstance(result, Schedule)
    assert _placed(result, "narrow") == []
    assert len(_placed(result, "ok")) == 5
    (issue,) = result.issues
    assert issue.seriesId == "narrow"
    assert issue.instanceDates == [date(2025, 1, 2)]


def test_gated_instances_are_reported(make_series, horizon):
    conditions = {
        "never": {"type": "count", "target": {"tag": "none"}, "comparison": ">", "threshold": 0, "windowDays": 3}
    }
    s = make_series("a", patterns=[{"pattern": {"type": "daily"}, "conditionId": "never"}])
    result = schedule([s], conditions=conditions, horizon=horizon)
    assert len(result.instances) == 5
    assert all(i.gated and i.startTime is None for i in result.instances)


def test_history_opens_the_gate(make_series, make_completion, horizon):
    conditions = {
        "warm": {"type": "daysSince", "target": {"seriesId": "base"}, "comparison": "<=", "threshold": 2}
    }
    s = make_series("a", patterns=[{"pattern": {"type": "daily"}, "conditionId": "warm"}])
    history = [make_completion("base", "2024-12-31T18:00")]
    result = schedule([s], conditions=conditions, history=history, horizon=horizon)
    assert [(i.date.day, i.gated) for i in result.instances] == [
        (1, False),
        (2, False),
        (3, True),
        (4, True),
        (5, True),
    ]


def test_cycling_index_is_returned(make_series, horizon):
    s = make_series("a", cycling={"items": ["x", "y", "z"]})
    result = schedule([s], horizon=horizon)
    assert [i.assignedCyclingItem for i in result.instances] == ["x", "y", "z", "x", "y"]
    assert result.cycling == {"a": 2}


def test_cant_be_on_same_day_checks_every_reachable_instance(make_series):
    horizon = {"start": "2024-12-30", "end": "2025-01-12"}
    weekly = lambda day: [{"pattern": {"type": "weekly", "daysOfWeek": [day]}}]
    series = [
        make_series("b", start="2024-12-30", patterns=weekly("mon")),
        make_series("a", start="2024-12-30", patterns=weekly("sat"), wiggle={"daysBefore": 5}),
    ]
    constraints = [
        {"id": "split", "type": "cantBeOnSameDay", "source": {"seriesId": "b"}, "dest": {"seriesId": "a"}}
    ]
    result = schedule(series, constraints=constraints, horizon=horizon)
    assert isinstance(result, Schedule)
    b_days = {i.date for i in _placed(result, "b")}
    a_days = [i.date for i in _placed(result, "a")]
    assert b_days == {date(2024, 12, 30), date(2025, 1, 6)}
    assert a_days == [date(2024, 12, 31), date(2025, 1, 7)]
    assert b_days.isdisjoint(a_days)


def test_cant_be_next_to_every_destination_instance(make_series, horizon):
    series = [
        make_series("b", patterns=[{"pattern": {"type": "custom", "intervalDays": 4}}]),
        _one_day(make_series, "a", "2025-01-04", wiggle={"daysBefore": 2}),
    ]
    constraints = [
        {"id": "apart", "type": "cantBeNextTo", "source": {"seriesId": "a"}, "dest": {"seriesId": "b"}}
    ]
    result = schedule(series, constraints=constraints, horizon=horizon)
    assert [i.date for i in _placed(result, "b")] == [date(2025, 1, 1), date(2025, 1, 5)]
    # Jan 2 touches the first b, Jan 4 the second
    (a,) = _placed(result, "a")
    assert a.date == date(2025, 1, 3)


def test_ordering_only_applies_within_a_day(make_series, horizon):
    series = [
        _one_day(make_series, "a", "2025-01-02", timeOfDay="07:00", fixed=True),
        _one_day(make_series, "b", "2025-01-02", timeOfDay="18:00", wiggle={"daysAfter": 1}),
    ]
    constraints = [
        {"id": "first", "type": "mustBeBefore", "source": {"seriesId": "b"}, "dest": {"seriesId": "a"}}
    ]
    result = schedule(series, constraints=constraints, horizon=horizon)
    assert isinstance(result, Schedule)
    # 18:00 cannot precede 07:00 on the same day; the next day is unordered
    (b,) = _placed(result, "b")
    assert b.startTime == datetime(2025, 1, 3, 18, 0)


def test_solvable_constraint_set_yields_schedule(make_series, horizon):
    series = [
        _one_day(make_series, "gym", "2025-01-02", wiggle={"daysAfter": 3}),
        _one_day(make_series, "rest", "2025-01-03", fixed=True),
        _windowed(make_series, "stretch", "2025-01-04", "07:00", "09:00"),
        _one_day(make_series, "shower", "2025-01-04", timeOfDay="08:00", fixed=True),
    ]
    pair = lambda cid, kind, src, dst, **extra: {
        "id": cid, "type": kind, "source": {"seriesId": src}, "dest": {"seriesId": dst}, **extra
    }
    constraints = [
        pair("not-same", "cantBeOnSameDay", "gym", "rest"),
        pair("not-next", "cantBeNextTo", "gym", "rest"),
        pair("warm-up", "mustBeBefore", "stretch", "shower"),
        pair("close", "mustBeWithin", "stretch", "shower", withinMinutes=60),
    ]
    result = build_schedule(series, constraints=constraints, horizon=horizon)
    assert result.status == "solved"
    assert result.issues == []
    (gym,), (stretch,), (shower,) = (_placed(result, s) for s in ("gym", "stretch", "shower"))
    assert gym.date == date(2025, 1, 5)
    assert stretch.endTime <= shower.startTime
    assert shower.startTime - stretch.startTime <= timedelta(minutes=60)
    assert stretch.startTime == datetime(2025, 1, 4, 7, 0)


@pytest.mark.parametrize(
    "value_order, expected",
    [("earliest", date(2025, 1, 2)), ("ideal", date(2025, 1, 4))],
)
def test_link_wobble_bounds_child_distance(make_series, horizon, value_order, expected):
    series = [
        _one_day(make_series, "a", "2025-01-01", fixed=True),
        _one_day(make_series, "b", "2025-01-05", wiggle={"daysBefore": 3}),
    ]
    links = [
        {
            "id": "ab",
            "parentSeriesId": "a",
            "childSeriesId": "b",
            "targetDistance": 2,
            "earlyWobble": 1,
            "lateWobble": 1,
        }
    ]
    result = schedule(
        series, links=links, horizon=horizon, options=ScheduleOptions(value_order=value_order)
    )
    (parent,), (child,) = _placed(result, "a"), _placed(result, "b")
    assert child.date == expected
    assert 2 - 1 <= (child.date - parent.date).days <= 2 + 1


def test_timed_instances_do_not_overlap(make_series, horizon):
    series = [
        _windowed(make_series, "a", "2025-01-01", "08:00", "10:00"),
        _one_day(make_series, "b", "2025-01-01", timeOfDay="08:00", fixed=True, duration=45),
    ]
    result = schedule(series, horizon=horizon)
    (a,), (b,) = _placed(result, "a"), _placed(result, "b")
    assert b.startTime == datetime(2025, 1, 1, 8, 0)
    assert a.startTime == b.endTime == datetime(2025, 1, 1, 8, 45)


def test_unavoidable_overlap_is_unsatisfiable(make_series, horizon):
    series = [
        _one_day(make_series, "a", "2025-01-01", timeOfDay="08:00"),
        _one_day(make_series, "b", "2025-01-01", timeOfDay="08:15"),
    ]
    result = schedule(series, horizon=horizon)
    assert isinstance(result, ConflictReport)
    assert result.status == "unsatisfiable"
    assert result.constraintIds == [] and result.linkIds == []
    assert "overlapping" in result.cause


def test_pinned_instances_may_overlap(make_series, horizon):
    series = [
        _one_day(make_series, "a", "2025-01-01", timeOfDay="08:00", fixed=True),
        _one_day(make_series, "b", "2025-01-01", timeOfDay="08:15", locked=True),
    ]
    result = schedule(series, horizon=horizon)
    assert isinstance(result, Schedule)
    assert len(result.instances) == 2


def test_cancelled_occurrence_is_not_scheduled(make_series, horizon):
    exceptions = [{"seriesId": "a", "originalDate": "2025-01-03", "type": "cancelled"}]
    result = schedule([make_series("a")], horizon=horizon, exceptions=exceptions)
    assert [i.date.day for i in result.instances] == [1, 2, 4, 5]


def test_rescheduled_occurrence_anchors_constraints(make_series, horizon):
    series = [
        _one_day(make_series, "a", "2025-01-01", wiggle={"daysAfter": 4}),
        _one_day(make_series, "b", "2025-01-01", wiggle={"daysAfter": 4}),
    ]
    constraints = [
        {"id": "same", "type": "mustBeOnSameDay", "source": {"seriesId": "b"}, "dest": {"seriesId": "a"}}
    ]
    exceptions = [
        {"seriesId": "a", "originalDate": "2025-01-01", "type": "rescheduled", "newTime": "2025-01-04T18:00"}
    ]
    result = build_schedule(series, constraints=constraints, horizon=horizon, exceptions=exceptions)
    (a,), (b,) = _placed(result, "a"), _placed(result, "b")
    assert a.date == b.date == date(2025, 1, 4)
    assert a.startTime == datetime(2025, 1, 4, 18, 0)
    assert a.rescheduledFrom == date(2025, 1, 1)
    assert a.candidateDate == date(2025, 1, 4)
