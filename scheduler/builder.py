import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from core.constraint_manager import ConstraintManager
from schemas.history import Horizon
from schemas.results import ConflictReport, Schedule, SeriesIssue
from scheduler.conditions import CompletionHistory, condition_dependencies
from scheduler.diagnosis import diagnose, fallback_diagnosis, format_cause
from scheduler.extractor import extract_instances, extract_schedule
from scheduler.materializer import SeriesMaterialization, materialize_series
from scheduler.rules import day_level_rules, link_rules, ordering_rules, overlap_rules, within_rules
from scheduler.setup import setup_model
from scheduler.solver import SolveStatus, solve_schedule
from utils.constants import MAX_WORKERS, SLOT_MINUTES, SOLVER_TIMEOUT_SECONDS, VALUE_ORDER
from utils.validate import (
    index_exceptions,
    parse_completions,
    parse_conditions,
    parse_constraints,
    parse_exceptions,
    parse_horizon,
    parse_links,
    parse_series,
    validate_structure,
)
from utils.logger import get_logger
from exceptions.custom_errors import ScheduleTimeoutError, UnsatisfiableError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScheduleOptions:
    """Per-call overrides of the configured solver settings."""

    timeout_seconds: Optional[float] = SOLVER_TIMEOUT_SECONDS
    """Search budget; None means no limit."""
    value_order: str = VALUE_ORDER
    """`earliest` or `ideal`."""
    slot_minutes: int = SLOT_MINUTES
    max_workers: int = MAX_WORKERS
    diagnose: bool = True
    """Run the CP-SAT conflict diagnosis when a request is unsatisfiable."""
    cancel_event: Optional[threading.Event] = None


def _history(history: Any, series) -> CompletionHistory:
    tags = {s.id: s.tags for s in series}
    if isinstance(history, CompletionHistory):
        return CompletionHistory.build(history.completions, {**history.series_tags, **tags})
    return CompletionHistory.build(parse_completions(history or []), tags)


# == Build Schedule ==
def schedule(
    series: Iterable[Any],
    links: Iterable[Any] = (),
    constraints: Iterable[Any] = (),
    conditions: Optional[Mapping[str, Any]] = None,
    history: Any = None,
    horizon: Any = None,
    options: Optional[ScheduleOptions] = None,
    exceptions: Iterable[Any] = (),
) -> Union[Schedule, ConflictReport]:
    """
    Expand, materialize and place every series over the horizon.

    Inputs may be schema models or plain dicts. `exceptions` cancel or
    reschedule single occurrences. Returns a `Schedule`, or a
    `ConflictReport` when the links/constraints cannot all hold (or the search
    ran out of time). Structural problems raise a `StructuralError` subclass.
    The function keeps no state between calls: identical inputs give an
    identical result.
    """
    options = options or ScheduleOptions()

    # === Validate inputs ===
    series = parse_series(series)
    links = parse_links(links)
    constraints = parse_constraints(constraints)
    condition_table = parse_conditions(conditions)
    horizon = parse_horizon(horizon)
    validate_structure(series, links, constraints, condition_table)
    exception_table = index_exceptions(parse_exceptions(exceptions or ()), (s.id for s in series))
    snapshot = _history(history, series)
    for cid, targets in condition_dependencies(condition_table).items():
        logger.debug(f"Condition '{cid}' reads {', '.join(targets)}")

    # === Materialize ===
    logger.info(f"📋 Materializing {len(series)} series over {horizon.start} → {horizon.end}...")
    materialized: Dict[str, SeriesMaterialization] = {
        s.id: materialize_series(s, horizon, snapshot, condition_table, exception_table.get(s.id))
        for s in series
    }
    skipped = [sk for m in materialized.values() for sk in m.skipped]
    cycling = {sid: m.next_index for sid, m in materialized.items() if m.next_index is not None}

    # === Model setup ===
    logger.info("📋 Building model...")
    model, state = setup_model(
        materialized,
        series,
        links,
        constraints,
        horizon,
        options.slot_minutes,
        options.value_order,
    )
    cm = ConstraintManager(model, state)
    cm.add_rule(link_rules, condition=bool(links))
    cm.add_rule(day_level_rules, condition=bool(constraints))
    cm.add_rule(ordering_rules, condition=bool(constraints))
    cm.add_rule(within_rules, condition=bool(constraints))
    cm.add_rule(overlap_rules)
    cm.apply_all()
    logger.info(f"→ #relations = {len(model.relations)}")

    # === Solve ===
    result = solve_schedule(
        model,
        state,
        timeout=options.timeout_seconds,
        max_workers=options.max_workers,
        cancel_event=options.cancel_event,
    )

    if result.status == SolveStatus.TIMED_OUT:
        logger.info("⚠️ Search timed out; returning partial placement.")
        return ConflictReport(
            status="timedOut",
            cause=f"⏱ Search exceeded the time budget of {options.timeout_seconds} seconds.",
            instances=extract_instances(state, result.assignment),
        )

    failed_multi = [c for c in result.failed if c.multi_series]
    if failed_multi:
        diagnoses = [diagnose(model, c) if options.diagnose else fallback_diagnosis(c) for c in failed_multi]
        extra = [
            f"Series '{model.variables[c.empty_variable].series_id}' has an instance on "
            f"{state.instances[c.empty_variable].candidate_date} with no feasible placement."
            for c in failed_multi
            if c.empty_variable is not None
        ]
        cause = format_cause(diagnoses, extra)
        logger.info(cause)
        return ConflictReport(
            status="unsatisfiable",
            constraintIds=sorted({i for d in diagnoses for i in d.constraint_ids}),
            linkIds=sorted({i for d in diagnoses for i in d.link_ids}),
            cause=cause,
        )

    # === Single-series failures become per-series issues ===
    issues: List[SeriesIssue] = []
    assignment = result.assignment
    for comp in result.failed:
        sid = comp.series_ids[0]
        dates = sorted(state.instances[v].candidate_date for v in comp.variables)
        issues.append(
            SeriesIssue(
                seriesId=sid,
                message=f"No feasible placement for series '{sid}' at this resolution.",
                instanceDates=dates,
            )
        )
        logger.info(f"⚠️ Dropping {len(dates)} instance(s) of series '{sid}': no feasible placement.")

    return extract_schedule(state, assignment, skipped, cycling, issues)


def build_schedule(
    series: Iterable[Any],
    links: Iterable[Any] = (),
    constraints: Iterable[Any] = (),
    conditions: Optional[Mapping[str, Any]] = None,
    history: Any = None,
    horizon: Any = None,
    options: Optional[ScheduleOptions] = None,
    exceptions: Iterable[Any] = (),
) -> Schedule:
    """Like `schedule`, but raises UnsatisfiableError / ScheduleTimeoutError instead of returning a report."""
    result = schedule(series, links, constraints, conditions, history, horizon, options, exceptions)
    if isinstance(result, ConflictReport):
        if result.status == "timedOut":
            raise ScheduleTimeoutError(result.cause, report=result)
        raise UnsatisfiableError(result.cause, report=result)
    return result
