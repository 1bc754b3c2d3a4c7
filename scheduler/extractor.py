import pandas as pd
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Mapping, Optional
from core.model import Instance, Slot
from core.state import ScheduleState
from schemas.results import ReminderDue, Schedule, ScheduledInstance
from schemas.series import Series
from scheduler.materializer import Skipped
from utils.time_date import combine, format_time
from utils.logger import get_logger

logger = get_logger(__name__)


def instance_sort_key(inst: ScheduledInstance):
    start = inst.startTime.time() if inst.startTime is not None else time.min
    return (inst.date, inst.startTime is not None, start, inst.seriesId, inst.gated)


def to_scheduled(inst: Instance, slot: Slot) -> ScheduledInstance:
    start = combine(slot.date, slot.minute)
    end = start + timedelta(minutes=inst.duration) if start is not None else None
    return ScheduledInstance(
        seriesId=inst.series_id,
        title=inst.title,
        date=slot.date,
        candidateDate=inst.candidate_date,
        startTime=start,
        endTime=end,
        duration=inst.duration,
        assignedCyclingItem=inst.cycling_item,
        gated=False,
        rescheduledFrom=inst.rescheduled_from,
    )


def gated_instance(skipped: Skipped) -> ScheduledInstance:
    return ScheduledInstance(
        seriesId=skipped.series_id,
        title=skipped.title,
        date=skipped.candidate_date,
        candidateDate=skipped.candidate_date,
        duration=skipped.duration,
        gated=True,
    )


def extract_instances(
    state: ScheduleState,
    assignment: Mapping[int, Slot],
    skipped: Iterable[Skipped] = (),
) -> List[ScheduledInstance]:
    """Placed instances for every assigned variable plus gated markers, in schedule order."""
    placed = [to_scheduled(state.instances[v], slot) for v, slot in assignment.items()]
    placed.extend(gated_instance(s) for s in skipped)
    return sorted(placed, key=instance_sort_key)


def due_reminders(
    instances: Iterable[ScheduledInstance], series_by_id: Mapping[str, Series]
) -> List[ReminderDue]:
    """
    One reminder record per (placed instance, series reminder). Untimed
    instances count from the start of their day.
    """
    due = []
    for inst in instances:
        if inst.gated:
            continue
        start = inst.startTime or datetime.combine(inst.date, time.min)
        for r in series_by_id[inst.seriesId].reminders:
            due.append(
                ReminderDue(
                    seriesId=inst.seriesId,
                    instanceDate=inst.date,
                    tag=r.tag,
                    minutesBefore=r.minutesBefore,
                    fireAt=start - timedelta(minutes=r.minutesBefore),
                )
            )
    return sorted(due, key=lambda r: (r.fireAt, r.seriesId, r.tag))


def _cell(inst: ScheduledInstance) -> str:
    if inst.gated:
        return "(gated)"
    if inst.startTime is None:
        label = "✓"
    else:
        label = f"{format_time(inst.startTime.time())}-{format_time(inst.endTime.time())}"
    if inst.assignedCyclingItem:
        label += f" [{inst.assignedCyclingItem}]"
    return label


def schedule_to_frame(schedule: Schedule, series_order: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Series × date grid of the schedule.

    Rows are series ids, columns are the horizon's dates formatted
    "%a %Y-%m-%d"; a cell lists that day's placements of the series.
    """
    h = schedule.horizon
    dates = [h.start + timedelta(days=i) for i in range(h.num_days)]
    headers = [d.strftime("%a %Y-%m-%d") for d in dates]
    rows = series_order or sorted({i.seriesId for i in schedule.instances})

    grid: Dict[str, Dict[str, List[str]]] = {sid: {hd: [] for hd in headers} for sid in rows}
    for inst in schedule.instances:
        if inst.seriesId not in grid:
            continue
        grid[inst.seriesId][inst.date.strftime("%a %Y-%m-%d")].append(_cell(inst))

    df = pd.DataFrame(
        [[", ".join(grid[sid][hd]) for hd in headers] for sid in rows],
        index=rows,
        columns=headers,
    )
    df.index.name = "Series"
    return df


def summary_frame(schedule: Schedule, series_order: Optional[List[str]] = None) -> pd.DataFrame:
    """Per-series counts: placed, gated, moved off their candidate date, and scheduled minutes."""
    rows = series_order or sorted({i.seriesId for i in schedule.instances})
    summary = []
    for sid in rows:
        mine = [i for i in schedule.instances if i.seriesId == sid]
        placed = [i for i in mine if not i.gated]
        summary.append(
            {
                "Series": sid,
                "Placed": len(placed),
                "Gated": len(mine) - len(placed),
                "Moved": sum(1 for i in placed if i.date != i.candidateDate),
                "Total Minutes": sum(i.duration for i in placed),
                "Issues": sum(1 for x in schedule.issues if x.seriesId == sid),
            }
        )
    return pd.DataFrame(
        summary,
        columns=["Series", "Placed", "Gated", "Moved", "Total Minutes", "Issues"],
    )


def extract_schedule(
    state: ScheduleState,
    assignment: Mapping[int, Slot],
    skipped: Iterable[Skipped],
    cycling: Dict[str, int],
    issues: list,
) -> Schedule:
    instances = extract_instances(state, assignment, skipped)
    reminders = due_reminders(instances, state.series_by_id)
    logger.info(
        f"✅ Schedule extracted: {sum(1 for i in instances if not i.gated)} placed, "
        f"{sum(1 for i in instances if i.gated)} gated, {len(reminders)} reminders"
    )
    return Schedule(
        horizon=state.horizon,
        instances=instances,
        cycling=dict(sorted(cycling.items())),
        reminders=reminders,
        issues=issues,
    )
