from datetime import timedelta
from typing import Dict, List, Mapping, Sequence, Tuple
from core.model import Instance, RelationModel, Slot
from core.state import ScheduleState
from schemas.history import Horizon
from schemas.relations import Constraint, Link
from schemas.series import Series
from scheduler.materializer import SeriesMaterialization
from utils.constants import VALUE_ORDER
from utils.logger import get_logger
from exceptions.custom_errors import StructuralError

logger = get_logger(__name__)


def slot_minutes_in(window: Tuple[int, int], step: int) -> List[int]:
    """Minutes of day on the `step` grid (anchored at midnight) inside `window`."""
    lo, hi = window
    first = -(-lo // step) * step
    return list(range(first, hi + 1, step))


def build_domain(instance: Instance, horizon: Horizon, slot_minutes: int) -> List[Slot]:
    """
    Enumerate the placements of one instance, ascending by date then minute.

    Dates cover the wiggle span clipped to the horizon. Times cover the time
    window on the slot grid; without a window the declared time of day is the
    only choice (or the instance is untimed).
    """
    first = max(instance.earliest_date, horizon.start)
    last = min(instance.latest_date, horizon.end)
    if instance.window is not None:
        minutes = slot_minutes_in(instance.window, slot_minutes)
    else:
        minutes = [instance.default_minute]

    slots = []
    day = first
    while day <= last:
        slots.extend(Slot(day, m) for m in minutes)
        day += timedelta(days=1)
    return slots


def value_rank(slot: Slot, instance: Instance, value_order: str) -> tuple:
    """Sort key for trying domain values; lower ranks are tried first."""
    day_offset = abs((slot.date - instance.candidate_date).days)
    if slot.minute is None or instance.default_minute is None:
        minute_offset = 0
    else:
        minute_offset = abs(slot.minute - instance.default_minute)
    minute = -1 if slot.minute is None else slot.minute

    match value_order:
        case "earliest":
            return (slot.date, minute, minute_offset)
        case "ideal":
            return (day_offset, minute_offset, slot.date, minute)
        case _:
            raise StructuralError(f"Unknown value order '{value_order}'")


def setup_model(
    materialized: Mapping[str, SeriesMaterialization],
    series: Sequence[Series],
    links: Sequence[Link],
    constraints: Sequence[Constraint],
    horizon: Horizon,
    slot_minutes: int,
    value_order: str = VALUE_ORDER,
) -> Tuple[RelationModel, ScheduleState]:
    """
    Create one solver variable per placed instance and the state the rules read.

    Variables are numbered series by series (input order), then by candidate
    date, so numbering is stable for identical inputs.
    """
    if slot_minutes < 1:
        raise StructuralError(f"slotMinutes must be >= 1, got {slot_minutes}")
    if value_order not in ("earliest", "ideal"):
        raise StructuralError(f"Unknown value order '{value_order}'")

    model = RelationModel()
    instances: List[Instance] = []
    vars_by_series: Dict[str, List[int]] = {}

    for s in series:
        ids = []
        for inst in materialized[s.id].instances:
            domain = build_domain(inst, horizon, slot_minutes)
            var = model.new_variable(s.id, domain, inst.timed)
            instances.append(inst)
            ids.append(var.id)
        vars_by_series[s.id] = ids

    state = ScheduleState(
        series_by_id={s.id: s for s in series},
        instances=instances,
        vars_by_series=vars_by_series,
        links=list(links),
        constraints=list(constraints),
        horizon=horizon,
        slot_minutes=slot_minutes,
        value_order=value_order,
    )
    logger.info(f"→ #variables = {len(model.variables)} across {len(series)} series")
    return model, state
