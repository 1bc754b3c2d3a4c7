from typing import List
from core.model import Relation, RelationModel
from core.state import ScheduleState
from utils.constants import OVERLAP_REACH

"""
This module keeps timed instances from overlapping: one must end no later
than the other starts. Pairs where both instances are pinned keep their
declared placement and are left alone.
"""


def overlap_origin(state: ScheduleState, a: int, b: int) -> str:
    pair = sorted({state.instances[a].series_id, state.instances[b].series_id})
    return "overlap:" + "|".join(pair)


def overlap_rules(model: RelationModel, state: ScheduleState):
    """Pair every two timed instances whose day spans come within a day of each other."""
    timed: List[int] = [
        v.id for v in model.variables if v.timed and model.day_span(v.id) is not None
    ]
    timed.sort(key=lambda v: (model.day_span(v), v))

    count = 0
    for i, a in enumerate(timed):
        last_day = model.day_span(a)[1]
        for b in timed[i + 1:]:
            if model.day_span(b)[0] - last_day > OVERLAP_REACH:
                break
            if state.instances[a].pinned and state.instances[b].pinned:
                continue
            model.add_relation(
                Relation(
                    origin=overlap_origin(state, a, b),
                    origin_kind="overlap",
                    kind="noOverlap",
                    a=a,
                    b=b,
                    low=state.instances[a].duration,
                    high=state.instances[b].duration,
                )
            )
            count += 1
    state.relation_counts["overlap"] = count
