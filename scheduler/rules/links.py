from typing import List, Optional
from core.model import Relation, RelationModel
from core.state import ScheduleState
from schemas.relations import Link
from utils.logger import get_logger

"""
This module turns chain links into day-difference relations between a parent
instance and each child instance.
"""

logger = get_logger(__name__)


def pick_parent(
    model: RelationModel, state: ScheduleState, link: Link, child: int, parents: List[int]
) -> Optional[int]:
    """
    The parent instance a child instance is chained to.

    Only parents whose day span can reach the child's within
    `[targetDistance - earlyWobble, targetDistance + lateWobble]` qualify. Among
    them the one whose candidate date is closest to `child candidate - targetDistance`
    wins; on a tie the earlier parent is kept.
    """
    child_span = model.day_span(child)
    if child_span is None:
        return None
    target = state.instances[child].candidate_date.toordinal() - link.targetDistance

    best, best_gap = None, None
    for p in parents:
        span = model.day_span(p)
        if span is None:
            continue
        if child_span[1] - span[0] < link.min_distance:
            continue
        if child_span[0] - span[1] > link.max_distance:
            continue
        gap = abs(state.instances[p].candidate_date.toordinal() - target)
        if best_gap is None or gap < best_gap:
            best, best_gap = p, gap
    return best


def link_rules(model: RelationModel, state: ScheduleState):
    """Chain every child instance to one parent instance per link."""
    for link in state.links:
        parents = state.vars_by_series.get(link.parentSeriesId, [])
        children = state.vars_by_series.get(link.childSeriesId, [])
        count = 0
        for child in children:
            parent = pick_parent(model, state, link, child, parents)
            if parent is None:
                logger.debug(
                    f"Link '{link.id}': no reachable parent for "
                    f"{link.childSeriesId} on {state.instances[child].candidate_date}"
                )
                continue
            model.add_relation(
                Relation(
                    origin=link.id,
                    origin_kind="link",
                    kind="link",
                    a=parent,
                    b=child,
                    low=link.min_distance,
                    high=link.max_distance,
                )
            )
            count += 1
        state.relation_counts[link.id] = count
