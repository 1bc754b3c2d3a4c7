from typing import Iterable, List
from core.model import Relation, RelationModel
from core.state import ScheduleState
from schemas.conditions import Target
from schemas.relations import Constraint
from utils.constants import DAY_LEVEL_CONSTRAINTS, ORDERING_CONSTRAINTS, PAIR_REACH

"""
This module turns relational constraints between two targets into binary
relations between instances.

Prohibitions (`cantBeOnSameDay`, `cantBeNextTo`) and orderings pair each source
instance with every destination instance of another series that can land
within reach of it. Requirements (`mustBeOnSameDay`, `mustBeNextTo`,
`mustBeWithin`) pair each source instance with the destination instance(s)
whose candidate date is nearest its own; equally near instances are all paired.
"""


def matching_vars(state: ScheduleState, target: Target) -> List[int]:
    found = []
    for sid, ids in state.vars_by_series.items():
        if target.matches(sid, state.series_by_id[sid].tags):
            found.extend(ids)
    return sorted(found)


def nearest_partners(state: ScheduleState, source: int, dests: Iterable[int]) -> List[int]:
    src = state.instances[source]
    best: List[int] = []
    best_gap = None
    for d in dests:
        inst = state.instances[d]
        if inst.series_id == src.series_id:
            continue
        gap = abs((inst.candidate_date - src.candidate_date).days)
        if best_gap is None or gap < best_gap:
            best, best_gap = [d], gap
        elif gap == best_gap:
            best.append(d)
    return best


def reachable_partners(
    model: RelationModel, state: ScheduleState, source: int, dests: Iterable[int], reach: int
) -> List[int]:
    """Destination instances of other series whose day span comes within `reach` days of the source's."""
    src_span = model.day_span(source)
    if src_span is None:
        return []
    src_series = state.instances[source].series_id
    found = []
    for d in dests:
        if state.instances[d].series_id == src_series:
            continue
        span = model.day_span(d)
        if span is None:
            continue
        if span[0] - src_span[1] > reach or src_span[0] - span[1] > reach:
            continue
        found.append(d)
    return found


def add_constraint_relations(model: RelationModel, state: ScheduleState, constraint: Constraint):
    sources = matching_vars(state, constraint.source)
    dests = matching_vars(state, constraint.dest)
    reach = PAIR_REACH.get(constraint.type)
    count = 0
    for s in sources:
        if reach is None:
            partners = nearest_partners(state, s, dests)
        else:
            partners = reachable_partners(model, state, s, dests, reach)
        for d in partners:
            model.add_relation(
                Relation(
                    origin=constraint.id,
                    origin_kind="constraint",
                    kind=constraint.type,
                    a=s,
                    b=d,
                    high=constraint.withinMinutes or 0,
                )
            )
            count += 1
    state.relation_counts[constraint.id] = count


def day_level_rules(model: RelationModel, state: ScheduleState):
    """mustBeOnSameDay, cantBeOnSameDay, mustBeNextTo and cantBeNextTo."""
    for c in state.constraints:
        if c.type in DAY_LEVEL_CONSTRAINTS:
            add_constraint_relations(model, state, c)


def ordering_rules(model: RelationModel, state: ScheduleState):
    """mustBeBefore / mustBeAfter between instances sharing a date; vacuous for untimed instances."""
    for c in state.constraints:
        if c.type in ORDERING_CONSTRAINTS:
            add_constraint_relations(model, state, c)


def within_rules(model: RelationModel, state: ScheduleState):
    """mustBeWithin: start times at most `withinMinutes` apart."""
    for c in state.constraints:
        if c.type == "mustBeWithin":
            add_constraint_relations(model, state, c)
