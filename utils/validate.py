from collections import defaultdict
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Type
from pydantic import BaseModel, ValidationError
from schemas.conditions import Condition, ConditionAdapter
from schemas.history import Completion, Horizon, InstanceException
from schemas.relations import Constraint, Link
from schemas.series import Series
from utils.constants import MAX_CHAIN_DEPTH, ORDERING_CONSTRAINTS
from exceptions.custom_errors import (
    ChainDepthExceededError,
    CycleDetectedError,
    DataGapError,
    InvalidConditionError,
    StructuralError,
)


def format_validation_error(label: str, err: ValidationError) -> str:
    """Flatten a pydantic ValidationError into the bullet-list message used across the engine."""
    lines = [f"⚠️ Invalid {label}:"]
    for e in err.errors():
        loc = ".".join(str(p) for p in e["loc"]) or "(root)"
        lines.append(f"     • {loc}: {e['msg']}")
    return "\n".join(lines)


def parse_model(
    model_cls: Type[BaseModel],
    data: Any,
    label: str,
    error_cls: Type[StructuralError] = StructuralError,
):
    """Validate `data` into `model_cls`, raising `error_cls` instead of a ValidationError."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise error_cls(format_validation_error(label, e)) from e


def _label(data: Any, kind: str, idx: int) -> str:
    if isinstance(data, Mapping) and data.get("id"):
        return f"{kind} '{data['id']}'"
    if isinstance(data, BaseModel) and getattr(data, "id", None):
        return f"{kind} '{data.id}'"
    return f"{kind} #{idx}"


def parse_series(items: Iterable[Any]) -> List[Series]:
    return [parse_model(Series, s, _label(s, "series", i)) for i, s in enumerate(items)]


def parse_links(items: Iterable[Any]) -> List[Link]:
    return [parse_model(Link, l, _label(l, "link", i)) for i, l in enumerate(items)]


def parse_constraints(items: Iterable[Any]) -> List[Constraint]:
    return [
        parse_model(Constraint, c, _label(c, "constraint", i))
        for i, c in enumerate(items)
    ]


def parse_completions(items: Iterable[Any]) -> List[Completion]:
    return [
        parse_model(Completion, c, _label(c, "completion", i))
        for i, c in enumerate(items)
    ]


def parse_horizon(data: Any) -> Horizon:
    return parse_model(Horizon, data, "horizon")


def parse_exceptions(items: Iterable[Any]) -> List[InstanceException]:
    return [
        parse_model(InstanceException, e, _label(e, "exception", i))
        for i, e in enumerate(items)
    ]


def parse_condition(data: Any, condition_id: str = "condition") -> Condition:
    """Validate one condition tree (a dict or an already-built model)."""
    try:
        return ConditionAdapter.validate_python(data)
    except ValidationError as e:
        raise InvalidConditionError(
            format_validation_error(f"condition '{condition_id}'", e)
        ) from e


def parse_conditions(table: Optional[Mapping[str, Any]]) -> Dict[str, Condition]:
    """Validate a `conditionId -> condition` table."""
    return {cid: parse_condition(c, cid) for cid, c in (table or {}).items()}


# == Structural checks across entities ==
def find_cycle(graph: Mapping[str, Sequence[str]]) -> Optional[List[str]]:
    """
    Return one cycle of `graph` as a node path (first node repeated at the end),
    or None when the graph is acyclic. Nodes are visited in sorted order so the
    reported cycle is stable.
    """
    WHITE, GREY, BLACK = 0, 1, 2
    colour: Dict[str, int] = defaultdict(int)

    for root in sorted(graph):
        if colour[root] != WHITE:
            continue
        path = [root]
        stack = [iter(sorted(graph.get(root, ())))]
        colour[root] = GREY
        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                colour[path.pop()] = BLACK
                stack.pop()
                continue
            if colour[nxt] == GREY:
                return path[path.index(nxt):] + [nxt]
            if colour[nxt] == WHITE:
                colour[nxt] = GREY
                path.append(nxt)
                stack.append(iter(sorted(graph.get(nxt, ()))))
    return None


def validate_series_set(series: Sequence[Series], conditions: Mapping[str, Condition]):
    """Duplicate ids, unresolved conditionIds and adaptive durations without a fallback."""
    seen = set()
    dupes = set()
    for s in series:
        if s.id in seen:
            dupes.add(s.id)
        seen.add(s.id)
    if dupes:
        raise StructuralError(f"Duplicate series ids: {', '.join(sorted(dupes))}")

    for s in series:
        for p in s.patterns:
            if p.conditionId is not None and p.conditionId not in conditions:
                raise InvalidConditionError(
                    f"Series '{s.id}' references unknown condition '{p.conditionId}'."
                )
        if s.adaptiveDuration is not None and s.adaptiveDuration.fallback is None:
            raise DataGapError(
                f"Series '{s.id}' uses adaptiveDuration without a fallback duration."
            )


def validate_links(links: Sequence[Link], series_ids: Iterable[str]) -> Dict[str, int]:
    """
    Check the link forest and return the chain depth of every linked series.

    A link must join two known series, a child may have a single parent, the
    parent graph must be acyclic and no chain may exceed MAX_CHAIN_DEPTH links.
    """
    known = set(series_ids)
    parent_of: Dict[str, str] = {}
    children: Dict[str, List[str]] = defaultdict(list)
    for link in links:
        for role, sid in (("parent", link.parentSeriesId), ("child", link.childSeriesId)):
            if sid not in known:
                raise StructuralError(f"Link '{link.id}' has unknown {role} series '{sid}'.")
        if link.childSeriesId in parent_of:
            raise StructuralError(
                f"Series '{link.childSeriesId}' already has parent "
                f"'{parent_of[link.childSeriesId]}'; link '{link.id}' would add a second."
            )
        parent_of[link.childSeriesId] = link.parentSeriesId
        children[link.parentSeriesId].append(link.childSeriesId)

    cycle = find_cycle(children)
    if cycle:
        raise CycleDetectedError(f"Links form a cycle: {' -> '.join(cycle)}")

    depth: Dict[str, int] = {}
    for sid in sorted(set(parent_of) | set(children)):
        d, node = 0, sid
        while node in parent_of:
            node = parent_of[node]
            d += 1
        depth[sid] = d
        if d > MAX_CHAIN_DEPTH:
            raise ChainDepthExceededError(
                f"Chain ending at series '{sid}' is {d} links deep (max {MAX_CHAIN_DEPTH})."
            )
    return depth


def ordering_graph(
    constraints: Sequence[Constraint], series: Sequence[Series]
) -> Dict[str, List[str]]:
    """Series-level "happens before" edges implied by mustBeBefore / mustBeAfter."""
    graph: Dict[str, List[str]] = defaultdict(list)
    for c in constraints:
        if c.type not in ORDERING_CONSTRAINTS:
            continue
        sources = [s.id for s in series if c.source.matches(s.id, s.tags)]
        dests = [s.id for s in series if c.dest.matches(s.id, s.tags)]
        if c.type == "mustBeAfter":
            sources, dests = dests, sources
        for a in sources:
            for b in dests:
                if a != b and b not in graph[a]:
                    graph[a].append(b)
    return graph


def validate_structure(
    series: Sequence[Series],
    links: Sequence[Link],
    constraints: Sequence[Constraint],
    conditions: Mapping[str, Condition],
) -> Dict[str, int]:
    """Run every cross-entity check; returns the chain depth per linked series."""
    validate_series_set(series, conditions)
    depth = validate_links(links, (s.id for s in series))

    ids = set()
    for c in constraints:
        if c.id in ids:
            raise StructuralError(f"Duplicate constraint id '{c.id}'.")
        ids.add(c.id)

    cycle = find_cycle(ordering_graph(constraints, series))
    if cycle:
        raise CycleDetectedError(
            f"Ordering constraints form a cycle: {' -> '.join(cycle)}"
        )
    return depth


def index_exceptions(
    exceptions: Sequence[InstanceException], series_ids: Iterable[str]
) -> Dict[str, Dict[date, InstanceException]]:
    """
    Group instance exceptions by series and original date.

    Every exception must name a known series and at most one exception may
    target the same occurrence.
    """
    known = set(series_ids)
    table: Dict[str, Dict[date, InstanceException]] = defaultdict(dict)
    for e in exceptions:
        if e.seriesId not in known:
            raise StructuralError(f"Exception for unknown series '{e.seriesId}'.")
        if e.originalDate in table[e.seriesId]:
            raise StructuralError(
                f"Series '{e.seriesId}' has more than one exception for {e.originalDate}."
            )
        table[e.seriesId][e.originalDate] = e
    return dict(table)
