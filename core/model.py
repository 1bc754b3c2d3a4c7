from bisect import bisect_left
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple
from utils.constants import MINUTES_PER_DAY


@dataclass(frozen=True)
class Slot:
    """One domain value: a calendar date and, for timed instances, a minute of day."""

    date: date
    minute: Optional[int] = None

    @property
    def day(self) -> int:
        return self.date.toordinal()

    @property
    def stamp(self) -> Optional[int]:
        """Absolute minute count, comparable across dates; None when untimed."""
        if self.minute is None:
            return None
        return self.day * MINUTES_PER_DAY + self.minute


@dataclass(frozen=True)
class Instance:
    """A materialized occurrence waiting for the solver to fix its placement."""

    series_id: str
    title: str
    candidate_date: date
    duration: int
    """Minutes, after adaptive duration is applied."""
    earliest_date: date
    latest_date: date
    window: Optional[Tuple[int, int]] = None
    """Minute-of-day range the start may take, or None when the time is not free."""
    default_minute: Optional[int] = None
    """Declared `timeOfDay` as minute of day; None means the instance is untimed."""
    cycling_item: Optional[str] = None
    tags: FrozenSet[str] = frozenset()
    pinned: bool = False
    """Fixed or locked: the instance keeps its default placement."""
    rescheduled_from: Optional[date] = None
    """Recurrence date of an occurrence moved by a `rescheduled` exception."""

    @property
    def timed(self) -> bool:
        return self.window is not None or self.default_minute is not None


@dataclass
class Variable:
    id: int
    series_id: str
    domain: List[Slot]
    """Initial domain in enumeration order (ascending date, then minute)."""
    timed: bool


class DomainView:
    """Lookup structures over one domain, rebuilt whenever that domain shrinks."""

    __slots__ = ("days", "sorted_days", "stamps", "timed")

    def __init__(self, slots: Sequence[Slot]):
        self.days = {s.day for s in slots}
        self.sorted_days = sorted(self.days)
        self.timed = bool(slots) and slots[0].minute is not None
        self.stamps = sorted(s.stamp for s in slots) if self.timed else []

    def has_day_between(self, lo: int, hi: int) -> bool:
        i = bisect_left(self.sorted_days, lo)
        return i < len(self.sorted_days) and self.sorted_days[i] <= hi

    def has_stamp_between(self, lo: int, hi: int) -> bool:
        i = bisect_left(self.stamps, lo)
        return i < len(self.stamps) and self.stamps[i] <= hi

    def has_day_outside(self, excluded: set) -> bool:
        return any(d not in excluded for d in self.sorted_days)


@dataclass(frozen=True)
class Relation:
    """
    Binary relation between variables `a` and `b`, tagged with the link or
    constraint that produced it.

    For links `a` is the parent, `b` the child and `[low, high]` the allowed
    day difference. For `mustBeWithin`, `high` holds `withinMinutes`. For
    `noOverlap`, `low` and `high` are the durations of `a` and `b`.

    `mustBeBefore` / `mustBeAfter` only order instances that share a date.
    """

    origin: str
    origin_kind: str
    kind: str
    a: int
    b: int
    low: int = 0
    high: int = 0

    def other(self, var: int) -> int:
        return self.b if var == self.a else self.a

    def allows(self, sa: Slot, sb: Slot) -> bool:
        delta = sb.day - sa.day
        match self.kind:
            case "link":
                return self.low <= delta <= self.high
            case "mustBeOnSameDay":
                return delta == 0
            case "cantBeOnSameDay":
                return delta != 0
            case "mustBeNextTo":
                return abs(delta) == 1
            case "cantBeNextTo":
                return abs(delta) != 1

        if sa.minute is None or sb.minute is None:
            return True
        match self.kind:
            case "mustBeBefore":
                return delta != 0 or sa.stamp < sb.stamp
            case "mustBeAfter":
                return delta != 0 or sa.stamp > sb.stamp
            case "mustBeWithin":
                return abs(sa.stamp - sb.stamp) <= self.high
            case "noOverlap":
                return sa.stamp + self.low <= sb.stamp or sb.stamp + self.high <= sa.stamp
        raise ValueError(f"Unknown relation kind '{self.kind}'")

    def supported(self, value: Slot, value_is_a: bool, other: DomainView) -> bool:
        """True when some value in `other` satisfies the relation together with `value`."""
        d = value.day
        match self.kind:
            case "link":
                if value_is_a:
                    return other.has_day_between(d + self.low, d + self.high)
                return other.has_day_between(d - self.high, d - self.low)
            case "mustBeOnSameDay":
                return d in other.days
            case "cantBeOnSameDay":
                return other.has_day_outside({d})
            case "mustBeNextTo":
                return (d - 1) in other.days or (d + 1) in other.days
            case "cantBeNextTo":
                return other.has_day_outside({d - 1, d + 1})

        if value.minute is None or not other.timed:
            return bool(other.days)
        t = value.stamp
        match self.kind:
            case "mustBeBefore" | "mustBeAfter":
                if other.has_day_outside({d}):
                    return True
                # orient so the question is always "a <op> b"
                if (self.kind == "mustBeBefore") == value_is_a:
                    return other.stamps[-1] > t
                return other.stamps[0] < t
            case "mustBeWithin":
                return other.has_stamp_between(t - self.high, t + self.high)
            case "noOverlap":
                own, theirs = (self.low, self.high) if value_is_a else (self.high, self.low)
                return other.stamps[-1] >= t + own or other.stamps[0] <= t - theirs
        raise ValueError(f"Unknown relation kind '{self.kind}'")


@dataclass
class RelationModel:
    """Variables and binary relations of one scheduling request."""

    variables: List[Variable] = field(default_factory=list)
    relations: List[Relation] = field(default_factory=list)

    def new_variable(self, series_id: str, domain: List[Slot], timed: bool) -> Variable:
        var = Variable(len(self.variables), series_id, domain, timed)
        self.variables.append(var)
        return var

    def add_relation(self, relation: Relation):
        if relation.a == relation.b:
            raise ValueError(f"Relation '{relation.origin}' relates a variable to itself")
        self.relations.append(relation)

    def day_span(self, var: int) -> Optional[Tuple[int, int]]:
        """First and last day ordinal of a variable's initial domain; None when it is empty."""
        domain = self.variables[var].domain
        if not domain:
            return None
        return domain[0].day, domain[-1].day

    def relations_by_variable(self) -> Dict[int, List[int]]:
        """Relation indices touching each variable."""
        index: Dict[int, List[int]] = {v.id: [] for v in self.variables}
        for i, r in enumerate(self.relations):
            index[r.a].append(i)
            index[r.b].append(i)
        return index

    def components(self) -> List[List[int]]:
        """Connected components of the relation graph, ordered by their smallest variable id."""
        parent = list(range(len(self.variables)))

        def find(x: int) -> int:
            while parent[x] != x:
                parent[x] = parent[parent[x]]
                x = parent[x]
            return x

        for r in self.relations:
            ra, rb = find(r.a), find(r.b)
            if ra != rb:
                parent[max(ra, rb)] = min(ra, rb)

        groups: Dict[int, List[int]] = {}
        for v in range(len(self.variables)):
            groups.setdefault(find(v), []).append(v)
        return [groups[k] for k in sorted(groups)]
