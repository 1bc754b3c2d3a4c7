import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
from core.model import DomainView, Relation, RelationModel, Slot
from core.state import ScheduleState
from scheduler.setup import value_rank
from utils.constants import MAX_WORKERS, SOLVER_TIMEOUT_SECONDS
from utils.logger import get_logger

logger = get_logger(__name__)

# how many revisions between two deadline checks
_CHECK_EVERY = 256


class SolveStatus(str, Enum):
    SOLVED = "solved"
    UNSATISFIABLE = "unsatisfiable"
    TIMED_OUT = "timedOut"


class _Cancelled(Exception):
    pass


@dataclass
class Deadline:
    """Wall-clock budget and/or an external cancellation event."""

    at: Optional[float] = None
    cancel_event: Optional[threading.Event] = None

    @classmethod
    def after(cls, seconds: Optional[float], cancel_event: Optional[threading.Event] = None):
        at = None if seconds is None else time.monotonic() + seconds
        return cls(at, cancel_event)

    def expired(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.at is not None and time.monotonic() >= self.at

    def check(self):
        if self.expired():
            raise _Cancelled()


@dataclass
class ComponentResult:
    variables: List[int]
    """Global variable ids of the component, ascending."""
    series_ids: List[str]
    status: SolveStatus
    assignment: Dict[int, Slot] = field(default_factory=dict)
    """Full assignment when solved; the variables already fixed when timed out."""
    culprit: Optional[Relation] = None
    """Last relation whose propagation emptied a domain."""
    empty_variable: Optional[int] = None
    """A variable whose initial domain was already empty."""
    relations: List[Relation] = field(default_factory=list)
    decisions: int = 0
    wall_time: float = 0.0

    @property
    def multi_series(self) -> bool:
        return len(self.series_ids) > 1


@dataclass
class SolverResult:
    status: SolveStatus
    components: List[ComponentResult]

    @property
    def assignment(self) -> Dict[int, Slot]:
        merged: Dict[int, Slot] = {}
        for c in self.components:
            merged.update(c.assignment)
        return merged

    @property
    def failed(self) -> List[ComponentResult]:
        return [c for c in self.components if c.status != SolveStatus.SOLVED]

    @property
    def wall_time(self) -> float:
        return sum(c.wall_time for c in self.components)


@dataclass
class _Frame:
    """One decision point: the variable, its ordered values and the domains before deciding."""

    var: int
    values: List[Slot]
    snapshot: List[List[Slot]]
    next: int = 0


class _Propagator:
    """AC-3 over the local arena of one component."""

    def __init__(self, rels: List[Tuple[Relation, int, int]], size: int, deadline: Deadline):
        self.rels = rels
        self.deadline = deadline
        self.touching: List[List[int]] = [[] for _ in range(size)]
        for i, (_, a, b) in enumerate(rels):
            self.touching[a].append(i)
            self.touching[b].append(i)
        self._views: Dict[int, Tuple[List[Slot], DomainView]] = {}
        self._revisions = 0

    def view(self, arena: List[List[Slot]], pos: int) -> DomainView:
        cached = self._views.get(pos)
        if cached is not None and cached[0] is arena[pos]:
            return cached[1]
        view = DomainView(arena[pos])
        self._views[pos] = (arena[pos], view)
        return view

    def all_arcs(self) -> List[Tuple[int, int]]:
        arcs = []
        for i, (_, a, b) in enumerate(self.rels):
            arcs.append((i, a))
            arcs.append((i, b))
        return arcs

    def arcs_into_neighbours(self, pos: int) -> List[Tuple[int, int]]:
        arcs = []
        for i in self.touching[pos]:
            _, a, b = self.rels[i]
            arcs.append((i, b if a == pos else a))
        return arcs

    def run(self, arena: List[List[Slot]], arcs: List[Tuple[int, int]]) -> Optional[Relation]:
        """
        Revise until no arc changes. Returns the relation that emptied a domain,
        or None when every domain kept at least one value.
        """
        queue = deque(arcs)
        queued = set(arcs)
        while queue:
            self._revisions += 1
            if self._revisions % _CHECK_EVERY == 0:
                self.deadline.check()
            ri, x = queue.popleft()
            queued.discard((ri, x))
            rel, a, b = self.rels[ri]
            y = b if x == a else a
            other = self.view(arena, y)
            domain = arena[x]
            kept = [v for v in domain if rel.supported(v, x == a, other)]
            if len(kept) == len(domain):
                continue
            if not kept:
                return rel
            arena[x] = kept
            for rj in self.touching[x]:
                if rj == ri:
                    continue
                _, ja, jb = self.rels[rj]
                arc = (rj, jb if ja == x else ja)
                if arc not in queued:
                    queued.add(arc)
                    queue.append(arc)
        return None


def _select_variable(arena: List[List[Slot]]) -> Optional[int]:
    """Most constrained undecided variable (smallest domain > 1); ties go to the lowest id."""
    best, best_size = None, None
    for pos, domain in enumerate(arena):
        size = len(domain)
        if size > 1 and (best_size is None or size < best_size):
            best, best_size = pos, size
    return best


def solve_component(
    model: RelationModel,
    state: ScheduleState,
    var_ids: Sequence[int],
    relations: Sequence[Relation],
    deadline: Deadline,
) -> ComponentResult:
    """
    Solve one connected component with arc consistency then backtracking.

    The search keeps an explicit stack of decision frames; each frame holds the
    domain arena as it was before the decision, so undoing a decision is just
    dropping back to that snapshot.
    """
    started = time.perf_counter()
    var_ids = list(var_ids)
    pos = {v: i for i, v in enumerate(var_ids)}
    series_ids = sorted({model.variables[v].series_id for v in var_ids})
    result = ComponentResult(var_ids, series_ids, SolveStatus.UNSATISFIABLE, relations=list(relations))

    arena: List[List[Slot]] = [list(model.variables[v].domain) for v in var_ids]
    for i, domain in enumerate(arena):
        if not domain:
            result.empty_variable = var_ids[i]
            result.wall_time = time.perf_counter() - started
            return result

    local = [(r, pos[r.a], pos[r.b]) for r in relations]
    prop = _Propagator(local, len(var_ids), deadline)

    def rank(p: int):
        inst = state.instances[var_ids[p]]
        return lambda slot: value_rank(slot, inst, state.value_order)

    try:
        deadline.check()
        wipeout = prop.run(arena, prop.all_arcs())
        if wipeout is not None:
            result.culprit = wipeout
            result.wall_time = time.perf_counter() - started
            return result

        stack: List[_Frame] = []
        while True:
            deadline.check()
            var = _select_variable(arena)
            if var is None:
                result.status = SolveStatus.SOLVED
                result.assignment = {var_ids[i]: d[0] for i, d in enumerate(arena)}
                break

            stack.append(_Frame(var, sorted(arena[var], key=rank(var)), arena))
            while stack:
                frame = stack[-1]
                if frame.next >= len(frame.values):
                    stack.pop()
                    continue
                value = frame.values[frame.next]
                frame.next += 1
                result.decisions += 1

                trial = list(frame.snapshot)
                trial[frame.var] = [value]
                wipeout = prop.run(trial, prop.arcs_into_neighbours(frame.var))
                if wipeout is None:
                    arena = trial
                    break
                result.culprit = wipeout
            else:
                # every value of the first decision failed
                break
    except _Cancelled:
        result.status = SolveStatus.TIMED_OUT
        result.assignment = {
            var_ids[i]: d[0] for i, d in enumerate(arena) if len(d) == 1
        }

    result.wall_time = time.perf_counter() - started
    return result


def _component_relations(model: RelationModel, components: List[List[int]]) -> List[List[Relation]]:
    owner = {}
    for ci, comp in enumerate(components):
        for v in comp:
            owner[v] = ci
    grouped: List[List[Relation]] = [[] for _ in components]
    for r in model.relations:
        grouped[owner[r.a]].append(r)
    return grouped


def solve_schedule(
    model: RelationModel,
    state: ScheduleState,
    timeout: Optional[float] = SOLVER_TIMEOUT_SECONDS,
    max_workers: int = MAX_WORKERS,
    cancel_event: Optional[threading.Event] = None,
) -> SolverResult:
    """
    Solve every connected component of the relation graph.

    Components are independent, so with `max_workers > 1` they run on a thread
    pool; results are always collected in component order.
    """
    components = model.components()
    relations = _component_relations(model, components)
    deadline = Deadline.after(timeout, cancel_event)
    logger.info(
        f"🚀 Solving {len(model.variables)} variables, {len(model.relations)} relations "
        f"in {len(components)} components..."
    )

    def run(args):
        comp, rels = args
        return solve_component(model, state, comp, rels, deadline)

    work = list(zip(components, relations))
    if max_workers > 1 and len(components) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(run, work))
    else:
        results = [run(w) for w in work]

    if any(r.status == SolveStatus.TIMED_OUT for r in results):
        status = SolveStatus.TIMED_OUT
    elif any(r.status == SolveStatus.UNSATISFIABLE and r.multi_series for r in results):
        status = SolveStatus.UNSATISFIABLE
    else:
        status = SolveStatus.SOLVED

    solver_result = SolverResult(status, results)
    logger.info(f"⏱ Solve time: {solver_result.wall_time:.2f} seconds")
    logger.info(f"▶️ Solver status: {status.value}")
    return solver_result
