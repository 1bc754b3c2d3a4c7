from dataclasses import dataclass, field
from ortools.sat.python import cp_model
from typing import Dict, List, Optional, Tuple
from core.hard_rules import HardRule, define_hard_rules
from core.model import Relation, RelationModel
from scheduler.solver import ComponentResult
from utils.constants import DIAGNOSIS_SEED, DIAGNOSIS_TIMEOUT_SECONDS, MINUTES_PER_DAY
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Diagnosis:
    link_ids: List[str] = field(default_factory=list)
    constraint_ids: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    source: str = "cp-sat"
    """`cp-sat` when the minimal set was proven, `propagation` for the fallback culprit."""


def configure_solver(timeout: float = DIAGNOSIS_TIMEOUT_SECONDS, seed: int = DIAGNOSIS_SEED) -> cp_model.CpSolver:
    """Configure the CP solver for a reproducible single-worker run."""
    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = timeout
    solver.parameters.random_seed = seed
    solver.parameters.num_search_workers = 1
    solver.parameters.log_search_progress = False
    return solver


def get_model_size(model: cp_model.CpModel) -> Tuple[int, int]:
    """Get the number of constraints and variables in the model."""
    proto = model.Proto()
    return len(proto.constraints), len(proto.variables)


def build_placement_vars(model: cp_model.CpModel, relation_model: RelationModel, var_ids: List[int], origin: int):
    """
    Day (and, for timed variables, minute) IntVars for each variable.

    Days count from `origin` (an ordinal); minutes are absolute from that day,
    so `t = day * 1440 + minute`. Allowed (day, t) pairs come straight from the
    native domain.
    """
    days: Dict[int, cp_model.IntVar] = {}
    stamps: Dict[int, cp_model.IntVar] = {}
    for v in var_ids:
        var = relation_model.variables[v]
        day_values = sorted({s.day - origin for s in var.domain})
        days[v] = model.NewIntVarFromDomain(cp_model.Domain.FromValues(day_values), f"day_{v}")
        if var.timed:
            pairs = [(s.day - origin, (s.day - origin) * MINUTES_PER_DAY + s.minute) for s in var.domain]
            stamps[v] = model.NewIntVarFromDomain(
                cp_model.Domain.FromValues(sorted({t for _, t in pairs})), f"t_{v}"
            )
            model.AddAllowedAssignments([days[v], stamps[v]], pairs)
    return days, stamps


def _enforce(constraint, *literals):
    """Attach the assumption literals; a None flag leaves the constraint unconditional."""
    present = [lit for lit in literals if lit is not None]
    if present:
        constraint.OnlyEnforceIf(present)
    return constraint


def add_relation(model: cp_model.CpModel, r: Relation, flag, days, stamps):
    da, db = days[r.a], days[r.b]
    match r.kind:
        case "link":
            _enforce(model.AddLinearConstraint(db - da, r.low, r.high), flag)
        case "mustBeOnSameDay":
            _enforce(model.Add(da == db), flag)
        case "cantBeOnSameDay":
            _enforce(model.Add(da != db), flag)
        case "mustBeNextTo":
            _enforce(
                model.AddLinearExpressionInDomain(da - db, cp_model.Domain.FromValues([-1, 1])), flag
            )
        case "cantBeNextTo":
            _enforce(model.Add(da - db != 1), flag)
            _enforce(model.Add(da - db != -1), flag)
        case _:
            # time-based relations are vacuous unless both sides are timed
            if r.a not in stamps or r.b not in stamps:
                return
            ta, tb = stamps[r.a], stamps[r.b]
            match r.kind:
                case "mustBeBefore" | "mustBeAfter":
                    same_day = model.NewBoolVar(f"same_day_{r.a}_{r.b}")
                    model.Add(da == db).OnlyEnforceIf(same_day)
                    model.Add(da != db).OnlyEnforceIf(same_day.Not())
                    if r.kind == "mustBeBefore":
                        _enforce(model.Add(ta + 1 <= tb), flag, same_day)
                    else:
                        _enforce(model.Add(ta >= tb + 1), flag, same_day)
                case "mustBeWithin":
                    _enforce(model.Add(ta - tb <= r.high), flag)
                    _enforce(model.Add(tb - ta <= r.high), flag)
                case "noOverlap":
                    model.AddNoOverlap(
                        [
                            model.NewFixedSizeIntervalVar(ta, r.low, f"iv_{r.a}_{r.b}_a"),
                            model.NewFixedSizeIntervalVar(tb, r.high, f"iv_{r.a}_{r.b}_b"),
                        ]
                    )


def fallback_diagnosis(component: ComponentResult) -> Diagnosis:
    """The native solver's culprit: the last relation whose propagation emptied a domain."""
    diag = Diagnosis(source="propagation")
    r = component.culprit
    if r is None:
        return diag
    match r.origin_kind:
        case "link":
            diag.link_ids.append(r.origin)
        case "constraint":
            diag.constraint_ids.append(r.origin)
        case "overlap":
            series = r.origin.split(":", 1)[1].replace("|", "' and '")
            diag.messages.append(f"Timed instances of '{series}' cannot avoid overlapping.")
            return diag
    diag.messages.append(f"Propagation of '{r.origin}' ({r.kind}) emptied a domain.")
    return diag


def diagnose(
    relation_model: RelationModel,
    component: ComponentResult,
    timeout: float = DIAGNOSIS_TIMEOUT_SECONDS,
) -> Diagnosis:
    """
    Find the smallest set of links / constraints whose removal makes a failed
    component feasible.

    Each link and constraint gets one assumption flag enforcing all of its
    relations; maximizing the number of satisfied flags leaves the dropped
    ones as the conflicting set. No-overlap relations are always enforced.
    Falls back to the propagation culprit when CP-SAT cannot prove an optimum
    in time.
    """
    if component.empty_variable is not None or not component.relations:
        return fallback_diagnosis(component)

    logger.info("🔎 Diagnosing conflict with CP-SAT...")
    model = cp_model.CpModel()
    origin = min(relation_model.variables[v].domain[0].day for v in component.variables)
    days, stamps = build_placement_vars(model, relation_model, component.variables, origin)
    hard_rules: Dict[str, HardRule] = define_hard_rules(model, component.relations)
    if not hard_rules:
        return fallback_diagnosis(component)
    for r in component.relations:
        rule = hard_rules.get(r.origin)
        add_relation(model, r, rule.flag if rule else None, days, stamps)

    model.Maximize(sum(r.flag for r in hard_rules.values()))
    num_constraints, num_vars = get_model_size(model)
    logger.info(f"→ #constraints = {num_constraints},  #vars = {num_vars}")

    solver = configure_solver(timeout)
    status = solver.Solve(model)
    logger.info(f"⏱ Diagnosis time: {solver.WallTime():.2f} seconds")
    if status != cp_model.OPTIMAL:
        logger.info("⚠️ CP-SAT gave no proven answer; using the propagation culprit.")
        return fallback_diagnosis(component)

    dropped = [rid for rid, r in hard_rules.items() if solver.Value(r.flag) == 0]
    if not dropped:
        return fallback_diagnosis(component)

    diag = Diagnosis()
    for rid in sorted(dropped):
        rule = hard_rules[rid]
        if rule.kind == "link":
            diag.link_ids.append(rid)
        else:
            diag.constraint_ids.append(rid)
        diag.messages.append(rule.message)
    logger.info(f"Dropped flags: {', '.join(sorted(dropped))}")
    return diag


def format_cause(diagnoses: List[Diagnosis], extra: Optional[List[str]] = None) -> str:
    """Human-readable cause in the bullet style used by the engine's errors."""
    messages = [m for d in diagnoses for m in d.messages] + list(extra or [])
    lines = ["❌ No feasible schedule. Identified issues:"]
    lines.extend(f"    • {m.strip()}" for m in messages)
    return "\n".join(lines)
