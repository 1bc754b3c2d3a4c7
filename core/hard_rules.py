from dataclasses import dataclass
from ortools.sat.python import cp_model
from typing import Any, Iterable
from core.model import Relation


@dataclass
class HardRule:
    flag: Any
    message: str
    kind: str = "constraint"
    """`link` or `constraint`: which input list the rule id belongs to."""


def _describe(relation: Relation) -> str:
    match relation.kind:
        case "link":
            return f"Link '{relation.origin}' cannot keep the child within its target distance."
        case "mustBeWithin":
            return f"Constraint '{relation.origin}' (mustBeWithin {relation.high} min) cannot be satisfied."
        case _:
            return f"Constraint '{relation.origin}' ({relation.kind}) cannot be satisfied."


def define_hard_rules(
    model: cp_model.CpModel, relations: Iterable[Relation]
) -> dict[str, HardRule]:
    """One assumption flag per link / constraint id that produced any of `relations`."""
    rules: dict[str, HardRule] = {}
    for r in relations:
        if r.origin in rules or r.origin_kind == "overlap":
            continue
        rules[r.origin] = HardRule(
            model.NewBoolVar(f"assume_{r.origin}"),
            _describe(r),
            r.origin_kind,
        )
    return rules
