from dataclasses import dataclass, field
from typing import Dict, List
from schemas.history import Horizon
from schemas.relations import Constraint, Link
from schemas.series import Series
from core.model import Instance


@dataclass
class ScheduleState:
    """
    A dataclass to hold all the state needed to turn materialized instances
    into solver variables and relations.
    """

    # model inputs
    series_by_id: Dict[str, Series]
    """A dictionary mapping series ids to their definitions."""
    instances: List[Instance]
    """Placed (non-gated) instances; the position of each is its variable id."""
    vars_by_series: Dict[str, List[int]]
    """A dictionary mapping each series id to its variable ids in candidate-date order."""
    links: List[Link]
    """Chain links between series."""
    constraints: List[Constraint]
    """Relational constraints between targets."""

    # model params
    horizon: Horizon
    """The inclusive date range being scheduled."""
    slot_minutes: int
    """Time resolution, in minutes, inside a time window."""
    value_order: str
    """`earliest` or `ideal`; the order in which the solver tries domain values."""

    # collections to fill
    relation_counts: Dict[str, int] = field(default_factory=dict)
    """Number of relations created per link / constraint id."""
