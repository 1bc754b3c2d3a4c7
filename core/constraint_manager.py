from typing import Callable
from core.model import RelationModel
from core.state import ScheduleState
from utils.logger import get_logger

logger = get_logger(__name__)


class ConstraintManager:
    def __init__(self, model: RelationModel, state: ScheduleState):
        self.model = model
        self.state = state
        self.rules: list[Callable] = []

    def add_rule(self, rule_func: Callable, condition: bool = True):
        """Register a rule with optional enablement condition."""
        if condition:
            self.rules.append(rule_func)

    def apply_all(self):
        """Apply all registered rules in order, logging the relations each one adds."""
        for rule in self.rules:
            before = len(self.model.relations)
            rule(self.model, self.state)
            logger.debug(f"{rule.__name__}: +{len(self.model.relations) - before} relations")
