from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Literal, Optional
from schemas.conditions import Target


ConstraintType = Literal[
    "mustBeOnSameDay",
    "cantBeOnSameDay",
    "mustBeNextTo",
    "cantBeNextTo",
    "mustBeBefore",
    "mustBeAfter",
    "mustBeWithin",
]


class Link(BaseModel):
    """
    Directed chain edge: the child should occur `targetDistance` days after
    the parent, tolerating `earlyWobble` days earlier or `lateWobble` days later.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    parentSeriesId: str = Field(min_length=1)
    childSeriesId: str = Field(min_length=1)
    targetDistance: int = Field(ge=0)
    earlyWobble: int = Field(default=0, ge=0)
    lateWobble: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def default_id(cls, values: Any) -> Any:
        if isinstance(values, dict) and not values.get("id"):
            values = dict(values)
            values["id"] = f"{values.get('parentSeriesId')}->{values.get('childSeriesId')}"
        return values

    @model_validator(mode="after")
    def check_self_link(self) -> "Link":
        if self.parentSeriesId == self.childSeriesId:
            raise ValueError(f"Series '{self.parentSeriesId}' cannot be linked to itself.")
        return self

    @property
    def min_distance(self) -> int:
        return self.targetDistance - self.earlyWobble

    @property
    def max_distance(self) -> int:
        return self.targetDistance + self.lateWobble


class Constraint(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    type: ConstraintType
    source: Target
    dest: Target
    withinMinutes: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_within_minutes(self) -> "Constraint":
        if self.type == "mustBeWithin" and self.withinMinutes is None:
            raise ValueError("'withinMinutes' is required for mustBeWithin constraints.")
        if self.type != "mustBeWithin" and self.withinMinutes is not None:
            raise ValueError(f"'withinMinutes' is only allowed for mustBeWithin, not {self.type}.")
        return self
