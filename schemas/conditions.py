from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from typing import Annotated, Any, List, Literal, Optional, Union


Comparison = Literal["<", "<=", "=", "==", "!=", ">=", ">"]


class Target(BaseModel):
    """
    What a condition or constraint refers to: a tag, a series id, or both.

    When both are set, a series matches only if it has that id *and* carries
    the tag.
    """

    model_config = ConfigDict(frozen=True)

    tag: Optional[str] = Field(default=None, min_length=1)
    seriesId: Optional[str] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def check_not_empty(self) -> "Target":
        if self.tag is None and self.seriesId is None:
            raise ValueError("Target requires a tag, a seriesId, or both.")
        return self

    def matches(self, series_id: str, tags) -> bool:
        if self.seriesId is not None and self.seriesId != series_id:
            return False
        if self.tag is not None and self.tag not in tags:
            return False
        return True

    def describe(self) -> str:
        parts = []
        if self.seriesId is not None:
            parts.append(f"series '{self.seriesId}'")
        if self.tag is not None:
            parts.append(f"tag '{self.tag}'")
        return " & ".join(parts)


class CountCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["count"]
    target: Target
    comparison: Comparison
    threshold: int = Field(ge=0)
    windowDays: int = Field(ge=1)


class DaysSinceCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["daysSince"]
    target: Target
    comparison: Comparison
    threshold: int = Field(ge=0)


class AndCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["and"]
    conditions: List["Condition"] = Field(min_length=1)


class OrCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["or"]
    conditions: List["Condition"] = Field(min_length=1)


class NotCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["not"]
    condition: "Condition"

    @model_validator(mode="before")
    @classmethod
    def unwrap_single_child(cls, values: Any) -> Any:
        """
        Accept `{"type": "not", "conditions": [c]}` as well as `{"condition": c}`.

        A `conditions` list must hold exactly one child; zero or several children
        make the tree malformed.
        """
        if isinstance(values, dict) and "conditions" in values:
            children = values["conditions"]
            if not isinstance(children, list) or len(children) != 1:
                count = len(children) if isinstance(children, list) else "non-list"
                raise ValueError(f"'not' takes exactly one sub-condition, got {count}.")
            values = {k: v for k, v in values.items() if k != "conditions"}
            values["condition"] = children[0]
        return values


Condition = Annotated[
    Union[CountCondition, DaysSinceCondition, AndCondition, OrCondition, NotCondition],
    Field(discriminator="type"),
]

AndCondition.model_rebuild()
OrCondition.model_rebuild()
NotCondition.model_rebuild()

ConditionAdapter = TypeAdapter(Condition)
