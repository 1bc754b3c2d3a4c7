from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Annotated, Any, FrozenSet, List, Literal, Optional, Union
from datetime import date, time
from utils.time_date import normalise_weekday, parse_local_date, parse_local_time


# Recurrence patterns
class DailyPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["daily"]


class WeeklyPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["weekly"]
    daysOfWeek: List[str] = Field(min_length=1)
    interval: int = Field(default=1, ge=1)
    """Repeat every `interval` weeks, counted from the week the series starts."""

    @field_validator("daysOfWeek", mode="before")
    @classmethod
    def normalise_days(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [normalise_weekday(d) for d in value]
        return value


class MonthlyPattern(BaseModel):
    """
    A fixed day of the month (`day`) or the nth weekday of the month
    (`weekday` + `nth`, where `nth = -1` means the last one).

    `monthEnd` decides what happens when `day` does not exist in a month:
    `skip` drops that month, `clamp` uses the last day instead.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["monthly"]
    day: Optional[int] = Field(default=None, ge=1, le=31)
    weekday: Optional[str] = None
    nth: Optional[int] = None
    monthEnd: Literal["skip", "clamp"] = "skip"

    @field_validator("weekday", mode="before")
    @classmethod
    def normalise_day_name(cls, value: Any) -> Any:
        return None if value is None else normalise_weekday(value)

    @model_validator(mode="after")
    def check_rule(self) -> "MonthlyPattern":
        if (self.day is None) == (self.weekday is None):
            raise ValueError("Monthly pattern needs exactly one of 'day' or 'weekday'.")
        if self.weekday is not None and self.nth not in (-1, 1, 2, 3, 4, 5):
            raise ValueError("Monthly weekday pattern needs 'nth' in 1..5 or -1 (last).")
        if self.day is not None and self.nth is not None:
            raise ValueError("'nth' only applies to monthly weekday patterns.")
        return self


class CustomPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["custom"]
    intervalDays: int = Field(ge=1)
    anchorDate: Optional[date] = None

    @field_validator("anchorDate", mode="before")
    @classmethod
    def parse_anchor(cls, value: Any) -> Any:
        return None if value is None else parse_local_date(value)


Pattern = Annotated[
    Union[DailyPattern, WeeklyPattern, MonthlyPattern, CustomPattern],
    Field(discriminator="type"),
]


class SeriesPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    pattern: Pattern
    conditionId: Optional[str] = None


# Series options
class Bounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    startDate: date
    endDate: Optional[date] = None

    @field_validator("startDate", "endDate", mode="before")
    @classmethod
    def parse_dates(cls, value: Any) -> Any:
        return None if value is None else parse_local_date(value)

    @model_validator(mode="after")
    def check_order(self) -> "Bounds":
        if self.endDate is not None and self.endDate < self.startDate:
            raise ValueError("bounds.endDate must be on or after bounds.startDate.")
        return self


class TimeWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    earliest: time
    latest: time

    @field_validator("earliest", "latest", mode="before")
    @classmethod
    def parse_times(cls, value: Any) -> Any:
        return parse_local_time(value)

    @model_validator(mode="after")
    def check_order(self) -> "TimeWindow":
        if self.earliest > self.latest:
            raise ValueError("timeWindow.earliest must not be after timeWindow.latest.")
        return self


class Wiggle(BaseModel):
    model_config = ConfigDict(frozen=True)

    daysBefore: int = Field(default=0, ge=0)
    daysAfter: int = Field(default=0, ge=0)
    timeWindow: Optional[TimeWindow] = None


class Reminder(BaseModel):
    model_config = ConfigDict(frozen=True)

    minutesBefore: int = Field(ge=0)
    tag: str = Field(min_length=1)


class Cycling(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: List[str] = Field(min_length=1)
    mode: Literal["sequential", "random"] = "sequential"
    gapLeap: bool = False
    currentIndex: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_index(self) -> "Cycling":
        if self.currentIndex >= len(self.items):
            raise ValueError(
                f"cycling.currentIndex {self.currentIndex} is out of range for {len(self.items)} items."
            )
        return self


class AdaptiveDuration(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["lastN", "windowDays"]
    value: int = Field(ge=1)
    multiplier: float = Field(default=1.0, ge=0.5)
    fallback: Optional[int] = Field(default=None, ge=1)
    """Required; a missing fallback is rejected during structural validation."""
    minimum: Optional[int] = Field(default=None, ge=1)
    maximum: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_clamp(self) -> "AdaptiveDuration":
        if (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        ):
            raise ValueError("adaptiveDuration.minimum must be <= maximum.")
        return self


class Series(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    patterns: List[SeriesPattern] = Field(min_length=1)
    duration: int = Field(ge=1)
    """Scheduled length in minutes."""
    tags: FrozenSet[str] = frozenset()
    locked: bool = False
    """Locked series keep their default placement; the solver never moves them."""
    bounds: Optional[Bounds] = None
    fixed: bool = False
    wiggle: Optional[Wiggle] = None
    timeOfDay: Optional[time] = None
    reminders: List[Reminder] = Field(default_factory=list)
    cycling: Optional[Cycling] = None
    adaptiveDuration: Optional[AdaptiveDuration] = None

    @field_validator("timeOfDay", mode="before")
    @classmethod
    def parse_time_of_day(cls, value: Any) -> Any:
        return None if value is None else parse_local_time(value)

    @model_validator(mode="after")
    def check_fixed_wiggle(self) -> "Series":
        if self.fixed and self.wiggle is not None:
            raise ValueError("A series cannot be both 'fixed' and have 'wiggle'.")
        return self
