from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Literal, Optional
from datetime import date, datetime
from utils.time_date import parse_local_date, parse_local_datetime


class Completion(BaseModel):
    """A recorded execution of a series instance. Append-only and immutable."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    seriesId: str = Field(min_length=1)
    startTime: datetime
    endTime: datetime
    actualDuration: int = Field(ge=1)
    """Minutes actually spent."""

    @field_validator("startTime", "endTime", mode="before")
    @classmethod
    def parse_times(cls, value: Any) -> Any:
        return parse_local_datetime(value)

    @model_validator(mode="after")
    def check_order(self) -> "Completion":
        if self.endTime < self.startTime:
            raise ValueError("Completion endTime must not be before startTime.")
        return self

    @property
    def day(self) -> date:
        return self.startTime.date()


class Horizon(BaseModel):
    """Requested scheduling range, inclusive at both ends."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_dates(cls, value: Any) -> Any:
        return parse_local_date(value)

    @model_validator(mode="after")
    def check_order(self) -> "Horizon":
        if self.end < self.start:
            raise ValueError("Horizon end must be on or after its start.")
        return self

    @property
    def num_days(self) -> int:
        return (self.end - self.start).days + 1


class InstanceException(BaseModel):
    """
    A change to one occurrence of a series, keyed by the date the recurrence
    produced for it.

    `cancelled` removes the occurrence. `rescheduled` pins it to `newTime`,
    which may fall on another date.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    seriesId: str = Field(min_length=1)
    originalDate: date
    type: Literal["cancelled", "rescheduled"]
    newTime: Optional[datetime] = None

    @field_validator("originalDate", mode="before")
    @classmethod
    def parse_date(cls, value: Any) -> Any:
        return parse_local_date(value)

    @field_validator("newTime", mode="before")
    @classmethod
    def parse_new_time(cls, value: Any) -> Any:
        return None if value is None else parse_local_datetime(value)

    @model_validator(mode="after")
    def check_new_time(self) -> "InstanceException":
        if self.type == "rescheduled" and self.newTime is None:
            raise ValueError("A rescheduled instance needs a newTime.")
        if self.type == "cancelled" and self.newTime is not None:
            raise ValueError("A cancelled instance takes no newTime.")
        return self
