from pydantic import BaseModel, ConfigDict, Field, field_serializer
from typing import Dict, List, Literal, Optional
from datetime import date, datetime
from schemas.history import Horizon
from utils.time_date import format_datetime


class ScheduledInstance(BaseModel):
    model_config = ConfigDict(frozen=True)

    seriesId: str
    title: str
    date: date
    candidateDate: date
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    duration: int
    assignedCyclingItem: Optional[str] = None
    gated: bool = False
    """True when the pattern condition suppressed this occurrence; it has no times."""
    rescheduledFrom: Optional[date] = None
    """Recurrence date of an occurrence moved by a `rescheduled` exception."""

    @field_serializer("startTime", "endTime")
    def serialize_time(self, value: Optional[datetime]):
        return None if value is None else format_datetime(value)


class ReminderDue(BaseModel):
    model_config = ConfigDict(frozen=True)

    seriesId: str
    instanceDate: date
    tag: str
    minutesBefore: int
    fireAt: datetime

    @field_serializer("fireAt")
    def serialize_fire_at(self, value: datetime):
        return format_datetime(value)


class SeriesIssue(BaseModel):
    """A recoverable, single-series problem that did not abort the schedule."""

    model_config = ConfigDict(frozen=True)

    seriesId: str
    message: str
    instanceDates: List[date] = Field(default_factory=list)


class Schedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["solved"] = "solved"
    horizon: Horizon
    instances: List[ScheduledInstance] = Field(default_factory=list)
    """Ordered by date, start time, series id."""
    cycling: Dict[str, int] = Field(default_factory=dict)
    """Next `currentIndex` per cycling series, for the caller to persist."""
    reminders: List[ReminderDue] = Field(default_factory=list)
    issues: List[SeriesIssue] = Field(default_factory=list)


class ConflictReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["unsatisfiable", "timedOut"]
    constraintIds: List[str] = Field(default_factory=list)
    linkIds: List[str] = Field(default_factory=list)
    cause: str
    instances: List[ScheduledInstance] = Field(default_factory=list)
    """Partial placement; only filled when the search timed out."""
