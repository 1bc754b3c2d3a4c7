from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Literal, Optional
from datetime import date
from utils.constants import SLOT_MINUTES, SOLVER_TIMEOUT_SECONDS, VALUE_ORDER


class ScheduleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    startDate: date
    endDate: date
    timeoutSeconds: Optional[float] = Field(default=SOLVER_TIMEOUT_SECONDS, gt=0)
    valueOrder: Literal["earliest", "ideal"] = VALUE_ORDER
    slotMinutes: int = Field(default=SLOT_MINUTES, ge=1, le=60)
    diagnose: bool = True

    @model_validator(mode="after")
    def check_range(self) -> "ScheduleRequest":
        """Reject an empty horizon before any work is done."""
        if self.endDate < self.startDate:
            raise ValueError("endDate must be on or after startDate.")
        return self
