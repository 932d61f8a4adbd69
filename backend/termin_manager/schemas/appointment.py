import datetime as dt
import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

AppointmentStatus = Literal["pending", "confirmed"]


class AppointmentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(default="", max_length=50)
    date: dt.date
    time: dt.time
    note: str = ""
    reminder_minutes: int = Field(default=15, ge=0)
    status: AppointmentStatus = "pending"
    created_by: str = Field(default="chef", min_length=1, max_length=40)


class AppointmentUpdate(BaseModel):
    """Partial update; only the fields sent are applied. None is never a valid value."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=200)
    phone: str | None = Field(default=None, max_length=50)
    date: dt.date | None = None
    time: dt.time | None = None
    note: str | None = None
    reminder_minutes: int | None = Field(default=None, ge=0)
    status: AppointmentStatus | None = None
    created_by: str | None = Field(default=None, min_length=1, max_length=40)

    @model_validator(mode="after")
    def _no_nulls(self):
        nulled = sorted(f for f in self.model_fields_set if getattr(self, f) is None)
        if nulled:
            raise ValueError(f"fields may not be null: {', '.join(nulled)}")
        return self


class AppointmentOut(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    name: str
    phone: str
    date: dt.date
    time: dt.time
    note: str
    reminder_minutes: int
    status: AppointmentStatus
    created_by: str
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)
