import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

NotificationType = Literal["new_termin", "reminder", "custom"]


class NotificationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    type: NotificationType = "custom"
    termin_id: uuid.UUID | None = None


class NotificationPatch(BaseModel):
    # the read flag is the only mutable field, and it only goes one way
    model_config = ConfigDict(extra="forbid")

    read: Literal[True]


class NotificationOut(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    termin_id: uuid.UUID | None = None
    title: str
    message: str
    type: NotificationType
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
