import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TeamCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # omitted -> generated; case-sensitive, no whitespace
    channel_code: str | None = Field(default=None, min_length=4, max_length=64, pattern=r"^\S+$")


class TeamOut(BaseModel):
    id: uuid.UUID
    channel_code: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SessionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channel_code: str = Field(min_length=1, max_length=64)


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    team_id: uuid.UUID
    expires_at: datetime


class SessionInfo(BaseModel):
    session_id: uuid.UUID
    team_id: uuid.UUID
    created_at: datetime
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)
