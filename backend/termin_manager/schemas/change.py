import uuid
from datetime import datetime
from typing import Any, Dict, Literal

from pydantic import BaseModel


class ChangeOut(BaseModel):
    seq: int
    team_id: uuid.UUID
    entity: Literal["appointment", "notification"]
    op: Literal["insert", "update", "delete"]
    row: Dict[str, Any]
    committed_at: datetime | None = None


class ChangesPage(BaseModel):
    team_id: uuid.UUID
    since: int
    last_seq: int
    changes: list[ChangeOut]
