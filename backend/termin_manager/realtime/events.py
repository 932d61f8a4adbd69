from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Literal

Entity = Literal["appointment", "notification"]
Op = Literal["insert", "update", "delete"]


@dataclass(frozen=True)
class Change:
    """
    One committed mutation as seen by subscribers.

    `row` is the post-image for insert/update and {"id": ...} for delete.
    Consumers apply idempotently by row id (+ updated_at where present).
    """

    seq: int
    team_id: uuid.UUID
    entity: Entity
    op: Op
    row: Dict[str, Any] = field(default_factory=dict)
    committed_at: datetime | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "team_id": str(self.team_id),
            "entity": self.entity,
            "op": self.op,
            "row": self.row,
            "committed_at": self.committed_at.isoformat() if self.committed_at else None,
        }

    @classmethod
    def from_log(cls, entry) -> "Change":
        return cls(
            seq=entry.seq,
            team_id=entry.team_id,
            entity=entry.entity,
            op=entry.op,
            row=dict(entry.payload or {}),
            committed_at=entry.committed_at,
        )
