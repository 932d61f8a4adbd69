from datetime import datetime

from sqlalchemy import JSON, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from termin_manager.db import Base, UTCDateTime
from termin_manager.models.scoped import TeamScoped
from termin_manager.models.team import utcnow


class ChangeLogEntry(TeamScoped, Base):
    __tablename__ = "change_log"
    __table_args__ = (UniqueConstraint("team_id", "seq", name="uq_change_log_team_seq"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    # "appointment" | "notification"
    entity: Mapped[str] = mapped_column(String(20), nullable=False)
    # "insert" | "update" | "delete"
    op: Mapped[str] = mapped_column(String(10), nullable=False)

    row_id: Mapped[str] = mapped_column(String(36), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    committed_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
