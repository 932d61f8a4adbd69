import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from termin_manager.db import Base, UTCDateTime
from termin_manager.models.scoped import TeamScoped
from termin_manager.models.team import utcnow

NOTIFICATION_TYPES = ("new_termin", "reminder", "custom")


class Notification(TeamScoped, Base):
    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint("type IN ('new_termin', 'reminder', 'custom')", name="ck_notifications_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # weak reference: cleared when the appointment goes away
    termin_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("termine.id", ondelete="SET NULL"), nullable=True, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(16), default="custom", nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False, index=True)
