import uuid
import datetime as dt

from sqlalchemy import CheckConstraint, Date, Integer, String, Text, Time, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from termin_manager.db import Base, UTCDateTime
from termin_manager.models.scoped import TeamScoped
from termin_manager.models.team import utcnow

APPOINTMENT_STATUSES = ("pending", "confirmed")


class Appointment(TeamScoped, Base):
    __tablename__ = "termine"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'confirmed')", name="ck_termine_status"),
        CheckConstraint("reminder_minutes >= 0", name="ck_termine_reminder_minutes"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # customer / company name
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    note: Mapped[str] = mapped_column(Text, default="", nullable=False)
    reminder_minutes: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False, index=True)

    # "chef" | "kollege" by convention, not enforced
    created_by: Mapped[str] = mapped_column(String(40), default="chef", nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
