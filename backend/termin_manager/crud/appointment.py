import datetime as dt
import logging
from typing import Any, Dict, List

from sqlalchemy import select

from termin_manager.core.errors import NotFound, ValidationError
from termin_manager.core.settings import settings
from termin_manager.core.unit_of_work import ChangeRecorder, run_write, with_retry
from termin_manager.crud.notification import ENTITY as NOTIFICATION, add_notification, notification_row
from termin_manager.crud.validation import as_uuid, parse
from termin_manager.models.appointment import APPOINTMENT_STATUSES, Appointment
from termin_manager.models.notification import Notification
from termin_manager.models.team import utcnow
from termin_manager.schemas.appointment import AppointmentCreate, AppointmentOut, AppointmentUpdate
from termin_manager.schemas.notification import NotificationCreate
from termin_manager.tenant_context import TeamContext

logger = logging.getLogger(__name__)

ENTITY = "appointment"


def appointment_row(a: Appointment) -> Dict[str, Any]:
    return AppointmentOut.model_validate(a).model_dump(mode="json")


def _load(ctx: TeamContext, appointment_id) -> Appointment:
    aid = as_uuid(appointment_id, "appointment")
    a = ctx.db.scalar(
        select(Appointment).where(Appointment.id == aid).where(Appointment.team_id == ctx.team_id)
    )
    if a is None:
        raise NotFound("appointment not found")
    return a


def _as_date(value, field: str) -> dt.date | None:
    if value is None or isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD", field=field, value=str(value))


def create_appointment(ctx: TeamContext, fields) -> Appointment:
    data = parse(AppointmentCreate, fields)

    def work(rec: ChangeRecorder) -> Appointment:
        now = utcnow()
        a = Appointment(team_id=ctx.team_id, created_at=now, updated_at=now, **data.model_dump())
        ctx.db.add(a)
        ctx.db.flush()
        rec.inserted(ENTITY, a, appointment_row)

        if settings.AUTO_NOTIFY_NEW_APPOINTMENT:
            add_notification(
                ctx,
                rec,
                NotificationCreate(
                    title="Neuer Termin",
                    message=f"{a.name} am {a.date:%d.%m.%Y} um {a.time:%H:%M}",
                    type="new_termin",
                    termin_id=a.id,
                ),
            )
        return a

    return run_write(ctx, work)


def get_appointment(ctx: TeamContext, appointment_id) -> Appointment:
    return with_retry(ctx.db, lambda: _load(ctx, appointment_id))


def update_appointment(ctx: TeamContext, appointment_id, fields) -> Appointment:
    """
    Applies a partial update. Last writer wins; updated_at is refreshed even
    when the sent values equal the stored ones.
    """
    patch = parse(AppointmentUpdate, fields).model_dump(exclude_unset=True)

    def work(rec: ChangeRecorder) -> Appointment:
        a = _load(ctx, appointment_id)
        for key, value in patch.items():
            setattr(a, key, value)
        a.updated_at = utcnow()
        rec.updated(ENTITY, a, appointment_row)
        return a

    return run_write(ctx, work)


def delete_appointment(ctx: TeamContext, appointment_id) -> None:
    """Hard delete. Notifications pointing at it survive with termin_id cleared."""

    def work(rec: ChangeRecorder) -> None:
        a = _load(ctx, appointment_id)
        linked = ctx.db.scalars(
            select(Notification).where(Notification.termin_id == a.id).where(Notification.team_id == ctx.team_id)
        ).all()
        for n in linked:
            n.termin_id = None
            rec.updated(NOTIFICATION, n, notification_row)
        ctx.db.flush()

        ctx.db.delete(a)
        rec.deleted(ENTITY, a.id)
        if linked:
            logger.debug("appointment %s deleted, %s notification(s) unlinked", a.id, len(linked))

    run_write(ctx, work)


def list_appointments(
    ctx: TeamContext,
    date_from=None,
    date_to=None,
    status: str | None = None,
) -> List[Appointment]:
    """Appointments of the team ordered by date, then time."""
    start = _as_date(date_from, "date_from")
    end = _as_date(date_to, "date_to")
    if start and end and start > end:
        raise ValidationError("date_from must not be after date_to", field="date_from")
    if status is not None and status not in APPOINTMENT_STATUSES:
        raise ValidationError("unknown status", field="status", value=status, expected=list(APPOINTMENT_STATUSES))

    q = (
        select(Appointment)
        .where(Appointment.team_id == ctx.team_id)
        .order_by(Appointment.date, Appointment.time, Appointment.created_at)
    )
    if start is not None:
        q = q.where(Appointment.date >= start)
    if end is not None:
        q = q.where(Appointment.date <= end)
    if status is not None:
        q = q.where(Appointment.status == status)

    return with_retry(ctx.db, lambda: list(ctx.db.scalars(q)))
