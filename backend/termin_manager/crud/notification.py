import uuid
from typing import Any, Dict, List

from sqlalchemy import select

from termin_manager.core.errors import NotFound, ValidationError
from termin_manager.core.unit_of_work import ChangeRecorder, run_write, with_retry
from termin_manager.crud.validation import as_uuid, parse
from termin_manager.models.appointment import Appointment
from termin_manager.models.notification import Notification
from termin_manager.models.team import utcnow
from termin_manager.schemas.notification import NotificationCreate, NotificationOut
from termin_manager.tenant_context import TeamContext

ENTITY = "notification"


def notification_row(n: Notification) -> Dict[str, Any]:
    return NotificationOut.model_validate(n).model_dump(mode="json")


def _load(ctx: TeamContext, notification_id) -> Notification:
    nid = as_uuid(notification_id, "notification")
    n = ctx.db.scalar(
        select(Notification).where(Notification.id == nid).where(Notification.team_id == ctx.team_id)
    )
    if n is None:
        raise NotFound("notification not found")
    return n


def add_notification(ctx: TeamContext, rec: ChangeRecorder, data: NotificationCreate) -> Notification:
    """Inserts inside an already running write (used by the appointment store too)."""
    if data.termin_id is not None:
        linked = ctx.db.scalar(
            select(Appointment.id).where(Appointment.id == data.termin_id).where(Appointment.team_id == ctx.team_id)
        )
        if linked is None:
            raise ValidationError(
                "termin_id does not reference an appointment of this team",
                field="termin_id",
            )

    n = Notification(
        team_id=ctx.team_id,
        termin_id=data.termin_id,
        title=data.title,
        message=data.message,
        type=data.type,
        read=False,
        created_at=utcnow(),
    )
    ctx.db.add(n)
    ctx.db.flush()
    rec.inserted(ENTITY, n, notification_row)
    return n


def create_notification(ctx: TeamContext, fields, termin_id=None) -> Notification:
    data = parse(NotificationCreate, fields)
    if termin_id is not None:
        try:
            link = termin_id if isinstance(termin_id, uuid.UUID) else uuid.UUID(str(termin_id))
        except ValueError:
            raise ValidationError("termin_id is not a valid id", field="termin_id", value=str(termin_id))
        data = data.model_copy(update={"termin_id": link})

    return run_write(ctx, lambda rec: add_notification(ctx, rec, data))


def get_notification(ctx: TeamContext, notification_id) -> Notification:
    return with_retry(ctx.db, lambda: _load(ctx, notification_id))


def mark_read(ctx: TeamContext, notification_id) -> Notification:
    """Idempotent: an already-read notification is returned unchanged, with no change event."""

    def work(rec: ChangeRecorder) -> Notification:
        n = _load(ctx, notification_id)
        if not n.read:
            n.read = True
            rec.updated(ENTITY, n, notification_row)
        return n

    return run_write(ctx, work)


def delete_notification(ctx: TeamContext, notification_id) -> None:
    def work(rec: ChangeRecorder) -> None:
        n = _load(ctx, notification_id)
        ctx.db.delete(n)
        rec.deleted(ENTITY, n.id)

    run_write(ctx, work)


def list_notifications(ctx: TeamContext, read: bool | None = None) -> List[Notification]:
    q = (
        select(Notification)
        .where(Notification.team_id == ctx.team_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    if read is not None:
        q = q.where(Notification.read == bool(read))

    return with_retry(ctx.db, lambda: list(ctx.db.scalars(q)))
