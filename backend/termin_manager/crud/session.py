import logging
import uuid
from datetime import timedelta

from sqlalchemy.orm import Session

from termin_manager.core.settings import settings
from termin_manager.core.unit_of_work import with_retry
from termin_manager.crud.team import resolve_team
from termin_manager.models.team import TeamSession, utcnow

logger = logging.getLogger(__name__)


def open_session(db: Session, channel_code: str) -> TeamSession:
    """Exchanges a channel code for a server-held session bound to that team. NotFound on unknown code."""
    team = resolve_team(db, channel_code)

    def work():
        now = utcnow()
        row = TeamSession(
            team_id=team.id,
            created_at=now,
            expires_at=now + timedelta(minutes=settings.SESSION_TTL_MIN),
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    row = with_retry(db, work)
    logger.info("session %s opened for team %s", row.id, row.team_id)
    return row


def get_active_session(db: Session, session_id) -> TeamSession | None:
    try:
        sid = session_id if isinstance(session_id, uuid.UUID) else uuid.UUID(str(session_id))
    except (TypeError, ValueError):
        return None

    row = with_retry(db, lambda: db.get(TeamSession, sid))
    if row is None or row.revoked_at is not None:
        return None
    if row.expires_at <= utcnow():
        return None
    return row


def revoke_session(db: Session, row: TeamSession) -> None:
    def work():
        row.revoked_at = utcnow()
        db.commit()

    with_retry(db, work)
    logger.info("session %s revoked", row.id)
