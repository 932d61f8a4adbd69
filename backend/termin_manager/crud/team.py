import logging
import secrets

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from termin_manager.core.errors import Conflict, NotFound
from termin_manager.core.settings import settings
from termin_manager.core.unit_of_work import with_retry
from termin_manager.crud.validation import parse
from termin_manager.models.appointment import Appointment
from termin_manager.models.change_log import ChangeLogEntry
from termin_manager.models.notification import Notification
from termin_manager.models.team import Team, TeamSession
from termin_manager.schemas.team import TeamCreate
from termin_manager.tenant_context import TeamContext

logger = logging.getLogger(__name__)

# no 0/O, 1/I: codes get read out over the phone
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_channel_code(length: int | None = None) -> str:
    n = length or settings.CHANNEL_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(n))


def _insert_team(db: Session, code: str) -> Team | None:
    """Team row, or None when the code is already taken."""
    team = Team(channel_code=code, last_seq=0)
    db.add(team)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return None
    db.refresh(team)
    return team


def create_team(db: Session, channel_code: str | None = None) -> Team:
    """
    Creates a tenant.

    A caller-chosen code that is taken raises Conflict right away; generated
    codes are regenerated on collision up to CHANNEL_CODE_ATTEMPTS times.
    Uniqueness itself is the unique index on teams.channel_code.
    """
    if channel_code is not None:
        channel_code = parse(TeamCreate, {"channel_code": channel_code}).channel_code
        team = with_retry(db, lambda: _insert_team(db, channel_code))
        if team is None:
            raise Conflict("channel code already taken")
        logger.info("team %s created with chosen code", team.id)
        return team

    attempts = settings.CHANNEL_CODE_ATTEMPTS
    for attempt in range(1, attempts + 1):
        code = generate_channel_code()
        team = with_retry(db, lambda: _insert_team(db, code))
        if team is not None:
            logger.info("team %s created", team.id)
            return team
        logger.warning("channel code collision, regenerating (attempt %s/%s)", attempt, attempts)

    raise Conflict("could not generate a unique channel code", attempts=attempts)


def resolve_team(db: Session, channel_code: str) -> Team:
    """Exact, case-sensitive lookup. Possession of the code is the credential."""

    def work():
        return db.scalar(select(Team).where(Team.channel_code == channel_code))

    team = with_retry(db, work)
    if team is None:
        raise NotFound("team not found")
    return team


def get_team(db: Session, team_id) -> Team:
    team = with_retry(db, lambda: db.get(Team, team_id))
    if team is None:
        raise NotFound("team not found")
    return team


def delete_team(ctx: TeamContext) -> None:
    """
    Tenant teardown. Children go first, in explicit steps, so the cascade does
    not depend on the database enforcing foreign keys.
    """
    db = ctx.db
    tid = ctx.team_id

    # rows of this team only; the session is expired by the commit below
    unsynced = {"synchronize_session": False}

    def work():
        db.execute(delete(Notification).where(Notification.team_id == tid), execution_options=unsynced)
        db.execute(delete(Appointment).where(Appointment.team_id == tid), execution_options=unsynced)
        db.execute(delete(ChangeLogEntry).where(ChangeLogEntry.team_id == tid), execution_options=unsynced)
        db.execute(delete(TeamSession).where(TeamSession.team_id == tid))
        deleted = db.execute(delete(Team).where(Team.id == tid)).rowcount
        db.commit()
        return deleted

    with ctx.broker.team_lock(tid):
        deleted = with_retry(db, work)

    if not deleted:
        raise NotFound("team not found")

    ctx.broker.close_team(tid)
    logger.info("team %s deleted", tid)
