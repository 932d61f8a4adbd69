from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import event, inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from termin_manager.core.errors import Forbidden
from termin_manager.models.scoped import TeamScoped

if TYPE_CHECKING:
    from termin_manager.realtime.broker import ChangeBroker

TEAM_KEY = "team_id"

# never a real team id; lets unbound sessions match nothing
NO_TEAM = uuid.UUID(int=0)


@dataclass(frozen=True)
class TeamContext:
    """
    Request-scoped access context: the DB session, the team resolved from the
    server-side session row and the broker changes are published to.
    """

    db: Session
    team_id: uuid.UUID
    broker: "ChangeBroker"


def _is_postgres(conn: Connection) -> bool:
    return str(conn.dialect.name).startswith("postgres")


def _set_pg_team(conn: Connection, team_id: uuid.UUID) -> None:
    # transaction-local, so pooled connections never carry a stale team
    conn.execute(text("SELECT set_config('app.team_id', :tid, true)"), {"tid": str(team_id)})


def bind_team(db: Session, team_id, broker: "ChangeBroker") -> TeamContext:
    """
    Binds the team to the active session and returns the context every store
    call takes.

    - all ORM reads of team-scoped models get filtered by this team
    - every flush stamps/checks team_id against it
    - Postgres: app.team_id is set per transaction for the RLS policies
    """
    tid = team_id if isinstance(team_id, uuid.UUID) else uuid.UUID(str(team_id))
    bound = db.info.get(TEAM_KEY)
    if bound is not None and bound != tid:
        raise Forbidden("session already bound to another team")

    db.info[TEAM_KEY] = tid
    if db.in_transaction():
        conn = db.connection()
        if _is_postgres(conn):
            _set_pg_team(conn, tid)

    return TeamContext(db=db, team_id=tid, broker=broker)


def bound_team_id(db: Session) -> uuid.UUID | None:
    return db.info.get(TEAM_KEY)


@event.listens_for(Session, "after_begin")
def _apply_team_setting(session: Session, transaction, connection: Connection) -> None:
    tid = session.info.get(TEAM_KEY)
    if tid is not None and _is_postgres(connection):
        _set_pg_team(connection, tid)


@event.listens_for(Session, "do_orm_execute")
def _scope_statements_to_team(state: ORMExecuteState) -> None:
    # bulk update()/delete() get the same criteria as reads
    if not (state.is_select or state.is_update or state.is_delete):
        return
    if state.is_select and (state.is_column_load or state.is_relationship_load):
        return

    tid = state.session.info.get(TEAM_KEY) or NO_TEAM
    state.statement = state.statement.options(
        with_loader_criteria(
            TeamScoped,
            lambda cls: cls.team_id == tid,
            include_aliases=True,
        )
    )


@event.listens_for(Session, "before_flush")
def _check_team_writes(session: Session, flush_context, instances) -> None:
    tid = session.info.get(TEAM_KEY)

    for obj in session.new:
        if not isinstance(obj, TeamScoped):
            continue
        if tid is None:
            raise Forbidden("no team bound to session")
        if obj.team_id is None:
            obj.team_id = tid
        elif obj.team_id != tid:
            raise Forbidden("row belongs to another team")

    for obj in session.dirty:
        if not isinstance(obj, TeamScoped):
            continue
        if inspect(obj).attrs.team_id.history.has_changes() or obj.team_id != tid:
            raise Forbidden("row belongs to another team")

    for obj in session.deleted:
        if isinstance(obj, TeamScoped) and obj.team_id != tid:
            raise Forbidden("row belongs to another team")
