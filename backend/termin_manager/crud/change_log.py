from typing import List

from sqlalchemy import select

from termin_manager.core.errors import ValidationError
from termin_manager.core.unit_of_work import with_retry
from termin_manager.models.change_log import ChangeLogEntry
from termin_manager.models.team import Team
from termin_manager.realtime.events import Change
from termin_manager.tenant_context import TeamContext


def list_changes(ctx: TeamContext, since: int = 0, limit: int | None = None) -> List[Change]:
    """Logged changes of the team with seq > since, oldest first."""
    if since < 0:
        raise ValidationError("since must be >= 0", field="since")

    q = (
        select(ChangeLogEntry)
        .where(ChangeLogEntry.team_id == ctx.team_id)
        .where(ChangeLogEntry.seq > since)
        .order_by(ChangeLogEntry.seq)
    )
    if limit is not None:
        q = q.limit(limit)

    return with_retry(ctx.db, lambda: [Change.from_log(e) for e in ctx.db.scalars(q)])


def current_seq(ctx: TeamContext) -> int:
    def work():
        return ctx.db.scalar(select(Team.last_seq).where(Team.id == ctx.team_id)) or 0

    return with_retry(ctx.db, work)
