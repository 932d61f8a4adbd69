from fastapi import Depends
from sqlalchemy.orm import Session

from termin_manager.core.security import require_session
from termin_manager.db import get_db
from termin_manager.models.team import TeamSession
from termin_manager.realtime.broker import ChangeBroker, get_broker
from termin_manager.tenant_context import TeamContext, bind_team


def get_team_context(
    session_row: TeamSession = Depends(require_session),
    db: Session = Depends(get_db),
    broker: ChangeBroker = Depends(get_broker),
) -> TeamContext:
    """
    Team scope of the request, taken from the server-side session row.
    Nothing in the request body or path can change it.
    """
    return bind_team(db, session_row.team_id, broker)
