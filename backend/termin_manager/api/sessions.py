from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from termin_manager.core.errors import NotFound
from termin_manager.core.security import create_access_token, require_session
from termin_manager.crud.session import open_session, revoke_session
from termin_manager.db import get_db
from termin_manager.models.team import TeamSession
from termin_manager.schemas.team import SessionCreate, SessionInfo, SessionOut

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionOut, status_code=201)
def login(payload: SessionCreate, db: Session = Depends(get_db)):
    try:
        row = open_session(db, payload.channel_code)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unknown channel code")

    expires_at = row.expires_at
    token = create_access_token(str(row.id), expires_at)
    return SessionOut(access_token=token, team_id=row.team_id, expires_at=expires_at)


@router.get("/current", response_model=SessionInfo)
def current_session(row: TeamSession = Depends(require_session)):
    return SessionInfo(
        session_id=row.id,
        team_id=row.team_id,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )


@router.delete("/current", status_code=204)
def logout(row: TeamSession = Depends(require_session), db: Session = Depends(get_db)):
    revoke_session(db, row)
    return Response(status_code=204)
