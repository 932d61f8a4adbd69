from fastapi import APIRouter, Body, Depends, Response
from sqlalchemy.orm import Session

from termin_manager.core.tenant import get_team_context
from termin_manager.crud import team as team_crud
from termin_manager.db import get_db
from termin_manager.schemas.team import TeamCreate, TeamOut
from termin_manager.tenant_context import TeamContext

router = APIRouter(prefix="/teams", tags=["teams"])


@router.post("", response_model=TeamOut, status_code=201)
def create_team(payload: TeamCreate | None = Body(default=None), db: Session = Depends(get_db)):
    code = payload.channel_code if payload else None
    return team_crud.create_team(db, channel_code=code)


@router.delete("/current", status_code=204)
def delete_current_team(ctx: TeamContext = Depends(get_team_context)):
    """Tenant teardown: removes the team with all its appointments and notifications."""
    team_crud.delete_team(ctx)
    return Response(status_code=204)
