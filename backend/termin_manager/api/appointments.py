import datetime as dt

from fastapi import APIRouter, Depends, Response

from termin_manager.core.tenant import get_team_context
from termin_manager.crud import appointment as store
from termin_manager.schemas.appointment import AppointmentCreate, AppointmentOut, AppointmentStatus, AppointmentUpdate
from termin_manager.tenant_context import TeamContext

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("", response_model=list[AppointmentOut])
def list_appointments(
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
    status: AppointmentStatus | None = None,
    ctx: TeamContext = Depends(get_team_context),
):
    return store.list_appointments(ctx, date_from=date_from, date_to=date_to, status=status)


@router.post("", response_model=AppointmentOut, status_code=201)
def create_appointment(payload: AppointmentCreate, ctx: TeamContext = Depends(get_team_context)):
    return store.create_appointment(ctx, payload)


@router.get("/{appointment_id}", response_model=AppointmentOut)
def get_appointment(appointment_id: str, ctx: TeamContext = Depends(get_team_context)):
    return store.get_appointment(ctx, appointment_id)


@router.patch("/{appointment_id}", response_model=AppointmentOut)
def update_appointment(appointment_id: str, payload: AppointmentUpdate, ctx: TeamContext = Depends(get_team_context)):
    return store.update_appointment(ctx, appointment_id, payload)


@router.delete("/{appointment_id}", status_code=204)
def delete_appointment(appointment_id: str, ctx: TeamContext = Depends(get_team_context)):
    store.delete_appointment(ctx, appointment_id)
    return Response(status_code=204)
