from fastapi import APIRouter, Depends, Response

from termin_manager.core.tenant import get_team_context
from termin_manager.crud import notification as store
from termin_manager.schemas.notification import NotificationCreate, NotificationOut, NotificationPatch
from termin_manager.tenant_context import TeamContext

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
def list_notifications(read: bool | None = None, ctx: TeamContext = Depends(get_team_context)):
    return store.list_notifications(ctx, read=read)


@router.post("", response_model=NotificationOut, status_code=201)
def create_notification(payload: NotificationCreate, ctx: TeamContext = Depends(get_team_context)):
    return store.create_notification(ctx, payload)


@router.get("/{notification_id}", response_model=NotificationOut)
def get_notification(notification_id: str, ctx: TeamContext = Depends(get_team_context)):
    return store.get_notification(ctx, notification_id)


@router.patch("/{notification_id}", response_model=NotificationOut)
def patch_notification(notification_id: str, payload: NotificationPatch, ctx: TeamContext = Depends(get_team_context)):
    # NotificationPatch only admits {"read": true}
    return store.mark_read(ctx, notification_id)


@router.delete("/{notification_id}", status_code=204)
def delete_notification(notification_id: str, ctx: TeamContext = Depends(get_team_context)):
    store.delete_notification(ctx, notification_id)
    return Response(status_code=204)
