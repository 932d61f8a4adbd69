from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import sessionmaker

from termin_manager.core.errors import ValidationError
from termin_manager.core.settings import settings
from termin_manager.core.tenant import get_team_context
from termin_manager.crud.change_log import current_seq, list_changes
from termin_manager.db import get_session_factory
from termin_manager.realtime.broker import Subscription
from termin_manager.realtime.stream import iter_stream
from termin_manager.schemas.change import ChangeOut, ChangesPage
from termin_manager.tenant_context import TeamContext, bind_team

router = APIRouter(tags=["realtime"])


@router.get("/changes", response_model=ChangesPage)
def changes_since(
    since: int = Query(0, ge=0),
    limit: int = Query(500, ge=1, le=1000),
    ctx: TeamContext = Depends(get_team_context),
):
    """Resync: logged changes after `since`, oldest first."""
    items = list_changes(ctx, since=since, limit=limit)
    return ChangesPage(
        team_id=ctx.team_id,
        since=since,
        last_seq=current_seq(ctx),
        changes=[ChangeOut(**c.to_dict()) for c in items],
    )


def _resume_point(request: Request, since: int | None) -> int | None:
    if since is not None:
        return since
    raw = (request.headers.get("last-event-id") or "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError("Last-Event-ID must be a sequence number", value=raw)
    if value < 0:
        raise ValidationError("Last-Event-ID must be >= 0", value=raw)
    return value


def open_subscription(ctx: TeamContext, resume: int | None) -> Subscription:
    """
    Subscribes before any replay so nothing committed in between is missed.

    Without a resume point the subscriber starts at the current sequence: a
    later resync replays only what it missed, never the team's history.
    """
    with ctx.broker.team_lock(ctx.team_id):
        sub = ctx.broker.subscribe(ctx.team_id)
        if resume is None:
            try:
                sub.mark_delivered(current_seq(ctx))
            except Exception:
                ctx.broker.unsubscribe(sub)
                raise
    return sub


@router.get("/stream")
def stream(
    request: Request,
    since: int | None = Query(None, ge=0),
    ctx: TeamContext = Depends(get_team_context),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Server-sent events of every committed change of the caller's team.

    Frames: `change` (id = seq), `resync` after an overflow, `closed` when the
    team is deleted, and keepalive comments.
    """
    resume = _resume_point(request, since)
    broker = ctx.broker
    team_id = ctx.team_id
    sub = open_subscription(ctx, resume)

    def replay(after: int):
        db = session_factory()
        try:
            return list_changes(bind_team(db, team_id, broker), since=after)
        finally:
            db.close()

    return StreamingResponse(
        iter_stream(
            broker,
            sub,
            replay,
            settings.STREAM_HEARTBEAT_S,
            since=resume,
            is_disconnected=request.is_disconnected,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
