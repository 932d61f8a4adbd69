from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List

import anyio
import anyio.to_thread

from termin_manager.core.errors import ChannelOverflow
from termin_manager.realtime.broker import ChangeBroker, Subscription
from termin_manager.realtime.events import Change

logger = logging.getLogger(__name__)

Replay = Callable[[int], List[Change]]
Disconnected = Callable[[], Awaitable[bool]]

KEEPALIVE = ": keepalive\n\n"


def format_sse(data: Dict[str, Any], event: str | None = None, event_id: int | None = None) -> str:
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    if event:
        lines.append(f"event: {event}")
    lines.append("data: " + json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str))
    return "\n".join(lines) + "\n\n"


def _change_frame(change: Change) -> str:
    return format_sse(change.to_dict(), event="change", event_id=change.seq)


async def _replay_frames(sub: Subscription, replay: Replay) -> List[str]:
    # replay hits the database; keep it off the event loop
    changes = await anyio.to_thread.run_sync(replay, sub.last_seq)
    frames = []
    for change in changes:
        if change.seq <= sub.last_seq:
            continue
        sub.mark_delivered(change.seq)
        frames.append(_change_frame(change))
    return frames


async def iter_stream(
    broker: ChangeBroker,
    sub: Subscription,
    replay: Replay,
    heartbeat_s: float,
    since: int | None = None,
    is_disconnected: Disconnected | None = None,
) -> AsyncIterator[str]:
    """
    Server-sent event frames for one subscriber.

    With `since` the change log after that seq is replayed first; live changes
    already covered by the replay are skipped by seq. On overflow a `resync`
    frame is sent and the gap is replayed from the log.

    The subscription is released when the generator finishes, is closed or its
    task is cancelled (client disconnect).
    """
    try:
        if since is not None:
            sub.mark_delivered(since)
            for frame in await _replay_frames(sub, replay):
                yield frame

        while True:
            try:
                change = await anyio.to_thread.run_sync(sub.get, heartbeat_s)
            except ChannelOverflow as exc:
                yield format_sse(exc.to_dict(), event="resync")
                for frame in await _replay_frames(sub, replay):
                    yield frame
                continue

            if change is not None:
                yield _change_frame(change)
            elif sub.closed:
                yield format_sse({"reason": "closed"}, event="closed")
                return
            elif is_disconnected is not None and await is_disconnected():
                logger.info("subscriber %s disconnected", sub.id)
                return
            else:
                yield KEEPALIVE
    finally:
        broker.unsubscribe(sub)
