from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import deque
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterable, Iterator, Set

from termin_manager.core.errors import ChannelOverflow
from termin_manager.core.settings import settings
from termin_manager.realtime.events import Change

logger = logging.getLogger(__name__)


class SubscriptionState(str, Enum):
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


class Subscription:
    """
    One live subscriber of a team.

    The queue is bounded; the publisher never waits on it. When it fills up the
    pending changes are dropped and the next get() raises ChannelOverflow, so the
    consumer resyncs from the change log starting after `last_seq`.
    """

    def __init__(self, team_id: uuid.UUID, maxsize: int):
        self.id = uuid.uuid4()
        self.team_id = team_id
        self.state = SubscriptionState.CONNECTING
        self.last_seq = 0
        self._maxsize = maxsize
        self._queue: deque[Change] = deque()
        self._overflowed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        return self.state is SubscriptionState.CLOSED

    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    def _activate(self) -> None:
        with self._cond:
            if self.state is SubscriptionState.CONNECTING:
                self.state = SubscriptionState.SUBSCRIBED

    def offer(self, change: Change) -> bool:
        """Queues a change without blocking. False when dropped."""
        with self._cond:
            if self.state is not SubscriptionState.SUBSCRIBED or self._overflowed:
                return False
            if len(self._queue) >= self._maxsize:
                self._queue.clear()
                self._overflowed = True
                self._cond.notify_all()
                logger.warning(
                    "subscriber %s of team %s overflowed at seq=%s; resync required",
                    self.id, self.team_id, change.seq,
                )
                return False
            self._queue.append(change)
            self._cond.notify_all()
            return True

    def mark_delivered(self, seq: int) -> None:
        with self._cond:
            if seq > self.last_seq:
                self.last_seq = seq

    def get(self, timeout: float | None = None) -> Change | None:
        """
        Next change with seq > last_seq, or None on timeout / close.

        Raises ChannelOverflow once after the queue overflowed.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                if self._overflowed:
                    self._overflowed = False
                    raise ChannelOverflow("subscriber fell behind", last_seq=self.last_seq)

                while self._queue:
                    change = self._queue.popleft()
                    # duplicates of replayed rows are dropped here
                    if change.seq > self.last_seq:
                        self.last_seq = change.seq
                        return change

                if self.state is SubscriptionState.CLOSED:
                    return None

                if deadline is None:
                    self._cond.wait()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    self._cond.wait(remaining)

    def close(self) -> None:
        with self._cond:
            self.state = SubscriptionState.CLOSED
            self._queue.clear()
            self._overflowed = False
            self._cond.notify_all()


class ChangeBroker:
    """In-process fan-out of committed changes, keyed by team id."""

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subs: Dict[uuid.UUID, Set[Subscription]] = {}
        self._team_locks: Dict[uuid.UUID, threading.Lock] = {}

    def subscribe(self, team_id: uuid.UUID) -> Subscription:
        sub = Subscription(team_id, self.queue_size)
        with self._lock:
            self._subs.setdefault(team_id, set()).add(sub)
        sub._activate()
        logger.info("subscriber %s joined team %s", sub.id, team_id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.close()
        with self._lock:
            subs = self._subs.get(sub.team_id)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subs[sub.team_id]
        logger.info("subscriber %s left team %s", sub.id, sub.team_id)

    def subscriber_count(self, team_id: uuid.UUID) -> int:
        with self._lock:
            return len(self._subs.get(team_id, ()))

    def publish(self, changes: Iterable[Change]) -> int:
        """Delivers to every live subscriber of the change's team. Returns deliveries made."""
        delivered = 0
        for change in changes:
            with self._lock:
                targets = list(self._subs.get(change.team_id, ()))
            for sub in targets:
                if sub.offer(change):
                    delivered += 1
        return delivered

    @contextmanager
    def team_lock(self, team_id: uuid.UUID) -> Iterator[None]:
        """
        Held from sequence allocation until publish, so changes of one team
        reach subscribers in commit order.
        """
        with self._lock:
            lock = self._team_locks.setdefault(team_id, threading.Lock())
        with lock:
            yield

    def close_team(self, team_id: uuid.UUID) -> None:
        with self._lock:
            subs = self._subs.pop(team_id, set())
            self._team_locks.pop(team_id, None)
        for sub in subs:
            sub.close()
        if subs:
            logger.info("closed %s subscriber(s) of deleted team %s", len(subs), team_id)


broker = ChangeBroker(queue_size=settings.STREAM_QUEUE_SIZE)


# standard FastAPI dependency
def get_broker() -> ChangeBroker:
    return broker
