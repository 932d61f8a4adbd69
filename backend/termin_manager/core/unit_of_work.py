from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Tuple, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from termin_manager.core.errors import Conflict, Unavailable
from termin_manager.core.settings import settings
from termin_manager.models.change_log import ChangeLogEntry
from termin_manager.models.team import Team, utcnow
from termin_manager.realtime.broker import ChangeBroker
from termin_manager.realtime.events import Change
from termin_manager.tenant_context import TeamContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

Serializer = Callable[[Any], Dict[str, Any]]


class ChangeRecorder:
    """
    Collects the mutations of one transaction and turns them into numbered
    change-log rows right before commit.
    """

    def __init__(self, ctx: TeamContext):
        self.ctx = ctx
        self._pending: List[Tuple[str, str, Any, Serializer | None]] = []

    def inserted(self, entity: str, obj: Any, serialize: Serializer) -> None:
        self._pending.append((entity, "insert", obj, serialize))

    def updated(self, entity: str, obj: Any, serialize: Serializer) -> None:
        self._pending.append((entity, "update", obj, serialize))

    def deleted(self, entity: str, row_id: Any) -> None:
        self._pending.append((entity, "delete", row_id, None))

    def __len__(self) -> int:
        return len(self._pending)

    def flush(self) -> List[Change]:
        db = self.ctx.db
        db.flush()
        if not self._pending:
            return []

        # row lock serialises sequence allocation per team (no-op on SQLite)
        team = db.execute(select(Team).where(Team.id == self.ctx.team_id).with_for_update()).scalar_one()

        committed_at = utcnow()
        changes: List[Change] = []
        for entity, op, target, serialize in self._pending:
            team.last_seq += 1
            row = serialize(target) if serialize else {"id": str(target)}
            db.add(
                ChangeLogEntry(
                    team_id=self.ctx.team_id,
                    seq=team.last_seq,
                    entity=entity,
                    op=op,
                    row_id=str(row["id"]),
                    payload=row,
                    committed_at=committed_at,
                )
            )
            changes.append(
                Change(
                    seq=team.last_seq,
                    team_id=self.ctx.team_id,
                    entity=entity,
                    op=op,
                    row=row,
                    committed_at=committed_at,
                )
            )
        db.flush()
        return changes


def publish_committed(broker: ChangeBroker, changes: List[Change]) -> None:
    """Best effort: a failed fan-out never reaches the writer."""
    if not changes:
        return
    try:
        broker.publish(changes)
    except Exception:
        logger.exception("publish failed for %s change(s); subscribers must resync", len(changes))


def _backoff(attempt: int) -> None:
    time.sleep(settings.DB_RETRY_BACKOFF_S * attempt)


def with_retry(db: Session, work: Callable[[], T]) -> T:
    """Runs `work`, rolling back and retrying transient persistence errors."""
    attempts = settings.DB_RETRY_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            return work()
        except OperationalError as exc:
            db.rollback()
            if attempt >= attempts:
                logger.error("DB call failed after %s attempt(s): %s", attempt, exc)
                raise Unavailable("database unavailable") from exc
            logger.warning("transient DB error (attempt %s/%s): %s", attempt, attempts, exc)
            _backoff(attempt)
    raise Unavailable("database unavailable")


def run_write(ctx: TeamContext, work: Callable[[ChangeRecorder], T]) -> T:
    """
    validate -> apply -> commit -> publish, as one transaction.

    `work` validates and applies its changes and reports them to the recorder.
    Publish happens only after a successful commit.
    """
    attempts = settings.DB_RETRY_ATTEMPTS
    db = ctx.db
    for attempt in range(1, attempts + 1):
        try:
            with ctx.broker.team_lock(ctx.team_id):
                recorder = ChangeRecorder(ctx)
                result = work(recorder)
                changes = recorder.flush()
                db.commit()
                publish_committed(ctx.broker, changes)
            return result
        except OperationalError as exc:
            db.rollback()
            if attempt >= attempts:
                logger.error("write failed after %s attempt(s): %s", attempt, exc)
                raise Unavailable("database unavailable") from exc
            logger.warning("transient DB error on write (attempt %s/%s): %s", attempt, attempts, exc)
            _backoff(attempt)
        except IntegrityError as exc:
            db.rollback()
            raise Conflict("constraint violated") from exc
        except Exception:
            db.rollback()
            raise
    raise Unavailable("database unavailable")
