"""Row-level change notifications for committed writes.

Every insert, update and delete flushed through an ORM session is recorded on
the session and published to subscribers once the transaction commits. A
rollback discards the pending events. Conditional bulk updates bypass the
unit of work, so callers record those with ``record_change``.

    bus.subscribe("group_members", on_change, predicate=lambda e: e.row.get("user_id") == uid)
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

_PENDING_KEY = "tontine_pending_changes"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    type: str
    row: Dict[str, Any] = field(default_factory=dict)

    @property
    def row_id(self) -> Optional[uuid.UUID]:
        return self.row.get("id")


@dataclass
class Subscription:
    table: str
    callback: Callable[[ChangeEvent], None]
    event: str = "*"
    predicate: Optional[Callable[[ChangeEvent], bool]] = None

    def matches(self, change: ChangeEvent) -> bool:
        if self.table != "*" and self.table != change.table:
            return False
        if self.event != "*" and self.event != change.type:
            return False
        if self.predicate is not None and not self.predicate(change):
            return False
        return True


class ChangeBus:
    """In-process publish/subscribe hub for committed row changes."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        event: str = "*",
        predicate: Optional[Callable[[ChangeEvent], bool]] = None,
    ) -> Subscription:
        subscription = Subscription(table=table, callback=callback, event=event, predicate=predicate)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, change: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.matches(change):
                continue
            try:
                subscription.callback(change)
            except Exception:
                # One faulty subscriber must not stop delivery to the rest
                logger.exception("Change subscriber failed for %s %s", change.type, change.table)


bus = ChangeBus()


def _row_snapshot(obj) -> Dict[str, Any]:
    # Loaded values only; server-side defaults stay unset rather than trigger a SELECT mid-flush
    state = inspect(obj)
    return {column.key: state.dict.get(column.key) for column in state.mapper.column_attrs}


def _pending(session: Session) -> List[ChangeEvent]:
    return session.info.setdefault(_PENDING_KEY, [])


def record_change(session: Session, table: str, change_type: str, row: Dict[str, Any]) -> None:
    """Queue a change that did not go through the unit of work."""
    _pending(session).append(ChangeEvent(table=table, type=change_type, row=dict(row)))


@event.listens_for(Session, "after_flush")
def _collect_changes(session, flush_context):
    pending = _pending(session)
    for obj in session.new:
        pending.append(ChangeEvent(table=obj.__tablename__, type=INSERT, row=_row_snapshot(obj)))
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            pending.append(ChangeEvent(table=obj.__tablename__, type=UPDATE, row=_row_snapshot(obj)))
    for obj in session.deleted:
        pending.append(ChangeEvent(table=obj.__tablename__, type=DELETE, row=_row_snapshot(obj)))


@event.listens_for(Session, "after_commit")
def _publish_changes(session):
    changes = session.info.pop(_PENDING_KEY, [])
    for change in changes:
        bus.publish(change)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session):
    session.info.pop(_PENDING_KEY, None)
