"""
NotificationOutbox -- publish events only once their transaction commits.

Orchestrators enqueue NotificationEvents while they work.  The outbox hooks
the session's ``after_commit`` / ``after_rollback`` events: on commit the
queued events go to the injected EventPublisher, on rollback they are
discarded.  This holds whether the orchestrator commits itself
(auto_commit=True) or a caller commits a larger unit of work.

A publisher failure cannot undo a committed transfer, so it is logged at
WARNING with the traceback and the remaining events are still attempted.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session

from asset_kernel.domain.notifications import EventPublisher, NotificationEvent, NullPublisher
from asset_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationOutbox:

    def __init__(self, session: Session, publisher: EventPublisher | None = None):
        self._session = session
        self._publisher = publisher or NullPublisher()
        self._pending: list[NotificationEvent] = []
        event.listen(session, "after_commit", self._on_commit)
        event.listen(session, "after_rollback", self._on_rollback)

    def enqueue(self, notification: NotificationEvent) -> None:
        self._pending.append(notification)

    @property
    def pending(self) -> tuple[NotificationEvent, ...]:
        return tuple(self._pending)

    def _on_commit(self, session: Session) -> None:
        events, self._pending = self._pending, []
        for notification in events:
            try:
                self._publisher.publish(notification)
            except Exception:
                logger.warning(
                    "notification_publish_failed",
                    extra={
                        "notification_type": notification.type,
                        "branch_id": notification.branch_id,
                        "user_id": notification.user_id,
                    },
                    exc_info=True,
                )
            else:
                logger.debug(
                    "notification_published",
                    extra={
                        "notification_type": notification.type,
                        "branch_id": notification.branch_id,
                    },
                )

    def _on_rollback(self, session: Session) -> None:
        if self._pending:
            logger.debug(
                "notifications_discarded",
                extra={"count": len(self._pending)},
            )
        self._pending = []

    def close(self) -> None:
        """Detach from the session."""
        for name, fn in (("after_commit", self._on_commit), ("after_rollback", self._on_rollback)):
            if event.contains(self._session, name, fn):
                event.remove(self._session, name, fn)
