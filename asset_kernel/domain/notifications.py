"""
Notification port (``asset_kernel.domain.notifications``).

Orchestrators receive an ``EventPublisher`` through their constructor and
call ``publish(event)`` after a successful commit.  Delivery (push, socket,
e-mail) lives outside the kernel.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable
from uuid import UUID


class NotificationType:
    TRANSFER_ORDER = "TRANSFER_ORDER"
    TRANSFER_RECEIVED = "TRANSFER_RECEIVED"
    TRANSFER_CANCELLED = "TRANSFER_CANCELLED"
    TRANSFER_REJECTED = "TRANSFER_REJECTED"
    MAINTENANCE_TRANSITION = "MAINTENANCE_TRANSITION"


@dataclass(frozen=True)
class NotificationEvent:
    """
    Payload for the external delivery channel.

    At least one of branch_id / user_id names the recipient; ``link`` is a
    deep link the client can open directly.
    """

    type: str
    title: str
    message: str
    branch_id: UUID | None = None
    user_id: UUID | None = None
    data: Mapping[str, Any] = field(default_factory=dict)
    link: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch_id": str(self.branch_id) if self.branch_id else None,
            "user_id": str(self.user_id) if self.user_id else None,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "data": dict(self.data),
            "link": self.link,
        }


@runtime_checkable
class EventPublisher(Protocol):
    def publish(self, event: NotificationEvent) -> None: ...


class NullPublisher:
    """Discards every event."""

    def publish(self, event: NotificationEvent) -> None:
        return None


class RecordingPublisher:
    """Keeps published events in memory.  Thread-safe."""

    def __init__(self) -> None:
        self._events: list[NotificationEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: NotificationEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> tuple[NotificationEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def of_type(self, event_type: str) -> tuple[NotificationEvent, ...]:
        return tuple(e for e in self.events if e.type == event_type)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
