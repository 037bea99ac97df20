"""
AuditLogService -- writer for the movement and system logs.

Responsibility:
    Appends MovementLogEntry and SystemLogEntry rows inside the caller's
    transaction.  There is no update or delete method; the ORM listeners in
    db/immutability.py reject both for any code path that tries.

Invariants enforced:
    - Entries are flushed in the same transaction as the mutation they
      describe.  A rollback removes the mutation and its log together.
    - details are stored JSON-safe (UUIDs, Decimals and enums as strings).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from asset_kernel.domain.actor import ActorContext
from asset_kernel.logging_config import get_logger
from asset_kernel.models.movement_log import MovementLogEntry, SystemLogEntry
from asset_kernel.services.base import BaseService
from asset_kernel.utils.serialization import enum_value, json_safe

logger = get_logger("services.audit_log")


class AuditLogService(BaseService[MovementLogEntry]):

    def record_movement(
        self,
        *,
        asset_family: str,
        serial_number: str,
        action: str,
        actor: ActorContext,
        asset_id: UUID | None = None,
        from_branch_id: UUID | None = None,
        to_branch_id: UUID | None = None,
        order_id: UUID | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> MovementLogEntry:
        """Append one asset-centric entry and flush it."""
        entry = MovementLogEntry(
            asset_family=enum_value(asset_family),
            asset_id=asset_id,
            serial_number=serial_number,
            action=enum_value(action),
            from_branch_id=from_branch_id,
            to_branch_id=to_branch_id,
            performed_by_id=actor.user_id,
            performed_by_name=actor.label,
            order_id=order_id,
            occurred_at=self.now(),
            details=json_safe(dict(details or {})),
        )
        self._append(entry)
        logger.debug(
            "movement_logged",
            extra={
                "serial_number": serial_number,
                "action": entry.action,
                "order_id": order_id,
            },
        )
        return entry

    def record_system(
        self,
        *,
        entity_type: str,
        entity_id: Any,
        action: str,
        actor: ActorContext,
        branch_id: UUID | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> SystemLogEntry:
        """Append one coarse audit entry and flush it."""
        entry = SystemLogEntry(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=enum_value(action),
            actor_id=actor.user_id,
            actor_name=actor.label,
            branch_id=branch_id,
            occurred_at=self.now(),
            details=json_safe(dict(details or {})),
        )
        self._append(entry)
        logger.debug(
            "system_event_logged",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": entry.action,
            },
        )
        return entry
