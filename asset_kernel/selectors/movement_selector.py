"""
Read side of the movement and system audit log.

There is deliberately no update or delete counterpart anywhere in the
kernel; entries are only ever added by AuditLogService.
"""

from __future__ import annotations

from sqlalchemy import func, select

from asset_kernel.domain.dtos import MovementEntryInfo, SystemEntryInfo
from asset_kernel.models.movement_log import MovementLogEntry, SystemLogEntry
from asset_kernel.selectors.base import BaseSelector
from asset_kernel.utils.serialization import enum_value


class MovementSelector(BaseSelector[MovementLogEntry]):

    def _movement_dto(self, entry: MovementLogEntry) -> MovementEntryInfo:
        return MovementEntryInfo(
            id=entry.id,
            asset_family=entry.asset_family,
            serial_number=entry.serial_number,
            action=entry.action,
            from_branch_id=entry.from_branch_id,
            to_branch_id=entry.to_branch_id,
            performed_by_id=entry.performed_by_id,
            performed_by_name=entry.performed_by_name,
            order_id=entry.order_id,
            occurred_at=entry.occurred_at,
            details=dict(entry.details or {}),
        )

    def _system_dto(self, entry: SystemLogEntry) -> SystemEntryInfo:
        return SystemEntryInfo(
            id=entry.id,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            action=entry.action,
            actor_id=entry.actor_id,
            actor_name=entry.actor_name,
            branch_id=entry.branch_id,
            occurred_at=entry.occurred_at,
            details=dict(entry.details or {}),
        )

    def history_for_serial(self, serial_number: str) -> list[MovementEntryInfo]:
        """Every movement of one asset, oldest first."""
        rows = self.session.execute(
            select(MovementLogEntry)
            .where(MovementLogEntry.serial_number == serial_number)
            .order_by(MovementLogEntry.occurred_at, MovementLogEntry.action)
        ).scalars().all()
        return [self._movement_dto(r) for r in rows]

    def movements_for_order(self, order_id) -> list[MovementEntryInfo]:
        rows = self.session.execute(
            select(MovementLogEntry)
            .where(MovementLogEntry.order_id == order_id)
            .order_by(MovementLogEntry.occurred_at, MovementLogEntry.serial_number)
        ).scalars().all()
        return [self._movement_dto(r) for r in rows]

    def system_entries_for(self, entity_type: str, entity_id) -> list[SystemEntryInfo]:
        rows = self.session.execute(
            select(SystemLogEntry)
            .where(
                SystemLogEntry.entity_type == entity_type,
                SystemLogEntry.entity_id == str(entity_id),
            )
            .order_by(SystemLogEntry.occurred_at)
        ).scalars().all()
        return [self._system_dto(r) for r in rows]

    def count_movements(
        self,
        serial_number: str | None = None,
        action: str | None = None,
    ) -> int:
        stmt = select(func.count(MovementLogEntry.id))
        if serial_number is not None:
            stmt = stmt.where(MovementLogEntry.serial_number == serial_number)
        if action is not None:
            stmt = stmt.where(MovementLogEntry.action == enum_value(action))
        return self.session.execute(stmt).scalar_one()
