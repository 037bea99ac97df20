"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement and system logs are the only way to reconstruct where an asset
has been and who moved it.  They are only useful if nobody can rewrite them.
Transfer orders have a weaker rule: once an order reaches a terminal status
(RECEIVED, CANCELLED, REJECTED) its status is final, and a received item
stays received.

SQLAlchemy fires events before UPDATE/DELETE statements reach the database.
We register listeners that check these rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush aborts and the unit of work rolls back.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | When Immutable                  | Rule
-------------------|---------------------------------|------------------------------
MovementLogEntry   | ALWAYS (from creation)          | No UPDATE, no DELETE
SystemLogEntry     | ALWAYS (from creation)          | No UPDATE, no DELETE
TransferOrder      | After status is terminal        | Status cannot change again
TransferOrderItem  | After is_received is True       | Flag cannot go back to False

===============================================================================
USAGE
===============================================================================

Registered by init_engine_from_url(); tests register it once per session:

    from asset_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from asset_kernel.exceptions import ImmutabilityViolationError
from asset_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str, **extra) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_movement_log_immutability(mapper, connection, target):
    """Movement log entries are immutable from creation."""
    _block(
        "MovementLogEntry", target, "UPDATE",
        "Movement log entries are append-only and cannot be modified",
    )


def _check_movement_log_delete(mapper, connection, target):
    _block(
        "MovementLogEntry", target, "DELETE",
        "Movement log entries are append-only and cannot be deleted",
    )


def _check_system_log_immutability(mapper, connection, target):
    """System log entries are immutable from creation."""
    _block(
        "SystemLogEntry", target, "UPDATE",
        "System log entries are append-only and cannot be modified",
    )


def _check_system_log_delete(mapper, connection, target):
    _block(
        "SystemLogEntry", target, "DELETE",
        "System log entries are append-only and cannot be deleted",
    )


def _check_transfer_order_status(mapper, connection, target):
    """
    Block any status change once the order was terminal.

    Checks the OLD value from attribute history: PENDING -> RECEIVED is the
    receive itself and is allowed; RECEIVED -> anything is not.
    """
    from asset_kernel.models.transfer_order import TERMINAL_ORDER_STATUSES

    status_history = get_history(target, "status")
    if not status_history.deleted:
        return

    old_status = status_history.deleted[0]
    if old_status in {s.value for s in TERMINAL_ORDER_STATUSES}:
        _block(
            "TransferOrder", target, "UPDATE",
            f"Cannot change status of order in terminal status {old_status}",
            field="status",
        )


def _check_transfer_order_delete(mapper, connection, target):
    _block(
        "TransferOrder", target, "DELETE",
        "Transfer orders are never deleted; cancel or reject instead",
    )


def _check_transfer_item_received(mapper, connection, target):
    """A received item is never un-received."""
    history = get_history(target, "is_received")
    if history.deleted and history.deleted[0] and not target.is_received:
        _block(
            "TransferOrderItem", target, "UPDATE",
            "Received items cannot be marked as not received",
            field="is_received",
        )


_LISTENERS = (
    ("MovementLogEntry", "before_update", _check_movement_log_immutability),
    ("MovementLogEntry", "before_delete", _check_movement_log_delete),
    ("SystemLogEntry", "before_update", _check_system_log_immutability),
    ("SystemLogEntry", "before_delete", _check_system_log_delete),
    ("TransferOrder", "before_update", _check_transfer_order_status),
    ("TransferOrder", "before_delete", _check_transfer_order_delete),
    ("TransferOrderItem", "before_update", _check_transfer_item_received),
)


def _resolve_targets() -> dict:
    from asset_kernel.models.movement_log import MovementLogEntry, SystemLogEntry
    from asset_kernel.models.transfer_order import TransferOrder, TransferOrderItem

    return {
        "MovementLogEntry": MovementLogEntry,
        "SystemLogEntry": SystemLogEntry,
        "TransferOrder": TransferOrder,
        "TransferOrderItem": TransferOrderItem,
    }


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already present are not added twice.
    """
    targets = _resolve_targets()
    for name, event_name, listener_fn in _LISTENERS:
        target = targets[name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that must bypass the rules on purpose.
    """
    targets = _resolve_targets()
    for name, event_name, listener_fn in _LISTENERS:
        target = targets[name]
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
