"""ORM models for the asset kernel."""

from asset_kernel.models.asset import (
    AssetFamily,
    Machine,
    MachineStatus,
    Resolution,
    SimCard,
    SimStatus,
)
from asset_kernel.models.branch import Branch, BranchType
from asset_kernel.models.maintenance import (
    ApprovalStatus,
    MaintenanceApproval,
    MaintenanceRequest,
    MaintenanceRequestStatus,
)
from asset_kernel.models.movement_log import (
    MovementAction,
    MovementLogEntry,
    SystemLogEntry,
)
from asset_kernel.models.sequence_counter import SequenceCounter
from asset_kernel.models.transfer_order import (
    OPEN_ORDER_STATUSES,
    TERMINAL_ORDER_STATUSES,
    TransferOrder,
    TransferOrderItem,
    TransferOrderStatus,
    TransferType,
)

__all__ = [
    "AssetFamily",
    "ApprovalStatus",
    "Branch",
    "BranchType",
    "Machine",
    "MachineStatus",
    "MaintenanceApproval",
    "MaintenanceRequest",
    "MaintenanceRequestStatus",
    "MovementAction",
    "MovementLogEntry",
    "OPEN_ORDER_STATUSES",
    "Resolution",
    "SequenceCounter",
    "SimCard",
    "SimStatus",
    "SystemLogEntry",
    "TERMINAL_ORDER_STATUSES",
    "TransferOrder",
    "TransferOrderItem",
    "TransferOrderStatus",
    "TransferType",
]
