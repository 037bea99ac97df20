"""Read-only selectors returning frozen DTOs."""

from asset_kernel.selectors.branch_selector import BranchHierarchyResolver, BranchInfo
from asset_kernel.selectors.movement_selector import MovementSelector
from asset_kernel.selectors.transfer_selector import TransferOrderSelector

__all__ = [
    "BranchHierarchyResolver",
    "BranchInfo",
    "MovementSelector",
    "TransferOrderSelector",
]
