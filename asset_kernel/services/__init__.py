"""Services for the asset kernel (write side)."""

from asset_kernel.services.audit_log_service import AuditLogService
from asset_kernel.services.lifecycle_service import AssetLifecycleService
from asset_kernel.services.notification_outbox import NotificationOutbox
from asset_kernel.services.sequence_service import SequenceService
from asset_kernel.services.transfer_orchestrator import TransferOrderOrchestrator
from asset_kernel.services.transfer_validator import TransferValidator

__all__ = [
    "AssetLifecycleService",
    "AuditLogService",
    "NotificationOutbox",
    "SequenceService",
    "TransferOrderOrchestrator",
    "TransferValidator",
]
