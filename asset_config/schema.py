"""
KernelConfig schema.

Frozen dataclasses parsed from ``defaults/kernel.yaml`` (or the file named
by ``ASSET_KERNEL_CONFIG``).  The kernel never sees these types directly;
``asset_config.bridges`` turns them into kernel inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseConfig:
    """Engine and pool settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800
    statement_timeout_ms: int | None = None
    sqlite_begin_immediate: bool = False


@dataclass(frozen=True)
class OrderNumberingConfig:
    """Order numbers are ``{prefix}-{YYYYMMDD}-{NNN}``."""

    prefix: str = "TO"
    bulk_prefix: str = "TO-MT"
    padding: int = 3


@dataclass(frozen=True)
class NotificationConfig:
    """Deep-link templates carried on notification events."""

    receive_link_template: str = "/receive-orders?orderId={order_id}"
    order_link_template: str = "/transfer-orders?orderId={order_id}"
    machine_link_template: str = "/maintenance/machines?serial={serial_number}"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class KernelConfig:
    """Root configuration object returned by ``get_active_config``."""

    config_id: str
    version: int
    database: DatabaseConfig
    order_numbering: OrderNumberingConfig = field(default_factory=OrderNumberingConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
