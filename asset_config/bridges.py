"""
Config -> Kernel Bridges.

Functions that convert a KernelConfig into kernel inputs.  These live in
asset_config (the producer) because the kernel must NEVER import
asset_config.

Usage:
    from asset_config import get_active_config
    from asset_config.bridges import build_kernel_settings, init_engine_from_config

    config = get_active_config()
    init_engine_from_config(config)
    settings = build_kernel_settings(config)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from asset_config.schema import KernelConfig
from asset_kernel.db.engine import init_engine_from_url
from asset_kernel.domain.settings import KernelSettings
from asset_kernel.logging_config import configure_logging


def build_kernel_settings(config: KernelConfig) -> KernelSettings:
    """Order numbering and notification links for the orchestrators."""
    return KernelSettings(
        order_number_prefix=config.order_numbering.prefix,
        bulk_order_number_prefix=config.order_numbering.bulk_prefix,
        order_number_padding=config.order_numbering.padding,
        receive_link_template=config.notifications.receive_link_template,
        order_link_template=config.notifications.order_link_template,
        machine_link_template=config.notifications.machine_link_template,
    )


def init_engine_from_config(config: KernelConfig) -> Engine:
    """Configure kernel logging at the configured level, then the engine."""
    configure_logging(level=config.logging.level)
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        statement_timeout_ms=db.statement_timeout_ms,
        sqlite_begin_immediate=db.sqlite_begin_immediate,
    )
