"""
asset_config -- single public entrypoint for kernel configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables.  Returns a frozen ``KernelConfig``.

Architecture position:
    Configuration -- sits above ``asset_kernel``.  The kernel MUST NEVER
    import from ``asset_config``; ``asset_config.bridges`` translates the
    config into kernel inputs (KernelSettings, engine initialization).

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Environment variables ``ASSET_KERNEL_CONFIG`` (path to a YAML file)
      and ``ASSET_KERNEL_DATABASE_URL`` are read here and nowhere else.
    - Same YAML and overrides always produce the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configured YAML file does not exist.
    - ``KeyError`` / ``ValueError`` -- schema validation failures.

Audit relevance:
    Every successful call emits an ``asset_config_loaded`` log entry with
    the config id, version and SHA-256 checksum.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from asset_config.loader import load_yaml_file, merge_overrides, parse_kernel_config
from asset_config.schema import (
    DatabaseConfig,
    KernelConfig,
    LoggingConfig,
    NotificationConfig,
    OrderNumberingConfig,
)

_logger = logging.getLogger("asset_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "kernel.yaml"

CONFIG_PATH_ENV = "ASSET_KERNEL_CONFIG"
DATABASE_URL_ENV = "ASSET_KERNEL_DATABASE_URL"


def get_active_config(
    config_path: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> KernelConfig:
    """The ONLY public configuration entrypoint.

    Resolution order (later wins):
        1. ``config_path``, else ``$ASSET_KERNEL_CONFIG``, else the packaged
           ``defaults/kernel.yaml``.
        2. ``$ASSET_KERNEL_DATABASE_URL`` replaces ``database.url``.
        3. ``overrides`` are merged recursively on top.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value fails validation.
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH)
    data = load_yaml_file(path)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        data = merge_overrides(data, {"database": {"url": database_url}})
    if overrides:
        data = merge_overrides(data, overrides)

    config = parse_kernel_config(data)

    _logger.info(
        "asset_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
            "database_dialect": config.database.url.split(":", 1)[0],
        },
    )
    return config


__all__ = [
    "CONFIG_PATH_ENV",
    "DATABASE_URL_ENV",
    "DatabaseConfig",
    "KernelConfig",
    "LoggingConfig",
    "NotificationConfig",
    "OrderNumberingConfig",
    "get_active_config",
]
