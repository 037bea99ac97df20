"""
Configuration Loader (``asset_config.loader``).

Responsibility
--------------
Loads the kernel YAML file and parses it into the frozen dataclasses of
``asset_config.schema``.  Callers go through
``asset_config.get_active_config()``; this module is its internal tooling.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* ``compute_checksum`` is a deterministic SHA-256 over canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values or bad templates  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from asset_config.schema import (
    DatabaseConfig,
    KernelConfig,
    LoggingConfig,
    NotificationConfig,
    OrderNumberingConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge_overrides(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; values in ``overrides`` win."""
    merged: dict[str, Any] = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_overrides(merged[key], value)
        else:
            merged[key] = value
    return merged


def _positive_int(data: Mapping[str, Any], key: str, default: int) -> int:
    value = int(data.get(key, default))
    if value < 1:
        raise ValueError(f"{key} must be >= 1, got {value}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    """Parse the ``database`` section.  ``url`` is required."""
    url = data["url"]
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    timeout = data.get("statement_timeout_ms")
    return DatabaseConfig(
        url=url,
        echo=bool(data.get("echo", False)),
        pool_size=_positive_int(data, "pool_size", 20),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_pre_ping=bool(data.get("pool_pre_ping", True)),
        pool_timeout=_positive_int(data, "pool_timeout", 30),
        pool_recycle=int(data.get("pool_recycle", 1800)),
        statement_timeout_ms=int(timeout) if timeout is not None else None,
        sqlite_begin_immediate=bool(data.get("sqlite_begin_immediate", False)),
    )


def parse_order_numbering(data: dict[str, Any]) -> OrderNumberingConfig:
    prefix = str(data.get("prefix", "TO"))
    bulk_prefix = str(data.get("bulk_prefix", "TO-MT"))
    if prefix == bulk_prefix:
        raise ValueError("order_numbering.prefix and bulk_prefix must differ")
    return OrderNumberingConfig(
        prefix=prefix,
        bulk_prefix=bulk_prefix,
        padding=_positive_int(data, "padding", 3),
    )


def parse_notifications(data: dict[str, Any]) -> NotificationConfig:
    defaults = NotificationConfig()
    config = NotificationConfig(
        receive_link_template=data.get("receive_link_template", defaults.receive_link_template),
        order_link_template=data.get("order_link_template", defaults.order_link_template),
        machine_link_template=data.get("machine_link_template", defaults.machine_link_template),
    )
    for name, placeholder in (
        ("receive_link_template", "{order_id}"),
        ("order_link_template", "{order_id}"),
        ("machine_link_template", "{serial_number}"),
    ):
        if placeholder not in getattr(config, name):
            raise ValueError(f"notifications.{name} must contain {placeholder}")
    return config


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown logging level: {level}")
    return LoggingConfig(level=level)


def parse_kernel_config(data: dict[str, Any]) -> KernelConfig:
    """
    Parse the whole document into a ``KernelConfig``.

    Raises:
        KeyError: ``config_id``, ``version`` or ``database`` missing.
        ValueError: any section fails validation.
    """
    return KernelConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        database=parse_database(data["database"]),
        order_numbering=parse_order_numbering(data.get("order_numbering") or {}),
        notifications=parse_notifications(data.get("notifications") or {}),
        logging=parse_logging(data.get("logging") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
