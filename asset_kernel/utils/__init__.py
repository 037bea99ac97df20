"""Utility modules for the asset kernel."""

from asset_kernel.utils.serialization import enum_value, json_safe

__all__ = [
    "enum_value",
    "json_safe",
]
