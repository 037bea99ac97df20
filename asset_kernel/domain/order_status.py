"""Order status derivation from item received flags."""

from __future__ import annotations

from collections.abc import Iterable


def derive_order_status(received_flags: Iterable[bool]) -> str:
    """
    all received -> RECEIVED, some -> PARTIAL, none (or no items) -> PENDING.

    CANCELLED and REJECTED are never derived; they are set explicitly.
    """
    flags = list(received_flags)
    received = sum(1 for f in flags if f)
    if flags and received == len(flags):
        return "RECEIVED"
    if received:
        return "PARTIAL"
    return "PENDING"
