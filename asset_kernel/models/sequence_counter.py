"""
Module: asset_kernel.models.sequence_counter
Responsibility: One row per order-number series (prefix and day).  The row
    is locked while its value is incremented, so numbers within a series
    never repeat.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from asset_kernel.db.base import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    # e.g. "order_number:TO-MT:20240315"
    name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)

    # Last value handed out; 0 until the first allocation.
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
