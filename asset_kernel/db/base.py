"""
Module: asset_kernel.db.base
Responsibility: Declarative base and column types shared by every model.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/, domain/,
    or outer layers.

Invariants enforced:
    - Primary keys are uuid4 values stored as String(36), so one schema runs
      on PostgreSQL and SQLite.
    - Repair costs map to Numeric(14, 2); never float.
    - Datetimes are written in UTC and always read back timezone-aware,
      including on SQLite, which has no timezone storage.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """uuid.UUID on the Python side, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime column.

    Naive values are taken as UTC.  SQLite stores the UTC wall time and the
    tzinfo is reattached on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """Declarative base: uuid4 ``id`` plus the shared type map."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(14, 2),
        datetime: UTCDateTime(),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Row timestamps and the acting user for registry and order tables.

    Branches, machines and SIM cards are seeded outside the kernel, so
    ``created_by_id`` may be empty.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
