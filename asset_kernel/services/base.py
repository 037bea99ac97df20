"""
BaseService -- common base for the kernel's write-side helpers.

Services receive the orchestrator's ``Session`` and ``Clock``.  They add
and flush rows but never commit or roll back: ``db.engine.unit_of_work``
owns the transaction, which is what keeps an asset freeze, its order and
its log entries in one atomic unit.
"""

from abc import ABC
from datetime import datetime
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from asset_kernel.db.base import Base
from asset_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)
RowT = TypeVar("RowT", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Holds the session and clock; ``_append`` adds and flushes one row."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def now(self) -> datetime:
        return self._clock.now()

    def _append(self, row: RowT) -> RowT:
        """Add ``row`` and flush so its defaults and id are populated."""
        self.session.add(row)
        self.session.flush()
        return row
