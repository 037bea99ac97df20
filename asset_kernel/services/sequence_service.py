"""
SequenceService -- per-day order numbers via locked counter rows.

Responsibility:
    Allocates human-readable order numbers (``TO-20240101-001``).  Each
    (prefix, day) pair has its own counter row, incremented under
    ``SELECT ... FOR UPDATE``.

Invariants enforced:
    - No aggregate max()+1: the locked counter row is the only source of the
      next value.
    - Transactional: the increment is visible only after the caller commits;
      a rolled-back unit of work returns its number.

Failure modes:
    - First use of a counter races with another creator: the row is created
      with INSERT ... ON CONFLICT DO NOTHING, so both proceed to the locked
      SELECT and serialize there.
"""

from datetime import UTC, date, datetime
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from asset_kernel.logging_config import get_logger
from asset_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SequenceService:
    """
    Allocates values from named counters inside the caller's transaction.

    Usage:
        number = SequenceService(session).next_order_number("TO", clock.business_date())
    """

    def __init__(self, session: Session):
        self._session = session

    def _insert_if_missing(self, name: str) -> None:
        dialect = self._session.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            if self.current_value(name) is None:
                self._session.add(SequenceCounter(name=name, current_value=0))
                self._session.flush()
            return
        self._session.execute(
            insert(SequenceCounter)
            .values(id=uuid4(), name=name, current_value=0)
            .on_conflict_do_nothing(index_elements=["name"])
        )

    def next_value(self, name: str) -> int:
        """
        Lock the counter, creating it on first use, and return its next value.

        The row stays locked until the caller's transaction ends, so a second
        allocator in the same series waits here and then sees the new value.
        """
        self._insert_if_missing(name)
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

        counter.current_value += 1
        self._session.flush()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        """Last allocated value, or None if the counter was never used."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        ).scalar_one_or_none()

    def next_order_number(self, prefix: str, on: date | datetime, padding: int = 3) -> str:
        """``{prefix}-{YYYYMMDD}-{NNN}``; numbering restarts per prefix and UTC day."""
        if isinstance(on, datetime):
            on = on.astimezone(UTC).date()
        day = on.strftime("%Y%m%d")
        value = self.next_value(f"order_number:{prefix}:{day}")
        return f"{prefix}-{day}-{value:0{padding}d}"
