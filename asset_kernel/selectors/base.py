"""
Module: asset_kernel.selectors.base
Responsibility: Common base for the read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      commit() or flush().
    - Branch visibility: a non-global actor only sees rows where one of the
      branch columns is inside its authorized set.
    - The caller owns the session and its transaction scope.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy import or_
from sqlalchemy.sql import Select
from sqlalchemy.orm import Session

from asset_kernel.db.base import Base
from asset_kernel.domain.actor import ActorContext

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _visible_to(stmt: Select, actor: ActorContext, *branch_columns) -> Select:
        """Restrict ``stmt`` to rows touching the actor's branch subtree."""
        if actor.is_global:
            return stmt
        allowed = tuple(actor.authorized_branch_ids)
        return stmt.where(or_(*(column.in_(allowed) for column in branch_columns)))

    @staticmethod
    def _page(stmt: Select, limit: int | None, offset: int = 0) -> Select:
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return stmt
