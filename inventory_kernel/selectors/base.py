"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the "Q" side of the kernel, giving structured read access to balances,
    the journal, lots and containers without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/ and the
    DTOs in domain/dtos.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses, NOT raw ORM
      model instances.
    - Session ownership: the caller owns the session and its transaction scope.

Failure modes:
    - ValidationError for out-of-range page / page_size.
"""

from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base
from inventory_kernel.exceptions import ValidationError

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Guarantees:
        - session is stored as a public attribute for subclass query use.
        - No commit, flush, add, or delete operations are performed.
    """

    def __init__(self, session: Session):
        self.session = session

    def _paginate(
        self,
        stmt: Select,
        page: int,
        page_size: int,
        max_page_size: int,
    ) -> tuple[list[Any], int]:
        """
        Run ``stmt`` for one 1-based page.

        Returns:
            (rows of the page, total row count)
        """
        if page < 1:
            raise ValidationError(f"page must be >= 1, got {page}", field="page")
        if not 1 <= page_size <= max_page_size:
            raise ValidationError(
                f"page_size must be between 1 and {max_page_size}, got {page_size}",
                field="page_size",
            )
        total = self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        rows = self.session.execute(
            stmt.limit(page_size).offset((page - 1) * page_size)
        ).all()
        return rows, total
