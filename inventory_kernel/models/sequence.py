"""
Module: inventory_kernel.models.sequence
Responsibility: Sources of journal sequence numbers for SequenceService.
Architecture position: Kernel > Models.  May import from db/ only.

Two sources exist:
    - ``STOCK_TRANSACTION_SEQ``: a database sequence, created with the
      tables on backends that support sequences (PostgreSQL).  ``nextval``
      never blocks, so writers on disjoint balance rows do not wait on
      each other.
    - ``SequenceCounter``: named counter rows locked ``FOR UPDATE``, used
      where the backend has no sequences (SQLite, whose writers are
      serialized by ``BEGIN IMMEDIATE`` anyway).
"""

from sqlalchemy import BigInteger, Sequence, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base

STOCK_TRANSACTION_SEQ = Sequence("stock_transaction_seq", start=1, metadata=Base.metadata)


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
