"""
SequenceService -- monotonic sequence allocation.

Responsibility:
    Provides strictly increasing sequence numbers for journal entries.
    On backends with sequences (PostgreSQL) the journal sequence is a
    database ``SEQUENCE``; ``nextval`` takes no row lock, so operations on
    disjoint balance rows never queue behind one another.  Elsewhere a
    dedicated counter row is locked (``SELECT ... FOR UPDATE``) so that
    concurrent writers never share or reorder a value.

Architecture position:
    Kernel > Services.  Called by JournalWriter.

Invariants enforced:
    - Sequences are strictly monotonic and unique.  The
      aggregate-max-plus-one anti-pattern is never used.
    - With the counter row, the increment is only visible after the
      caller's transaction commits and a rollback returns the value.  A
      database sequence does not roll back, so a rolled-back operation
      leaves a gap in ``seq``.
    - Entries touching the same balance row commit in ``seq`` order: the
      row lock is taken before the number is drawn.

Failure modes:
    - IntegrityError on a concurrent first-use race of a counter row,
      handled via savepoint rollback and re-select.
"""

from sqlalchemy import Sequence, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sequence import STOCK_TRANSACTION_SEQ, SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    STOCK_TRANSACTION = "stock_transaction"

    _DATABASE_SEQUENCES: dict[str, Sequence] = {STOCK_TRANSACTION: STOCK_TRANSACTION_SEQ}

    def __init__(self, session: Session):
        self._session = session

    def _database_sequence(self, sequence_name: str) -> Sequence | None:
        sequence = self._DATABASE_SEQUENCES.get(sequence_name)
        if sequence is None or not self._session.get_bind().dialect.supports_sequences:
            return None
        return sequence

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str = STOCK_TRANSACTION) -> int:
        """
        Draw the next value: ``nextval`` of the database sequence, or the
        locked counter row (created on first use) incremented by one.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously drawn for this sequence.
            - A counter row stays locked until the transaction ends.
        """
        sequence = self._database_sequence(sequence_name)
        if sequence is not None:
            value = self._session.execute(select(sequence.next_value())).scalar_one()
            logger.debug(
                "sequence_allocated",
                extra={"sequence_name": sequence_name, "value": value},
            )
            return value

        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use; another writer may be creating the same row.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str = STOCK_TRANSACTION) -> int | None:
        """Current value without incrementing, or None if never used."""
        sequence = self._database_sequence(sequence_name)
        if sequence is not None:
            last_value, is_called = self._session.execute(
                text(f"SELECT last_value, is_called FROM {sequence.name}")
            ).one()
            return last_value if is_called else None

        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
