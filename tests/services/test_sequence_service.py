"""
Journal sequence allocation.

On SQLite the value comes from a locked counter row; on PostgreSQL from a
database sequence, so an open transaction holding a number never blocks
another writer from drawing the next one.
"""

import pytest
from sqlalchemy import select

from inventory_kernel.models.sequence import SequenceCounter
from inventory_kernel.services.sequence_service import SequenceService


@pytest.fixture
def sequences(session):
    return SequenceService(session)


@pytest.fixture
def sqlite_only(db_engine):
    if db_engine.dialect.name != "sqlite":
        pytest.skip("counter-row allocation is the SQLite path")


@pytest.fixture
def postgres_only(db_engine):
    if db_engine.dialect.name != "postgresql":
        pytest.skip("requires PostgreSQL (set DATABASE_URL)")


class TestAllocation:
    def test_values_strictly_increase(self, sequences):
        values = [sequences.next_value() for _ in range(3)]
        assert values == sorted(set(values))
        assert values[0] > 0

    def test_current_value_is_last_drawn(self, sequences):
        drawn = sequences.next_value()
        assert sequences.current_value() == drawn

    def test_named_counters_are_independent(self, sequences):
        sequences.next_value()
        assert sequences.next_value("pick_list") == 1
        assert sequences.next_value("pick_list") == 2

    def test_unused_counter_has_no_value(self, sequences):
        assert sequences.current_value("never_used") is None


class TestCounterRow:
    def test_counter_row_backs_the_journal(self, session, sequences, sqlite_only):
        drawn = sequences.next_value()
        counter = session.execute(
            select(SequenceCounter).where(SequenceCounter.name == SequenceService.STOCK_TRANSACTION)
        ).scalar_one()
        assert counter.current_value == drawn

    def test_rolled_back_value_is_reused(self, session, sequences, sqlite_only):
        first = sequences.next_value()
        savepoint = session.begin_nested()
        sequences.next_value()
        savepoint.rollback()
        assert sequences.next_value() == first + 1


@pytest.mark.postgres
class TestDatabaseSequence:
    def test_no_counter_row_for_the_journal(self, session, sequences, postgres_only):
        sequences.next_value()
        counter = session.execute(
            select(SequenceCounter).where(SequenceCounter.name == SequenceService.STOCK_TRANSACTION)
        ).scalar_one_or_none()
        assert counter is None

    def test_open_transaction_does_not_block_next_writer(self, session_factory, postgres_only):
        holder = session_factory()
        other = session_factory()
        held = SequenceService(holder).next_value()
        # holder stays uncommitted; a counter row lock would time out here
        drawn = SequenceService(other).next_value()
        assert drawn > held
        other.rollback()
        holder.rollback()
