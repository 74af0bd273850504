"""Tests for the append-only SQLite ledger store."""

import dataclasses
import sqlite3
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from bizledger.domain.ledger import LedgerEntry
from bizledger.domain.value_objects import Currency, LedgerAccount, LedgerSource
from bizledger.exceptions import (
    ImbalancedJournalError,
    ImmutableLedgerError,
    InvalidAmountError,
    JournalError,
    PersistenceError,
)


def _journal(company_id, amount: str = "250.00", reference_id=None, currency=Currency.NGN):
    ref = reference_id or uuid4()
    return [
        LedgerEntry.debit(
            company_id,
            LedgerAccount.CASH,
            Decimal(amount),
            source=LedgerSource.SALE,
            reference_id=ref,
            description="Sale",
            currency=currency,
        ),
        LedgerEntry.credit(
            company_id,
            LedgerAccount.REVENUE,
            Decimal(amount),
            source=LedgerSource.SALE,
            reference_id=ref,
            description="Sale revenue",
            currency=currency,
        ),
    ]


def _count_rows(db) -> int:
    return db.get_connection().execute("SELECT COUNT(*) FROM ledger_entries").fetchone()[0]


class TestAppendJournal:
    def test_append_stamps_one_journal_id(self, ledger_store, company_id):
        journal_id = ledger_store.append_journal(_journal(company_id))

        stored = ledger_store.get_journal(journal_id)
        assert len(stored) == 2
        assert {entry.journal_id for entry in stored} == {journal_id}

    def test_amounts_round_trip_exactly(self, ledger_store, company_id):
        journal_id = ledger_store.append_journal(_journal(company_id, "1234.56"))

        amounts = {entry.amount.amount for entry in ledger_store.get_journal(journal_id)}
        assert amounts == {Decimal("1234.56")}

    def test_imbalanced_journal_never_reaches_storage(self, ledger_store, db, company_id):
        entries = _journal(company_id)
        entries[1] = dataclasses.replace(entries[1], amount=entries[1].amount * Decimal("2"))

        with pytest.raises(ImbalancedJournalError):
            ledger_store.append_journal(entries)

        assert _count_rows(db) == 0

    def test_entries_from_two_journals_are_rejected(self, ledger_store, company_id):
        entries = [entry.in_journal(uuid4()) for entry in _journal(company_id)]

        with pytest.raises(JournalError, match="more than one journal"):
            ledger_store.append_journal(entries)

    def test_committed_journal_id_cannot_be_reused(self, ledger_store, company_id):
        journal_id = ledger_store.append_journal(_journal(company_id))
        again = [entry.in_journal(journal_id) for entry in _journal(company_id)]

        with pytest.raises(JournalError, match="already committed"):
            ledger_store.append_journal(again)

    def test_failed_write_rolls_back_whole_batch(self, ledger_store, db, company_id):
        debit, credit = _journal(company_id)
        duplicate = dataclasses.replace(credit, id=debit.id)

        with pytest.raises(PersistenceError):
            ledger_store.append_journal([debit, duplicate])

        assert _count_rows(db) == 0

    def test_sub_kobo_amount_fails_before_any_write(self, ledger_store, db, company_id):
        entries = _journal(company_id, "10.005")

        with pytest.raises(InvalidAmountError):
            ledger_store.append_journal(entries)

        assert _count_rows(db) == 0


class TestImmutability:
    def test_update_is_refused(self, ledger_store, company_id):
        journal_id = ledger_store.append_journal(_journal(company_id))
        entry = ledger_store.get_journal(journal_id)[0]

        with pytest.raises(ImmutableLedgerError):
            ledger_store.update(entry)

    def test_delete_is_refused(self, ledger_store, company_id):
        journal_id = ledger_store.append_journal(_journal(company_id))
        entry = ledger_store.get_journal(journal_id)[0]

        with pytest.raises(ImmutableLedgerError):
            ledger_store.delete(entry.id)

    def test_raw_sql_update_is_blocked_by_trigger(self, ledger_store, db, company_id):
        ledger_store.append_journal(_journal(company_id))

        with pytest.raises(sqlite3.DatabaseError, match="immutable"):
            db.get_connection().execute("UPDATE ledger_entries SET amount = 1")

    def test_raw_sql_delete_is_blocked_by_trigger(self, ledger_store, db, company_id):
        ledger_store.append_journal(_journal(company_id))

        with pytest.raises(sqlite3.DatabaseError, match="immutable"):
            db.get_connection().execute("DELETE FROM ledger_entries")

        assert _count_rows(db) == 2


class TestAtomic:
    def test_atomic_block_rolls_back_on_error(self, ledger_store, db, company_id):
        with pytest.raises(RuntimeError):
            with ledger_store.atomic():
                ledger_store.append_journal(_journal(company_id))
                raise RuntimeError("downstream failure")

        assert _count_rows(db) == 0

    def test_atomic_block_commits_all_journals(self, ledger_store, db, company_id):
        with ledger_store.atomic():
            ledger_store.append_journal(_journal(company_id))
            ledger_store.append_journal(_journal(company_id))

        assert _count_rows(db) == 4


class TestQueries:
    def test_list_by_company_scopes_to_company(self, ledger_store, company_id):
        ledger_store.append_journal(_journal(company_id))
        ledger_store.append_journal(_journal(uuid4()))

        entries = list(ledger_store.list_by_company(company_id))
        assert len(entries) == 2
        assert all(entry.company_id == company_id for entry in entries)

    def test_list_by_account(self, ledger_store, company_id):
        ledger_store.append_journal(_journal(company_id))

        entries = list(ledger_store.list_by_account(company_id, LedgerAccount.REVENUE))
        assert [entry.account for entry in entries] == [LedgerAccount.REVENUE]

    def test_list_by_reference(self, ledger_store, company_id):
        ref = uuid4()
        ledger_store.append_journal(_journal(company_id, reference_id=ref))
        ledger_store.append_journal(_journal(company_id))

        assert len(list(ledger_store.list_by_reference(ref))) == 2

    def test_list_by_date_range(self, ledger_store, company_id):
        ledger_store.append_journal(_journal(company_id))
        now = datetime.now(UTC)

        inside = ledger_store.list_by_date_range(
            company_id, now - timedelta(hours=1), now + timedelta(hours=1)
        )
        outside = ledger_store.list_by_date_range(
            company_id, now - timedelta(days=2), now - timedelta(days=1)
        )
        assert len(list(inside)) == 2
        assert list(outside) == []

    def test_sum_by_account_returns_raw_totals(self, ledger_store, company_id):
        ledger_store.append_journal(_journal(company_id, "100.00"))
        ledger_store.append_journal(_journal(company_id, "50.25"))

        totals = {row.account: row for row in ledger_store.sum_by_account(company_id)}
        assert totals[LedgerAccount.CASH].debit_total == Decimal("150.25")
        assert totals[LedgerAccount.CASH].credit_total == Decimal("0.00")
        assert totals[LedgerAccount.REVENUE].credit_total == Decimal("150.25")
        assert LedgerAccount.INVENTORY not in totals

    def test_sum_by_account_keeps_currencies_apart(self, ledger_store, company_id):
        ledger_store.append_journal(_journal(company_id, "1000.00"))
        ledger_store.append_journal(_journal(company_id, "10.00", currency=Currency.USD))

        totals = {
            (row.account, row.currency): row.debit_total
            for row in ledger_store.sum_by_account(company_id)
        }
        assert totals == {
            (LedgerAccount.CASH, Currency.NGN): Decimal("1000.00"),
            (LedgerAccount.CASH, Currency.USD): Decimal("10.00"),
            (LedgerAccount.REVENUE, Currency.NGN): Decimal("0.00"),
            (LedgerAccount.REVENUE, Currency.USD): Decimal("0.00"),
        }

        naira = ledger_store.sum_by_account(company_id, currency=Currency.NGN)
        assert {row.currency for row in naira} == {Currency.NGN}
        assert [row.account for row in naira] == [LedgerAccount.CASH, LedgerAccount.REVENUE]
