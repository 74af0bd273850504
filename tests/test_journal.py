"""Tests for JournalValidator and the LedgerEntry constructors it checks."""

from decimal import Decimal
from uuid import uuid4

import pytest

from bizledger.domain.ledger import LedgerEntry
from bizledger.domain.value_objects import LedgerAccount, LedgerSource, Money, EntryType
from bizledger.exceptions import ImbalancedJournalError, InvalidAmountError
from bizledger.services.journal import JournalValidator


def _pair(company_id, debit: str, credit: str, currency: str = "NGN"):
    ref = uuid4()
    return [
        LedgerEntry.debit(
            company_id,
            LedgerAccount.CASH,
            Decimal(debit),
            source=LedgerSource.SALE,
            reference_id=ref,
            currency=currency,
        ),
        LedgerEntry.credit(
            company_id,
            LedgerAccount.REVENUE,
            Decimal(credit),
            source=LedgerSource.SALE,
            reference_id=ref,
            currency=currency,
        ),
    ]


class TestLedgerEntry:
    def test_debit_builds_debit_line_with_category(self, company_id):
        entry = LedgerEntry.debit(
            company_id,
            LedgerAccount.INVENTORY,
            Decimal("10.00"),
            source=LedgerSource.INVENTORY,
            reference_id=uuid4(),
        )

        assert entry.entry_type == EntryType.DEBIT
        assert entry.is_debit
        assert entry.amount == Money(Decimal("10.00"))
        assert entry.account_category == LedgerAccount.INVENTORY.category

    def test_negative_amount_is_rejected(self, company_id):
        with pytest.raises(InvalidAmountError):
            LedgerEntry.credit(
                company_id,
                LedgerAccount.CASH,
                Decimal("-1.00"),
                source=LedgerSource.EXPENSE,
                reference_id=uuid4(),
            )

    def test_entry_is_frozen(self, company_id):
        entry = _pair(company_id, "1", "1")[0]

        with pytest.raises(AttributeError):
            entry.amount = Money(Decimal("2"))  # type: ignore[misc]


class TestJournalValidator:
    def test_balanced_journal_passes(self, company_id):
        validator = JournalValidator()

        validator.validate(_pair(company_id, "150.00", "150.00"))

        assert validator.is_balanced(_pair(company_id, "150.00", "150.00"))

    def test_imbalanced_journal_raises_with_totals(self, company_id):
        with pytest.raises(ImbalancedJournalError) as exc_info:
            JournalValidator().validate(_pair(company_id, "150.00", "149.99"))

        assert exc_info.value.context["debit_total"] == "150.00"
        assert exc_info.value.context["credit_total"] == "149.99"

    def test_empty_journal_is_rejected(self):
        with pytest.raises(ImbalancedJournalError, match="no entries"):
            JournalValidator().validate([])

    def test_balance_is_checked_per_currency(self, company_id):
        entries = [
            _pair(company_id, "100.00", "0.00", currency="NGN")[0],
            _pair(company_id, "0.00", "100.00", currency="USD")[1],
        ]

        assert not JournalValidator().is_balanced(entries)

    def test_rejection_is_logged(self, company_id, log_output):
        with pytest.raises(ImbalancedJournalError):
            JournalValidator().validate(_pair(company_id, "10.00", "9.00"))

        assert "journal_rejected" in log_output()
