"""Tests for PayrollService: compute, record and post a payroll run."""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from bizledger.domain.events import PayrollRequest
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.tax_ledger import TaxLedgerFilter
from bizledger.domain.tax_settings import TaxSettingsProfile
from bizledger.domain.value_objects import (
    EntryType,
    LedgerAccount,
    TaxMode,
    TaxSource,
    TaxType,
)
from bizledger.exceptions import InvalidAmountError, TaxRecordRemittedError

MARCH = TaxPeriod.monthly(2024, 3)


@pytest.fixture
def request_for(company_id):
    def _make(**overrides) -> PayrollRequest:
        values = {
            "company_id": company_id,
            "employee_id": uuid4(),
            "period": MARCH,
            "basic_salary": Decimal("80000"),
            "allowances": {"housing": Decimal("20000")},
        }
        values.update(overrides)
        return PayrollRequest(**values)

    return _make


def _count_rows(db) -> int:
    return db.get_connection().execute("SELECT COUNT(*) FROM ledger_entries").fetchone()[0]


class TestCompute:
    def test_breakdown_with_default_settings(self, payroll_service, request_for):
        breakdown = payroll_service.compute(request_for())

        assert breakdown.gross_salary == Decimal("100000.00")
        assert breakdown.pension_employee == Decimal("8000.00")
        assert breakdown.paye == Decimal("7875.00")
        assert breakdown.net_pay == Decimal("76625.00")
        assert breakdown.total_employee_deductions == Decimal("23375.00")
        assert breakdown.total_employer_costs == Decimal("21000.00")
        assert breakdown.ledger_journal_id is None

    def test_missing_settings_are_logged(self, payroll_service, request_for, log_output):
        payroll_service.compute(request_for())

        assert "tax_settings_defaulted" in log_output()

    def test_stored_settings_are_used(
        self, payroll_service, settings_provider, company_id, request_for
    ):
        settings_provider.save(
            TaxSettingsProfile(
                company_id=company_id,
                mode=TaxMode.CUSTOM_PERCENT,
                custom_percent=Decimal("10"),
                pension_employee_rate=Decimal("0"),
            )
        )

        breakdown = payroll_service.compute(request_for())

        assert breakdown.paye == Decimal("10000.00")
        assert breakdown.pension_employee == Decimal("0.00")
        assert breakdown.net_pay == Decimal("82500.00")

    def test_compute_writes_nothing(self, payroll_service, tax_store, db, company_id, request_for):
        payroll_service.compute(request_for())

        assert tax_store.list_records(company_id) == []
        assert _count_rows(db) == 0

    def test_deductions_above_gross_are_rejected(self, payroll_service, request_for):
        request = request_for(
            basic_salary=Decimal("50000"), allowances={}, other_deductions=Decimal("60000")
        )

        with pytest.raises(InvalidAmountError, match="deductions exceed gross salary") as excinfo:
            payroll_service.compute(request)

        assert excinfo.value.context["net_pay"].startswith("-")
        assert excinfo.value.context["other_deductions"] == "60000.00"


class TestRunPayroll:
    def test_run_records_statutory_taxes(
        self, payroll_service, tax_store, company_id, user_id, request_for
    ):
        request = request_for()

        payroll_service.run_payroll(request, user_id)

        records = {
            record.tax_type: record
            for record in tax_store.list_records(company_id, TaxLedgerFilter(period=MARCH))
        }
        assert set(records) == {TaxType.PAYE, TaxType.NHF, TaxType.NHIS, TaxType.NHIS_EMPLOYER}
        assert records[TaxType.PAYE].basis_amount == Decimal("72500.00")
        assert records[TaxType.PAYE].tax_amount == Decimal("7875.00")
        assert records[TaxType.NHF].tax_amount == Decimal("2500.00")
        assert records[TaxType.NHIS].tax_amount == Decimal("5000.00")
        assert records[TaxType.NHIS_EMPLOYER].tax_amount == Decimal("10000.00")
        assert all(record.source == TaxSource.PAYROLL for record in records.values())
        assert records[TaxType.PAYE].source_refs == (request.id,)
        assert records[TaxType.PAYE].audit.computed_by == user_id

    def test_run_posts_balanced_journal(self, payroll_service, ledger_store, request_for):
        breakdown = payroll_service.run_payroll(request_for())

        entries = ledger_store.get_journal(breakdown.ledger_journal_id)
        lines = sorted((e.account, e.entry_type, e.amount.amount) for e in entries)
        assert lines == sorted(
            [
                (LedgerAccount.PAYROLL_EXPENSE, EntryType.DEBIT, Decimal("100000.00")),
                (LedgerAccount.PAYROLL_EXPENSE, EntryType.DEBIT, Decimal("21000.00")),
                (LedgerAccount.CASH, EntryType.CREDIT, Decimal("76625.00")),
                (LedgerAccount.TAX_PAYABLE, EntryType.CREDIT, Decimal("23375.00")),
                (LedgerAccount.TAX_PAYABLE, EntryType.CREDIT, Decimal("21000.00")),
            ]
        )
        debits = sum(e.amount.amount for e in entries if e.is_debit)
        credits = sum(e.amount.amount for e in entries if e.is_credit)
        assert debits == credits == Decimal("121000.00")

    def test_two_employees_accumulate_into_one_record(
        self, payroll_service, tax_store, company_id, request_for
    ):
        payroll_service.run_payroll(request_for())
        payroll_service.run_payroll(request_for())

        paye = tax_store.list_records(company_id, TaxLedgerFilter(tax_type=TaxType.PAYE))
        assert len(paye) == 1
        assert paye[0].tax_amount == Decimal("15750.00")
        assert len(paye[0].source_refs) == 2

    def test_remitted_period_rolls_back_whole_run(
        self, payroll_service, tax_store, db, company_id, request_for
    ):
        payroll_service.run_payroll(request_for())
        tax_store.mark_remitted(company_id, TaxType.PAYE, MARCH, "RCPT-1", datetime.now(UTC))

        with pytest.raises(TaxRecordRemittedError):
            payroll_service.run_payroll(request_for())

        assert _count_rows(db) == 5
        nhf = tax_store.list_records(company_id, TaxLedgerFilter(tax_type=TaxType.NHF))
        assert nhf[0].tax_amount == Decimal("2500.00")

    def test_run_is_logged(self, payroll_service, request_for, log_output):
        payroll_service.run_payroll(request_for())

        output = log_output()
        assert "payroll_posted" in output
        assert "payroll_completed" in output

    def test_negative_net_pay_touches_no_ledger(
        self, payroll_service, tax_store, db, company_id, request_for
    ):
        request = request_for(
            basic_salary=Decimal("50000"), allowances={}, other_deductions=Decimal("60000")
        )

        with pytest.raises(InvalidAmountError):
            payroll_service.run_payroll(request)

        assert tax_store.list_records(company_id) == []
        assert _count_rows(db) == 0
