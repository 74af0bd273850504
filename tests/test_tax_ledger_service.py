"""Tests for TaxLedgerService, the tax-ledger upsert pipeline."""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from bizledger.domain.events import TaxFlags
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.tax_ledger import TaxLedgerFilter, TaxLedgerKey
from bizledger.domain.value_objects import Currency, TaxSource, TaxType
from bizledger.exceptions import (
    CurrencyMismatchError,
    InvalidCompanyReferenceError,
    TaxRecordRemittedError,
)

MARCH = TaxPeriod.monthly(2024, 3)


class TestSalesVat:
    def test_rebuilds_vat_record_from_month_sales(
        self, tax_ledger, tax_store, company_id, user_id, make_sale, service_item
    ):
        first = make_sale([service_item(price="1000.00")])
        second = make_sale([service_item(price="1000.00")])

        record = tax_ledger.update_company_tax_from_sales(company_id, 3, 2024, user_id)

        assert record.tax_type == TaxType.VAT
        assert record.source == TaxSource.SALE
        assert record.basis_amount == Decimal("2000.00")
        assert record.tax_amount == Decimal("150.00")
        assert record.rate == Decimal("0.075")
        assert set(record.source_refs) == {first.id, second.id}
        assert record.audit.computed_by == user_id
        assert record.audit.law_version == "FIRS-2023"

    def test_recompute_is_idempotent(
        self, tax_ledger, tax_store, company_id, make_sale, service_item
    ):
        make_sale([service_item(price="1000.00")])

        tax_ledger.update_company_tax_from_sales(company_id, 3, 2024)
        again = tax_ledger.update_company_tax_from_sales(company_id, 3, 2024)

        assert again.tax_amount == Decimal("75.00")
        assert len(tax_store.list_records(company_id)) == 1

    def test_month_without_sales_writes_nothing(self, tax_ledger, tax_store, company_id):
        assert tax_ledger.update_company_tax_from_sales(company_id, 3, 2024) is None
        assert tax_store.list_records(company_id) == []

    def test_remitted_vat_is_not_recomputed(
        self, tax_ledger, tax_store, company_id, make_sale, service_item
    ):
        make_sale([service_item(price="1000.00")])
        tax_ledger.update_company_tax_from_sales(company_id, 3, 2024)
        tax_store.mark_remitted(company_id, TaxType.VAT, MARCH, "RCPT-1", datetime.now(UTC))
        make_sale([service_item(price="1000.00")])

        with pytest.raises(TaxRecordRemittedError):
            tax_ledger.update_company_tax_from_sales(company_id, 3, 2024)


class TestExpenseTax:
    def test_claimable_vat_accumulates_across_expenses(
        self, tax_ledger, tax_store, company_id, make_expense
    ):
        flags = TaxFlags(vat_claimable=True)
        for amount, vat in [("100.00", "7.50"), ("200.00", "15.00"), ("300.00", "22.50")]:
            tax_ledger.process_expense_tax(make_expense(amount, vat=vat, flags=flags), company_id)

        record = tax_store.get(TaxLedgerKey(company_id, TaxType.VAT, MARCH, TaxSource.EXPENSE))
        assert record.basis_amount == Decimal("600.00")
        assert record.tax_amount == Decimal("45.00")
        assert len(record.source_refs) == 3
        assert record.rate == Decimal("0.075")

    def test_reapplying_an_expense_counts_it_twice(
        self, tax_ledger, company_id, make_expense, log_output
    ):
        expense = make_expense("100.00", vat="7.50", flags=TaxFlags(vat_claimable=True))

        tax_ledger.process_expense_tax(expense, company_id)
        records = tax_ledger.process_expense_tax(expense, company_id)

        assert records[0].tax_amount == Decimal("15.00")
        assert records[0].source_refs == (expense.id,)
        assert "expense_tax_reapplied" in log_output()

    def test_vat_and_wht_go_to_separate_records(self, tax_ledger, company_id, make_expense):
        expense = make_expense(
            "1000.00",
            vat="75.00",
            wht="50.00",
            flags=TaxFlags(vat_claimable=True, wht_applicable=True),
        )

        records = tax_ledger.process_expense_tax(expense, company_id)

        assert {record.tax_type: record.tax_amount for record in records} == {
            TaxType.VAT: Decimal("75.00"),
            TaxType.WHT: Decimal("50.00"),
        }

    def test_unflagged_expense_contributes_nothing(self, tax_ledger, company_id, make_expense):
        expense = make_expense("1000.00", vat="75.00")

        assert tax_ledger.process_expense_tax(expense, company_id) == []

    def test_expense_from_another_company_is_rejected(self, tax_ledger, make_expense):
        expense = make_expense("100.00", vat="7.50", flags=TaxFlags(vat_claimable=True))

        with pytest.raises(InvalidCompanyReferenceError):
            tax_ledger.process_expense_tax(expense, uuid4())

    def test_bad_company_reference_is_rejected(self, tax_ledger, make_expense):
        expense = make_expense("100.00", store=False)

        with pytest.raises(InvalidCompanyReferenceError):
            tax_ledger.process_expense_tax(expense, "   ")


class TestCompanyIncomeTax:
    def test_records_cit_and_tet(
        self, tax_ledger, company_id, make_sale, make_expense, service_item
    ):
        make_sale([service_item()])
        make_expense("1000.00")
        make_expense("500.00", flags=TaxFlags(cit_allowable=False))

        result = tax_ledger.record_company_income_tax(company_id, "2024-03")

        assert result.profit.assessable_profit == Decimal("3875.00")
        assert result.cit_record.tax_amount == Decimal("0.00")
        assert result.tet_record.tax_amount == Decimal("96.88")
        assert result.tet_record.source == TaxSource.PROFIT_COMPUTATION
        assert result.cit_record.audit.notes == "turnover=5375.00"

    def test_rerun_replaces_rather_than_adds(
        self, tax_ledger, tax_store, company_id, make_sale, service_item
    ):
        make_sale([service_item()])

        tax_ledger.record_company_income_tax(company_id, MARCH)
        tax_ledger.record_company_income_tax(company_id, MARCH)

        tet = tax_store.list_records(company_id, TaxLedgerFilter(tax_type=TaxType.TET))
        assert len(tet) == 1
        assert tet[0].tax_amount == Decimal("134.38")


class TestLedgerQuery:
    def test_filters_by_tax_type(self, tax_ledger, company_id, make_expense):
        expense = make_expense(
            "1000.00",
            vat="75.00",
            wht="50.00",
            flags=TaxFlags(vat_claimable=True, wht_applicable=True),
        )
        tax_ledger.process_expense_tax(expense, company_id)

        records = tax_ledger.get_company_tax_ledger(
            company_id, TaxLedgerFilter(tax_type=TaxType.WHT)
        )

        assert [record.tax_type for record in records] == [TaxType.WHT]


class TestReportingCurrency:
    def test_vat_record_counts_only_naira_sales(
        self, tax_ledger, company_id, make_sale, service_item, log_output
    ):
        naira = make_sale([service_item(price="1000.00")])
        make_sale([service_item(price="10.00")], currency=Currency.USD)

        record = tax_ledger.update_company_tax_from_sales(company_id, 3, 2024)

        assert record.basis_amount == Decimal("1000.00")
        assert record.tax_amount == Decimal("75.00")
        assert record.source_refs == (naira.id,)
        assert "sales_excluded_by_currency" in log_output()

    def test_month_with_only_foreign_sales_writes_nothing(
        self, tax_ledger, tax_store, company_id, make_sale, service_item
    ):
        make_sale([service_item(price="10.00")], currency=Currency.USD)

        assert tax_ledger.update_company_tax_from_sales(company_id, 3, 2024) is None
        assert tax_store.list_records(company_id) == []

    def test_cit_turnover_ignores_foreign_sales(
        self, tax_ledger, company_id, make_sale, service_item
    ):
        make_sale([service_item(price="5000.00")])
        make_sale([service_item(price="900.00")], currency=Currency.USD)

        result = tax_ledger.record_company_income_tax(company_id, MARCH)

        assert result.cit_record.audit.notes == "turnover=5375.00"
        assert len(result.cit_record.source_refs) == 1

    def test_foreign_expense_tax_is_rejected(
        self, tax_ledger, tax_store, company_id, make_expense
    ):
        expense = make_expense(
            "100.00", vat="7.50", flags=TaxFlags(vat_claimable=True), currency=Currency.USD
        )

        with pytest.raises(CurrencyMismatchError) as excinfo:
            tax_ledger.process_expense_tax(expense, company_id)

        assert excinfo.value.context["currency"] == "USD"
        assert excinfo.value.context["reporting_currency"] == "NGN"
        assert tax_store.list_records(company_id) == []

    def test_foreign_expense_without_tax_is_accepted(self, tax_ledger, company_id, make_expense):
        expense = make_expense("100.00", currency=Currency.USD)

        assert tax_ledger.process_expense_tax(expense, company_id) == []
