"""Tests for CompanyTaxEngine."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from bizledger.domain.events import TaxFlags
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.value_objects import Currency, ExpenseStatus
from bizledger.exceptions import InvalidCompanyReferenceError
from bizledger.services.company_tax import CompanyTaxEngine


class TestCitRateBands:
    @pytest.mark.parametrize(
        ("turnover", "rate"),
        [
            ("20000000", "0"),
            ("25000000", "0"),
            ("50000000", "0.20"),
            ("100000000", "0.20"),
            ("150000000", "0.30"),
        ],
    )
    def test_rate_follows_turnover(self, company_tax, turnover, rate):
        assert company_tax.cit_rate_for_turnover(Decimal(turnover)) == Decimal(rate)

    def test_cit_and_tet(self, company_tax):
        result = company_tax.compute_cit_and_tet(Decimal("1000000"), Decimal("50000000"))

        assert result.cit_rate == Decimal("0.20")
        assert result.cit == Decimal("200000.00")
        assert result.tet == Decimal("25000.00")

    def test_small_company_still_owes_tet(self, company_tax):
        result = company_tax.compute_cit_and_tet(Decimal("3875"), Decimal("5375"))

        assert result.cit == Decimal("0.00")
        assert result.tet == Decimal("96.88")


class TestProfit:
    def test_profit_subtracts_both_expense_kinds(self, company_tax):
        result = company_tax.calculate_profit(
            Decimal("10000"), Decimal("2500"), Decimal("500")
        )

        assert result.assessable_profit == Decimal("7000")

    def test_loss_is_floored_at_zero(self, company_tax):
        result = company_tax.calculate_profit(Decimal("100"), Decimal("500"), Decimal("0"))

        assert result.assessable_profit == Decimal("0")


class TestAggregates:
    def test_vat_from_sales_sums_stored_values(
        self, company_tax, company_id, make_sale, service_item
    ):
        make_sale([service_item(price="1000.00")])
        make_sale([service_item(price="3000.00")])
        make_sale(
            [service_item(price="9999.00")],
            created_at=datetime(2024, 4, 1, 0, 0, tzinfo=UTC),
        )

        result = company_tax.calculate_vat_from_sales(company_id, 3, 2024)

        assert result.vatable_sales == Decimal("4000.00")
        assert result.vat_from_sales == Decimal("300.00")
        assert result.vat_rate == Decimal("7.5")

    def test_vat_from_sales_without_sales_is_zero(self, company_tax, company_id):
        result = company_tax.calculate_vat_from_sales(company_id, 3, 2024)

        assert result.vat_from_sales == Decimal("0.00")
        assert result.vatable_sales == Decimal("0.00")

    def test_calculate_cit_counts_only_approved_allowable_expenses(
        self, company_tax, company_id, make_sale, make_expense, service_item
    ):
        make_sale([service_item()])
        make_expense("1000.00")
        make_expense("500.00", flags=TaxFlags(cit_allowable=False))
        make_expense("700.00", status=ExpenseStatus.PENDING)

        result = company_tax.calculate_cit(company_id, 3, 2024)

        assert result.total_income == Decimal("5375.00")
        assert result.total_expenses == Decimal("1000.00")
        assert result.net_profit == Decimal("4375.00")
        assert result.cit_due == Decimal("1312.50")

    def test_calculate_cit_with_loss_is_zero(
        self, company_tax, company_id, make_expense
    ):
        make_expense("1000.00")

        result = company_tax.calculate_cit(company_id, 3, 2024)

        assert result.net_profit == Decimal("-1000.00")
        assert result.cit_due == Decimal("0.00")

    def test_period_turnover_splits_by_allowability(
        self, company_tax, company_id, make_sale, make_expense, service_item
    ):
        make_sale([service_item()])
        make_expense("1000.00")
        make_expense("500.00", flags=TaxFlags(cit_allowable=False))

        result = company_tax.period_turnover(company_id, TaxPeriod.monthly(2024, 3))

        assert result.turnover == Decimal("5375.00")
        assert result.allowable_expenses == Decimal("1000.00")
        assert result.non_allowable_expenses == Decimal("500.00")

    def test_invalid_company_reference_is_rejected(self, company_tax):
        with pytest.raises(InvalidCompanyReferenceError):
            company_tax.calculate_cit("", 3, 2024)


class TestReportingCurrency:
    @pytest.fixture
    def mixed_month(self, make_sale, make_expense, service_item):
        make_sale([service_item(price="1000.00")])
        make_sale([service_item(price="10.00")], currency=Currency.USD)
        make_expense("400.00")
        make_expense("50.00", currency=Currency.USD)

    def test_vat_ignores_sales_in_other_currencies(self, company_tax, company_id, mixed_month):
        result = company_tax.calculate_vat_from_sales(company_id, 3, 2024)

        assert result.vatable_sales == Decimal("1000.00")
        assert result.vat_from_sales == Decimal("75.00")

    def test_turnover_and_expenses_ignore_other_currencies(
        self, company_tax, company_id, mixed_month
    ):
        result = company_tax.period_turnover(company_id, TaxPeriod.monthly(2024, 3))

        assert result.turnover == Decimal("1075.00")
        assert result.allowable_expenses == Decimal("400.00")

    def test_engine_reports_in_its_configured_currency(
        self, aggregator, company_id, mixed_month
    ):
        engine = CompanyTaxEngine(aggregator, reporting_currency=Currency.USD)

        vat = engine.calculate_vat_from_sales(company_id, 3, 2024)
        cit = engine.calculate_cit(company_id, 3, 2024)

        assert vat.vatable_sales == Decimal("10.00")
        assert vat.vat_from_sales == Decimal("0.75")
        assert cit.total_income == Decimal("10.75")
        assert cit.total_expenses == Decimal("50.00")
