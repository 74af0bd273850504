"""Company-level tax computations: VAT from sales, CIT, TET and assessable profit.

Every method is a read plus a computation. Nothing is persisted here; callers
hand the results to ``TaxLedgerService`` when they want them recorded.

This engine has no settings-dependent path. The CIT flat rate is an explicit
argument and the VAT rate is a constant, so a company without stored tax
settings computes exactly like one with them.

All sums are taken in the reporting currency only. Sales and expenses booked
in any other currency are left out of VAT, turnover and profit rather than
added to naira amounts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from bizledger.domain.periods import TaxPeriod
from bizledger.domain.value_objects import (
    ZERO,
    Currency,
    ExpenseStatus,
    ExpenseType,
    ensure_company_id,
    round_money,
    to_decimal,
)
from bizledger.logging_config import get_logger
from bizledger.repositories.interfaces import Aggregator
from bizledger.repositories.query import (
    AggregateQuery,
    Dataset,
    Eq,
    ExpenseField,
    InRange,
    SaleField,
)

logger = get_logger(__name__)

VAT_RATE_PERCENT = Decimal("7.5")
TET_RATE = Decimal("0.025")
DEFAULT_CIT_RATE = Decimal("0.30")

# (turnover upper bound inclusive, rate); None means no upper bound
CIT_TURNOVER_BANDS: tuple[tuple[Decimal | None, Decimal], ...] = (
    (Decimal("25000000"), Decimal("0")),
    (Decimal("100000000"), Decimal("0.20")),
    (None, Decimal("0.30")),
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class VatFromSales:
    vat_from_sales: Decimal
    vatable_sales: Decimal
    vat_rate: Decimal = VAT_RATE_PERCENT


@dataclass(frozen=True)
class CitCalculation:
    month: int
    year: int
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    cit_rate: Decimal
    cit_due: Decimal
    computed_at: datetime = field(default_factory=_utc_now)


@dataclass(frozen=True)
class CitAndTet:
    assessable_profit: Decimal
    cit_rate: Decimal
    cit: Decimal
    tet: Decimal


@dataclass(frozen=True)
class ProfitComputation:
    revenue: Decimal
    allowable_expenses: Decimal
    non_allowable_expenses: Decimal
    assessable_profit: Decimal


@dataclass(frozen=True)
class PeriodTurnover:
    """Inputs to the CIT/TET computation for one period."""

    turnover: Decimal
    allowable_expenses: Decimal
    non_allowable_expenses: Decimal


class CompanyTaxEngine:
    def __init__(self, aggregator: Aggregator, reporting_currency: Currency = Currency.NGN) -> None:
        self._aggregator = aggregator
        self.reporting_currency = Currency(reporting_currency)

    def calculate_vat_from_sales(self, company_id: UUID | str, month: int, year: int) -> VatFromSales:
        """Sum stored sale VAT and subtotals for one calendar month.

        VAT is taken from the sale records as stored, never re-derived.
        """
        company = ensure_company_id(company_id)
        start, end = TaxPeriod.monthly(year, month).date_range()
        row = self._aggregator.one(
            AggregateQuery.over(Dataset.SALES)
            .where(Eq(SaleField.COMPANY_ID, company))
            .where(Eq(SaleField.CURRENCY, self.reporting_currency))
            .where(InRange(SaleField.CREATED_AT, start, end))
            .sum(SaleField.VAT_AMOUNT, alias="vat")
            .sum(SaleField.SUBTOTAL, alias="subtotal")
        )
        return VatFromSales(vat_from_sales=row["vat"], vatable_sales=row["subtotal"])

    def calculate_cit(
        self,
        company_id: UUID | str,
        month: int,
        year: int,
        cit_rate: Decimal = DEFAULT_CIT_RATE,
    ) -> CitCalculation:
        """Flat-rate CIT on one month's sales less approved allowable expenses."""
        company = ensure_company_id(company_id)
        period = TaxPeriod.monthly(year, month)
        total_income = self._sales_total(company, period)
        total_expenses = self._expense_total(company, period, cit_allowable=True)
        net_profit = total_income - total_expenses
        cit_due = round_money(net_profit * to_decimal(cit_rate)) if net_profit > ZERO else Decimal("0.00")

        logger.debug(
            "cit_calculated",
            company_id=str(company),
            period=period.token,
            net_profit=str(net_profit),
            cit_due=str(cit_due),
        )
        return CitCalculation(
            month=month,
            year=year,
            total_income=total_income,
            total_expenses=total_expenses,
            net_profit=net_profit,
            cit_rate=to_decimal(cit_rate),
            cit_due=cit_due,
        )

    def compute_cit_and_tet(self, assessable_profit: Decimal, turnover: Decimal) -> CitAndTet:
        """CIT at the turnover-banded rate and TET at 2.5% of assessable profit."""
        profit = to_decimal(assessable_profit)
        rate = self.cit_rate_for_turnover(turnover)
        return CitAndTet(
            assessable_profit=profit,
            cit_rate=rate,
            cit=round_money(profit * rate),
            tet=round_money(profit * TET_RATE),
        )

    def cit_rate_for_turnover(self, turnover: Decimal) -> Decimal:
        value = to_decimal(turnover)
        for upper, rate in CIT_TURNOVER_BANDS:
            if upper is None or value <= upper:
                return rate
        raise AssertionError("CIT bands must end unbounded")

    def calculate_profit(
        self,
        revenue: Decimal,
        allowable_expenses: Decimal,
        non_allowable_expenses: Decimal,
    ) -> ProfitComputation:
        """Assessable profit, floored at zero. Losses are not carried forward."""
        revenue = to_decimal(revenue)
        allowable = to_decimal(allowable_expenses)
        non_allowable = to_decimal(non_allowable_expenses)
        return ProfitComputation(
            revenue=revenue,
            allowable_expenses=allowable,
            non_allowable_expenses=non_allowable,
            assessable_profit=max(revenue - allowable - non_allowable, ZERO),
        )

    def period_turnover(self, company_id: UUID | str, period: TaxPeriod) -> PeriodTurnover:
        """Turnover and approved expenses, split by CIT allowability, for a period."""
        company = ensure_company_id(company_id)
        return PeriodTurnover(
            turnover=self._sales_total(company, period),
            allowable_expenses=self._expense_total(company, period, cit_allowable=True),
            non_allowable_expenses=self._expense_total(company, period, cit_allowable=False),
        )

    def _sales_total(self, company: UUID, period: TaxPeriod) -> Decimal:
        start, end = period.date_range()
        row = self._aggregator.one(
            AggregateQuery.over(Dataset.SALES)
            .where(Eq(SaleField.COMPANY_ID, company))
            .where(Eq(SaleField.CURRENCY, self.reporting_currency))
            .where(InRange(SaleField.CREATED_AT, start, end))
            .sum(SaleField.TOTAL_AMOUNT, alias="total")
        )
        return row["total"]

    def _expense_total(self, company: UUID, period: TaxPeriod, *, cit_allowable: bool) -> Decimal:
        start, end = period.date_range()
        row = self._aggregator.one(
            AggregateQuery.over(Dataset.EXPENSES)
            .where(Eq(ExpenseField.COMPANY_ID, company))
            .where(Eq(ExpenseField.CURRENCY, self.reporting_currency))
            .where(Eq(ExpenseField.STATUS, ExpenseStatus.APPROVED))
            .where(Eq(ExpenseField.EXPENSE_TYPE, ExpenseType.EXPENSE))
            .where(Eq(ExpenseField.CIT_ALLOWABLE, cit_allowable))
            .where(InRange(ExpenseField.DATE_OF_EXPENSE, start, end))
            .sum(ExpenseField.AMOUNT, alias="total")
        )
        return row["total"]
