"""Balance sheet and profit-and-loss projections over the ledger.

Each report covers one currency. Lines booked in any other currency are not
converted and do not appear.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from bizledger.domain.ledger import AccountTotals
from bizledger.domain.value_objects import (
    ZERO,
    AccountCategory,
    Currency,
    LedgerAccount,
    ensure_company_id,
)
from bizledger.repositories.interfaces import LedgerStore


@dataclass(frozen=True)
class AccountBalance:
    account: LedgerAccount
    category: AccountCategory
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal
    currency: Currency = Currency.NGN


@dataclass(frozen=True)
class BalanceSheet:
    assets: dict[LedgerAccount, Decimal] = field(default_factory=dict)
    liabilities: dict[LedgerAccount, Decimal] = field(default_factory=dict)
    equity: dict[LedgerAccount, Decimal] = field(default_factory=dict)
    retained_earnings: Decimal = ZERO
    total_assets: Decimal = ZERO
    total_liabilities_and_equity: Decimal = ZERO

    @property
    def is_balanced(self) -> bool:
        return self.total_assets == self.total_liabilities_and_equity


@dataclass(frozen=True)
class ProfitAndLoss:
    revenue: Decimal
    cogs: Decimal
    gross_profit: Decimal
    expenses: Decimal
    payroll_expense: Decimal
    net_profit: Decimal


def _signed(totals: AccountTotals) -> Decimal:
    if totals.category.is_debit_normal:
        return totals.debit_total - totals.credit_total
    return totals.credit_total - totals.debit_total


class LedgerReportingService:
    """Read-only projections. Balances are derived on demand, never stored."""

    def __init__(self, ledger_store: LedgerStore, currency: Currency = Currency.NGN) -> None:
        self._ledger_store = ledger_store
        self.currency = Currency(currency)

    def account_balances(
        self, company_id: UUID | str, as_of: date | datetime | None = None
    ) -> list[AccountBalance]:
        """Signed balance per account: debit-normal for assets and expenses."""
        company = ensure_company_id(company_id)
        return [
            AccountBalance(
                account=totals.account,
                category=totals.category,
                debit_total=totals.debit_total,
                credit_total=totals.credit_total,
                balance=_signed(totals),
                currency=totals.currency,
            )
            for totals in self._ledger_store.sum_by_account(
                company, end=as_of, currency=self.currency
            )
        ]

    def balance_sheet(self, company_id: UUID | str, as_of: date | datetime | None = None) -> BalanceSheet:
        assets: dict[LedgerAccount, Decimal] = {}
        liabilities: dict[LedgerAccount, Decimal] = {}
        equity: dict[LedgerAccount, Decimal] = {}
        income = ZERO
        expenses = ZERO

        for row in self.account_balances(company_id, as_of):
            if row.category == AccountCategory.ASSET:
                assets[row.account] = row.balance
            elif row.category == AccountCategory.LIABILITY:
                liabilities[row.account] = row.balance
            elif row.category == AccountCategory.EQUITY:
                equity[row.account] = row.balance
            elif row.category == AccountCategory.INCOME:
                income += row.balance
            else:
                expenses += row.balance

        retained_earnings = income - expenses
        return BalanceSheet(
            assets=assets,
            liabilities=liabilities,
            equity=equity,
            retained_earnings=retained_earnings,
            total_assets=sum(assets.values(), ZERO),
            total_liabilities_and_equity=(
                sum(liabilities.values(), ZERO) + sum(equity.values(), ZERO) + retained_earnings
            ),
        )

    def profit_and_loss(
        self,
        company_id: UUID | str,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> ProfitAndLoss:
        company = ensure_company_id(company_id)
        balances = {
            totals.account: _signed(totals)
            for totals in self._ledger_store.sum_by_account(
                company, start, end, currency=self.currency
            )
        }
        revenue = balances.get(LedgerAccount.REVENUE, ZERO)
        cogs = balances.get(LedgerAccount.COST_OF_GOODS_SOLD, ZERO)
        payroll_expense = balances.get(LedgerAccount.PAYROLL_EXPENSE, ZERO)
        expenses = balances.get(LedgerAccount.EXPENSES, ZERO) + balances.get(
            LedgerAccount.COMMISSION_EXPENSE, ZERO
        )
        gross_profit = revenue - cogs
        return ProfitAndLoss(
            revenue=revenue,
            cogs=cogs,
            gross_profit=gross_profit,
            expenses=expenses,
            payroll_expense=payroll_expense,
            net_profit=gross_profit - expenses - payroll_expense,
        )
