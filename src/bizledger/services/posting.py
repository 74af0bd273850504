"""Translate finalized business events into balanced journals."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from bizledger.domain.events import Expense, PayrollBreakdown, Sale
from bizledger.domain.ledger import LedgerEntry
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.value_objects import (
    ZERO,
    Currency,
    ExpenseStatus,
    ExpenseType,
    LedgerAccount,
    LedgerSource,
    PaymentMethod,
    round_money,
)
from bizledger.exceptions import (
    AlreadyPostedError,
    InvalidPostingStateError,
    ProductNotFoundError,
)
from bizledger.logging_config import LogContext, get_logger
from bizledger.repositories.interfaces import (
    ExpenseRepository,
    LedgerStore,
    ProductRepository,
    SaleRepository,
)
from bizledger.services.journal import JournalValidator
from bizledger.services.tax_ledger import TaxLedgerService

logger = get_logger(__name__)


def _period_of(timestamp: datetime) -> TaxPeriod:
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(UTC)
    return TaxPeriod.for_date(timestamp.date())


class _JournalBuilder:
    """Collects the lines of one journal for one business event."""

    def __init__(
        self,
        company_id: UUID,
        source: LedgerSource,
        reference_id: UUID,
        created_by: UUID | None,
        currency: Currency,
    ) -> None:
        self._company_id = company_id
        self._source = source
        self._reference_id = reference_id
        self._created_by = created_by
        self._currency = currency
        self.entries: list[LedgerEntry] = []

    def debit(self, account: LedgerAccount, amount: Decimal, description: str) -> None:
        self.entries.append(
            LedgerEntry.debit(
                self._company_id,
                account,
                amount,
                source=self._source,
                reference_id=self._reference_id,
                description=description,
                created_by=self._created_by,
                currency=self._currency,
            )
        )

    def credit(self, account: LedgerAccount, amount: Decimal, description: str) -> None:
        self.entries.append(
            LedgerEntry.credit(
                self._company_id,
                account,
                amount,
                source=self._source,
                reference_id=self._reference_id,
                description=description,
                created_by=self._created_by,
                currency=self._currency,
            )
        )


class LedgerPoster:
    """Posts sales, expenses and payroll runs to the ledger.

    Each posting is one store transaction: the journal append, the flip of
    the event's submission flag and the tax-ledger update commit together or
    not at all. On any failure the event is left unposted and the error
    propagates unchanged; retrying is the caller's decision.

    COGS is valued at the product's cost price at posting time, not at sale
    time, so re-posting after a cost change would produce different lines.
    """

    def __init__(
        self,
        ledger_store: LedgerStore,
        validator: JournalValidator,
        product_repo: ProductRepository,
        sale_repo: SaleRepository,
        expense_repo: ExpenseRepository,
        tax_ledger: TaxLedgerService,
        split_expense_tax_lines: bool = False,
        payroll_currency: Currency = Currency.NGN,
    ) -> None:
        self._ledger_store = ledger_store
        self._validator = validator
        self._product_repo = product_repo
        self._sale_repo = sale_repo
        self._expense_repo = expense_repo
        self._tax_ledger = tax_ledger
        self._split_expense_tax_lines = split_expense_tax_lines
        self._payroll_currency = payroll_currency

    def post_sale(self, sale: Sale) -> UUID:
        """Post a finalized sale and refresh the month's sales VAT record.

        Raises:
            AlreadyPostedError: If the sale already carries a journal
            ProductNotFoundError: If a product line references a missing product
            ImbalancedJournalError: If the sale's amounts do not reconcile
        """
        with LogContext(company_id=sale.company_id, reference_id=sale.id):
            if sale.is_posted:
                raise AlreadyPostedError("sale", sale.id)

            entries = self.build_sale_entries(sale)
            self._validator.validate(entries)

            period = _period_of(sale.created_at)
            with self._ledger_store.atomic():
                journal_id = self._ledger_store.append_journal(entries)
                if not self._sale_repo.mark_posted(sale.id, journal_id):
                    self._flag_conflict("sale", sale.id, self._sale_repo.get(sale.id))
                self._tax_ledger.update_company_tax_from_sales(
                    sale.company_id, period.month, period.year, sale.created_by
                )

            sale.ledger_journal_id = journal_id
            logger.info(
                "sale_posted",
                journal_id=str(journal_id),
                lines=len(entries),
                total_amount=str(sale.total_amount),
            )
            return journal_id

    def post_expense(self, expense: Expense) -> UUID:
        """Post an approved expense and accumulate its VAT/WHT into the tax ledger.

        Raises:
            InvalidPostingStateError: If the expense is not an approved expense
            AlreadyPostedError: If the expense already carries a journal
        """
        with LogContext(company_id=expense.company_id, reference_id=expense.id):
            if expense.status != ExpenseStatus.APPROVED:
                raise InvalidPostingStateError(
                    "expense", expense.id, f"status is {expense.status.value}, not Approved"
                )
            if expense.expense_type != ExpenseType.EXPENSE:
                raise InvalidPostingStateError(
                    "expense", expense.id, f"type is {expense.expense_type.value}, not Expense"
                )
            if expense.is_posted:
                raise AlreadyPostedError("expense", expense.id)

            entries = self.build_expense_entries(expense)
            self._validator.validate(entries)

            with self._ledger_store.atomic():
                journal_id = self._ledger_store.append_journal(entries)
                if not self._expense_repo.mark_posted(expense.id, journal_id):
                    self._flag_conflict("expense", expense.id, self._expense_repo.get(expense.id))
                self._tax_ledger.process_expense_tax(
                    expense, expense.company_id, expense.entered_by
                )

            expense.ledger_journal_id = journal_id
            logger.info(
                "expense_posted",
                journal_id=str(journal_id),
                lines=len(entries),
                amount=str(expense.amount),
                split_tax_lines=self._split_expense_tax_lines,
            )
            return journal_id

    def post_payroll(
        self, breakdown: PayrollBreakdown, created_by: UUID | None = None
    ) -> UUID:
        """Post one payroll run: gross and employer costs against cash and liabilities."""
        with LogContext(company_id=breakdown.company_id, reference_id=breakdown.payroll_id):
            entries = self.build_payroll_entries(breakdown, created_by)
            self._validator.validate(entries)
            journal_id = self._ledger_store.append_journal(entries)
            logger.info(
                "payroll_posted",
                journal_id=str(journal_id),
                lines=len(entries),
                gross_salary=str(breakdown.gross_salary),
                net_pay=str(breakdown.net_pay),
            )
            return journal_id

    def build_sale_entries(self, sale: Sale) -> list[LedgerEntry]:
        journal = _JournalBuilder(
            sale.company_id, LedgerSource.SALE, sale.id, sale.created_by, sale.currency
        )
        receiving = (
            LedgerAccount.ACCOUNTS_RECEIVABLE
            if sale.payment_method == PaymentMethod.CREDIT
            else LedgerAccount.CASH
        )
        journal.debit(receiving, sale.total_amount, f"Sale {sale.id}")
        journal.credit(LedgerAccount.REVENUE, sale.subtotal, f"Sale {sale.id} revenue")
        if sale.vat_amount > ZERO:
            journal.credit(LedgerAccount.VAT_PAYABLE, sale.vat_amount, f"Sale {sale.id} VAT")

        for item in sale.items:
            if not item.carries_cost:
                continue
            product = self._product_repo.get(item.product_id)
            if product is None:
                logger.warning(
                    "sale_product_missing",
                    product_id=str(item.product_id),
                    item=item.name,
                )
                raise ProductNotFoundError(item.product_id)
            cost = round_money(product.cost_price * item.quantity)
            if cost <= ZERO:
                continue
            description = f"COGS {item.name} x{item.quantity}"
            journal.debit(LedgerAccount.COST_OF_GOODS_SOLD, cost, description)
            journal.credit(LedgerAccount.INVENTORY, cost, description)
        return journal.entries

    def build_expense_entries(self, expense: Expense) -> list[LedgerEntry]:
        journal = _JournalBuilder(
            expense.company_id,
            LedgerSource.EXPENSE,
            expense.id,
            expense.entered_by,
            expense.currency,
        )
        label = expense.title or f"Expense {expense.id}"
        journal.debit(LedgerAccount.EXPENSES, expense.amount, label)
        if not self._split_expense_tax_lines:
            journal.credit(LedgerAccount.CASH, expense.amount, label)
            return journal.entries

        flags = expense.tax_flags
        vat = expense.vat_amount if flags.vat_claimable else ZERO
        wht = expense.wht_amount if flags.wht_applicable else ZERO
        if vat > ZERO:
            journal.debit(LedgerAccount.VAT_RECEIVABLE, vat, f"{label} input VAT")
        if wht > ZERO:
            journal.credit(LedgerAccount.TAX_PAYABLE, wht, f"{label} WHT withheld")
        journal.credit(LedgerAccount.CASH, expense.amount + vat - wht, label)
        return journal.entries

    def build_payroll_entries(
        self, breakdown: PayrollBreakdown, created_by: UUID | None = None
    ) -> list[LedgerEntry]:
        journal = _JournalBuilder(
            breakdown.company_id,
            LedgerSource.PAYROLL,
            breakdown.payroll_id,
            created_by,
            self._payroll_currency,
        )
        label = f"Payroll {breakdown.period} employee {breakdown.employee_id}"
        journal.debit(LedgerAccount.PAYROLL_EXPENSE, breakdown.gross_salary, label)
        journal.credit(LedgerAccount.CASH, breakdown.net_pay, f"{label} net pay")
        deductions = breakdown.total_employee_deductions
        if deductions > ZERO:
            journal.credit(LedgerAccount.TAX_PAYABLE, deductions, f"{label} deductions")
        employer_costs = breakdown.total_employer_costs
        if employer_costs > ZERO:
            journal.debit(LedgerAccount.PAYROLL_EXPENSE, employer_costs, f"{label} employer costs")
            journal.credit(LedgerAccount.TAX_PAYABLE, employer_costs, f"{label} employer costs")
        return journal.entries

    def _flag_conflict(self, kind: str, event_id: UUID, current: object | None) -> None:
        if current is None:
            raise InvalidPostingStateError(kind, event_id, "not recorded in the store")
        raise AlreadyPostedError(kind, event_id)
