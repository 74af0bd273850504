"""Finalized business-event snapshots handed to the ledger core.

The surrounding application owns these records. The core reads them and only
ever touches ``ledger_journal_id``, which doubles as the submission flag.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from bizledger.domain.periods import TaxPeriod
from bizledger.domain.value_objects import (
    ZERO,
    Currency,
    ExpenseStatus,
    ExpenseType,
    PaymentMethod,
    SaleItemType,
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Product:
    company_id: UUID
    name: str
    cost_price: Decimal
    selling_price: Decimal = Decimal("0.00")
    quantity_on_hand: int = 0
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class SaleItem:
    name: str
    quantity: int
    price: Decimal
    product_id: UUID | None = None
    item_type: SaleItemType = SaleItemType.PRODUCT

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @property
    def carries_cost(self) -> bool:
        return self.item_type == SaleItemType.PRODUCT and self.product_id is not None


@dataclass
class Sale:
    company_id: UUID
    items: list[SaleItem]
    subtotal: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    created_by: UUID | None = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    discount: Decimal = ZERO
    currency: Currency = Currency.NGN
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)
    ledger_journal_id: UUID | None = None

    @property
    def is_posted(self) -> bool:
        return self.ledger_journal_id is not None


@dataclass(frozen=True)
class TaxFlags:
    vat_claimable: bool = False
    wht_applicable: bool = False
    cit_allowable: bool = True


@dataclass
class Expense:
    company_id: UUID
    amount: Decimal
    date_of_expense: date
    title: str = ""
    tax_flags: TaxFlags = field(default_factory=TaxFlags)
    vat_amount: Decimal = ZERO
    wht_amount: Decimal = ZERO
    wht_rate: Decimal = ZERO
    status: ExpenseStatus = ExpenseStatus.PENDING
    expense_type: ExpenseType = ExpenseType.EXPENSE
    entered_by: UUID | None = None
    currency: Currency = Currency.NGN
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)
    ledger_journal_id: UUID | None = None

    @property
    def period(self) -> TaxPeriod:
        return TaxPeriod.for_date(self.date_of_expense)

    @property
    def is_posted(self) -> bool:
        return self.ledger_journal_id is not None


@dataclass(frozen=True)
class PayrollRequest:
    company_id: UUID
    employee_id: UUID
    period: TaxPeriod
    basic_salary: Decimal
    allowances: dict[str, Decimal] = field(default_factory=dict)
    other_deductions: Decimal = ZERO
    id: UUID = field(default_factory=uuid4)

    @property
    def gross_salary(self) -> Decimal:
        return self.basic_salary + sum(self.allowances.values(), ZERO)


@dataclass(frozen=True)
class PayrollBreakdown:
    """Computed payroll figures for the surrounding application to persist."""

    payroll_id: UUID
    company_id: UUID
    employee_id: UUID
    period: TaxPeriod
    gross_salary: Decimal
    pension_employee: Decimal
    nhf: Decimal
    nhis_employee: Decimal
    cra: Decimal
    taxable_income: Decimal
    paye: Decimal
    other_deductions: Decimal
    net_pay: Decimal
    nhis_employer: Decimal = ZERO
    pension_employer: Decimal = ZERO
    nsitf: Decimal = ZERO
    ledger_journal_id: UUID | None = None

    @property
    def total_employee_deductions(self) -> Decimal:
        return (
            self.nhf
            + self.nhis_employee
            + self.paye
            + self.pension_employee
            + self.other_deductions
        )

    @property
    def total_employer_costs(self) -> Decimal:
        return self.nhis_employer + self.pension_employer + self.nsitf
