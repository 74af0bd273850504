from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from uuid import UUID

from bizledger.exceptions import InvalidAmountError, InvalidCompanyReferenceError

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class Currency(str, Enum):
    NGN = "NGN"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    GHS = "GHS"
    KES = "KES"
    ZAR = "ZAR"


class AccountCategory(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def is_debit_normal(self) -> bool:
        return self in (AccountCategory.ASSET, AccountCategory.EXPENSE)


class LedgerAccount(str, Enum):
    CASH = "Cash"
    BANK = "Bank"
    ACCOUNTS_RECEIVABLE = "Accounts Receivable"
    INVENTORY = "Inventory"
    COST_OF_GOODS_SOLD = "Cost of Goods Sold"
    REVENUE = "Revenue"
    VAT_PAYABLE = "VAT Payable"
    VAT_RECEIVABLE = "VAT Receivable"
    EXPENSES = "Expenses"
    PAYROLL_EXPENSE = "Payroll Expense"
    COMMISSION_EXPENSE = "Commission Expense"
    TAX_PAYABLE = "Tax Payable"
    EQUITY = "Equity"
    RETAINED_EARNINGS = "Retained Earnings"

    @property
    def category(self) -> AccountCategory:
        return _ACCOUNT_CATEGORIES[self]


_ACCOUNT_CATEGORIES: dict[LedgerAccount, AccountCategory] = {
    LedgerAccount.CASH: AccountCategory.ASSET,
    LedgerAccount.BANK: AccountCategory.ASSET,
    LedgerAccount.ACCOUNTS_RECEIVABLE: AccountCategory.ASSET,
    LedgerAccount.INVENTORY: AccountCategory.ASSET,
    LedgerAccount.VAT_RECEIVABLE: AccountCategory.ASSET,
    LedgerAccount.COST_OF_GOODS_SOLD: AccountCategory.EXPENSE,
    LedgerAccount.EXPENSES: AccountCategory.EXPENSE,
    LedgerAccount.PAYROLL_EXPENSE: AccountCategory.EXPENSE,
    LedgerAccount.COMMISSION_EXPENSE: AccountCategory.EXPENSE,
    LedgerAccount.REVENUE: AccountCategory.INCOME,
    LedgerAccount.VAT_PAYABLE: AccountCategory.LIABILITY,
    LedgerAccount.TAX_PAYABLE: AccountCategory.LIABILITY,
    LedgerAccount.EQUITY: AccountCategory.EQUITY,
    LedgerAccount.RETAINED_EARNINGS: AccountCategory.EQUITY,
}


class EntryType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class LedgerSource(str, Enum):
    SALE = "sale"
    EXPENSE = "expense"
    INVENTORY = "inventory"
    PAYROLL = "payroll"
    TAX = "tax"


class TaxType(str, Enum):
    VAT = "VAT"
    WHT = "WHT"
    CIT = "CIT"
    TET = "TET"
    PAYE = "PAYE"
    NHF = "NHF"
    NHIS = "NHIS"
    NHIS_EMPLOYER = "NHIS_EMPLOYER"


class TaxSource(str, Enum):
    INVOICE = "Invoice"
    EXPENSE = "Expense"
    PROFIT_COMPUTATION = "ProfitComputation"
    PAYROLL = "Payroll"
    SALE = "Sale"


class TaxMode(str, Enum):
    STANDARD_PAYE = "STANDARD_PAYE"
    CUSTOM_PERCENT = "CUSTOM_PERCENT"


class PayUnit(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


class ExpenseStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    DECLINED = "Declined"


class ExpenseType(str, Enum):
    EXPENSE = "Expense"
    INCOME = "Income"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    TRANSFER = "Transfer"
    POS = "POS"
    CREDIT = "Credit"


class SaleItemType(str, Enum):
    PRODUCT = "product"
    SERVICE = "service"


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce a numeric input to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidAmountError(value, "not a number") from exc


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round to kobo (two decimals), half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, rate_percent: Decimal) -> Decimal:
    """``rate_percent``% of ``amount``, rounded to kobo."""
    return round_money(to_decimal(amount) * to_decimal(rate_percent) / HUNDRED)


def ensure_company_id(company_id: object) -> UUID:
    """Validate a company reference before it reaches any query."""
    if isinstance(company_id, UUID):
        return company_id
    if isinstance(company_id, str) and company_id.strip():
        try:
            return UUID(company_id.strip())
        except ValueError:
            pass
    raise InvalidCompanyReferenceError(company_id)


@dataclass(frozen=True, slots=True)
class Money:
    amount: Decimal
    currency: Currency | str = Currency.NGN

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", to_decimal(self.amount))

        if isinstance(self.currency, Currency):
            return
        if isinstance(self.currency, str):
            try:
                object.__setattr__(self, "currency", Currency(self.currency.upper()))
            except ValueError:
                raise ValueError(f"Invalid currency: {self.currency}")
        else:
            raise ValueError(f"Invalid currency: {self.currency}")

    def __add__(self, other: "Money") -> "Money":
        if self.currency != other.currency:
            raise ValueError(f"Cannot add {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract {self.currency} and {other.currency}")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor: Decimal | int) -> "Money":
        return Money(self.amount * to_decimal(factor), self.currency)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount == other.amount and self.currency == other.currency

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    def __lt__(self, other: "Money") -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency} and {other.currency}")
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        return self == other or self < other

    @property
    def is_zero(self) -> bool:
        return self.amount == ZERO

    @property
    def is_positive(self) -> bool:
        return self.amount > ZERO

    @property
    def is_negative(self) -> bool:
        return self.amount < ZERO

    def rounded(self) -> "Money":
        return Money(round_money(self.amount), self.currency)

    def to_minor(self) -> int:
        """Amount in kobo (or cents). Sub-kobo precision is rejected, not rounded."""
        minor = self.amount * HUNDRED
        if minor != minor.to_integral_value():
            raise InvalidAmountError(self.amount, "more than two decimal places")
        return int(minor)

    @classmethod
    def from_minor(cls, minor: int, currency: Currency | str = Currency.NGN) -> "Money":
        return cls((Decimal(minor) / HUNDRED).quantize(CENT), currency)

    @classmethod
    def zero(cls, currency: Currency | str = Currency.NGN) -> "Money":
        return cls(Decimal("0.00"), currency)


def minor_to_decimal(minor: int | None) -> Decimal:
    """Convert a stored minor-unit integer back to a two-decimal amount."""
    return (Decimal(minor or 0) / HUNDRED).quantize(CENT)


def decimal_to_minor(amount: Decimal) -> int:
    return Money(amount).to_minor()


__all__ = [
    "CENT",
    "ZERO",
    "HUNDRED",
    "Currency",
    "AccountCategory",
    "LedgerAccount",
    "EntryType",
    "LedgerSource",
    "TaxType",
    "TaxSource",
    "TaxMode",
    "PayUnit",
    "ExpenseStatus",
    "ExpenseType",
    "PaymentMethod",
    "SaleItemType",
    "Money",
    "to_decimal",
    "round_money",
    "percent_of",
    "ensure_company_id",
    "minor_to_decimal",
    "decimal_to_minor",
]
