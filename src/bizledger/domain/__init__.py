from bizledger.domain.events import (
    Expense,
    PayrollBreakdown,
    PayrollRequest,
    Product,
    Sale,
    SaleItem,
    TaxFlags,
)
from bizledger.domain.ledger import AccountTotals, LedgerEntry
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.tax_ledger import (
    PeriodTaxTotal,
    TaxAuditTrail,
    TaxContribution,
    TaxLedgerFilter,
    TaxLedgerKey,
    TaxLedgerRecord,
)
from bizledger.domain.tax_settings import TaxSettingsProfile
from bizledger.domain.value_objects import (
    AccountCategory,
    Currency,
    EntryType,
    ExpenseStatus,
    ExpenseType,
    LedgerAccount,
    LedgerSource,
    Money,
    PaymentMethod,
    PayUnit,
    SaleItemType,
    TaxMode,
    TaxSource,
    TaxType,
    round_money,
)

__all__ = [
    "AccountCategory",
    "AccountTotals",
    "Currency",
    "EntryType",
    "Expense",
    "ExpenseStatus",
    "ExpenseType",
    "LedgerAccount",
    "LedgerEntry",
    "LedgerSource",
    "Money",
    "PaymentMethod",
    "PayUnit",
    "PayrollBreakdown",
    "PayrollRequest",
    "PeriodTaxTotal",
    "Product",
    "Sale",
    "SaleItem",
    "SaleItemType",
    "TaxAuditTrail",
    "TaxContribution",
    "TaxFlags",
    "TaxLedgerFilter",
    "TaxLedgerKey",
    "TaxLedgerRecord",
    "TaxMode",
    "TaxPeriod",
    "TaxSettingsProfile",
    "TaxSource",
    "TaxType",
    "round_money",
]
