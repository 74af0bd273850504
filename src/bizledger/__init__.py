from bizledger.domain.events import Expense, PayrollRequest, Product, Sale, SaleItem
from bizledger.domain.ledger import LedgerEntry
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.tax_ledger import TaxLedgerRecord
from bizledger.domain.value_objects import (
    Currency,
    LedgerAccount,
    Money,
    TaxSource,
    TaxType,
)

__all__ = [
    "Currency",
    "Expense",
    "LedgerAccount",
    "LedgerEntry",
    "Money",
    "PayrollRequest",
    "Product",
    "Sale",
    "SaleItem",
    "TaxLedgerRecord",
    "TaxPeriod",
    "TaxSource",
    "TaxType",
]

__version__ = "0.1.0"
