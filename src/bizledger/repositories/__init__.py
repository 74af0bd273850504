from bizledger.repositories.interfaces import (
    Aggregator,
    ExpenseRepository,
    LedgerStore,
    ProductRepository,
    SaleRepository,
    TaxLedgerStore,
    TaxSettingsRepository,
)
from bizledger.repositories.query import (
    AggregateQuery,
    Count,
    Dataset,
    Eq,
    ExpenseField,
    GroupBy,
    InRange,
    LedgerField,
    SaleField,
    Sum,
    TaxLedgerField,
)
from bizledger.repositories.sqlite import (
    SQLiteAggregator,
    SQLiteDatabase,
    SQLiteExpenseRepository,
    SQLiteLedgerStore,
    SQLiteProductRepository,
    SQLiteSaleRepository,
    SQLiteTaxLedgerStore,
    SQLiteTaxSettingsRepository,
)

__all__ = [
    "Aggregator",
    "ExpenseRepository",
    "LedgerStore",
    "ProductRepository",
    "SaleRepository",
    "TaxLedgerStore",
    "TaxSettingsRepository",
    "AggregateQuery",
    "Count",
    "Dataset",
    "Eq",
    "ExpenseField",
    "GroupBy",
    "InRange",
    "LedgerField",
    "SaleField",
    "Sum",
    "TaxLedgerField",
    "SQLiteAggregator",
    "SQLiteDatabase",
    "SQLiteExpenseRepository",
    "SQLiteLedgerStore",
    "SQLiteProductRepository",
    "SQLiteSaleRepository",
    "SQLiteTaxLedgerStore",
    "SQLiteTaxSettingsRepository",
]
