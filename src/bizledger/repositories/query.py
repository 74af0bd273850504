"""Typed aggregation queries.

Aggregations are described as data: a dataset, filter stages, aggregate
stages and optional grouping. Every field is an enum member of the dataset's
field type, so a query that sums a sale column over expenses fails when it is
built rather than when it runs. Execution lives in the repository layer
(``SQLiteAggregator``), which maps each field onto a whitelisted column.

Example:
    query = (
        AggregateQuery.over(Dataset.SALES)
        .where(Eq(SaleField.COMPANY_ID, company_id))
        .where(InRange(SaleField.CREATED_AT, start, end))
        .sum(SaleField.VAT_AMOUNT)
        .sum(SaleField.SUBTOTAL)
    )
"""

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class FieldKind(str, Enum):
    TEXT = "text"
    MONEY = "money"
    TIMESTAMP = "timestamp"
    DATE = "date"
    BOOL = "bool"


class SaleField(Enum):
    ID = "id"
    COMPANY_ID = "company_id"
    SUBTOTAL = "subtotal"
    VAT_AMOUNT = "vat_amount"
    TOTAL_AMOUNT = "total_amount"
    DISCOUNT = "discount"
    PAYMENT_METHOD = "payment_method"
    CURRENCY = "currency"
    CREATED_AT = "created_at"


class ExpenseField(Enum):
    ID = "id"
    COMPANY_ID = "company_id"
    AMOUNT = "amount"
    VAT_AMOUNT = "vat_amount"
    WHT_AMOUNT = "wht_amount"
    STATUS = "status"
    EXPENSE_TYPE = "expense_type"
    VAT_CLAIMABLE = "vat_claimable"
    WHT_APPLICABLE = "wht_applicable"
    CIT_ALLOWABLE = "cit_allowable"
    DATE_OF_EXPENSE = "date_of_expense"
    CURRENCY = "currency"


class LedgerField(Enum):
    COMPANY_ID = "company_id"
    JOURNAL_ID = "journal_id"
    ACCOUNT = "account"
    ACCOUNT_CATEGORY = "account_category"
    ENTRY_TYPE = "entry_type"
    AMOUNT = "amount"
    CURRENCY = "currency"
    SOURCE = "source"
    REFERENCE_ID = "reference_id"
    CREATED_AT = "created_at"


class TaxLedgerField(Enum):
    COMPANY_ID = "company_id"
    TAX_TYPE = "tax_type"
    PERIOD = "period"
    SOURCE = "source"
    BASIS_AMOUNT = "basis_amount"
    TAX_AMOUNT = "tax_amount"
    REMITTED = "remitted"


Field = SaleField | ExpenseField | LedgerField | TaxLedgerField


class Dataset(str, Enum):
    SALES = "sales"
    EXPENSES = "expenses"
    LEDGER_ENTRIES = "ledger_entries"
    TAX_LEDGER = "tax_ledger"

    @property
    def field_type(self) -> type[Enum]:
        return _DATASET_FIELDS[self]


_DATASET_FIELDS: dict[Dataset, type[Enum]] = {
    Dataset.SALES: SaleField,
    Dataset.EXPENSES: ExpenseField,
    Dataset.LEDGER_ENTRIES: LedgerField,
    Dataset.TAX_LEDGER: TaxLedgerField,
}

FIELD_KINDS: dict[Field, FieldKind] = {
    SaleField.SUBTOTAL: FieldKind.MONEY,
    SaleField.VAT_AMOUNT: FieldKind.MONEY,
    SaleField.TOTAL_AMOUNT: FieldKind.MONEY,
    SaleField.DISCOUNT: FieldKind.MONEY,
    SaleField.CREATED_AT: FieldKind.TIMESTAMP,
    ExpenseField.AMOUNT: FieldKind.MONEY,
    ExpenseField.VAT_AMOUNT: FieldKind.MONEY,
    ExpenseField.WHT_AMOUNT: FieldKind.MONEY,
    ExpenseField.VAT_CLAIMABLE: FieldKind.BOOL,
    ExpenseField.WHT_APPLICABLE: FieldKind.BOOL,
    ExpenseField.CIT_ALLOWABLE: FieldKind.BOOL,
    ExpenseField.DATE_OF_EXPENSE: FieldKind.DATE,
    LedgerField.AMOUNT: FieldKind.MONEY,
    LedgerField.CREATED_AT: FieldKind.TIMESTAMP,
    TaxLedgerField.BASIS_AMOUNT: FieldKind.MONEY,
    TaxLedgerField.TAX_AMOUNT: FieldKind.MONEY,
    TaxLedgerField.REMITTED: FieldKind.BOOL,
}


def field_kind(field: Field) -> FieldKind:
    return FIELD_KINDS.get(field, FieldKind.TEXT)


FilterValue = str | int | bool | Decimal | UUID | Enum | date | datetime


@dataclass(frozen=True, slots=True)
class Eq:
    field: Field
    value: FilterValue


@dataclass(frozen=True, slots=True)
class InRange:
    """Half-open range filter: ``start <= field < end``."""

    field: Field
    start: date | datetime
    end: date | datetime


@dataclass(frozen=True, slots=True)
class Sum:
    field: Field
    alias: str | None = None

    @property
    def name(self) -> str:
        return self.alias or f"sum_{self.field.value}"


@dataclass(frozen=True, slots=True)
class Count:
    alias: str = "count"

    @property
    def name(self) -> str:
        return self.alias


@dataclass(frozen=True, slots=True)
class GroupBy:
    field: Field

    @property
    def name(self) -> str:
        return self.field.value


Filter = Eq | InRange
Aggregate = Sum | Count


@dataclass(frozen=True, slots=True)
class AggregateQuery:
    dataset: Dataset
    filters: tuple[Filter, ...] = ()
    aggregates: tuple[Aggregate, ...] = ()
    group_by: tuple[GroupBy, ...] = ()

    def __post_init__(self) -> None:
        for stage in (*self.filters, *self.aggregates, *self.group_by):
            stage_field = getattr(stage, "field", None)
            if stage_field is not None and not isinstance(stage_field, self.dataset.field_type):
                raise TypeError(
                    f"{type(stage).__name__} on {stage_field!r} does not belong to "
                    f"dataset {self.dataset.value}"
                )
        for stage in self.aggregates:
            if isinstance(stage, Sum) and field_kind(stage.field) != FieldKind.MONEY:
                raise TypeError(f"Cannot sum non-monetary field {stage.field!r}")
        names = [stage.name for stage in (*self.group_by, *self.aggregates)]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate output names in query: {names}")

    @classmethod
    def over(cls, dataset: Dataset) -> "AggregateQuery":
        return cls(dataset=dataset)

    def where(self, stage: Filter) -> "AggregateQuery":
        return replace(self, filters=(*self.filters, stage))

    def sum(self, field: Field, alias: str | None = None) -> "AggregateQuery":
        return replace(self, aggregates=(*self.aggregates, Sum(field, alias)))

    def count(self, alias: str = "count") -> "AggregateQuery":
        return replace(self, aggregates=(*self.aggregates, Count(alias)))

    def grouped_by(self, field: Field) -> "AggregateQuery":
        return replace(self, group_by=(*self.group_by, GroupBy(field)))

    def empty_row(self) -> dict[str, Any]:
        """The result of an ungrouped query over no rows."""
        row: dict[str, Any] = {}
        for stage in self.aggregates:
            row[stage.name] = Decimal("0.00") if isinstance(stage, Sum) else 0
        return row
