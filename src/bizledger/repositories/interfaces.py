from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Any
from uuid import UUID

from bizledger.domain.events import Expense, Product, Sale
from bizledger.domain.ledger import AccountTotals, LedgerEntry
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.tax_ledger import (
    PeriodTaxTotal,
    TaxContribution,
    TaxLedgerFilter,
    TaxLedgerKey,
    TaxLedgerRecord,
)
from bizledger.domain.tax_settings import TaxSettingsProfile
from bizledger.domain.value_objects import Currency, LedgerAccount, TaxType
from bizledger.repositories.query import AggregateQuery


class LedgerStore(ABC):
    """Append-only store of journal lines."""

    @abstractmethod
    def append_journal(self, entries: Sequence[LedgerEntry]) -> UUID:
        pass

    @abstractmethod
    def update(self, entry: LedgerEntry) -> None:
        pass

    @abstractmethod
    def delete(self, entry_id: UUID) -> None:
        pass

    @abstractmethod
    def atomic(self) -> AbstractContextManager[Any]:
        pass

    @abstractmethod
    def get_journal(self, journal_id: UUID) -> list[LedgerEntry]:
        pass

    @abstractmethod
    def list_by_company(self, company_id: UUID) -> Iterable[LedgerEntry]:
        pass

    @abstractmethod
    def list_by_account(
        self, company_id: UUID, account: LedgerAccount
    ) -> Iterable[LedgerEntry]:
        pass

    @abstractmethod
    def list_by_date_range(
        self, company_id: UUID, start: datetime, end: datetime
    ) -> Iterable[LedgerEntry]:
        pass

    @abstractmethod
    def list_by_reference(self, reference_id: UUID) -> Iterable[LedgerEntry]:
        pass

    @abstractmethod
    def sum_by_account(
        self,
        company_id: UUID,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        currency: Currency | None = None,
    ) -> list[AccountTotals]:
        """Debit and credit totals per account and currency, optionally one currency only."""


class TaxLedgerStore(ABC):
    """Per-company aggregate tax records, mutated only by replace or accumulate."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager[Any]:
        pass

    @abstractmethod
    def get(self, key: TaxLedgerKey) -> TaxLedgerRecord | None:
        pass

    @abstractmethod
    def replace(self, record: TaxLedgerRecord) -> TaxLedgerRecord:
        pass

    @abstractmethod
    def accumulate(self, contribution: TaxContribution) -> TaxLedgerRecord:
        pass

    @abstractmethod
    def mark_remitted(
        self,
        company_id: UUID,
        tax_type: TaxType,
        period: TaxPeriod,
        receipt_number: str,
        remitted_at: datetime,
    ) -> int:
        pass

    @abstractmethod
    def list_records(
        self, company_id: UUID, tax_filter: TaxLedgerFilter | None = None
    ) -> list[TaxLedgerRecord]:
        pass

    @abstractmethod
    def summarize_by_period(
        self, company_id: UUID, tax_type: TaxType, remitted: bool | None = None
    ) -> list[PeriodTaxTotal]:
        pass


class TaxSettingsRepository(ABC):
    @abstractmethod
    def get(self, company_id: UUID) -> TaxSettingsProfile | None:
        pass

    @abstractmethod
    def save(self, profile: TaxSettingsProfile) -> None:
        pass


class ProductRepository(ABC):
    @abstractmethod
    def add(self, product: Product) -> None:
        pass

    @abstractmethod
    def get(self, product_id: UUID) -> Product | None:
        pass

    @abstractmethod
    def update(self, product: Product) -> None:
        pass

    @abstractmethod
    def delete(self, product_id: UUID) -> None:
        pass


class SaleRepository(ABC):
    @abstractmethod
    def add(self, sale: Sale) -> None:
        pass

    @abstractmethod
    def get(self, sale_id: UUID) -> Sale | None:
        pass

    @abstractmethod
    def list_by_company(
        self,
        company_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Sale]:
        pass

    @abstractmethod
    def mark_posted(self, sale_id: UUID, journal_id: UUID) -> bool:
        """Set the journal id only if the sale is still unposted."""


class ExpenseRepository(ABC):
    @abstractmethod
    def add(self, expense: Expense) -> None:
        pass

    @abstractmethod
    def get(self, expense_id: UUID) -> Expense | None:
        pass

    @abstractmethod
    def list_by_company(self, company_id: UUID) -> list[Expense]:
        pass

    @abstractmethod
    def mark_posted(self, expense_id: UUID, journal_id: UUID) -> bool:
        """Set the journal id only if the expense is still unposted."""


class Aggregator(ABC):
    """Executes typed aggregation queries."""

    @abstractmethod
    def run(self, query: AggregateQuery) -> list[dict[str, Any]]:
        pass

    def one(self, query: AggregateQuery) -> dict[str, Any]:
        """Single result row of an ungrouped query."""
        if query.group_by:
            raise ValueError("one() needs an ungrouped query")
        rows = self.run(query)
        return rows[0] if rows else query.empty_row()
