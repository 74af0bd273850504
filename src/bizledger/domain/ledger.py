from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from bizledger.domain.value_objects import (
    ZERO,
    AccountCategory,
    Currency,
    EntryType,
    LedgerAccount,
    LedgerSource,
    Money,
)
from bizledger.exceptions import InvalidAmountError


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """One line of a double-entry journal.

    Amounts are never negative; the direction lives in ``entry_type``.
    Entries are frozen once built and the store refuses to change them after
    commit.
    """

    company_id: UUID
    account: LedgerAccount
    entry_type: EntryType
    amount: Money
    source: LedgerSource
    reference_id: UUID
    description: str = ""
    created_by: UUID | None = None
    journal_id: UUID | None = None
    account_category: AccountCategory | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Money):
            raise InvalidAmountError(self.amount, "ledger amounts must be Money")
        if self.amount.amount < ZERO:
            raise InvalidAmountError(self.amount.amount, "ledger amounts cannot be negative")
        if self.account_category is None:
            object.__setattr__(self, "account_category", self.account.category)

    @classmethod
    def debit(
        cls,
        company_id: UUID,
        account: LedgerAccount,
        amount: Decimal,
        *,
        source: LedgerSource,
        reference_id: UUID,
        description: str = "",
        created_by: UUID | None = None,
        currency: Currency | str = Currency.NGN,
    ) -> "LedgerEntry":
        return cls(
            company_id=company_id,
            account=account,
            entry_type=EntryType.DEBIT,
            amount=Money(amount, currency),
            source=source,
            reference_id=reference_id,
            description=description,
            created_by=created_by,
        )

    @classmethod
    def credit(
        cls,
        company_id: UUID,
        account: LedgerAccount,
        amount: Decimal,
        *,
        source: LedgerSource,
        reference_id: UUID,
        description: str = "",
        created_by: UUID | None = None,
        currency: Currency | str = Currency.NGN,
    ) -> "LedgerEntry":
        return cls(
            company_id=company_id,
            account=account,
            entry_type=EntryType.CREDIT,
            amount=Money(amount, currency),
            source=source,
            reference_id=reference_id,
            description=description,
            created_by=created_by,
        )

    @property
    def is_debit(self) -> bool:
        return self.entry_type == EntryType.DEBIT

    @property
    def is_credit(self) -> bool:
        return self.entry_type == EntryType.CREDIT

    def in_journal(self, journal_id: UUID) -> "LedgerEntry":
        """Copy of this entry stamped with ``journal_id``."""
        return replace(self, journal_id=journal_id)


@dataclass(frozen=True, slots=True)
class AccountTotals:
    """Raw debit and credit totals for one account in one currency. No sign convention applied."""

    account: LedgerAccount
    debit_total: Decimal
    credit_total: Decimal
    currency: Currency = Currency.NGN

    @property
    def category(self) -> AccountCategory:
        return self.account.category
