from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from bizledger.domain.periods import TaxPeriod
from bizledger.domain.value_objects import TaxSource, TaxType


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class TaxLedgerKey:
    """Uniqueness key of a tax-ledger record."""

    company_id: UUID
    tax_type: TaxType
    period: TaxPeriod
    source: TaxSource

    def __str__(self) -> str:
        return f"{self.company_id}/{self.tax_type.value}/{self.period}/{self.source.value}"


@dataclass(frozen=True, slots=True)
class TaxAuditTrail:
    computed_by: UUID | None = None
    computed_at: datetime = field(default_factory=_utc_now)
    law_version: str = ""
    notes: str = ""


@dataclass
class TaxLedgerRecord:
    """Aggregate tax obligation for one company, tax type, period and source."""

    company_id: UUID
    tax_type: TaxType
    period: TaxPeriod
    source: TaxSource
    basis_amount: Decimal = Decimal("0.00")
    rate: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0.00")
    source_refs: tuple[UUID, ...] = ()
    remitted: bool = False
    remittance_date: datetime | None = None
    receipt_number: str | None = None
    audit: TaxAuditTrail = field(default_factory=TaxAuditTrail)
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    @property
    def key(self) -> TaxLedgerKey:
        return TaxLedgerKey(self.company_id, self.tax_type, self.period, self.source)


@dataclass(frozen=True, slots=True)
class TaxLedgerFilter:
    tax_type: TaxType | None = None
    period: TaxPeriod | None = None
    source: TaxSource | None = None
    remitted: bool | None = None


@dataclass(frozen=True, slots=True)
class TaxContribution:
    """A single event's contribution to an accumulating tax record."""

    key: TaxLedgerKey
    basis_amount: Decimal
    tax_amount: Decimal
    source_ref: UUID
    audit: TaxAuditTrail


@dataclass(frozen=True, slots=True)
class PeriodTaxTotal:
    period: TaxPeriod
    tax_amount: Decimal
    entry_count: int
