from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from bizledger.domain.value_objects import TaxMode


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class TaxSettingsProfile:
    """Per-company payroll tax configuration.

    Every rate is a percentage, so ``nhf_rate=Decimal("2.5")`` means 2.5%.
    ``cra_minimum`` and ``fixed_annual_relief`` are annual naira amounts.
    """

    company_id: UUID | None
    mode: TaxMode = TaxMode.STANDARD_PAYE
    custom_percent: Decimal = Decimal("0")
    pension_employee_rate: Decimal = Decimal("8")
    pension_employer_rate: Decimal = Decimal("10")
    nhf_rate: Decimal = Decimal("2.5")
    nhis_employee_rate: Decimal = Decimal("5")
    nhis_employer_rate: Decimal = Decimal("10")
    nsitf_rate: Decimal = Decimal("1")
    cra_relief_percent: Decimal = Decimal("20")
    cra_minimum: Decimal = Decimal("200000")
    fixed_annual_relief: Decimal = Decimal("200000")
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    @classmethod
    def default(cls, company_id: UUID | None = None) -> "TaxSettingsProfile":
        """Documented fallback profile, used when a company has none stored."""
        return cls(company_id=company_id)

    @property
    def uses_custom_percent(self) -> bool:
        return self.mode == TaxMode.CUSTOM_PERCENT
