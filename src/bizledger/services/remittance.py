"""PAYE remittance summaries over the tax ledger."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from bizledger.domain.periods import TaxPeriod
from bizledger.domain.tax_ledger import PeriodTaxTotal
from bizledger.domain.value_objects import TaxType, ensure_company_id
from bizledger.logging_config import get_logger
from bizledger.repositories.interfaces import Aggregator, TaxLedgerStore
from bizledger.repositories.query import AggregateQuery, Dataset, Eq, TaxLedgerField

logger = get_logger(__name__)


@dataclass(frozen=True)
class PayeRemittanceSummary:
    company_id: UUID
    period: TaxPeriod
    total_paye: Decimal
    entry_count: int


class PAYERemittanceReporter:
    """Reads PAYE totals and records remittance against the tax ledger.

    ``mark_as_remitted`` is the only write, and it only ever touches the
    remittance fields of PAYE records.
    """

    def __init__(self, store: TaxLedgerStore, aggregator: Aggregator) -> None:
        self._store = store
        self._aggregator = aggregator

    def generate_monthly_paye(
        self, company_id: UUID | str, year: int, month: int
    ) -> PayeRemittanceSummary:
        """Total of the month's PAYE records that are not yet remitted."""
        company = ensure_company_id(company_id)
        period = TaxPeriod.monthly(year, month)
        row = self._aggregator.one(
            AggregateQuery.over(Dataset.TAX_LEDGER)
            .where(Eq(TaxLedgerField.COMPANY_ID, company))
            .where(Eq(TaxLedgerField.TAX_TYPE, TaxType.PAYE))
            .where(Eq(TaxLedgerField.PERIOD, period))
            .where(Eq(TaxLedgerField.REMITTED, False))
            .sum(TaxLedgerField.TAX_AMOUNT, alias="total_paye")
            .count("entry_count")
        )
        return PayeRemittanceSummary(
            company_id=company,
            period=period,
            total_paye=row["total_paye"],
            entry_count=row["entry_count"],
        )

    def mark_as_remitted(
        self,
        company_id: UUID | str,
        period: TaxPeriod | str,
        receipt_number: str,
        remitted_at: datetime | None = None,
    ) -> int:
        """Flag every unremitted PAYE record of the period as remitted.

        Returns the number of records changed. Zero is a normal outcome.
        """
        company = ensure_company_id(company_id)
        period = TaxPeriod.parse(period)
        count = self._store.mark_remitted(
            company,
            TaxType.PAYE,
            period,
            receipt_number,
            remitted_at or datetime.now(UTC),
        )
        if count:
            logger.info(
                "paye_remitted",
                company_id=str(company),
                period=period.token,
                receipt_number=receipt_number,
                records=count,
            )
        else:
            logger.info(
                "paye_remittance_no_match",
                company_id=str(company),
                period=period.token,
                receipt_number=receipt_number,
            )
        return count

    def monthly_paye_summary(self, company_id: UUID | str) -> list[PeriodTaxTotal]:
        """PAYE totals and record counts per period, newest first."""
        company = ensure_company_id(company_id)
        return self._store.summarize_by_period(company, TaxType.PAYE)
