"""Tax-ledger upsert pipeline.

Two update disciplines live side by side and each call site depends on one:

* Recompute-from-source (``update_company_tax_from_sales``,
  ``record_company_income_tax``): the period aggregate is rebuilt from every
  contributing record and replaces the stored one. Running it again with no
  new input leaves the record unchanged.
* Accumulate (``process_expense_tax``, ``record_payroll_taxes``): each event
  adds its own contribution with an atomic increment in the store. Running it
  twice for the same event counts it twice, so callers must invoke it at most
  once per event. ``LedgerPoster.post_expense`` guarantees that by flipping the
  expense's submission flag in the same transaction.

Tax records are kept in the company tax engine's reporting currency. Sales in
another currency are left out of the VAT and CIT recomputations; an expense in
another currency that carries claimable VAT or withheld WHT is rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from bizledger.domain.events import Expense, PayrollBreakdown, Sale
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.tax_ledger import (
    TaxAuditTrail,
    TaxContribution,
    TaxLedgerFilter,
    TaxLedgerKey,
    TaxLedgerRecord,
)
from bizledger.domain.value_objects import (
    ZERO,
    TaxSource,
    TaxType,
    ensure_company_id,
)
from bizledger.exceptions import CurrencyMismatchError, InvalidCompanyReferenceError
from bizledger.logging_config import get_logger
from bizledger.repositories.interfaces import SaleRepository, TaxLedgerStore
from bizledger.services.company_tax import (
    TET_RATE,
    VAT_RATE_PERCENT,
    CitAndTet,
    CompanyTaxEngine,
    ProfitComputation,
)

logger = get_logger(__name__)

VAT_RATE = VAT_RATE_PERCENT / Decimal(100)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CompanyIncomeTax:
    profit: ProfitComputation
    assessment: CitAndTet
    cit_record: TaxLedgerRecord
    tet_record: TaxLedgerRecord


class TaxLedgerService:
    def __init__(
        self,
        store: TaxLedgerStore,
        sale_repo: SaleRepository,
        company_tax: CompanyTaxEngine,
        law_version: str = "",
    ) -> None:
        self._store = store
        self._sale_repo = sale_repo
        self._company_tax = company_tax
        self._law_version = law_version

    def update_company_tax_from_sales(
        self,
        company_id: UUID | str,
        month: int,
        year: int,
        user_id: UUID | None = None,
    ) -> TaxLedgerRecord | None:
        """Rebuild the month's sales VAT record from every sale in the month.

        Returns ``None`` and writes nothing when the month has no sales.
        """
        company = ensure_company_id(company_id)
        period = TaxPeriod.monthly(year, month)

        sales = self._reporting_sales(company, period)
        if not sales:
            logger.info("sales_vat_no_sales", company_id=str(company), period=period.token)
            return None

        vat = self._company_tax.calculate_vat_from_sales(company, month, year)
        record = TaxLedgerRecord(
            company_id=company,
            tax_type=TaxType.VAT,
            period=period,
            source=TaxSource.SALE,
            basis_amount=vat.vatable_sales,
            rate=VAT_RATE,
            tax_amount=vat.vat_from_sales,
            source_refs=tuple(sorted((sale.id for sale in sales), key=str)),
            audit=self._audit(user_id, notes=f"recomputed from {len(sales)} sales"),
        )
        stored = self._store.replace(record)
        logger.info(
            "tax_ledger_replaced",
            tax_key=str(stored.key),
            basis_amount=str(stored.basis_amount),
            tax_amount=str(stored.tax_amount),
            source_count=len(stored.source_refs),
        )
        return stored

    def process_expense_tax(
        self,
        expense: Expense,
        company_id: UUID | str,
        user_id: UUID | None = None,
    ) -> list[TaxLedgerRecord]:
        """Add one approved expense's claimable VAT and withheld WHT to its period.

        Not idempotent: invoke once per expense approval.
        """
        company = ensure_company_id(company_id)
        if expense.company_id != company:
            raise InvalidCompanyReferenceError(company_id)

        flags = expense.tax_flags
        taxes: list[tuple[TaxType, Decimal]] = []
        if flags.vat_claimable and expense.vat_amount > ZERO:
            taxes.append((TaxType.VAT, expense.vat_amount))
        if flags.wht_applicable and expense.wht_amount > ZERO:
            taxes.append((TaxType.WHT, expense.wht_amount))
        reporting = self._company_tax.reporting_currency
        if taxes and expense.currency != reporting:
            raise CurrencyMismatchError(expense.currency.value, reporting.value, expense.id)

        audit = self._audit(user_id or expense.entered_by)
        records: list[TaxLedgerRecord] = []
        with self._store.atomic():
            for tax_type, tax_amount in taxes:
                contribution = TaxContribution(
                    key=TaxLedgerKey(company, tax_type, expense.period, TaxSource.EXPENSE),
                    basis_amount=expense.amount,
                    tax_amount=tax_amount,
                    source_ref=expense.id,
                    audit=audit,
                )
                records.append(self._accumulate(contribution))
        return records

    def record_company_income_tax(
        self,
        company_id: UUID | str,
        period: TaxPeriod | str,
        user_id: UUID | None = None,
    ) -> CompanyIncomeTax:
        """Recompute CIT and TET for a period and replace both records."""
        company = ensure_company_id(company_id)
        period = TaxPeriod.parse(period)

        inputs = self._company_tax.period_turnover(company, period)
        profit = self._company_tax.calculate_profit(
            inputs.turnover, inputs.allowable_expenses, inputs.non_allowable_expenses
        )
        assessment = self._company_tax.compute_cit_and_tet(
            profit.assessable_profit, inputs.turnover
        )
        refs = tuple(sorted((sale.id for sale in self._reporting_sales(company, period)), key=str))
        notes = f"turnover={inputs.turnover}"

        with self._store.atomic():
            cit_record = self._store.replace(
                TaxLedgerRecord(
                    company_id=company,
                    tax_type=TaxType.CIT,
                    period=period,
                    source=TaxSource.PROFIT_COMPUTATION,
                    basis_amount=profit.assessable_profit,
                    rate=assessment.cit_rate,
                    tax_amount=assessment.cit,
                    source_refs=refs,
                    audit=self._audit(user_id, notes=notes),
                )
            )
            tet_record = self._store.replace(
                TaxLedgerRecord(
                    company_id=company,
                    tax_type=TaxType.TET,
                    period=period,
                    source=TaxSource.PROFIT_COMPUTATION,
                    basis_amount=profit.assessable_profit,
                    rate=TET_RATE,
                    tax_amount=assessment.tet,
                    source_refs=refs,
                    audit=self._audit(user_id, notes=notes),
                )
            )
        logger.info(
            "tax_ledger_replaced",
            company_id=str(company),
            period=period.token,
            cit=str(assessment.cit),
            tet=str(assessment.tet),
        )
        return CompanyIncomeTax(profit, assessment, cit_record, tet_record)

    def record_payroll_taxes(
        self,
        breakdown: PayrollBreakdown,
        payroll_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> list[TaxLedgerRecord]:
        """Accumulate one payroll run's PAYE, NHF and NHIS into its period."""
        company = ensure_company_id(breakdown.company_id)
        source_ref = payroll_id or breakdown.payroll_id
        contributions = [
            (TaxType.PAYE, breakdown.taxable_income, breakdown.paye),
            (TaxType.NHF, breakdown.gross_salary, breakdown.nhf),
            (TaxType.NHIS, breakdown.gross_salary, breakdown.nhis_employee),
            (TaxType.NHIS_EMPLOYER, breakdown.gross_salary, breakdown.nhis_employer),
        ]
        audit = self._audit(user_id)
        records: list[TaxLedgerRecord] = []
        with self._store.atomic():
            for tax_type, basis, tax_amount in contributions:
                if tax_amount <= ZERO:
                    continue
                records.append(
                    self._accumulate(
                        TaxContribution(
                            key=TaxLedgerKey(company, tax_type, breakdown.period, TaxSource.PAYROLL),
                            basis_amount=basis,
                            tax_amount=tax_amount,
                            source_ref=source_ref,
                            audit=audit,
                        )
                    )
                )
        return records

    def get_company_tax_ledger(
        self,
        company_id: UUID | str,
        tax_filter: TaxLedgerFilter | None = None,
    ) -> list[TaxLedgerRecord]:
        """Records for a company, sorted by period, then tax type and source."""
        company = ensure_company_id(company_id)
        return self._store.list_records(company, tax_filter)

    def _reporting_sales(self, company: UUID, period: TaxPeriod) -> list[Sale]:
        start, end = period.date_range()
        reporting = self._company_tax.reporting_currency
        sales = self._sale_repo.list_by_company(company, start, end)
        foreign = [sale for sale in sales if sale.currency != reporting]
        if foreign:
            logger.warning(
                "sales_excluded_by_currency",
                company_id=str(company),
                period=period.token,
                reporting_currency=reporting.value,
                currencies=sorted({sale.currency.value for sale in foreign}),
                count=len(foreign),
            )
        return [sale for sale in sales if sale.currency == reporting]

    def _accumulate(self, contribution: TaxContribution) -> TaxLedgerRecord:
        record = self._store.accumulate(contribution)
        logger.info(
            "tax_ledger_accumulated",
            tax_key=str(record.key),
            source_ref=str(contribution.source_ref),
            added_tax=str(contribution.tax_amount),
            tax_amount=str(record.tax_amount),
        )
        return record

    def _audit(self, user_id: UUID | None, notes: str = "") -> TaxAuditTrail:
        return TaxAuditTrail(
            computed_by=user_id,
            computed_at=_utc_now(),
            law_version=self._law_version,
            notes=notes,
        )
