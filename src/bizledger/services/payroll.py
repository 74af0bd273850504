"""Payroll run: deductions, employer costs, tax-ledger accumulation and posting."""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from bizledger.domain.events import PayrollBreakdown, PayrollRequest
from bizledger.domain.value_objects import ZERO, ensure_company_id
from bizledger.exceptions import InvalidAmountError
from bizledger.logging_config import LogContext, get_logger
from bizledger.repositories.interfaces import LedgerStore
from bizledger.services.payroll_tax import PayrollTaxEngine
from bizledger.services.posting import LedgerPoster
from bizledger.services.tax_ledger import TaxLedgerService
from bizledger.services.tax_settings import TaxSettingsProvider

logger = get_logger(__name__)


class PayrollService:
    def __init__(
        self,
        settings_provider: TaxSettingsProvider,
        engine: PayrollTaxEngine,
        tax_ledger: TaxLedgerService,
        poster: LedgerPoster,
        ledger_store: LedgerStore,
    ) -> None:
        self._settings_provider = settings_provider
        self._engine = engine
        self._tax_ledger = tax_ledger
        self._poster = poster
        self._ledger_store = ledger_store

    def compute(self, request: PayrollRequest) -> PayrollBreakdown:
        """Breakdown for one employee and period without touching the ledgers.

        Raises:
            InvalidAmountError: If deductions leave a negative net pay
        """
        company = ensure_company_id(request.company_id)
        settings = self._settings_provider.resolve(company)
        gross = request.gross_salary
        pension = self._engine.compute_pension(gross, settings.pension_employee_rate)
        taxes = self._engine.compute_all_taxes(
            gross,
            pension=pension,
            other_deductions=request.other_deductions,
            settings=settings,
            company_id=company,
        )
        if taxes.net_pay < ZERO:
            raise InvalidAmountError(
                taxes.net_pay,
                "deductions exceed gross salary",
                net_pay=taxes.net_pay,
                other_deductions=taxes.other_deductions,
                gross_salary=taxes.gross_salary,
            )
        employer = self._engine.compute_employer_costs(taxes.gross_salary, settings)
        return PayrollBreakdown(
            payroll_id=request.id,
            company_id=company,
            employee_id=request.employee_id,
            period=request.period,
            gross_salary=taxes.gross_salary,
            pension_employee=taxes.pension,
            nhf=taxes.nhf,
            nhis_employee=taxes.nhis_employee,
            cra=taxes.cra,
            taxable_income=taxes.taxable_income,
            paye=taxes.paye,
            other_deductions=taxes.other_deductions,
            net_pay=taxes.net_pay,
            nhis_employer=employer.nhis_employer,
            pension_employer=employer.pension_employer,
            nsitf=employer.nsitf,
        )

    def run_payroll(self, request: PayrollRequest, user_id: UUID | None = None) -> PayrollBreakdown:
        """Compute, record and post one payroll run in a single transaction."""
        breakdown = self.compute(request)
        with LogContext(company_id=breakdown.company_id, reference_id=breakdown.payroll_id):
            with self._ledger_store.atomic():
                self._tax_ledger.record_payroll_taxes(breakdown, breakdown.payroll_id, user_id)
                journal_id = self._poster.post_payroll(breakdown, user_id)
            logger.info(
                "payroll_completed",
                period=breakdown.period.token,
                employee_id=str(breakdown.employee_id),
                paye=str(breakdown.paye),
            )
        return replace(breakdown, ledger_journal_id=journal_id)
