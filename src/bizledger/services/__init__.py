from bizledger.services.journal import JournalValidator
from bizledger.services.company_tax import (
    CitAndTet,
    CitCalculation,
    CompanyTaxEngine,
    PeriodTurnover,
    ProfitComputation,
    VatFromSales,
)
from bizledger.services.payroll_tax import (
    ANNUAL_PAYE_BANDS,
    EmployerCosts,
    PayeBand,
    PayeBandTable,
    PayrollTaxEngine,
    TaxComputation,
)
from bizledger.services.tax_settings import TaxSettingsProvider
from bizledger.services.tax_ledger import CompanyIncomeTax, TaxLedgerService
from bizledger.services.posting import LedgerPoster
from bizledger.services.payroll import PayrollService
from bizledger.services.remittance import PAYERemittanceReporter, PayeRemittanceSummary
from bizledger.services.reporting import (
    AccountBalance,
    BalanceSheet,
    LedgerReportingService,
    ProfitAndLoss,
)

__all__ = [
    "JournalValidator",
    "CitAndTet",
    "CitCalculation",
    "CompanyTaxEngine",
    "PeriodTurnover",
    "ProfitComputation",
    "VatFromSales",
    "ANNUAL_PAYE_BANDS",
    "EmployerCosts",
    "PayeBand",
    "PayeBandTable",
    "PayrollTaxEngine",
    "TaxComputation",
    "TaxSettingsProvider",
    "CompanyIncomeTax",
    "TaxLedgerService",
    "LedgerPoster",
    "PayrollService",
    "PAYERemittanceReporter",
    "PayeRemittanceSummary",
    "AccountBalance",
    "BalanceSheet",
    "LedgerReportingService",
    "ProfitAndLoss",
]
