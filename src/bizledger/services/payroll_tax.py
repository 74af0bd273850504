"""Statutory payroll deductions: PAYE, NHF, NHIS, pension and CRA.

Pure computation. Nothing here reads or writes storage; settings arrive as a
``TaxSettingsProfile`` (or ``None`` for the documented defaults).

PAYE bands: the canonical schedule is the ANNUAL one, with limits of
300,000 / 300,000 / 500,000 / 500,000 / 1,600,000 / unbounded at
7 / 11 / 15 / 19 / 21 / 24 percent. Monthly computation divides every limit by
twelve, so ``compute_paye(x, PayUnit.MONTHLY) == compute_paye(12 * x,
PayUnit.ANNUAL) / 12`` up to rounding.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from bizledger.domain.tax_settings import TaxSettingsProfile
from bizledger.domain.value_objects import (
    ZERO,
    PayUnit,
    TaxMode,
    percent_of,
    round_money,
    to_decimal,
)
from bizledger.logging_config import get_logger

logger = get_logger(__name__)

_ONE_PERCENT = Decimal("0.01")


@dataclass(frozen=True)
class PayeBand:
    """One marginal band. ``limit`` of ``None`` means unbounded."""

    limit: Decimal | None
    rate: Decimal


@dataclass(frozen=True)
class PayeBandTable:
    unit: PayUnit
    bands: tuple[PayeBand, ...]

    def __post_init__(self) -> None:
        if not self.bands or self.bands[-1].limit is not None:
            raise ValueError("The last PAYE band must be unbounded")
        if any(band.limit is None for band in self.bands[:-1]):
            raise ValueError("Only the last PAYE band may be unbounded")

    def for_unit(self, unit: PayUnit) -> PayeBandTable:
        """The same schedule with limits expressed in ``unit``."""
        if unit == self.unit:
            return self
        factor = Decimal(12)
        bands = tuple(
            PayeBand(
                limit=None
                if band.limit is None
                else (band.limit / factor if unit == PayUnit.MONTHLY else band.limit * factor),
                rate=band.rate,
            )
            for band in self.bands
        )
        return PayeBandTable(unit=unit, bands=bands)

    def compute(self, taxable_income: Decimal) -> Decimal:
        """Progressive tax: each band taxes only the portion that falls in it."""
        remaining = max(to_decimal(taxable_income), ZERO)
        tax = ZERO
        for band in self.bands:
            if remaining <= ZERO:
                break
            portion = remaining if band.limit is None else min(remaining, band.limit)
            tax += portion * band.rate
            remaining -= portion
        return round_money(tax)


ANNUAL_PAYE_BANDS = PayeBandTable(
    unit=PayUnit.ANNUAL,
    bands=(
        PayeBand(Decimal("300000"), Decimal("0.07")),
        PayeBand(Decimal("300000"), Decimal("0.11")),
        PayeBand(Decimal("500000"), Decimal("0.15")),
        PayeBand(Decimal("500000"), Decimal("0.19")),
        PayeBand(Decimal("1600000"), Decimal("0.21")),
        PayeBand(None, Decimal("0.24")),
    ),
)


@dataclass(frozen=True)
class TaxComputation:
    """Result of ``compute_all_taxes``; every amount is rounded to kobo."""

    mode: TaxMode
    gross_salary: Decimal
    nhf: Decimal
    nhis_employee: Decimal
    nhis_employer: Decimal
    cra: Decimal
    taxable_income: Decimal
    paye: Decimal
    pension: Decimal
    other_deductions: Decimal
    net_pay: Decimal


@dataclass(frozen=True)
class EmployerCosts:
    nhis_employer: Decimal
    pension_employer: Decimal
    nsitf: Decimal

    @property
    def total(self) -> Decimal:
        return self.nhis_employer + self.pension_employer + self.nsitf


class PayrollTaxEngine:
    """Computes payroll deductions for one pay period.

    ``unit`` is the pay period of the gross amounts handed in. It selects the
    PAYE band limits and the divisor applied to annual reliefs.
    """

    def __init__(
        self,
        band_table: PayeBandTable = ANNUAL_PAYE_BANDS,
        unit: PayUnit = PayUnit.MONTHLY,
    ) -> None:
        self._band_table = band_table
        self._unit = unit

    @property
    def unit(self) -> PayUnit:
        return self._unit

    @property
    def periods_per_year(self) -> int:
        return 12 if self._unit == PayUnit.MONTHLY else 1

    def compute_nhf(self, gross: Decimal, rate: Decimal = Decimal("2.5")) -> Decimal:
        return percent_of(gross, rate)

    def compute_nhis_employee(self, gross: Decimal, rate: Decimal = Decimal("5")) -> Decimal:
        return percent_of(gross, rate)

    def compute_nhis_employer(self, gross: Decimal, rate: Decimal = Decimal("10")) -> Decimal:
        return percent_of(gross, rate)

    def compute_pension(self, gross: Decimal, rate: Decimal = Decimal("8")) -> Decimal:
        return percent_of(gross, rate)

    def compute_cra(
        self,
        gross: Decimal,
        relief_percent: Decimal = Decimal("20"),
        fixed_annual_relief: Decimal = Decimal("200000"),
        periods_per_year: int | None = None,
    ) -> Decimal:
        """Consolidated relief: the higher of a percentage of gross or 1% plus a fixed sum.

        ``fixed_annual_relief`` is annual and is spread over the pay periods
        of the year (twelve for monthly payroll).
        """
        gross = to_decimal(gross)
        periods = periods_per_year or self.periods_per_year
        percentage_relief = to_decimal(relief_percent) / Decimal(100) * gross
        fixed_relief = _ONE_PERCENT * gross + to_decimal(fixed_annual_relief) / Decimal(periods)
        return round_money(max(percentage_relief, fixed_relief))

    def compute_paye(self, taxable_income: Decimal, unit: PayUnit | None = None) -> Decimal:
        table = self._band_table.for_unit(unit or self._unit)
        return table.compute(taxable_income)

    def compute_all_taxes(
        self,
        gross: Decimal,
        pension: Decimal = ZERO,
        other_deductions: Decimal = ZERO,
        settings: TaxSettingsProfile | None = None,
        *,
        company_id: UUID | None = None,
    ) -> TaxComputation:
        """Full deduction breakdown for one employee and pay period.

        Missing settings are not an error: the documented defaults apply and a
        ``tax_settings_defaulted`` warning is logged.
        """
        if settings is None:
            logger.warning(
                "tax_settings_defaulted",
                company_id=str(company_id) if company_id else None,
                component="payroll_tax_engine",
            )
            settings = TaxSettingsProfile.default(company_id)

        gross = round_money(gross)
        pension = round_money(pension)
        other_deductions = round_money(other_deductions)

        nhf = self.compute_nhf(gross, settings.nhf_rate)
        nhis_employee = self.compute_nhis_employee(gross, settings.nhis_employee_rate)
        nhis_employer = self.compute_nhis_employer(gross, settings.nhis_employer_rate)
        cra = self.compute_cra(gross, settings.cra_relief_percent, settings.fixed_annual_relief)

        if settings.mode == TaxMode.CUSTOM_PERCENT:
            taxable_income = gross
            paye = max(percent_of(gross, settings.custom_percent), ZERO)
        else:
            cra_floor = round_money(settings.cra_minimum / Decimal(self.periods_per_year))
            cra = max(cra, cra_floor)
            taxable_income = round_money(max(gross - nhf - nhis_employee - cra, ZERO))
            paye = self.compute_paye(taxable_income)

        net_pay = round_money(gross - (nhf + nhis_employee + paye + pension + other_deductions))
        return TaxComputation(
            mode=settings.mode,
            gross_salary=gross,
            nhf=nhf,
            nhis_employee=nhis_employee,
            nhis_employer=nhis_employer,
            cra=cra,
            taxable_income=taxable_income,
            paye=paye,
            pension=pension,
            other_deductions=other_deductions,
            net_pay=net_pay,
        )

    def compute_employer_costs(
        self, gross: Decimal, settings: TaxSettingsProfile
    ) -> EmployerCosts:
        return EmployerCosts(
            nhis_employer=percent_of(gross, settings.nhis_employer_rate),
            pension_employer=percent_of(gross, settings.pension_employer_rate),
            nsitf=percent_of(gross, settings.nsitf_rate),
        )
