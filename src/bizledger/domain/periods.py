"""Tax period tokens: ``YYYY-MM`` for monthly and ``YYYY-Qn`` for quarterly."""

import re
from dataclasses import dataclass
from datetime import date

from bizledger.exceptions import InvalidTaxPeriodError

_MONTHLY_RE = re.compile(r"^(\d{4})-(\d{2})$")
_QUARTERLY_RE = re.compile(r"^(\d{4})-Q([1-4])$")


@dataclass(frozen=True, slots=True)
class TaxPeriod:
    year: int
    month: int | None = None
    quarter: int | None = None

    def __post_init__(self) -> None:
        if (self.month is None) == (self.quarter is None):
            raise InvalidTaxPeriodError(f"{self.year}/{self.month}/{self.quarter}")
        if self.month is not None and not 1 <= self.month <= 12:
            raise InvalidTaxPeriodError(f"{self.year}-{self.month}")
        if self.quarter is not None and not 1 <= self.quarter <= 4:
            raise InvalidTaxPeriodError(f"{self.year}-Q{self.quarter}")
        if not 1 <= self.year <= 9999:
            raise InvalidTaxPeriodError(self.year)

    @classmethod
    def monthly(cls, year: int, month: int) -> "TaxPeriod":
        return cls(year=year, month=month)

    @classmethod
    def quarterly(cls, year: int, quarter: int) -> "TaxPeriod":
        return cls(year=year, quarter=quarter)

    @classmethod
    def for_date(cls, value: date) -> "TaxPeriod":
        """The monthly period containing ``value``."""
        return cls.monthly(value.year, value.month)

    @classmethod
    def parse(cls, token: "str | TaxPeriod") -> "TaxPeriod":
        if isinstance(token, TaxPeriod):
            return token
        if not isinstance(token, str):
            raise InvalidTaxPeriodError(token)
        text = token.strip()
        match = _MONTHLY_RE.match(text)
        if match:
            return cls.monthly(int(match.group(1)), int(match.group(2)))
        match = _QUARTERLY_RE.match(text)
        if match:
            return cls.quarterly(int(match.group(1)), int(match.group(2)))
        raise InvalidTaxPeriodError(token)

    @property
    def is_monthly(self) -> bool:
        return self.month is not None

    @property
    def token(self) -> str:
        if self.month is not None:
            return f"{self.year:04d}-{self.month:02d}"
        return f"{self.year:04d}-Q{self.quarter}"

    def date_range(self) -> tuple[date, date]:
        """Half-open ``[start, end)`` date range covered by the period."""
        if self.month is not None:
            start = date(self.year, self.month, 1)
            months = 1
        else:
            start = date(self.year, (self.quarter - 1) * 3 + 1, 1)
            months = 3
        end_month = start.month + months
        end_year = start.year + (end_month - 1) // 12
        end_month = (end_month - 1) % 12 + 1
        return start, date(end_year, end_month, 1)

    def contains(self, value: date) -> bool:
        start, end = self.date_range()
        return start <= value < end

    def __str__(self) -> str:
        return self.token
