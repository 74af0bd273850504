"""Dependency injection container for BizLedger.

Builds the database, stores, engines and services from ``Settings`` on first
access and caches them for reuse. Tests construct a ``Container`` directly
with an in-memory database:

    container = Container(settings=Settings(sqlite_path=":memory:"))
    poster = container.ledger_poster
"""

from functools import cached_property, lru_cache
from typing import TYPE_CHECKING

from bizledger.config import Settings, get_settings
from bizledger.domain.value_objects import Currency, PayUnit
from bizledger.logging_config import get_logger

if TYPE_CHECKING:
    from bizledger.repositories.sqlite import (
        SQLiteAggregator,
        SQLiteDatabase,
        SQLiteExpenseRepository,
        SQLiteLedgerStore,
        SQLiteProductRepository,
        SQLiteSaleRepository,
        SQLiteTaxLedgerStore,
        SQLiteTaxSettingsRepository,
    )
    from bizledger.services.company_tax import CompanyTaxEngine
    from bizledger.services.journal import JournalValidator
    from bizledger.services.payroll import PayrollService
    from bizledger.services.payroll_tax import PayrollTaxEngine
    from bizledger.services.posting import LedgerPoster
    from bizledger.services.remittance import PAYERemittanceReporter
    from bizledger.services.reporting import LedgerReportingService
    from bizledger.services.tax_ledger import TaxLedgerService
    from bizledger.services.tax_settings import TaxSettingsProvider

logger = get_logger(__name__)


class Container:
    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            sqlite_path=str(self._settings.sqlite_path),
            environment=self._settings.environment.value,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def database(self) -> "SQLiteDatabase":
        """The SQLite database, schema created on first access."""
        from bizledger.repositories.sqlite import SQLiteDatabase

        db_path = str(self._settings.sqlite_path)
        logger.info("initializing_sqlite_database", path=db_path)
        db = SQLiteDatabase(db_path)
        db.initialize()
        return db

    @cached_property
    def journal_validator(self) -> "JournalValidator":
        from bizledger.services.journal import JournalValidator

        return JournalValidator()

    @cached_property
    def ledger_store(self) -> "SQLiteLedgerStore":
        from bizledger.repositories.sqlite import SQLiteLedgerStore

        return SQLiteLedgerStore(self.database, self.journal_validator)

    @cached_property
    def tax_ledger_store(self) -> "SQLiteTaxLedgerStore":
        from bizledger.repositories.sqlite import SQLiteTaxLedgerStore

        return SQLiteTaxLedgerStore(self.database)

    @cached_property
    def tax_settings_repository(self) -> "SQLiteTaxSettingsRepository":
        from bizledger.repositories.sqlite import SQLiteTaxSettingsRepository

        return SQLiteTaxSettingsRepository(self.database)

    @cached_property
    def product_repository(self) -> "SQLiteProductRepository":
        from bizledger.repositories.sqlite import SQLiteProductRepository

        return SQLiteProductRepository(self.database)

    @cached_property
    def sale_repository(self) -> "SQLiteSaleRepository":
        from bizledger.repositories.sqlite import SQLiteSaleRepository

        return SQLiteSaleRepository(self.database)

    @cached_property
    def expense_repository(self) -> "SQLiteExpenseRepository":
        from bizledger.repositories.sqlite import SQLiteExpenseRepository

        return SQLiteExpenseRepository(self.database)

    @cached_property
    def aggregator(self) -> "SQLiteAggregator":
        from bizledger.repositories.sqlite import SQLiteAggregator

        return SQLiteAggregator(self.database)

    @cached_property
    def payroll_tax_engine(self) -> "PayrollTaxEngine":
        from bizledger.services.payroll_tax import PayrollTaxEngine

        return PayrollTaxEngine(unit=PayUnit(self._settings.paye_band_unit))

    @cached_property
    def company_tax_engine(self) -> "CompanyTaxEngine":
        from bizledger.services.company_tax import CompanyTaxEngine

        return CompanyTaxEngine(
            self.aggregator, reporting_currency=Currency(self._settings.default_currency)
        )

    @cached_property
    def tax_settings_provider(self) -> "TaxSettingsProvider":
        from bizledger.services.tax_settings import TaxSettingsProvider

        return TaxSettingsProvider(self.tax_settings_repository)

    @cached_property
    def tax_ledger_service(self) -> "TaxLedgerService":
        from bizledger.services.tax_ledger import TaxLedgerService

        return TaxLedgerService(
            self.tax_ledger_store,
            self.sale_repository,
            self.company_tax_engine,
            law_version=self._settings.tax_law_version,
        )

    @cached_property
    def ledger_poster(self) -> "LedgerPoster":
        from bizledger.services.posting import LedgerPoster

        return LedgerPoster(
            self.ledger_store,
            self.journal_validator,
            self.product_repository,
            self.sale_repository,
            self.expense_repository,
            self.tax_ledger_service,
            split_expense_tax_lines=self._settings.split_expense_tax_lines,
            payroll_currency=Currency(self._settings.default_currency),
        )

    @cached_property
    def payroll_service(self) -> "PayrollService":
        from bizledger.services.payroll import PayrollService

        return PayrollService(
            self.tax_settings_provider,
            self.payroll_tax_engine,
            self.tax_ledger_service,
            self.ledger_poster,
            self.ledger_store,
        )

    @cached_property
    def remittance_reporter(self) -> "PAYERemittanceReporter":
        from bizledger.services.remittance import PAYERemittanceReporter

        return PAYERemittanceReporter(self.tax_ledger_store, self.aggregator)

    @cached_property
    def reporting_service(self) -> "LedgerReportingService":
        from bizledger.services.reporting import LedgerReportingService

        return LedgerReportingService(
            self.ledger_store, currency=Currency(self._settings.default_currency)
        )

    def close(self) -> None:
        """Close the database connection if one was opened."""
        if "database" in self.__dict__:
            logger.info("closing_database_connection")
            self.database.close()

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """Global container built from the default settings."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Close and drop the global container."""
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()
