from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from bizledger.domain.events import Expense, Product, Sale, SaleItem, TaxFlags
from bizledger.domain.value_objects import Currency, ExpenseStatus, PaymentMethod, SaleItemType
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


@pytest.fixture
def db() -> SQLiteDatabase:
    database = SQLiteDatabase(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def company_id() -> UUID:
    return uuid4()


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def validator() -> JournalValidator:
    return JournalValidator()


@pytest.fixture
def ledger_store(db: SQLiteDatabase, validator: JournalValidator) -> SQLiteLedgerStore:
    return SQLiteLedgerStore(db, validator)


@pytest.fixture
def tax_store(db: SQLiteDatabase) -> SQLiteTaxLedgerStore:
    return SQLiteTaxLedgerStore(db)


@pytest.fixture
def settings_repo(db: SQLiteDatabase) -> SQLiteTaxSettingsRepository:
    return SQLiteTaxSettingsRepository(db)


@pytest.fixture
def product_repo(db: SQLiteDatabase) -> SQLiteProductRepository:
    return SQLiteProductRepository(db)


@pytest.fixture
def sale_repo(db: SQLiteDatabase) -> SQLiteSaleRepository:
    return SQLiteSaleRepository(db)


@pytest.fixture
def expense_repo(db: SQLiteDatabase) -> SQLiteExpenseRepository:
    return SQLiteExpenseRepository(db)


@pytest.fixture
def aggregator(db: SQLiteDatabase) -> SQLiteAggregator:
    return SQLiteAggregator(db)


@pytest.fixture
def company_tax(aggregator: SQLiteAggregator) -> CompanyTaxEngine:
    return CompanyTaxEngine(aggregator)


@pytest.fixture
def payroll_engine() -> PayrollTaxEngine:
    return PayrollTaxEngine()


@pytest.fixture
def settings_provider(settings_repo: SQLiteTaxSettingsRepository) -> TaxSettingsProvider:
    return TaxSettingsProvider(settings_repo)


@pytest.fixture
def tax_ledger(
    tax_store: SQLiteTaxLedgerStore,
    sale_repo: SQLiteSaleRepository,
    company_tax: CompanyTaxEngine,
) -> TaxLedgerService:
    return TaxLedgerService(tax_store, sale_repo, company_tax, law_version="FIRS-2023")


@pytest.fixture
def poster(
    ledger_store: SQLiteLedgerStore,
    validator: JournalValidator,
    product_repo: SQLiteProductRepository,
    sale_repo: SQLiteSaleRepository,
    expense_repo: SQLiteExpenseRepository,
    tax_ledger: TaxLedgerService,
) -> LedgerPoster:
    return LedgerPoster(
        ledger_store, validator, product_repo, sale_repo, expense_repo, tax_ledger
    )


@pytest.fixture
def split_poster(
    ledger_store: SQLiteLedgerStore,
    validator: JournalValidator,
    product_repo: SQLiteProductRepository,
    sale_repo: SQLiteSaleRepository,
    expense_repo: SQLiteExpenseRepository,
    tax_ledger: TaxLedgerService,
) -> LedgerPoster:
    return LedgerPoster(
        ledger_store,
        validator,
        product_repo,
        sale_repo,
        expense_repo,
        tax_ledger,
        split_expense_tax_lines=True,
    )


@pytest.fixture
def payroll_service(
    settings_provider: TaxSettingsProvider,
    payroll_engine: PayrollTaxEngine,
    tax_ledger: TaxLedgerService,
    poster: LedgerPoster,
    ledger_store: SQLiteLedgerStore,
) -> PayrollService:
    return PayrollService(settings_provider, payroll_engine, tax_ledger, poster, ledger_store)


@pytest.fixture
def reporter(
    tax_store: SQLiteTaxLedgerStore, aggregator: SQLiteAggregator
) -> PAYERemittanceReporter:
    return PAYERemittanceReporter(tax_store, aggregator)


@pytest.fixture
def reporting(ledger_store: SQLiteLedgerStore) -> LedgerReportingService:
    return LedgerReportingService(ledger_store)


@pytest.fixture
def widget(company_id: UUID, product_repo: SQLiteProductRepository) -> Product:
    product = Product(
        company_id=company_id,
        name="Widget",
        cost_price=Decimal("400.00"),
        selling_price=Decimal("1000.00"),
        quantity_on_hand=50,
    )
    product_repo.add(product)
    return product


@pytest.fixture
def make_sale(company_id: UUID, user_id: UUID, sale_repo: SQLiteSaleRepository):
    """Build and store a sale whose total is subtotal plus 7.5% VAT."""

    def _make(
        items: list[SaleItem],
        *,
        created_at: datetime | None = None,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        currency: Currency = Currency.NGN,
        store: bool = True,
    ) -> Sale:
        subtotal = sum((item.line_total for item in items), Decimal("0"))
        vat = (subtotal * Decimal("0.075")).quantize(Decimal("0.01"))
        sale = Sale(
            company_id=company_id,
            items=items,
            subtotal=subtotal,
            vat_amount=vat,
            total_amount=subtotal + vat,
            created_by=user_id,
            payment_method=payment_method,
            currency=currency,
            created_at=created_at or datetime(2024, 3, 15, 10, 0, tzinfo=UTC),
        )
        if store:
            sale_repo.add(sale)
        return sale

    return _make


@pytest.fixture
def make_expense(company_id: UUID, user_id: UUID, expense_repo: SQLiteExpenseRepository):
    def _make(
        amount: str,
        *,
        vat: str = "0",
        wht: str = "0",
        flags: TaxFlags | None = None,
        status: ExpenseStatus = ExpenseStatus.APPROVED,
        on: date = date(2024, 3, 10),
        currency: Currency = Currency.NGN,
        store: bool = True,
    ) -> Expense:
        expense = Expense(
            company_id=company_id,
            amount=Decimal(amount),
            date_of_expense=on,
            title="Office supplies",
            tax_flags=flags or TaxFlags(),
            vat_amount=Decimal(vat),
            wht_amount=Decimal(wht),
            status=status,
            entered_by=user_id,
            currency=currency,
        )
        if store:
            expense_repo.add(expense)
        return expense

    return _make


@pytest.fixture
def service_item():
    def _make(name: str = "Consulting", price: str = "5000.00") -> SaleItem:
        return SaleItem(
            name=name, quantity=1, price=Decimal(price), item_type=SaleItemType.SERVICE
        )

    return _make


@pytest.fixture
def log_output(capsys, caplog):
    """Structlog writes to stdout or through stdlib logging depending on setup."""

    def _read() -> str:
        captured = capsys.readouterr()
        return captured.out + captured.err + caplog.text

    return _read
