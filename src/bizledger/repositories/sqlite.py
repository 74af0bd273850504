"""SQLite implementations of repository interfaces."""

from __future__ import annotations

import contextlib
import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from bizledger.domain.events import (
    Expense,
    Product,
    Sale,
    SaleItem,
    TaxFlags,
)
from bizledger.domain.ledger import AccountTotals, LedgerEntry
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.tax_ledger import (
    PeriodTaxTotal,
    TaxAuditTrail,
    TaxContribution,
    TaxLedgerFilter,
    TaxLedgerKey,
    TaxLedgerRecord,
)
from bizledger.domain.tax_settings import TaxSettingsProfile
from bizledger.domain.value_objects import (
    AccountCategory,
    Currency,
    EntryType,
    ExpenseStatus,
    ExpenseType,
    LedgerAccount,
    LedgerSource,
    Money,
    PaymentMethod,
    SaleItemType,
    TaxMode,
    TaxSource,
    TaxType,
    decimal_to_minor,
    minor_to_decimal,
    to_decimal,
)
from bizledger.exceptions import (
    ImmutableLedgerError,
    JournalError,
    PersistenceError,
    TaxRecordRemittedError,
)
from bizledger.logging_config import get_logger
from bizledger.repositories.interfaces import (
    Aggregator,
    ExpenseRepository,
    LedgerStore,
    ProductRepository,
    SaleRepository,
    TaxLedgerStore,
    TaxSettingsRepository,
)
from bizledger.repositories.query import (
    AggregateQuery,
    Count,
    Dataset,
    Eq,
    Field,
    FieldKind,
    InRange,
    Sum,
    TaxLedgerField,
    field_kind,
)

if TYPE_CHECKING:
    from bizledger.services.journal import JournalValidator

logger = get_logger(__name__)

# Fixed width so that lexical order in SQLite equals chronological order.
_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"
_RATE_PLACES = Decimal("0.000001")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _to_ts(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value.strftime(_TS_FORMAT)


def _from_ts(text: str) -> datetime:
    return datetime.strptime(text, _TS_FORMAT).replace(tzinfo=UTC)


def _bound_ts(value: date | datetime) -> str:
    """Timestamp bound for a range filter; plain dates mean midnight UTC."""
    if isinstance(value, datetime):
        return _to_ts(value)
    return _to_ts(datetime.combine(value, time.min))


def _opt_uuid(value: str | None) -> UUID | None:
    return UUID(value) if value else None


def _opt_str(value: object | None) -> str | None:
    return str(value) if value is not None else None


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.execute("ROLLBACK")


class SQLiteDatabase:
    """SQLite database connection manager.

    The connection runs in autocommit mode and every write goes through
    ``transaction()``, which issues ``BEGIN IMMEDIATE`` so that concurrent
    writers serialize on the database lock instead of racing.
    """

    def __init__(
        self, path: str | Path = ":memory:", check_same_thread: bool = True
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._connection: sqlite3.Connection | None = None
        self._depth = 0

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self._path,
                check_same_thread=self._check_same_thread,
                isolation_level=None,
            )
            self._connection.row_factory = sqlite3.Row
            # Enable foreign keys
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextlib.contextmanager
    def transaction(self, operation: str = "transaction") -> Iterator[sqlite3.Connection]:
        """Run the block in one database transaction.

        Nested calls join the outermost transaction. Any exception rolls the
        whole outermost transaction back; ``sqlite3.Error`` is re-raised as
        ``PersistenceError`` with the original chained.
        """
        conn = self.get_connection()
        if self._depth:
            self._depth += 1
            try:
                yield conn
            except sqlite3.Error as exc:
                raise PersistenceError(operation, str(exc)) from exc
            finally:
                self._depth -= 1
            return

        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise PersistenceError(operation, str(exc)) from exc
        self._depth = 1
        try:
            yield conn
        except sqlite3.Error as exc:
            _rollback(conn)
            raise PersistenceError(operation, str(exc)) from exc
        except BaseException:
            _rollback(conn)
            raise
        else:
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                _rollback(conn)
                raise PersistenceError(operation, str(exc)) from exc
        finally:
            self._depth = 0

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        conn.executescript(
            """
            -- Ledger entries (append-only)
            CREATE TABLE IF NOT EXISTS ledger_entries (
                id TEXT PRIMARY KEY,
                journal_id TEXT NOT NULL,
                company_id TEXT NOT NULL,
                account TEXT NOT NULL,
                account_category TEXT NOT NULL,
                entry_type TEXT NOT NULL CHECK (entry_type IN ('debit', 'credit')),
                amount INTEGER NOT NULL CHECK (amount >= 0),
                currency TEXT NOT NULL,
                source TEXT NOT NULL,
                reference_id TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                created_by TEXT,
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_ledger_entries_journal ON ledger_entries(journal_id);
            CREATE INDEX IF NOT EXISTS idx_ledger_entries_company_account ON ledger_entries(company_id, account);
            CREATE INDEX IF NOT EXISTS idx_ledger_entries_company_created ON ledger_entries(company_id, created_at);
            CREATE INDEX IF NOT EXISTS idx_ledger_entries_reference ON ledger_entries(reference_id);

            CREATE TRIGGER IF NOT EXISTS trg_ledger_entries_no_update
            BEFORE UPDATE ON ledger_entries
            BEGIN
                SELECT RAISE(ABORT, 'ledger entries are immutable');
            END;

            CREATE TRIGGER IF NOT EXISTS trg_ledger_entries_no_delete
            BEFORE DELETE ON ledger_entries
            BEGIN
                SELECT RAISE(ABORT, 'ledger entries are immutable');
            END;

            -- Aggregate tax records
            CREATE TABLE IF NOT EXISTS tax_ledger (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                tax_type TEXT NOT NULL,
                period TEXT NOT NULL,
                source TEXT NOT NULL,
                basis_amount INTEGER NOT NULL DEFAULT 0,
                rate TEXT NOT NULL DEFAULT '0',
                tax_amount INTEGER NOT NULL DEFAULT 0,
                remitted INTEGER NOT NULL DEFAULT 0,
                remittance_date TEXT,
                receipt_number TEXT,
                computed_by TEXT,
                computed_at TEXT NOT NULL,
                law_version TEXT NOT NULL DEFAULT '',
                notes TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (company_id, tax_type, period, source)
            );
            CREATE INDEX IF NOT EXISTS idx_tax_ledger_company_period ON tax_ledger(company_id, period);

            CREATE TABLE IF NOT EXISTS tax_ledger_source_refs (
                tax_ledger_id TEXT NOT NULL,
                source_ref TEXT NOT NULL,
                PRIMARY KEY (tax_ledger_id, source_ref),
                FOREIGN KEY (tax_ledger_id) REFERENCES tax_ledger(id) ON DELETE CASCADE
            );

            -- Per-company payroll tax settings
            CREATE TABLE IF NOT EXISTS tax_settings (
                company_id TEXT PRIMARY KEY,
                mode TEXT NOT NULL,
                custom_percent TEXT NOT NULL,
                pension_employee_rate TEXT NOT NULL,
                pension_employer_rate TEXT NOT NULL,
                nhf_rate TEXT NOT NULL,
                nhis_employee_rate TEXT NOT NULL,
                nhis_employer_rate TEXT NOT NULL,
                nsitf_rate TEXT NOT NULL,
                cra_relief_percent TEXT NOT NULL,
                cra_minimum INTEGER NOT NULL,
                fixed_annual_relief INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            -- Business-event snapshots
            CREATE TABLE IF NOT EXISTS products (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                name TEXT NOT NULL,
                cost_price INTEGER NOT NULL,
                selling_price INTEGER NOT NULL DEFAULT 0,
                quantity_on_hand INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS sales (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                subtotal INTEGER NOT NULL,
                vat_amount INTEGER NOT NULL DEFAULT 0,
                total_amount INTEGER NOT NULL,
                discount INTEGER NOT NULL DEFAULT 0,
                payment_method TEXT NOT NULL,
                currency TEXT NOT NULL,
                created_by TEXT,
                created_at TEXT NOT NULL,
                ledger_journal_id TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_sales_company_created ON sales(company_id, created_at);

            -- product_id carries no foreign key: products may be deleted after the sale
            CREATE TABLE IF NOT EXISTS sale_items (
                sale_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                name TEXT NOT NULL,
                product_id TEXT,
                quantity INTEGER NOT NULL,
                price INTEGER NOT NULL,
                item_type TEXT NOT NULL,
                PRIMARY KEY (sale_id, position),
                FOREIGN KEY (sale_id) REFERENCES sales(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                amount INTEGER NOT NULL,
                vat_amount INTEGER NOT NULL DEFAULT 0,
                wht_amount INTEGER NOT NULL DEFAULT 0,
                wht_rate TEXT NOT NULL DEFAULT '0',
                vat_claimable INTEGER NOT NULL DEFAULT 0,
                wht_applicable INTEGER NOT NULL DEFAULT 0,
                cit_allowable INTEGER NOT NULL DEFAULT 1,
                status TEXT NOT NULL,
                expense_type TEXT NOT NULL,
                date_of_expense TEXT NOT NULL,
                entered_by TEXT,
                currency TEXT NOT NULL,
                created_at TEXT NOT NULL,
                ledger_journal_id TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_expenses_company_date ON expenses(company_id, date_of_expense);
            """
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            self._depth = 0


class SQLiteLedgerStore(LedgerStore):
    """SQLite implementation of LedgerStore.

    Writes are append-only. The schema triggers reject UPDATE and DELETE on
    ``ledger_entries`` and the store's own ``update``/``delete`` refuse
    before touching the database.
    """

    def __init__(self, database: SQLiteDatabase, validator: JournalValidator) -> None:
        self._db = database
        self._validator = validator

    def append_journal(self, entries: Sequence[LedgerEntry]) -> UUID:
        entries = list(entries)
        journal_ids = {entry.journal_id for entry in entries if entry.journal_id}
        if len(journal_ids) > 1:
            raise JournalError(
                "Entries belong to more than one journal",
                context={"journal_ids": sorted(str(j) for j in journal_ids)},
            )
        journal_id = journal_ids.pop() if journal_ids else uuid4()
        stamped = [
            entry if entry.journal_id == journal_id else entry.in_journal(journal_id)
            for entry in entries
        ]
        self._validator.validate(stamped)
        params = [self._entry_params(entry) for entry in stamped]

        with self._db.transaction("append_journal") as conn:
            existing = conn.execute(
                "SELECT 1 FROM ledger_entries WHERE journal_id = ? LIMIT 1",
                (str(journal_id),),
            ).fetchone()
            if existing is not None:
                raise JournalError(
                    f"Journal {journal_id} is already committed",
                    context={"journal_id": str(journal_id)},
                )
            conn.executemany(
                """
                INSERT INTO ledger_entries (id, journal_id, company_id, account, account_category,
                                            entry_type, amount, currency, source, reference_id,
                                            description, created_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                params,
            )
        logger.debug(
            "journal_posted",
            journal_id=str(journal_id),
            lines=len(stamped),
            company_id=str(stamped[0].company_id),
        )
        return journal_id

    def update(self, entry: LedgerEntry) -> None:
        raise ImmutableLedgerError("update", entry.id)

    def delete(self, entry_id: UUID) -> None:
        raise ImmutableLedgerError("delete", entry_id)

    def atomic(self) -> contextlib.AbstractContextManager[sqlite3.Connection]:
        return self._db.transaction("atomic")

    def get_journal(self, journal_id: UUID) -> list[LedgerEntry]:
        return self._select(
            "WHERE journal_id = ?", (str(journal_id),)
        )

    def list_by_company(self, company_id: UUID) -> Iterable[LedgerEntry]:
        return self._select("WHERE company_id = ?", (str(company_id),))

    def list_by_account(
        self, company_id: UUID, account: LedgerAccount
    ) -> Iterable[LedgerEntry]:
        return self._select(
            "WHERE company_id = ? AND account = ?", (str(company_id), account.value)
        )

    def list_by_date_range(
        self, company_id: UUID, start: datetime, end: datetime
    ) -> Iterable[LedgerEntry]:
        return self._select(
            "WHERE company_id = ? AND created_at >= ? AND created_at < ?",
            (str(company_id), _bound_ts(start), _bound_ts(end)),
        )

    def list_by_reference(self, reference_id: UUID) -> Iterable[LedgerEntry]:
        return self._select("WHERE reference_id = ?", (str(reference_id),))

    def sum_by_account(
        self,
        company_id: UUID,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        currency: Currency | None = None,
    ) -> list[AccountTotals]:
        conn = self._db.get_connection()
        query = """
            SELECT account, currency, entry_type, COALESCE(SUM(amount), 0) AS total
            FROM ledger_entries
            WHERE company_id = ?
        """
        params: list[str] = [str(company_id)]
        if start is not None:
            query += " AND created_at >= ?"
            params.append(_bound_ts(start))
        if end is not None:
            query += " AND created_at < ?"
            params.append(_bound_ts(end))
        if currency is not None:
            query += " AND currency = ?"
            params.append(Currency(currency).value)
        query += " GROUP BY account, currency, entry_type ORDER BY account, currency"

        debits: dict[tuple[LedgerAccount, Currency], int] = {}
        credits: dict[tuple[LedgerAccount, Currency], int] = {}
        for row in conn.execute(query, params).fetchall():
            key = (LedgerAccount(row["account"]), Currency(row["currency"]))
            bucket = debits if row["entry_type"] == EntryType.DEBIT.value else credits
            bucket[key] = bucket.get(key, 0) + row["total"]

        order = {account: index for index, account in enumerate(LedgerAccount)}
        keys = sorted(set(debits) | set(credits), key=lambda key: (order[key[0]], key[1].value))
        return [
            AccountTotals(
                account=account,
                debit_total=minor_to_decimal(debits.get((account, code))),
                credit_total=minor_to_decimal(credits.get((account, code))),
                currency=code,
            )
            for account, code in keys
        ]

    def _select(self, where: str, params: tuple[str, ...]) -> list[LedgerEntry]:
        conn = self._db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM ledger_entries {where} ORDER BY created_at, journal_id, rowid",
            params,
        ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def _entry_params(self, entry: LedgerEntry) -> tuple[Any, ...]:
        return (
            str(entry.id),
            str(entry.journal_id),
            str(entry.company_id),
            entry.account.value,
            entry.account_category.value,
            entry.entry_type.value,
            entry.amount.to_minor(),
            entry.amount.currency.value,
            entry.source.value,
            str(entry.reference_id),
            entry.description,
            _opt_str(entry.created_by),
            _to_ts(entry.created_at),
        )

    def _row_to_entry(self, row: sqlite3.Row) -> LedgerEntry:
        return LedgerEntry(
            id=UUID(row["id"]),
            journal_id=UUID(row["journal_id"]),
            company_id=UUID(row["company_id"]),
            account=LedgerAccount(row["account"]),
            account_category=AccountCategory(row["account_category"]),
            entry_type=EntryType(row["entry_type"]),
            amount=Money.from_minor(row["amount"], row["currency"]),
            source=LedgerSource(row["source"]),
            reference_id=UUID(row["reference_id"]),
            description=row["description"],
            created_by=_opt_uuid(row["created_by"]),
            created_at=_from_ts(row["created_at"]),
        )


class SQLiteTaxLedgerStore(TaxLedgerStore):
    """SQLite implementation of TaxLedgerStore.

    ``replace`` is read-then-replace and serves recompute-from-source paths.
    ``accumulate`` adds to the stored totals with a single upsert statement,
    so concurrent contributions to the same key never lose an increment.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database
        self._aggregator = SQLiteAggregator(database)

    def atomic(self) -> contextlib.AbstractContextManager[sqlite3.Connection]:
        return self._db.transaction("tax_ledger_atomic")

    def get(self, key: TaxLedgerKey) -> TaxLedgerRecord | None:
        return self._fetch(self._db.get_connection(), key)

    def replace(self, record: TaxLedgerRecord) -> TaxLedgerRecord:
        key = record.key
        now = _to_ts(_utc_now())
        with self._db.transaction("tax_ledger_replace") as conn:
            existing = conn.execute(
                "SELECT id, remitted FROM tax_ledger "
                "WHERE company_id = ? AND tax_type = ? AND period = ? AND source = ?",
                self._key_params(key),
            ).fetchone()
            if existing is not None and existing["remitted"]:
                raise TaxRecordRemittedError(
                    key.tax_type.value, key.period.token, key.source.value
                )

            audit = record.audit
            if existing is None:
                record_id = str(record.id)
                conn.execute(
                    """
                    INSERT INTO tax_ledger (id, company_id, tax_type, period, source,
                                            basis_amount, rate, tax_amount, remitted,
                                            computed_by, computed_at, law_version, notes,
                                            created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record_id,
                        *self._key_params(key),
                        decimal_to_minor(record.basis_amount),
                        str(record.rate),
                        decimal_to_minor(record.tax_amount),
                        _opt_str(audit.computed_by),
                        _to_ts(audit.computed_at),
                        audit.law_version,
                        audit.notes,
                        now,
                        now,
                    ),
                )
            else:
                record_id = existing["id"]
                conn.execute(
                    """
                    UPDATE tax_ledger SET
                        basis_amount = ?,
                        rate = ?,
                        tax_amount = ?,
                        computed_by = ?,
                        computed_at = ?,
                        law_version = ?,
                        notes = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        decimal_to_minor(record.basis_amount),
                        str(record.rate),
                        decimal_to_minor(record.tax_amount),
                        _opt_str(audit.computed_by),
                        _to_ts(audit.computed_at),
                        audit.law_version,
                        audit.notes,
                        now,
                        record_id,
                    ),
                )
                conn.execute(
                    "DELETE FROM tax_ledger_source_refs WHERE tax_ledger_id = ?",
                    (record_id,),
                )
            conn.executemany(
                "INSERT OR IGNORE INTO tax_ledger_source_refs (tax_ledger_id, source_ref) "
                "VALUES (?, ?)",
                [(record_id, str(ref)) for ref in record.source_refs],
            )
            stored = self._fetch(conn, key)
            if stored is None:
                raise PersistenceError("tax_ledger_replace", "record vanished after write")
        return stored

    def accumulate(self, contribution: TaxContribution) -> TaxLedgerRecord:
        key = contribution.key
        audit = contribution.audit
        now = _to_ts(_utc_now())
        with self._db.transaction("tax_ledger_accumulate") as conn:
            existing = conn.execute(
                "SELECT remitted FROM tax_ledger "
                "WHERE company_id = ? AND tax_type = ? AND period = ? AND source = ?",
                self._key_params(key),
            ).fetchone()
            if existing is not None and existing["remitted"]:
                raise TaxRecordRemittedError(
                    key.tax_type.value, key.period.token, key.source.value
                )

            conn.execute(
                """
                INSERT INTO tax_ledger (id, company_id, tax_type, period, source,
                                        basis_amount, rate, tax_amount, remitted,
                                        computed_by, computed_at, law_version, notes,
                                        created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, '0', ?, 0, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (company_id, tax_type, period, source) DO UPDATE SET
                    basis_amount = basis_amount + excluded.basis_amount,
                    tax_amount = tax_amount + excluded.tax_amount,
                    computed_by = excluded.computed_by,
                    computed_at = excluded.computed_at,
                    law_version = excluded.law_version,
                    notes = CASE WHEN excluded.notes = '' THEN notes ELSE excluded.notes END,
                    updated_at = excluded.updated_at
                """,
                (
                    str(uuid4()),
                    *self._key_params(key),
                    decimal_to_minor(contribution.basis_amount),
                    decimal_to_minor(contribution.tax_amount),
                    _opt_str(audit.computed_by),
                    _to_ts(audit.computed_at),
                    audit.law_version,
                    audit.notes,
                    now,
                    now,
                ),
            )
            row = conn.execute(
                "SELECT id, basis_amount, tax_amount FROM tax_ledger "
                "WHERE company_id = ? AND tax_type = ? AND period = ? AND source = ?",
                self._key_params(key),
            ).fetchone()
            conn.execute(
                "UPDATE tax_ledger SET rate = ? "
                "WHERE id = ? AND basis_amount = ? AND tax_amount = ?",
                (
                    str(_effective_rate(row["tax_amount"], row["basis_amount"])),
                    row["id"],
                    row["basis_amount"],
                    row["tax_amount"],
                ),
            )
            cursor = conn.execute(
                "INSERT OR IGNORE INTO tax_ledger_source_refs (tax_ledger_id, source_ref) "
                "VALUES (?, ?)",
                (row["id"], str(contribution.source_ref)),
            )
            if cursor.rowcount == 0:
                logger.warning(
                    "expense_tax_reapplied"
                    if key.source == TaxSource.EXPENSE
                    else "tax_source_reapplied",
                    tax_key=str(key),
                    source_ref=str(contribution.source_ref),
                )
            stored = self._fetch(conn, key)
            if stored is None:
                raise PersistenceError("tax_ledger_accumulate", "record vanished after write")
        return stored

    def mark_remitted(
        self,
        company_id: UUID,
        tax_type: TaxType,
        period: TaxPeriod,
        receipt_number: str,
        remitted_at: datetime,
    ) -> int:
        with self._db.transaction("tax_ledger_mark_remitted") as conn:
            cursor = conn.execute(
                """
                UPDATE tax_ledger SET
                    remitted = 1,
                    remittance_date = ?,
                    receipt_number = ?,
                    updated_at = ?
                WHERE company_id = ? AND tax_type = ? AND period = ? AND remitted = 0
                """,
                (
                    _to_ts(remitted_at),
                    receipt_number,
                    _to_ts(_utc_now()),
                    str(company_id),
                    tax_type.value,
                    period.token,
                ),
            )
            return cursor.rowcount

    def list_records(
        self, company_id: UUID, tax_filter: TaxLedgerFilter | None = None
    ) -> list[TaxLedgerRecord]:
        conn = self._db.get_connection()
        query = "SELECT * FROM tax_ledger WHERE company_id = ?"
        params: list[Any] = [str(company_id)]
        if tax_filter is not None:
            if tax_filter.tax_type is not None:
                query += " AND tax_type = ?"
                params.append(tax_filter.tax_type.value)
            if tax_filter.period is not None:
                query += " AND period = ?"
                params.append(tax_filter.period.token)
            if tax_filter.source is not None:
                query += " AND source = ?"
                params.append(tax_filter.source.value)
            if tax_filter.remitted is not None:
                query += " AND remitted = ?"
                params.append(1 if tax_filter.remitted else 0)
        query += " ORDER BY period, tax_type, source"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_record(conn, row) for row in rows]

    def summarize_by_period(
        self, company_id: UUID, tax_type: TaxType, remitted: bool | None = None
    ) -> list[PeriodTaxTotal]:
        query = (
            AggregateQuery.over(Dataset.TAX_LEDGER)
            .where(Eq(TaxLedgerField.COMPANY_ID, company_id))
            .where(Eq(TaxLedgerField.TAX_TYPE, tax_type))
            .grouped_by(TaxLedgerField.PERIOD)
            .sum(TaxLedgerField.TAX_AMOUNT, alias="tax_amount")
            .count("entry_count")
        )
        if remitted is not None:
            query = query.where(Eq(TaxLedgerField.REMITTED, remitted))
        totals = [
            PeriodTaxTotal(
                period=TaxPeriod.parse(row["period"]),
                tax_amount=row["tax_amount"],
                entry_count=row["entry_count"],
            )
            for row in self._aggregator.run(query)
        ]
        return sorted(totals, key=lambda total: total.period.token, reverse=True)

    def _key_params(self, key: TaxLedgerKey) -> tuple[str, str, str, str]:
        return (
            str(key.company_id),
            key.tax_type.value,
            key.period.token,
            key.source.value,
        )

    def _fetch(self, conn: sqlite3.Connection, key: TaxLedgerKey) -> TaxLedgerRecord | None:
        row = conn.execute(
            "SELECT * FROM tax_ledger "
            "WHERE company_id = ? AND tax_type = ? AND period = ? AND source = ?",
            self._key_params(key),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_record(conn, row)

    def _row_to_record(self, conn: sqlite3.Connection, row: sqlite3.Row) -> TaxLedgerRecord:
        refs = conn.execute(
            "SELECT source_ref FROM tax_ledger_source_refs "
            "WHERE tax_ledger_id = ? ORDER BY rowid",
            (row["id"],),
        ).fetchall()
        return TaxLedgerRecord(
            id=UUID(row["id"]),
            company_id=UUID(row["company_id"]),
            tax_type=TaxType(row["tax_type"]),
            period=TaxPeriod.parse(row["period"]),
            source=TaxSource(row["source"]),
            basis_amount=minor_to_decimal(row["basis_amount"]),
            rate=Decimal(row["rate"]),
            tax_amount=minor_to_decimal(row["tax_amount"]),
            source_refs=tuple(UUID(ref["source_ref"]) for ref in refs),
            remitted=bool(row["remitted"]),
            remittance_date=_from_ts(row["remittance_date"]) if row["remittance_date"] else None,
            receipt_number=row["receipt_number"],
            audit=TaxAuditTrail(
                computed_by=_opt_uuid(row["computed_by"]),
                computed_at=_from_ts(row["computed_at"]),
                law_version=row["law_version"],
                notes=row["notes"],
            ),
            created_at=_from_ts(row["created_at"]),
            updated_at=_from_ts(row["updated_at"]),
        )


def _effective_rate(tax_minor: int, basis_minor: int) -> Decimal:
    if not basis_minor:
        return Decimal("0")
    return (Decimal(tax_minor) / Decimal(basis_minor)).quantize(_RATE_PLACES)


class SQLiteTaxSettingsRepository(TaxSettingsRepository):
    """SQLite implementation of TaxSettingsRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def get(self, company_id: UUID) -> TaxSettingsProfile | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM tax_settings WHERE company_id = ?", (str(company_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_profile(row)

    def save(self, profile: TaxSettingsProfile) -> None:
        with self._db.transaction("tax_settings_save") as conn:
            conn.execute(
                """
                INSERT INTO tax_settings (company_id, mode, custom_percent, pension_employee_rate,
                                          pension_employer_rate, nhf_rate, nhis_employee_rate,
                                          nhis_employer_rate, nsitf_rate, cra_relief_percent,
                                          cra_minimum, fixed_annual_relief, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (company_id) DO UPDATE SET
                    mode = excluded.mode,
                    custom_percent = excluded.custom_percent,
                    pension_employee_rate = excluded.pension_employee_rate,
                    pension_employer_rate = excluded.pension_employer_rate,
                    nhf_rate = excluded.nhf_rate,
                    nhis_employee_rate = excluded.nhis_employee_rate,
                    nhis_employer_rate = excluded.nhis_employer_rate,
                    nsitf_rate = excluded.nsitf_rate,
                    cra_relief_percent = excluded.cra_relief_percent,
                    cra_minimum = excluded.cra_minimum,
                    fixed_annual_relief = excluded.fixed_annual_relief,
                    updated_at = excluded.updated_at
                """,
                (
                    str(profile.company_id),
                    profile.mode.value,
                    str(profile.custom_percent),
                    str(profile.pension_employee_rate),
                    str(profile.pension_employer_rate),
                    str(profile.nhf_rate),
                    str(profile.nhis_employee_rate),
                    str(profile.nhis_employer_rate),
                    str(profile.nsitf_rate),
                    str(profile.cra_relief_percent),
                    decimal_to_minor(profile.cra_minimum),
                    decimal_to_minor(profile.fixed_annual_relief),
                    _to_ts(profile.created_at),
                    _to_ts(_utc_now()),
                ),
            )

    def _row_to_profile(self, row: sqlite3.Row) -> TaxSettingsProfile:
        return TaxSettingsProfile(
            company_id=UUID(row["company_id"]),
            mode=TaxMode(row["mode"]),
            custom_percent=Decimal(row["custom_percent"]),
            pension_employee_rate=Decimal(row["pension_employee_rate"]),
            pension_employer_rate=Decimal(row["pension_employer_rate"]),
            nhf_rate=Decimal(row["nhf_rate"]),
            nhis_employee_rate=Decimal(row["nhis_employee_rate"]),
            nhis_employer_rate=Decimal(row["nhis_employer_rate"]),
            nsitf_rate=Decimal(row["nsitf_rate"]),
            cra_relief_percent=Decimal(row["cra_relief_percent"]),
            cra_minimum=minor_to_decimal(row["cra_minimum"]),
            fixed_annual_relief=minor_to_decimal(row["fixed_annual_relief"]),
            created_at=_from_ts(row["created_at"]),
            updated_at=_from_ts(row["updated_at"]),
        )


class SQLiteProductRepository(ProductRepository):
    """SQLite implementation of ProductRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, product: Product) -> None:
        with self._db.transaction("product_add") as conn:
            conn.execute(
                """
                INSERT INTO products (id, company_id, name, cost_price, selling_price, quantity_on_hand)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(product.id),
                    str(product.company_id),
                    product.name,
                    decimal_to_minor(product.cost_price),
                    decimal_to_minor(product.selling_price),
                    product.quantity_on_hand,
                ),
            )

    def get(self, product_id: UUID) -> Product | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM products WHERE id = ?", (str(product_id),)
        ).fetchone()
        if row is None:
            return None
        return Product(
            id=UUID(row["id"]),
            company_id=UUID(row["company_id"]),
            name=row["name"],
            cost_price=minor_to_decimal(row["cost_price"]),
            selling_price=minor_to_decimal(row["selling_price"]),
            quantity_on_hand=row["quantity_on_hand"],
        )

    def update(self, product: Product) -> None:
        with self._db.transaction("product_update") as conn:
            conn.execute(
                """
                UPDATE products SET name = ?, cost_price = ?, selling_price = ?, quantity_on_hand = ?
                WHERE id = ?
                """,
                (
                    product.name,
                    decimal_to_minor(product.cost_price),
                    decimal_to_minor(product.selling_price),
                    product.quantity_on_hand,
                    str(product.id),
                ),
            )

    def delete(self, product_id: UUID) -> None:
        with self._db.transaction("product_delete") as conn:
            conn.execute("DELETE FROM products WHERE id = ?", (str(product_id),))


class SQLiteSaleRepository(SaleRepository):
    """SQLite implementation of SaleRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, sale: Sale) -> None:
        with self._db.transaction("sale_add") as conn:
            conn.execute(
                """
                INSERT INTO sales (id, company_id, subtotal, vat_amount, total_amount, discount,
                                   payment_method, currency, created_by, created_at, ledger_journal_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(sale.id),
                    str(sale.company_id),
                    decimal_to_minor(sale.subtotal),
                    decimal_to_minor(sale.vat_amount),
                    decimal_to_minor(sale.total_amount),
                    decimal_to_minor(sale.discount),
                    sale.payment_method.value,
                    sale.currency.value,
                    _opt_str(sale.created_by),
                    _to_ts(sale.created_at),
                    _opt_str(sale.ledger_journal_id),
                ),
            )
            conn.executemany(
                """
                INSERT INTO sale_items (sale_id, position, name, product_id, quantity, price, item_type)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(sale.id),
                        position,
                        item.name,
                        _opt_str(item.product_id),
                        item.quantity,
                        decimal_to_minor(item.price),
                        item.item_type.value,
                    )
                    for position, item in enumerate(sale.items)
                ],
            )

    def get(self, sale_id: UUID) -> Sale | None:
        conn = self._db.get_connection()
        row = conn.execute("SELECT * FROM sales WHERE id = ?", (str(sale_id),)).fetchone()
        if row is None:
            return None
        return self._row_to_sale(conn, row)

    def list_by_company(
        self,
        company_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Sale]:
        conn = self._db.get_connection()
        query = "SELECT * FROM sales WHERE company_id = ?"
        params: list[str] = [str(company_id)]
        if start is not None:
            query += " AND created_at >= ?"
            params.append(_bound_ts(start))
        if end is not None:
            query += " AND created_at < ?"
            params.append(_bound_ts(end))
        query += " ORDER BY created_at"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_sale(conn, row) for row in rows]

    def mark_posted(self, sale_id: UUID, journal_id: UUID) -> bool:
        with self._db.transaction("sale_mark_posted") as conn:
            cursor = conn.execute(
                "UPDATE sales SET ledger_journal_id = ? WHERE id = ? AND ledger_journal_id IS NULL",
                (str(journal_id), str(sale_id)),
            )
            return cursor.rowcount == 1

    def _row_to_sale(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Sale:
        item_rows = conn.execute(
            "SELECT * FROM sale_items WHERE sale_id = ? ORDER BY position", (row["id"],)
        ).fetchall()
        items = [
            SaleItem(
                name=item["name"],
                quantity=item["quantity"],
                price=minor_to_decimal(item["price"]),
                product_id=_opt_uuid(item["product_id"]),
                item_type=SaleItemType(item["item_type"]),
            )
            for item in item_rows
        ]
        return Sale(
            id=UUID(row["id"]),
            company_id=UUID(row["company_id"]),
            items=items,
            subtotal=minor_to_decimal(row["subtotal"]),
            vat_amount=minor_to_decimal(row["vat_amount"]),
            total_amount=minor_to_decimal(row["total_amount"]),
            discount=minor_to_decimal(row["discount"]),
            payment_method=PaymentMethod(row["payment_method"]),
            currency=Currency(row["currency"]),
            created_by=_opt_uuid(row["created_by"]),
            created_at=_from_ts(row["created_at"]),
            ledger_journal_id=_opt_uuid(row["ledger_journal_id"]),
        )


class SQLiteExpenseRepository(ExpenseRepository):
    """SQLite implementation of ExpenseRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, expense: Expense) -> None:
        flags = expense.tax_flags
        with self._db.transaction("expense_add") as conn:
            conn.execute(
                """
                INSERT INTO expenses (id, company_id, title, amount, vat_amount, wht_amount, wht_rate,
                                      vat_claimable, wht_applicable, cit_allowable, status,
                                      expense_type, date_of_expense, entered_by, currency,
                                      created_at, ledger_journal_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(expense.id),
                    str(expense.company_id),
                    expense.title,
                    decimal_to_minor(expense.amount),
                    decimal_to_minor(expense.vat_amount),
                    decimal_to_minor(expense.wht_amount),
                    str(expense.wht_rate),
                    1 if flags.vat_claimable else 0,
                    1 if flags.wht_applicable else 0,
                    1 if flags.cit_allowable else 0,
                    expense.status.value,
                    expense.expense_type.value,
                    expense.date_of_expense.isoformat(),
                    _opt_str(expense.entered_by),
                    expense.currency.value,
                    _to_ts(expense.created_at),
                    _opt_str(expense.ledger_journal_id),
                ),
            )

    def get(self, expense_id: UUID) -> Expense | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM expenses WHERE id = ?", (str(expense_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_expense(row)

    def list_by_company(self, company_id: UUID) -> list[Expense]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM expenses WHERE company_id = ? ORDER BY date_of_expense, created_at",
            (str(company_id),),
        ).fetchall()
        return [self._row_to_expense(row) for row in rows]

    def mark_posted(self, expense_id: UUID, journal_id: UUID) -> bool:
        with self._db.transaction("expense_mark_posted") as conn:
            cursor = conn.execute(
                "UPDATE expenses SET ledger_journal_id = ? WHERE id = ? AND ledger_journal_id IS NULL",
                (str(journal_id), str(expense_id)),
            )
            return cursor.rowcount == 1

    def _row_to_expense(self, row: sqlite3.Row) -> Expense:
        return Expense(
            id=UUID(row["id"]),
            company_id=UUID(row["company_id"]),
            title=row["title"],
            amount=minor_to_decimal(row["amount"]),
            date_of_expense=date.fromisoformat(row["date_of_expense"]),
            tax_flags=TaxFlags(
                vat_claimable=bool(row["vat_claimable"]),
                wht_applicable=bool(row["wht_applicable"]),
                cit_allowable=bool(row["cit_allowable"]),
            ),
            vat_amount=minor_to_decimal(row["vat_amount"]),
            wht_amount=minor_to_decimal(row["wht_amount"]),
            wht_rate=Decimal(row["wht_rate"]),
            status=ExpenseStatus(row["status"]),
            expense_type=ExpenseType(row["expense_type"]),
            entered_by=_opt_uuid(row["entered_by"]),
            currency=Currency(row["currency"]),
            created_at=_from_ts(row["created_at"]),
            ledger_journal_id=_opt_uuid(row["ledger_journal_id"]),
        )


_DATASET_TABLES: dict[Dataset, str] = {
    Dataset.SALES: "sales",
    Dataset.EXPENSES: "expenses",
    Dataset.LEDGER_ENTRIES: "ledger_entries",
    Dataset.TAX_LEDGER: "tax_ledger",
}


class SQLiteAggregator(Aggregator):
    """Compiles an ``AggregateQuery`` into one parameterized SELECT.

    Table and column names come only from the dataset and field enums; values
    are always bound as parameters.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def run(self, query: AggregateQuery) -> list[dict[str, Any]]:
        sql, params = self.compile(query)
        rows = self._db.get_connection().execute(sql, params).fetchall()
        return [self._convert(query, row) for row in rows]

    def compile(self, query: AggregateQuery) -> tuple[str, list[Any]]:
        table = _DATASET_TABLES[query.dataset]
        columns: list[str] = []
        for group in query.group_by:
            columns.append(f'"{group.field.value}" AS "{group.name}"')
        for stage in query.aggregates:
            if isinstance(stage, Sum):
                columns.append(f'COALESCE(SUM("{stage.field.value}"), 0) AS "{stage.name}"')
            elif isinstance(stage, Count):
                columns.append(f'COUNT(*) AS "{stage.name}"')
        if not columns:
            raise ValueError("Aggregate query selects nothing")

        conditions: list[str] = []
        params: list[Any] = []
        for stage in query.filters:
            column = f'"{stage.field.value}"'
            if isinstance(stage, Eq):
                conditions.append(f"{column} = ?")
                params.append(self._param(stage.field, stage.value))
            elif isinstance(stage, InRange):
                conditions.append(f"{column} >= ? AND {column} < ?")
                params.append(self._param(stage.field, stage.start))
                params.append(self._param(stage.field, stage.end))

        sql = f'SELECT {", ".join(columns)} FROM "{table}"'
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        if query.group_by:
            group_columns = ", ".join(f'"{g.field.value}"' for g in query.group_by)
            sql += f" GROUP BY {group_columns} ORDER BY {group_columns}"
        return sql, params

    def _param(self, field: Field, value: Any) -> Any:
        kind = field_kind(field)
        if isinstance(value, TaxPeriod):
            return value.token
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, UUID):
            return str(value)
        if kind == FieldKind.BOOL:
            return 1 if value else 0
        if kind == FieldKind.MONEY:
            return decimal_to_minor(to_decimal(value))
        if kind == FieldKind.TIMESTAMP:
            return _bound_ts(value)
        if kind == FieldKind.DATE:
            return (value.date() if isinstance(value, datetime) else value).isoformat()
        return value

    def _convert(self, query: AggregateQuery, row: sqlite3.Row) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for group in query.group_by:
            value = row[group.name]
            kind = field_kind(group.field)
            if kind == FieldKind.MONEY:
                value = minor_to_decimal(value)
            elif kind == FieldKind.BOOL:
                value = bool(value)
            result[group.name] = value
        for stage in query.aggregates:
            value = row[stage.name]
            result[stage.name] = minor_to_decimal(value) if isinstance(stage, Sum) else value
        return result
