"""Command-line interface for BizLedger."""

import argparse
import sys
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path

from bizledger.config import Settings
from bizledger.container import Container
from bizledger.domain.periods import TaxPeriod
from bizledger.domain.tax_ledger import TaxLedgerFilter
from bizledger.domain.tax_settings import TaxSettingsProfile
from bizledger.domain.value_objects import (
    PayUnit,
    TaxMode,
    TaxSource,
    TaxType,
    ensure_company_id,
)
from bizledger.exceptions import BizLedgerError
from bizledger.logging_config import configure_logging
from bizledger.services.payroll_tax import PayrollTaxEngine


def get_default_db_path() -> Path:
    """Get the default database path in user's home directory."""
    return Path.home() / ".bizledger" / "ledger.db"


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.database) if args.database else get_default_db_path()


def _open_container(args: argparse.Namespace) -> Container | None:
    db_path = _db_path(args)
    if not db_path.exists():
        print(f"Error: Database not found at {db_path}")
        print("Run 'bizledger init' to create a new database")
        return None
    return Container(settings=Settings(sqlite_path=db_path))


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None


def _date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO date: {value!r}") from None


def _fmt(amount: Decimal) -> str:
    return f"{amount:>18,.2f}"


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = _db_path(args)

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    with Container(settings=Settings(sqlite_path=db_path)) as container:
        container.database.get_connection()

    print(f"Initialized database at {db_path}")
    return 0


def cmd_paye(args: argparse.Namespace) -> int:
    """Print the payroll deduction breakdown for one gross amount."""
    unit = PayUnit(args.unit)
    engine = PayrollTaxEngine(unit=unit)

    if args.company:
        container = _open_container(args)
        if container is None:
            return 1
        with container:
            profile = container.tax_settings_provider.resolve(args.company)
    else:
        profile = TaxSettingsProfile.default()

    if args.mode == "custom":
        profile.mode = TaxMode.CUSTOM_PERCENT
        profile.custom_percent = args.custom_percent
    elif args.mode == "standard":
        profile.mode = TaxMode.STANDARD_PAYE

    pension = (
        args.pension
        if args.pension is not None
        else engine.compute_pension(args.gross, profile.pension_employee_rate)
    )
    result = engine.compute_all_taxes(
        args.gross,
        pension=pension,
        other_deductions=args.other_deductions,
        settings=profile,
        company_id=profile.company_id,
    )

    print(f"PAYE breakdown ({result.mode.value}, {unit.value})")
    print("-" * 40)
    for label, amount in (
        ("Gross salary", result.gross_salary),
        ("Pension (employee)", result.pension),
        ("NHF", result.nhf),
        ("NHIS (employee)", result.nhis_employee),
        ("CRA", result.cra),
        ("Taxable income", result.taxable_income),
        ("PAYE", result.paye),
        ("Other deductions", result.other_deductions),
        ("Net pay", result.net_pay),
        ("NHIS (employer)", result.nhis_employer),
    ):
        print(f"{label:<20}{_fmt(amount)}")
    return 0


def cmd_tax_ledger(args: argparse.Namespace) -> int:
    """List tax ledger records for a company."""
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        tax_filter = TaxLedgerFilter(
            tax_type=TaxType(args.tax_type) if args.tax_type else None,
            period=TaxPeriod.parse(args.period) if args.period else None,
            source=TaxSource(args.source) if args.source else None,
            remitted=False if args.unremitted else None,
        )
        records = container.tax_ledger_service.get_company_tax_ledger(args.company, tax_filter)

    if not records:
        print("No tax ledger records found")
        return 0

    print(
        f"{'Period':<10} {'Tax':<14} {'Source':<18} {'Basis':>18} {'Tax amount':>18} {'Remitted'}"
    )
    print("-" * 92)
    for record in records:
        remitted = (record.receipt_number or "yes") if record.remitted else "no"
        print(
            f"{record.period.token:<10} {record.tax_type.value:<14} {record.source.value:<18} "
            f"{_fmt(record.basis_amount)} {_fmt(record.tax_amount)} {remitted}"
        )
    print(f"\nTotal: {len(records)} records")
    return 0


def cmd_paye_summary(args: argparse.Namespace) -> int:
    """Show PAYE totals per period, newest first."""
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        totals = container.remittance_reporter.monthly_paye_summary(args.company)

    if not totals:
        print("No PAYE records found")
        return 0

    print(f"{'Period':<10} {'PAYE':>18} {'Records':>8}")
    print("-" * 38)
    for row in totals:
        print(f"{row.period.token:<10} {_fmt(row.tax_amount)} {row.entry_count:>8}")
    return 0


def cmd_remit(args: argparse.Namespace) -> int:
    """Mark a period's PAYE as remitted."""
    container = _open_container(args)
    if container is None:
        return 1

    with container:
        count = container.remittance_reporter.mark_as_remitted(
            args.company, args.period, args.receipt
        )

    if count == 0:
        print(f"No unremitted PAYE records for {args.period}")
    else:
        print(f"Marked {count} PAYE record(s) for {args.period} as remitted ({args.receipt})")
    return 0


def cmd_balance_sheet(args: argparse.Namespace) -> int:
    """Print the balance sheet derived from the ledger."""
    container = _open_container(args)
    if container is None:
        return 1

    as_of = args.as_of + timedelta(days=1) if args.as_of else None
    with container:
        sheet = container.reporting_service.balance_sheet(args.company, as_of)

    for title, section in (
        ("Assets", sheet.assets),
        ("Liabilities", sheet.liabilities),
        ("Equity", sheet.equity),
    ):
        print(title)
        for account, amount in section.items():
            print(f"  {account.value:<26}{_fmt(amount)}")
    print(f"  {'Retained earnings':<26}{_fmt(sheet.retained_earnings)}")
    print("-" * 46)
    print(f"{'Total assets':<28}{_fmt(sheet.total_assets)}")
    print(f"{'Total liabilities + equity':<28}{_fmt(sheet.total_liabilities_and_equity)}")
    return 0


def cmd_profit_loss(args: argparse.Namespace) -> int:
    """Print profit and loss for a date range (end date inclusive)."""
    container = _open_container(args)
    if container is None:
        return 1

    end = args.end + timedelta(days=1) if args.end else None
    with container:
        report = container.reporting_service.profit_and_loss(args.company, args.start, end)

    for label, amount in (
        ("Revenue", report.revenue),
        ("Cost of goods sold", report.cogs),
        ("Gross profit", report.gross_profit),
        ("Expenses", report.expenses),
        ("Payroll expense", report.payroll_expense),
        ("Net profit", report.net_profit),
    ):
        print(f"{label:<22}{_fmt(amount)}")
    return 0


def _company(value: str) -> str:
    try:
        ensure_company_id(value)
    except BizLedgerError as e:
        raise argparse.ArgumentTypeError(str(e)) from None
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bizledger",
        description="BizLedger - double-entry ledger and Nigerian tax core",
    )
    parser.add_argument(
        "--db",
        "--database",
        "-d",
        dest="database",
        help="Path to SQLite database file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.set_defaults(func=cmd_init)

    # paye command
    paye_parser = subparsers.add_parser("paye", help="Compute payroll deductions for a gross amount")
    paye_parser.add_argument("gross", type=_decimal, help="Gross salary for the pay period")
    paye_parser.add_argument(
        "--mode",
        choices=["standard", "custom"],
        default=None,
        help="Tax mode (default: from company settings, else standard)",
    )
    paye_parser.add_argument(
        "--custom-percent",
        type=_decimal,
        default=Decimal("0"),
        help="Flat PAYE percentage for custom mode",
    )
    paye_parser.add_argument(
        "--unit",
        choices=[unit.value for unit in PayUnit],
        default=PayUnit.MONTHLY.value,
        help="Pay period of the gross amount (default: monthly)",
    )
    paye_parser.add_argument(
        "--pension",
        type=_decimal,
        default=None,
        help="Employee pension (default: derived from the pension rate)",
    )
    paye_parser.add_argument(
        "--other-deductions", type=_decimal, default=Decimal("0"), help="Other deductions"
    )
    paye_parser.add_argument(
        "--company", type=_company, default=None, help="Use this company's stored tax settings"
    )
    paye_parser.set_defaults(func=cmd_paye)

    # tax-ledger command
    ledger_parser = subparsers.add_parser("tax-ledger", help="List tax ledger records")
    ledger_parser.add_argument("company", type=_company, help="Company ID")
    ledger_parser.add_argument(
        "--tax-type", choices=[t.value for t in TaxType], default=None, help="Filter by tax type"
    )
    ledger_parser.add_argument("--period", default=None, help="Filter by period (YYYY-MM or YYYY-Qn)")
    ledger_parser.add_argument(
        "--source", choices=[s.value for s in TaxSource], default=None, help="Filter by source"
    )
    ledger_parser.add_argument(
        "--unremitted", action="store_true", help="Only records not yet remitted"
    )
    ledger_parser.set_defaults(func=cmd_tax_ledger)

    # paye-summary command
    summary_parser = subparsers.add_parser("paye-summary", help="PAYE totals per period")
    summary_parser.add_argument("company", type=_company, help="Company ID")
    summary_parser.set_defaults(func=cmd_paye_summary)

    # remit command
    remit_parser = subparsers.add_parser("remit", help="Mark a period's PAYE as remitted")
    remit_parser.add_argument("company", type=_company, help="Company ID")
    remit_parser.add_argument("period", help="Period (YYYY-MM)")
    remit_parser.add_argument("receipt", help="Remittance receipt number")
    remit_parser.set_defaults(func=cmd_remit)

    # balance-sheet command
    bs_parser = subparsers.add_parser("balance-sheet", help="Balance sheet from the ledger")
    bs_parser.add_argument("company", type=_company, help="Company ID")
    bs_parser.add_argument("--as-of", type=_date, default=None, help="Include entries up to this date")
    bs_parser.set_defaults(func=cmd_balance_sheet)

    # profit-loss command
    pl_parser = subparsers.add_parser("profit-loss", help="Profit and loss from the ledger")
    pl_parser.add_argument("company", type=_company, help="Company ID")
    pl_parser.add_argument("--start", type=_date, default=None, help="Start date (inclusive)")
    pl_parser.add_argument("--end", type=_date, default=None, help="End date (inclusive)")
    pl_parser.set_defaults(func=cmd_profit_loss)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging()
    try:
        result: int = args.func(args)
    except BizLedgerError as e:
        print(f"Error: {e}")
        return 1
    return result


if __name__ == "__main__":
    sys.exit(main())
