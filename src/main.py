from __future__ import annotations

import argparse
import logging
from datetime import date, datetime, time, tzinfo
from decimal import Decimal, InvalidOperation
from pathlib import Path
from time import perf_counter
from typing import Iterable, Sequence

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import AppSettings, config
from db.db import init_db
from db.json_store import dump_transactions, load_transactions
from db.repositories import TransactionRepository
from domain.acb import AcbEngine, InvalidTransaction
from domain.ledger import LedgerEntry
from domain.transaction import RawTransaction, TransactionType
from importers.ibkr_importer import IbkrImporter
from utils.formatting import format_currency
from utils.harvest_planner import plan_tax_loss_harvest, realized_disposals, render_harvest_plan
from utils.ledger_filter import ALL_SYMBOLS, DateRange, available_symbols, available_years, filter_ledger
from utils.ledger_report import render_ledger
from utils.position_summary import compute_currency_exposure, compute_position_summaries, render_position_summaries
from utils.tax_summary import compute_tax_year_summaries, count_superficial, render_tax_year_summaries

logger = logging.getLogger(__name__)


def compute_ledger(transactions: Iterable[RawTransaction], settings: AppSettings) -> list[LedgerEntry]:
    transactions = list(transactions)
    started = perf_counter()
    engine = AcbEngine(window_days=settings.superficial_loss_window_days)
    ledger = engine.process(transactions)
    logger.info("Computed %d ledger entries in %.2fs", len(ledger), perf_counter() - started)
    return ledger


def build_date_range(*, start: date | None, end: date | None, tz: tzinfo) -> DateRange | None:
    date_range = DateRange(
        start=datetime.combine(start, time.min, tzinfo=tz) if start is not None else None,
        end=datetime.combine(end, time.max, tzinfo=tz) if end is not None else None,
    )
    return None if date_range.is_unbounded else date_range


def run_import(session: Session, settings: AppSettings, csv_path: Path) -> None:
    logger.info("Importing IBKR transactions from %s", csv_path)
    started = perf_counter()
    transactions = IbkrImporter(csv_path, tz=settings.import_zone()).load_transactions()
    if not transactions:
        print(f"No compatible trades or splits found in {csv_path}")
        return
    # Validate against the full history before storing anything.
    repository = TransactionRepository(session)
    compute_ledger([*repository.list(), *transactions], settings)
    stored = repository.create_many(transactions)
    logger.info("Imported %d transactions in %.2fs", stored, perf_counter() - started)
    print(f"Imported {stored} transactions from {csv_path}")


def run_add(session: Session, settings: AppSettings, args: argparse.Namespace) -> None:
    transaction = RawTransaction(
        symbol=args.symbol,
        currency=args.currency or settings.home_currency,
        timestamp=args.timestamp if args.timestamp.tzinfo else args.timestamp.replace(tzinfo=settings.import_zone()),
        type=args.type,
        quantity=args.quantity,
        price=Decimal(0) if args.type == TransactionType.SPLIT else args.price,
        commission=args.commission,
        fx_rate=args.fx_rate,
        description=args.description,
    )
    repository = TransactionRepository(session)
    compute_ledger([*repository.list(), transaction], settings)
    created = repository.create(transaction)
    print(f"Recorded {created.type} {created.quantity} {created.symbol} as {created.id}")


def run_ledger_reports(session: Session, settings: AppSettings, args: argparse.Namespace) -> None:
    transactions = TransactionRepository(session).list()
    ledger = compute_ledger(transactions, settings)
    tax_zone = settings.tax_zone()
    date_range = build_date_range(start=args.start, end=args.end, tz=tax_zone or settings.import_zone())
    # --year uses the same zone policy as the tax-year summaries.
    filtered = filter_ledger(ledger, date_range=date_range, year=args.year, tz=tax_zone, symbol=args.symbol)

    if args.command == "ledger":
        render_ledger(filtered, home_currency=settings.home_currency)
        superficial = count_superficial(filtered)
        if superficial:
            print(f"Superficial losses: {superficial}")
        print(f"Years: {', '.join(str(year) for year in available_years(transactions, tax_zone))}")
        print(f"Symbols: {', '.join(available_symbols(transactions))}")
    elif args.command == "positions":
        positions = compute_position_summaries(ledger)
        render_position_summaries(positions, home_currency=settings.home_currency)
        exposure = compute_currency_exposure(positions)
        if exposure:
            print("Native cost by currency:")
        for currency, native_cost in exposure:
            print(f"  {currency}: {format_currency(native_cost)}")
    elif args.command == "tax":
        render_tax_year_summaries(
            compute_tax_year_summaries(filtered, tz=tax_zone),
            home_currency=settings.home_currency,
        )
    elif args.command == "harvest":
        summaries = compute_tax_year_summaries(filtered, tz=tax_zone)
        net_realized = summaries[0].net_gain_loss if summaries else Decimal(0)
        render_ledger(realized_disposals(filtered), home_currency=settings.home_currency)
        candidates = plan_tax_loss_harvest(
            compute_position_summaries(ledger),
            dict(args.price),
            net_realized=net_realized,
            home_currency=settings.home_currency,
            fx_overrides=dict(args.fx),
        )
        render_harvest_plan(candidates, net_realized=net_realized)
    else:
        raise ValueError(f"Unsupported report {args.command}")


def _decimal(raw: str) -> Decimal:
    try:
        value = Decimal(raw)
    except InvalidOperation as err:
        raise argparse.ArgumentTypeError(f"invalid number: {raw!r}") from err
    if not value.is_finite():
        raise argparse.ArgumentTypeError(f"invalid number: {raw!r}")
    return value


def _assignment(raw: str) -> tuple[str, Decimal]:
    key, separator, value = raw.partition("=")
    if not separator or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    return key.strip().upper(), _decimal(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track adjusted cost base, capital gains and superficial losses.")
    parser.add_argument("--db", type=Path, default=None, help="SQLite file holding the transactions")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Import an IBKR Flex Query CSV")
    import_parser.add_argument("csv", type=Path)

    add_parser = subparsers.add_parser("add", help="Record a transaction manually")
    add_parser.add_argument("type", type=str.upper, choices=[kind.value for kind in TransactionType])
    add_parser.add_argument("symbol")
    add_parser.add_argument("quantity", type=_decimal)
    add_parser.add_argument("--price", type=_decimal, default=Decimal(0))
    add_parser.add_argument("--commission", type=_decimal, default=Decimal(0))
    add_parser.add_argument("--fx-rate", type=_decimal, default=Decimal(1))
    add_parser.add_argument("--currency", default=None)
    add_parser.add_argument("--timestamp", type=datetime.fromisoformat, required=True)
    add_parser.add_argument("--description", default=None)

    delete_parser = subparsers.add_parser("delete", help="Delete a transaction by id")
    delete_parser.add_argument("transaction_id")

    subparsers.add_parser("clear", help="Delete all transactions")

    export_parser = subparsers.add_parser("export", help="Write all transactions to a JSON file")
    export_parser.add_argument("path", type=Path)

    import_json_parser = subparsers.add_parser("import-json", help="Load transactions from a JSON export")
    import_json_parser.add_argument("path", type=Path)

    for name, help_text in (
        ("ledger", "Show the ledger"),
        ("positions", "Show open positions"),
        ("tax", "Show realized gains per tax year"),
        ("harvest", "Plan tax-loss harvesting sales"),
    ):
        report_parser = subparsers.add_parser(name, help=help_text)
        report_parser.add_argument("--symbol", default=ALL_SYMBOLS)
        report_parser.add_argument("--year", type=int, default=None)
        report_parser.add_argument("--start", type=date.fromisoformat, default=None)
        report_parser.add_argument("--end", type=date.fromisoformat, default=None)
        if name == "harvest":
            report_parser.add_argument(
                "--price", type=_assignment, action="append", default=[], help="SYMBOL=target native price"
            )
            report_parser.add_argument("--fx", type=_assignment, action="append", default=[], help="CURRENCY=rate")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    settings = config()
    db_file = args.db or settings.database_file
    session = init_db(db_file=db_file)
    repository = TransactionRepository(session)

    try:
        if args.command == "import":
            run_import(session, settings, args.csv)
        elif args.command == "add":
            run_add(session, settings, args)
        elif args.command == "delete":
            if not repository.delete(args.transaction_id):
                print(f"No transaction with id {args.transaction_id}")
                return 1
            print(f"Deleted {args.transaction_id}")
        elif args.command == "clear":
            print(f"Deleted {repository.clear()} transactions")
        elif args.command == "export":
            print(f"Exported {dump_transactions(args.path, repository.list())} transactions to {args.path}")
        elif args.command == "import-json":
            transactions = load_transactions(args.path)
            compute_ledger([*repository.list(), *transactions], settings)
            print(f"Loaded {repository.create_many(transactions)} transactions from {args.path}")
        else:
            run_ledger_reports(session, settings, args)
    except (InvalidTransaction, ValidationError, IntegrityError, FileNotFoundError) as err:
        logger.error("%s", err)
        return 1
    finally:
        session.close()

    return 0


def cli() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    raise SystemExit(main())


if __name__ == "__main__":
    cli()
