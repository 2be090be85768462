"""
Command-line interface for the receipt / bank statement reconciliation tool.
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import ReconConfig, generate_default_config, load_config
from .models.results import IngestResult, ReconciliationSummary
from .models.transaction import MatchType
from .parsers.receipt_loader import load_receipts
from .reports.excel_generator import ExcelReportGenerator
from .service import ReconciliationService
from .utils.exceptions import ReconciliationError
from .utils.logging_config import setup_logging

console = Console()

DELIMITER_ALIASES = {
    "comma": ",",
    "semicolon": ";",
    "tab": "\t",
    "\\t": "\t",
    "pipe": "|",
}


def config_option(func):
    func = click.option(
        "-c",
        "--config",
        "config_path",
        type=click.Path(exists=True, path_type=Path),
        help="Path to configuration file (YAML)",
    )(func)
    func = click.option(
        "--db", "database_url", default=None, help="Override the database URL"
    )(func)
    func = click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")(func)
    return func


@click.group()
@click.version_option(version=__version__)
def main():
    """Receipt to Bank Statement Reconciliation Tool."""
    pass


@main.command()
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@click.option("-d", "--delimiter", default=None, help="Column delimiter (auto-detected if omitted)")
@click.option("--date-column", default=None, help="Header of the date column")
@click.option("--description-column", default=None, help="Header of the description column")
@click.option("--amount-column", default=None, help="Header of the amount column")
@click.option("--reference-column", default=None, help="Header of the reference column")
@click.option(
    "--reconcile/--no-reconcile", default=True, help="Run reconciliation after ingesting"
)
@config_option
def ingest(
    statement_file: Path,
    delimiter: Optional[str],
    date_column: Optional[str],
    description_column: Optional[str],
    amount_column: Optional[str],
    reference_column: Optional[str],
    reconcile: bool,
    config_path: Optional[Path],
    database_url: Optional[str],
    verbose: bool,
):
    """
    Ingest a bank statement table.

    STATEMENT_FILE: Path to the CSV (or other delimited) statement export
    """
    service = _build_service(config_path, database_url, verbose)
    mapping = {
        "date": date_column,
        "description": description_column,
        "amount": amount_column,
        "reference": reference_column,
    }
    mapping = {k: v for k, v in mapping.items() if v}

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task(f"Ingesting {statement_file.name}...", total=None)
            result = service.ingest_file(
                statement_file,
                column_mapping=mapping or None,
                delimiter=DELIMITER_ALIASES.get((delimiter or "").lower(), delimiter),
                reconcile=reconcile,
            )
            progress.update(task, completed=True)
    except ReconciliationError as e:
        _fail(e, verbose)
    finally:
        service.close()

    _display_ingest_result(result)
    if not result.ok:
        console.print("[red]No valid transactions found in statement[/red]")
        sys.exit(1)


@main.command("import-receipts")
@click.argument("receipts_file", type=click.Path(exists=True, path_type=Path))
@config_option
def import_receipts(
    receipts_file: Path,
    config_path: Optional[Path],
    database_url: Optional[str],
    verbose: bool,
):
    """
    Import extracted receipts from a CSV or JSON file.

    RECEIPTS_FILE: Receipts with merchant_name, transaction_date and total_amount
    """
    service = _build_service(config_path, database_url, verbose)
    try:
        stored = service.add_receipts(load_receipts(receipts_file))
    except ReconciliationError as e:
        _fail(e, verbose)
    finally:
        service.close()

    eligible = sum(1 for r in stored if r.is_eligible)
    console.print(f"[green]Imported {len(stored)} receipts ({eligible} eligible for matching)[/green]")


@main.command()
@config_option
def reconcile(config_path: Optional[Path], database_url: Optional[str], verbose: bool):
    """Recompute automatic matches between receipts and bank debits."""
    service = _build_service(config_path, database_url, verbose)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Matching receipts to bank debits...", total=None)
            result = service.run_reconciliation()
            progress.update(task, completed=True)
    except ReconciliationError as e:
        _fail(e, verbose)
    finally:
        service.close()

    table = Table(title="Reconciliation Run")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Automatic Matches", str(result.total_matches))
    table.add_row("Manual Matches Kept", str(result.preserved_manual_count))
    table.add_row("Unmatched Receipts", str(result.unmatched_receipt_count))
    table.add_row("Unmatched Bank Debits", str(result.unmatched_bank_count))
    table.add_row("Ineligible Receipts", str(result.ineligible_receipt_count))
    table.add_row("Processing Time", f"{result.processing_time_seconds:.2f}s")
    console.print(table)


@main.command()
@click.option("--limit", type=int, default=20, help="Number of matches to show")
@config_option
def status(limit: int, config_path: Optional[Path], database_url: Optional[str], verbose: bool):
    """Show the current reconciliation state."""
    service = _build_service(config_path, database_url, verbose)
    try:
        state = service.get_reconciliation_state()
    except ReconciliationError as e:
        _fail(e, verbose)
    finally:
        service.close()

    _display_summary(state.summary)

    table = Table(title="Matches")
    table.add_column("ID", justify="right")
    table.add_column("Receipt")
    table.add_column("Bank Description")
    table.add_column("Amount", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Type")

    for detail in state.matches[:limit]:
        table.add_row(
            str(detail.match.id),
            f"{detail.receipt.transaction_date} {detail.receipt.merchant_name}",
            _truncate(detail.bank_record.description),
            f"{abs(detail.bank_record.amount):,.2f}",
            f"{detail.match.confidence:.2f}",
            detail.match.match_type.value,
        )

    console.print(table)
    if len(state.matches) > limit:
        console.print(f"\n... and {len(state.matches) - limit} more matches")


@main.command("match")
@click.argument("receipt_id", type=int)
@click.argument("bank_id", type=int)
@click.option("-n", "--notes", default=None, help="Notes stored with the match")
@config_option
def create_match(
    receipt_id: int,
    bank_id: int,
    notes: Optional[str],
    config_path: Optional[Path],
    database_url: Optional[str],
    verbose: bool,
):
    """Manually match RECEIPT_ID with bank transaction BANK_ID."""
    service = _build_service(config_path, database_url, verbose)
    try:
        result = service.create_manual_match(receipt_id, bank_id, notes)
    finally:
        service.close()

    if not result:
        console.print(f"[red]Failed to create match: {escape(result.message)}[/red]")
        sys.exit(1)
    console.print(f"[green]Manual match {result.match.id} created[/green]")


@main.command("unmatch")
@click.argument("match_id", type=int)
@config_option
def remove_match(
    match_id: int, config_path: Optional[Path], database_url: Optional[str], verbose: bool
):
    """Remove match MATCH_ID."""
    service = _build_service(config_path, database_url, verbose)
    try:
        result = service.remove_match(match_id)
    finally:
        service.close()

    if not result:
        console.print(f"[red]Failed to remove match: {escape(result.message)}[/red]")
        sys.exit(1)
    console.print(f"[green]Match {match_id} removed[/green]")


@main.command()
@click.option(
    "--type",
    "match_type",
    type=click.Choice([t.value for t in MatchType]),
    default=None,
    help="Only show matches of this type",
)
@click.option("--page", type=int, default=1)
@click.option("--limit", type=int, default=50)
@config_option
def history(
    match_type: Optional[str],
    page: int,
    limit: int,
    config_path: Optional[Path],
    database_url: Optional[str],
    verbose: bool,
):
    """List stored matches, newest first."""
    service = _build_service(config_path, database_url, verbose)
    try:
        result = service.get_reconciliation_history(
            match_type=MatchType(match_type) if match_type else None,
            page=page,
            limit=limit,
        )
    except ReconciliationError as e:
        _fail(e, verbose)
    finally:
        service.close()

    table = Table(title=f"Match History (page {result.page}, {result.total} total)")
    table.add_column("Created")
    table.add_column("ID", justify="right")
    table.add_column("Merchant")
    table.add_column("Bank Description")
    table.add_column("Type")
    table.add_column("Confidence", justify="right")

    for detail in result.entries:
        table.add_row(
            detail.match.created_at.strftime("%Y-%m-%d %H:%M"),
            str(detail.match.id),
            detail.receipt.merchant_name,
            _truncate(detail.bank_record.description),
            detail.match.match_type.value,
            f"{detail.match.confidence:.2f}",
        )
    console.print(table)


@main.command()
@click.option("--from", "date_from", type=click.DateTime(formats=["%Y-%m-%d"]), help="Earliest date")
@click.option("--to", "date_to", type=click.DateTime(formats=["%Y-%m-%d"]), help="Latest date")
@click.option("--min-amount", type=float, help="Smallest signed amount")
@click.option("--max-amount", type=float, help="Largest signed amount")
@click.option("--description", help="Case-insensitive description substring")
@click.option("--page", type=int, default=1)
@click.option("--limit", type=int, default=50)
@config_option
def transactions(
    date_from: Optional[datetime],
    date_to: Optional[datetime],
    min_amount: Optional[float],
    max_amount: Optional[float],
    description: Optional[str],
    page: int,
    limit: int,
    config_path: Optional[Path],
    database_url: Optional[str],
    verbose: bool,
):
    """List stored bank transactions, newest first."""
    service = _build_service(config_path, database_url, verbose)
    try:
        result = service.get_bank_transactions(
            date_from=date_from.date() if date_from else None,
            date_to=date_to.date() if date_to else None,
            min_amount=Decimal(str(min_amount)) if min_amount is not None else None,
            max_amount=Decimal(str(max_amount)) if max_amount is not None else None,
            description=description,
            page=page,
            limit=limit,
        )
    except ReconciliationError as e:
        _fail(e, verbose)
    finally:
        service.close()

    table = Table(title=f"Bank Transactions (page {result.page}, {result.total} total)")
    table.add_column("ID", justify="right")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Statement")

    for record in result.transactions:
        style = "red" if record.amount < 0 else "green"
        table.add_row(
            str(record.id),
            record.transaction_date.isoformat(),
            escape(_truncate(record.description)),
            f"[{style}]{record.amount:,.2f}[/{style}]",
            escape(record.statement_file),
        )
    console.print(table)


@main.command()
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@config_option
def report(
    output: Optional[Path],
    config_path: Optional[Path],
    database_url: Optional[str],
    verbose: bool,
):
    """Write the reconciliation state to an Excel workbook."""
    service = _build_service(config_path, database_url, verbose)
    try:
        state = service.get_reconciliation_state()
        entries = service.get_reconciliation_history(limit=10_000).entries
        generator = ExcelReportGenerator(service.config)
        report_path = generator.generate_report(
            state, output or generator.default_output_path(), history=entries
        )
    except ReconciliationError as e:
        _fail(e, verbose)
    finally:
        service.close()

    console.print(f"[green]Report generated: {report_path}[/green]")


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _build_service(
    config_path: Optional[Path], database_url: Optional[str], verbose: bool
) -> ReconciliationService:
    try:
        config = load_config(config_path)
        if database_url:
            config.storage.database_url = database_url
        _configure_logging(config, verbose)
        return ReconciliationService.from_config(config)
    except ReconciliationError as e:
        _fail(e, verbose)


def _configure_logging(config: ReconConfig, verbose: bool) -> None:
    setup_logging(
        logging.DEBUG if verbose else config.logging.level,
        log_file=Path(config.logging.file) if config.logging.file else None,
        log_format=config.logging.format,
        sql_echo=config.storage.echo,
    )


def _fail(error: Exception, verbose: bool) -> None:
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    if verbose:
        console.print_exception()
    sys.exit(1)


def _display_ingest_result(result: IngestResult) -> None:
    """Display ingestion totals and the first row errors."""
    table = Table(title="Statement Ingestion")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total Rows", str(result.total_rows))
    table.add_row("Successful Rows", str(result.successful_rows))
    table.add_row("Errors", str(len(result.errors)))
    if result.delimiter:
        table.add_row("Delimiter", result.delimiter.name)
    table.add_row(
        "Columns", ", ".join(f"{k}={v}" for k, v in result.column_mapping.items())
    )
    console.print(table)

    for error in result.errors[:5]:
        console.print(f"[yellow]{escape(str(error))}[/yellow]")
    if len(result.errors) > 5:
        console.print(f"... and {len(result.errors) - 5} more errors")


def _display_summary(summary: ReconciliationSummary) -> None:
    """Display reconciliation summary in console."""
    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Total Receipts", str(summary.total_receipts))
    table.add_row("Total Bank Debits", str(summary.total_bank_transactions))
    table.add_row("Matched", str(summary.total_matches))
    table.add_row("Exact", str(summary.exact_matches))
    table.add_row("Probable", str(summary.probable_matches))
    table.add_row("Manual", str(summary.manual_matches))
    table.add_row("Receipt Only", str(summary.receipt_only_count))
    table.add_row("Bank Only", str(summary.bank_only_count))
    table.add_row("Reconciliation Rate", f"{summary.reconciliation_rate:.1f}%")

    console.print(table)


def _truncate(text: str, width: int = 40) -> str:
    return text[:width] + "..." if len(text) > width else text


if __name__ == "__main__":
    main()
