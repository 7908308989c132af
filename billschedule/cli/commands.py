"""Click CLI commands for billschedule."""

import logging
import sys
import traceback
from datetime import date
from pathlib import Path

import click

from billschedule import __version__, constants
from billschedule.bills import (
    annual_overview,
    bill_from_pattern,
    mark_paid,
    match_transaction_to_bill,
    monthly_summary,
    upcoming_bills,
)
from billschedule.detector import PatternDetector
from billschedule.frequency import FrequencyEngine, to_decimal
from billschedule.loader import (
    BillFileRepository,
    load_bill_file,
    load_config,
    load_transactions,
    save_bill_file,
)
from billschedule.reminders import ReminderJob, format_amount
from billschedule.schema import BillFile, Notification, ScheduleSpec
from billschedule.types import ISO_WEEKDAY_NAMES, Cadence, TransactionKind

from .formatters import (
    print_bill_csv,
    print_bill_json,
    print_bill_table,
    print_detection_json,
    print_detection_table,
    print_notification,
    print_overview_grid,
    print_rejections,
    print_summary,
    print_upcoming,
)

logger = logging.getLogger(__name__)

DATE = click.DateTime(formats=["%Y-%m-%d"])


def _as_date(value):
    return value.date() if value is not None else None


def _fail(message: str) -> None:
    click.echo(message, err=True)
    if logger.isEnabledFor(logging.DEBUG):
        traceback.print_exc()
    sys.exit(1)


def _add_detected_bills(patterns, path: Path, today) -> int:
    """Append detected patterns to a bill file, skipping ids already present."""
    bill_file = load_bill_file(path) if path.exists() else BillFile()
    existing = {str(b.id) for b in bill_file.bills}

    added = 0
    for pattern in patterns:
        bill = bill_from_pattern(pattern, today=today)
        if str(bill.id) in existing:
            logger.info("Bill %s already exists, skipping", bill.id)
            continue
        bill_file.bills.append(bill)
        existing.add(str(bill.id))
        added += 1

    if added:
        save_bill_file(bill_file, path)
    return added


class EchoSink:
    """Notification sink that prints to the terminal."""

    def __init__(self):
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)
        print_notification(notification)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.version_option(version=__version__)
def main(verbose: bool):
    """Billschedule - Bill scheduling and recurring income detection."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@main.command(name="next-due")
@click.argument("cadence")
@click.option("--from", "from_date", type=DATE, help="Base date (default: today)")
@click.option("--today", type=DATE, help="Reference date (default: current date)")
@click.option("--anchor-day", type=int, help="ISO weekday (weekly) or day of month")
@click.option("--anchor-month", type=int, help="Month for quarterly/yearly schedules")
@click.option("--pattern", help='Custom pattern as JSON, e.g. \'{"months": [1, 7]}\'')
def next_due(cadence, from_date, today, anchor_day, anchor_month, pattern):
    """Compute the next due date of a schedule.

    CADENCE is one of daily, weekly, biweekly, monthly, quarterly, yearly or
    custom.

    Examples:
        billschedule next-due monthly --anchor-day 31 --today 2024-01-31
        billschedule next-due custom --pattern '{"months": [1, 6, 7]}'
    """
    try:
        today = _as_date(today) or date.today()
        spec = ScheduleSpec(
            cadence=cadence,
            anchor_day=anchor_day,
            anchor_month=anchor_month,
            custom_pattern=pattern,
        )
        if spec.known_cadence is None:
            click.echo(f"Warning: unknown cadence '{cadence}', using the base date", err=True)
        elif spec.known_cadence == Cadence.CUSTOM and spec.custom_pattern is None:
            click.echo("Warning: custom cadence without a usable pattern", err=True)

        result = FrequencyEngine().compute_next_due_date(spec, _as_date(from_date) or today, today)
        click.echo(f"{result.isoformat()} ({ISO_WEEKDAY_NAMES[result.isoweekday()]})")

    except Exception as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("amount")
@click.argument("cadence")
@click.option("--pattern", help="Custom pattern as JSON (custom cadence only)")
def convert(amount: str, cadence: str, pattern):
    """Convert a per-occurrence AMOUNT to monthly and yearly figures.

    Example:
        billschedule convert 1200 quarterly
    """
    try:
        engine = FrequencyEngine()
        value = to_decimal(amount)
        monthly = engine.monthly_equivalent(value, cadence, pattern)
        yearly = engine.yearly_total(value, cadence, pattern)

        if Cadence.parse(cadence) is None:
            click.echo(f"Warning: unknown cadence '{cadence}', amount left unchanged", err=True)

        click.echo(f"Monthly equivalent: {monthly:.2f}")
        click.echo(f"Yearly total:       {yearly:.2f}")

    except Exception as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--min-amount", type=float, help="Ignore smaller transactions (default: config)")
@click.option("--lookback-months", type=int, help="Months of history to analyze (default: config)")
@click.option("--today", type=DATE, help="End of the lookback window (default: current date)")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in TransactionKind]),
    help="Transaction kind to analyze (default: config, credit)",
)
@click.option("--debug", is_flag=True, help="Show rejected groups")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format (default: table)",
)
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--add-to",
    "add_to",
    type=click.Path(dir_okay=False),
    help="Add the detected patterns as bills to this bill file",
)
def detect(
    file: str,
    min_amount,
    lookback_months,
    today,
    kind,
    debug: bool,
    output_format: str,
    config_path,
    add_to,
):
    """Detect recurring patterns in a transaction file.

    FILE is a CSV file (description,amount,date,kind,category_id,account_id)
    or a YAML list of transactions.

    Examples:
        billschedule detect transactions.csv
        billschedule detect transactions.csv --kind debit --debug
        billschedule detect transactions.csv --add-to bills.yaml
    """
    try:
        config = load_config(config_path)
        detector = PatternDetector(
            min_amount=config.min_amount if min_amount is None else min_amount,
            kind=kind or config.detect_kind,
        )
        records = load_transactions(Path(file))
        result = detector.detect(
            records,
            lookback_months=config.lookback_months if lookback_months is None else lookback_months,
            debug=debug,
            today=_as_date(today),
        )

        if add_to:
            added = _add_detected_bills(result.detected, Path(add_to), _as_date(today))
            click.echo(f"Added {added} bills to {add_to}", err=True)

        if output_format == "json":
            print_detection_json(result.detected, result.rejected)
            return

        if result.detected:
            print_detection_table(result.detected)
            click.echo(f"\nDetected {len(result.detected)} recurring patterns")
        else:
            click.echo("No recurring patterns found.")
        if result.rejected:
            print_rejections(result.rejected)

    except Exception as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def validate(path: str):
    """Validate a bill file for syntax and schema compliance.

    Example:
        billschedule validate bills.yaml
    """
    path_obj = Path(path)

    click.echo(f"Validating bills from: {path_obj}")

    try:
        bill_file = load_bill_file(path_obj)

        num_bills = len(bill_file.bills)
        num_active = sum(1 for b in bill_file.bills if b.is_active)
        unknown = [b.id for b in bill_file.bills if b.schedule.known_cadence is None]

        click.echo("✓ Validation successful!")
        click.echo(f"  Total bills: {num_bills}")
        click.echo(f"  Active: {num_active}")
        click.echo(f"  Inactive: {num_bills - num_active}")

        if unknown:
            click.echo(
                f"\n⚠ Warning: Unknown cadence on bills: {', '.join(map(str, unknown))}",
                err=True,
            )
            sys.exit(1)

        click.echo("\nAll bills are valid!")

    except Exception as e:
        _fail(f"✗ Validation failed: {e}")


@main.command(name="list")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "csv"]),
    default="table",
    help="Output format (default: table)",
)
@click.option("--active-only", is_flag=True, help="Show only active bills")
def list_bills(path: str, output_format: str, active_only: bool):
    """List bills with their monthly equivalents.

    Examples:
        billschedule list bills.yaml
        billschedule list bills.yaml --format csv
    """
    try:
        bills = load_bill_file(Path(path)).bills
        if active_only:
            bills = [b for b in bills if b.is_active]

        if not bills:
            click.echo("No bills found.")
            return

        if output_format == "json":
            print_bill_json(bills)
        elif output_format == "csv":
            print_bill_csv(bills)
        else:
            print_bill_table(bills)

    except Exception as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--today", type=DATE, help="Reference date (default: current date)")
@click.option("--user", "user_id", default="default", help="User the notifications are for")
@click.option("--write", is_flag=True, help="Save reminder state back to the bill file")
def reminders(path: str, today, user_id: str, write: bool):
    """Print reminder and overdue notices for the bills in PATH.

    Bills without a next due date get one computed. Use --write to persist
    the new due dates and the reminder-sent markers.

    Example:
        billschedule reminders bills.yaml --write
    """
    try:
        repository = BillFileRepository(Path(path))
        sink = EchoSink()
        job = ReminderJob(repository, sink, default_currency=repository.config.default_currency)
        summary = job.run([user_id], _as_date(today))

        if not sink.notifications:
            click.echo("No reminders due.")
        click.echo(
            f"\n{summary.sent} sent, {summary.rescheduled} rescheduled, {summary.failed} failed"
        )

        if write:
            repository.save()
        if summary.failed:
            sys.exit(1)

    except Exception as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.argument("bill_id")
@click.option("--date", "paid_on", type=DATE, help="Payment date (default: today)")
@click.option("--today", type=DATE, help="Reference date (default: current date)")
@click.option("--write", is_flag=True, help="Save the updated bill")
def pay(path: str, bill_id: str, paid_on, today, write: bool):
    """Mark bill BILL_ID as paid and advance it to its next due date.

    Example:
        billschedule pay bills.yaml rent --date 2024-03-01 --write
    """
    try:
        bill_file = load_bill_file(Path(path))
        for idx, bill in enumerate(bill_file.bills):
            if str(bill.id) == bill_id:
                break
        else:
            click.echo(f"Error: Bill '{bill_id}' not found", err=True)
            sys.exit(1)

        updated = mark_paid(bill, _as_date(paid_on), today=_as_date(today))
        bill_file.bills[idx] = updated
        click.echo(f"{updated.name} paid on {updated.last_paid_date.isoformat()}")
        click.echo(f"Next due: {updated.next_due_date.isoformat()}")

        if write:
            save_bill_file(bill_file, Path(path))

    except Exception as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.argument("description")
@click.argument("amount")
def match(path: str, description: str, amount: str):
    """Find the bill a transaction pays.

    Example:
        billschedule match bills.yaml "NETFLIX.COM 8842" 15.49
    """
    try:
        bill_file = load_bill_file(Path(path))
        bill = match_transaction_to_bill(bill_file.bills, description, amount)
        if bill is None:
            click.echo("No matching bill.")
            return

        currency = bill.currency or bill_file.config.default_currency
        click.echo(f"{bill.id}: {bill.name} ({format_amount(bill.amount, currency)})")

    except Exception as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--year", type=int, help="Year of the month grid (default: current year)")
@click.option("--today", type=DATE, help="Reference date for the summary (default: current date)")
@click.option(
    "--status",
    type=click.Choice(constants.BILL_STATUSES),
    default=constants.BILL_STATUS_ACTIVE,
    help="Bills shown in the yearly grid (default: active)",
)
def overview(path: str, year, today, status: str):
    """Show the monthly summary and yearly grid of the bills in PATH.

    The summary always covers active bills.

    Example:
        billschedule overview bills.yaml --year 2024
    """
    try:
        bill_file = load_bill_file(Path(path))
        today = _as_date(today) or date.today()
        currency = bill_file.config.default_currency

        print_summary(monthly_summary(bill_file.bills, today), currency)
        click.echo("")

        grid = annual_overview(bill_file.bills, year or today.year, bill_status=status)
        print_overview_grid(grid, {str(b.id): b.name for b in bill_file.bills}, currency)

    except Exception as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--days",
    type=click.IntRange(min=0),
    default=constants.DEFAULT_UPCOMING_DAYS,
    show_default=True,
    help="Look-ahead window in days",
)
@click.option("--today", type=DATE, help="Reference date (default: current date)")
def upcoming(path: str, days: int, today):
    """List active bills in PATH that are overdue or due within DAYS days.

    Example:
        billschedule upcoming bills.yaml --days 14
    """
    try:
        bill_file = load_bill_file(Path(path))
        today = _as_date(today) or date.today()
        bills = upcoming_bills(bill_file.bills, today, days)
        print_upcoming(bills, today, bill_file.config.default_currency)

    except Exception as e:
        _fail(f"Error: {e}")
