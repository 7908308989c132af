"""Output formatting functions for CLI commands."""

import csv
import json
import sys
from typing import Optional

import click

from billschedule import constants
from billschedule.bills import AnnualOverview, BillSummary
from billschedule.frequency import FrequencyEngine
from billschedule.reminders import format_amount
from billschedule.schema import DetectedPattern, Notification, RejectedEntry
from billschedule.types import NotificationKind, cadence_name


def print_bill_table(bills: list, engine: Optional[FrequencyEngine] = None) -> None:
    """
    Print bills as a formatted ASCII table.

    Displays bill ID, active status, cadence, next due date, amount and
    monthly equivalent. Column widths are auto-calculated based on content.

    Args:
        bills: List of Bill objects to display.
        engine: Frequency engine used for monthly equivalents.
    """
    engine = engine or FrequencyEngine()

    id_width = max(len("ID"), max((len(str(b.id)) for b in bills), default=0))
    name_width = max(len("Name"), max((len(b.name) for b in bills), default=0))
    name_width = min(name_width, constants.MAX_TABLE_COLUMN_WIDTH)

    header = (
        f"{'ID':<{id_width}}  {'Status':<10}  {'Name':<{name_width}}  "
        f"{'Cadence':<10}  {'Next due':<10}  {'Amount':>12}  {'Monthly':>12}"
    )
    click.echo(header)
    click.echo("-" * len(header))

    for b in bills:
        status = "✓ active" if b.is_active else "  inactive"
        next_due = b.next_due_date.isoformat() if b.next_due_date else "-"
        monthly = engine.monthly_equivalent_for(b.schedule, b.amount)
        click.echo(
            f"{str(b.id):<{id_width}}  {status:<10}  {b.name[:name_width]:<{name_width}}  "
            f"{cadence_name(b.schedule.cadence):<10}  {next_due:<10}  "
            f"{b.amount:>12,.2f}  {monthly:>12,.2f}"
        )

    click.echo(f"\nTotal: {len(bills)} bills")


def print_bill_csv(bills: list, engine: Optional[FrequencyEngine] = None) -> None:
    """
    Print bills as comma-separated values (CSV) to stdout.

    Args:
        bills: List of Bill objects to export.
        engine: Frequency engine used for monthly equivalents.
    """
    engine = engine or FrequencyEngine()
    writer = csv.writer(sys.stdout)
    writer.writerow(["ID", "Active", "Name", "Cadence", "NextDue", "Amount", "Monthly"])

    for b in bills:
        writer.writerow(
            [
                b.id,
                "true" if b.is_active else "false",
                b.name,
                cadence_name(b.schedule.cadence),
                b.next_due_date.isoformat() if b.next_due_date else "",
                f"{b.amount:.2f}",
                f"{engine.monthly_equivalent_for(b.schedule, b.amount):.2f}",
            ],
        )


def print_bill_json(bills: list, engine: Optional[FrequencyEngine] = None) -> None:
    """Print bills as JSON, each with its monthly equivalent."""
    engine = engine or FrequencyEngine()
    output = []
    for b in bills:
        record = b.model_dump(mode="json")
        record["monthly_equivalent"] = float(engine.monthly_equivalent_for(b.schedule, b.amount))
        output.append(record)

    click.echo(json.dumps(output, indent=2))


def print_detection_table(patterns: list[DetectedPattern]) -> None:
    """Print detected patterns as a formatted ASCII table.

    Shows confidence, cadence, suggested name, source, average amount,
    expected day and occurrence count for each pattern.

    Args:
        patterns: Detected patterns, already sorted by confidence.
    """
    confidence_width = len("Confidence")
    name_width = max(len("Name"), max((len(p.suggested_name) for p in patterns), default=0))
    name_width = min(name_width, constants.MAX_TABLE_COLUMN_WIDTH)
    source_width = max(len("Source"), max((len(p.suggested_source) for p in patterns), default=0))
    source_width = min(source_width, constants.MAX_TABLE_COLUMN_WIDTH)

    header = (
        f"{'Confidence':<{confidence_width}}  "
        f"{'Cadence':<10}  "
        f"{'Name':<{name_width}}  "
        f"{'Source':<{source_width}}  "
        f"{'Amount':>12}  "
        f"{'Day':>3}  "
        f"Count"
    )
    click.echo(header)
    click.echo("-" * min(len(header), 120))

    for p in patterns:
        confidence_pct = f"{p.confidence * 100:.0f}%"
        click.echo(
            f"{confidence_pct:<{confidence_width}}  "
            f"{p.cadence.value:<10}  "
            f"{p.suggested_name[:name_width]:<{name_width}}  "
            f"{p.suggested_source[:source_width]:<{source_width}}  "
            f"{p.average_amount:>12,.2f}  "
            f"{p.expected_day_of_month:>3}  "
            f"{p.occurrence_count}"
        )


def print_detection_json(
    patterns: list[DetectedPattern], rejected: Optional[list[RejectedEntry]] = None
) -> None:
    """Print detected patterns (and debug rejections) as JSON."""
    output = {"detected": [p.model_dump(mode="json") for p in patterns]}
    if rejected is not None:
        output["rejected"] = [r.model_dump(mode="json") for r in rejected]

    click.echo(json.dumps(output, indent=2))


def print_rejections(rejected: list[RejectedEntry]) -> None:
    """Print debug rejections, one per line."""
    click.echo(f"\nRejected groups: {len(rejected)}")
    for r in rejected:
        click.echo(
            f"  {r.reason.value:<22} {r.description} "
            f"({r.occurrence_count} seen, avg {r.average_interval_days} days)"
        )


def print_notification(notification: Notification) -> None:
    """Print one reminder or overdue notice."""
    if notification.kind == NotificationKind.OVERDUE:
        click.echo(
            f"OVERDUE  {notification.bill_name}: {notification.formatted_amount} "
            f"was due {-notification.days} day(s) ago"
        )
    elif notification.days == 0:
        click.echo(
            f"REMINDER {notification.bill_name}: {notification.formatted_amount} is due today"
        )
    else:
        click.echo(
            f"REMINDER {notification.bill_name}: {notification.formatted_amount} "
            f"is due in {notification.days} day(s)"
        )


def print_summary(summary: BillSummary, currency: str) -> None:
    """Print the monthly bill summary."""
    click.echo(f"Active bills:     {summary.bill_count}")
    click.echo(f"Monthly total:    {format_amount(summary.total_monthly, currency)}")
    click.echo(f"Yearly total:     {format_amount(summary.total_yearly, currency)}")
    click.echo(f"Due this month:   {summary.due_this_month}")
    click.echo(f"Paid this month:  {summary.paid_this_month}")
    click.echo(f"Overdue:          {summary.overdue}")

    if summary.by_cadence:
        click.echo("\nBy cadence:")
        for cadence, amount in sorted(summary.by_cadence.items()):
            click.echo(f"  {cadence:<12} {format_amount(amount, currency)}")


def print_overview_grid(overview: AnnualOverview, names: dict[str, str], currency: str) -> None:
    """Print the month grid of bill occurrences for one year."""
    name_width = max(len("Bill"), max((len(n) for n in names.values()), default=0))
    name_width = min(name_width, constants.MAX_TABLE_COLUMN_WIDTH)

    months = " ".join(f"{m:>3}" for m in constants.MONTH_ABBREVIATIONS)
    header = f"{'Bill':<{name_width}}  {months}"
    click.echo(f"Overview {overview.year}")
    click.echo(header)
    click.echo("-" * len(header))

    for bill_id, occurring in overview.occurrences.items():
        name = names.get(bill_id, bill_id)[:name_width]
        cells = " ".join(
            f"{'x' if m in occurring else '.':>3}" for m in range(1, constants.MONTHS_PER_YEAR + 1)
        )
        click.echo(f"{name:<{name_width}}  {cells}")

    click.echo("\nMonthly totals:")
    for month, total in overview.monthly_totals.items():
        label = constants.MONTH_ABBREVIATIONS[month - 1]
        click.echo(f"  {label}  {format_amount(total, currency)}")


def print_upcoming(bills: list, today, default_currency: str) -> None:
    """Print upcoming bills one per line, flagging overdue ones."""
    if not bills:
        click.echo("No upcoming bills.")
        return

    for b in bills:
        marker = "OVERDUE" if b.next_due_date < today else ""
        amount = format_amount(b.amount, b.currency or default_currency)
        click.echo(f"{b.next_due_date.isoformat()}  {b.name:<30}  {amount:>14}  {marker}".rstrip())
