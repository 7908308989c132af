"""Bill helpers built on the frequency engine.

Covers the arithmetic a bill service needs around the scheduling core:
advancing a bill after payment, turning a detected pattern into a bill,
listing upcoming bills, monthly summaries, the annual overview of which months
each bill falls due in, and matching a transaction to a bill.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from . import constants
from .descriptions import slugify
from .frequency import FrequencyEngine, clamp_day, to_decimal
from .schema import Bill, DetectedPattern, ScheduleSpec
from .types import Cadence, cadence_name

logger = logging.getLogger(__name__)


def mark_paid(
    bill: Bill,
    paid_on: Optional[date] = None,
    engine: Optional[FrequencyEngine] = None,
    today: Optional[date] = None,
) -> Bill:
    """
    Record a payment and move the bill to its next occurrence.

    The next due date is computed from the current one and always lands after
    it, so paying early still advances the bill.

    Args:
        bill: Bill being paid
        paid_on: Payment date (defaults to today)
        engine: Frequency engine
        today: Reference date (defaults to the current date)

    Returns:
        Updated copy of the bill.
    """
    engine = engine or FrequencyEngine()
    if today is None:
        today = date.today()
    if paid_on is None:
        paid_on = today

    base = bill.next_due_date or paid_on
    next_due = engine.compute_next_due_date(bill.schedule, base, max(today, base))
    logger.debug("Bill %s paid on %s, next due %s", bill.id, paid_on, next_due)

    return bill.model_copy(update={"last_paid_date": paid_on, "next_due_date": next_due})


def bill_from_pattern(
    pattern: DetectedPattern,
    today: Optional[date] = None,
    engine: Optional[FrequencyEngine] = None,
    bill_id=None,
) -> Bill:
    """
    Turn a detected pattern into a bill scheduled from ``today``.

    Monthly-style cadences anchor on the expected day of month. Weekly and
    biweekly ones anchor on the weekday of the last occurrence; quarterly and
    yearly ones also take their anchor month from it.

    Args:
        pattern: Pattern suggested by the detector
        today: Reference date for the first due date (defaults to the current date)
        engine: Frequency engine
        bill_id: Id of the new bill (defaults to a slug of its name)

    Returns:
        New active bill with its next due date set.
    """
    engine = engine or FrequencyEngine()
    if today is None:
        today = date.today()

    cadence = pattern.cadence
    anchor_month = None
    if cadence in (Cadence.WEEKLY, Cadence.BIWEEKLY):
        anchor_day = pattern.last_seen_date.isoweekday()
    else:
        anchor_day = pattern.expected_day_of_month
        if cadence in (Cadence.QUARTERLY, Cadence.YEARLY):
            anchor_month = pattern.last_seen_date.month

    schedule = ScheduleSpec(cadence=cadence, anchor_day=anchor_day, anchor_month=anchor_month)
    name = pattern.suggested_name.strip() or pattern.description
    next_due = engine.compute_next_due_date(schedule, today, today)
    if bill_id is None:
        bill_id = slugify(name) or slugify(pattern.description)
    logger.debug("Created bill '%s' from detected pattern, next due %s", bill_id, next_due)

    return Bill(
        id=bill_id,
        name=name,
        amount=pattern.average_amount,
        schedule=schedule,
        next_due_date=next_due,
        category_id=pattern.category_id,
        account_id=pattern.account_id,
        match_pattern=pattern.match_pattern or None,
    )


def upcoming_bills(
    bills: Iterable[Bill],
    today: Optional[date] = None,
    days: int = constants.DEFAULT_UPCOMING_DAYS,
) -> list[Bill]:
    """
    Active bills that are overdue or due within ``days`` days.

    Args:
        bills: Candidate bills
        today: Reference date (defaults to the current date)
        days: Size of the look-ahead window

    Returns:
        Bills sorted by next due date, each listed once.
    """
    if days < 0:
        raise ValueError("days must be non-negative")
    if today is None:
        today = date.today()
    horizon = today + timedelta(days=days)

    seen = set()
    result = []
    for bill in bills:
        due = bill.next_due_date
        if not bill.is_active or due is None or due > horizon:
            continue
        key = str(bill.id)
        if key in seen:
            continue
        seen.add(key)
        result.append(bill)

    result.sort(key=lambda b: b.next_due_date)
    return result


def is_paid_in_period(bill: Bill, start: date, end: date) -> bool:
    """Whether the bill's last payment falls within [start, end]."""
    return bill.last_paid_date is not None and start <= bill.last_paid_date <= end


def match_transaction_to_bill(
    bills: Iterable[Bill],
    description: str,
    amount,
) -> Optional[Bill]:
    """
    Find the active bill a transaction most likely pays.

    A bill matches when its match pattern occurs in the description
    (case-insensitive) and the amount is within 10% of the bill amount.

    Args:
        bills: Candidate bills
        description: Transaction description
        amount: Transaction amount (sign is ignored)

    Returns:
        First matching bill, or None.
    """
    value = abs(to_decimal(amount))
    lowered = description.lower()
    for bill in bills:
        if not bill.is_active or not bill.match_pattern:
            continue
        if bill.match_pattern.lower() not in lowered:
            continue
        if abs(value - bill.amount) <= bill.amount * constants.BILL_MATCH_AMOUNT_TOLERANCE:
            return bill
    return None


@dataclass
class BillSummary:
    """Monthly view over a set of bills."""

    total_monthly: Decimal = Decimal(0)
    """Sum of monthly equivalents."""

    total_yearly: Decimal = Decimal(0)
    """Twelve times the monthly total."""

    bill_count: int = 0
    """Number of bills summarized."""

    due_this_month: int = 0
    """Bills whose next due date falls in the current month."""

    overdue: int = 0
    """Bills past due and not paid this month."""

    paid_this_month: int = 0
    """Bills with a payment recorded this month."""

    by_cadence: dict[str, Decimal] = field(default_factory=dict)
    """Raw amounts per cadence."""

    by_category: dict[str, Decimal] = field(default_factory=dict)
    """Monthly equivalents per category."""


def monthly_summary(
    bills: Iterable[Bill],
    today: Optional[date] = None,
    engine: Optional[FrequencyEngine] = None,
) -> BillSummary:
    """
    Summarize active bills for the month containing ``today``.

    Args:
        bills: Bills to summarize (inactive ones are skipped)
        today: Reference date (defaults to the current date)
        engine: Frequency engine

    Returns:
        BillSummary with totals and counters.
    """
    engine = engine or FrequencyEngine()
    if today is None:
        today = date.today()

    month_start = today.replace(day=1)
    month_end = clamp_day(today.year, today.month, constants.MAX_DAY_OF_MONTH)

    summary = BillSummary()
    by_cadence: dict[str, Decimal] = defaultdict(Decimal)
    by_category: dict[str, Decimal] = defaultdict(Decimal)

    for bill in bills:
        if not bill.is_active:
            continue

        monthly = engine.monthly_equivalent_for(bill.schedule, bill.amount)
        summary.total_monthly += monthly
        summary.bill_count += 1

        by_cadence[cadence_name(bill.schedule.cadence)] += bill.amount
        category = "uncategorized" if bill.category_id is None else str(bill.category_id)
        by_category[category] += monthly

        paid = is_paid_in_period(bill, month_start, month_end)
        due = bill.next_due_date
        if due is not None and month_start <= due <= month_end:
            summary.due_this_month += 1
        if due is not None and due < today and not paid:
            summary.overdue += 1
        if paid:
            summary.paid_this_month += 1

    summary.total_yearly = summary.total_monthly * constants.MONTHS_PER_YEAR
    summary.by_cadence = dict(by_cadence)
    summary.by_category = dict(by_category)
    return summary


@dataclass
class AnnualOverview:
    """Which months each bill falls due in during a year."""

    year: int
    occurrences: dict[str, set[int]] = field(default_factory=dict)
    """Bill id -> months (1-12) with a due date."""

    monthly_totals: dict[int, Decimal] = field(default_factory=dict)
    """Month -> sum of bill amounts due that month."""


def annual_overview(
    bills: Iterable[Bill],
    year: int,
    engine: Optional[FrequencyEngine] = None,
    bill_status: str = constants.BILL_STATUS_ACTIVE,
) -> AnnualOverview:
    """Build the month grid of bill occurrences for ``year``.

    ``bill_status`` selects ``"active"`` (default), ``"inactive"`` or ``"all"`` bills.
    """
    if bill_status not in constants.BILL_STATUSES:
        raise ValueError(f"bill_status must be one of {', '.join(constants.BILL_STATUSES)}")
    engine = engine or FrequencyEngine()
    overview = AnnualOverview(
        year=year,
        monthly_totals={m: Decimal(0) for m in range(1, constants.MONTHS_PER_YEAR + 1)},
    )
    for bill in bills:
        if bill_status == constants.BILL_STATUS_ACTIVE and not bill.is_active:
            continue
        if bill_status == constants.BILL_STATUS_INACTIVE and bill.is_active:
            continue
        months = engine.occurring_months(bill.schedule)
        overview.occurrences[str(bill.id)] = months
        for month in months:
            overview.monthly_totals[month] += bill.amount
    return overview
