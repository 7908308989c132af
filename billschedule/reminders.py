"""Bill reminder decisions and the reminder job."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from . import constants
from .frequency import FrequencyEngine, to_decimal
from .interfaces import NotificationSink, ScheduleRepository
from .schema import Bill, Notification
from .types import NotificationKind

logger = logging.getLogger(__name__)


def format_amount(amount: Decimal, currency: str = constants.DEFAULT_CURRENCY) -> str:
    """Format an amount with its currency symbol, e.g. ``$1,234.50``.

    Unknown currencies are prefixed with their code and a space.
    """
    code = (currency or constants.DEFAULT_CURRENCY).upper()
    symbol = constants.CURRENCY_SYMBOLS.get(code, f"{code} ")
    return f"{symbol}{to_decimal(amount):,.2f}"


def days_until(today: date, due_date: date) -> int:
    """Signed day count from today to the due date (negative when overdue)."""
    return (due_date - today).days


def should_send_reminder(last_reminder_sent: Optional[date], due_date: date) -> bool:
    """Whether a reminder for ``due_date`` has not been sent yet.

    A reminder sent more than a week before the due date belonged to the
    previous occurrence.
    """
    if last_reminder_sent is None:
        return True
    return (due_date - last_reminder_sent).days > constants.REMINDER_REPEAT_AFTER_DAYS


def evaluate_bill(
    bill: Bill,
    today: date,
    default_currency: str = constants.DEFAULT_CURRENCY,
    user_id: Optional[str] = None,
) -> Optional[Notification]:
    """
    Decide whether a bill needs a reminder or an overdue notice today.

    Args:
        bill: Bill with its reminder state
        today: Reference date
        default_currency: Currency used when the bill has none
        user_id: Owner of the bill, copied into the notification

    Returns:
        Notification to send, or None.
    """
    if bill.reminder_days is None or bill.next_due_date is None:
        return None

    days = days_until(today, bill.next_due_date)
    if days < 0:
        kind = NotificationKind.OVERDUE
    elif days <= bill.reminder_days:
        kind = NotificationKind.REMINDER
    else:
        return None

    if not should_send_reminder(bill.last_reminder_sent, bill.next_due_date):
        logger.debug("Reminder for bill %s already sent on %s", bill.id, bill.last_reminder_sent)
        return None

    return Notification(
        kind=kind,
        user_id=user_id,
        bill_id=bill.id,
        bill_name=bill.name,
        formatted_amount=format_amount(bill.amount, bill.currency or default_currency),
        days=days,
    )


@dataclass
class ReminderRunSummary:
    """Counts of one reminder job run."""

    sent: int = 0
    """Notifications delivered."""

    failed: int = 0
    """Bills (or users whose bills could not be loaded) that raised while being processed."""

    rescheduled: int = 0
    """Bills that received a freshly computed next due date."""


class ReminderJob:
    """Sends reminder and overdue notifications for active bills."""

    def __init__(
        self,
        repository: ScheduleRepository,
        sink: NotificationSink,
        engine: Optional[FrequencyEngine] = None,
        default_currency: str = constants.DEFAULT_CURRENCY,
    ):
        self.repository = repository
        self.sink = sink
        self.engine = engine or FrequencyEngine()
        self.default_currency = default_currency

    def run(self, user_ids: Iterable[str], today: Optional[date] = None) -> ReminderRunSummary:
        """
        Process every active bill of the given users.

        A failure on one bill is logged and the job moves on to the next. A
        user whose bills cannot be loaded counts as one failure and is skipped.

        Args:
            user_ids: Users whose bills should be checked
            today: Reference date (defaults to the current date)

        Returns:
            ReminderRunSummary with counts.
        """
        if today is None:
            today = date.today()

        summary = ReminderRunSummary()
        for user_id in user_ids:
            try:
                bills = self.repository.find_active(user_id)
            except Exception as e:
                summary.failed += 1
                logger.warning("Failed to load bills for user %s: %s", user_id, e)
                continue

            for bill in bills:
                try:
                    self._process_bill(user_id, bill, today, summary)
                except Exception as e:
                    summary.failed += 1
                    logger.warning(
                        "Failed to process reminder for bill %s of user %s: %s",
                        bill.id,
                        user_id,
                        e,
                    )

        if summary.sent or summary.failed:
            logger.info(
                "Bill reminder job completed: %d sent, %d rescheduled, %d failed",
                summary.sent,
                summary.rescheduled,
                summary.failed,
            )
        return summary

    def _process_bill(
        self,
        user_id: str,
        bill: Bill,
        today: date,
        summary: ReminderRunSummary,
    ) -> None:
        if bill.reminder_days is None:
            return

        if bill.next_due_date is None:
            next_due = self.engine.compute_next_due_date(bill.schedule, today, today)
            self.repository.save_next_due_date(bill.id, next_due)
            bill = bill.model_copy(update={"next_due_date": next_due})
            summary.rescheduled += 1

        notification = evaluate_bill(bill, today, self.default_currency, user_id=user_id)
        if notification is None:
            return

        self.sink.notify(notification)
        self.repository.mark_reminder_sent(bill.id, today)
        summary.sent += 1
