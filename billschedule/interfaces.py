"""Collaborators the scheduling core talks to but does not implement.

Storage, transaction history and notification delivery belong to the host
application. These protocols describe the calls the core makes; callers pass
already-resolved data or objects satisfying them.
"""

from datetime import date
from typing import Protocol

from .schema import Bill, ExternalId, Notification, TransactionSample


class TransactionSource(Protocol):
    """Provides transaction history for detection runs."""

    def fetch_by_date_range(
        self, user_id: str, start_date: date, end_date: date
    ) -> list[TransactionSample]:
        """Return the user's transactions dated between start and end (inclusive)."""
        ...


class ScheduleRepository(Protocol):
    """Stores bills and their reminder state."""

    def find_active(self, user_id: str) -> list[Bill]:
        """Return the user's active bills."""
        ...

    def save_next_due_date(self, bill_id: ExternalId, next_due_date: date) -> None:
        """Persist a recomputed next due date."""
        ...

    def mark_reminder_sent(self, bill_id: ExternalId, sent_on: date) -> None:
        """Record that a reminder or overdue notice was sent."""
        ...


class NotificationSink(Protocol):
    """Delivers bill notifications (formatting and localization are external)."""

    def notify(self, notification: Notification) -> None:
        """Deliver one notification."""
        ...
