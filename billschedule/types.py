"""Type definitions and enums for billschedule."""

from enum import Enum
from typing import Optional


class Cadence(str, Enum):
    """Recurrence categories for bills and income rules."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value) -> Optional["Cadence"]:
        """Return the cadence for ``value`` or None if it is not recognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class TransactionKind(str, Enum):
    """Direction of a transaction as reported by the account."""

    CREDIT = "credit"
    DEBIT = "debit"
    OTHER = "other"


class RejectionReason(str, Enum):
    """Why a transaction group did not become a detected pattern."""

    TOO_FEW_OCCURRENCES = "too_few_occurrences"
    NO_MATCHING_FREQUENCY = "no_matching_frequency"
    MALFORMED_RECORD = "malformed_record"


class NotificationKind(str, Enum):
    """Bill notification types."""

    REMINDER = "reminder"
    OVERDUE = "overdue"


def cadence_name(cadence) -> str:
    """Plain name of a cadence, including unrecognized cadence strings."""
    if isinstance(cadence, Cadence):
        return cadence.value
    return str(cadence)


# ISO weekday numbers used by weekly/biweekly anchor days
ISO_WEEKDAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}
