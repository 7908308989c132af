"""Pydantic schema models for schedules, transactions and detection results."""

import datetime
import json
import logging
from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import constants
from .types import Cadence, NotificationKind, RejectionReason, TransactionKind

logger = logging.getLogger(__name__)

ExternalId = Union[int, str]


class MonthDay(BaseModel):
    """A (month, day) pair of a custom date list."""

    model_config = ConfigDict(frozen=True)

    month: int = Field(..., description="Month (1-12)")
    day: int = Field(..., description="Day of month (1-31, clamped to the month length)")

    @field_validator("month")
    @classmethod
    def validate_month(cls, v: int) -> int:
        """Ensure month is in valid range."""
        if v < constants.MIN_MONTH or v > constants.MAX_MONTH:
            msg = f"month must be between {constants.MIN_MONTH} and {constants.MAX_MONTH}"
            raise ValueError(msg)
        return v

    @field_validator("day")
    @classmethod
    def validate_day(cls, v: int) -> int:
        """Ensure day is in valid range."""
        if v < constants.MIN_DAY_OF_MONTH or v > constants.MAX_DAY_OF_MONTH:
            msg = (
                f"day must be between {constants.MIN_DAY_OF_MONTH} "
                f"and {constants.MAX_DAY_OF_MONTH}"
            )
            raise ValueError(msg)
        return v


class MonthSet(BaseModel):
    """Custom pattern: the schedule falls due in each listed month."""

    model_config = ConfigDict(frozen=True)

    months: tuple[int, ...] = Field(..., description="Unique months (1-12), ascending")

    @field_validator("months")
    @classmethod
    def validate_months(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        """Ensure months are in range; store them unique and ascending."""
        for month in v:
            if month < constants.MIN_MONTH or month > constants.MAX_MONTH:
                msg = f"months must be between {constants.MIN_MONTH} and {constants.MAX_MONTH}"
                raise ValueError(msg)
        return tuple(sorted(set(v)))


class DateList(BaseModel):
    """Custom pattern: the schedule falls due on each listed (month, day)."""

    model_config = ConfigDict(frozen=True)

    dates: tuple[MonthDay, ...] = Field(..., description="Ordered (month, day) entries")


CustomPattern = Union[MonthSet, DateList]


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


def parse_custom_pattern(raw: Any) -> Optional[CustomPattern]:
    """Parse a persisted custom pattern into a MonthSet or DateList.

    Accepts the storage format as a JSON string or an already-decoded mapping:
    ``{"months": [1, 6, 7]}`` or ``{"dates": [{"month": 1, "day": 15}, ...]}``.
    Out-of-range entries are dropped.

    Args:
        raw: Persisted pattern (str, mapping, parsed pattern, or None).

    Returns:
        Parsed pattern, or None when the input is absent or unparseable.
    """
    if raw is None or isinstance(raw, (MonthSet, DateList)):
        return raw

    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.debug("Unparseable custom pattern %r: %s", raw, e)
            return None

    if not isinstance(raw, Mapping):
        logger.debug("Custom pattern is not an object: %r", raw)
        return None

    months = raw.get("months")
    if isinstance(months, (list, tuple)):
        valid = []
        for value in months:
            month = _as_int(value)
            if month is None or not constants.MIN_MONTH <= month <= constants.MAX_MONTH:
                logger.debug("Skipping invalid month in custom pattern: %r", value)
                continue
            valid.append(month)
        return MonthSet(months=tuple(valid))

    dates = raw.get("dates")
    if isinstance(dates, (list, tuple)):
        entries = []
        for spec in dates:
            if not isinstance(spec, Mapping) or "month" not in spec or "day" not in spec:
                logger.debug("Skipping incomplete date in custom pattern: %r", spec)
                continue
            month = _as_int(spec["month"])
            day = _as_int(spec["day"])
            if month is None or day is None:
                continue
            if not constants.MIN_MONTH <= month <= constants.MAX_MONTH:
                continue
            if not constants.MIN_DAY_OF_MONTH <= day <= constants.MAX_DAY_OF_MONTH:
                continue
            entries.append(MonthDay(month=month, day=day))
        return DateList(dates=tuple(entries))

    logger.debug("Custom pattern has neither 'months' nor 'dates': %r", raw)
    return None


class ScheduleSpec(BaseModel):
    """Timing of a recurring obligation (bill or income rule)."""

    model_config = ConfigDict(frozen=True)

    cadence: Union[Cadence, str] = Field(
        Cadence.MONTHLY,
        description="Recurrence cadence (unrecognized values are kept as strings)",
    )
    anchor_day: Optional[int] = Field(
        None,
        description="ISO weekday (1-7) for weekly/biweekly, day of month (1-31) otherwise",
    )
    anchor_month: Optional[int] = Field(
        None, description="Month (1-12) for quarterly start month and yearly"
    )
    custom_pattern: Optional[CustomPattern] = Field(
        None, description="Explicit months or (month, day) pairs for custom cadence"
    )

    @field_validator("cadence", mode="before")
    @classmethod
    def normalize_cadence(cls, v: Any) -> Any:
        """Map known cadence names to Cadence, keep unknown strings as-is."""
        return Cadence.parse(v) or v

    @field_validator("anchor_day")
    @classmethod
    def validate_anchor_day(cls, v: Optional[int]) -> Optional[int]:
        """Ensure anchor_day is in valid range."""
        if v is not None and (v < constants.MIN_DAY_OF_MONTH or v > constants.MAX_DAY_OF_MONTH):
            msg = (
                f"anchor_day must be between {constants.MIN_DAY_OF_MONTH} "
                f"and {constants.MAX_DAY_OF_MONTH}"
            )
            raise ValueError(msg)
        return v

    @field_validator("anchor_month")
    @classmethod
    def validate_anchor_month(cls, v: Optional[int]) -> Optional[int]:
        """Ensure anchor_month is in valid range."""
        if v is not None and (v < constants.MIN_MONTH or v > constants.MAX_MONTH):
            msg = f"anchor_month must be between {constants.MIN_MONTH} and {constants.MAX_MONTH}"
            raise ValueError(msg)
        return v

    @field_validator("custom_pattern", mode="before")
    @classmethod
    def parse_pattern(cls, v: Any) -> Optional[CustomPattern]:
        """Parse the persisted pattern once; unusable input becomes None."""
        return parse_custom_pattern(v)

    @model_validator(mode="after")
    def validate_weekly_anchor(self) -> "ScheduleSpec":
        """Weekly cadences anchor on an ISO weekday."""
        if (
            self.known_cadence in (Cadence.WEEKLY, Cadence.BIWEEKLY)
            and self.anchor_day is not None
            and self.anchor_day > constants.DAYS_PER_WEEK
        ):
            raise ValueError(
                f"anchor_day must be an ISO weekday (1-{constants.DAYS_PER_WEEK}) "
                "for weekly cadences"
            )
        return self

    @property
    def known_cadence(self) -> Optional[Cadence]:
        """Cadence member, or None for an unrecognized cadence string."""
        return Cadence.parse(self.cadence)


class TransactionSample(BaseModel):
    """Read-only projection of a ledger transaction."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(..., description="Free-text bank description")
    amount: Decimal = Field(..., description="Signed amount")
    date: datetime.date = Field(..., description="Booking date")
    category_id: Optional[ExternalId] = Field(None, description="Category reference")
    account_id: Optional[ExternalId] = Field(None, description="Account reference")
    kind: TransactionKind = Field(TransactionKind.OTHER, description="credit, debit or other")

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        """Accept kind names in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class DetectedPattern(BaseModel):
    """A recurring series suggested by the pattern detector."""

    description: str
    suggested_name: str
    suggested_source: str
    average_amount: Decimal
    cadence: Cadence
    expected_day_of_month: int
    category_id: Optional[ExternalId] = None
    account_id: Optional[ExternalId] = None
    occurrence_count: int
    confidence: float = Field(..., ge=0.0, le=1.0)
    match_pattern: str
    last_seen_date: date
    amount_variance: Decimal
    average_interval_days: float


class RejectedEntry(BaseModel):
    """A transaction group (or record) that was not turned into a pattern."""

    description: str
    occurrence_count: int
    average_interval_days: float
    reason: RejectionReason


class DetectionResult(BaseModel):
    """Output of a detection run."""

    detected: list[DetectedPattern] = Field(default_factory=list)
    rejected: Optional[list[RejectedEntry]] = Field(
        None, description="Only populated in debug mode when something was rejected"
    )


class Bill(BaseModel):
    """A recurring obligation with its reminder state."""

    id: ExternalId = Field(..., description="Bill identifier")
    name: str = Field(..., description="Display name")
    amount: Decimal = Field(..., description="Amount per occurrence")
    currency: Optional[str] = Field(None, description="Currency code (default from config)")
    schedule: ScheduleSpec = Field(default_factory=ScheduleSpec, description="Timing")
    next_due_date: Optional[date] = Field(None, description="Next due date")
    reminder_days: Optional[int] = Field(
        None, description="Remind this many days ahead (null = no reminders)"
    )
    last_reminder_sent: Optional[date] = Field(None, description="Date of the last reminder")
    last_paid_date: Optional[date] = Field(None, description="Date of the last payment")
    is_active: bool = Field(True, description="Whether the bill is active")
    category_id: Optional[ExternalId] = Field(None, description="Category reference")
    account_id: Optional[ExternalId] = Field(None, description="Account reference")
    match_pattern: Optional[str] = Field(
        None, description="Description fragment identifying the bill's transactions"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure name is not blank."""
        if not v or not v.strip():
            raise ValueError("name cannot be empty")
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Ensure amount is non-negative."""
        if v < 0:
            raise ValueError("amount must be non-negative")
        return v

    @field_validator("reminder_days")
    @classmethod
    def validate_reminder_days(cls, v: Optional[int]) -> Optional[int]:
        """Ensure reminder_days is non-negative."""
        if v is not None and v < 0:
            raise ValueError("reminder_days must be non-negative")
        return v


class Notification(BaseModel):
    """Payload handed to the notification sink."""

    kind: NotificationKind
    user_id: Optional[str] = None
    bill_id: ExternalId
    bill_name: str
    formatted_amount: str
    days: int = Field(..., description="Days until due (negative when overdue)")


class GlobalConfig(BaseModel):
    """Global configuration for billschedule."""

    default_currency: str = Field(constants.DEFAULT_CURRENCY, description="Default currency")
    min_amount: float = Field(
        constants.DEFAULT_MIN_AMOUNT, description="Ignore transactions below this amount"
    )
    lookback_months: int = Field(
        constants.DEFAULT_LOOKBACK_MONTHS, description="Months of history to analyze"
    )
    detect_kind: TransactionKind = Field(
        TransactionKind.CREDIT, description="Transaction kind analyzed by detection"
    )

    @field_validator("min_amount")
    @classmethod
    def validate_min_amount(cls, v: float) -> float:
        """Ensure min_amount is non-negative."""
        if v < 0:
            raise ValueError("min_amount must be non-negative")
        return v

    @field_validator("lookback_months")
    @classmethod
    def validate_lookback_months(cls, v: int) -> int:
        """Ensure lookback_months is non-negative."""
        if v < 0:
            raise ValueError("lookback_months must be non-negative")
        return v


class BillFile(BaseModel):
    """Root bill file structure."""

    version: str = Field("1.0", description="Bill file format version")
    config: GlobalConfig = Field(default_factory=GlobalConfig, description="Global configuration")
    bills: list[Bill] = Field(default_factory=list, description="List of bills")

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "BillFile":
        """Reject duplicate bill ids."""
        seen = set()
        for bill in self.bills:
            key = str(bill.id)
            if key in seen:
                raise ValueError(f"duplicate bill id '{bill.id}'")
            seen.add(key)
        return self
