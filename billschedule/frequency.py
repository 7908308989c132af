"""Frequency engine: next due dates, amount conversions and cadence detection."""

import calendar
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Union

from dateutil.relativedelta import relativedelta

from . import constants
from .schema import DateList, MonthSet, ScheduleSpec, parse_custom_pattern
from .types import Cadence

logger = logging.getLogger(__name__)

Amount = Union[Decimal, float, int, str]


def to_decimal(value: Amount) -> Decimal:
    """Convert an amount to Decimal without binary float noise."""
    if value is None:
        raise TypeError("amount is required")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping ``day`` to the length of the target month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


class FrequencyEngine:
    """Stateless calculator for recurring schedules.

    Instances hold no state, so one engine can be shared between threads.
    """

    def compute_next_due_date(
        self,
        spec: ScheduleSpec,
        from_date: date,
        today: Optional[date] = None,
    ) -> date:
        """
        Compute the next due date of a schedule.

        Args:
            spec: Schedule timing (cadence, anchors, custom pattern)
            from_date: Base date, usually the current due date or today
            today: Reference date (defaults to the current date)

        Returns:
            Next due date strictly after ``today``. Custom schedules without a
            usable pattern and unrecognized cadences return ``from_date``.
        """
        if spec is None or from_date is None:
            raise ValueError("spec and from_date are required")
        if today is None:
            today = date.today()

        cadence = spec.known_cadence
        if cadence is None:
            logger.warning("Unknown cadence %r, keeping base date %s", spec.cadence, from_date)
            return from_date

        if cadence == Cadence.DAILY:
            return self._next_daily(from_date, today)
        if cadence in (Cadence.WEEKLY, Cadence.BIWEEKLY):
            return self._next_weekly(spec, cadence, from_date, today)
        if cadence == Cadence.MONTHLY:
            return self._next_monthly(spec, from_date, today)
        if cadence == Cadence.QUARTERLY:
            return self._next_quarterly(spec, from_date, today)
        if cadence == Cadence.YEARLY:
            return self._next_yearly(spec, from_date, today)
        return self._next_custom(spec, from_date, today)

    def _next_daily(self, from_date: date, today: date) -> date:
        candidate = from_date
        while candidate <= today:
            candidate += timedelta(days=1)
        return candidate

    def _next_weekly(
        self,
        spec: ScheduleSpec,
        cadence: Cadence,
        from_date: date,
        today: date,
    ) -> date:
        """Align to the anchor weekday; biweekly only differs in the step."""
        target_weekday = spec.anchor_day or constants.DEFAULT_WEEKDAY
        step = timedelta(
            days=constants.BIWEEKLY_DAYS if cadence == Cadence.BIWEEKLY else constants.DAYS_PER_WEEK
        )

        delta = (target_weekday - from_date.isoweekday() + constants.DAYS_PER_WEEK) % (
            constants.DAYS_PER_WEEK
        )
        if delta == 0 and from_date <= today:
            candidate = from_date + step
        else:
            candidate = from_date + timedelta(days=delta)

        while candidate <= today:
            candidate += step
        return candidate

    def _next_monthly(self, spec: ScheduleSpec, from_date: date, today: date) -> date:
        day = spec.anchor_day or constants.DEFAULT_ANCHOR_DAY
        candidate = clamp_day(from_date.year, from_date.month, day)
        while candidate <= today:
            next_month = candidate.replace(day=1) + relativedelta(months=1)
            candidate = clamp_day(next_month.year, next_month.month, day)
        return candidate

    def _next_quarterly(self, spec: ScheduleSpec, from_date: date, today: date) -> date:
        """Quarterly dates cap the day at 28 instead of clamping per month."""
        day = min(spec.anchor_day or constants.DEFAULT_ANCHOR_DAY, constants.SAFE_DAY_CAP)
        if spec.anchor_month:
            month = spec.anchor_month
        else:
            month = (from_date.month - 1) // constants.QUARTER_MONTHS * constants.QUARTER_MONTHS + 1

        candidate = date(from_date.year, month, day)
        while candidate <= today:
            candidate += relativedelta(months=constants.QUARTER_MONTHS)
        return candidate

    def _next_yearly(self, spec: ScheduleSpec, from_date: date, today: date) -> date:
        day = min(spec.anchor_day or constants.DEFAULT_ANCHOR_DAY, constants.SAFE_DAY_CAP)
        month = spec.anchor_month or constants.DEFAULT_ANCHOR_MONTH

        candidate = date(from_date.year, month, day)
        while candidate <= today:
            candidate += relativedelta(years=1)
        return candidate

    def _next_custom(self, spec: ScheduleSpec, from_date: date, today: date) -> date:
        pattern = spec.custom_pattern
        if isinstance(pattern, MonthSet):
            return self._next_in_months(pattern, spec.anchor_day, from_date, today)
        if isinstance(pattern, DateList):
            return self._next_in_dates(pattern, from_date, today)

        logger.debug("Custom cadence without a usable pattern, keeping base date %s", from_date)
        return from_date

    def _next_in_months(
        self,
        pattern: MonthSet,
        anchor_day: Optional[int],
        from_date: date,
        today: date,
    ) -> date:
        """First listed month after today, wrapping to next year's first month."""
        if not pattern.months:
            return from_date

        day = anchor_day or constants.DEFAULT_ANCHOR_DAY
        for month in pattern.months:
            candidate = clamp_day(today.year, month, day)
            if candidate > today:
                return candidate

        return clamp_day(today.year + 1, pattern.months[0], day)

    def _next_in_dates(self, pattern: DateList, from_date: date, today: date) -> date:
        """Earliest future date across this year's and next year's entries."""
        candidates = []
        for entry in pattern.dates:
            this_year = clamp_day(today.year, entry.month, entry.day)
            if this_year > today:
                candidates.append(this_year)
            candidates.append(clamp_day(today.year + 1, entry.month, entry.day))

        if not candidates:
            return from_date
        return min(candidates)

    # ------------------------------------------------------------------
    # Amount conversions
    # ------------------------------------------------------------------

    def occurrences_per_year(self, cadence: Union[Cadence, str]) -> int:
        """Occurrences per year of a fixed cadence (12 for anything else)."""
        return constants.OCCURRENCES_PER_YEAR.get(
            Cadence.parse(cadence), constants.DEFAULT_OCCURRENCES_PER_YEAR
        )

    def custom_occurrences_per_year(self, pattern: Any) -> int:
        """
        Count yearly occurrences of a custom pattern.

        Args:
            pattern: Parsed pattern or its persisted form

        Returns:
            Number of unique months (MonthSet), number of entries (DateList),
            or 0 when there is no usable pattern.
        """
        parsed = parse_custom_pattern(pattern)
        if isinstance(parsed, MonthSet):
            return len(parsed.months)
        if isinstance(parsed, DateList):
            return len(parsed.dates)
        return 0

    def monthly_equivalent(
        self,
        amount: Amount,
        cadence: Union[Cadence, str],
        custom_pattern: Any = None,
    ) -> Decimal:
        """
        Normalize a per-occurrence amount to a per-month amount.

        Args:
            amount: Amount per occurrence
            cadence: Cadence of the amount
            custom_pattern: Pattern used when cadence is custom

        Returns:
            Monthly equivalent; unrecognized cadences return the amount unchanged.
        """
        value = to_decimal(amount)
        parsed = Cadence.parse(cadence)

        if parsed == Cadence.CUSTOM:
            occurrences = self.custom_occurrences_per_year(custom_pattern)
            return value * occurrences / constants.MONTHS_PER_YEAR

        multiplier = constants.MONTHLY_MULTIPLIERS.get(parsed)
        if multiplier is None:
            return value
        return value * multiplier

    def monthly_equivalent_for(self, spec: ScheduleSpec, amount: Amount) -> Decimal:
        """Monthly equivalent of an amount due on ``spec``."""
        return self.monthly_equivalent(amount, spec.cadence, spec.custom_pattern)

    def yearly_total(
        self,
        amount: Amount,
        cadence: Union[Cadence, str],
        custom_pattern: Any = None,
    ) -> Decimal:
        """Total paid per year for an amount due at ``cadence``.

        Custom cadences count the pattern's occurrences when a pattern is
        given; without one they fall back to the default of 12.
        """
        if Cadence.parse(cadence) == Cadence.CUSTOM and custom_pattern is not None:
            return to_decimal(amount) * self.custom_occurrences_per_year(custom_pattern)
        return to_decimal(amount) * self.occurrences_per_year(cadence)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def detect_frequency(self, average_interval_days: float) -> Optional[Cadence]:
        """
        Classify an average interval between occurrences.

        Args:
            average_interval_days: Mean days between consecutive occurrences

        Returns:
            Matching cadence, or None when the interval fits no band.
        """
        for cadence, low, high in constants.FREQUENCY_BANDS:
            if low <= average_interval_days <= high:
                return cadence
        return None

    def occurring_months(self, spec: ScheduleSpec) -> set[int]:
        """
        Months of the year in which a schedule falls due.

        Args:
            spec: Schedule timing

        Returns:
            Set of month numbers (1-12); empty for unusable schedules.
        """
        cadence = spec.known_cadence
        all_months = set(range(constants.MIN_MONTH, constants.MAX_MONTH + 1))

        if cadence in (Cadence.DAILY, Cadence.WEEKLY, Cadence.BIWEEKLY, Cadence.MONTHLY):
            return all_months
        if cadence == Cadence.QUARTERLY:
            start = spec.anchor_month or constants.DEFAULT_ANCHOR_MONTH
            # Wraps around the year end, so a November start also covers Feb/May/Aug
            return {
                (start - 1 + offset) % constants.MONTHS_PER_YEAR + 1
                for offset in range(0, constants.MONTHS_PER_YEAR, constants.QUARTER_MONTHS)
            }
        if cadence == Cadence.YEARLY:
            return {spec.anchor_month or constants.DEFAULT_ANCHOR_MONTH}
        if cadence == Cadence.CUSTOM:
            pattern = spec.custom_pattern
            if isinstance(pattern, MonthSet):
                return set(pattern.months)
            if isinstance(pattern, DateList):
                return {entry.month for entry in pattern.dates}
        return set()
