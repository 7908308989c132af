"""Recurring transaction pattern detection engine.

Groups transactions by normalized description, drops amount outliers,
measures the intervals between occurrences and classifies them into a
cadence with a confidence score.
"""

import logging
import statistics
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from . import constants
from .descriptions import match_pattern, normalize_description, suggest_name, suggest_source
from .frequency import FrequencyEngine, to_decimal
from .schema import DetectedPattern, DetectionResult, RejectedEntry, TransactionSample
from .types import Cadence, RejectionReason, TransactionKind

logger = logging.getLogger(__name__)


def round_half_up(value: Union[Decimal, float, int], digits: int = 0) -> Decimal:
    """Round away from zero on ties (2.5 -> 3), unlike the built-in round()."""
    exponent = Decimal(1).scaleb(-digits)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def population_std_dev(values: list) -> Union[Decimal, float]:
    """Population standard deviation; 0 for fewer than two values."""
    if len(values) < 2:
        return 0
    return statistics.pstdev(values)


def lookback_window(today: date, months: int) -> tuple[date, date]:
    """Date range covering ``months`` months of history up to ``today``.

    Args:
        today: End of the window (inclusive)
        months: Number of months to look back

    Returns:
        (start_date, end_date) to request from a transaction source.
    """
    if months < 0:
        raise ValueError("lookback months must be non-negative")
    return today - relativedelta(months=months), today


@dataclass
class TransactionGroup:
    """Transactions sharing a normalized description."""

    key: str
    """Normalized grouping key."""

    description: str
    """Original description of the first transaction seen."""

    category_id: Any = None
    """Category of the first transaction seen."""

    account_id: Any = None
    """Account of the first transaction seen."""

    transactions: list[TransactionSample] = field(default_factory=list)
    """Transactions in input order."""

    @property
    def count(self) -> int:
        """Number of transactions in group."""
        return len(self.transactions)


@dataclass
class IntervalAnalysis:
    """Statistics of the gaps between consecutive occurrence dates."""

    dates: list[date] = field(default_factory=list)
    """Sorted occurrence dates."""

    intervals: list[int] = field(default_factory=list)
    """Days between consecutive dates."""

    average: float = 0.0
    """Mean interval in days (0 without intervals)."""

    std_dev: float = 0.0
    """Population standard deviation of intervals."""


class PatternDetector:
    """Detects recurring income (or expense) series in transaction history.

    Holds only immutable configuration, so a single instance can serve
    concurrent detection runs.
    """

    def __init__(
        self,
        min_amount: float = constants.DEFAULT_MIN_AMOUNT,
        kind: TransactionKind = TransactionKind.CREDIT,
        engine: Optional[FrequencyEngine] = None,
    ):
        """Initialize detector.

        Args:
            min_amount: Ignore transactions whose absolute amount is below this.
            kind: Transaction kind to analyze (credit for income).
            engine: Frequency engine used to classify intervals.
        """
        if min_amount is None or min_amount < 0:
            raise ValueError("min_amount must be a non-negative number")
        self.min_amount = min_amount
        self.kind = TransactionKind(kind)
        self.engine = engine or FrequencyEngine()

    def detect(
        self,
        transactions: Iterable[Union[TransactionSample, Mapping]],
        min_amount: Optional[float] = None,
        lookback_months: int = constants.DEFAULT_LOOKBACK_MONTHS,
        debug: bool = False,
        today: Optional[date] = None,
    ) -> DetectionResult:
        """Main detection pipeline.

        Args:
            transactions: Transaction samples (mappings are validated first).
            min_amount: Override of the configured minimum amount.
            lookback_months: Months of history to analyze, counted back from
                ``today``.
            debug: Report rejected groups in ``DetectionResult.rejected``.
            today: End of the lookback window (defaults to the current date).

        Returns:
            DetectionResult with patterns sorted by confidence (highest first).
        """
        if transactions is None:
            raise ValueError("transactions are required")
        if lookback_months is None or lookback_months < 0:
            raise ValueError("lookback_months must be non-negative")
        if min_amount is None:
            min_amount = self.min_amount
        elif min_amount < 0:
            raise ValueError("min_amount must be non-negative")

        rejected: list[RejectedEntry] = []
        samples = self._coerce_samples(transactions, rejected)

        samples = self.filter_window(samples, lookback_months, today)
        eligible = self.filter_transactions(samples, min_amount)

        groups = self.group_transactions(eligible)
        logger.info("Grouped %d transactions into %d groups", len(eligible), len(groups))

        detected: list[DetectedPattern] = []
        for group in groups:
            kept = self.filter_outliers(group)
            analysis = self.analyze_intervals(kept)

            if len(analysis.dates) < constants.MIN_OCCURRENCES:
                logger.debug(
                    "Rejecting '%s': only %d occurrences",
                    group.description,
                    len(analysis.dates),
                )
                rejected.append(
                    self._reject(group, analysis, RejectionReason.TOO_FEW_OCCURRENCES)
                )
                continue

            cadence = self.engine.detect_frequency(analysis.average)
            if cadence is None:
                logger.debug(
                    "Rejecting '%s': average interval %.1f days matches no frequency",
                    group.description,
                    analysis.average,
                )
                rejected.append(
                    self._reject(group, analysis, RejectionReason.NO_MATCHING_FREQUENCY)
                )
                continue

            detected.append(self._create_pattern(group, kept, analysis, cadence))

        # Stable sort keeps group order for equal confidence
        detected.sort(key=lambda p: p.confidence, reverse=True)
        logger.info("Detected %d recurring patterns (%d rejected)", len(detected), len(rejected))

        if debug and rejected:
            return DetectionResult(detected=detected, rejected=rejected)
        return DetectionResult(detected=detected)

    def _coerce_samples(
        self,
        transactions: Iterable[Union[TransactionSample, Mapping]],
        rejected: list[RejectedEntry],
    ) -> list[TransactionSample]:
        """Validate raw records; malformed ones become rejections."""
        samples = []
        for record in transactions:
            if isinstance(record, TransactionSample):
                samples.append(record)
                continue
            try:
                if isinstance(record, Mapping):
                    samples.append(TransactionSample.model_validate(record))
                else:
                    samples.append(TransactionSample.model_validate(record, from_attributes=True))
            except ValidationError as e:
                description = self._record_description(record)
                logger.debug("Skipping malformed transaction %r: %s", description, e)
                rejected.append(
                    RejectedEntry(
                        description=description,
                        occurrence_count=1,
                        average_interval_days=0.0,
                        reason=RejectionReason.MALFORMED_RECORD,
                    )
                )
        return samples

    @staticmethod
    def _record_description(record: Any) -> str:
        if isinstance(record, Mapping):
            value = record.get("description")
        else:
            value = getattr(record, "description", None)
        return str(value) if value is not None else ""

    def filter_window(
        self,
        samples: list[TransactionSample],
        lookback_months: int,
        today: Optional[date] = None,
    ) -> list[TransactionSample]:
        """Keep samples dated within the lookback window ending at ``today``."""
        if today is None:
            today = date.today()
        start, end = lookback_window(today, lookback_months)
        return [s for s in samples if start <= s.date <= end]

    def filter_transactions(
        self,
        samples: list[TransactionSample],
        min_amount: float,
    ) -> list[TransactionSample]:
        """Keep samples of the configured kind with |amount| >= min_amount."""
        threshold = to_decimal(min_amount)
        return [s for s in samples if s.kind == self.kind and abs(s.amount) >= threshold]

    def group_transactions(self, samples: list[TransactionSample]) -> list[TransactionGroup]:
        """Group samples by normalized description (amount is not part of the key).

        Args:
            samples: Filtered transaction samples.

        Returns:
            Groups in order of first appearance.
        """
        groups: dict[str, TransactionGroup] = {}
        for sample in samples:
            key = normalize_description(sample.description)
            group = groups.get(key)
            if group is None:
                group = TransactionGroup(
                    key=key,
                    description=sample.description,
                    category_id=sample.category_id,
                    account_id=sample.account_id,
                )
                groups[key] = group
            group.transactions.append(sample)
        return list(groups.values())

    def filter_outliers(self, group: TransactionGroup) -> list[TransactionSample]:
        """Drop amounts more than 50% away from the group median.

        Falls back to the unfiltered transactions when fewer than two survive,
        and skips filtering entirely when the median is zero.
        """
        amounts = sorted(abs(t.amount) for t in group.transactions)
        if not amounts:
            return []
        median = statistics.median_high(amounts)
        if median == 0:
            return list(group.transactions)

        kept = [
            t
            for t in group.transactions
            if abs(abs(t.amount) - median) / median <= constants.OUTLIER_MAX_DEVIATION
        ]
        if len(kept) < constants.MIN_OCCURRENCES:
            return list(group.transactions)
        if len(kept) < group.count:
            logger.debug(
                "Dropped %d outlier amounts from '%s' (median %s)",
                group.count - len(kept),
                group.description,
                median,
            )
        return kept

    def analyze_intervals(self, samples: list[TransactionSample]) -> IntervalAnalysis:
        """Sort dates and compute the gaps between consecutive occurrences."""
        dates = sorted(s.date for s in samples)
        intervals = [(dates[i] - dates[i - 1]).days for i in range(1, len(dates))]
        if not intervals:
            return IntervalAnalysis(dates=dates)

        return IntervalAnalysis(
            dates=dates,
            intervals=intervals,
            average=float(statistics.mean(intervals)),
            std_dev=float(population_std_dev(intervals)),
        )

    def calculate_confidence(
        self,
        occurrence_count: int,
        interval_std_dev: float,
        average_amount: Decimal,
        amount_std_dev: Decimal,
    ) -> float:
        """Confidence score for a detected pattern.

        Scoring:
        - Sample size: occurrences / 6, capped at 1.0
        - Irregular intervals (std dev > 7 days): x0.8
        - Varying amounts (std dev > 20% of the average): x0.85

        Returns:
            Confidence score from 0.0 to 1.0.
        """
        confidence = min(1.0, occurrence_count / constants.FULL_CONFIDENCE_OCCURRENCES)

        if interval_std_dev > constants.INTERVAL_STDDEV_TOLERANCE_DAYS:
            confidence *= constants.INTERVAL_STDDEV_PENALTY

        if amount_std_dev > average_amount * constants.AMOUNT_STDDEV_TOLERANCE_RATIO:
            confidence *= constants.AMOUNT_STDDEV_PENALTY

        return confidence

    def _create_pattern(
        self,
        group: TransactionGroup,
        kept: list[TransactionSample],
        analysis: IntervalAnalysis,
        cadence: Cadence,
    ) -> DetectedPattern:
        amounts = [abs(t.amount) for t in kept]
        average_amount = sum(amounts) / len(amounts)
        amount_std_dev = to_decimal(population_std_dev(amounts))

        occurrence_count = len(analysis.dates)
        confidence = self.calculate_confidence(
            occurrence_count, analysis.std_dev, average_amount, amount_std_dev
        )
        expected_day = round_half_up(statistics.mean(d.day for d in analysis.dates))

        logger.debug(
            "Detected %s pattern '%s': %d occurrences, confidence %.2f",
            cadence.value,
            group.description,
            occurrence_count,
            confidence,
        )

        return DetectedPattern(
            description=group.description,
            suggested_name=suggest_name(group.description),
            suggested_source=suggest_source(group.description),
            average_amount=round_half_up(average_amount, 2),
            cadence=cadence,
            expected_day_of_month=int(expected_day),
            category_id=group.category_id,
            account_id=group.account_id,
            occurrence_count=occurrence_count,
            confidence=float(round_half_up(confidence, constants.CONFIDENCE_DIGITS)),
            match_pattern=match_pattern(group.description),
            last_seen_date=analysis.dates[-1],
            amount_variance=round_half_up(amount_std_dev, 2),
            average_interval_days=float(
                round_half_up(analysis.average, constants.INTERVAL_DIGITS)
            ),
        )

    def _reject(
        self,
        group: TransactionGroup,
        analysis: IntervalAnalysis,
        reason: RejectionReason,
    ) -> RejectedEntry:
        return RejectedEntry(
            description=group.description,
            occurrence_count=len(analysis.dates),
            average_interval_days=float(
                round_half_up(analysis.average, constants.INTERVAL_DIGITS)
            ),
            reason=reason,
        )
