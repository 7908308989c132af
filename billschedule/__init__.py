"""Billschedule - Bill scheduling and recurring income detection.

This package computes next due dates and amount conversions for recurring
bills, and detects recurring income (or expense) series in raw transaction
history.

Main exports:
    FrequencyEngine: Next due dates, monthly equivalents, cadence detection
    PatternDetector: Recurring pattern detection over transactions
"""

from .detector import PatternDetector
from .frequency import FrequencyEngine
from .schema import Bill, DetectedPattern, DetectionResult, ScheduleSpec, TransactionSample
from .types import Cadence

__all__ = [
    "Bill",
    "Cadence",
    "DetectedPattern",
    "DetectionResult",
    "FrequencyEngine",
    "PatternDetector",
    "ScheduleSpec",
    "TransactionSample",
]
__version__ = "1.0.0"
