"""
Global constants for billschedule.

This module centralizes magic strings, thresholds, and default values
used by the frequency engine, the pattern detector and the reminder job.
"""

from decimal import Decimal

from .types import Cadence

# ============================================================================
# File Paths and Environment
# ============================================================================

DEFAULT_CONFIG_FILE = "billschedule.yaml"
ENV_CONFIG_FILE = "BILLSCHEDULE_CONFIG"

# Columns accepted in transaction CSV files
TRANSACTION_CSV_FIELDS = ("description", "amount", "date", "kind", "category_id", "account_id")

# ============================================================================
# Default Configuration Values
# ============================================================================

DEFAULT_CURRENCY = "USD"
DEFAULT_MIN_AMOUNT = 10.0
DEFAULT_LOOKBACK_MONTHS = 6
DEFAULT_ANCHOR_DAY = 1
DEFAULT_ANCHOR_MONTH = 1
DEFAULT_WEEKDAY = 1  # ISO Monday

# ============================================================================
# Validation Constraints
# ============================================================================

MIN_DAY_OF_MONTH = 1
MAX_DAY_OF_MONTH = 31
MIN_MONTH = 1
MAX_MONTH = 12
MONTHS_PER_YEAR = 12

# Quarterly and yearly due days never exceed this, whatever the anchor day
SAFE_DAY_CAP = 28

# ============================================================================
# Date Arithmetic
# ============================================================================

DAYS_PER_WEEK = 7
BIWEEKLY_DAYS = 14
QUARTER_MONTHS = 3

# Occurrences per year used by yearly totals (unknown cadences count as monthly)
OCCURRENCES_PER_YEAR = {
    Cadence.DAILY: 365,
    Cadence.WEEKLY: 52,
    Cadence.BIWEEKLY: 26,
    Cadence.MONTHLY: 12,
    Cadence.QUARTERLY: 4,
    Cadence.YEARLY: 1,
}
DEFAULT_OCCURRENCES_PER_YEAR = 12

# Multipliers from a per-occurrence amount to a per-month amount
MONTHLY_MULTIPLIERS = {
    Cadence.DAILY: Decimal(30),
    Cadence.WEEKLY: Decimal(52) / Decimal(12),
    Cadence.BIWEEKLY: Decimal(26) / Decimal(12),
    Cadence.MONTHLY: Decimal(1),
    Cadence.QUARTERLY: Decimal(1) / Decimal(3),
    Cadence.YEARLY: Decimal(1) / Decimal(12),
}

# ============================================================================
# Frequency Detection Bands (average interval in days, inclusive)
# ============================================================================

# Checked in this order; the first matching band wins
FREQUENCY_BANDS = (
    (Cadence.DAILY, 0.5, 1.5),
    (Cadence.WEEKLY, 6.0, 8.0),
    (Cadence.BIWEEKLY, 12.0, 16.0),
    (Cadence.MONTHLY, 23.0, 37.0),  # wide enough for four-week cycles
    (Cadence.QUARTERLY, 85.0, 100.0),
    (Cadence.YEARLY, 350.0, 380.0),
)

# ============================================================================
# Pattern Detection
# ============================================================================

MIN_OCCURRENCES = 2
OUTLIER_MAX_DEVIATION = Decimal("0.5")  # 50% from the group median

# Confidence scoring
FULL_CONFIDENCE_OCCURRENCES = 6
INTERVAL_STDDEV_TOLERANCE_DAYS = 7
INTERVAL_STDDEV_PENALTY = 0.8
AMOUNT_STDDEV_TOLERANCE_RATIO = Decimal("0.2")
AMOUNT_STDDEV_PENALTY = 0.85

UNKNOWN_SOURCE = "Unknown Source"
MATCH_PATTERN_MAX_WORDS = 3
MATCH_PATTERN_MIN_WORD_LENGTH = 3

# Output rounding
CENTS_PRECISION = Decimal("0.01")
CONFIDENCE_DIGITS = 2
INTERVAL_DIGITS = 1

# ============================================================================
# Reminders
# ============================================================================

# A reminder sent more than this many days before the due date belongs to
# the previous occurrence
REMINDER_REPEAT_AFTER_DAYS = 7
BILL_MATCH_AMOUNT_TOLERANCE = Decimal("0.1")  # 10%
DEFAULT_UPCOMING_DAYS = 30

# Bill selection for the annual overview
BILL_STATUS_ACTIVE = "active"
BILL_STATUS_INACTIVE = "inactive"
BILL_STATUS_ALL = "all"
BILL_STATUSES = (BILL_STATUS_ACTIVE, BILL_STATUS_INACTIVE, BILL_STATUS_ALL)

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "CHF": "CHF",
    "CNY": "¥",
}

# ============================================================================
# Display/Formatting Constants
# ============================================================================

MAX_TABLE_COLUMN_WIDTH = 30
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
