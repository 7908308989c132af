"""Pytest configuration and shared fixtures for billschedule tests."""

from datetime import date
from decimal import Decimal

import pytest
import yaml
from dateutil.relativedelta import relativedelta

from billschedule.detector import PatternDetector
from billschedule.frequency import FrequencyEngine
from billschedule.schema import (
    Bill,
    BillFile,
    DetectedPattern,
    GlobalConfig,
    ScheduleSpec,
    TransactionSample,
)
from billschedule.types import Cadence, TransactionKind

# ============================================================================
# Transaction Builders
# ============================================================================


def make_sample(
    description: str = "SALARY JT055236A",
    amount: Decimal = Decimal("2000.00"),
    date_: date = date(2024, 1, 28),
    kind: TransactionKind = TransactionKind.CREDIT,
    **kwargs,
) -> TransactionSample:
    """Create a TransactionSample with sensible defaults."""
    return TransactionSample(
        description=description,
        amount=amount,
        date=date_,
        kind=kind,
        category_id=kwargs.get("category_id"),
        account_id=kwargs.get("account_id"),
    )


def make_series(
    description: str,
    start: date,
    count: int,
    amounts=None,
    step: relativedelta = relativedelta(months=1),
    kind: TransactionKind = TransactionKind.CREDIT,
) -> list[TransactionSample]:
    """Create ``count`` samples spaced by ``step`` starting at ``start``.

    ``amounts`` is either a single amount or a list with one entry per sample.
    """
    if amounts is None:
        amounts = Decimal("2000.00")
    if not isinstance(amounts, (list, tuple)):
        amounts = [amounts] * count

    return [
        make_sample(description, Decimal(str(amounts[i])), start + step * i, kind=kind)
        for i in range(count)
    ]


# ============================================================================
# Pattern Builders
# ============================================================================


def make_pattern(**kwargs) -> DetectedPattern:
    """Create a DetectedPattern for a monthly salary; keyword arguments override fields."""
    data = {
        "description": "SALARY JT055236A",
        "suggested_name": "Salary",
        "suggested_source": "Acme",
        "average_amount": Decimal("2000.00"),
        "cadence": Cadence.MONTHLY,
        "expected_day_of_month": 28,
        "category_id": "income",
        "account_id": 7,
        "occurrence_count": 6,
        "confidence": 0.9,
        "match_pattern": "SALARY",
        "last_seen_date": date(2024, 6, 28),
        "amount_variance": Decimal("0"),
        "average_interval_days": 30.4,
    }
    data.update(kwargs)
    return DetectedPattern(**data)


# ============================================================================
# Bill Builders
# ============================================================================


def make_spec(cadence=Cadence.MONTHLY, **kwargs) -> ScheduleSpec:
    """Create a ScheduleSpec; keyword arguments map to its fields."""
    return ScheduleSpec(cadence=cadence, **kwargs)


def make_bill(
    id: str = "rent",
    name: str = "Rent",
    amount: Decimal = Decimal("1500.00"),
    cadence=Cadence.MONTHLY,
    anchor_day: int = 1,
    **kwargs,
) -> Bill:
    """Create a Bill with a schedule built from cadence and anchor_day."""
    schedule = kwargs.pop(
        "schedule",
        make_spec(
            cadence,
            anchor_day=anchor_day,
            anchor_month=kwargs.pop("anchor_month", None),
            custom_pattern=kwargs.pop("custom_pattern", None),
        ),
    )
    return Bill(id=id, name=name, amount=amount, schedule=schedule, **kwargs)


def make_bill_file_data(bills: list[dict] = None, config: dict = None) -> dict:
    """Raw bill file document as it appears in YAML."""
    if bills is None:
        bills = [
            {
                "id": "rent",
                "name": "Rent",
                "amount": 1500.00,
                "schedule": {"cadence": "monthly", "anchor_day": 1},
                "next_due_date": "2024-03-01",
                "reminder_days": 3,
                "match_pattern": "PROPERTY MGMT",
            },
            {
                "id": "insurance",
                "name": "Car Insurance",
                "amount": 600.00,
                "schedule": {"cadence": "quarterly", "anchor_day": 10, "anchor_month": 2},
                "next_due_date": "2024-05-10",
            },
            {
                "id": "gym",
                "name": "Gym",
                "amount": 40.00,
                "schedule": {"cadence": "monthly", "anchor_day": 15},
                "is_active": False,
            },
        ]
    data = {"version": "1.0", "bills": bills}
    if config is not None:
        data["config"] = config
    return data


# ============================================================================
# Pytest Fixtures
# ============================================================================


@pytest.fixture
def engine():
    """Fixture providing a FrequencyEngine."""
    return FrequencyEngine()


@pytest.fixture
def detector():
    """Fixture providing a PatternDetector for income detection."""
    return PatternDetector()


@pytest.fixture
def sample_transaction():
    """Fixture providing a transaction builder function."""
    return make_sample


@pytest.fixture
def sample_series():
    """Fixture providing a transaction series builder function."""
    return make_series


@pytest.fixture
def sample_bill():
    """Fixture providing a bill builder function."""
    return make_bill


@pytest.fixture
def global_config():
    """Fixture providing default GlobalConfig."""
    return GlobalConfig()


@pytest.fixture
def temp_bill_file(tmp_path):
    """Create a bill file with three bills (one inactive)."""
    path = tmp_path / "bills.yaml"
    with path.open("w") as f:
        yaml.dump(make_bill_file_data(), f)
    return path


@pytest.fixture
def empty_bill_file():
    """Fixture providing an empty BillFile."""
    return BillFile()
