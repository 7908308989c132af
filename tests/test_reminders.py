"""Tests for reminder decisions and the reminder job."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from billschedule.reminders import (
    ReminderJob,
    days_until,
    evaluate_bill,
    format_amount,
    should_send_reminder,
)
from billschedule.types import NotificationKind

TODAY = date(2024, 3, 18)


class FakeRepository:
    """In-memory ScheduleRepository recording every write."""

    def __init__(self, bills_by_user):
        self.bills_by_user = bills_by_user
        self.saved_due_dates = {}
        self.reminders_sent = {}

    def find_active(self, user_id):
        return [b for b in self.bills_by_user.get(user_id, []) if b.is_active]

    def save_next_due_date(self, bill_id, next_due_date):
        self.saved_due_dates[bill_id] = next_due_date

    def mark_reminder_sent(self, bill_id, sent_on):
        self.reminders_sent[bill_id] = sent_on


class FakeSink:
    """NotificationSink collecting notifications, optionally failing for some bills."""

    def __init__(self, fail_for=()):
        self.notifications = []
        self.fail_for = set(fail_for)

    def notify(self, notification):
        if notification.bill_id in self.fail_for:
            raise RuntimeError("delivery failed")
        self.notifications.append(notification)


class TestFormatAmount:
    """Tests for currency formatting."""

    @pytest.mark.parametrize(
        "amount,currency,expected",
        [
            (Decimal("1234.5"), "USD", "$1,234.50"),
            (Decimal("9.99"), "eur", "€9.99"),
            (Decimal("1000000"), "GBP", "£1,000,000.00"),
            (Decimal("10"), "XYZ", "XYZ 10.00"),
            (Decimal("50"), "CHF", "CHF50.00"),
            (Decimal("3"), None, "$3.00"),
        ],
    )
    def test_format(self, amount, currency, expected):
        assert format_amount(amount, currency) == expected


class TestReminderWindow:
    """Tests for the reminder and overdue rules."""

    def test_days_until_is_signed(self):
        assert days_until(TODAY, TODAY + timedelta(days=3)) == 3
        assert days_until(TODAY, TODAY - timedelta(days=2)) == -2

    def test_never_sent(self):
        assert should_send_reminder(None, TODAY)

    def test_sent_for_previous_occurrence(self):
        assert should_send_reminder(TODAY - timedelta(days=8), TODAY)

    def test_sent_within_a_week_of_due_date(self):
        assert not should_send_reminder(TODAY - timedelta(days=7), TODAY)
        assert not should_send_reminder(TODAY, TODAY)

    def test_reminder_inside_window(self, sample_bill):
        bill = sample_bill(reminder_days=3, next_due_date=TODAY + timedelta(days=3))

        notification = evaluate_bill(bill, TODAY, user_id="u1")

        assert notification.kind == NotificationKind.REMINDER
        assert notification.days == 3
        assert notification.bill_id == "rent"
        assert notification.bill_name == "Rent"
        assert notification.formatted_amount == "$1,500.00"
        assert notification.user_id == "u1"

    def test_no_reminder_outside_window(self, sample_bill):
        bill = sample_bill(reminder_days=3, next_due_date=TODAY + timedelta(days=4))
        assert evaluate_bill(bill, TODAY) is None

    def test_due_today(self, sample_bill):
        bill = sample_bill(reminder_days=0, next_due_date=TODAY)
        notification = evaluate_bill(bill, TODAY)
        assert notification.kind == NotificationKind.REMINDER
        assert notification.days == 0

    def test_overdue(self, sample_bill):
        bill = sample_bill(reminder_days=3, next_due_date=TODAY - timedelta(days=2))
        notification = evaluate_bill(bill, TODAY)
        assert notification.kind == NotificationKind.OVERDUE
        assert notification.days == -2

    def test_already_reminded(self, sample_bill):
        bill = sample_bill(
            reminder_days=3,
            next_due_date=TODAY + timedelta(days=1),
            last_reminder_sent=TODAY - timedelta(days=1),
        )
        assert evaluate_bill(bill, TODAY) is None

    def test_without_reminder_days(self, sample_bill):
        bill = sample_bill(next_due_date=TODAY)
        assert evaluate_bill(bill, TODAY) is None

    def test_without_due_date(self, sample_bill):
        assert evaluate_bill(sample_bill(reminder_days=3), TODAY) is None

    def test_bill_currency_wins(self, sample_bill):
        bill = sample_bill(reminder_days=3, next_due_date=TODAY, currency="EUR")
        assert evaluate_bill(bill, TODAY, default_currency="GBP").formatted_amount == "€1,500.00"

    def test_default_currency_used(self, sample_bill):
        bill = sample_bill(reminder_days=3, next_due_date=TODAY)
        assert evaluate_bill(bill, TODAY, default_currency="GBP").formatted_amount == "£1,500.00"


class TestReminderJob:
    """Tests for the reminder job."""

    def test_sends_and_marks(self, sample_bill):
        bill = sample_bill(reminder_days=3, next_due_date=TODAY + timedelta(days=2))
        repository = FakeRepository({"u1": [bill]})
        sink = FakeSink()

        summary = ReminderJob(repository, sink).run(["u1"], TODAY)

        assert summary.sent == 1
        assert summary.failed == 0
        assert len(sink.notifications) == 1
        assert sink.notifications[0].user_id == "u1"
        assert repository.reminders_sent == {"rent": TODAY}

    def test_missing_due_date_computed_and_saved(self, sample_bill):
        bill = sample_bill(anchor_day=20, reminder_days=5)
        repository = FakeRepository({"u1": [bill]})
        sink = FakeSink()

        summary = ReminderJob(repository, sink).run(["u1"], TODAY)

        assert repository.saved_due_dates == {"rent": date(2024, 3, 20)}
        assert summary.rescheduled == 1
        assert summary.sent == 1
        assert sink.notifications[0].days == 2

    def test_bills_without_reminders_skipped(self, sample_bill):
        bill = sample_bill()
        repository = FakeRepository({"u1": [bill]})

        summary = ReminderJob(repository, FakeSink()).run(["u1"], TODAY)

        assert summary.sent == 0
        assert summary.rescheduled == 0
        assert repository.saved_due_dates == {}

    def test_inactive_bills_skipped(self, sample_bill):
        bill = sample_bill(reminder_days=3, next_due_date=TODAY, is_active=False)
        sink = FakeSink()
        ReminderJob(FakeRepository({"u1": [bill]}), sink).run(["u1"], TODAY)
        assert sink.notifications == []

    def test_failure_isolated_per_bill(self, sample_bill):
        bills = [
            sample_bill(id="a", name="A", reminder_days=3, next_due_date=TODAY),
            sample_bill(id="b", name="B", reminder_days=3, next_due_date=TODAY),
            sample_bill(id="c", name="C", reminder_days=3, next_due_date=TODAY),
        ]
        repository = FakeRepository({"u1": bills})
        sink = FakeSink(fail_for={"b"})

        summary = ReminderJob(repository, sink).run(["u1"], TODAY)

        assert summary.sent == 2
        assert summary.failed == 1
        assert [n.bill_id for n in sink.notifications] == ["a", "c"]
        assert set(repository.reminders_sent) == {"a", "c"}

    def test_failure_isolated_per_user(self, sample_bill):
        class BrokenForFirstUser(FakeRepository):
            def find_active(self, user_id):
                if user_id == "u1":
                    raise RuntimeError("storage unavailable")
                return super().find_active(user_id)

        repository = BrokenForFirstUser(
            {
                "u1": [sample_bill(id="a", name="A", reminder_days=3, next_due_date=TODAY)],
                "u2": [sample_bill(id="b", name="B", reminder_days=3, next_due_date=TODAY)],
            }
        )
        sink = FakeSink()

        summary = ReminderJob(repository, sink).run(["u1", "u2"], TODAY)

        assert summary.failed == 1
        assert summary.sent == 1
        assert [(n.user_id, n.bill_id) for n in sink.notifications] == [("u2", "b")]
        assert repository.reminders_sent == {"b": TODAY}

    def test_multiple_users(self, sample_bill):
        repository = FakeRepository(
            {
                "u1": [sample_bill(id="a", name="A", reminder_days=1, next_due_date=TODAY)],
                "u2": [sample_bill(id="b", name="B", reminder_days=1, next_due_date=TODAY)],
            }
        )
        sink = FakeSink()

        ReminderJob(repository, sink, default_currency="EUR").run(["u1", "u2"], TODAY)

        assert [(n.user_id, n.formatted_amount) for n in sink.notifications] == [
            ("u1", "€1,500.00"),
            ("u2", "€1,500.00"),
        ]

    def test_overdue_notice_sent(self, sample_bill):
        bill = sample_bill(reminder_days=3, next_due_date=TODAY - timedelta(days=5))
        sink = FakeSink()

        ReminderJob(FakeRepository({"u1": [bill]}), sink).run(["u1"], TODAY)

        assert sink.notifications[0].kind == NotificationKind.OVERDUE
        assert sink.notifications[0].days == -5
