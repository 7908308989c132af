"""Tests for configuration, bill file and transaction file loading."""

from datetime import date
from decimal import Decimal

import pytest
import yaml
from pydantic import ValidationError

from billschedule.loader import (
    BillFileRepository,
    find_config_file,
    load_bill_file,
    load_config,
    load_transactions,
    save_bill_file,
)
from billschedule.schema import BillFile, GlobalConfig, MonthSet
from billschedule.types import Cadence, TransactionKind

from tests.conftest import make_bill_file_data


@pytest.fixture
def isolated_cwd(tmp_path, monkeypatch):
    """Run in an empty directory without BILLSCHEDULE_CONFIG set."""
    monkeypatch.delenv("BILLSCHEDULE_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestFindConfigFile:
    """Tests for configuration discovery."""

    def test_env_var(self, isolated_cwd, monkeypatch):
        config_path = isolated_cwd / "custom.yaml"
        config_path.write_text("min_amount: 5\n")
        monkeypatch.setenv("BILLSCHEDULE_CONFIG", str(config_path))

        assert find_config_file() == config_path

    def test_env_var_missing_file_falls_back(self, isolated_cwd, monkeypatch):
        monkeypatch.setenv("BILLSCHEDULE_CONFIG", str(isolated_cwd / "missing.yaml"))
        (isolated_cwd / "billschedule.yaml").write_text("min_amount: 5\n")

        assert find_config_file().name == "billschedule.yaml"

    def test_current_directory(self, isolated_cwd):
        (isolated_cwd / "billschedule.yaml").write_text("min_amount: 5\n")
        assert find_config_file().resolve() == (isolated_cwd / "billschedule.yaml").resolve()

    def test_not_found(self, isolated_cwd):
        assert find_config_file() is None


class TestLoadConfig:
    """Tests for global configuration loading."""

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "config.yaml"
        with path.open("w") as f:
            yaml.dump({"default_currency": "EUR", "min_amount": 25, "detect_kind": "debit"}, f)

        config = load_config(path)

        assert config.default_currency == "EUR"
        assert config.min_amount == 25
        assert config.detect_kind == TransactionKind.DEBIT
        assert config.lookback_months == 6

    def test_defaults_when_not_found(self, isolated_cwd):
        assert load_config() == GlobalConfig()

    def test_discovered_file(self, isolated_cwd):
        (isolated_cwd / "billschedule.yaml").write_text("lookback_months: 12\n")
        assert load_config().lookback_months == 12

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == GlobalConfig()

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("min_amount: -1\n")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("min_amount: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_config(path)


class TestLoadBillFile:
    """Tests for bill file loading."""

    def test_valid_file(self, temp_bill_file):
        bill_file = load_bill_file(temp_bill_file)

        assert [b.id for b in bill_file.bills] == ["rent", "insurance", "gym"]
        rent = bill_file.bills[0]
        assert rent.amount == Decimal("1500")
        assert rent.next_due_date == date(2024, 3, 1)
        assert rent.schedule.cadence == Cadence.MONTHLY
        assert bill_file.bills[1].schedule.anchor_month == 2
        assert not bill_file.bills[2].is_active

    def test_config_section(self, tmp_path):
        path = tmp_path / "bills.yaml"
        with path.open("w") as f:
            yaml.dump(make_bill_file_data(config={"default_currency": "GBP"}), f)

        assert load_bill_file(path).config.default_currency == "GBP"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "bills.yaml"
        path.write_text("")
        assert load_bill_file(path) == BillFile()

    def test_all_bills_commented_out(self, tmp_path):
        path = tmp_path / "bills.yaml"
        path.write_text("version: '1.0'\nbills:\n")
        assert load_bill_file(path).bills == []

    def test_duplicate_ids(self, tmp_path):
        path = tmp_path / "bills.yaml"
        bills = [{"id": "a", "name": "A", "amount": 1}, {"id": "a", "name": "B", "amount": 2}]
        with path.open("w") as f:
            yaml.dump(make_bill_file_data(bills=bills), f)

        with pytest.raises(ValidationError):
            load_bill_file(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bills.yaml"
        path.write_text("bills: [\n")
        with pytest.raises(yaml.YAMLError):
            load_bill_file(path)

    def test_custom_pattern_from_yaml(self, tmp_path):
        path = tmp_path / "bills.yaml"
        bills = [
            {
                "id": "tax",
                "name": "Property Tax",
                "amount": 900,
                "schedule": {"cadence": "custom", "custom_pattern": {"months": [10, 4]}},
            }
        ]
        with path.open("w") as f:
            yaml.dump(make_bill_file_data(bills=bills), f)

        pattern = load_bill_file(path).bills[0].schedule.custom_pattern

        assert pattern == MonthSet(months=(4, 10))


class TestSaveBillFile:
    """Tests for writing bill files."""

    def test_round_trip(self, temp_bill_file, tmp_path):
        original = load_bill_file(temp_bill_file)
        out = tmp_path / "copy.yaml"

        save_bill_file(original, out)

        assert load_bill_file(out) == original

    def test_custom_pattern_round_trip(self, tmp_path, sample_bill):
        bill = sample_bill(
            id="tax",
            cadence=Cadence.CUSTOM,
            custom_pattern={"dates": [{"month": 4, "day": 15}]},
        )
        out = tmp_path / "bills.yaml"

        save_bill_file(BillFile(bills=[bill]), out)

        assert load_bill_file(out).bills[0].schedule == bill.schedule


class TestLoadTransactions:
    """Tests for transaction file reading."""

    def test_csv(self, tmp_path):
        path = tmp_path / "transactions.csv"
        path.write_text(
            "description,amount,date,kind,category_id,memo\n"
            "SALARY JT055236A,2000.00,2024-01-28,credit,,ignored\n"
            "NETFLIX.COM,-15.49,2024-01-05,debit,12,\n"
        )

        records = load_transactions(path)

        assert records == [
            {
                "description": "SALARY JT055236A",
                "amount": "2000.00",
                "date": "2024-01-28",
                "kind": "credit",
            },
            {
                "description": "NETFLIX.COM",
                "amount": "-15.49",
                "date": "2024-01-05",
                "kind": "debit",
                "category_id": "12",
            },
        ]

    def test_yaml_list(self, tmp_path):
        path = tmp_path / "transactions.yaml"
        path.write_text(
            "- description: SALARY\n"
            "  amount: 2000\n"
            "  date: 2024-01-28\n"
            "  kind: credit\n"
        )

        records = load_transactions(path)

        assert records == [
            {"description": "SALARY", "amount": 2000, "date": date(2024, 1, 28), "kind": "credit"}
        ]

    def test_yaml_mapping(self, tmp_path):
        path = tmp_path / "transactions.yaml"
        path.write_text("transactions:\n  - description: SALARY\n    amount: 2000\n")
        assert len(load_transactions(path)) == 1

    def test_yaml_empty(self, tmp_path):
        path = tmp_path / "transactions.yaml"
        path.write_text("")
        assert load_transactions(path) == []

    def test_yaml_not_a_list(self, tmp_path):
        path = tmp_path / "transactions.yaml"
        path.write_text("transactions: 42\n")
        with pytest.raises(ValueError):
            load_transactions(path)


class TestBillFileRepository:
    """Tests for the YAML-backed bill repository."""

    def test_find_active(self, temp_bill_file):
        repository = BillFileRepository(temp_bill_file)
        assert [b.id for b in repository.find_active("anyone")] == ["rent", "insurance"]

    def test_updates_persist_on_save(self, temp_bill_file):
        repository = BillFileRepository(temp_bill_file)

        repository.mark_reminder_sent("rent", date(2024, 2, 27))
        repository.save_next_due_date("insurance", date(2024, 8, 10))
        repository.save()

        reloaded = load_bill_file(temp_bill_file)
        assert reloaded.bills[0].last_reminder_sent == date(2024, 2, 27)
        assert reloaded.bills[1].next_due_date == date(2024, 8, 10)

    def test_updates_stay_in_memory_until_save(self, temp_bill_file):
        repository = BillFileRepository(temp_bill_file)

        repository.mark_reminder_sent("rent", date(2024, 2, 27))

        assert repository.dirty
        assert load_bill_file(temp_bill_file).bills[0].last_reminder_sent is None

    def test_unknown_bill(self, temp_bill_file):
        repository = BillFileRepository(temp_bill_file)
        with pytest.raises(KeyError):
            repository.mark_reminder_sent("nope", date(2024, 2, 27))
