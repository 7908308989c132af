"""YAML configuration, bill file and transaction file loading."""

import csv
import logging
import os
from datetime import date
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from . import constants
from .schema import Bill, BillFile, ExternalId, GlobalConfig

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def find_config_file() -> Optional[Path]:
    """
    Locate the global configuration file.

    Search order (highest to lowest priority):
    1. BILLSCHEDULE_CONFIG environment variable
    2. billschedule.yaml in current directory

    Returns:
        Path to the configuration file or None if not found
    """
    if env_file := os.getenv(constants.ENV_CONFIG_FILE):
        path = Path(env_file)
        if path.is_file():
            return path
        logger.warning("%s points to non-existent file: %s", constants.ENV_CONFIG_FILE, env_file)

    cwd_file = Path.cwd() / constants.DEFAULT_CONFIG_FILE
    if cwd_file.is_file():
        return cwd_file

    return None


def _read_yaml(path: Path) -> Any:
    try:
        with path.open() as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("YAML parsing error in %s: %s", path, e)
        raise


def load_config(path: Optional[PathLike] = None) -> GlobalConfig:
    """
    Load global configuration.

    Args:
        path: Explicit configuration file. If None, uses find_config_file().

    Returns:
        GlobalConfig (defaults when no file is found or the file is empty)

    Raises:
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If schema validation fails
    """
    config_path = Path(path) if path is not None else find_config_file()
    if config_path is None:
        logger.debug("No configuration file found, using defaults")
        return GlobalConfig()

    data = _read_yaml(config_path)
    if data is None:
        logger.warning("Empty configuration file: %s", config_path)
        return GlobalConfig()

    config = GlobalConfig(**data)
    logger.debug("Loaded configuration from: %s", config_path)
    return config


def load_bill_file(path: PathLike) -> BillFile:
    """
    Load and validate a bill file.

    Args:
        path: Path to a YAML document with ``config`` and ``bills`` keys

    Returns:
        BillFile object (empty when the file is empty)

    Raises:
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If schema validation fails
    """
    path = Path(path)
    logger.info("Loading bills from: %s", path)

    data = _read_yaml(path)
    if data is None:
        logger.warning("Empty bill file: %s", path)
        return BillFile()

    # All bills commented out
    if data.get("bills") is None:
        data["bills"] = []

    try:
        bill_file = BillFile(**data)
    except ValueError as e:
        logger.error("Invalid bill file %s: %s", path, e)
        raise

    logger.info(
        "Loaded %d bills (%d active)",
        len(bill_file.bills),
        sum(1 for b in bill_file.bills if b.is_active),
    )
    return bill_file


def save_bill_file(bill_file: BillFile, path: PathLike) -> None:
    """Write a bill file back to YAML."""
    data = bill_file.model_dump(mode="json", exclude_none=True)
    with Path(path).open("w") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
    logger.debug("Wrote %d bills to %s", len(bill_file.bills), path)


def load_transactions(path: PathLike) -> list[dict]:
    """
    Read raw transaction records from CSV or YAML.

    CSV files need a header row with the columns
    ``description,amount,date`` and optionally ``kind,category_id,account_id``.
    YAML files hold either a list of records or a mapping with a
    ``transactions`` list. Records are returned unvalidated; the detector turns
    malformed ones into rejections.

    Args:
        path: Transaction file

    Returns:
        List of record dicts
    """
    path = Path(path)

    if path.suffix.lower() == ".csv":
        with path.open(newline="") as f:
            records = [_clean_csv_row(row) for row in csv.DictReader(f)]
    else:
        data = _read_yaml(path)
        if isinstance(data, dict):
            data = data.get("transactions")
        if data is None:
            data = []
        if not isinstance(data, list):
            raise ValueError(f"Expected a list of transactions in {path}")
        records = [r if isinstance(r, dict) else {"description": r} for r in data]

    logger.info("Read %d transactions from %s", len(records), path)
    return records


def _clean_csv_row(row: dict) -> dict:
    # Empty cells mean "not set"; unknown columns are ignored
    return {
        key: value.strip()
        for key, value in row.items()
        if key in constants.TRANSACTION_CSV_FIELDS and value is not None and value.strip()
    }


class BillFileRepository:
    """Bill storage backed by a single YAML bill file.

    Bill files carry no owner, so every user sees the same bills. Updates are
    kept in memory until save() is called.
    """

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self.bill_file = load_bill_file(self.path)
        self.dirty = False

    @property
    def config(self) -> GlobalConfig:
        return self.bill_file.config

    def find_active(self, user_id: str) -> list[Bill]:
        return [b for b in self.bill_file.bills if b.is_active]

    def save_next_due_date(self, bill_id: ExternalId, next_due_date: date) -> None:
        self._update(bill_id, next_due_date=next_due_date)

    def mark_reminder_sent(self, bill_id: ExternalId, sent_on: date) -> None:
        self._update(bill_id, last_reminder_sent=sent_on)

    def _update(self, bill_id: ExternalId, **changes) -> None:
        for idx, bill in enumerate(self.bill_file.bills):
            if str(bill.id) == str(bill_id):
                self.bill_file.bills[idx] = bill.model_copy(update=changes)
                self.dirty = True
                return
        raise KeyError(f"Unknown bill id: {bill_id}")

    def save(self) -> None:
        """Write pending changes to the bill file."""
        if self.dirty:
            save_bill_file(self.bill_file, self.path)
            self.dirty = False
