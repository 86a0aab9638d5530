"""Shared test fixtures for ict-lookup tests."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Iterable, Iterator

import pytest

from ict_lookup.core.aggregator import PanelAggregator
from ict_lookup.core.catalog import ProductCatalog
from ict_lookup.core.models import PrimaryRow, Product, SiblingRow
from ict_lookup.data.results import ResultsDatabase, RowSource
from ict_lookup.data.settings import SettingsStore

T0 = datetime(2024, 1, 1, 8, 0)
T1 = datetime(2024, 1, 1, 9, 30)
T2 = datetime(2024, 1, 2, 14, 15)

SMT_TEST_SCHEMA = """\
CREATE TABLE IF NOT EXISTS SMT_Test (
    Serial_NMBR TEXT NOT NULL,
    Station TEXT NOT NULL,
    Result TEXT NOT NULL,
    Date_Time TEXT NOT NULL,
    Log_File_Name TEXT
);
"""


def dmc(sequence: int, product_code: str = "GHI") -> str:
    """Build a DMC: 6 prefix chars, 7-digit sequence, product code."""
    return f"ABCDEF{sequence:07d}{product_code}"


def write_results(db_path, rows: Iterable[tuple] = ()) -> str:
    """Create the SMT_Test table at db_path and insert rows.

    Each row is (serial, station, result, date_time, log_file_name);
    datetimes are stored as ISO text.
    """
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(SMT_TEST_SCHEMA)
        conn.executemany(
            "INSERT INTO SMT_Test VALUES (?, ?, ?, ?, ?)",
            [
                (serial, station, result,
                 ts.isoformat() if isinstance(ts, datetime) else ts, log)
                for serial, station, result, ts, log in rows
            ],
        )
        conn.commit()
    finally:
        conn.close()
    return str(db_path)


class FakeRowSource(RowSource):
    """In-memory row source keyed by serial; rows are given most-recent-first."""

    def __init__(self):
        self.primary: dict[str, list[PrimaryRow]] = {}
        self.siblings: dict[str, list[SiblingRow]] = {}
        self.sibling_calls: list[str] = []

    def primary_rows(self, serial: str) -> Iterator[PrimaryRow]:
        yield from self.primary.get(serial, [])

    def sibling_rows(self, serial: str) -> Iterator[SiblingRow]:
        self.sibling_calls.append(serial)
        yield from self.siblings.get(serial, [])

    def add_primary(self, serial, position, result, timestamp, station="ICT-01"):
        self.primary.setdefault(serial, []).append(
            PrimaryRow(
                serial=serial,
                station=station,
                result_text=result,
                timestamp=timestamp,
                log_reference=f"C:\\logs\\{position + 1}-{timestamp:%Y%m%d}-{serial}.log",
            )
        )

    def add_sibling(self, serial, position, result, timestamp):
        self.siblings.setdefault(serial, []).append(
            SiblingRow(
                result_text=result,
                log_reference=f"C:\\logs\\{position + 1}-{timestamp:%Y%m%d}-{serial}.log",
            )
        )


@pytest.fixture
def row_source() -> FakeRowSource:
    return FakeRowSource()


@pytest.fixture
def aggregator() -> PanelAggregator:
    return PanelAggregator()


@pytest.fixture
def catalog() -> ProductCatalog:
    """GHI panels hold 3 boards, GHJ panels 1; everything else is unknown."""
    return ProductCatalog([
        Product(name="Controller", product_code="GHI", panel_size=3),
        Product(name="Sensor", product_code="GHJ", panel_size=1),
        Product(name="Controller (late match)", product_code="GH", panel_size=5),
    ])


@pytest.fixture
def results_db(tmp_path):
    """ResultsDatabase over an empty SMT_Test table; seed it with write_results."""
    db = ResultsDatabase(write_results(tmp_path / "results.db"))
    yield db
    db.close()


@pytest.fixture
def settings_store(tmp_path, monkeypatch):
    """SettingsStore in a temporary directory with no ICT_LOOKUP_* env vars."""
    for key in ("RESULTS_DB", "PRODUCTS_FILE", "LOG_VIEWER", "LOG_ROOT", "WORKERS"):
        monkeypatch.delenv(f"ICT_LOOKUP_{key}", raising=False)
    store = SettingsStore(db_path=str(tmp_path / "settings.db"))
    yield store
    store.close()
