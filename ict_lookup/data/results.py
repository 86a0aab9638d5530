"""Results database — test history rows from the SMT_Test table."""

from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from ict_lookup.core.errors import LookupFailed
from ict_lookup.core.models import PrimaryRow, SiblingRow

logger = logging.getLogger(__name__)

CONNECT_ATTEMPTS = 3

_PRIMARY_QUERY = """\
SELECT Serial_NMBR, Station, Result, Date_Time, Log_File_Name
FROM SMT_Test
WHERE Serial_NMBR = ?
ORDER BY Date_Time DESC"""

_SIBLING_QUERY = """\
SELECT Result, Log_File_Name
FROM SMT_Test
WHERE Serial_NMBR = ?
ORDER BY Date_Time DESC"""


class RowSource(ABC):
    """Where test history comes from. Rows are most-recent-first."""

    @abstractmethod
    def primary_rows(self, serial: str) -> Iterator[PrimaryRow]: ...

    @abstractmethod
    def sibling_rows(self, serial: str) -> Iterator[SiblingRow]: ...


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


class ResultsDatabase(RowSource):
    """SMT_Test history over a SQLite connection.

    The connection is shared between lookup threads, so every query
    runs under one lock and is fetched completely before the lock is
    released.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

    def _connect_once(self) -> sqlite3.Connection:
        # Open read-only so a mistyped path fails instead of creating a file.
        uri = Path(self.db_path).absolute().as_uri() + "?mode=ro"
        conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn

        last_error: Optional[Exception] = None
        for attempt in range(1, CONNECT_ATTEMPTS + 1):
            try:
                self._conn = self._connect_once()
                return self._conn
            except sqlite3.Error as e:
                last_error = e
                logger.warning(
                    "Connection to %s failed (attempt %d/%d): %s",
                    self.db_path, attempt, CONNECT_ATTEMPTS, e,
                )
        raise LookupFailed(
            f"Connection to results database {self.db_path} failed: {last_error}"
        )

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def _fetch(self, query: str, serial: str) -> list[sqlite3.Row]:
        with self._lock:
            conn = self._get_conn()
            logger.debug("Query for %s: %s", serial, " ".join(query.split()))
            try:
                return conn.execute(query, (serial,)).fetchall()
            except sqlite3.Error as e:
                raise LookupFailed(f"Lookup of {serial!r} failed: {e}") from e

    def primary_rows(self, serial: str) -> Iterator[PrimaryRow]:
        for row in self._fetch(_PRIMARY_QUERY, serial):
            try:
                timestamp = _parse_timestamp(row["Date_Time"])
            except ValueError:
                logger.warning(
                    "Skipping row of %s with bad Date_Time %r",
                    serial, row["Date_Time"],
                )
                continue
            yield PrimaryRow(
                serial=row["Serial_NMBR"],
                station=row["Station"],
                result_text=row["Result"],
                timestamp=timestamp,
                log_reference=row["Log_File_Name"] or "",
            )

    def sibling_rows(self, serial: str) -> Iterator[SiblingRow]:
        for row in self._fetch(_SIBLING_QUERY, serial):
            yield SiblingRow(
                result_text=row["Result"],
                log_reference=row["Log_File_Name"] or "",
            )

