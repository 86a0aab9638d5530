"""Local settings store — SQLite at ~/.ict-lookup/settings.db."""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Optional

from ict_lookup.core.errors import SettingsError


_DEFAULT_DB_PATH = os.path.join(
    str(Path.home()), ".ict-lookup", "settings.db"
)

DEFAULTS = {
    "results_db": "",
    "products_file": "products",
    "log_viewer": "ict_lr",
    "log_root": "",
    "workers": "1",
}

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def env_var(key: str) -> str:
    return f"ICT_LOOKUP_{key.upper()}"


def validate_setting(key: str, value: str) -> None:
    """Raise SettingsError for unknown keys or malformed values."""
    if key not in DEFAULTS:
        raise SettingsError(
            f"Unknown config key: {key}. Valid keys: {', '.join(DEFAULTS)}"
        )
    if key == "workers":
        try:
            workers = int(value)
        except ValueError:
            raise SettingsError(f"workers must be an integer, got {value!r}") from None
        if workers < 1:
            raise SettingsError(f"workers must be at least 1, got {workers}")


class SettingsStore:
    """Local SQLite key/value settings."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or _DEFAULT_DB_PATH
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.executescript(_SCHEMA)
        conn.executemany(
            "INSERT OR IGNORE INTO config (key, value) VALUES (?, ?)",
            DEFAULTS.items(),
        )
        conn.commit()

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def get_config(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT value FROM config WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_config(self, key: str, value: str) -> None:
        validate_setting(key, value)
        conn = self._get_conn()
        conn.execute(
            "INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()

    def resolve(self, key: str, flag: Optional[str] = None) -> str:
        """Resolve a setting from CLI flag → env var → settings store → default."""
        if flag:
            return flag
        env_value = os.environ.get(env_var(key))
        if env_value:
            return env_value
        stored = self.get_config(key)
        if stored:
            return stored
        return DEFAULTS.get(key, "")

    def resolve_workers(self, flag: Optional[int] = None) -> int:
        value = self.resolve("workers", str(flag) if flag is not None else None)
        validate_setting("workers", value)
        return int(value)

    def require(self, key: str, flag: Optional[str] = None) -> str:
        value = self.resolve(key, flag)
        if not value:
            raise SettingsError(
                f"{key} is not set. Pass it as an option, set {env_var(key)}, "
                f"or run: ict-lookup config set {key} <value>"
            )
        return value
