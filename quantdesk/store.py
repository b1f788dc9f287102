"""SQLite storage for hourly candles."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from os import PathLike
from typing import Iterable

from quantdesk.models import INTERVAL_1H, Bar, KLine

_BATCH_SIZE = 500

_SCHEMA = """
CREATE TABLE IF NOT EXISTS klines (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    symbol TEXT NOT NULL,
    interval TEXT NOT NULL,
    open_time INTEGER NOT NULL,
    open REAL NOT NULL,
    high REAL NOT NULL,
    low REAL NOT NULL,
    close REAL NOT NULL,
    volume REAL NOT NULL,
    UNIQUE (symbol, interval, open_time)
)
"""

_UPSERT = """
INSERT INTO klines
    (created_at, updated_at, symbol, interval, open_time, open, high, low, close, volume)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (symbol, interval, open_time) DO UPDATE SET
    open = excluded.open,
    high = excluded.high,
    low = excluded.low,
    close = excluded.close,
    volume = excluded.volume,
    updated_at = excluded.updated_at
"""


@dataclass(frozen=True)
class CoverageItem:
    """How many bars are stored for a symbol and which span they cover."""

    symbol: str
    interval: str
    count: int
    first_open_time: int
    last_open_time: int
    last_close: float


class KLineStore:
    """Candle table keyed by symbol, interval and open time."""

    def __init__(self, path: str | PathLike[str] = ":memory:") -> None:
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.execute(_SCHEMA)

    def upsert(self, klines: Iterable[KLine]) -> int:
        """Insert candles, overwriting prices of ones already stored. Returns the row count."""
        now = datetime.now(timezone.utc).isoformat()
        rows = [
            (now, now, k.symbol, k.interval, k.open_time, k.open, k.high, k.low, k.close, k.volume)
            for k in klines
        ]
        with self._lock, self._conn:
            for start in range(0, len(rows), _BATCH_SIZE):
                self._conn.executemany(_UPSERT, rows[start : start + _BATCH_SIZE])
        return len(rows)

    def coverage(self, symbol: str | None = None) -> list[CoverageItem]:
        """Summarise the stored hourly bars, for one symbol or for all of them."""
        sql = (
            "SELECT symbol, interval, count(*), min(open_time), max(open_time) "
            "FROM klines WHERE interval = ?"
        )
        params: list[object] = [INTERVAL_1H]
        if symbol:
            sql += " AND symbol = ?"
            params.append(symbol)
        sql += " GROUP BY symbol, interval ORDER BY symbol ASC"

        with self._lock:
            groups = self._conn.execute(sql, params).fetchall()
            items = []
            for sym, interval, count, first, last in groups:
                (last_close,) = self._conn.execute(
                    "SELECT close FROM klines WHERE symbol = ? AND interval = ? "
                    "ORDER BY open_time DESC LIMIT 1",
                    (sym, interval),
                ).fetchone()
                items.append(
                    CoverageItem(
                        symbol=sym,
                        interval=interval,
                        count=count,
                        first_open_time=first,
                        last_open_time=last,
                        last_close=last_close,
                    )
                )
        return items

    def latest(self, symbol: str, limit: int) -> list[Bar]:
        """The most recent ``limit`` hourly bars, oldest first."""
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        with self._lock:
            rows = self._conn.execute(
                "SELECT open_time, open, high, low, close, volume FROM klines "
                "WHERE symbol = ? AND interval = ? ORDER BY open_time DESC LIMIT ?",
                (symbol, INTERVAL_1H, limit),
            ).fetchall()
        return [Bar(*row) for row in reversed(rows)]

    def all_bars(self, symbol: str) -> list[Bar]:
        """Every stored hourly bar for ``symbol``, oldest first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT open_time, open, high, low, close, volume FROM klines "
                "WHERE symbol = ? AND interval = ? ORDER BY open_time ASC",
                (symbol, INTERVAL_1H),
            ).fetchall()
        return [Bar(*row) for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> KLineStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()