"""Import, sync and inspect the hourly candles kept for each supported symbol."""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Protocol, TextIO

from quantdesk.models import INTERVAL_1H, Bar, KLine
from quantdesk.store import CoverageItem, KLineStore

_ALLOWED_SYMBOLS = ("BTCUSDT", "ETHUSDT")

DEFAULT_SYNC_LIMIT = 600
DEFAULT_RECENT_LIMIT = 24

_INTEGER = re.compile(r"[+-]?\d+")
_RFC3339 = re.compile(
    r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(\.\d+)?(Z|[+-]\d{2}:\d{2})",
    re.IGNORECASE,
)
_LAYOUTS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class _RecentSyncer(Protocol):
    def sync_recent(self, symbol: str, limit: int) -> int: ...


@dataclass(frozen=True)
class SyncResult:
    """Outcome of pulling recent candles from the exchange."""

    symbol: str
    requested_limit: int
    fetched_bars: int


@dataclass(frozen=True)
class ImportResult:
    """Outcome of importing candles from a CSV document."""

    symbol: str
    processed_rows: int
    first_open_time: int
    last_open_time: int


def allowed_symbols() -> list[str]:
    """Symbols the data lab accepts."""
    return list(_ALLOWED_SYMBOLS)


def normalize_symbol(symbol: str) -> str:
    """Upper-case and trim ``symbol``; ValueError if it is not supported."""
    normalized = symbol.strip().upper()
    if normalized not in _ALLOWED_SYMBOLS:
        raise ValueError(f"unsupported symbol {normalized!r}")
    return normalized


def _to_millis(moment: datetime) -> int:
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def _parse_rfc3339(value: str) -> datetime | None:
    match = _RFC3339.fullmatch(value)
    if match is None:
        return None
    base, fraction, zone = match.groups()
    text = base.replace("t", "T")
    if fraction:
        text += fraction[:7]
    text += "+00:00" if zone.upper() == "Z" else zone
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_timestamp(value: str) -> int:
    """Read a candle open time as Unix milliseconds.

    Accepts Unix milliseconds, Unix seconds, RFC 3339 and a few
    ``YYYY-MM-DD``/``YYYY/MM/DD`` date-time layouts taken as UTC.
    """
    value = value.strip()
    if not value:
        raise ValueError("empty timestamp")

    if _INTEGER.fullmatch(value):
        number = int(value)
        if number > 1_000_000_000_000:
            return number
        if number > 1_000_000_000:
            return number * 1000

    parsed = _parse_rfc3339(value)
    if parsed is not None:
        return _to_millis(parsed)
    for layout in _LAYOUTS:
        try:
            parsed = datetime.strptime(value, layout).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
        return _to_millis(parsed)
    raise ValueError(f"unsupported timestamp {value!r}")


def _looks_like_header(record: list[str]) -> bool:
    if not record:
        return False
    first = record[0].strip().lower()
    return "time" in first or first in ("open_time", "timestamp")


def _build_bar(fields: Iterable[str]) -> Bar:
    open_time, *prices = (field.strip() for field in fields)
    open_, high, low, close, volume = (float(item) for item in prices)
    return Bar(
        open_time=parse_timestamp(open_time),
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=volume,
    )


def _parse_record(record: list[str], header: dict[str, int]) -> Bar:
    if not header:
        if len(record) < 6:
            raise ValueError("csv rows must have at least 6 columns")
        return _build_bar(record[:6])

    def read_column(*keys: str) -> str:
        for key in keys:
            idx = header.get(key)
            if idx is not None and idx < len(record):
                return record[idx].strip()
        raise ValueError(f"missing column [{' '.join(keys)}]")

    return _build_bar(
        (
            read_column("open_time", "timestamp", "time"),
            read_column("open"),
            read_column("high"),
            read_column("low"),
            read_column("close"),
            read_column("volume", "vol"),
        )
    )


def parse_csv(stream: TextIO) -> list[Bar]:
    """Parse candle rows, keeping the last row per open time, sorted by time."""
    records = [record for record in csv.reader(stream, skipinitialspace=True) if record]
    if not records:
        return []

    header: dict[str, int] = {}
    if _looks_like_header(records[0]):
        header = {column.strip().lower(): idx for idx, column in enumerate(records[0])}
        records = records[1:]

    by_time: dict[int, Bar] = {}
    for record in records:
        bar = _parse_record(record, header)
        by_time[bar.open_time] = bar
    return sorted(by_time.values(), key=lambda bar: bar.open_time)


class DataLab:
    """Operations on the candle store for the supported symbols."""

    def __init__(self, store: KLineStore, market_data: _RecentSyncer | None = None) -> None:
        self._store = store
        self._market_data = market_data

    def sync(self, symbol: str, limit: int = DEFAULT_SYNC_LIMIT) -> SyncResult:
        """Fetch the latest candles from the exchange into the store."""
        symbol = normalize_symbol(symbol)
        if limit <= 0:
            limit = DEFAULT_SYNC_LIMIT
        if self._market_data is None:
            raise RuntimeError("market data service is not configured")
        fetched = self._market_data.sync_recent(symbol, limit)
        return SyncResult(symbol=symbol, requested_limit=limit, fetched_bars=fetched)

    def import_csv(self, symbol: str, stream: TextIO) -> ImportResult:
        """Store the candles in a CSV document, overwriting any with the same time."""
        symbol = normalize_symbol(symbol)
        bars = parse_csv(stream)
        if not bars:
            raise ValueError("csv contains no valid rows")
        self._store.upsert(KLine.from_bar(symbol, bar, INTERVAL_1H) for bar in bars)
        return ImportResult(
            symbol=symbol,
            processed_rows=len(bars),
            first_open_time=bars[0].open_time,
            last_open_time=bars[-1].open_time,
        )

    def coverage(self, symbol: str | None = None) -> list[CoverageItem]:
        """Stored span per symbol, optionally for one symbol only."""
        normalized = None
        if symbol is not None and symbol.strip():
            normalized = normalize_symbol(symbol)
        return self._store.coverage(normalized)

    def recent(self, symbol: str, limit: int = DEFAULT_RECENT_LIMIT) -> list[Bar]:
        """The latest ``limit`` stored candles, oldest first."""
        normalized = normalize_symbol(symbol)
        if limit <= 0:
            limit = DEFAULT_RECENT_LIMIT
        return self._store.latest(normalized, limit)