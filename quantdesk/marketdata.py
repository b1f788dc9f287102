"""Hourly candles pulled from the Bitget spot market API into the candle store."""

from __future__ import annotations

import json
import re
import sqlite3
import time
import urllib.error
import urllib.request
from urllib.parse import urlencode

from quantdesk.models import Bar, KLine
from quantdesk.store import KLineStore

BITGET_BASE_URL = "https://api.bitget.com"

DEFAULT_LIMIT = 600
RECENT_BATCH_LIMIT = 1000
HISTORY_BATCH_LIMIT = 200
DEFAULT_TIMEOUT_SECONDS = 15.0

_RECENT_PATH = "/api/v2/spot/market/candles"
_HISTORY_PATH = "/api/v2/spot/market/history-candles"
_SUCCESS_CODE = "00000"
_HOUR_MS = 3_600_000
_ERROR_BODY_LIMIT = 4096
_INTEGER = re.compile(r"[+-]?\d+")


class MarketDataError(Exception):
    """Raised when candles cannot be fetched or none are available."""


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class MarketDataService:
    """Fetches completed 1h candles and keeps them in a :class:`KLineStore`."""

    def __init__(
        self,
        store: KLineStore,
        base_url: str = BITGET_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._store = store
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.recent_batch_limit = RECENT_BATCH_LIMIT
        self.history_batch_limit = HISTORY_BATCH_LIMIT

    def load_recent(self, symbol: str, limit: int = DEFAULT_LIMIT) -> list[Bar]:
        """Sync the latest candles, then return up to ``limit`` stored ones, oldest first.

        A failed sync is tolerated as long as the store already holds bars.
        """
        if limit <= 0:
            limit = DEFAULT_LIMIT

        sync_error: Exception | None = None
        try:
            self.sync_recent(symbol, limit)
        except (MarketDataError, sqlite3.Error) as exc:
            sync_error = exc

        try:
            bars = self._store.latest(symbol, limit)
        except sqlite3.Error as exc:
            if sync_error is not None:
                raise sync_error from exc
            raise
        if bars:
            return bars
        if sync_error is not None:
            raise sync_error
        raise MarketDataError(f"no 1h bars found for {symbol}")

    def latest_close(self, symbol: str) -> float:
        """Close of the newest bar, or 0.0 when none can be had."""
        try:
            bars = self.load_recent(symbol, 1)
        except (MarketDataError, sqlite3.Error):
            return 0.0
        return bars[-1].close if bars else 0.0

    def sync_recent(self, symbol: str, limit: int = DEFAULT_LIMIT) -> int:
        """Fetch up to ``limit`` candles and upsert them. Returns how many were stored."""
        bars = self.fetch_candles(symbol, limit)
        if not bars:
            raise MarketDataError(f"bitget returned no completed candles for {symbol}")
        return self._store.upsert(KLine.from_bar(symbol, bar) for bar in bars)

    def fetch_candles(self, symbol: str, limit: int = DEFAULT_LIMIT) -> list[Bar]:
        """Completed candles, oldest first, paging into history when ``limit`` is large."""
        if limit <= 0:
            limit = DEFAULT_LIMIT
        if limit <= self.recent_batch_limit:
            return self._fetch_window(
                _RECENT_PATH, symbol, limit, self.recent_batch_limit, _now_ms()
            )

        recent = self._fetch_window(
            _RECENT_PATH, symbol, self.recent_batch_limit, self.recent_batch_limit, _now_ms()
        )
        if not recent:
            raise MarketDataError(f"bitget returned no completed candles for {symbol}")

        collected: dict[int, Bar] = {}
        _add_unique(collected, recent)

        end_time = recent[0].open_time - 1
        while len(collected) < limit and end_time > 0:
            batch_size = min(limit - len(collected), self.history_batch_limit)
            batch = self._fetch_window(
                _HISTORY_PATH, symbol, batch_size, self.history_batch_limit, end_time
            )
            if not batch:
                break
            _add_unique(collected, batch)
            oldest = batch[0].open_time
            if oldest <= 0:
                break
            end_time = oldest - 1

        return sorted(collected.values(), key=lambda bar: bar.open_time)

    def _fetch_window(
        self, path: str, symbol: str, limit: int, cap: int, end_time: int
    ) -> list[Bar]:
        if limit <= 0:
            limit = DEFAULT_LIMIT
        limit = min(limit, cap)
        if end_time <= 0:
            end_time = _now_ms()
        query = urlencode(
            sorted(
                {
                    "symbol": symbol,
                    "granularity": "1h",
                    "limit": str(limit),
                    "endTime": str(end_time),
                }.items()
            )
        )
        return self._execute(f"{self.base_url}{path}?{query}")

    def _execute(self, url: str) -> list[Bar]:
        request = urllib.request.Request(url, method="GET")
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            body = exc.read(_ERROR_BODY_LIMIT).decode("utf-8", "replace")
            exc.close()
            raise MarketDataError(f"bitget candles status {exc.code}: {body}") from exc
        except (urllib.error.URLError, OSError) as exc:
            raise MarketDataError(f"bitget candles request: {exc}") from exc

        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise MarketDataError(f"decode bitget candles: {exc}") from exc
        if not isinstance(payload, dict):
            raise MarketDataError("decode bitget candles: unexpected payload")

        code = str(payload.get("code") or "")
        if code != _SUCCESS_CODE:
            raise MarketDataError(f"bitget candles error {code}: {payload.get('msg') or ''}")

        current_hour = _now_ms() // _HOUR_MS * _HOUR_MS
        bars = []
        for row in payload.get("data") or []:
            if not isinstance(row, list) or len(row) < 6:
                continue
            open_text = str(row[0])
            if not _INTEGER.fullmatch(open_text):
                continue
            open_time = int(open_text)
            if open_time >= current_hour:
                continue
            try:
                open_, high, low, close, volume = (float(value) for value in row[1:6])
            except (TypeError, ValueError) as exc:
                raise MarketDataError(f"parse bitget candle {row!r}: {exc}") from exc
            bars.append(
                Bar(
                    open_time=open_time,
                    open=open_,
                    high=high,
                    low=low,
                    close=close,
                    volume=volume,
                )
            )
        bars.sort(key=lambda bar: bar.open_time)
        return bars


def _add_unique(collected: dict[int, Bar], batch: list[Bar]) -> None:
    for bar in batch:
        collected.setdefault(bar.open_time, bar)