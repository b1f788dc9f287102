"""Market bars, lots and portfolio records shared across the package."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

INTERVAL_1H = "1h"

LOT_TYPE_DEAD = "DEAD_STACK"
LOT_TYPE_FLOATING = "FLOATING"
LOT_TYPE_COLD_SEALED = "COLD_SEALED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Bar:
    """One completed candle; ``open_time`` is in Unix milliseconds."""

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class KLine:
    """A stored candle for one symbol and interval."""

    symbol: str
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    interval: str = INTERVAL_1H

    @classmethod
    def from_bar(cls, symbol: str, bar: Bar, interval: str = INTERVAL_1H) -> KLine:
        return cls(
            symbol=symbol,
            open_time=bar.open_time,
            open=bar.open,
            high=bar.high,
            low=bar.low,
            close=bar.close,
            volume=bar.volume,
            interval=interval,
        )

    def to_bar(self) -> Bar:
        return Bar(
            open_time=self.open_time,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


@dataclass
class SpotLot:
    """A quantity of the base asset bought at one price."""

    lot_type: str
    amount: float
    cost_price: float
    created_at: datetime = field(default_factory=_utcnow)
    is_cold_sealed: bool = False


@dataclass
class PortfolioState:
    """Balances held by one strategy instance."""

    usdt_balance: float = 0.0
    dead_asset: float = 0.0
    float_asset: float = 0.0
    cold_sealed_asset: float = 0.0
    total_equity: float = 0.0
    last_processed_bar_time: int = 0
    last_synced_at: datetime | None = None

    def total_asset(self) -> float:
        """Base-asset quantity across the dead, floating and cold buckets."""
        return self.dead_asset + self.float_asset + self.cold_sealed_asset