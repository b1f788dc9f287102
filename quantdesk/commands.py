"""Trade commands sent to an agent for the order intents a strategy step produced."""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class OrderIntent:
    """An order a strategy wants placed: spend USDT on a buy or sell a quantity."""

    action: str
    engine: str
    symbol: str
    lot_type: str
    amount_usdt: float = 0.0
    qty_asset: float = 0.0
    reason: str = ""


@dataclass(frozen=True)
class TradeCommand:
    """An order intent addressed to one strategy instance, ready for dispatch."""

    client_order_id: str
    strategy_instance_id: int
    action: str
    engine: str
    symbol: str
    amount_usdt: float
    qty_asset: float
    lot_type: str
    reason: str
    sent_at: int

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def client_order_id(instance_id: int, engine: str, timestamp: int) -> str:
    """Order id unique per instance, engine and bar time."""
    return f"inst{instance_id}-{engine.lower()}-{timestamp}"


def _command(instance_id: int, intent: OrderIntent, timestamp: int) -> TradeCommand:
    return TradeCommand(
        client_order_id=client_order_id(instance_id, intent.engine, timestamp),
        strategy_instance_id=instance_id,
        action=intent.action,
        engine=intent.engine,
        symbol=intent.symbol,
        amount_usdt=intent.amount_usdt,
        qty_asset=intent.qty_asset,
        lot_type=intent.lot_type,
        reason=intent.reason,
        sent_at=time.time_ns() // 1_000_000,
    )


def build_commands(
    instance_id: int,
    macro_intent: OrderIntent | None,
    micro_intent: OrderIntent | None,
    timestamp: int,
) -> list[TradeCommand]:
    """Commands for the macro intent then the micro intent, skipping absent ones."""
    return [
        _command(instance_id, intent, timestamp)
        for intent in (macro_intent, micro_intent)
        if intent is not None
    ]