"""Bucket accounting that keeps a portfolio in step with its lots."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from quantdesk.models import (
    LOT_TYPE_COLD_SEALED,
    LOT_TYPE_DEAD,
    LOT_TYPE_FLOATING,
    PortfolioState,
    SpotLot,
)

EPSILON = 1e-9


def rebuild_buckets(lots: Iterable[SpotLot]) -> tuple[float, float, float]:
    """Sum lot amounts into (dead, floating, cold-sealed) quantities."""
    dead = floating = cold = 0.0
    for lot in lots:
        if lot.lot_type == LOT_TYPE_DEAD:
            if lot.is_cold_sealed:
                cold += lot.amount
            else:
                dead += lot.amount
        elif lot.lot_type == LOT_TYPE_FLOATING:
            floating += lot.amount
        elif lot.lot_type == LOT_TYPE_COLD_SEALED:
            cold += lot.amount
    return dead, floating, cold


def scaled_buckets(lots: Iterable[SpotLot], target_total: float) -> tuple[float, float, float]:
    """Buckets from ``lots`` rescaled so they add up to ``target_total``.

    With no known lots the whole target is treated as floating.
    """
    target_total = max(target_total, 0.0)
    dead, floating, cold = rebuild_buckets(lots)
    known_total = dead + floating + cold
    if target_total <= EPSILON:
        return 0.0, 0.0, 0.0
    if known_total <= EPSILON:
        return 0.0, target_total, 0.0
    scale = target_total / known_total
    return dead * scale, floating * scale, cold * scale


def update_portfolio_from_lots(
    portfolio: PortfolioState, lots: Iterable[SpotLot], price: float
) -> None:
    """Set the asset buckets and equity of ``portfolio`` from its lots."""
    dead, floating, cold = rebuild_buckets(lots)
    portfolio.dead_asset = dead
    portfolio.float_asset = floating
    portfolio.cold_sealed_asset = cold
    portfolio.total_equity = portfolio.usdt_balance + (dead + floating + cold) * max(price, 0.0)


def update_portfolio_from_balances(
    portfolio: PortfolioState,
    lots: Iterable[SpotLot],
    base_asset_qty: float,
    usdt_qty: float,
    price: float,
) -> None:
    """Align ``portfolio`` with balances reported by the exchange account."""
    dead, floating, cold = scaled_buckets(lots, base_asset_qty)
    portfolio.usdt_balance = max(usdt_qty, 0.0)
    portfolio.dead_asset = dead
    portfolio.float_asset = floating
    portfolio.cold_sealed_asset = cold
    portfolio.total_equity = portfolio.usdt_balance + max(base_asset_qty, 0.0) * max(price, 0.0)
    portfolio.last_synced_at = datetime.now(timezone.utc)