"""Reconcile reported exchange balances and fills with a virtual portfolio."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from quantdesk.models import PortfolioState

_QUOTE_ASSET = "USDT"


class Action(str, Enum):
    """Side of a trade."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Balance:
    """One asset balance reported by the exchange account."""

    asset: str
    available: float = 0.0
    frozen: float = 0.0

    def total(self) -> float:
        """Available plus frozen quantity."""
        return self.available + self.frozen


@dataclass(frozen=True)
class Execution:
    """Fill details reported for an order."""

    filled_qty: float = 0.0
    filled_price: float = 0.0
    quote_amount: float = 0.0
    fee: float = 0.0
    fee_asset: str = ""
    status: str = ""


def extract_balances(symbol: str, balances: Iterable[Balance]) -> tuple[float, float]:
    """(base asset, USDT) totals for ``symbol``, never negative."""
    base_asset = symbol.removesuffix(_QUOTE_ASSET).upper()
    base_qty = 0.0
    usdt_qty = 0.0
    for balance in balances:
        asset = balance.asset.upper()
        if asset == base_asset:
            base_qty = balance.total()
        elif asset == _QUOTE_ASSET:
            usdt_qty = balance.total()
    return max(base_qty, 0.0), max(usdt_qty, 0.0)


def _as_action(action: str | Action) -> Action | None:
    try:
        return Action(action)
    except ValueError:
        return None


def adjust_virtual_usdt(
    portfolio: PortfolioState | None,
    action: str | Action,
    pending_amount_usdt: float,
    pending_qty_asset: float,
    execution: Execution | None,
) -> None:
    """Move the portfolio's USDT balance by the quote value of a fill."""
    if portfolio is None or execution is None:
        return
    side = _as_action(action)

    quote_amount = execution.quote_amount
    if quote_amount <= 0:
        quote_amount = pending_amount_usdt
        if side is Action.SELL and execution.filled_price > 0:
            quote_amount = pending_qty_asset * execution.filled_price
    if execution.fee > 0 and execution.fee_asset.upper() == _QUOTE_ASSET:
        quote_amount -= execution.fee

    if side is Action.BUY:
        portfolio.usdt_balance = max(0.0, portfolio.usdt_balance - max(quote_amount, 0.0))
    elif side is Action.SELL:
        portfolio.usdt_balance += max(quote_amount, 0.0)


def normalize_execution_status(status: str) -> str:
    """Lower-cased status, with a blank one read as ``filled``."""
    if not status.strip():
        return "filled"
    return status.lower()