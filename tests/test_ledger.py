from datetime import datetime, timezone

import pytest

from quantdesk.ledger import (
    rebuild_buckets,
    scaled_buckets,
    update_portfolio_from_balances,
    update_portfolio_from_lots,
)
from quantdesk.models import (
    LOT_TYPE_COLD_SEALED,
    LOT_TYPE_DEAD,
    LOT_TYPE_FLOATING,
    PortfolioState,
    SpotLot,
)


def _lots():
    return [
        SpotLot(LOT_TYPE_DEAD, 2.0, 100.0),
        SpotLot(LOT_TYPE_DEAD, 0.5, 100.0, is_cold_sealed=True),
        SpotLot(LOT_TYPE_FLOATING, 1.0, 100.0),
        SpotLot(LOT_TYPE_COLD_SEALED, 0.25, 100.0),
        SpotLot("UNKNOWN", 9.0, 100.0),
    ]


def test_rebuild_buckets_routes_lot_types():
    dead, floating, cold = rebuild_buckets(_lots())
    assert dead == pytest.approx(2.0)
    assert floating == pytest.approx(1.0)
    assert cold == pytest.approx(0.5 + 0.25)


def test_rebuild_buckets_empty():
    assert rebuild_buckets([]) == (0.0, 0.0, 0.0)


def test_scaled_buckets_zero_target():
    assert scaled_buckets(_lots(), 0.0) == (0.0, 0.0, 0.0)
    assert scaled_buckets(_lots(), -5.0) == (0.0, 0.0, 0.0)


def test_scaled_buckets_no_known_lots_goes_floating():
    assert scaled_buckets([], 1.5) == (0.0, 1.5, 0.0)


def test_scaled_buckets_preserves_proportions():
    target = 7.5
    dead, floating, cold = scaled_buckets(_lots(), target)
    base_dead, base_floating, base_cold = rebuild_buckets(_lots())
    assert dead + floating + cold == pytest.approx(target)
    assert dead / floating == pytest.approx(base_dead / base_floating)
    assert cold / floating == pytest.approx(base_cold / base_floating)


def test_update_portfolio_from_lots_sets_buckets_and_equity():
    portfolio = PortfolioState(usdt_balance=1000.0)
    update_portfolio_from_lots(portfolio, _lots(), 200.0)
    assert (portfolio.dead_asset, portfolio.float_asset, portfolio.cold_sealed_asset) == rebuild_buckets(
        _lots()
    )
    assert portfolio.total_equity == pytest.approx(1000.0 + portfolio.total_asset() * 200.0)
    assert portfolio.last_synced_at is None


def test_update_portfolio_from_lots_ignores_negative_price():
    portfolio = PortfolioState(usdt_balance=1000.0)
    update_portfolio_from_lots(portfolio, _lots(), -3.0)
    assert portfolio.total_equity == 1000.0


def test_update_portfolio_from_balances_all_floating_without_lots():
    portfolio = PortfolioState(usdt_balance=1000.0)
    before = datetime.now(timezone.utc)
    update_portfolio_from_balances(portfolio, [], 1.5, 250.0, 0.0)
    assert portfolio.usdt_balance == 250.0
    assert portfolio.float_asset == 1.5
    assert portfolio.dead_asset == 0.0
    assert portfolio.total_equity == 250.0
    assert portfolio.last_synced_at is not None
    assert portfolio.last_synced_at >= before


def test_update_portfolio_from_balances_scales_and_values():
    portfolio = PortfolioState()
    update_portfolio_from_balances(portfolio, _lots(), 4.0, 100.0, 50.0)
    assert portfolio.total_asset() == pytest.approx(4.0)
    assert portfolio.total_equity == pytest.approx(100.0 + 4.0 * 50.0)


def test_update_portfolio_from_balances_clamps_negatives():
    portfolio = PortfolioState(usdt_balance=10.0, float_asset=1.0)
    update_portfolio_from_balances(portfolio, _lots(), -1.0, -20.0, 50.0)
    assert portfolio.usdt_balance == 0.0
    assert portfolio.total_asset() == 0.0
    assert portfolio.total_equity == 0.0