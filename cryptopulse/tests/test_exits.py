from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cryptopulse.backtest.engine import BacktestRunner
from cryptopulse.core.errors import ConfigurationError
from cryptopulse.shared.models import Bar, OrderSide, PortfolioSnapshot, Position
from cryptopulse.strategies import MovingAverageCrossover, RsiThreshold
from cryptopulse.strategy.exits import ExitRules
from cryptopulse.strategy.registry import build_strategy

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
BTC = "BTC/USDT"


def _range_bar(low: str, high: str, close: str, hours: int = 0) -> Bar:
    return Bar(
        symbol=BTC,
        timestamp=START + timedelta(hours=hours),
        open=Decimal(close),
        high=Decimal(high),
        low=Decimal(low),
        close=Decimal(close),
    )


def _position(quantity: str, cost: str = "100", opened_hours: int = 0) -> Position:
    return Position(
        symbol=BTC,
        quantity=Decimal(quantity),
        average_cost=Decimal(cost),
        opened_at=START + timedelta(hours=opened_hours),
    )


def test_rules_are_off_by_default() -> None:
    rules = ExitRules()

    assert not rules.enabled
    assert rules.check(_range_bar("1", "1000", "100", hours=1000), _position("1")) is None


def test_stop_loss_closes_long_when_low_touches_level() -> None:
    rules = ExitRules(stop_loss=Decimal("0.02"))

    intent = rules.check(_range_bar("97.5", "101", "99"), _position("0.5"))

    assert rules.stop_price(_position("0.5")) == Decimal("98")
    assert intent.side == OrderSide.SELL
    assert intent.quantity == Decimal("0.5")
    assert intent.reason.startswith("stop loss")


def test_take_profit_closes_long_when_high_touches_level() -> None:
    rules = ExitRules(stop_loss=Decimal("0.02"), take_profit=Decimal("0.04"))

    intent = rules.check(_range_bar("99", "104", "103"), _position("0.5"))

    assert intent.side == OrderSide.SELL
    assert intent.reason.startswith("take profit")


def test_levels_inside_the_bar_range_do_not_trigger() -> None:
    rules = ExitRules(stop_loss=Decimal("0.02"), take_profit=Decimal("0.04"), max_hold_hours=24)

    assert rules.check(_range_bar("98.5", "103.5", "101", hours=24), _position("0.5")) is None
    assert rules.check(_range_bar("98.5", "103.5", "101"), _position("0")) is None


def test_stop_wins_when_bar_spans_both_levels() -> None:
    rules = ExitRules(stop_loss=Decimal("0.02"), take_profit=Decimal("0.04"))

    intent = rules.check(_range_bar("90", "110", "100"), _position("1"))

    assert intent.reason.startswith("stop loss")


def test_short_positions_use_mirrored_levels() -> None:
    rules = ExitRules(stop_loss=Decimal("0.02"), take_profit=Decimal("0.04"))

    stop = rules.check(_range_bar("99", "102", "101"), _position("-2"))
    take = rules.check(_range_bar("95", "99", "96"), _position("-2"))

    assert stop.side == OrderSide.BUY
    assert stop.quantity == Decimal("2")
    assert stop.reason.startswith("stop loss")
    assert take.reason.startswith("take profit")


def test_max_hold_closes_stale_positions() -> None:
    rules = ExitRules(max_hold_hours=Decimal("1.5"))

    assert rules.check(_range_bar("100", "100", "100", hours=1), _position("1")) is None
    intent = rules.check(_range_bar("100", "100", "100", hours=2), _position("1"))

    assert intent.reason.startswith("max hold")


@pytest.mark.parametrize(
    "kwargs",
    [{"stop_loss": 0}, {"stop_loss": 1}, {"take_profit": "-0.1"}, {"max_hold_hours": 0}],
)
def test_invalid_exit_levels(kwargs) -> None:
    with pytest.raises(ConfigurationError):
        ExitRules(**kwargs)


def test_strategy_exits_before_its_own_signal() -> None:
    strategy = RsiThreshold(period=2, stop_loss=Decimal("0.05"))
    portfolio = PortfolioSnapshot(
        timestamp=START,
        cash=Decimal("0"),
        positions={BTC: _position("1")},
        equity=Decimal("94"),
    )

    intents = strategy.decide([_range_bar("94", "95", "94")], portfolio)

    assert [i.side for i in intents] == [OrderSide.SELL]
    assert strategy.parameters["stop_loss"] == Decimal("0.05")


def test_registry_passes_exit_parameters() -> None:
    strategy = build_strategy("ma_crossover", fast=2, slow=3, take_profit=Decimal("0.1"))

    assert strategy.parameters["take_profit"] == Decimal("0.1")
    assert strategy.parameters["stop_loss"] is None


def test_backtest_stops_out_a_losing_entry(make_bars, zero_cost_settings) -> None:
    strategy = MovingAverageCrossover(fast=2, slow=3, quantity=Decimal("1"), stop_loss=Decimal("0.05"))

    result = BacktestRunner(strategy, zero_cost_settings).run(make_bars([10, 10, 10, 13, 12.3]))

    buy, sell = result.trades
    assert buy.side == OrderSide.BUY
    assert sell.side == OrderSide.SELL
    assert sell.price == Decimal("12.3")
    assert sell.reason.startswith("stop loss")
    assert result.final_snapshot.position(BTC).is_flat
