from __future__ import annotations

from decimal import Decimal

import pytest

from cryptopulse.core.errors import ConfigurationError, StrategyNotFoundError
from cryptopulse.shared.models import OrderSide
from cryptopulse.strategies import MovingAverageCrossover, NoOpStrategy, RsiThreshold
from cryptopulse.strategy.indicators import rsi, sma
from cryptopulse.strategy.registry import STRATEGIES, build_strategy, list_strategies


def test_sma_and_insufficient_data() -> None:
    values = [Decimal(v) for v in (1, 2, 3, 4)]

    assert sma(values, 2) == Decimal("3.5")
    assert sma(values, 4) == Decimal("2.5")
    assert sma(values, 5) is None


def test_rsi_uses_wilder_smoothing() -> None:
    assert rsi([Decimal(v) for v in (1, 2, 1)], period=2) == Decimal("50")
    assert rsi([Decimal(v) for v in (1, 2, 1, 2)], period=2) == Decimal("75")


def test_rsi_edge_cases() -> None:
    assert rsi([Decimal(v) for v in (1, 2, 3)], period=2) == Decimal("100")
    assert rsi([Decimal(v) for v in (3, 2, 1)], period=2) == Decimal("0")
    assert rsi([Decimal(5)] * 4, period=2) == Decimal("50")
    assert rsi([Decimal(1), Decimal(2)], period=2) is None


def test_noop_never_trades(make_bars, flat_portfolio) -> None:
    assert NoOpStrategy().decide(make_bars([100]), flat_portfolio) == []


def test_crossover_buys_on_golden_cross_when_flat(make_bars, flat_portfolio) -> None:
    strategy = MovingAverageCrossover(fast=2, slow=3)

    intents = strategy.decide(make_bars([10, 10, 10, 13]), flat_portfolio)

    assert len(intents) == 1
    assert intents[0].side == OrderSide.BUY
    # 95% of 10000 at 13, floored to 0.0001 lots
    assert intents[0].quantity == Decimal("730.7692")
    assert "golden cross" in intents[0].reason


def test_crossover_sells_whole_position_on_death_cross(make_bars, long_portfolio, flat_portfolio) -> None:
    strategy = MovingAverageCrossover(fast=2, slow=3)
    window = make_bars([13, 13, 13, 10])

    intents = strategy.decide(window, long_portfolio)

    assert len(intents) == 1
    assert intents[0].side == OrderSide.SELL
    assert intents[0].quantity == Decimal("0.5")
    assert strategy.decide(window, flat_portfolio) == []


def test_crossover_needs_full_window(make_bars, flat_portfolio) -> None:
    strategy = MovingAverageCrossover(fast=2, slow=3)

    assert strategy.window_size == 4
    assert strategy.decide(make_bars([10, 10, 13]), flat_portfolio) == []


def test_crossover_fixed_quantity(make_bars, flat_portfolio) -> None:
    strategy = MovingAverageCrossover(fast=2, slow=3, quantity=Decimal("0.1"))

    intents = strategy.decide(make_bars([10, 10, 10, 13]), flat_portfolio)

    assert intents[0].quantity == Decimal("0.1")


def test_strategies_are_pure(make_bars, flat_portfolio) -> None:
    strategy = MovingAverageCrossover(fast=2, slow=3)
    window = make_bars([10, 10, 10, 13])

    assert strategy.decide(window, flat_portfolio) == strategy.decide(window, flat_portfolio)


def test_crossover_rejects_bad_periods() -> None:
    with pytest.raises(ConfigurationError, match="shorter"):
        MovingAverageCrossover(fast=30, slow=10)
    with pytest.raises(ConfigurationError, match="allocation"):
        MovingAverageCrossover(allocation=Decimal("1.5"))


def test_rsi_threshold_buys_oversold_and_sells_overbought(make_bars, flat_portfolio, long_portfolio) -> None:
    strategy = RsiThreshold(period=2, lookback=3)

    buys = strategy.decide(make_bars([10, 9, 8]), flat_portfolio)
    sells = strategy.decide(make_bars([8, 9, 10]), long_portfolio)

    assert [i.side for i in buys] == [OrderSide.BUY]
    assert [i.side for i in sells] == [OrderSide.SELL]
    assert sells[0].quantity == Decimal("0.5")
    assert strategy.decide(make_bars([10, 9, 8]), long_portfolio) == []


def test_rsi_threshold_validates_levels() -> None:
    with pytest.raises(ConfigurationError):
        RsiThreshold(oversold=Decimal("70"), overbought=Decimal("30"))
    with pytest.raises(ConfigurationError, match="lookback"):
        RsiThreshold(period=14, lookback=10)


def test_registry_is_closed() -> None:
    assert list_strategies() == ["ma_crossover", "noop", "rsi_threshold"]
    assert STRATEGIES["noop"] is NoOpStrategy


def test_build_strategy_passes_parameters() -> None:
    strategy = build_strategy("ma_crossover", fast=5, slow=20)

    assert isinstance(strategy, MovingAverageCrossover)
    assert strategy.parameters["fast"] == 5
    assert strategy.window_size == 21


def test_build_strategy_errors() -> None:
    with pytest.raises(StrategyNotFoundError, match="available"):
        build_strategy("martingale")
    with pytest.raises(ConfigurationError, match="Invalid parameters"):
        build_strategy("ma_crossover", window=3)
    with pytest.raises(ConfigurationError, match="Invalid parameters"):
        build_strategy("ma_crossover", fast="fast")
