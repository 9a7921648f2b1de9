from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cryptopulse.shared.config import EngineSettings, FeeSettings, load_settings
from cryptopulse.shared.models import Bar, PortfolioSnapshot, Position

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
SYMBOL = "BTC/USDT"


def _bar(close, index: int = 0, symbol: str = SYMBOL) -> Bar:
    price = Decimal(str(close))
    return Bar(
        symbol=symbol,
        timestamp=START + timedelta(days=index),
        open=price,
        high=price,
        low=price,
        close=price,
        volume=Decimal("1"),
    )


@pytest.fixture
def make_bar():
    return _bar


@pytest.fixture
def make_bars():
    def _make(closes, symbol: str = SYMBOL) -> list[Bar]:
        return [_bar(close, i, symbol) for i, close in enumerate(closes)]

    return _make


@pytest.fixture
def make_snapshot():
    def _make(equity, index: int = 0, cash=None, positions=None, gross_exposure="0") -> PortfolioSnapshot:
        return PortfolioSnapshot(
            timestamp=START + timedelta(days=index),
            cash=Decimal(str(equity if cash is None else cash)),
            positions=positions or {},
            equity=Decimal(str(equity)),
            gross_exposure=Decimal(str(gross_exposure)),
        )

    return _make


@pytest.fixture
def flat_portfolio() -> PortfolioSnapshot:
    return PortfolioSnapshot(timestamp=START, cash=Decimal("10000"), equity=Decimal("10000"))


@pytest.fixture
def long_portfolio() -> PortfolioSnapshot:
    position = Position(symbol=SYMBOL, quantity=Decimal("0.5"), average_cost=Decimal("13"))
    return PortfolioSnapshot(
        timestamp=START,
        cash=Decimal("9993.5"),
        positions={SYMBOL: position},
        equity=Decimal("10000"),
    )


@pytest.fixture
def zero_cost_settings() -> EngineSettings:
    """10,000 cash, no fees, no slippage."""
    return load_settings(
        initial_cash=Decimal("10000"),
        slippage_bps=Decimal("0"),
        fee=FeeSettings(rate=Decimal("0")),
    )


@pytest.fixture
def wave_closes() -> list[int]:
    """Triangle wave between 100 and 200 with a 40-bar period."""
    return [100 + 5 * (i % 40 if i % 40 < 20 else 40 - i % 40) for i in range(160)]
