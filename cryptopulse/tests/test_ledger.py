from __future__ import annotations

from decimal import Decimal

import pytest

from cryptopulse.core.errors import (
    InsufficientFundsError,
    InsufficientPositionError,
    LedgerError,
    SymbolMismatchError,
)
from cryptopulse.execution.ledger import PortfolioLedger
from cryptopulse.shared.config import FeeSettings, load_settings
from cryptopulse.shared.models import Fill, OrderSide, PositionState, TradeIntent

BTC = "BTC/USDT"


def _buy(quantity: str, symbol: str = BTC) -> TradeIntent:
    return TradeIntent(symbol=symbol, side=OrderSide.BUY, quantity=Decimal(quantity))


def _sell(quantity: str, symbol: str = BTC) -> TradeIntent:
    return TradeIntent(symbol=symbol, side=OrderSide.SELL, quantity=Decimal(quantity))


def test_buy_moves_cash_into_position(zero_cost_settings, make_bar) -> None:
    ledger = PortfolioLedger(zero_cost_settings)
    bar = make_bar(50000)

    fill = ledger.execute(_buy("0.1"), bar)
    position = ledger.position(BTC)
    snapshot = ledger.snapshot(bar)

    assert ledger.cash == Decimal("5000")
    assert position.quantity == Decimal("0.1")
    assert position.average_cost == Decimal("50000")
    assert position.state == PositionState.LONG
    assert snapshot.equity == Decimal("10000")
    assert fill.sequence == 1
    assert fill.realized_pnl is None
    assert not fill.is_closing


def test_sell_without_position_is_rejected(zero_cost_settings, make_bar) -> None:
    ledger = PortfolioLedger(zero_cost_settings)
    bar = make_bar(50000)
    intent = _sell("0.1")

    assert not ledger.can_execute(intent, bar)
    with pytest.raises(InsufficientPositionError) as exc_info:
        ledger.execute(intent, bar)
    record = ledger.reject(intent, bar, exc_info.value)

    assert record.error == "InsufficientPositionError"
    assert ledger.rejected == (record,)
    assert ledger.fills == ()
    assert ledger.cash == Decimal("10000")
    assert ledger.snapshot(bar).equity == Decimal("10000")


def test_buy_beyond_cash_is_rejected(zero_cost_settings, make_bar) -> None:
    ledger = PortfolioLedger(zero_cost_settings)

    with pytest.raises(InsufficientFundsError):
        ledger.execute(_buy("1"), make_bar(50000))
    assert ledger.cash == Decimal("10000")


def test_fee_counts_against_buying_power(make_bar) -> None:
    settings = load_settings(initial_cash=Decimal("5000"), fee=FeeSettings(rate=Decimal("0.001")))
    ledger = PortfolioLedger(settings)

    # 5000 notional + 5 fee exceeds 5000 cash
    assert not ledger.can_execute(_buy("0.1"), make_bar(50000))


def test_weighted_average_cost_and_realized_pnl(make_bar) -> None:
    settings = load_settings(initial_cash=Decimal("100000"), fee=FeeSettings(rate=Decimal("0")))
    ledger = PortfolioLedger(settings)

    ledger.execute(_buy("0.1"), make_bar(50000, 0))
    ledger.execute(_buy("0.1"), make_bar(60000, 1))
    assert ledger.position(BTC).average_cost == Decimal("55000")

    fill = ledger.execute(_sell("0.1"), make_bar(70000, 2))
    position = ledger.position(BTC)

    assert fill.realized_pnl == Decimal("1500")
    assert position.quantity == Decimal("0.1")
    assert position.average_cost == Decimal("55000")
    assert position.realized_pnl == Decimal("1500")
    assert ledger.cash == Decimal("96000")


def test_fees_reduce_cash_and_realized_pnl(make_bar) -> None:
    settings = load_settings(initial_cash=Decimal("10000"), fee=FeeSettings(rate=Decimal("0.001")))
    ledger = PortfolioLedger(settings)

    buy = ledger.execute(_buy("0.1"), make_bar(50000, 0))
    assert buy.fee == Decimal("5")
    assert ledger.cash == Decimal("4995")
    assert ledger.snapshot(make_bar(50000, 0)).equity == Decimal("9995")

    sell = ledger.execute(_sell("0.1"), make_bar(51000, 1))
    assert sell.fee == Decimal("5.1")
    assert sell.realized_pnl == Decimal("94.9")
    assert ledger.cash == Decimal("10089.9")
    assert ledger.total_fees == Decimal("10.1")


def test_slippage_worsens_execution_price(make_bar) -> None:
    settings = load_settings(slippage_bps=Decimal("10"), fee=FeeSettings(rate=Decimal("0")))
    ledger = PortfolioLedger(settings)

    fill = ledger.execute(_buy("0.1"), make_bar(50000))

    assert fill.price == Decimal("50050")
    assert fill.slippage_bps == Decimal("10")
    assert ledger.cash == Decimal("4995")


def test_flat_position_persists_until_closed(zero_cost_settings, make_bar) -> None:
    ledger = PortfolioLedger(zero_cost_settings)
    ledger.execute(_buy("0.1"), make_bar(50000, 0))

    with pytest.raises(LedgerError, match="open"):
        ledger.close_position(BTC)

    ledger.execute(_sell("0.1"), make_bar(50000, 1))
    assert ledger.state(BTC) == PositionState.FLAT
    assert BTC in ledger.positions
    assert ledger.position(BTC).average_cost == Decimal("50000")

    ledger.close_position(BTC)
    assert BTC not in ledger.positions
    ledger.close_position(BTC)


def test_short_selling_and_flip_to_long(make_bar) -> None:
    settings = load_settings(allow_short=True, fee=FeeSettings(rate=Decimal("0")))
    ledger = PortfolioLedger(settings)

    ledger.execute(_sell("0.1"), make_bar(50000, 0))
    assert ledger.state(BTC) == PositionState.SHORT
    assert ledger.cash == Decimal("15000")
    assert ledger.snapshot(make_bar(50000, 0)).equity == Decimal("10000")

    fill = ledger.execute(_buy("0.2"), make_bar(40000, 1))
    position = ledger.position(BTC)

    assert fill.realized_pnl == Decimal("1000")
    assert position.state == PositionState.LONG
    assert position.quantity == Decimal("0.1")
    assert position.average_cost == Decimal("40000")
    assert position.opened_at == make_bar(40000, 1).timestamp
    assert ledger.cash == Decimal("7000")
    assert ledger.snapshot(make_bar(40000, 1)).equity == Decimal("11000")


def test_symbol_mismatch_is_rejected(zero_cost_settings, make_bar) -> None:
    ledger = PortfolioLedger(zero_cost_settings)

    with pytest.raises(SymbolMismatchError):
        ledger.execute(_buy("0.1", symbol="ETH/USDT"), make_bar(50000))


def test_quantity_is_floored_to_precision(make_bar) -> None:
    settings = load_settings(quantity_precision=2, fee=FeeSettings(rate=Decimal("0")))
    ledger = PortfolioLedger(settings)

    fill = ledger.execute(_buy("0.129"), make_bar(100))
    assert fill.quantity == Decimal("0.12")

    with pytest.raises(LedgerError, match="rounds to zero"):
        ledger.execute(_buy("0.001"), make_bar(100))


def test_leverage_extends_buying_power(make_bar) -> None:
    intent = _buy("0.3")
    bar = make_bar(50000)

    unlevered = PortfolioLedger(load_settings(fee=FeeSettings(rate=Decimal("0"))))
    levered = PortfolioLedger(load_settings(leverage=Decimal("2"), fee=FeeSettings(rate=Decimal("0"))))

    assert not unlevered.can_execute(intent, bar)
    levered.execute(intent, bar)
    assert levered.cash == Decimal("-5000")
    assert levered.snapshot(bar).equity == Decimal("10000")


def test_snapshot_is_read_only(zero_cost_settings, make_bar) -> None:
    ledger = PortfolioLedger(zero_cost_settings)
    ledger.execute(_buy("0.1"), make_bar(50000, 0))

    first = ledger.snapshot(make_bar(60000, 1))
    second = ledger.snapshot(make_bar(60000, 1))

    assert first == second
    assert first.equity == Decimal("11000")
    assert first.gross_exposure == Decimal("6000")
    assert len(ledger.fills) == 1


def test_snapshot_at_marks_unpriced_symbols_at_cost(zero_cost_settings, make_bar) -> None:
    ledger = PortfolioLedger(zero_cost_settings)
    bar = make_bar(50000)
    ledger.execute(_buy("0.1"), bar)

    snapshot = ledger.snapshot_at(bar.timestamp, {})

    assert snapshot.equity == Decimal("10000")


def test_apply_fill_recomputes_realized_pnl(zero_cost_settings, make_bar) -> None:
    ledger = PortfolioLedger(zero_cost_settings)
    bar = make_bar(100)
    ledger.execute(_buy("10"), bar)

    external = Fill(
        sequence=99,
        timestamp=bar.timestamp,
        symbol=BTC,
        side=OrderSide.SELL,
        quantity=Decimal("4"),
        price=Decimal("110"),
        fee=Decimal("1"),
        realized_pnl=Decimal("123456"),
    )
    recorded = ledger.apply_fill(external)

    assert recorded.realized_pnl == Decimal("39")
    assert recorded.sequence == 99
    assert ledger.position(BTC).quantity == Decimal("6")
    assert ledger.cash == Decimal("10000") - Decimal("1000") + Decimal("440") - Decimal("1")


def test_position_remembers_when_it_was_opened(zero_cost_settings, make_bar) -> None:
    ledger = PortfolioLedger(zero_cost_settings)
    first = make_bar(100, 0)

    ledger.execute(_buy("1"), first)
    ledger.execute(_buy("1"), make_bar(110, 1))
    assert ledger.position(BTC).opened_at == first.timestamp

    ledger.execute(_sell("1"), make_bar(120, 2))
    assert ledger.position(BTC).opened_at == first.timestamp

    ledger.execute(_sell("1"), make_bar(120, 3))
    assert ledger.position(BTC).opened_at is None

    reopen = make_bar(90, 4)
    ledger.execute(_buy("1"), reopen)
    assert ledger.position(BTC).opened_at == reopen.timestamp
