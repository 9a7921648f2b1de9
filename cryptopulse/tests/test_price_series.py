from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cryptopulse.core.errors import ValidationError
from cryptopulse.data.price_series import PriceSeries
from cryptopulse.shared.models import Bar


def test_load_accepts_ordered_bars(make_bars) -> None:
    series = PriceSeries.load(make_bars([100, 101, 102]))

    assert len(series) == 3
    assert series.symbol == "BTC/USDT"
    assert series.closes() == [Decimal("100"), Decimal("101"), Decimal("102")]


def test_load_coerces_mappings_with_default_symbol() -> None:
    rows = [
        {"timestamp": datetime(2026, 1, 1), "open": "1", "high": "2", "low": "0.5", "close": "1.5"},
        {"timestamp": datetime(2026, 1, 2), "open": "1.5", "high": "2", "low": "1", "close": "1.8"},
    ]
    series = PriceSeries.load(rows, symbol="ETH/USDT")

    assert series.symbol == "ETH/USDT"
    assert series[1].close == Decimal("1.8")
    assert series[0].volume == Decimal("0")


def test_load_rejects_out_of_order_timestamps(make_bars) -> None:
    bars = make_bars([100, 101, 102])
    with pytest.raises(ValidationError, match="not after"):
        PriceSeries.load([bars[0], bars[2], bars[1]])


def test_load_rejects_duplicate_timestamps(make_bars) -> None:
    bar = make_bars([100])[0]
    with pytest.raises(ValidationError, match="not after"):
        PriceSeries.load([bar, bar])


def test_load_rejects_ohlc_violation(make_bar) -> None:
    bar = make_bar(100).model_copy(update={"high": Decimal("99")})
    with pytest.raises(ValidationError, match="high"):
        PriceSeries.load([bar])


def test_load_rejects_non_positive_price(make_bar) -> None:
    bar = make_bar(100).model_copy(update={"low": Decimal("0")})
    with pytest.raises(ValidationError, match="positive"):
        PriceSeries.load([bar])


def test_load_rejects_negative_volume(make_bar) -> None:
    bar = make_bar(100).model_copy(update={"volume": Decimal("-1")})
    with pytest.raises(ValidationError, match="volume"):
        PriceSeries.load([bar])


def test_load_rejects_empty_and_mixed_symbols(make_bar) -> None:
    with pytest.raises(ValidationError, match="empty"):
        PriceSeries.load([])

    with pytest.raises(ValidationError, match="symbol"):
        PriceSeries.load([make_bar(100, 0), make_bar(100, 1, symbol="ETH/USDT")])


def test_load_rejects_malformed_records() -> None:
    rows = [{"timestamp": datetime(2026, 1, 1), "open": "x", "high": "1", "low": "1", "close": "1"}]
    with pytest.raises(ValidationError, match="bar 0"):
        PriceSeries.load(rows, symbol="BTC/USDT")

    with pytest.raises(ValidationError, match="no symbol"):
        PriceSeries.load([{"timestamp": datetime(2026, 1, 1), "open": 1, "high": 1, "low": 1, "close": 1}])


def test_load_rejects_mixed_naive_and_aware_timestamps() -> None:
    aware = datetime(2026, 1, 1, tzinfo=timezone.utc)
    bars = [
        Bar(symbol="BTC/USDT", timestamp=aware, open=1, high=1, low=1, close=1),
        Bar(symbol="BTC/USDT", timestamp=datetime(2026, 1, 2), open=1, high=1, low=1, close=1),
    ]
    with pytest.raises(ValidationError, match="incomparable"):
        PriceSeries.load(bars)


def test_windowed_is_finite_and_restartable(make_bars) -> None:
    series = PriceSeries.load(make_bars([1, 2, 3, 4, 5]))
    windows = series.windowed(3)

    first_pass = [w.closes() for w in windows]
    second_pass = [w.closes() for w in windows]

    assert len(windows) == 3
    assert first_pass == second_pass
    assert first_pass[0] == [Decimal(1), Decimal(2), Decimal(3)]
    assert first_pass[-1] == [Decimal(3), Decimal(4), Decimal(5)]


def test_windowed_edge_sizes(make_bars) -> None:
    series = PriceSeries.load(make_bars([1, 2]))

    assert list(series.windowed(3)) == []
    with pytest.raises(ValueError):
        series.windowed(0)


def test_slice_is_a_view_sharing_storage(make_bars) -> None:
    series = PriceSeries.load(make_bars([1, 2, 3, 4, 5]))
    view = series.slice(1, 4)

    assert len(view) == 3
    assert view.shares_storage_with(series)
    assert view[0] is series[1]
    assert view[-1] is series[3]

    nested = view[1:]
    assert len(nested) == 2
    assert nested.shares_storage_with(series)
    assert nested.closes() == [Decimal(3), Decimal(4)]

    with pytest.raises(IndexError):
        view[3]


def test_slice_bounds_are_checked(make_bars) -> None:
    series = PriceSeries.load(make_bars([1, 2, 3]))

    assert len(series.slice(3, 3)) == 0
    with pytest.raises(IndexError):
        series.slice(2, 4)
    with pytest.raises(IndexError):
        series.slice(2, 1)


def test_series_slicing_syntax_returns_view(make_bars) -> None:
    series = PriceSeries.load(make_bars([1, 2, 3, 4]))
    view = series[-2:]

    assert view.closes() == [Decimal(3), Decimal(4)]
    assert view.shares_storage_with(series)
    assert series[0].timestamp + timedelta(days=3) == series[-1].timestamp
