"""
Price Series
Immutable, validated, time-ordered OHLCV bars.

Windows and slices are views over the series storage; nothing is copied.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Iterable, Iterator, Mapping, Optional, Union, overload

from pydantic import ValidationError as PydanticValidationError

from cryptopulse.core.errors import ValidationError
from cryptopulse.shared.models import Bar

logger = logging.getLogger(__name__)

BarLike = Union[Bar, Mapping[str, Any]]


class PriceSeriesView(Sequence):
    """Read-only view over a contiguous range of a series' bars."""

    __slots__ = ("_bars", "_start", "_stop")

    def __init__(self, bars: tuple[Bar, ...], start: int, stop: int) -> None:
        self._bars = bars
        self._start = start
        self._stop = stop

    def __len__(self) -> int:
        return self._stop - self._start

    @overload
    def __getitem__(self, index: int) -> Bar: ...

    @overload
    def __getitem__(self, index: slice) -> "PriceSeriesView": ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            start, stop, step = index.indices(len(self))
            if step != 1:
                raise ValueError("views only support contiguous slices")
            stop = max(start, stop)
            return PriceSeriesView(self._bars, self._start + start, self._start + stop)
        if index < 0:
            index += len(self)
        if not 0 <= index < len(self):
            raise IndexError("view index out of range")
        return self._bars[self._start + index]

    def __iter__(self) -> Iterator[Bar]:
        for i in range(self._start, self._stop):
            yield self._bars[i]

    def __repr__(self) -> str:
        return f"PriceSeriesView(start={self._start}, stop={self._stop})"

    def closes(self) -> list[Decimal]:
        """Close prices, oldest first."""
        return [self._bars[i].close for i in range(self._start, self._stop)]

    def shares_storage_with(self, other: Union["PriceSeries", "PriceSeriesView"]) -> bool:
        return self._bars is other._bars


class SlidingWindows:
    """Finite, restartable iterable of fixed-size sliding views."""

    def __init__(self, bars: tuple[Bar, ...], size: int) -> None:
        if size < 1:
            raise ValueError("window size must be at least 1")
        self._bars = bars
        self._size = size

    def __len__(self) -> int:
        return max(0, len(self._bars) - self._size + 1)

    def __iter__(self) -> Iterator[PriceSeriesView]:
        for start in range(len(self)):
            yield PriceSeriesView(self._bars, start, start + self._size)


class PriceSeries(Sequence):
    """
    Validated OHLCV series for one symbol.

    Build with ``PriceSeries.load``; the constructor trusts its input.
    """

    __slots__ = ("_symbol", "_bars")

    def __init__(self, symbol: str, bars: tuple[Bar, ...]) -> None:
        self._symbol = symbol
        self._bars = bars

    @classmethod
    def load(cls, bars: Iterable[BarLike], symbol: Optional[str] = None) -> "PriceSeries":
        """
        Validate and load an ordered sequence of bars.

        Args:
            bars: Bars (or bar mappings) sorted by timestamp ascending
            symbol: Symbol for mappings that do not carry one

        Returns:
            PriceSeries

        Raises:
            ValidationError: on any malformed or out-of-order bar
        """
        loaded: list[Bar] = []
        for index, raw in enumerate(bars):
            bar = _coerce_bar(raw, symbol, index)
            _validate_bar(bar, index)
            if loaded:
                previous = loaded[-1]
                if bar.symbol != previous.symbol:
                    raise ValidationError(
                        f"bar {index}: symbol {bar.symbol!r} differs from {previous.symbol!r}"
                    )
                try:
                    ordered = bar.timestamp > previous.timestamp
                except TypeError as exc:
                    raise ValidationError(f"bar {index}: incomparable timestamp: {exc}") from exc
                if not ordered:
                    raise ValidationError(
                        f"bar {index}: timestamp {bar.timestamp} is not after {previous.timestamp}"
                    )
            loaded.append(bar)

        if not loaded:
            raise ValidationError("price series is empty")

        logger.debug(f"Loaded {len(loaded)} bars for {loaded[0].symbol}")
        return cls(loaded[0].symbol, tuple(loaded))

    @property
    def symbol(self) -> str:
        return self._symbol

    def __len__(self) -> int:
        return len(self._bars)

    @overload
    def __getitem__(self, index: int) -> Bar: ...

    @overload
    def __getitem__(self, index: slice) -> PriceSeriesView: ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return PriceSeriesView(self._bars, 0, len(self._bars))[index]
        return self._bars[index]

    def __iter__(self) -> Iterator[Bar]:
        return iter(self._bars)

    def __repr__(self) -> str:
        return f"PriceSeries(symbol={self._symbol!r}, bars={len(self._bars)})"

    def windowed(self, size: int) -> SlidingWindows:
        """Sliding windows of ``size`` bars, oldest first."""
        return SlidingWindows(self._bars, size)

    def slice(self, from_index: int, to_index: int) -> PriceSeriesView:
        """
        Read-only view of bars[from_index:to_index] sharing storage.

        Raises:
            IndexError: if the range falls outside the series
        """
        if not 0 <= from_index <= to_index <= len(self._bars):
            raise IndexError(
                f"slice [{from_index}, {to_index}) outside series of {len(self._bars)} bars"
            )
        return PriceSeriesView(self._bars, from_index, to_index)

    def closes(self) -> list[Decimal]:
        return [bar.close for bar in self._bars]


def _coerce_bar(raw: BarLike, symbol: Optional[str], index: int) -> Bar:
    if isinstance(raw, Bar):
        return raw
    if not isinstance(raw, Mapping):
        raise ValidationError(f"bar {index}: expected Bar or mapping, got {type(raw).__name__}")

    data = dict(raw)
    if "symbol" not in data:
        if symbol is None:
            raise ValidationError(f"bar {index}: no symbol given")
        data["symbol"] = symbol
    try:
        return Bar.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"bar {index}: {exc}") from exc


def _validate_bar(bar: Bar, index: int) -> None:
    prices = (bar.open, bar.high, bar.low, bar.close)
    if any(not p.is_finite() or p <= 0 for p in prices):
        raise ValidationError(f"bar {index}: prices must be positive")
    if not bar.volume.is_finite() or bar.volume < 0:
        raise ValidationError(f"bar {index}: volume must be non-negative")
    if bar.high < max(bar.open, bar.close):
        raise ValidationError(f"bar {index}: high {bar.high} below open/close")
    if bar.low > min(bar.open, bar.close):
        raise ValidationError(f"bar {index}: low {bar.low} above open/close")
