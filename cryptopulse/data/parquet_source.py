"""
Parquet Bar Source
Reads curated OHLCV files laid out as ``<root>/<BASE-QUOTE>.parquet``.

pandas is only needed when no reader is injected, so the engine core runs
without the ``parquet`` extra installed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator

from cryptopulse.core.errors import ValidationError
from cryptopulse.core.ports import DataSource
from cryptopulse.data.price_series import PriceSeries

logger = logging.getLogger(__name__)

FrameReader = Callable[[Path], Any]

PRICE_COLUMNS: tuple[str, ...] = ("open", "high", "low", "close", "volume")


class DataCatalog:
    """Maps trading pairs to files; ``BTC/USDT`` is stored as ``BTC-USDT.parquet``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for_symbol(self, symbol: str) -> Path:
        return self.root / f"{symbol.replace('/', '-')}.parquet"


def _pandas_reader(path: Path) -> Any:
    import pandas as pd

    return pd.read_parquet(path)


class ParquetDataSource(DataSource):
    """
    Read-only bar source over a DataCatalog.

    The frame may carry timestamps as a column or as its index. Prices are
    converted through ``str`` so float columns keep their printed value
    instead of their binary expansion.
    """

    def __init__(
        self,
        root: str | Path = "data/curated",
        *,
        read_parquet: FrameReader | None = None,
    ) -> None:
        self.catalog = DataCatalog(root)
        self._read = read_parquet or _pandas_reader

    def get_bars(self, symbol: str) -> PriceSeries:
        path = self.catalog.path_for_symbol(symbol)
        logger.info(f"Loading bars for {symbol} from {path}")
        return PriceSeries.load(self._records(symbol, self._read(path)))

    def _records(self, symbol: str, frame: Any) -> Iterator[dict[str, Any]]:
        columns = set(getattr(frame, "columns", ()))
        missing = [c for c in PRICE_COLUMNS if c not in columns]
        if missing:
            raise ValidationError(f"Missing required columns for {symbol}: {missing}")

        if "timestamp" not in columns:
            frame = frame.reset_index()
            if "timestamp" not in set(frame.columns):
                raise ValidationError(f"No timestamp column or index for {symbol}")

        for row in frame.sort_values("timestamp").to_dict(orient="records"):
            ts = row["timestamp"]
            if hasattr(ts, "to_pydatetime"):
                ts = ts.to_pydatetime()
            if not isinstance(ts, datetime):
                raise ValidationError(f"timestamp must be datetime-like for {symbol}, got {ts!r}")
            yield {
                "symbol": symbol,
                "timestamp": ts,
                **{c: str(row[c]) for c in PRICE_COLUMNS},
            }
