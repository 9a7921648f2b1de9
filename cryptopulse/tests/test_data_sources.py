from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from cryptopulse.core.errors import ValidationError
from cryptopulse.data.csv_source import load_csv
from cryptopulse.data.parquet_source import DataCatalog, ParquetDataSource


class _Frame:
    def __init__(self, rows):
        self._rows = list(rows)
        self.columns = tuple(self._rows[0].keys()) if self._rows else tuple()

    def sort_values(self, key):
        return _Frame(sorted(self._rows, key=lambda row: row[key]))

    def to_dict(self, orient="records"):
        assert orient == "records"
        return list(self._rows)

    def reset_index(self):
        return self


def _write(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


def test_csv_rows_are_sorted_by_timestamp(tmp_path) -> None:
    path = _write(
        tmp_path / "btc.csv",
        "timestamp,open,high,low,close,volume\n"
        "2026-01-02T00:00:00+00:00,101,102,100,101.5,3\n"
        "2026-01-01T00:00:00+00:00,100,101,99,100.5,2\n",
    )
    series = load_csv(path, "BTC/USDT")

    assert series.symbol == "BTC/USDT"
    assert series.closes() == [Decimal("100.5"), Decimal("101.5")]
    assert series[0].volume == Decimal("2")


def test_csv_volume_is_optional(tmp_path) -> None:
    path = _write(
        tmp_path / "btc.csv",
        "timestamp,open,high,low,close\n2026-01-01T00:00:00+00:00,100,101,99,100\n",
    )

    assert load_csv(path, "BTC/USDT")[0].volume == 0


def test_csv_requires_ohlc_columns(tmp_path) -> None:
    path = _write(tmp_path / "btc.csv", "timestamp,open,close\n2026-01-01T00:00:00+00:00,1,1\n")

    with pytest.raises(ValidationError, match="Missing required columns"):
        load_csv(path, "BTC/USDT")


def test_csv_rejects_bad_timestamp(tmp_path) -> None:
    path = _write(tmp_path / "btc.csv", "timestamp,open,high,low,close\nyesterday,1,1,1,1\n")

    with pytest.raises(ValidationError, match="bad timestamp"):
        load_csv(path, "BTC/USDT")


def test_csv_rejects_duplicate_timestamps(tmp_path) -> None:
    path = _write(
        tmp_path / "btc.csv",
        "timestamp,open,high,low,close\n"
        "2026-01-01T00:00:00+00:00,1,1,1,1\n"
        "2026-01-01T00:00:00+00:00,1,1,1,1\n",
    )

    with pytest.raises(ValidationError, match="not after"):
        load_csv(path, "BTC/USDT")


def test_catalog_maps_symbol_to_file() -> None:
    assert DataCatalog("curated").path_for_symbol("BTC/USDT") == Path("curated") / "BTC-USDT.parquet"


def test_parquet_source_reads_and_sorts_rows() -> None:
    rows = [
        {
            "timestamp": datetime(2026, 1, 1, 0, 1, tzinfo=timezone.utc),
            "open": 102,
            "high": 103,
            "low": 100,
            "close": 101.1,
            "volume": 10,
        },
        {
            "timestamp": datetime(2026, 1, 1, 0, 0, tzinfo=timezone.utc),
            "open": 100,
            "high": 101,
            "low": 99,
            "close": 100,
            "volume": 5,
        },
    ]
    paths = []

    def _read(path):
        paths.append(path)
        return _Frame(rows)

    source = ParquetDataSource(root="data/curated", read_parquet=_read)
    bars = source.get_bars("BTC/USDT")

    assert paths == [Path("data/curated") / "BTC-USDT.parquet"]
    assert len(bars) == 2
    assert bars[0].timestamp < bars[1].timestamp
    assert bars[0].symbol == "BTC/USDT"
    assert bars[1].close == Decimal("101.1")


def test_parquet_source_requires_ohlcv_columns() -> None:
    rows = [
        {
            "timestamp": datetime(2026, 1, 1, tzinfo=timezone.utc),
            "open": 100,
            "high": 101,
            "close": 100,
            "volume": 1,
        }
    ]
    source = ParquetDataSource(read_parquet=lambda _path: _Frame(rows))

    with pytest.raises(ValidationError, match="Missing required columns"):
        source.get_bars("BTC/USDT")


def test_parquet_source_rejects_non_datetime_timestamps() -> None:
    rows = [{"timestamp": "2026-01-01", "open": 1, "high": 1, "low": 1, "close": 1, "volume": 1}]
    source = ParquetDataSource(read_parquet=lambda _path: _Frame(rows))

    with pytest.raises(ValidationError, match="datetime-like"):
        source.get_bars("BTC/USDT")
