"""
CSV Bar Source
Loads historical bars from CSV files for offline backtesting.
"""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Union

from cryptopulse.core.errors import ValidationError
from cryptopulse.data.price_series import PriceSeries

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("timestamp", "open", "high", "low", "close")


def load_csv(filepath: Union[str, Path], symbol: str) -> PriceSeries:
    """
    Load bars from a CSV file.

    Expected columns: timestamp,open,high,low,close[,volume]
    Rows are sorted by timestamp before validation; duplicate timestamps
    still fail validation.

    Args:
        filepath: Path to CSV file
        symbol: Symbol identifier

    Returns:
        Validated PriceSeries

    Raises:
        ValidationError: on missing columns or malformed rows
    """
    path = Path(filepath)
    logger.info(f"Loading bars for {symbol} from {path}")

    with path.open("r", newline="") as f:
        reader = csv.DictReader(f)
        columns = set(reader.fieldnames or ())
        missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise ValidationError(f"Missing required columns in {path}: {missing}")

        records = []
        for line, row in enumerate(reader, start=2):
            try:
                timestamp = datetime.fromisoformat(row["timestamp"])
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"{path}:{line}: bad timestamp {row['timestamp']!r}") from exc
            records.append(
                {
                    "symbol": symbol,
                    "timestamp": timestamp,
                    "open": row["open"],
                    "high": row["high"],
                    "low": row["low"],
                    "close": row["close"],
                    "volume": row.get("volume") or "0",
                }
            )

    records.sort(key=lambda r: r["timestamp"])
    return PriceSeries.load(records)
