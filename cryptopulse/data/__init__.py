"""Market data containers and read-only sources."""

from cryptopulse.data.csv_source import load_csv
from cryptopulse.data.price_series import PriceSeries, PriceSeriesView, SlidingWindows

__all__ = ["PriceSeries", "PriceSeriesView", "SlidingWindows", "load_csv"]
