"""CryptoPulse: deterministic strategy backtesting and live risk monitoring."""

__version__ = "0.1.0"
