"""Backtesting: single runs, parameter sweeps and walk-forward validation."""

from cryptopulse.backtest.cancellation import CancellationToken
from cryptopulse.backtest.engine import BacktestResult, BacktestRunner

__all__ = ["BacktestResult", "BacktestRunner", "CancellationToken"]
