"""Core contracts for the engine."""

from cryptopulse.core.errors import (
    BacktestCancelled,
    ConfigurationError,
    EngineError,
    InsufficientFundsError,
    InsufficientPositionError,
    LedgerError,
    StrategyNotFoundError,
    SymbolMismatchError,
    ValidationError,
)

__all__ = [
    "EngineError",
    "ValidationError",
    "ConfigurationError",
    "StrategyNotFoundError",
    "LedgerError",
    "InsufficientFundsError",
    "InsufficientPositionError",
    "SymbolMismatchError",
    "BacktestCancelled",
]
