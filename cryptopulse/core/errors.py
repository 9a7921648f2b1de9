"""Typed errors for the backtesting and risk engine."""


class EngineError(Exception):
    """Base class for engine errors."""


class ValidationError(EngineError):
    """Raised when an input price series is malformed. Fatal before simulation starts."""


class ConfigurationError(EngineError):
    """Raised when settings, weights, thresholds or strategy parameters are invalid."""


class StrategyNotFoundError(ConfigurationError):
    """Raised when a strategy name is not in the registry."""


class LedgerError(EngineError):
    """Base class for per-intent execution failures.

    These are recovered locally: the intent is recorded as rejected and the
    simulation continues.
    """


class InsufficientFundsError(LedgerError):
    """Raised when a buy would exceed the available buying power."""


class InsufficientPositionError(LedgerError):
    """Raised when a sell exceeds the held quantity and shorting is disabled."""


class SymbolMismatchError(LedgerError):
    """Raised when an intent targets a symbol other than the bar being processed."""


class BacktestCancelled(EngineError):
    """Raised when a running backtest is cancelled between bars."""
