"""
Bias-Safe Backtesting Engine
Event-driven, single-pass replay of bars through one strategy.

Key guarantees:
- Strategy only sees bars up to the current timestamp
- Fills priced by the same FillSimulator as live tracking
- Identical inputs and settings give an identical trade log and equity curve
- A run either completes with a full result or raises before returning one
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from cryptopulse.analytics.reporter import AnalyticsReporter, PerformanceSummary
from cryptopulse.backtest.cancellation import CancellationToken
from cryptopulse.core.errors import BacktestCancelled, ConfigurationError, LedgerError
from cryptopulse.data.price_series import BarLike, PriceSeries
from cryptopulse.execution.ledger import PortfolioLedger
from cryptopulse.risk_engine.engine import RiskEngine
from cryptopulse.shared.config import EngineSettings, get_settings
from cryptopulse.shared.models import (
    Fill,
    LoggedIntent,
    PortfolioSnapshot,
    RejectedIntent,
    RiskAlert,
    RiskMetrics,
)
from cryptopulse.strategy.base import Strategy

logger = logging.getLogger(__name__)

# (bars processed, total bars)
ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class BacktestResult:
    """Results of a backtest run."""
    strategy_name: str
    parameters: Dict[str, Any]

    # Detailed records
    equity_curve: Tuple[PortfolioSnapshot, ...]
    trades: Tuple[Fill, ...]
    rejected: Tuple[RejectedIntent, ...]
    intents: Tuple[LoggedIntent, ...]

    # Risk
    risk_metrics: Tuple[RiskMetrics, ...]
    alerts: Tuple[RiskAlert, ...]

    # Performance
    summary: PerformanceSummary

    @property
    def final_snapshot(self) -> PortfolioSnapshot:
        return self.equity_curve[-1]

    @property
    def final_equity(self) -> Decimal:
        return self.equity_curve[-1].equity


class BacktestRunner:
    """
    Event-driven backtesting engine.

    Processes bars chronologically, hands each strategy decision to a fresh
    PortfolioLedger, then scores the equity curve with the RiskEngine and
    AnalyticsReporter.
    """

    def __init__(
        self,
        strategy: Strategy,
        settings: Optional[EngineSettings] = None,
        progress_callback: Optional[ProgressCallback] = None,
        progress_interval: int = 1000,
    ) -> None:
        """
        Initialize backtest runner.

        Args:
            strategy: Strategy to replay
            settings: Engine settings (defaults to cached settings)
            progress_callback: Called with (processed, total) every ``progress_interval`` bars
            progress_interval: Bars between progress callbacks
        """
        if strategy.window_size < 1:
            raise ConfigurationError(f"{strategy.name}: window_size must be at least 1")
        if progress_interval < 1:
            raise ConfigurationError("progress_interval must be at least 1")

        self._strategy = strategy
        self._settings = settings or get_settings()
        self._progress_callback = progress_callback
        self._progress_interval = progress_interval

    @property
    def strategy(self) -> Strategy:
        return self._strategy

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    def run(
        self,
        bars: Union[PriceSeries, Iterable[BarLike]],
        cancel_token: Optional[CancellationToken] = None,
    ) -> BacktestResult:
        """
        Run backtest over bar data.

        CRITICAL: bars must be sorted by timestamp ascending; unsorted or
        malformed input fails validation before the first bar is processed.

        Args:
            bars: PriceSeries, or bars to validate into one
            cancel_token: Checked before every bar

        Returns:
            BacktestResult

        Raises:
            ValidationError: malformed bars
            BacktestCancelled: the token was cancelled mid-run
        """
        series = bars if isinstance(bars, PriceSeries) else PriceSeries.load(bars)
        strategy = self._strategy
        size = strategy.window_size
        total = len(series)

        logger.info(f"Starting backtest: {strategy.name} on {series.symbol} ({total} bars)")

        ledger = PortfolioLedger(self._settings)
        starting_cash = ledger.cash
        intents: List[LoggedIntent] = []
        curve: List[PortfolioSnapshot] = []

        for t, bar in enumerate(series):
            if cancel_token is not None and cancel_token.is_cancelled:
                logger.info(f"Backtest cancelled at bar {t}/{total}")
                raise BacktestCancelled(f"{strategy.name} cancelled at bar {t} of {total}")

            window = series.slice(max(0, t - size + 1), t + 1)
            portfolio = ledger.snapshot(bar)

            for intent in strategy.decide(window, portfolio):
                intents.append(LoggedIntent(timestamp=bar.timestamp, intent=intent))
                try:
                    ledger.execute(intent, bar)
                except LedgerError as e:
                    ledger.reject(intent, bar, e)

            curve.append(ledger.snapshot(bar))

            processed = t + 1
            if self._progress_callback is not None and (
                processed % self._progress_interval == 0 or processed == total
            ):
                self._progress_callback(processed, total)

        risk = RiskEngine(self._settings.risk).evaluate(curve)
        reporter = AnalyticsReporter(self._settings.periods_per_year)
        summary = reporter.summarize(
            curve,
            ledger.fills,
            ledger.rejected,
            initial_equity=starting_cash,
        )

        result = BacktestResult(
            strategy_name=strategy.name,
            parameters=dict(strategy.parameters),
            equity_curve=tuple(curve),
            trades=ledger.fills,
            rejected=ledger.rejected,
            intents=tuple(intents),
            risk_metrics=risk.metrics,
            alerts=risk.alerts,
            summary=summary,
        )

        logger.info(
            f"Backtest complete: {summary.total_trades} trades, "
            f"{summary.rejected_intents} rejected, "
            f"return={summary.total_return * 100:.2f}%, "
            f"sharpe={summary.sharpe_ratio:.2f}"
        )
        return result
