"""
Risk Engine
Rolling drawdown, volatility, exposure and composite risk score, with
edge-triggered threshold alerts.

One instance per portfolio. The same metric logic serves a completed
equity curve (``evaluate``) and a live snapshot stream (``update``).
"""

import logging
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Deque, Iterable, List, Mapping, Optional, Tuple, Union

from cryptopulse.risk_engine import metrics as m
from cryptopulse.risk_engine.rules import ThresholdEvaluator
from cryptopulse.shared.config import RiskSettings, get_settings
from cryptopulse.shared.models import PortfolioSnapshot, RiskAlert, RiskMetric, RiskMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskReport:
    """Backtest-mode output: one metrics record per snapshot plus the alerts raised."""
    metrics: Tuple[RiskMetrics, ...]
    alerts: Tuple[RiskAlert, ...]

    @property
    def max_drawdown(self) -> Decimal:
        return max((record.drawdown for record in self.metrics), default=m.ZERO)


class RiskEngine:
    """
    Stateful risk calculator.

    Running state (peak equity, trailing returns, edge-trigger flags)
    belongs to this instance and is only advanced by ``update``.
    """

    def __init__(self, settings: Optional[Union[RiskSettings, Mapping[str, Any]]] = None) -> None:
        """
        Initialize risk engine.

        Args:
            settings: Risk settings, or a mapping of their fields
                (defaults to the cached engine settings)

        Raises:
            ConfigurationError: invalid weights, thresholds or window
        """
        if settings is None:
            settings = get_settings().risk
        elif not isinstance(settings, RiskSettings):
            settings = RiskSettings(**settings)
        self._settings = settings
        self._evaluator = ThresholdEvaluator(self._settings.thresholds)
        self._peak: Optional[Decimal] = None
        self._last_equity: Optional[Decimal] = None
        self._returns: Deque[Decimal] = deque(maxlen=self._settings.window)
        self._latest: Optional[RiskMetrics] = None

    @property
    def settings(self) -> RiskSettings:
        return self._settings

    @property
    def peak_equity(self) -> Optional[Decimal]:
        return self._peak

    @property
    def latest(self) -> Optional[RiskMetrics]:
        """Metrics for the most recent snapshot."""
        return self._latest

    def measure(self, snapshot: PortfolioSnapshot) -> RiskMetrics:
        """Advance the running state with ``snapshot`` and return its metrics."""
        equity = snapshot.equity
        if self._last_equity is not None:
            self._returns.append(m.period_return(self._last_equity, equity))
        self._last_equity = equity
        self._peak = equity if self._peak is None else max(self._peak, equity)

        drawdown = m.drawdown(equity, self._peak)
        volatility = m.volatility(list(self._returns))
        exposure = m.exposure(snapshot.gross_exposure, equity)

        self._latest = RiskMetrics(
            timestamp=snapshot.timestamp,
            equity=equity,
            drawdown=drawdown,
            volatility=volatility,
            exposure=exposure,
            risk_score=m.risk_score(drawdown, volatility, exposure, self._settings.weights),
        )
        return self._latest

    def update(self, snapshot: PortfolioSnapshot) -> List[RiskAlert]:
        """
        Monitoring mode: process one snapshot.

        Returns:
            Alerts that fired on this snapshot (usually none)
        """
        alerts = self._evaluator.evaluate(self.measure(snapshot))
        for alert in alerts:
            logger.warning(f"Risk alert [{alert.severity.value}]: {alert.message}")
        return alerts

    def evaluate(self, curve: Iterable[PortfolioSnapshot]) -> RiskReport:
        """
        Backtest mode: reset, then replay a completed equity curve.
        """
        self.reset()
        records: List[RiskMetrics] = []
        alerts: List[RiskAlert] = []
        for snapshot in curve:
            alerts.extend(self.update(snapshot))
            records.append(self._latest)
        return RiskReport(metrics=tuple(records), alerts=tuple(alerts))

    def is_breached(self, metric: RiskMetric) -> bool:
        return self._evaluator.breached.get(metric, False)

    def reset(self) -> None:
        """Clear running peak, returns and trigger state."""
        self._evaluator.reset()
        self._peak = None
        self._last_equity = None
        self._returns.clear()
        self._latest = None
