"""
Risk Metrics
Pure functions shared by the risk engine (live and backtest) and the
analytics reporter.
"""

import statistics
from decimal import Decimal
from typing import List, Sequence

from cryptopulse.shared.config import RiskWeights

ZERO = Decimal("0")
ONE = Decimal("1")

# Exposure reported when equity is wiped out but positions remain open
EXPOSURE_CAP = Decimal("100")


def clamp(value: Decimal, low: Decimal = ZERO, high: Decimal = ONE) -> Decimal:
    return max(low, min(high, value))


def period_return(previous: Decimal, current: Decimal) -> Decimal:
    """Simple return between two equity marks; zero if ``previous`` is not positive."""
    if previous <= 0:
        return ZERO
    return (current - previous) / previous


def period_returns(equities: Sequence[Decimal]) -> List[Decimal]:
    return [period_return(equities[i - 1], equities[i]) for i in range(1, len(equities))]


def drawdown(equity: Decimal, peak: Decimal) -> Decimal:
    """
    Fractional drawdown from the running peak, clamped to [0, 1].

    A non-positive peak has no meaningful drawdown and reports 0.
    """
    if peak <= 0:
        return ZERO
    return clamp((peak - equity) / peak)


def drawdown_series(equities: Sequence[Decimal]) -> List[Decimal]:
    """Drawdown at every point of an equity curve; the first point is always 0."""
    series: List[Decimal] = []
    peak = None
    for equity in equities:
        peak = equity if peak is None else max(peak, equity)
        series.append(drawdown(equity, peak))
    return series


def max_drawdown(equities: Sequence[Decimal]) -> Decimal:
    return max(drawdown_series(equities), default=ZERO)


def volatility(returns: Sequence[Decimal]) -> Decimal:
    """Population standard deviation of period returns; 0 for fewer than two."""
    if len(returns) < 2:
        return ZERO
    return statistics.pstdev(returns)


def exposure(gross_exposure: Decimal, equity: Decimal) -> Decimal:
    """Gross position value over equity."""
    if equity <= 0:
        return EXPOSURE_CAP if gross_exposure > 0 else ZERO
    return gross_exposure / equity


def risk_score(
    drawdown_value: Decimal,
    volatility_value: Decimal,
    exposure_value: Decimal,
    weights: RiskWeights,
) -> Decimal:
    """Weighted average of the component metrics, clamped to [0, 1]."""
    total = weights.drawdown + weights.volatility + weights.exposure
    weighted = (
        weights.drawdown * drawdown_value
        + weights.volatility * volatility_value
        + weights.exposure * exposure_value
    )
    return clamp(weighted / total)
