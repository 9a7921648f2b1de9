"""
Analytics Reporter
Performance statistics over a completed equity curve and trade log.

Pure: the same inputs always produce the same summary.
"""

import logging
import statistics
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from cryptopulse.core.errors import ConfigurationError, ValidationError
from cryptopulse.risk_engine.metrics import max_drawdown, period_returns
from cryptopulse.shared.models import Fill, PortfolioSnapshot, RejectedIntent

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Performance benchmarks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class Benchmark:
    """Minimums (maximum for drawdown) a run must meet for a rating."""
    total_return: Decimal
    sharpe_ratio: Decimal
    max_drawdown: Decimal
    win_rate: Decimal
    profit_factor: Decimal
    calmar_ratio: Decimal


BENCHMARKS: Tuple[Tuple[str, Benchmark], ...] = (
    ("excellent", Benchmark(Decimal("0.20"), Decimal("2.0"), Decimal("0.05"), Decimal("0.60"), Decimal("2.0"), Decimal("4.0"))),
    ("good", Benchmark(Decimal("0.10"), Decimal("1.5"), Decimal("0.10"), Decimal("0.50"), Decimal("1.5"), Decimal("2.0"))),
    ("average", Benchmark(Decimal("0.05"), Decimal("1.0"), Decimal("0.15"), Decimal("0.40"), Decimal("1.2"), Decimal("1.0"))),
)


class PerformanceSummary(BaseModel):
    """Summary statistics of one backtest."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Returns
    initial_equity: Decimal
    final_equity: Decimal
    total_return: Decimal
    sharpe_ratio: Decimal
    max_drawdown: Decimal
    calmar_ratio: Decimal

    # Trades (closing fills)
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: Decimal
    profit_factor: Decimal
    average_win: Decimal
    average_loss: Decimal  # negative or zero
    largest_win: Decimal
    largest_loss: Decimal  # negative or zero

    # Activity
    total_fills: int
    rejected_intents: int
    total_fees: Decimal
    periods: int

    rating: str


def sharpe_ratio(returns: Sequence[Decimal], periods_per_year: int) -> Decimal:
    """
    Annualized Sharpe ratio (zero risk-free rate).

    Returns 0 when there are fewer than two returns or they do not vary.
    """
    if len(returns) < 2:
        return ZERO
    deviation = statistics.pstdev(returns)
    if deviation == 0:
        return ZERO
    return statistics.mean(returns) / deviation * Decimal(periods_per_year).sqrt()


def rate(
    total_return: Decimal,
    sharpe: Decimal,
    drawdown: Decimal,
    win_rate: Decimal,
    profit_factor: Decimal,
    calmar: Decimal,
    closing_trades: int,
    has_losses: bool,
    periods: int,
) -> str:
    """
    Grade a run against BENCHMARKS; the first tier whose every check passes wins.

    Trade-based checks are skipped without closing trades, profit factor
    without losses, and Calmar without drawdown.
    """
    if periods < 2:
        return "unrated"

    for name, benchmark in BENCHMARKS:
        checks = [
            total_return >= benchmark.total_return,
            sharpe >= benchmark.sharpe_ratio,
            drawdown <= benchmark.max_drawdown,
        ]
        if closing_trades:
            checks.append(win_rate >= benchmark.win_rate)
            if has_losses:
                checks.append(profit_factor >= benchmark.profit_factor)
        if drawdown > 0:
            checks.append(calmar >= benchmark.calmar_ratio)
        if all(checks):
            return name
    return "poor"


class AnalyticsReporter:
    """Builds PerformanceSummary records."""

    def __init__(self, periods_per_year: int = 365) -> None:
        if periods_per_year <= 0:
            raise ConfigurationError("periods_per_year must be positive")
        self.periods_per_year = periods_per_year

    def summarize(
        self,
        curve: Sequence[PortfolioSnapshot],
        fills: Sequence[Fill],
        rejected: Sequence[RejectedIntent] = (),
        initial_equity: Optional[Decimal] = None,
    ) -> PerformanceSummary:
        """
        Summarize a completed run.

        Args:
            curve: Equity curve, one snapshot per bar
            fills: Trade log fills
            rejected: Rejected intents
            initial_equity: Starting equity (defaults to the first snapshot's)

        Raises:
            ValidationError: if the equity curve is empty
        """
        if not curve:
            raise ValidationError("cannot summarize an empty equity curve")

        equities = [snapshot.equity for snapshot in curve]
        initial = equities[0] if initial_equity is None else initial_equity
        final = equities[-1]
        total_return = (final - initial) / initial if initial > 0 else ZERO

        sharpe = sharpe_ratio(period_returns(equities), self.periods_per_year)
        drawdown = max_drawdown(equities)
        calmar = total_return / drawdown if drawdown > 0 else ZERO

        closing = [fill.realized_pnl for fill in fills if fill.is_closing]
        wins = [pnl for pnl in closing if pnl > 0]
        losses = [pnl for pnl in closing if pnl < 0]

        win_rate = Decimal(len(wins)) / Decimal(len(closing)) if closing else ZERO
        gross_profit = sum(wins, ZERO)
        gross_loss = -sum(losses, ZERO)
        profit_factor = gross_profit / gross_loss if gross_loss > 0 else ZERO

        summary = PerformanceSummary(
            initial_equity=initial,
            final_equity=final,
            total_return=total_return,
            sharpe_ratio=sharpe,
            max_drawdown=drawdown,
            calmar_ratio=calmar,
            total_trades=len(closing),
            winning_trades=len(wins),
            losing_trades=len(losses),
            win_rate=win_rate,
            profit_factor=profit_factor,
            average_win=gross_profit / len(wins) if wins else ZERO,
            average_loss=-gross_loss / len(losses) if losses else ZERO,
            largest_win=max(wins, default=ZERO),
            largest_loss=min(losses, default=ZERO),
            total_fills=len(fills),
            rejected_intents=len(rejected),
            total_fees=sum((fill.fee for fill in fills), ZERO),
            periods=len(curve),
            rating=rate(
                total_return,
                sharpe,
                drawdown,
                win_rate,
                profit_factor,
                calmar,
                closing_trades=len(closing),
                has_losses=bool(losses),
                periods=len(curve),
            ),
        )

        logger.debug(
            f"Summary: return={total_return:.4f}, sharpe={sharpe:.2f}, "
            f"max_dd={drawdown:.4f}, trades={len(closing)}, rating={summary.rating}"
        )
        return summary

    def summarize_result(self, result) -> PerformanceSummary:
        """Recompute the summary of a BacktestResult from its curve and trade log."""
        return self.summarize(
            result.equity_curve,
            result.trades,
            result.rejected,
            initial_equity=result.summary.initial_equity,
        )


def format_summary(summary: PerformanceSummary) -> str:
    """Human-readable multi-line summary."""
    lines = [
        f"Return:        {summary.total_return * 100:+.2f}%",
        f"Final Equity:  {summary.final_equity:,.2f}",
        f"Sharpe:        {summary.sharpe_ratio:.2f}",
        f"Max Drawdown:  {summary.max_drawdown * 100:.2f}%",
        f"Calmar:        {summary.calmar_ratio:.2f}",
        f"Trades:        {summary.total_trades} "
        f"({summary.winning_trades}W / {summary.losing_trades}L)",
        f"Win Rate:      {summary.win_rate * 100:.1f}%",
        f"Profit Factor: {summary.profit_factor:.2f}",
        f"Fees:          {summary.total_fees:,.2f}",
        f"Rejected:      {summary.rejected_intents}",
        f"Rating:        {summary.rating}",
    ]
    return "\n".join(lines)
