"""
Walk-Forward Validation
Guards against overfitting by testing optimized parameters out of sample.

Windows are measured in bars:
- In-Sample: parameter sweep, best run by Sharpe
- Out-of-Sample: fresh backtest with the in-sample winner
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from cryptopulse.backtest.engine import BacktestResult, BacktestRunner
from cryptopulse.backtest.optimizer import DEFAULT_MAX_COMBINATIONS, ParameterSweep
from cryptopulse.core.errors import ConfigurationError
from cryptopulse.data.price_series import PriceSeries
from cryptopulse.shared.config import EngineSettings, get_settings
from cryptopulse.strategy.registry import build_strategy

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class WalkForwardWindow:
    """Bar index ranges of one walk-forward period (end exclusive)."""
    window_id: int
    in_sample_start: int
    in_sample_end: int
    out_of_sample_start: int
    out_of_sample_end: int


@dataclass
class WalkForwardConfig:
    """Walk-forward validation configuration."""
    strategy_name: str
    grid: Mapping[str, Sequence[Any]] = field(default_factory=dict)

    # Window sizes (in bars)
    in_sample_bars: int = 252
    out_of_sample_bars: int = 63

    # Step; defaults to the out-of-sample length
    step_bars: Optional[int] = None

    max_periods: int = 12
    max_workers: int = 1
    max_combinations: int = DEFAULT_MAX_COMBINATIONS

    def __post_init__(self) -> None:
        if self.step_bars is None:
            self.step_bars = self.out_of_sample_bars
        if self.in_sample_bars < 1 or self.out_of_sample_bars < 1 or self.step_bars < 1:
            raise ConfigurationError("walk-forward window sizes and step must be positive")
        if self.max_periods < 1:
            raise ConfigurationError("max_periods must be at least 1")


@dataclass
class WalkForwardPeriod:
    """Outcome of one window."""
    window: WalkForwardWindow
    best_params: Dict[str, Any]
    in_sample: BacktestResult
    out_of_sample: BacktestResult


@dataclass
class WalkForwardResult:
    """Results of walk-forward validation."""
    config: WalkForwardConfig
    windows: List[WalkForwardWindow] = field(default_factory=list)
    periods: List[WalkForwardPeriod] = field(default_factory=list)

    # Summary statistics
    avg_oos_return: Decimal = ZERO
    avg_oos_sharpe: Decimal = ZERO
    consistency: Decimal = ZERO  # share of periods with positive OOS return
    best_period: Optional[WalkForwardPeriod] = None
    worst_period: Optional[WalkForwardPeriod] = None

    # Overfitting detection
    return_degradation: Decimal = ZERO  # avg IS return - avg OOS return


def generate_windows(total_bars: int, config: WalkForwardConfig) -> List[WalkForwardWindow]:
    """
    Roll in-sample/out-of-sample windows forward by ``step_bars``.

    Stops when the next out-of-sample window would run past the data or
    ``max_periods`` windows exist.
    """
    windows = []
    start = 0
    while len(windows) < config.max_periods:
        is_end = start + config.in_sample_bars
        oos_end = is_end + config.out_of_sample_bars
        if oos_end > total_bars:
            break
        windows.append(WalkForwardWindow(
            window_id=len(windows),
            in_sample_start=start,
            in_sample_end=is_end,
            out_of_sample_start=is_end,
            out_of_sample_end=oos_end,
        ))
        start += config.step_bars

    logger.info(f"Generated {len(windows)} walk-forward windows")
    return windows


class WalkForwardAnalyzer:
    """
    Walk-forward validation engine.

    For each window:
    1. Sweep the grid on in-sample bars
    2. Backtest the best parameters on the following out-of-sample bars
    3. Roll forward to the next window
    """

    def __init__(self, config: WalkForwardConfig, settings: Optional[EngineSettings] = None) -> None:
        self._config = config
        self._settings = settings or get_settings()

    def run(self, bars) -> WalkForwardResult:
        series = bars if isinstance(bars, PriceSeries) else PriceSeries.load(bars)
        config = self._config
        logger.info(f"Starting walk-forward validation: {config.strategy_name}")

        result = WalkForwardResult(config=config, windows=generate_windows(len(series), config))
        if not result.windows:
            logger.warning("No valid walk-forward windows generated")
            return result

        for window in result.windows:
            period = self._run_window(series, window)
            if period is not None:
                result.periods.append(period)

        self._calculate_aggregates(result)

        logger.info(
            f"Walk-forward complete: {len(result.periods)} periods, "
            f"OOS return={result.avg_oos_return * 100:.2f}%, "
            f"degradation={result.return_degradation * 100:.2f}%"
        )
        return result

    def _run_window(self, series: PriceSeries, window: WalkForwardWindow) -> Optional[WalkForwardPeriod]:
        in_sample = series.slice(window.in_sample_start, window.in_sample_end)
        out_of_sample = series.slice(window.out_of_sample_start, window.out_of_sample_end)

        sweep = ParameterSweep(
            self._config.strategy_name,
            self._config.grid,
            settings=self._settings,
            max_workers=self._config.max_workers,
            max_combinations=self._config.max_combinations,
        )
        best = sweep.run(in_sample).best
        if best is None:
            logger.warning(f"Window {window.window_id}: no in-sample combination succeeded, skipping")
            return None

        strategy = build_strategy(self._config.strategy_name, **best.params)
        oos_result = BacktestRunner(strategy, self._settings).run(out_of_sample)

        logger.info(
            f"Window {window.window_id}: best {best.label} | "
            f"IS={best.result.summary.total_return * 100:+.2f}% "
            f"OOS={oos_result.summary.total_return * 100:+.2f}%"
        )
        return WalkForwardPeriod(
            window=window,
            best_params=best.params,
            in_sample=best.result,
            out_of_sample=oos_result,
        )

    def _calculate_aggregates(self, result: WalkForwardResult) -> None:
        if not result.periods:
            return

        count = len(result.periods)
        oos_returns = [p.out_of_sample.summary.total_return for p in result.periods]
        is_returns = [p.in_sample.summary.total_return for p in result.periods]

        result.avg_oos_return = sum(oos_returns, ZERO) / count
        result.avg_oos_sharpe = sum((p.out_of_sample.summary.sharpe_ratio for p in result.periods), ZERO) / count
        result.consistency = Decimal(sum(1 for r in oos_returns if r > 0)) / count
        result.return_degradation = sum(is_returns, ZERO) / count - result.avg_oos_return

        # max/min keep the first period on ties
        result.best_period = max(result.periods, key=lambda p: p.out_of_sample.summary.total_return)
        result.worst_period = min(result.periods, key=lambda p: p.out_of_sample.summary.total_return)


def generate_report(result: WalkForwardResult) -> str:
    """
    Generate human-readable walk-forward report.
    """
    config = result.config
    lines = [
        "=" * 60,
        "WALK-FORWARD VALIDATION REPORT",
        "=" * 60,
        f"Strategy: {config.strategy_name}",
        f"Periods: {len(result.periods)} of {len(result.windows)} windows",
        f"IS Period: {config.in_sample_bars} bars",
        f"OOS Period: {config.out_of_sample_bars} bars",
        "",
        "-" * 60,
        "OUT-OF-SAMPLE PERFORMANCE",
        "-" * 60,
        f"Average Return: {result.avg_oos_return * 100:.2f}%",
        f"Average Sharpe: {result.avg_oos_sharpe:.2f}",
        f"Consistency: {result.consistency * 100:.0f}% positive periods",
        "",
        "-" * 60,
        "OVERFITTING ANALYSIS",
        "-" * 60,
        f"Return Degradation (IS - OOS): {result.return_degradation * 100:.2f}%",
        "",
    ]

    if result.return_degradation > Decimal("0.10"):
        lines.append("WARNING: Significant return degradation - potential overfitting")
        lines.append("")

    lines.append("-" * 60)
    lines.append("PER-PERIOD RESULTS")
    lines.append("-" * 60)
    for period in result.periods:
        lines.append(
            f"Window {period.window.window_id}: "
            f"IS={period.in_sample.summary.total_return * 100:+.2f}% | "
            f"OOS={period.out_of_sample.summary.total_return * 100:+.2f}% | "
            f"Trades={period.out_of_sample.summary.total_trades} | "
            f"Params={period.best_params}"
        )
    lines.append("=" * 60)

    return "\n".join(lines)
