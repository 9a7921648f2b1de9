"""
Parameter Sweep
Grid search over strategy parameters.

Each combination is an independent backtest with its own ledger and risk
engine, so combinations run concurrently with no shared mutable state.

Usage:
    sweep = ParameterSweep("ma_crossover", {"fast": [5, 10], "slow": [20, 30]})
    result = sweep.run(series)
    print(result.best.params)
"""

import itertools
import logging
import time
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from cryptopulse.backtest.engine import BacktestResult, BacktestRunner
from cryptopulse.core.errors import ConfigurationError, EngineError
from cryptopulse.data.price_series import PriceSeries
from cryptopulse.shared.config import EngineSettings, get_settings
from cryptopulse.strategy.registry import build_strategy

logger = logging.getLogger(__name__)

DEFAULT_MAX_COMBINATIONS = 250


@dataclass(frozen=True)
class SweepRun:
    """One parameter combination and its outcome."""
    params: Dict[str, Any]
    result: Optional[BacktestResult] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None

    @property
    def label(self) -> str:
        return ", ".join(f"{k}={v}" for k, v in self.params.items()) or "defaults"


@dataclass
class SweepResult:
    """Results of a parameter sweep, in grid order."""
    strategy_name: str
    runs: List[SweepRun] = field(default_factory=list)
    execution_time_seconds: float = 0.0

    @property
    def total_combinations(self) -> int:
        return len(self.runs)

    @property
    def successful_runs(self) -> int:
        return sum(1 for run in self.runs if run.succeeded)

    @property
    def failed_runs(self) -> int:
        return self.total_combinations - self.successful_runs

    @property
    def best(self) -> Optional[SweepRun]:
        """Successful run with the highest Sharpe ratio; earliest in grid order on ties."""
        best: Optional[SweepRun] = None
        for run in self.runs:
            if not run.succeeded:
                continue
            if best is None or run.result.summary.sharpe_ratio > best.result.summary.sharpe_ratio:
                best = run
        return best

    def summary(self) -> str:
        lines = [
            "=== Parameter Sweep Summary ===",
            f"Strategy: {self.strategy_name}",
            f"Total combinations: {self.total_combinations}",
            f"Successful: {self.successful_runs}, Failed: {self.failed_runs}",
            f"Execution time: {self.execution_time_seconds:.1f}s",
            "",
        ]
        for run in self.runs:
            if run.succeeded:
                s = run.result.summary
                lines.append(
                    f"  {run.label}: return={s.total_return * 100:+.2f}% "
                    f"sharpe={s.sharpe_ratio:.2f} max_dd={s.max_drawdown * 100:.2f}%"
                )
            else:
                lines.append(f"  {run.label}: FAILED ({run.error})")

        best = self.best
        if best is not None:
            lines.append("")
            lines.append(f"Best by Sharpe: {best.label}")
        return "\n".join(lines)


def generate_combinations(grid: Mapping[str, Sequence[Any]]) -> List[Dict[str, Any]]:
    """Cartesian product of the grid, varying the last key fastest."""
    if not grid:
        return [{}]
    keys = list(grid.keys())
    return [dict(zip(keys, combo)) for combo in itertools.product(*(grid[k] for k in keys))]


def _run_single(
    args: Tuple[int, str, Dict[str, Any], PriceSeries, EngineSettings],
) -> Tuple[int, Optional[BacktestResult], Optional[str]]:
    """Run one combination. Module-level so process pools can pickle it."""
    index, strategy_name, params, series, settings = args
    try:
        strategy = build_strategy(strategy_name, **params)
        result = BacktestRunner(strategy, settings).run(series)
        return (index, result, None)
    except EngineError as e:
        return (index, None, f"{type(e).__name__}: {e}")


class ParameterSweep:
    """
    Grid search for one registered strategy.
    """

    def __init__(
        self,
        strategy_name: str,
        grid: Mapping[str, Sequence[Any]],
        settings: Optional[EngineSettings] = None,
        max_workers: int = 4,
        use_processes: bool = False,
        max_combinations: int = DEFAULT_MAX_COMBINATIONS,
    ) -> None:
        """
        Initialize parameter sweep.

        Args:
            strategy_name: Registry name of the strategy
            grid: Parameter name -> candidate values
            settings: Engine settings shared by every run
            max_workers: Concurrent backtests
            use_processes: Use a process pool instead of threads
            max_combinations: Refuse grids larger than this

        Raises:
            ConfigurationError: grid too large or max_workers < 1
        """
        if max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")

        self._strategy_name = strategy_name
        self._combinations = generate_combinations(grid)
        if len(self._combinations) > max_combinations:
            raise ConfigurationError(
                f"Grid has {len(self._combinations)} combinations, limit is {max_combinations}"
            )

        self._grid = {k: list(v) for k, v in grid.items()}
        self._settings = settings or get_settings()
        self._max_workers = max_workers
        self._use_processes = use_processes

    @property
    def combinations(self) -> List[Dict[str, Any]]:
        return [dict(c) for c in self._combinations]

    def run(self, bars) -> SweepResult:
        """
        Run every combination over the same bars.

        Combinations that fail to build or run are recorded with their
        error; they never abort the sweep.
        """
        series = bars if isinstance(bars, PriceSeries) else PriceSeries.load(bars)
        start_time = time.time()

        tasks = [
            (i, self._strategy_name, params, series, self._settings)
            for i, params in enumerate(self._combinations)
        ]
        logger.info(f"Sweeping {len(tasks)} combinations of {self._strategy_name}")

        if self._max_workers == 1 or len(tasks) == 1:
            outcomes = [_run_single(task) for task in tasks]
        else:
            with self._executor() as pool:
                outcomes = list(pool.map(_run_single, tasks))

        runs = [SweepRun(params=dict(self._combinations[i]), result=r, error=e) for i, r, e in outcomes]
        for run in runs:
            if not run.succeeded:
                logger.warning(f"Combination {run.label} failed: {run.error}")

        result = SweepResult(
            strategy_name=self._strategy_name,
            runs=runs,
            execution_time_seconds=time.time() - start_time,
        )
        best = result.best
        logger.info(
            f"Sweep complete: {result.successful_runs}/{result.total_combinations} succeeded"
            + (f", best {best.label}" if best is not None else "")
        )
        return result

    def _executor(self) -> Executor:
        if self._use_processes:
            return ProcessPoolExecutor(max_workers=self._max_workers)
        return ThreadPoolExecutor(max_workers=self._max_workers)
