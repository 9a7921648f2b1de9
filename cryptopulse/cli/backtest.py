"""
Backtest Runner CLI
Command-line interface for backtests, parameter sweeps and walk-forward validation.
"""

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

from cryptopulse.analytics.reporter import format_summary
from cryptopulse.backtest.engine import BacktestResult, BacktestRunner
from cryptopulse.backtest.optimizer import ParameterSweep
from cryptopulse.backtest.walk_forward import WalkForwardAnalyzer, WalkForwardConfig, generate_report
from cryptopulse.core.errors import EngineError
from cryptopulse.data.csv_source import load_csv
from cryptopulse.data.price_series import PriceSeries
from cryptopulse.shared.config import EngineSettings, load_settings
from cryptopulse.strategy.registry import build_strategy, list_strategies

logger = logging.getLogger(__name__)


def parse_value(raw: str) -> Any:
    """Parse a CLI parameter value as int, then Decimal, else keep the string."""
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return Decimal(raw)
    except InvalidOperation:
        return raw


def parse_params(pairs: Sequence[str]) -> Dict[str, Any]:
    """``["fast=5", "slow=20"]`` -> ``{"fast": 5, "slow": 20}``"""
    params: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"expected key=value, got {pair!r}")
        params[key.strip()] = parse_value(value.strip())
    return params


def parse_grid(pairs: Sequence[str]) -> Dict[str, List[Any]]:
    """``["fast=5,10"]`` -> ``{"fast": [5, 10]}``"""
    grid: Dict[str, List[Any]] = {}
    for pair in pairs:
        key, sep, values = pair.partition("=")
        if not sep or not key or not values:
            raise argparse.ArgumentTypeError(f"expected key=v1,v2,..., got {pair!r}")
        grid[key.strip()] = [parse_value(v.strip()) for v in values.split(",")]
    return grid


def configure_logging(settings: EngineSettings, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.logging.level,
        format=settings.logging.format,
    )


def load_bars(args) -> PriceSeries:
    if args.parquet_root:
        from cryptopulse.data.parquet_source import ParquetDataSource

        return ParquetDataSource(args.parquet_root).get_bars(args.symbol)
    return load_csv(args.csv, args.symbol)


def build_settings(args) -> EngineSettings:
    overrides: Dict[str, Any] = {}
    if args.capital is not None:
        overrides["initial_cash"] = args.capital
    if args.slippage_bps is not None:
        overrides["slippage_bps"] = args.slippage_bps
    if args.allow_short:
        overrides["allow_short"] = True
    return load_settings(**overrides)


def print_result(result: BacktestResult) -> None:
    """Print backtest results to console."""
    first = result.equity_curve[0]
    last = result.final_snapshot
    print("\n" + "=" * 60)
    print("BACKTEST RESULTS")
    print("=" * 60)
    print(f"Strategy: {result.strategy_name} {result.parameters}")
    print(f"Period: {first.timestamp.isoformat()} to {last.timestamp.isoformat()}")
    print("-" * 60)
    print(format_summary(result.summary))
    if result.alerts:
        print("-" * 60)
        for alert in result.alerts:
            print(f"[{alert.severity.value.upper()}] {alert.message}")
    print("=" * 60 + "\n")


def run_backtest(args) -> int:
    """Run a single backtest."""
    settings = build_settings(args)
    configure_logging(settings, args.verbose)

    strategy = build_strategy(args.strategy, **parse_params(args.param))
    result = BacktestRunner(strategy, settings).run(load_bars(args))
    print_result(result)
    return 0


def run_sweep(args) -> int:
    """Run a parameter sweep."""
    settings = build_settings(args)
    configure_logging(settings, args.verbose)

    sweep = ParameterSweep(
        args.strategy,
        parse_grid(args.grid),
        settings=settings,
        max_workers=args.workers,
        use_processes=args.processes,
    )
    result = sweep.run(load_bars(args))
    print(result.summary())
    return 0 if result.successful_runs else 1


def run_walk_forward(args) -> int:
    """Run walk-forward validation."""
    settings = build_settings(args)
    configure_logging(settings, args.verbose)

    config = WalkForwardConfig(
        strategy_name=args.strategy,
        grid=parse_grid(args.grid),
        in_sample_bars=args.is_bars,
        out_of_sample_bars=args.oos_bars,
        step_bars=args.step_bars,
        max_periods=args.max_periods,
        max_workers=args.workers,
    )
    result = WalkForwardAnalyzer(config, settings).run(load_bars(args))
    print(generate_report(result))
    return 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--csv", help="CSV file with timestamp,open,high,low,close[,volume]")
    source.add_argument("--parquet-root", help="Directory of <symbol>.parquet files")
    parser.add_argument("--symbol", required=True, help="Symbol, e.g. BTC/USDT")
    parser.add_argument("--strategy", required=True, choices=list_strategies(), help="Strategy name")
    parser.add_argument("--capital", default=None, help="Initial cash")
    parser.add_argument("--slippage-bps", default=None, help="Adverse slippage in basis points")
    parser.add_argument("--allow-short", action="store_true", help="Permit short positions")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cryptopulse-backtest",
        description="CryptoPulse backtest runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Run single backtest")
    _add_common(run_parser)
    run_parser.add_argument("--param", action="append", default=[], help="Strategy parameter key=value")
    run_parser.set_defaults(func=run_backtest)

    sweep_parser = subparsers.add_parser("sweep", help="Grid search strategy parameters")
    _add_common(sweep_parser)
    sweep_parser.add_argument("--grid", action="append", default=[], help="Parameter values key=v1,v2")
    sweep_parser.add_argument("--workers", type=int, default=4, help="Concurrent backtests")
    sweep_parser.add_argument("--processes", action="store_true", help="Use processes instead of threads")
    sweep_parser.set_defaults(func=run_sweep)

    wf_parser = subparsers.add_parser("walkforward", help="Run walk-forward validation")
    _add_common(wf_parser)
    wf_parser.add_argument("--grid", action="append", default=[], help="Parameter values key=v1,v2")
    wf_parser.add_argument("--is-bars", type=int, default=252, help="In-sample bars")
    wf_parser.add_argument("--oos-bars", type=int, default=63, help="Out-of-sample bars")
    wf_parser.add_argument("--step-bars", type=int, default=None, help="Step size in bars")
    wf_parser.add_argument("--max-periods", type=int, default=12, help="Maximum windows")
    wf_parser.add_argument("--workers", type=int, default=1, help="Concurrent in-sample backtests")
    wf_parser.set_defaults(func=run_walk_forward)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except EngineError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
