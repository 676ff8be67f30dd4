"""
Command line interface for quantback.

Usage:
    quantback run AAPL --start 2020-01-01 --end 2024-01-01 --strategy RSI --param period=10
    quantback strategies
    quantback symbols
"""

import argparse
import json
import sys
from typing import Callable, Dict, List, Optional

import structlog

from quantback import __version__
from quantback.backtesting import (
    BacktestConfig,
    BacktestEngine,
    BacktestReport,
    DataLoaderConfig,
    HistoricalDataLoader,
)
from quantback.config import Config, configure_logging, get_config
from quantback.exceptions import BacktestError, InvalidConfigurationError
from quantback.strategies import StrategyKind, list_strategies

logger = structlog.get_logger(__name__)


def _parse_params(pairs: Optional[List[str]]) -> Dict[str, str]:
    """Turn ["short_period=20", ...] into a mapping; values stay strings."""
    params: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise InvalidConfigurationError(
                f"Malformed parameter: {pair}",
                config_key="param",
                value=pair,
                expected="name=value",
            )
        params[key.strip()] = value.strip()
    return params


def _build_loader(config: Config) -> HistoricalDataLoader:
    return HistoricalDataLoader(
        DataLoaderConfig(
            data_dir=config.data_dir,
            upload_dir=config.upload_dir,
            remote_fallback=config.remote_data,
        )
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quantback",
        description="Backtest single-asset trading strategies on historical prices.",
    )
    parser.add_argument("--version", action="version", version=f"quantback {__version__}")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL.")

    sub = parser.add_subparsers(dest="command")

    p_run = sub.add_parser("run", help="Run a backtest for one symbol")
    p_run.add_argument("symbol", help="Ticker symbol, e.g. AAPL")
    p_run.add_argument("--start", required=True, help="First date (YYYY-MM-DD, inclusive)")
    p_run.add_argument("--end", required=True, help="Last date (YYYY-MM-DD, inclusive)")
    p_run.add_argument(
        "--strategy",
        default=StrategyKind.SMA_CROSSOVER.value,
        help="Strategy id (see `quantback strategies`).",
    )
    p_run.add_argument(
        "--param",
        action="append",
        metavar="NAME=VALUE",
        help="Strategy parameter; repeat for several.",
    )
    p_run.add_argument("--capital", type=float, default=None, help="Initial capital.")
    p_run.add_argument("--commission", type=float, default=None, help="Commission rate, e.g. 0.001.")
    p_run.add_argument("--risk-free", type=float, default=None, help="Annual risk-free rate.")
    p_run.add_argument("--output", default=None, help="Export results to this path.")
    p_run.add_argument("--format", choices=["json", "csv"], default="json", help="Export format.")
    p_run.add_argument("--chart", default=None, help="Write an HTML equity chart to this path.")

    sub.add_parser("strategies", help="List available strategies and their parameters")
    sub.add_parser("symbols", help="List symbols with local price data")

    return parser


def _cmd_run(config: Config, args: argparse.Namespace) -> int:
    backtest_config = BacktestConfig(
        initial_capital=args.capital if args.capital is not None else config.initial_capital,
        commission_rate=args.commission if args.commission is not None else config.commission_rate,
        risk_free_rate=args.risk_free if args.risk_free is not None else config.risk_free_rate,
    )
    engine = BacktestEngine(config=backtest_config, data_loader=_build_loader(config))

    result = engine.run_backtest(
        symbol=args.symbol,
        start_date=args.start,
        end_date=args.end,
        strategy=args.strategy,
        params=_parse_params(args.param),
    )

    report = BacktestReport(result)
    print(result.summary())
    print(report.generate_summary())

    if args.output or args.chart:
        config.ensure_directories()

    # Relative output paths land under the results directory
    if args.output:
        path = report.export_results(config.results_dir / args.output, format=args.format)
        logger.info("results_exported", path=str(path), format=args.format)

    if args.chart:
        path = report.save_equity_chart(config.results_dir / args.chart)
        logger.info("chart_saved", path=str(path))

    return 0


def _cmd_strategies(config: Config, args: argparse.Namespace) -> int:
    print(json.dumps(list_strategies(), indent=2))
    return 0


def _cmd_symbols(config: Config, args: argparse.Namespace) -> int:
    for symbol in _build_loader(config).available_symbols():
        print(symbol)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    configure_logging(args.log_level)

    dispatch: Dict[str, Callable[[Config, argparse.Namespace], int]] = {
        "run": _cmd_run,
        "strategies": _cmd_strategies,
        "symbols": _cmd_symbols,
    }

    try:
        return int(dispatch[args.command](get_config(), args))
    except BacktestError as e:
        logger.error("command_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
