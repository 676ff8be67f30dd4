"""
Example demonstrating the backtesting framework.

This script shows how to:
1. Run a backtest with a registered strategy
2. Generate reports and charts
3. Compare strategies across symbols in parallel
4. Execute hand-made signals on loaded bars

Price data comes from CSV files under ./data or ./uploads, falling back to
yfinance for symbols without a local file.
"""

import logging
from pathlib import Path

from quantback.backtesting import (
    BacktestConfig,
    BacktestEngine,
    BacktestReport,
    DataLoaderConfig,
    HistoricalDataLoader,
    SignalSet,
)
from quantback.config import configure_logging
from quantback.strategies import StrategyKind, list_strategies

configure_logging("INFO")

logger = logging.getLogger(__name__)

OUTPUT_DIR = Path("backtest_results")


def build_engine(**overrides) -> BacktestEngine:
    loader = HistoricalDataLoader(DataLoaderConfig(remote_fallback=True))
    config = BacktestConfig(
        initial_capital=overrides.get("initial_capital", 100000.0),
        commission_rate=overrides.get("commission_rate", 0.001),  # 0.1% commission
        risk_free_rate=overrides.get("risk_free_rate", 0.02),
    )
    return BacktestEngine(config=config, data_loader=loader)


def run_single_backtest():
    """Run a single backtest example."""
    logger.info("=" * 60)
    logger.info("EXAMPLE 1: Single Backtest with SMA Crossover Strategy")
    logger.info("=" * 60)

    engine = build_engine()

    result = engine.run_backtest(
        symbol="AAPL",
        start_date="2018-01-01",
        end_date="2024-01-01",
        strategy=StrategyKind.SMA_CROSSOVER,
        params={"short_period": 50, "long_period": 200},
    )

    print("\n" + result.summary())

    report = BacktestReport(result)
    print(report.generate_summary())

    report.export_results(OUTPUT_DIR / "aapl_sma_crossover", format="json")
    report.export_results(OUTPUT_DIR / "aapl_sma_crossover", format="csv")
    report.save_equity_chart(OUTPUT_DIR / "aapl_sma_crossover.html")

    logger.info("Reports generated successfully!")


def run_multiple_backtests():
    """Run every strategy over several symbols and compare."""
    logger.info("=" * 60)
    logger.info("EXAMPLE 2: Multiple Backtests")
    logger.info("=" * 60)

    engine = build_engine()
    symbols = ["AAPL", "MSFT", "GOOGL"]

    results = {}
    for strategy in list_strategies():
        runs = engine.run_multiple_backtests(
            symbols=symbols,
            start_date="2020-01-01",
            end_date="2024-01-01",
            strategy=strategy["id"],
            max_workers=3,
        )
        for symbol, result in runs.items():
            results[f"{strategy['id']} / {symbol}"] = result

    comparison = BacktestReport.compare_backtests(
        results, output_path=OUTPUT_DIR / "comparison.csv"
    )

    print("\n" + "=" * 60)
    print("COMPARISON OF STRATEGIES")
    print("=" * 60)
    print(comparison.to_string(index=False))


def run_custom_signals():
    """Execute hand-picked entry/exit bars."""
    logger.info("=" * 60)
    logger.info("EXAMPLE 3: Custom Signals")
    logger.info("=" * 60)

    engine = build_engine(commission_rate=0.0)
    bars = engine.data_loader.get_bars("SPY", "2023-01-01", "2023-12-31")

    # Hold for the first and last quarter, stay in at the end
    quarter = len(bars) // 4
    signals = SignalSet.from_pairs([(0, quarter)], open_entry=3 * quarter)

    result = engine.run_on_bars(bars, signals, symbol="SPY")
    print(BacktestReport(result).generate_summary())


def main():
    """Run all examples."""
    try:
        run_single_backtest()
        run_multiple_backtests()
        run_custom_signals()

        logger.info("=" * 60)
        logger.info("All examples completed successfully!")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"Error running examples: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
