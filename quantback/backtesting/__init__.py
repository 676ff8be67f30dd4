"""
Backtesting framework for quantback.

This module simulates a single-asset, all-in trading strategy over
historical bars and reports its performance.

Main Components:
    - simulate: All-in portfolio simulation over bars and signals
    - BacktestEngine: Orchestrates data loading, signals, simulation and metrics
    - HistoricalDataLoader: Loads and caches historical price data
    - SimulatedPortfolio: Tracks cash and shares during a simulation
    - PerformanceMetrics: Total/annualized return, drawdown, Sharpe, win rate
    - BacktestReport: Generates summaries, exports and charts

Example:
    >>> from quantback.backtesting import BacktestEngine, BacktestConfig
    >>>
    >>> engine = BacktestEngine(config=BacktestConfig(initial_capital=10000))
    >>> result = engine.run_backtest(
    ...     symbol="AAPL",
    ...     start_date="2020-01-01",
    ...     end_date="2024-01-01",
    ...     strategy="SMA_CROSSOVER",
    ... )
    >>>
    >>> print(result.summary())
"""

from quantback.backtesting.data_loader import Bar, DataLoaderConfig, HistoricalDataLoader
from quantback.backtesting.engine import BacktestConfig, BacktestEngine, BacktestResult, simulate
from quantback.backtesting.metrics import MetricsReport, PerformanceMetrics, compute_metrics
from quantback.backtesting.portfolio import EquityPoint, SimulatedPortfolio, Trade
from quantback.backtesting.reports import BacktestReport
from quantback.backtesting.signals import PositionSignal, SignalSet

__all__ = [
    "Bar",
    "DataLoaderConfig",
    "HistoricalDataLoader",
    "BacktestEngine",
    "BacktestConfig",
    "BacktestResult",
    "simulate",
    "PositionSignal",
    "SignalSet",
    "SimulatedPortfolio",
    "Trade",
    "EquityPoint",
    "PerformanceMetrics",
    "MetricsReport",
    "compute_metrics",
    "BacktestReport",
]
