"""
Backtesting engine for quantback.

This module provides the simulation pass that turns a bar sequence and a
signal set into an equity curve and trade ledger, and the engine that
orchestrates data loading, signal generation, simulation and metrics for
one or many symbols.
"""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from quantback.backtesting.data_loader import (
    Bar,
    DataLoaderConfig,
    DateLike,
    HistoricalDataLoader,
)
from quantback.backtesting.metrics import MetricsReport, PerformanceMetrics, validate_capital
from quantback.backtesting.portfolio import EquityPoint, SimulatedPortfolio, Trade
from quantback.backtesting.signals import SignalSet
from quantback.config import get_config
from quantback.exceptions import BacktestError, EmptyDataError

logger = logging.getLogger(__name__)


def _clamp_commission(commission_rate: float) -> float:
    if commission_rate < 0:
        logger.warning(f"Negative commission rate {commission_rate} clamped to 0")
        return 0.0
    return commission_rate


def simulate(
    bars: List[Bar],
    signals: SignalSet,
    initial_capital: float,
    commission_rate: float = 0.0,
) -> Tuple[List[EquityPoint], List[Trade]]:
    """
    Run the all-in portfolio simulation over a bar sequence.

    Every fill happens at the bar's close. On a bar that both closes one
    position and opens the next, the exit is processed first so the entry
    can reinvest the proceeds. A position still open after the last bar
    stays open and does not appear in the ledger.

    Args:
        bars: Chronological bar sequence
        signals: Entry/exit indices into ``bars``
        initial_capital: Starting cash, must be positive
        commission_rate: Fraction charged on each entry and exit;
            negative values are treated as 0

    Returns:
        Tuple of (equity_curve, trades); one equity point per bar

    Raises:
        InvalidConfigurationError: If initial_capital <= 0
        EmptyDataError: If bars is empty
        DataValidationError: If a signal index is outside the bar sequence
    """
    validate_capital(initial_capital)
    commission_rate = _clamp_commission(commission_rate)

    if not bars:
        raise EmptyDataError("Cannot simulate an empty bar sequence")

    signals.validate_against(len(bars))

    portfolio = SimulatedPortfolio(
        initial_capital=initial_capital,
        commission_rate=commission_rate,
    )
    entries = set(signals.entry_indices())
    exits = signals.exit_positions()

    equity_curve: List[EquityPoint] = []
    for i, bar in enumerate(bars):
        price = bar.close

        if i in exits:
            portfolio.exit(price, bar.timestamp)

        if i in entries:
            portfolio.enter(price, bar.timestamp)

        equity_curve.append(portfolio.mark(price, bar.timestamp))

    logger.info(
        f"Simulation complete: {len(portfolio.trades)} trades over {len(bars)} bars, "
        f"final value ${equity_curve[-1].portfolio_value:,.2f}"
    )
    return equity_curve, list(portfolio.trades)


@dataclass
class BacktestConfig:
    """
    Configuration for backtesting.

    Attributes:
        initial_capital: Starting portfolio value
        commission_rate: Commission rate as decimal (e.g., 0.001 for 0.1%)
        risk_free_rate: Annual risk-free rate for the Sharpe calculation
    """

    initial_capital: float = field(default_factory=lambda: get_config().initial_capital)
    commission_rate: float = field(default_factory=lambda: get_config().commission_rate)
    risk_free_rate: float = field(default_factory=lambda: get_config().risk_free_rate)

    def __post_init__(self):
        """Validate configuration."""
        validate_capital(self.initial_capital)
        self.commission_rate = _clamp_commission(self.commission_rate)


@dataclass
class BacktestResult:
    """
    Results from a backtest run.

    Attributes:
        symbol: Symbol tested (empty for caller-supplied bars)
        strategy: Id of the strategy that produced the signals, or None
        start_date: First bar timestamp
        end_date: Last bar timestamp
        config: Backtest configuration used
        bars: Bar sequence simulated
        signals: Signal set executed
        equity_curve: Portfolio value per bar
        trades: Closed round trips
        metrics: Performance metrics
    """

    symbol: str
    strategy: Optional[str]
    start_date: datetime
    end_date: datetime
    config: BacktestConfig
    bars: List[Bar]
    signals: SignalSet
    equity_curve: List[EquityPoint]
    trades: List[Trade]
    metrics: MetricsReport
    strategy_params: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def final_value(self) -> float:
        return self.equity_curve[-1].portfolio_value

    @property
    def total_commissions(self) -> float:
        """Exit commissions reported on the trade ledger."""
        return sum(t.commission_paid for t in self.trades)

    def summary(self) -> str:
        """Generate a text summary of backtest results."""
        m = self.metrics
        lines = [
            "=" * 60,
            f"Backtest Results: {self.symbol or 'custom bars'}",
            f"Strategy: {self.strategy or 'custom signals'}",
            f"Period: {self.start_date.strftime('%Y-%m-%d')} to {self.end_date.strftime('%Y-%m-%d')}",
            "=" * 60,
            "",
            "PERFORMANCE METRICS",
            "-" * 60,
            f"Period (years):     {m.years:>10.2f}",
            f"Total Return:       {m.total_return * 100:>10.2f}%",
            f"Annualized Return:  {m.annualized_return * 100:>10.2f}%",
            f"Sharpe Ratio:       {m.sharpe_ratio:>10.3f}",
            "",
            "RISK METRICS",
            "-" * 60,
            f"Max Drawdown:       ${m.max_drawdown_abs:>10,.2f}",
            f"Max Drawdown %:     {m.max_drawdown_pct * 100:>10.2f}%",
            "",
            "TRADE STATISTICS",
            "-" * 60,
            f"Total Trades:       {m.total_trades:>10}",
            f"Win Rate:           {m.win_rate * 100:>10.2f}%",
            f"Winning Trades:     {m.winning_trades:>10}",
            f"Losing Trades:      {m.losing_trades:>10}",
            "",
            "PORTFOLIO",
            "-" * 60,
            f"Initial Capital:    ${self.config.initial_capital:>10,.2f}",
            f"Final Value:        ${self.final_value:>10,.2f}",
            f"Total Commissions:  ${self.total_commissions:>10,.2f}",
            "=" * 60,
        ]
        return "\n".join(lines)


class BacktestEngine:
    """
    Core backtesting engine.

    This class orchestrates the backtesting process:
    - Loading historical bars
    - Generating signals from a registered strategy (or accepting them)
    - Simulating the all-in portfolio
    - Calculating performance metrics

    Runs share no mutable state apart from the data loader's cache, so
    one engine can run many symbols concurrently.

    Example:
        >>> engine = BacktestEngine(config=BacktestConfig(initial_capital=100000))
        >>> result = engine.run_backtest(
        ...     symbol="AAPL",
        ...     start_date="2020-01-01",
        ...     end_date="2024-01-01",
        ...     strategy="SMA_CROSSOVER",
        ...     params={"short_period": 20, "long_period": 100},
        ... )
        >>> print(result.summary())
    """

    def __init__(
        self,
        config: Optional[BacktestConfig] = None,
        data_loader: Optional[HistoricalDataLoader] = None,
    ):
        """
        Initialize the backtest engine.

        Args:
            config: Backtest configuration (uses defaults if not provided)
            data_loader: Data loader instance (creates new one if not provided)
        """
        self.config = config or BacktestConfig()
        if data_loader is None:
            app_config = get_config()
            data_loader = HistoricalDataLoader(
                DataLoaderConfig(
                    data_dir=app_config.data_dir,
                    upload_dir=app_config.upload_dir,
                    remote_fallback=app_config.remote_data,
                )
            )
        self.data_loader = data_loader
        self.metrics_calculator = PerformanceMetrics(
            risk_free_rate=self.config.risk_free_rate
        )

        logger.info(
            f"BacktestEngine initialized with ${self.config.initial_capital:,.2f} "
            f"initial capital"
        )

    def run_backtest(
        self,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        strategy: Union[str, Any] = "SMA_CROSSOVER",
        params: Optional[Mapping[str, Any]] = None,
        signals: Optional[SignalSet] = None,
    ) -> BacktestResult:
        """
        Run a backtest for a symbol.

        Args:
            symbol: Ticker symbol to test
            start_date: First date to include (inclusive)
            end_date: Last date to include (inclusive)
            strategy: Strategy kind or id used when no signals are given
            params: Strategy parameters (defaults for missing keys)
            signals: Optional pre-computed signals (overrides strategy)

        Returns:
            BacktestResult with complete results

        Raises:
            EmptyDataError: If no bars exist for the symbol and range
            InvalidConfigurationError: If strategy parameters are invalid
            UnknownStrategyError: If the strategy id is not registered
            BacktestError: If the backtest fails for any other reason
        """
        logger.info(f"Running backtest for {symbol} from {start_date} to {end_date}")

        try:
            bars = self.data_loader.get_bars(symbol, start_date, end_date)
            if not bars:
                raise EmptyDataError(
                    f"No price data for {symbol} between {start_date} and {end_date}",
                    symbol=symbol,
                )

            strategy_id = None
            strategy_params: Dict[str, Any] = {}
            if signals is None:
                from quantback.strategies.registry import get_strategy

                generator = get_strategy(strategy, params)
                strategy_id = generator.kind.value
                strategy_params = generator.config.to_dict()
                signals = generator.generate(bars)

            result = self._run(bars, signals, symbol, strategy_id, strategy_params)

            logger.info(
                f"Backtest completed for {symbol}: "
                f"{result.metrics.total_return * 100:.2f}% return"
            )
            return result

        except Exception as e:
            if isinstance(e, BacktestError):
                raise
            raise BacktestError(
                f"Backtest failed for {symbol}",
                details={"symbol": symbol, "start": str(start_date), "end": str(end_date)},
                cause=e,
            ) from e

    def run_on_bars(
        self,
        bars: List[Bar],
        signals: SignalSet,
        symbol: str = "",
    ) -> BacktestResult:
        """
        Run the simulation and metrics on caller-supplied bars.

        Args:
            bars: Chronological bar sequence
            signals: Signal set to execute
            symbol: Optional label for the result

        Returns:
            BacktestResult
        """
        return self._run(bars, signals, symbol, None, {})

    def _run(
        self,
        bars: List[Bar],
        signals: SignalSet,
        symbol: str,
        strategy_id: Optional[str],
        strategy_params: Dict[str, Any],
    ) -> BacktestResult:
        equity_curve, trades = simulate(
            bars,
            signals,
            initial_capital=self.config.initial_capital,
            commission_rate=self.config.commission_rate,
        )
        metrics = self.metrics_calculator.compute(
            equity_curve, trades, self.config.initial_capital
        )
        return BacktestResult(
            symbol=symbol,
            strategy=strategy_id,
            start_date=bars[0].timestamp,
            end_date=bars[-1].timestamp,
            config=self.config,
            bars=bars,
            signals=signals,
            equity_curve=equity_curve,
            trades=trades,
            metrics=metrics,
            strategy_params=strategy_params,
        )

    def run_multiple_backtests(
        self,
        symbols: List[str],
        start_date: DateLike,
        end_date: DateLike,
        strategy: Union[str, Any] = "SMA_CROSSOVER",
        params: Optional[Mapping[str, Any]] = None,
        max_workers: int = 1,
    ) -> Dict[str, BacktestResult]:
        """
        Run backtests for multiple symbols.

        Symbols that fail are logged and left out of the result.

        Args:
            symbols: List of ticker symbols
            start_date: First date to include (inclusive)
            end_date: Last date to include (inclusive)
            strategy: Strategy kind or id
            params: Strategy parameters
            max_workers: Number of worker threads; 1 runs sequentially

        Returns:
            Dictionary mapping symbol to BacktestResult, in input order
        """
        logger.info(f"Running backtests for {len(symbols)} symbols")

        def run_one(symbol: str) -> BacktestResult:
            return self.run_backtest(
                symbol=symbol,
                start_date=start_date,
                end_date=end_date,
                strategy=strategy,
                params=params,
            )

        completed: Dict[str, BacktestResult] = {}

        if max_workers <= 1:
            for symbol in symbols:
                try:
                    completed[symbol] = run_one(symbol)
                    logger.info(f"Completed backtest for {symbol}")
                except BacktestError as e:
                    logger.error(f"Failed to backtest {symbol}: {e}")
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = {executor.submit(run_one, symbol): symbol for symbol in symbols}
                for future in as_completed(futures):
                    symbol = futures[future]
                    try:
                        completed[symbol] = future.result()
                        logger.info(f"Completed backtest for {symbol}")
                    except BacktestError as e:
                        logger.error(f"Failed to backtest {symbol}: {e}")

        results = {s: completed[s] for s in symbols if s in completed}
        logger.info(f"Completed {len(results)}/{len(symbols)} backtests")

        return results
