"""
Performance metrics for backtesting.

This module reduces an equity curve and trade ledger to summary
statistics: total and annualized return, maximum drawdown, Sharpe ratio
and win/loss counts.
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import List, Tuple

import numpy as np
import pandas as pd

from quantback.backtesting.portfolio import EquityPoint, Trade
from quantback.exceptions import EmptyCurveError, InvalidConfigurationError

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25
SECONDS_PER_YEAR = DAYS_PER_YEAR * 24 * 60 * 60


def validate_capital(initial_capital: float) -> None:
    """Raise InvalidConfigurationError unless the capital is positive."""
    if not initial_capital > 0:
        raise InvalidConfigurationError(
            "Initial capital must be positive",
            config_key="initial_capital",
            value=initial_capital,
            expected="> 0",
        )


@dataclass(frozen=True)
class MetricsReport:
    """
    Summary statistics for one backtest run.

    Returns and drawdown percentage are fractions (0.05 == 5%).
    """

    total_return: float
    annualized_return: float
    max_drawdown_abs: float
    max_drawdown_pct: float
    sharpe_ratio: float
    years: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float

    def to_dict(self) -> dict:
        return asdict(self)

    def __str__(self) -> str:
        return "\n".join(
            [
                "Performance Metrics",
                "===================",
                f"Backtest Period     : {self.years:.2f} years",
                f"Total Return        : {self.total_return * 100:.2f}%",
                f"Annualized Return   : {self.annualized_return * 100:.2f}%",
                f"Maximum Drawdown    : ${self.max_drawdown_abs:,.2f} ({self.max_drawdown_pct * 100:.2f}%)",
                f"Sharpe Ratio        : {self.sharpe_ratio:.3f}",
                f"Total Trades        : {self.total_trades}",
                f"Win Rate            : {self.win_rate * 100:.2f}%",
            ]
        )


@dataclass
class PerformanceMetrics:
    """
    Performance metrics calculator.

    Stateless apart from its parameters: every call reduces the given
    equity curve and trades without touching shared data, so one instance
    can serve concurrent runs.

    Example:
        >>> metrics = PerformanceMetrics(risk_free_rate=0.02)
        >>> report = metrics.compute(equity_curve, trades, initial_capital=100000)
        >>> print(report.sharpe_ratio)
    """

    risk_free_rate: float = 0.0  # Annual risk-free rate
    trading_days_per_year: int = 252

    def compute(
        self,
        equity_curve: List[EquityPoint],
        trades: List[Trade],
        initial_capital: float,
    ) -> MetricsReport:
        """
        Calculate all performance metrics.

        Args:
            equity_curve: Portfolio value per bar
            trades: Closed round trips
            initial_capital: Capital the run started with

        Returns:
            MetricsReport

        Raises:
            InvalidConfigurationError: If initial_capital <= 0
            EmptyCurveError: If the equity curve is empty
        """
        validate_capital(initial_capital)

        if not equity_curve:
            raise EmptyCurveError(
                "Equity curve cannot be empty",
                details={"initial_capital": initial_capital},
            )

        values = pd.Series([p.portfolio_value for p in equity_curve], dtype=float)

        final_value = values.iloc[-1]
        total_return = (final_value - initial_capital) / initial_capital

        years = self.calculate_years(equity_curve)
        max_dd, max_dd_pct = self.calculate_max_drawdown(values)
        sharpe = self.calculate_sharpe_ratio(values)
        total, wins, losses, win_rate = self.calculate_trade_stats(trades)

        report = MetricsReport(
            total_return=float(total_return),
            annualized_return=self.calculate_annualized_return(total_return, years),
            max_drawdown_abs=max_dd,
            max_drawdown_pct=max_dd_pct,
            sharpe_ratio=sharpe,
            years=years,
            total_trades=total,
            winning_trades=wins,
            losing_trades=losses,
            win_rate=win_rate,
        )

        logger.debug(
            f"Metrics computed over {len(equity_curve)} points: "
            f"return {report.total_return:.4f}, sharpe {report.sharpe_ratio:.3f}"
        )
        return report

    @staticmethod
    def calculate_years(equity_curve: List[EquityPoint]) -> float:
        """Elapsed time between the first and last point, in 365.25-day years."""
        elapsed = equity_curve[-1].timestamp - equity_curve[0].timestamp
        return elapsed.total_seconds() / SECONDS_PER_YEAR

    @staticmethod
    def calculate_annualized_return(total_return: float, years: float) -> float:
        """
        Compound the total return to a yearly rate.

        Formula:
            (1 + total_return) ^ (1 / years) - 1, or 0 when years <= 0
        """
        if years <= 0:
            return 0.0
        growth = 1 + total_return
        if growth <= 0:
            # Capital wiped out; a fractional power of a negative is undefined
            return -1.0
        return float(math.pow(growth, 1 / years) - 1)

    @staticmethod
    def calculate_max_drawdown(values: pd.Series) -> Tuple[float, float]:
        """
        Calculate maximum drawdown.

        The running peak starts at negative infinity, so the first value is
        always the initial peak. The percentage is taken against the peak in
        force when the largest drawdown was first reached.

        Args:
            values: Portfolio values in time order

        Returns:
            Tuple of (max_drawdown_abs, max_drawdown_pct)
        """
        if values.empty:
            return 0.0, 0.0

        running_max = values.expanding().max()
        drawdown = running_max - values

        max_dd = float(drawdown.max())
        if not max_dd > 0:
            return 0.0, 0.0

        # idxmax returns the first occurrence, matching a strict ">" update
        worst = drawdown.idxmax()
        peak = float(running_max[worst])
        max_dd_pct = max_dd / peak if peak > 0 else 0.0

        return max_dd, max_dd_pct

    def calculate_returns(self, values: pd.Series) -> pd.Series:
        """Per-step simple returns; a step from a zero value counts as 0."""
        prev = values.shift(1).iloc[1:]
        curr = values.iloc[1:]
        returns = (curr - prev) / prev.where(prev != 0)
        return returns.fillna(0.0).reset_index(drop=True)

    def calculate_sharpe_ratio(self, values: pd.Series) -> float:
        """
        Calculate the annualized Sharpe ratio.

        Bars are assumed to be one trading day apart.

        Formula:
            Sharpe = (mean * 252 - risk_free_rate) / (sample std * sqrt(252))

        Returns:
            Sharpe ratio, or 0 for fewer than two points or zero variance
        """
        if len(values) < 2:
            return 0.0

        returns = self.calculate_returns(values)
        n = len(returns)

        mean_return = float(returns.mean())
        std_dev = float(returns.std(ddof=1)) if n > 1 else 0.0

        if std_dev == 0 or np.isnan(std_dev):
            return 0.0

        annualized_mean = mean_return * self.trading_days_per_year
        annualized_std = std_dev * np.sqrt(self.trading_days_per_year)

        return float((annualized_mean - self.risk_free_rate) / annualized_std)

    @staticmethod
    def calculate_trade_stats(trades: List[Trade]) -> Tuple[int, int, int, float]:
        """
        Count winning and losing trades.

        A trade wins only if its P&L is strictly positive; break-even
        trades are losses.

        Returns:
            Tuple of (total_trades, winning_trades, losing_trades, win_rate)
        """
        total = len(trades)
        wins = sum(1 for t in trades if t.pnl > 0)
        losses = total - wins
        win_rate = wins / total if total > 0 else 0.0
        return total, wins, losses, win_rate

    def calculate_drawdown_series(self, values: pd.Series) -> pd.Series:
        """
        Calculate drawdown at each point in time.

        Returns:
            Series of drawdown percentages (negative or zero)
        """
        running_max = values.expanding().max()
        return ((values - running_max) / running_max.where(running_max > 0)).fillna(0.0) * 100


def compute_metrics(
    equity_curve: List[EquityPoint],
    trades: List[Trade],
    initial_capital: float,
    risk_free_rate: float = 0.0,
) -> MetricsReport:
    """Compute a MetricsReport with a one-off calculator."""
    return PerformanceMetrics(risk_free_rate=risk_free_rate).compute(
        equity_curve, trades, initial_capital
    )
