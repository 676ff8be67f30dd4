"""
Simulated portfolio for backtesting.

This module holds the cash/share bookkeeping of a single-asset, all-in
portfolio: every entry invests the whole cash balance and every exit
liquidates the whole position. It produces the trade ledger and the
per-bar equity points.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import pandas as pd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Trade:
    """
    A closed round trip.

    Attributes:
        entry_timestamp: Time of the entry bar
        entry_price: Close of the entry bar
        exit_timestamp: Time of the exit bar
        exit_price: Close of the exit bar
        shares: Shares held through the position
        commission_paid: Commission charged on the exit only
        pnl: Net exit proceeds minus the value invested at entry
    """

    entry_timestamp: datetime
    entry_price: float
    exit_timestamp: datetime
    exit_price: float
    shares: float
    commission_paid: float
    pnl: float

    @property
    def entry_value(self) -> float:
        """Net amount invested at entry."""
        return self.entry_price * self.shares

    @property
    def pnl_percent(self) -> float:
        """P&L as percentage of the invested amount."""
        if self.entry_value == 0:
            return 0.0
        return (self.pnl / self.entry_value) * 100

    @property
    def is_win(self) -> bool:
        # Break-even trades count as losses
        return self.pnl > 0

    def __str__(self) -> str:
        return (
            f"{self.shares:.2f} shares {self.entry_timestamp.strftime('%Y-%m-%d')} "
            f"@ ${self.entry_price:.2f} -> {self.exit_timestamp.strftime('%Y-%m-%d')} "
            f"@ ${self.exit_price:.2f} (P&L ${self.pnl:,.2f})"
        )


@dataclass(frozen=True)
class EquityPoint:
    """Total portfolio value (cash + marked holdings) at one bar."""

    timestamp: datetime
    portfolio_value: float


@dataclass
class SimulatedPortfolio:
    """
    Cash and share state for one simulation run.

    Attributes:
        initial_capital: Starting capital
        commission_rate: Commission rate (as decimal, e.g., 0.001 for 0.1%)
        cash: Current cash balance
        shares_held: Shares of the asset currently held
        trades: Closed round trips, in exit order
    """

    initial_capital: float
    commission_rate: float = 0.0
    cash: float = field(init=False)
    shares_held: float = field(init=False, default=0.0)
    trades: List[Trade] = field(default_factory=list)

    _entry_timestamp: Optional[datetime] = field(default=None, init=False, repr=False)
    _entry_price: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self):
        """Initialize portfolio with starting cash."""
        self.cash = self.initial_capital
        logger.debug(f"SimulatedPortfolio initialized with ${self.initial_capital:,.2f}")

    @property
    def is_long(self) -> bool:
        return self._entry_timestamp is not None

    def enter(self, price: float, date: datetime) -> float:
        """
        Invest the entire cash balance at ``price``.

        Commission is charged on the cash balance and the remainder buys
        shares, which leaves cash at exactly zero: all funds are deployed on
        every entry.

        Args:
            price: Close price of the entry bar
            date: Entry bar timestamp

        Returns:
            Number of shares bought (0 if the entry was skipped)
        """
        if price <= 0:
            logger.warning(f"Skipping entry on {date}: non-positive price {price}")
            return 0.0

        commission = self.cash * self.commission_rate
        net_invested = self.cash - commission
        shares_bought = net_invested / price

        self.shares_held += shares_bought
        self.cash = self.cash - net_invested - commission

        self._entry_timestamp = date
        self._entry_price = price

        logger.debug(
            f"Entered {shares_bought:.4f} shares @ ${price:.2f} on {date} "
            f"(commission ${commission:,.2f})"
        )
        return shares_bought

    def exit(self, price: float, date: datetime) -> Optional[Trade]:
        """
        Liquidate the whole position at ``price``.

        Args:
            price: Close price of the exit bar
            date: Exit bar timestamp

        Returns:
            The closed Trade, or None when no position is open
        """
        if not self.is_long:
            logger.debug(f"Ignoring exit on {date}: no open position")
            return None

        gross_proceeds = self.shares_held * price
        commission = gross_proceeds * self.commission_rate
        net_proceeds = gross_proceeds - commission

        entry_value = self._entry_price * self.shares_held
        pnl = net_proceeds - entry_value

        trade = Trade(
            entry_timestamp=self._entry_timestamp,
            entry_price=self._entry_price,
            exit_timestamp=date,
            exit_price=price,
            shares=self.shares_held,
            commission_paid=commission,
            pnl=pnl,
        )

        self.cash += net_proceeds
        self.shares_held = 0.0
        self._entry_timestamp = None
        self._entry_price = 0.0

        self.trades.append(trade)
        logger.debug(f"Executed: {trade}")

        return trade

    def mark(self, price: float, date: datetime) -> EquityPoint:
        """Value the portfolio at ``price``."""
        return EquityPoint(timestamp=date, portfolio_value=self.cash + self.shares_held * price)

    def get_total_commissions(self) -> float:
        """Exit commissions paid across all closed trades."""
        return sum(trade.commission_paid for trade in self.trades)

    def __str__(self) -> str:
        return (
            f"Portfolio (Cash: ${self.cash:,.2f}, "
            f"Shares: {self.shares_held:.4f}, "
            f"Trades: {len(self.trades)})"
        )


def equity_curve_to_series(equity_curve: List[EquityPoint]) -> pd.Series:
    """Convert an equity curve to a Series indexed by timestamp."""
    return pd.Series(
        [p.portfolio_value for p in equity_curve],
        index=pd.DatetimeIndex([p.timestamp for p in equity_curve], name="date"),
        name="portfolio_value",
        dtype=float,
    )


def trades_to_frame(trades: List[Trade]) -> pd.DataFrame:
    """
    Get the trade ledger as a DataFrame.

    Returns:
        DataFrame with one row per closed trade
    """
    columns = [
        "entry_date",
        "entry_price",
        "exit_date",
        "exit_price",
        "shares",
        "commission",
        "pnl",
        "pnl_pct",
    ]
    if not trades:
        return pd.DataFrame(columns=columns)

    return pd.DataFrame(
        [
            {
                "entry_date": t.entry_timestamp,
                "entry_price": t.entry_price,
                "exit_date": t.exit_timestamp,
                "exit_price": t.exit_price,
                "shares": t.shares,
                "commission": t.commission_paid,
                "pnl": t.pnl,
                "pnl_pct": t.pnl_percent,
            }
            for t in trades
        ],
        columns=columns,
    )
