"""
Unit tests for the backtesting framework.

Tests cover:
- Portfolio bookkeeping
- The all-in simulation pass
- Backtest engine execution
- Backtest configuration
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from quantback.backtesting import (
    BacktestConfig,
    BacktestEngine,
    SignalSet,
    SimulatedPortfolio,
    compute_metrics,
    simulate,
)
from quantback.exceptions import (
    BacktestError,
    DataValidationError,
    EmptyDataError,
    InvalidConfigurationError,
    UnknownStrategyError,
)

DAY1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
DAY2 = datetime(2024, 1, 2, tzinfo=timezone.utc)


class TestSimulatedPortfolio:
    """Test the SimulatedPortfolio class."""

    def test_portfolio_initialization(self):
        """Test portfolio initialization."""
        portfolio = SimulatedPortfolio(initial_capital=100000.0)

        assert portfolio.cash == 100000.0
        assert portfolio.shares_held == 0.0
        assert not portfolio.is_long
        assert len(portfolio.trades) == 0

    def test_enter_invests_all_cash(self):
        """Test an entry deploys the whole cash balance."""
        portfolio = SimulatedPortfolio(initial_capital=10000.0, commission_rate=0.001)

        shares = portfolio.enter(100.0, DAY1)

        assert shares == pytest.approx(99.9)
        assert portfolio.shares_held == pytest.approx(99.9)
        assert portfolio.cash == pytest.approx(0.0, abs=1e-9)
        assert portfolio.is_long

    def test_exit_records_trade(self):
        """Test an exit liquidates the position and books P&L."""
        portfolio = SimulatedPortfolio(initial_capital=10000.0, commission_rate=0.001)
        portfolio.enter(100.0, DAY1)

        trade = portfolio.exit(110.0, DAY2)

        assert trade is not None
        assert trade.entry_price == 100.0
        assert trade.exit_price == 110.0
        assert trade.shares == pytest.approx(99.9)
        assert trade.commission_paid == pytest.approx(10.989)
        assert trade.pnl == pytest.approx(988.011)
        assert portfolio.cash == pytest.approx(10978.011)
        assert portfolio.shares_held == 0.0
        assert not portfolio.is_long

    def test_exit_when_flat_is_ignored(self):
        """Test exiting without a position does nothing."""
        portfolio = SimulatedPortfolio(initial_capital=10000.0)

        assert portfolio.exit(110.0, DAY2) is None
        assert portfolio.cash == 10000.0
        assert portfolio.trades == []

    def test_entry_at_non_positive_price_is_skipped(self):
        """Test a zero price never produces shares."""
        portfolio = SimulatedPortfolio(initial_capital=10000.0)

        assert portfolio.enter(0.0, DAY1) == 0.0
        assert portfolio.cash == 10000.0
        assert not portfolio.is_long

    def test_mark(self):
        """Test portfolio value is cash plus marked holdings."""
        portfolio = SimulatedPortfolio(initial_capital=10000.0)
        portfolio.enter(100.0, DAY1)

        point = portfolio.mark(120.0, DAY2)

        assert point.timestamp == DAY2
        assert point.portfolio_value == pytest.approx(12000.0)

    def test_total_commissions(self):
        """Test only exit commissions are summed from the ledger."""
        portfolio = SimulatedPortfolio(initial_capital=10000.0, commission_rate=0.01)
        portfolio.enter(100.0, DAY1)
        trade = portfolio.exit(100.0, DAY2)

        assert portfolio.get_total_commissions() == pytest.approx(trade.commission_paid)


class TestSimulate:
    """Test the simulation pass."""

    def test_scenario_profitable_trades(self, make_bars):
        """Five profitable round trips all count as wins."""
        bars = make_bars([10, 12] * 5)
        signals = SignalSet.from_pairs([(0, 1), (2, 3), (4, 5), (6, 7), (8, 9)])

        equity, trades = simulate(bars, signals, initial_capital=10000.0)

        assert len(trades) == 5
        assert all(t.pnl > 0 for t in trades)
        assert equity[-1].portfolio_value == pytest.approx(10000.0 * 1.2 ** 5)

    def test_rising_closes_every_trade_wins(self, make_bars):
        """Ten rising closes traded in consecutive pairs give five winners."""
        bars = make_bars([100.0 + i for i in range(10)])
        signals = SignalSet.from_pairs([(0, 1), (2, 3), (4, 5), (6, 7), (8, 9)])

        equity, trades = simulate(bars, signals, initial_capital=10000.0, commission_rate=0.0)
        metrics = compute_metrics(equity, trades, initial_capital=10000.0)

        assert len(trades) == 5
        assert all(t.pnl > 0 for t in trades)
        assert metrics.total_trades == 5
        assert metrics.winning_trades == 5
        assert metrics.win_rate == 1.0

    def test_single_bar(self, make_bars):
        """A single bar yields one point equal to the capital."""
        equity, trades = simulate(make_bars([50.0]), SignalSet(), initial_capital=10000.0)

        assert len(equity) == 1
        assert equity[0].portfolio_value == 10000.0
        assert trades == []

    def test_empty_bars_raise(self):
        """Empty input is reported, not simulated."""
        with pytest.raises(EmptyDataError):
            simulate([], SignalSet(), initial_capital=10000.0)

    @pytest.mark.parametrize("capital", [0.0, -100.0])
    def test_non_positive_capital_raises(self, make_bars, capital):
        """Capital must be positive."""
        with pytest.raises(InvalidConfigurationError):
            simulate(make_bars([10.0]), SignalSet(), initial_capital=capital)

    def test_negative_commission_is_clamped(self, make_bars):
        """Negative commission behaves like zero commission."""
        bars = make_bars([100.0, 110.0])
        signals = SignalSet.from_pairs([(0, 1)])

        clamped = simulate(bars, signals, initial_capital=10000.0, commission_rate=-0.5)
        free = simulate(bars, signals, initial_capital=10000.0, commission_rate=0.0)

        assert clamped == free

    def test_one_point_per_bar(self, make_bars, wave_closes):
        """The equity curve mirrors the bar sequence."""
        bars = make_bars(wave_closes)
        signals = SignalSet.from_pairs([(3, 20), (25, 60)], open_entry=100)

        equity, _ = simulate(bars, signals, initial_capital=5000.0, commission_rate=0.001)

        assert len(equity) == len(bars)
        assert [p.timestamp for p in equity] == [b.timestamp for b in bars]

    def test_all_in_invariant(self, make_bars):
        """Entry value equals net invested; flat after the exit."""
        bars = make_bars([100.0, 125.0, 90.0])
        signals = SignalSet.from_pairs([(0, 1)])

        equity, trades = simulate(bars, signals, initial_capital=10000.0, commission_rate=0.002)

        net_invested = 10000.0 - 10000.0 * 0.002
        assert trades[0].entry_price * trades[0].shares == pytest.approx(net_invested)
        # Flat after the exit: value no longer follows the price
        assert equity[2].portfolio_value == pytest.approx(equity[1].portfolio_value)

    def test_exit_processed_before_entry_on_same_bar(self, make_bars):
        """A bar that closes one position can open the next."""
        bars = make_bars([100.0, 105.0, 110.0, 100.0, 120.0])
        signals = SignalSet.from_pairs([(0, 2), (2, 4)])

        equity, trades = simulate(bars, signals, initial_capital=10000.0)

        assert [t.pnl for t in trades] == pytest.approx([1000.0, 1000.0])
        assert [p.portfolio_value for p in equity] == pytest.approx(
            [10000.0, 10500.0, 11000.0, 10000.0, 12000.0]
        )

    def test_open_position_stays_open(self, make_bars):
        """A trailing entry is marked but never booked as a trade."""
        bars = make_bars([100.0, 100.0, 150.0])
        signals = SignalSet(open_entry=1)

        equity, trades = simulate(bars, signals, initial_capital=10000.0)

        assert trades == []
        assert equity[-1].portfolio_value == pytest.approx(15000.0)

    def test_break_even_trade(self, make_bars):
        """Round trip at the same price with no commission has zero P&L."""
        bars = make_bars([100.0, 100.0])

        _, trades = simulate(bars, SignalSet.from_pairs([(0, 1)]), initial_capital=10000.0)

        assert trades[0].pnl == 0.0
        assert not trades[0].is_win

    def test_zero_price_entry_is_skipped(self, make_bars):
        """An entry at a zero close leaves the portfolio flat."""
        bars = make_bars([0.0, 10.0, 12.0])

        equity, trades = simulate(bars, SignalSet.from_pairs([(0, 2)]), initial_capital=10000.0)

        assert trades == []
        assert all(p.portfolio_value == 10000.0 for p in equity)

    def test_signal_outside_bars_raises(self, make_bars):
        """Signals must index into the bar sequence."""
        with pytest.raises(DataValidationError):
            simulate(make_bars([10.0, 11.0]), SignalSet.from_pairs([(0, 5)]), 10000.0)

    def test_deterministic(self, make_bars, wave_closes):
        """Identical inputs give identical outputs."""
        bars = make_bars(wave_closes)
        signals = SignalSet.from_pairs([(5, 30), (45, 70), (85, 110)], open_entry=130)

        first = simulate(bars, signals, initial_capital=10000.0, commission_rate=0.001)
        second = simulate(bars, signals, initial_capital=10000.0, commission_rate=0.001)

        assert first == second


class TestBacktestEngine:
    """Test the BacktestEngine class."""

    @pytest.fixture
    def config(self):
        return BacktestConfig(initial_capital=10000.0, commission_rate=0.0, risk_free_rate=0.0)

    def test_engine_initialization(self, config, loader):
        """Test engine initialization."""
        engine = BacktestEngine(config=config, data_loader=loader)

        assert engine.config.initial_capital == 10000.0
        assert engine.metrics_calculator.risk_free_rate == 0.0

    def test_run_on_bars(self, config, loader, make_bars):
        """Test the pipeline on caller-supplied bars."""
        engine = BacktestEngine(config=config, data_loader=loader)
        bars = make_bars([10, 12] * 5)
        signals = SignalSet.from_pairs([(0, 1), (2, 3), (4, 5), (6, 7), (8, 9)])

        result = engine.run_on_bars(bars, signals, symbol="TEST")

        assert result.symbol == "TEST"
        assert result.strategy is None
        assert result.metrics.total_trades == 5
        assert result.metrics.winning_trades == 5
        assert result.metrics.win_rate == 1.0
        assert result.final_value == pytest.approx(10000.0 * 1.2 ** 5)
        assert result.start_date == bars[0].timestamp
        assert result.end_date == bars[-1].timestamp

    def test_run_backtest_with_strategy(self, config, loader, loader_dirs, write_price_csv, v_shape_closes):
        """Test a full run from CSV data through a registered strategy."""
        data_dir, _ = loader_dirs
        write_price_csv(data_dir / "TEST.csv", v_shape_closes)
        engine = BacktestEngine(config=config, data_loader=loader)

        result = engine.run_backtest(
            symbol="test",
            start_date="2024-01-01",
            end_date="2024-12-31",
            strategy="SMA_CROSSOVER",
            params={"short_period": 5, "long_period": 50},
        )

        assert result.symbol == "test"
        assert result.strategy == "SMA_CROSSOVER"
        assert result.strategy_params == {"short_period": 5, "long_period": 50}
        assert len(result.equity_curve) == len(v_shape_closes)
        assert result.metrics.total_trades == 1

    def test_run_backtest_with_signals(self, config, loader, loader_dirs, write_price_csv):
        """Test pre-computed signals override the strategy."""
        data_dir, _ = loader_dirs
        write_price_csv(data_dir / "TEST.csv", [100.0, 110.0, 120.0])
        engine = BacktestEngine(config=config, data_loader=loader)

        result = engine.run_backtest(
            symbol="TEST",
            start_date="2024-01-01",
            end_date="2024-01-03",
            signals=SignalSet.from_pairs([(0, 2)]),
        )

        assert result.strategy is None
        assert len(result.trades) == 1
        assert result.final_value == pytest.approx(12000.0)

    def test_run_backtest_without_data(self, config, loader):
        """Test a symbol with no data raises EmptyDataError."""
        engine = BacktestEngine(config=config, data_loader=loader)

        with pytest.raises(EmptyDataError):
            engine.run_backtest("MISSING", "2024-01-01", "2024-12-31")

    def test_unknown_strategy_propagates(self, config, loader, loader_dirs, write_price_csv):
        """Test library errors are not re-wrapped."""
        data_dir, _ = loader_dirs
        write_price_csv(data_dir / "TEST.csv", [100.0, 110.0])
        engine = BacktestEngine(config=config, data_loader=loader)

        with pytest.raises(UnknownStrategyError):
            engine.run_backtest("TEST", "2024-01-01", "2024-12-31", strategy="MOMENTUM")

    def test_unexpected_errors_are_wrapped(self, config):
        """Test foreign exceptions surface as BacktestError."""
        failing_loader = Mock()
        failing_loader.get_bars.side_effect = RuntimeError("disk on fire")
        engine = BacktestEngine(config=config, data_loader=failing_loader)

        with pytest.raises(BacktestError) as exc_info:
            engine.run_backtest("TEST", "2024-01-01", "2024-12-31")

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.details["symbol"] == "TEST"

    def test_run_multiple_backtests(self, config, loader, loader_dirs, write_price_csv, wave_closes):
        """Test failing symbols are skipped and order is preserved."""
        data_dir, _ = loader_dirs
        write_price_csv(data_dir / "AAA.csv", wave_closes)
        write_price_csv(data_dir / "BBB.csv", [c * 2 for c in wave_closes])
        engine = BacktestEngine(config=config, data_loader=loader)

        results = engine.run_multiple_backtests(
            ["BBB", "MISSING", "AAA"],
            "2024-01-01",
            "2024-12-31",
            strategy="RSI",
        )

        assert list(results) == ["BBB", "AAA"]

    def test_parallel_matches_sequential(self, config, loader, loader_dirs, write_price_csv, wave_closes):
        """Test threaded runs give the same metrics as sequential runs."""
        data_dir, _ = loader_dirs
        symbols = ["AAA", "BBB", "CCC", "DDD"]
        for n, symbol in enumerate(symbols, start=1):
            write_price_csv(data_dir / f"{symbol}.csv", [c + n for c in wave_closes])
        engine = BacktestEngine(config=config, data_loader=loader)

        sequential = engine.run_multiple_backtests(
            symbols, "2024-01-01", "2024-12-31", strategy="MACD", max_workers=1
        )
        parallel = engine.run_multiple_backtests(
            symbols, "2024-01-01", "2024-12-31", strategy="MACD", max_workers=4
        )

        assert list(parallel) == symbols
        for symbol in symbols:
            assert parallel[symbol].metrics == sequential[symbol].metrics
            assert parallel[symbol].trades == sequential[symbol].trades

    def test_summary(self, config, loader, make_bars):
        """Test the text summary names the key figures."""
        engine = BacktestEngine(config=config, data_loader=loader)
        result = engine.run_on_bars(make_bars([100.0, 110.0]), SignalSet.from_pairs([(0, 1)]), "TEST")

        summary = result.summary()

        assert "Backtest Results: TEST" in summary
        assert "Total Return" in summary
        assert "Sharpe Ratio" in summary
        assert "Final Value" in summary


class TestBacktestConfig:
    """Test the BacktestConfig class."""

    def test_valid_config(self):
        """Test creating a valid configuration."""
        config = BacktestConfig(
            initial_capital=100000.0,
            commission_rate=0.001,
            risk_free_rate=0.03,
        )

        assert config.initial_capital == 100000.0
        assert config.commission_rate == 0.001
        assert config.risk_free_rate == 0.03

    def test_invalid_initial_capital(self):
        """Test invalid initial capital raises error."""
        with pytest.raises(InvalidConfigurationError):
            BacktestConfig(initial_capital=-1000.0)

    def test_negative_commission_rate_clamped(self):
        """Test negative commission rate is clamped to zero."""
        config = BacktestConfig(initial_capital=1000.0, commission_rate=-0.001)

        assert config.commission_rate == 0.0

    def test_defaults_from_environment(self, monkeypatch):
        """Test defaults come from the environment configuration."""
        monkeypatch.setenv("QUANTBACK_INITIAL_CAPITAL", "25000")
        monkeypatch.setenv("QUANTBACK_COMMISSION_RATE", "0.002")
        monkeypatch.setenv("QUANTBACK_RISK_FREE_RATE", "0.01")
        monkeypatch.setattr("quantback.config._config", None)

        config = BacktestConfig()

        assert config.initial_capital == 25000.0
        assert config.commission_rate == 0.002
        assert config.risk_free_rate == 0.01


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
