"""
Backtesting report generation.

This module provides functionality to generate reports from backtest
results: text summaries with a trade log, pandas views of the equity curve
and ledger, JSON/CSV export and an interactive plotly equity chart.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd
import plotly.graph_objects as go

from quantback.backtesting.engine import BacktestResult
from quantback.backtesting.metrics import PerformanceMetrics
from quantback.backtesting.portfolio import equity_curve_to_series, trades_to_frame

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class BacktestReport:
    """
    Generate reports from backtest results.

    This class provides methods to:
    - Generate text summaries with a trade log
    - Export results to JSON or CSV
    - Create equity curve and drawdown data for plotting
    - Build an interactive equity chart
    - Compare multiple backtests

    Example:
        >>> report = BacktestReport(result)
        >>> print(report.generate_summary())
        >>> report.export_results("results/aapl_sma", format="json")
        >>> report.save_equity_chart("results/aapl_sma.html")
    """

    result: BacktestResult

    def generate_summary(self, detailed: bool = True) -> str:
        """
        Generate a text summary of backtest results.

        Args:
            detailed: If True, append the trade log

        Returns:
            Formatted text summary
        """
        lines = [
            "",
            "=== BACKTEST REPORT ===",
            str(self.result.metrics),
            f"Winning Trades      : {self.result.metrics.winning_trades}",
            f"Losing Trades       : {self.result.metrics.losing_trades}",
            f"Final Value         : ${self.result.final_value:,.2f}",
            f"Total Commissions   : ${self.result.total_commissions:,.2f}",
            "",
        ]

        if detailed:
            lines.append(self._generate_trade_section())

        lines.append("========================")
        return "\n".join(lines) + "\n"

    def _generate_trade_section(self) -> str:
        lines = ["Trade Log", "========="]

        if not self.result.trades:
            lines.append("No completed trades.")
            return "\n".join(lines)

        lines.append(
            f"{'Entry Date':<12} {'Entry $':<10} {'Exit Date':<12} {'Exit $':<10} "
            f"{'Shares':<10} {'Commission $':<13} {'P&L $':<12}"
        )
        lines.append("-" * 84)

        for trade in self.result.trades:
            lines.append(
                f"{trade.entry_timestamp.strftime('%Y-%m-%d'):<12} "
                f"{trade.entry_price:<10.2f} "
                f"{trade.exit_timestamp.strftime('%Y-%m-%d'):<12} "
                f"{trade.exit_price:<10.2f} "
                f"{trade.shares:<10.2f} "
                f"{trade.commission_paid:<13.2f} "
                f"{trade.pnl:<12.2f}"
            )

        return "\n".join(lines)

    def generate_equity_curve(self) -> pd.DataFrame:
        """
        Generate equity curve data for plotting.

        Returns:
            DataFrame indexed by date with columns: portfolio_value, drawdown_pct
        """
        equity = equity_curve_to_series(self.result.equity_curve)
        drawdown = PerformanceMetrics().calculate_drawdown_series(equity.reset_index(drop=True))

        df = pd.DataFrame(
            {
                "portfolio_value": equity.values,
                "drawdown_pct": drawdown.values,
            },
            index=equity.index,
        )

        return df

    def generate_trade_log(self) -> pd.DataFrame:
        """
        Generate detailed trade log.

        Returns:
            DataFrame with one row per closed trade, including pnl_pct
        """
        return trades_to_frame(self.result.trades)

    def export_results(
        self,
        output_path: PathLike,
        format: str = "json",
        include_trades: bool = True,
    ) -> Path:
        """
        Export backtest results to file.

        Args:
            output_path: Base output path (without extension)
            format: Export format ('json' or 'csv')
            include_trades: Whether to include trade log

        Returns:
            Path to the exported file (json) or directory (csv)

        Raises:
            ValueError: If format is not supported
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if format == "json":
            return self._export_json(output_path, include_trades)
        elif format == "csv":
            return self._export_csv(output_path, include_trades)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def _metadata(self) -> Dict:
        config = self.result.config
        return {
            "id": self.result.id,
            "symbol": self.result.symbol,
            "strategy": self.result.strategy,
            "strategy_params": self.result.strategy_params,
            "start_date": self.result.start_date.isoformat(),
            "end_date": self.result.end_date.isoformat(),
            "initial_capital": config.initial_capital,
            "commission_rate": config.commission_rate,
            "risk_free_rate": config.risk_free_rate,
            "final_value": self.result.final_value,
            "total_commissions": self.result.total_commissions,
        }

    def _export_json(self, output_path: Path, include_trades: bool) -> Path:
        """Export results to JSON."""
        output_file = output_path.with_suffix(".json")

        data = {
            "metadata": self._metadata(),
            "metrics": self.result.metrics.to_dict(),
            "equity_curve": [
                {"timestamp": p.timestamp.isoformat(), "portfolio_value": p.portfolio_value}
                for p in self.result.equity_curve
            ],
        }

        if include_trades:
            data["trades"] = self.generate_trade_log().to_dict(orient="records")

        with open(output_file, "w") as f:
            json.dump(data, f, indent=2, default=str)

        logger.info(f"Exported results to {output_file}")
        return output_file

    def _export_csv(self, output_path: Path, include_trades: bool) -> Path:
        """Export results to a directory of CSV files."""
        output_dir = output_path.parent / output_path.stem
        output_dir.mkdir(parents=True, exist_ok=True)

        self.generate_equity_curve().to_csv(output_dir / "equity_curve.csv")

        metrics_row = {**self._metadata(), **self.result.metrics.to_dict()}
        metrics_row["strategy_params"] = json.dumps(metrics_row["strategy_params"])
        pd.DataFrame([metrics_row]).to_csv(output_dir / "metrics.csv", index=False)

        if include_trades:
            self.generate_trade_log().to_csv(output_dir / "trades.csv", index=False)

        logger.info(f"Exported results to {output_dir}")
        return output_dir

    def save_summary(self, output_path: PathLike) -> Path:
        """Write the text summary to a file, creating parent directories."""
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(self.generate_summary())
        logger.info(f"Report saved to: {output_file.resolve()}")
        return output_file

    def build_equity_chart(self, show_trades: bool = True) -> go.Figure:
        """
        Build an interactive equity curve chart.

        Args:
            show_trades: Mark entries and exits on the curve

        Returns:
            plotly Figure
        """
        equity = equity_curve_to_series(self.result.equity_curve)

        fig = go.Figure()
        fig.add_trace(
            go.Scatter(
                x=equity.index,
                y=equity.values,
                mode="lines",
                name="Portfolio Equity",
                line=dict(color="#667eea", width=2),
            )
        )

        fig.add_trace(
            go.Scatter(
                x=[equity.index[0], equity.index[-1]],
                y=[self.result.config.initial_capital] * 2,
                mode="lines",
                name="Initial Capital",
                line=dict(color="gray", width=1, dash="dash"),
            )
        )

        if show_trades and self.result.trades:
            entry_dates = [t.entry_timestamp for t in self.result.trades]
            exit_dates = [t.exit_timestamp for t in self.result.trades]
            fig.add_trace(
                go.Scatter(
                    x=entry_dates,
                    y=equity.reindex(entry_dates).values,
                    mode="markers",
                    name="Entry",
                    marker=dict(color="#28a745", size=9, symbol="triangle-up"),
                )
            )
            fig.add_trace(
                go.Scatter(
                    x=exit_dates,
                    y=equity.reindex(exit_dates).values,
                    mode="markers",
                    name="Exit",
                    marker=dict(color="#dc3545", size=9, symbol="triangle-down"),
                )
            )

        title = f"Equity Curve - {self.result.symbol}" if self.result.symbol else "Equity Curve"
        fig.update_layout(
            title=title,
            xaxis_title="Date",
            yaxis_title="Portfolio Value ($)",
            hovermode="x unified",
            height=600,
            showlegend=True,
        )
        return fig

    def save_equity_chart(self, output_path: PathLike) -> Path:
        """Write the equity chart as a standalone HTML file."""
        output_file = Path(output_path).with_suffix(".html")
        output_file.parent.mkdir(parents=True, exist_ok=True)
        self.build_equity_chart().write_html(str(output_file), include_plotlyjs="cdn")
        logger.info(f"Equity curve chart saved to: {output_file.resolve()}")
        return output_file

    @staticmethod
    def compare_backtests(
        results: Dict[str, BacktestResult],
        output_path: Optional[PathLike] = None,
    ) -> pd.DataFrame:
        """
        Compare multiple backtest results.

        Args:
            results: Dictionary mapping names to BacktestResult objects
            output_path: Optional CSV path to save comparison

        Returns:
            DataFrame with one row per run

        Example:
            >>> results = engine.run_multiple_backtests(["AAPL", "MSFT"], "2020-01-01", "2024-01-01")
            >>> comparison = BacktestReport.compare_backtests(results)
        """
        comparison_data = []

        for name, result in results.items():
            metrics = result.metrics

            comparison_data.append(
                {
                    "Name": name,
                    "Symbol": result.symbol,
                    "Strategy": result.strategy,
                    "Total Return (%)": metrics.total_return * 100,
                    "Annualized Return (%)": metrics.annualized_return * 100,
                    "Sharpe Ratio": metrics.sharpe_ratio,
                    "Max Drawdown (%)": metrics.max_drawdown_pct * 100,
                    "Max Drawdown ($)": metrics.max_drawdown_abs,
                    "Win Rate (%)": metrics.win_rate * 100,
                    "Total Trades": metrics.total_trades,
                    "Final Value": result.final_value,
                }
            )

        df = pd.DataFrame(comparison_data)

        if output_path:
            output_file = Path(output_path).with_suffix(".csv")
            output_file.parent.mkdir(parents=True, exist_ok=True)
            df.to_csv(output_file, index=False)
            logger.info(f"Saved comparison to {output_file}")

        return df
