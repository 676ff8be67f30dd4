"""Simple moving average crossover strategy."""

from dataclasses import dataclass
from typing import ClassVar, Tuple

import pandas as pd

from quantback.exceptions import InvalidConfigurationError
from quantback.strategies import indicators
from quantback.strategies.base import ParameterSpec, Strategy, StrategyConfig, StrategyKind


@dataclass(frozen=True)
class SmaCrossoverConfig(StrategyConfig):
    """Parameters for the SMA crossover strategy."""

    short_period: int = 50
    long_period: int = 200

    PARAMETERS: ClassVar[Tuple[ParameterSpec, ...]] = (
        ParameterSpec("short_period", int, 50, 5, 100, "Short-term SMA period (e.g., 50)"),
        ParameterSpec("long_period", int, 200, 50, 500, "Long-term SMA period (e.g., 200)"),
    )

    def validate_relations(self) -> None:
        if self.short_period >= self.long_period:
            raise InvalidConfigurationError(
                "Short period must be less than long period",
                config_key="short_period",
                value=self.short_period,
                expected=f"< {self.long_period}",
            )


class SmaCrossoverStrategy(Strategy):
    """
    Trend following on two simple moving averages.

    Enters when the short SMA crosses above the long SMA and exits when it
    crosses back below.
    """

    kind = StrategyKind.SMA_CROSSOVER
    name = "SMA Crossover"
    description = (
        "A trend-following strategy that buys when a short-term SMA crosses above "
        "a long-term SMA, and sells when it crosses below."
    )
    config_class = SmaCrossoverConfig

    def rules(self, close: pd.Series) -> Tuple[pd.Series, pd.Series]:
        short = indicators.sma(close, self.config.short_period)
        long = indicators.sma(close, self.config.long_period)
        return indicators.crossed_above(short, long), indicators.crossed_below(short, long)
