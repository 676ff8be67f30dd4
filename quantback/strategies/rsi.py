"""RSI momentum strategy."""

from dataclasses import dataclass
from typing import ClassVar, Tuple

import pandas as pd

from quantback.exceptions import InvalidConfigurationError
from quantback.strategies import indicators
from quantback.strategies.base import ParameterSpec, Strategy, StrategyConfig, StrategyKind


@dataclass(frozen=True)
class RsiConfig(StrategyConfig):
    """Parameters for the RSI strategy."""

    period: int = 14
    oversold: int = 30
    overbought: int = 70

    PARAMETERS: ClassVar[Tuple[ParameterSpec, ...]] = (
        ParameterSpec("period", int, 14, 5, 50, "RSI calculation period"),
        ParameterSpec("oversold", int, 30, 10, 40, "RSI level considered oversold (buy signal)"),
        ParameterSpec("overbought", int, 70, 60, 90, "RSI level considered overbought (sell signal)"),
    )

    def validate_relations(self) -> None:
        if self.oversold >= self.overbought:
            raise InvalidConfigurationError(
                "Oversold threshold must be less than overbought threshold",
                config_key="oversold",
                value=self.oversold,
                expected=f"< {self.overbought}",
            )


class RsiStrategy(Strategy):
    """
    Mean reversion on the Relative Strength Index.

    Enters when RSI crosses up through the oversold level and exits when it
    crosses down through the overbought level.
    """

    kind = StrategyKind.RSI
    name = "RSI Momentum"
    description = (
        "A mean-reversion strategy that buys when RSI indicates oversold conditions "
        "and sells when RSI indicates overbought conditions."
    )
    config_class = RsiConfig

    def rules(self, close: pd.Series) -> Tuple[pd.Series, pd.Series]:
        values = indicators.rsi(close, self.config.period)
        entries = indicators.crossed_above(values, self.config.oversold)
        exits = indicators.crossed_below(values, self.config.overbought)
        return entries, exits
