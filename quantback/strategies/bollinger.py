"""Bollinger bands mean-reversion strategy."""

from dataclasses import dataclass
from typing import ClassVar, Tuple

import pandas as pd

from quantback.strategies import indicators
from quantback.strategies.base import ParameterSpec, Strategy, StrategyConfig, StrategyKind


@dataclass(frozen=True)
class BollingerConfig(StrategyConfig):
    """Parameters for the Bollinger bands strategy."""

    period: int = 20
    standard_deviations: float = 2.0

    PARAMETERS: ClassVar[Tuple[ParameterSpec, ...]] = (
        ParameterSpec("period", int, 20, 10, 50, "Period for SMA and standard deviation calculation"),
        ParameterSpec("standard_deviations", float, 2.0, 1.0, 3.0, "Number of standard deviations for bands"),
    )


class BollingerBandsStrategy(Strategy):
    """
    Mean reversion on Bollinger bands.

    Enters when the close crosses back up through the lower band and exits
    when it crosses back down through the upper band.
    """

    kind = StrategyKind.BOLLINGER
    name = "Bollinger Bands"
    description = (
        "A mean-reversion strategy using Bollinger Bands. Buys when price touches "
        "the lower band (oversold) and sells when price touches the upper band (overbought)."
    )
    config_class = BollingerConfig

    def rules(self, close: pd.Series) -> Tuple[pd.Series, pd.Series]:
        lower, _, upper = indicators.bollinger_bands(
            close, self.config.period, self.config.standard_deviations
        )
        return indicators.crossed_above(close, lower), indicators.crossed_below(close, upper)
