"""MACD crossover strategy."""

from dataclasses import dataclass
from typing import ClassVar, Tuple

import pandas as pd

from quantback.exceptions import InvalidConfigurationError
from quantback.strategies import indicators
from quantback.strategies.base import ParameterSpec, Strategy, StrategyConfig, StrategyKind


@dataclass(frozen=True)
class MacdConfig(StrategyConfig):
    """Parameters for the MACD strategy."""

    short_period: int = 12
    long_period: int = 26
    signal_period: int = 9

    PARAMETERS: ClassVar[Tuple[ParameterSpec, ...]] = (
        ParameterSpec("short_period", int, 12, 5, 20, "Short-term EMA period (fast line)"),
        ParameterSpec("long_period", int, 26, 15, 50, "Long-term EMA period (slow line)"),
        ParameterSpec("signal_period", int, 9, 5, 20, "Signal line EMA period"),
    )

    def validate_relations(self) -> None:
        if self.short_period >= self.long_period:
            raise InvalidConfigurationError(
                "Short period must be less than long period",
                config_key="short_period",
                value=self.short_period,
                expected=f"< {self.long_period}",
            )


class MacdStrategy(Strategy):
    """Enters when the MACD line crosses above its signal line, exits on the cross below."""

    kind = StrategyKind.MACD
    name = "MACD Crossover"
    description = (
        "A trend-following momentum strategy that tracks the relationship between two "
        "moving averages. Signals are generated when the MACD line crosses the signal line."
    )
    config_class = MacdConfig

    def rules(self, close: pd.Series) -> Tuple[pd.Series, pd.Series]:
        macd_line, signal_line = indicators.macd(
            close,
            self.config.short_period,
            self.config.long_period,
            self.config.signal_period,
        )
        return (
            indicators.crossed_above(macd_line, signal_line),
            indicators.crossed_below(macd_line, signal_line),
        )
