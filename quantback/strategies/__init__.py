"""
Signal-generating strategies.

Each strategy reduces a bar sequence to a SignalSet the simulation engine
can execute.
"""

from quantback.strategies.base import ParameterSpec, Strategy, StrategyConfig, StrategyKind
from quantback.strategies.bollinger import BollingerBandsStrategy, BollingerConfig
from quantback.strategies.macd import MacdConfig, MacdStrategy
from quantback.strategies.registry import (
    build_config,
    get_strategy,
    get_strategy_class,
    list_strategies,
    resolve_kind,
)
from quantback.strategies.rsi import RsiConfig, RsiStrategy
from quantback.strategies.sma_crossover import SmaCrossoverConfig, SmaCrossoverStrategy

__all__ = [
    "StrategyKind",
    "ParameterSpec",
    "StrategyConfig",
    "Strategy",
    "SmaCrossoverConfig",
    "SmaCrossoverStrategy",
    "RsiConfig",
    "RsiStrategy",
    "MacdConfig",
    "MacdStrategy",
    "BollingerConfig",
    "BollingerBandsStrategy",
    "build_config",
    "get_strategy",
    "get_strategy_class",
    "list_strategies",
    "resolve_kind",
]
