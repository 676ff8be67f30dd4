"""
Strategy registry.

Maps strategy ids to their implementations and converts loose parameter
mappings into typed configs at the boundary.
"""

from typing import Any, Dict, List, Mapping, Optional, Type, Union

import structlog

from quantback.exceptions import UnknownStrategyError
from quantback.strategies.base import Strategy, StrategyConfig, StrategyKind
from quantback.strategies.bollinger import BollingerBandsStrategy
from quantback.strategies.macd import MacdStrategy
from quantback.strategies.rsi import RsiStrategy
from quantback.strategies.sma_crossover import SmaCrossoverStrategy

logger = structlog.get_logger(__name__)

StrategyRef = Union[StrategyKind, str]

STRATEGIES: Dict[StrategyKind, Type[Strategy]] = {
    StrategyKind.SMA_CROSSOVER: SmaCrossoverStrategy,
    StrategyKind.RSI: RsiStrategy,
    StrategyKind.MACD: MacdStrategy,
    StrategyKind.BOLLINGER: BollingerBandsStrategy,
}


def resolve_kind(strategy: StrategyRef) -> StrategyKind:
    """
    Resolve a StrategyKind from a kind or an id string.

    Ids are matched case-insensitively, so "sma_crossover" works.

    Raises:
        UnknownStrategyError: If the id is not registered
    """
    if isinstance(strategy, StrategyKind):
        return strategy
    key = str(strategy).strip().upper()
    try:
        return StrategyKind(key)
    except ValueError as e:
        raise UnknownStrategyError(
            f"Unknown strategy: {strategy}",
            strategy=str(strategy),
            available=[k.value for k in StrategyKind],
            cause=e,
        ) from e


def get_strategy_class(strategy: StrategyRef) -> Type[Strategy]:
    return STRATEGIES[resolve_kind(strategy)]


def build_config(strategy: StrategyRef, params: Optional[Mapping[str, Any]] = None) -> StrategyConfig:
    """
    Convert a parameter mapping into the strategy's typed config.

    Args:
        strategy: Strategy kind or id
        params: Raw parameter values; missing keys take defaults

    Returns:
        Validated config instance

    Raises:
        UnknownStrategyError: If the strategy is not registered
        InvalidConfigurationError: If a parameter is unknown or out of range
    """
    return get_strategy_class(strategy).config_class.from_params(params)


def get_strategy(strategy: StrategyRef, params: Optional[Mapping[str, Any]] = None) -> Strategy:
    """
    Instantiate a strategy with validated parameters.

    Example:
        >>> sma = get_strategy("SMA_CROSSOVER", {"short_period": 20, "long_period": 60})
        >>> signals = sma.generate(bars)
    """
    cls = get_strategy_class(strategy)
    instance = cls(cls.config_class.from_params(params))
    logger.debug("strategy_created", strategy=cls.kind.value, params=instance.config.to_dict())
    return instance


def list_strategies() -> List[Dict[str, Any]]:
    """Describe every registered strategy and its parameters."""
    return [
        {
            "id": kind.value,
            "name": cls.name,
            "description": cls.description,
            "parameters": cls.config_class.parameter_definitions(),
        }
        for kind, cls in STRATEGIES.items()
    ]
