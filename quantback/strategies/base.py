"""
Base types for signal-generating strategies.

Provides:
- StrategyKind: the closed set of supported strategies
- ParameterSpec: declared bounds for one tunable parameter
- StrategyConfig: typed, validated parameter sets
- Strategy: abstract generator turning bars into a SignalSet
"""

import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Type

import pandas as pd
import structlog

from quantback.backtesting.data_loader import Bar
from quantback.backtesting.signals import SignalSet
from quantback.exceptions import InvalidConfigurationError

logger = structlog.get_logger(__name__)


class StrategyKind(Enum):
    """Supported strategies, keyed by their public id."""

    SMA_CROSSOVER = "SMA_CROSSOVER"
    RSI = "RSI"
    MACD = "MACD"
    BOLLINGER = "BOLLINGER"


@dataclass(frozen=True)
class ParameterSpec:
    """
    Declared bounds for one strategy parameter.

    Attributes:
        name: Field name on the config dataclass
        kind: Python type of the value (int or float)
        default: Value used when the caller does not supply one
        minimum: Smallest allowed value (inclusive)
        maximum: Largest allowed value (inclusive)
        description: Human-readable explanation
    """

    name: str
    kind: type
    default: Any
    minimum: Any
    maximum: Any
    description: str = ""

    def coerce(self, value: Any) -> Any:
        """Convert a raw value (number or string) to this parameter's type."""
        try:
            if self.kind is int:
                number = float(value)
                if not number.is_integer():
                    raise ValueError(f"{value!r} is not a whole number")
                return int(number)
            return self.kind(value)
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(
                f"Parameter {self.name} must be {self.kind.__name__}",
                config_key=self.name,
                value=value,
                expected=self.kind.__name__,
                cause=e,
            ) from e

    def check(self, value: Any) -> None:
        """Raise if ``value`` falls outside [minimum, maximum]."""
        if not self.minimum <= value <= self.maximum:
            raise InvalidConfigurationError(
                f"Parameter {self.name} out of range",
                config_key=self.name,
                value=value,
                expected=f"{self.minimum} <= value <= {self.maximum}",
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": "INTEGER" if self.kind is int else "DECIMAL",
            "default": self.default,
            "min": self.minimum,
            "max": self.maximum,
            "description": self.description,
        }


def _snake_case(key: str) -> str:
    """shortPeriod -> short_period"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key.strip()).lower()


@dataclass(frozen=True)
class StrategyConfig:
    """
    Base class for typed strategy parameters.

    Subclasses declare their fields with defaults and list a ParameterSpec
    for each one in PARAMETERS. Values are range-checked on construction,
    then cross-field rules run in ``validate_relations``.
    """

    PARAMETERS: ClassVar[Tuple[ParameterSpec, ...]] = ()

    def __post_init__(self):
        for spec in self.PARAMETERS:
            value = spec.coerce(getattr(self, spec.name))
            spec.check(value)
            object.__setattr__(self, spec.name, value)
        self.validate_relations()

    def validate_relations(self) -> None:
        """Hook for rules that span more than one parameter."""

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]] = None) -> "StrategyConfig":
        """
        Build a config from a loose mapping (CLI or JSON input).

        Keys may be snake_case or camelCase. Missing keys take their
        defaults.

        Raises:
            InvalidConfigurationError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in (params or {}).items():
            name = _snake_case(key)
            if name not in known:
                raise InvalidConfigurationError(
                    f"Unknown parameter for {cls.__name__}: {key}",
                    config_key=key,
                    expected=", ".join(sorted(known)),
                )
            values[name] = value
        return cls(**values)

    @classmethod
    def parameter_definitions(cls) -> List[Dict[str, Any]]:
        return [spec.to_dict() for spec in cls.PARAMETERS]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Strategy(ABC):
    """
    Abstract base class for all strategies.

    A strategy evaluates an entry rule and an exit rule on every bar and
    pairs the outcomes into non-overlapping positions. Strategies hold no
    state between calls, so one instance can be shared across runs.
    """

    kind: ClassVar[StrategyKind]
    name: ClassVar[str]
    description: ClassVar[str]
    config_class: ClassVar[Type[StrategyConfig]]

    def __init__(self, config: Optional[StrategyConfig] = None):
        self.config = config if config is not None else self.config_class()
        if not isinstance(self.config, self.config_class):
            raise InvalidConfigurationError(
                f"{type(self).__name__} requires {self.config_class.__name__}",
                config_key="config",
                value=type(self.config).__name__,
                expected=self.config_class.__name__,
            )

    @abstractmethod
    def rules(self, close: pd.Series) -> Tuple[pd.Series, pd.Series]:
        """
        Evaluate the entry and exit rules over a close price series.

        Args:
            close: Close prices indexed by bar position

        Returns:
            Tuple of boolean Series (entries, exits), aligned with ``close``
        """

    def generate(self, bars: List[Bar]) -> SignalSet:
        """
        Produce the signal set for a bar sequence.

        Args:
            bars: Chronological bar sequence

        Returns:
            SignalSet with closed positions and an optional open entry
        """
        if not bars:
            return SignalSet()

        close = pd.Series([b.close for b in bars], dtype=float)
        entries, exits = self.rules(close)
        signals = SignalSet.from_rules(entries.tolist(), exits.tolist())

        logger.info(
            "signals_generated",
            strategy=self.kind.value,
            bars=len(bars),
            positions=len(signals.positions),
            open_entry=signals.open_entry,
        )
        return signals

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.config!r})"
