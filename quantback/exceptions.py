"""
Custom exception hierarchy for quantback.

Every error raised by the backtesting stack derives from BacktestError so
callers can catch all library failures with one except clause while still
handling specific conditions (bad configuration, empty input) separately.

Exception Hierarchy:
    BacktestError (base)
    ├── DataError
    │   ├── DataFetchError
    │   ├── DataValidationError
    │   └── EmptyDataError
    ├── MetricsError
    │   └── EmptyCurveError
    ├── StrategyError
    │   └── UnknownStrategyError
    └── ConfigurationError
        └── InvalidConfigurationError
"""

from typing import Any, Dict, Optional


class BacktestError(Exception):
    """
    Base exception for all quantback errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (symbol, field, etc.)
        cause: Original exception if this wraps another error
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with details."""
        msg = self.message
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            msg = f"{msg} [{detail_str}]"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {self.cause})"
        return msg


# =============================================================================
# Data-Related Exceptions
# =============================================================================

class DataError(BacktestError):
    """Base exception for all data-related errors."""
    pass


class DataFetchError(DataError):
    """
    Raised when price data cannot be fetched from a remote source.

    Examples:
        - Network failure talking to yfinance
        - Remote source returned no rows for the symbol
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        symbol: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if source:
            details["source"] = source
        if symbol:
            details["symbol"] = symbol
        super().__init__(message, details=details, **kwargs)


class DataValidationError(DataError):
    """
    Raised when input data fails validation checks.

    Examples:
        - Overlapping or inverted entry/exit pairs in a signal set
        - Signal index outside the bar sequence
        - Symbol that sanitizes to an empty string
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, **kwargs)


class EmptyDataError(DataError):
    """
    Raised when the simulation engine receives an empty bar sequence.

    An empty sequence means the market data collaborator failed upstream,
    so it is reported instead of producing an empty result.
    """

    def __init__(
        self,
        message: str,
        symbol: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if symbol:
            details["symbol"] = symbol
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# Metrics Exceptions
# =============================================================================

class MetricsError(BacktestError):
    """Base exception for performance metric errors."""
    pass


class EmptyCurveError(MetricsError):
    """Raised when metrics are requested for an empty equity curve."""
    pass


# =============================================================================
# Strategy Exceptions
# =============================================================================

class StrategyError(BacktestError):
    """Base exception for signal generation errors."""
    pass


class UnknownStrategyError(StrategyError):
    """Raised when a strategy id is not in the registry."""

    def __init__(
        self,
        message: str,
        strategy: str,
        available: Optional[list] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["strategy"] = strategy
        if available:
            details["available"] = available
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# Configuration Exceptions
# =============================================================================

class ConfigurationError(BacktestError):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Environment variable that cannot be parsed as a number
        - Conflicting configuration options
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, **kwargs)


class InvalidConfigurationError(ConfigurationError):
    """
    Raised when a run or strategy parameter is outside its allowed range.

    Examples:
        - Non-positive initial capital
        - SMA short period not below the long period
        - RSI period outside its declared bounds
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if value is not None:
            details["value"] = value
        super().__init__(
            message, config_key=config_key, expected=expected, details=details, **kwargs
        )
