"""
Technical indicators over pandas Series.

All functions take a close price Series and return Series aligned with
it. Warm-up values are NaN: no average is reported until a full window
(or, for the exponential averages, ``period`` observations) is available,
so strategies stay flat through the warm-up instead of trading on
partial-window averages.
"""

from typing import Tuple, Union

import numpy as np
import pandas as pd

Level = Union[pd.Series, float]


def sma(series: pd.Series, period: int) -> pd.Series:
    """Simple moving average over ``period`` bars."""
    return series.rolling(window=period, min_periods=period).mean()


def ema(series: pd.Series, period: int) -> pd.Series:
    """Exponential moving average seeded with the first value."""
    return series.ewm(span=period, adjust=False, min_periods=period).mean()


def rsi(series: pd.Series, period: int = 14) -> pd.Series:
    """
    Relative Strength Index with Wilder smoothing.

    Returns:
        Series in [0, 100]; 100 when there were no losses in the window
    """
    delta = series.diff()
    gain = delta.clip(lower=0)
    loss = -delta.clip(upper=0)

    avg_gain = gain.ewm(alpha=1 / period, adjust=False, min_periods=period).mean()
    avg_loss = loss.ewm(alpha=1 / period, adjust=False, min_periods=period).mean()

    rs = avg_gain / avg_loss
    values = 100 - (100 / (1 + rs))
    # No losses in the window: RS is infinite
    values = values.where(avg_loss != 0, 100.0)
    return values.where(avg_gain.notna())


def macd(
    series: pd.Series,
    short_period: int = 12,
    long_period: int = 26,
    signal_period: int = 9,
) -> Tuple[pd.Series, pd.Series]:
    """
    MACD line and its signal line.

    Returns:
        Tuple of (macd_line, signal_line)
    """
    macd_line = ema(series, short_period) - ema(series, long_period)
    signal_line = macd_line.ewm(span=signal_period, adjust=False, min_periods=signal_period).mean()
    return macd_line, signal_line


def bollinger_bands(
    series: pd.Series,
    period: int = 20,
    standard_deviations: float = 2.0,
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Bollinger bands around a simple moving average.

    The band width uses the population standard deviation of the window.

    Returns:
        Tuple of (lower, middle, upper)
    """
    middle = sma(series, period)
    std = series.rolling(window=period, min_periods=period).std(ddof=0)
    return middle - standard_deviations * std, middle, middle + standard_deviations * std


def _as_series(level: Level, like: pd.Series) -> pd.Series:
    if isinstance(level, pd.Series):
        return level
    return pd.Series(float(level), index=like.index)


def _previous_side(a: pd.Series, b: pd.Series) -> pd.Series:
    """Sign of ``a - b`` at the last earlier bar where the two differed."""
    side = np.sign(a - b).replace(0.0, np.nan)
    return side.ffill().shift(1)


def crossed_above(a: pd.Series, b: Level) -> pd.Series:
    """
    True where ``a`` crosses above ``b``.

    At bar i: a[i] > b[i], and at the last earlier bar where a and b
    differed, a was below b. Touching ``b`` and moving back up is not a
    cross. Comparisons involving NaN are false, so warm-up bars never cross.
    """
    b = _as_series(b, a)
    now = (a > b).to_numpy()
    before = (_previous_side(a, b) == -1).to_numpy()
    return pd.Series(np.logical_and(now, before), index=a.index)


def crossed_below(a: pd.Series, b: Level) -> pd.Series:
    """
    True where ``a`` crosses below ``b``.

    At bar i: a[i] < b[i], and at the last earlier bar where a and b
    differed, a was above b.
    """
    b = _as_series(b, a)
    now = (a < b).to_numpy()
    before = (_previous_side(a, b) == 1).to_numpy()
    return pd.Series(np.logical_and(now, before), index=a.index)
