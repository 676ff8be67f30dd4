"""quantback: single-asset strategy backtesting."""

__version__ = "1.0.0"
