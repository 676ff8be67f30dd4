"""
Historical data loader for backtesting.

This module turns CSV price files (and, optionally, yfinance downloads)
into the clean, chronological bar sequence the simulation engine consumes.
Parsed series are cached in memory and re-read only when the backing file
changes on disk.
"""

import io
import re
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pandas as pd
import structlog
import yfinance as yf

from quantback.exceptions import DataFetchError, DataValidationError

logger = structlog.get_logger(__name__)

OHLCV_COLUMNS = ["Open", "High", "Low", "Close", "Volume"]

DateLike = Union[str, date, datetime, pd.Timestamp]


@dataclass(frozen=True)
class Bar:
    """
    One OHLCV observation.

    Attributes:
        timestamp: Bar time (UTC)
        open: Opening price
        high: Highest price
        low: Lowest price
        close: Closing price, used for all fills and marks
        volume: Traded volume
    """

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


def bars_to_frame(bars: List[Bar]) -> pd.DataFrame:
    """Convert bars to an OHLCV DataFrame indexed by timestamp."""
    if not bars:
        return _empty_frame()

    df = pd.DataFrame(
        {
            "Open": [b.open for b in bars],
            "High": [b.high for b in bars],
            "Low": [b.low for b in bars],
            "Close": [b.close for b in bars],
            "Volume": [b.volume for b in bars],
        },
        index=pd.DatetimeIndex([b.timestamp for b in bars], name="Date"),
    )
    return df


def frame_to_bars(df: pd.DataFrame) -> List[Bar]:
    """Convert an OHLCV DataFrame indexed by timestamp to bars."""
    bars = []
    for ts, row in df.iterrows():
        bars.append(
            Bar(
                timestamp=pd.Timestamp(ts).to_pydatetime(),
                open=float(row["Open"]),
                high=float(row["High"]),
                low=float(row["Low"]),
                close=float(row["Close"]),
                volume=float(row["Volume"]),
            )
        )
    return bars


def _empty_frame() -> pd.DataFrame:
    return pd.DataFrame(
        columns=OHLCV_COLUMNS,
        index=pd.DatetimeIndex([], tz="UTC", name="Date"),
        dtype=float,
    )


def parse_csv(source: Union[str, Path, io.TextIOBase]) -> pd.DataFrame:
    """
    Parse a Yahoo/MacroTrends style price CSV into a clean OHLCV frame.

    Lines before the header (the first line starting with "date",
    case-insensitive) are skipped. Rows with an unparseable date or price,
    or a non-positive price, are dropped. The result is sorted by time with
    duplicate timestamps removed (last one wins), so the index is strictly
    increasing.

    Args:
        source: Path to a CSV file or an open text stream

    Returns:
        DataFrame with Open/High/Low/Close/Volume columns and a UTC
        DatetimeIndex named "Date"
    """
    if isinstance(source, (str, Path)):
        with open(source, "r", encoding="utf-8-sig") as f:
            lines = f.read().splitlines()
    else:
        lines = source.read().splitlines()

    header_idx = None
    for i, line in enumerate(lines):
        if line.strip().lower().startswith("date"):
            header_idx = i
            break

    if header_idx is None:
        logger.warning("csv_header_missing", expected="Date")
        return _empty_frame()

    raw = pd.read_csv(
        io.StringIO("\n".join(lines[header_idx:])),
        dtype=str,
        skipinitialspace=True,
    )
    raw.columns = [str(c).strip().title() for c in raw.columns]

    missing = [c for c in ["Date", "Open", "High", "Low", "Close"] if c not in raw.columns]
    if missing:
        raise DataValidationError(
            "CSV is missing required columns",
            field="columns",
            value=missing,
            expected=str(["Date"] + OHLCV_COLUMNS[:4]),
        )

    if "Volume" not in raw.columns:
        raw["Volume"] = "0"

    df = pd.DataFrame(
        {col: pd.to_numeric(raw[col].str.strip(), errors="coerce") for col in OHLCV_COLUMNS}
    )
    df.index = pd.DatetimeIndex(
        pd.to_datetime(raw["Date"].str.strip(), errors="coerce", utc=True), name="Date"
    )
    df["Volume"] = df["Volume"].fillna(0.0)

    prices = df[["Open", "High", "Low", "Close"]]
    valid = (
        df.index.notna()
        & prices.notna().all(axis=1).to_numpy()
        & (prices > 0).all(axis=1).to_numpy()
    )
    dropped = int((~valid).sum())
    if dropped:
        logger.debug("csv_rows_dropped", count=dropped)

    df = df[valid].sort_index(kind="mergesort")
    df = df[~df.index.duplicated(keep="last")]

    return df.astype(float)


@dataclass
class DataLoaderConfig:
    """Configuration for the historical data loader."""

    data_dir: Path = field(default_factory=lambda: Path("data"))
    upload_dir: Path = field(default_factory=lambda: Path("uploads"))
    cache_enabled: bool = True
    remote_fallback: bool = False  # Fetch from yfinance when no CSV exists
    auto_adjust: bool = True  # Adjust remote data for splits and dividends
    symbol_cache_ttl: float = 10.0  # Seconds
    default_symbols: Tuple[str, ...] = ("AAPL",)


@dataclass
class _CachedSeries:
    data: pd.DataFrame
    last_modified: float  # File mtime; 0 for static or remote data


class HistoricalDataLoader:
    """
    Loads and caches historical price data for backtesting.

    Uploaded CSV files take precedence over the bundled data directory.
    Uploaded series are cached together with the file modification time
    and re-parsed when the file changes; bundled and remote series are
    treated as static once loaded.

    Example:
        >>> loader = HistoricalDataLoader()
        >>> bars = loader.get_bars("AAPL", "2023-01-01", "2024-01-01")
        >>> print(len(bars))
    """

    def __init__(self, config: Optional[DataLoaderConfig] = None):
        """
        Initialize the historical data loader.

        Args:
            config: Optional configuration, uses defaults if not provided
        """
        self.config = config or DataLoaderConfig()
        self._cache: Dict[str, _CachedSeries] = {}
        self._lock = threading.Lock()
        self._symbols: Optional[List[str]] = None
        self._symbols_loaded_at = 0.0

        logger.info(
            "data_loader_initialized",
            data_dir=str(self.config.data_dir),
            upload_dir=str(self.config.upload_dir),
            remote_fallback=self.config.remote_fallback,
        )

    @staticmethod
    def sanitize_symbol(symbol: str) -> str:
        """Upper-case a symbol and strip everything but letters and digits."""
        sanitized = re.sub(r"[^A-Z0-9]", "", (symbol or "").upper())
        if not sanitized:
            raise DataValidationError(
                "Symbol is empty after sanitizing",
                field="symbol",
                value=symbol,
                expected="letters or digits",
            )
        return sanitized

    def load_price_data(
        self,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
    ) -> pd.DataFrame:
        """
        Load historical price data for a symbol.

        Args:
            symbol: Ticker symbol
            start_date: First date to include (inclusive)
            end_date: Last date to include (inclusive)

        Returns:
            DataFrame with OHLCV data indexed by date; empty when no
            source has data for the symbol

        Raises:
            DataValidationError: If the symbol or a CSV file is invalid
            DataFetchError: If the remote fallback fails
        """
        sanitized = self.sanitize_symbol(symbol)
        full = self._load_full_series(sanitized)
        return self._filter_range(full, start_date, end_date)

    def get_bars(
        self,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
    ) -> List[Bar]:
        """Load the bar sequence for a symbol and inclusive date range."""
        return frame_to_bars(self.load_price_data(symbol, start_date, end_date))

    def available_symbols(self) -> List[str]:
        """
        List symbols that can be loaded locally.

        Includes the default symbols plus the stem of every CSV file in the
        data and upload directories. The listing is cached for
        ``symbol_cache_ttl`` seconds.
        """
        with self._lock:
            now = time.monotonic()
            if (
                self._symbols is not None
                and now - self._symbols_loaded_at < self.config.symbol_cache_ttl
            ):
                return list(self._symbols)

            symbols: List[str] = []
            seen = set()
            candidates = list(self.config.default_symbols)
            for directory in [self.config.data_dir, self.config.upload_dir]:
                if directory.is_dir():
                    candidates.extend(
                        p.stem for p in sorted(directory.iterdir()) if p.suffix.lower() == ".csv"
                    )

            for candidate in candidates:
                name = candidate.upper()
                if name not in seen:
                    seen.add(name)
                    symbols.append(name)

            self._symbols = symbols
            self._symbols_loaded_at = now
            return list(symbols)

    def clear_cache(self, symbol: Optional[str] = None) -> None:
        """
        Clear cached data.

        Args:
            symbol: If provided, only clear cache for this symbol.
                   Otherwise, clear all cache.
        """
        with self._lock:
            if symbol:
                self._cache.pop(self.sanitize_symbol(symbol), None)
            else:
                self._cache.clear()
                self._symbols = None
        logger.info("data_cache_cleared", symbol=symbol)

    def _load_full_series(self, symbol: str) -> pd.DataFrame:
        upload_path = self.config.upload_dir / f"{symbol}.csv"
        if upload_path.exists():
            stamp = upload_path.stat().st_mtime
            cached = self._cached(symbol, stamp)
            if cached is not None:
                logger.debug("cache_hit", symbol=symbol, source="upload")
                return cached
            logger.info("loading_upload", symbol=symbol, path=str(upload_path))
            return self._store(symbol, parse_csv(upload_path), stamp)

        cached = self._cached(symbol, 0.0)
        if cached is not None:
            logger.debug("cache_hit", symbol=symbol, source="static")
            return cached

        data_path = self.config.data_dir / f"{symbol}.csv"
        if data_path.exists():
            logger.info("loading_data_file", symbol=symbol, path=str(data_path))
            data = parse_csv(data_path)
        elif self.config.remote_fallback:
            data = self._fetch_from_yfinance(symbol)
        else:
            logger.warning("no_data_source", symbol=symbol)
            return _empty_frame()

        # Only remember series that actually contain data
        if data.empty:
            return data
        return self._store(symbol, data, 0.0)

    def _cached(self, symbol: str, stamp: float) -> Optional[pd.DataFrame]:
        if not self.config.cache_enabled:
            return None
        with self._lock:
            entry = self._cache.get(symbol)
        if entry is not None and entry.last_modified == stamp:
            return entry.data
        return None

    def _store(self, symbol: str, data: pd.DataFrame, stamp: float) -> pd.DataFrame:
        if self.config.cache_enabled:
            with self._lock:
                self._cache[symbol] = _CachedSeries(data=data, last_modified=stamp)
        logger.info("series_loaded", symbol=symbol, bars=len(data))
        return data

    def _fetch_from_yfinance(self, symbol: str) -> pd.DataFrame:
        """Fetch the full daily history for a symbol from yfinance."""
        logger.info("fetching_remote", symbol=symbol, source="yfinance")
        try:
            data = yf.Ticker(symbol).history(
                period="max",
                interval="1d",
                auto_adjust=self.config.auto_adjust,
            )
        except Exception as e:
            raise DataFetchError(
                f"Failed to fetch data for {symbol}",
                source="yfinance",
                symbol=symbol,
                cause=e,
            ) from e

        if data is None or data.empty:
            raise DataFetchError(
                f"No data returned for {symbol}",
                source="yfinance",
                symbol=symbol,
            )

        # Ensure consistent column names
        data.columns = data.columns.str.title()
        data = data[OHLCV_COLUMNS].astype(float)

        index = pd.DatetimeIndex(data.index)
        if index.tz is None:
            index = index.tz_localize("UTC")
        else:
            index = index.tz_convert("UTC")
        data.index = index.normalize().rename("Date")

        data = data[(data[["Open", "High", "Low", "Close"]] > 0).all(axis=1)]
        data = data[~data.index.duplicated(keep="last")].sort_index()
        return data

    @staticmethod
    def _filter_range(
        data: pd.DataFrame,
        start_date: DateLike,
        end_date: DateLike,
    ) -> pd.DataFrame:
        """Return the inclusive calendar-date slice of a series."""
        if data.empty:
            return data.copy()

        start = pd.Timestamp(start_date).date()
        end = pd.Timestamp(end_date).date()
        dates = data.index.date
        mask = (dates >= start) & (dates <= end)
        return data[mask].copy()
