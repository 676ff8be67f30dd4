"""Shared fixtures for the quantback test suite."""

import math
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Sequence

import pytest

from quantback.backtesting.data_loader import Bar, DataLoaderConfig, HistoricalDataLoader

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _make_bars(closes: Sequence[float], start: datetime = START) -> List[Bar]:
    return [
        Bar(
            timestamp=start + timedelta(days=i),
            open=c,
            high=c,
            low=c,
            close=c,
            volume=1000.0,
        )
        for i, c in enumerate(closes)
    ]


def _write_price_csv(path: Path, closes: Sequence[float], start: datetime = START) -> Path:
    lines = ["Date,Open,High,Low,Close,Volume"]
    for i, c in enumerate(closes):
        day = (start + timedelta(days=i)).strftime("%Y-%m-%d")
        lines.append(f"{day},{c:.4f},{c * 1.01:.4f},{c * 0.99:.4f},{c:.4f},1000")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def make_bars() -> Callable[..., List[Bar]]:
    """Factory building daily bars (UTC) from a list of closes."""
    return _make_bars


@pytest.fixture
def write_price_csv() -> Callable[..., Path]:
    """Factory writing a daily OHLCV CSV from a list of closes."""
    return _write_price_csv


@pytest.fixture
def wave_closes() -> List[float]:
    """160 closes oscillating around 100 with a 40-bar period."""
    return [100 + 20 * math.sin(2 * math.pi * i / 40) for i in range(160)]


@pytest.fixture
def v_shape_closes() -> List[float]:
    """60 bars down, 40 steeply up, 40 steeply down."""
    down = [200.0 - i for i in range(60)]
    up = [141.0 + 3 * (k + 1) for k in range(40)]
    fall = [261.0 - 3 * (k + 1) for k in range(40)]
    return down + up + fall


@pytest.fixture
def loader_dirs(tmp_path):
    """Empty data and upload directories."""
    data_dir = tmp_path / "data"
    upload_dir = tmp_path / "uploads"
    data_dir.mkdir()
    upload_dir.mkdir()
    return data_dir, upload_dir


@pytest.fixture
def loader(loader_dirs) -> HistoricalDataLoader:
    """Loader reading only from the temporary directories."""
    data_dir, upload_dir = loader_dirs
    return HistoricalDataLoader(
        DataLoaderConfig(data_dir=data_dir, upload_dir=upload_dir, default_symbols=())
    )
