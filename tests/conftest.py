"""
Shared fixtures for the Confluex test suite.

Candle builders return plain lists of Candle objects; wrap them in a
CandleSeries where a test needs series behaviour.
"""

import pytest
import numpy as np
from datetime import datetime, timezone, timedelta

from confluex.indicator_engine.schemas import Candle
from confluex.indicator_engine.candles import CandleSeries
from confluex.timeframes import bar_duration

BASE_TIME = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def build_candles(closes, timeframe='1h', volume=1000.0, wick=0.002, start=BASE_TIME):
    """
    Candles whose open is the previous close and whose high/low sit
    `wick` (fraction of price) beyond the body.
    """
    step = bar_duration(timeframe)
    candles = []
    prev = closes[0]
    for i, close in enumerate(closes):
        o, c = float(prev), float(close)
        high = max(o, c) * (1 + wick)
        low = min(o, c) * (1 - wick)
        candles.append(Candle(
            timestamp=start + i * step,
            open=o, high=high, low=low, close=c,
            volume=volume,
        ))
        prev = close
    return candles


@pytest.fixture
def candle_factory():
    """Factory: closes -> list of Candle"""
    return build_candles


@pytest.fixture
def random_walk_candles():
    """200 hourly bars of a seeded random walk around 100"""
    np.random.seed(42)
    closes = 100.0 * np.cumprod(1 + np.random.normal(0.0002, 0.01, 200))
    volumes = np.random.uniform(1000, 10000, 200)
    candles = build_candles(list(closes))
    return [
        Candle(
            timestamp=c.timestamp, open=c.open, high=c.high,
            low=c.low, close=c.close, volume=float(v),
        )
        for c, v in zip(candles, volumes)
    ]


@pytest.fixture
def uptrend_series():
    """120 hourly bars rising 1% per bar"""
    closes = [100.0 * 1.01 ** i for i in range(120)]
    return CandleSeries(build_candles(closes), symbol='BTCUSDT', timeframe='1h')


@pytest.fixture
def downtrend_series():
    """120 hourly bars falling 1% per bar"""
    closes = [100.0 * 0.99 ** i for i in range(120)]
    return CandleSeries(build_candles(closes), symbol='BTCUSDT', timeframe='1h')
