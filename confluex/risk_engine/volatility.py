"""
Volatility Estimation

Per-bar volatility estimates feeding the Monte Carlo simulator.
"""

from typing import Optional, Sequence
import logging

import numpy as np

from confluex.exceptions import InsufficientDataException, InvalidParametersException
from confluex.indicator_engine.candles import CandleSeries
from confluex.indicator_engine.volatility import VolatilityIndicators
from confluex.signal_engine.schemas import Signal

LOG = logging.getLogger(__name__)


class VolatilityEstimator:
    """
    Three estimators:

        from_atr            ATR / price
        from_returns        stddev of simple close-to-close returns
        implied_from_levels stop/target distance proxy, bounded
    """

    @staticmethod
    def from_atr(atr, price) -> float:
        price = float(price)
        if price <= 0:
            raise InvalidParametersException(f"Price must be positive, got {price}")
        return float(atr) / price

    @staticmethod
    def from_series(series: CandleSeries, period: int = 14) -> float:
        """ATR / latest close of a candle series"""
        atr = VolatilityIndicators.atr(series, period)
        return VolatilityEstimator.from_atr(atr, series.latest.close)

    @staticmethod
    def from_returns(closes: Sequence, window: Optional[int] = None) -> float:
        """Sample standard deviation of simple returns over the last `window` returns"""
        prices = np.asarray([float(c) for c in closes], dtype=float)
        required = (window or 2) + 1
        if len(prices) < required:
            raise InsufficientDataException("Return volatility", required, len(prices))
        if np.any(prices <= 0):
            raise InvalidParametersException("Close prices must be positive")

        returns = np.diff(prices) / prices[:-1]
        if window:
            returns = returns[-window:]
        return float(np.std(returns, ddof=1))

    @staticmethod
    def implied_from_levels(
        signal: Signal,
        floor: float = 0.01,
        ceiling: float = 0.05
    ) -> float:
        """
        Volatility proxy from the signal's own levels.

        Mean of the relative stop and target distances, scaled up for
        lower confidence, bounded to [floor, ceiling].
        """
        if not signal.has_levels:
            raise InvalidParametersException(f"{signal.symbol}: signal has no levels")

        entry = float(signal.entry_price)
        stop_distance = abs(entry - float(signal.stop_loss)) / entry
        target_distance = abs(float(signal.take_profit) - entry) / entry
        implied = (stop_distance + target_distance) / 2.0

        confidence_adjustment = (100.0 - float(signal.confidence)) / 100.0
        return max(floor, min(ceiling, implied * (1.0 + confidence_adjustment)))
