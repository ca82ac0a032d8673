"""
Volatility Indicators

ATR and Bollinger Bands.

Bollinger ordering is enforced on every computation:
lower < middle < upper when stddev > 0, all three equal when stddev == 0.
"""

from decimal import Decimal
from typing import Sequence
import logging

from confluex.exceptions import InsufficientDataException, InvariantViolationException
from confluex.precision import PrecisionMath
from confluex.indicator_engine.schemas import Candle, BollingerResult

LOG = logging.getLogger(__name__)

PM = PrecisionMath


def true_range(candle: Candle, prev_close) -> Decimal:
    """TR = max(high - low, |high - prev_close|, |low - prev_close|)"""
    return max(
        PM.subtract(candle.high, candle.low),
        PM.absolute(PM.subtract(candle.high, prev_close)),
        PM.absolute(PM.subtract(candle.low, prev_close)),
    )


class VolatilityIndicators:
    """
    Volatility measures.

    Minimum history:
        ATR(period)          period + 1 candles
        Bollinger(period)    period closes
    """

    @staticmethod
    def atr(candles: Sequence[Candle], period: int = 14) -> Decimal:
        """Average True Range: simple mean of the last `period` true ranges"""
        if len(candles) < period + 1:
            raise InsufficientDataException("ATR", period + 1, len(candles))

        window = candles[-(period + 1):]
        ranges = [true_range(curr, prev.close) for prev, curr in zip(window[:-1], window[1:])]
        return PM.validate(PM.mean(ranges), name="ATR")

    @staticmethod
    def bollinger(closes: Sequence, period: int = 20, k=2) -> BollingerResult:
        """
        Bollinger Bands.

        middle = SMA(period), bands = middle +/- k * population stddev.

        Raises:
            InvariantViolationException: if band ordering is broken
        """
        if len(closes) < period:
            raise InsufficientDataException("Bollinger", period, len(closes))

        window = closes[-period:]
        middle = PM.mean(window)
        std = PM.std_dev(window)
        offset = PM.multiply(std, k)

        upper = PM.add(middle, offset)
        lower = PM.subtract(middle, offset)

        if std.is_zero():
            ordered = lower == middle == upper
        else:
            ordered = lower < middle < upper

        if not ordered:
            raise InvariantViolationException(
                f"Bollinger ordering violated: lower={lower} middle={middle} upper={upper}"
            )

        return BollingerResult(upper=upper, middle=middle, lower=lower, std_dev=std)
