"""
Volume Indicators

VWAP and relative volume.
"""

from decimal import Decimal
from typing import Optional, Sequence
import logging

from confluex.exceptions import InsufficientDataException, PrecisionArithmeticException
from confluex.precision import PrecisionMath, ZERO
from confluex.indicator_engine.schemas import Candle

LOG = logging.getLogger(__name__)

PM = PrecisionMath


class VolumeIndicators:
    """
    Volume measures.

    Minimum history:
        VWAP(window)          1 candle (window candles when a window is set)
        Volume ratio(window)  window + 1 candles
    """

    @staticmethod
    def vwap(candles: Sequence[Candle], window: Optional[int] = None) -> Decimal:
        """
        Volume-weighted average price over the supplied window.

        Uses the typical price (high + low + close) / 3.

        Raises:
            PrecisionArithmeticException: if total volume is zero
        """
        required = window or 1
        if len(candles) < required:
            raise InsufficientDataException("VWAP", required, len(candles))

        subset = candles[-window:] if window else candles

        weighted = ZERO
        volume = ZERO
        for c in subset:
            weighted = PM.add(weighted, PM.multiply(c.typical_price, c.volume))
            volume = PM.add(volume, c.volume)

        if volume.is_zero():
            raise PrecisionArithmeticException(
                f"VWAP undefined: total volume is zero over {len(subset)} candles"
            )

        return PM.divide(weighted, volume)

    @staticmethod
    def volume_ratio(candles: Sequence[Candle], window: int = 20) -> Decimal:
        """
        Latest volume relative to the mean of the preceding `window` bars.

        Raises:
            PrecisionArithmeticException: if the preceding volume is all zero
        """
        if len(candles) < window + 1:
            raise InsufficientDataException("Volume ratio", window + 1, len(candles))

        previous = [c.volume for c in candles[-(window + 1):-1]]
        avg = PM.mean(previous)
        if avg.is_zero():
            raise PrecisionArithmeticException("Volume ratio undefined: zero average volume")

        return PM.divide(candles[-1].volume, avg)
