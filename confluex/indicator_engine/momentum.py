"""
Momentum Indicators

RSI (Wilder smoothing) and the Stochastic oscillator.
Both outputs are validated to [0, 100].
"""

from decimal import Decimal
from typing import Sequence
import logging

from confluex.exceptions import InsufficientDataException
from confluex.precision import PrecisionMath, ZERO, HUNDRED
from confluex.indicator_engine.schemas import Candle, StochasticResult

LOG = logging.getLogger(__name__)

PM = PrecisionMath


class MomentumIndicators:
    """
    Momentum oscillators.

    Minimum history:
        RSI(period)          period + 1 closes
        Stochastic(k, d)     k + d - 1 candles
    """

    @staticmethod
    def rsi(closes: Sequence, period: int = 14) -> Decimal:
        """
        Relative Strength Index with Wilder smoothing.

        The first average gain/loss is the simple mean over `period`
        changes; each later change is folded in as
        avg = (avg * (period - 1) + current) / period.

        Returns 100 when the average loss is exactly zero.
        """
        if len(closes) < period + 1:
            raise InsufficientDataException("RSI", period + 1, len(closes))

        gains = []
        losses = []
        for prev, curr in zip(closes[:-1], closes[1:]):
            change = PM.subtract(curr, prev)
            gains.append(change if change > ZERO else ZERO)
            losses.append(PM.absolute(change) if change < ZERO else ZERO)

        avg_gain = PM.mean(gains[:period])
        avg_loss = PM.mean(losses[:period])
        smoothing = period - 1

        for gain, loss in zip(gains[period:], losses[period:]):
            avg_gain = PM.divide(PM.add(PM.multiply(avg_gain, smoothing), gain), period)
            avg_loss = PM.divide(PM.add(PM.multiply(avg_loss, smoothing), loss), period)

        if avg_loss.is_zero():
            return HUNDRED

        rs = PM.divide(avg_gain, avg_loss)
        value = PM.subtract(HUNDRED, PM.divide(HUNDRED, PM.add(1, rs)))
        return PM.validate(value, (0, 100), name="RSI")

    @staticmethod
    def stochastic_k(candles: Sequence[Candle], k_period: int = 14) -> Decimal:
        """
        %K over the last k_period candles.

        A flat window (highest high == lowest low) yields 50.
        """
        if len(candles) < k_period:
            raise InsufficientDataException("Stochastic %K", k_period, len(candles))

        window = candles[-k_period:]
        highest = PM.maximum(c.high for c in window)
        lowest = PM.minimum(c.low for c in window)
        span = PM.subtract(highest, lowest)

        if span.is_zero():
            return Decimal(50)

        k = PM.multiply(PM.divide(PM.subtract(window[-1].close, lowest), span), HUNDRED)
        return PM.validate(k, (0, 100), name="Stochastic %K")

    @staticmethod
    def stochastic(
        candles: Sequence[Candle],
        k_period: int = 14,
        d_period: int = 3
    ) -> StochasticResult:
        """
        Stochastic oscillator.

        %D is the simple mean of the last d_period %K values.
        """
        required = k_period + d_period - 1
        if len(candles) < required:
            raise InsufficientDataException("Stochastic", required, len(candles))

        n = len(candles)
        k_values = [
            MomentumIndicators.stochastic_k(candles[:end], k_period)
            for end in range(n - d_period + 1, n + 1)
        ]

        k = k_values[-1]
        d = PM.validate(PM.mean(k_values), (0, 100), name="Stochastic %D")
        return StochasticResult(k=k, d=d)
