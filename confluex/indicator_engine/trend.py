"""
Trend Indicators

SMA, EMA crossover, MACD and ADX / directional movement.
"""

from decimal import Decimal
from typing import Sequence, Tuple
import logging

from confluex.exceptions import InsufficientDataException
from confluex.precision import PrecisionMath, ZERO, HUNDRED
from confluex.indicator_engine.schemas import Candle, MACDResult, ADXResult
from confluex.indicator_engine.volatility import true_range

LOG = logging.getLogger(__name__)

PM = PrecisionMath


class TrendIndicators:
    """
    Trend-following measures.

    Minimum history:
        SMA(period)              period closes
        EMA crossover(f, s)      s closes
        MACD(fast, slow, sig)    slow + sig - 1 closes
        ADX(period)              2 * period + 1 candles
    """

    @staticmethod
    def sma(closes: Sequence, period: int = 50) -> Decimal:
        return PM.moving_average(closes, period)

    @staticmethod
    def ema(closes: Sequence, period: int) -> Decimal:
        return PM.ema(closes, period)

    @staticmethod
    def ema_cross(closes: Sequence, fast: int = 12, slow: int = 26) -> Tuple[Decimal, Decimal]:
        """Fast and slow EMA at the latest close"""
        if len(closes) < slow:
            raise InsufficientDataException("EMA crossover", slow, len(closes))
        return PM.ema(closes, fast), PM.ema(closes, slow)

    @staticmethod
    def macd(
        closes: Sequence,
        fast: int = 12,
        slow: int = 26,
        signal: int = 9
    ) -> MACDResult:
        """
        Moving Average Convergence Divergence.

        MACD line = EMA(fast) - EMA(slow), computed at every close from
        index slow-1 onward. Signal line = EMA(signal) of that line.
        """
        if fast >= slow:
            raise ValueError(f"MACD fast period ({fast}) must be < slow period ({slow})")

        required = slow + signal - 1
        if len(closes) < required:
            raise InsufficientDataException("MACD", required, len(closes))

        fast_series = PM.ema_series(closes, fast)
        slow_series = PM.ema_series(closes, slow)

        # fast_series starts at index fast-1, slow_series at slow-1
        offset = slow - fast
        macd_line = [
            PM.subtract(fast_series[i + offset], slow_value)
            for i, slow_value in enumerate(slow_series)
        ]

        signal_series = PM.ema_series(macd_line, signal)
        histogram = PM.subtract(macd_line[-1], signal_series[-1])

        prev_histogram = None
        if len(signal_series) >= 2:
            prev_histogram = PM.subtract(macd_line[-2], signal_series[-2])

        return MACDResult(
            macd=macd_line[-1],
            signal=signal_series[-1],
            histogram=histogram,
            prev_histogram=prev_histogram,
        )

    @staticmethod
    def adx(candles: Sequence[Candle], period: int = 14) -> ADXResult:
        """
        Average Directional Index (Wilder).

        +DM / -DM and true range are Wilder-smoothed
        (sm = sm - sm / period + current), DX is averaged into ADX.
        """
        required = 2 * period + 1
        if len(candles) < required:
            raise InsufficientDataException("ADX", required, len(candles))

        trs, plus_dms, minus_dms = [], [], []
        for prev, curr in zip(candles[:-1], candles[1:]):
            up_move = PM.subtract(curr.high, prev.high)
            down_move = PM.subtract(prev.low, curr.low)
            plus_dms.append(up_move if up_move > down_move and up_move > ZERO else ZERO)
            minus_dms.append(down_move if down_move > up_move and down_move > ZERO else ZERO)
            trs.append(true_range(curr, prev.close))

        sm_tr = PM.total(trs[:period])
        sm_plus = PM.total(plus_dms[:period])
        sm_minus = PM.total(minus_dms[:period])

        dx_values = []
        plus_di = minus_di = ZERO
        for i in range(period, len(trs) + 1):
            if i > period:
                sm_tr = PM.add(PM.subtract(sm_tr, PM.divide(sm_tr, period)), trs[i - 1])
                sm_plus = PM.add(PM.subtract(sm_plus, PM.divide(sm_plus, period)), plus_dms[i - 1])
                sm_minus = PM.add(PM.subtract(sm_minus, PM.divide(sm_minus, period)), minus_dms[i - 1])

            if sm_tr.is_zero():
                plus_di = minus_di = ZERO
            else:
                plus_di = PM.multiply(PM.divide(sm_plus, sm_tr), HUNDRED)
                minus_di = PM.multiply(PM.divide(sm_minus, sm_tr), HUNDRED)

            di_sum = PM.add(plus_di, minus_di)
            if di_sum.is_zero():
                dx_values.append(ZERO)
            else:
                dx_values.append(
                    PM.multiply(PM.divide(PM.absolute(PM.subtract(plus_di, minus_di)), di_sum), HUNDRED)
                )

        adx_value = PM.mean(dx_values[:period])
        for dx in dx_values[period:]:
            adx_value = PM.divide(PM.add(PM.multiply(adx_value, period - 1), dx), period)

        return ADXResult(
            adx=PM.validate(adx_value, (0, 100), name="ADX"),
            plus_di=plus_di,
            minus_di=minus_di,
        )

