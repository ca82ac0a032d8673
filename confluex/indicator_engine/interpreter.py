"""
Indicator Interpreter

Computes every enabled indicator for a candle series and maps each
value to an IndicatorReading (derived signal + strength).

Indicators without enough history are recorded as unavailable with
the reason; they are never defaulted to a neutral value.
"""

from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple
import logging

from confluex.exceptions import InsufficientDataException, PrecisionArithmeticException
from confluex.precision import PrecisionMath, ZERO, HUNDRED
from confluex.indicator_engine.config import IndicatorEngineConfig
from confluex.indicator_engine.candles import CandleSeries
from confluex.indicator_engine.schemas import (
    IndicatorCategory,
    IndicatorReading,
    IndicatorSnapshot,
    DerivedSignal,
    SignalStrength,
)
from confluex.indicator_engine.momentum import MomentumIndicators
from confluex.indicator_engine.trend import TrendIndicators
from confluex.indicator_engine.volatility import VolatilityIndicators
from confluex.indicator_engine.volume import VolumeIndicators

LOG = logging.getLogger(__name__)

PM = PrecisionMath

INDICATOR_CATEGORIES: Dict[str, IndicatorCategory] = {
    'RSI': IndicatorCategory.MOMENTUM,
    'STOCHASTIC': IndicatorCategory.MOMENTUM,
    'MACD': IndicatorCategory.TREND,
    'EMA_CROSS': IndicatorCategory.TREND,
    'SMA_TREND': IndicatorCategory.TREND,
    'ADX': IndicatorCategory.TREND,
    'BOLLINGER': IndicatorCategory.VOLATILITY,
    'ATR': IndicatorCategory.VOLATILITY,
    'VWAP': IndicatorCategory.VOLUME,
    'VOLUME': IndicatorCategory.VOLUME,
}

# Volume-derived indicators are unavailable (not broken) on zero-volume feeds
_VOLUME_BASED = {'VWAP', 'VOLUME'}


def _pct(numerator: Decimal, denominator: Decimal) -> Decimal:
    return PM.multiply(PM.divide(numerator, denominator), HUNDRED)


def _tiered(magnitude: Decimal, strong: float, moderate: float) -> SignalStrength:
    if magnitude >= PM.to_decimal(strong):
        return SignalStrength.STRONG
    if magnitude >= PM.to_decimal(moderate):
        return SignalStrength.MODERATE
    return SignalStrength.WEAK


class IndicatorInterpreter:
    """
    Indicator computation and interpretation.

    Usage:
        interpreter = IndicatorInterpreter(IndicatorEngineConfig())
        snapshot = interpreter.compute(series)
    """

    def __init__(self, config: Optional[IndicatorEngineConfig] = None):
        self.config = config or IndicatorEngineConfig()
        self._computers: Dict[str, Callable] = {
            'RSI': self._rsi,
            'MACD': self._macd,
            'EMA_CROSS': self._ema_cross,
            'SMA_TREND': self._sma_trend,
            'ADX': self._adx,
            'BOLLINGER': self._bollinger,
            'STOCHASTIC': self._stochastic,
            'ATR': self._atr,
            'VWAP': self._vwap,
            'VOLUME': self._volume,
        }

    def compute(self, series: CandleSeries) -> IndicatorSnapshot:
        """
        Compute all enabled indicators.

        Computation defects (invariant or range violations) propagate.
        """
        readings: List[IndicatorReading] = []
        values: Dict[str, object] = {}
        unavailable: Dict[str, str] = {}

        for name in self.config.enabled_indicators:
            try:
                value, reading = self._computers[name](series)
            except InsufficientDataException as e:
                unavailable[name] = str(e)
                continue
            except PrecisionArithmeticException as e:
                if name not in _VOLUME_BASED:
                    raise
                unavailable[name] = str(e)
                continue

            values[name] = value
            readings.append(reading)

        latest = series.latest
        snapshot = IndicatorSnapshot(
            symbol=series.symbol,
            timeframe=series.timeframe,
            timestamp=latest.timestamp if latest else None,
            readings=tuple(readings),
            values=values,
            unavailable=unavailable,
            latest_close=latest.close if latest else None,
            latest_atr=values.get('ATR'),
            candle_count=len(series),
            gap_count=series.gap_count,
        )

        LOG.debug(
            f"{series.symbol} {series.timeframe}: {len(readings)} indicators, "
            f"{len(unavailable)} unavailable"
        )
        return snapshot

    def compute_atr(self, series: CandleSeries) -> Decimal:
        """Latest ATR with the configured period"""
        return VolatilityIndicators.atr(series, self.config.atr.period)

    # ------------------------------------------------------------------
    # Per-indicator computation + interpretation
    # ------------------------------------------------------------------

    def _reading(self, name, value, signal, strength, detail) -> IndicatorReading:
        return IndicatorReading(
            name=name,
            category=INDICATOR_CATEGORIES[name],
            value=PM.to_financial(value),
            signal=signal,
            strength=strength,
            detail=detail,
        )

    def _rsi(self, series: CandleSeries) -> Tuple[Decimal, IndicatorReading]:
        cfg = self.config.rsi
        value = MomentumIndicators.rsi(series.closes(), cfg.period)

        oversold = PM.to_decimal(cfg.oversold)
        overbought = PM.to_decimal(cfg.overbought)
        offset = PM.to_decimal(cfg.extreme_offset)
        weak = PM.to_decimal(cfg.weak_zone)

        if value <= oversold:
            signal = DerivedSignal.BUY
            strength = SignalStrength.STRONG if value <= PM.subtract(oversold, offset) else SignalStrength.MODERATE
            zone = "oversold"
        elif value >= overbought:
            signal = DerivedSignal.SELL
            strength = SignalStrength.STRONG if value >= PM.add(overbought, offset) else SignalStrength.MODERATE
            zone = "overbought"
        elif value <= PM.add(oversold, weak):
            signal, strength, zone = DerivedSignal.BUY, SignalStrength.WEAK, "near oversold"
        elif value >= PM.subtract(overbought, weak):
            signal, strength, zone = DerivedSignal.SELL, SignalStrength.WEAK, "near overbought"
        else:
            signal, strength, zone = DerivedSignal.NEUTRAL, SignalStrength.WEAK, "neutral zone"

        detail = f"RSI({cfg.period})={float(value):.2f} {zone}"
        return value, self._reading('RSI', value, signal, strength, detail)

    def _macd(self, series: CandleSeries):
        cfg = self.config.macd
        result = TrendIndicators.macd(
            series.closes(), cfg.fast_period, cfg.slow_period, cfg.signal_period
        )

        hist = result.histogram
        if hist > ZERO:
            signal = DerivedSignal.BUY
        elif hist < ZERO:
            signal = DerivedSignal.SELL
        else:
            signal = DerivedSignal.NEUTRAL

        size_pct = _pct(PM.absolute(hist), series.latest.close)
        strength = _tiered(size_pct, cfg.strong_histogram_pct, cfg.moderate_histogram_pct)

        detail = (
            f"MACD histogram {float(hist):+.6f} "
            f"(line {float(result.macd):.6f}, signal {float(result.signal):.6f})"
        )
        return result, self._reading('MACD', hist, signal, strength, detail)

    def _ema_cross(self, series: CandleSeries):
        cfg = self.config.moving_averages
        fast, slow = TrendIndicators.ema_cross(series.closes(), cfg.ema_fast, cfg.ema_slow)

        spread_pct = _pct(PM.subtract(fast, slow), slow)
        signal = _sign_signal(spread_pct)
        strength = _tiered(PM.absolute(spread_pct), cfg.ema_strong_pct, cfg.ema_moderate_pct)

        relation = "above" if fast > slow else "below" if fast < slow else "equal to"
        detail = f"EMA{cfg.ema_fast} {relation} EMA{cfg.ema_slow} ({float(spread_pct):+.2f}%)"
        return (fast, slow), self._reading('EMA_CROSS', spread_pct, signal, strength, detail)

    def _sma_trend(self, series: CandleSeries):
        cfg = self.config.moving_averages
        sma = TrendIndicators.sma(series.closes(), cfg.sma_period)
        close = series.latest.close

        distance_pct = _pct(PM.subtract(close, sma), sma)
        signal = _sign_signal(distance_pct)
        strength = _tiered(PM.absolute(distance_pct), cfg.sma_strong_pct, cfg.sma_moderate_pct)

        detail = f"Price {float(distance_pct):+.2f}% vs SMA{cfg.sma_period}"
        return sma, self._reading('SMA_TREND', distance_pct, signal, strength, detail)

    def _adx(self, series: CandleSeries):
        cfg = self.config.adx
        result = TrendIndicators.adx(series, cfg.period)

        if result.adx < PM.to_decimal(cfg.trend_threshold) or result.plus_di == result.minus_di:
            signal = DerivedSignal.NEUTRAL
            strength = SignalStrength.WEAK
            lean = "no trend"
        else:
            signal = DerivedSignal.BUY if result.plus_di > result.minus_di else DerivedSignal.SELL
            strength = _tiered(result.adx, cfg.strong_threshold, cfg.moderate_threshold)
            lean = "+DI leads" if signal is DerivedSignal.BUY else "-DI leads"

        detail = f"ADX({cfg.period})={float(result.adx):.2f} {lean}"
        return result, self._reading('ADX', result.adx, signal, strength, detail)

    def _bollinger(self, series: CandleSeries):
        cfg = self.config.bollinger
        result = VolatilityIndicators.bollinger(series.closes(), cfg.period, PM.to_decimal(cfg.k))
        percent_b = result.percent_b(series.latest.close)

        if percent_b is None:
            return result, self._reading(
                'BOLLINGER', ZERO, DerivedSignal.NEUTRAL, SignalStrength.WEAK,
                "Bollinger bands collapsed (zero deviation)"
            )

        if percent_b <= ZERO:
            signal, strength, zone = DerivedSignal.BUY, SignalStrength.STRONG, "at/below lower band"
        elif percent_b <= PM.to_decimal(cfg.lower_zone):
            signal, strength, zone = DerivedSignal.BUY, SignalStrength.MODERATE, "near lower band"
        elif percent_b >= 1:
            signal, strength, zone = DerivedSignal.SELL, SignalStrength.STRONG, "at/above upper band"
        elif percent_b >= PM.to_decimal(cfg.upper_zone):
            signal, strength, zone = DerivedSignal.SELL, SignalStrength.MODERATE, "near upper band"
        else:
            signal, strength, zone = DerivedSignal.NEUTRAL, SignalStrength.WEAK, "inside bands"

        detail = f"Bollinger %B={float(percent_b):.2f} {zone}"
        return result, self._reading('BOLLINGER', percent_b, signal, strength, detail)

    def _stochastic(self, series: CandleSeries):
        cfg = self.config.stochastic
        result = MomentumIndicators.stochastic(series, cfg.k_period, cfg.d_period)
        k, d = result.k, result.d

        if k <= PM.to_decimal(cfg.oversold):
            signal = DerivedSignal.BUY
            strength = SignalStrength.STRONG if k > d else SignalStrength.MODERATE
            zone = "oversold"
        elif k >= PM.to_decimal(cfg.overbought):
            signal = DerivedSignal.SELL
            strength = SignalStrength.STRONG if k < d else SignalStrength.MODERATE
            zone = "overbought"
        else:
            signal, strength, zone = DerivedSignal.NEUTRAL, SignalStrength.WEAK, "mid-range"

        detail = f"Stochastic %K={float(k):.2f} %D={float(d):.2f} {zone}"
        return result, self._reading('STOCHASTIC', k, signal, strength, detail)

    def _atr(self, series: CandleSeries):
        cfg = self.config.atr
        value = VolatilityIndicators.atr(series, cfg.period)
        ratio_pct = _pct(value, series.latest.close)

        detail = f"ATR({cfg.period})={float(value):.6f} ({float(ratio_pct):.2f}% of price)"
        return value, self._reading(
            'ATR', value, DerivedSignal.NEUTRAL, SignalStrength.WEAK, detail
        )

    def _vwap(self, series: CandleSeries):
        cfg = self.config.volume
        value = VolumeIndicators.vwap(series, cfg.vwap_window or None)

        premium_pct = _pct(PM.subtract(series.latest.close, value), value)
        signal = _sign_signal(premium_pct)
        strength = _tiered(PM.absolute(premium_pct), cfg.vwap_strong_pct, cfg.vwap_moderate_pct)

        detail = f"Price {float(premium_pct):+.2f}% vs VWAP"
        return value, self._reading('VWAP', value, signal, strength, detail)

    def _volume(self, series: CandleSeries):
        cfg = self.config.volume
        ratio = VolumeIndicators.volume_ratio(series, cfg.ratio_window)
        latest = series.latest

        if ratio >= PM.to_decimal(cfg.ratio_moderate) and latest.close != latest.open:
            signal = DerivedSignal.BUY if latest.is_bullish else DerivedSignal.SELL
            strength = _tiered(ratio, cfg.ratio_strong, cfg.ratio_moderate)
            note = "volume surge on " + ("up" if latest.is_bullish else "down") + " candle"
        else:
            signal, strength, note = DerivedSignal.NEUTRAL, SignalStrength.WEAK, "normal volume"

        detail = f"Volume {float(ratio):.2f}x average, {note}"
        return ratio, self._reading('VOLUME', ratio, signal, strength, detail)


def _sign_signal(value: Decimal) -> DerivedSignal:
    if value > ZERO:
        return DerivedSignal.BUY
    if value < ZERO:
        return DerivedSignal.SELL
    return DerivedSignal.NEUTRAL
