"""
Pattern Detection Module

Scans the latest candles and indicator snapshot for a fixed catalogue
of named setups. Each match carries a reliability in [0, 100] and a
directional lean.

Catalogue:
    oversold_reversal / overbought_reversal        (reversal at extreme)
    hammer / shooting_star                          (single-candle reversal)
    band_breakout_up / band_breakout_down           (breakout)
    band_squeeze                                    (breakout, neutral)
    trend_continuation_up / trend_continuation_down (continuation)

A pattern whose inputs are unavailable is simply not reported.
"""

from typing import List, Optional
import logging

from confluex.precision import PrecisionMath, ZERO, HUNDRED
from confluex.indicator_engine.candles import CandleSeries
from confluex.indicator_engine.schemas import Candle, IndicatorSnapshot
from confluex.indicator_engine.volatility import VolatilityIndicators
from confluex.market_structure.config import PatternConfig
from confluex.market_structure.schemas import PatternDirection, PatternKind, PatternMatch

LOG = logging.getLogger(__name__)

PM = PrecisionMath

# Cap on the reliability a volume surge adds to a breakout
MAX_VOLUME_BONUS = 20


def _candle_parts(candle: Candle):
    """Body, upper wick and lower wick sizes"""
    body = PM.absolute(PM.subtract(candle.close, candle.open))
    upper_wick = PM.subtract(candle.high, max(candle.open, candle.close))
    lower_wick = PM.subtract(min(candle.open, candle.close), candle.low)
    return body, upper_wick, lower_wick


def _clamp_reliability(value) -> float:
    return PM.to_financial(PM.minimum([HUNDRED, PM.maximum([ZERO, value])]), 4)


class PatternDetector:
    """
    Fixed-catalogue pattern scanner.

    Usage:
        detector = PatternDetector(PatternConfig())
        matches = detector.detect(series, snapshot)
    """

    def __init__(self, config: Optional[PatternConfig] = None):
        self.config = config or PatternConfig()

    def detect(self, series: CandleSeries, snapshot: IndicatorSnapshot) -> List[PatternMatch]:
        """Return all matches, most reliable first"""
        if len(series) == 0:
            return []

        matches: List[PatternMatch] = []
        for scan in (
            self._reversal_at_extreme,
            self._single_candle_reversal,
            self._band_breakout,
            self._band_squeeze,
            self._trend_continuation,
        ):
            match = scan(series, snapshot)
            if match is not None:
                matches.append(match)

        matches.sort(key=lambda m: (-m.reliability, m.name))

        if matches:
            LOG.debug(
                f"{series.symbol} {series.timeframe}: patterns "
                + ", ".join(f"{m.name}({m.reliability:.0f})" for m in matches)
            )
        return matches

    # ------------------------------------------------------------------
    # Reversal at extreme
    # ------------------------------------------------------------------

    def _reversal_at_extreme(self, series, snapshot) -> Optional[PatternMatch]:
        cfg = self.config
        rsi = snapshot.values.get('RSI')
        stoch = snapshot.values.get('STOCHASTIC')
        if rsi is None or stoch is None:
            return None

        body, upper_wick, lower_wick = _candle_parts(series.latest)
        bands = snapshot.values.get('BOLLINGER')
        target = PM.to_financial(bands.middle) if bands is not None else None

        if rsi < PM.to_decimal(cfg.reversal_rsi_oversold) and stoch.k < PM.to_decimal(cfg.reversal_stoch_oversold):
            reliability = cfg.bullish_reversal_reliability
            confirmed = lower_wick > body
            if confirmed:
                reliability = PM.add(reliability, cfg.wick_confirmation_bonus)
            return PatternMatch(
                name="oversold_reversal",
                kind=PatternKind.REVERSAL,
                direction=PatternDirection.BULLISH,
                reliability=_clamp_reliability(reliability),
                price_target=target,
                description=(
                    f"RSI {float(rsi):.1f} and %K {float(stoch.k):.1f} oversold"
                    + (", lower-wick rejection" if confirmed else "")
                ),
            )

        if rsi > PM.to_decimal(cfg.reversal_rsi_overbought) and stoch.k > PM.to_decimal(cfg.reversal_stoch_overbought):
            reliability = cfg.bearish_reversal_reliability
            confirmed = upper_wick > body
            if confirmed:
                reliability = PM.add(reliability, cfg.wick_confirmation_bonus)
            return PatternMatch(
                name="overbought_reversal",
                kind=PatternKind.REVERSAL,
                direction=PatternDirection.BEARISH,
                reliability=_clamp_reliability(reliability),
                price_target=target,
                description=(
                    f"RSI {float(rsi):.1f} and %K {float(stoch.k):.1f} overbought"
                    + (", upper-wick rejection" if confirmed else "")
                ),
            )

        return None

    # ------------------------------------------------------------------
    # Hammer / shooting star
    # ------------------------------------------------------------------

    def _single_candle_reversal(self, series, snapshot) -> Optional[PatternMatch]:
        cfg = self.config
        lookback = cfg.shape_trend_lookback
        if len(series) < lookback + 1:
            return None

        candle = series.latest
        body, upper_wick, lower_wick = _candle_parts(candle)
        if body.is_zero():
            return None

        ratio = PM.to_decimal(cfg.wick_body_ratio)
        prior_mean = PM.mean([c.close for c in series[-(lookback + 1):-1]])

        # Hammer: long lower wick after a decline
        if lower_wick >= PM.multiply(body, ratio) and upper_wick <= body and candle.close < prior_mean:
            return PatternMatch(
                name="hammer",
                kind=PatternKind.REVERSAL,
                direction=PatternDirection.BULLISH,
                reliability=_clamp_reliability(cfg.candle_pattern_reliability),
                description=f"Lower wick {float(PM.divide(lower_wick, body)):.1f}x body after decline",
            )

        # Shooting star: long upper wick after an advance
        if upper_wick >= PM.multiply(body, ratio) and lower_wick <= body and candle.close > prior_mean:
            return PatternMatch(
                name="shooting_star",
                kind=PatternKind.REVERSAL,
                direction=PatternDirection.BEARISH,
                reliability=_clamp_reliability(cfg.candle_pattern_reliability),
                description=f"Upper wick {float(PM.divide(upper_wick, body)):.1f}x body after advance",
            )

        return None

    # ------------------------------------------------------------------
    # Band breakout
    # ------------------------------------------------------------------

    def _band_breakout(self, series, snapshot) -> Optional[PatternMatch]:
        cfg = self.config
        bands = snapshot.values.get('BOLLINGER')
        if bands is None or bands.width.is_zero():
            return None

        close = series.latest.close
        if close > bands.upper:
            direction, name = PatternDirection.BULLISH, "band_breakout_up"
            target = PM.add(close, bands.width)
        elif close < bands.lower:
            direction, name = PatternDirection.BEARISH, "band_breakout_down"
            target = PM.subtract(close, bands.width)
        else:
            return None

        volume_ratio = snapshot.values.get('VOLUME')
        threshold = PM.to_decimal(cfg.breakout_volume_ratio)
        if volume_ratio is None or volume_ratio < threshold:
            reliability = PM.subtract(cfg.breakout_reliability, cfg.breakout_unconfirmed_penalty)
            note = "without volume confirmation"
        else:
            bonus = PM.minimum([MAX_VOLUME_BONUS, PM.multiply(PM.subtract(volume_ratio, threshold), 10)])
            reliability = PM.add(cfg.breakout_reliability, bonus)
            note = f"on {float(volume_ratio):.1f}x volume"

        return PatternMatch(
            name=name,
            kind=PatternKind.BREAKOUT,
            direction=direction,
            reliability=_clamp_reliability(reliability),
            price_target=PM.to_financial(target) if target > ZERO else None,
            description=f"Close beyond {'upper' if direction is PatternDirection.BULLISH else 'lower'} band {note}",
        )

    # ------------------------------------------------------------------
    # Band squeeze
    # ------------------------------------------------------------------

    def _band_squeeze(self, series, snapshot) -> Optional[PatternMatch]:
        cfg = self.config
        bands = snapshot.values.get('BOLLINGER')
        if bands is None:
            return None

        closes = series.closes()
        period = cfg.squeeze_band_period
        if len(closes) < period + cfg.squeeze_lookback - 1:
            return None

        k = PM.to_decimal(cfg.squeeze_band_k)

        history = []
        for end in range(len(closes) - cfg.squeeze_lookback + 1, len(closes) + 1):
            window_bands = VolatilityIndicators.bollinger(closes[:end], period, k)
            history.append(window_bands.bandwidth)

        current = history[-1]
        threshold = PM.quantile(history, cfg.squeeze_quantile)
        if current > threshold or current == max(history):
            return None

        return PatternMatch(
            name="band_squeeze",
            kind=PatternKind.BREAKOUT,
            direction=PatternDirection.NEUTRAL,
            reliability=_clamp_reliability(cfg.squeeze_reliability),
            description=(
                f"Band width {current:.2%} in bottom {cfg.squeeze_quantile:.0%} "
                f"of last {cfg.squeeze_lookback} bars"
            ),
        )

    # ------------------------------------------------------------------
    # Trend continuation
    # ------------------------------------------------------------------

    def _trend_continuation(self, series, snapshot) -> Optional[PatternMatch]:
        cfg = self.config
        emas = snapshot.values.get('EMA_CROSS')
        macd = snapshot.values.get('MACD')
        atr = snapshot.latest_atr
        if emas is None or macd is None or atr is None or atr.is_zero():
            return None

        fast, slow = emas
        close = series.latest.close
        pullback = PM.absolute(PM.subtract(close, fast))
        if pullback > PM.multiply(atr, cfg.pullback_atr_multiple):
            return None

        offset = PM.multiply(atr, cfg.target_atr_multiple)
        if fast > slow and macd.histogram > ZERO and close >= slow:
            direction, name = PatternDirection.BULLISH, "trend_continuation_up"
            target = PM.add(close, offset)
        elif fast < slow and macd.histogram < ZERO and close <= slow:
            direction, name = PatternDirection.BEARISH, "trend_continuation_down"
            target = PM.subtract(close, offset)
        else:
            return None

        reliability = cfg.continuation_reliability
        adx = snapshot.values.get('ADX')
        if adx is not None and adx.adx >= PM.to_decimal(cfg.continuation_adx_min):
            reliability = PM.add(reliability, cfg.continuation_adx_bonus)

        return PatternMatch(
            name=name,
            kind=PatternKind.CONTINUATION,
            direction=direction,
            reliability=_clamp_reliability(reliability),
            price_target=PM.to_financial(target) if target > ZERO else None,
            description=f"Pullback to fast EMA within {cfg.pullback_atr_multiple:g} ATR, MACD aligned",
        )
