"""
Regime Classifier

Derives a single regime label from trend-strength measures
(ADX, moving-average spread) and volatility measures
(ATR relative to price, Bollinger band width).

Decision order:
    1. ATR/price above the high-volatility band  -> HIGH_VOLATILITY
       (overrides trend/range for weighting purposes)
    2. Strong ADX and wide MA spread              -> TREND_UP / TREND_DOWN
    3. Weak ADX and narrow bands                  -> RANGE
    4. ATR/price below the low-volatility band    -> LOW_VOLATILITY
    5. Otherwise                                   -> RANGE (low confidence)
"""

from decimal import Decimal
from typing import List, Optional, Tuple
import logging

from confluex.exceptions import InsufficientDataException
from confluex.precision import PrecisionMath, ZERO, ONE
from confluex.indicator_engine.candles import CandleSeries
from confluex.indicator_engine.trend import TrendIndicators
from confluex.indicator_engine.volatility import VolatilityIndicators
from confluex.market_structure.config import RegimeConfig
from confluex.market_structure.schemas import RegimeClassification, RegimeLabel

LOG = logging.getLogger(__name__)

PM = PrecisionMath

HALF = Decimal('0.5')
QUARTER = Decimal('0.25')

# Places kept on the float measures and confidence of a classification
OUTPUT_PLACES = 8


def _capped(value: Decimal) -> Decimal:
    return PM.minimum([ONE, PM.maximum([ZERO, value])])


def _excess(value, threshold) -> Decimal:
    """How far value exceeds threshold, relative to it, capped at 1"""
    threshold = PM.to_decimal(threshold)
    if threshold <= ZERO:
        return ONE
    return _capped(PM.divide(PM.subtract(value, threshold), threshold))


def _shortfall(value, threshold) -> Decimal:
    """How far value sits below threshold, relative to it, capped at 1"""
    threshold = PM.to_decimal(threshold)
    if threshold <= ZERO:
        return ZERO
    return _capped(PM.divide(PM.subtract(threshold, value), threshold))


class RegimeClassifier:
    """
    Rule-based regime classification.

    Raises InsufficientDataException when the series is shorter than
    RegimeConfig.min_history(); callers decide how to fall back.
    """

    def __init__(self, config: Optional[RegimeConfig] = None):
        self.config = config or RegimeConfig()

    def classify(self, series: CandleSeries) -> RegimeClassification:
        cfg = self.config
        required = cfg.min_history()
        if len(series) < required:
            raise InsufficientDataException("Regime classification", required, len(series))

        closes = series.closes()
        price = series.latest.close

        adx_result = TrendIndicators.adx(series, cfg.adx_period)
        fast = TrendIndicators.sma(closes, cfg.ma_fast)
        slow = TrendIndicators.sma(closes, cfg.ma_slow)
        atr = VolatilityIndicators.atr(series, cfg.atr_period)
        bands = VolatilityIndicators.bollinger(closes, cfg.band_period, PM.to_decimal(cfg.band_k))

        adx = adx_result.adx
        spread = PM.divide(PM.subtract(fast, slow), price)
        atr_ratio = PM.divide(atr, price)
        band_width = bands.bandwidth

        reasons: List[str] = []
        label, confidence = self._decide(adx, spread, atr_ratio, band_width, reasons)

        classification = RegimeClassification(
            label=label,
            confidence=confidence,
            trend_strength=PM.to_financial(adx, OUTPUT_PLACES),
            ma_spread=PM.to_financial(spread, OUTPUT_PLACES),
            atr_ratio=PM.to_financial(atr_ratio, OUTPUT_PLACES),
            band_width=PM.to_financial(band_width, OUTPUT_PLACES),
            reasons=tuple(reasons),
        )

        LOG.debug(
            f"{series.symbol} {series.timeframe}: regime {label.value} "
            f"(confidence {confidence:.2f}, ADX {adx:.1f}, ATR/price {atr_ratio:.4f})"
        )
        return classification

    def _decide(self, adx, spread, atr_ratio, band_width, reasons) -> Tuple[RegimeLabel, float]:
        label, confidence = self._rule(
            PM.to_decimal(adx),
            PM.to_decimal(spread),
            PM.to_decimal(atr_ratio),
            PM.to_decimal(band_width),
            reasons,
        )
        return label, PM.to_financial(confidence, 4)

    def _rule(
        self,
        adx: Decimal,
        spread: Decimal,
        atr_ratio: Decimal,
        band_width: Decimal,
        reasons: List[str]
    ) -> Tuple[RegimeLabel, Decimal]:
        cfg = self.config

        if atr_ratio > PM.to_decimal(cfg.high_volatility_atr_ratio):
            reasons.append(
                f"ATR/price {atr_ratio:.2%} above {cfg.high_volatility_atr_ratio:.2%}: high volatility"
            )
            excess = _excess(atr_ratio, cfg.high_volatility_atr_ratio)
            return RegimeLabel.HIGH_VOLATILITY, PM.add(HALF, PM.multiply(HALF, excess))

        abs_spread = PM.absolute(spread)
        if adx >= PM.to_decimal(cfg.trend_adx_min) and abs_spread >= PM.to_decimal(cfg.trend_spread_min):
            label = RegimeLabel.TREND_UP if spread > ZERO else RegimeLabel.TREND_DOWN
            reasons.append(
                f"ADX {adx:.1f} >= {cfg.trend_adx_min:.0f} with MA spread {spread:+.2%}: "
                f"{'up' if spread > ZERO else 'down'}trend"
            )
            confidence = PM.total([
                HALF,
                PM.multiply(QUARTER, _excess(adx, cfg.trend_adx_min)),
                PM.multiply(QUARTER, _excess(abs_spread, cfg.trend_spread_min)),
            ])
            return label, confidence

        if adx < PM.to_decimal(cfg.range_adx_max) and band_width <= PM.to_decimal(cfg.range_band_width_max):
            reasons.append(
                f"ADX {adx:.1f} < {cfg.range_adx_max:.0f} with band width {band_width:.2%}: range-bound"
            )
            confidence = PM.total([
                HALF,
                PM.multiply(QUARTER, _shortfall(adx, cfg.range_adx_max)),
                PM.multiply(QUARTER, _shortfall(band_width, cfg.range_band_width_max)),
            ])
            return RegimeLabel.RANGE, confidence

        if atr_ratio < PM.to_decimal(cfg.low_volatility_atr_ratio):
            reasons.append(
                f"ATR/price {atr_ratio:.2%} below {cfg.low_volatility_atr_ratio:.2%}: low volatility"
            )
            shortfall = _shortfall(atr_ratio, cfg.low_volatility_atr_ratio)
            return RegimeLabel.LOW_VOLATILITY, PM.add(HALF, PM.multiply(HALF, shortfall))

        reasons.append(
            f"No clear regime (ADX {adx:.1f}, MA spread {spread:+.2%}, band width {band_width:.2%}): "
            f"treated as range"
        )
        return RegimeLabel.RANGE, PM.to_decimal(cfg.fallback_confidence)
