"""
Confluence Scorer

Stateless per evaluation: turns indicator readings, pattern matches, the
regime classification and adjacent-timeframe signals into a direction,
a confidence and an ordered list of reasons.

Algorithm:
    1. contribution = sign * strength_factor * category_budget
                      * weight / sum(base weights in category)
    2. Regime multipliers per category / indicator; high volatility
       discounts the whole indicator score
    3. Direction from the regime-weighted indicator score vs threshold
    4. Pattern bonus and timeframe bonus/penalty change the magnitude
       only; they never flip the sign or the direction
    5. confidence = clamp(50 + raw_score, min_confidence, max_confidence)

Every step runs in PrecisionMath; floats appear only in ScoreBreakdown.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from confluex.exceptions import InvariantViolationException
from confluex.precision import PrecisionMath, ZERO, HUNDRED
from confluex.indicator_engine.schemas import IndicatorSnapshot, IndicatorReading
from confluex.market_structure.schemas import (
    PatternMatch,
    RegimeClassification,
    RegimeLabel,
)
from confluex.signal_engine.config import ConfluenceConfig
from confluex.signal_engine.schemas import Signal, SignalDirection
from confluex.signal_engine.timeframe_confluence import TimeframeAgreement, compute_agreement
from confluex.signal_engine.weight_tracker import WeightSnapshot

LOG = logging.getLogger(__name__)

PM = PrecisionMath

FIFTY = Decimal(50)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Intermediate and final scores of one evaluation"""

    indicator_score: float
    regime_adjusted_score: float
    pattern_bonus: float
    timeframe_adjustment: float
    raw_score: float
    direction: SignalDirection
    confidence: float
    reasons: Tuple[str, ...]
    contributions: Tuple[Tuple[str, float], ...] = ()
    timeframe_agreement: Optional[TimeframeAgreement] = None

    def to_dict(self) -> dict:
        return {
            'indicator_score': self.indicator_score,
            'regime_adjusted_score': self.regime_adjusted_score,
            'pattern_bonus': self.pattern_bonus,
            'timeframe_adjustment': self.timeframe_adjustment,
            'raw_score': self.raw_score,
            'direction': self.direction.value,
            'confidence': self.confidence,
            'contributions': dict(self.contributions),
            'timeframe_agreement': self.timeframe_agreement.to_dict() if self.timeframe_agreement else None,
        }


@dataclass(frozen=True)
class PriceLevels:
    entry: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    method: str


def _sign(value: Decimal) -> int:
    return (value > 0) - (value < 0)


class ConfluenceScorer:
    """
    Multi-factor confluence scoring.

    Holds configuration only; every call is independent.
    """

    def __init__(self, config: Optional[ConfluenceConfig] = None):
        self.config = config or ConfluenceConfig()

    def score(
        self,
        snapshot: IndicatorSnapshot,
        patterns: Sequence[PatternMatch],
        regime: RegimeClassification,
        weights: WeightSnapshot,
        adjacent_signals: Optional[Sequence[Signal]] = None
    ) -> ScoreBreakdown:
        cfg = self.config
        reasons: List[str] = [
            f"Regime {regime.label.value} (confidence {regime.confidence:.2f})"
        ]

        # 1. Indicator contributions
        contributions = self._indicator_contributions(snapshot.readings, weights)
        indicator_score = PM.total(c for _, c in contributions)
        for reading, contribution in contributions:
            if reading.signal.sign == 0:
                reasons.append(f"{reading.name} neutral: {reading.detail}")
            else:
                reasons.append(
                    f"{reading.name} {reading.signal.value} ({reading.strength.value}) "
                    f"{contribution:+.2f}: {reading.detail}"
                )

        # 2. Regime re-weighting
        multipliers = cfg.regime_multipliers.get(regime.label.value, {})
        adjusted_score = PM.total(
            PM.multiply(contribution, self._multiplier(reading, multipliers))
            for reading, contribution in contributions
        )
        if multipliers:
            reasons.append(
                f"Regime {regime.label.value} re-weighting: {indicator_score:+.2f} -> {adjusted_score:+.2f}"
            )
        if regime.label is RegimeLabel.HIGH_VOLATILITY:
            discounted = PM.multiply(adjusted_score, cfg.high_volatility_discount)
            reasons.append(
                f"High volatility discount x{cfg.high_volatility_discount:g}: "
                f"{adjusted_score:+.2f} -> {discounted:+.2f}"
            )
            adjusted_score = discounted

        # 3. Direction from the indicator evidence alone
        direction = self._direction(adjusted_score)
        sign = _sign(adjusted_score)

        # 4a. Pattern bonus
        pattern_bonus = self._pattern_bonus(patterns, sign, reasons)

        # 4b. Multi-timeframe agreement
        agreement = compute_agreement(
            snapshot.symbol,
            snapshot.timeframe,
            sign,
            adjacent_signals,
            cfg.timeframe_weights,
            cfg.adjacent_span,
        )
        timeframe_adjustment = PM.multiply(cfg.timeframe_budget, agreement.agreement)
        if agreement.has_votes:
            reasons.append(
                f"Timeframes agreeing {list(agreement.agreeing)} / conflicting {list(agreement.conflicting)}: "
                f"agreement {agreement.agreement:+.2f}, {timeframe_adjustment:+.2f}"
            )
        else:
            reasons.append("No directional adjacent-timeframe signals")

        # Modifiers scale the magnitude without crossing zero
        magnitude = PM.maximum([
            ZERO,
            PM.total([PM.absolute(adjusted_score), pattern_bonus, timeframe_adjustment]),
        ])
        raw_score = PM.multiply(sign, magnitude)

        confidence = PM.minimum([
            cfg.max_confidence,
            PM.maximum([cfg.min_confidence, PM.add(FIFTY, raw_score)]),
        ])
        reasons.append(
            f"Raw score {raw_score:+.2f} -> {direction.value}, confidence {confidence:.1f}"
        )

        return ScoreBreakdown(
            indicator_score=PM.to_financial(indicator_score),
            regime_adjusted_score=PM.to_financial(adjusted_score),
            pattern_bonus=PM.to_financial(pattern_bonus),
            timeframe_adjustment=PM.to_financial(timeframe_adjustment),
            raw_score=PM.to_financial(raw_score),
            direction=direction,
            confidence=PM.to_financial(confidence, 4),
            reasons=tuple(reasons),
            contributions=tuple((r.name, PM.to_financial(c)) for r, c in contributions),
            timeframe_agreement=agreement,
        )

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def _indicator_contributions(
        self,
        readings: Sequence[IndicatorReading],
        weights: WeightSnapshot
    ) -> List[Tuple[IndicatorReading, Decimal]]:
        cfg = self.config

        # Normalize by the base weights of the indicators actually present
        category_base: Dict[str, Decimal] = {}
        for r in readings:
            base = weights.base_weight(r.name, 0.0)
            category_base[r.category.value] = PM.add(category_base.get(r.category.value, ZERO), base)

        result = []
        for r in readings:
            denominator = category_base.get(r.category.value, ZERO)
            if r.signal.sign == 0 or denominator <= ZERO:
                result.append((r, ZERO))
                continue
            budget = PM.multiply(
                cfg.strength_factors[r.strength.value],
                cfg.category_budgets.get(r.category.value, 0.0),
            )
            share = PM.divide(weights.get(r.name, 0.0), denominator)
            result.append((r, PM.multiply(r.signal.sign, PM.multiply(budget, share))))
        return result

    @staticmethod
    def _multiplier(reading: IndicatorReading, multipliers: Dict[str, float]) -> float:
        if reading.name in multipliers:
            return multipliers[reading.name]
        return multipliers.get(reading.category.value, 1.0)

    def _direction(self, score: Decimal) -> SignalDirection:
        threshold = PM.to_decimal(self.config.direction_threshold)
        if score > threshold:
            return SignalDirection.LONG
        if score < -threshold:
            return SignalDirection.SHORT
        return SignalDirection.NEUTRAL

    def _pattern_bonus(self, patterns: Sequence[PatternMatch], sign: int, reasons: List[str]) -> Decimal:
        if not patterns:
            reasons.append("No patterns detected")
            return ZERO

        best: Optional[PatternMatch] = None
        for p in patterns:
            if sign != 0 and p.direction.sign == sign:
                if best is None or p.reliability > best.reliability:
                    best = p
            else:
                reasons.append(
                    f"Pattern {p.name} ({p.direction.value}, reliability {p.reliability:.0f}) "
                    f"does not confirm score direction"
                )

        if best is None:
            return ZERO

        bonus = PM.divide(PM.multiply(self.config.pattern_budget, best.reliability), HUNDRED)
        reasons.append(
            f"Pattern {best.name} ({best.direction.value}, reliability {best.reliability:.0f}) "
            f"confirms: +{bonus:.2f}"
        )
        return bonus

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def derive_levels(
        self,
        direction: SignalDirection,
        entry: Decimal,
        atr: Optional[Decimal]
    ) -> PriceLevels:
        """
        Stop and target from the latest ATR.

        LONG / NEUTRAL: stop = entry - m_s * ATR, target = entry + m_t * ATR
        SHORT:          mirrored

        Falls back to fixed percentages when ATR is missing, zero, or
        would push a level to or below zero.

        Raises:
            InvariantViolationException: no positive stop and target
                can be placed around the entry (entry <= 0)
        """
        cfg = self.config
        side = -1 if direction is SignalDirection.SHORT else 1

        if atr is not None and atr > ZERO:
            stop_offset = PM.multiply(atr, cfg.stop_atr_multiple)
            target_offset = PM.multiply(atr, cfg.target_atr_multiple)
            levels = self._bracket(entry, side, stop_offset, target_offset, "atr")
            if levels is not None:
                return levels

        stop_offset = PM.divide(PM.multiply(entry, cfg.fallback_stop_pct), HUNDRED)
        target_offset = PM.divide(PM.multiply(entry, cfg.fallback_target_pct), HUNDRED)
        levels = self._bracket(entry, side, stop_offset, target_offset, "percent")
        if levels is None:
            # target_pct >= 100 on a short; cap the move at half the price
            target_offset = PM.divide(entry, 2)
            levels = self._bracket(entry, side, stop_offset, target_offset, "percent")
        if levels is None:
            raise InvariantViolationException(
                f"Cannot place positive {direction.value} levels around entry {entry}"
            )
        return levels

    @staticmethod
    def _bracket(entry, side, stop_offset, target_offset, method) -> Optional[PriceLevels]:
        if side > 0:
            stop = PM.subtract(entry, stop_offset)
            target = PM.add(entry, target_offset)
        else:
            stop = PM.add(entry, stop_offset)
            target = PM.subtract(entry, target_offset)

        if stop <= ZERO or target <= ZERO:
            return None
        return PriceLevels(entry=entry, stop_loss=stop, take_profit=target, method=method)
