"""
Multi-Timeframe Confluence

Measures how far the latest signals on adjacent timeframes of the same
symbol agree with a candidate direction.

agreement = (agreeing weight - conflicting weight) / (agreeing + conflicting)

in [-1, 1]; neutral and degraded signals carry no vote.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple
import logging

from confluex.precision import PrecisionMath, ZERO
from confluex.timeframes import adjacent_timeframes, timeframe_rank
from confluex.signal_engine.schemas import Signal

LOG = logging.getLogger(__name__)

PM = PrecisionMath


@dataclass(frozen=True)
class TimeframeAgreement:
    agreement: float = 0.0
    agreeing: Tuple[str, ...] = ()
    conflicting: Tuple[str, ...] = ()
    neutral: Tuple[str, ...] = ()

    @property
    def has_votes(self) -> bool:
        return bool(self.agreeing or self.conflicting)

    def to_dict(self) -> dict:
        return {
            'agreement': self.agreement,
            'agreeing': list(self.agreeing),
            'conflicting': list(self.conflicting),
            'neutral': list(self.neutral),
        }


def latest_adjacent(
    symbol: str,
    timeframe: str,
    signals: Iterable[Signal],
    span: int = 2
) -> Dict[str, Signal]:
    """Newest signal per adjacent timeframe for the symbol"""
    adjacent = set(adjacent_timeframes(timeframe, span))
    latest: Dict[str, Signal] = {}
    for s in signals:
        if s.symbol != symbol or s.timeframe not in adjacent:
            continue
        held = latest.get(s.timeframe)
        if held is None or s.timestamp > held.timestamp:
            latest[s.timeframe] = s
    return latest


def compute_agreement(
    symbol: str,
    timeframe: str,
    direction_sign: int,
    signals: Optional[Iterable[Signal]],
    timeframe_weights: Dict[str, float],
    span: int = 2
) -> TimeframeAgreement:
    """
    Weighted agreement of adjacent timeframes with direction_sign.

    A zero direction_sign has nothing to confirm and yields 0.
    """
    if not signals:
        return TimeframeAgreement()

    adjacent = latest_adjacent(symbol, timeframe, signals, span)

    agreeing, conflicting, neutral = [], [], []
    agree_weight = conflict_weight = ZERO
    for tf in sorted(adjacent, key=timeframe_rank):
        s = adjacent[tf]
        vote = s.direction.sign
        if s.degraded or vote == 0 or direction_sign == 0:
            neutral.append(tf)
            continue

        weight = timeframe_weights.get(tf, 1.0)
        if vote == direction_sign:
            agreeing.append(tf)
            agree_weight = PM.add(agree_weight, weight)
        else:
            conflicting.append(tf)
            conflict_weight = PM.add(conflict_weight, weight)

    total = PM.add(agree_weight, conflict_weight)
    agreement = PM.divide(PM.subtract(agree_weight, conflict_weight), total) if total > ZERO else ZERO

    return TimeframeAgreement(
        agreement=PM.to_financial(agreement),
        agreeing=tuple(agreeing),
        conflicting=tuple(conflicting),
        neutral=tuple(neutral),
    )
