"""
Signal Engine Output Schemas

Defines the Signal record, its direction, and engine health metrics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from confluex.exceptions import InvariantViolationException, RangeViolationException
from confluex.precision import PrecisionMath

PM = PrecisionMath


class SignalDirection(str, Enum):
    """Directional call"""
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"

    @property
    def sign(self) -> int:
        if self is SignalDirection.LONG:
            return 1
        if self is SignalDirection.SHORT:
            return -1
        return 0


@dataclass(frozen=True)
class Signal:
    """
    Immutable signal snapshot for one (symbol, timeframe).

    A new Signal replaces the previous one, it is never mutated.
    risk_reward_ratio is derived on construction:
        |take_profit - entry| / |entry - stop_loss|

    Level bracketing is enforced:
        LONG / NEUTRAL:  stop < entry < target
        SHORT:           target < entry < stop

    Levels may be omitted only together (no price data at all).
    """

    symbol: str
    timeframe: str
    direction: SignalDirection
    confidence: float
    entry_price: Optional[Decimal]
    stop_loss: Optional[Decimal]
    take_profit: Optional[Decimal]
    reasons: Tuple[str, ...]
    timestamp: datetime

    # Supporting detail
    indicator_votes: Tuple[Tuple[str, str], ...] = ()
    regime: Optional[str] = None
    degraded: bool = False
    config_hash: str = ""

    risk_reward_ratio: Optional[Decimal] = field(init=False, default=None)

    def __post_init__(self):
        if not 0.0 <= float(self.confidence) <= 100.0:
            raise RangeViolationException(
                f"Signal confidence {self.confidence} outside [0, 100]",
                self.confidence, (0, 100)
            )
        object.__setattr__(self, 'reasons', tuple(self.reasons))
        object.__setattr__(self, 'indicator_votes', tuple(tuple(v) for v in self.indicator_votes))

        levels = (self.entry_price, self.stop_loss, self.take_profit)
        if all(level is None for level in levels):
            return
        if any(level is None for level in levels):
            raise InvariantViolationException(
                f"{self.symbol} {self.timeframe}: entry, stop and target must be set together"
            )

        entry = PM.to_decimal(self.entry_price)
        stop = PM.to_decimal(self.stop_loss)
        target = PM.to_decimal(self.take_profit)
        object.__setattr__(self, 'entry_price', entry)
        object.__setattr__(self, 'stop_loss', stop)
        object.__setattr__(self, 'take_profit', target)

        if self.direction is SignalDirection.SHORT:
            bracketed = target < entry < stop
        else:
            bracketed = stop < entry < target

        if not bracketed:
            raise InvariantViolationException(
                f"{self.symbol} {self.timeframe} {self.direction.value}: entry {entry} "
                f"not strictly between stop {stop} and target {target}"
            )

        ratio = PM.divide(
            PM.absolute(PM.subtract(target, entry)),
            PM.absolute(PM.subtract(entry, stop)),
        )
        object.__setattr__(self, 'risk_reward_ratio', ratio)

    @property
    def has_levels(self) -> bool:
        return self.entry_price is not None

    @property
    def votes(self) -> Dict[str, str]:
        return dict(self.indicator_votes)

    @property
    def contributing_indicators(self) -> List[str]:
        """Indicators that cast a buy or sell vote"""
        return [name for name, vote in self.indicator_votes if vote in ('buy', 'sell')]

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        def _f(value):
            return PM.to_financial(value) if value is not None else None

        return {
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'direction': self.direction.value,
            'confidence': float(self.confidence),
            'entry_price': _f(self.entry_price),
            'stop_loss': _f(self.stop_loss),
            'take_profit': _f(self.take_profit),
            'risk_reward_ratio': _f(self.risk_reward_ratio),
            'reasons': list(self.reasons),
            'timestamp': self.timestamp.isoformat(),
            'indicator_votes': dict(self.indicator_votes),
            'regime': self.regime,
            'degraded': self.degraded,
            'config_hash': self.config_hash,
        }


@dataclass
class SignalEngineHealth:
    """Health metrics for Signal Engine monitoring"""

    total_evaluations: int = 0
    degraded_evaluations: int = 0
    failed_evaluations: int = 0

    # Direction distribution
    long_signals: int = 0
    short_signals: int = 0
    neutral_signals: int = 0

    # Confidence distribution
    avg_confidence: float = 0.0
    min_confidence: float = 100.0
    max_confidence: float = 0.0

    # Outcome feedback
    outcomes_recorded: int = 0

    # Performance
    avg_processing_time_ms: float = 0.0
    last_evaluation_time: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'total_evaluations': self.total_evaluations,
            'degraded_evaluations': self.degraded_evaluations,
            'failed_evaluations': self.failed_evaluations,
            'long_signals': self.long_signals,
            'short_signals': self.short_signals,
            'neutral_signals': self.neutral_signals,
            'avg_confidence': float(self.avg_confidence),
            'min_confidence': float(self.min_confidence),
            'max_confidence': float(self.max_confidence),
            'outcomes_recorded': self.outcomes_recorded,
            'avg_processing_time_ms': float(self.avg_processing_time_ms),
            'last_evaluation_time': self.last_evaluation_time.isoformat() if self.last_evaluation_time else None,
        }
