"""
Market Structure Schemas
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class PatternKind(str, Enum):
    REVERSAL = "reversal"
    BREAKOUT = "breakout"
    CONTINUATION = "continuation"


class PatternDirection(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"

    @property
    def sign(self) -> int:
        if self is PatternDirection.BULLISH:
            return 1
        if self is PatternDirection.BEARISH:
            return -1
        return 0


class RegimeLabel(str, Enum):
    """Prevailing market regime"""
    TREND_UP = "trend_up"
    TREND_DOWN = "trend_down"
    RANGE = "range"
    HIGH_VOLATILITY = "high_volatility"
    LOW_VOLATILITY = "low_volatility"

    @property
    def is_trending(self) -> bool:
        return self in (RegimeLabel.TREND_UP, RegimeLabel.TREND_DOWN)


@dataclass(frozen=True)
class PatternMatch:
    """Named setup detected on the latest candles"""

    name: str
    kind: PatternKind
    direction: PatternDirection
    reliability: float          # 0-100
    price_target: Optional[float] = None
    description: str = ""

    def __post_init__(self):
        if not 0.0 <= self.reliability <= 100.0:
            raise ValueError(f"Pattern reliability out of range: {self.reliability}")

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'kind': self.kind.value,
            'direction': self.direction.value,
            'reliability': float(self.reliability),
            'price_target': self.price_target,
            'description': self.description,
        }


@dataclass(frozen=True)
class RegimeClassification:
    """Single regime label with supporting measures"""

    label: RegimeLabel
    confidence: float                       # 0-1
    trend_strength: Optional[float] = None  # ADX
    ma_spread: Optional[float] = None       # (fast MA - slow MA) / price
    atr_ratio: Optional[float] = None       # ATR / price
    band_width: Optional[float] = None      # (upper - lower) / middle
    reasons: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            'label': self.label.value,
            'confidence': float(self.confidence),
            'trend_strength': self.trend_strength,
            'ma_spread': self.ma_spread,
            'atr_ratio': self.atr_ratio,
            'band_width': self.band_width,
            'reasons': list(self.reasons),
        }
