"""
Indicator Engine Schemas

Defines candles, indicator results and interpreted readings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from confluex.exceptions import InvalidCandleSeriesException
from confluex.precision import PrecisionMath


class IndicatorCategory(str, Enum):
    """Indicator family, each with its own share of the score budget"""
    TREND = "trend"
    MOMENTUM = "momentum"
    VOLATILITY = "volatility"
    VOLUME = "volume"


class DerivedSignal(str, Enum):
    """Directional vote of a single indicator"""
    BUY = "buy"
    SELL = "sell"
    NEUTRAL = "neutral"

    @property
    def sign(self) -> int:
        if self is DerivedSignal.BUY:
            return 1
        if self is DerivedSignal.SELL:
            return -1
        return 0


class SignalStrength(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


def _to_utc(timestamp) -> datetime:
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)
    if isinstance(timestamp, (int, float)):
        # Epoch seconds, or milliseconds as sent by most exchanges
        seconds = timestamp / 1000.0 if timestamp > 1e11 else float(timestamp)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(timestamp, str):
        return _to_utc(datetime.fromisoformat(timestamp.replace('Z', '+00:00')))
    raise InvalidCandleSeriesException(f"Unsupported timestamp: {timestamp!r}")


@dataclass(frozen=True)
class Candle:
    """
    Single OHLCV bar.

    Prices and volume are held as Decimal so indicator math never
    touches binary floating point.
    """

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    def __post_init__(self):
        object.__setattr__(self, 'timestamp', _to_utc(self.timestamp))
        for name in ('open', 'high', 'low', 'close', 'volume'):
            object.__setattr__(self, name, PrecisionMath.to_decimal(getattr(self, name)))

        if self.low <= 0:
            raise InvalidCandleSeriesException(
                f"Candle at {self.timestamp.isoformat()} has non-positive price (low {self.low})"
            )
        if self.low > self.high:
            raise InvalidCandleSeriesException(
                f"Candle at {self.timestamp.isoformat()} has low > high"
            )
        if not (self.low <= self.open <= self.high and self.low <= self.close <= self.high):
            raise InvalidCandleSeriesException(
                f"Candle at {self.timestamp.isoformat()} has open/close outside high-low range"
            )
        if self.volume < 0:
            raise InvalidCandleSeriesException(
                f"Candle at {self.timestamp.isoformat()} has negative volume"
            )

    @property
    def typical_price(self) -> Decimal:
        return PrecisionMath.divide(
            PrecisionMath.total([self.high, self.low, self.close]), 3
        )

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    @classmethod
    def from_dict(cls, data: dict) -> 'Candle':
        return cls(
            timestamp=data['timestamp'],
            open=data['open'],
            high=data['high'],
            low=data['low'],
            close=data['close'],
            volume=data.get('volume', 0),
        )

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'open': float(self.open),
            'high': float(self.high),
            'low': float(self.low),
            'close': float(self.close),
            'volume': float(self.volume),
        }


@dataclass(frozen=True)
class MACDResult:
    macd: Decimal
    signal: Decimal
    histogram: Decimal
    prev_histogram: Optional[Decimal] = None


@dataclass(frozen=True)
class BollingerResult:
    upper: Decimal
    middle: Decimal
    lower: Decimal
    std_dev: Decimal

    @property
    def width(self) -> Decimal:
        return PrecisionMath.subtract(self.upper, self.lower)

    @property
    def bandwidth(self) -> Decimal:
        """Band width relative to the middle band"""
        return PrecisionMath.divide(self.width, self.middle)

    def percent_b(self, price) -> Optional[Decimal]:
        """Position of price within the bands (0 = lower, 1 = upper)"""
        if self.width.is_zero():
            return None
        return PrecisionMath.divide(PrecisionMath.subtract(price, self.lower), self.width)


@dataclass(frozen=True)
class StochasticResult:
    k: Decimal
    d: Decimal


@dataclass(frozen=True)
class ADXResult:
    adx: Decimal
    plus_di: Decimal
    minus_di: Decimal


@dataclass(frozen=True)
class IndicatorReading:
    """
    Interpreted indicator output.

    Produced fresh on every evaluation and never mutated.
    """

    name: str
    category: IndicatorCategory
    value: float
    signal: DerivedSignal
    strength: SignalStrength
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'category': self.category.value,
            'value': float(self.value),
            'signal': self.signal.value,
            'strength': self.strength.value,
            'detail': self.detail,
        }


@dataclass(frozen=True)
class IndicatorSnapshot:
    """All indicator outputs for one (symbol, timeframe) evaluation"""

    symbol: str
    timeframe: str
    timestamp: Optional[datetime]
    readings: Tuple[IndicatorReading, ...]
    values: Dict[str, Any] = field(default_factory=dict)
    unavailable: Dict[str, str] = field(default_factory=dict)
    latest_close: Optional[Decimal] = None
    latest_atr: Optional[Decimal] = None
    candle_count: int = 0
    gap_count: int = 0

    def reading(self, name: str) -> Optional[IndicatorReading]:
        for r in self.readings:
            if r.name == name:
                return r
        return None

    def is_available(self, name: str) -> bool:
        return name in self.values

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'readings': [r.to_dict() for r in self.readings],
            'unavailable': dict(self.unavailable),
            'latest_close': float(self.latest_close) if self.latest_close is not None else None,
            'latest_atr': float(self.latest_atr) if self.latest_atr is not None else None,
            'candle_count': self.candle_count,
            'gap_count': self.gap_count,
        }
