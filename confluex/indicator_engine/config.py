"""
Indicator Engine Configuration

Defines indicator periods, interpretation thresholds and versioning.
All parameters are explicitly versioned for reproducibility.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List
import json
import hashlib


ALL_INDICATORS = [
    'RSI', 'MACD', 'EMA_CROSS', 'SMA_TREND', 'ADX',
    'BOLLINGER', 'STOCHASTIC', 'ATR', 'VWAP', 'VOLUME',
]


@dataclass
class RSIConfig:
    """Relative Strength Index (Wilder smoothing)"""
    period: int = 14
    oversold: float = 30.0
    overbought: float = 70.0
    extreme_offset: float = 10.0   # 20 / 80 => strong
    weak_zone: float = 10.0        # 30-40 / 60-70 => weak lean


@dataclass
class MACDConfig:
    """Moving Average Convergence Divergence"""
    fast_period: int = 12
    slow_period: int = 26
    signal_period: int = 9

    # Histogram size relative to price, in percent
    strong_histogram_pct: float = 0.10
    moderate_histogram_pct: float = 0.03


@dataclass
class MovingAverageConfig:
    """EMA crossover and SMA trend filter"""
    ema_fast: int = 12
    ema_slow: int = 26
    sma_period: int = 50

    # EMA spread (percent of slow EMA)
    ema_strong_pct: float = 1.0
    ema_moderate_pct: float = 0.3

    # Price distance from SMA (percent)
    sma_strong_pct: float = 3.0
    sma_moderate_pct: float = 1.0


@dataclass
class ADXConfig:
    """Average Directional Index"""
    period: int = 14
    trend_threshold: float = 20.0
    moderate_threshold: float = 25.0
    strong_threshold: float = 40.0


@dataclass
class BollingerConfig:
    """Bollinger Bands"""
    period: int = 20
    k: float = 2.0

    # %B zones
    lower_zone: float = 0.2
    upper_zone: float = 0.8


@dataclass
class StochasticConfig:
    """Stochastic oscillator"""
    k_period: int = 14
    d_period: int = 3
    oversold: float = 20.0
    overbought: float = 80.0


@dataclass
class ATRConfig:
    """Average True Range"""
    period: int = 14


@dataclass
class VolumeConfig:
    """VWAP and relative volume"""
    vwap_window: int = 20          # 0 => whole series
    vwap_strong_pct: float = 1.0
    vwap_moderate_pct: float = 0.3

    ratio_window: int = 20
    ratio_moderate: float = 1.5
    ratio_strong: float = 2.5


@dataclass
class IndicatorEngineConfig:
    """
    Master configuration for the Indicator Engine.

    All parameters versioned for reproducibility.
    """

    config_version: str = "1.0.0"

    rsi: RSIConfig = field(default_factory=RSIConfig)
    macd: MACDConfig = field(default_factory=MACDConfig)
    moving_averages: MovingAverageConfig = field(default_factory=MovingAverageConfig)
    adx: ADXConfig = field(default_factory=ADXConfig)
    bollinger: BollingerConfig = field(default_factory=BollingerConfig)
    stochastic: StochasticConfig = field(default_factory=StochasticConfig)
    atr: ATRConfig = field(default_factory=ATRConfig)
    volume: VolumeConfig = field(default_factory=VolumeConfig)

    enabled_indicators: List[str] = field(default_factory=lambda: list(ALL_INDICATORS))

    def __post_init__(self):
        unknown = set(self.enabled_indicators) - set(ALL_INDICATORS)
        if unknown:
            raise ValueError(f"Unknown indicators: {sorted(unknown)}")
        if self.macd.fast_period >= self.macd.slow_period:
            raise ValueError("MACD fast period must be shorter than slow period")
        if self.moving_averages.ema_fast >= self.moving_averages.ema_slow:
            raise ValueError("EMA fast period must be shorter than slow period")
        if self.bollinger.k <= 0:
            raise ValueError("Bollinger k must be positive")
        if not self.rsi.oversold < self.rsi.overbought:
            raise ValueError("RSI oversold must be below overbought")
        if not self.stochastic.oversold < self.stochastic.overbought:
            raise ValueError("Stochastic oversold must be below overbought")

    def min_history(self) -> Dict[str, int]:
        """Minimum number of candles each indicator needs"""
        return {
            'RSI': self.rsi.period + 1,
            'MACD': self.macd.slow_period + self.macd.signal_period - 1,
            'EMA_CROSS': self.moving_averages.ema_slow,
            'SMA_TREND': self.moving_averages.sma_period,
            'ADX': 2 * self.adx.period + 1,
            'BOLLINGER': self.bollinger.period,
            'STOCHASTIC': self.stochastic.k_period + self.stochastic.d_period - 1,
            'ATR': self.atr.period + 1,
            'VWAP': max(1, self.volume.vwap_window),
            'VOLUME': self.volume.ratio_window + 1,
        }

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'IndicatorEngineConfig':
        """Create config from dictionary"""
        return cls(
            config_version=config_dict.get('config_version', "1.0.0"),
            rsi=RSIConfig(**config_dict.get('rsi', {})),
            macd=MACDConfig(**config_dict.get('macd', {})),
            moving_averages=MovingAverageConfig(**config_dict.get('moving_averages', {})),
            adx=ADXConfig(**config_dict.get('adx', {})),
            bollinger=BollingerConfig(**config_dict.get('bollinger', {})),
            stochastic=StochasticConfig(**config_dict.get('stochastic', {})),
            atr=ATRConfig(**config_dict.get('atr', {})),
            volume=VolumeConfig(**config_dict.get('volume', {})),
            enabled_indicators=config_dict.get('enabled_indicators', list(ALL_INDICATORS)),
        )

    def get_config_hash(self) -> str:
        """Deterministic hash of all parameters"""
        config_json = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_json.encode()).hexdigest()[:16]
