"""
Market Structure Configuration

Pattern catalogue thresholds and regime classification bands.
"""

from dataclasses import dataclass, field, asdict
import json
import hashlib


@dataclass
class PatternConfig:
    """Pattern catalogue parameters"""

    # Reversal at extreme (RSI and %K both stretched)
    reversal_rsi_oversold: float = 35.0
    reversal_rsi_overbought: float = 65.0
    reversal_stoch_oversold: float = 30.0
    reversal_stoch_overbought: float = 70.0
    bullish_reversal_reliability: float = 75.0
    bearish_reversal_reliability: float = 72.0
    wick_confirmation_bonus: float = 10.0

    # Single-candle shapes (hammer / shooting star)
    wick_body_ratio: float = 2.0
    candle_pattern_reliability: float = 60.0
    shape_trend_lookback: int = 5

    # Band breakout
    breakout_reliability: float = 68.0
    breakout_volume_ratio: float = 1.5
    breakout_unconfirmed_penalty: float = 10.0

    # Band squeeze
    squeeze_lookback: int = 30
    squeeze_band_period: int = 20
    squeeze_band_k: float = 2.0
    squeeze_quantile: float = 0.2
    squeeze_reliability: float = 50.0

    # Trend continuation
    continuation_reliability: float = 65.0
    continuation_adx_bonus: float = 10.0
    continuation_adx_min: float = 25.0
    pullback_atr_multiple: float = 1.0
    target_atr_multiple: float = 2.0

    def __post_init__(self):
        if not 0 < self.squeeze_quantile < 1:
            raise ValueError("squeeze_quantile must be in (0, 1)")
        for name in (
            'bullish_reversal_reliability', 'bearish_reversal_reliability',
            'candle_pattern_reliability', 'breakout_reliability',
            'squeeze_reliability', 'continuation_reliability',
        ):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be in [0, 100], got {value}")


@dataclass
class RegimeConfig:
    """Regime classification thresholds"""

    adx_period: int = 14
    ma_fast: int = 20
    ma_slow: int = 50
    atr_period: int = 14
    band_period: int = 20
    band_k: float = 2.0

    # ATR / price
    high_volatility_atr_ratio: float = 0.035
    low_volatility_atr_ratio: float = 0.004

    # Trend: ADX and (fast MA - slow MA) / price
    trend_adx_min: float = 25.0
    trend_spread_min: float = 0.01

    # Range: ADX and (upper - lower) / middle
    range_adx_max: float = 20.0
    range_band_width_max: float = 0.06

    # Confidence when no rule fires cleanly
    fallback_confidence: float = 0.3

    def __post_init__(self):
        if self.ma_fast >= self.ma_slow:
            raise ValueError("ma_fast must be shorter than ma_slow")
        if self.low_volatility_atr_ratio >= self.high_volatility_atr_ratio:
            raise ValueError("low_volatility_atr_ratio must be below high_volatility_atr_ratio")
        if self.range_adx_max > self.trend_adx_min:
            raise ValueError("range_adx_max must not exceed trend_adx_min")

    def min_history(self) -> int:
        return max(self.ma_slow, 2 * self.adx_period + 1, self.atr_period + 1, self.band_period)


@dataclass
class MarketStructureConfig:
    """Master configuration for pattern and regime detection"""

    config_version: str = "1.0.0"
    patterns: PatternConfig = field(default_factory=PatternConfig)
    regime: RegimeConfig = field(default_factory=RegimeConfig)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'MarketStructureConfig':
        return cls(
            config_version=config_dict.get('config_version', "1.0.0"),
            patterns=PatternConfig(**config_dict.get('patterns', {})),
            regime=RegimeConfig(**config_dict.get('regime', {})),
        )

    def get_config_hash(self) -> str:
        config_json = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_json.encode()).hexdigest()[:16]
