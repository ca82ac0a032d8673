"""
Signal Engine Configuration

Defines the confluence budgets, regime multipliers, adaptive-weight
bounds and batch execution parameters.

The category budgets and regime multipliers are a starting calibration,
exposed here rather than hard-coded so they can be tuned empirically.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict
import json
import hashlib

from confluex.indicator_engine.config import IndicatorEngineConfig
from confluex.market_structure.config import MarketStructureConfig
from confluex.timeframes import DEFAULT_TIMEFRAME_WEIGHTS


@dataclass
class ConfluenceConfig:
    """Confluence scoring parameters"""

    # Share of the 100-point budget per indicator category
    category_budgets: Dict[str, float] = field(default_factory=lambda: {
        'trend': 35.0,
        'momentum': 25.0,
        'volatility': 12.5,
        'volume': 7.5,
    })

    # Modifier budgets
    pattern_budget: float = 15.0
    timeframe_budget: float = 15.0

    # Fraction of the per-indicator budget granted by reading strength
    strength_factors: Dict[str, float] = field(default_factory=lambda: {
        'weak': 0.35,
        'moderate': 0.65,
        'strong': 1.0,
    })

    # Regime re-weighting, keyed by category or indicator name
    # (an indicator-name key takes precedence over its category)
    regime_multipliers: Dict[str, Dict[str, float]] = field(default_factory=lambda: {
        'trend_up': {'trend': 1.3, 'momentum': 1.15},
        'trend_down': {'trend': 1.3, 'momentum': 1.15},
        'range': {'RSI': 1.3, 'STOCHASTIC': 1.4, 'BOLLINGER': 1.2, 'trend': 0.8},
        'high_volatility': {},
        'low_volatility': {'volume': 0.8},
    })
    high_volatility_discount: float = 0.75

    # Score -> direction / confidence
    direction_threshold: float = 15.0
    min_confidence: float = 25.0
    max_confidence: float = 95.0
    degraded_confidence: float = 50.0
    min_indicators: int = 3

    # Levels
    stop_atr_multiple: float = 1.5
    target_atr_multiple: float = 2.5
    fallback_stop_pct: float = 1.5
    fallback_target_pct: float = 2.5

    # Multi-timeframe confluence
    timeframe_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_TIMEFRAME_WEIGHTS))
    adjacent_span: int = 2

    def __post_init__(self):
        missing = {'trend', 'momentum', 'volatility', 'volume'} - set(self.category_budgets)
        if missing:
            raise ValueError(f"category_budgets missing: {sorted(missing)}")
        if set(self.strength_factors) != {'weak', 'moderate', 'strong'}:
            raise ValueError("strength_factors must define weak, moderate and strong")
        if not 0 < self.high_volatility_discount <= 1:
            raise ValueError("high_volatility_discount must be in (0, 1]")
        if self.direction_threshold < 0:
            raise ValueError("direction_threshold must be non-negative")
        if not 0 <= self.min_confidence <= self.degraded_confidence <= self.max_confidence <= 100:
            raise ValueError("Require 0 <= min_confidence <= degraded_confidence <= max_confidence <= 100")
        if self.min_indicators < 1:
            raise ValueError("min_indicators must be >= 1")
        if self.stop_atr_multiple <= 0 or self.target_atr_multiple <= 0:
            raise ValueError("ATR multiples must be positive")
        if not 0 < self.fallback_stop_pct < 100 or not 0 < self.fallback_target_pct:
            raise ValueError("Fallback percentages must be positive (stop below 100)")


@dataclass
class WeightTrackerConfig:
    """Adaptive indicator weights"""

    base_weights: Dict[str, float] = field(default_factory=lambda: {
        'MACD': 0.24,
        'EMA_CROSS': 0.20,
        'RSI': 0.16,
        'BOLLINGER': 0.14,
        'STOCHASTIC': 0.12,
        'ADX': 0.10,
        'SMA_TREND': 0.08,
        'VWAP': 0.06,
        'ATR': 0.04,
        'VOLUME': 0.02,
    })
    default_base_weight: float = 0.05

    # Rolling window of recent outcomes
    window_size: int = 50
    min_samples: int = 10

    # weight = base + adaptation_rate * (win_rate - 0.5)
    adaptation_rate: float = 0.2

    weight_floor: float = 0.01
    weight_ceiling: float = 0.5

    def __post_init__(self):
        if not 0 <= self.weight_floor < self.weight_ceiling:
            raise ValueError("Require 0 <= weight_floor < weight_ceiling")
        if self.window_size < 1 or self.min_samples < 1:
            raise ValueError("window_size and min_samples must be >= 1")
        if self.min_samples > self.window_size:
            raise ValueError("min_samples cannot exceed window_size")
        for name, weight in self.base_weights.items():
            if not self.weight_floor <= weight <= self.weight_ceiling:
                raise ValueError(f"Base weight for {name} outside [{self.weight_floor}, {self.weight_ceiling}]")
        if not self.weight_floor <= self.default_base_weight <= self.weight_ceiling:
            raise ValueError("default_base_weight outside weight bounds")


@dataclass
class BatchRunnerConfig:
    """Parallel evaluation cycle"""

    max_workers: int = 8
    evaluation_timeout: float = 5.0     # Seconds per (symbol, timeframe)
    higher_timeframes_first: bool = True

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if self.evaluation_timeout <= 0:
            raise ValueError("evaluation_timeout must be positive")


@dataclass
class SignalEngineConfig:
    """
    Master configuration for the Signal Engine.

    Every parameter that influences a Signal is part of the hash
    stamped on it.
    """

    config_version: str = "1.0.0"
    signal_source_name: str = "confluex_v1"

    indicators: IndicatorEngineConfig = field(default_factory=IndicatorEngineConfig)
    market_structure: MarketStructureConfig = field(default_factory=MarketStructureConfig)
    confluence: ConfluenceConfig = field(default_factory=ConfluenceConfig)
    weights: WeightTrackerConfig = field(default_factory=WeightTrackerConfig)
    batch: BatchRunnerConfig = field(default_factory=BatchRunnerConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        config_dict = asdict(self)
        config_dict['config_hash'] = self.compute_hash()
        return config_dict

    def compute_hash(self) -> str:
        """
        Compute deterministic hash of configuration.

        Batch execution settings are excluded: they do not change
        what a Signal contains.
        """
        config_dict = asdict(self)
        config_dict.pop('batch')
        config_json = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_json.encode()).hexdigest()[:12]

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'SignalEngineConfig':
        """Create config from dictionary"""
        return cls(
            config_version=config_dict.get('config_version', "1.0.0"),
            signal_source_name=config_dict.get('signal_source_name', "confluex_v1"),
            indicators=IndicatorEngineConfig.from_dict(config_dict.get('indicators', {})),
            market_structure=MarketStructureConfig.from_dict(config_dict.get('market_structure', {})),
            confluence=ConfluenceConfig(**config_dict.get('confluence', {})),
            weights=WeightTrackerConfig(**config_dict.get('weights', {})),
            batch=BatchRunnerConfig(**config_dict.get('batch', {})),
        )


DEFAULT_CONFIG = SignalEngineConfig()
