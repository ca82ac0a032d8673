"""
CONFLUEX Indicator Engine

Technical indicators computed on the precision layer.

Philosophy:
    - Pure functions: (candle series, parameters) -> value
    - Below minimum history, raise InsufficientDataException
    - Every arithmetic step in Decimal
    - Interpretation (buy / sell / neutral) is separate from computation
"""

from confluex.indicator_engine.config import IndicatorEngineConfig, ALL_INDICATORS
from confluex.indicator_engine.schemas import (
    Candle,
    IndicatorCategory,
    DerivedSignal,
    SignalStrength,
    IndicatorReading,
    IndicatorSnapshot,
    MACDResult,
    BollingerResult,
    StochasticResult,
    ADXResult,
)
from confluex.indicator_engine.candles import CandleSeries, as_candle_series
from confluex.indicator_engine.momentum import MomentumIndicators
from confluex.indicator_engine.trend import TrendIndicators
from confluex.indicator_engine.volatility import VolatilityIndicators, true_range
from confluex.indicator_engine.volume import VolumeIndicators
from confluex.indicator_engine.interpreter import IndicatorInterpreter, INDICATOR_CATEGORIES

__all__ = [
    'IndicatorEngineConfig',
    'ALL_INDICATORS',
    'Candle',
    'CandleSeries',
    'as_candle_series',
    'IndicatorCategory',
    'DerivedSignal',
    'SignalStrength',
    'IndicatorReading',
    'IndicatorSnapshot',
    'MACDResult',
    'BollingerResult',
    'StochasticResult',
    'ADXResult',
    'MomentumIndicators',
    'TrendIndicators',
    'VolatilityIndicators',
    'VolumeIndicators',
    'true_range',
    'IndicatorInterpreter',
    'INDICATOR_CATEGORIES',
]

__version__ = '1.0.0'
