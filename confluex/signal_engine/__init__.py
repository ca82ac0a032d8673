"""
CONFLUEX Signal Engine

Turns indicator readings, patterns, regime and multi-timeframe agreement
into a directional Signal with bounded confidence.

Philosophy:
    - Stateless scoring; the weight table is the only shared state
    - Deterministic: same candles + same weights -> same Signal
    - Patterns and timeframes bias confidence, never direction
    - Degrade to NEUTRAL rather than fail on missing history
"""

from confluex.signal_engine.config import (
    SignalEngineConfig,
    ConfluenceConfig,
    WeightTrackerConfig,
    BatchRunnerConfig,
    DEFAULT_CONFIG,
)
from confluex.signal_engine.schemas import Signal, SignalDirection, SignalEngineHealth
from confluex.signal_engine.weight_tracker import (
    AdaptiveWeightTracker,
    IndicatorWeight,
    WeightSnapshot,
)
from confluex.signal_engine.timeframe_confluence import TimeframeAgreement, compute_agreement
from confluex.signal_engine.scorer import ConfluenceScorer, ScoreBreakdown, PriceLevels
from confluex.signal_engine.engine import SignalGenerationEngine
from confluex.signal_engine.batch_runner import (
    SignalBatchRunner,
    LatestSignalStore,
    EvaluationRequest,
    EvaluationResult,
    EvaluationStatus,
    CycleReport,
)

__all__ = [
    'SignalEngineConfig',
    'ConfluenceConfig',
    'WeightTrackerConfig',
    'BatchRunnerConfig',
    'DEFAULT_CONFIG',
    'Signal',
    'SignalDirection',
    'SignalEngineHealth',
    'AdaptiveWeightTracker',
    'IndicatorWeight',
    'WeightSnapshot',
    'TimeframeAgreement',
    'compute_agreement',
    'ConfluenceScorer',
    'ScoreBreakdown',
    'PriceLevels',
    'SignalGenerationEngine',
    'SignalBatchRunner',
    'LatestSignalStore',
    'EvaluationRequest',
    'EvaluationResult',
    'EvaluationStatus',
    'CycleReport',
]

__version__ = '1.0.0'
