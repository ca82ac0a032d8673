"""
Signal Generation Engine

Core engine that orchestrates:
1. Candle validation
2. Indicator computation and interpretation
3. Pattern detection and regime classification
4. Confluence scoring against one weight-table snapshot
5. Level derivation and Signal emission
6. Outcome feedback into the adaptive weight tracker

Design Principles:
    - Conservative: insufficient data yields NEUTRAL at 50, never a guess
    - Deterministic: same candles + same weights -> same Signal
    - Auditable: every factor leaves a reason line
    - Isolated: a failing pair never affects another
"""

import time
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
import logging

from confluex.exceptions import ComputationException, InsufficientDataException
from confluex.indicator_engine.candles import CandleSeries, as_candle_series
from confluex.indicator_engine.interpreter import IndicatorInterpreter
from confluex.market_structure.patterns import PatternDetector
from confluex.market_structure.regime_classifier import RegimeClassifier
from confluex.market_structure.schemas import RegimeClassification, RegimeLabel
from confluex.signal_engine.config import SignalEngineConfig
from confluex.signal_engine.schemas import Signal, SignalDirection, SignalEngineHealth
from confluex.signal_engine.scorer import ConfluenceScorer
from confluex.signal_engine.weight_tracker import AdaptiveWeightTracker, WeightSnapshot

LOG = logging.getLogger(__name__)


class SignalGenerationEngine:
    """
    Signal Generation Engine

    Converts a candle series into a directional Signal with confidence,
    levels and reasons.

    The weight tracker may be shared between engines; it is the only
    mutable state touched during evaluation.
    """

    def __init__(
        self,
        config: Optional[SignalEngineConfig] = None,
        weight_tracker: Optional[AdaptiveWeightTracker] = None
    ):
        """
        Initialize Signal Generation Engine.

        Args:
            config: Engine configuration (uses defaults if None)
            weight_tracker: Shared weight tracker (created if None)
        """
        self.config = config or SignalEngineConfig()
        self.config_hash = self.config.compute_hash()

        self.interpreter = IndicatorInterpreter(self.config.indicators)
        self.pattern_detector = PatternDetector(self.config.market_structure.patterns)
        self.regime_classifier = RegimeClassifier(self.config.market_structure.regime)
        self.scorer = ConfluenceScorer(self.config.confluence)
        self.weight_tracker = weight_tracker or AdaptiveWeightTracker(self.config.weights)

        self.health = SignalEngineHealth()
        self._health_lock = threading.Lock()
        self._processing_times: List[float] = []

        LOG.info(f"✓ Signal engine initialized (config {self.config_hash})")

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def evaluate_signal(
        self,
        symbol: str,
        timeframe: str,
        candles,
        adjacent_signals: Optional[Sequence[Signal]] = None
    ) -> Signal:
        """
        Evaluate one (symbol, timeframe).

        Args:
            symbol: Trading symbol
            timeframe: Timeframe code, e.g. '1h'
            candles: CandleSeries, DataFrame or list of Candle / dict
            adjacent_signals: Latest signals of neighbouring timeframes

        Returns:
            Signal (NEUTRAL at degraded confidence on insufficient data)

        Raises:
            ComputationException: computation defect (invariant, range
                or arithmetic violation), after logging
            InvalidCandleSeriesException: unordered or malformed candles
        """
        start_time = time.perf_counter()
        series = as_candle_series(candles, symbol=symbol, timeframe=timeframe)

        try:
            signal = self._evaluate(series, adjacent_signals)
        except InsufficientDataException as e:
            signal = self._degraded_signal(series, [str(e)])
        except ComputationException as e:
            with self._health_lock:
                self.health.failed_evaluations += 1
            LOG.error(f"{symbol} {timeframe}: evaluation abandoned, computation defect: {e}")
            raise

        self._update_health(signal, (time.perf_counter() - start_time) * 1000)
        return signal

    def record_signal_outcome(
        self,
        signal: Signal,
        realized_direction: SignalDirection
    ) -> WeightSnapshot:
        """
        Feed a realized outcome back to the weight tracker.

        Every indicator that voted buy or sell on the signal is marked
        correct when its vote matches the realized direction. A NEUTRAL
        realization marks all directional votes incorrect.
        """
        outcomes: Dict[str, bool] = {}
        for name, vote in signal.indicator_votes:
            if vote == 'buy':
                outcomes[name] = realized_direction is SignalDirection.LONG
            elif vote == 'sell':
                outcomes[name] = realized_direction is SignalDirection.SHORT

        snapshot = self.weight_tracker.record_outcomes(outcomes)
        with self._health_lock:
            self.health.outcomes_recorded += len(outcomes)

        LOG.info(
            f"{signal.symbol} {signal.timeframe}: recorded {len(outcomes)} outcomes "
            f"(realized {realized_direction.value}), weight table v{snapshot.version}"
        )
        return snapshot

    def get_health(self) -> dict:
        return self.health.to_dict()

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _evaluate(self, series: CandleSeries, adjacent_signals) -> Signal:
        cfg = self.config.confluence

        snapshot = self.interpreter.compute(series)
        if len(snapshot.readings) < cfg.min_indicators:
            reasons = [
                f"{len(snapshot.readings)} indicators available, {cfg.min_indicators} required"
            ]
            reasons.extend(f"{name}: {why}" for name, why in snapshot.unavailable.items())
            return self._degraded_signal(series, reasons)

        regime = self._classify_regime(series)
        patterns = self.pattern_detector.detect(series, snapshot)

        # One atomic read of the weight table per evaluation
        weights = self.weight_tracker.snapshot()

        breakdown = self.scorer.score(snapshot, patterns, regime, weights, adjacent_signals)
        levels = self.scorer.derive_levels(breakdown.direction, snapshot.latest_close, snapshot.latest_atr)

        reasons = list(breakdown.reasons)
        if levels.method != "atr":
            reasons.append(
                f"ATR unavailable: levels at {cfg.fallback_stop_pct:g}% / {cfg.fallback_target_pct:g}%"
            )
        if series.has_gaps:
            reasons.append(f"Input has {series.gap_count} gaps in candle history")

        signal = Signal(
            symbol=series.symbol,
            timeframe=series.timeframe,
            direction=breakdown.direction,
            confidence=breakdown.confidence,
            entry_price=levels.entry,
            stop_loss=levels.stop_loss,
            take_profit=levels.take_profit,
            reasons=tuple(reasons),
            timestamp=snapshot.timestamp,
            indicator_votes=tuple((r.name, r.signal.value) for r in snapshot.readings),
            regime=regime.label.value,
            degraded=False,
            config_hash=self.config_hash,
        )

        LOG.debug(
            f"{series.symbol} {series.timeframe}: {signal.direction.value} "
            f"confidence {signal.confidence:.1f} (weights v{weights.version})"
        )
        return signal

    def _classify_regime(self, series: CandleSeries) -> RegimeClassification:
        try:
            return self.regime_classifier.classify(series)
        except InsufficientDataException as e:
            return RegimeClassification(
                label=RegimeLabel.RANGE,
                confidence=0.0,
                reasons=(f"Regime unavailable ({e}), treated as range",),
            )

    def _degraded_signal(self, series: CandleSeries, details: List[str]) -> Signal:
        """NEUTRAL signal at degraded confidence, with levels when a price exists"""
        cfg = self.config.confluence
        latest = series.latest

        reasons = ["Degraded input: insufficient data, signal held NEUTRAL"]
        reasons.extend(details)

        entry = stop = target = None
        timestamp = datetime.now(timezone.utc)
        if latest is not None:
            timestamp = latest.timestamp
            try:
                atr = self.interpreter.compute_atr(series)
            except InsufficientDataException:
                atr = None
            levels = self.scorer.derive_levels(SignalDirection.NEUTRAL, latest.close, atr)
            entry, stop, target = levels.entry, levels.stop_loss, levels.take_profit

        LOG.warning(f"{series.symbol} {series.timeframe}: degraded input ({len(series)} candles)")

        return Signal(
            symbol=series.symbol,
            timeframe=series.timeframe,
            direction=SignalDirection.NEUTRAL,
            confidence=cfg.degraded_confidence,
            entry_price=entry,
            stop_loss=stop,
            take_profit=target,
            reasons=tuple(reasons),
            timestamp=timestamp,
            degraded=True,
            config_hash=self.config_hash,
        )

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def _update_health(self, signal: Signal, elapsed_ms: float) -> None:
        with self._health_lock:
            self._record_health(signal, elapsed_ms)

    def _record_health(self, signal: Signal, elapsed_ms: float) -> None:
        h = self.health
        h.total_evaluations += 1
        if signal.degraded:
            h.degraded_evaluations += 1

        if signal.direction is SignalDirection.LONG:
            h.long_signals += 1
        elif signal.direction is SignalDirection.SHORT:
            h.short_signals += 1
        else:
            h.neutral_signals += 1

        n = h.total_evaluations
        h.avg_confidence = h.avg_confidence + (signal.confidence - h.avg_confidence) / n
        h.min_confidence = min(h.min_confidence, signal.confidence)
        h.max_confidence = max(h.max_confidence, signal.confidence)

        self._processing_times.append(elapsed_ms)
        if len(self._processing_times) > 1000:
            self._processing_times = self._processing_times[-1000:]
        h.avg_processing_time_ms = sum(self._processing_times) / len(self._processing_times)
        h.last_evaluation_time = datetime.now(timezone.utc)
