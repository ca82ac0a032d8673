"""
Test suite for the Signal Engine.

Tests the Signal record, confluence scoring, level derivation,
multi-timeframe agreement and the end-to-end engine.

Run: pytest tests/test_signal_engine.py -v
"""

import pytest
import dataclasses
from decimal import Decimal
from datetime import timedelta

from confluex.exceptions import (
    InvalidCandleSeriesException,
    InvariantViolationException,
    RangeViolationException,
)
from confluex.indicator_engine import (
    CandleSeries,
    DerivedSignal,
    IndicatorCategory,
    IndicatorReading,
    IndicatorSnapshot,
    SignalStrength,
)
from confluex.market_structure import (
    PatternDirection,
    PatternKind,
    PatternMatch,
    RegimeClassification,
    RegimeLabel,
)
from confluex.signal_engine import (
    AdaptiveWeightTracker,
    ConfluenceConfig,
    ConfluenceScorer,
    Signal,
    SignalDirection,
    SignalEngineConfig,
    SignalGenerationEngine,
    compute_agreement,
)
from confluex.timeframes import adjacent_timeframes, bar_duration

from conftest import BASE_TIME, build_candles


# ============================================================================
# FIXTURES
# ============================================================================

def make_signal(direction=SignalDirection.LONG, entry=100, stop=98, target=104,
                timeframe='1h', confidence=70.0, degraded=False, symbol='BTCUSDT',
                votes=(), timestamp=BASE_TIME):
    return Signal(
        symbol=symbol,
        timeframe=timeframe,
        direction=direction,
        confidence=confidence,
        entry_price=entry,
        stop_loss=stop,
        take_profit=target,
        reasons=("test",),
        timestamp=timestamp,
        indicator_votes=votes,
        degraded=degraded,
    )


def trend_snapshot(signal=DerivedSignal.BUY, strength=SignalStrength.STRONG):
    """MACD, EMA_CROSS and SMA_TREND voting together"""
    readings = tuple(
        IndicatorReading(
            name=name,
            category=IndicatorCategory.TREND,
            value=1.0,
            signal=signal,
            strength=strength,
            detail="test",
        )
        for name in ('MACD', 'EMA_CROSS', 'SMA_TREND')
    )
    return IndicatorSnapshot(
        symbol='BTCUSDT',
        timeframe='1h',
        timestamp=BASE_TIME,
        readings=readings,
    )


@pytest.fixture
def weights():
    return AdaptiveWeightTracker().snapshot()


@pytest.fixture
def flat_scorer():
    """Scorer without regime re-weighting"""
    return ConfluenceScorer(ConfluenceConfig(regime_multipliers={}))


RANGE = RegimeClassification(label=RegimeLabel.RANGE, confidence=0.5)


# ============================================================================
# SIGNAL RECORD
# ============================================================================

class TestSignal:
    """Test Signal invariants"""

    def test_risk_reward_long(self):
        """RR = |target - entry| / |entry - stop|"""
        signal = make_signal(entry=100, stop=98, target=104)
        assert signal.risk_reward_ratio == Decimal(2)

    def test_risk_reward_short(self):
        signal = make_signal(SignalDirection.SHORT, entry=100, stop=102, target=96)
        assert signal.risk_reward_ratio == Decimal(2)

    def test_long_bracketing_enforced(self):
        """LONG requires stop < entry < target"""
        with pytest.raises(InvariantViolationException):
            make_signal(entry=100, stop=101, target=104)

    def test_short_bracketing_enforced(self):
        with pytest.raises(InvariantViolationException):
            make_signal(SignalDirection.SHORT, entry=100, stop=98, target=104)

    def test_levels_set_together(self):
        with pytest.raises(InvariantViolationException):
            make_signal(entry=100, stop=None, target=104)

    def test_levels_may_be_absent(self):
        signal = make_signal(SignalDirection.NEUTRAL, entry=None, stop=None, target=None)

        assert not signal.has_levels
        assert signal.risk_reward_ratio is None

    @pytest.mark.parametrize("confidence", [-1.0, 100.5])
    def test_confidence_range(self, confidence):
        with pytest.raises(RangeViolationException):
            make_signal(confidence=confidence)

    def test_immutable(self):
        signal = make_signal()
        with pytest.raises(dataclasses.FrozenInstanceError):
            signal.confidence = 10.0

    def test_to_dict(self):
        signal = make_signal(votes=(('RSI', 'buy'), ('ATR', 'neutral')))
        data = signal.to_dict()

        assert data['direction'] == 'LONG'
        assert data['risk_reward_ratio'] == 2.0
        assert data['indicator_votes'] == {'RSI': 'buy', 'ATR': 'neutral'}
        assert signal.contributing_indicators == ['RSI']


# ============================================================================
# CONFLUENCE SCORER
# ============================================================================

class TestConfluenceScorer:
    """Test scoring, modifiers and clamping"""

    def test_full_trend_budget(self, flat_scorer, weights):
        """All trend indicators strong-buy at base weights earn the whole trend budget"""
        result = flat_scorer.score(trend_snapshot(), [], RANGE, weights)

        assert result.indicator_score == pytest.approx(35.0)
        assert result.direction is SignalDirection.LONG
        assert result.confidence == pytest.approx(85.0)

    def test_short_confidence_clamped(self, flat_scorer, weights):
        """Bearish scores map below 50 and clamp at the floor"""
        result = flat_scorer.score(trend_snapshot(DerivedSignal.SELL), [], RANGE, weights)

        assert result.direction is SignalDirection.SHORT
        assert result.confidence == 25.0

    def test_below_threshold_is_neutral(self, flat_scorer, weights):
        snapshot = trend_snapshot(strength=SignalStrength.WEAK)
        snapshot = dataclasses.replace(snapshot, readings=snapshot.readings[:1])
        result = flat_scorer.score(snapshot, [], RANGE, weights)

        assert result.regime_adjusted_score == pytest.approx(12.25)
        assert result.direction is SignalDirection.NEUTRAL

    def test_confirming_pattern_adds_bonus(self, flat_scorer, weights):
        pattern = PatternMatch(
            name="trend_continuation_up", kind=PatternKind.CONTINUATION,
            direction=PatternDirection.BULLISH, reliability=40.0,
        )
        result = flat_scorer.score(trend_snapshot(), [pattern], RANGE, weights)

        assert result.pattern_bonus == pytest.approx(6.0)
        assert result.confidence == pytest.approx(91.0)

    def test_confidence_capped(self, flat_scorer, weights):
        pattern = PatternMatch(
            name="band_breakout_up", kind=PatternKind.BREAKOUT,
            direction=PatternDirection.BULLISH, reliability=80.0,
        )
        result = flat_scorer.score(trend_snapshot(), [pattern], RANGE, weights)
        assert result.confidence == 95.0

    def test_opposing_pattern_never_flips_direction(self, flat_scorer, weights):
        """A bearish pattern on a bullish score adds nothing and keeps LONG"""
        pattern = PatternMatch(
            name="overbought_reversal", kind=PatternKind.REVERSAL,
            direction=PatternDirection.BEARISH, reliability=100.0,
        )
        result = flat_scorer.score(trend_snapshot(), [pattern], RANGE, weights)

        assert result.direction is SignalDirection.LONG
        assert result.pattern_bonus == 0.0
        assert any("does not confirm" in r for r in result.reasons)

    def test_conflicting_timeframes_never_flip_direction(self, flat_scorer, weights):
        """Full disagreement shrinks the magnitude but keeps the sign"""
        higher = make_signal(SignalDirection.SHORT, stop=102, target=96, timeframe='4h')
        result = flat_scorer.score(trend_snapshot(), [], RANGE, weights, [higher])

        assert result.timeframe_adjustment == pytest.approx(-15.0)
        assert result.direction is SignalDirection.LONG
        assert result.confidence == pytest.approx(70.0)

    def test_regime_multiplier(self, weights):
        """Trend indicators are boosted in a trending regime"""
        scorer = ConfluenceScorer()
        trend = RegimeClassification(label=RegimeLabel.TREND_UP, confidence=0.8)
        result = scorer.score(trend_snapshot(), [], trend, weights)

        assert result.regime_adjusted_score == pytest.approx(35.0 * 1.3)
        assert result.confidence == 95.0

    def test_high_volatility_discount(self, weights):
        scorer = ConfluenceScorer()
        regime = RegimeClassification(label=RegimeLabel.HIGH_VOLATILITY, confidence=0.9)
        result = scorer.score(trend_snapshot(), [], regime, weights)

        assert result.regime_adjusted_score == pytest.approx(35.0 * 0.75)

    def test_split_budget_sums_exactly(self, flat_scorer, weights):
        """Weighted shares of the trend budget add back to the whole budget exactly"""
        result = flat_scorer.score(trend_snapshot(), [], RANGE, weights)

        assert result.indicator_score == 35.0
        assert result.raw_score == 35.0
        assert sum(c for _, c in result.contributions) == pytest.approx(35.0)

    def test_reasons_in_evaluation_order(self, flat_scorer, weights):
        result = flat_scorer.score(trend_snapshot(), [], RANGE, weights)

        assert result.reasons[0].startswith("Regime range")
        assert result.reasons[1].startswith("MACD buy")
        assert result.reasons[-1].startswith("Raw score")


# ============================================================================
# PRICE LEVELS
# ============================================================================

class TestPriceLevels:
    """Test ATR-based and fallback level derivation"""

    def test_long_atr_levels(self):
        levels = ConfluenceScorer().derive_levels(SignalDirection.LONG, Decimal(100), Decimal(2))

        assert levels.stop_loss == Decimal(97)
        assert levels.take_profit == Decimal(105)
        assert levels.method == "atr"

    def test_short_atr_levels(self):
        levels = ConfluenceScorer().derive_levels(SignalDirection.SHORT, Decimal(100), Decimal(2))

        assert levels.stop_loss == Decimal(103)
        assert levels.take_profit == Decimal(95)

    def test_neutral_uses_long_geometry(self):
        levels = ConfluenceScorer().derive_levels(SignalDirection.NEUTRAL, Decimal(100), Decimal(2))
        assert levels.stop_loss < levels.entry < levels.take_profit

    def test_percent_fallback(self):
        """Missing ATR falls back to 1.5% / 2.5%"""
        levels = ConfluenceScorer().derive_levels(SignalDirection.LONG, Decimal(100), None)

        assert levels.stop_loss == Decimal('98.5')
        assert levels.take_profit == Decimal('102.5')
        assert levels.method == "percent"

    def test_oversized_atr_falls_back(self):
        """An ATR that would push the stop below zero is not used"""
        levels = ConfluenceScorer().derive_levels(SignalDirection.LONG, Decimal(1), Decimal(5))

        assert levels.method == "percent"
        assert levels.stop_loss > 0

    def test_non_positive_entry_rejected(self):
        """No level geometry exists around a zero price"""
        with pytest.raises(InvariantViolationException):
            ConfluenceScorer().derive_levels(SignalDirection.NEUTRAL, Decimal(0), None)


# ============================================================================
# MULTI-TIMEFRAME AGREEMENT
# ============================================================================

class TestTimeframeAgreement:
    """Test adjacent-timeframe voting"""

    def test_weighted_agreement(self):
        signals = [
            make_signal(timeframe='4h'),
            make_signal(SignalDirection.SHORT, stop=102, target=96, timeframe='1d'),
        ]
        agreement = compute_agreement('BTCUSDT', '1h', 1, signals, {'4h': 1.0, '1d': 3.0})

        assert agreement.agreement == pytest.approx(-0.5)
        assert agreement.agreeing == ('4h',)
        assert agreement.conflicting == ('1d',)

    def test_ignores_neutral_degraded_and_distant(self):
        signals = [
            make_signal(SignalDirection.NEUTRAL, timeframe='4h'),
            make_signal(timeframe='30m', degraded=True),
            make_signal(timeframe='1w'),
            make_signal(timeframe='1d', symbol='ETHUSDT'),
        ]
        agreement = compute_agreement('BTCUSDT', '1h', 1, signals, {})

        assert agreement.agreement == 0.0
        assert not agreement.has_votes
        assert set(agreement.neutral) == {'4h', '30m'}

    def test_latest_signal_per_timeframe(self):
        old = make_signal(SignalDirection.SHORT, stop=102, target=96, timeframe='4h')
        new = make_signal(timeframe='4h', timestamp=BASE_TIME + timedelta(hours=4))
        agreement = compute_agreement('BTCUSDT', '1h', 1, [new, old], {})

        assert agreement.agreement == 1.0

    def test_no_direction_no_agreement(self):
        agreement = compute_agreement('BTCUSDT', '1h', 0, [make_signal(timeframe='4h')], {})
        assert agreement.agreement == 0.0

    def test_adjacent_timeframes(self):
        assert adjacent_timeframes('1h', span=1) == ['30m', '4h']
        assert adjacent_timeframes('1m', span=2) == ['5m', '15m']

    def test_bar_duration(self):
        assert bar_duration('4h') == timedelta(hours=4)
        with pytest.raises(ValueError):
            bar_duration('2h')


# ============================================================================
# ENGINE
# ============================================================================

class TestSignalGenerationEngine:
    """Test end-to-end evaluation"""

    def test_short_series_is_degraded_neutral(self):
        """Too little history gives NEUTRAL at 50 with fallback levels"""
        engine = SignalGenerationEngine()
        candles = build_candles([100.0] * 10)
        signal = engine.evaluate_signal('BTCUSDT', '1h', candles)

        assert signal.direction is SignalDirection.NEUTRAL
        assert signal.confidence == 50.0
        assert signal.degraded
        assert signal.entry_price == Decimal('100.0')
        assert signal.stop_loss == Decimal('98.5')
        assert any("insufficient" in r.lower() for r in signal.reasons)

    def test_empty_candles(self):
        signal = SignalGenerationEngine().evaluate_signal('BTCUSDT', '1h', [])

        assert signal.direction is SignalDirection.NEUTRAL
        assert signal.degraded
        assert not signal.has_levels

    def test_full_evaluation(self, random_walk_candles):
        engine = SignalGenerationEngine()
        signal = engine.evaluate_signal('BTCUSDT', '1h', random_walk_candles)

        assert 25.0 <= signal.confidence <= 95.0
        assert not signal.degraded
        assert signal.has_levels
        assert signal.timestamp == random_walk_candles[-1].timestamp
        assert signal.config_hash == engine.config_hash
        assert len(signal.indicator_votes) == 10
        assert signal.regime in {label.value for label in RegimeLabel}
        assert signal.reasons

    def test_deterministic(self, random_walk_candles):
        """Same candles and weights give an identical Signal"""
        first = SignalGenerationEngine().evaluate_signal('BTCUSDT', '1h', random_walk_candles)
        second = SignalGenerationEngine().evaluate_signal('BTCUSDT', '1h', random_walk_candles)

        assert first.to_dict() == second.to_dict()

    def test_dataframe_input(self, random_walk_candles):
        df = CandleSeries(random_walk_candles, timeframe='1h').to_dataframe()
        engine = SignalGenerationEngine()

        from_df = engine.evaluate_signal('BTCUSDT', '1h', df)
        from_list = engine.evaluate_signal('BTCUSDT', '1h', random_walk_candles)

        assert from_df.direction is from_list.direction
        assert from_df.confidence == from_list.confidence

    def test_unordered_candles_rejected(self):
        candles = build_candles([100.0] * 5)
        candles.reverse()

        with pytest.raises(InvalidCandleSeriesException):
            SignalGenerationEngine().evaluate_signal('BTCUSDT', '1h', candles)

    def test_zero_price_candles_rejected(self):
        """Non-positive prices are bad input, not a computation defect"""
        candles = [
            {'timestamp': BASE_TIME + timedelta(hours=i), 'open': 0, 'high': 0, 'low': 0, 'close': 0, 'volume': 1}
            for i in range(5)
        ]

        with pytest.raises(InvalidCandleSeriesException):
            SignalGenerationEngine().evaluate_signal('BTCUSDT', '1h', candles)

    def test_computation_defect_propagates(self, random_walk_candles, monkeypatch):
        """Invariant violations abandon the evaluation and are counted"""
        engine = SignalGenerationEngine()

        def broken(series):
            raise InvariantViolationException("bands out of order")

        monkeypatch.setattr(engine.interpreter, 'compute', broken)

        with pytest.raises(InvariantViolationException):
            engine.evaluate_signal('BTCUSDT', '1h', random_walk_candles)
        assert engine.get_health()['failed_evaluations'] == 1

    def test_record_outcome(self):
        """Only directional votes are scored against the realized move"""
        engine = SignalGenerationEngine()
        signal = make_signal(votes=(('RSI', 'buy'), ('MACD', 'sell'), ('ADX', 'neutral')))

        snapshot = engine.record_signal_outcome(signal, SignalDirection.LONG)
        stats = engine.weight_tracker.get_performance_stats()

        assert snapshot.version == 1
        assert stats['RSI']['wins'] == 1
        assert stats['MACD']['losses'] == 1
        assert stats['ADX']['sample_count'] == 0
        assert engine.get_health()['outcomes_recorded'] == 2

    def test_neutral_outcome_marks_votes_incorrect(self):
        engine = SignalGenerationEngine()
        signal = make_signal(votes=(('RSI', 'buy'), ('MACD', 'sell')))

        engine.record_signal_outcome(signal, SignalDirection.NEUTRAL)
        stats = engine.weight_tracker.get_performance_stats()

        assert stats['RSI']['losses'] == 1
        assert stats['MACD']['losses'] == 1

    def test_health_counters(self, random_walk_candles):
        engine = SignalGenerationEngine()
        engine.evaluate_signal('BTCUSDT', '1h', random_walk_candles)
        engine.evaluate_signal('BTCUSDT', '1h', build_candles([100.0] * 5))

        health = engine.get_health()
        assert health['total_evaluations'] == 2
        assert health['degraded_evaluations'] == 1
        assert health['long_signals'] + health['short_signals'] + health['neutral_signals'] == 2


# ============================================================================
# CONFIGURATION
# ============================================================================

class TestSignalEngineConfig:
    """Test configuration versioning"""

    def test_hash_deterministic(self):
        assert SignalEngineConfig().compute_hash() == SignalEngineConfig().compute_hash()

    def test_hash_ignores_batch_settings(self):
        """Worker count does not change signal content"""
        config = SignalEngineConfig()
        config.batch.max_workers = 2
        assert config.compute_hash() == SignalEngineConfig().compute_hash()

    def test_hash_tracks_scoring(self):
        config = SignalEngineConfig.from_dict({'confluence': {'direction_threshold': 20.0}})
        assert config.compute_hash() != SignalEngineConfig().compute_hash()

    def test_invalid_confidence_bounds(self):
        with pytest.raises(ValueError):
            ConfluenceConfig(min_confidence=60.0)
