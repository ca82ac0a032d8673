"""
Test suite for the Monte Carlo risk simulator.

Tests reproducibility, convergence to the analytic mean, barrier
handling, parameter validation, risk classification and the
volatility estimators.

Run: pytest tests/test_monte_carlo.py -v
"""

import pytest
import numpy as np
from datetime import datetime, timezone

from confluex.exceptions import InsufficientDataException, InvalidParametersException
from confluex.risk_engine import (
    MonteCarloConfig,
    MonteCarloRiskSimulator,
    RiskLevel,
    RiskRequest,
    VolatilityEstimator,
)
from confluex.signal_engine import Signal, SignalDirection
from confluex.indicator_engine import CandleSeries

from conftest import build_candles


# ============================================================================
# FIXTURES
# ============================================================================

def make_signal(direction=SignalDirection.LONG, entry=100, stop=98, target=104,
                confidence=70.0, timeframe='1h', symbol='BTCUSDT'):
    return Signal(
        symbol=symbol,
        timeframe=timeframe,
        direction=direction,
        confidence=confidence,
        entry_price=entry,
        stop_loss=stop,
        take_profit=target,
        reasons=(),
        timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def simulator():
    return MonteCarloRiskSimulator()


@pytest.fixture
def long_signal():
    return make_signal()


# ============================================================================
# REPRODUCIBILITY & CONVERGENCE
# ============================================================================

class TestSimulation:
    """Test core simulation behaviour"""

    def test_seed_reproducible(self, simulator, long_signal):
        """Same seed, identical assessment"""
        a = simulator.assess_risk(long_signal, 0.01, iterations=2000, seed=42)
        b = simulator.assess_risk(long_signal, 0.01, iterations=2000, seed=42)

        assert a.to_dict() == b.to_dict()

    def test_different_seeds_differ(self, simulator, long_signal):
        a = simulator.assess_risk(long_signal, 0.01, iterations=2000, seed=1)
        b = simulator.assess_risk(long_signal, 0.01, iterations=2000, seed=2)

        assert a.expected_return != b.expected_return

    def test_injected_generator(self, simulator, long_signal):
        """An injected Generator is equivalent to seeding one"""
        a = simulator.assess_risk(long_signal, 0.01, iterations=1000, seed=7)
        b = simulator.assess_risk(long_signal, 0.01, iterations=1000, rng=np.random.default_rng(7))

        assert a.expected_return == b.expected_return
        assert a.value_at_risk_95 == b.value_at_risk_95

    @pytest.mark.parametrize("direction,stop,target", [
        (SignalDirection.LONG, 1, 10000),
        (SignalDirection.SHORT, 10000, 1),
    ])
    def test_converges_to_analytic_mean(self, simulator, direction, stop, target):
        """With unreachable barriers the mean return matches (1 + mu)^n - 1"""
        signal = make_signal(direction, entry=100, stop=stop, target=target, confidence=80.0)
        assessment = simulator.assess_risk(signal, 0.01, iterations=100_000, seed=11)

        expected = MonteCarloRiskSimulator.analytic_expected_return(
            simulator.drift_for(signal), simulator.config.horizon_for('1h'), direction
        )
        assert expected > 0
        assert assessment.expected_return == pytest.approx(expected, abs=0.1)

    def test_zero_volatility_is_deterministic(self, simulator, long_signal):
        assessment = simulator.assess_risk(long_signal, 0.0, iterations=500, seed=0)

        expected = MonteCarloRiskSimulator.analytic_expected_return(
            simulator.drift_for(long_signal), 24, SignalDirection.LONG
        )
        assert assessment.expected_return == pytest.approx(expected)
        assert assessment.return_std == pytest.approx(0.0, abs=1e-9)
        assert assessment.sharpe_ratio == 0.0
        assert assessment.value_at_risk_95 == 0.0
        assert assessment.win_probability == 100.0
        assert assessment.risk_level is RiskLevel.LOW

    def test_neutral_has_zero_drift(self, simulator):
        signal = make_signal(SignalDirection.NEUTRAL)
        assessment = simulator.assess_risk(signal, 0.0, iterations=100, seed=0)

        assert assessment.drift == 0.0
        assert assessment.expected_return == pytest.approx(0.0)


# ============================================================================
# BARRIERS & BOUNDS
# ============================================================================

class TestBarriers:
    """Test stop loss / take profit absorption"""

    def test_tight_stop_caps_loss(self, simulator):
        """Paths exit at the stop, so no loss exceeds the stop distance"""
        signal = make_signal(entry=100, stop=99.9, target=200)
        assessment = simulator.assess_risk(signal, 0.05, iterations=5000, seed=5)

        assert assessment.stop_hit_rate > 75.0
        assert assessment.value_at_risk_95 <= 0.1 + 1e-9
        assert assessment.confidence_interval_95[0] >= -0.1 - 1e-9

    def test_tight_target_caps_gain(self, simulator):
        signal = make_signal(entry=100, stop=1, target=100.1)
        assessment = simulator.assess_risk(signal, 0.05, iterations=5000, seed=5)

        assert assessment.target_hit_rate > 75.0
        assert assessment.confidence_interval_95[1] <= 0.1 + 1e-9

    def test_short_barriers(self, simulator):
        signal = make_signal(SignalDirection.SHORT, entry=100, stop=100.1, target=50)
        assessment = simulator.assess_risk(signal, 0.05, iterations=5000, seed=5)

        assert assessment.stop_hit_rate > 75.0
        assert assessment.value_at_risk_95 <= 0.1 + 1e-9

    def test_metric_bounds(self, simulator, long_signal):
        assessment = simulator.assess_risk(long_signal, 0.02, iterations=3000, seed=9)

        assert assessment.value_at_risk_95 >= 0.0
        assert assessment.max_drawdown >= 0.0
        assert assessment.mean_drawdown <= assessment.max_drawdown
        assert 0.0 <= assessment.win_probability <= 100.0
        assert assessment.confidence_interval_95[0] <= assessment.confidence_interval_95[1]
        assert 0.0 <= assessment.risk_score <= 100.0
        assert assessment.iterations == 3000
        assert assessment.horizon_steps == 24


# ============================================================================
# VALIDATION
# ============================================================================

class TestValidation:
    """Test parameter rejection"""

    @pytest.mark.parametrize("iterations", [0, -5, 1.5, True])
    def test_invalid_iterations(self, simulator, long_signal, iterations):
        with pytest.raises(InvalidParametersException):
            simulator.assess_risk(long_signal, 0.01, iterations=iterations)

    @pytest.mark.parametrize("volatility", [-0.01, float('nan'), float('inf'), "abc"])
    def test_invalid_volatility(self, simulator, long_signal, volatility):
        with pytest.raises(InvalidParametersException):
            simulator.assess_risk(long_signal, volatility, iterations=10)

    def test_signal_without_levels(self, simulator):
        signal = make_signal(SignalDirection.NEUTRAL, entry=None, stop=None, target=None)

        with pytest.raises(InvalidParametersException):
            simulator.assess_risk(signal, 0.01, iterations=10)

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            MonteCarloConfig(default_iterations=0)


# ============================================================================
# RISK CLASSIFICATION
# ============================================================================

class TestRiskClassification:
    """Test risk bands and score"""

    @pytest.mark.parametrize("var95,win,level", [
        (12.0, 60.0, RiskLevel.EXTREME),
        (1.0, 20.0, RiskLevel.EXTREME),
        (6.0, 60.0, RiskLevel.HIGH),
        (1.0, 40.0, RiskLevel.HIGH),
        (3.0, 60.0, RiskLevel.MODERATE),
        (1.0, 50.0, RiskLevel.MODERATE),
        (1.0, 60.0, RiskLevel.LOW),
    ])
    def test_bands(self, simulator, var95, win, level):
        assert simulator.classify_risk(var95, win) is level

    def test_score_bounded(self):
        assert MonteCarloRiskSimulator.risk_score(100.0, 0.0, 0.0, 100.0, 10.0) == 100.0
        assert MonteCarloRiskSimulator.risk_score(-100.0, 100.0, 100.0, 0.0, -10.0) == 0.0

    def test_score_baseline(self):
        """A flat, riskless profile sits near the 50 baseline"""
        score = MonteCarloRiskSimulator.risk_score(0.0, 2.0, 0.0, 50.0, 0.0)
        assert score == 50.0


# ============================================================================
# PORTFOLIO & BATCH
# ============================================================================

class TestPortfolioAndBatch:
    """Test multi-signal assessment"""

    def test_single_signal_portfolio_matches(self, simulator, long_signal):
        """A one-signal portfolio reproduces the single assessment"""
        single = simulator.assess_risk(long_signal, 0.01, iterations=2000, seed=4)
        portfolio = simulator.assess_portfolio([long_signal], [0.01], iterations=2000, seed=4)

        assert portfolio.symbol == "PORTFOLIO"
        assert portfolio.expected_return == pytest.approx(single.expected_return)
        assert portfolio.value_at_risk_95 == pytest.approx(single.value_at_risk_95)

    def test_portfolio_reproducible(self, simulator):
        signals = [make_signal(), make_signal(SignalDirection.SHORT, stop=103, target=95, timeframe='4h')]

        a = simulator.assess_portfolio(signals, [0.01, 0.02], weights=[2, 1], iterations=1000, seed=8)
        b = simulator.assess_portfolio(signals, [0.01, 0.02], weights=[2, 1], iterations=1000, seed=8)

        assert a.to_dict() == b.to_dict()

    def test_portfolio_validation(self, simulator, long_signal):
        with pytest.raises(InvalidParametersException):
            simulator.assess_portfolio([], [])
        with pytest.raises(InvalidParametersException):
            simulator.assess_portfolio([long_signal], [0.01, 0.02])
        with pytest.raises(InvalidParametersException):
            simulator.assess_portfolio([long_signal], [0.01], weights=[-1])

    def test_batch(self, simulator, long_signal):
        """Each request is independent; bad requests are reported, not raised"""
        requests = [
            RiskRequest(long_signal, 0.01, iterations=500, seed=1),
            RiskRequest(long_signal, -1.0, iterations=500, seed=2),
            RiskRequest(long_signal, 0.02, iterations=500, seed=3),
        ]
        results = simulator.assess_batch(requests, max_workers=2)

        assert [r.index for r in results] == [0, 1, 2]
        assert results[0].ok and results[2].ok
        assert not results[1].ok
        assert "InvalidParametersException" in results[1].error

        direct = simulator.assess_risk(long_signal, 0.01, iterations=500, seed=1)
        assert results[0].assessment.expected_return == direct.expected_return


# ============================================================================
# VOLATILITY ESTIMATION
# ============================================================================

class TestVolatilityEstimator:
    """Test per-bar volatility estimates"""

    def test_from_atr(self):
        assert VolatilityEstimator.from_atr(2, 100) == pytest.approx(0.02)

    def test_from_atr_rejects_bad_price(self):
        with pytest.raises(InvalidParametersException):
            VolatilityEstimator.from_atr(2, 0)

    def test_from_series(self, random_walk_candles):
        series = CandleSeries(random_walk_candles, timeframe='1h')
        vol = VolatilityEstimator.from_series(series)

        assert 0.0 < vol < 0.1

    def test_from_returns(self):
        closes = [100.0, 101.0, 100.0, 101.0, 100.0]
        vol = VolatilityEstimator.from_returns(closes)

        returns = np.diff(closes) / np.array(closes[:-1])
        assert vol == pytest.approx(np.std(returns, ddof=1))

    def test_from_returns_window(self):
        closes = [100.0, 150.0, 100.0] + [100.0 * 1.01 ** i for i in range(10)]
        vol = VolatilityEstimator.from_returns(closes, window=5)

        assert vol == pytest.approx(0.0, abs=1e-9)

    def test_from_returns_insufficient(self):
        with pytest.raises(InsufficientDataException):
            VolatilityEstimator.from_returns([100.0, 101.0], window=5)

    def test_implied_from_levels(self, long_signal):
        """Mean stop/target distance, scaled up for lower confidence"""
        vol = VolatilityEstimator.implied_from_levels(long_signal, floor=0.01, ceiling=0.05)
        assert vol == pytest.approx(0.03 * 1.3)

    def test_implied_bounded(self):
        wide = make_signal(entry=100, stop=50, target=200)
        assert VolatilityEstimator.implied_from_levels(wide, floor=0.01, ceiling=0.05) == 0.05

    def test_implied_requires_levels(self):
        signal = make_signal(SignalDirection.NEUTRAL, entry=None, stop=None, target=None)
        with pytest.raises(InvalidParametersException):
            VolatilityEstimator.implied_from_levels(signal)

    def test_feeds_simulator(self, simulator):
        series = CandleSeries(build_candles([100.0 * 1.001 ** i for i in range(40)]), timeframe='1h')
        signal = make_signal(entry=float(series.latest.close), stop=90, target=120)

        vol = VolatilityEstimator.from_series(series)
        assessment = simulator.assess_risk(signal, vol, iterations=200, seed=1)
        assert assessment.volatility == pytest.approx(vol)
