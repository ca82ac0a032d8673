"""
Monte Carlo Risk Simulator

Turns a Signal into distributional risk metrics by simulating price
paths over the holding horizon implied by its timeframe.

Model:
    S[k+1] = S[k] * (1 + mu + sigma * Z),  Z ~ N(0, 1) via Box-Muller
    mu     = confidence / 100 * direction * drift_scale
    sigma  = per-bar volatility estimate

Stop loss and take profit are absorbing barriers: a path that touches
one exits at that level. NEUTRAL signals are measured as a hypothetical
long with zero drift.

The random source is always an explicit numpy Generator, injected or
built from a seed, so a given seed reproduces identical output.
"""

import math
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from confluex.exceptions import InvalidParametersException
from confluex.signal_engine.schemas import Signal, SignalDirection
from confluex.risk_engine.config import MonteCarloConfig
from confluex.risk_engine.schemas import RiskAssessment, RiskLevel

LOG = logging.getLogger(__name__)

# Floor on a single-step growth factor; prices stay strictly positive
MIN_GROWTH = 1e-9

# Return dispersion below this is float noise from identical paths
MIN_STD = 1e-12


@dataclass
class PathStatistics:
    """Per-path outcomes of one simulation, in percent"""
    returns: np.ndarray
    drawdowns: np.ndarray
    stop_hits: int
    target_hits: int


@dataclass
class RiskRequest:
    signal: Signal
    volatility_estimate: float
    iterations: Optional[int] = None
    seed: Optional[int] = None


@dataclass
class RiskBatchResult:
    index: int
    assessment: Optional[RiskAssessment] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.assessment is not None


class MonteCarloRiskSimulator:
    """
    Vectorized Monte Carlo risk simulation.

    Usage:
        simulator = MonteCarloRiskSimulator()
        assessment = simulator.assess_risk(signal, 0.012, iterations=1000, seed=42)
    """

    def __init__(self, config: Optional[MonteCarloConfig] = None):
        self.config = config or MonteCarloConfig()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def assess_risk(
        self,
        signal: Signal,
        volatility_estimate: float,
        iterations: Optional[int] = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ) -> RiskAssessment:
        """
        Simulate one signal.

        Args:
            signal: Signal with entry, stop and target
            volatility_estimate: Per-bar return volatility (fraction)
            iterations: Number of paths (config default if None)
            seed: Seed for a fresh numpy Generator
            rng: Injected Generator (takes precedence over seed)

        Raises:
            InvalidParametersException: iterations <= 0, volatility
                negative or non-finite, or signal without levels
        """
        iterations = self.config.default_iterations if iterations is None else iterations
        self._validate(signal, volatility_estimate, iterations)
        generator = rng if rng is not None else np.random.default_rng(seed)

        steps = self.config.horizon_for(signal.timeframe)
        drift = self.drift_for(signal)
        paths = self._simulate(signal, float(volatility_estimate), drift, steps, iterations, generator)

        annualization = math.sqrt(self.config.periods_for(signal.timeframe) / steps)
        assessment = self._summarize(
            paths,
            annualization=annualization,
            iterations=iterations,
            horizon_steps=steps,
            volatility=float(volatility_estimate),
            drift=drift,
            seed=seed,
            symbol=signal.symbol,
            timeframe=signal.timeframe,
        )

        LOG.debug(
            f"{signal.symbol} {signal.timeframe} {signal.direction.value}: "
            f"E[r]={assessment.expected_return:+.3f}% VaR95={assessment.value_at_risk_95:.3f}% "
            f"win={assessment.win_probability:.1f}% -> {assessment.risk_level.value}"
        )
        return assessment

    def assess_portfolio(
        self,
        signals: Sequence[Signal],
        volatility_estimates: Sequence[float],
        weights: Optional[Sequence[float]] = None,
        iterations: Optional[int] = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ) -> RiskAssessment:
        """
        Weighted combination of independently simulated signals.

        Path i of the portfolio combines path i of every signal;
        weights are normalized to sum to one (equal if omitted).
        Drawdown is the weighted sum of per-signal drawdowns.
        """
        if not signals:
            raise InvalidParametersException("Portfolio requires at least one signal")
        if len(volatility_estimates) != len(signals):
            raise InvalidParametersException("One volatility estimate per signal is required")

        iterations = self.config.default_iterations if iterations is None else iterations
        raw_weights = np.ones(len(signals)) if weights is None else np.asarray(weights, dtype=float)
        if raw_weights.shape != (len(signals),) or np.any(raw_weights < 0) or raw_weights.sum() <= 0:
            raise InvalidParametersException("Weights must be non-negative, one per signal, not all zero")
        normalized = raw_weights / raw_weights.sum()

        for signal, vol in zip(signals, volatility_estimates):
            self._validate(signal, vol, iterations)

        generator = rng if rng is not None else np.random.default_rng(seed)

        returns = np.zeros(iterations)
        drawdowns = np.zeros(iterations)
        stop_hits = target_hits = 0
        annualization = 0.0
        for signal, vol, w in zip(signals, volatility_estimates, normalized):
            steps = self.config.horizon_for(signal.timeframe)
            paths = self._simulate(signal, float(vol), self.drift_for(signal), steps, iterations, generator)
            returns += w * paths.returns
            drawdowns += w * paths.drawdowns
            stop_hits += paths.stop_hits
            target_hits += paths.target_hits
            annualization += w * math.sqrt(self.config.periods_for(signal.timeframe) / steps)

        combined = PathStatistics(
            returns=returns,
            drawdowns=drawdowns,
            stop_hits=stop_hits // len(signals),
            target_hits=target_hits // len(signals),
        )
        return self._summarize(
            combined,
            annualization=annualization,
            iterations=iterations,
            horizon_steps=max(self.config.horizon_for(s.timeframe) for s in signals),
            volatility=float(np.dot(normalized, np.asarray(volatility_estimates, dtype=float))),
            drift=float(np.dot(normalized, [self.drift_for(s) for s in signals])),
            seed=seed,
            symbol="PORTFOLIO",
            timeframe="",
        )

    def assess_batch(
        self,
        requests: Sequence[RiskRequest],
        max_workers: Optional[int] = None
    ) -> List[RiskBatchResult]:
        """
        Assess many signals on a worker pool.

        Each request uses its own seed, so results do not depend on
        scheduling. A failing request is reported, never raised.
        """
        workers = max_workers or self.config.max_workers

        def _run(index: int, request: RiskRequest) -> RiskBatchResult:
            try:
                assessment = self.assess_risk(
                    request.signal,
                    request.volatility_estimate,
                    iterations=request.iterations,
                    seed=request.seed,
                )
            except (InvalidParametersException, ArithmeticError) as e:
                LOG.error(f"Risk request {index} ({request.signal.symbol}) rejected: {e}")
                return RiskBatchResult(index=index, error=f"{type(e).__name__}: {e}")
            return RiskBatchResult(index=index, assessment=assessment)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="RiskSim") as executor:
            futures = [executor.submit(_run, i, r) for i, r in enumerate(requests)]
            results = [f.result() for f in futures]

        LOG.info(
            f"✓ Risk batch: {sum(r.ok for r in results)}/{len(results)} assessed"
        )
        return results

    def drift_for(self, signal: Signal) -> float:
        """Per-step drift implied by the signal's confidence and direction"""
        return float(signal.confidence) / 100.0 * signal.direction.sign * self.config.drift_scale

    @staticmethod
    def analytic_expected_return(drift: float, steps: int, direction: SignalDirection) -> float:
        """Barrier-free mean position return in percent: side * ((1 + mu)^n - 1)"""
        side = -1 if direction is SignalDirection.SHORT else 1
        return side * ((1.0 + drift) ** steps - 1.0) * 100.0

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def _validate(self, signal: Signal, volatility_estimate, iterations) -> None:
        if isinstance(iterations, bool) or not isinstance(iterations, (int, np.integer)) or iterations <= 0:
            raise InvalidParametersException(f"iterations must be a positive integer, got {iterations!r}")
        try:
            vol = float(volatility_estimate)
        except (TypeError, ValueError):
            raise InvalidParametersException(f"volatility_estimate is not numeric: {volatility_estimate!r}")
        if not math.isfinite(vol) or vol < 0:
            raise InvalidParametersException(
                f"volatility_estimate must be finite and non-negative, got {volatility_estimate!r}"
            )
        if not signal.has_levels:
            raise InvalidParametersException(
                f"{signal.symbol} {signal.timeframe}: signal has no entry/stop/target levels"
            )

    @staticmethod
    def _box_muller(rng: np.random.Generator, shape: Tuple[int, int]) -> np.ndarray:
        # 1 - U maps [0, 1) onto (0, 1], keeping log() finite
        u1 = 1.0 - rng.random(shape)
        u2 = rng.random(shape)
        return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)

    def _simulate(
        self,
        signal: Signal,
        sigma: float,
        mu: float,
        steps: int,
        iterations: int,
        rng: np.random.Generator
    ) -> PathStatistics:
        entry = float(signal.entry_price)
        stop = float(signal.stop_loss)
        target = float(signal.take_profit)
        side = -1.0 if signal.direction is SignalDirection.SHORT else 1.0

        returns = np.empty(iterations)
        drawdowns = np.empty(iterations)
        stop_hits = target_hits = 0
        step_index = np.arange(steps)

        for start in range(0, iterations, self.config.chunk_size):
            n = min(self.config.chunk_size, iterations - start)
            rows = np.arange(n)

            z = self._box_muller(rng, (n, steps))
            growth = np.maximum(1.0 + mu + sigma * z, MIN_GROWTH)
            prices = entry * np.cumprod(growth, axis=1)

            if side > 0:
                hit_stop = prices <= stop
                hit_target = prices >= target
            else:
                hit_stop = prices >= stop
                hit_target = prices <= target

            hit = hit_stop | hit_target
            any_hit = hit.any(axis=1)
            exit_step = np.where(any_hit, hit.argmax(axis=1), steps - 1)

            stopped = any_hit & hit_stop[rows, exit_step]
            targeted = any_hit & ~stopped
            exit_price = np.where(stopped, stop, np.where(targeted, target, prices[rows, exit_step]))
            final_return = side * (exit_price - entry) / entry

            # Position return along the path, frozen from the exit step on
            path_returns = side * (prices - entry) / entry
            frozen = step_index[None, :] >= exit_step[:, None]
            path_returns = np.where(frozen, final_return[:, None], path_returns)

            equity = np.concatenate([np.ones((n, 1)), 1.0 + path_returns], axis=1)
            peaks = np.maximum.accumulate(equity, axis=1)
            drawdown = ((peaks - equity) / peaks).max(axis=1)

            returns[start:start + n] = final_return * 100.0
            drawdowns[start:start + n] = drawdown * 100.0
            stop_hits += int(stopped.sum())
            target_hits += int(targeted.sum())

        return PathStatistics(
            returns=returns,
            drawdowns=drawdowns,
            stop_hits=stop_hits,
            target_hits=target_hits,
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _summarize(self, paths: PathStatistics, annualization: float, iterations: int, **params) -> RiskAssessment:
        returns = paths.returns

        expected = float(np.mean(returns))
        std = float(np.std(returns))
        if std < MIN_STD:
            std = 0.0
        p2_5, p5, p97_5 = np.percentile(returns, [2.5, 5.0, 97.5])
        var95 = max(0.0, -float(p5))
        sharpe = expected / std * annualization if std > 0 else 0.0
        max_drawdown = float(np.max(paths.drawdowns))
        win_probability = float(np.mean(returns > 0) * 100.0)

        if std > 0 and iterations > 2:
            skewness = float(stats.skew(returns))
            kurtosis = float(stats.kurtosis(returns))
        else:
            skewness = kurtosis = 0.0

        risk_level = self.classify_risk(var95, win_probability)
        risk_score = self.risk_score(expected, var95, max_drawdown, win_probability, sharpe)

        return RiskAssessment(
            expected_return=expected,
            value_at_risk_95=var95,
            sharpe_ratio=float(sharpe),
            max_drawdown=max_drawdown,
            win_probability=win_probability,
            confidence_interval_95=(float(p2_5), float(p97_5)),
            risk_level=risk_level,
            risk_score=risk_score,
            return_std=std,
            mean_drawdown=float(np.mean(paths.drawdowns)),
            skewness=skewness,
            kurtosis=kurtosis,
            stop_hit_rate=paths.stop_hits / iterations * 100.0,
            target_hit_rate=paths.target_hits / iterations * 100.0,
            iterations=iterations,
            **params,
        )

    def classify_risk(self, var95: float, win_probability: float) -> RiskLevel:
        bands = self.config.risk_bands
        if var95 >= bands.extreme_var or win_probability < bands.extreme_win:
            return RiskLevel.EXTREME
        if var95 >= bands.high_var or win_probability < bands.high_win:
            return RiskLevel.HIGH
        if var95 >= bands.moderate_var or win_probability < bands.moderate_win:
            return RiskLevel.MODERATE
        return RiskLevel.LOW

    @staticmethod
    def risk_score(
        expected_return: float,
        var95: float,
        max_drawdown: float,
        win_probability: float,
        sharpe_ratio: float
    ) -> float:
        """
        Multi-factor score in [0, 100], 50 baseline, higher is better.

        Expected return +/-25, VaR +/-15 (centred on a 2% loss),
        drawdown up to -20, win probability +/-15, Sharpe +/-15.
        """
        score = 50.0
        score += min(25.0, max(-25.0, expected_return * 5.0))
        score += min(15.0, max(-15.0, (2.0 - var95) * 7.5))
        score -= min(20.0, max_drawdown * 2.0)
        score += min(15.0, max(-15.0, (win_probability - 50.0) * 0.3))
        score += min(15.0, max(-15.0, sharpe_ratio * 10.0))
        return max(0.0, min(100.0, score))
