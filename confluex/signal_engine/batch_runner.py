"""
Parallel Signal Batch Runner

Runs one evaluation cycle over many (symbol, timeframe) pairs.

Features:
- Thread pool execution (configurable workers)
- Failure isolation (one pair failing never aborts the cycle)
- Per-evaluation time budget; overruns are abandoned and reported
- No retries inside a cycle (the next scheduled cycle retries)
- Latest-signal store feeding adjacent-timeframe confluence

Architecture:
    run_cycle → tiers (highest timeframe first) → ThreadPoolExecutor
                     ↓
              LatestSignalStore  ←  Signal per (symbol, timeframe)
"""

import math
import time
import threading
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from confluex.timeframes import TIMEFRAME_ORDER, adjacent_timeframes, timeframe_rank
from confluex.signal_engine.config import BatchRunnerConfig
from confluex.signal_engine.engine import SignalGenerationEngine
from confluex.signal_engine.schemas import Signal

LOG = logging.getLogger(__name__)


class EvaluationStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class EvaluationRequest:
    symbol: str
    timeframe: str
    candles: Any

    @property
    def key(self) -> Tuple[str, str]:
        return (self.symbol, self.timeframe)


@dataclass
class EvaluationResult:
    symbol: str
    timeframe: str
    status: EvaluationStatus
    signal: Optional[Signal] = None
    error: str = ""
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'status': self.status.value,
            'signal': self.signal.to_dict() if self.signal else None,
            'error': self.error,
            'duration_ms': self.duration_ms,
        }


@dataclass
class CycleReport:
    """Outcome of one evaluation cycle"""

    started_at: datetime
    duration_ms: float = 0.0
    results: List[EvaluationResult] = field(default_factory=list)

    def count(self, status: EvaluationStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    def get(self, symbol: str, timeframe: str) -> Optional[EvaluationResult]:
        for r in self.results:
            if r.symbol == symbol and r.timeframe == timeframe:
                return r
        return None

    def to_dict(self) -> dict:
        return {
            'started_at': self.started_at.isoformat(),
            'duration_ms': self.duration_ms,
            'total': len(self.results),
            'ok': self.count(EvaluationStatus.OK),
            'degraded': self.count(EvaluationStatus.DEGRADED),
            'failed': self.count(EvaluationStatus.FAILED),
            'timed_out': self.count(EvaluationStatus.TIMED_OUT),
            'results': [r.to_dict() for r in self.results],
        }


class LatestSignalStore:
    """
    Newest Signal per (symbol, timeframe).

    Signals are replaced, never mutated; reads return the stored
    immutable objects.
    """

    def __init__(self):
        self._signals: Dict[Tuple[str, str], Signal] = {}
        self._lock = threading.RLock()

    def put(self, signal: Signal) -> None:
        with self._lock:
            self._signals[(signal.symbol, signal.timeframe)] = signal

    def get(self, symbol: str, timeframe: str) -> Optional[Signal]:
        with self._lock:
            return self._signals.get((symbol, timeframe))

    def adjacent(self, symbol: str, timeframe: str, span: int = 2) -> List[Signal]:
        with self._lock:
            return [
                self._signals[(symbol, tf)]
                for tf in adjacent_timeframes(timeframe, span)
                if (symbol, tf) in self._signals
            ]

    def all(self) -> List[Signal]:
        with self._lock:
            return list(self._signals.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._signals)


class SignalBatchRunner:
    """
    Parallel evaluation of many (symbol, timeframe) pairs.

    Pairs are grouped into tiers by timeframe; with
    higher_timeframes_first, each tier completes before the next lower
    one starts so lower timeframes see this cycle's higher-timeframe
    signals.

    Python threads cannot be killed: an evaluation over budget is
    abandoned (its result discarded) and may keep a worker busy until
    it returns.
    """

    def __init__(
        self,
        engine: SignalGenerationEngine,
        config: Optional[BatchRunnerConfig] = None,
        store: Optional[LatestSignalStore] = None
    ):
        self.engine = engine
        self.config = config or engine.config.batch
        self.store = store or LatestSignalStore()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="SignalEval"
        )
        LOG.info(f"✓ Batch runner ready ({self.config.max_workers} workers)")

    def run_cycle(self, requests: List[EvaluationRequest]) -> CycleReport:
        """Evaluate every request once; never raises for a single pair"""
        report = CycleReport(started_at=datetime.now(timezone.utc))
        cycle_start = time.perf_counter()

        for tier in self._tiers(requests):
            report.results.extend(self._run_tier(tier))

        report.duration_ms = (time.perf_counter() - cycle_start) * 1000
        LOG.info(
            f"Cycle complete: {len(report.results)} pairs, "
            f"{report.count(EvaluationStatus.OK)} ok, "
            f"{report.count(EvaluationStatus.DEGRADED)} degraded, "
            f"{report.count(EvaluationStatus.FAILED)} failed, "
            f"{report.count(EvaluationStatus.TIMED_OUT)} timed out "
            f"in {report.duration_ms:.0f}ms"
        )
        return report

    def shutdown(self) -> None:
        LOG.info("Shutting down batch runner...")
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> 'SignalBatchRunner':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _tiers(self, requests: List[EvaluationRequest]) -> List[List[EvaluationRequest]]:
        if not self.config.higher_timeframes_first:
            return [list(requests)] if requests else []

        # Unknown timeframes form a last tier and fail inside their own evaluation
        by_rank: Dict[int, List[EvaluationRequest]] = {}
        for r in requests:
            rank = timeframe_rank(r.timeframe) if r.timeframe in TIMEFRAME_ORDER else -1
            by_rank.setdefault(rank, []).append(r)
        return [by_rank[rank] for rank in sorted(by_rank, reverse=True)]

    def _run_tier(self, tier: List[EvaluationRequest]) -> List[EvaluationResult]:
        timeout = self.config.evaluation_timeout
        futures = {self._executor.submit(self._evaluate_one, request): request for request in tier}

        # Enough wall time for every batch of workers to use its budget
        waves = math.ceil(len(tier) / self.config.max_workers)
        done, not_done = wait(futures, timeout=timeout * waves)

        results = []
        for future, request in futures.items():
            if future in not_done:
                future.cancel()
                LOG.warning(f"{request.symbol} {request.timeframe}: timed out after {timeout:.1f}s, abandoned")
                results.append(EvaluationResult(
                    symbol=request.symbol,
                    timeframe=request.timeframe,
                    status=EvaluationStatus.TIMED_OUT,
                    error=f"Exceeded {timeout:.1f}s budget",
                ))
                continue

            result = future.result()
            if result.status is not EvaluationStatus.FAILED and result.duration_ms > timeout * 1000:
                LOG.warning(
                    f"{request.symbol} {request.timeframe}: took {result.duration_ms:.0f}ms, "
                    f"over {timeout:.1f}s budget, discarded"
                )
                result = EvaluationResult(
                    symbol=request.symbol,
                    timeframe=request.timeframe,
                    status=EvaluationStatus.TIMED_OUT,
                    error=f"Exceeded {timeout:.1f}s budget",
                    duration_ms=result.duration_ms,
                )
            elif result.signal is not None:
                self.store.put(result.signal)
            results.append(result)

        return results

    def _evaluate_one(self, request: EvaluationRequest) -> EvaluationResult:
        start = time.perf_counter()
        try:
            adjacent = self.store.adjacent(
                request.symbol, request.timeframe, self.engine.config.confluence.adjacent_span
            )
            signal = self.engine.evaluate_signal(
                request.symbol, request.timeframe, request.candles, adjacent
            )
        except Exception as e:
            LOG.error(f"{request.symbol} {request.timeframe}: evaluation failed: {e}")
            return EvaluationResult(
                symbol=request.symbol,
                timeframe=request.timeframe,
                status=EvaluationStatus.FAILED,
                error=f"{type(e).__name__}: {e}",
                duration_ms=(time.perf_counter() - start) * 1000,
            )

        return EvaluationResult(
            symbol=request.symbol,
            timeframe=request.timeframe,
            status=EvaluationStatus.DEGRADED if signal.degraded else EvaluationStatus.OK,
            signal=signal,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
