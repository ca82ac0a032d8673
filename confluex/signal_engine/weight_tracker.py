"""
Adaptive Weight Tracker

Owns the indicator weight table: the only shared mutable state in the
signal pipeline.

Thread Safety Model:
    Read:  Lock-free (immutable, versioned snapshots)
    Write: Copy-on-write under a single lock, then atomic snapshot swap

A scorer reads one snapshot per evaluation and therefore always sees a
complete table, never a partially-applied update.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple
import threading
import logging

from confluex.signal_engine.config import WeightTrackerConfig

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndicatorWeight:
    """Weight and rolling performance of one indicator"""

    indicator_name: str
    base_weight: float
    weight: float
    outcomes: Tuple[bool, ...] = ()

    @property
    def wins(self) -> int:
        return sum(1 for o in self.outcomes if o)

    @property
    def losses(self) -> int:
        return len(self.outcomes) - self.wins

    @property
    def sample_count(self) -> int:
        return len(self.outcomes)

    @property
    def win_rate(self) -> Optional[float]:
        if not self.outcomes:
            return None
        return self.wins / len(self.outcomes)

    def to_dict(self) -> dict:
        return {
            'indicator_name': self.indicator_name,
            'base_weight': self.base_weight,
            'weight': self.weight,
            'wins': self.wins,
            'losses': self.losses,
            'sample_count': self.sample_count,
            'win_rate': self.win_rate,
        }


@dataclass(frozen=True)
class WeightSnapshot:
    """Immutable, versioned view of the whole weight table"""

    version: int
    timestamp: datetime
    weights: Mapping[str, IndicatorWeight] = field(default_factory=lambda: MappingProxyType({}))

    def get(self, indicator_name: str, default: Optional[float] = None) -> Optional[float]:
        entry = self.weights.get(indicator_name)
        return entry.weight if entry is not None else default

    def base_weight(self, indicator_name: str, default: Optional[float] = None) -> Optional[float]:
        entry = self.weights.get(indicator_name)
        return entry.base_weight if entry is not None else default

    def as_dict(self) -> Dict[str, float]:
        return {name: w.weight for name, w in self.weights.items()}

    def to_dict(self) -> dict:
        return {
            'version': self.version,
            'timestamp': self.timestamp.isoformat(),
            'weights': {name: w.to_dict() for name, w in sorted(self.weights.items())},
        }


class AdaptiveWeightTracker:
    """
    Per-indicator weights nudged by realized outcomes.

    weight = clamp(base + adaptation_rate * (win_rate - 0.5), floor, ceiling)
    once at least min_samples outcomes sit in the rolling window;
    before that the (clamped) base weight applies.
    """

    def __init__(self, config: Optional[WeightTrackerConfig] = None):
        self.config = config or WeightTrackerConfig()
        self._update_lock = threading.Lock()
        self._current_snapshot = self._initial_snapshot()

        LOG.info(f"✓ Weight tracker initialized with {len(self._current_snapshot.weights)} indicators")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> WeightSnapshot:
        """Current table (lock-free read of an immutable snapshot)"""
        return self._current_snapshot

    def get_weight(self, indicator_name: str) -> float:
        snapshot = self._current_snapshot
        weight = snapshot.get(indicator_name)
        if weight is None:
            return self._clamp(self.config.default_base_weight)
        return weight

    def get_performance_stats(self) -> Dict[str, dict]:
        return {name: w.to_dict() for name, w in sorted(self._current_snapshot.weights.items())}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_outcome(self, indicator_name: str, was_correct: bool) -> IndicatorWeight:
        """Append one outcome and recompute that indicator's weight"""
        snapshot = self.record_outcomes({indicator_name: was_correct})
        return snapshot.weights[indicator_name]

    def record_outcomes(self, outcomes: Mapping[str, bool]) -> WeightSnapshot:
        """
        Apply several outcomes as one atomic table update.

        Indicators are processed in sorted name order so identical
        outcome sets always produce identical tables.
        """
        if not outcomes:
            return self._current_snapshot

        with self._update_lock:
            current = self._current_snapshot
            table = dict(current.weights)

            for name in sorted(outcomes):
                entry = table.get(name) or self._new_entry(name)
                table[name] = self._apply(entry, bool(outcomes[name]))

            new_snapshot = WeightSnapshot(
                version=current.version + 1,
                timestamp=datetime.now(timezone.utc),
                weights=MappingProxyType(table),
            )
            self._current_snapshot = new_snapshot

        LOG.debug(
            f"Weight table v{current.version} -> v{new_snapshot.version}: "
            + ", ".join(f"{n}={new_snapshot.get(n):.4f}" for n in sorted(outcomes))
        )
        return new_snapshot

    def reset(self) -> None:
        """Discard all outcomes and restore base weights"""
        with self._update_lock:
            self._current_snapshot = self._initial_snapshot(
                version=self._current_snapshot.version + 1
            )
        LOG.info("Weight tracker reset to base weights")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _initial_snapshot(self, version: int = 0) -> WeightSnapshot:
        table = {
            name: IndicatorWeight(
                indicator_name=name,
                base_weight=base,
                weight=self._clamp(base),
            )
            for name, base in self.config.base_weights.items()
        }
        return WeightSnapshot(
            version=version,
            timestamp=datetime.now(timezone.utc),
            weights=MappingProxyType(table),
        )

    def _new_entry(self, name: str) -> IndicatorWeight:
        base = self.config.default_base_weight
        LOG.info(f"Registering indicator {name} with default base weight {base}")
        return IndicatorWeight(indicator_name=name, base_weight=base, weight=self._clamp(base))

    def _apply(self, entry: IndicatorWeight, was_correct: bool) -> IndicatorWeight:
        cfg = self.config
        outcomes = (entry.outcomes + (was_correct,))[-cfg.window_size:]
        updated = replace(entry, outcomes=outcomes)

        if updated.sample_count >= cfg.min_samples:
            raw = entry.base_weight + cfg.adaptation_rate * (updated.win_rate - 0.5)
        else:
            raw = entry.base_weight

        return replace(updated, weight=self._clamp(raw))

    def _clamp(self, weight: float) -> float:
        return max(self.config.weight_floor, min(self.config.weight_ceiling, weight))
