"""
Risk Engine Configuration

Simulation horizon per timeframe, annualization factors, drift scale
and risk-level bands.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict
import json
import hashlib


@dataclass
class RiskBandConfig:
    """
    VaR (percent loss) and win probability (percent) bands.

    A band applies when VaR is at or above its VaR bound OR win
    probability falls below its win bound; bands are checked from
    EXTREME down to MODERATE, anything else is LOW.
    """
    extreme_var: float = 10.0
    extreme_win: float = 30.0
    high_var: float = 5.0
    high_win: float = 45.0
    moderate_var: float = 2.0
    moderate_win: float = 55.0

    def __post_init__(self):
        if not self.extreme_var >= self.high_var >= self.moderate_var >= 0:
            raise ValueError("VaR bands must satisfy extreme >= high >= moderate >= 0")
        if not 0 <= self.extreme_win <= self.high_win <= self.moderate_win <= 100:
            raise ValueError("Win bands must satisfy 0 <= extreme <= high <= moderate <= 100")


@dataclass
class MonteCarloConfig:
    """Master configuration for the Monte Carlo risk simulator"""

    config_version: str = "1.0.0"

    default_iterations: int = 1000

    # Per-step drift = confidence / 100 * direction * drift_scale
    drift_scale: float = 0.001

    # Holding horizon in bars of the signal's timeframe
    horizon_steps: Dict[str, int] = field(default_factory=lambda: {
        '1m': 60, '5m': 48, '15m': 32, '30m': 24, '1h': 24,
        '4h': 12, '1d': 7, '3d': 5, '1w': 4, '1M': 3,
    })
    default_horizon_steps: int = 24

    # Crypto trades around the clock
    periods_per_year: Dict[str, float] = field(default_factory=lambda: {
        '1m': 525600.0, '5m': 105120.0, '15m': 35040.0, '30m': 17520.0,
        '1h': 8760.0, '4h': 2190.0, '1d': 365.0, '3d': 365.0 / 3,
        '1w': 365.0 / 7, '1M': 12.0,
    })
    default_periods_per_year: float = 8760.0

    # Paths simulated per vectorized block (bounds memory)
    chunk_size: int = 25000

    # Worker pool for batch assessment
    max_workers: int = 4

    # Implied volatility proxy bounds (stop/target distance based)
    implied_volatility_floor: float = 0.01
    implied_volatility_ceiling: float = 0.05

    risk_bands: RiskBandConfig = field(default_factory=RiskBandConfig)

    def __post_init__(self):
        if self.default_iterations <= 0:
            raise ValueError("default_iterations must be positive")
        if self.drift_scale < 0:
            raise ValueError("drift_scale must be non-negative")
        if self.chunk_size <= 0 or self.max_workers <= 0:
            raise ValueError("chunk_size and max_workers must be positive")
        if any(steps <= 0 for steps in self.horizon_steps.values()) or self.default_horizon_steps <= 0:
            raise ValueError("horizon steps must be positive")
        if not 0 < self.implied_volatility_floor <= self.implied_volatility_ceiling:
            raise ValueError("Require 0 < implied_volatility_floor <= implied_volatility_ceiling")

    def horizon_for(self, timeframe: str) -> int:
        return self.horizon_steps.get(timeframe, self.default_horizon_steps)

    def periods_for(self, timeframe: str) -> float:
        return self.periods_per_year.get(timeframe, self.default_periods_per_year)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'MonteCarloConfig':
        params = {k: v for k, v in config_dict.items() if k not in ('risk_bands', 'config_hash')}
        return cls(
            risk_bands=RiskBandConfig(**config_dict.get('risk_bands', {})),
            **params,
        )

    def compute_hash(self) -> str:
        config_json = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_json.encode()).hexdigest()[:12]
