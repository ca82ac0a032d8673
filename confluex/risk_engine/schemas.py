"""
Risk Engine Schemas
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class RiskLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


@dataclass(frozen=True)
class RiskAssessment:
    """
    Distributional risk metrics of one simulated signal.

    Returns, VaR, drawdown and win probability are percentages.
    value_at_risk_95 is a loss (positive = money lost at the
    5th percentile, 0 when even that percentile is a gain).
    risk_score runs 0-100, higher is more favourable.
    """

    expected_return: float
    value_at_risk_95: float
    sharpe_ratio: float
    max_drawdown: float
    win_probability: float
    confidence_interval_95: Tuple[float, float]
    risk_level: RiskLevel

    # Supplementary statistics
    risk_score: float = 50.0
    return_std: float = 0.0
    mean_drawdown: float = 0.0
    skewness: float = 0.0
    kurtosis: float = 0.0
    stop_hit_rate: float = 0.0
    target_hit_rate: float = 0.0

    # Simulation parameters
    iterations: int = 0
    horizon_steps: int = 0
    volatility: float = 0.0
    drift: float = 0.0
    seed: Optional[int] = None
    symbol: str = ""
    timeframe: str = ""

    def to_dict(self) -> dict:
        return {
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'expected_return': self.expected_return,
            'value_at_risk_95': self.value_at_risk_95,
            'sharpe_ratio': self.sharpe_ratio,
            'max_drawdown': self.max_drawdown,
            'win_probability': self.win_probability,
            'confidence_interval_95': list(self.confidence_interval_95),
            'risk_level': self.risk_level.value,
            'risk_score': self.risk_score,
            'return_std': self.return_std,
            'mean_drawdown': self.mean_drawdown,
            'skewness': self.skewness,
            'kurtosis': self.kurtosis,
            'stop_hit_rate': self.stop_hit_rate,
            'target_hit_rate': self.target_hit_rate,
            'iterations': self.iterations,
            'horizon_steps': self.horizon_steps,
            'volatility': self.volatility,
            'drift': self.drift,
            'seed': self.seed,
        }
