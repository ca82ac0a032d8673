"""
CONFLUEX Risk Engine

Monte Carlo simulation of signals into distributional risk metrics.

Philosophy:
    - Explicit, injectable random source: a seed reproduces every number
    - Stop and target are barriers, not suggestions
    - Vectorized paths, bounded memory
"""

from confluex.risk_engine.config import MonteCarloConfig, RiskBandConfig
from confluex.risk_engine.schemas import RiskAssessment, RiskLevel
from confluex.risk_engine.monte_carlo import (
    MonteCarloRiskSimulator,
    RiskRequest,
    RiskBatchResult,
    PathStatistics,
)
from confluex.risk_engine.volatility import VolatilityEstimator

__all__ = [
    'MonteCarloConfig',
    'RiskBandConfig',
    'RiskAssessment',
    'RiskLevel',
    'MonteCarloRiskSimulator',
    'RiskRequest',
    'RiskBatchResult',
    'PathStatistics',
    'VolatilityEstimator',
]

__version__ = '1.0.0'
