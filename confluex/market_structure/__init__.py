"""
CONFLUEX Market Structure

Pattern catalogue and regime classification.

Philosophy:
    - Fixed, auditable catalogue of named setups
    - One regime label per evaluation, with the measures that decided it
    - High volatility overrides trend/range for weighting purposes
"""

from confluex.market_structure.config import MarketStructureConfig, PatternConfig, RegimeConfig
from confluex.market_structure.schemas import (
    PatternKind,
    PatternDirection,
    PatternMatch,
    RegimeLabel,
    RegimeClassification,
)
from confluex.market_structure.patterns import PatternDetector
from confluex.market_structure.regime_classifier import RegimeClassifier

__all__ = [
    'MarketStructureConfig',
    'PatternConfig',
    'RegimeConfig',
    'PatternKind',
    'PatternDirection',
    'PatternMatch',
    'RegimeLabel',
    'RegimeClassification',
    'PatternDetector',
    'RegimeClassifier',
]

__version__ = '1.0.0'
