"""
CONFLUEX Precision Layer

Fixed high-precision decimal arithmetic for all indicator math.

Philosophy:
    - Every step, not just the final result, stays in Decimal
    - One explicit context (50 digits, ROUND_HALF_UP by default)
    - Non-finite values are rejected, never propagated
"""

from confluex.precision.config import PrecisionConfig, DEFAULT_PRECISION_CONFIG
from confluex.precision.decimal_math import PrecisionMath, ZERO, ONE, TWO, HUNDRED

__all__ = [
    'PrecisionConfig',
    'DEFAULT_PRECISION_CONFIG',
    'PrecisionMath',
    'ZERO',
    'ONE',
    'TWO',
    'HUNDRED',
]

__version__ = '1.0.0'
